from datetime import datetime, timedelta, timezone

import pytest
from dateutil.parser import isoparse

from conftest import login
from models.bus import BusStatus

BUS_KEYS = {
    "id", "busNumber", "routeId", "routeName", "lat", "lng", "passengerCount",
    "crowdLevel", "status", "isLive", "nextStop", "eta", "lastUpdated",
}


def test_list_buses_shape(client):
    res = client.get("/api/buses")
    assert res.status_code == 200
    buses = res.get_json()
    assert [b["id"] for b in buses] == [1, 2, 3, 4, 5]
    for b in buses:
        assert set(b) == BUS_KEYS
        assert 0 <= b["passengerCount"] <= 60
        assert b["status"] == "Running"


def test_seeded_live_bus(client):
    bus = client.get("/api/buses/1").get_json()
    assert bus["busNumber"] == "TN-01-AB-1234"
    assert bus["isLive"] is True
    assert (bus["lat"], bus["lng"]) == (13.0827, 80.2707)
    assert bus["passengerCount"] == 15
    assert bus["crowdLevel"] == "Low"
    assert bus["nextStop"] == "Mount Road"
    assert bus["eta"] == "5 mins"


def test_simulated_buses_alternate_routes(client):
    buses = {b["id"]: b for b in client.get("/api/buses").get_json()}
    for i in range(2, 6):
        assert buses[i]["isLive"] is False
        assert buses[i]["busNumber"] == f"TN-0{i}-XY-{1000 + i}"
        assert buses[i]["routeId"] == (2 if i % 2 == 0 else 1)


def test_search_by_route_name_and_number(client):
    guindy = client.get("/api/buses?q=guindy").get_json()
    assert {b["id"] for b in guindy} == {2, 4}

    by_number = client.get("/api/buses?q=tn-01").get_json()
    assert [b["id"] for b in by_number] == [1]

    assert client.get("/api/buses?q=nowhere").get_json() == []


def test_get_unknown_bus(client):
    res = client.get("/api/buses/42")
    assert res.status_code == 404
    assert res.get_json() == {"message": "Bus not found"}


def test_non_integer_id_is_404(client):
    assert client.get("/api/buses/abc").status_code == 404


# ── status ───────────────────────────────────────────────────────────
def test_status_update_requires_session(client):
    res = client.patch("/api/buses/1/status", json={"status": "Stopped"})
    assert res.status_code == 403
    assert res.get_json() == {"message": "Unauthorized"}


def test_passenger_cannot_update_status(passenger_client):
    res = passenger_client.patch("/api/buses/1/status", json={"status": "Stopped"})
    assert res.status_code == 403


def test_driver_stops_and_starts_bus(driver_client):
    res = driver_client.patch("/api/buses/1/status", json={"status": "Stopped"})
    assert res.status_code == 200
    assert res.get_json()["status"] == "Stopped"
    assert driver_client.get("/api/buses/1").get_json()["status"] == "Stopped"

    res = driver_client.patch("/api/buses/1/status", json={"status": "Running"})
    assert res.get_json()["status"] == "Running"


def test_admin_can_update_status(admin_client):
    assert admin_client.patch("/api/buses/3/status", json={"status": "Stopped"}).status_code == 200


@pytest.mark.parametrize("body", [{}, {"status": "Signal Lost"}, {"status": "running"}])
def test_status_update_validation(driver_client, body):
    res = driver_client.patch("/api/buses/1/status", json=body)
    assert res.status_code == 400
    assert res.get_json()["message"] == "Invalid input"


def test_status_update_unknown_bus(driver_client):
    res = driver_client.patch("/api/buses/99/status", json={"status": "Stopped"})
    assert res.status_code == 404
    assert res.get_json() == {"message": "Bus not found"}


def test_status_roles_come_from_config(app, passenger_client):
    app.config["STATUS_UPDATE_ROLES"] = "passenger,driver"
    res = passenger_client.patch("/api/buses/2/status", json={"status": "Stopped"})
    assert res.status_code == 200


# ── esp ──────────────────────────────────────────────────────────────
def test_esp_update_moves_bus_and_sets_crowd(client):
    res = client.post("/api/buses/1/esp", json={"lat": 13.0604, "lng": 80.2644, "passengerCount": 50})
    assert res.status_code == 200
    assert res.get_json() == {"success": True}

    bus = client.get("/api/buses/1").get_json()
    assert (bus["lat"], bus["lng"]) == (13.0604, 80.2644)
    assert bus["passengerCount"] == 50
    assert bus["crowdLevel"] == "High"
    # snapped onto the Mount Road vertex, so the next stop is further along
    assert bus["nextStop"] == "T. Nagar"


def test_esp_partial_update_keeps_other_fields(client):
    before = client.get("/api/buses/1").get_json()
    client.post("/api/buses/1/esp", json={"passengerCount": 30})
    after = client.get("/api/buses/1").get_json()
    assert (after["lat"], after["lng"]) == (before["lat"], before["lng"])
    assert after["passengerCount"] == 30
    assert after["crowdLevel"] == "Medium"


@pytest.mark.parametrize("reported,stored", [(-5, 0), (250, 60), (19, 19)])
def test_esp_passenger_count_is_clamped(client, reported, stored):
    client.post("/api/buses/1/esp", json={"passengerCount": reported})
    assert client.get("/api/buses/1").get_json()["passengerCount"] == stored


def test_esp_uses_reported_timestamp(client):
    client.post("/api/buses/1/esp", json={"lat": 13.07, "timestamp": "2024-05-01T08:30:00Z"})
    assert client.get("/api/buses/1").get_json()["lastUpdated"].startswith("2024-05-01T08:30:00")


def test_esp_rejects_bad_values(client):
    assert client.post("/api/buses/1/esp", json={"lat": "north"}).status_code == 400
    assert client.post("/api/buses/1/esp", json={"lat": 123.0}).status_code == 400


def test_esp_unknown_bus(client):
    assert client.post("/api/buses/77/esp", json={"lat": 13.0}).status_code == 404


def test_esp_restores_signal(client, fleet):
    fleet.buses[1].status = BusStatus.SIGNAL_LOST
    client.post("/api/buses/1/esp", json={"passengerCount": 10})
    assert client.get("/api/buses/1").get_json()["status"] == "Running"


def test_esp_device_key(app, client):
    app.config["ESP_API_KEY"] = "s3cret"
    res = client.post("/api/buses/1/esp", json={"passengerCount": 10})
    assert res.status_code == 401
    res = client.post("/api/buses/1/esp", json={"passengerCount": 10}, headers={"X-ESP-Key": "s3cret"})
    assert res.status_code == 200


def test_empty_status_roles_fall_back_to_driver(app, client):
    app.config["STATUS_UPDATE_ROLES"] = ""
    login(client, "passenger")
    assert client.patch("/api/buses/2/status", json={"status": "Stopped"}).status_code == 403
    login(client, "driver")
    assert client.patch("/api/buses/2/status", json={"status": "Stopped"}).status_code == 200


def test_lagging_board_clock_does_not_drop_signal(client, fleet):
    fleet.buses[1].status = BusStatus.SIGNAL_LOST
    behind = datetime.now(timezone.utc) - timedelta(minutes=2)
    client.post("/api/buses/1/esp", json={"passengerCount": 10, "timestamp": behind.isoformat()})
    fleet.simulate_movement()
    bus = client.get("/api/buses/1").get_json()
    assert bus["status"] == "Running"
    assert isoparse(bus["lastUpdated"]) == behind


def test_future_timestamp_is_clamped(client):
    ahead = datetime.now(timezone.utc) + timedelta(days=1)
    client.post("/api/buses/1/esp", json={"passengerCount": 10, "timestamp": ahead.isoformat()})
    stored = isoparse(client.get("/api/buses/1").get_json()["lastUpdated"])
    assert stored <= datetime.now(timezone.utc)


def test_internal_receive_time_is_not_serialised(client, fleet):
    client.post("/api/buses/1/esp", json={"passengerCount": 10})
    assert fleet.get_bus(1).last_seen is not None
    assert set(client.get("/api/buses/1").get_json()) == BUS_KEYS
