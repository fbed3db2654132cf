from realtime import NS, socketio


def _events(received, name):
    return [r["args"][0] for r in received if r["name"] == name]


def test_connect_greets(app):
    rt = socketio.test_client(app, namespace=NS)
    assert rt.is_connected(NS)
    assert _events(rt.get_received(NS), "connected") == [{"ok": True}]
    rt.disconnect(namespace=NS)


def test_tick_broadcasts_fleet_and_bus_rooms(app, fleet):
    rt = socketio.test_client(app, namespace=NS)
    rt.emit("subscribe", {"bus_id": 3}, namespace=NS)
    rt.get_received(NS)

    fleet.simulate_movement()
    received = rt.get_received(NS)

    fleets = _events(received, "fleet:update")
    assert len(fleets) == 1
    assert [b["id"] for b in fleets[0]] == [1, 2, 3, 4, 5]
    # only the subscribed bus room reaches this client
    assert [b["id"] for b in _events(received, "bus:update")] == [3]
    rt.disconnect(namespace=NS)


def test_status_change_pushes_bus_update(app, client, fleet):
    rt = socketio.test_client(app, namespace=NS)
    rt.emit("subscribe", {"bus_id": 1}, namespace=NS)
    rt.get_received(NS)

    client.post("/api/login", json={"role": "driver"})
    client.patch("/api/buses/1/status", json={"status": "Stopped"})

    updates = _events(rt.get_received(NS), "bus:update")
    assert updates and updates[-1]["status"] == "Stopped"
    rt.disconnect(namespace=NS)
