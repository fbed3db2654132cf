# routes/buses.py
from __future__ import annotations

import hmac

from flask import Blueprint, current_app, g, jsonify, request

from auth_guard import require_role
from fleet import BusNotFound, fleet
from models.bus import BusStatus
from schemas import EspData, UpdateBusStatus

buses_bp = Blueprint("buses", __name__, url_prefix="/api")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if data is not None else {}


@buses_bp.route("/buses", methods=["GET"])
def list_buses():
    q = request.args.get("q", type=str)
    buses = fleet.search_buses(q) if q else fleet.all_buses()
    return jsonify([b.to_dict() for b in buses]), 200


@buses_bp.route("/buses/<int:bus_id>", methods=["GET"])
def get_bus(bus_id: int):
    bus = fleet.get_bus(bus_id)
    if not bus:
        return jsonify(message="Bus not found"), 404
    return jsonify(bus.to_dict()), 200


@buses_bp.route("/buses/<int:bus_id>/status", methods=["PATCH"])
@require_role(unauthenticated_status=403, config_key="STATUS_UPDATE_ROLES")
def update_status(bus_id: int):
    body = UpdateBusStatus.model_validate(_json_body())
    bus = fleet.update_bus_status(bus_id, BusStatus(body.status))
    current_app.logger.info("[buses] uid=%s set bus=%s status=%s", g.user.id, bus_id, bus.status.value)
    return jsonify(bus.to_dict()), 200


@buses_bp.route("/buses/<int:bus_id>/esp", methods=["POST"])
def esp_update(bus_id: int):
    """
    Report from the ESP board on the live bus (or anything pretending to be it).
    Body: { lat?, lng?, passengerCount?, timestamp? }
    """
    expected = current_app.config.get("ESP_API_KEY")
    if expected:
        given = request.headers.get("X-ESP-Key", "")
        if not hmac.compare_digest(given.encode(), expected.encode()):
            current_app.logger.warning("[esp] rejected report for bus=%s ip=%s", bus_id, request.remote_addr)
            return jsonify(message="Invalid device key"), 401

    body = EspData.model_validate(_json_body())
    try:
        fleet.update_bus_esp(
            bus_id,
            lat=body.lat,
            lng=body.lng,
            passenger_count=body.passenger_count,
            reported_at=body.timestamp,
        )
    except BusNotFound:
        return jsonify(message="Bus not found"), 404

    current_app.logger.info(
        "[esp] bus=%s lat=%s lng=%s pax=%s", bus_id, body.lat, body.lng, body.passenger_count
    )
    return jsonify(success=True), 200
