# routes/transit.py
from flask import Blueprint, jsonify

from fleet import fleet

transit_bp = Blueprint("transit", __name__, url_prefix="/api")


@transit_bp.route("/routes", methods=["GET"])
def list_routes():
    return jsonify([r.to_dict() for r in fleet.all_routes()]), 200


@transit_bp.route("/routes/<int:route_id>", methods=["GET"])
def get_route(route_id: int):
    route = fleet.get_route(route_id)
    if not route:
        return jsonify(message="Route not found"), 404
    return jsonify(route.to_dict()), 200
