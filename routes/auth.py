# routes/auth.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request, session

from auth_guard import current_user, require_role
from fleet import fleet
from schemas import RoleSelection

__all__ = ["auth_bp", "require_role"]
auth_bp = Blueprint("auth", __name__, url_prefix="/api")


# -------------------------------------------------------------------
# Login (role selection; the demo has one user per role)
# -------------------------------------------------------------------
@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True)
    try:
        body = RoleSelection.model_validate(data if data is not None else {})
    except ValueError:
        # pydantic's ValidationError is a ValueError
        return jsonify(message="Invalid input"), 400

    user = fleet.get_user_for_role(body.role)
    if not user:
        return jsonify(message="User not found"), 404

    session.clear()
    session["user_id"] = user.id
    current_app.logger.info("[auth] login uid=%s role=%s ip=%s", user.id, user.role.value, request.remote_addr)
    return jsonify(user.to_dict()), 200


@auth_bp.route("/logout", methods=["POST"])
def logout():
    uid = session.pop("user_id", None)
    session.clear()
    if uid is not None:
        current_app.logger.info("[auth] logout uid=%s", uid)
    return jsonify(message="Logged out"), 200


# -------------------------------------------------------------------
# Me (session-based)
# -------------------------------------------------------------------
@auth_bp.route("/me", methods=["GET"])
def me():
    if session.get("user_id") is None:
        return jsonify(message="Not authenticated"), 401
    user = current_user()
    if not user:
        return jsonify(message="User not found"), 401
    return jsonify(user.to_dict()), 200
