# routes/admin.py
from flask import Blueprint, jsonify

from auth_guard import require_role
from fleet import fleet

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.route("/summary", methods=["GET"])
@require_role("admin")
def summary():
    """Headline numbers for the fleet dashboard."""
    return jsonify(fleet.fleet_summary()), 200
