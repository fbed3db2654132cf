# auth_guard.py
from __future__ import annotations

from functools import wraps

from flask import current_app, g, jsonify, request, session

from fleet import fleet

__all__ = ["require_role", "current_user", "roles_from_config"]


def current_user():
    """The user stored in the session cookie, or None."""
    uid = session.get("user_id")
    if uid is None:
        return None
    return fleet.get_user(uid)


def roles_from_config(key: str, default=("driver",)) -> set[str]:
    """Comma-separated role list from app config; empty falls back to `default`."""
    raw = current_app.config.get(key) or ""
    roles = {r.strip().lower() for r in raw.split(",") if r.strip()}
    return roles or set(default)


def require_role(*roles, unauthenticated_status: int = 401, config_key: str | None = None):
    """
    Usage:
      @require_role()                                -> any signed-in user
      @require_role("admin")                         -> only admin
      @require_role(config_key="STATUS_UPDATE_ROLES") -> roles listed in app config (or admin)

    Without a session the request fails with `unauthenticated_status`; a role
    outside the allowed set gets 403. Admin always passes.
    """
    if len(roles) == 1 and isinstance(roles[0], (list, tuple, set)):
        roles = tuple(roles[0])
    static_allowed = {str(r).lower() for r in roles if r}

    def decorator(f):
        @wraps(f)
        def wrapped(*args, **kwargs):
            uid = session.get("user_id")
            if uid is None:
                message = "Not authenticated" if unauthenticated_status == 401 else "Unauthorized"
                return jsonify(message=message), unauthenticated_status

            user = fleet.get_user(uid)
            if not user:
                return jsonify(message="User not found"), 401

            role = user.role.value
            g.user = user  # type: ignore[attr-defined]
            g.role = role  # type: ignore[attr-defined]

            allowed = set(static_allowed)
            if config_key:
                allowed |= roles_from_config(config_key)

            current_app.logger.info(
                "[guard] %s %s uid=%s role=%s ip=%s",
                request.method, request.path, user.id, role, request.remote_addr,
            )

            if allowed and role not in allowed and role != "admin":
                return jsonify(message="Insufficient permissions"), 403

            return f(*args, **kwargs)

        return wrapped

    return decorator
