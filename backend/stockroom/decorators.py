# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services.approval_service import Actor


ROLE_ADMIN = "admin"
ROLE_USER = "user"
ROLES = (ROLE_ADMIN, ROLE_USER)


def _is_authenticated() -> bool:
    return hasattr(g, 'actor')


def require_actor(f):
    """
    Require an already-authenticated caller.

    Authentication happens upstream (JWT gateway); it forwards the caller as:
    - X-User-Id: integer user id
    - X-User-Role: "admin" or "user"

    Sets g.actor to an Actor. Returns 401 if either header is missing or
    malformed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_id = request.headers.get("X-User-Id", "").strip()
        role = request.headers.get("X-User-Role", "").strip().lower()

        if not raw_id or not role:
            return jsonify({"error": "Authentication required"}), 401
        if not raw_id.isdigit() or role not in ROLES:
            return jsonify({"error": "Invalid authentication headers"}), 401

        g.actor = Actor(user_id=int(raw_id), role=role)
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the authenticated caller to be an administrator. Use after @require_actor."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        if not g.actor.is_admin:
            return jsonify({"error": "Administrator access required", "kind": "forbidden"}), 403
        return f(*args, **kwargs)
    return decorated_function
