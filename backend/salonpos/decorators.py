# Overview: Request and capability decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .permissions import RoleAuthorization, validate_capability_code


ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"


def _has_actor() -> bool:
    return hasattr(g, 'actor_id') and hasattr(g, 'authorization')


def require_actor(f):
    """
    Establish who is acting on this request.

    Authentication happens upstream; the gateway forwards the actor id and
    role in headers. Sets the following Flask g attributes:
    - g.actor_id: The acting user's id
    - g.actor_role: The role name (may be None)
    - g.authorization: RoleAuthorization for this actor

    Returns 401 if no actor id header is present.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor_id = (request.headers.get(ACTOR_ID_HEADER) or "").strip()
        if not actor_id:
            return jsonify({"error": "Actor required", "kind": "unauthenticated"}), 401

        role = (request.headers.get(ACTOR_ROLE_HEADER) or "").strip() or None

        g.actor_id = actor_id
        g.actor_role = role
        g.authorization = RoleAuthorization({actor_id: role} if role else {})

        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability: str):
    """Require a specific capability. Use after @require_actor."""
    if not validate_capability_code(capability):
        raise ValueError(f"Unknown capability: {capability}")

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _has_actor():
                return jsonify({"error": "Actor required", "kind": "unauthenticated"}), 401

            if not g.authorization.can(g.actor_id, capability):
                current_app.logger.warning(
                    "Capability %s denied for actor %s (role=%s) on %s %s",
                    capability, g.actor_id, g.actor_role, request.method, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "kind": "permission_denied",
                    "required_capability": capability,
                }), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator
