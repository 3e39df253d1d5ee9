# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .permissions import is_known_role
from .services.document_store import DocumentNotFoundError, StoreError
from .services.permission_service import PermissionDeniedError, RolePermissionProvider
from .validation import ValidationError

ROLE_HEADER = "X-User-Role"


def _has_principal() -> bool:
    return hasattr(g, "permissions")


def require_principal(f):
    """
    Resolve the caller's capabilities from the identity provider.

    The upstream identity provider authenticates the user and forwards the
    role in the X-User-Role header. Sets:
    - g.role: the role name
    - g.permissions: a PermissionProvider for that role

    Returns 401 when the header is missing or names an unknown role.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        role = (request.headers.get(ROLE_HEADER) or "").strip().lower()

        if not role:
            return jsonify({"error": "Authentication required"}), 401
        if not is_known_role(role):
            return jsonify({"error": f"Unknown role: {role}"}), 401

        g.role = role
        g.permissions = RolePermissionProvider(role)
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """
    Require a capability at the route level (read-only endpoints such as
    reports). Mutating services enforce their own capability.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_principal was called first
            if not _has_principal():
                return jsonify({"error": "Authentication required"}), 401

            if not g.permissions.has_permission(permission_code):
                current_app.logger.warning(
                    "Permission denied: role=%s path=%s missing=%s", g.role, request.path, permission_code
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def translate_service_errors(f):
    """
    Map the exceptions shared by every service to JSON responses:
    - ValidationError -> 400 with per-field messages
    - PermissionDeniedError -> 403
    - DocumentNotFoundError -> 404 (document vanished between read and write)
    - StoreError -> 503 (transient; the client may retry)

    Route-specific exceptions (not-found, conflicts) are handled in the route.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except ValidationError as e:
            return jsonify({"error": "Validation failed", "fields": e.errors}), 400
        except PermissionDeniedError as e:
            return jsonify({
                "error": "Permission denied",
                "required_permission": e.capability,
                "message": str(e),
            }), 403
        except DocumentNotFoundError as e:
            return jsonify({"error": str(e)}), 404
        except StoreError:
            current_app.logger.exception("Store failure on %s %s", request.method, request.path)
            return jsonify({"error": "Store temporarily unavailable"}), 503

    return decorated_function
