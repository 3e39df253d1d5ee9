# Overview: Flask API routes for category operations; parses input and returns JSON responses.

"""
Category Routes

SECURITY: All routes require a principal (X-User-Role).
- Create/update/cascade require canManageInventory (enforced by the service)
- Delete requires canDeleteItems
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_principal, translate_service_errors
from ..services import category_service
from ..services.category_service import CascadeIncompleteError, CategoryNotFoundError
from ..validation import DuplicateNameError, ReferentialIntegrityError


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_principal
@translate_service_errors
def list_categories_route():
    categories = category_service.list_categories()
    return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)})


@categories_bp.post("")
@require_principal
@translate_service_errors
def create_category_route():
    """
    Request body:
    {
        "name": "Garden",            // required, 2-50 chars, unique (case-insensitive)
        "description": "...",        // optional, <= 200 chars
        "color": "#28a745"           // optional, default #007bff
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        category = category_service.create_category(data=data, permissions=g.permissions)
    except DuplicateNameError as e:
        return jsonify({"error": str(e), "fields": {"name": str(e)}}), 409
    return jsonify(category.to_dict()), 201


@categories_bp.get("/<category_id>")
@require_principal
@translate_service_errors
def get_category_route(category_id: str):
    try:
        category = category_service.get_category(category_id)
    except CategoryNotFoundError:
        return jsonify({"error": "Category not found"}), 404
    return jsonify(category.to_dict())


@categories_bp.put("/<category_id>")
@require_principal
@translate_service_errors
def update_category_route(category_id: str):
    """
    Update a category. A name change cascades to every product carrying the
    old name; the response includes the cascade outcome.

    409 with "cascade" when some products could not be rewritten: the
    category is renamed, and POST /api/categories/cascade finishes the job.
    """
    data = request.get_json(silent=True) or {}
    try:
        result = category_service.update_category(
            category_id=category_id,
            patch=data,
            permissions=g.permissions,
        )
    except CategoryNotFoundError:
        return jsonify({"error": "Category not found"}), 404
    except DuplicateNameError as e:
        return jsonify({"error": str(e), "fields": {"name": str(e)}}), 409
    except CascadeIncompleteError as e:
        return jsonify({"error": str(e), "cascade": e.result.to_dict()}), 409
    return jsonify(result.to_dict())


@categories_bp.delete("/<category_id>")
@require_principal
@translate_service_errors
def delete_category_route(category_id: str):
    try:
        category_service.delete_category(category_id=category_id, permissions=g.permissions)
    except CategoryNotFoundError:
        return jsonify({"error": "Category not found"}), 404
    except ReferentialIntegrityError as e:
        return jsonify({
            "error": str(e),
            "product_count": e.details.get("product_count", 0),
        }), 409
    return jsonify({"ok": True})


@categories_bp.post("/cascade")
@require_principal
@translate_service_errors
def repair_cascade_route():
    """
    Re-run a rename cascade (idempotent).

    Request body: {"oldName": "Electronics", "newName": "Gadgets"}
    """
    data = request.get_json(silent=True) or {}
    try:
        result = category_service.cascade_category_rename(
            old_name=data.get("oldName"),
            new_name=data.get("newName"),
            permissions=g.permissions,
        )
    except CascadeIncompleteError as e:
        return jsonify({"error": str(e), "cascade": e.result.to_dict()}), 409
    return jsonify(result.to_dict())
