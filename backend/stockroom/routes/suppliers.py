# Overview: Flask API routes for supplier operations; parses input and returns JSON responses.

"""
Supplier Routes

SECURITY: All routes require a principal (X-User-Role).
- Create/update require canManageSuppliers
- Delete requires canDeleteItems
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_principal, translate_service_errors
from ..services import supplier_service
from ..services.runtime import inventory
from ..services.supplier_service import SupplierNotFoundError


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_principal
@translate_service_errors
def list_suppliers_route():
    """
    Query parameters:
    - active_only: only suppliers with status "active" (default: false)

    Each item carries productsCount and lastOrder.
    """
    active_only = request.args.get("active_only", "false").lower() == "true"
    items = supplier_service.list_suppliers_with_stats(active_only=active_only)
    return jsonify({"items": items, "count": len(items)})


@suppliers_bp.post("")
@require_principal
@translate_service_errors
def create_supplier_route():
    data = request.get_json(silent=True) or {}
    supplier = supplier_service.create_supplier(data=data, permissions=g.permissions)
    return jsonify(supplier.to_dict()), 201


@suppliers_bp.get("/<supplier_id>")
@require_principal
@translate_service_errors
def get_supplier_route(supplier_id: str):
    try:
        supplier = supplier_service.get_supplier(supplier_id)
    except SupplierNotFoundError:
        return jsonify({"error": "Supplier not found"}), 404
    return jsonify({**supplier.to_dict(), **supplier_service.supplier_stats(inventory.view(), supplier)})


@suppliers_bp.put("/<supplier_id>")
@require_principal
@translate_service_errors
def update_supplier_route(supplier_id: str):
    data = request.get_json(silent=True) or {}
    try:
        supplier = supplier_service.update_supplier(
            supplier_id=supplier_id,
            patch=data,
            permissions=g.permissions,
        )
    except SupplierNotFoundError:
        return jsonify({"error": "Supplier not found"}), 404
    return jsonify(supplier.to_dict())


@suppliers_bp.delete("/<supplier_id>")
@require_principal
@translate_service_errors
def delete_supplier_route(supplier_id: str):
    try:
        orphaned = supplier_service.delete_supplier(supplier_id=supplier_id, permissions=g.permissions)
    except SupplierNotFoundError:
        return jsonify({"error": "Supplier not found"}), 404
    return jsonify({"ok": True, "orphaned_products": orphaned})
