# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product management routes.

SECURITY: All routes require a principal (X-User-Role).
- Create/update/stock changes require canManageInventory
- Delete requires canDeleteItems
"""
from flask import Blueprint, request, jsonify, g

from ..decorators import require_principal, translate_service_errors
from ..services import products_service
from ..services.products_service import ProductNotFoundError
from ..services.runtime import inventory
from ..services.stock_status import product_status

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _product_payload(product, view) -> dict:
    payload = product.to_dict()
    payload["stockStatus"] = product_status(product)
    payload["supplierName"] = view.supplier_name(product.supplier) if product.supplier else None
    return payload


@products_bp.get("")
@require_principal
@translate_service_errors
def list_products_route():
    """
    List products, optionally filtered.

    Query params:
    - search: matches name, sku or description (case-insensitive)
    - category: category name ("all" = no filter)
    - supplier: supplier id
    - min_price / max_price
    - start_date / end_date / date_field (createdAt | updatedAt)
    - stock_status: in_stock | low_stock | out_of_stock | all
    """
    args = request.args
    try:
        products = products_service.list_products(
            search=args.get("search"),
            category=args.get("category"),
            supplier=args.get("supplier"),
            min_price=args.get("min_price"),
            max_price=args.get("max_price"),
            start_date=args.get("start_date"),
            end_date=args.get("end_date"),
            date_field=args.get("date_field", "createdAt"),
            stock_status=args.get("stock_status"),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    view = inventory.view()
    return jsonify({"items": [_product_payload(p, view) for p in products], "count": len(products)})


@products_bp.get("/generate-sku")
@require_principal
def generate_sku_route():
    """Query params: category, name. Returns {"sku": "EL-LAP-1234"}."""
    category = request.args.get("category", "")
    name = request.args.get("name", "")
    if not category or not name:
        return jsonify({"error": "category and name are required"}), 400
    return jsonify({"sku": products_service.generate_sku(category, name)})


@products_bp.post("")
@require_principal
@translate_service_errors
def create_product_route():
    payload = request.get_json(silent=True) or {}
    product = products_service.create_product(data=payload, permissions=g.permissions)
    return jsonify(_product_payload(product, inventory.view())), 201


@products_bp.get("/<product_id>")
@require_principal
@translate_service_errors
def get_product_route(product_id: str):
    try:
        product = products_service.get_product(product_id)
    except ProductNotFoundError:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(_product_payload(product, inventory.view()))


@products_bp.put("/<product_id>")
@require_principal
@translate_service_errors
def update_product_route(product_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.update_product(
            product_id=product_id,
            patch=payload,
            permissions=g.permissions,
        )
    except ProductNotFoundError:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(_product_payload(product, inventory.view()))


@products_bp.post("/<product_id>/stock")
@require_principal
@translate_service_errors
def update_stock_route(product_id: str):
    """Request body: {"stock": 25} (absolute level, >= 0)."""
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.update_product_stock(
            product_id=product_id,
            stock=payload.get("stock"),
            permissions=g.permissions,
        )
    except ProductNotFoundError:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(_product_payload(product, inventory.view()))


@products_bp.delete("/<product_id>")
@require_principal
@translate_service_errors
def delete_product_route(product_id: str):
    try:
        products_service.delete_product(product_id=product_id, permissions=g.permissions)
    except ProductNotFoundError:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"ok": True})
