# Overview: Flask API routes for order operations; parses input and returns JSON responses.

"""
Order Routes

SECURITY: All routes require a principal (X-User-Role).
- Create/update/status require canManageOrders
- Delete requires canDeleteItems

Setting status to "completed" deducts stock exactly once per order; the
response carries the reconciliation outcome.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_principal, translate_service_errors
from ..services import order_service
from ..services.order_service import OrderNotFoundError
from ..validation import ConflictError


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
@require_principal
@translate_service_errors
def list_orders_route():
    """Query parameters: status (optional)."""
    orders = order_service.list_orders(status=request.args.get("status"))
    return jsonify({"items": [o.to_dict() for o in orders], "count": len(orders)})


@orders_bp.post("")
@require_principal
@translate_service_errors
def create_order_route():
    """
    Request body:
    {
        "customer": {"name": ..., "email": ..., "phone": ..., "address": ...},
        "items": [{"productId": "...", "quantity": 2}],
        "notes": "..."
    }

    Flat customerName/customerEmail/customerPhone/customerAddress keys are
    accepted too. Totals are computed server-side.
    """
    data = request.get_json(silent=True) or {}
    order = order_service.create_order(data=data, permissions=g.permissions)
    return jsonify(order.to_dict()), 201


@orders_bp.get("/<order_id>")
@require_principal
@translate_service_errors
def get_order_route(order_id: str):
    try:
        order = order_service.get_order(order_id)
    except OrderNotFoundError:
        return jsonify({"error": "Order not found"}), 404
    return jsonify(order.to_dict())


@orders_bp.put("/<order_id>")
@require_principal
@translate_service_errors
def update_order_route(order_id: str):
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.update_order(order_id=order_id, patch=data, permissions=g.permissions)
    except OrderNotFoundError:
        return jsonify({"error": "Order not found"}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify(order.to_dict())


@orders_bp.post("/<order_id>/status")
@require_principal
@translate_service_errors
def update_order_status_route(order_id: str):
    """Request body: {"status": "completed"}"""
    data = request.get_json(silent=True) or {}
    try:
        result = order_service.update_order_status(
            order_id=order_id,
            status=data.get("status"),
            permissions=g.permissions,
        )
    except OrderNotFoundError:
        return jsonify({"error": "Order not found"}), 404
    return jsonify(result.to_dict())


@orders_bp.delete("/<order_id>")
@require_principal
@translate_service_errors
def delete_order_route(order_id: str):
    try:
        order_service.delete_order(order_id=order_id, permissions=g.permissions)
    except OrderNotFoundError:
        return jsonify({"error": "Order not found"}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify({"ok": True})
