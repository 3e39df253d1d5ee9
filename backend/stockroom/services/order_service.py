# Overview: Order creation, edits, status transitions and deletion; completion triggers stock reconciliation.

"""
Order Service

STATE MACHINE:
    pending -> confirmed -> shipped -> delivered
    completed / cancelled reachable from any state

Transitions are caller-driven: any known status value is accepted. The only
side effect attached to a transition is stock reconciliation, triggered when
the NEW status is exactly "completed" (see reconciliation_service).

POLICY:
- Totals are recomputed server-side on create and whenever items change.
- Item name/price are snapshots taken at creation.
- Items are frozen once stock has been deducted.
- Completed and shipped orders cannot be deleted.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app

from ..models import DELETE_BLOCKED_STATUSES, Order, OrderStatus
from ..time_utils import now_iso, today_iso
from ..validation import (
    ConflictError,
    validate_order,
    validate_order_patch,
    validate_order_status,
)
from .document_store import ORDERS
from .permission_service import PermissionProvider, require_capability
from .reconciliation_service import (
    OrderNotFoundError,
    ReconciliationResult,
    load_order,
    reconcile_order_stock,
)
from .runtime import inventory


class OrderDeletionBlockedError(ConflictError):
    """Raised when deleting an order in a delete-blocked status."""


class OrderLockedError(ConflictError):
    """Raised when editing items of an order whose stock was already deducted."""


@dataclass
class StatusChangeResult:
    order: Order
    previous_status: str
    reconciliation: ReconciliationResult | None = None

    def to_dict(self) -> dict:
        payload = {"order": self.order.to_dict(), "previousStatus": self.previous_status}
        if self.reconciliation is not None:
            payload["reconciliation"] = self.reconciliation.to_dict()
        return payload


def _pricing() -> tuple[Decimal, Decimal]:
    return (
        Decimal(str(current_app.config.get("ORDER_TAX_RATE", "0.08"))),
        Decimal(str(current_app.config.get("ORDER_SHIPPING_FLAT", "10.00"))),
    )


def list_orders(*, status: str | None = None) -> list[Order]:
    """Projected orders, newest first, optionally filtered by status."""
    orders = inventory.view().order_list()
    if status:
        status = validate_order_status(status)
        orders = [o for o in orders if o.status == status]
    return orders


def get_order(order_id: str) -> Order:
    order = inventory.view().get_order(order_id)
    if order is None:
        return load_order(order_id)
    return order


def create_order(*, data: dict, permissions: PermissionProvider | None) -> Order:
    """
    Create a pending order.

    Raises:
        PermissionDeniedError: without canManageOrders
        ValidationError: customer/items problems (unknown products included)
    """
    require_capability(permissions, "canManageOrders")
    tax_rate, shipping = _pricing()
    record = validate_order(data, inventory.view(), tax_rate=tax_rate, shipping=shipping)

    timestamp = now_iso()
    record.update({
        "status": OrderStatus.PENDING,
        "date": today_iso(),
        "createdAt": timestamp,
        "updatedAt": timestamp,
        "stockDeducted": False,
        "deductedLines": [],
        "stockDeductedAt": None,
    })

    doc_id = inventory.store.create(ORDERS, record)
    current_app.logger.info("Created order %s (%d line(s), total %.2f)", doc_id, len(record["items"]), record["total"])
    return Order.from_document(doc_id, record)


def update_order(*, order_id: str, patch: dict, permissions: PermissionProvider | None) -> Order:
    """
    Edit customer details, notes or items. Status changes must go through
    update_order_status so the completion side effect cannot be bypassed.
    """
    require_capability(permissions, "canManageOrders")
    if isinstance(patch, dict) and "status" in patch:
        raise ConflictError("Use the status endpoint to change order status", details={"field": "status"})

    existing = load_order(order_id)
    tax_rate, shipping = _pricing()
    changes = validate_order_patch(
        patch, inventory.view(), existing=existing, tax_rate=tax_rate, shipping=shipping,
    )

    if "items" in changes and (existing.stock_deducted or existing.deducted_lines):
        raise OrderLockedError(
            "Order items cannot change after stock has been deducted",
            details={"order_id": order_id},
        )

    changes["updatedAt"] = now_iso()
    inventory.store.update(ORDERS, order_id, changes)
    return Order.from_document(order_id, {**existing.to_document(), **changes})


def update_order_status(
    *,
    order_id: str,
    status,
    permissions: PermissionProvider | None,
) -> StatusChangeResult:
    """
    Write the new status, then reconcile stock if it is "completed".

    The status write and the reconciliation are separate store writes. If
    reconciliation fails with a store error the status stays written; calling
    again with "completed" resumes the deduction without repeating it.
    """
    require_capability(permissions, "canManageOrders")
    new_status = validate_order_status(status)
    existing = load_order(order_id)

    changes = {"status": new_status, "updatedAt": now_iso()}
    inventory.store.update(ORDERS, order_id, changes)
    current_app.logger.info("Order %s status %s -> %s", order_id, existing.status, new_status)

    reconciliation = None
    if new_status == OrderStatus.COMPLETED:
        reconciliation = reconcile_order_stock(order_id=order_id, permissions=permissions)

    order = load_order(order_id)
    return StatusChangeResult(order=order, previous_status=existing.status, reconciliation=reconciliation)


def delete_order(*, order_id: str, permissions: PermissionProvider | None) -> None:
    """
    Raises:
        PermissionDeniedError: without canDeleteItems
        OrderNotFoundError
        OrderDeletionBlockedError: order is completed or shipped
    """
    require_capability(permissions, "canDeleteItems")
    order = load_order(order_id)
    if order.status in DELETE_BLOCKED_STATUSES:
        raise OrderDeletionBlockedError(
            f"Cannot delete an order that is {order.status}",
            details={"order_id": order_id, "status": order.status},
        )
    inventory.store.delete(ORDERS, order_id)
