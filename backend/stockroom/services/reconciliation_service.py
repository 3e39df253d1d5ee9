# Overview: Exactly-once stock deduction for completed orders, using idempotency markers on the order document.

"""
Stock Reconciler

WHY: The store has no multi-document transactions, so "complete the order and
deduct every line's stock" cannot be atomic. Instead the order document
carries its own progress markers:

    stockDeducted     true once every line has been processed
    deductedLines     indexes of the lines whose deduction has been written
    stockDeductedAt   when the reconciliation finished

A repeated "completed" event sees stockDeducted and does nothing. A retry
after a failure part-way through resumes after the lines already recorded.

POLICY:
- newStock = max(0, stock - quantity): stock never goes negative.
- A line whose product no longer exists is skipped with a warning; the other
  lines still deduct. Nothing is rolled back.
- Stock writes are plain read-modify-write (last write wins). Two orders
  completing at once against the same product can lose one deduction.
- StoreWriteError propagates to the caller, who may simply call again.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..models import Order, OrderItem
from ..models.catalog import as_int
from ..time_utils import now_iso
from .document_store import ORDERS, PRODUCTS, DocumentNotFoundError
from .permission_service import PermissionProvider, require_capability
from .runtime import inventory


class OrderNotFoundError(Exception):
    """Raised when an order is not found."""
    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


SKIP_PRODUCT_NOT_FOUND = "product_not_found"
SKIP_NO_PRODUCT_REFERENCE = "no_product_reference"


@dataclass(frozen=True)
class AppliedLine:
    index: int
    product_id: str
    quantity: int
    previous_stock: int
    new_stock: int

    @property
    def clamped(self) -> bool:
        """True when the requested quantity exceeded the stock on hand."""
        return self.previous_stock - self.quantity < 0

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "productId": self.product_id,
            "quantity": self.quantity,
            "previousStock": self.previous_stock,
            "newStock": self.new_stock,
            "clamped": self.clamped,
        }


@dataclass(frozen=True)
class SkippedLine:
    index: int
    product_id: str | None
    reason: str

    def to_dict(self) -> dict:
        return {"index": self.index, "productId": self.product_id, "reason": self.reason}


@dataclass
class ReconciliationResult:
    order_id: str
    already_applied: bool = False
    applied: list[AppliedLine] = field(default_factory=list)
    skipped: list[SkippedLine] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "orderId": self.order_id,
            "alreadyApplied": self.already_applied,
            "applied": [line.to_dict() for line in self.applied],
            "skipped": [line.to_dict() for line in self.skipped],
        }


def load_order(order_id: str) -> Order:
    """Fresh read of an order from the store (never from the projection)."""
    data = inventory.store.get(ORDERS, order_id)
    if data is None:
        raise OrderNotFoundError(order_id)
    return Order.from_document(order_id, data)


def reconcile_order_stock(*, order_id: str, permissions: PermissionProvider | None) -> ReconciliationResult:
    """
    Deduct each line's quantity from its product's stock, at most once per order.

    Raises:
        PermissionDeniedError: without canManageOrders
        OrderNotFoundError
        StoreWriteError / StoreReadError: transient; safe to call again
    """
    require_capability(permissions, "canManageOrders")
    order = load_order(order_id)
    result = ReconciliationResult(order_id=order_id)

    if order.stock_deducted:
        result.already_applied = True
        current_app.logger.info("Order %s stock already deducted at %s; skipping", order_id, order.stock_deducted_at)
        return result

    done = set(order.deducted_lines)
    for index, item in enumerate(order.items):
        if index in done:
            continue
        line = _deduct_line(index, item)
        if isinstance(line, SkippedLine):
            result.skipped.append(line)
            continue
        result.applied.append(line)
        done.add(index)
        # Record progress per line so a retry resumes here
        inventory.store.update(ORDERS, order_id, {"deductedLines": sorted(done)})

    inventory.store.update(ORDERS, order_id, {
        "stockDeducted": True,
        "stockDeductedAt": now_iso(),
        "deductedLines": sorted(done),
    })
    current_app.logger.info(
        "Reconciled order %s: %d line(s) deducted, %d skipped",
        order_id, len(result.applied), len(result.skipped),
    )
    return result


def _deduct_line(index: int, item: OrderItem) -> AppliedLine | SkippedLine:
    if not item.product_id:
        current_app.logger.warning("Order line %d has no product reference; skipped", index)
        return SkippedLine(index=index, product_id=None, reason=SKIP_NO_PRODUCT_REFERENCE)

    data = inventory.store.get(PRODUCTS, item.product_id)
    if data is None:
        current_app.logger.warning("Product %s not found; order line %d skipped", item.product_id, index)
        return SkippedLine(index=index, product_id=item.product_id, reason=SKIP_PRODUCT_NOT_FOUND)

    previous = as_int(data.get("stock"))
    new_stock = max(0, previous - item.quantity)
    try:
        inventory.store.update(PRODUCTS, item.product_id, {"stock": new_stock, "updatedAt": now_iso()})
    except DocumentNotFoundError:
        current_app.logger.warning("Product %s deleted during reconciliation; order line %d skipped", item.product_id, index)
        return SkippedLine(index=index, product_id=item.product_id, reason=SKIP_PRODUCT_NOT_FOUND)

    return AppliedLine(
        index=index,
        product_id=item.product_id,
        quantity=item.quantity,
        previous_stock=previous,
        new_stock=new_stock,
    )
