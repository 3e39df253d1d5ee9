"""
Order lifecycle and stock reconciliation tests.

Verifies:
- Completing an order deducts each line exactly once
- Stock is clamped at zero and missing products are skipped
- A failed reconciliation resumes without double deduction
- Only "completed" triggers deduction
- Delete/edit guards on completed and shipped orders
"""

import pytest

from stockroom.services import order_service
from stockroom.services.document_store import ORDERS, PRODUCTS, StoreWriteError
from stockroom.services.order_service import (
    OrderDeletionBlockedError,
    OrderLockedError,
    OrderNotFoundError,
)
from stockroom.services.permission_service import PermissionDeniedError
from stockroom.services.reconciliation_service import SKIP_PRODUCT_NOT_FOUND, reconcile_order_stock
from stockroom.services.runtime import inventory
from stockroom.validation import ConflictError, ValidationError


def _stock(product_id):
    return inventory.store.get(PRODUCTS, product_id)["stock"]


@pytest.fixture
def stocked(make_category, make_product):
    make_category("Electronics")
    return {
        "p1": make_product(name="Widget", stock=5, price=10),
        "p2": make_product(name="Gizmo", stock=8, price=5),
    }


class TestCreateOrder:

    def test_new_order_is_pending_with_totals(self, stocked, make_order):
        order = make_order([{"productId": stocked["p1"].id, "quantity": 2}, {"productId": stocked["p2"].id, "quantity": 1}])
        assert order.status == "pending"
        assert order.subtotal == 25.0
        assert order.tax == 2.0
        assert order.shipping == 10.0
        assert order.total == 37.0
        assert order.stock_deducted is False
        # Creating an order does not touch stock
        assert _stock(stocked["p1"].id) == 5

    def test_projection_lists_new_order(self, stocked, make_order):
        order = make_order([{"productId": stocked["p1"].id, "quantity": 1}])
        assert [o.id for o in order_service.list_orders(status="pending")] == [order.id]
        assert order_service.list_orders(status="completed") == []

    def test_staff_can_create_but_not_delete(self, stocked, staff):
        order = order_service.create_order(
            data={
                "customerName": "Sam",
                "customerEmail": "sam@example.test",
                "customerPhone": "1",
                "customerAddress": "Here",
                "items": [{"productId": stocked["p1"].id, "quantity": 1}],
            },
            permissions=staff,
        )
        with pytest.raises(PermissionDeniedError):
            order_service.delete_order(order_id=order.id, permissions=staff)


class TestCompletion:

    def test_completion_deducts_once(self, stocked, make_order, admin):
        order = make_order([{"productId": stocked["p1"].id, "quantity": 3}])

        result = order_service.update_order_status(order_id=order.id, status="completed", permissions=admin)
        assert result.previous_status == "pending"
        assert result.order.stock_deducted is True
        assert result.order.stock_deducted_at
        assert [line.new_stock for line in result.reconciliation.applied] == [2]
        assert _stock(stocked["p1"].id) == 2

        again = order_service.update_order_status(order_id=order.id, status="completed", permissions=admin)
        assert again.reconciliation.already_applied is True
        assert _stock(stocked["p1"].id) == 2

    def test_reconcile_directly_is_idempotent(self, stocked, make_order, admin):
        order = make_order([{"productId": stocked["p2"].id, "quantity": 2}])
        reconcile_order_stock(order_id=order.id, permissions=admin)
        reconcile_order_stock(order_id=order.id, permissions=admin)
        assert _stock(stocked["p2"].id) == 6

    def test_stock_clamped_at_zero(self, stocked, make_order, admin):
        order = make_order([{"productId": stocked["p1"].id, "quantity": 9}])
        result = order_service.update_order_status(order_id=order.id, status="completed", permissions=admin)
        line = result.reconciliation.applied[0]
        assert line.clamped
        assert line.new_stock == 0
        assert _stock(stocked["p1"].id) == 0

    def test_missing_product_skipped_other_lines_deduct(self, stocked, make_order, admin):
        from stockroom.services import products_service

        order = make_order([
            {"productId": stocked["p1"].id, "quantity": 1},
            {"productId": stocked["p2"].id, "quantity": 3},
        ])
        products_service.delete_product(product_id=stocked["p1"].id, permissions=admin)

        result = order_service.update_order_status(order_id=order.id, status="completed", permissions=admin)

        assert [(s.index, s.reason) for s in result.reconciliation.skipped] == [(0, SKIP_PRODUCT_NOT_FOUND)]
        assert _stock(stocked["p2"].id) == 5
        assert result.order.stock_deducted is True

    def test_legacy_item_reference_key(self, stocked, admin):
        doc_id = inventory.store.create(ORDERS, {
            "customerName": "Legacy",
            "items": [{"id": stocked["p2"].id, "name": "Gizmo", "price": 5, "quantity": 4}],
            "status": "shipped",
        })
        order_service.update_order_status(order_id=doc_id, status="completed", permissions=admin)
        assert _stock(stocked["p2"].id) == 4

    def test_failure_midway_resumes_without_double_deduction(self, stocked, make_order, admin, monkeypatch):
        order = make_order([
            {"productId": stocked["p1"].id, "quantity": 2},
            {"productId": stocked["p2"].id, "quantity": 3},
        ])
        real_update = inventory.store.update
        failing_id = stocked["p2"].id

        def flaky_update(collection, doc_id, patch):
            if collection == PRODUCTS and doc_id == failing_id:
                raise StoreWriteError("simulated outage")
            return real_update(collection, doc_id, patch)

        monkeypatch.setattr(inventory.store, "update", flaky_update)
        with pytest.raises(StoreWriteError):
            order_service.update_order_status(order_id=order.id, status="completed", permissions=admin)

        stored = inventory.store.get(ORDERS, order.id)
        assert stored["status"] == "completed"
        assert stored["deductedLines"] == [0]
        assert stored["stockDeducted"] is False
        assert _stock(stocked["p1"].id) == 3

        monkeypatch.setattr(inventory.store, "update", real_update)
        result = order_service.update_order_status(order_id=order.id, status="completed", permissions=admin)

        assert [line.index for line in result.reconciliation.applied] == [1]
        assert _stock(stocked["p1"].id) == 3
        assert _stock(stocked["p2"].id) == 5
        assert result.order.stock_deducted is True

    @pytest.mark.parametrize("status", ["confirmed", "shipped", "delivered", "cancelled"])
    def test_other_statuses_do_not_deduct(self, stocked, make_order, admin, status):
        order = make_order([{"productId": stocked["p1"].id, "quantity": 1}])
        result = order_service.update_order_status(order_id=order.id, status=status, permissions=admin)
        assert result.reconciliation is None
        assert result.order.status == status
        assert _stock(stocked["p1"].id) == 5

    def test_reopening_a_completed_order_does_not_rededuct(self, stocked, make_order, admin):
        order = make_order([{"productId": stocked["p1"].id, "quantity": 1}])
        order_service.update_order_status(order_id=order.id, status="completed", permissions=admin)
        order_service.update_order_status(order_id=order.id, status="pending", permissions=admin)
        order_service.update_order_status(order_id=order.id, status="completed", permissions=admin)
        assert _stock(stocked["p1"].id) == 4

    def test_unknown_status_rejected_before_write(self, stocked, make_order, admin):
        from stockroom.validation import ValidationError

        order = make_order([{"productId": stocked["p1"].id, "quantity": 1}])
        with pytest.raises(ValidationError):
            order_service.update_order_status(order_id=order.id, status="archived", permissions=admin)
        assert inventory.store.get(ORDERS, order.id)["status"] == "pending"

    def test_unknown_order(self, db_session, admin):
        with pytest.raises(OrderNotFoundError):
            order_service.update_order_status(order_id="missing", status="completed", permissions=admin)


class TestGuards:

    @pytest.mark.parametrize("status", ["completed", "shipped"])
    def test_delete_blocked(self, stocked, make_order, admin, status):
        order = make_order([{"productId": stocked["p1"].id, "quantity": 1}])
        order_service.update_order_status(order_id=order.id, status=status, permissions=admin)
        with pytest.raises(OrderDeletionBlockedError):
            order_service.delete_order(order_id=order.id, permissions=admin)
        assert inventory.store.get(ORDERS, order.id) is not None

    def test_delete_pending(self, stocked, make_order, admin):
        order = make_order([{"productId": stocked["p1"].id, "quantity": 1}])
        order_service.delete_order(order_id=order.id, permissions=admin)
        assert inventory.view().get_order(order.id) is None

    def test_items_locked_after_deduction(self, stocked, make_order, admin):
        order = make_order([{"productId": stocked["p1"].id, "quantity": 1}])
        order_service.update_order_status(order_id=order.id, status="completed", permissions=admin)
        with pytest.raises(OrderLockedError):
            order_service.update_order(
                order_id=order.id,
                patch={"items": [{"productId": stocked["p1"].id, "quantity": 5}]},
                permissions=admin,
            )

    def test_edit_recomputes_totals(self, stocked, make_order, admin):
        order = make_order([{"productId": stocked["p1"].id, "quantity": 1}])
        updated = order_service.update_order(
            order_id=order.id,
            patch={"items": [{"productId": stocked["p2"].id, "quantity": 2}], "notes": "gift"},
            permissions=admin,
        )
        assert updated.subtotal == 10.0
        assert updated.total == 20.8
        assert updated.notes == "gift"

    def test_single_customer_field_patch(self, stocked, make_order, admin):
        order = make_order([{"productId": stocked["p1"].id, "quantity": 1}])
        updated = order_service.update_order(
            order_id=order.id,
            patch={"customerEmail": "new@example.test"},
            permissions=admin,
        )
        assert updated.customer.email == "new@example.test"
        assert updated.customer.name == "Sam Buyer"

        stored = inventory.store.get(ORDERS, order.id)
        assert stored["customerEmail"] == "new@example.test"
        assert stored["customerAddress"] == "1 Main St"

    def test_partial_nested_customer_patch(self, stocked, make_order, admin):
        order = make_order([{"productId": stocked["p1"].id, "quantity": 1}])
        updated = order_service.update_order(
            order_id=order.id,
            patch={"customer": {"phone": "555-0222"}},
            permissions=admin,
        )
        assert updated.customer.phone == "555-0222"
        assert updated.customer.email == "sam@example.test"

    def test_customer_patch_cannot_blank_a_field(self, stocked, make_order, admin):
        order = make_order([{"productId": stocked["p1"].id, "quantity": 1}])
        with pytest.raises(ValidationError) as exc:
            order_service.update_order(order_id=order.id, patch={"customerName": "  "}, permissions=admin)
        assert set(exc.value.errors) == {"customerName"}

    def test_status_cannot_be_patched(self, stocked, make_order, admin):
        order = make_order([{"productId": stocked["p1"].id, "quantity": 1}])
        with pytest.raises(ConflictError):
            order_service.update_order(order_id=order.id, patch={"status": "completed"}, permissions=admin)
        assert _stock(stocked["p1"].id) == 5
