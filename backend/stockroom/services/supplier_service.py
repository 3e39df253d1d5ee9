# Overview: Service-layer operations for suppliers; CRUD plus per-supplier product/order statistics.

"""
Supplier Service

DESIGN:
- Products reference suppliers by id (optional).
- Deleting a supplier is NOT blocked by referencing products; those products
  display "Unknown Supplier" until reassigned.
- Statistics are derived from the projection, never stored.
"""

from __future__ import annotations

from flask import current_app

from ..models import Supplier
from ..time_utils import now_iso
from ..validation import validate_supplier
from .document_store import SUPPLIERS
from .permission_service import PermissionProvider, require_capability
from .runtime import inventory


class SupplierNotFoundError(Exception):
    """Raised when a supplier is not found."""
    pass


def _load_supplier(supplier_id: str) -> Supplier:
    data = inventory.store.get(SUPPLIERS, supplier_id)
    if data is None:
        raise SupplierNotFoundError(f"Supplier {supplier_id} not found")
    return Supplier.from_document(supplier_id, data)


def list_suppliers(*, active_only: bool = False) -> list[Supplier]:
    suppliers = inventory.view().supplier_list()
    if active_only:
        return [s for s in suppliers if s.is_active]
    return suppliers


def get_supplier(supplier_id: str) -> Supplier:
    supplier = inventory.view().get_supplier(supplier_id)
    if supplier is None:
        return _load_supplier(supplier_id)
    return supplier


def supplier_stats(view, supplier: Supplier) -> dict:
    """
    productsCount: products referencing the supplier.
    lastOrder: createdAt of the newest order containing any of those products.
    """
    product_ids = {p.id for p in view.products_for_supplier(supplier.id)}
    last_order = None
    for order in view.order_list():
        if any(item.product_id in product_ids for item in order.items):
            last_order = order.created_at
            break
    return {"productsCount": len(product_ids), "lastOrder": last_order}


def list_suppliers_with_stats(*, active_only: bool = False) -> list[dict]:
    view = inventory.view()
    return [
        {**s.to_dict(), **supplier_stats(view, s)}
        for s in list_suppliers(active_only=active_only)
    ]


def create_supplier(*, data: dict, permissions: PermissionProvider | None) -> Supplier:
    """
    Raises:
        PermissionDeniedError: without canManageSuppliers
        ValidationError: field violations
    """
    require_capability(permissions, "canManageSuppliers")
    record = validate_supplier(data)

    timestamp = now_iso()
    record["createdAt"] = timestamp
    record["updatedAt"] = timestamp

    doc_id = inventory.store.create(SUPPLIERS, record)
    current_app.logger.info("Created supplier %s (%s)", record["name"], doc_id)
    return Supplier.from_document(doc_id, record)


def update_supplier(
    *,
    supplier_id: str,
    patch: dict,
    permissions: PermissionProvider | None,
) -> Supplier:
    require_capability(permissions, "canManageSuppliers")
    existing = _load_supplier(supplier_id)
    record = validate_supplier(patch, existing=existing)

    changes = {k: record[k] for k in patch if k in record}
    changes["updatedAt"] = now_iso()

    inventory.store.update(SUPPLIERS, supplier_id, changes)
    return Supplier.from_document(supplier_id, {**existing.to_document(), **changes})


def delete_supplier(*, supplier_id: str, permissions: PermissionProvider | None) -> int:
    """
    Delete a supplier. Returns the number of products left referencing it.
    """
    require_capability(permissions, "canDeleteItems")
    supplier = _load_supplier(supplier_id)
    orphaned = len(inventory.view().products_for_supplier(supplier_id))

    inventory.store.delete(SUPPLIERS, supplier_id)
    if orphaned:
        current_app.logger.warning(
            "Deleted supplier %s; %d product(s) still reference it", supplier.name, orphaned,
        )
    return orphaned
