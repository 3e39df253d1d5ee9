# Overview: Service-layer operations for products; validation, writes and stock level changes.

"""
Products Service

DESIGN:
- Every write is validated against the current projection first.
- Product.category stores the category NAME (see category_service for the
  rename cascade).
- SKU uniqueness is advisory: a duplicate is logged, not rejected.
- Stock is set as an absolute level and can never be negative.
"""
from __future__ import annotations

import time

from flask import current_app

from ..models import Product
from ..time_utils import now_iso
from ..validation import validate_product, validate_stock_level
from .document_store import PRODUCTS
from .permission_service import PermissionProvider, require_capability
from .runtime import inventory
from .stock_status import filter_products


class ProductNotFoundError(Exception):
    """Raised when a product is not found."""
    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


def _default_threshold() -> int:
    return current_app.config.get("DEFAULT_LOW_STOCK_THRESHOLD", 10)


def _load_product(product_id: str) -> Product:
    data = inventory.store.get(PRODUCTS, product_id)
    if data is None:
        raise ProductNotFoundError(product_id)
    return Product.from_document(product_id, data)


def _warn_duplicate_sku(view, sku: str, exclude_id: str | None = None) -> None:
    duplicates = view.products_with_sku(sku, exclude_id=exclude_id)
    if duplicates:
        current_app.logger.warning(
            "SKU %s is already used by product(s) %s",
            sku, ", ".join(p.id for p in duplicates),
        )


def list_products(**filters) -> list[Product]:
    """Projected products, optionally filtered (see stock_status.filter_products)."""
    return filter_products(inventory.view(), **filters)


def get_product(product_id: str) -> Product:
    product = inventory.view().get_product(product_id)
    if product is None:
        return _load_product(product_id)
    return product


def create_product(*, data: dict, permissions: PermissionProvider | None) -> Product:
    """
    Create a product.

    Raises:
        PermissionDeniedError: without canManageInventory
        ValidationError: field or reference violations
    """
    require_capability(permissions, "canManageInventory")
    view = inventory.view()
    record = validate_product(data, view, default_threshold=_default_threshold())
    _warn_duplicate_sku(view, record["sku"])

    timestamp = now_iso()
    record["createdAt"] = timestamp
    record["updatedAt"] = timestamp

    doc_id = inventory.store.create(PRODUCTS, record)
    return Product.from_document(doc_id, record)


def update_product(
    *,
    product_id: str,
    patch: dict,
    permissions: PermissionProvider | None,
) -> Product:
    """
    Patch a product. Only the keys present in `patch` are written, but the
    merged record is validated as a whole.
    """
    require_capability(permissions, "canManageInventory")
    existing = _load_product(product_id)
    view = inventory.view()
    record = validate_product(patch, view, existing=existing, default_threshold=_default_threshold())

    changes = {k: record[k] for k in patch if k in record}
    if "sku" in changes and changes["sku"] != existing.sku:
        _warn_duplicate_sku(view, changes["sku"], exclude_id=product_id)
    changes["updatedAt"] = now_iso()

    inventory.store.update(PRODUCTS, product_id, changes)
    return Product.from_document(product_id, {**existing.to_document(), **changes})


def update_product_stock(
    *,
    product_id: str,
    stock,
    permissions: PermissionProvider | None,
) -> Product:
    """Set an absolute stock level (restock / manual adjustment)."""
    require_capability(permissions, "canManageInventory")
    new_stock = validate_stock_level(stock)
    existing = _load_product(product_id)

    changes = {"stock": new_stock, "updatedAt": now_iso()}
    inventory.store.update(PRODUCTS, product_id, changes)
    current_app.logger.info("Stock for %s set %d -> %d", existing.sku or product_id, existing.stock, new_stock)
    return Product.from_document(product_id, {**existing.to_document(), **changes})


def delete_product(*, product_id: str, permissions: PermissionProvider | None) -> None:
    """
    Delete a product. Orders keep their item snapshots; a later reconciliation
    of such an order skips the missing product.
    """
    require_capability(permissions, "canDeleteItems")
    _load_product(product_id)
    inventory.store.delete(PRODUCTS, product_id)


def generate_sku(category: str, name: str, *, timestamp_ms: int | None = None) -> str:
    """
    CC-NNN-TTTT: first two letters of the category, first three of the name
    (upper-cased), last four digits of the millisecond clock.
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    category_code = (category or "").strip()[:2].upper()
    name_code = (name or "").strip()[:3].upper()
    return f"{category_code}-{name_code}-{str(timestamp_ms)[-4:]}"
