# Overview: In-memory projection of the store's change feeds; publishes immutable InventoryView snapshots.

"""
Change-Propagation Layer

WHY: Every screen, validator and report needs a consistent picture of
categories, products, suppliers and orders without re-reading the store on
each call. The projection subscribes to the four collection feeds, applies
each ChangeBatch under a lock, and republishes an immutable snapshot.

DESIGN:
- The projection is the ONLY mutator of cached state. Everyone else reads
  InventoryView snapshots, which never change after publication.
- A resync batch REPLACES the collection (feed reconnect / first delivery).
- Incremental batches apply added / modified / removed per document id. A
  change whose revision is not newer than the cached one is stale and dropped;
  removals leave their revision behind so a late stale write cannot revive
  the document.
- Default categories are seeded once, on the first resync of an empty
  categories collection. Seeding writes go through the store, so they come
  back through the feed like any other write.
- A consumer that raises is logged; delivery to the others continues.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping

from flask import current_app

from ..models import Category, Order, Product, Supplier, UNKNOWN_SUPPLIER
from ..time_utils import now_iso
from .document_store import (
    CATEGORIES,
    COLLECTIONS,
    ORDERS,
    PRODUCTS,
    SUPPLIERS,
    ChangeBatch,
    EntityStore,
)


DEFAULT_CATEGORY_NAMES = (
    "Electronics",
    "Kitchen",
    "Office",
    "Clothing",
    "Books",
    "Sports",
    "Health",
    "Home & Garden",
    "Automotive",
    "Other",
)

CATEGORY_PALETTE = (
    "#007bff", "#28a745", "#dc3545", "#ffc107", "#17a2b8",
    "#6f42c1", "#e83e8c", "#fd7e14", "#20c997", "#6c757d",
)

_DECODERS = {
    CATEGORIES: Category.from_document,
    PRODUCTS: Product.from_document,
    SUPPLIERS: Supplier.from_document,
    ORDERS: Order.from_document,
}


def default_category_records(timestamp: str | None = None) -> list[dict]:
    """Documents for the default category set, colours cycled from the palette."""
    timestamp = timestamp or now_iso()
    return [
        {
            "name": name,
            "description": f"{name} products",
            "color": CATEGORY_PALETTE[i % len(CATEGORY_PALETTE)],
            "createdAt": timestamp,
            "updatedAt": timestamp,
        }
        for i, name in enumerate(DEFAULT_CATEGORY_NAMES)
    ]


@dataclass(frozen=True)
class InventoryView:
    """Immutable snapshot of the projection at one point in the feed."""
    categories: Mapping[str, Category]
    products: Mapping[str, Product]
    suppliers: Mapping[str, Supplier]
    orders: Mapping[str, Order]
    version: int = 0

    @classmethod
    def empty(cls) -> "InventoryView":
        return cls(
            categories=MappingProxyType({}),
            products=MappingProxyType({}),
            suppliers=MappingProxyType({}),
            orders=MappingProxyType({}),
        )

    # -- lookups by id --

    def get_category(self, category_id: str) -> Category | None:
        return self.categories.get(category_id)

    def get_product(self, product_id: str | None) -> Product | None:
        if not product_id:
            return None
        return self.products.get(product_id)

    def get_supplier(self, supplier_id: str | None) -> Supplier | None:
        if not supplier_id:
            return None
        return self.suppliers.get(supplier_id)

    def get_order(self, order_id: str) -> Order | None:
        return self.orders.get(order_id)

    # -- sorted listings --

    def category_list(self) -> list[Category]:
        return sorted(self.categories.values(), key=lambda c: c.name.lower())

    def product_list(self) -> list[Product]:
        return sorted(self.products.values(), key=lambda p: p.name.lower())

    def supplier_list(self) -> list[Supplier]:
        return sorted(self.suppliers.values(), key=lambda s: s.name.lower())

    def order_list(self) -> list[Order]:
        """Newest first."""
        return sorted(self.orders.values(), key=lambda o: o.created_at or "", reverse=True)

    # -- joins --

    def category_by_name(
        self,
        name: str,
        *,
        case_insensitive: bool = False,
        exclude_id: str | None = None,
    ) -> Category | None:
        needle = (name or "").strip()
        if case_insensitive:
            needle = needle.lower()
        for category in self.categories.values():
            if category.id == exclude_id:
                continue
            candidate = category.name.lower() if case_insensitive else category.name
            if candidate == needle:
                return category
        return None

    def products_in_category(self, category_name: str) -> list[Product]:
        return [p for p in self.products.values() if p.category == category_name]

    def products_for_supplier(self, supplier_id: str) -> list[Product]:
        return [p for p in self.products.values() if p.supplier == supplier_id]

    def supplier_name(self, supplier_id: str | None) -> str:
        supplier = self.get_supplier(supplier_id)
        return supplier.name if supplier is not None else UNKNOWN_SUPPLIER

    def products_with_sku(self, sku: str, *, exclude_id: str | None = None) -> list[Product]:
        return [p for p in self.products.values() if p.sku == sku and p.id != exclude_id]


ViewConsumer = Callable[[InventoryView], None]


class Projection:
    """
    Subscribes to every collection feed and keeps entities keyed by id.

    Usage:
        projection = Projection(store)
        projection.connect()
        view = projection.snapshot()
    """

    def __init__(self, store: EntityStore, *, seed_defaults: bool = True):
        self.store = store
        self.seed_defaults = seed_defaults
        self._lock = threading.RLock()
        # Guards feed subscriptions only. Never taken inside _lock: the store
        # delivers batches (which take _lock) while holding its own lock.
        self._subscription_lock = threading.RLock()
        self._entities: dict[str, dict[str, object]] = {c: {} for c in COLLECTIONS}
        self._revisions: dict[str, dict[str, int]] = {c: {} for c in COLLECTIONS}
        self._unsubscribers: dict[str, Callable[[], None]] = {}
        self._consumers: list[ViewConsumer] = []
        self._view = InventoryView.empty()
        self._version = 0
        self._seeded = False
        self._resynced: set[str] = set()

    # -- lifecycle --

    @property
    def connected(self) -> bool:
        return bool(self._unsubscribers)

    def connect(self) -> None:
        """Subscribe to every collection not yet subscribed (idempotent)."""
        with self._subscription_lock:
            for collection in COLLECTIONS:
                if collection not in self._unsubscribers:
                    self._unsubscribers[collection] = self.store.subscribe(collection, self.apply)

    def disconnect(self) -> None:
        with self._subscription_lock:
            for unsubscribe in self._unsubscribers.values():
                unsubscribe()
            self._unsubscribers.clear()

    def reconnect(self, collection: str | None = None) -> None:
        """
        Drop and re-establish the feed subscription(s). The store delivers a
        full resync on subscribe, which replaces the projected collection.
        """
        collections = (collection,) if collection else COLLECTIONS
        with self._subscription_lock:
            for name in collections:
                if name not in COLLECTIONS:
                    raise ValueError(f"Unknown collection: {name}")
                unsubscribe = self._unsubscribers.pop(name, None)
                if unsubscribe is not None:
                    unsubscribe()
                self._unsubscribers[name] = self.store.subscribe(name, self.apply)

    # -- consumers --

    def add_consumer(self, consumer: ViewConsumer) -> Callable[[], None]:
        with self._lock:
            self._consumers.append(consumer)

        def remove() -> None:
            with self._lock:
                if consumer in self._consumers:
                    self._consumers.remove(consumer)

        return remove

    def snapshot(self) -> InventoryView:
        with self._lock:
            return self._view

    # -- feed handling --

    def apply(self, batch: ChangeBatch) -> None:
        """Apply one ChangeBatch and publish the resulting snapshot."""
        decode = _DECODERS.get(batch.collection)
        if decode is None:
            current_app.logger.warning("Ignoring change batch for unknown collection %s", batch.collection)
            return

        with self._lock:
            entities = self._entities[batch.collection]
            revisions = self._revisions[batch.collection]
            if batch.resync:
                entities.clear()
                revisions.clear()
                revisions.update(batch.revisions)
                for doc_id, data in batch.documents:
                    entities[doc_id] = decode(doc_id, data)
            for change in batch.changes:
                if change.revision:
                    if change.revision <= revisions.get(change.doc_id, 0):
                        current_app.logger.debug(
                            "Dropping stale %s change for %s/%s (revision %d)",
                            change.kind, batch.collection, change.doc_id, change.revision,
                        )
                        continue
                    revisions[change.doc_id] = change.revision
                if change.kind == "removed":
                    entities.pop(change.doc_id, None)
                else:
                    entities[change.doc_id] = decode(change.doc_id, change.data)

            self._version += 1
            self._view = self._build_view()
            view = self._view
            consumers = list(self._consumers)

            first_resync = batch.resync and batch.collection not in self._resynced
            if batch.resync:
                self._resynced.add(batch.collection)

        if first_resync and batch.collection == CATEGORIES:
            self._maybe_seed_categories()

        for consumer in consumers:
            try:
                consumer(view)
            except Exception:
                current_app.logger.exception("Inventory view consumer %r failed", consumer)

    def _build_view(self) -> InventoryView:
        return InventoryView(
            categories=MappingProxyType(dict(self._entities[CATEGORIES])),
            products=MappingProxyType(dict(self._entities[PRODUCTS])),
            suppliers=MappingProxyType(dict(self._entities[SUPPLIERS])),
            orders=MappingProxyType(dict(self._entities[ORDERS])),
            version=self._version,
        )

    def _maybe_seed_categories(self) -> None:
        with self._lock:
            if not self.seed_defaults or self._seeded or self._entities[CATEGORIES]:
                return
            self._seeded = True

        records = default_category_records()
        for record in records:
            self.store.create(CATEGORIES, record)
        current_app.logger.info("Seeded %d default categories", len(records))
