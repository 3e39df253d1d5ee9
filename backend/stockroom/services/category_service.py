# Overview: Category create/update/delete with the rename cascade onto products.

"""
Category Service

WHY: Products reference their category by NAME. Renaming a category is
therefore a multi-document change: the category record plus every product
carrying the old name. The store has no multi-document transactions, so the
cascade is a sequence of single-document writes.

DESIGN:
- The category record is written first, then products are rewritten one at a
  time. There is no rollback.
- cascade_category_rename() is idempotent: it rewrites whatever still carries
  the old name, so re-running it after a partial failure finishes the job.
- Per-product write failures do not stop the loop. They are collected and
  raised together as CascadeIncompleteError once the loop is done.
- Deletion is refused while any product still references the category name.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..models import Category, Product
from ..time_utils import now_iso
from ..validation import ReferentialIntegrityError, ValidationError, validate_category
from .document_store import CATEGORIES, PRODUCTS, DocumentNotFoundError, StoreError
from .permission_service import PermissionProvider, require_capability
from .projection import default_category_records
from .runtime import inventory


class CategoryNotFoundError(Exception):
    """Raised when a category is not found."""
    pass


@dataclass
class CascadeResult:
    old_name: str
    new_name: str
    updated: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {
            "oldName": self.old_name,
            "newName": self.new_name,
            "updated": list(self.updated),
            "failed": list(self.failed),
            "complete": self.complete,
        }


class CascadeIncompleteError(Exception):
    """
    Raised after a rename cascade in which some product writes failed.
    The category itself is already renamed; re-run the cascade to finish.
    """
    def __init__(self, result: CascadeResult):
        super().__init__(
            f'Rename "{result.old_name}" -> "{result.new_name}" left '
            f"{len(result.failed)} product(s) unchanged"
        )
        self.result = result


@dataclass
class CategoryUpdateResult:
    category: Category
    cascade: CascadeResult | None = None

    def to_dict(self) -> dict:
        payload = {"category": self.category.to_dict()}
        if self.cascade is not None:
            payload["cascade"] = self.cascade.to_dict()
        return payload


def _load_category(category_id: str) -> Category:
    data = inventory.store.get(CATEGORIES, category_id)
    if data is None:
        raise CategoryNotFoundError(f"Category {category_id} not found")
    return Category.from_document(category_id, data)


def _products_named(category_name: str) -> list[Product]:
    """Fresh read from the store, not the projection: the cascade must see every product."""
    documents = inventory.store.list_documents(PRODUCTS)
    products = [Product.from_document(doc_id, data) for doc_id, data in documents.items()]
    return [p for p in products if p.category == category_name]


def list_categories() -> list[Category]:
    return inventory.view().category_list()


def get_category(category_id: str) -> Category:
    category = inventory.view().get_category(category_id)
    if category is None:
        return _load_category(category_id)
    return category


def create_category(*, data: dict, permissions: PermissionProvider | None) -> Category:
    """
    Create a category.

    Raises:
        PermissionDeniedError: without canManageInventory
        ValidationError: field violations
        DuplicateNameError: name already used (case-insensitive)
    """
    require_capability(permissions, "canManageInventory")
    record = validate_category(data, inventory.view())

    timestamp = now_iso()
    record["createdAt"] = timestamp
    record["updatedAt"] = timestamp

    doc_id = inventory.store.create(CATEGORIES, record)
    current_app.logger.info("Created category %s (%s)", record["name"], doc_id)
    return Category.from_document(doc_id, record)


def update_category(
    *,
    category_id: str,
    patch: dict,
    permissions: PermissionProvider | None,
) -> CategoryUpdateResult:
    """
    Update a category. When the name changes, every product carrying the old
    name is rewritten to the new one.

    Raises:
        CategoryNotFoundError, ValidationError, DuplicateNameError
        CascadeIncompleteError: category renamed but some products not rewritten
        StoreWriteError: the category write itself failed (nothing cascaded)
    """
    require_capability(permissions, "canManageInventory")
    existing = _load_category(category_id)
    changes = validate_category(patch, inventory.view(), existing=existing)
    changes["updatedAt"] = now_iso()

    inventory.store.update(CATEGORIES, category_id, changes)
    updated = Category.from_document(category_id, {**existing.to_document(), **changes})

    cascade = None
    if "name" in changes and changes["name"] != existing.name:
        cascade = _cascade(existing.name, changes["name"])

    return CategoryUpdateResult(category=updated, cascade=cascade)


def rename_category(
    *,
    category_id: str,
    new_name: str,
    permissions: PermissionProvider | None,
) -> CategoryUpdateResult:
    return update_category(category_id=category_id, patch={"name": new_name}, permissions=permissions)


def cascade_category_rename(
    *,
    old_name: str,
    new_name: str,
    permissions: PermissionProvider | None,
) -> CascadeResult:
    """
    Rewrite every product still carrying `old_name` to `new_name`.

    Safe to repeat: a second run after a complete cascade updates nothing.
    `new_name` must belong to an existing category.

    Raises:
        ValidationError: a name is missing, or no category is named `new_name`
        CascadeIncompleteError: some product writes failed
    """
    require_capability(permissions, "canManageInventory")
    errors = {}
    old_name = old_name.strip() if isinstance(old_name, str) else ""
    new_name = new_name.strip() if isinstance(new_name, str) else ""
    if not old_name:
        errors["oldName"] = "Old category name is required"
    if not new_name:
        errors["newName"] = "New category name is required"
    elif inventory.view().category_by_name(new_name) is None:
        errors["newName"] = f'Category "{new_name}" does not exist'
    if errors:
        raise ValidationError(errors)
    return _cascade(old_name, new_name)


def _cascade(old_name: str, new_name: str) -> CascadeResult:
    result = CascadeResult(old_name=old_name, new_name=new_name)
    if old_name == new_name:
        return result

    for product in _products_named(old_name):
        try:
            inventory.store.update(PRODUCTS, product.id, {"category": new_name, "updatedAt": now_iso()})
        except DocumentNotFoundError:
            # Deleted since enumeration; nothing left to rename
            continue
        except StoreError:
            current_app.logger.warning(
                "Category cascade %r -> %r failed for product %s", old_name, new_name, product.id,
                exc_info=True,
            )
            result.failed.append(product.id)
            continue
        result.updated.append(product.id)

    current_app.logger.info(
        "Category cascade %r -> %r: %d updated, %d failed",
        old_name, new_name, len(result.updated), len(result.failed),
    )
    if result.failed:
        raise CascadeIncompleteError(result)
    return result


def delete_category(*, category_id: str, permissions: PermissionProvider | None) -> None:
    """
    Delete a category that no product references.

    Raises:
        PermissionDeniedError: without canDeleteItems
        CategoryNotFoundError
        ReferentialIntegrityError: products still carry the category name
    """
    require_capability(permissions, "canDeleteItems")
    category = _load_category(category_id)

    product_count = len(_products_named(category.name))
    if product_count:
        raise ReferentialIntegrityError(
            f'Cannot delete category "{category.name}" because it contains {product_count} product(s)',
            details={"product_count": product_count, "category": category.name},
        )

    inventory.store.delete(CATEGORIES, category_id)
    current_app.logger.info("Deleted category %s (%s)", category.name, category_id)


def seed_default_categories(*, permissions: PermissionProvider | None) -> list[Category]:
    """
    Create the default category set when no category exists yet.
    Returns the created categories (empty when categories already exist).
    """
    require_capability(permissions, "canManageInventory")
    if inventory.store.list_documents(CATEGORIES):
        return []

    created = []
    for record in default_category_records():
        doc_id = inventory.store.create(CATEGORIES, record)
        created.append(Category.from_document(doc_id, record))
    current_app.logger.info("Seeded %d default categories", len(created))
    return created
