"""
Catalog entities as they live in the document store.

Every entity is an immutable value built from a flat document at the store
boundary (`from_document`) and serialized back with camelCase keys
(`to_document`). Documents written by older clients are tolerated here so the
rest of the core only ever sees one shape:

- a category document may be a bare name string instead of a record;
- numeric fields may arrive as strings or be missing (missing stock is 0).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_CATEGORY_COLOR = "#007bff"
UNKNOWN_SUPPLIER = "Unknown Supplier"

SUPPLIER_STATUSES = ("active", "inactive")


def as_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return int(value)
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def as_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    description: str = ""
    color: str = DEFAULT_CATEGORY_COLOR
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: Any) -> "Category":
        if isinstance(data, str):
            return cls(id=doc_id, name=data.strip())
        data = data or {}
        return cls(
            id=doc_id,
            name=as_text(data.get("name")).strip(),
            description=as_text(data.get("description")),
            color=data.get("color") or DEFAULT_CATEGORY_COLOR,
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_document(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def to_dict(self) -> dict:
        return {"id": self.id, **self.to_document()}


@dataclass(frozen=True)
class Supplier:
    id: str
    name: str
    contact_person: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    status: str = "active"
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @classmethod
    def from_document(cls, doc_id: str, data: dict | None) -> "Supplier":
        data = data or {}
        return cls(
            id=doc_id,
            name=as_text(data.get("name")),
            contact_person=as_text(data.get("contactPerson")),
            email=as_text(data.get("email")),
            phone=as_text(data.get("phone")),
            address=as_text(data.get("address")),
            status=data.get("status") or "active",
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_document(self) -> dict:
        return {
            "name": self.name,
            "contactPerson": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "status": self.status,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def to_dict(self) -> dict:
        return {"id": self.id, **self.to_document()}


@dataclass(frozen=True)
class Product:
    """
    Product master data.

    CATEGORY JOIN KEY:
    `category` holds the category NAME, not its id. Existing records join on
    name, so renaming a category must cascade to every product carrying the
    old name (see category_service).
    """
    id: str
    name: str
    sku: str
    category: str
    stock: int = 0
    price: float = 0.0
    cost_price: float = 0.0
    low_stock_threshold: int = 10
    description: str = ""
    supplier: str | None = None
    images: tuple[str, ...] = field(default_factory=tuple)
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict | None) -> "Product":
        data = data or {}
        category = data.get("category")
        if isinstance(category, dict):
            category = category.get("name")
        return cls(
            id=doc_id,
            name=as_text(data.get("name")),
            sku=as_text(data.get("sku")),
            category=as_text(category),
            stock=as_int(data.get("stock")),
            price=as_float(data.get("price")),
            cost_price=as_float(data.get("costPrice")),
            low_stock_threshold=as_int(data.get("lowStockThreshold"), 10),
            description=as_text(data.get("description")),
            supplier=data.get("supplier") or None,
            images=tuple(data.get("images") or ()),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_document(self) -> dict:
        return {
            "name": self.name,
            "sku": self.sku,
            "description": self.description,
            "category": self.category,
            "stock": self.stock,
            "price": self.price,
            "costPrice": self.cost_price,
            "lowStockThreshold": self.low_stock_threshold,
            "supplier": self.supplier,
            "images": list(self.images),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def to_dict(self) -> dict:
        return {"id": self.id, **self.to_document()}
