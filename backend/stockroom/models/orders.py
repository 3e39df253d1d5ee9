from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .catalog import as_float, as_int, as_text


class OrderStatus:
    """Order lifecycle values as persisted on the order document."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ORDER_STATUSES = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
)

TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

# Orders in these states may not be deleted
DELETE_BLOCKED_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.SHIPPED})

# Counted as "active" on the dashboard
ACTIVE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.SHIPPED})


@dataclass(frozen=True)
class Customer:
    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""

    @classmethod
    def from_payload(cls, data: dict | None) -> "Customer":
        """
        Accept either a nested {"customer": {...}} object or the flat
        customerName/customerEmail/... keys stored on order documents.
        """
        data = data or {}
        nested = data.get("customer")
        if isinstance(nested, dict):
            return cls(
                name=as_text(nested.get("name")),
                email=as_text(nested.get("email")),
                phone=as_text(nested.get("phone")),
                address=as_text(nested.get("address")),
            )
        return cls(
            name=as_text(data.get("customerName")),
            email=as_text(data.get("customerEmail")),
            phone=as_text(data.get("customerPhone")),
            address=as_text(data.get("customerAddress")),
        )

    def to_document(self) -> dict:
        return {
            "customerName": self.name,
            "customerEmail": self.email,
            "customerPhone": self.phone,
            "customerAddress": self.address,
        }


@dataclass(frozen=True)
class OrderItem:
    """
    One order line. `name` and `price` are copies taken when the order was
    created, not live joins to the product.
    """
    product_id: str | None
    quantity: int
    name: str = ""
    price: float = 0.0

    @classmethod
    def from_document(cls, data: dict) -> "OrderItem":
        # Older orders stored the product reference under "id"
        product_id = data.get("productId") or data.get("id") or None
        return cls(
            product_id=product_id,
            quantity=as_int(data.get("quantity")),
            name=as_text(data.get("name")),
            price=as_float(data.get("price")),
        )

    def to_document(self) -> dict:
        return {
            "productId": self.product_id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
        }


@dataclass(frozen=True)
class Order:
    id: str
    customer: Customer
    items: tuple[OrderItem, ...]
    subtotal: float = 0.0
    tax: float = 0.0
    shipping: float = 0.0
    total: float = 0.0
    status: str = OrderStatus.PENDING
    date: str | None = None
    notes: str = ""
    created_at: str | None = None
    updated_at: str | None = None

    # Idempotency markers for stock reconciliation
    stock_deducted: bool = False
    deducted_lines: tuple[int, ...] = field(default_factory=tuple)
    stock_deducted_at: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_document(cls, doc_id: str, data: dict | None) -> "Order":
        data = data or {}
        return cls(
            id=doc_id,
            customer=Customer.from_payload(data),
            items=tuple(OrderItem.from_document(i) for i in data.get("items") or () if isinstance(i, dict)),
            subtotal=as_float(data.get("subtotal")),
            tax=as_float(data.get("tax")),
            shipping=as_float(data.get("shipping")),
            total=as_float(data.get("total")),
            status=data.get("status") or OrderStatus.PENDING,
            date=data.get("date"),
            notes=as_text(data.get("notes")),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            stock_deducted=bool(data.get("stockDeducted", False)),
            deducted_lines=tuple(as_int(i) for i in data.get("deductedLines") or ()),
            stock_deducted_at=data.get("stockDeductedAt"),
        )

    def to_document(self) -> dict:
        doc: dict[str, Any] = {
            **self.customer.to_document(),
            "items": [item.to_document() for item in self.items],
            "subtotal": self.subtotal,
            "tax": self.tax,
            "shipping": self.shipping,
            "total": self.total,
            "status": self.status,
            "date": self.date,
            "notes": self.notes,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "stockDeducted": self.stock_deducted,
            "deductedLines": list(self.deducted_lines),
            "stockDeductedAt": self.stock_deducted_at,
        }
        return doc

    def to_dict(self) -> dict:
        return {"id": self.id, **self.to_document()}
