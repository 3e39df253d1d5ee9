"""
Invariant validation for documents entering the store.

Every validator collects ALL field violations before raising, so callers can
surface every problem at once:

    ValidationError.errors == {"price": "Price must be greater than 0",
                               "sku": "SKU is required"}

Validators never write. They return a normalized record that the service
layer then writes as a single document.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import TYPE_CHECKING, Any

from .models import DEFAULT_CATEGORY_COLOR, ORDER_STATUSES, SUPPLIER_STATUSES

if TYPE_CHECKING:
    from .models import Category, Order, Product, Supplier
    from .services.projection import InventoryView

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")

CATEGORY_NAME_MIN = 2
CATEGORY_NAME_MAX = 50
CATEGORY_DESCRIPTION_MAX = 200

DEFAULT_TAX_RATE = Decimal("0.08")
DEFAULT_SHIPPING = Decimal("10.00")
DEFAULT_LOW_STOCK_THRESHOLD = 10

# Server-managed keys that clients may echo back; silently ignored
SYSTEM_FIELDS = {"id", "createdAt", "updatedAt"}

CENT = Decimal("0.01")


class ValidationError(ValueError):
    """400-level input problem. `errors` maps each offending field to a message."""
    def __init__(self, errors: dict[str, str] | str):
        if isinstance(errors, str):
            errors = {"_": errors}
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))


class ConflictError(ValueError):
    """409-level business rule conflict."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class DuplicateNameError(ConflictError):
    """Another category already uses this name (case-insensitive)."""


class ReferentialIntegrityError(ConflictError):
    """Delete blocked because other documents still reference the target."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for create
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = field(default_factory=frozenset)


CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "description", "color"}),
    required_on_create=frozenset({"name"}),
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name", "sku", "description", "category", "stock", "price",
        "costPrice", "lowStockThreshold", "supplier", "images",
    }),
    required_on_create=frozenset({"name", "sku", "category", "price"}),
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "contactPerson", "email", "phone", "address", "status"}),
    required_on_create=frozenset({"name", "contactPerson", "email", "phone"}),
)

ORDER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "customer", "customerName", "customerEmail", "customerPhone", "customerAddress",
        "items", "notes",
        # Totals may be echoed by clients but are always recomputed
        "subtotal", "tax", "shipping", "total",
    }),
)


def _check_fields(payload: Any, policy: ModelValidationPolicy, errors: dict[str, str]) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    cleaned = {}
    for k, v in payload.items():
        if k in SYSTEM_FIELDS:
            continue
        if k not in policy.writable_fields:
            errors[k] = f"Field not allowed: {k}"
            continue
        cleaned[k] = v
    return cleaned


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _int_field(name: str, value: Any, errors: dict[str, str], *, label: str) -> int | None:
    """
    Strict integer coercion: rejects decimals, scientific notation and bools.
    """
    if isinstance(value, bool):
        errors[name] = f"{label} must be a whole number"
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        errors[name] = f"{label} must be a whole number"
        return None
    if isinstance(value, str):
        stripped = value.strip()
        if stripped and "e" not in stripped.lower() and "." not in stripped:
            try:
                return int(stripped)
            except ValueError:
                pass
    errors[name] = f"{label} must be a whole number"
    return None


def _decimal_field(name: str, value: Any, errors: dict[str, str], *, label: str) -> Decimal | None:
    if isinstance(value, bool) or value is None or value == "":
        errors[name] = f"{label} must be a number"
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        errors[name] = f"{label} must be a number"
        return None
    if not number.is_finite():
        errors[name] = f"{label} must be a number"
        return None
    return number


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _money_float(value: Decimal) -> float:
    return float(round_money(value))


# -- categories --

def validate_category(
    payload: dict,
    view: "InventoryView",
    *,
    existing: "Category | None" = None,
) -> dict:
    """
    Validate a category create (existing=None) or patch.

    Returns the normalized fields to write. Raises ValidationError for field
    problems and DuplicateNameError when another category has the same name
    case-insensitively (the category being edited is excluded).
    """
    errors: dict[str, str] = {}
    data = _check_fields(payload, CATEGORY_POLICY, errors)
    partial = existing is not None
    record: dict[str, Any] = {}

    if not partial or "name" in data:
        name = _text(data.get("name"))
        if not name:
            errors["name"] = "Category name is required"
        elif len(name) < CATEGORY_NAME_MIN:
            errors["name"] = f"Category name must be at least {CATEGORY_NAME_MIN} characters"
        elif len(name) > CATEGORY_NAME_MAX:
            errors["name"] = f"Category name must be at most {CATEGORY_NAME_MAX} characters"
        record["name"] = name

    if not partial or "description" in data:
        description = _text(data.get("description"))
        if len(description) > CATEGORY_DESCRIPTION_MAX:
            errors["description"] = f"Description must be less than {CATEGORY_DESCRIPTION_MAX} characters"
        record["description"] = description

    if not partial or "color" in data:
        record["color"] = _text(data.get("color")) or DEFAULT_CATEGORY_COLOR

    if errors:
        raise ValidationError(errors)

    if "name" in record:
        exclude_id = existing.id if existing is not None else None
        clash = view.category_by_name(record["name"], case_insensitive=True, exclude_id=exclude_id)
        if clash is not None:
            raise DuplicateNameError(
                "Category name already exists",
                details={"field": "name", "existing_id": clash.id},
            )

    return record


# -- products --

def _checks_reference(key: str, existing, data: dict) -> bool:
    return existing is None or key in data


def validate_stock_level(value: Any) -> int:
    """Absolute stock level for a restock/adjustment: a whole number >= 0."""
    errors: dict[str, str] = {}
    if value is None or value == "":
        raise ValidationError({"stock": "Stock is required"})
    stock = _int_field("stock", value, errors, label="Stock")
    if stock is not None and stock < 0:
        errors["stock"] = "Stock cannot be negative"
    if errors:
        raise ValidationError(errors)
    return stock


def validate_product(
    payload: dict,
    view: "InventoryView",
    *,
    existing: "Product | None" = None,
    default_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
) -> dict:
    """
    Validate a product create (existing=None) or patch.

    A patch is merged onto the existing record and the WHOLE record is
    re-validated, so an update can never leave a product violating a field
    invariant it did not touch. Returns the full normalized record.

    References (category, supplier) are checked on create and whenever the
    patch sets them. A supplier deleted after the product was saved does not
    block unrelated edits.
    """
    errors: dict[str, str] = {}
    data = _check_fields(payload, PRODUCT_POLICY, errors)

    if existing is not None:
        merged = {**existing.to_document(), **data}
    else:
        merged = dict(data)

    name = _text(merged.get("name"))
    if not name:
        errors["name"] = "Product name is required"

    sku = _text(merged.get("sku"))
    if not sku:
        errors["sku"] = "SKU is required"

    category = _text(merged.get("category"))
    if not category:
        errors["category"] = "Category is required"
    elif _checks_reference("category", existing, data) and view.category_by_name(category) is None:
        errors["category"] = f'Category "{category}" does not exist'

    price = None
    if merged.get("price") is None or merged.get("price") == "":
        errors["price"] = "Price is required"
    else:
        price = _decimal_field("price", merged.get("price"), errors, label="Price")
        if price is not None and price <= 0:
            errors["price"] = "Price must be greater than 0"

    cost_price = Decimal("0")
    if merged.get("costPrice") not in (None, ""):
        cost_price = _decimal_field("costPrice", merged.get("costPrice"), errors, label="Cost price")
        if cost_price is not None and cost_price < 0:
            errors["costPrice"] = "Cost price cannot be negative"

    stock = 0
    if merged.get("stock") not in (None, ""):
        stock = _int_field("stock", merged.get("stock"), errors, label="Stock")
        if stock is not None and stock < 0:
            errors["stock"] = "Stock cannot be negative"

    threshold = default_threshold
    if merged.get("lowStockThreshold") not in (None, ""):
        threshold = _int_field("lowStockThreshold", merged.get("lowStockThreshold"), errors, label="Threshold")
        if threshold is not None and threshold < 0:
            errors["lowStockThreshold"] = "Threshold cannot be negative"

    supplier = _text(merged.get("supplier")) or None
    if (
        supplier is not None
        and _checks_reference("supplier", existing, data)
        and view.get_supplier(supplier) is None
    ):
        errors["supplier"] = "Supplier does not exist"

    images = merged.get("images") or []
    if not isinstance(images, (list, tuple)) or not all(isinstance(i, str) for i in images):
        errors["images"] = "Images must be a list of strings"
        images = []

    if errors:
        raise ValidationError(errors)

    return {
        "name": name,
        "sku": sku,
        "description": _text(merged.get("description")),
        "category": category,
        "stock": stock,
        "price": float(price),
        "costPrice": float(cost_price),
        "lowStockThreshold": threshold,
        "supplier": supplier,
        "images": list(images),
    }


# -- suppliers --

def validate_supplier(payload: dict, *, existing: "Supplier | None" = None) -> dict:
    """Validate a supplier create or patch; returns the full normalized record."""
    errors: dict[str, str] = {}
    data = _check_fields(payload, SUPPLIER_POLICY, errors)

    if existing is not None:
        merged = {**existing.to_document(), **data}
    else:
        merged = dict(data)

    name = _text(merged.get("name"))
    if not name:
        errors["name"] = "Supplier name is required"

    email = _text(merged.get("email"))
    if not email:
        errors["email"] = "Email is required"
    elif not EMAIL_PATTERN.search(email):
        errors["email"] = "Email is invalid"

    phone = _text(merged.get("phone"))
    if not phone:
        errors["phone"] = "Phone number is required"

    contact_person = _text(merged.get("contactPerson"))
    if not contact_person:
        errors["contactPerson"] = "Contact person is required"

    status = _text(merged.get("status")) or "active"
    if status not in SUPPLIER_STATUSES:
        errors["status"] = f"Status must be one of: {', '.join(SUPPLIER_STATUSES)}"

    if errors:
        raise ValidationError(errors)

    return {
        "name": name,
        "contactPerson": contact_person,
        "email": email,
        "phone": phone,
        "address": _text(merged.get("address")),
        "status": status,
    }


# -- orders --

def calculate_order_totals(
    items,
    tax_rate: Decimal | str | float = DEFAULT_TAX_RATE,
    shipping: Decimal | str | float = DEFAULT_SHIPPING,
) -> dict:
    """
    Recompute order totals from line items ({"price", "quantity"} mappings).

    subtotal = sum(price * quantity); tax = subtotal * tax_rate; each component
    is rounded to cents (half away from zero) and total is the sum of the
    ROUNDED components, so total == subtotal + tax + shipping holds exactly.
    """
    tax_rate = Decimal(str(tax_rate))
    shipping = round_money(Decimal(str(shipping)))

    subtotal = Decimal("0")
    for item in items:
        subtotal += Decimal(str(item["price"])) * Decimal(int(item["quantity"]))

    subtotal = round_money(subtotal)
    tax = round_money(subtotal * tax_rate)
    total = round_money(subtotal + tax + shipping)

    return {
        "subtotal": float(subtotal),
        "tax": float(tax),
        "shipping": float(shipping),
        "total": float(total),
    }


CUSTOMER_FIELDS = (
    ("name", "customerName"),
    ("email", "customerEmail"),
    ("phone", "customerPhone"),
    ("address", "customerAddress"),
)


def _merge_customer(data: dict, current: dict) -> dict:
    """Overlay the customer keys present in `data` (nested or flat) on `current` flat keys."""
    merged = dict(current)
    nested = data.get("customer")
    if isinstance(nested, dict):
        for nested_key, flat_key in CUSTOMER_FIELDS:
            if nested_key in nested:
                merged[flat_key] = nested[nested_key]
    for _, flat_key in CUSTOMER_FIELDS:
        if flat_key in data:
            merged[flat_key] = data[flat_key]
    return merged


def _validate_customer(data: dict, errors: dict[str, str]) -> dict:
    nested = data.get("customer") if isinstance(data.get("customer"), dict) else None

    def pick(nested_key: str, flat_key: str) -> str:
        if nested is not None:
            return _text(nested.get(nested_key))
        return _text(data.get(flat_key))

    name = pick("name", "customerName")
    email = pick("email", "customerEmail")
    phone = pick("phone", "customerPhone")
    address = pick("address", "customerAddress")

    if not name:
        errors["customerName"] = "Customer name is required"
    if not email:
        errors["customerEmail"] = "Customer email is required"
    elif not EMAIL_PATTERN.search(email):
        errors["customerEmail"] = "Email is invalid"
    if not phone:
        errors["customerPhone"] = "Customer phone is required"
    if not address:
        errors["customerAddress"] = "Customer address is required"

    return {
        "customerName": name,
        "customerEmail": email,
        "customerPhone": phone,
        "customerAddress": address,
    }


def _validate_items(raw_items: Any, view: "InventoryView", errors: dict[str, str]) -> list[dict]:
    if not isinstance(raw_items, (list, tuple)) or not raw_items:
        errors["items"] = "At least one product must be added to the order"
        return []

    items = []
    for index, raw in enumerate(raw_items):
        key = f"items[{index}]"
        if not isinstance(raw, dict):
            errors[key] = "Item must be an object"
            continue

        product_id = _text(raw.get("productId") or raw.get("id"))
        product = None
        if not product_id:
            errors[f"{key}.productId"] = "Product is required"
        else:
            product = view.get_product(product_id)
            if product is None:
                errors[f"{key}.productId"] = "Product not found"

        quantity = _int_field(f"{key}.quantity", raw.get("quantity"), errors, label="Quantity")
        if quantity is not None and quantity < 1:
            errors[f"{key}.quantity"] = "Quantity must be at least 1"

        if product is not None and quantity is not None and quantity >= 1:
            # Snapshot name/price at creation time; later product edits do not reach the order
            items.append({
                "productId": product.id,
                "name": product.name,
                "price": product.price,
                "quantity": quantity,
            })
    return items


def validate_order(
    payload: dict,
    view: "InventoryView",
    *,
    tax_rate=DEFAULT_TAX_RATE,
    shipping=DEFAULT_SHIPPING,
) -> dict:
    """
    Validate an order creation. Customer fields are required, items must be
    non-empty and reference known products, and totals are recomputed from the
    snapshotted items (caller-supplied totals are ignored).
    """
    errors: dict[str, str] = {}
    data = _check_fields(payload, ORDER_POLICY, errors)

    customer = _validate_customer(data, errors)
    items = _validate_items(data.get("items"), view, errors)

    if errors:
        raise ValidationError(errors)

    return {
        **customer,
        "items": items,
        **calculate_order_totals(items, tax_rate, shipping),
        "notes": _text(data.get("notes")),
    }


def validate_order_patch(
    payload: dict,
    view: "InventoryView",
    *,
    existing: "Order | None" = None,
    tax_rate=DEFAULT_TAX_RATE,
    shipping=DEFAULT_SHIPPING,
) -> dict:
    """
    Validate an order edit. Only customer fields, notes and items may change;
    status changes go through the status transition. Returns the fields to
    write, with totals recomputed when items are replaced.

    Customer keys are merged onto `existing`, so a patch may change a single
    customer field. The merged customer must still be complete.
    """
    errors: dict[str, str] = {}
    data = _check_fields(payload, ORDER_POLICY, errors)
    patch: dict[str, Any] = {}

    customer_keys = {"customer", "customerName", "customerEmail", "customerPhone", "customerAddress"}
    if customer_keys & data.keys():
        current = existing.customer.to_document() if existing is not None else {}
        patch.update(_validate_customer(_merge_customer(data, current), errors))

    if "notes" in data:
        patch["notes"] = _text(data.get("notes"))

    if "items" in data:
        items = _validate_items(data.get("items"), view, errors)
        patch["items"] = items
        patch.update(calculate_order_totals(items, tax_rate, shipping) if items else {})

    if errors:
        raise ValidationError(errors)
    return patch


def validate_order_status(status: Any) -> str:
    value = _text(status).lower()
    if value not in ORDER_STATUSES:
        raise ValidationError({"status": f"Status must be one of: {', '.join(ORDER_STATUSES)}"})
    return value
