# Overview: Derived stock status, stock alerts and product filtering over an InventoryView.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation

from ..models import DEFAULT_CATEGORY_COLOR, Product
from ..time_utils import parse_iso_datetime, utcnow


class StockStatus:
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


STOCK_STATUSES = (StockStatus.IN_STOCK, StockStatus.LOW_STOCK, StockStatus.OUT_OF_STOCK)


def classify(stock: int, threshold: int) -> str:
    """
    Total over valid inputs (stock >= 0, threshold >= 0):
    0 -> out of stock; 0 < stock <= threshold -> low; otherwise in stock.
    """
    if stock <= 0:
        return StockStatus.OUT_OF_STOCK
    if stock <= threshold:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def product_status(product: Product) -> str:
    return classify(product.stock, product.low_stock_threshold)


def low_stock_products(view) -> list[Product]:
    """Products with 0 < stock <= threshold (out-of-stock products are NOT included)."""
    return [p for p in view.product_list() if product_status(p) == StockStatus.LOW_STOCK]


def out_of_stock_products(view) -> list[Product]:
    return [p for p in view.product_list() if product_status(p) == StockStatus.OUT_OF_STOCK]


@dataclass
class CategoryAlerts:
    name: str
    color: str = DEFAULT_CATEGORY_COLOR
    low_stock: list[Product] = field(default_factory=list)
    out_of_stock: list[Product] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.low_stock) + len(self.out_of_stock)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "color": self.color,
            "lowStockProducts": [p.to_dict() for p in self.low_stock],
            "outOfStockProducts": [p.to_dict() for p in self.out_of_stock],
            "totalAlerts": self.total,
        }


def alerts_by_category(view) -> list[CategoryAlerts]:
    """
    Group low/out-of-stock products by category name.

    The colour comes from the category record; products whose category no
    longer exists fall back to the default colour.
    """
    grouped: dict[str, CategoryAlerts] = {}
    for product in out_of_stock_products(view) + low_stock_products(view):
        alerts = grouped.get(product.category)
        if alerts is None:
            category = view.category_by_name(product.category)
            alerts = CategoryAlerts(
                name=product.category,
                color=category.color if category is not None else DEFAULT_CATEGORY_COLOR,
            )
            grouped[product.category] = alerts
        if product_status(product) == StockStatus.OUT_OF_STOCK:
            alerts.out_of_stock.append(product)
        else:
            alerts.low_stock.append(product)
    return sorted(grouped.values(), key=lambda a: a.name.lower())


def stock_alert_summary(view) -> dict:
    low = low_stock_products(view)
    out = out_of_stock_products(view)
    return {
        "lowStockCount": len(low),
        "outOfStockCount": len(out),
        "totalAlerts": len(low) + len(out),
        "categories": [a.to_dict() for a in alerts_by_category(view)],
    }


def _as_decimal(value) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid price: {value}") from None


def filter_products(
    view,
    *,
    search: str | None = None,
    category: str | None = None,
    supplier: str | None = None,
    min_price=None,
    max_price=None,
    start_date: str | None = None,
    end_date: str | None = None,
    date_field: str = "createdAt",
    stock_status: str | None = None,
) -> list[Product]:
    """
    Filter the projected products. Every criterion is optional; "all" for
    category/stock_status means no filter.

    Raises ValueError for an unknown stock status, date field or an
    unparseable date/price.
    """
    if stock_status not in (None, "", "all") and stock_status not in STOCK_STATUSES:
        raise ValueError(f"Unknown stock status: {stock_status}")
    if date_field not in ("createdAt", "updatedAt"):
        raise ValueError(f"Unknown date field: {date_field}")

    low = _as_decimal(min_price)
    high = _as_decimal(max_price)
    start = parse_iso_datetime(start_date) if start_date else None
    end = parse_iso_datetime(end_date) if end_date else None
    needle = (search or "").strip().lower()

    results = []
    for product in view.product_list():
        if supplier and product.supplier != supplier:
            continue
        if needle and not (
            needle in product.name.lower()
            or needle in product.sku.lower()
            or needle in product.description.lower()
        ):
            continue
        if category and category != "all" and product.category != category:
            continue

        price = Decimal(str(product.price))
        if low is not None and price < low:
            continue
        if high is not None and price > high:
            continue

        if start is not None or end is not None:
            stamp = product.created_at if date_field == "createdAt" else product.updated_at
            when = _safe_parse(stamp)
            if when is None:
                continue
            if start is not None and when < start:
                continue
            if when > (end if end is not None else utcnow()):
                continue

        if stock_status not in (None, "", "all") and product_status(product) != stock_status:
            continue
        results.append(product)
    return results


def _safe_parse(value: str | None) -> datetime | None:
    try:
        return parse_iso_datetime(value)
    except ValueError:
        return None
