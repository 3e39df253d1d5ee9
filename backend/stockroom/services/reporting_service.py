# Overview: Read-only reports over an InventoryView snapshot (dashboard, sales by period, stock value).

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ..models import ACTIVE_STATUSES, ORDER_STATUSES, OrderStatus
from ..time_utils import parse_iso_datetime
from ..validation import round_money
from .stock_status import low_stock_products, out_of_stock_products


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError as exc:
        raise ReportError(f"Invalid date: {exc}") from exc
    return start_dt, end_dt


def _money(value: Decimal) -> float:
    return float(round_money(value))


def _order_time(order) -> datetime | None:
    try:
        return parse_iso_datetime(order.date or order.created_at)
    except ValueError:
        return None


def dashboard_stats(view) -> dict:
    """
    totalProducts, lowStockItems, activeOrders (pending/confirmed/shipped) and
    totalRevenue (sum of totals over completed orders).
    """
    orders = list(view.orders.values())
    revenue = sum(
        (Decimal(str(o.total)) for o in orders if o.status == OrderStatus.COMPLETED),
        Decimal("0"),
    )
    return {
        "totalProducts": len(view.products),
        "lowStockItems": len(low_stock_products(view)),
        "outOfStockItems": len(out_of_stock_products(view)),
        "activeOrders": sum(1 for o in orders if o.status in ACTIVE_STATUSES),
        "totalRevenue": _money(revenue),
        "ordersByStatus": {
            status: sum(1 for o in orders if o.status == status) for status in ORDER_STATUSES
        },
    }


def sales_report(
    view,
    *,
    start: str | None = None,
    end: str | None = None,
    group_by: str = "day",
) -> dict:
    """Completed-order revenue grouped by order date (day, week or month)."""
    if group_by not in ("day", "week", "month"):
        raise ReportError("group_by must be day, week, or month")
    start_dt, end_dt = _parse_range(start, end)

    periods: dict[str, dict] = {}
    for order in view.orders.values():
        if order.status != OrderStatus.COMPLETED:
            continue
        when = _order_time(order)
        if when is None:
            continue
        if start_dt and when < start_dt:
            continue
        if end_dt and when > end_dt:
            continue

        if group_by == "day":
            period = when.strftime("%Y-%m-%d")
        elif group_by == "week":
            period = when.strftime("%Y-W%W")
        else:
            period = when.strftime("%Y-%m")

        bucket = periods.setdefault(period, {"orders": 0, "itemsSold": 0, "revenue": Decimal("0")})
        bucket["orders"] += 1
        bucket["itemsSold"] += sum(item.quantity for item in order.items)
        bucket["revenue"] += Decimal(str(order.total))

    rows = [
        {"period": p, "orders": b["orders"], "itemsSold": b["itemsSold"], "revenue": _money(b["revenue"])}
        for p, b in sorted(periods.items())
    ]
    return {
        "groupBy": group_by,
        "start": start,
        "end": end,
        "rows": rows,
        "totalRevenue": _money(sum((Decimal(str(r["revenue"])) for r in rows), Decimal("0"))),
    }


def inventory_valuation(view) -> dict:
    """Stock on hand valued at cost and at retail, per category and overall."""
    by_category: dict[str, dict] = {}
    total_cost = Decimal("0")
    total_retail = Decimal("0")
    for product in view.product_list():
        cost = Decimal(str(product.cost_price)) * product.stock
        retail = Decimal(str(product.price)) * product.stock
        bucket = by_category.setdefault(
            product.category, {"units": 0, "cost": Decimal("0"), "retail": Decimal("0")}
        )
        bucket["units"] += product.stock
        bucket["cost"] += cost
        bucket["retail"] += retail
        total_cost += cost
        total_retail += retail

    return {
        "categories": [
            {"category": name, "units": b["units"], "costValue": _money(b["cost"]), "retailValue": _money(b["retail"])}
            for name, b in sorted(by_category.items())
        ],
        "totalCostValue": _money(total_cost),
        "totalRetailValue": _money(total_retail),
    }
