# Overview: Read-only report aggregation over committed sales, inventory and customers.

"""
Reports never write. Every figure is rebuilt from the frozen values on the
sale records (total_amount_cents, line_total_cents, unit_price_cents), so a
later price change on an item never alters a past report. No matching rows is
a valid, empty result.

Period keys are computed in REPORT_TIMEZONE:
- day   -> "YYYY-MM-DD"
- week  -> "YYYY-Www" (ISO week-year and ISO week number)
- month -> "YYYY-MM"
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Sale, SaleLine, InventoryItem
from ..time_utils import parse_iso_datetime, parse_range_end, to_utc_z, to_zone
from ..validation import ValidationError, coerce_bounded_int
from .customer_service import get_customer

GROUPINGS = ("day", "week", "month")


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_range_end(end) if end else None
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 dates")
    if start_dt and end_dt and start_dt > end_dt:
        raise ValidationError("start must not be after end")
    return start_dt, end_dt


def _optional_id(value, field: str) -> int | None:
    if value in (None, ""):
        return None
    return coerce_bounded_int(value, field)


def period_key(dt: datetime, group_by: str, tz_name: str) -> str:
    local = to_zone(dt, tz_name)
    if group_by == "day":
        return local.strftime("%Y-%m-%d")
    if group_by == "week":
        iso_year, iso_week, _ = local.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if group_by == "month":
        return local.strftime("%Y-%m")
    raise ValidationError("group_by must be day, week, or month")


def _select_sales(
    *,
    start_dt: datetime | None,
    end_dt: datetime | None,
    customer_id: int | None = None,
    item_id: int | None = None,
) -> list[Sale]:
    query = db.session.query(Sale)
    if start_dt:
        query = query.filter(Sale.date >= start_dt)
    if end_dt:
        query = query.filter(Sale.date <= end_dt)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    if item_id is not None:
        query = query.filter(Sale.lines.any(SaleLine.item_id == item_id))
    return query.order_by(Sale.date.asc(), Sale.id.asc()).all()


def sales_report(
    *,
    start: str | None = None,
    end: str | None = None,
    customer_id=None,
    item_id=None,
    group_by: str | None = None,
) -> dict:
    """
    Revenue, sale count and units over the selected sales.

    With item_id, only sales containing the item are selected and units and
    revenue count that item's lines alone. Without group_by the rows are the
    sales themselves; otherwise one row per period, ascending.
    """
    if group_by in ("", None):
        group_by = None
    elif group_by not in GROUPINGS:
        raise ValidationError("group_by must be day, week, or month")

    start_dt, end_dt = _parse_range(start, end)
    customer_id = _optional_id(customer_id, "customer_id")
    item_id = _optional_id(item_id, "item_id")
    tz_name = current_app.config["REPORT_TIMEZONE"]

    sales = _select_sales(start_dt=start_dt, end_dt=end_dt, customer_id=customer_id, item_id=item_id)

    total_revenue = 0
    total_units = 0
    buckets: dict[str, dict] = {}
    rows = []

    for sale in sales:
        lines = [line for line in sale.lines if item_id is None or line.item_id == item_id]
        units = sum(line.quantity for line in lines)
        revenue = sale.total_amount_cents if item_id is None else sum(line.line_total_cents for line in lines)

        total_revenue += revenue
        total_units += units

        if group_by is None:
            rows.append(sale.to_dict())
            continue

        key = period_key(sale.date, group_by, tz_name)
        bucket = buckets.setdefault(
            key,
            {"period": key, "sales_count": 0, "units_sold": 0, "total_cents": 0},
        )
        bucket["sales_count"] += 1
        bucket["units_sold"] += units
        bucket["total_cents"] += revenue

    if group_by is not None:
        rows = [buckets[key] for key in sorted(buckets)]

    return {
        "start": to_utc_z(start_dt) if start_dt else None,
        "end": to_utc_z(end_dt) if end_dt else None,
        "customer_id": customer_id,
        "item_id": item_id,
        "group_by": group_by,
        "timezone": tz_name,
        "summary": {
            "total_revenue_cents": total_revenue,
            "total_sales": len(sales),
            "total_units_sold": total_units,
        },
        "rows": rows,
    }


def items_report(*, start: str | None = None, end: str | None = None) -> dict:
    """Per-item units sold, revenue and last sale, flagged for low stock."""
    start_dt, end_dt = _parse_range(start, end)
    threshold = current_app.config["LOW_STOCK_THRESHOLD"]

    query = db.session.query(
        SaleLine.item_id.label("item_id"),
        func.coalesce(func.sum(SaleLine.quantity), 0).label("units_sold"),
        func.coalesce(func.sum(SaleLine.line_total_cents), 0).label("revenue_cents"),
        func.max(Sale.date).label("last_sold"),
    ).join(Sale, SaleLine.sale_id == Sale.id).filter(
        SaleLine.item_id.isnot(None),
    )
    if start_dt:
        query = query.filter(Sale.date >= start_dt)
    if end_dt:
        query = query.filter(Sale.date <= end_dt)

    stats = {row.item_id: row for row in query.group_by(SaleLine.item_id).all()}

    items = db.session.query(InventoryItem).order_by(InventoryItem.name.asc(), InventoryItem.id.asc()).all()

    rows = []
    for item in items:
        row = stats.get(item.id)
        entry = item.to_dict()
        entry.update(
            {
                "is_low_stock": item.quantity < threshold,
                "total_sold": int(row.units_sold) if row else 0,
                "total_revenue_cents": int(row.revenue_cents) if row else 0,
                "last_sold": to_utc_z(row.last_sold) if row else None,
            }
        )
        rows.append(entry)

    return {
        "start": to_utc_z(start_dt) if start_dt else None,
        "end": to_utc_z(end_dt) if end_dt else None,
        "low_stock_threshold": threshold,
        "items": rows,
    }


def inventory_report() -> dict:
    """Stock on hand, its value at current prices, and the low-stock list."""
    threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    items = db.session.query(InventoryItem).order_by(InventoryItem.name.asc(), InventoryItem.id.asc()).all()

    rows = []
    for item in items:
        entry = item.to_dict()
        entry["value_cents"] = item.quantity * item.price_cents
        entry["is_low_stock"] = item.quantity < threshold
        rows.append(entry)

    return {
        "total_items": len(rows),
        "total_units": sum(item.quantity for item in items),
        "total_value_cents": sum(row["value_cents"] for row in rows),
        "low_stock_threshold": threshold,
        "items": rows,
        "low_stock_items": [row for row in rows if row["is_low_stock"]],
    }


def customer_ledger(customer_id, *, start: str | None = None, end: str | None = None) -> dict:
    """One customer's sales in chronological order with purchase totals."""
    customer = get_customer(coerce_bounded_int(customer_id, "customer_id"))
    start_dt, end_dt = _parse_range(start, end)

    sales = _select_sales(start_dt=start_dt, end_dt=end_dt, customer_id=customer.id)

    return {
        "customer": customer.to_dict(),
        "start": to_utc_z(start_dt) if start_dt else None,
        "end": to_utc_z(end_dt) if end_dt else None,
        "summary": {
            "total_sales": len(sales),
            "total_amount_cents": sum(sale.total_amount_cents for sale in sales),
            "first_purchase_date": to_utc_z(sales[0].date) if sales else None,
            "last_purchase_date": to_utc_z(sales[-1].date) if sales else None,
        },
        "sales": [sale.to_dict() for sale in sales],
    }
