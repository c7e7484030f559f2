# reports.py
"""Reporting engine.

Pure reads over the same store the order pipeline writes to, so a report
issued right after an order commit already includes that order.
"""
from datetime import datetime, time, timezone

from core import LOW_STOCK_THRESHOLD, mzn_to_usd, usd_str
from errors import ValidationError


def parse_report_date(value, field, end_of_day=False):
    """Parse an ISO-8601 query value into a naive UTC datetime.

    A bare date (``2026-01-31``) as an end bound covers the whole day.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError("Invalid date", details=[{"field": field, "message": f"Not an ISO-8601 date: {value}"}])
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    if end_of_day and len(value.strip()) == 10:
        parsed = datetime.combine(parsed.date(), time.max)
    return parsed


def sales_report(storage, start=None, end=None):
    orders = [
        o for o in storage.get_orders()
        if o.get("created_at")
        and (start is None or o["created_at"] >= start)
        and (end is None or o["created_at"] <= end)
    ]
    total = sum(o["total_mzn"] for o in orders)
    return {
        "total_sales_mzn": total,
        "total_sales_usd": usd_str(mzn_to_usd(total)),
        "total_orders": len(orders),
        "products_sold": sum(i["quantity"] for o in orders for i in o["items"]),
        "orders": orders,
    }


def category_performance(storage):
    stats = {}
    products = {}
    for order in storage.get_orders():
        for item in order["items"]:
            pid = item["product_id"]
            if pid not in products:
                products[pid] = storage.get_product(pid)
            product = products[pid]
            if product is None:
                continue  # deleted product: line not attributed to any category
            row = stats.setdefault(product["category"], {"sales": 0, "quantity": 0})
            row["sales"] += item["total_mzn"]
            row["quantity"] += item["quantity"]
    return [
        {
            "category": category,
            "sales_mzn": row["sales"],
            "sales_usd": usd_str(mzn_to_usd(row["sales"])),
            "quantity_sold": row["quantity"],
        }
        for category, row in stats.items()
    ]


def low_stock_products(storage):
    return [p for p in storage.get_products() if p["stock"] < LOW_STOCK_THRESHOLD]
