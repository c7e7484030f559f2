# exports.py
"""Formatting of core data for the outside world: CSV sales export and WhatsApp order links."""
from decimal import Decimal
from urllib.parse import quote

from core import WHATSAPP_NUMBER, mzn_to_usd

SALES_CSV_HEADER = "Order ID,Customer Name,Email,Phone,Total MZN,Total USD,Date,Status"


def _quoted(value):
    text = "" if value is None else str(value)
    return '"' + text.replace('"', '""') + '"'


def sales_csv(orders):
    rows = [SALES_CSV_HEADER]
    for o in orders:
        created = o["created_at"].isoformat() if hasattr(o["created_at"], "isoformat") else o["created_at"]
        rows.append(",".join([
            o["id"],
            _quoted(o["customer_name"]),
            _quoted(o["customer_email"]),
            _quoted(o["customer_phone"]),
            str(o["total_mzn"]),
            str(o["total_usd"]),
            _quoted(created),
            _quoted(o["status"]),
        ]))
    return "\n".join(rows)


def format_mzn(amount):
    return f"{amount:,} MZN"


def format_usd(amount):
    return f"{Decimal(str(amount)):.2f} USD"


def whatsapp_message(items, customer=None):
    """Order request text for a WhatsApp chat with the shop."""
    lines = ["Olá! Gostaria de fazer um pedido:", ""]
    for item in items:
        lines.append(f"{item['product_name']}: {item['quantity']} unidades")
    total = sum(item["total_mzn"] for item in items)
    lines.append("")
    lines.append(f"Total: {format_mzn(total)} ({format_usd(mzn_to_usd(total))})")
    if customer:
        lines.append("")
        lines.append(f"Nome: {customer.get('name') or ''}")
        lines.append(f"Telefone: {customer.get('phone') or ''}")
        if customer.get("address"):
            lines.append(f"Endereço: {customer['address']}")
    return "\n".join(lines)


def whatsapp_url(message, phone=WHATSAPP_NUMBER):
    return f"https://wa.me/{phone}?text={quote(message, safe='')}"
