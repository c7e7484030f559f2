"""Tests for CSV and WhatsApp exports."""

from datetime import datetime

from exports import SALES_CSV_HEADER, format_mzn, format_usd, sales_csv, whatsapp_message, whatsapp_url


def order(**overrides):
    data = {
        "id": "4f1c2d3e",
        "customer_name": "Ana Machava",
        "customer_email": "ana@example.co.mz",
        "customer_phone": "+258841234567",
        "total_mzn": 400,
        "total_usd": "6.25",
        "created_at": datetime(2026, 2, 10, 9, 30),
        "status": "pending",
    }
    data.update(overrides)
    return data


class TestSalesCsv:
    def test_header_only(self):
        assert sales_csv([]) == SALES_CSV_HEADER
        assert SALES_CSV_HEADER == "Order ID,Customer Name,Email,Phone,Total MZN,Total USD,Date,Status"

    def test_row_quoting(self):
        lines = sales_csv([order()]).split("\n")
        assert lines[1] == (
            '4f1c2d3e,"Ana Machava","ana@example.co.mz","+258841234567",400,6.25,'
            '"2026-02-10T09:30:00","pending"'
        )

    def test_embedded_quotes_are_doubled(self):
        row = sales_csv([order(customer_name='Loja "Central"')]).split("\n")[1]
        assert '"Loja ""Central"""' in row

    def test_one_row_per_order(self):
        assert len(sales_csv([order(id="a"), order(id="b")]).split("\n")) == 3


class TestWhatsApp:
    items = [
        {"product_name": "Cimento Portland 50kg", "quantity": 2, "total_mzn": 1600},
        {"product_name": "Tijolo", "quantity": 100, "total_mzn": 2500},
    ]

    def test_formatting_helpers(self):
        assert format_mzn(4100) == "4,100 MZN"
        assert format_usd("64.0625") == "64.06 USD"

    def test_message_lists_items_and_total(self):
        message = whatsapp_message(self.items)
        assert message.startswith("Olá! Gostaria de fazer um pedido:")
        assert "Cimento Portland 50kg: 2 unidades" in message
        assert "Tijolo: 100 unidades" in message
        assert "Total: 4,100 MZN (64.06 USD)" in message
        assert "Nome:" not in message

    def test_message_with_customer(self):
        message = whatsapp_message(self.items, {"name": "Ana", "phone": "841234567", "address": ""})
        assert "Nome: Ana" in message
        assert "Telefone: 841234567" in message
        assert "Endereço" not in message

    def test_url_is_encoded(self):
        url = whatsapp_url("Olá!\nTotal: 1 MZN")
        assert url.startswith("https://wa.me/258843210987?text=")
        assert "%0A" in url
        assert " " not in url

    def test_url_custom_phone(self):
        assert whatsapp_url("oi", phone="258840000000") == "https://wa.me/258840000000?text=oi"
