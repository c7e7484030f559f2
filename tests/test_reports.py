"""Tests for the reporting engine."""

from datetime import datetime, time

import pytest

import storage as storage_module
from errors import ValidationError
from orders import OrderPipeline
from reports import category_performance, low_stock_products, parse_report_date, sales_report


@pytest.fixture
def place_order(mem_storage, order_payload):
    pipeline = OrderPipeline(mem_storage)

    def _place(lines, at=None, monkeypatch=None):
        if at is not None:
            monkeypatch.setattr(storage_module, "utcnow", lambda: at)
        return pipeline.submit_order(order_payload(lines))

    return _place


class TestLowStock:
    def test_threshold(self, mem_storage, make_product):
        below = make_product(mem_storage, stock=49)
        at = make_product(mem_storage, stock=50)
        ids = [p["id"] for p in low_stock_products(mem_storage)]
        assert below["id"] in ids
        assert at["id"] not in ids

    def test_negative_stock_is_low(self, mem_storage, make_product):
        p = make_product(mem_storage, stock=-2)
        assert [x["id"] for x in low_stock_products(mem_storage)] == [p["id"]]


class TestCategoryPerformance:
    def test_aggregates_per_category(self, mem_storage, make_product, place_order):
        brick = make_product(mem_storage, name="Tijolo", price_mzn=100, stock=1000)
        window = make_product(mem_storage, name="Janela", price_mzn=200, stock=1000)
        phone = make_product(mem_storage, name="Smartphone", category="Eletrônicos", price_mzn=5000)
        place_order([(brick, 1)])
        place_order([(window, 1)])
        place_order([(phone, 2)])

        rows = {r["category"]: r for r in category_performance(mem_storage)}
        assert rows["Construção"]["sales_mzn"] == 300
        assert rows["Construção"]["quantity_sold"] == 2
        assert rows["Construção"]["sales_usd"] == "4.69"
        assert rows["Eletrônicos"]["sales_mzn"] == 10000
        assert rows["Eletrônicos"]["quantity_sold"] == 2

    def test_uses_current_category(self, mem_storage, make_product, place_order):
        p = make_product(mem_storage, price_mzn=100)
        place_order([(p, 3)])
        mem_storage.update_product(p["id"], {"category": "Móveis"})
        assert category_performance(mem_storage) == [
            {"category": "Móveis", "sales_mzn": 300, "sales_usd": "4.69", "quantity_sold": 3}
        ]

    def test_drops_lines_for_deleted_products(self, mem_storage, make_product, place_order):
        gone = make_product(mem_storage, price_mzn=100)
        kept = make_product(mem_storage, name="Janela", category="Móveis", price_mzn=50)
        place_order([(gone, 1), (kept, 1)])
        mem_storage.delete_product(gone["id"])
        rows = category_performance(mem_storage)
        assert [r["category"] for r in rows] == ["Móveis"]

    def test_no_orders(self, mem_storage):
        assert category_performance(mem_storage) == []


class TestSalesReport:
    def test_totals(self, mem_storage, make_product, place_order):
        a = make_product(mem_storage, price_mzn=100)
        b = make_product(mem_storage, name="Janela", price_mzn=1600)
        place_order([(a, 2), (b, 1)])
        place_order([(a, 1)])
        report = sales_report(mem_storage)
        assert report["total_sales_mzn"] == 1900
        assert report["total_sales_usd"] == "29.69"
        assert report["total_orders"] == 2
        assert report["products_sold"] == 4
        assert len(report["orders"]) == 2

    def test_date_filtering(self, mem_storage, make_product, place_order, monkeypatch):
        p = make_product(mem_storage, price_mzn=100)
        place_order([(p, 1)], at=datetime(2026, 1, 5, 12, 0), monkeypatch=monkeypatch)
        inside = place_order([(p, 2)], at=datetime(2026, 2, 10, 9, 30), monkeypatch=monkeypatch)
        place_order([(p, 4)], at=datetime(2026, 4, 1, 8, 0), monkeypatch=monkeypatch)

        report = sales_report(mem_storage, datetime(2026, 2, 1), datetime(2026, 2, 28, 23, 59))
        assert [o["id"] for o in report["orders"]] == [inside["id"]]
        assert report["total_sales_mzn"] == 200
        assert report["products_sold"] == 2

    def test_open_bounds(self, mem_storage, make_product, place_order, monkeypatch):
        p = make_product(mem_storage, price_mzn=100)
        place_order([(p, 1)], at=datetime(2026, 1, 5), monkeypatch=monkeypatch)
        place_order([(p, 1)], at=datetime(2026, 3, 5), monkeypatch=monkeypatch)
        assert sales_report(mem_storage, start=datetime(2026, 2, 1))["total_orders"] == 1
        assert sales_report(mem_storage, end=datetime(2026, 2, 1))["total_orders"] == 1

    def test_reflects_order_immediately(self, mem_storage, make_product, place_order):
        p = make_product(mem_storage, price_mzn=100)
        assert sales_report(mem_storage)["total_orders"] == 0
        place_order([(p, 1)])
        assert sales_report(mem_storage)["total_orders"] == 1


class TestParseReportDate:
    def test_empty(self):
        assert parse_report_date(None, "startDate") is None
        assert parse_report_date("", "startDate") is None

    def test_date_only(self):
        assert parse_report_date("2026-02-01", "startDate") == datetime(2026, 2, 1)

    def test_date_only_end_covers_day(self):
        assert parse_report_date("2026-02-01", "endDate", end_of_day=True) == datetime.combine(
            datetime(2026, 2, 1).date(), time.max
        )

    def test_timezone_is_normalised_to_utc(self):
        assert parse_report_date("2026-02-01T12:00:00+02:00", "startDate") == datetime(2026, 2, 1, 10, 0)
        assert parse_report_date("2026-02-01T12:00:00Z", "startDate") == datetime(2026, 2, 1, 12, 0)

    def test_invalid(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_report_date("last tuesday", "startDate")
        assert exc_info.value.details[0]["field"] == "startDate"
