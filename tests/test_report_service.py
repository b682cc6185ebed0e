"""Tests for services.report_service."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from decimal import Decimal
from typing import Any

import pytest

from api.exceptions import InvalidPeriodError
from services import report_service, sales_order_service


def _sell(db: sqlite3.Connection, batch: dict[str, Any], when: datetime, qty: int = 1) -> dict:
    return sales_order_service.create_order(
        db, [{"batch_id": batch["id"], "quantity_sold": qty}], order_date=when
    )


class TestMonthBounds:
    def test_january(self) -> None:
        start, end = report_service.month_bounds(1, 2024)
        assert start == datetime(2024, 1, 1, 0, 0, 0)
        assert end == datetime(2024, 1, 31, 23, 59, 59, 999999)

    def test_leap_february(self) -> None:
        _, end = report_service.month_bounds(2, 2024)
        assert end.day == 29
        _, end = report_service.month_bounds(2, 2023)
        assert end.day == 28

    def test_december(self) -> None:
        start, end = report_service.month_bounds(12, 2025)
        assert start == datetime(2025, 12, 1)
        assert end.date() == datetime(2025, 12, 31).date()

    def test_storage_bounds(self) -> None:
        assert report_service.month_storage_bounds(4, 2024) == (
            "2024-04-01 00:00:00",
            "2024-04-30 23:59:59",
        )

    @pytest.mark.parametrize("month, year", [(0, 2024), (13, 2024), (1, 2019)])
    def test_invalid_period(self, month: int, year: int) -> None:
        with pytest.raises(InvalidPeriodError):
            report_service.month_bounds(month, year)


class TestMonthlyProfitSummary:
    def test_empty_month(self, db: sqlite3.Connection) -> None:
        summary = report_service.monthly_profit_summary(db, 6, 2024)
        assert summary["total_profit"] == Decimal("0.00")
        assert summary["number_of_orders"] == 0
        assert summary["period_start"] == datetime(2024, 6, 1)

    def test_sums_orders_within_month(
        self, db: sqlite3.Connection, sample_order: dict[str, Any], batch_a: dict[str, Any]
    ) -> None:
        _sell(db, batch_a, datetime(2024, 1, 31, 23, 59, 59))  # profit 50
        _sell(db, batch_a, datetime(2024, 2, 1, 0, 0, 0))  # next month
        _sell(db, batch_a, datetime(2023, 12, 31, 23, 59, 59))  # previous month

        summary = report_service.monthly_profit_summary(db, 1, 2024)
        assert summary["total_profit"] == Decimal("600.00")
        assert summary["number_of_orders"] == 2

    def test_negative_profit_month(self, db: sqlite3.Connection, batch_a: dict[str, Any]) -> None:
        sales_order_service.create_order(
            db,
            [
                {
                    "batch_id": batch_a["id"],
                    "quantity_sold": 2,
                    "selling_price_per_unit": Decimal("90.00"),
                }
            ],
            order_date=datetime(2024, 5, 5),
        )
        summary = report_service.monthly_profit_summary(db, 5, 2024)
        assert summary["total_profit"] == Decimal("-20.00")

    def test_invalid_period(self, db: sqlite3.Connection) -> None:
        with pytest.raises(InvalidPeriodError):
            report_service.monthly_profit_summary(db, 13, 2024)


class TestInventoryReport:
    def test_values_and_depletion(
        self,
        db: sqlite3.Connection,
        sample_order: dict[str, Any],
        batch_b: dict[str, Any],
    ) -> None:
        _sell(db, batch_b, datetime(2024, 2, 1), qty=15)
        report = report_service.inventory_report(db)
        by_id = {item["batch_identifier"]: item for item in report["items"]}

        assert by_id["BATCH-B"]["is_depleted"] is True
        assert by_id["BATCH-B"]["inventory_value"] == Decimal("0.00")
        assert by_id["BATCH-A"]["is_depleted"] is False
        assert by_id["BATCH-A"]["inventory_value"] == Decimal("4000.00")
        assert report["total_inventory_value"] == Decimal("4000.00")

    def test_ordering(
        self, db: sqlite3.Connection, batch_a: dict[str, Any], batch_b: dict[str, Any]
    ) -> None:
        names = [item["product_name"] for item in report_service.inventory_report(db)["items"]]
        assert names == ["Gadget", "Widget"]

    def test_filter_by_product(
        self, db: sqlite3.Connection, batch_a: dict[str, Any], batch_b: dict[str, Any]
    ) -> None:
        report = report_service.inventory_report(db, product_name="Gadget")
        assert [item["batch_identifier"] for item in report["items"]] == ["BATCH-B"]
        assert report["total_inventory_value"] == Decimal("1600.00")

    def test_empty(self, db: sqlite3.Connection) -> None:
        report = report_service.inventory_report(db)
        assert report == {"items": [], "total_inventory_value": Decimal("0.00")}
