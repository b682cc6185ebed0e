"""Tests for services.profit_share_service."""

from __future__ import annotations

import sqlite3
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import pytest

from api.exceptions import (
    AlreadyExecutedError,
    InvalidPeriodError,
    ProfitShareNotFoundError,
    ValidationError,
)
from config import settings
from services import profit_share_service, sales_order_service


class TestAmountPerOwner:
    def test_even_split(self) -> None:
        assert profit_share_service.amount_per_owner(
            Decimal("550.00"), Decimal("0.5"), 2
        ) == Decimal("137.50")

    def test_rounds_half_up(self) -> None:
        # 100.01 * 0.5 / 2 = 25.0025
        assert profit_share_service.amount_per_owner(
            Decimal("100.01"), Decimal("0.5"), 2
        ) == Decimal("25.00")
        # 0.05 * 0.5 / 1 = 0.025
        assert profit_share_service.amount_per_owner(
            Decimal("0.05"), Decimal("0.5"), 1
        ) == Decimal("0.03")


class TestExecuteMonthlyShare:
    def test_snapshot_and_lock(
        self, db: sqlite3.Connection, sample_order: dict[str, Any], batch_a: dict[str, Any]
    ) -> None:
        february = sales_order_service.create_order(
            db,
            [{"batch_id": batch_a["id"], "quantity_sold": 1}],
            order_date=datetime(2024, 2, 1, 0, 0),
        )

        share = profit_share_service.execute_monthly_share(db, 1, 2024)

        assert share["month"] == 1
        assert share["year"] == 2024
        assert share["total_profit"] == Decimal("550.00")
        assert share["share_ratio"] == Decimal("0.5")
        assert share["owner_count"] == 2
        assert share["amount_per_owner"] == Decimal("137.50")
        assert share["number_of_orders"] == 1
        assert sales_order_service.get_order(db, sample_order["id"])["is_locked"] is True
        assert sales_order_service.get_order(db, february["id"])["is_locked"] is False

    def test_owner_count_override(
        self, db: sqlite3.Connection, sample_order: dict[str, Any]
    ) -> None:
        share = profit_share_service.execute_monthly_share(db, 1, 2024, owner_count=3)
        assert share["owner_count"] == 3
        assert share["amount_per_owner"] == Decimal("91.67")

    def test_configured_defaults(
        self,
        db: sqlite3.Connection,
        sample_order: dict[str, Any],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(settings, "owner_count", 4)
        monkeypatch.setattr(settings, "profit_share_ratio", Decimal("1"))
        share = profit_share_service.execute_monthly_share(db, 1, 2024)
        assert share["amount_per_owner"] == Decimal("137.50")

    def test_empty_month(self, db: sqlite3.Connection) -> None:
        share = profit_share_service.execute_monthly_share(db, 7, 2024)
        assert share["total_profit"] == Decimal("0.00")
        assert share["amount_per_owner"] == Decimal("0.00")
        assert share["number_of_orders"] == 0

    def test_second_execution_fails_and_changes_nothing(
        self, db: sqlite3.Connection, sample_order: dict[str, Any]
    ) -> None:
        first = profit_share_service.execute_monthly_share(db, 1, 2024)
        with pytest.raises(AlreadyExecutedError):
            profit_share_service.execute_monthly_share(db, 1, 2024, owner_count=5)
        assert profit_share_service.list_profit_shares(db) == [first]
        assert sales_order_service.get_order(db, sample_order["id"])["is_locked"] is True

    def test_failed_lock_cascade_rolls_back_share(
        self,
        db: sqlite3.Connection,
        sample_order: dict[str, Any],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def fail(*args: Any, **kwargs: Any) -> int:
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr("database.models.lock_sales_orders", fail)
        with pytest.raises(sqlite3.OperationalError):
            profit_share_service.execute_monthly_share(db, 1, 2024)
        monkeypatch.undo()

        assert db.execute("SELECT COUNT(*) FROM profit_shares").fetchone()[0] == 0
        assert sales_order_service.get_order(db, sample_order["id"])["is_locked"] is False
        # the month can still be shared once the failure is gone
        share = profit_share_service.execute_monthly_share(db, 1, 2024)
        assert share["number_of_orders"] == 1

    @pytest.mark.parametrize("owner_count", [0, -1])
    def test_bad_owner_count(self, db: sqlite3.Connection, owner_count: int) -> None:
        with pytest.raises(ValidationError, match="Owner count"):
            profit_share_service.execute_monthly_share(db, 1, 2024, owner_count=owner_count)
        assert profit_share_service.list_profit_shares(db) == []

    def test_bad_period(self, db: sqlite3.Connection) -> None:
        with pytest.raises(InvalidPeriodError):
            profit_share_service.execute_monthly_share(db, 13, 2024)


class TestLookups:
    def test_get(self, db: sqlite3.Connection) -> None:
        share = profit_share_service.execute_monthly_share(db, 3, 2024)
        assert profit_share_service.get_profit_share(db, share["id"]) == share
        assert profit_share_service.get_profit_share_for_period(db, 3, 2024) == share
        assert profit_share_service.get_profit_share_for_period(db, 4, 2024) is None

    def test_get_missing(self, db: sqlite3.Connection) -> None:
        with pytest.raises(ProfitShareNotFoundError):
            profit_share_service.get_profit_share(db, 1)


class TestScheduledShare:
    @pytest.mark.parametrize(
        "today, expected",
        [
            (date(2024, 3, 24), (2, 2024)),
            (date(2024, 1, 24), (12, 2023)),
            (date(2024, 12, 1), (11, 2024)),
        ],
    )
    def test_previous_period(self, today: date, expected: tuple[int, int]) -> None:
        assert profit_share_service.previous_period(today) == expected

    def test_runs_on_share_day(
        self, db: sqlite3.Connection, sample_order: dict[str, Any]
    ) -> None:
        share = profit_share_service.run_scheduled_share(
            db, date(2024, 2, settings.profit_share_day)
        )
        assert share is not None
        assert (share["month"], share["year"]) == (1, 2024)
        assert share["total_profit"] == Decimal("550.00")

    def test_skips_other_days(self, db: sqlite3.Connection) -> None:
        day = 1 if settings.profit_share_day != 1 else 2
        assert profit_share_service.run_scheduled_share(db, date(2024, 2, day)) is None
        assert profit_share_service.list_profit_shares(db) == []

    def test_already_executed_is_skipped(
        self, db: sqlite3.Connection, caplog: pytest.LogCaptureFixture
    ) -> None:
        profit_share_service.execute_monthly_share(db, 1, 2024)
        with caplog.at_level("INFO", logger="services.profit_share_service"):
            result = profit_share_service.run_scheduled_share(
                db, date(2024, 2, settings.profit_share_day)
            )
        assert result is None
        assert "already executed" in caplog.text
        assert len(profit_share_service.list_profit_shares(db)) == 1
