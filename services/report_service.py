"""Inventory and monthly profit reports.

Reports are computed on demand and never stored.
"""

from __future__ import annotations

import calendar
import sqlite3
from datetime import datetime, time
from typing import Any

import database.models as models
from api.exceptions import InvalidPeriodError
from utils.money import ZERO

MIN_REPORT_YEAR = 2020

_END_OF_DAY = time(23, 59, 59, 999999)


def validate_period(month: int, year: int) -> None:
    """Raise InvalidPeriodError unless 1 <= month <= 12 and year >= 2020."""
    if not 1 <= month <= 12:
        raise InvalidPeriodError("Month must be between 1 and 12")
    if year < MIN_REPORT_YEAR:
        raise InvalidPeriodError(f"Year must be {MIN_REPORT_YEAR} or later")


def month_bounds(month: int, year: int) -> tuple[datetime, datetime]:
    """Inclusive local bounds: first instant and last instant of the month."""
    validate_period(month, year)
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1)
    end = datetime.combine(datetime(year, month, last_day).date(), _END_OF_DAY)
    return start, end


def month_storage_bounds(month: int, year: int) -> tuple[str, str]:
    """:func:`month_bounds` rendered for comparison against ``order_date``."""
    start, end = month_bounds(month, year)
    return models.format_timestamp(start), models.format_timestamp(end)


def inventory_report(
    conn: sqlite3.Connection,
    product_name: str | None = None,
) -> dict[str, Any]:
    """All batches with depletion state and their value at cost."""
    items = models.get_inventory_summary(conn, product_name=product_name or None)
    total = sum((item["inventory_value"] for item in items), ZERO)
    return {"items": items, "total_inventory_value": total}


def monthly_profit_summary(conn: sqlite3.Connection, month: int, year: int) -> dict[str, Any]:
    """Total profit and order count for one calendar month.

    Runs on whatever connection it is given, so the profit share engine can
    call it inside its own write transaction.
    """
    start, end = month_bounds(month, year)
    totals = models.get_profit_totals(
        conn, models.format_timestamp(start), models.format_timestamp(end)
    )
    return {
        "month": month,
        "year": year,
        "total_profit": totals["total_profit"],
        "number_of_orders": totals["number_of_orders"],
        "period_start": start,
        "period_end": end,
    }
