"""Monthly profit sharing.

Executing a share for a month snapshots that month's profit, records how
much each owner receives, and locks every order in the month. It happens at
most once per month and cannot be undone.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import database.models as models
from api.exceptions import (
    AlreadyExecutedError,
    ProfitShareNotFoundError,
    ValidationError,
)
from config import settings
from database.connection import immediate_transaction
from services import report_service
from utils.money import CENT

logger = logging.getLogger(__name__)


def amount_per_owner(total_profit: Decimal, share_ratio: Decimal, owner_count: int) -> Decimal:
    """Each owner's cut of the distributed fraction, rounded half-up to cents."""
    return (total_profit * share_ratio / owner_count).quantize(CENT, rounding=ROUND_HALF_UP)


def execute_monthly_share(
    conn: sqlite3.Connection,
    month: int,
    year: int,
    owner_count: int | None = None,
    share_ratio: Decimal | None = None,
) -> dict[str, Any]:
    """Distribute a month's profit and lock its orders.

    *owner_count* and *share_ratio* default to the configured values.
    Raises AlreadyExecutedError if the month has been shared before.
    """
    report_service.validate_period(month, year)
    owner_count = settings.owner_count if owner_count is None else owner_count
    share_ratio = settings.profit_share_ratio if share_ratio is None else Decimal(share_ratio)
    if isinstance(owner_count, bool) or owner_count < 1:
        raise ValidationError("Owner count must be a positive integer")
    if not Decimal(0) < share_ratio <= Decimal(1):
        raise ValidationError("Share ratio must be greater than 0 and at most 1")

    with immediate_transaction(conn):
        if models.get_profit_share_by_period(conn, month, year) is not None:
            raise AlreadyExecutedError(
                f"Profit share already executed for {month:02d}/{year}"
            )
        summary = report_service.monthly_profit_summary(conn, month, year)
        share = models.create_profit_share(
            conn,
            month,
            year,
            total_profit=summary["total_profit"],
            share_ratio=share_ratio,
            owner_count=owner_count,
            amount_per_owner=amount_per_owner(summary["total_profit"], share_ratio, owner_count),
            number_of_orders=summary["number_of_orders"],
            execution_date=datetime.now(),
            commit=False,
        )
        start, end = report_service.month_storage_bounds(month, year)
        locked = models.lock_sales_orders(conn, start, end, commit=False)

    logger.info(
        "Executed profit share for %02d/%d: total %s, %s per owner, %d order(s) locked",
        month,
        year,
        share["total_profit"],
        share["amount_per_owner"],
        locked,
    )
    return share


def list_profit_shares(conn: sqlite3.Connection) -> list[dict[str, Any]]:
    """Every executed share, most recent first."""
    return models.list_profit_shares(conn)


def get_profit_share(conn: sqlite3.Connection, share_id: int) -> dict[str, Any]:
    """Return a profit share or raise ProfitShareNotFoundError."""
    share = models.get_profit_share(conn, share_id)
    if share is None:
        raise ProfitShareNotFoundError(f"Profit share {share_id} not found")
    return share


def get_profit_share_for_period(
    conn: sqlite3.Connection,
    month: int,
    year: int,
) -> dict[str, Any] | None:
    """The share executed for (month, year), or None."""
    report_service.validate_period(month, year)
    return models.get_profit_share_by_period(conn, month, year)


# ---------------------------------------------------------------------------
# Scheduled execution
# ---------------------------------------------------------------------------


def previous_period(today: date) -> tuple[int, int]:
    """(month, year) of the calendar month before *today*."""
    if today.month == 1:
        return 12, today.year - 1
    return today.month - 1, today.year


def run_scheduled_share(
    conn: sqlite3.Connection,
    today: date | None = None,
) -> dict[str, Any] | None:
    """Execute last month's share if *today* is the configured share day.

    Meant to be run once a day by an external scheduler. Returns the new
    share, or None when nothing was executed.
    """
    today = today or date.today()
    if today.day != settings.profit_share_day:
        logger.info(
            "Day %d is not profit share day (%d); skipping",
            today.day,
            settings.profit_share_day,
        )
        return None

    month, year = previous_period(today)
    try:
        return execute_monthly_share(conn, month, year)
    except AlreadyExecutedError:
        logger.info("Profit share for %02d/%d already executed; skipping", month, year)
        return None
