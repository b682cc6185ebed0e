"""Period lock guard.

A calendar month is closed once a profit share has been executed for it.
Orders dated in a closed month are locked: they cannot be created, changed,
or deleted. The ``is_locked`` flag on each order is written only by the
profit share cascade; this module is the one place that answers whether an
order or a period is locked.
"""

from __future__ import annotations

import sqlite3
from datetime import date, datetime
from typing import Any

import database.models as models
from api.exceptions import OrderLockedError, PeriodLockedError


def is_period_locked(conn: sqlite3.Connection, month: int, year: int) -> bool:
    """True when a profit share exists for (month, year)."""
    return models.get_profit_share_by_period(conn, month, year) is not None


def assert_period_open(conn: sqlite3.Connection, order_date: datetime | date) -> None:
    """Raise PeriodLockedError if *order_date* falls inside a closed month."""
    if is_period_locked(conn, order_date.month, order_date.year):
        raise PeriodLockedError(
            f"Profit for {order_date.month:02d}/{order_date.year} has already been "
            "shared; orders in this period are locked"
        )


def is_order_locked(conn: sqlite3.Connection, order: dict[str, Any]) -> bool:
    """An order is locked if flagged or if its month has been closed."""
    if order["is_locked"]:
        return True
    order_date = order["order_date"]
    return is_period_locked(conn, order_date.month, order_date.year)


def assert_order_unlocked(conn: sqlite3.Connection, order: dict[str, Any]) -> None:
    """Raise OrderLockedError if *order* may no longer be modified."""
    if is_order_locked(conn, order):
        raise OrderLockedError(
            f"Sales order {order['id']} is locked and cannot be modified or deleted"
        )
