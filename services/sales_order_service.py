"""Sales order engine.

Creating an order converts batch stock into sold line items: every line is
priced through the discount calculator, its profit is computed against the
batch cost, stock is deducted, and the order is written, all inside one
``BEGIN IMMEDIATE`` transaction. Either the whole order lands or nothing
does.
"""

from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict
from datetime import date, datetime, time
from typing import Any

import database.models as models
from api.exceptions import (
    BatchNotFoundError,
    InsufficientStockError,
    OrderNotFoundError,
    ValidationError,
)
from database.connection import immediate_transaction
from services import batch_store, period_lock
from services.discount import apply_discount, discount_from_wire, line_profit
from utils.money import ZERO, to_money

logger = logging.getLogger(__name__)


def _normalise_order_date(order_date: datetime | None) -> datetime:
    """Local, naive, second precision."""
    if order_date is None:
        order_date = datetime.now()
    elif order_date.tzinfo is not None:
        order_date = order_date.astimezone().replace(tzinfo=None)
    return order_date.replace(microsecond=0)


def _check_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Quantity sold must be a positive integer")
    return quantity


def _load_batches(
    conn: sqlite3.Connection,
    requested: dict[int, int],
) -> dict[int, dict[str, Any]]:
    """Fetch every referenced batch and confirm it can cover the request."""
    batches: dict[int, dict[str, Any]] = {}
    missing: list[int] = []
    for batch_id in requested:
        batch = models.get_batch(conn, batch_id)
        if batch is None:
            missing.append(batch_id)
        else:
            batches[batch_id] = batch
    if missing:
        ids = ", ".join(str(i) for i in missing)
        raise BatchNotFoundError(f"Batch(es) not found: {ids}")

    for batch_id, quantity in requested.items():
        batch = batches[batch_id]
        if quantity > batch["current_quantity"]:
            raise InsufficientStockError(
                batch["batch_identifier"], batch["current_quantity"], quantity
            )
    return batches


def _price_line(item: dict[str, Any], batch: dict[str, Any]) -> dict[str, Any]:
    """Build the stored line item record, with batch snapshots and profit."""
    quantity = item["quantity_sold"]
    selling_price = item.get("selling_price_per_unit")
    if selling_price is None:
        selling_price = batch["default_selling_price_per_unit"]
    selling_price = to_money(selling_price)
    if selling_price < 0:
        raise ValidationError("Selling price per unit must be non-negative")

    discount = discount_from_wire(item.get("discount_type"), item.get("discount_value"))
    priced = apply_discount(selling_price, quantity, discount)
    return {
        "batch_id": batch["id"],
        "batch_identifier": batch["batch_identifier"],
        "product_name": batch["product_name"],
        "purchase_price_per_unit": batch["purchase_price_per_unit"],
        "quantity_sold": quantity,
        "selling_price_per_unit": selling_price,
        "discount_type": discount.type.value,
        "discount_value": discount.value,
        "final_price_per_unit": priced.final_unit_price,
        "subtotal": priced.subtotal,
        "line_profit": line_profit(
            priced.final_unit_price, batch["purchase_price_per_unit"], quantity
        ),
    }


def create_order(
    conn: sqlite3.Connection,
    line_items: list[dict[str, Any]],
    customer_name: str | None = None,
    order_date: datetime | None = None,
) -> dict[str, Any]:
    """Create a sales order and deduct its stock atomically.

    Each entry of *line_items* has ``batch_id``, ``quantity_sold`` and
    optionally ``selling_price_per_unit`` (defaults to the batch's default
    selling price), ``discount_type`` and ``discount_value``.

    Returns the stored order with its line items.
    """
    if not line_items:
        raise ValidationError("Sales order must contain at least one line item")

    requested: dict[int, int] = defaultdict(int)
    for item in line_items:
        requested[item["batch_id"]] += _check_quantity(item.get("quantity_sold"))

    order_date = _normalise_order_date(order_date)
    customer_name = (customer_name or "").strip() or None

    with immediate_transaction(conn):
        period_lock.assert_period_open(conn, order_date)
        batches = _load_batches(conn, requested)
        records = [_price_line(item, batches[item["batch_id"]]) for item in line_items]
        total_profit = sum((r["line_profit"] for r in records), ZERO)

        for batch_id, quantity in requested.items():
            batch_store.deduct(conn, batch_id, quantity)

        order_id = models.create_sales_order(
            conn, order_date, total_profit, customer_name=customer_name, commit=False
        )
        models.create_line_items_bulk(conn, order_id, records, commit=False)
        order = get_order(conn, order_id)

    logger.info(
        "Created sales order %d with %d line(s), profit %s",
        order_id,
        len(records),
        total_profit,
    )
    return order


def get_order(conn: sqlite3.Connection, order_id: int) -> dict[str, Any]:
    """Return an order with its line items or raise OrderNotFoundError."""
    order = models.get_sales_order_with_items(conn, order_id)
    if order is None:
        raise OrderNotFoundError(f"Sales order {order_id} not found")
    return order


def _range_bound(value: date | datetime | None, *, end: bool) -> str | None:
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.combine(value, time(23, 59, 59) if end else time.min)
    elif value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return models.format_timestamp(value)


def list_orders(
    conn: sqlite3.Connection,
    start_date: date | datetime | None = None,
    end_date: date | datetime | None = None,
    is_locked: bool | None = None,
    customer_name: str | None = None,
) -> list[dict[str, Any]]:
    """Orders newest first, optionally filtered.

    A date-only *end_date* includes that whole day.
    """
    start = _range_bound(start_date, end=False)
    end = _range_bound(end_date, end=True)
    if start is not None and end is not None and start > end:
        raise ValidationError("startDate must not be after endDate")
    return models.list_sales_orders(
        conn,
        start_date=start,
        end_date=end,
        is_locked=is_locked,
        customer_name=customer_name or None,
    )


def delete_order(conn: sqlite3.Connection, order_id: int) -> None:
    """Delete an unlocked order and return its stock to the batches."""
    with immediate_transaction(conn):
        order = models.get_sales_order_with_items(conn, order_id)
        if order is None:
            raise OrderNotFoundError(f"Sales order {order_id} not found")
        period_lock.assert_order_unlocked(conn, order)

        for item in order["line_items"]:
            batch_store.restore(conn, item["batch_id"], item["quantity_sold"])
        models.delete_sales_order(conn, order_id, commit=False)

    logger.info(
        "Deleted sales order %d and restored %d line(s) of stock",
        order_id,
        len(order["line_items"]),
    )

