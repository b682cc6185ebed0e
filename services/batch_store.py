"""Inventory batches: intake, lookup, and quantity bookkeeping.

``deduct`` and ``restore`` do not open a transaction of their own; they are
building blocks for the sales order engine and must run inside the caller's
:func:`database.connection.immediate_transaction`.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date
from decimal import Decimal
from typing import Any

import database.models as models
from api.exceptions import (
    BatchInUseError,
    BatchNotFoundError,
    DuplicateBatchError,
    InsufficientStockError,
    InventoryInvariantError,
    ValidationError,
)
from database.connection import immediate_transaction
from utils.money import ZERO, to_money

logger = logging.getLogger(__name__)


def _require_batch(conn: sqlite3.Connection, batch_id: int) -> dict[str, Any]:
    batch = models.get_batch(conn, batch_id)
    if batch is None:
        raise BatchNotFoundError(f"Batch {batch_id} not found")
    return batch


def _check_price(value: Decimal, label: str) -> Decimal:
    amount = to_money(value)
    if amount < 0:
        raise ValidationError(f"{label} cannot be negative")
    return amount


def create_batch(
    conn: sqlite3.Connection,
    batch_identifier: str,
    product_name: str,
    purchase_date: date,
    purchase_price_per_unit: Decimal,
    initial_quantity: int,
    default_selling_price_per_unit: Decimal = ZERO,
) -> dict[str, Any]:
    """Record a newly purchased batch. Stock starts at *initial_quantity*."""
    batch_identifier = batch_identifier.strip()
    product_name = product_name.strip()
    if not batch_identifier:
        raise ValidationError("Batch identifier is required")
    if not product_name:
        raise ValidationError("Product name is required")
    if initial_quantity <= 0:
        raise ValidationError("Initial quantity must be a positive integer")
    cost = _check_price(purchase_price_per_unit, "Purchase price")
    selling = _check_price(default_selling_price_per_unit, "Default selling price")

    with immediate_transaction(conn):
        if models.get_batch_by_identifier(conn, batch_identifier) is not None:
            raise DuplicateBatchError(f"Batch {batch_identifier} already exists")
        batch = models.create_batch(
            conn,
            batch_identifier,
            product_name,
            purchase_date,
            cost,
            initial_quantity,
            default_selling_price_per_unit=selling,
            commit=False,
        )

    logger.info(
        "Created batch %s (%s) with %d units at %s",
        batch_identifier,
        product_name,
        initial_quantity,
        cost,
    )
    return batch


def get_batch(conn: sqlite3.Connection, batch_id: int) -> dict[str, Any]:
    """Return a batch or raise BatchNotFoundError."""
    return _require_batch(conn, batch_id)


def list_batches(
    conn: sqlite3.Connection,
    product_name: str | None = None,
) -> list[dict[str, Any]]:
    """All batches, optionally for one product, by product then identifier."""
    return models.list_batches(conn, product_name=product_name)


def list_available(conn: sqlite3.Connection) -> list[dict[str, Any]]:
    """Batches that still have stock to sell."""
    return models.list_batches(conn, available_only=True)


def update_batch(
    conn: sqlite3.Connection,
    batch_id: int,
    product_name: str | None = None,
    default_selling_price_per_unit: Decimal | None = None,
) -> dict[str, Any]:
    """Edit the mutable descriptive fields of a batch.

    Cost, purchase date, identifier and quantities cannot be changed here.
    """
    fields: dict[str, Any] = {}
    if product_name is not None:
        if not product_name.strip():
            raise ValidationError("Product name cannot be empty")
        fields["product_name"] = product_name.strip()
    if default_selling_price_per_unit is not None:
        fields["default_selling_price_per_unit"] = _check_price(
            default_selling_price_per_unit, "Default selling price"
        )
    if not fields:
        raise ValidationError("No valid fields to update")

    with immediate_transaction(conn):
        _require_batch(conn, batch_id)
        models.update_batch(conn, batch_id, commit=False, **fields)
        batch = _require_batch(conn, batch_id)
    return batch


def delete_batch(conn: sqlite3.Connection, batch_id: int) -> None:
    """Delete a batch that no sales line references."""
    with immediate_transaction(conn):
        batch = _require_batch(conn, batch_id)
        if models.count_line_items_for_batch(conn, batch_id) > 0:
            raise BatchInUseError(
                f"Batch {batch['batch_identifier']} is referenced by sales orders"
            )
        models.delete_batch(conn, batch_id, commit=False)
    logger.info("Deleted batch %s", batch["batch_identifier"])


def deduct(conn: sqlite3.Connection, batch_id: int, quantity: int) -> dict[str, Any]:
    """Take *quantity* units out of a batch and return the updated batch.

    Must run inside an open write transaction.
    """
    batch = _require_batch(conn, batch_id)
    if quantity > batch["current_quantity"]:
        raise InsufficientStockError(
            batch["batch_identifier"], batch["current_quantity"], quantity
        )
    if not models.deduct_batch_quantity(conn, batch_id, quantity, commit=False):
        current = _require_batch(conn, batch_id)
        raise InsufficientStockError(
            current["batch_identifier"], current["current_quantity"], quantity
        )
    return _require_batch(conn, batch_id)


def restore(conn: sqlite3.Connection, batch_id: int, quantity: int) -> dict[str, Any]:
    """Put *quantity* units back into a batch and return the updated batch.

    Must run inside an open write transaction. Exceeding the batch's
    initial quantity means the caller's bookkeeping is wrong.
    """
    batch = _require_batch(conn, batch_id)
    if batch["current_quantity"] + quantity > batch["initial_quantity"]:
        msg = (
            f"Restoring {quantity} units to batch {batch['batch_identifier']} would exceed "
            f"its initial quantity of {batch['initial_quantity']}"
        )
        raise InventoryInvariantError(msg)
    if not models.restore_batch_quantity(conn, batch_id, quantity, commit=False):
        msg = f"Failed to restore stock for batch {batch['batch_identifier']}"
        raise InventoryInvariantError(msg)
    return _require_batch(conn, batch_id)
