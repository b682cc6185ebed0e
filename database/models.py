"""Database CRUD operations.

Implements all data-access functions for batches, sales orders, sales order
line items, profit shares, and the reporting queries built on them.

Money columns are stored as integer cents (``*_cents``). Every function in
this module takes and returns ``Decimal`` amounts; rows come back as plain
dicts with the ``_cents`` suffix dropped, e.g. ``purchase_price_per_unit``.

Write functions accept ``commit=False`` so that services can compose them
inside :func:`database.connection.immediate_transaction`.
"""

from __future__ import annotations

import sqlite3
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from utils.money import from_cents, from_microcents, to_cents, to_microcents, to_money

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _rows_to_list(rows: list[sqlite3.Row]) -> list[dict[str, Any]]:
    """Convert a list of sqlite3.Row to a list of dicts."""
    return [dict(r) for r in rows]


def _now() -> str:
    """Return the current local timestamp in storage format."""
    return datetime.now().strftime(TIMESTAMP_FORMAT)


def format_timestamp(value: datetime) -> str:
    """Render a datetime in the storage format used for ``order_date``."""
    return value.strftime(TIMESTAMP_FORMAT)


def _decode_money(record: dict[str, Any]) -> dict[str, Any]:
    """Replace every ``x_cents`` key with an ``x`` Decimal amount, in place."""
    for key in [k for k in record if k.endswith("_cents")]:
        record[key[: -len("_cents")]] = from_cents(record.pop(key))
    return record


def _build_update(
    table: str,
    row_id: int,
    fields: dict[str, Any],
    allowed: set[str],
) -> tuple[str, list[Any]]:
    """Build a dynamic UPDATE statement from validated field names.

    Only columns in *allowed* are accepted. This whitelist keeps column names
    safe to interpolate into the query.

    Returns (sql, params) ready for ``conn.execute()``.
    """
    to_set: dict[str, Any] = {}
    for key, value in fields.items():
        if key in allowed:
            to_set[key] = value
    if not to_set:
        msg = "No valid fields to update"
        raise ValueError(msg)

    clauses = [f"{col} = ?" for col in to_set]
    params = list(to_set.values())
    params.append(row_id)
    sql = f"UPDATE {table} SET {', '.join(clauses)} WHERE id = ?"  # noqa: S608
    return sql, params


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------

_BATCH_UPDATE_ALLOWED = {
    "product_name",
    "default_selling_price_per_unit_cents",
    "updated_at",
}


def _decode_batch(record: dict[str, Any]) -> dict[str, Any]:
    _decode_money(record)
    record["purchase_date"] = date.fromisoformat(record["purchase_date"])
    return record


def _fetch_batch(conn: sqlite3.Connection, column: str, value: Any) -> dict[str, Any] | None:
    row = conn.execute(
        f"SELECT * FROM batches WHERE {column} = ?", (value,)  # noqa: S608
    ).fetchone()
    return None if row is None else _decode_batch(dict(row))


def create_batch(
    conn: sqlite3.Connection,
    batch_identifier: str,
    product_name: str,
    purchase_date: date,
    purchase_price_per_unit: Decimal,
    initial_quantity: int,
    default_selling_price_per_unit: Decimal = Decimal(0),
    commit: bool = True,
) -> dict[str, Any]:
    """Insert a new batch with ``current_quantity = initial_quantity``.

    Raises sqlite3.IntegrityError on a duplicate batch_identifier.
    """
    cur = conn.execute(
        """
        INSERT INTO batches
            (batch_identifier, product_name, purchase_date,
             purchase_price_per_unit_cents, default_selling_price_per_unit_cents,
             initial_quantity, current_quantity)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            batch_identifier,
            product_name,
            purchase_date.isoformat(),
            to_cents(purchase_price_per_unit),
            to_cents(default_selling_price_per_unit),
            initial_quantity,
            initial_quantity,
        ),
    )
    if commit:
        conn.commit()
    row = conn.execute("SELECT * FROM batches WHERE id = ?", (cur.lastrowid,)).fetchone()
    return _decode_batch(dict(row))


def get_batch(conn: sqlite3.Connection, batch_id: int) -> dict[str, Any] | None:
    """Return a single batch by ID."""
    return _fetch_batch(conn, "id", batch_id)


def get_batch_by_identifier(
    conn: sqlite3.Connection,
    batch_identifier: str,
) -> dict[str, Any] | None:
    """Return a single batch by its business identifier."""
    return _fetch_batch(conn, "batch_identifier", batch_identifier)


def list_batches(
    conn: sqlite3.Connection,
    product_name: str | None = None,
    available_only: bool = False,
) -> list[dict[str, Any]]:
    """Return batches ordered by product name, then batch identifier."""
    sql = "SELECT * FROM batches"
    conditions: list[str] = []
    params: list[Any] = []

    if product_name is not None:
        conditions.append("product_name = ?")
        params.append(product_name)
    if available_only:
        conditions.append("current_quantity > 0")

    if conditions:
        sql += " WHERE " + " AND ".join(conditions)
    sql += " ORDER BY product_name, batch_identifier"

    return [_decode_batch(r) for r in _rows_to_list(conn.execute(sql, params).fetchall())]


def update_batch(
    conn: sqlite3.Connection,
    batch_id: int,
    commit: bool = True,
    **fields: Any,
) -> dict[str, Any] | None:
    """Update a batch's editable fields and return the updated row.

    Accepts ``product_name`` and ``default_selling_price_per_unit`` (Decimal).
    """
    if "default_selling_price_per_unit" in fields:
        fields["default_selling_price_per_unit_cents"] = to_cents(
            fields.pop("default_selling_price_per_unit")
        )
    fields["updated_at"] = _now()
    sql, params = _build_update("batches", batch_id, fields, _BATCH_UPDATE_ALLOWED)
    conn.execute(sql, params)
    if commit:
        conn.commit()
    return get_batch(conn, batch_id)


def deduct_batch_quantity(
    conn: sqlite3.Connection,
    batch_id: int,
    quantity: int,
    commit: bool = True,
) -> bool:
    """Decrement current_quantity only if enough stock remains.

    Returns False (nothing changed) when the batch is missing or short.
    """
    cur = conn.execute(
        """
        UPDATE batches
        SET current_quantity = current_quantity - ?, updated_at = ?
        WHERE id = ? AND current_quantity >= ?
        """,
        (quantity, _now(), batch_id, quantity),
    )
    if commit:
        conn.commit()
    return cur.rowcount == 1


def restore_batch_quantity(
    conn: sqlite3.Connection,
    batch_id: int,
    quantity: int,
    commit: bool = True,
) -> bool:
    """Increment current_quantity only if it stays within initial_quantity."""
    cur = conn.execute(
        """
        UPDATE batches
        SET current_quantity = current_quantity + ?, updated_at = ?
        WHERE id = ? AND current_quantity + ? <= initial_quantity
        """,
        (quantity, _now(), batch_id, quantity),
    )
    if commit:
        conn.commit()
    return cur.rowcount == 1


def count_line_items_for_batch(conn: sqlite3.Connection, batch_id: int) -> int:
    """Number of sales order line items that reference *batch_id*."""
    row = conn.execute(
        "SELECT COUNT(*) FROM sales_order_line_items WHERE batch_id = ?", (batch_id,)
    ).fetchone()
    return int(row[0])


def delete_batch(conn: sqlite3.Connection, batch_id: int, commit: bool = True) -> bool:
    """Delete a batch by ID. Returns True if a row was deleted."""
    cur = conn.execute("DELETE FROM batches WHERE id = ?", (batch_id,))
    if commit:
        conn.commit()
    return cur.rowcount > 0


# ---------------------------------------------------------------------------
# Sales Orders
# ---------------------------------------------------------------------------


def _decode_line_item(record: dict[str, Any]) -> dict[str, Any]:
    _decode_money(record)
    record["final_price_per_unit"] = from_microcents(
        record.pop("final_price_per_unit_microcents")
    )
    record["discount_value"] = to_money(record["discount_value"])
    return record


def _decode_order(record: dict[str, Any]) -> dict[str, Any]:
    _decode_money(record)
    record["order_date"] = datetime.fromisoformat(record["order_date"])
    record["is_locked"] = bool(record["is_locked"])
    return record


def create_sales_order(
    conn: sqlite3.Connection,
    order_date: datetime,
    total_profit: Decimal,
    customer_name: str | None = None,
    commit: bool = True,
) -> int:
    """Insert a sales order header and return its ID."""
    now = _now()
    cur = conn.execute(
        """
        INSERT INTO sales_orders
            (order_date, customer_name, total_profit_cents, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        (format_timestamp(order_date), customer_name, to_cents(total_profit), now, now),
    )
    if commit:
        conn.commit()
    return int(cur.lastrowid or 0)


def create_line_items_bulk(
    conn: sqlite3.Connection,
    sales_order_id: int,
    items: list[dict[str, Any]],
    commit: bool = True,
) -> None:
    """Insert the line items of one sales order in a single batch."""
    rows_data = [
        (
            sales_order_id,
            item["batch_id"],
            item["batch_identifier"],
            item["product_name"],
            to_cents(item["purchase_price_per_unit"]),
            item["quantity_sold"],
            to_cents(item["selling_price_per_unit"]),
            item["discount_type"],
            str(to_money(item["discount_value"])),
            to_microcents(item["final_price_per_unit"]),
            to_cents(item["subtotal"]),
            to_cents(item["line_profit"]),
        )
        for item in items
    ]
    conn.executemany(
        """
        INSERT INTO sales_order_line_items
            (sales_order_id, batch_id, batch_identifier, product_name,
             purchase_price_per_unit_cents, quantity_sold,
             selling_price_per_unit_cents, discount_type, discount_value,
             final_price_per_unit_microcents, subtotal_cents, line_profit_cents)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        rows_data,
    )
    if commit:
        conn.commit()


def get_line_items(conn: sqlite3.Connection, sales_order_id: int) -> list[dict[str, Any]]:
    """Return all line items for a sales order, ordered by id."""
    return [
        _decode_line_item(r)
        for r in _rows_to_list(
            conn.execute(
                "SELECT * FROM sales_order_line_items WHERE sales_order_id = ? ORDER BY id",
                (sales_order_id,),
            ).fetchall()
        )
    ]


def get_sales_order(conn: sqlite3.Connection, order_id: int) -> dict[str, Any] | None:
    """Return a sales order without its line items."""
    row = conn.execute("SELECT * FROM sales_orders WHERE id = ?", (order_id,)).fetchone()
    return None if row is None else _decode_order(dict(row))


def get_sales_order_with_items(
    conn: sqlite3.Connection,
    order_id: int,
) -> dict[str, Any] | None:
    """Return a sales order with its line items nested under 'line_items'."""
    order = get_sales_order(conn, order_id)
    if order is None:
        return None
    order["line_items"] = get_line_items(conn, order_id)
    return order


def list_sales_orders(
    conn: sqlite3.Connection,
    start_date: str | None = None,
    end_date: str | None = None,
    is_locked: bool | None = None,
    customer_name: str | None = None,
) -> list[dict[str, Any]]:
    """Return sales orders with line items, newest first.

    *start_date* and *end_date* are inclusive storage-format timestamps.
    *customer_name* matches as a case-insensitive substring.
    """
    sql = "SELECT * FROM sales_orders"
    conditions: list[str] = []
    params: list[Any] = []

    if start_date is not None:
        conditions.append("order_date >= ?")
        params.append(start_date)
    if end_date is not None:
        conditions.append("order_date <= ?")
        params.append(end_date)
    if is_locked is not None:
        conditions.append("is_locked = ?")
        params.append(1 if is_locked else 0)
    if customer_name is not None:
        conditions.append("customer_name LIKE ?")
        params.append(f"%{customer_name}%")

    if conditions:
        sql += " WHERE " + " AND ".join(conditions)
    sql += " ORDER BY order_date DESC, id DESC"

    orders = [_decode_order(r) for r in _rows_to_list(conn.execute(sql, params).fetchall())]
    if not orders:
        return []

    by_id: dict[int, dict[str, Any]] = {}
    for order in orders:
        order["line_items"] = []
        by_id[order["id"]] = order

    placeholders = ", ".join("?" for _ in by_id)
    item_rows = conn.execute(
        f"""
        SELECT * FROM sales_order_line_items
        WHERE sales_order_id IN ({placeholders})
        ORDER BY id
        """,  # noqa: S608
        list(by_id),
    ).fetchall()
    for item in _rows_to_list(item_rows):
        by_id[item["sales_order_id"]]["line_items"].append(_decode_line_item(item))

    return orders


def delete_sales_order(conn: sqlite3.Connection, order_id: int, commit: bool = True) -> bool:
    """Delete a sales order (line items cascade). Returns True if deleted."""
    cur = conn.execute("DELETE FROM sales_orders WHERE id = ?", (order_id,))
    if commit:
        conn.commit()
    return cur.rowcount > 0


def lock_sales_orders(
    conn: sqlite3.Connection,
    start: str,
    end: str,
    commit: bool = True,
) -> int:
    """Set is_locked on every unlocked order dated within [start, end].

    Returns the number of orders locked.
    """
    cur = conn.execute(
        """
        UPDATE sales_orders
        SET is_locked = 1, updated_at = ?
        WHERE order_date BETWEEN ? AND ? AND is_locked = 0
        """,
        (_now(), start, end),
    )
    if commit:
        conn.commit()
    return cur.rowcount


# ---------------------------------------------------------------------------
# Profit Shares
# ---------------------------------------------------------------------------


def _decode_profit_share(record: dict[str, Any]) -> dict[str, Any]:
    _decode_money(record)
    record["share_ratio"] = Decimal(record["share_ratio"])
    record["execution_date"] = datetime.fromisoformat(record["execution_date"])
    return record


def create_profit_share(
    conn: sqlite3.Connection,
    month: int,
    year: int,
    total_profit: Decimal,
    share_ratio: Decimal,
    owner_count: int,
    amount_per_owner: Decimal,
    number_of_orders: int,
    execution_date: datetime,
    commit: bool = True,
) -> dict[str, Any]:
    """Insert a profit share record and return it.

    Raises sqlite3.IntegrityError if the period already has one.
    """
    cur = conn.execute(
        """
        INSERT INTO profit_shares
            (month, year, total_profit_cents, share_ratio, owner_count,
             amount_per_owner_cents, number_of_orders, execution_date)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            month,
            year,
            to_cents(total_profit),
            str(share_ratio),
            owner_count,
            to_cents(amount_per_owner),
            number_of_orders,
            format_timestamp(execution_date),
        ),
    )
    if commit:
        conn.commit()
    row = conn.execute("SELECT * FROM profit_shares WHERE id = ?", (cur.lastrowid,)).fetchone()
    return _decode_profit_share(dict(row))


def get_profit_share(conn: sqlite3.Connection, share_id: int) -> dict[str, Any] | None:
    """Return a single profit share by ID."""
    row = conn.execute("SELECT * FROM profit_shares WHERE id = ?", (share_id,)).fetchone()
    return None if row is None else _decode_profit_share(dict(row))


def get_profit_share_by_period(
    conn: sqlite3.Connection,
    month: int,
    year: int,
) -> dict[str, Any] | None:
    """Return the profit share executed for a month, if any."""
    row = conn.execute(
        "SELECT * FROM profit_shares WHERE month = ? AND year = ?",
        (month, year),
    ).fetchone()
    return None if row is None else _decode_profit_share(dict(row))


def list_profit_shares(conn: sqlite3.Connection) -> list[dict[str, Any]]:
    """Return all profit shares, most recent execution first."""
    return [
        _decode_profit_share(r)
        for r in _rows_to_list(
            conn.execute(
                "SELECT * FROM profit_shares ORDER BY execution_date DESC, id DESC"
            ).fetchall()
        )
    ]


# ---------------------------------------------------------------------------
# Reporting Queries
# ---------------------------------------------------------------------------


def get_inventory_summary(
    conn: sqlite3.Connection,
    product_name: str | None = None,
) -> list[dict[str, Any]]:
    """Batch-level inventory with depletion flag and value at cost."""
    sql = """
        SELECT
            b.*,
            CASE WHEN b.current_quantity = 0 THEN 1 ELSE 0 END  AS is_depleted,
            b.current_quantity * b.purchase_price_per_unit_cents
                                                            AS inventory_value_cents
        FROM batches b
    """
    params: list[Any] = []
    if product_name is not None:
        sql += " WHERE b.product_name = ?"
        params.append(product_name)
    sql += " ORDER BY b.product_name, b.batch_identifier"

    rows = []
    for record in _rows_to_list(conn.execute(sql, params).fetchall()):
        _decode_batch(record)
        record["is_depleted"] = bool(record["is_depleted"])
        rows.append(record)
    return rows


def get_profit_totals(
    conn: sqlite3.Connection,
    start: str,
    end: str,
) -> dict[str, Any]:
    """Total profit and order count for orders dated within [start, end]."""
    row = conn.execute(
        """
        SELECT
            COALESCE(SUM(total_profit_cents), 0)    AS total_profit_cents,
            COUNT(id)                               AS number_of_orders
        FROM sales_orders
        WHERE order_date BETWEEN ? AND ?
        """,
        (start, end),
    ).fetchone()
    return {
        "total_profit": from_cents(row["total_profit_cents"]),
        "number_of_orders": int(row["number_of_orders"]),
    }
