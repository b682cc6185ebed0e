"""Concurrent order placement against a file-backed database."""

from __future__ import annotations

import threading
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from api.exceptions import InsufficientStockError
from database.connection import get_db, init_database
from services import batch_store, profit_share_service, sales_order_service


def _setup(tmp_path: Path) -> tuple[str, int]:
    db_path = str(tmp_path / "shop.db")
    init_database(db_path)
    conn = get_db(db_path)
    try:
        batch = batch_store.create_batch(
            conn,
            "BATCH-RACE",
            "Widget",
            date(2024, 1, 1),
            Decimal("10.00"),
            20,
            Decimal("15.00"),
        )
    finally:
        conn.close()
    return db_path, batch["id"]


def _run_concurrently(workers: int, target) -> list[object]:
    barrier = threading.Barrier(workers)
    results: list[object] = [None] * workers

    def run(index: int) -> None:
        barrier.wait()
        try:
            results[index] = target()
        except Exception as exc:  # collected for assertions
            results[index] = exc

    threads = [threading.Thread(target=run, args=(i,)) for i in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results


def test_competing_orders_never_oversell(tmp_path: Path) -> None:
    db_path, batch_id = _setup(tmp_path)

    def place_order() -> dict:
        conn = get_db(db_path, timeout=10.0)
        try:
            return sales_order_service.create_order(
                conn,
                [{"batch_id": batch_id, "quantity_sold": 15}],
                order_date=datetime(2024, 3, 1, 12, 0),
            )
        finally:
            conn.close()

    results = _run_concurrently(2, place_order)

    successes = [r for r in results if isinstance(r, dict)]
    failures = [r for r in results if isinstance(r, InsufficientStockError)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert failures[0].available == 5

    conn = get_db(db_path)
    try:
        assert batch_store.get_batch(conn, batch_id)["current_quantity"] == 5
        assert conn.execute("SELECT COUNT(*) FROM sales_orders").fetchone()[0] == 1
    finally:
        conn.close()


def test_many_small_orders_account_for_every_unit(tmp_path: Path) -> None:
    db_path, batch_id = _setup(tmp_path)

    def place_order() -> dict:
        conn = get_db(db_path, timeout=10.0)
        try:
            return sales_order_service.create_order(
                conn,
                [{"batch_id": batch_id, "quantity_sold": 3}],
                order_date=datetime(2024, 3, 2, 9, 0),
            )
        finally:
            conn.close()

    results = _run_concurrently(8, place_order)

    successes = [r for r in results if isinstance(r, dict)]
    assert len(successes) == 6
    assert all(isinstance(r, InsufficientStockError) for r in results if r not in successes)

    conn = get_db(db_path)
    try:
        assert batch_store.get_batch(conn, batch_id)["current_quantity"] == 2
    finally:
        conn.close()


def test_concurrent_share_executes_once(tmp_path: Path) -> None:
    db_path, _ = _setup(tmp_path)

    def share() -> dict:
        conn = get_db(db_path, timeout=10.0)
        try:
            return profit_share_service.execute_monthly_share(conn, 3, 2024)
        finally:
            conn.close()

    results = _run_concurrently(3, share)

    assert sum(isinstance(r, dict) for r in results) == 1
    conn = get_db(db_path)
    try:
        assert conn.execute("SELECT COUNT(*) FROM profit_shares").fetchone()[0] == 1
    finally:
        conn.close()
