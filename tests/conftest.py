"""Shared test fixtures."""

from __future__ import annotations

import sqlite3
from collections.abc import Generator
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

from services import batch_store, sales_order_service

_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "database" / "schema.sql"


class _NoCloseConnection:
    """Proxy that lets route code 'close' the shared test connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        object.__setattr__(self, "_conn", conn)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._conn, name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self._conn, name, value)

    def close(self) -> None:
        pass


@pytest.fixture
def db() -> Generator[sqlite3.Connection, None, None]:
    """In-memory SQLite database with the full schema applied."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    schema = _SCHEMA_PATH.read_text()
    conn.executescript(schema)
    yield conn
    conn.close()


@pytest.fixture
def batch_a(db: sqlite3.Connection) -> dict[str, Any]:
    """Widget batch: cost 100.00, 50 units, default price 150.00."""
    return batch_store.create_batch(
        db,
        batch_identifier="BATCH-A",
        product_name="Widget",
        purchase_date=date(2024, 1, 2),
        purchase_price_per_unit=Decimal("100.00"),
        initial_quantity=50,
        default_selling_price_per_unit=Decimal("150.00"),
    )


@pytest.fixture
def batch_b(db: sqlite3.Connection) -> dict[str, Any]:
    """Gadget batch: cost 80.00, 20 units, default price 120.00."""
    return batch_store.create_batch(
        db,
        batch_identifier="BATCH-B",
        product_name="Gadget",
        purchase_date=date(2024, 1, 3),
        purchase_price_per_unit=Decimal("80.00"),
        initial_quantity=20,
        default_selling_price_per_unit=Decimal("120.00"),
    )


@pytest.fixture
def sample_order(
    db: sqlite3.Connection,
    batch_a: dict[str, Any],
    batch_b: dict[str, Any],
) -> dict[str, Any]:
    """The two-line January 2024 order: 10 x A at 10% off, 5 x B at list."""
    return sales_order_service.create_order(
        db,
        [
            {
                "batch_id": batch_a["id"],
                "quantity_sold": 10,
                "selling_price_per_unit": Decimal("150.00"),
                "discount_type": "PERCENT",
                "discount_value": Decimal("10"),
            },
            {
                "batch_id": batch_b["id"],
                "quantity_sold": 5,
                "selling_price_per_unit": Decimal("120.00"),
                "discount_type": "NONE",
                "discount_value": Decimal("0"),
            },
        ],
        customer_name="Alice",
        order_date=datetime(2024, 1, 15, 10, 30),
    )


# ---------------------------------------------------------------------------
# Flask
# ---------------------------------------------------------------------------


@pytest.fixture
def app(db: sqlite3.Connection, monkeypatch: pytest.MonkeyPatch):
    """Flask app whose request connection is the in-memory test database."""
    from api.app import create_app

    monkeypatch.setattr(
        "api.routes.get_db", lambda *args, **kwargs: _NoCloseConnection(db)
    )
    app = create_app()
    app.config["TESTING"] = True
    app.config["SECRET_KEY"] = "test-secret"
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def _auth_headers(app, username: str, role: str) -> dict[str, str]:
    from api.auth import issue_token

    token = issue_token(username, role, secret_key=app.config["SECRET_KEY"])
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(app) -> dict[str, str]:
    return _auth_headers(app, "owner", "ADMIN")


@pytest.fixture
def staff_headers(app) -> dict[str, str]:
    return _auth_headers(app, "clerk", "STAFF")
