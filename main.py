"""CLI entry point for the Shop Ledger system."""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

import click

from config import settings
from database import init_database

_SEED_BATCHES = [
    ("BATCH-001", "Blue Dream", date(2024, 1, 15), "8.50", "15.00", 100),
    ("BATCH-002", "OG Kush", date(2024, 1, 20), "10.00", "18.00", 75),
    ("BATCH-003", "Sour Diesel", date(2024, 2, 1), "9.25", "16.00", 120),
    ("BATCH-004", "Blue Dream", date(2024, 2, 10), "8.75", "15.00", 80),
    ("BATCH-005", "Purple Haze", date(2024, 2, 15), "11.00", "19.00", 60),
]

_SEED_ORDERS = [
    ("John Doe", datetime(2024, 1, 25, 10, 30), [("BATCH-001", 10, "15.00"), ("BATCH-002", 5, "18.00")]),
    ("Jane Smith", datetime(2024, 1, 28, 14, 15), [("BATCH-001", 15, "14.50")]),
    ("Bob Johnson", datetime(2024, 2, 5, 11, 0), [("BATCH-003", 20, "16.00"), ("BATCH-002", 8, "17.50")]),
]


@click.group()
def cli() -> None:
    """Shop Ledger: inventory batches, sales orders and profit sharing."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@cli.command()
def init_db() -> None:
    """Initialise the SQLite database (creates tables if missing)."""
    init_database(settings.database_path)
    print(f"Database initialised at {settings.database_path}")


@cli.command()
def web() -> None:
    """Start the Flask API server."""
    from api.app import create_app

    app = create_app()
    app.run(
        host=settings.flask_host,
        port=settings.flask_port,
        debug=settings.flask_debug,
    )


@cli.command()
def seed() -> None:
    """Load sample batches and sales orders."""
    from database.connection import get_db
    import database.models as models
    from services import batch_store, sales_order_service

    init_database(settings.database_path)
    conn = get_db(settings.database_path, timeout=settings.db_busy_timeout)
    try:
        batch_ids: dict[str, int] = {}
        for identifier, name, purchased, cost, price, qty in _SEED_BATCHES:
            existing = models.get_batch_by_identifier(conn, identifier)
            if existing is None:
                existing = batch_store.create_batch(
                    conn, identifier, name, purchased, Decimal(cost), qty, Decimal(price)
                )
                print(f"Created batch {identifier} ({name}, {qty} units)")
            batch_ids[identifier] = existing["id"]

        if models.list_sales_orders(conn):
            print("Sales orders already present; skipping sample orders.")
            return

        for customer, ordered_at, lines in _SEED_ORDERS:
            order = sales_order_service.create_order(
                conn,
                [
                    {
                        "batch_id": batch_ids[identifier],
                        "quantity_sold": qty,
                        "selling_price_per_unit": Decimal(price),
                    }
                    for identifier, qty, price in lines
                ],
                customer_name=customer,
                order_date=ordered_at,
            )
            print(f"Created order {order['id']} for {customer}: profit ${order['total_profit']}")
    finally:
        conn.close()


@cli.command()
@click.option("--username", required=True, help="Name recorded in the token.")
@click.option(
    "--role",
    type=click.Choice(["ADMIN", "STAFF"], case_sensitive=False),
    default="STAFF",
    show_default=True,
    help="Role granted by the token.",
)
def issue_token(username: str, role: str) -> None:
    """Mint an API bearer token signed with FLASK_SECRET_KEY."""
    from api.auth import issue_token as _issue_token

    print(_issue_token(username, role.upper(), secret_key=settings.flask_secret_key))


@cli.command()
@click.option("--product", default=None, help="Only show batches of this product.")
def inventory(product: str | None) -> None:
    """View current inventory by batch."""
    from database.connection import get_db
    from services import report_service

    conn = get_db(settings.database_path, timeout=settings.db_busy_timeout)
    try:
        report = report_service.inventory_report(conn, product_name=product)
        items = report["items"]
        if not items:
            label = f" for {product}" if product else ""
            print(f"No batches found{label}.")
            return

        print(f"{'Batch':<14} {'Product':<24} {'Qty':>6} {'Cost':>10} {'Value':>12}  Status")
        print("-" * 80)
        for item in items:
            status = "depleted" if item["is_depleted"] else "in stock"
            print(
                f"{item['batch_identifier']:<14} "
                f"{item['product_name']:<24} "
                f"{item['current_quantity']:>6} "
                f"${item['purchase_price_per_unit']:>9,.2f} "
                f"${item['inventory_value']:>11,.2f}  "
                f"{status}"
            )
        print(f"\nTotal inventory value: ${report['total_inventory_value']:,.2f}")
    finally:
        conn.close()


@cli.command()
@click.option("--month", required=True, type=int, help="Month (1-12).")
@click.option("--year", required=True, type=int, help="Year (2020 or later).")
def monthly_report(month: int, year: int) -> None:
    """Show the profit summary for one calendar month."""
    from api.exceptions import AppError
    from database.connection import get_db
    from services import profit_share_service, report_service

    conn = get_db(settings.database_path, timeout=settings.db_busy_timeout)
    try:
        summary = report_service.monthly_profit_summary(conn, month, year)
        share = profit_share_service.get_profit_share_for_period(conn, month, year)
    except AppError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        conn.close()

    print(f"Profit Summary: {month:02d}/{year}")
    print("=" * 40)
    print(f"  Orders:        {summary['number_of_orders']}")
    print(f"  Total profit:  ${summary['total_profit']:,.2f}")
    if share is None:
        print("  Shared:        no")
    else:
        print(f"  Shared:        {share['execution_date']:%Y-%m-%d}")
        print(f"  Per owner:     ${share['amount_per_owner']:,.2f}")


@cli.command()
@click.option("--month", required=True, type=int, help="Month (1-12).")
@click.option("--year", required=True, type=int, help="Year (2020 or later).")
@click.option("--owners", default=None, type=int, help="Owner count (default OWNER_COUNT).")
def share(month: int, year: int, owners: int | None) -> None:
    """Execute the profit share for a month and lock its orders."""
    from api.exceptions import AppError
    from database.connection import get_db
    from services import profit_share_service

    conn = get_db(settings.database_path, timeout=settings.db_busy_timeout)
    try:
        result = profit_share_service.execute_monthly_share(
            conn, month, year, owner_count=owners
        )
    except AppError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        conn.close()

    print(f"Profit share executed for {month:02d}/{year}")
    print(f"  Total profit:  ${result['total_profit']:,.2f}")
    print(f"  Orders:        {result['number_of_orders']}")
    print(f"  Per owner:     ${result['amount_per_owner']:,.2f} x {result['owner_count']}")


@cli.command()
@click.option(
    "--today",
    default=None,
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Pretend today is this date (YYYY-MM-DD).",
)
def share_due(today: datetime | None) -> None:
    """Run last month's profit share if today is PROFIT_SHARE_DAY.

    Intended to be run once a day from cron.
    """
    from database.connection import get_db
    from services import profit_share_service

    conn = get_db(settings.database_path, timeout=settings.db_busy_timeout)
    try:
        result = profit_share_service.run_scheduled_share(
            conn, today.date() if today else None
        )
    finally:
        conn.close()

    if result is None:
        print("No profit share executed.")
    else:
        print(
            f"Profit share executed for {result['month']:02d}/{result['year']}: "
            f"${result['amount_per_owner']:,.2f} per owner"
        )


if __name__ == "__main__":
    cli()
