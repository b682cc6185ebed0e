"""API endpoints for the shop ledger."""

from __future__ import annotations

import logging
from datetime import date, datetime

from flask import Blueprint, g, jsonify, request

from api.auth import Role, require_roles
from api.errors import handle_errors
from api.exceptions import ValidationError
from api.schemas import (
    BatchCreate,
    BatchOut,
    BatchUpdate,
    InventoryReportOut,
    MonthlyProfitSummaryOut,
    ProfitShareCreate,
    ProfitShareOut,
    SalesOrderCreate,
    SalesOrderOut,
    dump,
    dump_many,
)
from config import settings
from database.connection import get_db
from services import batch_store, profit_share_service, report_service, sales_order_service

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")


# ---------------------------------------------------------------------------
# DB lifecycle
# ---------------------------------------------------------------------------


@api_bp.before_request
def _open_db() -> None:
    """Open a database connection and store it on flask.g."""
    g.db = get_db(settings.database_path, timeout=settings.db_busy_timeout)


@api_bp.teardown_request
def _close_db(exc: BaseException | None = None) -> None:
    """Close the per-request database connection."""
    db = g.pop("db", None)
    if db is not None:
        db.close()


# ---------------------------------------------------------------------------
# Query-string helpers
# ---------------------------------------------------------------------------


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _date_arg(name: str) -> date | datetime | None:
    """Parse an ISO date or date-time query parameter."""
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be an ISO date or date-time") from exc


def _bool_arg(name: str) -> bool | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    if raw.lower() in ("true", "1", "yes"):
        return True
    if raw.lower() in ("false", "0", "no"):
        return False
    raise ValidationError(f"{name} must be true or false")


def _int_arg(name: str) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        raise ValidationError(f"{name} is required")
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be an integer") from exc


# ===========================================================================
# Batch endpoints
# ===========================================================================


@api_bp.route("/batches", methods=["POST"])
@handle_errors
@require_roles(Role.ADMIN)
def create_batch() -> tuple:
    """Record a newly purchased batch."""
    data = BatchCreate.model_validate(_json_body())
    batch = batch_store.create_batch(
        g.db,
        batch_identifier=data.batch_identifier,
        product_name=data.product_name,
        purchase_date=data.purchase_date,
        purchase_price_per_unit=data.purchase_price_per_unit,
        initial_quantity=data.initial_quantity,
        default_selling_price_per_unit=data.default_selling_price_per_unit,
    )
    return jsonify(dump(BatchOut, batch)), 201


@api_bp.route("/batches", methods=["GET"])
@handle_errors
@require_roles(Role.ADMIN)
def list_batches() -> tuple:
    """List batches with an optional product name filter."""
    product_name = request.args.get("productName") or None
    return jsonify(dump_many(BatchOut, batch_store.list_batches(g.db, product_name))), 200


@api_bp.route("/batches/available", methods=["GET"])
@handle_errors
@require_roles(Role.ADMIN, Role.STAFF)
def list_available_batches() -> tuple:
    """Batches with stock left, for building a sales order."""
    return jsonify(dump_many(BatchOut, batch_store.list_available(g.db))), 200


@api_bp.route("/batches/<int:batch_id>", methods=["GET"])
@handle_errors
@require_roles(Role.ADMIN)
def get_batch(batch_id: int) -> tuple:
    return jsonify(dump(BatchOut, batch_store.get_batch(g.db, batch_id))), 200


@api_bp.route("/batches/<int:batch_id>", methods=["PUT"])
@handle_errors
@require_roles(Role.ADMIN)
def update_batch(batch_id: int) -> tuple:
    """Edit a batch's product name or default selling price."""
    data = BatchUpdate.model_validate(_json_body())
    batch = batch_store.update_batch(
        g.db,
        batch_id,
        product_name=data.product_name,
        default_selling_price_per_unit=data.default_selling_price_per_unit,
    )
    return jsonify(dump(BatchOut, batch)), 200


@api_bp.route("/batches/<int:batch_id>", methods=["DELETE"])
@handle_errors
@require_roles(Role.ADMIN)
def delete_batch(batch_id: int) -> tuple:
    batch_store.delete_batch(g.db, batch_id)
    return jsonify({"message": "Batch deleted"}), 200


# ===========================================================================
# Sales order endpoints
# ===========================================================================


@api_bp.route("/sales-orders", methods=["POST"])
@handle_errors
@require_roles(Role.ADMIN, Role.STAFF)
def create_sales_order() -> tuple:
    """Create a sales order and deduct its stock."""
    data = SalesOrderCreate.model_validate(_json_body())
    order = sales_order_service.create_order(
        g.db,
        [item.model_dump() for item in data.line_items],
        customer_name=data.customer_name,
        order_date=data.order_date,
    )
    logger.info("Sales order %d created by %s", order["id"], g.user["username"])
    return jsonify(dump(SalesOrderOut, order)), 201


@api_bp.route("/sales-orders", methods=["GET"])
@handle_errors
@require_roles(Role.ADMIN)
def list_sales_orders() -> tuple:
    """List sales orders, newest first, with optional filters."""
    orders = sales_order_service.list_orders(
        g.db,
        start_date=_date_arg("startDate"),
        end_date=_date_arg("endDate"),
        is_locked=_bool_arg("isLocked"),
        customer_name=request.args.get("customerName") or None,
    )
    return jsonify(dump_many(SalesOrderOut, orders)), 200


@api_bp.route("/sales-orders/<int:order_id>", methods=["GET"])
@handle_errors
@require_roles(Role.ADMIN)
def get_sales_order(order_id: int) -> tuple:
    return jsonify(dump(SalesOrderOut, sales_order_service.get_order(g.db, order_id))), 200


@api_bp.route("/sales-orders/<int:order_id>", methods=["DELETE"])
@handle_errors
@require_roles(Role.ADMIN)
def delete_sales_order(order_id: int) -> tuple:
    """Delete an unlocked order and restore its stock."""
    sales_order_service.delete_order(g.db, order_id)
    return jsonify({"message": "Sales order deleted"}), 200


# ===========================================================================
# Reports
# ===========================================================================


@api_bp.route("/reports/inventory", methods=["GET"])
@handle_errors
@require_roles(Role.ADMIN)
def inventory_report() -> tuple:
    report = report_service.inventory_report(
        g.db, product_name=request.args.get("productName") or None
    )
    return jsonify(dump(InventoryReportOut, report)), 200


@api_bp.route("/reports/monthly-profit", methods=["GET"])
@handle_errors
@require_roles(Role.ADMIN)
def monthly_profit() -> tuple:
    summary = report_service.monthly_profit_summary(
        g.db, _int_arg("month"), _int_arg("year")
    )
    return jsonify(dump(MonthlyProfitSummaryOut, summary)), 200


# ===========================================================================
# Profit shares
# ===========================================================================


@api_bp.route("/profit-shares", methods=["GET"])
@handle_errors
@require_roles(Role.ADMIN)
def list_profit_shares() -> tuple:
    shares = profit_share_service.list_profit_shares(g.db)
    return jsonify(dump_many(ProfitShareOut, shares)), 200


@api_bp.route("/profit-shares/<int:share_id>", methods=["GET"])
@handle_errors
@require_roles(Role.ADMIN)
def get_profit_share(share_id: int) -> tuple:
    share = profit_share_service.get_profit_share(g.db, share_id)
    return jsonify(dump(ProfitShareOut, share)), 200


@api_bp.route("/profit-shares", methods=["POST"])
@handle_errors
@require_roles(Role.ADMIN)
def execute_profit_share() -> tuple:
    """Distribute a month's profit and lock its orders."""
    data = ProfitShareCreate.model_validate(_json_body())
    share = profit_share_service.execute_monthly_share(
        g.db, data.month, data.year, owner_count=data.owner_count
    )
    logger.info(
        "Profit share %02d/%d executed by %s", data.month, data.year, g.user["username"]
    )
    return jsonify(dump(ProfitShareOut, share)), 201
