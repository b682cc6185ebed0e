"""Request and response models for the JSON API.

Field names are snake_case in Python and camelCase on the wire. Money is a
Decimal and serializes as a string such as ``"135.00"``.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from services.discount import DiscountType


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def dump(model: type[ApiModel], data: Any) -> dict[str, Any]:
    """Validate *data* against *model* and return its camelCase JSON form."""
    return model.model_validate(data).model_dump(mode="json", by_alias=True)


def dump_many(model: type[ApiModel], rows: list[Any]) -> list[dict[str, Any]]:
    return [dump(model, row) for row in rows]


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class BatchCreate(ApiModel):
    batch_identifier: str = Field(min_length=1, max_length=100)
    product_name: str = Field(min_length=1, max_length=200)
    purchase_date: date
    purchase_price_per_unit: Decimal = Field(ge=0)
    initial_quantity: int = Field(gt=0)
    default_selling_price_per_unit: Decimal = Field(default=Decimal(0), ge=0)


class BatchUpdate(ApiModel):
    product_name: str | None = Field(default=None, min_length=1, max_length=200)
    default_selling_price_per_unit: Decimal | None = Field(default=None, ge=0)


class LineItemCreate(ApiModel):
    batch_id: int
    quantity_sold: int = Field(gt=0)
    selling_price_per_unit: Decimal | None = Field(default=None, ge=0)
    discount_type: DiscountType = DiscountType.NONE
    discount_value: Decimal = Field(default=Decimal(0), ge=0)


class SalesOrderCreate(ApiModel):
    customer_name: str | None = Field(default=None, max_length=200)
    order_date: datetime | None = None
    line_items: list[LineItemCreate]


class ProfitShareCreate(ApiModel):
    month: int
    year: int
    owner_count: int | None = Field(default=None, gt=0)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class BatchOut(ApiModel):
    id: int
    batch_identifier: str
    product_name: str
    purchase_date: date
    purchase_price_per_unit: Decimal
    default_selling_price_per_unit: Decimal
    initial_quantity: int
    current_quantity: int
    created_at: str | None = None
    updated_at: str | None = None


class LineItemOut(ApiModel):
    id: int
    batch_id: int
    batch_identifier: str
    product_name: str
    purchase_price_per_unit: Decimal
    quantity_sold: int
    selling_price_per_unit: Decimal
    discount_type: DiscountType
    discount_value: Decimal
    final_price_per_unit: Decimal
    subtotal: Decimal
    line_profit: Decimal


class SalesOrderOut(ApiModel):
    id: int
    order_date: datetime
    customer_name: str | None
    is_locked: bool
    total_profit: Decimal
    created_at: str | None = None
    updated_at: str | None = None
    line_items: list[LineItemOut]


class InventoryItemOut(ApiModel):
    id: int
    batch_identifier: str
    product_name: str
    purchase_date: date
    current_quantity: int
    initial_quantity: int
    purchase_price_per_unit: Decimal
    is_depleted: bool
    inventory_value: Decimal


class InventoryReportOut(ApiModel):
    items: list[InventoryItemOut]
    total_inventory_value: Decimal


class MonthlyProfitSummaryOut(ApiModel):
    month: int
    year: int
    total_profit: Decimal
    number_of_orders: int
    period_start: datetime
    period_end: datetime


class ProfitShareOut(ApiModel):
    id: int
    month: int
    year: int
    total_profit: Decimal
    share_ratio: Decimal
    owner_count: int
    amount_per_owner: Decimal
    number_of_orders: int
    execution_date: datetime
    created_at: str | None = None
