from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stockbook.models.product import UnitOfMeasure
from stockbook.models.stock_movement import StockMovementType
from stockbook.schemas.common import PaginationMeta


class AddStockIn(BaseModel):
    quantity: Decimal = Field(gt=0, max_digits=14, decimal_places=3)
    notes: str | None = Field(default=None, max_length=255)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "quantity": 20,
                "notes": "Supplier delivery #4411",
            }
        }
    )


class AdjustStockIn(BaseModel):
    quantity: Decimal = Field(
        ..., max_digits=14, decimal_places=3, description="Signed correction delta. Cannot be zero."
    )
    reason: str = Field(..., min_length=1, max_length=200)

    @field_validator("quantity")
    @classmethod
    def validate_non_zero_quantity(cls, value: Decimal) -> Decimal:
        if value == 0:
            raise ValueError("Quantity cannot be zero")
        return value

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "quantity": -2,
                "reason": "count correction",
            }
        }
    )


class StockMovementOut(BaseModel):
    id: str
    product_id: str
    type: StockMovementType
    quantity: float
    previous_quantity: float
    new_quantity: float
    notes: str | None = None
    reference_id: str | None = None
    reference_type: str | None = None
    created_by_id: str
    created_at: datetime


class ProductQuantityOut(BaseModel):
    id: str
    name: str
    previous_quantity: float
    new_quantity: float


class StockMovementResultOut(BaseModel):
    stock_movement: StockMovementOut
    product: ProductQuantityOut


class StockHistoryOut(BaseModel):
    items: list[StockMovementOut]
    pagination: PaginationMeta


class ReorderStatusOut(BaseModel):
    product_id: str
    name: str
    sku: str | None = None
    unit_of_measure: UnitOfMeasure
    quantity: float
    reorder_threshold: float | None = None
    optimal_quantity: float | None = None
    needs_reorder: bool
    reorder_amount: float
    status: str


class LowStockListOut(BaseModel):
    count: int
    items: list[ReorderStatusOut]
