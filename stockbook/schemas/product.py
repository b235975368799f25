from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from stockbook.models.product import UnitOfMeasure


class ProductCreate(BaseModel):
    name: str
    sku: Optional[str] = None
    unit_of_measure: UnitOfMeasure = UnitOfMeasure.PIECE
    is_consumable: bool = True
    reorder_threshold: Optional[Decimal] = Field(default=None, ge=0, max_digits=14, decimal_places=3)
    optimal_quantity: Optional[Decimal] = Field(default=None, gt=0, max_digits=14, decimal_places=3)
    initial_quantity: Optional[Decimal] = Field(
        default=None,
        gt=0,
        max_digits=14,
        decimal_places=3,
        description="Booked as a PURCHASE movement after the product is created.",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name is required")
        return cleaned

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Argan Hair Oil 100ml",
                "sku": "ARG-100",
                "unit_of_measure": "PIECE",
                "is_consumable": True,
                "reorder_threshold": 5,
                "optimal_quantity": 30,
                "initial_quantity": 12,
            }
        }
    )


class ProductOut(BaseModel):
    id: str
    name: str
    sku: str | None = None
    unit_of_measure: UnitOfMeasure
    quantity: float
    reorder_threshold: float | None = None
    optimal_quantity: float | None = None
    is_consumable: bool
    is_active: bool
    created_at: datetime


class ReorderSettingsIn(BaseModel):
    reorder_threshold: Optional[Decimal] = Field(default=None, ge=0, max_digits=14, decimal_places=3)
    optimal_quantity: Optional[Decimal] = Field(default=None, gt=0, max_digits=14, decimal_places=3)

    @model_validator(mode="after")
    def require_one_setting(self) -> "ReorderSettingsIn":
        if self.reorder_threshold is None and self.optimal_quantity is None:
            raise ValueError("At least one of reorder_threshold or optimal_quantity must be provided")
        return self

    model_config = ConfigDict(
        json_schema_extra={"example": {"reorder_threshold": 5, "optimal_quantity": 30}}
    )
