import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Numeric, String, func, true
from sqlalchemy.orm import Mapped, mapped_column

from stockbook.db.base import Base
from stockbook.core.id_utils import generate_shortuuid

QUANTITY = Numeric(14, 3)


class UnitOfMeasure(str, enum.Enum):
    PIECE = "PIECE"
    KILOGRAM = "KILOGRAM"
    GRAM = "GRAM"
    LITER = "LITER"
    MILLILITER = "MILLILITER"
    METER = "METER"
    BOX = "BOX"
    PACK = "PACK"


class Product(Base):
    """
    Inventory-tracked item. `quantity` is a cached value owned by the stock ledger:
    it always equals `new_quantity` of the latest StockMovement for the product.
    """
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_shortuuid)
    business_id: Mapped[str] = mapped_column(String(36), ForeignKey("businesses.id"), index=True)
    created_by_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    unit_of_measure: Mapped[UnitOfMeasure] = mapped_column(
        Enum(UnitOfMeasure, name="unit_of_measure", native_enum=False, length=20),
        nullable=False,
        default=UnitOfMeasure.PIECE,
        server_default=UnitOfMeasure.PIECE.value,
    )

    quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False, default=Decimal("0"), server_default="0")
    reorder_threshold: Mapped[Optional[Decimal]] = mapped_column(QUANTITY, nullable=True)  # null = never flag
    optimal_quantity: Mapped[Optional[Decimal]] = mapped_column(QUANTITY, nullable=True)

    is_consumable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ux_products_business_name", "business_id", "name", unique=True),
        Index("ix_products_business_active_quantity", "business_id", "is_active", "quantity"),
    )
