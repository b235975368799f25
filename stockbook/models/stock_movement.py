import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from stockbook.db.base import Base
from stockbook.core.id_utils import generate_shortuuid
from stockbook.models.product import QUANTITY


class StockMovementType(str, enum.Enum):
    PURCHASE = "PURCHASE"
    SALE = "SALE"
    SERVICE_USAGE = "SERVICE_USAGE"
    ADJUSTMENT = "ADJUSTMENT"
    RETURN = "RETURN"


class StockMovement(Base):
    """
    Append-only ledger entry. `quantity` is always positive; direction comes from `type`.
    Rows are never updated or deleted.
    """
    __tablename__ = "stock_movements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_shortuuid)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.id"), index=True)
    business_id: Mapped[str] = mapped_column(String(36), ForeignKey("businesses.id"), index=True)
    created_by_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)

    type: Mapped[StockMovementType] = mapped_column(
        Enum(StockMovementType, name="stock_movement_type", native_enum=False, length=20),
        nullable=False,
    )
    quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    previous_quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    new_quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    reference_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)  # e.g., sale id
    reference_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # "sale", "service_sale"

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        Index("ix_stock_movements_business_created_at", "business_id", "created_at"),
        Index(
            "ix_stock_movements_product_created_at",
            "product_id",
            "created_at",
        ),
        Index("ix_stock_movements_reference", "reference_type", "reference_id"),
    )
