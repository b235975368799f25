"""
Stock ledger engine.

`create_stock_movement` is the only code path that writes `Product.quantity`. Every call
locks the product row, applies the movement-type policy, appends an immutable
`StockMovement` and updates the cached quantity in one transaction on the caller's session.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockbook.core.errors import (
    AuthorizationError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from stockbook.models.product import Product
from stockbook.models.stock_movement import StockMovement, StockMovementType
from stockbook.services.audit_service import AuditEvent, AuditSink, log_emit_failure

logger = logging.getLogger("stockbook.stock")

QUANTITY_STEP = Decimal("0.001")
# Largest value a Numeric(14, 3) column holds.
MAX_QUANTITY = Decimal("99999999999.999")


@dataclass(frozen=True)
class MovementPolicy:
    sign: int
    enforce_floor: bool


MOVEMENT_POLICIES: dict[StockMovementType, MovementPolicy] = {
    StockMovementType.PURCHASE: MovementPolicy(sign=1, enforce_floor=False),
    StockMovementType.RETURN: MovementPolicy(sign=1, enforce_floor=False),
    StockMovementType.SALE: MovementPolicy(sign=-1, enforce_floor=True),
    StockMovementType.SERVICE_USAGE: MovementPolicy(sign=-1, enforce_floor=True),
    # Manual corrections follow the physical count, even below zero.
    StockMovementType.ADJUSTMENT: MovementPolicy(sign=-1, enforce_floor=False),
}


@dataclass(frozen=True)
class ProductQuantitySummary:
    product_id: str
    name: str
    previous_quantity: Decimal
    new_quantity: Decimal


@dataclass(frozen=True)
class StockMovementResult:
    movement: StockMovement
    product: ProductQuantitySummary


def to_quantity(value: Decimal | float | int | str) -> Decimal:
    try:
        quantity = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("Quantity must be a number") from exc
    if not quantity.is_finite():
        raise ValidationError("Quantity must be a number")
    try:
        quantity = quantity.quantize(QUANTITY_STEP)
    except InvalidOperation as exc:
        raise ValidationError("Quantity must be a number") from exc
    if abs(quantity) > MAX_QUANTITY:
        raise ValidationError("Quantity is too large")
    return quantity


def _resolve_policy(movement_type: StockMovementType | str) -> tuple[StockMovementType, MovementPolicy]:
    try:
        resolved = StockMovementType(movement_type)
    except ValueError:
        raise ValidationError("Invalid stock movement type") from None
    policy = MOVEMENT_POLICIES.get(resolved)
    if policy is None:
        raise ValidationError("Invalid stock movement type")
    return resolved, policy


def _lock_product(db: Session, product_id: str) -> Product | None:
    # populate_existing: a product already in the identity map must be re-read under the lock.
    return db.execute(
        select(Product)
        .where(Product.id == product_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def _emit_audit(audit_sink: AuditSink, event: AuditEvent) -> None:
    try:
        audit_sink.emit(event)
    except Exception as exc:
        log_emit_failure(event, exc)


def create_stock_movement(
    db: Session,
    *,
    product_id: str,
    business_id: str,
    user_id: str,
    movement_type: StockMovementType | str,
    quantity: Decimal | float | int,
    notes: str | None = None,
    reference_id: str | None = None,
    reference_type: str | None = None,
    audit_sink: AuditSink | None = None,
) -> StockMovementResult:
    amount = to_quantity(quantity)
    if amount <= 0:
        raise ValidationError("Quantity must be greater than 0")

    try:
        product = _lock_product(db, product_id)
        if product is None:
            raise NotFoundError("Product not found")
        if product.business_id != business_id:
            raise AuthorizationError("Product does not belong to this business")

        resolved_type, policy = _resolve_policy(movement_type)

        previous_quantity = Decimal(product.quantity)
        new_quantity = previous_quantity + policy.sign * amount
        if policy.enforce_floor and new_quantity < 0:
            raise InsufficientStockError(available=previous_quantity, required=amount)
        if abs(new_quantity) > MAX_QUANTITY:
            raise ValidationError("Resulting quantity is too large")

        movement = StockMovement(
            product_id=product.id,
            business_id=business_id,
            created_by_id=user_id,
            type=resolved_type,
            quantity=amount,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
            notes=notes,
            reference_id=reference_id,
            reference_type=reference_type,
        )
        db.add(movement)
        product.quantity = new_quantity
        db.flush()
        movement_id = movement.id
        summary = ProductQuantitySummary(
            product_id=product.id,
            name=product.name,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        json.dumps(
            {
                "event": "stock_movement",
                "movement_id": movement_id,
                "product_id": summary.product_id,
                "business_id": business_id,
                "type": resolved_type.value,
                "quantity": str(amount),
                "previous_quantity": str(previous_quantity),
                "new_quantity": str(new_quantity),
            }
        )
    )

    if audit_sink is not None:
        _emit_audit(
            audit_sink,
            AuditEvent(
                action=f"STOCK_{resolved_type.value}",
                entity_type="Product",
                entity_id=summary.product_id,
                business_id=business_id,
                performed_by_id=user_id,
                old_value={"quantity": float(previous_quantity)},
                new_value={"quantity": float(new_quantity)},
            ),
        )

    return StockMovementResult(movement=movement, product=summary)


def add_stock(
    db: Session,
    product_id: str,
    business_id: str,
    user_id: str,
    quantity: Decimal | float | int,
    notes: str | None = None,
    *,
    audit_sink: AuditSink | None = None,
) -> StockMovementResult:
    return create_stock_movement(
        db,
        product_id=product_id,
        business_id=business_id,
        user_id=user_id,
        movement_type=StockMovementType.PURCHASE,
        quantity=quantity,
        notes=notes or "Stock purchase",
        audit_sink=audit_sink,
    )


def sell_product(
    db: Session,
    product_id: str,
    business_id: str,
    user_id: str,
    quantity: Decimal | float | int,
    sale_id: str | None = None,
    notes: str | None = None,
    *,
    audit_sink: AuditSink | None = None,
) -> StockMovementResult:
    return create_stock_movement(
        db,
        product_id=product_id,
        business_id=business_id,
        user_id=user_id,
        movement_type=StockMovementType.SALE,
        quantity=quantity,
        notes=notes or "Product sale",
        reference_id=sale_id,
        reference_type="sale" if sale_id else None,
        audit_sink=audit_sink,
    )


def use_product_in_service(
    db: Session,
    product_id: str,
    business_id: str,
    user_id: str,
    quantity: Decimal | float | int,
    service_sale_id: str | None = None,
    notes: str | None = None,
    *,
    audit_sink: AuditSink | None = None,
) -> StockMovementResult:
    return create_stock_movement(
        db,
        product_id=product_id,
        business_id=business_id,
        user_id=user_id,
        movement_type=StockMovementType.SERVICE_USAGE,
        quantity=quantity,
        notes=notes or "Service usage",
        reference_id=service_sale_id,
        reference_type="service_sale" if service_sale_id else None,
        audit_sink=audit_sink,
    )


def adjust_stock(
    db: Session,
    product_id: str,
    business_id: str,
    user_id: str,
    quantity: Decimal | float | int,
    reason: str,
    *,
    audit_sink: AuditSink | None = None,
) -> StockMovementResult:
    """
    Manual correction. `quantity` is a signed delta; the ledger records its magnitude
    and the note keeps the requested direction.
    """
    delta = to_quantity(quantity)
    magnitude = abs(delta)
    direction = "Added" if delta >= 0 else "Deducted"
    return create_stock_movement(
        db,
        product_id=product_id,
        business_id=business_id,
        user_id=user_id,
        movement_type=StockMovementType.ADJUSTMENT,
        quantity=magnitude,
        notes=f"Stock adjustment: {reason}. {direction} {magnitude.normalize():f} units.",
        audit_sink=audit_sink,
    )


def get_product_stock_history(
    db: Session,
    *,
    product_id: str,
    business_id: str,
    movement_type: StockMovementType | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[StockMovement], int]:
    product_exists = db.execute(
        select(Product.id).where(Product.id == product_id, Product.business_id == business_id)
    ).scalar_one_or_none()
    if product_exists is None:
        raise NotFoundError("Product not found")

    filters = [
        StockMovement.product_id == product_id,
        StockMovement.business_id == business_id,
    ]
    if movement_type is not None:
        filters.append(StockMovement.type == movement_type)
    if start_date is not None:
        filters.append(StockMovement.created_at >= start_date)
    if end_date is not None:
        filters.append(StockMovement.created_at <= end_date)

    total = int(db.execute(select(func.count(StockMovement.id)).where(*filters)).scalar_one())
    rows = db.execute(
        select(StockMovement)
        .where(*filters)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return list(rows), total
