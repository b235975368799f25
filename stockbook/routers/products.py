from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockbook.core.api_docs import error_responses
from stockbook.core.config import settings
from stockbook.core.deps import get_audit_sink, get_db
from stockbook.core.permissions import require_inventory_manager
from stockbook.core.security_current import BusinessAccess, get_current_business_access
from stockbook.models.product import Product
from stockbook.models.stock_movement import StockMovement, StockMovementType
from stockbook.schemas.common import PaginationMeta
from stockbook.schemas.product import ProductCreate, ProductOut, ReorderSettingsIn
from stockbook.schemas.stock import (
    AddStockIn,
    AdjustStockIn,
    LowStockListOut,
    ProductQuantityOut,
    ReorderStatusOut,
    StockHistoryOut,
    StockMovementOut,
    StockMovementResultOut,
)
from stockbook.services.audit_service import AuditSink, log_audit_event
from stockbook.services.reorder_service import ReorderStatus, check_reorder_status, list_low_stock_products
from stockbook.services.stock_service import (
    StockMovementResult,
    add_stock,
    adjust_stock,
    get_product_stock_history,
)

router = APIRouter(prefix="/products", tags=["products"])


def _optional_float(value) -> float | None:
    return float(value) if value is not None else None


def _get_product_in_business(db: Session, *, business_id: str, product_id: str) -> Product:
    product = db.execute(
        select(Product).where(Product.id == product_id, Product.business_id == business_id)
    ).scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def _product_out(product: Product) -> ProductOut:
    return ProductOut(
        id=product.id,
        name=product.name,
        sku=product.sku,
        unit_of_measure=product.unit_of_measure,
        quantity=float(product.quantity),
        reorder_threshold=_optional_float(product.reorder_threshold),
        optimal_quantity=_optional_float(product.optimal_quantity),
        is_consumable=product.is_consumable,
        is_active=product.is_active,
        created_at=product.created_at,
    )


def _movement_out(movement: StockMovement) -> StockMovementOut:
    return StockMovementOut(
        id=movement.id,
        product_id=movement.product_id,
        type=movement.type,
        quantity=float(movement.quantity),
        previous_quantity=float(movement.previous_quantity),
        new_quantity=float(movement.new_quantity),
        notes=movement.notes,
        reference_id=movement.reference_id,
        reference_type=movement.reference_type,
        created_by_id=movement.created_by_id,
        created_at=movement.created_at,
    )


def _result_out(result: StockMovementResult) -> StockMovementResultOut:
    return StockMovementResultOut(
        stock_movement=_movement_out(result.movement),
        product=ProductQuantityOut(
            id=result.product.product_id,
            name=result.product.name,
            previous_quantity=float(result.product.previous_quantity),
            new_quantity=float(result.product.new_quantity),
        ),
    )


def _reorder_out(status: ReorderStatus) -> ReorderStatusOut:
    return ReorderStatusOut(
        product_id=status.product_id,
        name=status.name,
        sku=status.sku,
        unit_of_measure=status.unit_of_measure,
        quantity=float(status.quantity),
        reorder_threshold=_optional_float(status.reorder_threshold),
        optimal_quantity=_optional_float(status.optimal_quantity),
        needs_reorder=status.needs_reorder,
        reorder_amount=float(status.reorder_amount),
        status=status.status,
    )


@router.post(
    "",
    response_model=ProductOut,
    summary="Register product",
    responses=error_responses(400, 401, 403, 404, 409, 422, 500),
)
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_inventory_manager),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    biz = access.business
    name_taken = db.execute(
        select(Product.id).where(
            Product.business_id == biz.id,
            func.lower(Product.name) == payload.name.lower(),
        )
    ).scalar_one_or_none()
    if name_taken:
        raise HTTPException(status_code=409, detail="Product name already exists")

    product = Product(
        business_id=biz.id,
        created_by_id=access.user.id,
        name=payload.name,
        sku=payload.sku,
        unit_of_measure=payload.unit_of_measure,
        is_consumable=payload.is_consumable,
        reorder_threshold=payload.reorder_threshold,
        optimal_quantity=payload.optimal_quantity,
    )
    db.add(product)
    db.flush()
    log_audit_event(
        db,
        business_id=biz.id,
        actor_user_id=access.user.id,
        action="PRODUCT_CREATED",
        target_type="Product",
        target_id=product.id,
        metadata_json={"name": product.name, "sku": product.sku},
    )
    db.commit()

    if payload.initial_quantity is not None:
        add_stock(
            db,
            product.id,
            biz.id,
            access.user.id,
            payload.initial_quantity,
            "Initial stock",
            audit_sink=audit_sink,
        )
        db.refresh(product)

    return _product_out(product)


@router.get(
    "/low-stock",
    response_model=LowStockListOut,
    summary="List products at or below their reorder threshold",
    responses=error_responses(401, 403, 404, 422, 500),
)
def list_low_stock(
    limit: int | None = Query(
        default=None, ge=1, description="Maximum products returned; omit to list every low-stock product"
    ),
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_inventory_manager),
):
    items = list_low_stock_products(db, access.business.id, limit=limit)
    return LowStockListOut(count=len(items), items=[_reorder_out(item) for item in items])


@router.get(
    "/{product_id}",
    response_model=ProductOut,
    summary="Get product",
    responses=error_responses(401, 404, 422, 500),
)
def get_product(
    product_id: str,
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(get_current_business_access),
):
    return _product_out(_get_product_in_business(db, business_id=access.business.id, product_id=product_id))


@router.patch(
    "/{product_id}/reorder",
    response_model=ProductOut,
    summary="Configure reorder threshold and optimal quantity",
    responses=error_responses(400, 401, 403, 404, 422, 500),
)
def set_reorder_settings(
    product_id: str,
    payload: ReorderSettingsIn,
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_inventory_manager),
):
    product = _get_product_in_business(db, business_id=access.business.id, product_id=product_id)
    old_value = {
        "reorder_threshold": _optional_float(product.reorder_threshold),
        "optimal_quantity": _optional_float(product.optimal_quantity),
    }
    if payload.reorder_threshold is not None:
        product.reorder_threshold = payload.reorder_threshold
    if payload.optimal_quantity is not None:
        product.optimal_quantity = payload.optimal_quantity

    log_audit_event(
        db,
        business_id=access.business.id,
        actor_user_id=access.user.id,
        action="PRODUCT_UPDATED",
        target_type="Product",
        target_id=product.id,
        metadata_json={
            "old_value": old_value,
            "new_value": {
                "reorder_threshold": _optional_float(product.reorder_threshold),
                "optimal_quantity": _optional_float(product.optimal_quantity),
            },
        },
    )
    db.commit()
    db.refresh(product)
    return _product_out(product)


@router.post(
    "/{product_id}/deactivate",
    response_model=ProductOut,
    summary="Deactivate product",
    description="Products are never deleted; deactivated products drop out of low-stock listings.",
    responses=error_responses(401, 403, 404, 422, 500),
)
def deactivate_product(
    product_id: str,
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_inventory_manager),
):
    product = _get_product_in_business(db, business_id=access.business.id, product_id=product_id)
    if product.is_active:
        product.is_active = False
        log_audit_event(
            db,
            business_id=access.business.id,
            actor_user_id=access.user.id,
            action="PRODUCT_DELETED",
            target_type="Product",
            target_id=product.id,
            metadata_json={"old_value": {"is_active": True}, "new_value": {"is_active": False}},
        )
        db.commit()
        db.refresh(product)
    return _product_out(product)


@router.post(
    "/{product_id}/add-stock",
    response_model=StockMovementResultOut,
    status_code=201,
    summary="Receive stock (purchase)",
    responses=error_responses(400, 401, 403, 404, 422, 500),
)
def add_product_stock(
    product_id: str,
    payload: AddStockIn,
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_inventory_manager),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    result = add_stock(
        db,
        product_id,
        access.business.id,
        access.user.id,
        payload.quantity,
        payload.notes,
        audit_sink=audit_sink,
    )
    return _result_out(result)


@router.post(
    "/{product_id}/adjust-stock",
    response_model=StockMovementResultOut,
    summary="Manual stock correction",
    responses=error_responses(400, 401, 403, 404, 422, 500),
)
def adjust_product_stock(
    product_id: str,
    payload: AdjustStockIn,
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(require_inventory_manager),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    result = adjust_stock(
        db,
        product_id,
        access.business.id,
        access.user.id,
        payload.quantity,
        payload.reason,
        audit_sink=audit_sink,
    )
    return _result_out(result)


@router.get(
    "/{product_id}/stock",
    response_model=StockHistoryOut,
    summary="List stock movements for a product",
    responses=error_responses(400, 401, 404, 422, 500),
)
def list_stock_history(
    product_id: str,
    type: StockMovementType | None = Query(default=None, description="Optional movement type filter"),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    limit: int = Query(default=50, ge=1, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(get_current_business_access),
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date cannot be before start_date")
    limit = min(limit, settings.stock_history_max_page_size)

    movements, total = get_product_stock_history(
        db,
        product_id=product_id,
        business_id=access.business.id,
        movement_type=type,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    items = [_movement_out(movement) for movement in movements]
    count = len(items)
    return StockHistoryOut(
        items=items,
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
    )


@router.get(
    "/{product_id}/reorder-status",
    response_model=ReorderStatusOut,
    summary="Check whether a product needs reordering",
    responses=error_responses(401, 404, 422, 500),
)
def get_reorder_status(
    product_id: str,
    db: Session = Depends(get_db),
    access: BusinessAccess = Depends(get_current_business_access),
):
    return _reorder_out(check_reorder_status(db, product_id, business_id=access.business.id))
