from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockbook.core.errors import NotFoundError
from stockbook.models.product import Product, UnitOfMeasure

LOW_STOCK = "LOW_STOCK"
OK = "OK"


@dataclass(frozen=True)
class ReorderStatus:
    product_id: str
    name: str
    sku: str | None
    unit_of_measure: UnitOfMeasure
    quantity: Decimal
    reorder_threshold: Decimal | None
    optimal_quantity: Decimal | None
    needs_reorder: bool
    reorder_amount: Decimal
    status: str


def needs_reorder(quantity: Decimal, reorder_threshold: Decimal | None) -> bool:
    return reorder_threshold is not None and quantity <= reorder_threshold


def reorder_amount(quantity: Decimal, optimal_quantity: Decimal | None) -> Decimal:
    if optimal_quantity is None:
        return Decimal("0")
    return max(Decimal("0"), optimal_quantity - quantity)


def build_reorder_status(product: Product) -> ReorderStatus:
    flagged = needs_reorder(product.quantity, product.reorder_threshold)
    return ReorderStatus(
        product_id=product.id,
        name=product.name,
        sku=product.sku,
        unit_of_measure=product.unit_of_measure,
        quantity=product.quantity,
        reorder_threshold=product.reorder_threshold,
        optimal_quantity=product.optimal_quantity,
        needs_reorder=flagged,
        reorder_amount=reorder_amount(product.quantity, product.optimal_quantity),
        status=LOW_STOCK if flagged else OK,
    )


def check_reorder_status(db: Session, product_id: str, business_id: str | None = None) -> ReorderStatus:
    stmt = select(Product).where(Product.id == product_id)
    if business_id is not None:
        stmt = stmt.where(Product.business_id == business_id)
    product = db.execute(stmt).scalar_one_or_none()
    if product is None:
        raise NotFoundError("Product not found")
    return build_reorder_status(product)


def list_low_stock_products(db: Session, business_id: str, limit: int | None = None) -> list[ReorderStatus]:
    # Column-to-column comparison so the database filters row by row.
    stmt = (
        select(Product)
        .where(
            Product.business_id == business_id,
            Product.is_active.is_(True),
            Product.reorder_threshold.isnot(None),
            Product.quantity <= Product.reorder_threshold,
        )
        .order_by(Product.quantity.asc(), Product.name.asc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return [build_reorder_status(product) for product in db.execute(stmt).scalars().all()]
