from decimal import Decimal

from stockbook.core.id_utils import generate_shortuuid
from stockbook.models.business import Business
from stockbook.models.business_membership import BusinessMembership
from stockbook.models.product import Product
from stockbook.models.user import User
from stockbook.services.audit_service import AuditEvent


class RecordingAuditSink:
    def __init__(self):
        self.events: list[AuditEvent] = []

    def emit(self, event: AuditEvent) -> None:
        self.events.append(event)


def create_tenant(db, *, email: str, role: str = "owner") -> tuple[User, Business]:
    user = User(id=generate_shortuuid(), email=email, full_name="Owner")
    db.add(user)
    db.flush()
    business = Business(id=generate_shortuuid(), owner_user_id=user.id, name=f"{email} Biz")
    db.add(business)
    db.flush()
    db.add(BusinessMembership(business_id=business.id, user_id=user.id, role=role))
    db.commit()
    return user, business


def add_member(db, business: Business, *, email: str, role: str) -> User:
    # Members do not own a business; membership alone grants access.
    user = User(id=generate_shortuuid(), email=email, full_name="Member")
    db.add(user)
    db.flush()
    db.add(BusinessMembership(business_id=business.id, user_id=user.id, role=role))
    db.commit()
    return user


def create_product(
    db,
    business: Business,
    user: User,
    *,
    name: str = "Argan Hair Oil",
    quantity: Decimal | int = 0,
    reorder_threshold: Decimal | int | None = None,
    optimal_quantity: Decimal | int | None = None,
    is_active: bool = True,
) -> Product:
    # Seeds the cached quantity directly; a fresh product with no movements is the only case
    # where that matches the ledger.
    product = Product(
        business_id=business.id,
        created_by_id=user.id,
        name=name,
        quantity=Decimal(quantity),
        reorder_threshold=Decimal(reorder_threshold) if reorder_threshold is not None else None,
        optimal_quantity=Decimal(optimal_quantity) if optimal_quantity is not None else None,
        is_active=is_active,
    )
    db.add(product)
    db.commit()
    return product
