from dataclasses import dataclass

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import case, select
from sqlalchemy.orm import Session

from stockbook.core.deps import get_db
from stockbook.core.security import TokenValidationError, decode_token
from stockbook.models.business import Business
from stockbook.models.business_membership import BusinessMembership
from stockbook.models.user import User

bearer_scheme = HTTPBearer(
    auto_error=False,
    description="Access token issued by the external identity service. This API does not issue tokens.",
)


@dataclass(frozen=True)
class BusinessAccess:
    business: Business
    user: User
    role: str
    membership_id: str | None


def _membership_role_rank():
    return case(
        (BusinessMembership.role == "owner", 0),
        (BusinessMembership.role == "admin", 1),
        (BusinessMembership.role == "staff", 2),
        else_=3,
    )


def _resolve_business_access(db: Session, user: User) -> BusinessAccess | None:
    row = db.execute(
        select(BusinessMembership, Business)
        .join(Business, Business.id == BusinessMembership.business_id)
        .where(
            BusinessMembership.user_id == user.id,
            BusinessMembership.is_active.is_(True),
        )
        .order_by(_membership_role_rank(), BusinessMembership.created_at.asc())
        .limit(1)
    ).first()

    if row:
        membership, business = row
        role = (membership.role or "staff").lower()
        return BusinessAccess(business=business, user=user, role=role, membership_id=membership.id)

    owned_business = db.execute(
        select(Business).where(Business.owner_user_id == user.id)
    ).scalar_one_or_none()
    if owned_business:
        return BusinessAccess(business=owned_business, user=user, role="owner", membership_id=None)

    return None


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = decode_token(credentials.credentials, expected_type="access")
    except TokenValidationError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    user_id = payload.get("sub")
    user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def get_current_business_access(
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
) -> BusinessAccess:
    access = _resolve_business_access(db, user)
    if not access:
        raise HTTPException(status_code=404, detail="Business not found")
    return access
