from collections.abc import Callable

from fastapi import Depends, HTTPException, status

from stockbook.core.security_current import BusinessAccess, get_current_business_access

INVENTORY_MANAGER_ROLES = ("owner", "admin")


def require_business_roles(*allowed_roles: str) -> Callable[[BusinessAccess], BusinessAccess]:
    normalized_allowed = {role.strip().lower() for role in allowed_roles if role.strip()}
    if not normalized_allowed:
        raise ValueError("At least one allowed role is required")

    def dependency(access: BusinessAccess = Depends(get_current_business_access)) -> BusinessAccess:
        current_role = (access.role or "").lower()
        if current_role not in normalized_allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role for this action",
            )
        return access

    return dependency


require_inventory_manager = require_business_roles(*INVENTORY_MANAGER_ROLES)
