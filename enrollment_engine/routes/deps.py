from typing import Optional

from fastapi import Depends, Header

from enrollment_engine.core.exceptions import UnauthorizedError
from enrollment_engine.models.profiles import Role
from enrollment_engine.services.enrollments import Caller

VALID_ROLES = {role.value for role in Role}


def get_current_user(
    x_user_id: Optional[int] = Header(default=None),
    x_user_role: str = Header(default=Role.USER.value),
) -> Caller:
    """Caller identity as asserted by the authentication proxy in front of the API."""
    if x_user_id is None or x_user_role not in VALID_ROLES:
        raise UnauthorizedError("Authentication required", status_code=401)
    return Caller(id=x_user_id, role=x_user_role)


def require_staff(caller: Caller = Depends(get_current_user)) -> Caller:
    if not caller.is_staff:
        raise UnauthorizedError()
    return caller
