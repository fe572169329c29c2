from fastapi import Depends, Header
from typing import Optional

from motorcover.services.access import Caller, Role, require_role
from motorcover.utils.errors import Unauthorized


# Identity is verified upstream; these headers carry the verified result.
def get_caller(
    x_caller_id: Optional[str] = Header(None),
    x_caller_role: Optional[str] = Header(None),
    x_linked_customer_id: Optional[int] = Header(None),
) -> Caller:
    if not x_caller_id or not x_caller_role:
        raise Unauthorized("Caller identity missing")
    try:
        role = Role(x_caller_role)
    except ValueError:
        raise Unauthorized(f"Unknown role: {x_caller_role}")
    return Caller(caller_id=x_caller_id, role=role, linked_customer_id=x_linked_customer_id)


def back_office(caller: Caller = Depends(get_caller)) -> Caller:
    require_role(caller, Role.ADMIN, Role.STAFF)
    return caller


def admin_only(caller: Caller = Depends(get_caller)) -> Caller:
    require_role(caller, Role.ADMIN)
    return caller


def customer_only(caller: Caller = Depends(get_caller)) -> Caller:
    require_role(caller, Role.CUSTOMER)
    return caller
