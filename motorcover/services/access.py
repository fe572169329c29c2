"""Caller identity handed over by the auth layer, and the ownership checks built on it.

Credentials are verified upstream; this module trusts what it is given and only
answers "may this caller touch that customer's records".
"""
from __future__ import annotations

import enum
from dataclasses import dataclass

from motorcover.utils.errors import Forbidden, ValidationError


class Role(str, enum.Enum):
    ADMIN = "Admin"
    STAFF = "Staff"
    CUSTOMER = "Customer"


@dataclass(frozen=True)
class Caller:
    caller_id: str
    role: Role
    linked_customer_id: int | None = None

    @property
    def is_customer(self) -> bool:
        return self.role == Role.CUSTOMER

    @property
    def is_back_office(self) -> bool:
        return self.role in (Role.ADMIN, Role.STAFF)


def require_role(caller: Caller, *roles: Role) -> None:
    if caller.role not in roles:
        allowed = ", ".join(r.value for r in roles)
        raise Forbidden(f"This action requires one of: {allowed}")


def customer_scope(caller: Caller) -> int:
    """Customer id a Customer caller acts as; fails when no profile is linked."""
    if caller.linked_customer_id is None:
        raise ValidationError.for_field("linked_customer_id", "No customer profile linked to this account")
    return caller.linked_customer_id


def ensure_owner(caller: Caller, customer_id: int) -> None:
    if caller.is_customer and caller.linked_customer_id != customer_id:
        raise Forbidden("Access denied. You can only access your own records.")


def acting_customer(caller: Caller, requested: int | None) -> int:
    """Customers act as themselves; staff and admins must name the customer."""
    if caller.is_customer:
        own = customer_scope(caller)
        if requested is not None and requested != own:
            raise Forbidden("Access denied. You can only act on your own account.")
        return own
    if requested is None:
        raise ValidationError.for_field("customer_id", "customer_id is required when acting for a customer")
    return requested
