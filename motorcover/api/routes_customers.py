from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from motorcover.api.deps import admin_only, back_office, customer_only, get_caller
from motorcover.api.responses import dump, ok, paged
from motorcover.db.session import get_db
from motorcover.schemas.customers import CustomerCreate, CustomerOut, CustomerUpdate
from motorcover.services import customers as svc
from motorcover.services.access import Caller, customer_scope, ensure_owner


router = APIRouter(prefix="/api/customers", tags=["customers"])


@router.post("", status_code=201)
def api_create_customer(data: CustomerCreate, db: Session = Depends(get_db), caller: Caller = Depends(back_office)):
    obj = svc.create_customer(db, data)
    return ok("Customer registered", dump(CustomerOut, obj))


@router.get("")
def api_list_customers(
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = 1,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(back_office),
):
    return paged(svc.list_customers(db, search=search, is_active=is_active, page=page, limit=limit), CustomerOut)


@router.get("/me")
def api_my_profile(db: Session = Depends(get_db), caller: Caller = Depends(customer_only)):
    obj = svc.get_customer(db, customer_scope(caller))
    return ok("Profile fetched", dump(CustomerOut, obj))


@router.get("/{customer_id}")
def api_get_customer(customer_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    ensure_owner(caller, customer_id)
    return ok("Customer fetched", dump(CustomerOut, svc.get_customer(db, customer_id)))


@router.put("/{customer_id}")
def api_update_customer(
    customer_id: int,
    data: CustomerUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    ensure_owner(caller, customer_id)
    return ok("Customer updated", dump(CustomerOut, svc.update_customer(db, customer_id, data)))


@router.patch("/{customer_id}/toggle-status")
def api_toggle_customer(customer_id: int, db: Session = Depends(get_db), caller: Caller = Depends(admin_only)):
    obj = svc.toggle_customer_status(db, customer_id)
    state = "activated" if obj.is_active else "deactivated"
    return ok(f"Customer {state}", dump(CustomerOut, obj))
