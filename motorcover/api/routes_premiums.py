from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from motorcover.api.deps import back_office, get_caller
from motorcover.api.responses import dump, ok, paged
from motorcover.db.models import PaymentStatus
from motorcover.db.session import get_db
from motorcover.schemas.lifecycle import PaymentFailureIn, PaymentIn, PremiumOut
from motorcover.services import lifecycle as svc
from motorcover.services.access import Caller, customer_scope, ensure_owner


router = APIRouter(prefix="/api/premiums", tags=["premiums"])


def _owned_premium(db: Session, premium_id: int, caller: Caller):
    obj = svc.get_premium(db, premium_id)
    ensure_owner(caller, obj.customer_id)
    return obj


@router.get("")
def api_list_premiums(
    status: Optional[PaymentStatus] = None,
    customer_id: Optional[int] = None,
    vehicle_id: Optional[int] = None,
    policy_id: Optional[int] = None,
    page: int = 1,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    if caller.is_customer:
        customer_id = customer_scope(caller)
    result = svc.list_premiums(
        db,
        status=status,
        customer_id=customer_id,
        vehicle_id=vehicle_id,
        policy_id=policy_id,
        page=page,
        limit=limit,
    )
    return paged(result, PremiumOut)


@router.get("/{premium_id}")
def api_get_premium(premium_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    return ok("Premium fetched", dump(PremiumOut, _owned_premium(db, premium_id, caller)))


@router.put("/{premium_id}/pay")
def api_pay_premium(
    premium_id: int,
    data: Optional[PaymentIn] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    _owned_premium(db, premium_id, caller)
    obj = svc.confirm_payment(db, premium_id, data.transaction_ref if data else None)
    return ok("Payment successful", dump(PremiumOut, obj))


@router.put("/{premium_id}/fail")
def api_fail_premium(
    premium_id: int,
    data: Optional[PaymentFailureIn] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(back_office),
):
    obj = svc.record_payment_failure(db, premium_id, data.reason if data else None)
    return ok("Payment marked as failed", dump(PremiumOut, obj))
