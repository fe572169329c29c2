from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from motorcover.api.deps import admin_only, back_office, get_caller
from motorcover.api.responses import dump, ok, paged
from motorcover.db.models import RenewalStatus
from motorcover.db.session import get_db
from motorcover.schemas.lifecycle import (
    PremiumOut,
    ReminderIn,
    RenewalDecisionIn,
    RenewalIn,
    RenewalOut,
    SweepIn,
)
from motorcover.schemas.policies import BreakdownOut
from motorcover.services import lifecycle as svc
from motorcover.services.access import Caller, acting_customer, customer_scope, ensure_owner


router = APIRouter(prefix="/api/renewals", tags=["renewals"])


@router.post("", status_code=201)
def api_submit_renewal(data: RenewalIn, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    customer_id = acting_customer(caller, data.customer_id)
    premium, renewal, breakdown = svc.submit_renewal(db, customer_id, data.policy_id, data.vehicle_id)
    return ok(
        "Renewal request submitted",
        {
            "renewal": dump(RenewalOut, renewal),
            "premium": dump(PremiumOut, premium),
            "breakdown": BreakdownOut(**breakdown.as_dict()).model_dump(mode="json"),
        },
    )


@router.get("")
def api_list_renewals(
    status: Optional[RenewalStatus] = None,
    customer_id: Optional[int] = None,
    page: int = 1,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    if caller.is_customer:
        customer_id = customer_scope(caller)
    return paged(svc.list_renewals(db, status=status, customer_id=customer_id, page=page, limit=limit), RenewalOut)


@router.get("/expiring")
def api_expiring_renewals(
    days: int = Query(svc.REMINDER_WINDOW_DAYS, ge=1, le=365),
    db: Session = Depends(get_db),
    caller: Caller = Depends(back_office),
):
    items = svc.list_expiring(db, days)
    return ok(f"Found {len(items)} expiring policies", [dump(RenewalOut, r) for r in items])


@router.post("/sweep")
def api_sweep_expired(
    data: Optional[SweepIn] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(admin_only),
):
    count = svc.sweep_expired(db, data.now if data else None)
    return ok(f"{count} renewal(s) expired", {"expired": count})


@router.post("/reminders")
def api_send_reminders(
    data: Optional[ReminderIn] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(back_office),
):
    count = svc.send_expiry_reminders(db, data.within_days if data else None)
    return ok(f"{count} reminder(s) sent", {"sent": count})


@router.get("/{renewal_id}")
def api_get_renewal(renewal_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    obj = svc.get_renewal(db, renewal_id)
    ensure_owner(caller, obj.customer_id)
    return ok("Renewal details fetched", dump(RenewalOut, obj))


@router.put("/{renewal_id}/approve")
def api_approve_renewal(
    renewal_id: int,
    data: Optional[RenewalDecisionIn] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(admin_only),
):
    obj = svc.approve_renewal(db, renewal_id, data.admin_remarks if data else None)
    return ok("Renewal approved", dump(RenewalOut, obj))


@router.put("/{renewal_id}/reject")
def api_reject_renewal(
    renewal_id: int,
    data: Optional[RenewalDecisionIn] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(admin_only),
):
    obj = svc.reject_renewal(db, renewal_id, data.admin_remarks if data else None)
    return ok("Renewal rejected", dump(RenewalOut, obj))
