from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Literal, Optional

from motorcover.api.deps import admin_only, back_office, get_caller
from motorcover.api.responses import dump, ok, paged
from motorcover.db.models import CoverageType
from motorcover.db.session import get_db
from motorcover.schemas.lifecycle import PremiumOut, RenewalOut
from motorcover.schemas.policies import (
    BreakdownOut,
    PolicyCreate,
    PolicyOut,
    PolicyUpdate,
    PremiumPreviewIn,
    PurchaseIn,
)
from motorcover.services import lifecycle
from motorcover.services import policies as svc
from motorcover.services.access import Caller, acting_customer, ensure_owner
from motorcover.services.vehicles import get_vehicle
from motorcover.utils.errors import NotFound


router = APIRouter(prefix="/api/policies", tags=["policies"])


@router.post("", status_code=201)
def api_create_policy(data: PolicyCreate, db: Session = Depends(get_db), caller: Caller = Depends(admin_only)):
    obj = svc.create_policy(db, data)
    return ok("Policy created", dump(PolicyOut, obj))


@router.get("")
def api_list_policies(
    search: Optional[str] = None,
    coverage_type: Optional[CoverageType] = None,
    duration_months: Optional[int] = None,
    is_active: Optional[bool] = None,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    sort_by: str = "created_at",
    order: Literal["asc", "desc"] = "desc",
    page: int = 1,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    if caller.is_customer:
        is_active = True
    result = svc.list_policies(
        db,
        search=search,
        coverage_type=coverage_type,
        duration_months=duration_months,
        is_active=is_active,
        min_amount=min_amount,
        max_amount=max_amount,
        sort_by=sort_by,
        descending=order == "desc",
        page=page,
        limit=limit,
    )
    return paged(result, PolicyOut)


@router.get("/stats")
def api_policy_stats(db: Session = Depends(get_db), caller: Caller = Depends(back_office)):
    return ok("Policy statistics", svc.policy_stats(db))


@router.post("/calculate-premium")
def api_preview_premium(data: PremiumPreviewIn, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    ensure_owner(caller, get_vehicle(db, data.vehicle_id).customer_id)
    breakdown = svc.preview_premium(db, data.policy_id, data.vehicle_id)
    return ok("Premium calculated", BreakdownOut(**breakdown.as_dict()).model_dump(mode="json"))


@router.get("/{policy_id}")
def api_get_policy(policy_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    obj = svc.get_policy(db, policy_id)
    if caller.is_customer and not obj.is_active:
        raise NotFound("Policy not found")
    return ok("Policy fetched", dump(PolicyOut, obj))


@router.put("/{policy_id}")
def api_update_policy(
    policy_id: int,
    data: PolicyUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(admin_only),
):
    return ok("Policy updated", dump(PolicyOut, svc.update_policy(db, policy_id, data)))


@router.patch("/{policy_id}/toggle-status")
def api_toggle_policy(policy_id: int, db: Session = Depends(get_db), caller: Caller = Depends(admin_only)):
    obj = svc.toggle_policy_status(db, policy_id)
    state = "activated" if obj.is_active else "deactivated"
    return ok(f"Policy {state}", dump(PolicyOut, obj))


@router.post("/{policy_id}/purchase", status_code=201)
def api_purchase_policy(
    policy_id: int,
    data: PurchaseIn,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    customer_id = acting_customer(caller, data.customer_id)
    premium, renewal, breakdown = lifecycle.purchase(db, customer_id, policy_id, data.vehicle_id)
    return ok(
        "Policy purchased, payment pending",
        {
            "premium": dump(PremiumOut, premium),
            "renewal": dump(RenewalOut, renewal),
            "breakdown": BreakdownOut(**breakdown.as_dict()).model_dump(mode="json"),
        },
    )
