from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Literal, Optional

from motorcover.api.deps import admin_only, back_office, customer_only, get_caller
from motorcover.api.responses import dump, ok, paged
from motorcover.db.models import ClaimStatus
from motorcover.db.session import get_db
from motorcover.schemas.claims import ClaimCreate, ClaimOut, ClaimProcess
from motorcover.services import claims as svc
from motorcover.services.access import Caller, customer_scope, ensure_owner


router = APIRouter(prefix="/api/claims", tags=["claims"])


@router.post("", status_code=201)
def api_submit_claim(data: ClaimCreate, db: Session = Depends(get_db), caller: Caller = Depends(customer_only)):
    obj = svc.submit_claim(
        db,
        customer_scope(caller),
        data.policy_id,
        data.vehicle_id,
        data.premium_id,
        data.reason,
        data.supporting_docs,
    )
    return ok("Claim submitted", dump(ClaimOut, obj))


@router.get("")
def api_list_claims(
    status: Optional[ClaimStatus] = None,
    customer_id: Optional[int] = None,
    vehicle_id: Optional[int] = None,
    sort_by: Literal["claim_date", "created_at"] = "claim_date",
    order: Literal["asc", "desc"] = "desc",
    page: int = 1,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    if caller.is_customer:
        customer_id = customer_scope(caller)
    result = svc.list_claims(
        db,
        status=status,
        customer_id=customer_id,
        vehicle_id=vehicle_id,
        sort_by=sort_by,
        descending=order == "desc",
        page=page,
        limit=limit,
    )
    return paged(result, ClaimOut)


@router.get("/stats")
def api_claim_stats(db: Session = Depends(get_db), caller: Caller = Depends(back_office)):
    return ok("Claim statistics", svc.claim_stats(db))


@router.get("/{claim_id}")
def api_get_claim(claim_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    obj = svc.get_claim(db, claim_id)
    ensure_owner(caller, obj.customer_id)
    return ok("Claim fetched", dump(ClaimOut, obj))


@router.put("/{claim_id}/process")
def api_process_claim(
    claim_id: int,
    data: ClaimProcess,
    db: Session = Depends(get_db),
    caller: Caller = Depends(admin_only),
):
    obj = svc.process_claim(db, claim_id, data.status, data.claim_amount, data.admin_remarks)
    return ok(f"Claim {obj.status.value}", dump(ClaimOut, obj))
