from decimal import Decimal
from sqlalchemy import func, update
from sqlalchemy.orm import Session
from typing import List, Optional

from motorcover.db import models
from motorcover.schemas.claims import MIN_REASON_LENGTH
from motorcover.services.events import log_event
from motorcover.services.notifications import try_notify
from motorcover.services.sequences import CodePrefix, mint_code
from motorcover.utils.errors import Conflict, InvalidState, NotFound, ValidationError
from motorcover.utils.pagination import Page, paginate
from motorcover.utils.time_utils import utcnow

DECISION_STATES = (models.ClaimStatus.APPROVED, models.ClaimStatus.REJECTED)
OPEN_STATES = (models.ClaimStatus.PENDING, models.ClaimStatus.UNDER_REVIEW)
PROCESSABLE_STATES = (models.ClaimStatus.UNDER_REVIEW,) + DECISION_STATES

SORT_FIELDS = {
    "claim_date": models.Claim.claim_date,
    "created_at": models.Claim.created_at,
}


def _eligible_premium(
    db: Session, customer_id: int, policy_id: int, vehicle_id: int, premium_id: int
) -> Optional[models.Premium]:
    premium = (
        db.query(models.Premium)
        .filter(
            models.Premium.id == premium_id,
            models.Premium.customer_id == customer_id,
            models.Premium.policy_id == policy_id,
            models.Premium.vehicle_id == vehicle_id,
            models.Premium.payment_status == models.PaymentStatus.PAID,
        )
        .first()
    )
    if premium is None:
        return None
    renewal = premium.renewal
    if renewal is not None and renewal.renewal_status in (models.RenewalStatus.EXPIRED, models.RenewalStatus.REJECTED):
        return None
    return premium


def submit_claim(
    db: Session,
    customer_id: int,
    policy_id: int,
    vehicle_id: int,
    premium_id: int,
    reason: str,
    supporting_docs: Optional[List[str]] = None,
) -> models.Claim:
    reason = (reason or "").strip()
    if len(reason) < MIN_REASON_LENGTH:
        raise ValidationError.for_field(
            "reason", f"must be at least {MIN_REASON_LENGTH} characters", reason
        )
    if not _eligible_premium(db, customer_id, policy_id, vehicle_id, premium_id):
        raise InvalidState("Claims can only be filed on active paid policies")
    open_claim = (
        db.query(models.Claim.id)
        .filter(models.Claim.premium_id == premium_id, models.Claim.status.in_(OPEN_STATES))
        .first()
    )
    if open_claim:
        raise Conflict("A claim for this policy is already being processed")

    obj = models.Claim(
        human_code=mint_code(db, CodePrefix.CLAIM),
        customer_id=customer_id,
        policy_id=policy_id,
        vehicle_id=vehicle_id,
        premium_id=premium_id,
        reason=reason,
        supporting_docs=[d for d in (supporting_docs or []) if d],
        claim_date=utcnow(),
        status=models.ClaimStatus.PENDING,
    )
    db.add(obj)
    db.commit()
    log_event(db, source="claims", message=f"submit claim {obj.human_code} premium_id={premium_id} customer_id={customer_id}")
    return obj


def get_claim(db: Session, claim_id: int) -> models.Claim:
    obj = db.get(models.Claim, claim_id)
    if not obj:
        raise NotFound("Claim not found")
    return obj


def list_claims(
    db: Session,
    *,
    status: Optional[models.ClaimStatus] = None,
    customer_id: Optional[int] = None,
    vehicle_id: Optional[int] = None,
    sort_by: str = "claim_date",
    descending: bool = True,
    page: int = 1,
    limit: int | None = None,
) -> Page:
    q = db.query(models.Claim)
    if status is not None:
        q = q.filter(models.Claim.status == status)
    if customer_id is not None:
        q = q.filter(models.Claim.customer_id == customer_id)
    if vehicle_id is not None:
        q = q.filter(models.Claim.vehicle_id == vehicle_id)
    column = SORT_FIELDS.get(sort_by, models.Claim.claim_date)
    q = q.order_by(column.desc() if descending else column.asc(), models.Claim.id.asc())
    return paginate(q, page, limit)


def process_claim(
    db: Session,
    claim_id: int,
    new_status,
    claim_amount: Optional[float] = None,
    remarks: Optional[str] = None,
) -> models.Claim:
    """Move a claim to UnderReview, Approved or Rejected.

    Approved and Rejected are final. The customer is notified afterwards; if
    that fails the decision still stands and the failure is audited.
    """
    try:
        status = models.ClaimStatus(new_status)
    except ValueError:
        status = None
    if status not in PROCESSABLE_STATES:
        raise ValidationError.for_field("status", "must be one of Approved, Rejected, UnderReview", new_status)
    if status == models.ClaimStatus.APPROVED and (claim_amount is None or claim_amount < 0):
        raise ValidationError.for_field(
            "claim_amount", "a non-negative claim amount is required to approve", claim_amount
        )

    claim = get_claim(db, claim_id)
    observed = claim.status
    if observed in DECISION_STATES:
        raise InvalidState(f"Claim has already been {observed.value.lower()}")
    if observed == models.ClaimStatus.UNDER_REVIEW and status == models.ClaimStatus.UNDER_REVIEW:
        raise InvalidState("Claim is already under review")

    now = utcnow()
    values = {"status": status, "admin_remarks": remarks, "processed_date": now, "updated_at": now}
    if status == models.ClaimStatus.APPROVED:
        values["claim_amount"] = Decimal(str(claim_amount))
    result = db.execute(
        update(models.Claim).where(models.Claim.id == claim_id, models.Claim.status == observed).values(**values)
    )
    if result.rowcount != 1:
        db.rollback()
        raise InvalidState("Claim was processed by another request")
    db.commit()
    db.expire_all()
    log_event(db, source="claims", message=f"claim {claim.human_code} {observed.value} -> {status.value}")

    message = f"Your claim {claim.human_code} is now {status.value}."
    if status == models.ClaimStatus.APPROVED:
        message += f" Approved amount: {claim.claim_amount}."
    if remarks:
        message += f" Remarks: {remarks}"
    try_notify(
        db,
        source="claims",
        customer_id=claim.customer_id,
        policy_id=claim.policy_id,
        type=models.NotificationType.CLAIM_UPDATE,
        title=f"Claim {status.value}",
        message=message,
    )
    return claim


def claim_stats(db: Session) -> dict:
    rows = (
        db.query(
            models.Claim.status,
            func.count(models.Claim.id),
            func.coalesce(func.sum(models.Claim.claim_amount), 0),
        )
        .group_by(models.Claim.status)
        .all()
    )
    by_status = {s.value: {"count": 0, "total_claim_amount": 0.0} for s in models.ClaimStatus}
    for status, count, amount in rows:
        by_status[models.ClaimStatus(status).value] = {
            "count": count,
            "total_claim_amount": round(float(amount), 2),
        }
    return {
        "by_status": by_status,
        "total_claims": sum(v["count"] for v in by_status.values()),
        "total_claim_amount": round(sum(v["total_claim_amount"] for v in by_status.values()), 2),
    }
