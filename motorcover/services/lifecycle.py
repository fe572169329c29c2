"""Premium and renewal lifecycle.

A premium and its renewal are always created together. While a premium may
still give cover it holds the vehicle's coverage slot for its coverage type
(``Premium.coverage_slot``, unique); failing payment, rejection and expiry
release it. Status changes are conditional UPDATEs on the observed state, so
of two concurrent requests for the same transition exactly one wins and the
other gets InvalidState. Those UPDATEs bypass the identity map, so the
session is expired after each such commit and objects reload on next access.
"""
import os
import secrets
import string
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from motorcover.db import models
from motorcover.services.events import log_event
from motorcover.services.notifications import create_notification, try_notify
from motorcover.services.pricing import PremiumBreakdown, calculate_premium
from motorcover.services.sequences import CodePrefix, mint_code
from motorcover.utils.errors import Conflict, InvalidState, NotFound
from motorcover.utils.pagination import Page, paginate
from motorcover.utils.time_utils import add_months, to_utc_naive, utcnow

REMINDER_WINDOW_DAYS = int(os.getenv("MOTORCOVER_REMINDER_DAYS", "30"))

OPEN_RENEWAL_STATES = (models.RenewalStatus.PENDING, models.RenewalStatus.APPROVED)
CLOSED_RENEWAL_STATES = (models.RenewalStatus.REJECTED, models.RenewalStatus.EXPIRED)

_TXN_ALPHABET = string.ascii_uppercase + string.digits


def coverage_slot(vehicle_id: int, coverage_type: models.CoverageType) -> str:
    return f"{vehicle_id}:{models.CoverageType(coverage_type).value}"


def generate_transaction_ref() -> str:
    return "TXN-" + "".join(secrets.choice(_TXN_ALPHABET) for _ in range(9))


def _load_for_purchase(db: Session, customer_id: int, policy_id: int, vehicle_id: int):
    policy = db.get(models.InsurancePolicy, policy_id)
    if not policy:
        raise NotFound("Policy not found")
    vehicle = db.get(models.Vehicle, vehicle_id)
    if not vehicle:
        raise NotFound("Vehicle not found")
    if not db.get(models.Customer, customer_id):
        raise NotFound("Customer not found")
    if not policy.is_active:
        raise InvalidState("Policy is not active")
    if vehicle.customer_id != customer_id:
        raise InvalidState("Vehicle does not belong to this customer")
    return policy, vehicle


def _existing_premium(db: Session, customer_id: int, policy_id: int, vehicle_id: int, statuses) -> Optional[models.Premium]:
    # premiums that were rejected, failed or expired have given up their slot
    return (
        db.query(models.Premium)
        .filter(
            models.Premium.customer_id == customer_id,
            models.Premium.policy_id == policy_id,
            models.Premium.vehicle_id == vehicle_id,
            models.Premium.payment_status.in_(statuses),
            models.Premium.coverage_slot.is_not(None),
        )
        .first()
    )


def _open_premium(
    db: Session,
    customer_id: int,
    policy: models.InsurancePolicy,
    vehicle: models.Vehicle,
    now: datetime,
    *,
    notification_type: models.NotificationType,
    title: str,
):
    slot = coverage_slot(vehicle.id, policy.coverage_type)
    holder = db.query(models.Premium.id).filter(models.Premium.coverage_slot == slot).first()
    if holder:
        raise Conflict(
            f"Vehicle {vehicle.plate_number} already has active or pending "
            f"{models.CoverageType(policy.coverage_type).value} coverage"
        )

    breakdown = calculate_premium(policy, vehicle, as_of=now)
    premium = models.Premium(
        human_code=mint_code(db, CodePrefix.PREMIUM),
        policy_id=policy.id,
        vehicle_id=vehicle.id,
        customer_id=customer_id,
        coverage_type=policy.coverage_type,
        calculated_amount=breakdown.final_amount,
        breakdown=breakdown.as_dict(),
        payment_status=models.PaymentStatus.PENDING,
        coverage_slot=slot,
    )
    renewal_code = mint_code(db, CodePrefix.RENEWAL)
    try:
        db.add(premium)
        db.flush()
        renewal = models.PolicyRenewal(
            human_code=renewal_code,
            policy_id=policy.id,
            premium_id=premium.id,
            vehicle_id=vehicle.id,
            customer_id=customer_id,
            renewal_date=now,
            expiry_date=add_months(now, policy.duration_months),
            renewal_status=models.RenewalStatus.PENDING,
        )
        db.add(renewal)
        create_notification(
            db,
            customer_id=customer_id,
            policy_id=policy.id,
            type=notification_type,
            title=title,
            message=(
                f"{policy.name} for {vehicle.plate_number}: premium {premium.human_code} of "
                f"{breakdown.final_amount} is awaiting payment."
            ),
            commit=False,
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(f"Vehicle {vehicle.plate_number} already has active or pending coverage of this type")
    return premium, renewal, breakdown


def purchase(
    db: Session,
    customer_id: int,
    policy_id: int,
    vehicle_id: int,
    *,
    as_of: Optional[datetime] = None,
) -> tuple[models.Premium, models.PolicyRenewal, PremiumBreakdown]:
    """Buy ``policy_id`` for ``vehicle_id``: a Pending premium plus its Pending renewal."""
    now = to_utc_naive(as_of) or utcnow()
    policy, vehicle = _load_for_purchase(db, customer_id, policy_id, vehicle_id)
    statuses = (models.PaymentStatus.PENDING, models.PaymentStatus.PAID)
    if _existing_premium(db, customer_id, policy_id, vehicle_id, statuses):
        raise Conflict("You already have an active or pending premium for this policy and vehicle")
    premium, renewal, breakdown = _open_premium(
        db,
        customer_id,
        policy,
        vehicle,
        now,
        notification_type=models.NotificationType.PAYMENT,
        title="Payment pending",
    )
    log_event(
        db,
        source="lifecycle",
        message=f"purchase {premium.human_code}/{renewal.human_code} policy_id={policy_id} vehicle_id={vehicle_id} amount={breakdown.final_amount}",
    )
    return premium, renewal, breakdown


def submit_renewal(
    db: Session,
    customer_id: int,
    policy_id: int,
    vehicle_id: int,
    *,
    as_of: Optional[datetime] = None,
) -> tuple[models.Premium, models.PolicyRenewal, PremiumBreakdown]:
    """Like ``purchase`` but a lapsed Paid premium for the same triple does not block it."""
    now = to_utc_naive(as_of) or utcnow()
    policy, vehicle = _load_for_purchase(db, customer_id, policy_id, vehicle_id)
    if _existing_premium(db, customer_id, policy_id, vehicle_id, (models.PaymentStatus.PENDING,)):
        raise Conflict("A renewal request is already pending for this policy")
    premium, renewal, breakdown = _open_premium(
        db,
        customer_id,
        policy,
        vehicle,
        now,
        notification_type=models.NotificationType.RENEWAL,
        title="Renewal submitted",
    )
    log_event(
        db,
        source="lifecycle",
        message=f"renewal {renewal.human_code} premium={premium.human_code} policy_id={policy_id} vehicle_id={vehicle_id}",
    )
    return premium, renewal, breakdown


def get_premium(db: Session, premium_id: int) -> models.Premium:
    obj = db.get(models.Premium, premium_id)
    if not obj:
        raise NotFound("Premium not found")
    return obj


def list_premiums(
    db: Session,
    *,
    status: Optional[models.PaymentStatus] = None,
    customer_id: Optional[int] = None,
    vehicle_id: Optional[int] = None,
    policy_id: Optional[int] = None,
    page: int = 1,
    limit: int | None = None,
) -> Page:
    q = db.query(models.Premium)
    if status is not None:
        q = q.filter(models.Premium.payment_status == status)
    if customer_id is not None:
        q = q.filter(models.Premium.customer_id == customer_id)
    if vehicle_id is not None:
        q = q.filter(models.Premium.vehicle_id == vehicle_id)
    if policy_id is not None:
        q = q.filter(models.Premium.policy_id == policy_id)
    return paginate(q.order_by(models.Premium.created_at.desc(), models.Premium.id.desc()), page, limit)


def confirm_payment(db: Session, premium_id: int, transaction_ref: Optional[str] = None) -> models.Premium:
    premium = get_premium(db, premium_id)
    if premium.payment_status == models.PaymentStatus.PAID:
        raise InvalidState("Premium already paid")
    if premium.payment_status == models.PaymentStatus.FAILED:
        raise InvalidState("Payment for this premium failed; purchase the policy again")
    renewal = premium.renewal
    if renewal is not None and renewal.renewal_status in CLOSED_RENEWAL_STATES:
        raise InvalidState(f"Renewal is {renewal.renewal_status.value}; payment not accepted")

    now = utcnow()
    ref = transaction_ref or generate_transaction_ref()
    result = db.execute(
        update(models.Premium)
        .where(models.Premium.id == premium_id, models.Premium.payment_status == models.PaymentStatus.PENDING)
        .values(payment_status=models.PaymentStatus.PAID, payment_date=now, transaction_ref=ref, updated_at=now)
    )
    if result.rowcount != 1:
        db.rollback()
        raise InvalidState("Premium already paid")
    renewed = db.execute(
        update(models.PolicyRenewal)
        .where(
            models.PolicyRenewal.premium_id == premium_id,
            models.PolicyRenewal.renewal_status.in_(OPEN_RENEWAL_STATES),
        )
        .values(renewal_status=models.RenewalStatus.APPROVED, updated_at=now)
    )
    if renewal is not None and renewed.rowcount != 1:
        # expired or rejected between the check and the update
        db.rollback()
        raise InvalidState("Renewal is no longer open; payment not accepted")
    db.commit()
    db.expire_all()

    log_event(db, source="lifecycle", message=f"paid {premium.human_code} ref={ref}")
    try_notify(
        db,
        source="lifecycle",
        customer_id=premium.customer_id,
        policy_id=premium.policy_id,
        type=models.NotificationType.PAYMENT,
        title="Payment received",
        message=f"Payment of {premium.calculated_amount} for premium {premium.human_code} received (ref {ref}).",
    )
    return premium


def record_payment_failure(db: Session, premium_id: int, reason: Optional[str] = None) -> models.Premium:
    premium = get_premium(db, premium_id)
    if premium.payment_status != models.PaymentStatus.PENDING:
        raise InvalidState(f"Premium is {premium.payment_status.value}; only pending payments can fail")
    now = utcnow()
    result = db.execute(
        update(models.Premium)
        .where(models.Premium.id == premium_id, models.Premium.payment_status == models.PaymentStatus.PENDING)
        .values(payment_status=models.PaymentStatus.FAILED, coverage_slot=None, updated_at=now)
    )
    if result.rowcount != 1:
        db.rollback()
        raise InvalidState("Premium is no longer pending")
    # the paired renewal can never be paid for now
    db.execute(
        update(models.PolicyRenewal)
        .where(
            models.PolicyRenewal.premium_id == premium_id,
            models.PolicyRenewal.renewal_status == models.RenewalStatus.PENDING,
        )
        .values(renewal_status=models.RenewalStatus.REJECTED, admin_remarks=reason or "Payment failed", updated_at=now)
    )
    db.commit()
    db.expire_all()
    log_event(db, source="lifecycle", level="WARNING", message=f"payment failed {premium.human_code}: {reason or '-'}")
    try_notify(
        db,
        source="lifecycle",
        customer_id=premium.customer_id,
        policy_id=premium.policy_id,
        type=models.NotificationType.PAYMENT,
        title="Payment failed",
        message=f"Payment for premium {premium.human_code} failed. You can purchase the policy again.",
    )
    return premium


def get_renewal(db: Session, renewal_id: int) -> models.PolicyRenewal:
    obj = db.get(models.PolicyRenewal, renewal_id)
    if not obj:
        raise NotFound("Renewal record not found")
    return obj


def list_renewals(
    db: Session,
    *,
    status: Optional[models.RenewalStatus] = None,
    customer_id: Optional[int] = None,
    page: int = 1,
    limit: int | None = None,
) -> Page:
    q = db.query(models.PolicyRenewal)
    if status is not None:
        q = q.filter(models.PolicyRenewal.renewal_status == status)
    if customer_id is not None:
        q = q.filter(models.PolicyRenewal.customer_id == customer_id)
    return paginate(q.order_by(models.PolicyRenewal.created_at.desc(), models.PolicyRenewal.id.desc()), page, limit)


def _decide_renewal(
    db: Session, renewal_id: int, new_status: models.RenewalStatus, remarks: Optional[str]
) -> models.PolicyRenewal:
    renewal = get_renewal(db, renewal_id)
    if renewal.renewal_status != models.RenewalStatus.PENDING:
        raise InvalidState(f"Renewal is already {renewal.renewal_status.value}")
    now = utcnow()
    result = db.execute(
        update(models.PolicyRenewal)
        .where(
            models.PolicyRenewal.id == renewal_id,
            models.PolicyRenewal.renewal_status == models.RenewalStatus.PENDING,
        )
        .values(renewal_status=new_status, admin_remarks=remarks, updated_at=now)
    )
    if result.rowcount != 1:
        db.rollback()
        raise InvalidState("Renewal is no longer pending")
    if new_status == models.RenewalStatus.REJECTED:
        db.execute(
            update(models.Premium).where(models.Premium.id == renewal.premium_id).values(coverage_slot=None)
        )
    db.commit()
    db.expire_all()
    log_event(db, source="lifecycle", message=f"renewal {renewal.human_code} -> {new_status.value}")
    try_notify(
        db,
        source="lifecycle",
        customer_id=renewal.customer_id,
        policy_id=renewal.policy_id,
        type=models.NotificationType.RENEWAL,
        title=f"Renewal {new_status.value.lower()}",
        message=f"Your renewal {renewal.human_code} was {new_status.value.lower()}." + (f" Remarks: {remarks}" if remarks else ""),
    )
    return renewal


def approve_renewal(db: Session, renewal_id: int, remarks: Optional[str] = None) -> models.PolicyRenewal:
    return _decide_renewal(db, renewal_id, models.RenewalStatus.APPROVED, remarks)


def reject_renewal(db: Session, renewal_id: int, remarks: Optional[str] = None) -> models.PolicyRenewal:
    """Reject a pending renewal. The premium keeps its payment status and only loses its slot."""
    return _decide_renewal(db, renewal_id, models.RenewalStatus.REJECTED, remarks)


def sweep_expired(db: Session, now: Optional[datetime] = None) -> int:
    """Expire every open renewal whose expiry date has passed; returns how many this call expired."""
    now = to_utc_naive(now) or utcnow()
    candidates = (
        db.query(models.PolicyRenewal)
        .filter(
            models.PolicyRenewal.expiry_date < now,
            models.PolicyRenewal.renewal_status.in_(OPEN_RENEWAL_STATES),
        )
        .order_by(models.PolicyRenewal.id.asc())
        .all()
    )
    expired: list[models.PolicyRenewal] = []
    for renewal in candidates:
        # a concurrent sweep may have expired it already
        result = db.execute(
            update(models.PolicyRenewal)
            .where(
                models.PolicyRenewal.id == renewal.id,
                models.PolicyRenewal.renewal_status.in_(OPEN_RENEWAL_STATES),
            )
            .values(renewal_status=models.RenewalStatus.EXPIRED, updated_at=now)
        )
        if result.rowcount:
            expired.append(renewal)
    if expired:
        db.execute(
            update(models.Premium)
            .where(models.Premium.id.in_([r.premium_id for r in expired]))
            .values(coverage_slot=None)
        )
    db.commit()
    db.expire_all()
    if not expired:
        return 0

    log_event(db, source="lifecycle", message=f"sweep expired {len(expired)} renewal(s) as of {now.isoformat()}")
    for renewal in expired:
        try_notify(
            db,
            source="lifecycle",
            customer_id=renewal.customer_id,
            policy_id=renewal.policy_id,
            type=models.NotificationType.EXPIRY,
            title="Policy expired",
            message=f"Your coverage {renewal.human_code} expired on {renewal.expiry_date.date().isoformat()}. Submit a renewal to stay covered.",
        )
    return len(expired)


def list_expiring(db: Session, within_days: int = REMINDER_WINDOW_DAYS, now: Optional[datetime] = None) -> list[models.PolicyRenewal]:
    now = to_utc_naive(now) or utcnow()
    horizon = now + timedelta(days=within_days)
    return (
        db.query(models.PolicyRenewal)
        .filter(
            models.PolicyRenewal.renewal_status == models.RenewalStatus.APPROVED,
            models.PolicyRenewal.expiry_date >= now,
            models.PolicyRenewal.expiry_date <= horizon,
        )
        .order_by(models.PolicyRenewal.expiry_date.asc(), models.PolicyRenewal.id.asc())
        .all()
    )


def send_expiry_reminders(
    db: Session, within_days: Optional[int] = None, now: Optional[datetime] = None
) -> int:
    now = to_utc_naive(now) or utcnow()
    due = [r for r in list_expiring(db, within_days or REMINDER_WINDOW_DAYS, now) if not r.reminder_sent]
    sent = 0
    for renewal in due:
        result = db.execute(
            update(models.PolicyRenewal)
            .where(models.PolicyRenewal.id == renewal.id, models.PolicyRenewal.reminder_sent.is_(False))
            .values(reminder_sent=True, reminder_sent_at=now)
        )
        if not result.rowcount:
            continue
        create_notification(
            db,
            customer_id=renewal.customer_id,
            policy_id=renewal.policy_id,
            type=models.NotificationType.EXPIRY,
            title="Policy expiring soon",
            message=f"Your coverage {renewal.human_code} expires on {renewal.expiry_date.date().isoformat()}. Renew to avoid a lapse.",
            commit=False,
        )
        sent += 1
    db.commit()
    db.expire_all()
    if sent:
        log_event(db, source="lifecycle", message=f"sent {sent} expiry reminder(s)")
    return sent
