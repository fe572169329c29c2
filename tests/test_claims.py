from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from motorcover.db import models
from motorcover.services import claims, lifecycle, notifications
from motorcover.services.events import list_events
from motorcover.utils.errors import Conflict, InvalidState, NotFound, SequenceUnavailable, ValidationError
from motorcover.utils.time_utils import utcnow

REASON = "Front bumper damaged in a collision at a junction."


def _submit(db, premium, reason=REASON, docs=None):
    return claims.submit_claim(
        db, premium.customer_id, premium.policy_id, premium.vehicle_id, premium.id, reason, docs
    )


def test_claim_on_pending_premium_is_rejected(db, insured):
    customer, policy, vehicle = insured
    premium, _, _ = lifecycle.purchase(db, customer.id, policy.id, vehicle.id)
    with pytest.raises(InvalidState, match="active paid policies"):
        _submit(db, premium)
    assert claims.list_claims(db).total == 0


def test_claim_on_paid_premium_creates_one_pending_claim(db, paid_premium):
    premium, _ = paid_premium
    claim = _submit(db, premium, docs=["photo-1.jpg", ""])

    assert claim.human_code == "CLM-00001"
    assert claim.status == models.ClaimStatus.PENDING
    assert claim.supporting_docs == ["photo-1.jpg"]
    assert claim.claim_amount is None
    page = claims.list_claims(db, customer_id=premium.customer_id)
    assert [c.id for c in page.items] == [claim.id]


def test_claim_requires_matching_triple(db, paid_premium, make_customer):
    premium, _ = paid_premium
    other = make_customer(db)
    with pytest.raises(InvalidState):
        claims.submit_claim(db, other.id, premium.policy_id, premium.vehicle_id, premium.id, REASON)


def test_claim_on_expired_coverage_is_rejected(db, insured):
    customer, policy, vehicle = insured
    now = utcnow()
    premium, _, _ = lifecycle.purchase(db, customer.id, policy.id, vehicle.id, as_of=now - timedelta(days=400))
    lifecycle.confirm_payment(db, premium.id)
    lifecycle.sweep_expired(db, now)
    with pytest.raises(InvalidState):
        _submit(db, premium)


def test_short_reason_is_a_validation_error(db, paid_premium):
    premium, _ = paid_premium
    with pytest.raises(ValidationError) as exc:
        _submit(db, premium, reason="   dent    ")
    assert exc.value.errors[0]["field"] == "reason"
    assert exc.value.errors[0]["value"] == "dent"


def test_second_open_claim_conflicts(db, paid_premium):
    premium, _ = paid_premium
    _submit(db, premium)
    with pytest.raises(Conflict):
        _submit(db, premium)


def test_process_to_review_then_approve(db, paid_premium):
    premium, _ = paid_premium
    claim = _submit(db, premium)

    reviewed = claims.process_claim(db, claim.id, "UnderReview", remarks="surveyor assigned")
    assert reviewed.status == models.ClaimStatus.UNDER_REVIEW
    assert reviewed.processed_date is not None

    approved = claims.process_claim(db, claim.id, models.ClaimStatus.APPROVED, claim_amount=1500.5)
    assert approved.status == models.ClaimStatus.APPROVED
    db.expire_all()
    stored = claims.get_claim(db, claim.id)
    assert stored.claim_amount == Decimal("1500.50")

    types = [n.type for n in notifications.list_notifications(db, customer_id=premium.customer_id, limit=50).items]
    assert types.count(models.NotificationType.CLAIM_UPDATE) == 2


def test_rejection_keeps_amount_empty(db, paid_premium):
    premium, _ = paid_premium
    claim = _submit(db, premium)
    rejected = claims.process_claim(db, claim.id, "Rejected", claim_amount=999, remarks="not covered")
    assert rejected.status == models.ClaimStatus.REJECTED
    assert rejected.claim_amount is None
    assert rejected.admin_remarks == "not covered"


def test_decided_claims_are_final(db, paid_premium):
    premium, _ = paid_premium
    claim = _submit(db, premium)
    claims.process_claim(db, claim.id, "Rejected")
    for status in ("Approved", "Rejected", "UnderReview"):
        with pytest.raises(InvalidState):
            claims.process_claim(db, claim.id, status, claim_amount=10)


def test_review_twice_is_invalid(db, paid_premium):
    premium, _ = paid_premium
    claim = _submit(db, premium)
    claims.process_claim(db, claim.id, "UnderReview")
    with pytest.raises(InvalidState):
        claims.process_claim(db, claim.id, "UnderReview")


@pytest.mark.parametrize(
    "status,amount",
    [("Approved", None), ("Approved", -1), ("Pending", None), ("Closed", None)],
)
def test_process_validation(db, paid_premium, status, amount):
    premium, _ = paid_premium
    claim = _submit(db, premium)
    with pytest.raises(ValidationError):
        claims.process_claim(db, claim.id, status, claim_amount=amount)
    assert claims.get_claim(db, claim.id).status == models.ClaimStatus.PENDING


def test_process_missing_claim(db):
    with pytest.raises(NotFound):
        claims.process_claim(db, 12345, "Rejected")


def test_notification_failure_does_not_undo_decision(db, paid_premium, monkeypatch):
    premium, _ = paid_premium
    claim = _submit(db, premium)

    def boom(*args, **kwargs):
        raise SequenceUnavailable("counter store offline")

    monkeypatch.setattr(notifications, "create_notification", boom)
    approved = claims.process_claim(db, claim.id, "Approved", claim_amount=200)

    assert approved.status == models.ClaimStatus.APPROVED
    db.expire_all()
    assert claims.get_claim(db, claim.id).status == models.ClaimStatus.APPROVED
    warnings = list_events(db, source="claims", level="WARNING")
    assert len(warnings) == 1
    assert "counter store offline" in warnings[0].message


def test_stats_group_by_status(db, insured, make_vehicle, make_policy):
    customer, policy, vehicle = insured
    second_vehicle = make_vehicle(db, customer.id)
    submitted = []
    for v in (vehicle, second_vehicle):
        premium, _, _ = lifecycle.purchase(db, customer.id, policy.id, v.id)
        lifecycle.confirm_payment(db, premium.id)
        submitted.append(_submit(db, premium))
    claims.process_claim(db, submitted[0].id, "Approved", claim_amount=1200)

    stats = claims.claim_stats(db)
    assert stats["total_claims"] == 2
    assert stats["by_status"]["Approved"] == {"count": 1, "total_claim_amount": 1200.0}
    assert stats["by_status"]["Pending"]["count"] == 1
    assert stats["by_status"]["Rejected"]["count"] == 0
    assert stats["total_claim_amount"] == 1200.0


def test_decision_is_visible_on_returned_claim_and_notification(db, paid_premium):
    premium, _ = paid_premium
    claim = _submit(db, premium)

    approved = claims.process_claim(db, claim.id, "Approved", claim_amount=480, remarks="garage invoice checked")

    assert approved.admin_remarks == "garage invoice checked"
    assert approved.processed_date is not None
    assert approved.claim_amount == Decimal("480.00")
    latest = notifications.list_notifications(
        db, customer_id=premium.customer_id, type=models.NotificationType.CLAIM_UPDATE
    ).items[0]
    assert "Approved amount: 480.00" in latest.message
