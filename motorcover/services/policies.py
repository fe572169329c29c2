from sqlalchemy.orm import Session
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from typing import Optional

from motorcover.db import models
from motorcover.schemas.policies import PolicyCreate, PolicyUpdate
from motorcover.services.events import log_event
from motorcover.services.pricing import PremiumBreakdown, calculate_premium, normalize_pricing_rules
from motorcover.services.sequences import CodePrefix, mint_code
from motorcover.utils.errors import Conflict, NotFound, ValidationError
from motorcover.utils.pagination import Page, paginate

SORT_FIELDS = {
    "created_at": models.InsurancePolicy.created_at,
    "name": models.InsurancePolicy.name,
    "base_amount": models.InsurancePolicy.base_amount,
    "duration_months": models.InsurancePolicy.duration_months,
}


def _name_key(name: str) -> str:
    return name.strip().lower()


def _ensure_name_free(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    q = db.query(models.InsurancePolicy.id).filter(models.InsurancePolicy.name_key == _name_key(name))
    if exclude_id is not None:
        q = q.filter(models.InsurancePolicy.id != exclude_id)
    if q.first():
        raise Conflict("Policy with this name already exists")


def _rules_payload(raw) -> dict | None:
    if raw is None:
        return None
    if hasattr(raw, "model_dump"):
        return raw.model_dump(exclude_none=True)
    return raw


def create_policy(db: Session, data: PolicyCreate) -> models.InsurancePolicy:
    name = data.name.strip()
    if not name:
        raise ValidationError.for_field("name", "cannot be blank", data.name)
    _ensure_name_free(db, name)
    rules = normalize_pricing_rules(_rules_payload(data.pricing_rules))

    obj = models.InsurancePolicy(
        human_code=mint_code(db, CodePrefix.POLICY),
        name=name,
        name_key=_name_key(name),
        coverage_type=data.coverage_type,
        duration_months=data.duration_months,
        base_amount=data.base_amount,
        pricing_rules=rules.as_dict(),
        description=data.description.strip(),
    )
    db.add(obj)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Policy with this name already exists")
    log_event(db, source="policies", message=f"create policy id={obj.id} code={obj.human_code} name={obj.name}")
    return obj


def list_policies(
    db: Session,
    *,
    search: Optional[str] = None,
    coverage_type: Optional[models.CoverageType] = None,
    duration_months: Optional[int] = None,
    is_active: Optional[bool] = None,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    sort_by: str = "created_at",
    descending: bool = True,
    page: int = 1,
    limit: int | None = None,
) -> Page:
    q = db.query(models.InsurancePolicy)
    if search:
        like = f"%{search}%"
        q = q.filter(
            or_(
                models.InsurancePolicy.name.ilike(like),
                models.InsurancePolicy.description.ilike(like),
                models.InsurancePolicy.human_code.ilike(like),
            )
        )
    if coverage_type is not None:
        q = q.filter(models.InsurancePolicy.coverage_type == coverage_type)
    if duration_months is not None:
        q = q.filter(models.InsurancePolicy.duration_months == duration_months)
    if is_active is not None:
        q = q.filter(models.InsurancePolicy.is_active == is_active)
    if min_amount is not None:
        q = q.filter(models.InsurancePolicy.base_amount >= min_amount)
    if max_amount is not None:
        q = q.filter(models.InsurancePolicy.base_amount <= max_amount)
    column = SORT_FIELDS.get(sort_by, models.InsurancePolicy.created_at)
    q = q.order_by(column.desc() if descending else column.asc(), models.InsurancePolicy.id.asc())
    return paginate(q, page, limit)


def get_policy(db: Session, policy_id: int) -> models.InsurancePolicy:
    obj = db.get(models.InsurancePolicy, policy_id)
    if not obj:
        raise NotFound("Policy not found")
    return obj


def update_policy(db: Session, policy_id: int, data: PolicyUpdate) -> models.InsurancePolicy:
    obj = get_policy(db, policy_id)
    payload = data.model_dump(exclude_unset=True)

    if payload.get("name") is not None:
        name = payload["name"].strip()
        if not name:
            raise ValidationError.for_field("name", "cannot be blank", payload["name"])
        if _name_key(name) != obj.name_key:
            _ensure_name_free(db, name, exclude_id=obj.id)
        obj.name = name
        obj.name_key = _name_key(name)
    if "pricing_rules" in payload and payload["pricing_rules"] is not None:
        # submitted entries override, the rest of the stored rules are kept
        current = normalize_pricing_rules(obj.pricing_rules)
        merged = normalize_pricing_rules(_rules_payload(data.pricing_rules), base=current)
        obj.pricing_rules = merged.as_dict()
    for field in ("coverage_type", "duration_months", "base_amount"):
        if payload.get(field) is not None:
            setattr(obj, field, payload[field])
    if payload.get("description") is not None:
        obj.description = payload["description"].strip()

    db.add(obj)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Policy with this name already exists")
    log_event(db, source="policies", message=f"update policy id={policy_id}")
    return obj


def toggle_policy_status(db: Session, policy_id: int) -> models.InsurancePolicy:
    obj = get_policy(db, policy_id)
    obj.is_active = not obj.is_active
    db.commit()
    state = "activated" if obj.is_active else "deactivated"
    log_event(db, source="policies", message=f"{state} policy id={policy_id}")
    return obj


def preview_premium(db: Session, policy_id: int, vehicle_id: int, *, as_of=None) -> PremiumBreakdown:
    policy = get_policy(db, policy_id)
    vehicle = db.get(models.Vehicle, vehicle_id)
    if not vehicle:
        raise NotFound("Vehicle not found")
    return calculate_premium(policy, vehicle, as_of=as_of)


def policy_stats(db: Session) -> dict:
    total = db.query(func.count(models.InsurancePolicy.id)).scalar()
    active = (
        db.query(func.count(models.InsurancePolicy.id)).filter(models.InsurancePolicy.is_active.is_(True)).scalar()
    )
    by_coverage = {c.value: 0 for c in models.CoverageType}
    rows = (
        db.query(models.InsurancePolicy.coverage_type, func.count(models.InsurancePolicy.id))
        .group_by(models.InsurancePolicy.coverage_type)
        .all()
    )
    for coverage_type, count in rows:
        by_coverage[models.CoverageType(coverage_type).value] = count
    paid_count, revenue = (
        db.query(func.count(models.Premium.id), func.coalesce(func.sum(models.Premium.calculated_amount), 0))
        .filter(models.Premium.payment_status == models.PaymentStatus.PAID)
        .one()
    )
    return {
        "total": total,
        "active": active,
        "inactive": total - active,
        "by_coverage_type": by_coverage,
        "paid_purchases": paid_count,
        "total_revenue": round(float(revenue), 2),
    }
