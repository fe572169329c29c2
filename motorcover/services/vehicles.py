from sqlalchemy import delete, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional

from motorcover.db import models
from motorcover.schemas.vehicles import VehicleCreate, VehicleUpdate
from motorcover.services.events import log_event
from motorcover.services.sequences import CodePrefix, mint_code
from motorcover.utils.errors import Conflict, InvalidState, NotFound, ValidationError
from motorcover.utils.pagination import Page, paginate
from motorcover.utils.time_utils import utcnow


def _check_registration_year(year: int) -> None:
    current = utcnow().year
    if year > current:
        raise ValidationError.for_field("registration_year", f"cannot be later than {current}", year)


def _plate_taken(db: Session, plate_number: str, exclude_id: Optional[int] = None) -> bool:
    q = db.query(models.Vehicle.id).filter(models.Vehicle.plate_number == plate_number)
    if exclude_id is not None:
        q = q.filter(models.Vehicle.id != exclude_id)
    return q.first() is not None


def register_vehicle(db: Session, customer_id: int, data: VehicleCreate) -> models.Vehicle:
    customer = db.get(models.Customer, customer_id)
    if not customer:
        raise NotFound("Customer not found")
    if not customer.is_active:
        raise InvalidState("Customer account is inactive")
    _check_registration_year(data.registration_year)
    if _plate_taken(db, data.plate_number):
        raise Conflict("Vehicle with this plate number already exists")

    obj = models.Vehicle(
        human_code=mint_code(db, CodePrefix.VEHICLE),
        customer_id=customer_id,
        plate_number=data.plate_number,
        vehicle_type=data.vehicle_type,
        model=data.model.strip(),
        registration_year=data.registration_year,
    )
    db.add(obj)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Vehicle with this plate number already exists")
    log_event(db, source="vehicles", message=f"register vehicle id={obj.id} plate={obj.plate_number} customer_id={customer_id}")
    return obj


def list_vehicles(
    db: Session,
    *,
    customer_id: Optional[int] = None,
    vehicle_type: Optional[models.VehicleType] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int | None = None,
) -> Page:
    q = db.query(models.Vehicle)
    if customer_id is not None:
        q = q.filter(models.Vehicle.customer_id == customer_id)
    if vehicle_type is not None:
        q = q.filter(models.Vehicle.vehicle_type == vehicle_type)
    if search:
        like = f"%{search}%"
        q = q.filter(
            or_(
                models.Vehicle.plate_number.ilike(like),
                models.Vehicle.model.ilike(like),
                models.Vehicle.human_code.ilike(like),
            )
        )
    return paginate(q.order_by(models.Vehicle.id.desc()), page, limit)


def get_vehicle(db: Session, vehicle_id: int) -> models.Vehicle:
    obj = db.get(models.Vehicle, vehicle_id)
    if not obj:
        raise NotFound("Vehicle not found")
    return obj


def active_premiums(db: Session, vehicle_id: int) -> list[models.Premium]:
    """Paid premiums still holding a coverage slot on the vehicle."""
    return (
        db.query(models.Premium)
        .filter(
            models.Premium.vehicle_id == vehicle_id,
            models.Premium.payment_status == models.PaymentStatus.PAID,
            models.Premium.coverage_slot.is_not(None),
        )
        .order_by(models.Premium.id.asc())
        .all()
    )


def _count_live_premiums(db: Session, vehicle_id: int, status: models.PaymentStatus) -> int:
    # rejected, failed and expired premiums no longer hold a coverage slot
    return (
        db.query(func.count(models.Premium.id))
        .filter(
            models.Premium.vehicle_id == vehicle_id,
            models.Premium.payment_status == status,
            models.Premium.coverage_slot.is_not(None),
        )
        .scalar()
    )


def update_vehicle(db: Session, vehicle_id: int, data: VehicleUpdate) -> models.Vehicle:
    obj = get_vehicle(db, vehicle_id)
    payload = data.model_dump(exclude_unset=True)
    new_plate = payload.get("plate_number")
    if new_plate and new_plate != obj.plate_number and _plate_taken(db, new_plate, exclude_id=obj.id):
        raise Conflict("Vehicle with this plate number already exists")
    new_type = payload.get("vehicle_type")
    if new_type is not None and new_type != obj.vehicle_type:
        if _count_live_premiums(db, vehicle_id, models.PaymentStatus.PAID):
            raise InvalidState("Cannot change vehicle type while the vehicle has paid coverage")
    if payload.get("registration_year") is not None:
        _check_registration_year(payload["registration_year"])
    for field, value in payload.items():
        if value is not None:
            setattr(obj, field, value.strip() if field == "model" else value)
    db.add(obj)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Vehicle with this plate number already exists")
    log_event(db, source="vehicles", message=f"update vehicle id={vehicle_id}")
    return obj


def delete_vehicle(db: Session, vehicle_id: int) -> bool:
    # the guard queries run in the deleting transaction (BEGIN IMMEDIATE on SQLite)
    obj = get_vehicle(db, vehicle_id)
    if _count_live_premiums(db, vehicle_id, models.PaymentStatus.PAID):
        raise InvalidState("Cannot delete vehicle with active paid policies")
    if _count_live_premiums(db, vehicle_id, models.PaymentStatus.PENDING):
        raise InvalidState("Cannot delete vehicle with pending premium payments")
    open_claims = (
        db.query(func.count(models.Claim.id))
        .filter(
            models.Claim.vehicle_id == vehicle_id,
            models.Claim.status.in_([models.ClaimStatus.PENDING, models.ClaimStatus.UNDER_REVIEW]),
        )
        .scalar()
    )
    if open_claims:
        raise InvalidState("Cannot delete vehicle with open claims")
    plate = obj.plate_number
    # closed history goes with the vehicle, claims and renewals before their premiums
    for table in (models.Claim, models.PolicyRenewal, models.Premium):
        db.execute(delete(table).where(table.vehicle_id == vehicle_id))
    db.delete(obj)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvalidState("Vehicle is still referenced by premiums or claims")
    log_event(db, source="vehicles", message=f"delete vehicle id={vehicle_id} plate={plate}")
    return True


def vehicle_stats(db: Session, customer_id: Optional[int] = None) -> dict:
    q = db.query(models.Vehicle.vehicle_type, func.count(models.Vehicle.id))
    if customer_id is not None:
        q = q.filter(models.Vehicle.customer_id == customer_id)
    by_type = {t.value: 0 for t in models.VehicleType}
    for vehicle_type, count in q.group_by(models.Vehicle.vehicle_type).all():
        by_type[models.VehicleType(vehicle_type).value] = count
    return {"total": sum(by_type.values()), "by_type": by_type}
