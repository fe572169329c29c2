from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from motorcover.db import models
from motorcover.schemas.customers import CustomerCreate, CustomerUpdate
from motorcover.services.events import log_event
from motorcover.services.sequences import CodePrefix, mint_code
from motorcover.utils.errors import Conflict, NotFound
from motorcover.utils.pagination import Page, paginate


def _ensure_unique(db: Session, *, email: str | None, contact_number: str | None, exclude_id: int | None = None) -> None:
    checks = (
        (email, models.Customer.email, "A customer with this email already exists"),
        (contact_number, models.Customer.contact_number, "A customer with this contact number already exists"),
    )
    for value, column, message in checks:
        if value is None:
            continue
        q = db.query(models.Customer).filter(column == value)
        if exclude_id is not None:
            q = q.filter(models.Customer.id != exclude_id)
        if q.first():
            raise Conflict(message)


def create_customer(db: Session, data: CustomerCreate) -> models.Customer:
    email = str(data.email).lower()
    _ensure_unique(db, email=email, contact_number=data.contact_number)
    obj = models.Customer(
        human_code=mint_code(db, CodePrefix.CUSTOMER),
        name=data.name.strip(),
        contact_number=data.contact_number,
        email=email,
        address=data.address.strip(),
    )
    db.add(obj)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("A customer with this email or contact number already exists")
    log_event(db, source="customers", message=f"create customer id={obj.id} code={obj.human_code}")
    return obj


def list_customers(
    db: Session,
    *,
    search: str | None = None,
    is_active: bool | None = None,
    page: int = 1,
    limit: int | None = None,
) -> Page:
    q = db.query(models.Customer)
    if search:
        like = f"%{search}%"
        q = q.filter(
            or_(
                models.Customer.name.ilike(like),
                models.Customer.email.ilike(like),
                models.Customer.human_code.ilike(like),
            )
        )
    if is_active is not None:
        q = q.filter(models.Customer.is_active == is_active)
    return paginate(q.order_by(models.Customer.id.desc()), page, limit)


def get_customer(db: Session, customer_id: int) -> models.Customer:
    obj = db.get(models.Customer, customer_id)
    if not obj:
        raise NotFound("Customer not found")
    return obj


def update_customer(db: Session, customer_id: int, data: CustomerUpdate) -> models.Customer:
    obj = get_customer(db, customer_id)
    payload = data.model_dump(exclude_unset=True)
    if payload.get("email") is not None:
        payload["email"] = str(payload["email"]).lower()
    _ensure_unique(db, email=payload.get("email"), contact_number=payload.get("contact_number"), exclude_id=obj.id)
    for field, value in payload.items():
        if value is not None:
            setattr(obj, field, value.strip() if isinstance(value, str) else value)
    db.add(obj)
    db.commit()
    log_event(db, source="customers", message=f"update customer id={customer_id}")
    return obj


def toggle_customer_status(db: Session, customer_id: int) -> models.Customer:
    obj = get_customer(db, customer_id)
    obj.is_active = not obj.is_active
    db.commit()
    state = "activated" if obj.is_active else "deactivated"
    log_event(db, source="customers", message=f"{state} customer id={customer_id}")
    return obj
