from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Optional

from motorcover.db import models
from motorcover.services.events import log_event
from motorcover.services.sequences import CodePrefix, mint_code
from motorcover.utils.errors import NotFound, ServiceError
from motorcover.utils.pagination import Page, paginate


def create_notification(
    db: Session,
    *,
    customer_id: int,
    type: models.NotificationType,
    title: str,
    message: str,
    policy_id: Optional[int] = None,
    commit: bool = True,
) -> models.Notification:
    if not db.get(models.Customer, customer_id):
        raise NotFound("Customer not found")
    obj = models.Notification(
        human_code=mint_code(db, CodePrefix.NOTIFICATION),
        customer_id=customer_id,
        policy_id=policy_id,
        type=type,
        title=title,
        message=message,
    )
    db.add(obj)
    if commit:
        db.commit()
        log_event(db, source="notifications", message=f"sent {obj.human_code} type={type.value} customer_id={customer_id}")
    else:
        db.flush()
    return obj


def try_notify(db: Session, *, source: str, **fields) -> Optional[models.Notification]:
    """Create a notification after the business write has been committed.

    Delivery is fire-and-forget: a failure here is written to the audit log and
    swallowed, so it can never undo the decision that triggered it.
    """
    try:
        return create_notification(db, **fields)
    except (ServiceError, SQLAlchemyError) as exc:
        db.rollback()
        log_event(
            db,
            source=source,
            level="WARNING",
            message=f"notification for customer_id={fields.get('customer_id')} not sent: {exc}",
        )
        return None


def list_notifications(
    db: Session,
    *,
    customer_id: Optional[int] = None,
    type: Optional[models.NotificationType] = None,
    is_read: Optional[bool] = None,
    page: int = 1,
    limit: int | None = None,
) -> Page:
    q = db.query(models.Notification)
    if customer_id is not None:
        q = q.filter(models.Notification.customer_id == customer_id)
    if type is not None:
        q = q.filter(models.Notification.type == type)
    if is_read is not None:
        q = q.filter(models.Notification.is_read == is_read)
    q = q.order_by(models.Notification.sent_at.desc(), models.Notification.id.desc())
    return paginate(q, page, limit)


def unread_count(db: Session, customer_id: int) -> int:
    return (
        db.query(models.Notification)
        .filter(models.Notification.customer_id == customer_id, models.Notification.is_read.is_(False))
        .count()
    )


def get_notification(db: Session, notification_id: int, customer_id: Optional[int] = None) -> models.Notification:
    obj = db.get(models.Notification, notification_id)
    # a customer asking for someone else's notification gets the same answer as a missing one
    if not obj or (customer_id is not None and obj.customer_id != customer_id):
        raise NotFound("Notification not found")
    return obj


def mark_read(db: Session, notification_id: int, customer_id: Optional[int] = None) -> models.Notification:
    obj = get_notification(db, notification_id, customer_id)
    obj.is_read = True
    db.commit()
    db.expire_all()
    return obj


def mark_all_read(db: Session, customer_id: int) -> int:
    result = db.execute(
        update(models.Notification)
        .where(models.Notification.customer_id == customer_id, models.Notification.is_read.is_(False))
        .values(is_read=True)
    )
    db.commit()
    return result.rowcount


def set_delivery_status(
    db: Session, notification_id: int, status: models.DeliveryStatus
) -> models.Notification:
    obj = get_notification(db, notification_id)
    obj.delivery_status = status
    db.commit()
    log_event(db, source="notifications", message=f"delivery {obj.human_code} -> {status.value}")
    return obj


def delete_notification(db: Session, notification_id: int, customer_id: Optional[int] = None) -> bool:
    obj = get_notification(db, notification_id, customer_id)
    db.delete(obj)
    db.commit()
    log_event(db, source="notifications", message=f"delete notification id={notification_id}")
    return True
