from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from motorcover.api.deps import admin_only, back_office, customer_only, get_caller
from motorcover.api.responses import dump, ok, paged
from motorcover.db.models import NotificationType
from motorcover.db.session import get_db
from motorcover.schemas.notifications import DeliveryStatusIn, NotificationCreate, NotificationOut
from motorcover.services import notifications as svc
from motorcover.services.access import Caller, customer_scope


router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("/my")
def api_my_notifications(
    is_read: Optional[bool] = None,
    type: Optional[NotificationType] = None,
    page: int = 1,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(customer_only),
):
    customer_id = customer_scope(caller)
    result = svc.list_notifications(db, customer_id=customer_id, type=type, is_read=is_read, page=page, limit=limit)
    return paged(result, NotificationOut)


@router.get("/unread-count")
def api_unread_count(db: Session = Depends(get_db), caller: Caller = Depends(customer_only)):
    return ok("Unread count", {"unread": svc.unread_count(db, customer_scope(caller))})


@router.put("/read-all")
def api_mark_all_read(db: Session = Depends(get_db), caller: Caller = Depends(customer_only)):
    count = svc.mark_all_read(db, customer_scope(caller))
    return ok(f"{count} notification(s) marked as read", {"updated": count})


@router.put("/{notification_id}/read")
def api_mark_read(notification_id: int, db: Session = Depends(get_db), caller: Caller = Depends(customer_only)):
    obj = svc.mark_read(db, notification_id, customer_scope(caller))
    return ok("Notification marked as read", dump(NotificationOut, obj))


@router.get("")
def api_list_notifications(
    customer_id: Optional[int] = None,
    is_read: Optional[bool] = None,
    type: Optional[NotificationType] = None,
    page: int = 1,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(back_office),
):
    result = svc.list_notifications(db, customer_id=customer_id, type=type, is_read=is_read, page=page, limit=limit)
    return paged(result, NotificationOut)


@router.post("/send", status_code=201)
def api_send_notification(
    data: NotificationCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(admin_only),
):
    obj = svc.create_notification(
        db,
        customer_id=data.customer_id,
        policy_id=data.policy_id,
        type=data.type,
        title=data.title,
        message=data.message,
    )
    return ok("Notification sent", dump(NotificationOut, obj))


@router.put("/{notification_id}/delivery")
def api_set_delivery(
    notification_id: int,
    data: DeliveryStatusIn,
    db: Session = Depends(get_db),
    caller: Caller = Depends(admin_only),
):
    obj = svc.set_delivery_status(db, notification_id, data.delivery_status)
    return ok("Delivery status updated", dump(NotificationOut, obj))


@router.delete("/{notification_id}")
def api_delete_notification(notification_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    # staff cannot delete; admins may delete any, customers only their own
    if not caller.is_customer:
        admin_only(caller)
    customer_id = customer_scope(caller) if caller.is_customer else None
    svc.delete_notification(db, notification_id, customer_id)
    return ok("Notification deleted")
