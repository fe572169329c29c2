from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime

from motorcover.db.models import DeliveryStatus, NotificationType


class NotificationCreate(BaseModel):
    customer_id: int
    policy_id: Optional[int] = None
    type: NotificationType = NotificationType.GENERAL
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)


class DeliveryStatusIn(BaseModel):
    delivery_status: DeliveryStatus


class NotificationOut(BaseModel):
    id: int
    human_code: str
    customer_id: int
    policy_id: Optional[int]
    type: NotificationType
    title: str
    message: str
    sent_at: datetime
    is_read: bool
    delivery_status: DeliveryStatus
    model_config = ConfigDict(from_attributes=True)
