from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Dict, Any
from datetime import datetime

from motorcover.db.models import CoverageType, PaymentStatus, RenewalStatus


class PremiumOut(BaseModel):
    id: int
    human_code: str
    policy_id: int
    vehicle_id: int
    customer_id: int
    coverage_type: CoverageType
    calculated_amount: float
    breakdown: Dict[str, Any]
    payment_status: PaymentStatus
    payment_date: Optional[datetime]
    transaction_ref: Optional[str]
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class RenewalOut(BaseModel):
    id: int
    human_code: str
    policy_id: int
    premium_id: int
    vehicle_id: int
    customer_id: int
    renewal_date: datetime
    expiry_date: datetime
    renewal_status: RenewalStatus
    reminder_sent: bool
    reminder_sent_at: Optional[datetime]
    admin_remarks: Optional[str]
    model_config = ConfigDict(from_attributes=True)


class PaymentIn(BaseModel):
    transaction_ref: Optional[str] = Field(None, min_length=1, max_length=64)


class PaymentFailureIn(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class RenewalIn(BaseModel):
    policy_id: int
    vehicle_id: int
    customer_id: Optional[int] = None


class RenewalDecisionIn(BaseModel):
    admin_remarks: Optional[str] = Field(None, max_length=1000)


class SweepIn(BaseModel):
    now: Optional[datetime] = None


class ReminderIn(BaseModel):
    within_days: Optional[int] = Field(None, ge=1, le=365)
