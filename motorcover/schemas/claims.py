from pydantic import BaseModel, Field, ConfigDict
from typing import List, Literal, Optional
from datetime import datetime

from motorcover.db.models import ClaimStatus

MIN_REASON_LENGTH = 10


class ClaimCreate(BaseModel):
    policy_id: int
    vehicle_id: int
    premium_id: int
    # length is re-checked after trimming in the service
    reason: str = Field(..., max_length=2000)
    supporting_docs: List[str] = Field(default_factory=list)


class ClaimProcess(BaseModel):
    status: Literal["Approved", "Rejected", "UnderReview"]
    claim_amount: Optional[float] = Field(None, ge=0)
    admin_remarks: Optional[str] = Field(None, max_length=1000)


class ClaimOut(BaseModel):
    id: int
    human_code: str
    customer_id: int
    policy_id: int
    vehicle_id: int
    premium_id: int
    reason: str
    supporting_docs: List[str]
    claim_date: datetime
    claim_amount: Optional[float]
    status: ClaimStatus
    admin_remarks: Optional[str]
    processed_date: Optional[datetime]
    model_config = ConfigDict(from_attributes=True)
