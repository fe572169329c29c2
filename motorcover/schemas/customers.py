from pydantic import BaseModel, Field, EmailStr, ConfigDict
from typing import Optional
from datetime import datetime


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    contact_number: str = Field(..., pattern=r"^\d{10}$")
    email: EmailStr
    address: str = Field(..., min_length=1, max_length=255)


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    contact_number: Optional[str] = Field(None, pattern=r"^\d{10}$")
    email: Optional[EmailStr] = None
    address: Optional[str] = Field(None, min_length=1, max_length=255)


class CustomerOut(BaseModel):
    id: int
    human_code: str
    name: str
    contact_number: str
    email: str
    address: str
    is_active: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
