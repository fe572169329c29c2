from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional
from datetime import datetime

from motorcover.db.models import VehicleType

PLATE_PATTERN = r"^[A-Z]{2}\d{2}[A-Z]{1,2}\d{4}$"
MIN_REGISTRATION_YEAR = 1990


def _normalize_plate(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return value
    return value.strip().replace(" ", "").upper()


class VehicleCreate(BaseModel):
    # staff/admin name the owner; customers are scoped to their own profile
    customer_id: Optional[int] = None
    plate_number: str = Field(..., pattern=PLATE_PATTERN)
    vehicle_type: VehicleType
    model: str = Field(..., min_length=1, max_length=100)
    registration_year: int = Field(..., ge=MIN_REGISTRATION_YEAR)

    normalize_plate = field_validator("plate_number", mode="before")(_normalize_plate)


class VehicleUpdate(BaseModel):
    plate_number: Optional[str] = Field(None, pattern=PLATE_PATTERN)
    vehicle_type: Optional[VehicleType] = None
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    registration_year: Optional[int] = Field(None, ge=MIN_REGISTRATION_YEAR)

    normalize_plate = field_validator("plate_number", mode="before")(_normalize_plate)


class VehicleOut(BaseModel):
    id: int
    human_code: str
    customer_id: int
    plate_number: str
    vehicle_type: VehicleType
    model: str
    registration_year: int
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
