from pydantic import BaseModel, Field, ConfigDict
from typing import Literal, Optional, Dict, Any
from datetime import datetime

from motorcover.db.models import CoverageType, VehicleType

Duration = Literal[12, 24, 36]


class PricingRulesIn(BaseModel):
    # keys are checked and normalized by services.pricing, unknown ones dropped
    vehicle_type_multiplier: Optional[Dict[str, float]] = None
    coverage_multiplier: Optional[Dict[str, float]] = None
    age_depreciation_pct_per_year: Optional[float] = Field(None, ge=0)


class PolicyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    coverage_type: CoverageType
    duration_months: Duration
    base_amount: float = Field(..., ge=0)
    description: str = Field("", max_length=2000)
    pricing_rules: Optional[PricingRulesIn] = None


class PolicyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    coverage_type: Optional[CoverageType] = None
    duration_months: Optional[Duration] = None
    base_amount: Optional[float] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=2000)
    pricing_rules: Optional[PricingRulesIn] = None


class PolicyOut(BaseModel):
    id: int
    human_code: str
    name: str
    coverage_type: CoverageType
    duration_months: int
    base_amount: float
    description: str
    pricing_rules: Dict[str, Any]
    is_active: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class PremiumPreviewIn(BaseModel):
    policy_id: int
    vehicle_id: int


class PurchaseIn(BaseModel):
    vehicle_id: int
    customer_id: Optional[int] = None


class BreakdownOut(BaseModel):
    base_amount: float
    vehicle_type: VehicleType
    vehicle_type_multiplier: float
    coverage_type: CoverageType
    coverage_multiplier: float
    vehicle_age: int
    age_depreciation_rate: float
    depreciation_factor: float
    final_amount: float
    reference_year: int
    calculation_steps: Dict[str, str]
