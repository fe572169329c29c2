import enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from motorcover.utils.time_utils import utcnow

from .session import Base


class VehicleType(str, enum.Enum):
    TWO_WHEELER = "TwoWheeler"
    FOUR_WHEELER = "FourWheeler"
    COMMERCIAL = "Commercial"

class CoverageType(str, enum.Enum):
    THIRD_PARTY = "ThirdParty"
    COMPREHENSIVE = "Comprehensive"
    OWN_DAMAGE = "OwnDamage"

class PaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"

class RenewalStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    EXPIRED = "Expired"

class ClaimStatus(str, enum.Enum):
    PENDING = "Pending"
    UNDER_REVIEW = "UnderReview"
    APPROVED = "Approved"
    REJECTED = "Rejected"

class NotificationType(str, enum.Enum):
    EXPIRY = "Expiry"
    RENEWAL = "Renewal"
    CLAIM_UPDATE = "ClaimUpdate"
    PAYMENT = "Payment"
    GENERAL = "General"

class DeliveryStatus(str, enum.Enum):
    SENT = "Sent"
    DELIVERED = "Delivered"
    FAILED = "Failed"

def _enum(cls, name: str) -> Enum:
    # store the value ("FourWheeler"), not the member name
    return Enum(cls, name=name, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20)

class Counter(Base):
    __tablename__ = "counters"

    name = Column(String(64), primary_key=True)
    sequence = Column(Integer, nullable=False, default=0)

class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    human_code = Column(String(16), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    contact_number = Column(String(10), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    address = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    vehicles = relationship("Vehicle", back_populates="customer")

class InsurancePolicy(Base):
    __tablename__ = "insurance_policies"

    id = Column(Integer, primary_key=True, index=True)
    human_code = Column(String(16), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    # lower-cased, trimmed name; carries the case-insensitive uniqueness
    name_key = Column(String(100), unique=True, nullable=False)
    coverage_type = Column(_enum(CoverageType, "coverage_type"), nullable=False, index=True)
    duration_months = Column(Integer, nullable=False)
    base_amount = Column(Numeric(12, 2), nullable=False)
    pricing_rules = Column(JSON, nullable=False, default=dict)
    description = Column(Text, nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("duration_months IN (12, 24, 36)", name="ck_policy_duration"),
        CheckConstraint("base_amount >= 0", name="ck_policy_base_amount"),
    )

class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True)
    human_code = Column(String(16), unique=True, index=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    plate_number = Column(String(12), unique=True, nullable=False)
    vehicle_type = Column(_enum(VehicleType, "vehicle_type"), nullable=False, index=True)
    model = Column(String(100), nullable=False)
    registration_year = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    customer = relationship("Customer", back_populates="vehicles")

class Premium(Base):
    __tablename__ = "premiums"

    id = Column(Integer, primary_key=True, index=True)
    human_code = Column(String(16), unique=True, index=True, nullable=False)
    policy_id = Column(Integer, ForeignKey("insurance_policies.id"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    coverage_type = Column(_enum(CoverageType, "premium_coverage_type"), nullable=False)
    calculated_amount = Column(Numeric(12, 2), nullable=False)
    breakdown = Column(JSON, nullable=False, default=dict)
    payment_status = Column(
        _enum(PaymentStatus, "payment_status"), nullable=False, default=PaymentStatus.PENDING, index=True
    )
    payment_date = Column(DateTime, nullable=True)
    transaction_ref = Column(String(64), nullable=True)
    # "<vehicle_id>:<coverage_type>" while this premium holds the vehicle's
    # coverage for that type, NULL once it failed, was rejected or expired
    coverage_slot = Column(String(64), unique=True, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    policy = relationship("InsurancePolicy")
    vehicle = relationship("Vehicle")
    renewal = relationship("PolicyRenewal", back_populates="premium", uselist=False)

    __table_args__ = (CheckConstraint("calculated_amount >= 0", name="ck_premium_amount"),)

class PolicyRenewal(Base):
    __tablename__ = "policy_renewals"

    id = Column(Integer, primary_key=True, index=True)
    human_code = Column(String(16), unique=True, index=True, nullable=False)
    policy_id = Column(Integer, ForeignKey("insurance_policies.id"), nullable=False, index=True)
    premium_id = Column(Integer, ForeignKey("premiums.id"), unique=True, nullable=False)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    renewal_date = Column(DateTime, nullable=False)
    expiry_date = Column(DateTime, nullable=False, index=True)
    renewal_status = Column(
        _enum(RenewalStatus, "renewal_status"), nullable=False, default=RenewalStatus.PENDING, index=True
    )
    reminder_sent = Column(Boolean, nullable=False, default=False)
    reminder_sent_at = Column(DateTime, nullable=True)
    admin_remarks = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    premium = relationship("Premium", back_populates="renewal")

    __table_args__ = (CheckConstraint("expiry_date > renewal_date", name="ck_renewal_window"),)

class Claim(Base):
    __tablename__ = "claims"

    id = Column(Integer, primary_key=True, index=True)
    human_code = Column(String(16), unique=True, index=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    policy_id = Column(Integer, ForeignKey("insurance_policies.id"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, index=True)
    premium_id = Column(Integer, ForeignKey("premiums.id"), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    supporting_docs = Column(JSON, nullable=False, default=list)
    claim_date = Column(DateTime, nullable=False, default=utcnow)
    claim_amount = Column(Numeric(12, 2), nullable=True)
    status = Column(_enum(ClaimStatus, "claim_status"), nullable=False, default=ClaimStatus.PENDING, index=True)
    admin_remarks = Column(Text, nullable=True)
    processed_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (CheckConstraint("claim_amount IS NULL OR claim_amount >= 0", name="ck_claim_amount"),)

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    human_code = Column(String(16), unique=True, index=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    policy_id = Column(Integer, ForeignKey("insurance_policies.id"), nullable=True)
    type = Column(_enum(NotificationType, "notification_type"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    sent_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    is_read = Column(Boolean, nullable=False, default=False)
    delivery_status = Column(
        _enum(DeliveryStatus, "delivery_status"), nullable=False, default=DeliveryStatus.SENT
    )

class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    source = Column(String(64), nullable=False)
    level = Column(String(16), nullable=False, default="INFO")
    message = Column(Text, nullable=False)
