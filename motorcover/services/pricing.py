"""
Premium calculation.

    premium = base_amount * vehicle_type_multiplier * coverage_multiplier * depreciation

with ``depreciation = max(0.5, 1 - vehicle_age * age_rate / 100)``, so an old
vehicle never costs less than half of its undepreciated price. The result is
rounded half-up to two decimals.

Nothing here touches the database. The reference date (which fixes the
vehicle's age) is a parameter; callers pass ``None`` only at the outermost
layer to mean "today".
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping

from motorcover.db.models import CoverageType, VehicleType
from motorcover.utils.errors import ValidationError, field_error
from motorcover.utils.time_utils import reference_year

CENT = Decimal("0.01")
DEPRECIATION_FLOOR = Decimal("0.5")

DEFAULT_VEHICLE_TYPE_MULTIPLIER: dict[VehicleType, float] = {
    VehicleType.TWO_WHEELER: 0.8,
    VehicleType.FOUR_WHEELER: 1.0,
    VehicleType.COMMERCIAL: 1.5,
}
DEFAULT_COVERAGE_MULTIPLIER: dict[CoverageType, float] = {
    CoverageType.THIRD_PARTY: 0.6,
    CoverageType.COMPREHENSIVE: 1.0,
    CoverageType.OWN_DAMAGE: 0.8,
}
DEFAULT_AGE_DEPRECIATION = 2.0

# labels used by older clients for the same keys
_LEGACY_LABELS = {
    "2-Wheeler": VehicleType.TWO_WHEELER,
    "4-Wheeler": VehicleType.FOUR_WHEELER,
    "Third-Party": CoverageType.THIRD_PARTY,
    "Own-Damage": CoverageType.OWN_DAMAGE,
}
_RULE_KEYS = {
    "vehicle_type_multiplier": "vehicle_type_multiplier",
    "vehicleTypeMultiplier": "vehicle_type_multiplier",
    "coverage_multiplier": "coverage_multiplier",
    "coverageMultiplier": "coverage_multiplier",
    "age_depreciation_pct_per_year": "age_depreciation_pct_per_year",
    "ageDepreciationPctPerYear": "age_depreciation_pct_per_year",
    "ageDepreciation": "age_depreciation_pct_per_year",
}


@dataclass
class PricingRules:
    vehicle_type_multiplier: dict[VehicleType, float] = field(
        default_factory=lambda: dict(DEFAULT_VEHICLE_TYPE_MULTIPLIER)
    )
    coverage_multiplier: dict[CoverageType, float] = field(default_factory=lambda: dict(DEFAULT_COVERAGE_MULTIPLIER))
    age_depreciation_pct_per_year: float = DEFAULT_AGE_DEPRECIATION

    def as_dict(self) -> dict[str, Any]:
        return {
            "vehicle_type_multiplier": {k.value: v for k, v in self.vehicle_type_multiplier.items()},
            "coverage_multiplier": {k.value: v for k, v in self.coverage_multiplier.items()},
            "age_depreciation_pct_per_year": self.age_depreciation_pct_per_year,
        }


@dataclass(frozen=True)
class PremiumBreakdown:
    base_amount: Decimal
    vehicle_type: VehicleType
    vehicle_type_multiplier: Decimal
    coverage_type: CoverageType
    coverage_multiplier: Decimal
    vehicle_age: int
    age_depreciation_rate: Decimal
    depreciation_factor: Decimal
    final_amount: Decimal
    reference_year: int

    @property
    def steps(self) -> dict[str, str]:
        return {
            "step1": f"Base Amount: {self.base_amount}",
            "step2": f"x Vehicle Type ({self.vehicle_type.value}): {self.vehicle_type_multiplier}",
            "step3": f"x Coverage ({self.coverage_type.value}): {self.coverage_multiplier}",
            "step4": (
                f"x Age Factor ({self.vehicle_age}yr, -{self.age_depreciation_rate}%/yr): "
                f"{self.depreciation_factor}"
            ),
            "result": f"= {self.final_amount}",
        }

    def as_dict(self) -> dict[str, Any]:
        """JSON-safe form, stored on the premium and returned to clients."""
        return {
            "base_amount": float(self.base_amount),
            "vehicle_type": self.vehicle_type.value,
            "vehicle_type_multiplier": float(self.vehicle_type_multiplier),
            "coverage_type": self.coverage_type.value,
            "coverage_multiplier": float(self.coverage_multiplier),
            "vehicle_age": self.vehicle_age,
            "age_depreciation_rate": float(self.age_depreciation_rate),
            "depreciation_factor": float(self.depreciation_factor),
            "final_amount": float(self.final_amount),
            "reference_year": self.reference_year,
            "calculation_steps": self.steps,
        }


def _enum_key(enum_cls, key: Any):
    if isinstance(key, enum_cls):
        return key
    if isinstance(key, str):
        if key in _LEGACY_LABELS and isinstance(_LEGACY_LABELS[key], enum_cls):
            return _LEGACY_LABELS[key]
        for member in enum_cls:
            if key in (member.value, member.name):
                return member
    return None


def _rate(value: Any, field_name: str, errors: list[dict]) -> float | None:
    try:
        rate = float(value)
    except (TypeError, ValueError):
        errors.append(field_error(field_name, "must be a number", value))
        return None
    if rate < 0:
        errors.append(field_error(field_name, "cannot be negative", value))
        return None
    return rate


def _merge_table(current: dict, raw: Any, enum_cls, field_name: str, errors: list[dict]) -> dict:
    merged = dict(current)
    if raw is None:
        return merged
    if not isinstance(raw, Mapping):
        errors.append(field_error(field_name, "must be a mapping", raw))
        return merged
    for key, value in raw.items():
        member = _enum_key(enum_cls, key)
        if member is None:
            # unknown keys are dropped, not stored
            continue
        rate = _rate(value, f"{field_name}.{member.value}", errors)
        if rate is not None:
            merged[member] = rate
    return merged


def normalize_pricing_rules(raw: Any = None, base: PricingRules | None = None) -> PricingRules:
    """Turn a stored or submitted rule mapping into typed ``PricingRules``.

    Keys may be enum values, enum names or legacy labels; anything else is
    ignored. Entries not present in ``raw`` keep their value from ``base``
    (defaults when ``base`` is None), so this is also the merge used on update.
    Raises ValidationError for non-numeric or negative rates.
    """
    rules = base or PricingRules()
    if isinstance(raw, PricingRules):
        return raw
    if not raw:
        return PricingRules(
            vehicle_type_multiplier=dict(rules.vehicle_type_multiplier),
            coverage_multiplier=dict(rules.coverage_multiplier),
            age_depreciation_pct_per_year=rules.age_depreciation_pct_per_year,
        )
    if not isinstance(raw, Mapping):
        raise ValidationError.for_field("pricing_rules", "must be a mapping", raw)

    values: dict[str, Any] = {}
    for key, value in raw.items():
        canonical = _RULE_KEYS.get(key)
        if canonical:
            values[canonical] = value

    errors: list[dict] = []
    vt = _merge_table(
        rules.vehicle_type_multiplier,
        values.get("vehicle_type_multiplier"),
        VehicleType,
        "pricing_rules.vehicle_type_multiplier",
        errors,
    )
    cov = _merge_table(
        rules.coverage_multiplier,
        values.get("coverage_multiplier"),
        CoverageType,
        "pricing_rules.coverage_multiplier",
        errors,
    )
    age_rate = rules.age_depreciation_pct_per_year
    if values.get("age_depreciation_pct_per_year") is not None:
        parsed = _rate(values["age_depreciation_pct_per_year"], "pricing_rules.age_depreciation_pct_per_year", errors)
        if parsed is not None:
            age_rate = parsed
    if errors:
        raise ValidationError("Invalid pricing rules", errors=errors)
    return PricingRules(vehicle_type_multiplier=vt, coverage_multiplier=cov, age_depreciation_pct_per_year=age_rate)


def _as_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # go through str so 0.8 stays 0.8 and not 0.8000000000000000444
    return Decimal(str(value))


def calculate_premium(policy, vehicle, *, as_of: date | datetime | int | None = None) -> PremiumBreakdown:
    """Price ``policy`` for ``vehicle``.

    ``policy`` needs ``base_amount``, ``coverage_type`` and ``pricing_rules``;
    ``vehicle`` needs ``vehicle_type`` and ``registration_year``. ORM rows and
    plain objects both work.
    """
    year = reference_year(as_of)
    rules = normalize_pricing_rules(policy.pricing_rules)
    vehicle_type = VehicleType(vehicle.vehicle_type)
    coverage_type = CoverageType(policy.coverage_type)

    base_amount = _as_decimal(policy.base_amount)
    # a registration year ahead of the reference year counts as new
    vehicle_age = max(0, year - int(vehicle.registration_year))
    vt_multiplier = _as_decimal(rules.vehicle_type_multiplier.get(vehicle_type, 1.0))
    cov_multiplier = _as_decimal(rules.coverage_multiplier.get(coverage_type, 1.0))
    age_rate = _as_decimal(rules.age_depreciation_pct_per_year)

    depreciation = Decimal(1) - (Decimal(vehicle_age) * age_rate / Decimal(100))
    depreciation = min(Decimal(1), max(DEPRECIATION_FLOOR, depreciation))

    raw = base_amount * vt_multiplier * cov_multiplier * depreciation
    final_amount = max(Decimal(0), raw).quantize(CENT, rounding=ROUND_HALF_UP)

    return PremiumBreakdown(
        base_amount=base_amount,
        vehicle_type=vehicle_type,
        vehicle_type_multiplier=vt_multiplier,
        coverage_type=coverage_type,
        coverage_multiplier=cov_multiplier,
        vehicle_age=vehicle_age,
        age_depreciation_rate=age_rate,
        depreciation_factor=depreciation,
        final_amount=final_amount,
        reference_year=year,
    )
