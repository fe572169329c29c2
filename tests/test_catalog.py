from __future__ import annotations

from datetime import timedelta

import pytest

from motorcover.db import models
from motorcover.schemas.customers import CustomerUpdate
from motorcover.schemas.policies import PolicyUpdate
from motorcover.schemas.vehicles import VehicleCreate, VehicleUpdate
from motorcover.services import claims, customers, lifecycle, notifications, policies, vehicles
from motorcover.utils.errors import Conflict, InvalidState, NotFound, ValidationError
from motorcover.utils.time_utils import utcnow


# customers

def test_customer_codes_and_uniqueness(db, make_customer):
    first = make_customer(db, email="Asha.Rao@Mail.com", contact_number="9000000001")
    assert first.human_code == "CUST-00001"
    assert first.email == "asha.rao@mail.com"
    with pytest.raises(Conflict):
        make_customer(db, email="asha.rao@mail.com")
    with pytest.raises(Conflict):
        make_customer(db, contact_number="9000000001")


def test_customer_update_and_toggle(db, make_customer):
    a = make_customer(db)
    b = make_customer(db)
    with pytest.raises(Conflict):
        customers.update_customer(db, b.id, CustomerUpdate(email=a.email))
    updated = customers.update_customer(db, b.id, CustomerUpdate(address="  9 Lake View, Kochi "))
    assert updated.address == "9 Lake View, Kochi"
    assert customers.toggle_customer_status(db, b.id).is_active is False
    assert customers.list_customers(db, is_active=True).total == 1


def test_customer_search(db, make_customer):
    make_customer(db, name="Meera Menon")
    make_customer(db, name="Kabir Khan")
    page = customers.list_customers(db, search="meera")
    assert [c.name for c in page.items] == ["Meera Menon"]


# vehicles

def test_register_vehicle_normalizes_plate(db, make_customer, make_vehicle):
    owner = make_customer(db)
    vehicle = make_vehicle(db, owner.id, plate_number=" mh12 ab 1234 ")
    assert vehicle.plate_number == "MH12AB1234"
    assert vehicle.human_code == "VEH-00001"
    with pytest.raises(Conflict):
        make_vehicle(db, owner.id, plate_number="MH12AB1234")


def test_register_vehicle_rejects_future_year(db, make_customer, make_vehicle):
    owner = make_customer(db)
    with pytest.raises(ValidationError):
        make_vehicle(db, owner.id, registration_year=utcnow().year + 1)


def test_inactive_customer_cannot_register(db, make_customer, make_vehicle):
    owner = make_customer(db)
    customers.toggle_customer_status(db, owner.id)
    with pytest.raises(InvalidState):
        make_vehicle(db, owner.id)


def test_register_for_missing_customer(db):
    data = VehicleCreate(plate_number="KA01A0001", vehicle_type="TwoWheeler", model="TVS Jupiter", registration_year=2021)
    with pytest.raises(NotFound):
        vehicles.register_vehicle(db, 404, data)


def test_delete_vehicle_guard(db, insured):
    customer, policy, vehicle = insured
    premium, _, _ = lifecycle.purchase(db, customer.id, policy.id, vehicle.id)
    with pytest.raises(InvalidState, match="pending"):
        vehicles.delete_vehicle(db, vehicle.id)

    lifecycle.confirm_payment(db, premium.id)
    with pytest.raises(InvalidState, match="paid"):
        vehicles.delete_vehicle(db, vehicle.id)


def test_delete_vehicle_with_open_claim(db, insured):
    customer, policy, vehicle = insured
    premium, _, _ = lifecycle.purchase(db, customer.id, policy.id, vehicle.id)
    lifecycle.confirm_payment(db, premium.id)
    claims.submit_claim(db, customer.id, policy.id, vehicle.id, premium.id, "Side mirror broken by a passing truck.")
    # the paid premium is checked first
    with pytest.raises(InvalidState):
        vehicles.delete_vehicle(db, vehicle.id)


def test_delete_unused_vehicle(db, make_customer, make_vehicle):
    owner = make_customer(db)
    vehicle = make_vehicle(db, owner.id)
    assert vehicles.delete_vehicle(db, vehicle.id) is True
    with pytest.raises(NotFound):
        vehicles.get_vehicle(db, vehicle.id)


def test_delete_vehicle_after_rejection(db, insured):
    customer, policy, vehicle = insured
    premium, renewal, _ = lifecycle.purchase(db, customer.id, policy.id, vehicle.id)
    lifecycle.reject_renewal(db, renewal.id, "documents missing")

    assert vehicles.delete_vehicle(db, vehicle.id) is True
    assert lifecycle.list_premiums(db, vehicle_id=vehicle.id).total == 0
    assert lifecycle.list_renewals(db, customer_id=customer.id).total == 0


def test_delete_vehicle_after_coverage_lapsed(db, insured):
    customer, policy, vehicle = insured
    now = utcnow()
    premium, _, _ = lifecycle.purchase(db, customer.id, policy.id, vehicle.id, as_of=now - timedelta(days=400))
    lifecycle.confirm_payment(db, premium.id)
    claim = claims.submit_claim(db, customer.id, policy.id, vehicle.id, premium.id, "Headlamp cracked while parked.")
    claims.process_claim(db, claim.id, "Rejected")
    lifecycle.sweep_expired(db, now)

    assert vehicles.delete_vehicle(db, vehicle.id) is True
    assert claims.list_claims(db, vehicle_id=vehicle.id).total == 0


def test_vehicle_type_locked_while_paid(db, insured, paid_premium):
    _, _, vehicle = insured
    with pytest.raises(InvalidState):
        vehicles.update_vehicle(db, vehicle.id, VehicleUpdate(vehicle_type="Commercial"))
    db.rollback()
    updated = vehicles.update_vehicle(db, vehicle.id, VehicleUpdate(model="Swift Dzire"))
    assert updated.model == "Swift Dzire"
    assert [p.id for p in vehicles.active_premiums(db, vehicle.id)] == [paid_premium[0].id]


def test_vehicle_stats(db, make_customer, make_vehicle):
    owner = make_customer(db)
    make_vehicle(db, owner.id, vehicle_type=models.VehicleType.TWO_WHEELER)
    make_vehicle(db, owner.id, vehicle_type=models.VehicleType.TWO_WHEELER)
    make_vehicle(db, owner.id, vehicle_type=models.VehicleType.COMMERCIAL)
    stats = vehicles.vehicle_stats(db, customer_id=owner.id)
    assert stats == {"total": 3, "by_type": {"TwoWheeler": 2, "FourWheeler": 0, "Commercial": 1}}


# policies

def test_policy_name_unique_case_insensitive(db, make_policy):
    created = make_policy(db, name="Gold Shield")
    assert created.human_code == "POL-00001"
    with pytest.raises(Conflict):
        make_policy(db, name="  gold SHIELD ")


def test_policy_rules_default_and_merge(db, make_policy):
    policy = make_policy(db, pricing_rules={"coverage_multiplier": {"Comprehensive": 1.1}})
    assert policy.pricing_rules["vehicle_type_multiplier"]["Commercial"] == 1.5
    assert policy.pricing_rules["coverage_multiplier"]["Comprehensive"] == 1.1

    updated = policies.update_policy(
        db, policy.id, PolicyUpdate(pricing_rules={"vehicle_type_multiplier": {"Commercial": 1.8}})
    )
    assert updated.pricing_rules["vehicle_type_multiplier"]["Commercial"] == 1.8
    assert updated.pricing_rules["coverage_multiplier"]["Comprehensive"] == 1.1


def test_policy_negative_multiplier_rejected(db, make_policy):
    with pytest.raises(ValidationError):
        make_policy(db, pricing_rules={"vehicle_type_multiplier": {"TwoWheeler": -0.5}})


def test_policy_rename_conflict(db, make_policy):
    make_policy(db, name="Basic")
    other = make_policy(db, name="Premium")
    with pytest.raises(Conflict):
        policies.update_policy(db, other.id, PolicyUpdate(name="BASIC"))
    db.rollback()
    # renaming to its own name in another case is fine
    assert policies.update_policy(db, other.id, PolicyUpdate(name="PREMIUM")).name == "PREMIUM"


def test_policy_filters_and_sort(db, make_policy):
    make_policy(db, name="A", base_amount=500, coverage_type="ThirdParty")
    make_policy(db, name="B", base_amount=1500, duration_months=24)
    c = make_policy(db, name="C", base_amount=3000)
    policies.toggle_policy_status(db, c.id)

    assert policies.list_policies(db, is_active=True).total == 2
    assert policies.list_policies(db, coverage_type=models.CoverageType.THIRD_PARTY).total == 1
    assert policies.list_policies(db, duration_months=24).total == 1
    assert policies.list_policies(db, min_amount=1000, max_amount=2000).total == 1
    ordered = policies.list_policies(db, sort_by="base_amount", descending=False)
    assert [p.name for p in ordered.items] == ["A", "B", "C"]


def test_preview_does_not_persist(db, insured):
    _, policy, vehicle = insured
    breakdown = policies.preview_premium(db, policy.id, vehicle.id)
    assert float(breakdown.final_amount) == 940.0
    assert lifecycle.list_premiums(db).total == 0


def test_policy_stats(db, insured, paid_premium):
    stats = policies.policy_stats(db)
    assert stats["total"] == 1
    assert stats["active"] == 1
    assert stats["by_coverage_type"]["Comprehensive"] == 1
    assert stats["paid_purchases"] == 1
    assert stats["total_revenue"] == 940.0


# notifications

def test_notification_read_flow(db, make_customer):
    owner = make_customer(db)
    other = make_customer(db)
    first = notifications.create_notification(
        db, customer_id=owner.id, type=models.NotificationType.GENERAL, title="Hello", message="Welcome aboard"
    )
    notifications.create_notification(
        db, customer_id=owner.id, type=models.NotificationType.GENERAL, title="Tip", message="Add a vehicle"
    )
    assert first.human_code == "NOTIF-00001"
    assert notifications.unread_count(db, owner.id) == 2

    with pytest.raises(NotFound):
        notifications.mark_read(db, first.id, customer_id=other.id)
    assert notifications.mark_read(db, first.id, customer_id=owner.id).is_read is True
    assert notifications.mark_all_read(db, owner.id) == 1
    assert notifications.unread_count(db, owner.id) == 0

    delivered = notifications.set_delivery_status(db, first.id, models.DeliveryStatus.DELIVERED)
    assert delivered.delivery_status == models.DeliveryStatus.DELIVERED
    assert notifications.delete_notification(db, first.id, customer_id=owner.id) is True
    assert notifications.list_notifications(db, customer_id=owner.id).total == 1


def test_notification_for_missing_customer(db):
    with pytest.raises(NotFound):
        notifications.create_notification(
            db, customer_id=77, type=models.NotificationType.GENERAL, title="x", message="y"
        )
