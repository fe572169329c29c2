from __future__ import annotations

import os
from pathlib import Path

# Ensure isolated SQLite DB for tests (in temp dir to avoid perms)
TEST_DB = Path("test_output") / "test_motorcover.db"
TEST_DB.parent.mkdir(parents=True, exist_ok=True)
if TEST_DB.exists():
    TEST_DB.unlink()
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB}"  # type: ignore

import pytest  # noqa: E402
from faker import Faker  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from motorcover.main import app  # noqa: E402
from motorcover.db import models  # noqa: E402
from motorcover.db.session import Base, SessionLocal, engine  # noqa: E402
from motorcover.schemas.customers import CustomerCreate  # noqa: E402
from motorcover.schemas.policies import PolicyCreate  # noqa: E402
from motorcover.schemas.vehicles import VehicleCreate  # noqa: E402
from motorcover.services import customers, lifecycle, policies, vehicles  # noqa: E402
from motorcover.utils.faker_providers import MotorcoverProvider  # noqa: E402
from motorcover.utils.time_utils import utcnow  # noqa: E402

ADMIN = {"X-Caller-Id": "USR-00001", "X-Caller-Role": "Admin"}
STAFF = {"X-Caller-Id": "USR-00002", "X-Caller-Role": "Staff"}


def customer_headers(customer_id: int) -> dict[str, str]:
    return {
        "X-Caller-Id": f"USR-9{customer_id:04d}",
        "X-Caller-Role": "Customer",
        "X-Linked-Customer-Id": str(customer_id),
    }


def pytest_sessionfinish(session, exitstatus):  # noqa: D401
    engine.dispose()
    if TEST_DB.exists():
        TEST_DB.unlink()
    try:
        TEST_DB.parent.rmdir()
    except OSError:
        pass


@pytest.fixture(autouse=True)
def reset_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def fake():
    f = Faker()
    f.seed_instance(20240601)
    f.add_provider(MotorcoverProvider)
    return f


@pytest.fixture
def make_customer(fake):
    def _make(db, **overrides) -> models.Customer:
        data = {
            "name": fake.customer_name(),
            "contact_number": fake.unique.contact_number(),
            "email": f"{fake.unique.user_name()}@mail.com",
            "address": fake.customer_address(),
        }
        data.update(overrides)
        return customers.create_customer(db, CustomerCreate(**data))

    return _make


@pytest.fixture
def make_policy(fake):
    def _make(db, **overrides) -> models.InsurancePolicy:
        data = {
            "name": fake.unique.bothify("Plan ###-??"),
            "coverage_type": models.CoverageType.COMPREHENSIVE,
            "duration_months": 12,
            "base_amount": 1000,
            "description": "Test cover",
        }
        data.update(overrides)
        return policies.create_policy(db, PolicyCreate(**data))

    return _make


@pytest.fixture
def make_vehicle(fake):
    def _make(db, customer_id: int, **overrides) -> models.Vehicle:
        vehicle_type = overrides.pop("vehicle_type", models.VehicleType.FOUR_WHEELER)
        data = {
            "plate_number": fake.unique.plate_number(),
            "vehicle_type": vehicle_type,
            "model": fake.vehicle_model(vehicle_type),
            "registration_year": utcnow().year - 3,
        }
        data.update(overrides)
        return vehicles.register_vehicle(db, customer_id, VehicleCreate(**data))

    return _make


@pytest.fixture
def insured(db, make_customer, make_policy, make_vehicle):
    """A customer with one vehicle and one active Comprehensive policy."""
    customer = make_customer(db)
    policy = make_policy(db)
    vehicle = make_vehicle(db, customer.id)
    return customer, policy, vehicle


@pytest.fixture
def paid_premium(db, insured):
    customer, policy, vehicle = insured
    premium, renewal, _ = lifecycle.purchase(db, customer.id, policy.id, vehicle.id)
    lifecycle.confirm_payment(db, premium.id, "TXN-TEST00001")
    return premium, renewal
