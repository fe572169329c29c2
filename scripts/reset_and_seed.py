"""Reset the local SQLite database and seed sample customers, policies and purchases."""
from __future__ import annotations

import json
import os
from pathlib import Path
import sys

BASE_DIR = Path(__file__).resolve().parents[1]
DATA_PATH = BASE_DIR / "motorcover/data/seed_data.json"
DB_PATH = BASE_DIR / "motorcover.db"

# Ensure consistent DB location before SQLAlchemy engine is created
if "DATABASE_URL" not in os.environ or os.environ["DATABASE_URL"].startswith("sqlite:///./"):
    os.environ["DATABASE_URL"] = f"sqlite:///{DB_PATH}"

# Ensure project root is importable when script is launched from anywhere
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from motorcover.main import init_db
from motorcover.db.session import SessionLocal, engine
from motorcover.services import claims as claim_service
from motorcover.services import customers as customer_service
from motorcover.services import lifecycle
from motorcover.services import policies as policy_service
from motorcover.services import vehicles as vehicle_service
from motorcover.schemas.customers import CustomerCreate
from motorcover.schemas.policies import PolicyCreate
from motorcover.schemas.vehicles import VehicleCreate


def _cleanup_db() -> None:
    # Close existing connections so SQLite file can be replaced cleanly
    engine.dispose()
    if DB_PATH.exists():
        DB_PATH.unlink()
        print(f"Removed {DB_PATH}")


def _load_seed_data() -> dict:
    with DATA_PATH.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def seed() -> None:
    data = _load_seed_data()
    session = SessionLocal()
    customer_map: dict[str, object] = {}
    policy_map: dict[str, object] = {}
    vehicle_map: dict[str, object] = {}
    premium_map: dict[str, object] = {}

    try:
        for customer in data.get("customers", []):
            obj = customer_service.create_customer(
                session,
                CustomerCreate(
                    name=customer["name"],
                    contact_number=customer["contact_number"],
                    email=customer["email"],
                    address=customer["address"],
                ),
            )
            customer_map[customer["key"]] = obj
            print(f"Inserted customer {obj.human_code} ({obj.name})")

        for policy in data.get("policies", []):
            obj = policy_service.create_policy(
                session,
                PolicyCreate(
                    name=policy["name"],
                    coverage_type=policy["coverage_type"],
                    duration_months=policy["duration_months"],
                    base_amount=policy["base_amount"],
                    description=policy.get("description", ""),
                    pricing_rules=policy.get("pricing_rules"),
                ),
            )
            policy_map[policy["key"]] = obj
            print(f"Inserted policy {obj.human_code} ({obj.name})")

        for vehicle in data.get("vehicles", []):
            owner = customer_map[vehicle["customer_key"]]
            obj = vehicle_service.register_vehicle(
                session,
                owner.id,
                VehicleCreate(
                    plate_number=vehicle["plate_number"],
                    vehicle_type=vehicle["vehicle_type"],
                    model=vehicle["model"],
                    registration_year=vehicle["registration_year"],
                ),
            )
            vehicle_map[vehicle["key"]] = obj
            print(f"Inserted vehicle {obj.human_code} ({obj.plate_number}) for {owner.human_code}")

        for purchase in data.get("purchases", []):
            customer = customer_map[purchase["customer_key"]]
            premium, renewal, breakdown = lifecycle.purchase(
                session,
                customer.id,
                policy_map[purchase["policy_key"]].id,
                vehicle_map[purchase["vehicle_key"]].id,
            )
            if purchase.get("pay"):
                lifecycle.confirm_payment(session, premium.id)
            premium_map[purchase["key"]] = premium
            state = "paid" if purchase.get("pay") else "pending"
            print(f"Inserted premium {premium.human_code} ({breakdown.final_amount}, {state}) with {renewal.human_code}")

        for claim in data.get("claims", []):
            premium = premium_map[claim["purchase_key"]]
            obj = claim_service.submit_claim(
                session,
                premium.customer_id,
                premium.policy_id,
                premium.vehicle_id,
                premium.id,
                claim["reason"],
                claim.get("supporting_docs"),
            )
            print(f"Inserted claim {obj.human_code} for premium {premium.human_code}")

    finally:
        session.close()


def main() -> None:
    _cleanup_db()
    init_db()
    seed()
    print("Seed complete.")


if __name__ == "__main__":
    main()
