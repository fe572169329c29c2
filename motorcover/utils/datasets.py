"""Data pools for seed data and test fixtures (plates, vehicle models, names)."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
import random

from motorcover.db.models import VehicleType

BASE_DIR = Path(__file__).resolve().parents[1]
DATA_DIR = BASE_DIR / "data"

# Fallback lists if the data files are not shipped
FALLBACK_STATE_CODES = ["MH", "KA", "DL", "TN", "GJ", "UP", "WB", "RJ", "KL", "TS"]
FALLBACK_FIRST_NAMES = ["Aarav", "Diya", "Rohan", "Ananya", "Vikram", "Meera", "Kabir", "Isha"]
FALLBACK_SURNAMES = ["Sharma", "Iyer", "Patel", "Reddy", "Khan", "Menon", "Gupta", "Das"]
FALLBACK_CITIES = ["Pune", "Bengaluru", "Chennai", "Delhi", "Ahmedabad", "Kochi", "Jaipur"]

FALLBACK_MODELS: dict[VehicleType, list[str]] = {
    VehicleType.TWO_WHEELER: ["Honda Activa 6G", "Bajaj Pulsar 150", "TVS Jupiter", "Royal Enfield Classic 350"],
    VehicleType.FOUR_WHEELER: ["Maruti Swift", "Hyundai Creta", "Tata Nexon", "Honda City"],
    VehicleType.COMMERCIAL: ["Tata Ace", "Ashok Leyland Dost", "Mahindra Bolero Pickup", "Eicher Pro 2049"],
}


def _load_file(filename: str) -> list[str]:
    path = DATA_DIR / filename
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as fh:
        return [line.strip() for line in fh if line.strip() and not line.startswith("#")]


@lru_cache(maxsize=1)
def state_codes() -> list[str]:
    return _load_file("state_codes.txt") or FALLBACK_STATE_CODES


@lru_cache(maxsize=1)
def first_names() -> list[str]:
    return _load_file("first_names.txt") or FALLBACK_FIRST_NAMES


@lru_cache(maxsize=1)
def surnames() -> list[str]:
    return _load_file("surnames.txt") or FALLBACK_SURNAMES


@lru_cache(maxsize=1)
def cities() -> list[str]:
    return _load_file("cities.txt") or FALLBACK_CITIES


@lru_cache(maxsize=1)
def vehicle_models() -> dict[VehicleType, list[str]]:
    # lines look like "FourWheeler|Maruti Swift"
    pools: dict[VehicleType, list[str]] = {t: [] for t in VehicleType}
    for line in _load_file("vehicle_models.txt"):
        kind, _, model = line.partition("|")
        try:
            pools[VehicleType(kind.strip())].append(model.strip())
        except ValueError:
            continue
    return {t: pools[t] or FALLBACK_MODELS[t] for t in VehicleType}


def random_plate(rng: random.Random | None = None) -> str:
    """A plate matching ``AA00A0000`` / ``AA00AA0000``."""
    rng = rng or random
    series = "".join(rng.choice("ABCDEFGHJKLMNPRSTUVWXYZ") for _ in range(rng.choice((1, 2))))
    return f"{rng.choice(state_codes())}{rng.randint(1, 99):02d}{series}{rng.randint(1, 9999):04d}"


def random_model(vehicle_type: VehicleType, rng: random.Random | None = None) -> str:
    rng = rng or random
    return rng.choice(vehicle_models()[VehicleType(vehicle_type)])


def random_first_name(rng: random.Random | None = None) -> str:
    rng = rng or random
    return rng.choice(first_names())


def random_surname(rng: random.Random | None = None) -> str:
    rng = rng or random
    return rng.choice(surnames())


def random_city(rng: random.Random | None = None) -> str:
    rng = rng or random
    return rng.choice(cities())


def random_contact_number(rng: random.Random | None = None) -> str:
    rng = rng or random
    return str(rng.choice((6, 7, 8, 9))) + "".join(str(rng.randint(0, 9)) for _ in range(9))
