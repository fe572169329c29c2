"""
Cleanup and migrate script for local dev (SQLite)

Actions:
- Deletes the local SQLite DB file to allow schema recreation.
- Recreates tables via motorcover.main.init_db()
- Runs the expiry sweep and reminder pass once, so a restored dump is current

Usage:
  python scripts/cleanup_and_migrate.py [--keep-data]

Note: without --keep-data this is destructive. Use only if you are sure there is no data to keep.
"""
from __future__ import annotations

from pathlib import Path
import sys

# Ensure the repo root is importable as package root for `motorcover.*`
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from motorcover.main import init_db
from motorcover.db.session import SessionLocal, engine
from motorcover.services import lifecycle


def main(argv: list[str] | None = None) -> None:
    argv = sys.argv[1:] if argv is None else argv
    db_path = ROOT / "motorcover.db"
    if "--keep-data" not in argv and db_path.exists():
        engine.dispose()
        db_path.unlink()
        print(f"Removed {db_path}")

    init_db()
    print("Database schema ensured.")

    session = SessionLocal()
    try:
        expired = lifecycle.sweep_expired(session)
        reminded = lifecycle.send_expiry_reminders(session)
    finally:
        session.close()
    print(f"Expired {expired} renewal(s); sent {reminded} reminder(s).")


if __name__ == "__main__":
    main()
