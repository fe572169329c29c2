"""Counter-backed sequence numbers and the human-readable entity codes built on them.

Every code is ``PREFIX-NNNNN``: the prefix names the entity kind and the number
is the next value of that kind's counter, zero-padded to five digits. The
format is visible to clients, so treat it as a durable contract.

The increment is one atomic upsert executed in the caller's transaction, so a
failed entity insert rolls its counter bump back with it and no entity is ever
stored without a code.
"""
from __future__ import annotations

import enum

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from motorcover.db import models
from motorcover.utils.errors import SequenceUnavailable

CODE_WIDTH = 5


class CodePrefix(str, enum.Enum):
    USER = "USR"
    CUSTOMER = "CUST"
    VEHICLE = "VEH"
    POLICY = "POL"
    PREMIUM = "PREM"
    RENEWAL = "REN"
    NOTIFICATION = "NOTIF"
    CLAIM = "CLM"


COUNTER_NAMES: dict[CodePrefix, str] = {
    CodePrefix.USER: "userID",
    CodePrefix.CUSTOMER: "customerID",
    CodePrefix.VEHICLE: "vehicleID",
    CodePrefix.POLICY: "policyID",
    CodePrefix.PREMIUM: "premiumID",
    CodePrefix.RENEWAL: "renewalID",
    CodePrefix.NOTIFICATION: "notificationID",
    CodePrefix.CLAIM: "claimID",
}


def _upsert_statement(dialect: str, name: str):
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        from sqlalchemy.dialects.postgresql import insert
    table = models.Counter.__table__
    stmt = insert(table).values(name=name, sequence=1)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.name],
        set_={"sequence": table.c.sequence + 1},
    )
    return stmt.returning(table.c.sequence)


def _locked_increment(db: Session, name: str) -> int:
    ctr = db.execute(
        select(models.Counter).where(models.Counter.name == name).with_for_update()
    ).scalar_one_or_none()
    if not ctr:
        ctr = models.Counter(name=name, sequence=0)
        db.add(ctr)
    ctr.sequence += 1
    db.flush()
    return ctr.sequence


def next_sequence(db: Session, counter_name: str) -> int:
    """Increment ``counter_name`` and return the new value (first value is 1)."""
    dialect = db.get_bind().dialect.name
    try:
        if dialect in ("sqlite", "postgresql"):
            return db.execute(_upsert_statement(dialect, counter_name)).scalar_one()
        return _locked_increment(db, counter_name)
    except SQLAlchemyError as exc:
        db.rollback()
        raise SequenceUnavailable(f"Could not allocate next value for {counter_name}") from exc


def format_code(prefix: CodePrefix | str, value: int) -> str:
    prefix = prefix.value if isinstance(prefix, CodePrefix) else prefix
    return f"{prefix}-{value:0{CODE_WIDTH}d}"


def mint_code(db: Session, prefix: CodePrefix) -> str:
    return format_code(prefix, next_sequence(db, COUNTER_NAMES[prefix]))
