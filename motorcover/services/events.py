from sqlalchemy.orm import Session
from typing import List, Optional

from motorcover.db import models


def list_events(
    db: Session,
    *,
    source: Optional[str] = None,
    level: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[models.Event]:
    q = db.query(models.Event)
    if source:
        q = q.filter(models.Event.source == source)
    if level:
        q = q.filter(models.Event.level == level.upper())
    return q.order_by(models.Event.created_at.desc(), models.Event.id.desc()).offset(offset).limit(limit).all()


def log_event(db: Session, *, source: str, message: str, level: str = "INFO") -> None:
    # Audit trail is best-effort: call after the business commit, never before.
    try:
        db.add(models.Event(source=source, level=level, message=message))
        db.commit()
    except Exception:
        db.rollback()
