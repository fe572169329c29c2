from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime

from motorcover.api.deps import admin_only
from motorcover.api.responses import dump, ok
from motorcover.db.session import get_db
from motorcover.services import events as svc
from motorcover.services.access import Caller


router = APIRouter(tags=["events"])


class EventOut(BaseModel):
    id: int
    created_at: datetime
    source: str
    level: str
    message: str
    model_config = ConfigDict(from_attributes=True)


@router.get("/api/events")
def api_list_events(
    source: Optional[str] = None,
    level: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    caller: Caller = Depends(admin_only),
):
    items = svc.list_events(db, source=source, level=level, limit=limit, offset=offset)
    return ok(f"Fetched {len(items)} event(s)", [dump(EventOut, e) for e in items])
