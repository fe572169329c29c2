from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Query

DEFAULT_PAGE_LIMIT = int(os.getenv("MOTORCOVER_PAGE_LIMIT", "10"))
MAX_PAGE_LIMIT = int(os.getenv("MOTORCOVER_MAX_PAGE_LIMIT", "100"))


@dataclass
class Page:
    items: list[Any]
    page: int
    limit: int
    total: int

    @property
    def pagination(self) -> dict[str, Any]:
        return {
            "currentPage": self.page,
            "totalPages": math.ceil(self.total / self.limit) if self.limit else 0,
            "totalRecords": self.total,
            "limit": self.limit,
            "hasNextPage": self.page * self.limit < self.total,
            "hasPrevPage": self.page > 1,
        }


def clamp(page: int | None, limit: int | None) -> tuple[int, int]:
    page = max(page or 1, 1)
    limit = min(max(limit or DEFAULT_PAGE_LIMIT, 1), MAX_PAGE_LIMIT)
    return page, limit


def paginate(q: Query, page: int | None = None, limit: int | None = None) -> Page:
    page, limit = clamp(page, limit)
    total = q.session.execute(select(func.count()).select_from(q.order_by(None).subquery())).scalar_one()
    items = q.offset((page - 1) * limit).limit(limit).all()
    return Page(items=items, page=page, limit=limit, total=total)
