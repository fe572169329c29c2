from typing import Any, Optional, Type

from pydantic import BaseModel

from motorcover.utils.pagination import Page


def dump(schema: Type[BaseModel], obj: Any) -> dict:
    return schema.model_validate(obj).model_dump(mode="json")


def ok(message: str = "OK", data: Any = None) -> dict:
    return {"success": True, "message": message, "data": data}


def paged(page: Page, schema: Type[BaseModel], message: Optional[str] = None) -> dict:
    return {
        "success": True,
        "message": message or f"Fetched {len(page.items)} of {page.total} record(s)",
        "data": [dump(schema, item) for item in page.items],
        "pagination": page.pagination,
    }
