from __future__ import annotations

from typing import Any

ERROR_HTTP_MAP: dict[str, tuple[int, str]] = {
    "NotFound": (404, "Entity not found"),
    "Conflict": (409, "Conflicting record exists"),
    "InvalidState": (409, "Operation not permitted in the current state"),
    "ValidationError": (422, "Invalid request"),
    "Unauthorized": (401, "Authentication required"),
    "Forbidden": (403, "Access denied"),
    "ServiceUnavailable": (503, "Backend temporarily unavailable"),
}


class ServiceError(Exception):
    kind = "ServiceError"

    def __init__(self, message: str | None = None, errors: list[dict[str, Any]] | None = None) -> None:
        self.message = message or ERROR_HTTP_MAP.get(self.kind, (500, "Unexpected error"))[1]
        self.errors = errors
        super().__init__(f"{self.kind}: {self.message}")

    @property
    def status_code(self) -> int:
        return ERROR_HTTP_MAP.get(self.kind, (500, ""))[0]

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": False, "message": self.message, "kind": self.kind}
        if self.errors is not None:
            payload["errors"] = self.errors
        return payload


class NotFound(ServiceError):
    kind = "NotFound"


class Conflict(ServiceError):
    kind = "Conflict"


class InvalidState(ServiceError):
    kind = "InvalidState"


class Unauthorized(ServiceError):
    kind = "Unauthorized"


class Forbidden(ServiceError):
    kind = "Forbidden"


class SequenceUnavailable(ServiceError):
    kind = "ServiceUnavailable"


class ValidationError(ServiceError):
    kind = "ValidationError"

    @classmethod
    def for_field(cls, field: str, message: str, value: Any = None) -> "ValidationError":
        return cls(message, errors=[field_error(field, message, value)])


def field_error(field: str, message: str, value: Any = None) -> dict[str, Any]:
    return {"field": field, "message": message, "value": value}
