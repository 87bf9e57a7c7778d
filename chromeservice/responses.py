"""Response envelopes, shared errors and request constants."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

XRHIDENTITY = "x-rh-identity"
LAST_VISITED_MAX = 10
IDENTITY_CTX_KEY = "identity"
USER_CTX_KEY = "user"
GET_ALL_PARAM = "getAll"
DEFAULT_PARAM = "archived"
FAVORITE_PARAM = "favorite"


class NotAuthorizedError(Exception):
    """The user does not own the requested resource."""

    def __init__(self, message: str = "not authorized") -> None:
        super().__init__(message)


class RecordNotFoundError(LookupError):
    """The requested record does not exist."""

    def __init__(self, message: str = "record not found") -> None:
        super().__init__(message)


def to_json(value: Any) -> Any:
    """Convert models and containers into JSON-ready values."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [to_json(item) for item in value]
    if isinstance(value, dict):
        return {str(to_json(key)): to_json(item) for key, item in value.items()}
    return value


@dataclass
class ListMeta:
    count: int = 0
    total: int = 0
    limit: int = 0
    offset: int = 0

    def to_dict(self) -> dict[str, int]:
        values = {
            "count": self.count,
            "total": self.total,
            "limit": self.limit,
            "offset": self.offset,
        }
        return {key: value for key, value in values.items() if value}


@dataclass
class ListResponse:
    data: list[Any] | None = field(default_factory=list)
    meta: ListMeta = field(default_factory=ListMeta)

    def to_dict(self) -> dict[str, Any]:
        return {"data": to_json(self.data), "meta": self.meta.to_dict()}


@dataclass
class EntityResponse:
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"data": to_json(self.data)}


@dataclass
class ErrorResponse:
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {"errors": list(self.errors)}