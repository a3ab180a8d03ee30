from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


class DataResult(BaseModel, Generic[T]):
    """Provider read outcome: confirmed data, data patched with defaults, or nothing."""

    status: DataStatus
    data: Optional[T] = None
    warnings: list[str] = []

    @classmethod
    def ok(cls, data: T) -> "DataResult[T]":
        return cls(status=DataStatus.OK, data=data)

    @classmethod
    def degraded(cls, data: T, warnings: list[str]) -> "DataResult[T]":
        return cls(status=DataStatus.DEGRADED, data=data, warnings=warnings)

    @classmethod
    def unavailable(cls, reason: str) -> "DataResult[T]":
        return cls(status=DataStatus.UNAVAILABLE, warnings=[reason])

    @property
    def available(self) -> bool:
        return self.data is not None
