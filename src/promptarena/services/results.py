"""Typed result values returned by tenant-scoped services."""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")

DUPLICATE = "DUPLICATE"
NOT_FOUND = "NOT_FOUND"
IN_USE = "IN_USE"


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Either ``data`` (success) or a domain ``code`` with a message."""

    data: T | None = None
    code: str | None = None
    message: str | None = None
    details: Any = None

    @property
    def ok(self) -> bool:
        return self.code is None

    @classmethod
    def success(cls, data: T) -> "ServiceResult[T]":
        return cls(data=data)

    @classmethod
    def failure(cls, code: str, message: str, details: Any = None) -> "ServiceResult[T]":
        return cls(code=code, message=message, details=details)

    @classmethod
    def not_found(cls, resource: str) -> "ServiceResult[T]":
        return cls(code=NOT_FOUND, message=f"{resource} not found")
