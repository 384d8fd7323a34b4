from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class FailureKind(str, Enum):
    INVALID = "invalid"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value or the reason an operation produced none.

    Public service methods collapse this to ``value`` or ``None``; the
    failure kind is only used for logging and metrics.
    """

    value: Optional[T] = None
    failure: Optional[FailureKind] = None
    reason: str = ""

    @classmethod
    def ok(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, kind: FailureKind, reason: str) -> "Outcome[T]":
        return cls(failure=kind, reason=reason)

    @property
    def succeeded(self) -> bool:
        return self.failure is None

    def unwrap_or_none(self) -> Optional[T]:
        return self.value if self.failure is None else None
