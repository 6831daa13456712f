"""
Outcome of one orchestrated model request.

Separates three cases that callers may want to treat differently:
- ok: structured data was recovered
- empty: expected absence (refusal, empty reply, nothing found)
- failed: a real fault, with a ``FailureKind``
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class OutcomeStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


class FailureKind(str, Enum):
    """Why a request failed."""
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    UNPARSABLE = "unparsable"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """
    Result of a request.

    Attributes:
        status: ok / empty / failed
        value: Recovered data (status ok only)
        failure: Failure classification (status failed only)
        error: Human-readable error detail, for logs
    """
    status: OutcomeStatus
    value: Optional[T] = None
    failure: Optional[FailureKind] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: Any) -> "Outcome":
        return cls(status=OutcomeStatus.OK, value=value)

    @classmethod
    def empty(cls) -> "Outcome":
        return cls(status=OutcomeStatus.EMPTY)

    @classmethod
    def failed(cls, failure: FailureKind, error: Optional[str] = None) -> "Outcome":
        return cls(status=OutcomeStatus.FAILED, failure=failure, error=error)

    @property
    def is_ok(self) -> bool:
        return self.status is OutcomeStatus.OK

    @property
    def is_empty(self) -> bool:
        return self.status is OutcomeStatus.EMPTY

    @property
    def is_failed(self) -> bool:
        return self.status is OutcomeStatus.FAILED

    @property
    def rate_limited(self) -> bool:
        return self.failure is FailureKind.RATE_LIMITED

    def map(self, fn) -> "Outcome":
        """Apply ``fn`` to the value of an ok outcome."""
        if not self.is_ok:
            return self
        return Outcome.ok(fn(self.value))
