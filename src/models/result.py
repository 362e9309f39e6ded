"""Tagged result values returned by the account services.

Every service operation returns either ``Ok(value)`` or ``Err(error)``; the
HTTP layer is the only place that turns an ``Err`` into a status code.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


class ErrorKind(str, Enum):
    """Failure categories surfaced by account operations."""

    VALIDATION = "validation"
    BAD_REQUEST = "bad_request"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


@dataclass(frozen=True)
class ServiceError:
    """A single failure with a human-readable message.

    Attributes:
        kind: Failure category
        message: Message safe to show to the client
        field_errors: Per-field messages (validation failures only)
    """

    kind: ErrorKind
    message: str
    field_errors: dict[str, list[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err[Any]]


def fail(kind: ErrorKind, message: str, **field_errors: list[str]) -> Err[ServiceError]:
    """Shorthand for ``Err(ServiceError(...))``."""
    return Err(ServiceError(kind=kind, message=message, field_errors=dict(field_errors)))
