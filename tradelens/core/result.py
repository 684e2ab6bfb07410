"""Tagged result type returned by upstream collaborators.

Collaborators return Ok(value) or Err(reason) instead of raising or handing
back payloads that must be probed for an error field.
"""
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful upstream call."""
    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed upstream call (network error, timeout or SDK-level error)."""
    reason: str

    @property
    def is_ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]
