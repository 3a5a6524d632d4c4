"""
Tagged success/failure values returned by booking operations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Tuple, TypeVar, Union

from .exceptions import BookingError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """A successful outcome, optionally carrying non-fatal warnings."""
    value: T
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    """A rejected outcome carrying the typed business error."""
    error: BookingError

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def warnings(self) -> Tuple[str, ...]:
        return ()

    def unwrap(self):
        raise self.error


Result = Union[Ok[T], Err]
