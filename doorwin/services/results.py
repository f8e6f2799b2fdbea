from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from doorwin.core.errors import DoorwinError

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """Outcome of an orchestrator command: either a value or a structured error"""

    value: Optional[T] = None
    error: Optional[DoorwinError] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, error: DoorwinError) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or raise the carried error"""
        if self.error is not None:
            raise self.error
        return self.value
