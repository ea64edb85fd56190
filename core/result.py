"""
Fetch Results

Orchestrator operations return a ``FetchResult`` instead of raising, so that a
failure in one branch of a concurrent fan-out is an ordinary value the join can
inspect. The HTTP layer calls ``unwrap()`` to turn a failure back into an
exception at the very edge of the application.

Example:
    >>> result = await service.quotes(["PBR"])
    >>> if result.ok:
    ...     print(result.value[0].price)
    ... else:
    ...     print(result.error.code)
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from core.errors import UpstreamError

T = TypeVar("T")


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Success value or upstream error for one orchestrator operation."""

    value: Optional[T] = None
    error: Optional[UpstreamError] = None
    cached: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T, cached: bool = False) -> "FetchResult[T]":
        return cls(value=value, cached=cached)

    @classmethod
    def failure(cls, error: UpstreamError) -> "FetchResult[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value, or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.value
