# Overview: Tagged success/failure results for mutating operations.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from ..errors import RetailError


@dataclass(frozen=True)
class Outcome:
    """
    Result of a mutating operation.

    Exactly one of value/error is meaningful: ok=True carries value,
    ok=False carries a RetailError describing what was rejected or undone.
    """
    ok: bool
    value: Any = None
    error: RetailError | None = None

    @classmethod
    def success(cls, value: Any = None) -> "Outcome":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: RetailError) -> "Outcome":
        return cls(ok=False, error=error)

    def unwrap(self):
        if not self.ok:
            raise self.error
        return self.value


def attempt(func: Callable[..., Any], *args, **kwargs) -> Outcome:
    """Run func and fold any RetailError into a failed Outcome."""
    try:
        return Outcome.success(func(*args, **kwargs))
    except RetailError as exc:
        return Outcome.failure(exc)
