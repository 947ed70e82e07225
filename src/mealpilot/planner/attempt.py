"""Retry-free call wrapper that turns exceptions into values."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value or the error raised while producing it."""

    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        if self.error is None:
            return ""
        return str(self.error) or type(self.error).__name__


def attempt(label: str, fn: Callable[..., T], *args, **kwargs) -> Outcome[T]:
    """Call ``fn`` once; log and capture any exception instead of raising it."""

    try:
        return Outcome(value=fn(*args, **kwargs))
    except Exception as exc:
        logger.warning("%s failed: %s", label, exc)
        return Outcome(error=exc)
