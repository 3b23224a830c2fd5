from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from ..core.exceptions import DeadlineExceededError


@dataclass(frozen=True)
class Deadline:
    """Per-operation time budget.

    Use cases start one at entry and call ``check`` before every blocking
    step (repository call, publish, file copy) and inside batch loops.
    """

    expires_at: float
    timeout: float
    clock: Callable[[], float] = time.monotonic

    @classmethod
    def start(cls, timeout: float, *, clock: Callable[[], float] = time.monotonic) -> "Deadline":
        return cls(expires_at=clock() + float(timeout), timeout=float(timeout), clock=clock)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self.clock())

    def expired(self) -> bool:
        return self.clock() >= self.expires_at

    def check(self, operation: str) -> None:
        if self.expired():
            raise DeadlineExceededError(
                "Operation deadline exceeded",
                detail=f"{operation} exceeded {self.timeout:g}s",
            )
