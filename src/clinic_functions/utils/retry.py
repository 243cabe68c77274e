"""
Fixed-delay retry policies.

A policy is a plain value passed into the services that retry, so tests can
swap in a zero-delay policy instead of patching timers.
"""

import time
from dataclasses import dataclass, field
from typing import Callable


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with a fixed interval between attempts.

    Attributes:
        max_attempts: Total attempts including the first one (>= 1)
        interval: Seconds to wait between attempts
        sleep: Function used to wait; ``time.sleep`` outside tests
    """

    max_attempts: int
    interval: float
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval < 0:
            raise ValueError("interval must not be negative")

    @classmethod
    def immediate(cls, max_attempts: int = 1) -> "RetryPolicy":
        """Policy with no delay, for tests and for callers that must not block."""
        return cls(max_attempts=max_attempts, interval=0.0, sleep=lambda _seconds: None)

    def wait(self) -> None:
        """Block for one interval."""
        if self.interval > 0:
            self.sleep(self.interval)
