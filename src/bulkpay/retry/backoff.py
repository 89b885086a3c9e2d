"""Wait schedule between forwarding attempts.

Uses resilience4j-style retry knobs: a base `wait_duration`, an optional
growth `multiplier`, a cap and a randomization factor. `delay(n)` is the wait
after the n-th failed attempt, 0-indexed (0 = the wait before the second
attempt).

Example:
    >>> IntervalBackoff(wait_duration=0.5).delay(3)            # fixed
    0.5
    >>> IntervalBackoff(wait_duration=0.5, multiplier=2.0).delay(2)
    2.0
    >>> IntervalBackoff(0)                                      # no waiting, for tests
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class Backoff(Protocol):
    def delay(self, attempt: int) -> float: ...


@dataclass(frozen=True, slots=True)
class IntervalBackoff:
    """wait = min(wait_duration * multiplier ** attempt, max_wait) ± randomization_factor.
    
    Attributes:
        wait_duration: Wait before the second attempt, seconds
        multiplier: Growth per further attempt; 1.0 keeps the interval fixed
        max_wait: Upper bound on a single wait; None leaves it uncapped
        randomization_factor: Spread in [0, 1); 0.5 picks from 50%-150% of the wait
    """
    
    wait_duration: float = 0.5
    multiplier: float = 1.0
    max_wait: float | None = None
    randomization_factor: float = 0.0
    
    def __post_init__(self) -> None:
        if self.wait_duration < 0:
            raise ValueError(f"wait_duration must be >= 0, got {self.wait_duration}")
        if self.multiplier < 1.0:
            raise ValueError(f"multiplier must be >= 1.0, got {self.multiplier}")
        if not 0.0 <= self.randomization_factor < 1.0:
            raise ValueError(f"randomization_factor must be in [0, 1), got {self.randomization_factor}")
    
    def delay(self, attempt: int) -> float:
        wait = self.wait_duration * self.multiplier ** max(attempt, 0)
        if self.max_wait is not None:
            wait = min(wait, self.max_wait)
        if self.randomization_factor:
            spread = wait * self.randomization_factor
            wait = random.uniform(wait - spread, wait + spread)
        return wait
