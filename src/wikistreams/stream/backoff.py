"""
Backoff Policy
==============

Exponential reconnect delays with an attempt counter.

Each call to duration() returns the delay for the current attempt and
advances the counter. The default schedule doubles from 100 ms and is
capped at 10 s:

    attempt 0 -> 0.1s, attempt 1 -> 0.2s, attempt 2 -> 0.4s, ...
"""

import random
from typing import Optional


class Backoff:
    """
    Exponential backoff schedule.
    
    Attributes:
        min_delay: Delay for the first attempt (seconds)
        max_delay: Upper bound on any delay (seconds)
        factor: Multiplier applied per attempt
        jitter: Randomize each delay between min_delay and the computed delay
    """
    
    def __init__(
        self,
        min_delay: float = 0.1,
        max_delay: float = 10.0,
        factor: float = 2.0,
        jitter: bool = False,
        rng: Optional[random.Random] = None,
    ) -> None:
        if min_delay <= 0:
            raise ValueError("min_delay must be > 0")
        if max_delay < min_delay:
            raise ValueError("max_delay must be >= min_delay")
        if factor < 1:
            raise ValueError("factor must be >= 1")
        
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.factor = factor
        self.jitter = jitter
        self._rng = rng or random.Random()
        self._attempt: int = 0
    
    @property
    def attempt(self) -> int:
        """Number of delays handed out since the last reset."""
        return self._attempt
    
    def duration(self) -> float:
        """Return the delay for the current attempt and advance the counter."""
        delay = self.for_attempt(self._attempt)
        self._attempt += 1
        return delay
    
    def for_attempt(self, attempt: int) -> float:
        """Compute the delay for a given attempt without side effects."""
        try:
            delay = min(self.min_delay * (self.factor ** attempt), self.max_delay)
        except OverflowError:
            delay = self.max_delay
        
        if self.jitter:
            delay = self._rng.uniform(self.min_delay, delay)
        
        return delay
    
    def reset(self) -> None:
        """Restart the schedule from the first attempt."""
        self._attempt = 0
