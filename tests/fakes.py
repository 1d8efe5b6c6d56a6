"""
Test Doubles
============

Scripted transport and controllable clock for EventStreamClient tests.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from wikistreams.errors import TransportError


@dataclass
class Attempt:
    """One scripted transport subscription."""
    
    messages: Sequence[bytes] = ()
    error: BaseException = field(default_factory=lambda: TransportError("connection reset"))
    lasts: float = 0.0


class FakeClock:
    """Monotonic clock advanced by hand."""
    
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
    
    def __call__(self) -> float:
        return self.now
    
    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    """
    Replays scripted attempts, then blocks until cancelled.
    
    Each attempt delivers its messages, advances the clock by its
    lifetime, and raises its error.
    """
    
    def __init__(self, attempts: Sequence[Attempt] = (), clock: Optional[FakeClock] = None) -> None:
        self.attempts: List[Attempt] = list(attempts)
        self.clock = clock
        self.urls: List[str] = []
        self.event_names: List[Optional[str]] = []
        self.idle: bool = False
    
    async def subscribe(
        self,
        url: str,
        on_message: Callable[[bytes], None],
        event_name: Optional[str] = "message",
        on_open: Optional[Callable[[], None]] = None,
    ) -> None:
        self.urls.append(url)
        self.event_names.append(event_name)
        if on_open is not None:
            on_open()
        
        if not self.attempts:
            self.idle = True
            await asyncio.Event().wait()
        
        attempt = self.attempts.pop(0)
        for message in attempt.messages:
            on_message(message)
        if self.clock is not None:
            self.clock.advance(attempt.lasts)
        raise attempt.error


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll predicate on the running loop until it holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)
