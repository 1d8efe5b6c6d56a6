"""
Event Stream Client
===================

Long-lived subscriber for the Wikimedia EventStreams service.

This module provides the EventStreamClient class which:
    - Subscribes to a named stream over SSE
    - Decodes each message into an immutable event record
    - Records the origin timestamp of every event, matching or not
    - Delivers events matching all predicates to a handler
    - Reconnects with exponential backoff, resuming from the last timestamp

Reconnect Rules:
    - A disconnect at least reset_interval after the attempt started
      resets the backoff (the service drops clients every ~15 minutes)
    - Disconnects clustered within reset_interval consume the retry
      budget; after max_retries the last error is raised
    - Resume uses ?since=<timestamp>, so events at that timestamp may be
      delivered twice (at-least-once with gaps)

Example:
    client = EventStreamClient().match("namespace", 0).match("bot", False)
    
    task = asyncio.create_task(client.recent_changes(print))
    
    # Later, stop gracefully
    await client.stop()
    await task
"""

import asyncio
import logging
import threading
import time
from typing import TYPE_CHECKING, Callable, Dict, Optional, Type, TypeVar

from wikistreams.errors import EventDecodeError, RetriesExhaustedError, TransportError
from wikistreams.models.events import RecentChangeEvent, Scalar, StreamEvent, decode_event
from wikistreams.stream.backoff import Backoff
from wikistreams.stream.matcher import matches, validate_scalar
from wikistreams.stream.transport import SSETransport

if TYPE_CHECKING:
    from wikistreams.config import Settings


logger = logging.getLogger(__name__)

# URL of the Wikimedia EventStreams service, without a stream name
DEFAULT_URL = "https://stream.wikimedia.org/v2/stream"

RECENT_CHANGE_STREAM = "recentchange"

# Healthy connections are cut by the service's traffic layer every ~15 minutes
RESET_INTERVAL_SECONDS = 600.0
MAX_RETRIES = 3

E = TypeVar("E", bound=StreamEvent)


class SessionState:
    """Per-subscription state; discarded when subscribe() returns."""
    
    __slots__ = ("resume_timestamp",)
    
    def __init__(self, resume_timestamp: str = "") -> None:
        self.resume_timestamp = resume_timestamp


class SessionMetrics:
    """Counters for EventStreamClient observability."""
    
    __slots__ = (
        "messages_received",
        "empty_messages",
        "decode_errors",
        "events_matched",
        "reconnect_count",
        "connected",
    )
    
    def __init__(self) -> None:
        self.messages_received: int = 0
        self.empty_messages: int = 0
        self.decode_errors: int = 0
        self.events_matched: int = 0
        self.reconnect_count: int = 0
        self.connected: bool = False
    
    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "messages_received": self.messages_received,
            "empty_messages": self.empty_messages,
            "decode_errors": self.decode_errors,
            "events_matched": self.events_matched,
            "reconnect_count": self.reconnect_count,
            "connected": self.connected,
        }


class EventStreamClient:
    """
    Reconnecting, filtering EventStreams subscriber.
    
    Attributes:
        base_url: Service URL without stream name
        predicates: Field name -> expected value; all must match
        since: Timestamp the first connection resumes from ("" = live tail)
        event_name: SSE event type to deliver (None = all types)
        metrics: Operational counters
    """
    
    def __init__(
        self,
        base_url: str = DEFAULT_URL,
        since: str = "",
        event_name: Optional[str] = "message",
        transport: Optional[SSETransport] = None,
        backoff: Optional[Backoff] = None,
        max_retries: int = MAX_RETRIES,
        reset_interval: float = RESET_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize client.
        
        Args:
            base_url: Service URL without a trailing stream name
            since: Initial resume timestamp
            event_name: SSE event type filter passed to the transport
            transport: SSE transport (defaults to SSETransport())
            backoff: Delay schedule between reconnects
            max_retries: Consecutive disconnects tolerated before giving up
            reset_interval: Seconds a connection must live to reset backoff
            clock: Monotonic clock used to time connection attempts
        """
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        
        self.base_url = base_url.rstrip("/")
        self.since = since
        self.event_name = event_name
        self.predicates: Dict[str, Scalar] = {}
        self.max_retries = max_retries
        self.reset_interval = reset_interval
        
        self._transport = transport or SSETransport()
        self._backoff = backoff or Backoff()
        self._clock = clock
        
        # State
        self._last_timestamp: str = ""
        self._timestamp_lock = threading.Lock()
        self._running: bool = False
        self._stop_event: Optional[asyncio.Event] = None
        self._attempt_task: Optional[asyncio.Task] = None
        
        # Metrics
        self.metrics = SessionMetrics()
    
    @classmethod
    def from_settings(cls, settings: "Settings", **overrides) -> "EventStreamClient":
        """
        Build a client (predicates included) from loaded settings.
        
        Keyword overrides replace the settings-built constructor arguments,
        e.g. transport=... or clock=....
        """
        stream = settings.stream
        retry = settings.retry
        
        options = dict(
            base_url=stream.base_url,
            since=stream.since,
            event_name=stream.event_name or None,
            transport=SSETransport(
                user_agent=stream.user_agent,
                connect_timeout=stream.connect_timeout_seconds,
                read_timeout=stream.read_timeout_seconds,
            ),
            backoff=Backoff(
                min_delay=retry.min_delay_ms / 1000.0,
                max_delay=retry.max_delay_ms / 1000.0,
                factor=retry.factor,
                jitter=retry.jitter,
            ),
            max_retries=retry.max_retries,
            reset_interval=retry.reset_interval_seconds,
        )
        options.update(overrides)
        
        client = cls(**options)
        for name, value in settings.filters.match.items():
            client.match(name, value)
        return client
    
    # -------------------------------------------------------------------------
    # Caller surface
    # -------------------------------------------------------------------------
    
    def match(self, attribute: str, value: Scalar) -> "EventStreamClient":
        """
        Add a predicate on a field's external (JSON) name.
        
        Events match only when all predicates do. Returns self for chaining.
        """
        self.predicates[attribute] = validate_scalar(value)
        return self
    
    @property
    def last_timestamp(self) -> str:
        """ISO8601 timestamp of the last event received ("" if none)."""
        with self._timestamp_lock:
            return self._last_timestamp
    
    def _set_last_timestamp(self, value: str) -> None:
        with self._timestamp_lock:
            self._last_timestamp = value
    
    @property
    def running(self) -> bool:
        """Whether a subscription is active."""
        return self._running
    
    def url(self, stream: str, since: str = "") -> str:
        """Subscription URL for a stream, resuming from since when set."""
        url = f"{self.base_url}/{stream}"
        if since:
            url += f"?since={since}"
        return url
    
    async def recent_changes(self, handler: Callable[[RecentChangeEvent], None]) -> None:
        """Subscribe to the recentchange stream. See subscribe()."""
        await self.subscribe(RECENT_CHANGE_STREAM, handler, RecentChangeEvent)
    
    async def subscribe(
        self,
        stream: str,
        handler: Callable[[E], None],
        event_type: Type[E] = RecentChangeEvent,
    ) -> None:
        """
        Subscribe to a stream and invoke handler for every matching event.
        
        Blocks until stop() is called (returns None) or the retry budget
        is exhausted. Exceptions raised by handler are not caught.
        
        Args:
            stream: Stream name, e.g. "recentchange"
            handler: Called synchronously with each matching event
            event_type: Record model the payloads decode into
            
        Raises:
            RetriesExhaustedError: max_retries disconnects within reset_interval
                of their attempts' start
            RuntimeError: A subscription is already running on this client
        """
        if self._running:
            raise RuntimeError("EventStreamClient is already subscribed")
        
        self._running = True
        self._stop_event = asyncio.Event()
        self._backoff.reset()
        session = SessionState(resume_timestamp=self.since)
        last_error: Optional[TransportError] = None
        
        logger.info(
            f"Subscribing to {self.base_url}/{stream} "
            f"(predicates={self.predicates}, since={session.resume_timestamp!r})"
        )
        
        try:
            while not self._stop_event.is_set():
                url = self.url(stream, session.resume_timestamp)
                attempt_start = self._clock()
                
                try:
                    await self._run_attempt(url, handler, event_type, session)
                    # Only reached when stop() cancelled the attempt
                    break
                except TransportError as e:
                    last_error = e
                    logger.warning(f"Stream disconnected: {e}")
                finally:
                    self.metrics.connected = False
                
                if self._stop_event.is_set():
                    break
                
                # A long-lived connection hit the service's scheduled disconnect
                elapsed = self._clock() - attempt_start
                if elapsed >= self.reset_interval:
                    logger.info(
                        f"Connection lasted {elapsed:.0f}s, resetting backoff"
                    )
                    self._backoff.reset()
                
                delay = self._backoff.duration()
                logger.info(
                    f"Reconnecting in {delay:.1f}s "
                    f"(attempt {self._backoff.attempt}/{self.max_retries})"
                )
                if await self._sleep(delay):
                    break
                
                if self._backoff.attempt >= self.max_retries:
                    logger.error(
                        f"Giving up on {stream} after {self._backoff.attempt} attempts"
                    )
                    raise RetriesExhaustedError(self._backoff.attempt, last_error) from last_error
                
                self.metrics.reconnect_count += 1
        finally:
            self._running = False
            self._attempt_task = None
        
        logger.info(f"Subscription to {stream} stopped")
    
    async def stop(self) -> None:
        """
        Stop the subscription gracefully.
        
        Cancels the open connection and interrupts any backoff sleep;
        subscribe() then returns None.
        """
        if not self._running or self._stop_event is None:
            return
        
        logger.info("EventStreamClient stopping...")
        self._stop_event.set()
        
        if self._attempt_task is not None and not self._attempt_task.done():
            self._attempt_task.cancel()
    
    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------
    
    async def _run_attempt(
        self,
        url: str,
        handler: Callable[[E], None],
        event_type: Type[E],
        session: SessionState,
    ) -> None:
        """Run one transport subscription; returns only if stop() cancelled it."""
        predicates = dict(self.predicates)
        
        def on_open() -> None:
            self.metrics.connected = True
        
        def on_message(data: bytes) -> None:
            self._handle_message(data, handler, event_type, predicates, session)
        
        self._attempt_task = asyncio.ensure_future(
            self._transport.subscribe(url, on_message, self.event_name, on_open)
        )
        
        try:
            await self._attempt_task
        except asyncio.CancelledError:
            if self._stop_event is not None and self._stop_event.is_set():
                return
            # Cancelled from outside: the caller abandoned the session
            self._attempt_task.cancel()
            raise
    
    def _handle_message(
        self,
        data: bytes,
        handler: Callable[[E], None],
        event_type: Type[E],
        predicates: Dict[str, Scalar],
        session: SessionState,
    ) -> None:
        """Decode, record the resume point, match and dispatch one message."""
        self.metrics.messages_received += 1
        
        # The first message of each connection is always empty
        if len(data) == 0:
            self.metrics.empty_messages += 1
            return
        
        try:
            event = decode_event(data, event_type)
        except EventDecodeError as e:
            self.metrics.decode_errors += 1
            logger.warning(f"Error deserializing JSON event: {e}")
            return
        
        # Recorded before matching so a reconnect resumes past filtered events
        session.resume_timestamp = event.origin_timestamp
        self._set_last_timestamp(event.origin_timestamp)
        
        if matches(event, predicates):
            self.metrics.events_matched += 1
            handler(event)
    
    async def _sleep(self, delay: float) -> bool:
        """Wait for delay seconds; returns True if stop() was called meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False
