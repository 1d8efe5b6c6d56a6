"""
Errors
======

Exception hierarchy for the event stream client.

Taxonomy:
    - TransportError: the SSE subscription terminated (retried by the client)
    - StreamClosedError: the server ended the stream without an HTTP error
    - EventDecodeError: one message could not be decoded (logged, dropped)
    - RetriesExhaustedError: the retry budget ran out (terminal)
"""

from typing import Optional


class StreamError(Exception):
    """Base class for all stream client errors."""


class TransportError(StreamError):
    """The transport subscription terminated with an error."""


class StreamClosedError(TransportError):
    """The server closed the event stream."""


class EventDecodeError(StreamError):
    """A message payload could not be decoded into an event record."""


class RetriesExhaustedError(StreamError):
    """
    Raised when consecutive disconnects exhaust the retry budget.
    
    Attributes:
        attempts: Number of attempts since the last backoff reset
        last_error: The transport error that ended the final attempt
    """
    
    def __init__(self, attempts: int, last_error: Optional[BaseException]) -> None:
        super().__init__(
            f"Giving up after {attempts} consecutive disconnects: {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error
