"""
Stream Module
=============

SSE subscription, predicate matching and reconnect handling.

This module provides the ingestion layer for wikistreams:
    - EventStreamClient: Reconnecting, filtering subscriber
    - SSETransport: httpx-based SSE transport
    - Backoff: Exponential reconnect delay schedule
    - matches: Predicate matcher over a record's external field names

Example:
    from wikistreams.stream import EventStreamClient
    
    client = EventStreamClient().match("wiki", "enwiki")
    await client.recent_changes(lambda event: print(event.title))
"""

from wikistreams.stream.backoff import Backoff
from wikistreams.stream.client import (
    DEFAULT_URL,
    MAX_RETRIES,
    RESET_INTERVAL_SECONDS,
    EventStreamClient,
    SessionMetrics,
)
from wikistreams.stream.matcher import matches, parse_constraint, parse_scalar
from wikistreams.stream.transport import SSETransport


__all__ = [
    "DEFAULT_URL",
    "MAX_RETRIES",
    "RESET_INTERVAL_SECONDS",
    "Backoff",
    "EventStreamClient",
    "SSETransport",
    "SessionMetrics",
    "matches",
    "parse_constraint",
    "parse_scalar",
]
