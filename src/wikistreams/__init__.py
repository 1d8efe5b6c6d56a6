"""
wikistreams
===========

Client for the Wikimedia EventStreams service.

Subscribes to a server-sent event stream, filters events on field
predicates, and survives the periodic disconnects of long-lived HTTP
streams by reconnecting with backoff and resuming from the timestamp
of the last event seen.

Components:
    - stream: SSE transport, predicate matcher, reconnecting client
    - models: Pydantic event records
    - config: YAML + environment configuration
    - main: FastAPI service running one subscription

Example:
    import asyncio
    from wikistreams import EventStreamClient
    
    client = EventStreamClient().match("namespace", 0)
    asyncio.run(client.recent_changes(lambda event: print(event.title)))
"""

__version__ = "0.1.0"

from wikistreams.errors import (
    EventDecodeError,
    RetriesExhaustedError,
    StreamClosedError,
    StreamError,
    TransportError,
)
from wikistreams.models.events import RecentChangeEvent, StreamEvent
from wikistreams.stream.client import DEFAULT_URL, EventStreamClient


__all__ = [
    "__version__",
    "DEFAULT_URL",
    "EventDecodeError",
    "EventStreamClient",
    "RecentChangeEvent",
    "RetriesExhaustedError",
    "StreamClosedError",
    "StreamError",
    "StreamEvent",
    "TransportError",
]
