"""
Data Models
===========

Pydantic models for records delivered by EventStreams.

Models:
    - StreamEvent: Base record with envelope metadata and matchable fields
    - RecentChangeEvent: Record of the recentchange stream
    - EventMeta: Envelope metadata (origin timestamp, stream, topic, ...)
    - OldNew: Before/after pair for length and revision groups
"""

from wikistreams.models.events import (
    EventMeta,
    OldNew,
    RecentChangeEvent,
    Scalar,
    StreamEvent,
    decode_event,
)

__all__ = [
    "EventMeta",
    "OldNew",
    "RecentChangeEvent",
    "Scalar",
    "StreamEvent",
    "decode_event",
]
