"""
Event Models
============

Pydantic models for records received from the Wikimedia EventStreams service.

Records are immutable once decoded. Fields that take part in predicate
matching are declared explicitly in each model's FIELD_ACCESSORS table,
keyed by their external (JSON) name. Nested groups such as meta, length
and revision are never matchable.

Wire Contract (recentchange stream, abridged):
    {
        "$schema": "/mediawiki/recentchange/1.0.0",
        "meta": {"dt": "2020-05-21T00:26:42Z", "stream": "mediawiki.recentchange", ...},
        "id": 1390275467,
        "type": "edit",
        "namespace": 6,
        "title": "File:Abydos-Bold-hieroglyph-O10A.png",
        "user": "SchlurcherBot",
        "bot": true,
        "length": {"old": 366, "new": 1010},
        "revision": {"old": 326564921, "new": 420613296},
        "wiki": "commonswiki",
        ...
    }

Example:
    from wikistreams.models.events import RecentChangeEvent, decode_event
    
    event = decode_event(raw_bytes, RecentChangeEvent)
    print(event.origin_timestamp, dict(event.matchable_fields()))
"""

from operator import attrgetter
from typing import Any, Callable, ClassVar, Dict, Iterator, Mapping, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from wikistreams.errors import EventDecodeError


# Closed set of values a predicate may compare against
Scalar = Union[bool, int, str]

FieldAccessor = Callable[[Any], Scalar]

E = TypeVar("E", bound="StreamEvent")


def accessor_table(fields: Mapping[str, str]) -> Dict[str, FieldAccessor]:
    """Build an external-name -> accessor table from attribute paths."""
    return {name: attrgetter(path) for name, path in fields.items()}


class _Record(BaseModel):
    """Shared configuration: immutable, strict scalars, unknown keys ignored."""
    
    model_config = ConfigDict(
        frozen=True,
        strict=True,
        extra="ignore",
        populate_by_name=True,
    )
    
    @field_validator("*", mode="before")
    @classmethod
    def _null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        # JSON null decodes to the field's zero value
        if value is None and info.field_name is not None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value


class EventMeta(_Record):
    """Envelope metadata common to every EventStreams record."""
    
    uri: str = ""
    request_id: str = ""
    id: str = ""
    dt: str = Field(default="", description="ISO8601 origin timestamp")
    domain: str = ""
    stream: str = ""
    topic: str = ""
    partition: int = 0
    offset: int = 0


class OldNew(_Record):
    """Before/after pair used by length and revision groups."""
    
    old: int = 0
    new: int = 0


class StreamEvent(_Record):
    """
    Base record for any EventStreams stream.
    
    Subclasses declare FIELD_ACCESSORS to expose matchable fields.
    """
    
    FIELD_ACCESSORS: ClassVar[Dict[str, FieldAccessor]] = {}
    
    schema_uri: str = Field(default="", alias="$schema")
    meta: EventMeta = Field(default_factory=EventMeta)
    
    @property
    def origin_timestamp(self) -> str:
        """Timestamp used to resume the stream after a reconnect."""
        return self.meta.dt
    
    def matchable_fields(self) -> Iterator[Tuple[str, Scalar]]:
        """Yield (external name, value) for every matchable field."""
        for name, accessor in self.FIELD_ACCESSORS.items():
            yield name, accessor(self)


class RecentChangeEvent(StreamEvent):
    """
    Record from the recentchange stream.
    
    See https://github.com/wikimedia/mediawiki-event-schemas/blob/master/jsonschema/mediawiki/recentchange/1.0.0.yaml
    """
    
    FIELD_ACCESSORS: ClassVar[Dict[str, FieldAccessor]] = accessor_table({
        "id": "id",
        "type": "type",
        "namespace": "namespace",
        "title": "title",
        "comment": "comment",
        "timestamp": "timestamp",
        "user": "user",
        "bot": "bot",
        "minor": "minor",
        "patrolled": "patrolled",
        "server_url": "server_url",
        "server_name": "server_name",
        "server_script_path": "server_script_path",
        "wiki": "wiki",
        "parsedcomment": "parsedcomment",
    })
    
    id: int = 0
    type: str = ""
    namespace: int = 0
    title: str = ""
    comment: str = ""
    timestamp: int = 0
    user: str = ""
    bot: bool = False
    minor: bool = False
    patrolled: bool = False
    length: OldNew = Field(default_factory=OldNew)
    revision: OldNew = Field(default_factory=OldNew)
    server_url: str = ""
    server_name: str = ""
    server_script_path: str = ""
    wiki: str = ""
    parsedcomment: str = ""
    
    def __repr__(self) -> str:
        """Compact repr without the comment bodies."""
        return (
            f"RecentChangeEvent(id={self.id}, type={self.type!r}, "
            f"wiki={self.wiki!r}, title={self.title!r}, dt={self.meta.dt!r})"
        )


def decode_event(raw: Union[bytes, str], event_type: Type[E] = RecentChangeEvent) -> E:
    """
    Decode one message payload.
    
    Args:
        raw: JSON payload of a single SSE message
        event_type: Record model to decode into
        
    Returns:
        The decoded, immutable record
        
    Raises:
        EventDecodeError: Payload is not valid JSON or fails validation
    """
    try:
        return event_type.model_validate_json(raw)
    except ValidationError as e:
        raise EventDecodeError(f"Invalid {event_type.__name__} payload: {e}") from e
