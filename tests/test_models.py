"""
Event Model Tests
=================

Tests for decoding EventStreams payloads into records.
"""

import json

import pytest
from pydantic import ValidationError

from wikistreams.errors import EventDecodeError
from wikistreams.models.events import RecentChangeEvent, decode_event


class TestDecodeEvent:
    """Tests for decode_event."""
    
    def test_decodes_sample_payload(self, make_event):
        """Verify all wire fields land on the record."""
        event = decode_event(make_event())
        
        assert isinstance(event, RecentChangeEvent)
        assert event.id == 1390275467
        assert event.namespace == 6
        assert event.bot is True
        assert event.schema_uri == "/mediawiki/recentchange/1.0.0"
        assert event.length.new == 1010
        assert event.revision.old == 326564921
        assert event.meta.offset == 2420955111
    
    def test_origin_timestamp_is_meta_dt(self, make_event):
        event = decode_event(make_event(dt="2024-03-01T12:00:00Z"))
        assert event.origin_timestamp == "2024-03-01T12:00:00Z"
    
    def test_missing_fields_take_zero_values(self):
        """Log events omit length, revision and minor."""
        event = decode_event(b'{"type": "log", "meta": {"dt": "2020-05-21T00:26:42Z"}}')
        
        assert event.type == "log"
        assert event.minor is False
        assert event.length.old == 0
        assert event.title == ""
    
    def test_null_takes_zero_value(self):
        event = decode_event(b'{"id": null, "comment": null, "meta": {"dt": "x"}}')
        assert event.id == 0
        assert event.comment == ""
    
    def test_unknown_fields_ignored(self):
        event = decode_event(b'{"log_type": "upload", "namespace": 2}')
        assert event.namespace == 2
    
    def test_malformed_json_raises(self):
        with pytest.raises(EventDecodeError):
            decode_event(b"{not json")
    
    def test_string_does_not_coerce_to_int(self):
        """Verify strict decoding rejects "6" for an integer field."""
        with pytest.raises(EventDecodeError):
            decode_event(b'{"namespace": "6"}')
    
    def test_record_is_immutable(self, sample_event):
        with pytest.raises(ValidationError):
            sample_event.namespace = 0


class TestMatchableFields:
    """Tests for the external field table."""
    
    def test_exposes_flat_scalars_by_wire_name(self, sample_event):
        fields = dict(sample_event.matchable_fields())
        
        assert fields["namespace"] == 6
        assert fields["server_script_path"] == "/w"
        assert fields["parsedcomment"].startswith("automatically")
        assert fields["bot"] is True
    
    def test_groups_and_schema_not_matchable(self, sample_event):
        fields = dict(sample_event.matchable_fields())
        
        for name in ("meta", "length", "revision", "$schema", "schema_uri", "dt"):
            assert name not in fields
        assert len(fields) == 15
    
    def test_accessor_table_matches_model_fields(self):
        for name in RecentChangeEvent.FIELD_ACCESSORS:
            assert name in RecentChangeEvent.model_fields
    
    def test_dump_uses_wire_names(self, sample_event, sample_event_payload):
        dumped = sample_event.model_dump(mode="json", by_alias=True)
        assert dumped["$schema"] == sample_event_payload["$schema"]
        assert json.loads(json.dumps(dumped))["meta"]["dt"] == "2020-05-21T00:26:42Z"
