"""
Test Configuration
==================

Pytest fixtures and test configuration for wikistreams.
"""

import json

import pytest


@pytest.fixture
def sample_event_payload():
    """Provide a sample recentchange payload as received from the service."""
    return {
        "$schema": "/mediawiki/recentchange/1.0.0",
        "meta": {
            "uri": "https://commons.wikimedia.org/wiki/File:Abydos-Bold-hieroglyph-O10A.png",
            "request_id": "eb2f4e7b-0aaa-4df0-8dc6-d49cfbb62178",
            "id": "013846b7-9e2a-430a-8959-7a423bf38385",
            "dt": "2020-05-21T00:26:42Z",
            "domain": "commons.wikimedia.org",
            "stream": "mediawiki.recentchange",
            "topic": "eqiad.mediawiki.recentchange",
            "partition": 0,
            "offset": 2420955111,
        },
        "id": 1390275467,
        "type": "edit",
        "namespace": 6,
        "title": "File:Abydos-Bold-hieroglyph-O10A.png",
        "comment": "/* wbeditentity-update:0| */ automatically adding claims based on file information: date",
        "timestamp": 1590020802,
        "user": "SchlurcherBot",
        "bot": True,
        "minor": False,
        "patrolled": True,
        "length": {"old": 366, "new": 1010},
        "revision": {"old": 326564921, "new": 420613296},
        "server_url": "https://commons.wikimedia.org",
        "server_name": "commons.wikimedia.org",
        "server_script_path": "/w",
        "wiki": "commonswiki",
        "parsedcomment": "automatically adding claims based on file information: date",
    }


@pytest.fixture
def make_event(sample_event_payload):
    """
    Provide a factory for encoded event payloads.
    
    Keyword arguments override top-level fields; dt overrides meta.dt.
    """
    def _make(dt=None, **overrides):
        payload = json.loads(json.dumps(sample_event_payload))
        payload.update(overrides)
        if dt is not None:
            payload["meta"]["dt"] = dt
        return json.dumps(payload).encode("utf-8")
    
    return _make


@pytest.fixture
def sample_event(sample_event_payload):
    """Provide the sample payload decoded as a RecentChangeEvent."""
    from wikistreams.models.events import RecentChangeEvent
    
    return RecentChangeEvent.model_validate_json(json.dumps(sample_event_payload))
