"""
Configuration Tests
===================

Tests for YAML loading, environment overrides and client construction.
"""

import pytest
from pydantic import ValidationError

from wikistreams.config import Settings, load_config
from wikistreams.stream.client import DEFAULT_URL, EventStreamClient


ENV_VARS = [
    "WIKISTREAMS_BASE_URL",
    "WIKISTREAMS_STREAM",
    "WIKISTREAMS_EVENT_NAME",
    "WIKISTREAMS_SINCE",
    "WIKISTREAMS_READ_TIMEOUT",
    "WIKISTREAMS_MAX_RETRIES",
    "WIKISTREAMS_MATCH",
    "WIKISTREAMS_PORT",
    "WIKISTREAMS_LOG_LEVEL",
    "PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "stream:\n"
        "  name: page-create\n"
        "retry:\n"
        "  max_retries: 5\n"
        "filters:\n"
        "  match:\n"
        "    wiki: enwiki\n"
        "    namespace: 0\n"
        "    bot: false\n"
    )
    return str(path)


class TestLoadConfig:
    """Tests for load_config."""
    
    def test_defaults(self, tmp_path):
        settings = load_config(str(tmp_path / "missing.yaml"))
        
        assert settings.stream.base_url == DEFAULT_URL
        assert settings.stream.name == "recentchange"
        assert settings.stream.event_name == "message"
        assert settings.retry.max_retries == 3
        assert settings.retry.reset_interval_seconds == 600.0
        assert settings.filters.match == {}
    
    def test_yaml_values_keep_scalar_types(self, config_file):
        settings = load_config(config_file)
        
        assert settings.stream.name == "page-create"
        assert settings.retry.max_retries == 5
        match = settings.filters.match
        assert match == {"wiki": "enwiki", "namespace": 0, "bot": False}
        assert type(match["namespace"]) is int
        assert type(match["bot"]) is bool
    
    def test_env_overrides_file(self, config_file, monkeypatch):
        monkeypatch.setenv("WIKISTREAMS_STREAM", "recentchange")
        monkeypatch.setenv("WIKISTREAMS_MAX_RETRIES", "2")
        monkeypatch.setenv("WIKISTREAMS_MATCH", "namespace=14, type=edit")
        monkeypatch.setenv("WIKISTREAMS_EVENT_NAME", "")
        
        settings = load_config(config_file)
        
        assert settings.stream.name == "recentchange"
        assert settings.retry.max_retries == 2
        assert settings.stream.event_name == ""
        assert settings.filters.match == {
            "wiki": "enwiki",
            "namespace": 14,
            "bot": False,
            "type": "edit",
        }
    
    def test_port_precedence(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WIKISTREAMS_PORT", "9000")
        assert load_config(str(tmp_path / "missing.yaml")).server.port == 9000
        
        monkeypatch.setenv("PORT", "8080")
        assert load_config(str(tmp_path / "missing.yaml")).server.port == 8080
    
    def test_non_scalar_predicate_rejected(self):
        with pytest.raises(ValidationError):
            Settings.model_validate({"filters": {"match": {"namespace": 1.5}}})
    
    def test_invalid_retries_rejected(self):
        with pytest.raises(ValidationError):
            Settings.model_validate({"retry": {"max_retries": 0}})


class TestClientFromSettings:
    """Tests for EventStreamClient.from_settings."""
    
    def test_builds_client(self, config_file):
        client = EventStreamClient.from_settings(load_config(config_file))
        
        assert client.predicates == {"wiki": "enwiki", "namespace": 0, "bot": False}
        assert client.max_retries == 5
        assert client.event_name == "message"
        assert client.reset_interval == 600.0
    
    def test_empty_event_name_means_all(self):
        settings = Settings.model_validate({"stream": {"event_name": "", "since": "2024-01-01T00:00:00Z"}})
        client = EventStreamClient.from_settings(settings)
        
        assert client.event_name is None
        assert client.since == "2024-01-01T00:00:00Z"
    
    def test_overrides_replace_settings_values(self, config_file):
        from fakes import FakeTransport
        
        transport = FakeTransport()
        client = EventStreamClient.from_settings(
            load_config(config_file), transport=transport, max_retries=7
        )
        
        assert client._transport is transport
        assert client.max_retries == 7
        assert client.predicates["wiki"] == "enwiki"


class TestReadTimeoutOverride:
    """Tests for WIKISTREAMS_READ_TIMEOUT."""
    
    def test_numeric_value(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WIKISTREAMS_READ_TIMEOUT", "30")
        assert load_config(str(tmp_path / "missing.yaml")).stream.read_timeout_seconds == 30.0
    
    @pytest.mark.parametrize("value", ["", "none", "None"])
    def test_no_limit(self, tmp_path, monkeypatch, value):
        monkeypatch.setenv("WIKISTREAMS_READ_TIMEOUT", value)
        settings = load_config(str(tmp_path / "missing.yaml"))
        
        assert settings.stream.read_timeout_seconds is None
        assert EventStreamClient.from_settings(settings)._transport.timeout.read is None
