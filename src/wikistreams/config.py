"""
wikistreams Configuration
=========================

This module handles configuration loading for the stream client and service.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    WIKISTREAMS_BASE_URL      -> stream.base_url
    WIKISTREAMS_STREAM        -> stream.name
    WIKISTREAMS_EVENT_NAME    -> stream.event_name ("" = all event types)
    WIKISTREAMS_SINCE         -> stream.since
    WIKISTREAMS_READ_TIMEOUT  -> stream.read_timeout_seconds ("" or "none" = no limit)
    WIKISTREAMS_MAX_RETRIES   -> retry.max_retries
    WIKISTREAMS_MATCH         -> filters.match ("name=value,name=value")
    WIKISTREAMS_PORT          -> server.port
    WIKISTREAMS_LOG_LEVEL     -> logging.level
    PORT                      -> server.port (Cloud Run)

Example config.yaml:
    stream:
      name: recentchange
    filters:
      match:
        wiki: enwiki
        namespace: 0
        bot: false
"""

import os
import logging
from pathlib import Path
from typing import Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, StrictBool, StrictInt, StrictStr

from wikistreams.stream.client import DEFAULT_URL, MAX_RETRIES, RESET_INTERVAL_SECONDS
from wikistreams.stream.matcher import parse_constraint
from wikistreams.stream.transport import DEFAULT_USER_AGENT


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class StreamConfig(BaseModel):
    """EventStreams connection configuration."""
    
    base_url: str = Field(
        default=DEFAULT_URL,
        description="EventStreams URL without stream name",
    )
    name: str = Field(
        default="recentchange",
        min_length=1,
        description="Stream to subscribe to",
    )
    event_name: str = Field(
        default="message",
        description="SSE event type to deliver ('' = all event types)",
    )
    since: str = Field(
        default="",
        description="Timestamp to resume from on first connect ('' = live tail)",
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User-Agent header sent to the service",
    )
    connect_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for establishing a connection",
    )
    read_timeout_seconds: Optional[float] = Field(
        default=60.0,
        gt=0,
        description="Seconds of silence before a connection is considered dead",
    )


class RetryConfig(BaseModel):
    """Reconnect and backoff configuration."""
    
    max_retries: int = Field(
        default=MAX_RETRIES,
        ge=1,
        description="Consecutive disconnects tolerated before giving up",
    )
    reset_interval_seconds: float = Field(
        default=RESET_INTERVAL_SECONDS,
        ge=0,
        description="Connection lifetime after which backoff is reset",
    )
    min_delay_ms: int = Field(default=100, ge=1, description="First backoff delay")
    max_delay_ms: int = Field(default=10_000, ge=1, description="Backoff delay cap")
    factor: float = Field(default=2.0, ge=1.0, description="Backoff growth factor")
    jitter: bool = Field(default=False, description="Randomize backoff delays")


class FilterConfig(BaseModel):
    """Event predicates; all must match."""
    
    match: Dict[str, Union[StrictBool, StrictInt, StrictStr]] = Field(
        default_factory=dict,
        description="Field name -> expected value",
    )


class ServerConfig(BaseModel):
    """Server configuration."""
    
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8001, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for wikistreams.
    
    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """
    
    stream: StreamConfig = Field(default_factory=StreamConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    filters: FilterConfig = Field(default_factory=FilterConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.
    
    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values
        
    Args:
        config_path: Path to config.yaml. If None, searches common locations.
        
    Returns:
        Settings: Loaded configuration
    """
    # Find config file
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break
    
    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")
    
    # Apply environment variable overrides
    _apply_env_overrides(config_data)
    
    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""
    
    # Stream settings
    if env_url := os.environ.get("WIKISTREAMS_BASE_URL"):
        config_data.setdefault("stream", {})["base_url"] = env_url
    if env_stream := os.environ.get("WIKISTREAMS_STREAM"):
        config_data.setdefault("stream", {})["name"] = env_stream
    if (env_event := os.environ.get("WIKISTREAMS_EVENT_NAME")) is not None:
        config_data.setdefault("stream", {})["event_name"] = env_event
    if env_since := os.environ.get("WIKISTREAMS_SINCE"):
        config_data.setdefault("stream", {})["since"] = env_since
    if (env_read := os.environ.get("WIKISTREAMS_READ_TIMEOUT")) is not None:
        # "" or "none" waits forever
        read_timeout = None if env_read.strip().lower() in ("", "none") else float(env_read)
        config_data.setdefault("stream", {})["read_timeout_seconds"] = read_timeout
    
    # Retry settings
    if env_retries := os.environ.get("WIKISTREAMS_MAX_RETRIES"):
        config_data.setdefault("retry", {})["max_retries"] = int(env_retries)
    
    # Predicates
    if env_match := os.environ.get("WIKISTREAMS_MATCH"):
        match = config_data.setdefault("filters", {}).setdefault("match", {})
        for pair in env_match.split(","):
            if pair.strip():
                name, value = parse_constraint(pair)
                match[name] = value
    
    # Server settings (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("WIKISTREAMS_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    
    # Logging settings
    if env_log := os.environ.get("WIKISTREAMS_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)
    
    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    
    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
