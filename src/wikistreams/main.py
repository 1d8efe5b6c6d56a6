"""
wikistreams Service
===================

FastAPI entry point that runs one filtered EventStreams subscription for
the lifetime of the process and exposes its health.

Each matching event is logged; the most recent one is kept for /latest.
When the retry budget is exhausted the subscription ends and /health
reports "failed" so an orchestrator can restart the process.

Endpoints:
    GET  /        - Service information
    GET  /health  - Liveness probe (503 once the subscription has failed)
    GET  /ready   - Readiness probe (stream connected?)
    GET  /metrics - Session counters and last observed timestamp
    GET  /latest  - Most recent matching event
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from wikistreams import __version__
from wikistreams.config import Settings, settings as default_settings, setup_logging
from wikistreams.errors import RetriesExhaustedError
from wikistreams.models.events import StreamEvent
from wikistreams.stream import EventStreamClient


logger = logging.getLogger(__name__)


class ServiceState:
    """Runtime state shared between the subscription task and endpoints."""
    
    def __init__(self, client: EventStreamClient) -> None:
        self.client = client
        self.task: Optional[asyncio.Task] = None
        self.latest_event: Optional[StreamEvent] = None
        self.failure: Optional[str] = None
        self.startup_time: float = time.time()
    
    def on_event(self, event: StreamEvent) -> None:
        """Handler invoked for every matching event."""
        self.latest_event = event
        logger.info(f"Matched event: {event!r}")
    
    def on_done(self, task: asyncio.Task) -> None:
        """Record how the subscription task ended."""
        if task.cancelled():
            return
        error = task.exception()
        if isinstance(error, RetriesExhaustedError):
            self.failure = str(error)
            logger.error(f"Subscription failed: {error}")
        elif error is not None:
            self.failure = f"{type(error).__name__}: {error}"
            logger.error(f"Subscription crashed: {self.failure}")


def create_app(
    app_settings: Optional[Settings] = None,
    client: Optional[EventStreamClient] = None,
) -> FastAPI:
    """
    Build the FastAPI application.
    
    Args:
        app_settings: Settings to use (defaults to the global settings)
        client: Pre-built client (defaults to one built from settings)
    """
    if app_settings is None:
        app_settings = default_settings
    state = ServiceState(client or EventStreamClient.from_settings(app_settings))
    
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan manager with graceful shutdown."""
        stream = app_settings.stream.name
        logger.info(f"Starting wikistreams {__version__}, stream={stream}")
        
        state.startup_time = time.time()
        state.task = asyncio.create_task(
            state.client.subscribe(stream, state.on_event),
            name="event_stream",
        )
        state.task.add_done_callback(state.on_done)
        
        yield
        
        logger.info("Shutting down gracefully...")
        await state.client.stop()
        
        if not state.task.done():
            try:
                await asyncio.wait_for(asyncio.shield(state.task), timeout=5.0)
            except asyncio.TimeoutError:
                state.task.cancel()
            except Exception:
                # Already recorded by on_done
                pass
        
        logger.info("Shutdown complete")
    
    app = FastAPI(
        title="wikistreams",
        description="Filtered Wikimedia EventStreams subscriber",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = state
    
    @app.get("/")
    async def root() -> JSONResponse:
        """Service information endpoint."""
        return JSONResponse({
            "service": "wikistreams",
            "version": __version__,
            "stream": app_settings.stream.name,
            "base_url": state.client.base_url,
            "predicates": state.client.predicates,
        })
    
    @app.get("/health")
    async def health() -> JSONResponse:
        """
        Liveness probe - is the subscription still alive?
        
        Returns 503 once the retry budget has been exhausted.
        """
        uptime = round(time.time() - state.startup_time, 1)
        if state.failure is not None:
            return JSONResponse(
                {"status": "failed", "error": state.failure, "uptime_seconds": uptime},
                status_code=503,
            )
        return JSONResponse({"status": "healthy", "uptime_seconds": uptime})
    
    @app.get("/ready")
    async def ready() -> JSONResponse:
        """Readiness probe - is the stream currently connected?"""
        connected = state.client.metrics.connected
        return JSONResponse(
            {"status": "ready" if connected else "not_ready", "stream_connected": connected},
            status_code=200 if connected else 503,
        )
    
    @app.get("/metrics")
    async def metrics() -> JSONResponse:
        """Session counters for observability."""
        return JSONResponse({
            "uptime_seconds": round(time.time() - state.startup_time, 1),
            "last_timestamp": state.client.last_timestamp,
            "running": state.client.running,
            **state.client.metrics.to_dict(),
        })
    
    @app.get("/latest")
    async def latest() -> JSONResponse:
        """Most recent matching event."""
        if state.latest_event is None:
            return JSONResponse(
                {"error": "No matching event received yet"},
                status_code=503,
            )
        return JSONResponse(state.latest_event.model_dump(mode="json", by_alias=True))
    
    return app


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    """Run the service with uvicorn."""
    import uvicorn
    
    setup_logging(default_settings)
    uvicorn.run(
        create_app(),
        host=default_settings.server.host,
        port=default_settings.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run()
