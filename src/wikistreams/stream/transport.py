"""
SSE Transport
=============

Async HTTP client for server-sent event streams.

This transport:
    - Opens a streaming GET request with httpx
    - Decodes the event:/data:/id: framing with httpx-sse
    - Invokes a callback once per dispatched message, in arrival order
    - Always terminates by raising: TransportError on HTTP or network
      failure, StreamClosedError when the server ends the stream

Retry and resume are NOT handled here; see EventStreamClient.

Example:
    transport = SSETransport(user_agent="my-bot/1.0")
    
    await transport.subscribe(
        "https://stream.wikimedia.org/v2/stream/recentchange",
        lambda data: print(data),
    )
"""

import logging
from typing import Callable, Dict, Optional

import httpx
from httpx_sse import aconnect_sse

from wikistreams import __version__
from wikistreams.errors import StreamClosedError, TransportError


logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"wikistreams/{__version__}"

MessageCallback = Callable[[bytes], None]


class SSETransport:
    """
    Streaming SSE subscription over httpx.
    
    Attributes:
        user_agent: User-Agent header sent with each request
        timeout: httpx timeout applied to connect and reads
    """
    
    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        connect_timeout: float = 10.0,
        read_timeout: Optional[float] = 60.0,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize transport.
        
        Args:
            user_agent: User-Agent header value
            connect_timeout: Seconds allowed to establish a connection
            read_timeout: Seconds of silence before the stream is considered dead
                (None = wait forever)
            http_transport: Optional httpx transport (used by tests)
        """
        self.user_agent = user_agent
        self.timeout = httpx.Timeout(connect_timeout, read=read_timeout)
        self._http_transport = http_transport
    
    def _headers(self) -> Dict[str, str]:
        # aconnect_sse adds Accept and Cache-Control
        return {"User-Agent": self.user_agent}
    
    async def subscribe(
        self,
        url: str,
        on_message: MessageCallback,
        event_name: Optional[str] = "message",
        on_open: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Stream messages from url until the subscription terminates.
        
        Args:
            url: Full stream URL
            on_message: Called with the data of every delivered message
            event_name: Only deliver this SSE event type (None = all types)
            on_open: Called once the server accepted the request
            
        Raises:
            TransportError: HTTP error status or network failure
            StreamClosedError: Server ended the stream
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._http_transport,
                follow_redirects=True,
            ) as client:
                async with aconnect_sse(client, "GET", url, headers=self._headers()) as source:
                    source.response.raise_for_status()
                    logger.info(f"SSE stream opened: {url}")
                    if on_open is not None:
                        on_open()
                    
                    async for sse in source.aiter_sse():
                        if event_name is not None and sse.event != event_name:
                            logger.debug(f"Skipping SSE event of type {sse.event!r}")
                            continue
                        on_message(sse.data.encode("utf-8"))
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"HTTP {e.response.status_code} from {url}"
            ) from e
        except httpx.HTTPError as e:
            # Includes httpx_sse.SSEError (wrong content type)
            raise TransportError(f"Stream failed: {e!r}") from e
        
        raise StreamClosedError(f"Server closed stream: {url}")
