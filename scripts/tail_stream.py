#!/usr/bin/env python3
"""
Stream Tail Script
==================

Standalone script that prints matching events from an EventStreams stream.

This script:
    1. Subscribes to the stream with the given predicates
    2. Prints one line per matching event for a configurable duration
    3. Logs session stats every report interval
    4. Reports final summary

Usage:
    python scripts/tail_stream.py --duration 60
    python scripts/tail_stream.py --match wiki=enwiki --match namespace=0 --match bot=false
    python scripts/tail_stream.py --since 2024-01-01T00:00:00Z --event-name ""
"""

import argparse
import asyncio
import logging
import os
import sys
import time

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from wikistreams.errors import RetriesExhaustedError
from wikistreams.models.events import StreamEvent
from wikistreams.stream import DEFAULT_URL, EventStreamClient, parse_constraint


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


def print_event(event: StreamEvent) -> None:
    """Print one matching event."""
    title = getattr(event, "title", "")
    user = getattr(event, "user", "")
    print(f"{event.origin_timestamp} {title} ({user})", flush=True)


async def run_tail(
    base_url: str,
    stream: str,
    predicates: dict,
    since: str,
    event_name: str,
    duration: int,
    report_interval: int,
) -> dict:
    """
    Tail the stream.
    
    Args:
        base_url: EventStreams URL without stream name
        stream: Stream name
        predicates: Field name -> expected value
        since: Timestamp to resume from ('' = live tail)
        event_name: SSE event type ('' = all)
        duration: Seconds to run (0 = until interrupted or failed)
        report_interval: Seconds between progress reports
        
    Returns:
        Final metrics dict
    """
    logger.info("=" * 60)
    logger.info(f"Tailing {base_url}/{stream}")
    logger.info(f"Predicates: {predicates}")
    logger.info(f"Duration: {duration or 'unbounded'} seconds")
    logger.info("=" * 60)
    
    client = EventStreamClient(
        base_url=base_url,
        since=since,
        event_name=event_name or None,
    )
    for name, value in predicates.items():
        client.match(name, value)
    
    client_task = asyncio.create_task(client.subscribe(stream, print_event))
    
    start_time = time.time()
    last_report_time = start_time
    failed = False
    
    try:
        while not client_task.done():
            elapsed = time.time() - start_time
            
            if duration and elapsed >= duration:
                logger.info(f"Duration ({duration}s) reached")
                break
            
            if time.time() - last_report_time >= report_interval:
                metrics = client.metrics
                logger.info("-" * 40)
                logger.info(f"Progress Report (elapsed: {elapsed:.0f}s)")
                logger.info(f"  Connected: {metrics.connected}")
                logger.info(f"  Messages received: {metrics.messages_received}")
                logger.info(f"  Events matched: {metrics.events_matched}")
                logger.info(f"  Last timestamp: {client.last_timestamp}")
                logger.info(f"  Reconnects: {metrics.reconnect_count}")
                last_report_time = time.time()
            
            await asyncio.sleep(0.5)
    finally:
        await client.stop()
        
        try:
            await asyncio.wait_for(client_task, timeout=5.0)
        except asyncio.TimeoutError:
            client_task.cancel()
            try:
                await client_task
            except asyncio.CancelledError:
                pass
        except RetriesExhaustedError as e:
            logger.error(f"Stream failed: {e}")
            failed = True
    
    total_time = time.time() - start_time
    metrics = client.metrics
    
    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {total_time:.1f} seconds")
    logger.info(f"Messages received: {metrics.messages_received}")
    logger.info(f"Events matched: {metrics.events_matched}")
    logger.info(f"Decode errors: {metrics.decode_errors}")
    logger.info(f"Reconnections: {metrics.reconnect_count}")
    logger.info(f"Resume with: --since {client.last_timestamp}")
    logger.info("=" * 60)
    
    return {
        "duration": total_time,
        "failed": failed,
        "last_timestamp": client.last_timestamp,
        **metrics.to_dict(),
    }


def main():
    parser = argparse.ArgumentParser(
        description="Print matching events from a Wikimedia EventStreams stream"
    )
    parser.add_argument(
        "--url",
        type=str,
        default=os.environ.get("WIKISTREAMS_BASE_URL", DEFAULT_URL),
        help="EventStreams URL without stream name",
    )
    parser.add_argument(
        "--stream",
        type=str,
        default="recentchange",
        help="Stream name (default: recentchange)",
    )
    parser.add_argument(
        "--match",
        type=parse_constraint,
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Field predicate; repeat for several (all must match)",
    )
    parser.add_argument(
        "--since",
        type=str,
        default="",
        help="Timestamp to resume from (default: live tail)",
    )
    parser.add_argument(
        "--event-name",
        type=str,
        default="message",
        help="SSE event type to deliver, '' for all (default: message)",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=60,
        help="Seconds to run, 0 for unbounded (default: 60)",
    )
    parser.add_argument(
        "--report-interval",
        type=int,
        default=10,
        help="Seconds between progress reports (default: 10)",
    )
    
    args = parser.parse_args()
    
    try:
        result = asyncio.run(run_tail(
            base_url=args.url,
            stream=args.stream,
            predicates=dict(args.match),
            since=args.since,
            event_name=args.event_name,
            duration=args.duration,
            report_interval=args.report_interval,
        ))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    
    sys.exit(1 if result["failed"] else 0)


if __name__ == "__main__":
    main()
