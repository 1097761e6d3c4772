"""
Wiring of the tracker with its in-process collaborators
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from config.config import LOG_FILE, LOG_LEVEL, METRICS_PORT
from events.event_bus import EventBus
from log_utils import get_logger, setup_logging
from monitoring.metrics import register_metrics, start_metrics_server
from node.poller import TrackerPoller
from nonce.nonce_tracker import NonceTracker
from store.transaction_store import TransactionStore
from tracker.pending_tracker import PendingTracker

logger = get_logger(__name__)


def create_tracker(
    ledger,
    store: TransactionStore,
    approve_transaction: Callable[[Any], Awaitable[Any]],
    publish_transaction: Optional[Callable[[str], Awaitable[str]]] = None,
    event_bus: Optional[EventBus] = None,
    nonce_tracker: Optional[NonceTracker] = None,
) -> PendingTracker:
    """
    Build a PendingTracker whose notifications update store.

    ledger must implement LedgerQuery; when publish_transaction is omitted its
    send_raw_transaction is used for rebroadcasts.
    """
    event_bus = event_bus or EventBus()
    nonce_tracker = nonce_tracker or NonceTracker(ledger, store.get_pending_transactions)
    store.attach(event_bus)
    register_metrics(event_bus)

    tracker = PendingTracker(
        query=ledger,
        nonce_tracker=nonce_tracker,
        get_pending_transactions=store.get_pending_transactions,
        get_completed_transactions=store.get_completed_transactions,
        approve_transaction=approve_transaction,
        publish_transaction=publish_transaction or getattr(ledger, 'send_raw_transaction', None),
        event_bus=event_bus,
    )
    logger.info("Pending tracker created")
    return tracker


async def run_tracker(
    tracker: PendingTracker,
    query,
    shutdown_event: Optional[asyncio.Event] = None,
    metrics_port: int = METRICS_PORT,
) -> None:
    """
    Run the tracker's ticks until shutdown.

    Configures logging from LOG_LEVEL / LOG_FILE and serves Prometheus
    metrics when metrics_port is non-zero. Pending notifications are
    delivered before returning.
    """
    setup_logging(level=LOG_LEVEL, log_file=LOG_FILE)
    if metrics_port:
        start_metrics_server(metrics_port)
        logger.info(f"Metrics served on port {metrics_port}")

    poller = TrackerPoller(tracker, query, shutdown_event=shutdown_event)
    try:
        await poller.run()
    except asyncio.CancelledError:
        logger.info("Tracker cancelled, shutting down")
        raise
    finally:
        await poller.stop()
        await tracker.event_bus.wait_idle()
        logger.info("Tracker stopped")
