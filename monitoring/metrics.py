"""
Prometheus metrics for the pending transaction tracker
"""

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from events.event_bus import Event, EventBus, EventTypes

tracker_notifications_total = Counter(
    'pending_tracker_notifications_total',
    'Notifications emitted by the pending tracker',
    ['event_type']
)
PENDING_TRANSACTIONS = Gauge('pending_tracker_pending_transactions', 'Pending transactions seen by the last reconcile')
DROPPED_BUFFER_ENTRIES = Gauge('pending_tracker_dropped_buffer_entries', 'Hashes waiting for drop confirmation')
RECONCILE_DURATION = Histogram('pending_tracker_reconcile_seconds', 'Time spent reconciling pending transactions')


async def _count_notification(event: Event):
    tracker_notifications_total.labels(event_type=event.type).inc()


def register_metrics(event_bus: EventBus) -> None:
    """Count every tracker notification emitted on event_bus"""
    for event_type in EventTypes.ALL:
        event_bus.subscribe(event_type, _count_notification)


def start_metrics_server(port: int) -> None:
    """Serve /metrics for Prometheus scraping on port"""
    start_http_server(port)
