# tests/conftest.py
"""
Shared fixtures for the test suite.

Key design points
─────────────────
1.  Make project-root importable so `from tracker.pending_tracker import …`
    works no matter where pytest is launched.
2.  Provide an in-memory ledger so no test touches a node.
3.  Record every notification emitted on the event bus.
"""

from __future__ import annotations
import pathlib
import sys
import pytest

# ─────────────────────────────────────────────────────────────────────────────
#  Ensure the repo root is on sys.path
# ─────────────────────────────────────────────────────────────────────────────
ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

# Only now import modules that live in the repo
from errors.exceptions import LedgerQueryError
from events.event_bus import EventBus, EventTypes
from models.transaction import TrackedItem, TxStatus
from nonce.nonce_tracker import NonceTracker
from tracker.pending_tracker import PendingTracker

SENDER = "0x1678a085c290ebd122dc42cba69373b5953b831d"


# ──────────────────────────────── fake ledger ───────────────────────────────
class FakeLedger:
    """Stand-in for LedgerQuery backed by plain dicts."""

    def __init__(self):
        self.receipts: dict[str, dict] = {}
        self.blocks: dict[str, dict] = {}
        self.nonces: dict[str, int] = {}
        self.block_number = 0
        self.receipt_error: Exception | None = None
        self.calls: list[tuple] = []

    async def get_transaction_receipt(self, tx_hash):
        self.calls.append(("get_transaction_receipt", tx_hash))
        if self.receipt_error is not None:
            raise self.receipt_error
        return self.receipts.get(tx_hash)

    async def get_block_by_hash(self, block_hash):
        self.calls.append(("get_block_by_hash", block_hash))
        return self.blocks[block_hash]

    async def get_transaction_count(self, address):
        self.calls.append(("get_transaction_count", address))
        return self.nonces.get(address.lower(), 0)

    async def get_block_number(self):
        self.calls.append(("get_block_number",))
        return self.block_number


class EventRecorder:
    """Collects (type, data) for every tracker notification."""

    def __init__(self, bus: EventBus):
        self.events: list[tuple[str, dict]] = []
        for event_type in EventTypes.ALL:
            bus.subscribe(event_type, self._record)

    async def _record(self, event):
        self.events.append((event.type, event.data))

    def of_type(self, event_type):
        return [data for type_, data in self.events if type_ == event_type]

    @property
    def types(self):
        return [type_ for type_, _ in self.events]


def make_tx(tx_id=1, nonce=0, status=TxStatus.SUBMITTED, tx_hash="0xabc", sender=SENDER, **kwargs):
    return TrackedItem(
        id=tx_id,
        tx_params={"from": sender, "nonce": nonce},
        status=status,
        hash=tx_hash,
        **kwargs,
    )


# ───────────────────────────────── fixtures ─────────────────────────────────
@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorder(bus):
    return EventRecorder(bus)


@pytest.fixture
def pending():
    """Mutable pending set handed to the tracker."""
    return []


@pytest.fixture
def completed():
    """Completed transactions, filtered by sender in the getter."""
    return []


@pytest.fixture
def approved():
    return []


@pytest.fixture
def published():
    return []


@pytest.fixture
def nonce_tracker(ledger, pending):
    return NonceTracker(ledger, lambda: pending)


@pytest.fixture
def tracker(ledger, nonce_tracker, bus, pending, completed, approved, published):
    async def approve(tx_id):
        approved.append(tx_id)

    async def publish(raw_tx):
        published.append(raw_tx)
        return "0xpublished"

    return PendingTracker(
        query=ledger,
        nonce_tracker=nonce_tracker,
        get_pending_transactions=lambda: list(pending),
        get_completed_transactions=lambda address: [tx for tx in completed if tx.sender == address.lower()],
        approve_transaction=approve,
        publish_transaction=publish,
        event_bus=bus,
    )


@pytest.fixture
def transient_error():
    return LedgerQueryError("gateway unreachable")
