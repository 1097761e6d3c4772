"""
End-to-end runs of the tracker wired to the in-memory store
"""

import pytest

from conftest import SENDER, EventRecorder, make_tx
from events.event_bus import EventBus, EventTypes
from models.transaction import TxStatus
from prometheus_client import REGISTRY
from node.app import create_tracker
from store.transaction_store import TransactionStore


def _confirmed_count():
    value = REGISTRY.get_sample_value(
        'pending_tracker_notifications_total', {'event_type': EventTypes.TX_CONFIRMED}
    )
    return value or 0


@pytest.fixture
def wired(ledger):
    store = TransactionStore()
    bus = EventBus()
    published = []

    async def approve(tx_id):
        return None

    async def publish(raw_tx):
        published.append(raw_tx)
        return "0xpublished"

    tracker = create_tracker(ledger, store, approve, publish_transaction=publish, event_bus=bus)
    return tracker, store, EventRecorder(bus), published


@pytest.mark.asyncio
async def test_confirmed_tx_leaves_pending_set(wired, ledger):
    tracker, store, recorder, _ = wired
    store.add_transaction(make_tx(tx_id=1, tx_hash="0xaaa"))
    ledger.receipts["0xaaa"] = {"blockNumber": "0x5", "blockHash": "0xb5"}
    ledger.blocks["0xb5"] = {"baseFeePerGas": "0x2"}

    before = _confirmed_count()
    await tracker.reconcile_pending()
    await tracker.event_bus.wait_idle()
    await tracker.reconcile_pending()
    await tracker.event_bus.wait_idle()

    assert recorder.types == [EventTypes.TX_CONFIRMED]
    assert store.get_transaction(1).status == TxStatus.CONFIRMED
    assert store.get_transaction(1).base_fee_per_gas == 2
    assert store.get_pending_transactions() == []
    after = _confirmed_count()
    assert after - before == 1


@pytest.mark.asyncio
async def test_competing_tx_with_same_nonce_is_dropped(wired, ledger):
    tracker, store, recorder, _ = wired
    store.add_transaction(make_tx(tx_id="speedup", nonce=3, tx_hash="0xfast"))
    store.add_transaction(make_tx(tx_id="original", nonce=3, tx_hash="0xslow"))
    ledger.receipts["0xfast"] = {"blockNumber": 8, "blockHash": "0xb8"}
    ledger.blocks["0xb8"] = {"baseFeePerGas": 1}
    ledger.nonces[SENDER] = 3

    await tracker.reconcile_pending()
    await tracker.event_bus.wait_idle()
    assert store.get_transaction("speedup").status == TxStatus.CONFIRMED
    assert store.get_transaction("original").status == TxStatus.SUBMITTED

    await tracker.reconcile_pending()
    await tracker.event_bus.wait_idle()
    assert store.get_transaction("original").status == TxStatus.DROPPED
    assert recorder.of_type(EventTypes.TX_DROPPED) == [{"tx_id": "original"}]


@pytest.mark.asyncio
async def test_resubmission_backs_off_exponentially(wired):
    tracker, store, recorder, published = wired
    tx = make_tx(raw_tx="0xf86c")
    store.add_transaction(tx)

    attempts = {}
    for block in range(100, 112):
        before = len(published)
        await tracker.resubmit_pending(block)
        await tracker.event_bus.wait_idle()
        attempts[block] = len(published) > before

    assert [block for block, attempted in attempts.items() if attempted] == [101, 102, 104, 108]
    assert tx.first_retry_block_number == 100
    assert tx.retry_count == 4
    assert recorder.types.count(EventTypes.TX_BLOCK_UPDATE) == 1
