import logging
from collections import OrderedDict
from typing import List, Optional, Union

from blockchain.utils import to_int
from events.event_bus import Event, EventBus, EventTypes
from models.transaction import TrackedItem, TxStatus

logger = logging.getLogger(__name__)

TxId = Union[int, str]


class TransactionStore:
    """
    In-memory owner of tracked transactions.

    Supplies the pending and completed sets to the tracker and applies its
    notifications, so terminal transactions leave the pending set.
    """

    def __init__(self):
        self.transactions: "OrderedDict[TxId, TrackedItem]" = OrderedDict()

    def add_transaction(self, tx: TrackedItem) -> bool:
        """
        Add a transaction to the store.

        Args:
            tx: Tracked transaction

        Returns:
            False if a transaction with the same id is already stored
        """
        if tx.id in self.transactions:
            return False
        self.transactions[tx.id] = tx
        logger.info(f"Tracking transaction {tx.id} (status={tx.status.value}). Size: {len(self.transactions)}")
        return True

    def remove_transaction(self, tx_id: TxId) -> bool:
        if tx_id not in self.transactions:
            return False
        del self.transactions[tx_id]
        logger.info(f"Removed transaction {tx_id}")
        return True

    def get_transaction(self, tx_id: TxId) -> Optional[TrackedItem]:
        return self.transactions.get(tx_id)

    def get_pending_transactions(self) -> List[TrackedItem]:
        return [tx for tx in self.transactions.values() if tx.status == TxStatus.SUBMITTED]

    def get_completed_transactions(self, address: str) -> List[TrackedItem]:
        address = address.lower()
        return [
            tx for tx in self.transactions.values()
            if tx.status == TxStatus.CONFIRMED and tx.sender == address
        ]

    def size(self) -> int:
        return len(self.transactions)

    def attach(self, event_bus: EventBus) -> None:
        """Apply tracker notifications published on event_bus"""
        event_bus.subscribe(EventTypes.TX_CONFIRMED, self.on_confirmed)
        event_bus.subscribe(EventTypes.TX_DROPPED, self.on_dropped)
        event_bus.subscribe(EventTypes.TX_FAILED, self.on_failed)
        event_bus.subscribe(EventTypes.TX_RETRY, self.on_retry)
        event_bus.subscribe(EventTypes.TX_BLOCK_UPDATE, self.on_block_update)

    async def on_confirmed(self, event: Event):
        tx = self._get_or_warn(event.data['tx_id'])
        if tx is None:
            return
        tx.status = TxStatus.CONFIRMED
        tx.tx_receipt = dict(event.data['receipt'])
        tx.base_fee_per_gas = to_int(event.data.get('base_fee_per_gas'))
        tx.warning = None

    async def on_dropped(self, event: Event):
        tx = self._get_or_warn(event.data['tx_id'])
        if tx is not None:
            tx.status = TxStatus.DROPPED

    async def on_failed(self, event: Event):
        tx = self._get_or_warn(event.data['tx_id'])
        if tx is None:
            return
        error = event.data['error']
        tx.status = TxStatus.FAILED
        tx.err = {
            'message': str(error),
            'name': getattr(error, 'name', type(error).__name__),
            'code': getattr(error, 'code', None),
        }

    async def on_retry(self, event: Event):
        tx = event.data['tx_meta']
        tx.retry_count = (tx.retry_count or 0) + 1

    async def on_block_update(self, event: Event):
        tx = event.data['tx_meta']
        if tx.first_retry_block_number is None:
            tx.first_retry_block_number = event.data['block_number']

    def _get_or_warn(self, tx_id: TxId) -> Optional[TrackedItem]:
        tx = self.transactions.get(tx_id)
        if tx is None:
            logger.warning(f"Notification for unknown transaction {tx_id}")
        return tx
