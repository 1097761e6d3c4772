"""
Tracks submitted transactions from pending to a final state.

Two ticks drive the tracker: ``reconcile_pending`` asks the ledger about every
submitted transaction, and ``resubmit_pending`` rebroadcasts transactions that
are still waiting when a new block arrives. Outcomes are published on the
event bus; the owner of the pending set reacts to them.
"""

import asyncio
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Union

from blockchain.utils import Quantity, to_int
from config.config import (
    DROPPED_BUFFER_COUNT,
    KNOWN_TX_ERRORS,
    WARNING_LOADING_TX,
    WARNING_RESUBMITTING_TX,
)
from errors.exceptions import ConfigurationError, NoTxHashError
from events.event_bus import EventBus, EventTypes
from ledger.query import LedgerQuery
from log_utils import get_logger, log_performance
from models.transaction import TrackedItem, TxStatus, TxWarning
from monitoring.metrics import DROPPED_BUFFER_ENTRIES, PENDING_TRANSACTIONS, RECONCILE_DURATION
from nonce.nonce_tracker import NonceArbiter
from tracker.dropped_buffer import DroppedBlocksBuffer

logger = get_logger(__name__)

TxId = Union[int, str]


def error_message(error: BaseException) -> str:
    """Message of an error, preferring a JSON-RPC ``{"message": ...}`` payload"""
    if error.args and isinstance(error.args[0], dict) and error.args[0].get("message"):
        return str(error.args[0]["message"])
    return getattr(error, "message", None) or str(error)


def is_known_tx_error(message: str) -> bool:
    """True when a resubmission error means the tx is already in flight or mined"""
    message = message.lower()
    return any(known in message for known in KNOWN_TX_ERRORS)


def should_resubmit(block_distance: int, retry_count: int) -> bool:
    """Exponential backoff: retry n waits more than 2**n - 1 blocks"""
    return block_distance > 2 ** retry_count - 1


class PendingTracker:
    """
    Decides whether each submitted transaction was confirmed, dropped or failed,
    and rebroadcasts those still pending.

    Args:
        query: LedgerQuery used for receipts, blocks and nonces.
        nonce_tracker: Arbiter whose global lock is held while reconciling.
        get_pending_transactions: Returns the current pending items.
        get_completed_transactions: Returns finished items for a sender address.
        approve_transaction: Coroutine that (re)signs an unsigned item by id.
        publish_transaction: Coroutine that broadcasts a raw tx and returns its hash.
        event_bus: Where notifications are emitted.
        dropped_buffer_count: Extra consecutive observations before a drop is final.
    """

    def __init__(
        self,
        query: LedgerQuery = None,
        nonce_tracker: NonceArbiter = None,
        get_pending_transactions: Callable[[], Iterable[TrackedItem]] = None,
        get_completed_transactions: Callable[[str], Iterable[TrackedItem]] = None,
        approve_transaction: Callable[[TxId], Awaitable[Any]] = None,
        publish_transaction: Callable[[str], Awaitable[str]] = None,
        event_bus: Optional[EventBus] = None,
        dropped_buffer_count: int = DROPPED_BUFFER_COUNT,
    ):
        collaborators = {
            'query': query,
            'nonce_tracker': nonce_tracker,
            'get_pending_transactions': get_pending_transactions,
            'get_completed_transactions': get_completed_transactions,
            'approve_transaction': approve_transaction,
            'publish_transaction': publish_transaction,
        }
        missing = [name for name, value in collaborators.items() if value is None]
        if missing:
            raise ConfigurationError(f"PendingTracker missing required collaborators: {', '.join(missing)}")

        self.query = query
        self.nonce_tracker = nonce_tracker
        self.get_pending_transactions = get_pending_transactions
        self.get_completed_transactions = get_completed_transactions
        self.approve_transaction = approve_transaction
        self.publish_transaction = publish_transaction
        self.event_bus = event_bus or EventBus()
        self.dropped_buffer = DroppedBlocksBuffer(dropped_buffer_count)

    @log_performance(logger, "reconcile_pending")
    async def reconcile_pending(self) -> None:
        """Check every submitted transaction against the ledger"""
        nonce_global_lock = None
        try:
            # Nonce assignment must not race with the consistency check
            nonce_global_lock = await self.nonce_tracker.get_global_lock()
            with RECONCILE_DURATION.time():
                pending = list(self.get_pending_transactions())
                PENDING_TRANSACTIONS.set(len(pending))
                await asyncio.gather(*(self._check_pending_item_safe(tx) for tx in pending))
        except Exception as e:
            logger.error(f"Error updating pending transactions: {e}", exc_info=True)
        finally:
            if nonce_global_lock is not None:
                nonce_global_lock.release()
            DROPPED_BUFFER_ENTRIES.set(len(self.dropped_buffer))

    @log_performance(logger, "resubmit_pending")
    async def resubmit_pending(self, block_number: Quantity) -> None:
        """Rebroadcast transactions that are still pending at block_number"""
        pending = list(self.get_pending_transactions())
        if not pending:
            return
        block_number = to_int(block_number)
        await asyncio.gather(*(self._resubmit_tx_safe(tx, block_number) for tx in pending))

    async def _resubmit_tx_safe(self, tx_meta: TrackedItem, block_number: int) -> None:
        try:
            await self._resubmit_tx(tx_meta, block_number)
        except Exception as e:
            message = error_message(e).lower()
            if is_known_tx_error(message):
                logger.with_context(tx_id=tx_meta.id).debug(f"Ignoring resubmit race: {message}")
                return
            tx_meta.warning = TxWarning(error=message, message=WARNING_RESUBMITTING_TX)
            logger.with_context(tx_id=tx_meta.id, tx_hash=tx_meta.hash).warning(
                f"Resubmitting transaction failed: {message}"
            )
            await self.event_bus.emit(EventTypes.TX_WARNING, {
                'tx_meta': tx_meta,
                'error': e,
            }, source='pending_tracker')

    async def _resubmit_tx(self, tx_meta: TrackedItem, latest_block_number: int) -> Optional[str]:
        """
        Resubmit one transaction once its backoff has elapsed.

        Unsigned transactions go back through approval instead of being
        broadcast; both paths share the same backoff.

        Returns:
            str: The broadcast hash, or None when nothing was published.
        """
        if tx_meta.first_retry_block_number is None:
            tx_meta.first_retry_block_number = latest_block_number
            await self.event_bus.emit(EventTypes.TX_BLOCK_UPDATE, {
                'tx_meta': tx_meta,
                'block_number': latest_block_number,
            }, source='pending_tracker')

        block_distance = latest_block_number - tx_meta.first_retry_block_number
        retry_count = tx_meta.retry_count or 0

        if not should_resubmit(block_distance, retry_count):
            return None

        if tx_meta.raw_tx is None:
            await self.approve_transaction(tx_meta.id)
            return None

        tx_hash = await self.publish_transaction(tx_meta.raw_tx)
        logger.with_context(tx_id=tx_meta.id, tx_hash=tx_hash, block_number=latest_block_number).info(
            f"Resubmitted transaction (retry {retry_count})"
        )
        await self.event_bus.emit(EventTypes.TX_RETRY, {'tx_meta': tx_meta}, source='pending_tracker')
        return tx_hash

    async def _check_pending_item_safe(self, tx_meta: TrackedItem) -> None:
        try:
            await self._check_pending_item(tx_meta)
        except Exception as e:
            logger.with_context(tx_id=tx_meta.id, tx_hash=tx_meta.hash).error(
                f"Error checking pending transaction: {e}", exc_info=True
            )

    async def _check_pending_item(self, tx_meta: TrackedItem) -> None:
        """Determine the outcome of a single submitted transaction"""
        if tx_meta.status != TxStatus.SUBMITTED:
            return

        tx_id = tx_meta.id
        tx_hash = tx_meta.hash
        log = logger.with_context(tx_id=tx_id, tx_hash=tx_hash, nonce=tx_meta.nonce, sender=tx_meta.sender)

        # Broadcast failed without raising
        if not tx_hash:
            log.error("Submitted transaction has no hash")
            await self.event_bus.emit(EventTypes.TX_FAILED, {
                'tx_id': tx_id,
                'error': NoTxHashError(),
            }, source='pending_tracker')
            return

        if self._check_if_nonce_is_taken(tx_meta):
            log.info("Nonce already used by a completed transaction")
            await self.dropped_buffer.discard(tx_hash)
            await self.event_bus.emit(EventTypes.TX_DROPPED, {'tx_id': tx_id}, source='pending_tracker')
            return

        try:
            receipt = await self.query.get_transaction_receipt(tx_hash)
            if receipt and receipt.get('blockNumber') is not None:
                block = await self.query.get_block_by_hash(receipt.get('blockHash'))
                await self.dropped_buffer.discard(tx_hash)
                log.with_context(block_number=to_int(receipt['blockNumber'])).info("Transaction confirmed")
                await self.event_bus.emit(EventTypes.TX_CONFIRMED, {
                    'tx_id': tx_id,
                    'receipt': receipt,
                    'base_fee_per_gas': block.get('baseFeePerGas') if block else None,
                }, source='pending_tracker')
                return
        except Exception as e:
            tx_meta.warning = TxWarning(error=error_message(e), message=WARNING_LOADING_TX)
            log.warning(f"Could not load transaction: {e}")
            await self.event_bus.emit(EventTypes.TX_WARNING, {
                'tx_meta': tx_meta,
                'error': e,
            }, source='pending_tracker')
            return

        if await self._check_if_tx_was_dropped(tx_meta):
            log.info("Transaction dropped: nonce consumed without a receipt")
            await self.event_bus.emit(EventTypes.TX_DROPPED, {'tx_id': tx_id}, source='pending_tracker')

    async def _check_if_tx_was_dropped(self, tx_meta: TrackedItem) -> bool:
        """True once the nonce has been consumed past this tx for enough checks"""
        network_next_nonce = to_int(await self.query.get_transaction_count(tx_meta.sender))

        if tx_meta.nonce >= network_next_nonce:
            return False

        return await self.dropped_buffer.observe(tx_meta.hash)

    def _check_if_nonce_is_taken(self, tx_meta: TrackedItem) -> bool:
        completed: List[TrackedItem] = self.get_completed_transactions(tx_meta.sender)
        return any(
            other.id != tx_meta.id and other.nonce == tx_meta.nonce
            for other in completed
        )
