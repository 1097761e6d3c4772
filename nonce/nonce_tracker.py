"""
In-memory nonce arbiter.

The global lock lets the pending tracker read the pending set while no new
nonce is being handed out. Per-address locks serialize nonce assignment for a
single sender.
"""

import asyncio
from typing import Callable, Dict, Iterable, Optional, Protocol

from blockchain.utils import to_int
from errors.exceptions import NonceLockError
from log_utils import get_logger
from models.transaction import TrackedItem

logger = get_logger(__name__)


class NonceLock:
    """Acquired lock handle; must be released exactly once."""

    def __init__(self, release: Callable[[], None], next_nonce: Optional[int] = None, details: Optional[dict] = None):
        self._release = release
        self.released = False
        self.next_nonce = next_nonce
        self.details = details or {}

    def release(self) -> None:
        if self.released:
            raise NonceLockError()
        self.released = True
        self._release()

    async def __aenter__(self) -> 'NonceLock':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self.released:
            self.release()


class NonceArbiter(Protocol):
    async def get_global_lock(self) -> NonceLock: ...


class NonceTracker:
    """Hands out nonces for new submissions and the global consistency lock"""

    def __init__(self, query, get_pending_transactions: Callable[[], Iterable[TrackedItem]]):
        self.query = query
        self.get_pending_transactions = get_pending_transactions
        self._global_lock = asyncio.Lock()
        self._address_locks: Dict[str, asyncio.Lock] = {}

    async def get_global_lock(self) -> NonceLock:
        """Block nonce assignment until the returned handle is released"""
        await self._global_lock.acquire()
        return NonceLock(self._global_lock.release)

    async def get_nonce_lock(self, address: str) -> NonceLock:
        """
        Reserve the next nonce for address.

        Waits for any global lock holder to finish, then holds the address lock
        until the returned handle is released.
        """
        address = address.lower()
        async with self._global_lock:
            pass

        address_lock = self._address_locks.setdefault(address, asyncio.Lock())
        await address_lock.acquire()
        try:
            network_nonce = to_int(await self.query.get_transaction_count(address))
            highest_pending = self._highest_pending_nonce(address)
            local_next = highest_pending + 1 if highest_pending is not None else 0
            next_nonce = max(network_nonce, local_next)
        except Exception:
            address_lock.release()
            raise

        details = {
            'network_nonce': network_nonce,
            'highest_pending_nonce': highest_pending,
            'local_next_nonce': local_next,
        }
        logger.with_context(sender=address, nonce=next_nonce).debug(
            f"Reserved nonce {next_nonce} for {address}", extra={'nonce_details': details}
        )
        return NonceLock(address_lock.release, next_nonce=next_nonce, details=details)

    def _highest_pending_nonce(self, address: str) -> Optional[int]:
        nonces = [
            tx.nonce for tx in self.get_pending_transactions()
            if tx.sender == address
        ]
        return max(nonces) if nonces else None
