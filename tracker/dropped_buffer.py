import asyncio
from typing import Dict

from config.config import DROPPED_BUFFER_COUNT


class DroppedBlocksBuffer:
    """
    Debounce counters for transactions whose nonce was consumed without a receipt.

    A node can report an advanced nonce before the matching receipt is
    indexable, so a hash is only declared dropped after ``threshold`` further
    consecutive observations. Counters live for the process lifetime only.
    """

    def __init__(self, threshold: int = DROPPED_BUFFER_COUNT):
        if threshold < 0:
            raise ValueError("threshold must be non-negative")
        self.threshold = threshold
        self._counts: Dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def observe(self, tx_hash: str) -> bool:
        """
        Record one "nonce consumed, no receipt" observation for tx_hash.

        Returns:
            bool: True once the threshold has been reached; the entry is evicted.
        """
        async with self._lock:
            count = self._counts.setdefault(tx_hash, 0)
            if count < self.threshold:
                self._counts[tx_hash] = count + 1
                return False
            del self._counts[tx_hash]
            return True

    async def discard(self, tx_hash: str) -> None:
        async with self._lock:
            self._counts.pop(tx_hash, None)

    def get(self, tx_hash: str) -> int:
        return self._counts.get(tx_hash, 0)

    def __contains__(self, tx_hash: str) -> bool:
        return tx_hash in self._counts

    def __len__(self) -> int:
        return len(self._counts)
