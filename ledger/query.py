"""
Ledger query interface and its web3 adapter
"""

import logging
from typing import Any, Dict, Optional, Protocol

from web3 import AsyncWeb3, Web3
from web3.exceptions import TransactionNotFound

from blockchain.utils import to_int
from errors.exceptions import LedgerQueryError

logger = logging.getLogger(__name__)


class LedgerQuery(Protocol):
    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]: ...

    async def get_block_by_hash(self, block_hash: str) -> Dict[str, Any]: ...

    async def get_transaction_count(self, address: str) -> int: ...

    async def get_block_number(self) -> int: ...


class Web3LedgerQuery:
    """
    LedgerQuery over an already configured AsyncWeb3 instance.

    Missing receipts are reported as None; any other failure is raised as
    LedgerQueryError so callers can treat it as transient.
    """

    def __init__(self, w3: AsyncWeb3):
        self.w3 = w3

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        try:
            receipt = await self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except Exception as e:
            raise LedgerQueryError(f"get_transaction_receipt({tx_hash}) failed: {e}") from e
        return dict(receipt) if receipt is not None else None

    async def get_block_by_hash(self, block_hash) -> Dict[str, Any]:
        try:
            block = await self.w3.eth.get_block(block_hash, full_transactions=False)
        except Exception as e:
            raise LedgerQueryError(f"get_block({block_hash}) failed: {e}") from e
        return dict(block)

    async def get_transaction_count(self, address: str) -> int:
        try:
            count = await self.w3.eth.get_transaction_count(Web3.to_checksum_address(address))
        except Exception as e:
            raise LedgerQueryError(f"get_transaction_count({address}) failed: {e}") from e
        return to_int(count)

    async def get_block_number(self) -> int:
        try:
            return to_int(await self.w3.eth.block_number)
        except Exception as e:
            raise LedgerQueryError(f"block_number failed: {e}") from e

    async def send_raw_transaction(self, raw_tx: str) -> str:
        """Broadcast a signed transaction; usable as the tracker's publish step"""
        tx_hash = await self.w3.eth.send_raw_transaction(raw_tx)
        logger.info(f"Broadcast raw transaction {Web3.to_hex(tx_hash)}")
        return Web3.to_hex(tx_hash)
