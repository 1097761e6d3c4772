"""
Pydantic models for tracked transactions
"""

from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from blockchain.utils import to_int


class TxStatus(str, Enum):
    UNAPPROVED = "unapproved"
    APPROVED = "approved"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    DROPPED = "dropped"
    FAILED = "failed"


TERMINAL_STATUSES = {TxStatus.CONFIRMED, TxStatus.DROPPED, TxStatus.FAILED}


class TxWarning(BaseModel):
    error: str = Field(..., description="Message of the last transient error")
    message: str = Field(..., description="Human readable explanation")


class TxParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    from_: str = Field(..., alias="from", min_length=1)
    nonce: int = Field(..., ge=0)
    to: Optional[str] = None
    value: Optional[str] = None
    data: Optional[str] = None
    gas: Optional[str] = None
    gas_price: Optional[str] = Field(None, alias="gasPrice")

    @field_validator('nonce', mode='before')
    @classmethod
    def validate_nonce(cls, v):
        try:
            return to_int(v)
        except (TypeError, ValueError):
            raise ValueError('Nonce must be an int or a hex quantity')

    @field_validator('from_')
    @classmethod
    def normalize_address(cls, v):
        return v.lower()


class TrackedItem(BaseModel):
    """A transaction as seen by the pending tracker"""
    model_config = ConfigDict(populate_by_name=True)

    id: Union[int, str]
    tx_params: TxParams = Field(..., alias="txParams")
    status: TxStatus = TxStatus.UNAPPROVED
    hash: Optional[str] = None
    raw_tx: Optional[str] = Field(None, alias="rawTx")
    warning: Optional[TxWarning] = None
    first_retry_block_number: Optional[int] = Field(None, alias="firstRetryBlockNumber")
    retry_count: int = Field(0, alias="retryCount", ge=0)
    tx_receipt: Optional[Dict[str, Any]] = Field(None, alias="txReceipt")
    base_fee_per_gas: Optional[int] = Field(None, alias="baseFeePerGas")
    err: Optional[Dict[str, Any]] = None

    @field_validator('first_retry_block_number', 'base_fee_per_gas', mode='before')
    @classmethod
    def validate_quantity(cls, v):
        try:
            return to_int(v)
        except (TypeError, ValueError):
            raise ValueError('Must be an int or a hex quantity')

    @property
    def sender(self) -> str:
        return self.tx_params.from_

    @property
    def nonce(self) -> int:
        return self.tx_params.nonce

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
