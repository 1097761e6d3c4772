import pytest
from pydantic import ValidationError

from blockchain.utils import to_hex, to_int
from models.transaction import TrackedItem, TxStatus


@pytest.mark.parametrize("value, expected", [
    (None, None),
    (7, 7),
    ("0x1a", 26),
    ("0X1A", 26),
    ("42", 42),
])
def test_to_int(value, expected):
    assert to_int(value) == expected


@pytest.mark.parametrize("value", [True, 1.5, "0xzz", "abc"])
def test_to_int_rejects_garbage(value):
    with pytest.raises((TypeError, ValueError)):
        to_int(value)


def test_to_hex():
    assert to_hex(26) == "0x1a"
    assert to_hex("0x1a") == "0x1a"


def test_tracked_item_from_wire_names():
    tx = TrackedItem.model_validate({
        "id": 12,
        "txParams": {"from": "0xABCDEF0000000000000000000000000000000001", "nonce": "0x4", "gasPrice": "0x1"},
        "status": "submitted",
        "hash": "0xabc",
        "rawTx": "0xf86c",
        "firstRetryBlockNumber": "0x10",
        "retryCount": 2,
    })

    assert tx.status == TxStatus.SUBMITTED
    assert tx.sender == "0xabcdef0000000000000000000000000000000001"
    assert tx.nonce == 4
    assert tx.tx_params.gas_price == "0x1"
    assert tx.raw_tx == "0xf86c"
    assert tx.first_retry_block_number == 16
    assert tx.retry_count == 2
    assert tx.warning is None
    assert not tx.is_terminal


def test_terminal_statuses():
    for status in (TxStatus.CONFIRMED, TxStatus.DROPPED, TxStatus.FAILED):
        tx = TrackedItem(id=1, tx_params={"from": "0x1", "nonce": 0}, status=status)
        assert tx.is_terminal


@pytest.mark.parametrize("tx_params", [
    {"from": "0x1", "nonce": -1},
    {"from": "0x1", "nonce": "not-a-nonce"},
    {"from": "", "nonce": 0},
    {"nonce": 0},
])
def test_invalid_tx_params(tx_params):
    with pytest.raises(ValidationError):
        TrackedItem(id=1, tx_params=tx_params)
