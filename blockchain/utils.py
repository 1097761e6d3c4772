from typing import Optional, Union

Quantity = Union[int, str]


def to_int(value: Optional[Quantity]) -> Optional[int]:
    """
    Normalize a ledger quantity to an int.

    Args:
        value: An int, a "0x"-prefixed hex string or a decimal string.

    Returns:
        int: The numeric value, or None when value is None.

    Notes:
        JSON-RPC nodes report nonces and block numbers as hex quantities while
        locally built transactions often carry plain ints.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise TypeError(f"Invalid quantity: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            return int(text, 16)
        return int(text)
    raise TypeError(f"Invalid quantity: {value!r}")


def to_hex(value: Quantity) -> str:
    """Encode a quantity as a "0x"-prefixed hex string."""
    return hex(to_int(value))
