"""Pure input validators for addresses, amounts, keys and user settings.

Every function here is total: it accepts anything and answers ``True`` or
``False`` without raising.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any

from eth_utils import is_checksum_address

_EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_PRIVATE_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")
# Positive decimal, no redundant leading zero, at most 18 fractional digits.
_AMOUNT_RE = re.compile(r"^(?!0\d)\d*(\.\d{1,18})?$", re.ASCII)

GAS_PRIORITIES = frozenset({"low", "medium", "high"})
MAX_SLIPPAGE_PERCENT = Decimal("50")


def is_valid_address(address: Any) -> bool:
    """Return ``True`` for a 20-byte hex address.

    Single-case hex is accepted as-is; mixed case must carry a valid EIP-55
    checksum.
    """

    if not isinstance(address, str) or not _EVM_ADDRESS_RE.fullmatch(address):
        return False
    body = address[2:]
    if body == body.lower() or body == body.upper():
        return True
    return bool(is_checksum_address(address))


def is_valid_amount(amount: Any) -> bool:
    if not isinstance(amount, str) or not amount:
        return False
    if not _AMOUNT_RE.fullmatch(amount) or amount == ".":
        return False
    try:
        return Decimal(amount if not amount.startswith(".") else f"0{amount}") > 0
    except InvalidOperation:
        return False


def is_valid_private_key(private_key: Any) -> bool:
    if not isinstance(private_key, str):
        return False
    cleaned = private_key[2:] if private_key.startswith("0x") else private_key
    return bool(_PRIVATE_KEY_RE.fullmatch(cleaned))


def is_valid_slippage(slippage: Any) -> bool:
    if isinstance(slippage, bool):
        return False
    try:
        value = Decimal(str(slippage))
    except (InvalidOperation, ValueError):
        return False
    if not value.is_finite():
        return False
    return Decimal("0") < value <= MAX_SLIPPAGE_PERCENT


def is_valid_gas_priority(priority: Any) -> bool:
    return isinstance(priority, str) and priority in GAS_PRIORITIES


def has_enough_balance(balance: Any, amount: Any, fee: Any = 0) -> bool:
    """Big-integer check that ``balance >= amount + fee``.

    Values may be ints or base-10 integer strings; anything else is treated as
    not enough.
    """

    try:
        parsed = [_as_int(v) for v in (balance, amount, fee)]
    except (TypeError, ValueError):
        return False
    balance_i, amount_i, fee_i = parsed
    return balance_i >= amount_i + fee_i


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("bool is not an amount")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and re.fullmatch(r"-?\d+", value.strip()):
        return int(value.strip())
    raise ValueError(f"not an integer amount: {value!r}")


__all__ = [
    "GAS_PRIORITIES",
    "is_valid_address",
    "is_valid_amount",
    "is_valid_private_key",
    "is_valid_slippage",
    "is_valid_gas_priority",
    "has_enough_balance",
]
