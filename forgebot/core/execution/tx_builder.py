"""
Transaction builder for approvals, native transfers and quoted swaps.
"""

from typing import Optional

from forgebot.core.tokens import MAX_UINT256

from .models import GasParams, TransactionRequest

ERC20_APPROVE_SELECTOR = "0x095ea7b3"  # approve(address,uint256)
NATIVE_TRANSFER_GAS_LIMIT = 21000


def _encode_uint256(value: int) -> str:
    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"uint256 out of range: {value}")
    return format(value, "064x")


def _encode_address(address: str) -> str:
    return address.lower().replace("0x", "").zfill(64)


def build_approve(
    token_address: str,
    spender_address: str,
    amount: int = MAX_UINT256,
    fees: Optional[GasParams] = None,
) -> TransactionRequest:
    """``approve(spender, amount)`` on ``token_address``; unlimited by default."""
    calldata = (
        ERC20_APPROVE_SELECTOR
        + _encode_address(spender_address)
        + _encode_uint256(amount)
    )
    return TransactionRequest(
        to=token_address,
        data=calldata,
        value=0,
        fees=fees,
        description=f"Approve {spender_address[:10]}... to spend tokens",
    )


def build_native_transfer(
    to_address: str,
    amount_wei: int,
    fees: Optional[GasParams] = None,
) -> TransactionRequest:
    return TransactionRequest(
        to=to_address,
        data="0x",
        value=amount_wei,
        fees=fees,
        gas_limit=NATIVE_TRANSFER_GAS_LIMIT,
        description=f"Transfer native token to {to_address[:10]}...",
    )


def build_swap(
    to: str,
    data: str,
    value: int,
    fees: Optional[GasParams] = None,
    description: str = "",
) -> TransactionRequest:
    """Wrap router calldata returned by the quote API."""
    if not to or not data:
        raise ValueError("Swap response has no transaction data")
    return TransactionRequest(to=to, data=data, value=value, fees=fees, description=description)
