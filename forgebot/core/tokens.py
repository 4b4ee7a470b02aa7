"""
Token identities on the configured chain.

The chain's native asset has no contract; quote providers address it with a
fixed placeholder, and the flows treat that placeholder as "no allowance
needed".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

NATIVE_TOKEN_ADDRESS = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"
NATIVE_DECIMALS = 18
MAX_UINT256 = 2**256 - 1


@dataclass(frozen=True)
class TokenInfo:
    """Symbol and decimals of a token, as read from its contract."""

    address: str
    symbol: str
    decimals: int


# Buy-menu presets on Base mainnet
PRESET_TOKENS: Dict[str, TokenInfo] = {
    "USDC": TokenInfo("0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", "USDC", 6),
    "DAI": TokenInfo("0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb", "DAI", 18),
    "WBTC": TokenInfo("0x0555E30da8f98308EdB960aa94C0Db47230d2B9c", "WBTC", 8),
}


def is_native(address: Optional[str]) -> bool:
    return bool(address) and address.lower() == NATIVE_TOKEN_ADDRESS.lower()


def native_token(symbol: str = "ETH") -> TokenInfo:
    return TokenInfo(NATIVE_TOKEN_ADDRESS, symbol, NATIVE_DECIMALS)


def preset_token(symbol: str) -> Optional[TokenInfo]:
    return PRESET_TOKENS.get(symbol.upper())


__all__ = [
    "NATIVE_TOKEN_ADDRESS",
    "NATIVE_DECIMALS",
    "MAX_UINT256",
    "TokenInfo",
    "PRESET_TOKENS",
    "is_native",
    "native_token",
    "preset_token",
]
