"""JSON-RPC reader for the configured EVM chain.

Balances, allowances, token metadata, fee history and receipts. Every call is
a plain ``eth_*`` request over ``httpx``; transport and node errors surface as
``ExternalServiceError`` so callers can retry or abort uniformly.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from eth_utils import function_signature_to_4byte_selector

from ..config import settings
from ..core.flow.errors import ExternalServiceError
from ..core.tokens import MAX_UINT256, TokenInfo, is_native, native_token

logger = logging.getLogger(__name__)


def _selector(signature: str) -> str:
    return "0x" + function_signature_to_4byte_selector(signature).hex()


BALANCE_OF_SELECTOR = _selector("balanceOf(address)")
ALLOWANCE_SELECTOR = _selector("allowance(address,address)")
DECIMALS_SELECTOR = _selector("decimals()")
SYMBOL_SELECTOR = _selector("symbol()")


def encode_address_word(address: str) -> str:
    """Left-pad an address to a 32-byte ABI word (no ``0x``)."""
    return address.lower().replace("0x", "").zfill(64)


def decode_uint(result: Optional[str]) -> int:
    if not result or result == "0x":
        raise ExternalServiceError("empty eth_call result", provider="rpc")
    return int(result, 16)


def decode_symbol(result: Optional[str]) -> str:
    """Decode ``symbol()`` output; ABI ``string`` and legacy ``bytes32`` both occur."""

    if not result or result == "0x":
        raise ExternalServiceError("empty symbol() result", provider="rpc")
    raw = bytes.fromhex(result[2:] if result.startswith("0x") else result)

    if len(raw) == 32:
        return raw.rstrip(b"\x00").decode("utf-8", errors="replace")

    if len(raw) < 64:
        raise ExternalServiceError("truncated symbol() result", provider="rpc")
    offset = int.from_bytes(raw[:32], "big")
    length = int.from_bytes(raw[offset:offset + 32], "big")
    data = raw[offset + 32:offset + 32 + length]
    return data.decode("utf-8", errors="replace")


class ChainRpcProvider:
    """Async JSON-RPC client for one chain."""

    name = "rpc"

    def __init__(
        self,
        *,
        rpc_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.rpc_url = rpc_url or settings.rpc_url
        self.timeout_s = timeout_s or settings.request_timeout_seconds
        self._client = client or httpx.AsyncClient(timeout=self.timeout_s)
        self._request_id = 0

    async def ready(self) -> bool:
        return bool(self.rpc_url)

    async def _rpc_call(self, method: str, params: List[Any]) -> Any:
        """Make a JSON-RPC call, translating every failure to ExternalServiceError."""
        if not self.rpc_url:
            raise ExternalServiceError("No RPC URL configured", provider=self.name)

        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._request_id,
        }

        try:
            response = await self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise ExternalServiceError(
                f"{method} returned HTTP {exc.response.status_code}", provider=self.name
            ) from exc
        except httpx.HTTPError as exc:
            raise ExternalServiceError(f"{method} transport error: {exc!r}", provider=self.name) from exc
        except ValueError as exc:
            raise ExternalServiceError(f"{method} returned non-JSON body", provider=self.name) from exc

        if isinstance(body, dict) and body.get("error"):
            raise ExternalServiceError(f"RPC error from {method}: {body['error']}", provider=self.name)
        return body.get("result") if isinstance(body, dict) else None

    async def eth_call(self, to: str, data: str) -> str:
        return await self._rpc_call("eth_call", [{"to": to, "data": data}, "latest"])

    async def get_native_balance(self, address: str) -> int:
        result = await self._rpc_call("eth_getBalance", [address, "latest"])
        return decode_uint(result)

    async def get_token_balance(self, token: str, owner: str) -> int:
        if is_native(token):
            return await self.get_native_balance(owner)
        result = await self.eth_call(token, BALANCE_OF_SELECTOR + encode_address_word(owner))
        return decode_uint(result)

    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        if is_native(token):
            return MAX_UINT256
        data = ALLOWANCE_SELECTOR + encode_address_word(owner) + encode_address_word(spender)
        return decode_uint(await self.eth_call(token, data))

    async def get_token_info(self, token: str) -> TokenInfo:
        if is_native(token):
            return native_token(settings.native_symbol)

        decimals = decode_uint(await self.eth_call(token, DECIMALS_SELECTOR))
        symbol = decode_symbol(await self.eth_call(token, SYMBOL_SELECTOR))
        if decimals > 77:
            raise ExternalServiceError(f"implausible decimals {decimals} for {token}", provider=self.name)
        return TokenInfo(address=token, symbol=symbol or "?", decimals=decimals)

    async def fee_history(
        self,
        percentiles: Sequence[int],
        block_count: int = 5,
    ) -> Dict[str, Any]:
        result = await self._rpc_call(
            "eth_feeHistory",
            [hex(block_count), "latest", list(percentiles)],
        )
        if not isinstance(result, dict):
            raise ExternalServiceError("malformed eth_feeHistory result", provider=self.name)
        return result

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self._rpc_call("eth_getTransactionReceipt", [tx_hash])

    async def block_number(self) -> int:
        return decode_uint(await self._rpc_call("eth_blockNumber", []))

    async def close(self) -> None:
        await self._client.aclose()


_provider: Optional[ChainRpcProvider] = None


def get_rpc_provider() -> ChainRpcProvider:
    global _provider
    if _provider is None:
        _provider = ChainRpcProvider()
    return _provider


__all__ = [
    "ChainRpcProvider",
    "get_rpc_provider",
    "decode_symbol",
    "decode_uint",
    "encode_address_word",
]
