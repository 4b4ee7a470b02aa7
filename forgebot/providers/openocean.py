"""Async client for the OpenOcean v4 swap aggregator.

Amounts are sent as human decimal strings and gas prices in gwei, which is
what the v4 ``quote`` and ``swap`` endpoints expect. Responses carry base-unit
integers as strings.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from ..core.flow.errors import ExternalServiceError
from ..core.swap.models import Quote, SwapTransaction

logger = logging.getLogger(__name__)


def _as_int(value: Any, field: str) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = str(value)
    try:
        if text.startswith("0x"):
            return int(text, 16)
        # Some deployments return integral floats such as "1.0E21".
        return int(Decimal(text))
    except (ArithmeticError, ValueError) as exc:
        raise ExternalServiceError(f"quote field {field} is not an integer: {value!r}", provider="openocean") from exc


class OpenOceanProvider:
    """Thin wrapper around the ``/{chain}/quote`` and ``/{chain}/swap`` endpoints."""

    name = "openocean"

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        chain: Optional[str] = None,
        timeout_s: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = (base_url or settings.quote_api_base_url).rstrip("/")
        self.chain = chain or settings.chain_slug
        self.timeout_s = timeout_s or settings.request_timeout_seconds
        self._client = client or httpx.AsyncClient(timeout=self.timeout_s)

    async def _get(self, endpoint: str, params: Dict[str, str]) -> Dict[str, Any]:
        url = f"{self.base_url}/{self.chain}/{endpoint}"
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise ExternalServiceError(
                f"OpenOcean {endpoint} returned HTTP {exc.response.status_code}", provider=self.name
            ) from exc
        except httpx.HTTPError as exc:
            raise ExternalServiceError(f"OpenOcean {endpoint} transport error: {exc!r}", provider=self.name) from exc
        except ValueError as exc:
            raise ExternalServiceError(f"OpenOcean {endpoint} returned non-JSON body", provider=self.name) from exc

        if not isinstance(body, dict):
            raise ExternalServiceError(f"OpenOcean {endpoint} returned {type(body).__name__}", provider=self.name)
        if body.get("error") is not None:
            raise ExternalServiceError(f"OpenOcean API error: {body['error']}", provider=self.name)
        code = body.get("code")
        if code is not None and code != 200:
            raise ExternalServiceError(
                f"OpenOcean {endpoint} code {code}: {body.get('message') or body.get('msg')}",
                provider=self.name,
            )
        data = body.get("data")
        if not isinstance(data, dict):
            raise ExternalServiceError(f"OpenOcean {endpoint} response has no data", provider=self.name)
        return data

    async def quote(
        self,
        token_in: str,
        token_out: str,
        amount: str,
        gas_price_gwei: Optional[str] = None,
    ) -> Quote:
        params = {
            "inTokenAddress": token_in,
            "outTokenAddress": token_out,
            "amount": amount,
        }
        if gas_price_gwei:
            params["gasPrice"] = gas_price_gwei

        data = await self._get("quote", params)
        if data.get("outAmount") in (None, ""):
            raise ExternalServiceError("OpenOcean quote has no outAmount", provider=self.name)

        quote = Quote(
            out_amount=_as_int(data.get("outAmount"), "outAmount"),
            estimated_gas=_as_int(data.get("estimatedGas"), "estimatedGas"),
        )
        logger.info(f"Quote {token_in[:10]} -> {token_out[:10]} for {amount}: out={quote.out_amount}")
        return quote

    async def swap(
        self,
        token_in: str,
        token_out: str,
        amount: str,
        gas_price_gwei: str,
        slippage: str,
        account: str,
    ) -> SwapTransaction:
        params = {
            "inTokenAddress": token_in,
            "outTokenAddress": token_out,
            "amount": amount,
            "gasPrice": gas_price_gwei,
            "slippage": slippage,
            "account": account,
        }
        data = await self._get("swap", params)
        if not data.get("to") or not data.get("data"):
            raise ExternalServiceError("OpenOcean swap has no transaction data", provider=self.name)

        price_impact = data.get("price_impact")
        return SwapTransaction(
            to=data["to"],
            data=data["data"],
            value=_as_int(data.get("value"), "value"),
            in_amount=_as_int(data.get("inAmount"), "inAmount"),
            out_amount=_as_int(data.get("outAmount"), "outAmount"),
            gas_price=_as_int(data.get("gasPrice"), "gasPrice"),
            price_impact=str(price_impact) if price_impact is not None else None,
        )

    async def close(self) -> None:
        await self._client.aclose()


__all__ = ["OpenOceanProvider"]
