"""
Executor gateway.

Hands an unsigned transaction to the external signing service, which holds
the keys and broadcasts, then waits for the receipt on-chain. Submission is
attempted exactly once; only the receipt polling loops.
"""

import asyncio
from typing import Any, Dict, Optional, Protocol

import httpx
import structlog

from forgebot.config import settings
from forgebot.core.flow.errors import ExternalServiceError

from .models import Receipt, TransactionRequest, WalletHandle

logger = structlog.stdlib.get_logger("execution.gateway")


class ExecutorGateway(Protocol):
    async def execute(self, signer: WalletHandle, request: TransactionRequest) -> Receipt: ...


class ReceiptSource(Protocol):
    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]: ...


class SigningServiceGateway:
    """
    Executes transactions through a remote signer.

    Responsibilities:
    - Post the unsigned transaction with the wallet's signer reference
    - Read back the broadcast hash
    - Poll for the receipt until mined or the confirmation timeout passes
    """

    def __init__(
        self,
        receipts: ReceiptSource,
        *,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        chain_id: Optional[int] = None,
        confirmation_timeout_seconds: Optional[float] = None,
        poll_interval_seconds: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.receipts = receipts
        self.base_url = (base_url or settings.signer_service_url).rstrip("/")
        self.token = token if token is not None else settings.signer_service_token
        self.chain_id = chain_id or settings.chain_id
        self.confirmation_timeout = (
            confirmation_timeout_seconds
            if confirmation_timeout_seconds is not None
            else settings.confirmation_timeout_seconds
        )
        self.poll_interval = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else settings.receipt_poll_interval_seconds
        )
        self._client = client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def execute(self, signer: WalletHandle, request: TransactionRequest) -> Receipt:
        if request.chain_id is None:
            request.chain_id = self.chain_id
        tx_hash = await self._submit(signer, request)
        logger.info("tx_submitted", tx_hash=tx_hash, to=request.to, description=request.description)
        return await self._wait_for_receipt(tx_hash)

    async def _submit(self, signer: WalletHandle, request: TransactionRequest) -> str:
        if not self.base_url:
            raise ExternalServiceError("No signing service configured", provider="signer")

        payload = {
            "signerRef": signer.signer_ref,
            "from": signer.address,
            "transaction": request.to_dict(),
        }
        try:
            response = await self._client.post(
                f"{self.base_url}/transactions", json=payload, headers=self._headers()
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise ExternalServiceError(
                f"signing service returned HTTP {exc.response.status_code}", provider="signer"
            ) from exc
        except httpx.HTTPError as exc:
            raise ExternalServiceError(f"signing service unreachable: {exc!r}", provider="signer") from exc
        except ValueError as exc:
            raise ExternalServiceError("signing service returned non-JSON body", provider="signer") from exc

        tx_hash = (body.get("hash") or body.get("txHash")) if isinstance(body, dict) else None
        if not tx_hash:
            raise ExternalServiceError(f"signing service returned no hash: {body!r}", provider="signer")
        return tx_hash

    async def _wait_for_receipt(self, tx_hash: str) -> Receipt:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.confirmation_timeout

        while True:
            try:
                raw = await self.receipts.get_transaction_receipt(tx_hash)
                if raw:
                    receipt = Receipt.from_rpc(raw)
                    logger.info(
                        "tx_mined",
                        tx_hash=tx_hash,
                        status=receipt.status.value,
                        block=receipt.block_number,
                        gas_used=receipt.gas_used,
                    )
                    return receipt
            except ExternalServiceError as exc:
                logger.warning("receipt_poll_failed", tx_hash=tx_hash, error=exc.message)

            if loop.time() >= deadline:
                raise ExternalServiceError(
                    f"Confirmation timeout after {self.confirmation_timeout}s for {tx_hash}",
                    provider="signer",
                )
            await asyncio.sleep(self.poll_interval)

    async def close(self) -> None:
        await self._client.aclose()
