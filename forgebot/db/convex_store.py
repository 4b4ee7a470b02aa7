"""
Convex-backed store.

Talks to a Convex deployment through its HTTP query/mutation API. The
deployment exposes ``transactions:record``, ``transactions:uniqueTokensByUser``,
``transactions:listByUser``, ``settings:getByUser``, ``settings:upsert`` and
``wallets:getByUser``.
"""

from typing import Any, Dict, List, Optional

import httpx

from forgebot.config import settings
from forgebot.core.execution.models import WalletHandle
from forgebot.core.flow.errors import ExternalServiceError
from forgebot.core.flow.models import UserSettings
from forgebot.types.requests import WireSettings

from .models import TransactionRecord


class ConvexError(ExternalServiceError):
    """A Convex call failed."""

    def __init__(self, message: str):
        super().__init__(message, provider="convex")


class ConvexAuthError(ConvexError):
    """Deploy key missing or rejected."""


class ConvexStore:
    """
    Async store over the Convex HTTP API.

    Example usage:
        store = ConvexStore(
            deployment_url="https://your-deployment.convex.cloud",
            deploy_key="prod:your-deploy-key"
        )
        await store.save_transaction(record)
    """

    def __init__(
        self,
        deployment_url: Optional[str] = None,
        deploy_key: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.deployment_url = (deployment_url or settings.convex_url).rstrip("/")
        self.deploy_key = deploy_key or settings.convex_deploy_key
        self.timeout = timeout or settings.request_timeout_seconds

        if not self.deployment_url:
            raise ConvexError("CONVEX_URL is required")

        self._client = client

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.deploy_key:
            headers["Authorization"] = f"Convex {self.deploy_key}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=self.headers)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _call(self, kind: str, function_name: str, args: Dict[str, Any]) -> Any:
        """POST to ``/api/query`` or ``/api/mutation`` and unwrap ``value``."""
        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.deployment_url}/api/{kind}",
                json={"path": function_name, "args": args, "format": "json"},
            )
            if response.status_code == 401:
                raise ConvexAuthError("Invalid or missing deploy key")
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise ConvexError(f"{kind} {function_name} failed: {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise ConvexError(f"{kind} {function_name} request failed: {e!r}") from e
        except ValueError as e:
            raise ConvexError(f"{kind} {function_name} returned non-JSON body") from e

        if data.get("status") == "error" or "errorMessage" in data or "error" in data:
            raise ConvexError(f"{function_name}: {data.get('errorMessage') or data.get('error')}")
        return data.get("value")

    async def query(self, function_name: str, args: Optional[Dict[str, Any]] = None) -> Any:
        return await self._call("query", function_name, args or {})

    async def mutation(self, function_name: str, args: Optional[Dict[str, Any]] = None) -> Any:
        return await self._call("mutation", function_name, args or {})

    # =========================================================================
    # Store interface
    # =========================================================================

    async def save_transaction(self, record: TransactionRecord) -> None:
        await self.mutation("transactions:record", record.to_document())

    async def get_unique_tokens_by_user(self, user_id: str) -> List[str]:
        tokens = await self.query("transactions:uniqueTokensByUser", {"userId": user_id})
        return [str(token) for token in tokens or []]

    async def get_transactions_by_user(self, user_id: str) -> List[TransactionRecord]:
        docs = await self.query("transactions:listByUser", {"userId": user_id})
        try:
            return [TransactionRecord.from_document(doc) for doc in docs or []]
        except (KeyError, TypeError, ValueError) as e:
            raise ConvexError(f"transactions:listByUser returned a malformed record: {e!r}") from e

    async def get_user_settings(self, user_id: str) -> Optional[UserSettings]:
        doc = await self.query("settings:getByUser", {"userId": user_id})
        if not doc:
            return None
        return UserSettings.from_wire(
            WireSettings(slippage=doc.get("slippage"), gas_priority=doc.get("gasPriority"))
        )

    async def save_user_settings(self, user_id: str, user_settings: UserSettings) -> None:
        await self.mutation(
            "settings:upsert",
            {
                "userId": user_id,
                "slippage": float(user_settings.slippage),
                "gasPriority": user_settings.gas_priority,
            },
        )

    async def get_wallet(self, user_id: str) -> Optional[WalletHandle]:
        doc = await self.query("wallets:getByUser", {"userId": user_id})
        if not doc or not doc.get("address"):
            return None
        return WalletHandle(address=doc["address"], signer_ref=str(doc.get("signerRef") or doc.get("_id") or user_id))
