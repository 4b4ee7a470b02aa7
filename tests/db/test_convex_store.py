"""
Tests for the Convex store over a mocked HTTP API.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from forgebot.core.flow.errors import ExternalServiceError
from forgebot.core.flow.models import UserSettings
from forgebot.db.convex_store import ConvexAuthError, ConvexError, ConvexStore
from forgebot.db.models import TransactionRecord


class ConvexStub:
    def __init__(self, values=None, status=200, body=None):
        self.values = values or {}
        self.status = status
        self.body = body
        self.calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.calls.append((request.url.path, payload))
        if self.status != 200:
            return httpx.Response(self.status)
        if self.body is not None:
            return httpx.Response(200, json=self.body)
        return httpx.Response(200, json={"status": "success", "value": self.values.get(payload["path"])})


def store_for(stub) -> ConvexStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    return ConvexStore(deployment_url="https://x.convex.cloud/", deploy_key="prod:k", client=client)


class TestConvexStore:

    def test_requires_url(self, monkeypatch):
        from forgebot.db import convex_store

        monkeypatch.setattr(convex_store.settings, "convex_url", "")
        with pytest.raises(ConvexError):
            ConvexStore(deployment_url="")

    def test_deploy_key_header(self):
        store = ConvexStore(deployment_url="https://x.convex.cloud", deploy_key="prod:k")

        assert store.headers["Authorization"] == "Convex prod:k"

    @pytest.mark.asyncio
    async def test_save_transaction_is_a_mutation(self):
        stub = ConvexStub()
        record = TransactionRecord(
            hash="0x1",
            user_id="7",
            from_address="0xabc",
            token_in="0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE",
            token_out="0xdef",
            amount_in=10**30,
            status="success",
        )

        await store_for(stub).save_transaction(record)

        path, payload = stub.calls[0]
        assert path == "/api/mutation"
        assert payload["path"] == "transactions:record"
        assert payload["args"]["amountIn"] == str(10**30)
        assert payload["format"] == "json"

    @pytest.mark.asyncio
    async def test_unique_tokens(self):
        stub = ConvexStub({"transactions:uniqueTokensByUser": ["0xa", "0xb"]})

        assert await store_for(stub).get_unique_tokens_by_user("7") == ["0xa", "0xb"]
        assert stub.calls[0][1]["args"] == {"userId": "7"}

    @pytest.mark.asyncio
    async def test_transactions_by_user_parses_documents(self):
        stub = ConvexStub(
            {
                "transactions:listByUser": [
                    {
                        "_id": "j57",
                        "_creationTime": 1767225600000.5,
                        "hash": "0x1",
                        "userId": "7",
                        "fromAddress": "0xabc",
                        "tokenIn": "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE",
                        "tokenOut": "0xdef",
                        "amountIn": str(10**30),
                        "amountOut": "0",
                        "gasUsed": "21000",
                        "status": "success",
                        "createdAt": 1767225600000,
                        "kind": "buy",
                    },
                    {
                        "hash": "0x2",
                        "userId": "7",
                        "tokenIn": "0xdef",
                        "tokenOut": "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE",
                        "amountIn": "5",
                        "status": "failure",
                        "_creationTime": 1767225600000,
                    },
                ]
            }
        )

        records = await store_for(stub).get_transactions_by_user("7")

        assert stub.calls[0][1]["path"] == "transactions:listByUser"
        assert stub.calls[0][1]["args"] == {"userId": "7"}
        assert records[0].amount_in == 10**30
        assert records[0].kind == "buy"
        assert records[0].gas_used == 21000
        assert records[0].created_at == datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert records[1].kind == "sell"
        assert records[1].amount_out == 0

    @pytest.mark.asyncio
    async def test_malformed_transaction_document(self):
        stub = ConvexStub({"transactions:listByUser": [{"hash": "0x1", "amountIn": "lots"}]})

        with pytest.raises(ConvexError):
            await store_for(stub).get_transactions_by_user("7")

    @pytest.mark.asyncio
    async def test_settings_read_and_write(self):
        stub = ConvexStub({"settings:getByUser": {"slippage": 0.5, "gasPriority": "high"}})
        store = store_for(stub)

        stored = await store.get_user_settings("7")
        await store.save_user_settings("7", UserSettings(slippage=Decimal("2.5"), gas_priority="low"))

        assert stored.slippage == Decimal("0.5")
        assert stored.gas_priority == "high"
        assert stub.calls[1][1]["args"] == {"userId": "7", "slippage": 2.5, "gasPriority": "low"}

    @pytest.mark.asyncio
    async def test_missing_settings_and_wallet(self):
        store = store_for(ConvexStub())

        assert await store.get_user_settings("7") is None
        assert await store.get_wallet("7") is None

    @pytest.mark.asyncio
    async def test_wallet_signer_ref(self):
        stub = ConvexStub({"wallets:getByUser": {"address": "0xabc", "signerRef": "kms-1"}})

        wallet = await store_for(stub).get_wallet("7")

        assert wallet.address == "0xabc"
        assert wallet.signer_ref == "kms-1"

    @pytest.mark.asyncio
    async def test_auth_error(self):
        with pytest.raises(ConvexAuthError):
            await store_for(ConvexStub(status=401)).get_wallet("7")

    @pytest.mark.asyncio
    async def test_function_error_is_external(self):
        stub = ConvexStub(body={"status": "error", "errorMessage": "validator failed"})

        with pytest.raises(ExternalServiceError) as excinfo:
            await store_for(stub).get_unique_tokens_by_user("7")

        assert excinfo.value.provider == "convex"
        assert "validator failed" in excinfo.value.message
