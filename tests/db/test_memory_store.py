"""
Tests for the in-process store.
"""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from forgebot.core.execution.models import WalletHandle
from forgebot.core.flow.errors import ExternalServiceError
from forgebot.core.flow.models import UserSettings
from forgebot.core.tokens import NATIVE_TOKEN_ADDRESS
from forgebot.db.memory_store import InMemoryStore
from forgebot.db.models import TransactionRecord

USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
DAI = "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb"


def record(hash, token_in, token_out, user_id="1"):
    return TransactionRecord(
        hash=hash,
        user_id=user_id,
        from_address="0x1111111111111111111111111111111111111111",
        token_in=token_in,
        token_out=token_out,
        amount_in=1,
        status="success",
    )


class TestTransactions:

    @pytest.mark.asyncio
    async def test_unique_tokens_first_seen_order_without_native(self):
        store = InMemoryStore()
        await store.save_transaction(record("0x1", NATIVE_TOKEN_ADDRESS, USDC))
        await store.save_transaction(record("0x2", NATIVE_TOKEN_ADDRESS, DAI))
        await store.save_transaction(record("0x3", USDC.lower(), NATIVE_TOKEN_ADDRESS))
        await store.save_transaction(record("0x4", NATIVE_TOKEN_ADDRESS, USDC, user_id="2"))

        assert await store.get_unique_tokens_by_user("1") == [USDC, DAI]
        assert await store.get_unique_tokens_by_user("2") == [USDC]
        assert await store.get_unique_tokens_by_user("3") == []

    @pytest.mark.asyncio
    async def test_duplicate_hash_rejected(self):
        store = InMemoryStore()
        await store.save_transaction(record("0x1", NATIVE_TOKEN_ADDRESS, USDC))

        with pytest.raises(ExternalServiceError) as excinfo:
            await store.save_transaction(record("0x1", NATIVE_TOKEN_ADDRESS, DAI))
        assert excinfo.value.provider == "store"
        assert len(store.transactions) == 1

    @pytest.mark.asyncio
    async def test_transactions_by_user(self):
        store = InMemoryStore()
        await store.save_transaction(record("0x1", NATIVE_TOKEN_ADDRESS, USDC))
        await store.save_transaction(record("0x2", NATIVE_TOKEN_ADDRESS, DAI, user_id="2"))
        await store.save_transaction(record("0x3", USDC, NATIVE_TOKEN_ADDRESS))

        mine = await store.get_transactions_by_user("1")

        assert [r.hash for r in mine] == ["0x1", "0x3"]
        assert [r.kind for r in mine] == ["withdraw", "sell"]
        assert await store.get_transactions_by_user("3") == []


class TestSettingsAndWallets:

    @pytest.mark.asyncio
    async def test_settings_round_trip(self):
        store = InMemoryStore()
        assert await store.get_user_settings("1") is None

        await store.save_user_settings("1", UserSettings(slippage=Decimal("2"), gas_priority="low"))

        stored = await store.get_user_settings("1")
        assert stored.slippage == Decimal("2")
        assert stored.gas_priority == "low"

    @pytest.mark.asyncio
    async def test_wallet_lookup(self):
        wallet = WalletHandle(address="0xabc", signer_ref="r")
        store = InMemoryStore()
        store.add_wallet("1", wallet)

        assert await store.get_wallet("1") == wallet
        assert await store.get_wallet("2") is None


class TestRecordDocument:

    def test_big_amounts_are_strings(self):
        doc = TransactionRecord(
            hash="0x1",
            user_id="1",
            from_address="0xabc",
            token_in=NATIVE_TOKEN_ADDRESS,
            token_out=USDC,
            amount_in=2**100,
            status="success",
            amount_out=5,
        ).to_document()

        assert doc["amountIn"] == str(2**100)
        assert doc["amountOut"] == "5"
        assert doc["userId"] == "1"
        assert isinstance(doc["createdAt"], int)
        assert doc["kind"] == "buy"

    def test_document_read_back(self):
        original = TransactionRecord(
            hash="0x1",
            user_id="1",
            from_address="0xabc",
            token_in=USDC,
            token_out=NATIVE_TOKEN_ADDRESS,
            amount_in=2**100,
            status="failure",
            amount_out=5,
            gas_used=21000,
            created_at=datetime(2026, 3, 1, 8, 15, tzinfo=timezone.utc),
        )

        assert TransactionRecord.from_document(original.to_document()) == original

    def test_explicit_kind_wins_over_inference(self):
        # a buy quoted at zero output still reads as a buy
        buy = record("0x1", NATIVE_TOKEN_ADDRESS, USDC)
        explicit = replace(buy, kind="buy")

        assert buy.kind == "withdraw"
        assert explicit.kind == "buy"
        assert explicit.tokens == [USDC]
        assert buy.tokens == []
