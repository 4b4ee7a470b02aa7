"""
Tests for the Withdraw flow and its two-stage balance check.
"""

import pytest

from conftest import DESTINATION, USER_ID, WALLET_ADDRESS, FakeGas, follow
from forgebot.core.execution.models import GasParams
from forgebot.core.execution.tx_builder import NATIVE_TRANSFER_GAS_LIMIT
from forgebot.core.flow.models import FlowStep, Turn, UserSettings
from forgebot.core.tokens import NATIVE_TOKEN_ADDRESS
from forgebot.db.models import TransactionRecord

ONE_GWEI = 10**9


async def to_amount_entry(engine):
    started = await engine.handle_turn(Turn.from_action(USER_ID, "/withdraw"))
    return await engine.handle_turn(follow(started, DESTINATION))


class TestWithdrawEntry:

    @pytest.mark.asyncio
    async def test_empty_wallet_stays_idle(self, engine):
        result = await engine.handle_turn(Turn.from_action(USER_ID, "/withdraw"))

        assert "no ETH to withdraw" in result.response
        assert result.session.is_idle

    @pytest.mark.asyncio
    async def test_bad_destination_reprompts(self, engine, chain):
        chain.set_native(WALLET_ADDRESS, 10**18)
        started = await engine.handle_turn(Turn.from_action(USER_ID, "/withdraw"))

        result = await engine.handle_turn(follow(started, "not-an-address"))

        assert "Invalid address format" in result.response
        assert result.session.current_action == FlowStep.WITHDRAW_ADDRESS_ENTRY


class TestWithdrawAmount:

    @pytest.mark.asyncio
    async def test_full_balance_rejected_for_fee(self, engine, chain, gas):
        balance = 100_000_000_000_000
        chain.set_native(WALLET_ADDRESS, balance)
        gas.params = GasParams(
            fee_per_unit=ONE_GWEI, max_fee_per_unit=ONE_GWEI, max_priority_fee_per_unit=ONE_GWEI
        )
        entry = await to_amount_entry(engine)

        result = await engine.handle_turn(follow(entry, "0.0001"))

        assert entry.session.flow.balance == balance
        assert NATIVE_TRANSFER_GAS_LIMIT * ONE_GWEI == 21_000_000_000_000
        assert "network fee" in result.response
        assert result.session.current_action == FlowStep.WITHDRAW_AMOUNT_ENTRY
        assert result.session.flow.amount is None

    @pytest.mark.asyncio
    async def test_amount_above_balance_rejected_before_gas(self, engine, chain, gas):
        chain.set_native(WALLET_ADDRESS, 10**15)
        entry = await to_amount_entry(engine)

        result = await engine.handle_turn(follow(entry, "0.002"))

        assert "You only have 0.001 ETH" in result.response
        assert gas.priorities == []

    @pytest.mark.asyncio
    async def test_amount_plus_fee_within_balance_goes_to_confirm(self, engine, chain):
        chain.set_native(WALLET_ADDRESS, 100_000_000_000_000)
        entry = await to_amount_entry(engine)

        # 79_000 gwei + 21_000 gwei fee == balance, which is still rejected
        at_limit = await engine.handle_turn(follow(entry, "0.000079"))
        assert at_limit.session.current_action == FlowStep.WITHDRAW_AMOUNT_ENTRY

        below = await engine.handle_turn(follow(entry, "0.000078"))
        assert below.session.current_action == FlowStep.WITHDRAW_CONFIRM
        assert below.session.flow.amount == 78_000_000_000_000
        assert "Max network fee: 0.000021 ETH" in below.response


class TestWithdrawExecution:

    @pytest.mark.asyncio
    async def test_confirm_sends_and_records(self, engine, chain, executor, store):
        chain.set_native(WALLET_ADDRESS, 10**18)
        entry = await to_amount_entry(engine)
        confirm = await engine.handle_turn(follow(entry, "0.25"))

        result = await engine.handle_turn(follow(confirm, "confirm_yes", callback=True))

        assert "Withdrawal Successful" in result.response
        assert "0.25 ETH" in result.response
        assert result.session.is_idle

        request = executor.requests[0]
        assert request.to == DESTINATION
        assert request.value == 250_000_000_000_000_000
        assert request.data == "0x"
        assert request.gas_limit == NATIVE_TRANSFER_GAS_LIMIT

        record = store.transactions[0]
        assert record.token_in == NATIVE_TOKEN_ADDRESS
        assert record.token_out == DESTINATION
        assert record.amount_in == 250_000_000_000_000_000
        assert record.amount_out == 0

    @pytest.mark.asyncio
    async def test_uses_users_gas_priority(self, engine, chain, store):
        await store.save_user_settings(USER_ID, UserSettings(gas_priority="high"))
        gas = FakeGas()
        engine.services.gas = gas
        chain.set_native(WALLET_ADDRESS, 10**18)

        entry = await to_amount_entry(engine)
        await engine.handle_turn(follow(entry, "0.1"))

        assert gas.priorities == ["high"]

    @pytest.mark.asyncio
    async def test_unsaved_record_still_reports_hash(self, engine, chain, executor, store):
        sent_hash = f"0x{1:064x}"
        await store.save_transaction(
            TransactionRecord(
                hash=sent_hash,
                user_id="someone-else",
                from_address=DESTINATION,
                token_in=NATIVE_TOKEN_ADDRESS,
                token_out=WALLET_ADDRESS,
                amount_in=1,
                status="success",
                kind="withdraw",
            )
        )
        chain.set_native(WALLET_ADDRESS, 10**18)
        entry = await to_amount_entry(engine)
        confirm = await engine.handle_turn(follow(entry, "0.25"))

        result = await engine.handle_turn(follow(confirm, "confirm_yes", callback=True))

        assert len(executor.requests) == 1
        assert "could not be saved" in result.response
        assert sent_hash in result.response
        assert result.session.is_idle
        assert len(store.transactions) == 1
