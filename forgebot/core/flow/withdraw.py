"""
Withdraw flow: send native balance to another address.

idle -> withdraw_address_entry -> withdraw_amount_entry -> withdraw_confirm -> idle
"""

import structlog

from forgebot.config import settings
from forgebot.core.execution.tx_builder import NATIVE_TRANSFER_GAS_LIMIT, build_native_transfer
from forgebot.core.tokens import NATIVE_DECIMALS, NATIVE_TOKEN_ADDRESS
from forgebot.db.models import TransactionRecord
from forgebot.services.units import to_base_units
from forgebot.services.validators import has_enough_balance, is_valid_address, is_valid_amount

from .errors import InsufficientFunds, ValidationError
from .formatters import NO_WALLET_MESSAGE, format_native, withdrawal_result, withdrawal_summary
from .models import CANCEL_BUTTON_ROW, CONFIRM_BUTTONS, FlowStep, Session, TurnResult, WithdrawFlowState
from .services import TurnContext
from .trade import record_transaction

logger = structlog.stdlib.get_logger("flow.withdraw")


def prompt_address(session: Session) -> TurnResult:
    flow: WithdrawFlowState = session.flow
    symbol = settings.native_symbol
    return TurnResult(
        response=(
            f"📤 Withdraw {symbol}\n\n"
            f"Your balance: {format_native(flow.balance)} {symbol}\n\n"
            "Please send the destination address:"
        ),
        buttons=[CANCEL_BUTTON_ROW],
        session=session,
    )


def prompt_amount(session: Session) -> TurnResult:
    flow: WithdrawFlowState = session.flow
    symbol = settings.native_symbol
    return TurnResult(
        response=(
            f"📤 Withdraw {symbol}\n\n"
            f"To: {flow.destination}\n"
            f"Your balance: {format_native(flow.balance)} {symbol}\n\n"
            f"Please enter the amount of {symbol} to send:"
        ),
        buttons=[CANCEL_BUTTON_ROW],
        session=session,
    )


def prompt_confirm(session: Session) -> TurnResult:
    flow: WithdrawFlowState = session.flow
    return TurnResult(
        response=withdrawal_summary(
            flow.amount, flow.destination, flow.gas.max_cost(NATIVE_TRANSFER_GAS_LIMIT)
        ),
        buttons=CONFIRM_BUTTONS,
        session=session,
    )


async def start(ctx: TurnContext) -> TurnResult:
    session = ctx.session.cleared()
    wallet = await ctx.services.wallets.get_wallet(ctx.user_id)
    if wallet is None:
        return TurnResult(NO_WALLET_MESSAGE, session)

    balance = await ctx.services.read(
        "native_balance", lambda: ctx.services.chain.get_native_balance(wallet.address)
    )
    if balance <= 0:
        return TurnResult(
            f"❌ Your wallet has no {settings.native_symbol} to withdraw.",
            session,
        )

    flow = WithdrawFlowState(wallet_address=wallet.address, balance=balance)
    return prompt_address(session.goto(FlowStep.WITHDRAW_ADDRESS_ENTRY, flow))


async def enter_address(ctx: TurnContext) -> TurnResult:
    flow = ctx.flow_as(WithdrawFlowState)
    destination = ctx.value
    if not is_valid_address(destination):
        raise ValidationError(
            f"bad destination {destination!r}",
            user_message="Invalid address format. Please provide a valid address.",
        )

    flow = flow.model_copy(update={"destination": destination})
    return prompt_amount(ctx.session.goto(FlowStep.WITHDRAW_AMOUNT_ENTRY, flow))


async def enter_amount(ctx: TurnContext) -> TurnResult:
    """Amount must fit the balance, then the balance must also cover the worst-case fee."""
    flow = ctx.flow_as(WithdrawFlowState)
    text = ctx.value
    symbol = settings.native_symbol

    if not is_valid_amount(text):
        raise ValidationError(
            f"bad amount {text!r}",
            user_message="Invalid amount format. Please enter a positive number (e.g., 0.01).",
        )
    amount = to_base_units(text, NATIVE_DECIMALS)

    if not has_enough_balance(flow.balance, amount):
        raise InsufficientFunds(
            f"amount {amount} > balance {flow.balance}",
            user_message=(
                f"Insufficient balance. You only have {format_native(flow.balance)} {symbol} available."
            ),
        )

    gas = await ctx.services.gas.gas_params(ctx.session.settings.gas_priority)
    max_fee = gas.max_cost(NATIVE_TRANSFER_GAS_LIMIT)
    if flow.balance <= amount + max_fee:
        raise InsufficientFunds(
            f"amount {amount} + max fee {max_fee} >= balance {flow.balance}",
            user_message=(
                f"Insufficient balance to cover the amount plus the network fee "
                f"(up to {format_native(max_fee)} {symbol}). Try a smaller amount."
            ),
        )

    flow = flow.model_copy(update={"amount": amount, "gas": gas})
    return prompt_confirm(ctx.session.goto(FlowStep.WITHDRAW_CONFIRM, flow))


async def confirm(ctx: TurnContext) -> TurnResult:
    if ctx.value != "confirm_yes":
        return prompt_confirm(ctx.session)

    flow = ctx.flow_as(WithdrawFlowState)
    wallet = await ctx.require_wallet(flow.wallet_address)
    logger.info(
        "withdraw_confirmed",
        destination=flow.destination,
        amount=flow.amount,
        entry_balance=flow.balance,
    )

    receipt = await ctx.services.executor.execute(
        wallet, build_native_transfer(flow.destination, flow.amount, flow.gas)
    )
    await record_transaction(
        ctx,
        TransactionRecord(
            hash=receipt.hash,
            user_id=ctx.user_id,
            from_address=wallet.address,
            token_in=NATIVE_TOKEN_ADDRESS,
            token_out=flow.destination,
            amount_in=flow.amount,
            status=receipt.status.value,
            amount_out=0,
            gas_used=receipt.gas_used,
            kind="withdraw",
        ),
    )

    return TurnResult(
        response=withdrawal_result(receipt.is_success, receipt.hash, flow.amount, flow.destination),
        session=ctx.session.cleared(),
    )
