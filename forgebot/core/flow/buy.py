"""
Buy flow: spend native balance on an ERC-20.

idle -> buy_token_select [-> buy_custom_token] -> buy_amount_entry -> buy_confirm -> idle
"""

import structlog

from forgebot.config import settings
from forgebot.core.tokens import NATIVE_DECIMALS, NATIVE_TOKEN_ADDRESS, PRESET_TOKENS, is_native, preset_token
from forgebot.services.units import format_amount, from_base_units, to_base_units
from forgebot.services.validators import is_valid_address, is_valid_amount

from .errors import ExternalServiceError, InsufficientFunds, ValidationError
from .formatters import NO_WALLET_MESSAGE, format_native, swap_result, transaction_summary
from .models import (
    CANCEL_BUTTON_ROW,
    CONFIRM_BUTTONS,
    BuyFlowState,
    FlowStep,
    Session,
    TokenRef,
    TurnResult,
    button,
)
from .services import TurnContext
from .trade import execute_swap, price

logger = structlog.stdlib.get_logger("flow.buy")


# =============================================================================
# Prompts
# =============================================================================


def prompt_token_select(session: Session) -> TurnResult:
    flow: BuyFlowState = session.flow
    presets = [button(symbol, symbol) for symbol in PRESET_TOKENS]
    return TurnResult(
        response=(
            f"💱 Buy Tokens with {settings.native_symbol}\n\n"
            f"Your {settings.native_symbol} balance: {format_native(flow.balance)} {settings.native_symbol}\n\n"
            'Select a token to buy or choose "Custom Token" to enter a specific token address:'
        ),
        buttons=[presets, [button("Custom Token", "custom")], CANCEL_BUTTON_ROW],
        session=session,
    )


def prompt_custom_token(session: Session) -> TurnResult:
    return TurnResult(
        response=(
            "💱 Buy Custom Token\n\n"
            "Please send the ERC-20 token address you want to buy.\n\n"
            "The address should look like: 0x1234...5678\n\n"
            "You can cancel this operation by typing /cancel"
        ),
        buttons=[CANCEL_BUTTON_ROW],
        session=session,
    )


def prompt_amount(session: Session) -> TurnResult:
    flow: BuyFlowState = session.flow
    symbol = settings.native_symbol
    return TurnResult(
        response=(
            f"💱 Buy {flow.token_out.symbol}\n\n"
            f"You are buying {flow.token_out.symbol} with {symbol}.\n\n"
            f"Your {symbol} balance: {format_native(flow.balance)} {symbol}\n\n"
            f"Please enter the amount of {symbol} you want to spend:"
        ),
        buttons=[CANCEL_BUTTON_ROW],
        session=session,
    )


def prompt_confirm(session: Session) -> TurnResult:
    flow: BuyFlowState = session.flow
    return TurnResult(
        response=transaction_summary(
            settings.native_symbol,
            flow.token_out.symbol,
            from_base_units(flow.amount, NATIVE_DECIMALS),
            format_amount(flow.quote.out_amount, flow.token_out.decimals),
            session.settings.gas_priority,
            session.settings.slippage_text,
        ),
        buttons=CONFIRM_BUTTONS,
        session=session,
    )


# =============================================================================
# Handlers
# =============================================================================


async def start(ctx: TurnContext) -> TurnResult:
    """Entry guard: a wallet with a positive native balance."""
    session = ctx.session.cleared()
    wallet = await ctx.services.wallets.get_wallet(ctx.user_id)
    if wallet is None:
        return TurnResult(NO_WALLET_MESSAGE, session)

    balance = await ctx.services.read(
        "native_balance", lambda: ctx.services.chain.get_native_balance(wallet.address)
    )
    if balance <= 0:
        return TurnResult(
            f"❌ Your wallet has no {settings.native_symbol} balance to buy tokens.\n\n"
            "Use /deposit to get your deposit address and add funds first.",
            session,
        )

    flow = BuyFlowState(wallet_address=wallet.address, balance=balance)
    return prompt_token_select(session.goto(FlowStep.BUY_TOKEN_SELECT, flow))


async def select_token(ctx: TurnContext) -> TurnResult:
    flow = ctx.flow_as(BuyFlowState)
    choice = ctx.value

    if choice == "custom":
        return prompt_custom_token(ctx.session.goto(FlowStep.BUY_CUSTOM_TOKEN, flow))

    token = preset_token(choice)
    if token is None:
        raise ValidationError(f"unknown preset {choice!r}", user_message="Token not recognized.")

    flow = flow.model_copy(update={"token_out": TokenRef.from_info(token)})
    return prompt_amount(ctx.session.goto(FlowStep.BUY_AMOUNT_ENTRY, flow))


async def custom_token(ctx: TurnContext) -> TurnResult:
    flow = ctx.flow_as(BuyFlowState)
    address = ctx.value

    if not is_valid_address(address):
        raise ValidationError(
            f"bad token address {address!r}",
            user_message="Invalid token address format. Please provide a valid address.",
        )
    if is_native(address):
        raise ValidationError(
            "native placeholder entered as buy target",
            user_message=f"You are already paying with {settings.native_symbol}. Enter an ERC-20 token address.",
        )

    try:
        info = await ctx.services.read("token_info", lambda: ctx.services.chain.get_token_info(address))
    except ExternalServiceError as exc:
        logger.info("custom_token_unreadable", token=address, error=exc.message)
        raise ValidationError(
            exc.message,
            user_message=(
                "Unable to get information for this token. It might not be a valid "
                "ERC-20 token on this network. Please check the address."
            ),
        ) from exc

    flow = flow.model_copy(update={"token_out": TokenRef.from_info(info)})
    return prompt_amount(ctx.session.goto(FlowStep.BUY_AMOUNT_ENTRY, flow))


async def enter_amount(ctx: TurnContext) -> TurnResult:
    flow = ctx.flow_as(BuyFlowState)
    text = ctx.value

    if not is_valid_amount(text):
        raise ValidationError(
            f"bad amount {text!r}",
            user_message="Invalid amount format. Please enter a positive number (e.g., 0.01).",
        )
    amount = to_base_units(text, NATIVE_DECIMALS)

    # Compared against the balance read at flow entry.
    if amount > flow.balance:
        raise InsufficientFunds(
            f"amount {amount} > balance {flow.balance}",
            user_message=(
                f"Insufficient balance. You only have {format_native(flow.balance)} "
                f"{settings.native_symbol} available."
            ),
        )

    gas, quote = await price(ctx, NATIVE_TOKEN_ADDRESS, flow.token_out.address, amount, NATIVE_DECIMALS)
    flow = flow.model_copy(update={"amount": amount, "quote": quote, "gas": gas})
    return prompt_confirm(ctx.session.goto(FlowStep.BUY_CONFIRM, flow))


async def confirm(ctx: TurnContext) -> TurnResult:
    if ctx.value != "confirm_yes":
        return prompt_confirm(ctx.session)

    flow = ctx.flow_as(BuyFlowState)
    wallet = await ctx.require_wallet(flow.wallet_address)
    logger.info(
        "buy_confirmed",
        token_out=flow.token_out.address,
        amount=flow.amount,
        entry_balance=flow.balance,
    )

    receipt, swap = await execute_swap(
        ctx,
        wallet,
        token_in=NATIVE_TOKEN_ADDRESS,
        token_out=flow.token_out.address,
        amount=flow.amount,
        decimals_in=NATIVE_DECIMALS,
        gas=flow.gas,
        expected_out=flow.quote.out_amount,
    )

    received = from_base_units(flow.quote.out_amount, flow.token_out.decimals)
    return TurnResult(
        response=swap_result(
            receipt.is_success,
            receipt.hash,
            f"You bought {received} {flow.token_out.symbol}",
            swap.price_impact,
        ),
        session=ctx.session.cleared(),
    )
