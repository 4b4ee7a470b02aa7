"""
Sell flow: swap an ERC-20 the user holds back to the native asset.

idle -> sell_token_select [-> sell_custom_token] -> sell_amount_entry -> sell_confirm -> idle

A token is offered only when it appears in the user's recorded transactions
and its live on-chain balance is strictly positive.
"""

from typing import List

import structlog

from forgebot.config import settings
from forgebot.core.execution.models import WalletHandle
from forgebot.core.tokens import NATIVE_DECIMALS, NATIVE_TOKEN_ADDRESS
from forgebot.services.units import format_amount, from_base_units, to_base_units
from forgebot.services.validators import is_valid_address, is_valid_amount

from .errors import ExternalServiceError, InsufficientFunds, ValidationError
from .formatters import NO_WALLET_MESSAGE, swap_result, transaction_summary
from .models import (
    CANCEL_BUTTON_ROW,
    CONFIRM_BUTTONS,
    FlowStep,
    SellCandidate,
    SellFlowState,
    Session,
    TokenRef,
    TurnResult,
    button,
)
from .services import FlowServices, TurnContext
from .trade import execute_swap, price

logger = structlog.stdlib.get_logger("flow.sell")

MAX_TOKEN_BUTTONS = 6
SELL_TOKEN_PREFIX = "sell_token_"
SELL_CUSTOM_CALLBACK = "sell_token_custom"


async def sellable_tokens(services: FlowServices, user_id: str, wallet: WalletHandle) -> List[SellCandidate]:
    """History tokens with a positive live balance, in history order.

    A token whose balance or metadata cannot be read is skipped.
    """
    history = await services.read("unique_tokens", lambda: services.store.get_unique_tokens_by_user(user_id))

    candidates: List[SellCandidate] = []
    for token in history:
        try:
            balance = await services.read(
                "token_balance", lambda: services.chain.get_token_balance(token, wallet.address)
            )
            if balance <= 0:
                continue
            info = await services.read("token_info", lambda: services.chain.get_token_info(token))
        except ExternalServiceError as exc:
            logger.warning("sell_candidate_skipped", token=token, error=exc.message)
            continue
        candidates.append(
            SellCandidate(address=token, symbol=info.symbol, decimals=info.decimals, balance=balance)
        )
    return candidates


# =============================================================================
# Prompts
# =============================================================================


def prompt_token_select(session: Session) -> TurnResult:
    flow: SellFlowState = session.flow
    shown = flow.candidates[:MAX_TOKEN_BUTTONS]
    rows = [
        [button(token.symbol, f"{SELL_TOKEN_PREFIX}{token.address}") for token in shown[i:i + 2]]
        for i in range(0, len(shown), 2)
    ]
    rows.append([button("Sell Custom Token", SELL_CUSTOM_CALLBACK)])
    rows.append(CANCEL_BUTTON_ROW)
    return TurnResult(
        response=f"💱 Sell Tokens for {settings.native_symbol}\n\nSelect a token from your wallet to sell:",
        buttons=rows,
        session=session,
    )


def prompt_custom_token(session: Session) -> TurnResult:
    return TurnResult(
        response=(
            "💱 Sell Custom Token\n\n"
            "Please send the address of the token you want to sell.\n\n"
            "You can cancel this operation by typing /cancel"
        ),
        buttons=[CANCEL_BUTTON_ROW],
        session=session,
    )


def prompt_amount(session: Session) -> TurnResult:
    flow: SellFlowState = session.flow
    token = flow.token_in
    return TurnResult(
        response=(
            f"💱 Sell {token.symbol}\n\n"
            f"You are selling {token.symbol} for {settings.native_symbol}.\n\n"
            f"Your {token.symbol} balance: {from_base_units(flow.token_balance, token.decimals)}\n\n"
            f'Please enter the amount of {token.symbol} you want to sell (or type "max" for maximum):'
        ),
        buttons=[CANCEL_BUTTON_ROW],
        session=session,
    )


def prompt_confirm(session: Session) -> TurnResult:
    flow: SellFlowState = session.flow
    return TurnResult(
        response=transaction_summary(
            flow.token_in.symbol,
            settings.native_symbol,
            from_base_units(flow.amount, flow.token_in.decimals),
            format_amount(flow.quote.out_amount, NATIVE_DECIMALS),
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
    session = ctx.session.cleared()
    wallet = await ctx.services.wallets.get_wallet(ctx.user_id)
    if wallet is None:
        return TurnResult(NO_WALLET_MESSAGE, session)

    candidates = await sellable_tokens(ctx.services, ctx.user_id, wallet)
    if not candidates:
        return TurnResult(
            "❌ You don't have any sellable tokens with a balance.\n\n"
            "Use /buy to purchase some tokens first. If you just bought a token, "
            "wait a moment for the chain to update and try again.",
            session,
        )

    flow = SellFlowState(wallet_address=wallet.address, candidates=candidates)
    return prompt_token_select(session.goto(FlowStep.SELL_TOKEN_SELECT, flow))


def _pick(ctx: TurnContext, flow: SellFlowState, address: str) -> TurnResult:
    candidate = flow.candidate(address)
    if candidate is None:
        raise ValidationError(
            f"{address} is not a sell candidate",
            user_message="That token is not in your sellable list. Pick one of your tokens.",
        )
    token = TokenRef(address=candidate.address, symbol=candidate.symbol, decimals=candidate.decimals)
    flow = flow.model_copy(update={"token_in": token, "token_balance": candidate.balance})
    return prompt_amount(ctx.session.goto(FlowStep.SELL_AMOUNT_ENTRY, flow))


async def select_token(ctx: TurnContext) -> TurnResult:
    flow = ctx.flow_as(SellFlowState)
    choice = ctx.value

    if choice == SELL_CUSTOM_CALLBACK:
        return prompt_custom_token(ctx.session.goto(FlowStep.SELL_CUSTOM_TOKEN, flow))
    if not choice.startswith(SELL_TOKEN_PREFIX):
        return prompt_token_select(ctx.session)
    return _pick(ctx, flow, choice[len(SELL_TOKEN_PREFIX):])


async def custom_token(ctx: TurnContext) -> TurnResult:
    flow = ctx.flow_as(SellFlowState)
    address = ctx.value
    if not is_valid_address(address):
        raise ValidationError(
            f"bad token address {address!r}",
            user_message="Invalid token address format. Please provide a valid address.",
        )
    return _pick(ctx, flow, address)


async def enter_amount(ctx: TurnContext) -> TurnResult:
    flow = ctx.flow_as(SellFlowState)
    text = ctx.value
    token = flow.token_in

    if text.lower() == "max":
        amount = flow.token_balance
    else:
        if not is_valid_amount(text):
            raise ValidationError(
                f"bad amount {text!r}",
                user_message='Invalid amount format. Please enter a positive number or "max".',
            )
        amount = to_base_units(text, token.decimals)

    if amount > flow.token_balance:
        raise InsufficientFunds(
            f"amount {amount} > token balance {flow.token_balance}",
            user_message=(
                f"Insufficient balance. You only have "
                f"{from_base_units(flow.token_balance, token.decimals)} {token.symbol} available."
            ),
        )

    gas, quote = await price(ctx, token.address, NATIVE_TOKEN_ADDRESS, amount, token.decimals)
    flow = flow.model_copy(update={"amount": amount, "quote": quote, "gas": gas})
    return prompt_confirm(ctx.session.goto(FlowStep.SELL_CONFIRM, flow))


async def confirm(ctx: TurnContext) -> TurnResult:
    if ctx.value != "confirm_yes":
        return prompt_confirm(ctx.session)

    flow = ctx.flow_as(SellFlowState)
    wallet = await ctx.require_wallet(flow.wallet_address)
    token = flow.token_in
    logger.info(
        "sell_confirmed",
        token_in=token.address,
        amount=flow.amount,
        entry_balance=flow.token_balance,
    )

    receipt, swap = await execute_swap(
        ctx,
        wallet,
        token_in=token.address,
        token_out=NATIVE_TOKEN_ADDRESS,
        amount=flow.amount,
        decimals_in=token.decimals,
        gas=flow.gas,
        expected_out=flow.quote.out_amount,
    )

    sold = from_base_units(flow.amount, token.decimals)
    received = from_base_units(flow.quote.out_amount, NATIVE_DECIMALS)
    return TurnResult(
        response=swap_result(
            receipt.is_success,
            receipt.hash,
            f"You sold {sold} {token.symbol} for {received} {settings.native_symbol}",
            swap.price_impact,
        ),
        session=ctx.session.cleared(),
    )
