"""
Stateless menu commands: welcome, help, balances, deposit address, wallet and
transaction history.

None of these start a flow; they answer from idle and leave the session idle.
"""

from typing import Dict, Optional

import structlog

from forgebot.config import settings
from forgebot.core.tokens import TokenInfo
from forgebot.services.units import format_amount

from .errors import ExternalServiceError
from .formatters import NO_WALLET_MESSAGE, format_native, help_text, history_entry
from .models import ButtonRows, TurnResult, button
from .sell import sellable_tokens
from .services import TurnContext

logger = structlog.stdlib.get_logger("flow.menu")

MAIN_MENU_BUTTONS: ButtonRows = [
    [button("💰 Balance", "check_balance"), button("📥 Deposit", "deposit")],
    [button("🛒 Buy", "buy_token"), button("💱 Sell", "sell_token")],
    [button("📤 Withdraw", "withdraw"), button("⚙️ Settings", "open_settings")],
    [button("📜 History", "check_history"), button("❓ Help", "help")],
]

IDLE_HINT = "Use /start to open the menu or /help to see what I can do."
HISTORY_LIMIT = 10


async def start(ctx: TurnContext) -> TurnResult:
    """Welcome screen; stored settings replace whatever the client carried."""
    session = ctx.session.cleared()
    stored = await ctx.services.read(
        "user_settings", lambda: ctx.services.store.get_user_settings(ctx.user_id)
    )
    if stored is not None:
        session = session.with_settings(stored)

    wallet = await ctx.services.wallets.get_wallet(ctx.user_id)
    if wallet is None:
        return TurnResult(f"👋 Welcome!\n\n{NO_WALLET_MESSAGE}", session)

    return TurnResult(
        response=(
            "👋 Welcome!\n\n"
            f"Trade tokens on {settings.chain_slug.capitalize()} right from this chat.\n\n"
            f"Your wallet: {wallet.address}\n\n"
            "What would you like to do?"
        ),
        buttons=MAIN_MENU_BUTTONS,
        session=session,
    )


async def help_message(ctx: TurnContext) -> TurnResult:
    return TurnResult(help_text(), ctx.session)


async def balance(ctx: TurnContext) -> TurnResult:
    wallet = await ctx.services.wallets.get_wallet(ctx.user_id)
    if wallet is None:
        return TurnResult(NO_WALLET_MESSAGE, ctx.session)

    native = await ctx.services.read(
        "native_balance", lambda: ctx.services.chain.get_native_balance(wallet.address)
    )
    tokens = await sellable_tokens(ctx.services, ctx.user_id, wallet)

    lines = [
        "💰 Your Balances\n",
        f"{settings.native_symbol}: {format_native(native)}",
    ]
    lines.extend(f"{token.symbol}: {format_amount(token.balance, token.decimals)}" for token in tokens)
    return TurnResult("\n".join(lines), ctx.session)


async def deposit(ctx: TurnContext) -> TurnResult:
    wallet = await ctx.services.wallets.get_wallet(ctx.user_id)
    if wallet is None:
        return TurnResult(NO_WALLET_MESSAGE, ctx.session)
    return TurnResult(
        response=(
            "📥 Deposit\n\n"
            f"Send {settings.native_symbol} or tokens on {settings.chain_slug.capitalize()} to:\n\n"
            f"{wallet.address}\n\n"
            "Only send assets on this network."
        ),
        session=ctx.session,
    )


async def wallet_info(ctx: TurnContext) -> TurnResult:
    wallet = await ctx.services.wallets.get_wallet(ctx.user_id)
    if wallet is None:
        return TurnResult(NO_WALLET_MESSAGE, ctx.session)
    return TurnResult(
        response=(
            "👛 Your Wallet\n\n"
            f"Address: {wallet.address}\n"
            f"Network: {settings.chain_slug.capitalize()}\n"
            "Type: Custodial, signed by the remote signing service\n\n"
            "Use /deposit to fund it or /balance to see what it holds."
        ),
        session=ctx.session,
    )


async def history(ctx: TurnContext) -> TurnResult:
    """The user's most recent recorded transactions, newest first.

    Token metadata is read once per token; an unreadable token is shown by
    address instead of failing the whole listing.
    """
    records = await ctx.services.read(
        "transactions", lambda: ctx.services.store.get_transactions_by_user(ctx.user_id)
    )
    if not records:
        return TurnResult("📜 No transactions yet. Use /buy to make your first trade.", ctx.session)

    recent = sorted(records, key=lambda record: record.created_at, reverse=True)[:HISTORY_LIMIT]
    tokens: Dict[str, Optional[TokenInfo]] = {}
    for record in recent:
        for token in record.tokens:
            if token.lower() not in tokens:
                tokens[token.lower()] = await _token_info(ctx, token)

    entries = [history_entry(record, tokens) for record in recent]
    return TurnResult("📜 Recent Transactions\n\n" + "\n\n".join(entries), ctx.session)


async def _token_info(ctx: TurnContext, token: str) -> Optional[TokenInfo]:
    try:
        return await ctx.services.read("token_info", lambda: ctx.services.chain.get_token_info(token))
    except ExternalServiceError as exc:
        logger.warning("history_token_unreadable", token=token, error=exc.message)
        return None


async def idle_text(ctx: TurnContext) -> TurnResult:
    return TurnResult(IDLE_HINT, ctx.session)


async def unknown_command(ctx: TurnContext) -> TurnResult:
    logger.info("unknown_command", command=ctx.value)
    return TurnResult(f"Unknown command: {ctx.value}\n\n{IDLE_HINT}", ctx.session)
