"""User-facing text for the chat flows."""

from typing import Dict, Optional

from forgebot.config import settings
from forgebot.core.tokens import TokenInfo, is_native
from forgebot.db.models import TransactionRecord
from forgebot.services.units import format_amount

GAS_PRIORITY_LABELS = {
    "low": "🐢 Low (slower, cheaper)",
    "medium": "🚶 Medium (balanced)",
    "high": "🚀 High (faster, expensive)",
}

CANCELLED_MESSAGE = "Operation cancelled."
GENERIC_FAILURE = "❌ An error occurred. Please try again later."
NO_WALLET_MESSAGE = "❌ You don't have a wallet yet. Create or import one in the app first."


def help_text() -> str:
    symbol = settings.native_symbol
    return (
        "📋 Commands\n\n"
        "/start - Main menu\n"
        f"/buy - Buy a token with {symbol}\n"
        f"/sell - Sell a token for {symbol}\n"
        f"/withdraw - Send {symbol} to another address\n"
        "/balance - Show your balances\n"
        "/deposit - Show your deposit address\n"
        "/wallet - Show your wallet\n"
        "/history - Your recent transactions\n"
        "/settings - Slippage and gas priority\n"
        "/cancel - Cancel the current operation\n"
        "/help - This message"
    )


def format_native(wei: int) -> str:
    return format_amount(wei, 18, 6)


def gas_priority_label(priority: str) -> str:
    return GAS_PRIORITY_LABELS.get(priority, priority)


def explorer_link(tx_hash: str) -> str:
    return f"{settings.explorer_tx_url}{tx_hash}"


def transaction_summary(
    from_symbol: str,
    to_symbol: str,
    from_amount: str,
    to_amount: str,
    gas_priority: str,
    slippage: str,
) -> str:
    return (
        "🔄 Swap Summary\n\n"
        f"From: {from_amount} {from_symbol}\n"
        f"To (estimated): {to_amount} {to_symbol}\n"
        f"Slippage tolerance: {slippage}%\n"
        f"Gas priority: {gas_priority_label(gas_priority)}\n\n"
        "Confirm to execute this trade."
    )


def withdrawal_summary(amount_wei: int, destination: str, max_fee_wei: int) -> str:
    symbol = settings.native_symbol
    return (
        f"📤 Confirm Withdrawal\n\n"
        f"Amount: {format_native(amount_wei)} {symbol}\n"
        f"To: {destination}\n"
        f"Max network fee: {format_native(max_fee_wei)} {symbol}\n\n"
        "Confirm to send."
    )


def swap_result(
    success: bool,
    tx_hash: str,
    summary: str,
    price_impact: Optional[str] = None,
) -> str:
    if not success:
        return f"❌ Transaction Failed\n\nView on Block Explorer: {explorer_link(tx_hash)}"
    lines = [f"✅ Transaction Successful\n\n{summary}"]
    if price_impact:
        lines.append(f"Price impact: {price_impact}")
    lines.append(f"View on Block Explorer: {explorer_link(tx_hash)}")
    return "\n".join(lines)


def withdrawal_result(success: bool, tx_hash: str, amount_wei: int, destination: str) -> str:
    if not success:
        return f"❌ Withdrawal Failed.\nTx: {explorer_link(tx_hash)}"
    return (
        f"✅ Withdrawal Successful!\n"
        f"Amount: {format_native(amount_wei)} {settings.native_symbol}\n"
        f"To: {destination}\n"
        f"Tx: {explorer_link(tx_hash)}"
    )


def short_address(address: str) -> str:
    return f"{address[:6]}…{address[-4:]}"


HISTORY_HEADINGS = {
    "buy": "🛒 Buy",
    "sell": "💱 Sell",
    "swap": "🔄 Swap",
    "withdraw": "📤 Withdraw",
}


def history_entry(record: TransactionRecord, tokens: Dict[str, Optional[TokenInfo]]) -> str:
    """One history line. ``tokens`` maps lowercased addresses to metadata, None if unreadable."""

    def amount(value: int, token: str) -> str:
        if is_native(token):
            return f"{format_native(value)} {settings.native_symbol}"
        info = tokens.get(token.lower())
        if info is None:
            return f"? {short_address(token)}"
        return f"{format_amount(value, info.decimals)} {info.symbol}"

    if record.kind == "withdraw":
        what = f"{amount(record.amount_in, record.token_in)} to {short_address(record.token_out)}"
    else:
        what = f"{amount(record.amount_in, record.token_in)} → {amount(record.amount_out, record.token_out)}"

    mark = "✅" if record.status == "success" else "❌"
    return (
        f"{mark} {HISTORY_HEADINGS.get(record.kind, record.kind.capitalize())} {what}\n"
        f"{record.created_at:%Y-%m-%d %H:%M} UTC · {explorer_link(record.hash)}"
    )
