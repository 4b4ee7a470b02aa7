"""Shared quote and execution steps for the Buy and Sell flows."""

from typing import Tuple

import structlog

from forgebot.core.execution.models import GasParams, Receipt, WalletHandle
from forgebot.core.execution.tx_builder import build_swap
from forgebot.core.swap.allowance import ensure_allowance
from forgebot.core.swap.models import Quote, SwapTransaction
from forgebot.core.tokens import is_native
from forgebot.db.models import TransactionRecord
from forgebot.services.units import from_base_units

from .errors import ExternalServiceError
from .formatters import explorer_link
from .services import TurnContext

logger = structlog.stdlib.get_logger("flow.trade")


async def price(
    ctx: TurnContext,
    token_in: str,
    token_out: str,
    amount: int,
    decimals_in: int,
) -> Tuple[GasParams, Quote]:
    """Gas for the user's priority, then a quote for exactly ``amount``."""
    services = ctx.services
    gas = await services.gas.gas_params(ctx.session.settings.gas_priority)
    amount_text = from_base_units(amount, decimals_in)
    quote = await services.read(
        "quote",
        lambda: services.quotes.quote(token_in, token_out, amount_text, gas.price_gwei),
    )
    return gas, quote


async def execute_swap(
    ctx: TurnContext,
    wallet: WalletHandle,
    token_in: str,
    token_out: str,
    amount: int,
    decimals_in: int,
    gas: GasParams,
    expected_out: int,
) -> Tuple[Receipt, SwapTransaction]:
    """Fetch fresh calldata, approve if needed, submit once, record the outcome."""
    services = ctx.services
    slippage = ctx.session.settings.slippage_text
    amount_text = from_base_units(amount, decimals_in)

    swap = await services.read(
        "swap",
        lambda: services.quotes.swap(
            token_in, token_out, amount_text, gas.price_gwei, slippage, wallet.address
        ),
    )

    await ensure_allowance(
        services.chain,
        services.executor,
        wallet,
        token=token_in,
        owner=wallet.address,
        spender=swap.to,
        required=amount,
        fees=gas,
        retry=services.retry,
    )

    receipt = await services.executor.execute(
        wallet, build_swap(swap.to, swap.data, swap.value, gas, description=f"Swap {amount_text}")
    )
    await record_transaction(
        ctx,
        TransactionRecord(
            hash=receipt.hash,
            user_id=ctx.user_id,
            from_address=wallet.address,
            token_in=token_in,
            token_out=token_out,
            amount_in=amount,
            status=receipt.status.value,
            amount_out=expected_out,
            gas_used=receipt.gas_used,
            kind="buy" if is_native(token_in) else "sell" if is_native(token_out) else "swap",
        ),
    )
    return receipt, swap


async def record_transaction(ctx: TurnContext, record: TransactionRecord) -> None:
    """Persist before anything is reported; a failure still shows the hash."""
    try:
        await ctx.services.store.save_transaction(record)
    except ExternalServiceError as exc:
        logger.error("record_failed", tx_hash=record.hash, status=record.status, error=exc.message)
        raise ExternalServiceError(
            f"could not record {record.hash}: {exc.message}",
            user_message=(
                "⚠️ Your transaction was sent but could not be saved to your history.\n"
                f"Tx: {explorer_link(record.hash)}"
            ),
            provider="store",
        ) from exc
