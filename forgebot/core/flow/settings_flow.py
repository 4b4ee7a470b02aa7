"""
Settings sub-flow: slippage tolerance and gas priority.

idle -> settings_slippage | settings_gas_priority -> idle
"""

from decimal import Decimal, InvalidOperation

import structlog

from forgebot.services.validators import is_valid_gas_priority, is_valid_slippage

from .errors import ValidationError
from .formatters import GAS_PRIORITY_LABELS, gas_priority_label
from .models import CANCEL_BUTTON_ROW, FlowStep, Session, TurnResult, button
from .services import TurnContext

logger = structlog.stdlib.get_logger("flow.settings")

SLIPPAGE_PRESETS = ("0.5", "1.0", "2.0")
SLIPPAGE_PREFIX = "slippage_"
GAS_PREFIX = "gas_"


def show(session: Session) -> TurnResult:
    current = session.settings
    return TurnResult(
        response=(
            "⚙️ Settings\n\n"
            f"Slippage Tolerance: {current.slippage_text}%\n"
            f"Gas Priority: {gas_priority_label(current.gas_priority)}\n\n"
            "Select a setting to change:"
        ),
        buttons=[
            [button("Slippage Tolerance", "settings_slippage")],
            [button("Gas Priority", "settings_gasPriority")],
            [button("⬅️ Back to Menu", "start")],
        ],
        session=session.cleared(),
    )


def prompt_slippage(session: Session) -> TurnResult:
    return TurnResult(
        response=(
            "⚙️ Slippage Tolerance\n\n"
            f"Current: {session.settings.slippage_text}%\n\n"
            "Choose a preset or type a value between 0 and 50:"
        ),
        buttons=[
            [button(f"{value}%", f"{SLIPPAGE_PREFIX}{value}") for value in SLIPPAGE_PRESETS],
            CANCEL_BUTTON_ROW,
        ],
        session=session,
    )


def prompt_gas(session: Session) -> TurnResult:
    return TurnResult(
        response=(
            "⚙️ Gas Priority\n\n"
            f"Current: {gas_priority_label(session.settings.gas_priority)}\n\n"
            "Choose how fast your transactions should confirm:"
        ),
        buttons=[
            [button(gas_priority_label(tier), f"{GAS_PREFIX}{tier}")] for tier in GAS_PRIORITY_LABELS
        ] + [CANCEL_BUTTON_ROW],
        session=session,
    )


async def open_menu(ctx: TurnContext) -> TurnResult:
    return show(ctx.session)


async def choose(ctx: TurnContext) -> TurnResult:
    """Idle callbacks ``settings_slippage`` and ``settings_gasPriority``."""
    session = ctx.session.cleared()
    if ctx.value == "settings_gasPriority":
        return prompt_gas(session.goto(FlowStep.SETTINGS_GAS_PRIORITY))
    return prompt_slippage(session.goto(FlowStep.SETTINGS_SLIPPAGE))


async def enter_slippage(ctx: TurnContext) -> TurnResult:
    raw = ctx.value
    if raw.startswith(SLIPPAGE_PREFIX):
        raw = raw[len(SLIPPAGE_PREFIX):]
    raw = raw.rstrip("%").strip()

    try:
        value = Decimal(raw)
    except InvalidOperation:
        value = None
    if value is None or not value.is_finite() or not is_valid_slippage(value):
        raise ValidationError(
            f"bad slippage {ctx.value!r}",
            user_message="Invalid slippage. Enter a number greater than 0 and at most 50.",
        )

    updated = ctx.session.settings.model_copy(update={"slippage": value})
    await ctx.services.store.save_user_settings(ctx.user_id, updated)
    logger.info("settings_updated", slippage=str(value))
    return TurnResult(
        response=f"✅ Slippage Tolerance set to {updated.slippage_text}%.",
        session=ctx.session.cleared().with_settings(updated),
    )


async def enter_gas(ctx: TurnContext) -> TurnResult:
    raw = ctx.value
    if raw.startswith(GAS_PREFIX):
        raw = raw[len(GAS_PREFIX):]
    tier = raw.lower()

    if not is_valid_gas_priority(tier):
        return prompt_gas(ctx.session)

    updated = ctx.session.settings.model_copy(update={"gas_priority": tier})
    await ctx.services.store.save_user_settings(ctx.user_id, updated)
    logger.info("settings_updated", gas_priority=tier)
    return TurnResult(
        response=f"✅ Gas Priority set to {gas_priority_label(tier)}.",
        session=ctx.session.cleared().with_settings(updated),
    )
