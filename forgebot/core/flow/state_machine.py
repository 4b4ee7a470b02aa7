"""
Flow State Machine

Routes every inbound turn through an explicit ``(step, input kind) -> handler``
table, with global cancel and command handling on top, and turns flow errors
into user-facing text plus the session to hand back.

The table is checked when the engine is built: every state must route all
three input kinds to a coroutine handler, and every step must have a prompt.
"""

import inspect
from typing import Awaitable, Callable, Dict, Optional, Set, Tuple

import structlog

from forgebot.logging_config import bind_turn_context

from . import buy, menu, sell, settings_flow, withdraw
from .codec import decode_session
from .errors import ExternalServiceError, FlowError, SessionExpired
from .formatters import CANCELLED_MESSAGE, GENERIC_FAILURE
from .locks import SessionLocks
from .models import FLOW_STATE_TYPES, FlowStep, InputKind, Session, Turn, TurnResult, UserSettings
from .services import FlowServices, TurnContext

logger = structlog.stdlib.get_logger("flow.engine")

Handler = Callable[[TurnContext], Awaitable[TurnResult]]
Prompt = Callable[[Session], TurnResult]
TransitionTable = Dict[Tuple[Optional[FlowStep], InputKind], Handler]

IDLE = None

# Commands that start over: any active flow is abandoned first
FLOW_COMMANDS: Dict[str, Handler] = {
    "/start": menu.start,
    "/buy": buy.start,
    "/sell": sell.start,
    "/withdraw": withdraw.start,
    "/settings": settings_flow.open_menu,
}

# Commands that answer without touching the session
INFO_COMMANDS: Dict[str, Handler] = {
    "/help": menu.help_message,
    "/balance": menu.balance,
    "/deposit": menu.deposit,
    "/wallet": menu.wallet_info,
    "/history": menu.history,
}

IDLE_CALLBACKS: Dict[str, Handler] = {
    "start": menu.start,
    "buy_token": buy.start,
    "sell_token": sell.start,
    "withdraw": withdraw.start,
    "open_settings": settings_flow.open_menu,
    "settings_slippage": settings_flow.choose,
    "settings_gasPriority": settings_flow.choose,
    "check_balance": menu.balance,
    "deposit": menu.deposit,
    "check_history": menu.history,
    "help": menu.help_message,
}

CANCEL_COMMANDS = frozenset({"/cancel"})
CANCEL_CALLBACKS = frozenset({"cancel", "/cancel"})

ENTRY_STEPS: Set[Optional[FlowStep]] = {
    FlowStep.BUY_TOKEN_SELECT,
    FlowStep.SELL_TOKEN_SELECT,
    FlowStep.WITHDRAW_ADDRESS_ENTRY,
    FlowStep.SETTINGS_SLIPPAGE,
    FlowStep.SETTINGS_GAS_PRIORITY,
}

# Where a handler may move the session from each state, besides staying put.
# Entry steps and idle are always reachable: commands restart and errors reset.
TRANSITIONS: Dict[Optional[FlowStep], Set[Optional[FlowStep]]] = {
    IDLE: set(),
    FlowStep.BUY_TOKEN_SELECT: {FlowStep.BUY_CUSTOM_TOKEN, FlowStep.BUY_AMOUNT_ENTRY},
    FlowStep.BUY_CUSTOM_TOKEN: {FlowStep.BUY_AMOUNT_ENTRY},
    FlowStep.BUY_AMOUNT_ENTRY: {FlowStep.BUY_CONFIRM},
    FlowStep.BUY_CONFIRM: set(),
    FlowStep.SELL_TOKEN_SELECT: {FlowStep.SELL_CUSTOM_TOKEN, FlowStep.SELL_AMOUNT_ENTRY},
    FlowStep.SELL_CUSTOM_TOKEN: {FlowStep.SELL_AMOUNT_ENTRY},
    FlowStep.SELL_AMOUNT_ENTRY: {FlowStep.SELL_CONFIRM},
    FlowStep.SELL_CONFIRM: set(),
    FlowStep.WITHDRAW_ADDRESS_ENTRY: {FlowStep.WITHDRAW_AMOUNT_ENTRY},
    FlowStep.WITHDRAW_AMOUNT_ENTRY: {FlowStep.WITHDRAW_CONFIRM},
    FlowStep.WITHDRAW_CONFIRM: set(),
    FlowStep.SETTINGS_SLIPPAGE: set(),
    FlowStep.SETTINGS_GAS_PRIORITY: set(),
}


DEFAULT_PROMPTS: Dict[FlowStep, Prompt] = {
    FlowStep.BUY_TOKEN_SELECT: buy.prompt_token_select,
    FlowStep.BUY_CUSTOM_TOKEN: buy.prompt_custom_token,
    FlowStep.BUY_AMOUNT_ENTRY: buy.prompt_amount,
    FlowStep.BUY_CONFIRM: buy.prompt_confirm,
    FlowStep.SELL_TOKEN_SELECT: sell.prompt_token_select,
    FlowStep.SELL_CUSTOM_TOKEN: sell.prompt_custom_token,
    FlowStep.SELL_AMOUNT_ENTRY: sell.prompt_amount,
    FlowStep.SELL_CONFIRM: sell.prompt_confirm,
    FlowStep.WITHDRAW_ADDRESS_ENTRY: withdraw.prompt_address,
    FlowStep.WITHDRAW_AMOUNT_ENTRY: withdraw.prompt_amount,
    FlowStep.WITHDRAW_CONFIRM: withdraw.prompt_confirm,
    FlowStep.SETTINGS_SLIPPAGE: settings_flow.prompt_slippage,
    FlowStep.SETTINGS_GAS_PRIORITY: settings_flow.prompt_gas,
}


class InvalidTransitionTable(Exception):
    """The transition table leaves a state unroutable."""


class InvalidTransitionError(Exception):
    """A handler moved the session somewhere it may not go."""

    def __init__(
        self,
        from_step: Optional[FlowStep],
        to_step: Optional[FlowStep],
        message: Optional[str] = None,
    ):
        self.from_step = from_step
        self.to_step = to_step
        self.message = message or (
            f"Cannot transition from {_step_name(from_step)} to {_step_name(to_step)}"
        )
        super().__init__(self.message)


def _step_name(step: Optional[FlowStep]) -> str:
    return step.value if step is not None else "idle"


async def idle_callback(ctx: TurnContext) -> TurnResult:
    handler = IDLE_CALLBACKS.get(ctx.value)
    if handler is None:
        return await menu.idle_text(ctx)
    return await handler(ctx)


def build_transition_table(route_command: Handler, reprompt: Handler) -> TransitionTable:
    """The default table. Commands in every state go to ``route_command``;
    input of the wrong shape for a step goes to ``reprompt``."""
    C, B, T = InputKind.COMMAND, InputKind.CALLBACK, InputKind.TEXT
    table: TransitionTable = {
        (IDLE, C): route_command,
        (IDLE, B): idle_callback,
        (IDLE, T): menu.idle_text,
        # Buy
        (FlowStep.BUY_TOKEN_SELECT, B): buy.select_token,
        (FlowStep.BUY_TOKEN_SELECT, T): reprompt,
        (FlowStep.BUY_CUSTOM_TOKEN, B): reprompt,
        (FlowStep.BUY_CUSTOM_TOKEN, T): buy.custom_token,
        (FlowStep.BUY_AMOUNT_ENTRY, B): reprompt,
        (FlowStep.BUY_AMOUNT_ENTRY, T): buy.enter_amount,
        (FlowStep.BUY_CONFIRM, B): buy.confirm,
        (FlowStep.BUY_CONFIRM, T): reprompt,
        # Sell
        (FlowStep.SELL_TOKEN_SELECT, B): sell.select_token,
        (FlowStep.SELL_TOKEN_SELECT, T): reprompt,
        (FlowStep.SELL_CUSTOM_TOKEN, B): reprompt,
        (FlowStep.SELL_CUSTOM_TOKEN, T): sell.custom_token,
        (FlowStep.SELL_AMOUNT_ENTRY, B): reprompt,
        (FlowStep.SELL_AMOUNT_ENTRY, T): sell.enter_amount,
        (FlowStep.SELL_CONFIRM, B): sell.confirm,
        (FlowStep.SELL_CONFIRM, T): reprompt,
        # Withdraw
        (FlowStep.WITHDRAW_ADDRESS_ENTRY, B): reprompt,
        (FlowStep.WITHDRAW_ADDRESS_ENTRY, T): withdraw.enter_address,
        (FlowStep.WITHDRAW_AMOUNT_ENTRY, B): reprompt,
        (FlowStep.WITHDRAW_AMOUNT_ENTRY, T): withdraw.enter_amount,
        (FlowStep.WITHDRAW_CONFIRM, B): withdraw.confirm,
        (FlowStep.WITHDRAW_CONFIRM, T): reprompt,
        # Settings
        (FlowStep.SETTINGS_SLIPPAGE, B): settings_flow.enter_slippage,
        (FlowStep.SETTINGS_SLIPPAGE, T): settings_flow.enter_slippage,
        (FlowStep.SETTINGS_GAS_PRIORITY, B): settings_flow.enter_gas,
        (FlowStep.SETTINGS_GAS_PRIORITY, T): reprompt,
    }
    for step in FlowStep:
        table[(step, C)] = route_command
    return table


def validate_table(table: TransitionTable, prompts: Dict[FlowStep, Prompt]) -> None:
    """Raise ``InvalidTransitionTable`` if any state cannot route some input."""
    problems = []
    for step in (IDLE, *FlowStep):
        for kind in InputKind:
            handler = table.get((step, kind))
            if handler is None:
                problems.append(f"{_step_name(step)}/{kind.value}: no handler")
            elif not inspect.iscoroutinefunction(handler):
                problems.append(f"{_step_name(step)}/{kind.value}: {handler!r} is not async")
        if step is not None and step not in prompts:
            problems.append(f"{step.value}: no prompt")
    if problems:
        raise InvalidTransitionTable("; ".join(problems))


class FlowEngine:
    """
    Per-user multi-turn transaction flow engine.

    ``handle_turn`` is ``(state, input) -> (state', output)``: the session
    arrives on the turn and leaves on the result. The engine keeps no
    per-user state of its own apart from the turn locks.
    """

    def __init__(
        self,
        services: FlowServices,
        table: Optional[TransitionTable] = None,
        prompts: Optional[Dict[FlowStep, Prompt]] = None,
        locks: Optional[SessionLocks] = None,
    ):
        self.services = services
        self._prompts = prompts if prompts is not None else dict(DEFAULT_PROMPTS)
        self._table = (
            table if table is not None else build_transition_table(self._route_command, self._reprompt)
        )
        self._locks = locks or SessionLocks()
        validate_table(self._table, self._prompts)

    async def handle_turn(self, turn: Turn) -> TurnResult:
        async with self._locks.hold(turn.user_id):
            bind_turn_context(turn.user_id, turn.current_action)
            try:
                session = await self._decode(turn)
            except SessionExpired as exc:
                logger.info("session_expired", reason=exc.message)
                session = Session(user_id=turn.user_id, settings=UserSettings.from_wire(turn.settings))
                if turn.kind != InputKind.COMMAND:
                    return TurnResult(_with_marker(exc.user_message), session)
            return await self._run(TurnContext(self.services, session, turn))

    async def _decode(self, turn: Turn) -> Session:
        wire = turn.settings
        stored = None
        if wire is None or (wire.slippage is None and not wire.gas_priority):
            stored = await self._stored_settings(turn.user_id)
        return decode_session(turn.user_id, turn.current_action, turn.temp_data, wire, stored)

    async def _stored_settings(self, user_id: str) -> Optional[UserSettings]:
        try:
            return await self.services.read(
                "user_settings", lambda: self.services.store.get_user_settings(user_id)
            )
        except ExternalServiceError as exc:
            logger.warning("stored_settings_unavailable", error=exc.message)
            return None

    async def _run(self, ctx: TurnContext) -> TurnResult:
        session = ctx.session
        step = session.current_action
        try:
            if self._is_cancel(ctx):
                if step is not None:
                    logger.info("flow_cancelled", step=step.value)
                result = TurnResult(CANCELLED_MESSAGE, session.cleared())
            else:
                handler = self._table[(step, ctx.turn.kind)]
                result = await handler(ctx)
            self._check_transition(step, result.session)
        except FlowError as exc:
            return self._on_flow_error(exc, session)
        except Exception:
            logger.exception("turn_failed", step=_step_name(step))
            return TurnResult(GENERIC_FAILURE, session.cleared())

        if result.session.current_action != step:
            logger.info(
                "flow_transition",
                from_step=_step_name(step),
                to_step=_step_name(result.session.current_action),
            )
        return result

    def _on_flow_error(self, exc: FlowError, session: Session) -> TurnResult:
        step = session.current_action
        if exc.recoverable and step is not None:
            logger.info("input_rejected", code=exc.code, step=step.value, reason=exc.message)
            prompt = self._prompts[step](session)
            return TurnResult(
                f"{_with_marker(exc.user_message)}\n\n{prompt.response}",
                session,
                prompt.buttons,
            )

        logger.warning(
            "flow_aborted",
            code=exc.code,
            step=_step_name(step),
            error=exc.message,
            provider=getattr(exc, "provider", None),
            tx_hash=getattr(exc, "tx_hash", None),
        )
        return TurnResult(_with_marker(exc.user_message), session.cleared())

    def _is_cancel(self, ctx: TurnContext) -> bool:
        kind, value = ctx.turn.kind, ctx.value
        if kind == InputKind.COMMAND:
            command = value.split()[0].lower() if value else ""
            return command in CANCEL_COMMANDS
        if kind == InputKind.CALLBACK:
            if value in CANCEL_CALLBACKS:
                return True
            step = ctx.session.current_action
            return step is not None and step.is_confirm and value == "confirm_no"
        return False

    def _check_transition(self, step: Optional[FlowStep], after: Session) -> None:
        to_step = after.current_action
        allowed = TRANSITIONS.get(step, set()) | ENTRY_STEPS | {IDLE, step}
        if to_step not in allowed:
            raise InvalidTransitionError(step, to_step)

        if to_step is None:
            if after.flow is not None:
                raise InvalidTransitionError(step, to_step, "idle session still carries flow state")
            return
        expected = FLOW_STATE_TYPES.get(to_step.family)
        if expected is None:
            if after.flow is not None:
                raise InvalidTransitionError(step, to_step, f"{to_step.value} carries flow state")
        elif not isinstance(after.flow, expected):
            raise InvalidTransitionError(
                step, to_step, f"{to_step.value} needs {expected.__name__}, got {type(after.flow).__name__}"
            )

    async def _route_command(self, ctx: TurnContext) -> TurnResult:
        command = ctx.value.split()[0].lower() if ctx.value else ""
        step = ctx.session.current_action

        handler = FLOW_COMMANDS.get(command)
        if handler is not None:
            if step is not None:
                logger.info("flow_abandoned", step=step.value, command=command)
            return await handler(ctx.with_session(ctx.session.cleared()))

        handler = INFO_COMMANDS.get(command)
        if handler is not None:
            return await handler(ctx)

        if step is None:
            return await menu.unknown_command(ctx)
        return await self._reprompt(ctx)

    async def _reprompt(self, ctx: TurnContext) -> TurnResult:
        step = ctx.session.current_action
        if step is None:
            return await menu.idle_text(ctx)
        return self._prompts[step](ctx.session)


def _with_marker(message: str) -> str:
    if message.startswith(("❌", "⚠️", "✅")):
        return message
    return f"❌ {message}"
