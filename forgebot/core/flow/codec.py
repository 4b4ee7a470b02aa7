"""Translation between the client-carried wire state and a typed ``Session``."""

from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from forgebot.types.requests import WireSettings

from .errors import SessionExpired
from .models import FLOW_STATE_TYPES, REQUIRED_FIELDS, FlowStep, Session, UserSettings


def parse_step(current_action: Optional[str]) -> Optional[FlowStep]:
    if not current_action:
        return None
    try:
        return FlowStep(current_action)
    except ValueError as exc:
        raise SessionExpired(f"unknown current action {current_action!r}") from exc


def decode_session(
    user_id: str,
    current_action: Optional[str],
    temp_data: Optional[Dict[str, Any]],
    wire_settings: Optional[WireSettings] = None,
    stored_settings: Optional[UserSettings] = None,
) -> Session:
    """Build a typed session, checking the flow state matches the step.

    Settings sent by the client win over stored ones; stored ones win over
    defaults.

    Raises:
        SessionExpired: unknown step, a flow state of the wrong family, or a
            required field missing for the step.
    """

    if wire_settings is not None and (wire_settings.slippage is not None or wire_settings.gas_priority):
        user_settings = UserSettings.from_wire(wire_settings)
    else:
        user_settings = stored_settings or UserSettings.defaults()

    step = parse_step(current_action)
    if step is None:
        # Stale tempData on an idle session is discarded
        return Session(user_id=user_id, settings=user_settings)

    state_type = FLOW_STATE_TYPES.get(step.family)
    if state_type is None:
        return Session(user_id=user_id, current_action=step, settings=user_settings)

    data = dict(temp_data or {})
    if data.get("family", step.family.value) != step.family.value:
        raise SessionExpired(f"{step.value} carries {data.get('family')} state")

    missing = [name for name in REQUIRED_FIELDS[step] if data.get(name) in (None, "")]
    if missing:
        raise SessionExpired(f"{step.value} is missing {', '.join(missing)}")

    try:
        flow = state_type.model_validate(data)
    except PydanticValidationError as exc:
        raise SessionExpired(f"{step.value} state is malformed: {exc.error_count()} errors") from exc

    return Session(user_id=user_id, current_action=step, flow=flow, settings=user_settings)


def encode_session(session: Session) -> Tuple[Optional[str], Dict[str, Any], WireSettings]:
    """Wire form: ``(currentAction, tempData, settings)``; idle always carries ``{}``."""

    if session.current_action is None or session.flow is None:
        temp_data: Dict[str, Any] = {}
    else:
        temp_data = session.flow.model_dump(mode="json", exclude_none=True)
    action = session.current_action.value if session.current_action else None
    return action, temp_data, session.settings.to_wire()
