"""
Turn endpoints: ``POST /api/action`` (commands and free text) and
``POST /api/callback`` (button presses).

The client carries the session between turns and echoes the last
``newState`` back on the next request.
"""

from typing import Optional, Union

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.execution.gateway import SigningServiceGateway
from ..core.flow.codec import encode_session
from ..core.flow.models import Turn, TurnResult
from ..core.flow.services import FlowServices
from ..core.flow.state_machine import FlowEngine
from ..core.recovery import RetryConfig
from ..db.store import get_store
from ..providers.gas import GasTierProvider
from ..providers.openocean import OpenOceanProvider
from ..providers.rpc import get_rpc_provider
from ..types.requests import ActionRequest, CallbackRequest, TurnRequest
from ..types.responses import ErrorResponse, NewState, TurnResponse

logger = structlog.stdlib.get_logger("api.action")

router = APIRouter(prefix="/api")

MISSING_FID_MESSAGE = "User FID is missing from request."

_engine: Optional[FlowEngine] = None


def build_flow_services() -> FlowServices:
    """Wire the configured adapters into the capabilities the flows use."""
    rpc = get_rpc_provider()
    store = get_store()
    retry = RetryConfig.from_settings()
    return FlowServices(
        wallets=store,
        chain=rpc,
        quotes=OpenOceanProvider(),
        gas=GasTierProvider(rpc, retry=retry),
        executor=SigningServiceGateway(rpc),
        store=store,
        retry=retry,
    )


def get_engine() -> FlowEngine:
    """Get the flow engine singleton."""
    global _engine
    if _engine is None:
        _engine = FlowEngine(build_flow_services())
    return _engine


def _user_id(fid: Optional[Union[int, str]]) -> Optional[str]:
    if fid is None:
        return None
    value = str(fid).strip()
    return value or None


def _missing_fid() -> JSONResponse:
    return JSONResponse(status_code=401, content=ErrorResponse(response=MISSING_FID_MESSAGE).model_dump())


def _state_kwargs(req: TurnRequest) -> dict:
    return {
        "current_action": req.current_action,
        "temp_data": req.temp_data or {},
        "settings": req.settings,
    }


def to_response(result: TurnResult) -> TurnResponse:
    action, temp_data, wire_settings = encode_session(result.session)
    return TurnResponse(
        response=result.response,
        buttons=result.buttons,
        new_state=NewState(current_action=action, temp_data=temp_data, settings=wire_settings),
    )


def _render(result: TurnResult) -> JSONResponse:
    return JSONResponse(content=to_response(result).model_dump(by_alias=True, mode="json"))


@router.post("/action")
async def post_action(req: ActionRequest, engine: FlowEngine = Depends(get_engine)):
    """Handle a command or free-text message."""
    user_id = _user_id(req.fid)
    if user_id is None:
        return _missing_fid()

    result = await engine.handle_turn(Turn.from_action(user_id, req.action, **_state_kwargs(req)))
    return _render(result)


@router.post("/callback")
async def post_callback(req: CallbackRequest, engine: FlowEngine = Depends(get_engine)):
    """Handle a button press."""
    user_id = _user_id(req.fid)
    if user_id is None:
        return _missing_fid()

    result = await engine.handle_turn(Turn.from_callback(user_id, req.callback, **_state_kwargs(req)))
    return _render(result)
