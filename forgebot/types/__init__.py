from .base_units import BaseUnits
from .requests import ActionRequest, CallbackRequest, TurnRequest, WireSettings
from .responses import Button, ErrorResponse, NewState, TurnResponse

__all__ = [
    "BaseUnits",
    "TurnRequest",
    "ActionRequest",
    "CallbackRequest",
    "WireSettings",
    "Button",
    "NewState",
    "TurnResponse",
    "ErrorResponse",
]
