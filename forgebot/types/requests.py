from decimal import Decimal
from typing import Annotated, Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer


# Slippage goes out as a JSON number, the way clients send it.
Percent = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class WireSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    slippage: Optional[Percent] = Field(default=None, description="Slippage tolerance in percent")
    gas_priority: Optional[str] = Field(
        default=None, alias="gasPriority", description="Gas priority tier: low, medium or high"
    )


class TurnRequest(BaseModel):
    """State the client carries between turns, echoed back from the last ``newState``."""

    model_config = ConfigDict(populate_by_name=True)

    fid: Optional[Union[int, str]] = Field(default=None, description="Client user identifier")
    current_action: Optional[str] = Field(default=None, alias="currentAction")
    temp_data: Optional[Dict[str, Any]] = Field(default=None, alias="tempData")
    settings: Optional[WireSettings] = Field(default=None)
    username: Optional[str] = Field(default=None)
    display_name: Optional[str] = Field(default=None, alias="displayName")


class ActionRequest(TurnRequest):
    action: str = Field(default="", description="Command (leading '/') or free text")


class CallbackRequest(TurnRequest):
    callback: str = Field(default="", description="Button token")
