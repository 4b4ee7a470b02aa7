from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .requests import WireSettings


class Button(BaseModel):
    label: str = Field(description="Text shown on the button")
    callback: str = Field(description="Token sent back when the button is pressed")


class NewState(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_action: Optional[str] = Field(default=None, alias="currentAction")
    temp_data: Dict[str, Any] = Field(default_factory=dict, alias="tempData")
    settings: WireSettings = Field(default_factory=WireSettings)


class TurnResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response: str = Field(description="Text shown to the user")
    buttons: Optional[List[List[Button]]] = Field(default=None, description="Button rows")
    new_state: NewState = Field(alias="newState")


class ErrorResponse(BaseModel):
    response: str = Field(description="Error text")
