"""
Flow Models

Data models for the per-user transaction flows: steps, typed flow state,
sessions, and the input/output of a single turn.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

from forgebot.config import settings
from forgebot.core.execution.models import GasParams
from forgebot.core.swap.models import Quote
from forgebot.core.tokens import TokenInfo
from forgebot.services.validators import is_valid_gas_priority, is_valid_slippage
from forgebot.types.base_units import BaseUnits
from forgebot.types.requests import WireSettings
from forgebot.types.responses import Button


class FlowFamily(str, Enum):
    """The flow a step belongs to."""

    BUY = "buy"
    SELL = "sell"
    WITHDRAW = "withdraw"
    SETTINGS = "settings"


class FlowStep(str, Enum):
    """Every non-idle value of ``current_action``."""

    BUY_TOKEN_SELECT = "buy_token_select"
    BUY_CUSTOM_TOKEN = "buy_custom_token"
    BUY_AMOUNT_ENTRY = "buy_amount_entry"
    BUY_CONFIRM = "buy_confirm"

    SELL_TOKEN_SELECT = "sell_token_select"
    SELL_CUSTOM_TOKEN = "sell_custom_token"
    SELL_AMOUNT_ENTRY = "sell_amount_entry"
    SELL_CONFIRM = "sell_confirm"

    WITHDRAW_ADDRESS_ENTRY = "withdraw_address_entry"
    WITHDRAW_AMOUNT_ENTRY = "withdraw_amount_entry"
    WITHDRAW_CONFIRM = "withdraw_confirm"

    SETTINGS_SLIPPAGE = "settings_slippage"
    SETTINGS_GAS_PRIORITY = "settings_gas_priority"

    @property
    def family(self) -> FlowFamily:
        return FlowFamily(self.value.split("_", 1)[0])

    @property
    def is_confirm(self) -> bool:
        return self.value.endswith("_confirm")


class InputKind(str, Enum):
    COMMAND = "command"    # text starting with "/"
    CALLBACK = "callback"  # button token
    TEXT = "text"          # free text


# =============================================================================
# User settings
# =============================================================================


class UserSettings(BaseModel):
    """Per-user trading preferences; survive across flows."""

    slippage: Decimal = Field(default_factory=lambda: settings.default_slippage, gt=0, le=50)
    gas_priority: Literal["low", "medium", "high"] = "medium"

    @classmethod
    def defaults(cls) -> "UserSettings":
        priority = settings.default_gas_priority
        return cls(gas_priority=priority if is_valid_gas_priority(priority) else "medium")

    @classmethod
    def from_wire(cls, wire: Optional[WireSettings]) -> "UserSettings":
        """Accept what the client sent, replacing any invalid field with its default."""
        base = cls.defaults()
        if wire is None:
            return base
        slippage = wire.slippage if is_valid_slippage(wire.slippage) else base.slippage
        priority = wire.gas_priority if is_valid_gas_priority(wire.gas_priority) else base.gas_priority
        return cls(slippage=slippage, gas_priority=priority)

    def to_wire(self) -> WireSettings:
        return WireSettings(slippage=self.slippage, gas_priority=self.gas_priority)

    @property
    def slippage_text(self) -> str:
        try:
            return format(self.slippage.normalize(), "f")
        except InvalidOperation:
            return str(self.slippage)


# =============================================================================
# Flow state (tempData)
# =============================================================================


class TokenRef(BaseModel):
    address: str
    symbol: str
    decimals: int = Field(ge=0, le=77)

    @classmethod
    def from_info(cls, info: TokenInfo) -> "TokenRef":
        return cls(address=info.address, symbol=info.symbol, decimals=info.decimals)


class SellCandidate(TokenRef):
    balance: BaseUnits


class BuyFlowState(BaseModel):
    family: Literal["buy"] = "buy"
    wallet_address: str
    balance: BaseUnits
    token_out: Optional[TokenRef] = None
    amount: Optional[BaseUnits] = None
    quote: Optional[Quote] = None
    gas: Optional[GasParams] = None


class SellFlowState(BaseModel):
    family: Literal["sell"] = "sell"
    wallet_address: str
    candidates: List[SellCandidate]
    token_in: Optional[TokenRef] = None
    token_balance: Optional[BaseUnits] = None
    amount: Optional[BaseUnits] = None
    quote: Optional[Quote] = None
    gas: Optional[GasParams] = None

    def candidate(self, address: str) -> Optional[SellCandidate]:
        needle = address.lower()
        for token in self.candidates:
            if token.address.lower() == needle:
                return token
        return None


class WithdrawFlowState(BaseModel):
    family: Literal["withdraw"] = "withdraw"
    wallet_address: str
    balance: BaseUnits
    destination: Optional[str] = None
    amount: Optional[BaseUnits] = None
    gas: Optional[GasParams] = None


FlowState = Union[BuyFlowState, SellFlowState, WithdrawFlowState]

FLOW_STATE_TYPES: Dict[FlowFamily, type] = {
    FlowFamily.BUY: BuyFlowState,
    FlowFamily.SELL: SellFlowState,
    FlowFamily.WITHDRAW: WithdrawFlowState,
}

# Fields that must be present before a step can be handled
REQUIRED_FIELDS: Dict[FlowStep, Tuple[str, ...]] = {
    FlowStep.BUY_TOKEN_SELECT: ("wallet_address", "balance"),
    FlowStep.BUY_CUSTOM_TOKEN: ("wallet_address", "balance"),
    FlowStep.BUY_AMOUNT_ENTRY: ("wallet_address", "balance", "token_out"),
    FlowStep.BUY_CONFIRM: ("wallet_address", "balance", "token_out", "amount", "quote", "gas"),
    FlowStep.SELL_TOKEN_SELECT: ("wallet_address", "candidates"),
    FlowStep.SELL_CUSTOM_TOKEN: ("wallet_address", "candidates"),
    FlowStep.SELL_AMOUNT_ENTRY: ("wallet_address", "candidates", "token_in", "token_balance"),
    FlowStep.SELL_CONFIRM: (
        "wallet_address", "candidates", "token_in", "token_balance", "amount", "quote", "gas",
    ),
    FlowStep.WITHDRAW_ADDRESS_ENTRY: ("wallet_address", "balance"),
    FlowStep.WITHDRAW_AMOUNT_ENTRY: ("wallet_address", "balance", "destination"),
    FlowStep.WITHDRAW_CONFIRM: ("wallet_address", "balance", "destination", "amount", "gas"),
    FlowStep.SETTINGS_SLIPPAGE: (),
    FlowStep.SETTINGS_GAS_PRIORITY: (),
}


# =============================================================================
# Session and turn
# =============================================================================


@dataclass
class Session:
    """One user's conversational state between turns."""

    user_id: str
    current_action: Optional[FlowStep] = None
    flow: Optional[FlowState] = None
    settings: UserSettings = field(default_factory=UserSettings.defaults)

    @property
    def is_idle(self) -> bool:
        return self.current_action is None

    def goto(self, step: Optional[FlowStep], flow: Optional[FlowState] = None) -> "Session":
        """Return a copy at ``step``; flow state is dropped unless given."""
        return replace(self, current_action=step, flow=flow)

    def cleared(self) -> "Session":
        return replace(self, current_action=None, flow=None)

    def with_settings(self, user_settings: UserSettings) -> "Session":
        return replace(self, settings=user_settings)


@dataclass
class Turn:
    """A single inbound input plus the wire state the client carried with it."""

    user_id: str
    kind: InputKind
    value: str
    current_action: Optional[str] = None
    temp_data: Dict[str, Any] = field(default_factory=dict)
    settings: Optional[WireSettings] = None

    @classmethod
    def from_action(cls, user_id: str, action: str, **state: Any) -> "Turn":
        """Free text from the action endpoint; a leading "/" makes it a command."""
        text = (action or "").strip()
        kind = InputKind.COMMAND if text.startswith("/") else InputKind.TEXT
        return cls(user_id=user_id, kind=kind, value=text, **state)

    @classmethod
    def from_callback(cls, user_id: str, callback: str, **state: Any) -> "Turn":
        return cls(user_id=user_id, kind=InputKind.CALLBACK, value=(callback or "").strip(), **state)


ButtonRows = List[List[Button]]


@dataclass
class TurnResult:
    """Text, optional buttons and the session to hand back to the client."""

    response: str
    session: Session
    buttons: Optional[ButtonRows] = None


def button(label: str, callback: str) -> Button:
    return Button(label=label, callback=callback)


CANCEL_BUTTON_ROW = [button("❌ Cancel", "cancel")]
CONFIRM_BUTTONS: ButtonRows = [[button("✅ Confirm", "confirm_yes"), button("❌ Cancel", "confirm_no")]]
