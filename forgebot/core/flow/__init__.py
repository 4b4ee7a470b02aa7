"""
Transaction Flow Module

Per-user multi-turn flows (Buy, Sell, Withdraw, Settings) driven by
``FlowEngine`` in ``forgebot.core.flow.state_machine``. Only the error
taxonomy is re-exported here; the lower layers import it and must not pull
in the engine.
"""

from .errors import (
    ApprovalFailed,
    ExternalServiceError,
    FlowError,
    InsufficientFunds,
    MalformedAmount,
    SessionExpired,
    ValidationError,
)

__all__ = [
    "FlowError",
    "ValidationError",
    "MalformedAmount",
    "InsufficientFunds",
    "SessionExpired",
    "ExternalServiceError",
    "ApprovalFailed",
]
