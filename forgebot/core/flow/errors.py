"""
Flow Errors

Error taxonomy for the transaction flows. Every error carries a stable
``code`` for logs and a ``user_message`` that is safe to show in the chat;
exception detail stays in ``message`` and never reaches the user.

Recoverable errors (validation, insufficient funds) re-prompt the current
step. Everything else aborts the flow and clears its state.
"""

from typing import Optional


class FlowError(Exception):
    """Base class for all flow errors."""

    code = "flow_error"
    recoverable = False
    default_user_message = "Something went wrong. Please try again."

    def __init__(self, message: str = "", user_message: Optional[str] = None):
        super().__init__(message or self.default_user_message)
        self.message = message or self.default_user_message
        self.user_message = user_message or self.default_user_message


class ValidationError(FlowError):
    """User input failed validation; the same step is prompted again."""

    code = "validation"
    recoverable = True
    default_user_message = "That input is not valid. Please try again."


class MalformedAmount(ValidationError):
    """A decimal amount string could not be converted to base units."""

    code = "malformed_amount"
    default_user_message = "Invalid amount. Please enter a valid number."


class InsufficientFunds(FlowError):
    code = "insufficient_funds"
    recoverable = True
    default_user_message = "Insufficient balance for this transaction."


class SessionExpired(FlowError):
    """Flow state is missing or does not match the current step."""

    code = "session_expired"
    default_user_message = "Your session has expired. Please start again."


class ExternalServiceError(FlowError):
    """A provider (RPC, quote API, signer, store) failed or timed out."""

    code = "external_service"
    default_user_message = (
        "A service needed for this transaction is unavailable. Please try again later."
    )

    def __init__(
        self,
        message: str = "",
        user_message: Optional[str] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(message, user_message)
        self.provider = provider


class ApprovalFailed(ExternalServiceError):
    """The token approval did not land, or the allowance is still short."""

    code = "approval_failed"
    default_user_message = "Token approval failed. The swap was not submitted."

    def __init__(
        self,
        message: str = "",
        user_message: Optional[str] = None,
        tx_hash: Optional[str] = None,
    ):
        super().__init__(message, user_message, provider="approval")
        self.tx_hash = tx_hash


__all__ = [
    "FlowError",
    "ValidationError",
    "MalformedAmount",
    "InsufficientFunds",
    "SessionExpired",
    "ExternalServiceError",
    "ApprovalFailed",
]
