"""ERC-20 allowance check and one-shot unlimited approval before a swap."""

from __future__ import annotations

from typing import Optional, Protocol

import structlog

from ..execution.gateway import ExecutorGateway
from ..execution.models import GasParams, Receipt, WalletHandle
from ..execution.tx_builder import build_approve
from ..flow.errors import ApprovalFailed, ExternalServiceError
from ..recovery import RetryConfig, retry_read
from ..tokens import MAX_UINT256, is_native

logger = structlog.stdlib.get_logger("swap.allowance")


class AllowanceReader(Protocol):
    async def get_allowance(self, token: str, owner: str, spender: str) -> int: ...


async def ensure_allowance(
    chain: AllowanceReader,
    executor: ExecutorGateway,
    signer: WalletHandle,
    token: str,
    owner: str,
    spender: str,
    required: int,
    fees: Optional[GasParams] = None,
    retry: Optional[RetryConfig] = None,
) -> Optional[Receipt]:
    """Make sure ``spender`` may move at least ``required`` of ``token``.

    Returns the approval receipt when an approval was sent, ``None`` when the
    token is native or the existing allowance already covers ``required``.
    Allowance reads follow ``retry``, or the configured default when omitted.

    Raises:
        ApprovalFailed: the approval reverted, could not be sent, or the
            allowance is still short afterwards. The caller must not submit
            the swap.
    """

    if is_native(token):
        return None

    try:
        current = await retry_read(
            lambda: chain.get_allowance(token, owner, spender), name="allowance", config=retry
        )
    except ExternalServiceError as exc:
        raise ApprovalFailed(f"allowance read failed: {exc.message}") from exc
    if current >= required:
        return None

    logger.info("approval_needed", token=token, spender=spender, allowance=current, required=required)
    try:
        receipt = await executor.execute(signer, build_approve(token, spender, MAX_UINT256, fees))
    except ApprovalFailed:
        raise
    except ExternalServiceError as exc:
        raise ApprovalFailed(f"approval submission failed: {exc.message}") from exc

    if not receipt.is_success:
        raise ApprovalFailed(f"approval {receipt.hash} reverted", tx_hash=receipt.hash)

    try:
        after = await retry_read(
            lambda: chain.get_allowance(token, owner, spender), name="allowance", config=retry
        )
    except ExternalServiceError as exc:
        raise ApprovalFailed(
            f"allowance re-read failed after approval {receipt.hash}: {exc.message}",
            tx_hash=receipt.hash,
        ) from exc
    if after < required:
        raise ApprovalFailed(
            f"allowance {after} still below {required} after approval {receipt.hash}",
            tx_hash=receipt.hash,
        )
    return receipt


__all__ = ["ensure_allowance"]
