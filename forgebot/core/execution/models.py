"""
Transaction execution models and types.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel

from forgebot.services.units import wei_to_gwei
from forgebot.types.base_units import BaseUnits


class ReceiptStatus(str, Enum):
    """Final on-chain outcome of a mined transaction."""
    SUCCESS = "success"
    FAILURE = "failure"


class GasParams(BaseModel):
    """Fee parameters in wei, fetched once per amount entry and kept in flow state."""

    fee_per_unit: BaseUnits
    max_fee_per_unit: BaseUnits
    max_priority_fee_per_unit: BaseUnits

    @property
    def price_gwei(self) -> str:
        """Legacy gas price in gwei, the unit the quote API expects."""
        return wei_to_gwei(self.fee_per_unit)

    def max_cost(self, gas_limit: int) -> int:
        return gas_limit * self.max_fee_per_unit


@dataclass
class TransactionRequest:
    """An unsigned transaction for the executor gateway to sign and submit."""
    to: str
    data: str = "0x"
    value: int = 0
    fees: Optional[GasParams] = None
    gas_limit: Optional[int] = None
    chain_id: Optional[int] = None
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Hex-encoded JSON-RPC shape used by the signing service."""
        tx: Dict[str, Any] = {
            "to": self.to,
            "data": self.data or "0x",
            "value": hex(self.value),
        }
        if self.chain_id is not None:
            tx["chainId"] = hex(self.chain_id)
        if self.gas_limit is not None:
            tx["gas"] = hex(self.gas_limit)
        if self.fees is not None:
            tx["maxFeePerGas"] = hex(self.fees.max_fee_per_unit)
            tx["maxPriorityFeePerGas"] = hex(self.fees.max_priority_fee_per_unit)
        return tx


@dataclass
class Receipt:
    """Mined transaction outcome."""
    hash: str
    status: ReceiptStatus
    gas_used: int = 0
    effective_fee_per_unit: int = 0
    block_number: Optional[int] = None

    @property
    def is_success(self) -> bool:
        return self.status == ReceiptStatus.SUCCESS

    @classmethod
    def from_rpc(cls, receipt: Dict[str, Any]) -> "Receipt":
        """Parse an ``eth_getTransactionReceipt`` result (0x1 = success, 0x0 = revert)."""
        status = int(receipt.get("status", "0x1"), 16)
        block = receipt.get("blockNumber")
        return cls(
            hash=receipt["transactionHash"],
            status=ReceiptStatus.SUCCESS if status == 1 else ReceiptStatus.FAILURE,
            gas_used=int(receipt.get("gasUsed", "0x0"), 16),
            effective_fee_per_unit=int(receipt.get("effectiveGasPrice", "0x0"), 16),
            block_number=int(block, 16) if block else None,
        )


@dataclass(frozen=True)
class WalletHandle:
    """A user's wallet as seen by the flows: an address and an opaque signer reference.

    Keys never leave the custody service; ``signer_ref`` is what the signing
    service uses to find them.
    """
    address: str
    signer_ref: str
