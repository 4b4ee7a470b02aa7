"""Persisted records."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

from forgebot.core.tokens import is_native


@dataclass(frozen=True)
class TransactionRecord:
    """One executed flow, written once after the receipt and never updated.

    Amounts are base-unit integers. For a withdrawal ``token_in`` is the native
    placeholder, ``token_out`` the destination address and ``amount_out`` 0.
    ``kind`` is one of ``buy``, ``sell``, ``swap`` or ``withdraw``; records
    written without one get it inferred from which side is native.
    """
    hash: str
    user_id: str
    from_address: str
    token_in: str
    token_out: str
    amount_in: int
    status: str
    amount_out: int = 0
    gas_used: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    kind: str = ""

    def __post_init__(self) -> None:
        if not self.kind:
            object.__setattr__(self, "kind", infer_kind(self.token_in, self.token_out, self.amount_out))

    @property
    def tokens(self) -> List[str]:
        """ERC-20 addresses involved; a withdrawal destination is not one."""
        if self.kind == "withdraw":
            return []
        return [token for token in (self.token_in, self.token_out) if not is_native(token)]

    def to_document(self) -> Dict[str, Any]:
        """Convex document; big integers as decimal strings."""
        doc = asdict(self)
        return {
            "hash": doc["hash"],
            "userId": doc["user_id"],
            "fromAddress": doc["from_address"],
            "tokenIn": doc["token_in"],
            "tokenOut": doc["token_out"],
            "amountIn": str(doc["amount_in"]),
            "status": doc["status"],
            "amountOut": str(doc["amount_out"]),
            "gasUsed": str(doc["gas_used"]),
            "createdAt": int(self.created_at.timestamp() * 1000),
            "kind": doc["kind"],
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "TransactionRecord":
        """Inverse of ``to_document``. Falls back to Convex's ``_creationTime``."""
        created = doc.get("createdAt", doc.get("_creationTime"))
        extra: Dict[str, Any] = {}
        if created is not None:
            extra["created_at"] = datetime.fromtimestamp(float(created) / 1000, tz=timezone.utc)
        return cls(
            hash=doc["hash"],
            user_id=str(doc["userId"]),
            from_address=doc.get("fromAddress", ""),
            token_in=doc["tokenIn"],
            token_out=doc["tokenOut"],
            amount_in=int(doc["amountIn"]),
            status=doc["status"],
            amount_out=int(doc.get("amountOut") or 0),
            gas_used=int(doc.get("gasUsed") or 0),
            kind=doc.get("kind") or "",
            **extra,
        )


def infer_kind(token_in: str, token_out: str, amount_out: int) -> str:
    if is_native(token_in):
        # a withdrawal records no output amount
        return "withdraw" if amount_out == 0 else "buy"
    if is_native(token_out):
        return "sell"
    return "swap"
