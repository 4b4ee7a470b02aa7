"""Quote and swap payloads returned by the aggregator."""

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel

from forgebot.types.base_units import BaseUnits


class Quote(BaseModel):
    """Indicative output for an amount; only valid for the turn that fetched it."""

    out_amount: BaseUnits
    estimated_gas: BaseUnits = 0


@dataclass
class SwapTransaction:
    """Router call for a swap, fetched fresh at confirmation time."""
    to: str
    data: str
    value: int
    in_amount: int
    out_amount: int
    gas_price: int
    price_impact: Optional[str] = None
