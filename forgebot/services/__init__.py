"""Pure helpers shared by the flows: input validation and unit conversion."""

from .units import from_base_units, format_amount, gwei_to_wei, to_base_units, wei_to_gwei
from .validators import (
    GAS_PRIORITIES,
    has_enough_balance,
    is_valid_address,
    is_valid_amount,
    is_valid_gas_priority,
    is_valid_private_key,
    is_valid_slippage,
)

__all__ = [
    # Units
    "to_base_units",
    "from_base_units",
    "format_amount",
    "gwei_to_wei",
    "wei_to_gwei",
    # Validators
    "GAS_PRIORITIES",
    "is_valid_address",
    "is_valid_amount",
    "is_valid_private_key",
    "is_valid_slippage",
    "is_valid_gas_priority",
    "has_enough_balance",
]
