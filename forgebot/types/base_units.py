"""Integer amounts that survive a JSON round trip.

Base-unit balances routinely exceed 2**53, so on the wire they travel as
decimal strings and are parsed back into Python ints.
"""

import re
from typing import Annotated, Any

from pydantic import BeforeValidator, PlainSerializer


def _coerce_base_units(value: Any) -> int:
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError("base units must be an integer or a decimal string")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if re.fullmatch(r"-?\d+", text, flags=re.ASCII):
            return int(text)
    raise ValueError(f"not a base-unit integer: {value!r}")


BaseUnits = Annotated[
    int,
    BeforeValidator(_coerce_base_units),
    PlainSerializer(str, return_type=str, when_used="json"),
]
