"""Conversion between human decimal strings and integer base units.

Only arbitrary-precision integers and string manipulation are used; no float
ever touches an amount.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Union

from forgebot.core.flow.errors import MalformedAmount

_DECIMAL_RE = re.compile(r"^(\d*)(?:\.(\d*))?$", re.ASCII)

WEI_PER_GWEI = 10**9


def to_base_units(amount: str, decimals: int) -> int:
    """Parse ``amount`` (e.g. ``"1.5"``) into base units for ``decimals``.

    Raises:
        MalformedAmount: when the string is not a plain non-negative decimal or
            carries more fractional digits than the token supports.
    """

    if not isinstance(amount, str) or decimals < 0:
        raise MalformedAmount(f"not a decimal string: {amount!r}")

    text = amount.strip()
    match = _DECIMAL_RE.fullmatch(text)
    if not match or text in ("", "."):
        raise MalformedAmount(f"not a decimal string: {amount!r}")

    whole, frac = match.group(1), match.group(2)
    if frac is None:
        frac = ""
    elif frac == "":
        raise MalformedAmount(f"trailing decimal point: {amount!r}")
    if len(frac) > decimals:
        raise MalformedAmount(
            f"{amount!r} has {len(frac)} fractional digits, token supports {decimals}"
        )

    return int(whole or "0") * 10**decimals + int(frac.ljust(decimals, "0") or "0")


def from_base_units(value: int, decimals: int) -> str:
    """Render base units as a canonical decimal string.

    No trailing fractional zeros and no trailing ``"."``; negative values keep
    their sign.
    """

    sign = "-" if value < 0 else ""
    magnitude = -value if value < 0 else value
    if decimals == 0:
        return f"{sign}{magnitude}"

    whole, frac = divmod(magnitude, 10**decimals)
    frac_text = str(frac).rjust(decimals, "0").rstrip("0")
    if not frac_text:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{frac_text}"


def format_amount(value: int, decimals: int, display_decimals: int = 6) -> str:
    """Truncate (never round up) to ``display_decimals`` places for display."""

    canonical = from_base_units(value, decimals)
    if "." not in canonical:
        return canonical
    whole, frac = canonical.split(".")
    frac = frac[:display_decimals].rstrip("0")
    return f"{whole}.{frac}" if frac else whole


def gwei_to_wei(gwei: Union[Decimal, str, int]) -> int:
    return to_base_units(format(Decimal(str(gwei)).normalize(), "f"), 9)


def wei_to_gwei(wei: int) -> str:
    return from_base_units(wei, 9)


__all__ = [
    "WEI_PER_GWEI",
    "to_base_units",
    "from_base_units",
    "format_amount",
    "gwei_to_wei",
    "wei_to_gwei",
]
