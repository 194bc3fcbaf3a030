from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from evenup.config import get_settings

Amount = Union[int, float, str, Decimal]

# ISO 4217 currencies whose minor unit is not 2 decimals
MINOR_UNITS = {
    "BIF": 0, "CLP": 0, "DJF": 0, "GNF": 0, "ISK": 0, "JPY": 0, "KMF": 0,
    "KRW": 0, "PYG": 0, "RWF": 0, "UGX": 0, "VND": 0, "VUV": 0, "XAF": 0,
    "XOF": 0, "XPF": 0,
    "BHD": 3, "IQD": 3, "JOD": 3, "KWD": 3, "LYD": 3, "OMR": 3, "TND": 3,
}
DEFAULT_MINOR_UNITS = 2


def to_decimal(value: Amount) -> Decimal:
    if isinstance(value, bool):
        raise ValueError("boolean is not an amount")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # repr keeps 0.1 as Decimal("0.1") instead of its binary expansion
        result = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"not an amount: {value!r}") from exc
    else:
        raise ValueError(f"unsupported amount type: {type(value).__name__}")

    if not result.is_finite():
        raise ValueError(f"amount must be finite: {value!r}")
    return result


def minor_units(currency: str) -> int:
    return MINOR_UNITS.get(currency.upper(), DEFAULT_MINOR_UNITS)


def minor_unit(currency: str) -> Decimal:
    return Decimal(1).scaleb(-minor_units(currency))


def ledger_tolerance(currency: str, fraction: Optional[Amount] = None) -> Decimal:
    if fraction is None:
        fraction = get_settings().ledger_tolerance
    return minor_unit(currency) * to_decimal(fraction)


def is_negligible(amount: Decimal, currency: str, fraction: Optional[Amount] = None) -> bool:
    return abs(amount) <= ledger_tolerance(currency, fraction)
