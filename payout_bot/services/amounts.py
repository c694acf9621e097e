from __future__ import annotations

import logging
import re
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Optional, Union

logger = logging.getLogger(__name__)

BASE_UNIT_DECIMALS = 8
BASE_UNIT_SCALE = Decimal(10) ** BASE_UNIT_DECIMALS
# Values above this are assumed to be base units already.
PRESCALED_THRESHOLD = Decimal(1_000_000)
# Display amounts above this ask for an extra confirmation.
LARGE_AMOUNT_THRESHOLD = Decimal(100)
# Largest display amount a flow accepts; keeps user input below the
# pre-scaled threshold so every flow amount is scaled exactly once.
MAX_DISPLAY_AMOUNT = PRESCALED_THRESHOLD

AMOUNT_PATTERN = re.compile(r"^\d+(\.\d+)?$")

Number = Union[str, int, float, Decimal]


def _to_decimal(value: Number) -> Optional[Decimal]:
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def to_base_units(value: Number) -> str:
    """Convert a display amount into the integer base-unit string the API expects.

    ``"10"`` becomes ``"1000000000"``. Values above 1,000,000 are treated as
    already scaled and returned unchanged. Unparseable input is returned as-is.
    """
    parsed = _to_decimal(value)
    if parsed is None:
        logger.warning("Could not convert amount %r to base units", value)
        return str(value)
    if parsed > PRESCALED_THRESHOLD:
        return str(value).strip()
    try:
        scaled = (parsed * BASE_UNIT_SCALE).quantize(Decimal(1), rounding=ROUND_DOWN)
    except InvalidOperation:
        logger.warning("Amount %r is out of range for base units", value)
        return str(value).strip()
    return f"{scaled:f}"


def from_base_units(value: Number) -> Decimal:
    parsed = _to_decimal(value)
    if parsed is None:
        return Decimal(0)
    return parsed / BASE_UNIT_SCALE


def parse_display_amount(text: str) -> Optional[Decimal]:
    cleaned = (text or "").strip().replace(",", "").replace(" ", "")
    if not AMOUNT_PATTERN.match(cleaned):
        return None
    amount = _to_decimal(cleaned)
    if amount is None or amount <= 0:
        return None
    exponent = amount.as_tuple().exponent
    if isinstance(exponent, int) and -exponent > BASE_UNIT_DECIMALS:
        return None
    return amount


def is_large_amount(amount: Number) -> bool:
    parsed = _to_decimal(amount)
    return parsed is not None and parsed > LARGE_AMOUNT_THRESHOLD


def format_amount(value: Number, places: int = 2) -> str:
    parsed = _to_decimal(value)
    if parsed is None:
        parsed = Decimal(0)
    quantum = Decimal(1).scaleb(-places)
    try:
        return f"{parsed.quantize(quantum):,f}"
    except InvalidOperation:
        return f"{parsed:,f}"
