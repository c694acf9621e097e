from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

FIXED_FEE_USD = Decimal("2.00")
PROCESSING_FEE_PERCENT = Decimal("1.5")

_CENT = Decimal("0.01")


@dataclass(slots=True)
class FeeBreakdown:
    amount: Decimal
    fixed_fee: Decimal
    processing_fee: Decimal
    estimated: bool = True

    @property
    def total_fee(self) -> Decimal:
        return self.fixed_fee + self.processing_fee

    @property
    def receive_amount(self) -> Decimal:
        return max(Decimal(0), self.amount - self.total_fee)


def estimate_withdrawal_fee(amount: Decimal) -> FeeBreakdown:
    """Local display estimate: fixed $2.00 plus 1.5% of the amount."""
    if amount < 0:
        raise ValueError("amount must be >= 0")
    processing = (amount * PROCESSING_FEE_PERCENT / Decimal(100)).quantize(_CENT, rounding=ROUND_HALF_UP)
    return FeeBreakdown(
        amount=amount,
        fixed_fee=FIXED_FEE_USD,
        processing_fee=processing,
    )


def format_usd(amount: Decimal) -> str:
    return f"${amount.quantize(_CENT, rounding=ROUND_HALF_UP):,f}"
