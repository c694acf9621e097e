"""Mapping of opaque remote error text onto the categories the bot explains.

The payments API mostly answers with free-form ``message`` strings, so the
mapping is a table of lowercase substrings per category, checked in order.
A structured ``code`` from the API wins over the text when it is known.
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence, Tuple

INSUFFICIENT_BALANCE = "insufficient_balance"
BELOW_MINIMUM = "below_minimum"
OVER_LIMIT = "over_limit"
KYC_REQUIRED = "kyc_required"
INVALID_OTP = "invalid_otp"
UNKNOWN_EMAIL = "unknown_email"
GENERIC = "generic"

PatternTable = Sequence[Tuple[str, Tuple[str, ...]]]

BUSINESS_RULE_PATTERNS: PatternTable = (
    (INSUFFICIENT_BALANCE, ("insufficient", "not enough balance", "exceeds balance")),
    (BELOW_MINIMUM, ("minimum", "too small", "too low", "below min")),
    (OVER_LIMIT, ("limit", "maximum", "exceed", "too large")),
    (KYC_REQUIRED, ("kyc", "kyb", "verification required", "not verified")),
)

LOGIN_PATTERNS: PatternTable = (
    (INVALID_OTP, ("invalid otp", "invalid code", "expired", "incorrect otp", "wrong otp")),
    (UNKNOWN_EMAIL, ("not found", "not registered", "email")),
)

ERROR_CODES: Dict[str, str] = {
    "insufficient_balance": INSUFFICIENT_BALANCE,
    "insufficient_funds": INSUFFICIENT_BALANCE,
    "amount_too_low": BELOW_MINIMUM,
    "min_amount": BELOW_MINIMUM,
    "amount_too_high": OVER_LIMIT,
    "limit_exceeded": OVER_LIMIT,
    "kyc_required": KYC_REQUIRED,
    "kyc_not_approved": KYC_REQUIRED,
    "invalid_otp": INVALID_OTP,
    "otp_expired": INVALID_OTP,
    "user_not_found": UNKNOWN_EMAIL,
}


def classify_error(
    message: Optional[str],
    code: Optional[str] = None,
    table: PatternTable = BUSINESS_RULE_PATTERNS,
) -> str:
    if code:
        category = ERROR_CODES.get(str(code).strip().lower())
        if category is not None:
            return category
    text = (message or "").lower()
    if not text:
        return GENERIC
    for category, patterns in table:
        if any(pattern in text for pattern in patterns):
            return category
    return GENERIC


def is_business_rule(category: str) -> bool:
    return category in {INSUFFICIENT_BALANCE, BELOW_MINIMUM, OVER_LIMIT, KYC_REQUIRED}
