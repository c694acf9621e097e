from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern

from payout_bot.services.networks import network_key


EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

COMMON_EMAIL_DOMAINS = (
    "gmail.com",
    "yahoo.com",
    "outlook.com",
    "hotmail.com",
    "aol.com",
    "icloud.com",
    "protonmail.com",
    "zoho.com",
    "yandex.com",
    "mail.com",
)

_BASE58 = "1-9A-HJ-NP-Za-km-z"
_BECH32 = "ac-hj-np-z02-9"

EVM_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
BITCOIN_PATTERNS = (
    re.compile(rf"^[13][{_BASE58}]{{25,34}}$"),
    re.compile(rf"^(bc1|tb1)[{_BECH32}]{{6,87}}$"),
)
LITECOIN_PATTERNS = (
    re.compile(rf"^[LM3][{_BASE58}]{{26,33}}$"),
    re.compile(rf"^ltc1[{_BECH32}]{{6,87}}$"),
)
BITCOIN_CASH_PATTERNS = (
    re.compile(rf"^[13][{_BASE58}]{{25,34}}$"),
    re.compile(r"^(bitcoincash:)?[qp][a-z0-9]{41}$"),
)
DOGECOIN_PATTERN = re.compile(rf"^D[{_BASE58}]{{25,34}}$")
TRON_PATTERN = re.compile(rf"^T[{_BASE58}]{{33}}$")
RIPPLE_PATTERN = re.compile(rf"^r[{_BASE58}]{{24,34}}$")
SOLANA_PATTERN = re.compile(rf"^[{_BASE58}]{{32,44}}$")
GENERIC_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")

FAMILY_PATTERNS: Dict[str, tuple[Pattern[str], ...]] = {
    "evm": (EVM_PATTERN,),
    "bitcoin": BITCOIN_PATTERNS,
    "litecoin": LITECOIN_PATTERNS,
    "bitcoin-cash": BITCOIN_CASH_PATTERNS,
    "dogecoin": (DOGECOIN_PATTERN,),
    "tron": (TRON_PATTERN,),
    "ripple": (RIPPLE_PATTERN,),
    "solana": (SOLANA_PATTERN,),
}

NETWORK_FAMILIES: Dict[str, str] = {
    "ethereum": "evm",
    "eth": "evm",
    "mainnet": "evm",
    "polygon": "evm",
    "matic": "evm",
    "bsc": "evm",
    "bnb chain": "evm",
    "binance smart chain": "evm",
    "arbitrum": "evm",
    "optimism": "evm",
    "avalanche": "evm",
    "avax": "evm",
    "base": "evm",
    "bitcoin": "bitcoin",
    "btc": "bitcoin",
    "litecoin": "litecoin",
    "ltc": "litecoin",
    "bitcoin cash": "bitcoin-cash",
    "bch": "bitcoin-cash",
    "dogecoin": "dogecoin",
    "doge": "dogecoin",
    "tron": "tron",
    "trx": "tron",
    "ripple": "ripple",
    "xrp": "ripple",
    "solana": "solana",
    "sol": "solana",
}

# Shapes tried, in order, for networks without a known family.
FALLBACK_PATTERNS: List[Pattern[str]] = [
    EVM_PATTERN,
    *BITCOIN_PATTERNS,
    TRON_PATTERN,
    GENERIC_PATTERN,
]


@dataclass(slots=True)
class EmailSuggestion:
    has_typo: bool
    original: str
    suggestion: Optional[str] = None


def is_valid_email(value: object) -> bool:
    if not isinstance(value, str) or not value:
        return False
    return EMAIL_PATTERN.match(value.strip()) is not None


def edit_distance(first: str, second: str) -> int:
    if not first:
        return len(second)
    if not second:
        return len(first)
    previous = list(range(len(second) + 1))
    for i, left in enumerate(first, start=1):
        current = [i]
        for j, right in enumerate(second, start=1):
            cost = 0 if left == right else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def suggest_email_correction(value: str) -> EmailSuggestion:
    """Suggest a common provider domain for a likely misspelt address.

    Advisory only: callers show the suggestion but keep the typed address
    unless the user explicitly picks the corrected one.
    """
    if not is_valid_email(value):
        return EmailSuggestion(has_typo=False, original=value)
    local, _, domain = value.strip().rpartition("@")
    domain = domain.lower()
    if domain in COMMON_EMAIL_DOMAINS:
        return EmailSuggestion(has_typo=False, original=value)
    for candidate in COMMON_EMAIL_DOMAINS:
        if edit_distance(domain, candidate) <= 2 or candidate[:3] in domain or domain[:3] in candidate:
            return EmailSuggestion(has_typo=True, original=value, suggestion=f"{local}@{candidate}")
    return EmailSuggestion(has_typo=False, original=value)


def address_family(network: str) -> Optional[str]:
    return NETWORK_FAMILIES.get(network_key(network))


def _fallback_validation(address: str) -> bool:
    if not 25 <= len(address) <= 100:
        return False
    return any(pattern.match(address) for pattern in FALLBACK_PATTERNS)


def is_valid_address(address: object, network: object) -> bool:
    if not isinstance(address, str) or not isinstance(network, str):
        return False
    address = address.strip()
    if not address or not network.strip():
        return False
    family = address_family(network)
    if family is None:
        return _fallback_validation(address)
    return any(pattern.match(address) for pattern in FAMILY_PATTERNS[family])


def valid_networks_for_address(address: str, networks: List[str]) -> List[str]:
    return [network for network in networks if is_valid_address(address, network)]
