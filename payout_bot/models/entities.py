from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(slots=True)
class AuthResult:
    access_token: str
    refresh_token: Optional[str]
    user_id: Optional[str]
    email: Optional[str]
    organization_id: Optional[str]


@dataclass(slots=True)
class TokenBalance:
    symbol: str
    balance: str
    decimals: int = 8
    address: Optional[str] = None


@dataclass(slots=True)
class WalletBalance:
    network: str
    tokens: List[TokenBalance] = field(default_factory=list)
    wallet_id: Optional[str] = None
    is_default: bool = False


@dataclass(slots=True)
class Wallet:
    id: str
    network: str
    address: str
    is_default: bool = False


@dataclass(slots=True)
class TransferResult:
    id: Optional[str]
    status: str
    recipient: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class KycStatus:
    status: str
    is_approved: bool


@dataclass(slots=True)
class BankAccount:
    id: str
    bank_name: str
    last_four_digits: str
    country: Optional[str]
    status: str


@dataclass(slots=True)
class WithdrawalQuote:
    quote_payload: str
    quote_signature: str
    rate: Optional[str]
    total_fee: Optional[str]
    to_amount: Optional[str]
    to_currency: Optional[str]


@dataclass(slots=True)
class TransferRecord:
    id: str
    type: str
    status: str
    amount: str
    currency: str
    network: Optional[str]
    created_at: Optional[str]
    counterparty: Optional[str] = None


@dataclass(slots=True)
class TransferPage:
    items: List[TransferRecord]
    total_count: int
    has_more: bool
    page: int
    page_size: int
