from __future__ import annotations

from html import escape
from typing import Any, Dict, Iterable, Optional

from payout_bot.models.entities import KycStatus, TransferPage, Wallet, WalletBalance
from payout_bot.services.amounts import format_amount
from payout_bot.services.networks import format_network
from payout_bot.texts.catalog import TEXTS

STATUS_ICONS = {
    "success": "✅",
    "completed": "✅",
    "pending": "⏳",
    "processing": "⏳",
    "initiated": "⏳",
    "failed": "❌",
    "canceled": "🚫",
    "cancelled": "🚫",
}


def render_balances(wallets: Iterable[WalletBalance], language: str = "en") -> str:
    lines = [TEXTS.get("balance.header", language)]
    for wallet in wallets:
        if not wallet.tokens:
            continue
        default = TEXTS.get("balance.default_marker", language) if wallet.is_default else ""
        lines.append(TEXTS.get("balance.network", language, network=format_network(wallet.network), default=default))
        for token in wallet.tokens:
            lines.append(TEXTS.get("balance.token", language, token=token.symbol, amount=format_amount(token.balance)))
    if len(lines) == 1:
        return TEXTS.get("balance.empty", language)
    return "\n".join(lines)


def render_wallets(wallets: Iterable[Wallet], language: str = "en") -> str:
    lines = [TEXTS.get("wallets.header", language)]
    for wallet in wallets:
        default = TEXTS.get("balance.default_marker", language) if wallet.is_default else ""
        lines.append(
            TEXTS.get(
                "wallets.line",
                language,
                network=format_network(wallet.network),
                default=default,
                address=escape(wallet.address),
            )
        )
    if len(lines) == 1:
        return TEXTS.get("wallets.empty", language)
    return "\n".join(lines)


def render_history(page: TransferPage, language: str = "en") -> str:
    if not page.items:
        return TEXTS.get("history.empty", language)
    lines = [TEXTS.get("history.header", language, page=page.page)]
    for record in page.items:
        counterparty = f" → {escape(record.counterparty)}" if record.counterparty else ""
        lines.append(
            TEXTS.get(
                "history.line",
                language,
                icon=STATUS_ICONS.get(record.status.lower(), "•"),
                type=record.type.replace("_", " "),
                amount=format_amount(record.amount),
                currency=record.currency,
                counterparty=counterparty,
                date=(record.created_at or "")[:10] or "—",
            )
        )
    return "\n".join(lines)


def render_profile(
    profile: Dict[str, Any],
    *,
    email: Optional[str],
    kyc: Optional[KycStatus],
    language: str = "en",
) -> str:
    return TEXTS.get(
        "profile.text",
        language,
        email=escape(str(profile.get("email") or email or "—")),
        user_id=escape(str(profile.get("id") or "—")),
        organization=escape(str(profile.get("organizationId") or "—")),
        kyc=kyc.status if kyc else "—",
    )
