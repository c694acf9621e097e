from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from payout_bot.texts.catalog import TEXTS

FLOW_PREFIX = "flow:"
MENU_PREFIX = "menu:"
SEND_PREFIX = "send:"
WALLET_PREFIX = "wallet:"
HISTORY_PREFIX = "history:"


def _build_rows(buttons: Iterable[InlineKeyboardButton], width: int = 2) -> List[List[InlineKeyboardButton]]:
    row: List[InlineKeyboardButton] = []
    rows: List[List[InlineKeyboardButton]] = []
    for button in buttons:
        row.append(button)
        if len(row) >= width:
            rows.append(row)
            row = []
    if row:
        rows.append(row)
    return rows


def flow_keyboard(buttons: Sequence[Tuple[str, str]]) -> InlineKeyboardMarkup | None:
    if not buttons:
        return None
    items = [InlineKeyboardButton(text=label, callback_data=f"{FLOW_PREFIX}{action}") for label, action in buttons]
    # a long label gets its own row
    width = 1 if any(len(label) > 18 for label, _ in buttons) else 2
    return InlineKeyboardMarkup(inline_keyboard=_build_rows(items, width=width))


def main_menu_keyboard(authenticated: bool, language: str = "en") -> InlineKeyboardMarkup:
    if authenticated:
        keys = ["balance", "send", "withdraw", "batch", "history", "wallets", "profile", "help", "logout"]
    else:
        keys = ["login", "help"]
    buttons = [
        InlineKeyboardButton(text=TEXTS.button(f"menu.{key}", language), callback_data=f"{MENU_PREFIX}{key}")
        for key in keys
    ]
    return InlineKeyboardMarkup(inline_keyboard=_build_rows(buttons, width=2))


def send_menu_keyboard(language: str = "en") -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text=TEXTS.button("send.menu.email", language), callback_data=f"{SEND_PREFIX}email")],
            [InlineKeyboardButton(text=TEXTS.button("send.menu.wallet", language), callback_data=f"{SEND_PREFIX}wallet")],
        ]
    )


def wallets_keyboard(has_wallets: bool, language: str = "en") -> InlineKeyboardMarkup:
    row: List[InlineKeyboardButton] = []
    if has_wallets:
        row.append(
            InlineKeyboardButton(text=TEXTS.button("wallets.button.default", language), callback_data=f"{WALLET_PREFIX}default")
        )
    row.append(
        InlineKeyboardButton(text=TEXTS.button("wallets.button.generate", language), callback_data=f"{WALLET_PREFIX}generate")
    )
    return InlineKeyboardMarkup(inline_keyboard=[row])


def history_keyboard(page: int, has_more: bool, language: str = "en") -> InlineKeyboardMarkup | None:
    row: List[InlineKeyboardButton] = []
    if page > 1:
        row.append(InlineKeyboardButton(text=TEXTS.button("history.prev", language), callback_data=f"{HISTORY_PREFIX}{page - 1}"))
    if has_more:
        row.append(InlineKeyboardButton(text=TEXTS.button("history.next", language), callback_data=f"{HISTORY_PREFIX}{page + 1}"))
    if not row:
        return None
    return InlineKeyboardMarkup(inline_keyboard=[row])
