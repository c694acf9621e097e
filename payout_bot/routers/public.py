from __future__ import annotations

import logging
from html import escape
from typing import Optional

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.types import CallbackQuery, Message

from payout_bot.api.client import ApiError, AuthExpiredError, PayoutsApiClient
from payout_bot.config import Config
from payout_bot.flows.base import FlowReply
from payout_bot.flows.engine import FlowEngine
from payout_bot.keyboards.inline import (
    FLOW_PREFIX,
    HISTORY_PREFIX,
    MENU_PREFIX,
    SEND_PREFIX,
    WALLET_PREFIX,
    flow_keyboard,
    history_keyboard,
    main_menu_keyboard,
    send_menu_keyboard,
    wallets_keyboard,
)
from payout_bot.models.session import Session, SessionStore
from payout_bot.services.cache import BalanceCache
from payout_bot.services.screens import render_balances, render_history, render_profile, render_wallets
from payout_bot.texts.catalog import TEXTS

logger = logging.getLogger(__name__)

HISTORY_PAGE_SIZE = 10


def get_public_router(
    config: Config,
    engine: FlowEngine,
    store: SessionStore,
    api: PayoutsApiClient,
    cache: BalanceCache,
) -> Router:
    router = Router(name="public")
    router.message.filter(F.chat.type == "private")
    lang = config.default_language

    async def send_reply(message: Message, user_id: int, reply: FlowReply) -> None:
        markup = flow_keyboard(reply.buttons)
        if markup is None and reply.finished:
            session = await store.get(user_id)
            markup = main_menu_keyboard(session.authenticated, lang)
        await message.answer(reply.text, reply_markup=markup)

    async def show_menu(message: Message, user_id: int, key: str = "menu.title") -> None:
        session = await store.get(user_id)
        await message.answer(TEXTS.get(key, lang), reply_markup=main_menu_keyboard(session.authenticated, lang))

    async def logged_in_session(message: Message, user_id: int) -> Optional[Session]:
        session = await store.get(user_id)
        if not session.authenticated:
            await message.answer(TEXTS.get("flow.login_required", lang), reply_markup=main_menu_keyboard(False, lang))
            return None
        return session

    async def handle_api_failure(message: Message, session: Session, exc: ApiError) -> None:
        if isinstance(exc, AuthExpiredError):
            logger.info("Token for user %s was rejected, logging out", session.user_id)
            await engine.logout(session.user_id)
            await message.answer(TEXTS.get("flow.session_expired", lang), reply_markup=main_menu_keyboard(False, lang))
            return
        logger.warning("API call failed for user %s: %s", session.user_id, exc.message)
        await message.answer(engine.error_text(exc), reply_markup=main_menu_keyboard(True, lang))

    async def show_start(message: Message, user_id: int) -> None:
        session = await store.get(user_id)
        if session.authenticated:
            text = TEXTS.get("start.welcome.logged_in", lang, email=escape(session.email or ""))
        else:
            text = TEXTS.get("start.welcome", lang)
        await message.answer(text, reply_markup=main_menu_keyboard(session.authenticated, lang))

    async def show_balances(message: Message, user_id: int) -> None:
        session = await logged_in_session(message, user_id)
        if session is None:
            return
        try:
            wallets = await cache.get_or_fetch(user_id, lambda: api.list_balances(session.token or ""))
        except ApiError as exc:
            await handle_api_failure(message, session, exc)
            return
        await message.answer(render_balances(wallets, lang), reply_markup=main_menu_keyboard(True, lang))

    async def show_wallets(message: Message, user_id: int) -> None:
        session = await logged_in_session(message, user_id)
        if session is None:
            return
        try:
            wallets = await api.list_wallets(session.token or "")
        except ApiError as exc:
            await handle_api_failure(message, session, exc)
            return
        await message.answer(render_wallets(wallets, lang), reply_markup=wallets_keyboard(bool(wallets), lang))

    async def show_history(message: Message, user_id: int, page: int = 1) -> None:
        session = await logged_in_session(message, user_id)
        if session is None:
            return
        try:
            history = await api.get_transfer_history(session.token or "", page=page, page_size=HISTORY_PAGE_SIZE)
        except ApiError as exc:
            await handle_api_failure(message, session, exc)
            return
        markup = history_keyboard(history.page, history.has_more, lang) or main_menu_keyboard(True, lang)
        await message.answer(render_history(history, lang), reply_markup=markup)

    async def show_profile(message: Message, user_id: int) -> None:
        session = await logged_in_session(message, user_id)
        if session is None:
            return
        try:
            profile = await api.get_profile(session.token or "")
            kyc = await api.get_kyc_status(session.token or "")
        except ApiError as exc:
            await handle_api_failure(message, session, exc)
            return
        await message.answer(
            render_profile(profile, email=session.email, kyc=kyc, language=lang),
            reply_markup=main_menu_keyboard(True, lang),
        )

    async def show_send_menu(message: Message, user_id: int) -> None:
        if await logged_in_session(message, user_id) is None:
            return
        await message.answer(TEXTS.get("send.menu", lang), reply_markup=send_menu_keyboard(lang))

    async def logout(message: Message, user_id: int) -> None:
        await engine.logout(user_id)
        logger.info("User %s logged out", user_id)
        await message.answer(TEXTS.get("logout.done", lang), reply_markup=main_menu_keyboard(False, lang))

    async def start_flow(message: Message, user_id: int, flow_name: str, choice: Optional[str] = None) -> None:
        await send_reply(message, user_id, await engine.start_flow(user_id, flow_name, choice))

    async def run_menu(message: Message, user_id: int, key: str) -> None:
        if key == "balance":
            await show_balances(message, user_id)
        elif key == "wallets":
            await show_wallets(message, user_id)
        elif key == "history":
            await show_history(message, user_id)
        elif key == "profile":
            await show_profile(message, user_id)
        elif key == "send":
            await show_send_menu(message, user_id)
        elif key in ("withdraw", "batch", "login"):
            await start_flow(message, user_id, key)
        elif key == "logout":
            await logout(message, user_id)
        elif key == "help":
            await message.answer(TEXTS.get("help.text", lang))
        else:
            await show_menu(message, user_id)

    @router.message(CommandStart())
    async def start(message: Message) -> None:
        await show_start(message, message.from_user.id)

    @router.message(Command("help"))
    async def help_command(message: Message) -> None:
        await message.answer(TEXTS.get("help.text", lang))

    @router.message(Command("cancel"))
    async def cancel_command(message: Message) -> None:
        await send_reply(message, message.from_user.id, await engine.cancel(message.from_user.id))

    @router.message(Command("login", "logout", "balance", "wallets", "send", "withdraw", "batch", "history", "profile"))
    async def menu_command(message: Message) -> None:
        command = (message.text or "").split()[0].lstrip("/").split("@")[0].lower()
        await run_menu(message, message.from_user.id, command)

    @router.callback_query(F.data.startswith(MENU_PREFIX))
    async def menu_callback(callback: CallbackQuery) -> None:
        await callback.answer()
        if callback.message is None:
            return
        await run_menu(callback.message, callback.from_user.id, callback.data[len(MENU_PREFIX):])

    @router.callback_query(F.data.startswith(SEND_PREFIX))
    async def send_callback(callback: CallbackQuery) -> None:
        await callback.answer()
        if callback.message is None:
            return
        await start_flow(callback.message, callback.from_user.id, "send", callback.data[len(SEND_PREFIX):])

    @router.callback_query(F.data.startswith(WALLET_PREFIX))
    async def wallet_callback(callback: CallbackQuery) -> None:
        await callback.answer()
        if callback.message is None:
            return
        await start_flow(callback.message, callback.from_user.id, "wallet", callback.data[len(WALLET_PREFIX):])

    @router.callback_query(F.data.startswith(HISTORY_PREFIX))
    async def history_callback(callback: CallbackQuery) -> None:
        await callback.answer()
        if callback.message is None:
            return
        raw = callback.data[len(HISTORY_PREFIX):]
        page = int(raw) if raw.isdigit() and int(raw) > 0 else 1
        await show_history(callback.message, callback.from_user.id, page)

    @router.callback_query(F.data.startswith(FLOW_PREFIX))
    async def flow_callback(callback: CallbackQuery) -> None:
        await callback.answer()
        if callback.message is None:
            return
        user_id = callback.from_user.id
        reply = await engine.handle_input(user_id, action=callback.data[len(FLOW_PREFIX):])
        if reply is None:
            await show_menu(callback.message, user_id, "flow.idle")
            return
        await send_reply(callback.message, user_id, reply)

    @router.message(F.text)
    async def flow_text(message: Message) -> None:
        user_id = message.from_user.id
        reply = await engine.handle_input(user_id, text=message.text)
        if reply is None:
            await show_menu(message, user_id)
            return
        await send_reply(message, user_id, reply)

    return router
