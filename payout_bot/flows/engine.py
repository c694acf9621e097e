from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from aiogram.fsm.state import State

from payout_bot.api.client import ApiError, AuthExpiredError
from payout_bot.flows import batch, login, send, wallet, withdraw
from payout_bot.flows.base import ACTION_CANCEL, FlowAbort, FlowContext, FlowReply, normalize_action
from payout_bot.models.entities import WalletBalance
from payout_bot.models.session import SessionStore
from payout_bot.services.cache import BalanceCache
from payout_bot.services.errors import (
    BUSINESS_RULE_PATTERNS,
    GENERIC,
    LOGIN_PATTERNS,
    classify_error,
)
from payout_bot.states.flows import flow_for_state, resolve_state
from payout_bot.texts.catalog import TEXTS

logger = logging.getLogger(__name__)

Handler = Callable[["FlowEngine", FlowContext], Awaitable[FlowReply]]
Starter = Callable[["FlowEngine", FlowContext, Optional[str]], Awaitable[FlowReply]]

FLOW_MODULES = {
    "send": send,
    "withdraw": withdraw,
    "batch": batch,
    "login": login,
    "wallet": wallet,
}

# Flows that act on the user's account and need a logged-in session.
AUTHENTICATED_FLOWS = {"send", "withdraw", "batch", "wallet"}


@dataclass(slots=True)
class UserLock:
    lock: asyncio.Lock
    holders: int = 0


class FlowEngine:
    """Runs the multi-step conversations on top of the session store.

    Each incoming event for a user is handled under that user's lock:
    load the session, dispatch on the stored step, save once, reply.
    """

    def __init__(
        self,
        store: SessionStore,
        api: Any,
        cache: BalanceCache,
        *,
        batch_currency: str = "USDC",
        language: str = "en",
    ) -> None:
        self.store = store
        self.api = api
        self.cache = cache
        self.batch_currency = batch_currency
        self.language = language
        self._locks: Dict[int, UserLock] = {}
        self._starters: Dict[str, Starter] = {name: module.start for name, module in FLOW_MODULES.items()}
        self._handlers: Dict[State, Handler] = {}
        for module in FLOW_MODULES.values():
            self._handlers.update(module.HANDLERS)

    @asynccontextmanager
    async def _user_lock(self, user_id: int) -> AsyncIterator[None]:
        # dropped once the last holder or waiter leaves
        entry = self._locks.get(user_id)
        if entry is None:
            entry = UserLock(lock=asyncio.Lock())
            self._locks[user_id] = entry
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0 and self._locks.get(user_id) is entry:
                del self._locks[user_id]

    def text(self, key: str, **kwargs: object) -> str:
        return TEXTS.get(key, self.language, **kwargs)

    async def balances(self, ctx: FlowContext) -> List[WalletBalance]:
        return await self.cache.get_or_fetch(ctx.user_id, lambda: self.api.list_balances(ctx.token))

    def finish(self, ctx: FlowContext, text: str) -> FlowReply:
        ctx.reset()
        return FlowReply(text=text, finished=True)

    async def start_flow(self, user_id: int, flow_name: str, initial_choice: Optional[str] = None) -> FlowReply:
        starter = self._starters.get(flow_name)
        if starter is None:
            raise ValueError(f"Unknown flow: {flow_name}")
        async with self._user_lock(user_id):
            session = await self.store.get(user_id)
            if flow_name in AUTHENTICATED_FLOWS and not session.authenticated:
                return FlowReply(text=self.text("flow.login_required"), finished=True)
            ctx = FlowContext(session=session)
            ctx.reset()
            logger.info("User %s started %s flow", user_id, flow_name)
            reply = await self._run(ctx, flow_name, lambda: starter(self, ctx, initial_choice))
            await self.store.save(session)
            return reply

    async def handle_flow_input(
        self,
        user_id: int,
        flow_name: str,
        text: Optional[str] = None,
        action: Optional[str] = None,
    ) -> FlowReply:
        async with self._user_lock(user_id):
            session = await self.store.get(user_id)
            state = resolve_state(session.current_step)
            if state is None or flow_for_state(state) != flow_name:
                return FlowReply(text=self.text("flow.idle"), finished=True)
            return await self._dispatch(FlowContext(session=session, text=text), state, flow_name, action)

    async def handle_input(self, user_id: int, text: Optional[str] = None, action: Optional[str] = None) -> Optional[FlowReply]:
        """Route an event by the stored step. Returns None when no flow is active."""
        async with self._user_lock(user_id):
            session = await self.store.get(user_id)
            state = resolve_state(session.current_step)
            if state is None:
                if session.current_step:
                    logger.warning("Dropping unknown step %r for user %s", session.current_step, user_id)
                    session.current_step = None
                    session.scratch = {}
                    await self.store.save(session)
                return None
            flow_name = flow_for_state(state) or ""
            return await self._dispatch(FlowContext(session=session, text=text), state, flow_name, action)

    async def cancel(self, user_id: int) -> FlowReply:
        async with self._user_lock(user_id):
            session = await self.store.get(user_id)
            ctx = FlowContext(session=session)
            active = session.current_step is not None
            reply = self.finish(ctx, self.text("flow.cancelled" if active else "flow.idle"))
            await self.store.save(session)
            return reply

    async def logout(self, user_id: int) -> None:
        """Drop the user's credentials and any flow in progress."""
        async with self._user_lock(user_id):
            session = await self.store.get(user_id)
            session.logout()
            await self.store.save(session)
            self.cache.invalidate(user_id)

    async def _dispatch(self, ctx: FlowContext, state: State, flow_name: str, action: Optional[str]) -> FlowReply:
        ctx.action = normalize_action(ctx.text, action)
        if ctx.action == ACTION_CANCEL:
            logger.info("User %s cancelled %s flow at %s", ctx.user_id, flow_name, state.state)
            reply = self.finish(ctx, self.text("flow.cancelled"))
        else:
            handler = self._handlers[state]
            reply = await self._run(ctx, flow_name, lambda: handler(self, ctx))
        await self.store.save(ctx.session)
        return reply

    async def _run(self, ctx: FlowContext, flow_name: str, call: Callable[[], Awaitable[FlowReply]]) -> FlowReply:
        try:
            reply = await call()
        except FlowAbort as exc:
            logger.info("User %s: %s flow stopped", ctx.user_id, flow_name)
            return self.finish(ctx, exc.text)
        except AuthExpiredError:
            logger.info("User %s: token rejected during %s flow, logging out", ctx.user_id, flow_name)
            ctx.session.logout()
            self.cache.invalidate(ctx.user_id)
            return FlowReply(text=self.text("flow.session_expired"), finished=True)
        except ApiError as exc:
            logger.warning("User %s: %s flow failed: %s", ctx.user_id, flow_name, exc.message)
            return self.finish(ctx, self.error_text(exc, flow_name))
        reply.step = ctx.session.current_step
        if reply.step is None:
            reply.finished = True
        return reply

    def error_text(self, exc: ApiError, flow_name: str = "") -> str:
        table = LOGIN_PATTERNS if flow_name == "login" else BUSINESS_RULE_PATTERNS
        category = classify_error(exc.message, exc.code, table)
        if category == GENERIC:
            return self.text("error.generic", reason=exc.message)
        return self.text(f"error.{category}")
