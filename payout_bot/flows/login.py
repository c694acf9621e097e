from __future__ import annotations

import logging
from html import escape
from typing import TYPE_CHECKING, Optional

from payout_bot.flows.base import FlowContext, FlowReply
from payout_bot.flows.steps import cancel_buttons
from payout_bot.services.security import mask_email
from payout_bot.services.validation import is_valid_email
from payout_bot.states.flows import LoginStates

if TYPE_CHECKING:
    from payout_bot.flows.engine import FlowEngine

logger = logging.getLogger(__name__)


async def start(engine: "FlowEngine", ctx: FlowContext, choice: Optional[str] = None) -> FlowReply:
    if ctx.session.authenticated:
        return FlowReply(text=engine.text("login.already", email=escape(ctx.session.email or "")), finished=True)
    ctx.move(LoginStates.EMAIL)
    return FlowReply(text=engine.text("login.email.prompt"), buttons=cancel_buttons(engine))


async def email_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    email = ctx.input
    if not is_valid_email(email):
        return FlowReply(text=engine.text("login.email.invalid"), buttons=cancel_buttons(engine))
    sid = await engine.api.request_otp(email)
    logger.info("OTP requested for user %s (%s)", ctx.user_id, mask_email(email))
    ctx.scratch["email"] = email
    ctx.scratch["sid"] = sid
    ctx.move(LoginStates.OTP)
    return FlowReply(text=engine.text("login.otp.prompt", email=escape(email)), buttons=cancel_buttons(engine))


async def otp_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    otp = ctx.input.replace(" ", "")
    if not otp or not (otp.isascii() and otp.isdigit()):
        return FlowReply(text=engine.text("login.otp.invalid"), buttons=cancel_buttons(engine))
    email = ctx.scratch["email"]
    auth = await engine.api.authenticate(email, otp, ctx.scratch["sid"])
    session = ctx.session
    session.authenticated = True
    session.token = auth.access_token
    session.refresh_token = auth.refresh_token
    session.email = auth.email or email
    session.organization_id = auth.organization_id
    session.profile_user_id = auth.user_id
    engine.cache.invalidate(ctx.user_id)
    logger.info("User %s logged in", ctx.user_id)
    return engine.finish(ctx, engine.text("login.success", email=escape(session.email)))


HANDLERS = {
    LoginStates.EMAIL: email_step,
    LoginStates.OTP: otp_step,
}
