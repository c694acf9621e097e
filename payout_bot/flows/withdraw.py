from __future__ import annotations

import logging
from decimal import Decimal
from html import escape
from typing import TYPE_CHECKING, Optional

from payout_bot.api.client import ApiError, AuthExpiredError
from payout_bot.flows.base import (
    ACTION_CONFIRM,
    ACTION_LARGE_CONFIRM,
    FlowAbort,
    FlowContext,
    FlowReply,
    parse_selection,
)
from payout_bot.flows.steps import (
    cancel_buttons,
    confirm_buttons,
    holdings_by_network,
    large_amount_prompt,
    network_options,
    numbered,
    read_amount,
    selection_error,
    token_balance,
    token_options,
)
from payout_bot.models.entities import WithdrawalQuote
from payout_bot.services.amounts import format_amount, from_base_units, is_large_amount, to_base_units
from payout_bot.services.fees import estimate_withdrawal_fee, format_usd
from payout_bot.services.networks import format_network
from payout_bot.states.flows import WithdrawStates

if TYPE_CHECKING:
    from payout_bot.flows.engine import FlowEngine

logger = logging.getLogger(__name__)

PURPOSE_CODE = "self"


async def _require_kyc(engine: "FlowEngine", ctx: FlowContext) -> None:
    kyc = await engine.api.get_kyc_status(ctx.token)
    if not (kyc.is_approved and kyc.status == "approved"):
        logger.info("User %s blocked from withdrawal, KYC status %s", ctx.user_id, kyc.status)
        raise FlowAbort(engine.text("withdraw.kyc.required", status=kyc.status))


def _account_prompt(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    labels = [account["label"] for account in ctx.scratch["bank_accounts"]]
    return FlowReply(
        text=engine.text("withdraw.account.prompt", options=numbered(labels)),
        buttons=cancel_buttons(engine),
    )


def _network_prompt(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    return FlowReply(
        text=engine.text("withdraw.network.prompt", options=network_options(ctx.scratch["networks"])),
        buttons=cancel_buttons(engine),
    )


def _token_prompt(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    network = ctx.scratch["network"]
    return FlowReply(
        text=engine.text(
            "token.prompt",
            network=format_network(network),
            options=token_options(ctx.scratch["holdings"][network]),
        ),
        buttons=cancel_buttons(engine),
    )


async def start(engine: "FlowEngine", ctx: FlowContext, choice: Optional[str] = None) -> FlowReply:
    await _require_kyc(engine, ctx)
    accounts = await engine.api.get_bank_accounts(ctx.token)
    if not accounts:
        raise FlowAbort(engine.text("withdraw.no_accounts"))
    ctx.scratch["bank_accounts"] = [
        {
            "id": account.id,
            "country": account.country,
            "label": engine.text(
                "withdraw.account.option",
                bank=escape(account.bank_name),
                last4=account.last_four_digits,
            ),
        }
        for account in accounts
    ]
    ctx.move(WithdrawStates.BANK_ACCOUNT)
    return _account_prompt(engine, ctx)


async def bank_account_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    accounts = ctx.scratch["bank_accounts"]
    index = parse_selection(ctx.text, len(accounts))
    if index is None:
        return selection_error(engine, len(accounts), _account_prompt(engine, ctx))
    holdings = holdings_by_network(await engine.balances(ctx))
    if not holdings:
        raise FlowAbort(engine.text("send.no_balances"))
    ctx.scratch["bank_account"] = accounts[index]
    ctx.scratch["holdings"] = holdings
    ctx.scratch["networks"] = list(holdings)
    ctx.move(WithdrawStates.NETWORK)
    return _network_prompt(engine, ctx)


async def network_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    networks = ctx.scratch["networks"]
    index = parse_selection(ctx.text, len(networks))
    if index is None:
        return selection_error(engine, len(networks), _network_prompt(engine, ctx))
    ctx.scratch["network"] = networks[index]
    ctx.move(WithdrawStates.TOKEN)
    return _token_prompt(engine, ctx)


async def token_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    tokens = ctx.scratch["holdings"][ctx.scratch["network"]]
    index = parse_selection(ctx.text, len(tokens))
    if index is None:
        return selection_error(engine, len(tokens), _token_prompt(engine, ctx))
    ctx.scratch["token"] = tokens[index]["symbol"]
    ctx.move(WithdrawStates.AMOUNT)
    return FlowReply(
        text=engine.text("withdraw.amount.prompt", token=ctx.scratch["token"], balance=token_balance(ctx)),
        buttons=cancel_buttons(engine),
    )


async def _request_quote(engine: "FlowEngine", ctx: FlowContext) -> WithdrawalQuote:
    account = ctx.scratch["bank_account"]
    return await engine.api.get_withdrawal_quote(
        ctx.token,
        amount=to_base_units(ctx.scratch["amount"]),
        currency=ctx.scratch["token"],
        bank_account_id=account["id"],
        destination_country=account.get("country"),
    )


def _quote_figure(value: Optional[str]) -> Optional[Decimal]:
    if value is None:
        return None
    return from_base_units(value)


async def _show_confirm(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    ctx.move(WithdrawStates.CONFIRM)
    amount = Decimal(ctx.scratch["amount"])
    estimate = estimate_withdrawal_fee(amount)
    try:
        quote = await _request_quote(engine, ctx)
    except AuthExpiredError:
        raise
    except ApiError as exc:
        logger.info("Quote unavailable for user %s, showing estimate: %s", ctx.user_id, exc.message)
        ctx.scratch.pop("quote", None)
        key = "withdraw.confirm.estimate"
        fee, receive = estimate.total_fee, estimate.receive_amount
    else:
        ctx.scratch["quote"] = {"payload": quote.quote_payload, "signature": quote.quote_signature}
        key = "withdraw.confirm.quote"
        fee = _quote_figure(quote.total_fee)
        receive = _quote_figure(quote.to_amount)
        if fee is None or receive is None:
            fee, receive = estimate.total_fee, estimate.receive_amount
    ctx.scratch["confirm_text"] = engine.text(
        key,
        bank=ctx.scratch["bank_account"]["label"],
        amount=format_amount(amount),
        token=ctx.scratch["token"],
        fee=format_usd(fee),
        receive=format_usd(receive),
    )
    return FlowReply(text=ctx.scratch["confirm_text"], buttons=confirm_buttons(engine))


async def amount_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    retry = read_amount(engine, ctx)
    if retry is not None:
        return retry
    if is_large_amount(ctx.scratch["amount"]):
        ctx.move(WithdrawStates.LARGE_AMOUNT)
        return large_amount_prompt(engine, ctx)
    return await _show_confirm(engine, ctx)


async def large_amount_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    if ctx.action in (ACTION_LARGE_CONFIRM, ACTION_CONFIRM):
        return await _show_confirm(engine, ctx)
    return large_amount_prompt(engine, ctx)


async def confirm_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    if ctx.action != ACTION_CONFIRM:
        return FlowReply(
            text=f"{engine.text('confirm.reprompt')}\n\n{ctx.scratch.get('confirm_text', '')}",
            buttons=confirm_buttons(engine),
        )
    await _require_kyc(engine, ctx)
    held = ctx.scratch.get("quote")
    if held is None:
        quote = await _request_quote(engine, ctx)
        held = {"payload": quote.quote_payload, "signature": quote.quote_signature}
    result = await engine.api.execute_withdrawal(
        ctx.token,
        quote_payload=held["payload"],
        quote_signature=held["signature"],
        purpose_code=PURPOSE_CODE,
    )
    engine.cache.invalidate(ctx.user_id)
    logger.info("User %s submitted withdrawal %s (%s)", ctx.user_id, result.id, result.status)
    return engine.finish(ctx, engine.text("withdraw.success", id=result.id or "—", status=result.status))


HANDLERS = {
    WithdrawStates.BANK_ACCOUNT: bank_account_step,
    WithdrawStates.NETWORK: network_step,
    WithdrawStates.TOKEN: token_step,
    WithdrawStates.AMOUNT: amount_step,
    WithdrawStates.LARGE_AMOUNT: large_amount_step,
    WithdrawStates.CONFIRM: confirm_step,
}
