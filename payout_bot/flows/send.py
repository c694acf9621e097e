from __future__ import annotations

import logging
from html import escape
from typing import TYPE_CHECKING, Optional

from payout_bot.flows.base import (
    ACTION_CANCEL,
    ACTION_CONFIRM,
    ACTION_CONTINUE,
    ACTION_LARGE_CONFIRM,
    ACTION_REENTER,
    ACTION_SKIP,
    ACTION_USE_SUGGESTION,
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
    read_amount,
    selection_error,
    token_balance,
    token_options,
)
from payout_bot.services.amounts import format_amount, is_large_amount, to_base_units
from payout_bot.services.networks import format_network
from payout_bot.services.security import mask_secret
from payout_bot.services.validation import is_valid_email, suggest_email_correction, valid_networks_for_address
from payout_bot.states.flows import SendStates

if TYPE_CHECKING:
    from payout_bot.flows.engine import FlowEngine

logger = logging.getLogger(__name__)

RECIPIENT_EMAIL = "email"
RECIPIENT_WALLET = "wallet"
NOTE_LIMIT = 200


async def start(engine: "FlowEngine", ctx: FlowContext, choice: Optional[str] = None) -> FlowReply:
    if choice == RECIPIENT_WALLET:
        ctx.scratch["recipient_type"] = RECIPIENT_WALLET
        ctx.move(SendStates.WALLET_RECIPIENT)
        return FlowReply(text=engine.text("send.wallet.prompt"), buttons=cancel_buttons(engine))
    ctx.scratch["recipient_type"] = RECIPIENT_EMAIL
    ctx.move(SendStates.EMAIL_RECIPIENT)
    return FlowReply(text=engine.text("send.email.prompt"), buttons=cancel_buttons(engine))


async def _load_holdings(engine: "FlowEngine", ctx: FlowContext) -> None:
    holdings = holdings_by_network(await engine.balances(ctx))
    if not holdings:
        raise FlowAbort(engine.text("send.no_balances"))
    ctx.scratch["holdings"] = holdings
    ctx.scratch["networks"] = list(holdings)


def _network_prompt(engine: "FlowEngine", ctx: FlowContext, prefix: str = "") -> FlowReply:
    valid = ctx.scratch.get("valid_networks") if ctx.scratch.get("recipient_type") == RECIPIENT_WALLET else None
    text = prefix + engine.text("send.network.prompt", options=network_options(ctx.scratch["networks"], valid))
    buttons = []
    suggestion = ctx.scratch.get("email_suggestion")
    if suggestion:
        text += engine.text(
            "send.network.typo",
            suggestion=escape(suggestion),
            original=escape(ctx.scratch["recipient_email"]),
        )
        buttons.append((engine.text("button.use_suggestion", email=suggestion), ACTION_USE_SUGGESTION))
    buttons.extend(cancel_buttons(engine))
    return FlowReply(text=text, buttons=buttons)


def _token_prompt(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    network = ctx.scratch["network"]
    tokens = ctx.scratch["holdings"][network]
    return FlowReply(
        text=engine.text("token.prompt", network=format_network(network), options=token_options(tokens)),
        buttons=cancel_buttons(engine),
    )


def _note_prompt(engine: "FlowEngine") -> FlowReply:
    return FlowReply(
        text=engine.text("send.note.prompt"),
        buttons=[(engine.text("button.skip"), ACTION_SKIP), (engine.text("button.cancel"), ACTION_CANCEL)],
    )


def _warning_prompt(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    return FlowReply(
        text=engine.text("send.address.warning", network=format_network(ctx.scratch["pending_network"])),
        buttons=[
            (engine.text("button.continue"), ACTION_CONTINUE),
            (engine.text("button.reenter"), ACTION_REENTER),
            (engine.text("button.cancel"), ACTION_CANCEL),
        ],
    )


def _recipient(ctx: FlowContext) -> str:
    if ctx.scratch.get("recipient_type") == RECIPIENT_WALLET:
        return ctx.scratch["recipient_address"]
    return ctx.scratch["recipient_email"]


def _confirm_prompt(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    note = ctx.scratch.get("note")
    return FlowReply(
        text=engine.text(
            "send.confirm",
            recipient=escape(_recipient(ctx)),
            network=format_network(ctx.scratch["network"]),
            amount=format_amount(ctx.scratch["amount"]),
            token=ctx.scratch["token"],
            note=escape(note) if note else "—",
        ),
        buttons=confirm_buttons(engine),
    )


def _select_network(engine: "FlowEngine", ctx: FlowContext, network: str) -> FlowReply:
    ctx.scratch["network"] = network
    ctx.scratch.pop("pending_network", None)
    ctx.move(SendStates.TOKEN)
    return _token_prompt(engine, ctx)


async def email_recipient_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    email = ctx.input
    if not is_valid_email(email):
        return FlowReply(text=engine.text("send.email.invalid"), buttons=cancel_buttons(engine))
    await _load_holdings(engine, ctx)
    ctx.scratch["recipient_email"] = email
    suggestion = suggest_email_correction(email)
    if suggestion.has_typo:
        ctx.scratch["email_suggestion"] = suggestion.suggestion
    ctx.move(SendStates.NETWORK)
    return _network_prompt(engine, ctx)


async def wallet_recipient_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    address = ctx.input
    holdings = holdings_by_network(await engine.balances(ctx))
    if not holdings:
        raise FlowAbort(engine.text("send.no_balances"))
    valid = valid_networks_for_address(address, list(holdings)) if address else []
    if not valid:
        logger.info("User %s entered an address valid on none of %s", ctx.user_id, list(holdings))
        return FlowReply(text=engine.text("send.wallet.invalid"), buttons=cancel_buttons(engine))
    ctx.scratch["holdings"] = holdings
    ctx.scratch["networks"] = list(holdings)
    ctx.scratch["recipient_address"] = address
    ctx.scratch["valid_networks"] = valid
    ctx.move(SendStates.NETWORK)
    return _network_prompt(engine, ctx)


async def network_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    if ctx.action == ACTION_USE_SUGGESTION and ctx.scratch.get("email_suggestion"):
        email = ctx.scratch.pop("email_suggestion")
        ctx.scratch["recipient_email"] = email
        prefix = engine.text("send.network.suggestion_applied", email=escape(email))
        return _network_prompt(engine, ctx, prefix)
    networks = ctx.scratch["networks"]
    index = parse_selection(ctx.text, len(networks))
    if index is None:
        return selection_error(engine, len(networks), _network_prompt(engine, ctx))
    network = networks[index]
    ctx.scratch.pop("email_suggestion", None)
    if ctx.scratch.get("recipient_type") == RECIPIENT_WALLET and network not in ctx.scratch["valid_networks"]:
        ctx.scratch["pending_network"] = network
        ctx.move(SendStates.ADDRESS_WARNING)
        return _warning_prompt(engine, ctx)
    return _select_network(engine, ctx, network)


async def address_warning_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    if ctx.action == ACTION_CONTINUE:
        logger.info(
            "User %s continues with address %s on unmatched network %s",
            ctx.user_id,
            mask_secret(ctx.scratch.get("recipient_address")),
            ctx.scratch["pending_network"],
        )
        return _select_network(engine, ctx, ctx.scratch["pending_network"])
    if ctx.action == ACTION_REENTER:
        for key in ("pending_network", "recipient_address", "valid_networks", "networks", "holdings"):
            ctx.scratch.pop(key, None)
        ctx.move(SendStates.WALLET_RECIPIENT)
        return FlowReply(text=engine.text("send.wallet.prompt"), buttons=cancel_buttons(engine))
    return _warning_prompt(engine, ctx)


async def token_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    tokens = ctx.scratch["holdings"][ctx.scratch["network"]]
    index = parse_selection(ctx.text, len(tokens))
    if index is None:
        return selection_error(engine, len(tokens), _token_prompt(engine, ctx))
    ctx.scratch["token"] = tokens[index]["symbol"]
    ctx.move(SendStates.AMOUNT)
    return FlowReply(
        text=engine.text("send.amount.prompt", token=ctx.scratch["token"], balance=token_balance(ctx)),
        buttons=cancel_buttons(engine),
    )


async def amount_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    retry = read_amount(engine, ctx)
    if retry is not None:
        return retry
    if is_large_amount(ctx.scratch["amount"]):
        ctx.move(SendStates.LARGE_AMOUNT)
        return large_amount_prompt(engine, ctx)
    ctx.move(SendStates.NOTE)
    return _note_prompt(engine)


async def large_amount_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    if ctx.action in (ACTION_LARGE_CONFIRM, ACTION_CONFIRM):
        ctx.move(SendStates.NOTE)
        return _note_prompt(engine)
    return large_amount_prompt(engine, ctx)


async def note_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    if ctx.action == ACTION_SKIP or ctx.input.lower() == "skip":
        ctx.scratch.pop("note", None)
    elif not ctx.input:
        return FlowReply(text=engine.text("send.note.empty"), buttons=_note_prompt(engine).buttons)
    else:
        ctx.scratch["note"] = ctx.input[:NOTE_LIMIT]
    ctx.move(SendStates.CONFIRM)
    return _confirm_prompt(engine, ctx)


async def confirm_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    if ctx.action != ACTION_CONFIRM:
        prompt = _confirm_prompt(engine, ctx)
        return FlowReply(text=f"{engine.text('confirm.reprompt')}\n\n{prompt.text}", buttons=prompt.buttons)
    scratch = ctx.scratch
    amount = to_base_units(scratch["amount"])
    if scratch.get("recipient_type") == RECIPIENT_WALLET:
        result = await engine.api.send_wallet_transfer(
            ctx.token,
            amount=amount,
            currency=scratch["token"],
            receiver_address=scratch["recipient_address"],
            network=scratch["network"],
            note=scratch.get("note"),
        )
    else:
        result = await engine.api.send_email_transfer(
            ctx.token,
            amount=amount,
            currency=scratch["token"],
            receiver_email=scratch["recipient_email"],
            network=scratch["network"],
            note=scratch.get("note"),
        )
    engine.cache.invalidate(ctx.user_id)
    logger.info("User %s sent a transfer %s (%s)", ctx.user_id, result.id, result.status)
    return engine.finish(ctx, engine.text("send.success", id=result.id or "—", status=result.status))


HANDLERS = {
    SendStates.EMAIL_RECIPIENT: email_recipient_step,
    SendStates.WALLET_RECIPIENT: wallet_recipient_step,
    SendStates.NETWORK: network_step,
    SendStates.ADDRESS_WARNING: address_warning_step,
    SendStates.TOKEN: token_step,
    SendStates.AMOUNT: amount_step,
    SendStates.LARGE_AMOUNT: large_amount_step,
    SendStates.NOTE: note_step,
    SendStates.CONFIRM: confirm_step,
}
