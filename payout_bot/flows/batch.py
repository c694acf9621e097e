from __future__ import annotations

import logging
from decimal import Decimal
from html import escape
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from payout_bot.flows.base import ACTION_CONFIRM, FlowContext, FlowReply
from payout_bot.flows.steps import cancel_buttons, confirm_buttons
from payout_bot.services.amounts import MAX_DISPLAY_AMOUNT, format_amount, parse_display_amount, to_base_units
from payout_bot.services.validation import is_valid_email
from payout_bot.states.flows import BatchStates

if TYPE_CHECKING:
    from payout_bot.flows.engine import FlowEngine

logger = logging.getLogger(__name__)

CMD_DONE = "DONE"
CMD_LIST = "LIST"
CMD_CLEAR = "CLEAR"


def parse_batch_line(line: str) -> Optional[Tuple[str, str]]:
    parts = line.split()
    if len(parts) == 1 and parts[0].count(",") == 1:
        # "email,amount" pasted from a spreadsheet
        parts = parts[0].split(",")
    if len(parts) != 2:
        return None
    email, raw_amount = parts
    if not is_valid_email(email):
        return None
    amount = parse_display_amount(raw_amount)
    if amount is None or amount > MAX_DISPLAY_AMOUNT:
        return None
    return email, str(amount)


def _entries(ctx: FlowContext) -> List[Dict[str, str]]:
    return ctx.scratch.setdefault("entries", [])


def _total(entries: List[Dict[str, str]]) -> Decimal:
    return sum((Decimal(entry["amount"]) for entry in entries), Decimal(0))


def _entry_lines(engine: "FlowEngine", entries: List[Dict[str, str]]) -> str:
    return "\n".join(
        engine.text(
            "batch.entry",
            index=index,
            email=escape(entry["email"]),
            amount=format_amount(entry["amount"]),
            currency=engine.batch_currency,
        )
        for index, entry in enumerate(entries, start=1)
    )


def _find(entries: List[Dict[str, str]], email: str) -> Optional[Dict[str, str]]:
    for entry in entries:
        if entry["email"].lower() == email.lower():
            return entry
    return None


def _entries_prompt(engine: "FlowEngine") -> FlowReply:
    return FlowReply(text=engine.text("batch.prompt", currency=engine.batch_currency), buttons=cancel_buttons(engine))


def _confirm_prompt(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    entries = _entries(ctx)
    return FlowReply(
        text=engine.text(
            "batch.confirm",
            lines=_entry_lines(engine, entries),
            count=len(entries),
            total=format_amount(_total(entries)),
            currency=engine.batch_currency,
        ),
        buttons=confirm_buttons(engine),
    )


def _apply(engine: "FlowEngine", ctx: FlowContext, pending: List[List[str]], prefix: str = "") -> FlowReply:
    """Add parsed lines in order, pausing at the first duplicate email."""
    entries = _entries(ctx)
    added = ctx.scratch.get("added_count", 0)
    for position, (email, amount) in enumerate(pending):
        existing = _find(entries, email)
        if existing is not None:
            ctx.scratch["duplicate"] = {"email": existing["email"], "amount": amount}
            ctx.scratch["pending_lines"] = [list(item) for item in pending[position + 1:]]
            ctx.scratch["added_count"] = added
            ctx.move(BatchStates.DUPLICATE)
            return FlowReply(
                text=prefix
                + engine.text(
                    "batch.duplicate",
                    email=escape(existing["email"]),
                    current=format_amount(existing["amount"]),
                    amount=format_amount(amount),
                    currency=engine.batch_currency,
                ),
                buttons=cancel_buttons(engine),
            )
        entries.append({"email": email, "amount": amount})
        added += 1
    ctx.scratch.pop("pending_lines", None)
    ctx.scratch.pop("added_count", None)
    ctx.move(BatchStates.ENTRIES)
    return FlowReply(
        text=prefix
        + engine.text(
            "batch.added",
            count=added,
            total_count=len(entries),
            total=format_amount(_total(entries)),
            currency=engine.batch_currency,
        ),
        buttons=cancel_buttons(engine),
    )


async def start(engine: "FlowEngine", ctx: FlowContext, choice: Optional[str] = None) -> FlowReply:
    ctx.scratch["entries"] = []
    ctx.move(BatchStates.ENTRIES)
    return _entries_prompt(engine)


async def entries_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    command = ctx.input.upper()
    entries = _entries(ctx)
    if command == CMD_DONE:
        if not entries:
            return FlowReply(text=engine.text("batch.empty"), buttons=cancel_buttons(engine))
        ctx.move(BatchStates.CONFIRM)
        return _confirm_prompt(engine, ctx)
    if command == CMD_LIST:
        if not entries:
            return FlowReply(text=engine.text("batch.empty"), buttons=cancel_buttons(engine))
        return FlowReply(
            text=engine.text(
                "batch.list",
                lines=_entry_lines(engine, entries),
                total=format_amount(_total(entries)),
                currency=engine.batch_currency,
            ),
            buttons=cancel_buttons(engine),
        )
    if command == CMD_CLEAR:
        ctx.scratch["entries"] = []
        return FlowReply(text=engine.text("batch.cleared"), buttons=cancel_buttons(engine))

    lines = [line.strip() for line in (ctx.text or "").splitlines() if line.strip()]
    if not lines:
        return _entries_prompt(engine)
    parsed: List[Tuple[str, str]] = []
    for number, line in enumerate(lines, start=1):
        item = parse_batch_line(line)
        if item is None:
            return FlowReply(
                text=engine.text("batch.invalid_line", line=number, text=escape(line)),
                buttons=cancel_buttons(engine),
            )
        parsed.append(item)
    ctx.scratch["added_count"] = 0
    return _apply(engine, ctx, [list(item) for item in parsed])


async def duplicate_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    duplicate = ctx.scratch.pop("duplicate")
    existing = _find(_entries(ctx), duplicate["email"])
    if ctx.input.upper() == "YES" or ctx.action == ACTION_CONFIRM:
        existing["amount"] = duplicate["amount"]
        key = "batch.duplicate.replaced"
    else:
        key = "batch.duplicate.kept"
    prefix = engine.text(
        key,
        email=escape(existing["email"]),
        amount=format_amount(existing["amount"]),
        currency=engine.batch_currency,
    )
    return _apply(engine, ctx, ctx.scratch.pop("pending_lines", []), prefix + "\n")


async def confirm_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    if ctx.action != ACTION_CONFIRM:
        prompt = _confirm_prompt(engine, ctx)
        return FlowReply(text=f"{engine.text('confirm.reprompt')}\n\n{prompt.text}", buttons=prompt.buttons)
    entries = _entries(ctx)
    requests = [
        {
            "email": entry["email"],
            "amount": to_base_units(entry["amount"]),
            "currency": engine.batch_currency,
        }
        for entry in entries
    ]
    results = await engine.api.send_batch(ctx.token, requests)
    engine.cache.invalidate(ctx.user_id)
    logger.info("User %s submitted a batch of %s payments", ctx.user_id, len(requests))
    lines = [engine.text("batch.result.header")]
    for result in results:
        if result.ok:
            lines.append(engine.text("batch.result.ok", email=escape(result.recipient or ""), status=result.status))
        else:
            lines.append(
                engine.text("batch.result.failed", email=escape(result.recipient or ""), error=escape(result.error or ""))
            )
    return engine.finish(ctx, "\n".join(lines))


HANDLERS = {
    BatchStates.ENTRIES: entries_step,
    BatchStates.DUPLICATE: duplicate_step,
    BatchStates.CONFIRM: confirm_step,
}
