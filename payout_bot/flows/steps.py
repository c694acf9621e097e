"""Step helpers shared by the send and withdraw flows."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence

from payout_bot.flows.base import ACTION_CANCEL, ACTION_CONFIRM, ACTION_LARGE_CONFIRM, FlowContext, FlowReply
from payout_bot.models.entities import WalletBalance
from payout_bot.services.amounts import MAX_DISPLAY_AMOUNT, format_amount, parse_display_amount
from payout_bot.services.networks import format_network

if TYPE_CHECKING:
    from payout_bot.flows.engine import FlowEngine


def holdings_by_network(wallets: Iterable[WalletBalance]) -> Dict[str, List[Dict[str, str]]]:
    """Token balances per network, summed across wallets on the same chain."""
    merged: Dict[str, Dict[str, Decimal]] = {}
    for wallet in wallets:
        tokens = merged.setdefault(wallet.network, {})
        for token in wallet.tokens:
            try:
                amount = Decimal(token.balance)
            except (InvalidOperation, ValueError):
                amount = Decimal(0)
            tokens[token.symbol] = tokens.get(token.symbol, Decimal(0)) + amount
    return {
        network: [{"symbol": symbol, "balance": str(amount)} for symbol, amount in tokens.items()]
        for network, tokens in merged.items()
        if tokens
    }


def numbered(lines: Sequence[str]) -> str:
    return "\n".join(f"{index}. {line}" for index, line in enumerate(lines, start=1))


def network_options(networks: Sequence[str], valid: Optional[Sequence[str]] = None) -> str:
    lines = []
    for network in networks:
        label = format_network(network)
        if valid is not None:
            label = f"{'✅' if network in valid else '⚠️'} {label}"
        lines.append(label)
    return numbered(lines)


def token_options(tokens: Sequence[Dict[str, Any]]) -> str:
    return numbered([f"{token['symbol']} ({format_amount(token['balance'])})" for token in tokens])


def selection_error(engine: "FlowEngine", count: int, prompt: FlowReply) -> FlowReply:
    return FlowReply(
        text=f"{engine.text('flow.selection.invalid', count=count)}\n\n{prompt.text}",
        buttons=prompt.buttons,
    )


def cancel_buttons(engine: "FlowEngine") -> List[tuple]:
    return [(engine.text("button.cancel"), ACTION_CANCEL)]


def confirm_buttons(engine: "FlowEngine") -> List[tuple]:
    return [
        (engine.text("button.confirm"), ACTION_CONFIRM),
        (engine.text("button.cancel"), ACTION_CANCEL),
    ]


def large_amount_prompt(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    return FlowReply(
        text=engine.text(
            "amount.large.warning",
            amount=format_amount(ctx.scratch["amount"]),
            token=ctx.scratch.get("token", ""),
        ),
        buttons=[
            (engine.text("button.large_confirm"), ACTION_LARGE_CONFIRM),
            (engine.text("button.cancel"), ACTION_CANCEL),
        ],
    )


def read_amount(engine: "FlowEngine", ctx: FlowContext) -> Optional[FlowReply]:
    """Store a valid display amount in scratch, or return the re-prompt."""
    amount = parse_display_amount(ctx.input)
    if amount is None:
        return FlowReply(text=engine.text("amount.invalid"), buttons=cancel_buttons(engine))
    if amount > MAX_DISPLAY_AMOUNT:
        return FlowReply(
            text=engine.text("amount.too_large", max=format_amount(MAX_DISPLAY_AMOUNT)),
            buttons=cancel_buttons(engine),
        )
    ctx.scratch["amount"] = str(amount)
    return None


def token_balance(ctx: FlowContext) -> str:
    for token in ctx.scratch.get("holdings", {}).get(ctx.scratch.get("network"), []):
        if token["symbol"] == ctx.scratch.get("token"):
            return format_amount(token["balance"])
    return format_amount(0)
