from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from payout_bot.flows.base import FlowAbort, FlowContext, FlowReply, parse_selection
from payout_bot.flows.steps import cancel_buttons, numbered, selection_error
from payout_bot.services.networks import SUPPORTED_NETWORKS, format_network
from payout_bot.states.flows import WalletStates

if TYPE_CHECKING:
    from payout_bot.flows.engine import FlowEngine

logger = logging.getLogger(__name__)

CHOICE_DEFAULT = "default"
CHOICE_GENERATE = "generate"


def _default_prompt(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    lines = [f"{format_network(item['network'])} <code>{item['address']}</code>" for item in ctx.scratch["wallets"]]
    return FlowReply(text=engine.text("wallet.default.prompt", options=numbered(lines)), buttons=cancel_buttons(engine))


def _generate_prompt(engine: "FlowEngine") -> FlowReply:
    lines = [format_network(network_id) for network_id, _ in SUPPORTED_NETWORKS]
    return FlowReply(text=engine.text("wallet.generate.prompt", options=numbered(lines)), buttons=cancel_buttons(engine))


async def start(engine: "FlowEngine", ctx: FlowContext, choice: Optional[str] = None) -> FlowReply:
    if choice == CHOICE_GENERATE:
        ctx.move(WalletStates.GENERATE_NETWORK)
        return _generate_prompt(engine)
    wallets = await engine.api.list_wallets(ctx.token)
    if not wallets:
        raise FlowAbort(engine.text("wallet.default.none"))
    ctx.scratch["wallets"] = [
        {"id": item.id, "network": item.network, "address": item.address} for item in wallets
    ]
    ctx.move(WalletStates.DEFAULT_SELECT)
    return _default_prompt(engine, ctx)


async def default_select_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    wallets = ctx.scratch["wallets"]
    index = parse_selection(ctx.text, len(wallets))
    if index is None:
        return selection_error(engine, len(wallets), _default_prompt(engine, ctx))
    chosen = wallets[index]
    await engine.api.set_default_wallet(ctx.token, chosen["id"])
    engine.cache.invalidate(ctx.user_id)
    logger.info("User %s changed the default wallet", ctx.user_id)
    return engine.finish(
        ctx,
        engine.text("wallet.default.done", network=format_network(chosen["network"]), address=chosen["address"]),
    )


async def generate_network_step(engine: "FlowEngine", ctx: FlowContext) -> FlowReply:
    index = parse_selection(ctx.text, len(SUPPORTED_NETWORKS))
    if index is None:
        return selection_error(engine, len(SUPPORTED_NETWORKS), _generate_prompt(engine))
    network_id, _ = SUPPORTED_NETWORKS[index]
    created = await engine.api.generate_wallet(ctx.token, network_id)
    engine.cache.invalidate(ctx.user_id)
    logger.info("User %s generated a wallet on %s", ctx.user_id, network_id)
    return engine.finish(
        ctx,
        engine.text("wallet.generate.done", network=format_network(created.network or network_id), address=created.address),
    )


HANDLERS = {
    WalletStates.DEFAULT_SELECT: default_select_step,
    WalletStates.GENERATE_NETWORK: generate_network_step,
}
