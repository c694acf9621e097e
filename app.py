from __future__ import annotations

import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from payout_bot.api.client import PayoutsApiClient
from payout_bot.config import Config, load_config
from payout_bot.flows.engine import FlowEngine
from payout_bot.models.session import SessionStore
from payout_bot.models.storage import build_backend
from payout_bot.routers.public import get_public_router
from payout_bot.services.cache import BalanceCache
from payout_bot.services.security import CredentialEncryptor

logger = logging.getLogger(__name__)


def build_dispatcher(config: Config, engine: FlowEngine, store: SessionStore, api: PayoutsApiClient, cache: BalanceCache):
    dp = Dispatcher()
    dp.include_router(get_public_router(config, engine, store, api, cache))
    return dp


async def main() -> None:
    config = load_config()
    logging.basicConfig(level=config.log_level)
    encryptor = CredentialEncryptor(config.encryption_key)
    if not encryptor.enabled:
        logger.warning("ENCRYPTION_KEY is not set, session tokens are stored unencrypted")
    backend = build_backend(config.session_backend, db_path=config.db_path, redis_url=config.redis_url)
    store = SessionStore(backend, secret=config.session_secret, ttl=config.session_ttl, encryptor=encryptor)
    await store.init()
    api = PayoutsApiClient(config.api_base_url, timeout=config.api_timeout)
    cache = BalanceCache(ttl=config.balance_cache_ttl)
    engine = FlowEngine(store, api, cache, batch_currency=config.batch_currency, language=config.default_language)
    bot = Bot(token=config.bot_token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
    dp = build_dispatcher(config, engine, store, api, cache)
    logger.info("Starting bot with %s session backend", config.session_backend)
    try:
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        await api.close()
        await store.close()
        await bot.session.close()


if __name__ == "__main__":
    asyncio.run(main())
