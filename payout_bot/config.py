from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


SESSION_BACKENDS = {"memory", "sqlite", "redis"}


def _parse_int(raw: Optional[str], default: int) -> int:
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _parse_float(raw: Optional[str], default: float) -> float:
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


@dataclass(slots=True)
class Config:
    bot_token: str
    api_base_url: str
    api_timeout: float
    session_secret: str
    session_ttl: int
    session_backend: str
    redis_url: Optional[str]
    db_path: str
    encryption_key: Optional[bytes]
    balance_cache_ttl: int
    batch_currency: str
    default_language: str
    log_level: str


def load_config() -> Config:
    token = os.getenv("TELEGRAM_BOT_TOKEN") or os.getenv("BOT_TOKEN")
    if not token:
        raise RuntimeError("TELEGRAM_BOT_TOKEN environment variable is not set")

    api_base_url = os.getenv("API_BASE_URL", "https://income-api.copperx.io/api").rstrip("/")

    db_path = os.getenv("DB_URL") or os.getenv("BOT_DB_PATH", "sqlite+aiosqlite:///./sessions.db")
    if db_path.startswith("sqlite+"):
        db_path = db_path.split("sqlite+", maxsplit=1)[-1]
    if db_path.startswith("aiosqlite:///"):
        db_path = db_path[len("aiosqlite:///"):]

    redis_url = os.getenv("REDIS_URL") or None

    backend = os.getenv("SESSION_BACKEND", "").strip().lower()
    if backend not in SESSION_BACKENDS:
        backend = "redis" if redis_url else "sqlite"
    if backend == "redis" and not redis_url:
        raise RuntimeError("SESSION_BACKEND=redis requires REDIS_URL")

    encryption = os.getenv("ENCRYPTION_KEY")
    encryption_key = encryption.encode("utf-8") if encryption else None

    default_lang = os.getenv("BOT_DEFAULT_LANG", "en").lower()
    if default_lang not in {"en"}:
        default_lang = "en"

    return Config(
        bot_token=token,
        api_base_url=api_base_url,
        api_timeout=_parse_float(os.getenv("API_TIMEOUT"), 30.0),
        session_secret=os.getenv("SESSION_SECRET", "payout-bot-session-secret"),
        session_ttl=_parse_int(os.getenv("SESSION_TTL") or os.getenv("SESSION_EXPIRY"), 24 * 60 * 60),
        session_backend=backend,
        redis_url=redis_url,
        db_path=db_path,
        encryption_key=encryption_key,
        balance_cache_ttl=_parse_int(os.getenv("BALANCE_CACHE_TTL"), 60),
        batch_currency=os.getenv("BATCH_CURRENCY", "USDC").strip().upper() or "USDC",
        default_language=default_lang,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
