from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class CredentialEncryptor:
    """Encrypts API tokens before they reach the session backend."""

    def __init__(self, key: Optional[bytes]) -> None:
        self._fernet: Optional[Fernet]
        if key:
            try:
                # allow base64 urlsafe strings or raw key material
                decoded = base64.urlsafe_b64decode(key)
                if len(decoded) == 32:
                    self._fernet = Fernet(base64.urlsafe_b64encode(decoded))
                else:
                    self._fernet = Fernet(key)
            except (ValueError, TypeError):
                logger.warning("ENCRYPTION_KEY is not a valid Fernet key, tokens are stored in plain text")
                self._fernet = None
        else:
            self._fernet = None

    @property
    def enabled(self) -> bool:
        return self._fernet is not None

    def encrypt(self, value: Optional[str]) -> Optional[str]:
        if not value:
            return value
        if self._fernet is None:
            return value
        token = self._fernet.encrypt(value.encode("utf-8"))
        return token.decode("utf-8")

    def decrypt(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return token
        if self._fernet is None:
            return token
        try:
            value = self._fernet.decrypt(token.encode("utf-8"))
            return value.decode("utf-8")
        except InvalidToken:
            return None


def derive_session_key(user_id: object, secret: str) -> str:
    """Non-reversible storage key for a chat user."""
    digest = hmac.new(secret.encode("utf-8"), str(user_id).encode("utf-8"), hashlib.sha256)
    return digest.hexdigest()


def mask_secret(value: Optional[str]) -> str:
    if not value:
        return "—"
    if len(value) <= 4:
        return "***"
    return f"***{value[-4:]}"


def mask_email(value: Optional[str]) -> str:
    if not value or "@" not in value:
        return mask_secret(value)
    local, _, domain = value.partition("@")
    return f"{local[:1]}***@{domain}"
