from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Protocol

from payout_bot.services.security import CredentialEncryptor, derive_session_key

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = 24 * 60 * 60


class SessionBackend(Protocol):
    async def init(self) -> None: ...

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl: int) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def close(self) -> None: ...


@dataclass(slots=True)
class Session:
    user_id: int
    authenticated: bool = False
    token: Optional[str] = None
    refresh_token: Optional[str] = None
    email: Optional[str] = None
    organization_id: Optional[str] = None
    profile_user_id: Optional[str] = None
    current_step: Optional[str] = None
    scratch: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, user_id: int, data: Dict[str, Any]) -> "Session":
        scratch = data.get("scratch")
        return cls(
            user_id=user_id,
            authenticated=bool(data.get("authenticated")),
            token=data.get("token"),
            refresh_token=data.get("refresh_token"),
            email=data.get("email"),
            organization_id=data.get("organization_id"),
            profile_user_id=data.get("profile_user_id"),
            current_step=data.get("current_step"),
            scratch=dict(scratch) if isinstance(scratch, dict) else {},
        )

    def logout(self) -> None:
        self.authenticated = False
        self.token = None
        self.refresh_token = None
        self.email = None
        self.organization_id = None
        self.profile_user_id = None
        self.current_step = None
        self.scratch = {}


class SessionStore:
    """Per-user session records on top of a key/value backend.

    Records live under a keyed hash of the chat user id and every save
    pushes the expiry forward by ``ttl`` seconds.
    """

    def __init__(
        self,
        backend: SessionBackend,
        *,
        secret: str,
        ttl: int = DEFAULT_SESSION_TTL,
        encryptor: Optional[CredentialEncryptor] = None,
    ) -> None:
        self._backend = backend
        self._secret = secret
        self.ttl = ttl
        self._encryptor = encryptor or CredentialEncryptor(None)

    def key_for(self, user_id: int) -> str:
        return derive_session_key(user_id, self._secret)

    async def init(self) -> None:
        await self._backend.init()

    async def close(self) -> None:
        await self._backend.close()

    async def get(self, user_id: int) -> Session:
        raw = await self._backend.get(self.key_for(user_id))
        if raw is None:
            return Session(user_id=user_id)
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable session record for user %s", user_id)
            return Session(user_id=user_id)
        session = Session.from_dict(user_id, data if isinstance(data, dict) else {})
        if session.token:
            session.token = self._encryptor.decrypt(session.token)
            session.refresh_token = self._encryptor.decrypt(session.refresh_token)
            if session.token is None:
                logger.warning("Stored token for user %s could not be decrypted, logging out", user_id)
                session.logout()
        return session

    async def save(self, session: Session) -> None:
        data = session.to_dict()
        data["token"] = self._encryptor.encrypt(session.token)
        data["refresh_token"] = self._encryptor.encrypt(session.refresh_token)
        await self._backend.set(self.key_for(session.user_id), json.dumps(data), self.ttl)

    async def clear(self, user_id: int) -> None:
        await self._backend.delete(self.key_for(user_id))

    async def set_field(self, user_id: int, name: str, value: Any) -> None:
        session = await self.get(user_id)
        session.scratch[name] = value
        await self.save(session)

    async def get_field(self, user_id: int, name: str, default: Any = None) -> Any:
        session = await self.get(user_id)
        return session.scratch.get(name, default)

    async def clear_fields(self, user_id: int, name: Optional[str] = None) -> None:
        session = await self.get(user_id)
        if name is None:
            session.scratch = {}
        else:
            session.scratch.pop(name, None)
        await self.save(session)
