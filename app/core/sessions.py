"""
Server-side session store.

Sessions are JSON projections of a user keyed by an opaque id that travels
in the first-party cookie. The store is an explicit service with
create/get/touch/destroy; Redis backs it in production, a process-local
dict in development and tests.
"""
import json
import time
from typing import Optional

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.security import generate_session_id
from app.error_handlers import UpstreamUnavailable
from app.logging_config import get_logger
from app.schemas.user import SessionUser

logger = get_logger("sessions")


class SessionStore:
    """Interface shared by session backends."""

    def __init__(self, ttl_seconds: int) -> None:
        self.ttl_seconds = ttl_seconds

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def ping(self) -> bool:
        return True

    async def create(self, user: SessionUser) -> str:
        raise NotImplementedError

    async def get(self, session_id: str) -> Optional[SessionUser]:
        raise NotImplementedError

    async def touch(self, session_id: str) -> bool:
        raise NotImplementedError

    async def destroy(self, session_id: str) -> None:
        raise NotImplementedError


class MemorySessionStore(SessionStore):
    """Process-local session store. Not shared between workers."""

    def __init__(self, ttl_seconds: int) -> None:
        super().__init__(ttl_seconds)
        self._sessions: dict[str, tuple[str, float]] = {}

    def _expiry(self) -> float:
        return time.time() + self.ttl_seconds

    def _live_payload(self, session_id: str) -> Optional[str]:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        payload, expires_at = entry
        if expires_at <= time.time():
            del self._sessions[session_id]
            return None
        return payload

    def _purge_expired(self) -> None:
        now = time.time()
        expired = [sid for sid, (_, expires_at) in self._sessions.items() if expires_at <= now]
        for session_id in expired:
            del self._sessions[session_id]

    async def create(self, user: SessionUser) -> str:
        # Sessions that are never read again would otherwise stay forever
        self._purge_expired()
        session_id = generate_session_id()
        self._sessions[session_id] = (user.model_dump_json(), self._expiry())
        return session_id

    async def get(self, session_id: str) -> Optional[SessionUser]:
        payload = self._live_payload(session_id)
        if payload is None:
            return None
        return SessionUser.model_validate_json(payload)

    async def touch(self, session_id: str) -> bool:
        payload = self._live_payload(session_id)
        if payload is None:
            return False
        self._sessions[session_id] = (payload, self._expiry())
        return True

    async def destroy(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)


class RedisSessionStore(SessionStore):
    """Redis-backed session store using SETEX for the idle timeout."""

    def __init__(self, url: str, ttl_seconds: int, key_prefix: str = "sess:") -> None:
        super().__init__(ttl_seconds)
        self._url = url
        self._key_prefix = key_prefix
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None

    def _key(self, session_id: str) -> str:
        return f"{self._key_prefix}{session_id}"

    async def connect(self) -> None:
        """Initialize connection pool."""
        self._pool = ConnectionPool.from_url(self._url, max_connections=10)
        self._client = Redis(connection_pool=self._pool)
        try:
            await self._client.ping()
            logger.info("Redis session store connected")
        except RedisError as e:
            # Keep the client; requests surface 503 until Redis comes back
            logger.warning("Redis session store not reachable at startup: %s", e)

    async def close(self) -> None:
        """Close connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None
            self._pool = None
            logger.info("Redis session store closed")

    def _require_client(self) -> Redis:
        if self._client is None:
            raise UpstreamUnavailable("session store")
        return self._client

    async def ping(self) -> bool:
        if not self._client:
            return False
        try:
            return await self._client.ping()
        except RedisError:
            return False

    async def create(self, user: SessionUser) -> str:
        client = self._require_client()
        session_id = generate_session_id()
        try:
            await client.setex(self._key(session_id), self.ttl_seconds, user.model_dump_json())
        except RedisError as e:
            logger.error("Redis SETEX failed: %s", e)
            raise UpstreamUnavailable("session store") from e
        return session_id

    async def get(self, session_id: str) -> Optional[SessionUser]:
        client = self._require_client()
        try:
            raw = await client.get(self._key(session_id))
        except RedisError as e:
            logger.error("Redis GET failed: %s", e)
            raise UpstreamUnavailable("session store") from e
        if raw is None:
            return None
        try:
            return SessionUser.model_validate(json.loads(raw))
        except ValueError:
            logger.warning("Discarding unreadable session payload")
            await self.destroy(session_id)
            return None

    async def touch(self, session_id: str) -> bool:
        client = self._require_client()
        try:
            return bool(await client.expire(self._key(session_id), self.ttl_seconds))
        except RedisError as e:
            logger.error("Redis EXPIRE failed: %s", e)
            raise UpstreamUnavailable("session store") from e

    async def destroy(self, session_id: str) -> None:
        client = self._require_client()
        try:
            await client.delete(self._key(session_id))
        except RedisError as e:
            logger.error("Redis DELETE failed: %s", e)
            raise UpstreamUnavailable("session store") from e


def build_session_store() -> SessionStore:
    """Create the backend selected by configuration."""
    if settings.session_backend == "redis" and settings.redis_enabled:
        return RedisSessionStore(
            settings.redis_url,
            ttl_seconds=settings.session_ttl_seconds,
            key_prefix=settings.session_key_prefix
        )
    logger.info("Using in-memory session store")
    return MemorySessionStore(ttl_seconds=settings.session_ttl_seconds)


# Global session store state using a container to avoid global statement
class _SessionStoreState:
    store: SessionStore | None = None


_state = _SessionStoreState()


def get_session_store() -> SessionStore:
    """FastAPI dependency returning the active session store."""
    if _state.store is None:
        _state.store = build_session_store()
    return _state.store


def set_session_store(store: SessionStore | None) -> None:
    _state.store = store
