# waterbot/storage.py
"""
Sessiyalar keshi. Kalit: user_state:<chat_id>, qiymat: Session JSON,
TTL (default 1 soat) o'tgach yozuv o'z-o'zidan yo'qoladi.
"""
import logging
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

from pydantic import ValidationError
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from .config import Settings
from .models import Session

logger = logging.getLogger(__name__)

KEY_PREFIX = "user_state"
DEFAULT_TTL_SECONDS = 3600


def session_key(user_id: int) -> str:
    return f"{KEY_PREFIX}:{user_id}"


def dump_session(session: Session) -> str:
    return session.model_dump_json()


def load_session(raw: str | bytes | None) -> Optional[Session]:
    if raw is None:
        return None
    try:
        return Session.model_validate_json(raw)
    except ValidationError as e:
        # format o'zgargan yoki yozuv buzilgan: yangidan boshlaymiz
        logger.warning("Dropping unreadable session record: %s", e)
        return None


class SessionStore(Protocol):
    async def get(self, user_id: int) -> Optional[Session]:
        ...

    async def set(self, session: Session, ttl_seconds: Optional[int] = None) -> None:
        ...

    async def delete(self, user_id: int) -> None:
        ...


class MemorySessionStore:
    """
    Redis bo'lmaganda (lokal ishga tushirish, testlar) ishlatiladi.
    Qiymat JSON ko'rinishida saqlanadi, shuning uchun tashqaridagi
    o'zgarishlar keshga ta'sir qilmaydi.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._records: Dict[int, Tuple[float, str]] = {}

    async def get(self, user_id: int) -> Optional[Session]:
        record = self._records.get(user_id)
        if record is None:
            return None
        expires_at, raw = record
        if self._clock() >= expires_at:
            del self._records[user_id]
            return None
        return load_session(raw)

    async def set(self, session: Session, ttl_seconds: Optional[int] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        now = self._clock()
        self._prune(now)
        self._records[session.user_id] = (now + ttl, dump_session(session))

    async def delete(self, user_id: int) -> None:
        self._records.pop(user_id, None)

    def _prune(self, now: float) -> None:
        # qaytib kelmagan foydalanuvchilarning eskirgan yozuvlari
        expired = [user_id for user_id, (expires_at, _) in self._records.items() if now >= expires_at]
        for user_id in expired:
            del self._records[user_id]

    def __len__(self) -> int:
        return len(self._records)


class RedisSessionStore:
    """
    Kesh "best-effort": Redis xatolari log qilinadi, o'qishda sessiya
    yo'q deb hisoblanadi, yozishda esa e'tiborsiz qoldiriladi.
    """

    def __init__(self, client: aioredis.Redis, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.client = client
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> "RedisSessionStore":
        return cls(aioredis.Redis.from_url(url), ttl_seconds=ttl_seconds)

    async def get(self, user_id: int) -> Optional[Session]:
        try:
            raw = await self.client.get(session_key(user_id))
        except RedisError as e:
            logger.error("Redis get failed for user_id=%s: %s", user_id, e)
            return None
        return load_session(raw)

    async def set(self, session: Session, ttl_seconds: Optional[int] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        try:
            await self.client.set(session_key(session.user_id), dump_session(session), ex=ttl)
        except RedisError as e:
            logger.error("Redis set failed for user_id=%s: %s", session.user_id, e)

    async def delete(self, user_id: int) -> None:
        try:
            await self.client.delete(session_key(user_id))
        except RedisError as e:
            logger.error("Redis delete failed for user_id=%s: %s", user_id, e)

    async def close(self) -> None:
        await self.client.aclose()


def build_session_store(settings: Settings) -> SessionStore:
    if settings.redis_enabled:
        logger.info("Using Redis session store (ttl=%ss)", settings.session_ttl_seconds)
        return RedisSessionStore.from_url(settings.redis_url, ttl_seconds=settings.session_ttl_seconds)
    logger.warning("REDIS_URL is not set, sessions are kept in process memory")
    return MemorySessionStore(ttl_seconds=settings.session_ttl_seconds)


async def get_or_create_session(store: SessionStore, user_id: int) -> Session:
    session = await store.get(user_id)
    if session is None:
        session = Session.fresh(user_id)
    return session
