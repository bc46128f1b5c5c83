# tests/test_storage.py
import asyncio
from decimal import Decimal

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from tests.conftest import USER_ID, make_settings
from waterbot.config import load_settings
from waterbot.models import Order, Session, SessionState
from waterbot.storage import (
    MemorySessionStore,
    RedisSessionStore,
    build_session_store,
    get_or_create_session,
    session_key,
)


def quantity_session():
    return Session(user_id=USER_ID, state=SessionState.ENTERING_QUANTITY, selected_product_id=1)


class FakeRedis:
    def __init__(self, fail: bool = False):
        self.data = {}
        self.expiry = {}
        self.fail = fail

    async def get(self, key):
        if self.fail:
            raise RedisConnectionError("redis down")
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        if self.fail:
            raise RedisConnectionError("redis down")
        self.data[key] = value.encode()
        self.expiry[key] = ex

    async def delete(self, key):
        if self.fail:
            raise RedisConnectionError("redis down")
        self.data.pop(key, None)


# -------------------------
# Memory store
# -------------------------

def test_memory_store_round_trip(store):
    asyncio.run(store.set(quantity_session()))
    loaded = asyncio.run(store.get(USER_ID))
    assert loaded == quantity_session()


def test_memory_store_expires_after_ttl(store, store_clock):
    asyncio.run(store.set(quantity_session()))

    store_clock.value += 3599
    assert asyncio.run(store.get(USER_ID)) is not None

    store_clock.value += 1
    assert asyncio.run(store.get(USER_ID)) is None
    assert len(store) == 0


def test_expired_records_of_other_users_are_pruned_on_set(store, store_clock):
    asyncio.run(store.set(quantity_session()))
    store_clock.value += 3600

    asyncio.run(store.set(Session.fresh(USER_ID + 1)))

    assert len(store) == 1
    assert asyncio.run(store.get(USER_ID + 1)) is not None


def test_set_refreshes_ttl(store, store_clock):
    asyncio.run(store.set(quantity_session()))
    store_clock.value += 3000
    asyncio.run(store.set(quantity_session()))
    store_clock.value += 3000
    assert asyncio.run(store.get(USER_ID)) is not None


def test_expired_session_is_replaced_with_fresh_one(store, store_clock):
    asyncio.run(store.set(quantity_session()))
    store_clock.value += 3601

    session = asyncio.run(get_or_create_session(store, USER_ID))

    assert session.state is SessionState.START
    assert session.selected_product_id is None


def test_stored_copy_is_isolated(store):
    session = Session(
        user_id=USER_ID,
        state=SessionState.AWAITING_ADDRESS,
        selected_product_id=1,
        selected_quantity=1,
        draft_order=Order(user_id=USER_ID, product_id=1, quantity=1, total_price=Decimal("299.99")),
    )
    asyncio.run(store.set(session))
    session.draft_order.delivery_address = "изменено"

    loaded = asyncio.run(store.get(USER_ID))
    assert loaded.draft_order.delivery_address is None


def test_corrupt_record_is_dropped(store):
    store._records[USER_ID] = (10 ** 9, '{"user_id": 4242, "state": "AwaitingAddress"}')
    assert asyncio.run(store.get(USER_ID)) is None


# -------------------------
# Redis store
# -------------------------

def test_redis_store_uses_prefixed_key_and_ttl():
    client = FakeRedis()
    store = RedisSessionStore(client, ttl_seconds=3600)

    asyncio.run(store.set(quantity_session()))

    key = session_key(USER_ID)
    assert key == f"user_state:{USER_ID}"
    assert client.expiry[key] == 3600
    assert asyncio.run(store.get(USER_ID)) == quantity_session()

    asyncio.run(store.delete(USER_ID))
    assert asyncio.run(store.get(USER_ID)) is None


def test_redis_errors_are_not_fatal():
    store = RedisSessionStore(FakeRedis(fail=True))

    asyncio.run(store.set(quantity_session()))
    asyncio.run(store.delete(USER_ID))
    assert asyncio.run(store.get(USER_ID)) is None


def test_build_store_without_redis_url():
    store = build_session_store(make_settings(redis_url=None, session_ttl_seconds=60))
    assert isinstance(store, MemorySessionStore)
    assert store.ttl_seconds == 60


# -------------------------
# Config
# -------------------------

def test_load_settings_defaults(monkeypatch):
    monkeypatch.setenv("TG_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("ADMIN_CHAT_ID", "555")
    for name in ("DB_MAX_RETRIES", "DB_RETRY_DELAY_SECONDS", "SESSION_TTL_SECONDS",
                 "DELIVERY_START_HOUR", "DELIVERY_END_HOUR", "REDIS_URL"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.admin_chat_id == 555
    assert settings.db_max_retries == 3
    assert settings.db_retry_delay_seconds == 5.0
    assert settings.session_ttl_seconds == 3600
    assert (settings.delivery_start_hour, settings.delivery_end_hour) == (9, 21)
    assert settings.is_admin(555)
    assert not settings.is_admin(556)


def test_load_settings_requires_token(monkeypatch):
    monkeypatch.setenv("TG_BOT_TOKEN", "")
    with pytest.raises(RuntimeError):
        load_settings()
