# tests/conftest.py
from __future__ import annotations

from collections import Counter
from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

from waterbot.config import Settings
from waterbot.gateway import ResilientGateway
from waterbot.models import Order, Product, ProductDraft
from waterbot.storage import MemorySessionStore
from waterbot.workflow import OrderWorkflow

USER_ID = 4242
ADMIN_ID = 999
NOW = datetime(2024, 6, 1, 10, 0)


# -------------------------
# Fakes
# -------------------------

class FakeRepository:
    """
    OrderRepository o'rnida. `failures[op] = n` -> op birinchi n marta ConnectionError.
    """

    def __init__(self, products: Optional[List[Product]] = None):
        self.products: Dict[int, Product] = {p.id: p for p in (products or [])}
        self.orders: Dict[int, Order] = {}
        self.failures: Counter = Counter()
        self.calls: Counter = Counter()
        self._next_order_id = 1

    def _maybe_fail(self, op: str) -> None:
        self.calls[op] += 1
        if self.failures[op] > 0:
            self.failures[op] -= 1
            raise ConnectionError(f"{op}: connection refused")

    def init_schema(self) -> None:
        self._maybe_fail("init_schema")

    def list_products(self) -> List[Product]:
        self._maybe_fail("list_products")
        return [self.products[k] for k in sorted(self.products)]

    def get_product(self, product_id: int) -> Optional[Product]:
        self._maybe_fail("get_product")
        return self.products.get(product_id)

    def insert_order(self, order: Order) -> int:
        self._maybe_fail("insert_order")
        order_id = self._next_order_id
        self._next_order_id += 1
        self.orders[order_id] = order.model_copy(update={"id": order_id})
        return order_id

    def get_order(self, order_id: int) -> Optional[Order]:
        self._maybe_fail("get_order")
        return self.orders.get(order_id)

    def list_orders_for_user(self, user_id: int) -> List[Order]:
        self._maybe_fail("list_orders_for_user")
        return [o for _, o in sorted(self.orders.items(), reverse=True) if o.user_id == user_id]

    def create_product(self, draft: ProductDraft) -> int:
        self._maybe_fail("create_product")
        product_id = max(self.products, default=0) + 1
        self.products[product_id] = Product(id=product_id, **draft.model_dump())
        return product_id

    def update_stock(self, product_id: int, stock_quantity: int) -> bool:
        self._maybe_fail("update_stock")
        if product_id not in self.products:
            return False
        self.products[product_id] = self.products[product_id].model_copy(update={"stock_quantity": stock_quantity})
        return True

    def set_product_availability(self, product_id: int, is_available: bool) -> bool:
        self._maybe_fail("set_product_availability")
        if product_id not in self.products:
            return False
        self.products[product_id] = self.products[product_id].model_copy(update={"is_available": is_available})
        return True


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeClock:
    def __init__(self, value):
        self.value = value

    def __call__(self):
        return self.value


class RecordingObserver:
    def __init__(self):
        self.orders: List[Order] = []

    async def order_committed(self, order: Order) -> None:
        self.orders.append(order)


def make_settings(**overrides) -> Settings:
    values = dict(
        tg_bot_token="test-token",
        admin_chat_id=ADMIN_ID,
        db_dsn=None,
        db_max_retries=3,
        db_retry_delay_seconds=5.0,
        redis_url=None,
        session_ttl_seconds=3600,
        delivery_start_hour=9,
        delivery_end_hour=21,
        timezone="Europe/Moscow",
        debug=False,
    )
    values.update(overrides)
    return Settings(**values)


def default_products() -> List[Product]:
    return [
        Product(id=1, name="Вода 19л", description="Питьевая вода в многоразовой таре",
                price=Decimal("299.99"), stock_quantity=50),
        Product(id=2, name="Вода 5л", price=Decimal("129.99"), stock_quantity=20),
        Product(id=3, name="Вода 0.5л", price=Decimal("49.99"), is_available=False),
    ]


def past_order(order_id: int = 1, user_id: int = USER_ID) -> Order:
    return Order(
        id=order_id,
        user_id=user_id,
        product_id=2,
        quantity=3,
        total_price=Decimal("300.00"),
        phone_number="+79001234567",
        delivery_address="Ленина 10",
        delivery_date=date(2024, 5, 1),
        delivery_time=time(12, 0),
    )


# -------------------------
# Fixtures
# -------------------------

@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def products() -> List[Product]:
    return default_products()


@pytest.fixture
def repo(products) -> FakeRepository:
    return FakeRepository(products)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def gateway(repo, sleep) -> ResilientGateway:
    return ResilientGateway(repo, max_attempts=3, delay_seconds=5.0, sleep=sleep)


@pytest.fixture
def store_clock() -> FakeClock:
    return FakeClock(1000.0)


@pytest.fixture
def store(store_clock) -> MemorySessionStore:
    return MemorySessionStore(ttl_seconds=3600, clock=store_clock)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def workflow(settings, store, gateway, observer, clock) -> OrderWorkflow:
    return OrderWorkflow(settings, store, gateway, observers=[observer], clock=clock)
