# waterbot/gateway.py
"""
OrderRepository ustidagi qayta urinish qatlami.

Siyosat: belgilangan urinishlar soni (default 3), urinishlar orasida
belgilangan pauza (default 5 s), backoff ham jitter ham yo'q. Oxirgi urinish
ham muvaffaqiyatsiz bo'lsa PersistenceFailure ko'tariladi.

Eslatma: insert_order idempotent emas. Agar server yozib qo'ygan-u, javob
yo'qolgan bo'lsa, qayta urinish dublikat buyurtma yaratishi mumkin.
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from .config import Settings
from .db import OrderRepository
from .errors import PersistenceFailure
from .models import Order, Product, ProductDraft

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 5.0


class ResilientGateway:
    def __init__(
            self,
            repository: OrderRepository,
            *,
            max_attempts: int = DEFAULT_MAX_ATTEMPTS,
            delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
            sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.repository = repository
        self.max_attempts = max_attempts
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(cls, repository: OrderRepository, settings: Settings) -> "ResilientGateway":
        return cls(
            repository,
            max_attempts=settings.db_max_retries,
            delay_seconds=settings.db_retry_delay_seconds,
        )

    async def _call(self, operation: str, fn: Callable[..., T], *args) -> T:
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                # psycopg2 bloklaydi, event loop'ni to'xtatmaslik uchun threadda
                return await asyncio.to_thread(fn, *args)
            except Exception as e:
                last_error = e
                logger.warning(
                    "Database operation %s failed (attempt %s/%s): %s",
                    operation, attempt, self.max_attempts, e,
                )
                if attempt < self.max_attempts:
                    await self._sleep(self.delay_seconds)

        logger.error("Database operation %s failed after %s attempts", operation, self.max_attempts)
        raise PersistenceFailure(operation, self.max_attempts, last_error) from last_error

    # ======================================================================
    # ORDERS
    # ======================================================================

    async def commit(self, order: Order) -> int:
        """
        To'liq buyurtmani bazaga yozadi va yangi id ni qaytaradi.
        Biznes qoidalari bu yerda qayta tekshirilmaydi.
        """
        order_id = await self._call("insert_order", self.repository.insert_order, order)
        logger.info("Order committed: order_id=%s user_id=%s", order_id, order.user_id)
        return order_id

    async def get_order(self, order_id: int) -> Optional[Order]:
        return await self._call("get_order", self.repository.get_order, order_id)

    async def list_orders_for_user(self, user_id: int) -> List[Order]:
        return await self._call("list_orders_for_user", self.repository.list_orders_for_user, user_id)

    # ======================================================================
    # PRODUCTS
    # ======================================================================

    async def list_products(self) -> List[Product]:
        return await self._call("list_products", self.repository.list_products)

    async def get_product(self, product_id: int) -> Optional[Product]:
        return await self._call("get_product", self.repository.get_product, product_id)

    async def create_product(self, draft: ProductDraft) -> int:
        return await self._call("create_product", self.repository.create_product, draft)

    async def update_stock(self, product_id: int, stock_quantity: int) -> bool:
        return await self._call("update_stock", self.repository.update_stock, product_id, stock_quantity)

    async def set_product_availability(self, product_id: int, is_available: bool) -> bool:
        return await self._call(
            "set_product_availability", self.repository.set_product_availability, product_id, is_available,
        )

    async def init_schema(self) -> None:
        await self._call("init_schema", self.repository.init_schema)
