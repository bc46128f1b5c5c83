# waterbot/db.py
from contextlib import contextmanager
from typing import Iterator, List, Optional, Protocol

import psycopg2
from psycopg2.extras import RealDictCursor

from .config import Settings
from .models import Order, Product, ProductDraft

PRODUCT_COLUMNS = "id, name, description, price, image_url, stock_quantity, is_available"
ORDER_COLUMNS = (
    "id, user_id, product_id, quantity, total_price, phone_number, delivery_address, "
    "delivery_date, delivery_time, status, created_at"
)

DEFAULT_PRODUCTS = (
    ("Вода 19л", "Питьевая вода в многоразовой таре", "299.99", "https://example.com/water19l.jpg"),
    ("Вода 5л", "Питьевая вода в пластиковой бутылке", "129.99", "https://example.com/water5l.jpg"),
    ("Вода 0.5л", "Питьевая вода в малой таре", "49.99", "https://example.com/water05l.jpg"),
)


class OrderRepository(Protocol):
    def init_schema(self) -> None:
        ...

    def list_products(self) -> List[Product]:
        ...

    def get_product(self, product_id: int) -> Optional[Product]:
        ...

    def insert_order(self, order: Order) -> int:
        ...

    def get_order(self, order_id: int) -> Optional[Order]:
        ...

    def list_orders_for_user(self, user_id: int) -> List[Order]:
        ...

    def create_product(self, draft: ProductDraft) -> int:
        ...

    def update_stock(self, product_id: int, stock_quantity: int) -> bool:
        ...

    def set_product_availability(self, product_id: int, is_available: bool) -> bool:
        ...


class PostgresOrderRepository:
    """
    Har bir chaqiruv yangi connection ochadi va tranzaksiyani o'zi yopadi.
    Qayta urinishlar bu yerda emas, ResilientGateway'da.
    """

    def __init__(self, settings: Settings):
        if not settings.db_dsn:
            raise RuntimeError("DB_DSN .env ichida ko'rsatilmagan, Postgresga ulana olmayman.")
        self.dsn = settings.db_dsn

    @contextmanager
    def _cursor(self) -> Iterator[RealDictCursor]:
        conn = psycopg2.connect(self.dsn)
        try:
            # `with conn` commit/rollback qiladi, lekin connectionni yopmaydi
            with conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    yield cur
        finally:
            conn.close()

    def init_schema(self) -> None:
        """
        Barcha jadval va kerakli ustunlarni yaratib beradi, boshlang'ich mahsulotlarni qo'shadi.
        """
        with self._cursor() as cur:
            # === products ===
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS products (
                    id              SERIAL PRIMARY KEY,
                    name            VARCHAR(100) NOT NULL,
                    description     TEXT NOT NULL DEFAULT '',
                    price           NUMERIC(12, 2) NOT NULL,
                    image_url       TEXT,
                    stock_quantity  INTEGER NOT NULL DEFAULT 0,
                    is_available    BOOLEAN NOT NULL DEFAULT TRUE
                );
                """
            )
            # Eski bazalarda bo'lmasligi mumkin
            cur.execute(
                """
                ALTER TABLE products
                ADD COLUMN IF NOT EXISTS stock_quantity INTEGER NOT NULL DEFAULT 0;
                """
            )
            cur.execute(
                """
                ALTER TABLE products
                ADD COLUMN IF NOT EXISTS is_available BOOLEAN NOT NULL DEFAULT TRUE;
                """
            )

            # === orders ===
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS orders (
                    id                SERIAL PRIMARY KEY,
                    user_id           BIGINT NOT NULL,
                    product_id        INTEGER NOT NULL REFERENCES products(id),
                    quantity          INTEGER NOT NULL CHECK (quantity > 0),
                    total_price       NUMERIC(12, 2) NOT NULL,
                    phone_number      VARCHAR(15) NOT NULL,
                    delivery_address  TEXT NOT NULL,
                    delivery_date     DATE NOT NULL,
                    delivery_time     TIME NOT NULL,
                    status            VARCHAR(50) NOT NULL DEFAULT 'New',
                    created_at        TIMESTAMPTZ NOT NULL DEFAULT now()
                );
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS orders_user_id_idx ON orders (user_id);")

            for name, description, price, image_url in DEFAULT_PRODUCTS:
                cur.execute(
                    """
                    INSERT INTO products (name, description, price, image_url)
                    SELECT %s, %s, %s, %s
                    WHERE NOT EXISTS (SELECT 1 FROM products WHERE name = %s);
                    """,
                    (name, description, price, image_url, name),
                )

    # ======================================================================
    # PRODUCTS
    # ======================================================================

    def list_products(self) -> List[Product]:
        with self._cursor() as cur:
            cur.execute(f"SELECT {PRODUCT_COLUMNS} FROM products ORDER BY id;")
            rows = cur.fetchall()
        return [Product(**row) for row in rows]

    def get_product(self, product_id: int) -> Optional[Product]:
        with self._cursor() as cur:
            cur.execute(f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id = %s;", (product_id,))
            row = cur.fetchone()
        return Product(**row) if row else None

    def create_product(self, draft: ProductDraft) -> int:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO products (name, description, price, image_url, stock_quantity, is_available)
                VALUES (%s, %s, %s, %s, %s, TRUE)
                RETURNING id;
                """,
                (draft.name, draft.description, draft.price, draft.image_url, draft.stock_quantity),
            )
            return cur.fetchone()["id"]

    def update_stock(self, product_id: int, stock_quantity: int) -> bool:
        with self._cursor() as cur:
            cur.execute(
                "UPDATE products SET stock_quantity = %s WHERE id = %s;",
                (stock_quantity, product_id),
            )
            return cur.rowcount > 0

    def set_product_availability(self, product_id: int, is_available: bool) -> bool:
        with self._cursor() as cur:
            cur.execute(
                "UPDATE products SET is_available = %s WHERE id = %s;",
                (is_available, product_id),
            )
            return cur.rowcount > 0

    # ======================================================================
    # ORDERS
    # ======================================================================

    def insert_order(self, order: Order) -> int:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO orders (
                    user_id,
                    product_id,
                    quantity,
                    total_price,
                    phone_number,
                    delivery_address,
                    delivery_date,
                    delivery_time,
                    status
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING id;
                """,
                (
                    order.user_id,
                    order.product_id,
                    order.quantity,
                    order.total_price,
                    order.phone_number,
                    order.delivery_address,
                    order.delivery_date,
                    order.delivery_time,
                    order.status,
                ),
            )
            return cur.fetchone()["id"]

    def get_order(self, order_id: int) -> Optional[Order]:
        with self._cursor() as cur:
            cur.execute(f"SELECT {ORDER_COLUMNS} FROM orders WHERE id = %s;", (order_id,))
            row = cur.fetchone()
        return Order(**row) if row else None

    def list_orders_for_user(self, user_id: int) -> List[Order]:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {ORDER_COLUMNS} FROM orders WHERE user_id = %s ORDER BY created_at DESC;",
                (user_id,),
            )
            rows = cur.fetchall()
        return [Order(**row) for row in rows]
