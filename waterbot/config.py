# waterbot/config.py
import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass
class Settings:
    # Telegram
    tg_bot_token: str
    admin_chat_id: int | None

    # Postgres
    db_dsn: str | None
    db_max_retries: int
    db_retry_delay_seconds: float

    # Redis (bo'lmasa sessiyalar xotirada saqlanadi)
    redis_url: str | None
    session_ttl_seconds: int

    # Yetkazib berish oynasi
    delivery_start_hour: int
    delivery_end_hour: int
    timezone: str

    debug: bool

    @property
    def redis_enabled(self) -> bool:
        return bool(self.redis_url)

    def is_admin(self, chat_id: int) -> bool:
        return self.admin_chat_id is not None and chat_id == self.admin_chat_id


def _to_int(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def load_settings() -> Settings:
    load_dotenv()

    tg_bot_token = os.getenv("TG_BOT_TOKEN")
    if not tg_bot_token:
        raise RuntimeError("TG_BOT_TOKEN .env ichida ko'rsatilmagan!")

    db_max_retries = int(os.getenv("DB_MAX_RETRIES", "3"))
    if db_max_retries < 1:
        raise RuntimeError("DB_MAX_RETRIES kamida 1 bo'lishi kerak.")

    return Settings(
        tg_bot_token=tg_bot_token,
        admin_chat_id=_to_int(os.getenv("ADMIN_CHAT_ID")),
        db_dsn=os.getenv("DB_DSN"),
        db_max_retries=db_max_retries,
        db_retry_delay_seconds=float(os.getenv("DB_RETRY_DELAY_SECONDS", "5")),
        redis_url=os.getenv("REDIS_URL"),
        session_ttl_seconds=int(os.getenv("SESSION_TTL_SECONDS", "3600")),
        delivery_start_hour=int(os.getenv("DELIVERY_START_HOUR", "9")),
        delivery_end_hour=int(os.getenv("DELIVERY_END_HOUR", "21")),
        timezone=os.getenv("BOT_TIMEZONE", "Europe/Moscow"),
        debug=os.getenv("DEBUG", "False").lower() == "true",
    )
