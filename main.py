# main.py
import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.types import BotCommand, BotCommandScopeChat

from waterbot.config import Settings, load_settings
from waterbot.db import PostgresOrderRepository
from waterbot.gateway import ResilientGateway
from waterbot.handlers import register_all_handlers
from waterbot.handlers.notify import AdminNotifier
from waterbot.storage import build_session_store
from waterbot.workflow import OrderWorkflow

USER_COMMANDS = [
    BotCommand(command="start", description="Начать работу с ботом"),
    BotCommand(command="menu", description="Показать главное меню"),
    BotCommand(command="products", description="Показать ассортимент"),
    BotCommand(command="order", description="Сделать заказ"),
    BotCommand(command="history", description="История заказов"),
    BotCommand(command="cancel", description="Отменить текущий заказ"),
]
ADMIN_COMMANDS = USER_COMMANDS + [
    BotCommand(command="admin", description="Панель администратора"),
]


async def set_bot_commands(bot: Bot, settings: Settings) -> None:
    await bot.set_my_commands(USER_COMMANDS)
    if settings.admin_chat_id:
        await bot.set_my_commands(ADMIN_COMMANDS, scope=BotCommandScopeChat(chat_id=settings.admin_chat_id))


async def main():
    settings = load_settings()

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    repository = PostgresOrderRepository(settings)
    gateway = ResilientGateway.from_settings(repository, settings)
    await gateway.init_schema()

    store = build_session_store(settings)

    bot = Bot(
        token=settings.tg_bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )

    workflow = OrderWorkflow(
        settings=settings,
        store=store,
        gateway=gateway,
        observers=[AdminNotifier(bot, gateway, settings.admin_chat_id)],
    )

    dp = Dispatcher()
    register_all_handlers(dp, settings, workflow)
    await set_bot_commands(bot, settings)

    logging.getLogger(__name__).info("Bot started successfully!")
    await dp.start_polling(bot)


if __name__ == "__main__":
    asyncio.run(main())
