# waterbot/handlers/orders.py
import logging

from aiogram import Dispatcher
from aiogram.types import CallbackQuery, Message

from .render import send_effects
from ..config import Settings
from ..effects import UserInput
from ..workflow import OrderWorkflow

logger = logging.getLogger(__name__)


def message_to_input(message: Message) -> UserInput:
    return UserInput(
        user_id=message.chat.id,
        text=message.text or message.caption,
        contact_phone=message.contact.phone_number if message.contact else None,
        photo_file_id=message.photo[-1].file_id if message.photo else None,
    )


def register_order_handlers(dp: Dispatcher, settings: Settings, workflow: OrderWorkflow) -> None:
    @dp.message()
    async def handle_message(message: Message):
        if message.from_user is None or message.from_user.is_bot:
            return

        inp = message_to_input(message)
        logger.info(
            "New msg chat=%s from=%s(%s) text=%r contact=%s photo=%s",
            message.chat.id,
            message.from_user.id,
            message.from_user.full_name,
            inp.text,
            bool(inp.contact_phone),
            bool(inp.photo_file_id),
        )

        effects = await workflow.handle(inp)
        await send_effects(message.bot, message.chat.id, effects)

    @dp.callback_query()
    async def handle_callback(callback: CallbackQuery):
        # javobni darhol beramiz: bazaga yozish 15 soniyagacha cho'zilishi mumkin
        await callback.answer()

        if callback.message is None or not callback.data:
            return

        chat_id = callback.message.chat.id
        logger.info("Callback chat=%s data=%r", chat_id, callback.data)

        effects = await workflow.handle(UserInput(user_id=chat_id, payload=callback.data))
        await send_effects(callback.bot, chat_id, effects)
