# waterbot/handlers/render.py
import html
import logging
from typing import List, Optional, Sequence

from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
    ReplyKeyboardRemove,
)

from .. import texts
from ..effects import (
    Button,
    Effect,
    ResetToMenu,
    ShowConfirmation,
    ShowError,
    ShowProduct,
    ShowPrompt,
)
from ..machine import PAYLOAD_HISTORY, PAYLOAD_ORDER, PAYLOAD_PRODUCTS

logger = logging.getLogger(__name__)


def _escape(text: str) -> str:
    # bot default parse_mode=HTML
    return html.escape(text, quote=False)


def inline_keyboard(rows: Sequence[Sequence[Button]]) -> Optional[InlineKeyboardMarkup]:
    if not rows:
        return None
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text=b.text, callback_data=b.payload) for b in row]
            for row in rows
        ]
    )


def main_menu_keyboard() -> InlineKeyboardMarkup:
    return inline_keyboard(
        [
            [Button(texts.MENU_PRODUCTS, PAYLOAD_PRODUCTS), Button(texts.MENU_ORDER, PAYLOAD_ORDER)],
            [Button(texts.MENU_HISTORY_SHORT, PAYLOAD_HISTORY)],
        ]
    )


def contact_keyboard() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[[KeyboardButton(text=texts.SHARE_PHONE_BUTTON, request_contact=True)]],
        resize_keyboard=True,
        one_time_keyboard=True,
    )


async def _send_product(bot: Bot, chat_id: int, effect: ShowProduct) -> None:
    caption = _escape(texts.product_card(effect.product))
    markup = inline_keyboard(effect.buttons)

    if effect.product.image_url:
        try:
            await bot.send_photo(chat_id, photo=effect.product.image_url, caption=caption, reply_markup=markup)
            return
        except TelegramBadRequest as e:
            # rasm yuborilmasa faqat matn
            logger.warning("Failed to send photo for product %s: %s", effect.product.id, e)

    await bot.send_message(chat_id, caption, reply_markup=markup)


async def send_effect(bot: Bot, chat_id: int, effect: Effect) -> None:
    if isinstance(effect, ShowPrompt):
        if effect.request_contact:
            markup = contact_keyboard()
        else:
            markup = inline_keyboard(effect.buttons) or ReplyKeyboardRemove()
        await bot.send_message(chat_id, _escape(effect.text), reply_markup=markup)
    elif isinstance(effect, ShowError):
        await bot.send_message(chat_id, _escape(effect.text))
    elif isinstance(effect, ShowConfirmation):
        text = texts.confirmation(effect.order_id, effect.delivery_date, effect.delivery_time)
        await bot.send_message(chat_id, _escape(text), reply_markup=ReplyKeyboardRemove())
    elif isinstance(effect, ShowProduct):
        await _send_product(bot, chat_id, effect)
    elif isinstance(effect, ResetToMenu):
        await bot.send_message(chat_id, _escape(texts.WELCOME), reply_markup=main_menu_keyboard())
    else:
        logger.error("Unknown effect %r", effect)


async def send_effects(bot: Bot, chat_id: int, effects: List[Effect]) -> None:
    for effect in effects:
        try:
            await send_effect(bot, chat_id, effect)
        except TelegramBadRequest as e:
            logger.error("Failed to send %s to chat_id=%s: %s", type(effect).__name__, chat_id, e)
