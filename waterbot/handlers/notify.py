# waterbot/handlers/notify.py
import html
import logging

from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest

from .. import texts
from ..gateway import ResilientGateway
from ..models import Order

logger = logging.getLogger(__name__)


class AdminNotifier:
    """
    Yangi buyurtma haqida admin chatiga xabar. Best-effort: xato bo'lsa
    faqat log, buyurtma baribir saqlangan.
    """

    def __init__(self, bot: Bot, gateway: ResilientGateway, admin_chat_id: int | None):
        self.bot = bot
        self.gateway = gateway
        self.admin_chat_id = admin_chat_id

    async def order_committed(self, order: Order) -> None:
        if not self.admin_chat_id:
            return

        product = await self.gateway.get_product(order.product_id)
        if product is None:
            logger.warning("Order %s: product %s not found, admin not notified", order.id, order.product_id)
            return

        text = texts.admin_new_order(order, product.name)
        try:
            await self.bot.send_message(self.admin_chat_id, html.escape(text, quote=False))
        except TelegramBadRequest as e:
            logger.error("Failed to notify admin_chat_id=%s about order %s: %s", self.admin_chat_id, order.id, e)
