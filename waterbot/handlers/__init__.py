from aiogram import Dispatcher

from .orders import register_order_handlers
from ..config import Settings
from ..workflow import OrderWorkflow


def register_all_handlers(dp: Dispatcher, settings: Settings, workflow: OrderWorkflow) -> None:
    register_order_handlers(dp, settings, workflow)
