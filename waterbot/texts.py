# waterbot/texts.py
from datetime import date, time
from decimal import Decimal
from typing import Optional

from .models import Order, Product

# ======================================================================
# MENU
# ======================================================================

MENU_PRODUCTS = "Ассортимент"
MENU_ORDER = "Заказать"
MENU_HISTORY = "Ваши прошлые заказы"
MENU_HISTORY_SHORT = "История заказов"

WELCOME = "Добро пожаловать в магазин бутилированной воды! Выберите действие:"
CHOOSE_ACTION = "Выберите действие:"
BACK_TO_MENU = "« Назад в меню"
CHOOSE_PRODUCT = "🛍 Выберите товар для заказа:"
NO_PRODUCTS = "К сожалению, сейчас нет доступных товаров."
ORDER_BUTTON = "🛒 Заказать"
SHARE_PHONE_BUTTON = "Отправить номер телефона"
CONFIRM_BUTTON = "✅ Подтвердить"
CANCEL_BUTTON = "❌ Отменить"
REPEAT_BUTTON = "🔄 Повторить заказ"

# ======================================================================
# PROMPTS / ERRORS
# ======================================================================

CHOOSE_FROM_LIST = "Пожалуйста, выберите товар из списка"
ENTER_VALID_QUANTITY = "Пожалуйста, введите корректное количество (целое число больше 0)"
PHONE_FORMAT = "Пожалуйста, введите номер телефона в формате +79XXXXXXXXX"
ENTER_ADDRESS = "Введите адрес доставки:"
ENTER_VALID_ADDRESS = "Пожалуйста, введите корректный адрес доставки"
DATE_FORMAT = "Неверный формат даты и времени. Пожалуйста, используйте формат ДД.ММ.ГГГГ ЧЧ:ММ"
DATE_INVALID = "Такой даты не существует. Пожалуйста, проверьте день, месяц и время."
DATE_NOT_FUTURE = "Дата доставки должна быть в будущем."
USE_CONFIRM_BUTTONS = "Пожалуйста, подтвердите или отмените заказ кнопками ниже."
PRODUCT_UNAVAILABLE = "Товар больше не доступен."
ORDER_NOT_FOUND = "Заказ не найден."
ORDER_CANCELLED = "Заказ отменён."
ORDER_FAILED = "Произошла ошибка при создании заказа. Пожалуйста, попробуйте еще раз."
GENERIC_APOLOGY = "Произошла ошибка при обработке вашего запроса. Пожалуйста, попробуйте снова."
NO_ORDERS = "У вас пока нет заказов."
NO_RIGHTS = "У вас нет прав для выполнения этой команды."
UNKNOWN_COMMAND = "Неизвестная команда. Используйте /menu, чтобы открыть главное меню."


def format_money(value: Decimal) -> str:
    return f"{value:.2f} ₽"


def format_date(value: Optional[date]) -> str:
    return value.strftime("%d.%m.%Y") if value else "—"


def format_time(value: Optional[time]) -> str:
    return value.strftime("%H:%M") if value else "—"


def delivery_window_hint(start: time, end: time) -> str:
    return f"Доставка возможна только с {format_time(start)} до {format_time(end)}."


def date_prompt(start: time, end: time) -> str:
    return (
        "Введите дату и время доставки в формате ДД.ММ.ГГГГ ЧЧ:ММ (например, 15.12.2024 14:30).\n"
        f"Доставка возможна только на будущие даты и с {format_time(start)} до {format_time(end)}."
    )


def product_selected(product: Product) -> str:
    return f"Вы выбрали: {product.name}\nВведите количество:"


def phone_prompt(total_price: Decimal) -> str:
    return (
        f"Сумма заказа: {format_money(total_price)}\n"
        "Пожалуйста, введите номер телефона в формате +79XXXXXXXXX "
        f"или нажмите кнопку '{SHARE_PHONE_BUTTON}':"
    )


def product_card(product: Product) -> str:
    lines = [f"📦 {product.name}"]
    if product.description:
        lines.append(f"📝 {product.description}")
    lines.append(f"💰 Цена: {format_money(product.price)}")
    return "\n".join(lines)


def product_button(product: Product) -> str:
    return f"🛒 {product.name} - {format_money(product.price)}"


def order_summary(order: Order, product_name: str) -> str:
    return (
        f"🛍 Товар: {product_name}\n"
        f"📦 Количество: {order.quantity}\n"
        f"💰 Сумма: {format_money(order.total_price)}\n"
        f"📱 Телефон: {order.phone_number or '—'}\n"
        f"📍 Адрес: {order.delivery_address or '—'}"
    )


def repeat_intro(order: Order, product_name: str, start: time, end: time) -> str:
    return f"Повтор заказа:\n{order_summary(order, product_name)}\n\n{date_prompt(start, end)}"


def review_order(order: Order, product_name: str) -> str:
    return (
        "Проверьте заказ:\n"
        f"{order_summary(order, product_name)}\n"
        f"📅 Дата доставки: {format_date(order.delivery_date)}\n"
        f"⏰ Время доставки: {format_time(order.delivery_time)}"
    )


def history_entry(order: Order, product_name: str) -> str:
    return (
        f"Заказ #{order.id}\n"
        f"Товар: {product_name}\n"
        f"Количество: {order.quantity}\n"
        f"Сумма: {format_money(order.total_price)}\n"
        f"Статус: {order.status}\n"
        f"Дата доставки: {format_date(order.delivery_date)}\n"
        f"Время доставки: {format_time(order.delivery_time)}"
    )


def confirmation(order_id: int, delivery_date: date, delivery_time: time) -> str:
    return (
        "✅ Заказ успешно оформлен!\n"
        f"Номер заказа: {order_id}\n"
        f"Дата доставки: {format_date(delivery_date)}\n"
        f"Время доставки: {format_time(delivery_time)}"
    )


def admin_new_order(order: Order, product_name: str) -> str:
    return (
        f"🆕 Новый заказ №{order.id}!\n\n"
        f"{order_summary(order, product_name)}\n"
        f"📅 Дата доставки: {format_date(order.delivery_date)}\n"
        f"⏰ Время доставки: {format_time(order.delivery_time)}"
    )
