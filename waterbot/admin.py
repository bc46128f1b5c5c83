# waterbot/admin.py
"""
Admin oqimi: yangi mahsulot qo'shish (5 qadam) va qoldiqni yangilash.
Oraliq qiymatlar session.scratch ichida saqlanadi, mahsulot faqat
oxirgi qadamda yaratiladi.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Sequence, Tuple

from .effects import Button, Effect, ShowError, ShowPrompt, UserInput
from .machine import PAYLOAD_MENU, QUANTITY_REGEX
from .models import CENT, MAX_MONEY, Product, ProductDraft, Session, SessionState

logger = logging.getLogger(__name__)

ADMIN_COMMANDS = ("/admin", "/addproduct", "/updatestock", "/toggleproduct")

PAYLOAD_ADMIN_MENU = "admin_menu"
PAYLOAD_ADD_PRODUCT = "admin_add_product"
PAYLOAD_UPDATE_STOCK = "admin_update_stock"
PAYLOAD_TOGGLE_PRODUCT = "admin_toggle_product"
UPDATE_STOCK_PREFIX = "update_stock_"
TOGGLE_PRODUCT_PREFIX = "toggle_product_"
ADMIN_PAYLOAD_PREFIXES = ("admin_", UPDATE_STOCK_PREFIX, TOGGLE_PRODUCT_PREFIX)

KEY_NAME = "ProductName"
KEY_DESCRIPTION = "ProductDescription"
KEY_PRICE = "ProductPrice"
KEY_IMAGE = "ProductImage"
KEY_PRODUCT_ID = "ProductId"

ADMIN_MENU_TEXT = "🔧 Меню администратора:"
ENTER_NAME = "Введите название нового товара:"
ENTER_DESCRIPTION = "Введите описание товара:"
ENTER_PRICE = "Введите цену товара (например, 299.99):"
INVALID_PRICE = "Неверный формат цены. Пожалуйста, введите число (например, 299.99):"
SEND_PHOTO = "Отправьте фотографию товара:"
PHOTO_REQUIRED = "Пожалуйста, отправьте фотографию:"
ENTER_STOCK = "Введите начальное количество товара на складе:"
ENTER_NEW_STOCK = "Введите новое количество товара на складе:"
INVALID_STOCK = "Неверное количество. Пожалуйста, введите положительное целое число:"
EMPTY_TEXT = "Значение не может быть пустым. Попробуйте еще раз:"
PRODUCT_ADDED = "✅ Товар успешно добавлен!"
STOCK_UPDATED = "✅ Остаток обновлён."
CHOOSE_STOCK_PRODUCT = "Выберите товар для обновления остатка:"
CHOOSE_TOGGLE_PRODUCT = "Выберите товар для изменения доступности:"


@dataclass
class AdminStep:
    session: Session
    effects: List[Effect] = field(default_factory=list)
    new_product: Optional[ProductDraft] = None
    # (product_id, stock_quantity)
    stock_update: Optional[Tuple[int, int]] = None


def is_admin_payload(payload: Optional[str]) -> bool:
    return bool(payload) and payload.startswith(ADMIN_PAYLOAD_PREFIXES)


def admin_menu() -> ShowPrompt:
    return ShowPrompt(
        ADMIN_MENU_TEXT,
        [
            [Button("➕ Добавить товар", PAYLOAD_ADD_PRODUCT)],
            [Button("📦 Обновить остаток", PAYLOAD_UPDATE_STOCK)],
            [Button("🔄 Включить/Выключить товар", PAYLOAD_TOGGLE_PRODUCT)],
            [Button("« Назад", PAYLOAD_MENU)],
        ],
    )


def stock_menu(products: Sequence[Product]) -> ShowPrompt:
    buttons = [
        [Button(f"{p.name} (Остаток: {p.stock_quantity})", f"{UPDATE_STOCK_PREFIX}{p.id}")]
        for p in products
    ]
    buttons.append([Button("« Назад", PAYLOAD_ADMIN_MENU)])
    return ShowPrompt(CHOOSE_STOCK_PRODUCT, buttons)


def toggle_menu(products: Sequence[Product]) -> ShowPrompt:
    buttons = [
        [Button(f"{'✅' if p.is_available else '❌'} {p.name}", f"{TOGGLE_PRODUCT_PREFIX}{p.id}")]
        for p in products
    ]
    buttons.append([Button("« Назад", PAYLOAD_ADMIN_MENU)])
    return ShowPrompt(CHOOSE_TOGGLE_PRODUCT, buttons)


def availability_changed(product: Product) -> str:
    status = "доступен" if product.is_available else "недоступен"
    return f"Товар \"{product.name}\" теперь {status}"


def start_add_product(session: Session) -> AdminStep:
    return AdminStep(
        session=Session(user_id=session.user_id, state=SessionState.ADMIN_ADDING_PRODUCT_NAME),
        effects=[ShowPrompt(ENTER_NAME)],
    )


def start_update_stock(session: Session, product_id: int) -> AdminStep:
    return AdminStep(
        session=Session(
            user_id=session.user_id,
            state=SessionState.ADMIN_UPDATING_STOCK,
            scratch={KEY_PRODUCT_ID: str(product_id)},
        ),
        effects=[ShowPrompt(ENTER_NEW_STOCK)],
    )


def parse_price(text: Optional[str]) -> Optional[Decimal]:
    candidate = (text or "").strip().replace(",", ".")
    if not candidate:
        return None
    try:
        price = Decimal(candidate)
        if not price.is_finite() or price <= 0 or price > MAX_MONEY:
            return None
        return price.quantize(CENT)
    except InvalidOperation:
        return None


def parse_stock(text: Optional[str]) -> Optional[int]:
    candidate = (text or "").strip()
    if not QUANTITY_REGEX.fullmatch(candidate):
        return None
    return int(candidate)


def _next(session: Session, state: SessionState, prompt: str, **scratch: str) -> AdminStep:
    return AdminStep(
        session=Session(user_id=session.user_id, state=state, scratch={**session.scratch, **scratch}),
        effects=[ShowPrompt(prompt)],
    )


def _reject(session: Session, message: str) -> AdminStep:
    return AdminStep(session=session, effects=[ShowError(message)])


def advance(session: Session, inp: UserInput) -> AdminStep:
    state = session.state
    text = (inp.text or "").strip()

    if state is SessionState.ADMIN_ADDING_PRODUCT_NAME:
        if not text:
            return _reject(session, EMPTY_TEXT)
        return _next(session, SessionState.ADMIN_ADDING_PRODUCT_DESCRIPTION, ENTER_DESCRIPTION, **{KEY_NAME: text})

    if state is SessionState.ADMIN_ADDING_PRODUCT_DESCRIPTION:
        return _next(session, SessionState.ADMIN_ADDING_PRODUCT_PRICE, ENTER_PRICE, **{KEY_DESCRIPTION: text})

    if state is SessionState.ADMIN_ADDING_PRODUCT_PRICE:
        price = parse_price(inp.text)
        if price is None:
            return _reject(session, INVALID_PRICE)
        return _next(session, SessionState.ADMIN_ADDING_PRODUCT_IMAGE, SEND_PHOTO, **{KEY_PRICE: str(price)})

    if state is SessionState.ADMIN_ADDING_PRODUCT_IMAGE:
        if not inp.photo_file_id:
            return _reject(session, PHOTO_REQUIRED)
        return _next(session, SessionState.ADMIN_ADDING_PRODUCT_STOCK, ENTER_STOCK, **{KEY_IMAGE: inp.photo_file_id})

    if state is SessionState.ADMIN_ADDING_PRODUCT_STOCK:
        stock = parse_stock(inp.text)
        if stock is None:
            return _reject(session, INVALID_STOCK)
        draft = ProductDraft(
            name=session.scratch[KEY_NAME],
            description=session.scratch.get(KEY_DESCRIPTION, ""),
            price=Decimal(session.scratch[KEY_PRICE]),
            image_url=session.scratch.get(KEY_IMAGE),
            stock_quantity=stock,
        )
        return AdminStep(
            session=Session.fresh(session.user_id),
            effects=[ShowPrompt(PRODUCT_ADDED), admin_menu()],
            new_product=draft,
        )

    if state is SessionState.ADMIN_UPDATING_STOCK:
        stock = parse_stock(inp.text)
        if stock is None:
            return _reject(session, INVALID_STOCK)
        product_id = int(session.scratch[KEY_PRODUCT_ID])
        return AdminStep(
            session=Session.fresh(session.user_id),
            effects=[ShowPrompt(STOCK_UPDATED), admin_menu()],
            stock_update=(product_id, stock),
        )

    raise ValueError(f"Not an admin state: {state.value}")

