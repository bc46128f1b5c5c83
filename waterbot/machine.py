# waterbot/machine.py
"""
Buyurtma oqimining holat mashinasi.

Hamma funksiyalar sof: I/O yo'q, sessiya joyida o'zgartirilmaydi.
Har bir qadam (sessiya, kirish) -> Step qaytaradi. Noto'g'ri kirishda
aynan o'sha sessiya obyekti qaytariladi va faqat ShowError chiqadi.
Katalog va joriy vaqt chaqiruvchi tomonidan beriladi.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from . import texts
from .effects import (
    Button,
    Effect,
    ResetToMenu,
    ShowError,
    ShowProduct,
    ShowPrompt,
    UserInput,
)
from .models import MAX_MONEY, Order, Product, Session, SessionState, to_money
from .utils.dates import (
    DeliveryWindow,
    SlotError,
    check_delivery_slot,
    parse_delivery_datetime,
)
from .utils.phones import normalize_contact_phone, normalize_phone_strict

logger = logging.getLogger(__name__)

# tugma payloadlari
PAYLOAD_MENU = "menu"
PAYLOAD_PRODUCTS = "products"
PAYLOAD_ORDER = "order"
PAYLOAD_HISTORY = "history"
PAYLOAD_CONFIRM = "confirm_order"
PAYLOAD_CANCEL = "cancel_order"
PRODUCT_PAYLOAD_PREFIX = "order_"
REPEAT_PAYLOAD_PREFIX = "repeat_"

# Postgres INT ustuni
MAX_QUANTITY = 2_147_483_647
QUANTITY_REGEX = re.compile(r"[0-9]+")


class Action(str, Enum):
    SHOW_HISTORY = "show_history"


@dataclass
class Step:
    session: Session
    effects: List[Effect] = field(default_factory=list)
    # to'liq buyurtma: chaqiruvchi uni saqlashi kerak
    order: Optional[Order] = None
    action: Optional[Action] = None
    # True bo'lsa sessiya keshdan o'chiriladi
    clear: bool = False


# ======================================================================
# KEYBOARDS / COMMON EFFECTS
# ======================================================================

def back_to_menu_buttons() -> List[List[Button]]:
    return [[Button(texts.BACK_TO_MENU, PAYLOAD_MENU)]]


def available(catalog: Sequence[Product]) -> List[Product]:
    return [p for p in catalog if p.is_available]


def product_list_prompt(catalog: Sequence[Product]) -> Effect:
    products = available(catalog)
    if not products:
        return ShowError(texts.NO_PRODUCTS)
    buttons = [
        [Button(texts.product_button(p), f"{PRODUCT_PAYLOAD_PREFIX}{p.id}")]
        for p in products
    ]
    return ShowPrompt(texts.CHOOSE_PRODUCT, buttons + back_to_menu_buttons())


def catalog_effects(catalog: Sequence[Product]) -> List[Effect]:
    effects: List[Effect] = [
        ShowProduct(p, [[Button(texts.ORDER_BUTTON, f"{PRODUCT_PAYLOAD_PREFIX}{p.id}")]])
        for p in available(catalog)
    ]
    if not effects:
        effects.append(ShowError(texts.NO_PRODUCTS))
    effects.append(ShowPrompt(texts.CHOOSE_ACTION, back_to_menu_buttons()))
    return effects


def confirm_buttons() -> List[List[Button]]:
    return [[
        Button(texts.CONFIRM_BUTTON, PAYLOAD_CONFIRM),
        Button(texts.CANCEL_BUTTON, PAYLOAD_CANCEL),
    ]]


def slot_error_text(error: SlotError, window: DeliveryWindow) -> str:
    if error is SlotError.FORMAT:
        return texts.DATE_FORMAT
    if error is SlotError.INVALID:
        return texts.DATE_INVALID
    if error is SlotError.NOT_FUTURE:
        return texts.DATE_NOT_FUTURE
    return texts.delivery_window_hint(window.start, window.end)


def _reject(session: Session, message: str) -> Step:
    logger.info("Input rejected for user_id=%s in state=%s: %s", session.user_id, session.state.value, message)
    return Step(session=session, effects=[ShowError(message)])


def _find(catalog: Sequence[Product], product_id: Optional[int]) -> Optional[Product]:
    if product_id is None:
        return None
    for product in catalog:
        if product.id == product_id:
            return product
    return None


def parse_prefixed_id(payload: Optional[str], prefix: str) -> Optional[int]:
    if not payload or not payload.startswith(prefix):
        return None
    raw = payload[len(prefix):]
    if not QUANTITY_REGEX.fullmatch(raw):
        return None
    return int(raw)


def _product_name(catalog: Sequence[Product], product_id: int) -> str:
    product = _find(catalog, product_id)
    return product.name if product else f"#{product_id}"


# ======================================================================
# TRANSITIONS
# ======================================================================

def start_ordering(session: Session, catalog: Sequence[Product]) -> Step:
    """
    Yangi buyurtma: oldingi draft tashlab yuboriladi.
    """
    return Step(
        session=Session(user_id=session.user_id, state=SessionState.SELECTING_PRODUCT),
        effects=[product_list_prompt(catalog)],
    )


def select_product(session: Session, product: Optional[Product], catalog: Sequence[Product]) -> Step:
    if product is None or not product.is_available:
        # mahsulot o'chirilgan: xavfsiz holatga (ro'yxatga) qaytamiz
        return Step(
            session=Session(user_id=session.user_id, state=SessionState.SELECTING_PRODUCT),
            effects=[ShowError(texts.PRODUCT_UNAVAILABLE), product_list_prompt(catalog)],
        )
    return Step(
        session=Session(
            user_id=session.user_id,
            state=SessionState.ENTERING_QUANTITY,
            selected_product_id=product.id,
        ),
        effects=[ShowPrompt(texts.product_selected(product))],
    )


def _navigate(session: Session, inp: UserInput, catalog: Sequence[Product]) -> Optional[Step]:
    """
    Istalgan holatda ishlaydigan menyu tugmalari.
    """
    payload = inp.payload
    if payload == PAYLOAD_MENU:
        return Step(session=Session.fresh(session.user_id), effects=[ResetToMenu()], clear=True)
    if payload == PAYLOAD_ORDER:
        return start_ordering(session, catalog)
    if payload == PAYLOAD_PRODUCTS:
        return Step(session=session, effects=catalog_effects(catalog))
    if payload == PAYLOAD_HISTORY:
        return Step(session=session, action=Action.SHOW_HISTORY)

    product_id = parse_prefixed_id(payload, PRODUCT_PAYLOAD_PREFIX)
    if product_id is not None:
        return select_product(session, _find(catalog, product_id), catalog)
    return None


def _on_start(session: Session, inp: UserInput, catalog: Sequence[Product], now: datetime,
              window: DeliveryWindow) -> Step:
    text = (inp.text or "").strip()
    if text == texts.MENU_ORDER:
        return start_ordering(session, catalog)
    if text == texts.MENU_PRODUCTS:
        return Step(session=session, effects=catalog_effects(catalog))
    if text in (texts.MENU_HISTORY, texts.MENU_HISTORY_SHORT):
        return Step(session=session, action=Action.SHOW_HISTORY)
    return Step(session=session, effects=[ResetToMenu()])


def _on_selecting_product(session: Session, inp: UserInput, catalog: Sequence[Product], now: datetime,
                          window: DeliveryWindow) -> Step:
    text = (inp.text or "").strip()
    if not text:
        return _reject(session, texts.CHOOSE_FROM_LIST)

    for product in available(catalog):
        if text in (f"{texts.MENU_ORDER} {product.name}", product.name):
            return select_product(session, product, catalog)
    return _reject(session, texts.CHOOSE_FROM_LIST)


def parse_quantity(text: Optional[str]) -> Optional[int]:
    candidate = (text or "").strip()
    if not QUANTITY_REGEX.fullmatch(candidate):
        return None
    quantity = int(candidate)
    if quantity <= 0 or quantity > MAX_QUANTITY:
        return None
    return quantity


def _on_entering_quantity(session: Session, inp: UserInput, catalog: Sequence[Product], now: datetime,
                          window: DeliveryWindow) -> Step:
    quantity = parse_quantity(inp.text)
    if quantity is None:
        return _reject(session, texts.ENTER_VALID_QUANTITY)

    product = _find(catalog, session.selected_product_id)
    if product is None or not product.is_available:
        return select_product(session, None, catalog)

    # narx shu yerda qotiriladi, keyin qayta hisoblanmaydi
    total_price = to_money(product.price * quantity)
    if total_price > MAX_MONEY:
        return _reject(session, texts.ENTER_VALID_QUANTITY)

    draft = Order(
        user_id=session.user_id,
        product_id=product.id,
        quantity=quantity,
        total_price=total_price,
    )
    return Step(
        session=Session(
            user_id=session.user_id,
            state=SessionState.AWAITING_PHONE_NUMBER,
            selected_product_id=product.id,
            selected_quantity=quantity,
            draft_order=draft,
        ),
        effects=[ShowPrompt(texts.phone_prompt(draft.total_price), request_contact=True)],
    )


def _with_draft(session: Session, state: SessionState, **changes) -> Session:
    return Session(
        user_id=session.user_id,
        state=state,
        selected_product_id=session.selected_product_id,
        selected_quantity=session.selected_quantity,
        draft_order=session.draft_order.model_copy(update=changes),
        repeat_of_order_id=session.repeat_of_order_id,
    )


def _on_awaiting_phone(session: Session, inp: UserInput, catalog: Sequence[Product], now: datetime,
                       window: DeliveryWindow) -> Step:
    if inp.contact_phone:
        phone = normalize_contact_phone(inp.contact_phone)
    else:
        phone = normalize_phone_strict(inp.text)
    if phone is None:
        return _reject(session, texts.PHONE_FORMAT)

    return Step(
        session=_with_draft(session, SessionState.AWAITING_ADDRESS, phone_number=phone),
        effects=[ShowPrompt(texts.ENTER_ADDRESS)],
    )


def _on_awaiting_address(session: Session, inp: UserInput, catalog: Sequence[Product], now: datetime,
                         window: DeliveryWindow) -> Step:
    address = (inp.text or "").strip()
    if not address:
        return _reject(session, texts.ENTER_VALID_ADDRESS)

    return Step(
        session=_with_draft(session, SessionState.AWAITING_DATE, delivery_address=address),
        effects=[ShowPrompt(texts.date_prompt(window.start, window.end))],
    )


def _on_awaiting_date(session: Session, inp: UserInput, catalog: Sequence[Product], now: datetime,
                      window: DeliveryWindow) -> Step:
    value, error = parse_delivery_datetime(inp.text)
    if error is None:
        error = check_delivery_slot(value, now, window)
    if error is not None:
        return _reject(session, slot_error_text(error, window))

    if session.repeat_of_order_id is not None:
        updated = _with_draft(
            session,
            SessionState.CONFIRMING_ORDER,
            delivery_date=value.date(),
            delivery_time=value.time(),
        )
        draft = updated.draft_order
        return Step(
            session=updated,
            effects=[ShowPrompt(texts.review_order(draft, _product_name(catalog, draft.product_id)),
                                confirm_buttons())],
        )

    # to'g'ridan-to'g'ri yo'l: holat AwaitingDate'da qoladi, saqlash xato bersa
    # foydalanuvchi faqat sanani qayta yuboradi
    updated = _with_draft(
        session,
        SessionState.AWAITING_DATE,
        delivery_date=value.date(),
        delivery_time=value.time(),
    )
    return Step(session=updated, order=updated.draft_order)


def _on_confirming(session: Session, inp: UserInput, catalog: Sequence[Product], now: datetime,
                   window: DeliveryWindow) -> Step:
    if inp.payload == PAYLOAD_CANCEL:
        return Step(
            session=Session.fresh(session.user_id),
            effects=[ShowPrompt(texts.ORDER_CANCELLED), ResetToMenu()],
            clear=True,
        )
    if inp.payload != PAYLOAD_CONFIRM:
        return _reject(session, texts.USE_CONFIRM_BUTTONS)

    draft = session.draft_order
    delivery_at = draft.delivery_at
    error = SlotError.FORMAT if delivery_at is None else check_delivery_slot(delivery_at, now, window)
    if error is not None:
        # sana eskirgan: yangi sana so'raymiz, qolgan maydonlar saqlanadi
        return Step(
            session=_with_draft(session, SessionState.AWAITING_DATE, delivery_date=None, delivery_time=None),
            effects=[
                ShowError(slot_error_text(error, window)),
                ShowPrompt(texts.date_prompt(window.start, window.end)),
            ],
        )
    return Step(session=session, order=draft)


Handler = Callable[[Session, UserInput, Sequence[Product], datetime, DeliveryWindow], Step]

_HANDLERS: Dict[SessionState, Handler] = {
    SessionState.START: _on_start,
    SessionState.SELECTING_PRODUCT: _on_selecting_product,
    SessionState.ENTERING_QUANTITY: _on_entering_quantity,
    SessionState.AWAITING_PHONE_NUMBER: _on_awaiting_phone,
    SessionState.AWAITING_ADDRESS: _on_awaiting_address,
    SessionState.AWAITING_DATE: _on_awaiting_date,
    SessionState.CONFIRMING_ORDER: _on_confirming,
}


def advance(
        session: Session,
        inp: UserInput,
        *,
        now: datetime,
        catalog: Sequence[Product] = (),
        window: DeliveryWindow = DeliveryWindow(),
) -> Step:
    """
    Bitta kirish uchun bitta qadam. Admin holatlari bu yerda ishlanmaydi.
    """
    if session.state.is_admin:
        raise ValueError(f"Admin state {session.state.value} is handled by waterbot.admin")

    # tasdiqlash bosqichida confirm/cancel tugmalari menyudan ustun
    if session.state is not SessionState.CONFIRMING_ORDER or inp.payload not in (PAYLOAD_CONFIRM, PAYLOAD_CANCEL):
        step = _navigate(session, inp, catalog)
        if step is not None:
            return step

    handler = _HANDLERS.get(session.state, _on_start)
    return handler(session, inp, catalog, now, window)


def begin_repeat(
        session: Session,
        old_order: Optional[Order],
        product: Optional[Product],
        window: DeliveryWindow = DeliveryWindow(),
) -> Step:
    """
    Eski buyurtmadan yangi draft: mahsulot, soni, telefon va manzil ko'chiriladi,
    narx joriy narx bo'yicha qayta hisoblanadi. Keyin sana so'raladi va
    tasdiqlash bosqichi majburiy.
    """
    if old_order is None or old_order.user_id != session.user_id:
        return Step(session=session, effects=[ShowError(texts.ORDER_NOT_FOUND)])
    if product is None or not product.is_available:
        return Step(session=session, effects=[ShowError(texts.PRODUCT_UNAVAILABLE)])

    total_price = to_money(product.price * old_order.quantity)
    if total_price > MAX_MONEY:
        return Step(session=session, effects=[ShowError(texts.ENTER_VALID_QUANTITY)])

    draft = Order(
        user_id=session.user_id,
        product_id=product.id,
        quantity=old_order.quantity,
        total_price=total_price,
        phone_number=old_order.phone_number,
        delivery_address=old_order.delivery_address,
    )
    return Step(
        session=Session(
            user_id=session.user_id,
            state=SessionState.AWAITING_DATE,
            selected_product_id=product.id,
            selected_quantity=draft.quantity,
            draft_order=draft,
            repeat_of_order_id=old_order.id,
        ),
        effects=[ShowPrompt(texts.repeat_intro(draft, product.name, window.start, window.end))],
    )


def parse_repeat_payload(payload: Optional[str]) -> Optional[int]:
    return parse_prefixed_id(payload, REPEAT_PAYLOAD_PREFIX)
