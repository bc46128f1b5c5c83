# waterbot/workflow.py
"""
Bitta kirish uchun to'liq sikl:
  sessiyani yuklash -> buyruq / admin / holat mashinasi -> sessiyani saqlash
  -> buyurtma tayyor bo'lsa gateway orqali saqlash -> tasdiq va kuzatuvchilar.

Kutilmagan xatolar shu yerda ushlanadi: log qilinadi va foydalanuvchiga
umumiy uzr xabari qaytadi, sessiya oxirgi saqlangan holatida qoladi.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional, Protocol, Sequence
from zoneinfo import ZoneInfo

from . import admin, machine, texts
from .config import Settings
from .effects import (
    Button,
    Effect,
    ResetToMenu,
    ShowConfirmation,
    ShowError,
    ShowPrompt,
    UserInput,
)
from .errors import PersistenceFailure
from .gateway import ResilientGateway
from .models import Order, Product, Session, SessionState
from .storage import SessionStore, get_or_create_session
from .utils.dates import DeliveryWindow

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10

# bu holatlarda katalog kerak emas (faqat matn tekshiriladi)
_NO_CATALOG_STATES = frozenset({SessionState.AWAITING_PHONE_NUMBER, SessionState.AWAITING_ADDRESS})


class OrderObserver(Protocol):
    async def order_committed(self, order: Order) -> None:
        ...


def make_clock(timezone: str) -> Callable[[], datetime]:
    """
    Foydalanuvchi kiritgan sana mahalliy vaqtda, shuning uchun "hozir" ham
    shu zonada, tzinfo'siz.
    """
    zone = ZoneInfo(timezone)

    def now() -> datetime:
        return datetime.now(zone).replace(tzinfo=None)

    return now


class OrderWorkflow:
    def __init__(
            self,
            settings: Settings,
            store: SessionStore,
            gateway: ResilientGateway,
            observers: Sequence[OrderObserver] = (),
            clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.store = store
        self.gateway = gateway
        self.observers = list(observers)
        self.window = DeliveryWindow.from_hours(settings.delivery_start_hour, settings.delivery_end_hour)
        self.clock = clock or make_clock(settings.timezone)

    def add_observer(self, observer: OrderObserver) -> None:
        self.observers.append(observer)

    async def handle(self, inp: UserInput) -> List[Effect]:
        try:
            session = await get_or_create_session(self.store, inp.user_id)
            return await self._dispatch(session, inp)
        except Exception:
            logger.exception("Error processing input for user_id=%s", inp.user_id)
            return [ShowError(texts.GENERIC_APOLOGY)]

    async def _dispatch(self, session: Session, inp: UserInput) -> List[Effect]:
        if inp.command:
            return await self._handle_command(session, inp)

        if admin.is_admin_payload(inp.payload):
            return await self._handle_admin_payload(session, inp)

        if session.state.is_admin:
            if inp.payload is None:
                return await self._advance_admin(session, inp)
            # admin oqimidan menyu tugmasi bosildi: admin oqimi tashlab yuboriladi
            session = Session.fresh(session.user_id)

        repeat_id = machine.parse_repeat_payload(inp.payload)
        if repeat_id is not None:
            step = await self._begin_repeat(session, repeat_id)
        else:
            catalog = await self._catalog_for(session, inp)
            step = machine.advance(session, inp, now=self.clock(), catalog=catalog, window=self.window)

        return await self._apply(step)

    async def _catalog_for(self, session: Session, inp: UserInput) -> List[Product]:
        if inp.payload is None and session.state in _NO_CATALOG_STATES:
            return []
        return await self.gateway.list_products()

    async def _apply(self, step: machine.Step) -> List[Effect]:
        user_id = step.session.user_id
        if step.clear:
            await self.store.delete(user_id)
        else:
            # xato kirishda ham saqlaymiz: TTL yangilanadi
            await self.store.set(step.session)

        effects: List[Effect] = list(step.effects)
        if step.action is machine.Action.SHOW_HISTORY:
            effects.extend(await self._history(user_id))
        if step.order is not None:
            effects.extend(await self._submit(step.order))
        return effects

    async def _submit(self, order: Order) -> List[Effect]:
        try:
            order_id = await self.gateway.commit(order)
        except PersistenceFailure as e:
            # draft sessiyada qoladi, foydalanuvchi qayta yuborishi mumkin
            logger.error("Failed to submit order for user_id=%s: %s", order.user_id, e)
            return [ShowError(texts.ORDER_FAILED)]

        committed = order.model_copy(update={"id": order_id})
        await self.store.delete(order.user_id)
        await self._notify(committed)

        return [
            ShowConfirmation(order_id, committed.delivery_date, committed.delivery_time),
            ResetToMenu(),
        ]

    async def _notify(self, order: Order) -> None:
        for observer in self.observers:
            try:
                await observer.order_committed(order)
            except Exception as e:
                logger.error("Observer %r failed for order_id=%s: %s", observer, order.id, e)

    async def _history(self, user_id: int) -> List[Effect]:
        orders = await self.gateway.list_orders_for_user(user_id)
        if not orders:
            return [ShowPrompt(texts.NO_ORDERS, machine.back_to_menu_buttons())]

        names = {p.id: p.name for p in await self.gateway.list_products()}
        effects: List[Effect] = []
        for order in orders[:HISTORY_LIMIT]:
            effects.append(
                ShowPrompt(
                    texts.history_entry(order, names.get(order.product_id, f"#{order.product_id}")),
                    [[Button(texts.REPEAT_BUTTON, f"{machine.REPEAT_PAYLOAD_PREFIX}{order.id}")]],
                )
            )
        effects.append(ShowPrompt(texts.CHOOSE_ACTION, machine.back_to_menu_buttons()))
        return effects

    async def _begin_repeat(self, session: Session, order_id: int) -> machine.Step:
        old_order = await self.gateway.get_order(order_id)
        product = None
        if old_order is not None and old_order.user_id == session.user_id:
            product = await self.gateway.get_product(old_order.product_id)
        return machine.begin_repeat(session, old_order, product, self.window)

    # ======================================================================
    # COMMANDS
    # ======================================================================

    async def _handle_command(self, session: Session, inp: UserInput) -> List[Effect]:
        command = inp.command
        user_id = inp.user_id
        logger.info("Command %s from chat_id=%s", command, user_id)

        if command in admin.ADMIN_COMMANDS:
            return await self._handle_admin_command(session, command)

        if command == "/start":
            await self.store.set(Session.fresh(user_id))
            return [ResetToMenu()]
        if command == "/menu":
            return [ResetToMenu()]
        if command == "/cancel":
            await self.store.delete(user_id)
            return [ShowPrompt(texts.ORDER_CANCELLED), ResetToMenu()]
        if command == "/products":
            return machine.catalog_effects(await self.gateway.list_products())
        if command == "/order":
            return await self._apply(machine.start_ordering(session, await self.gateway.list_products()))
        if command == "/history":
            return await self._history(user_id)
        return [ShowError(texts.UNKNOWN_COMMAND)]

    # ======================================================================
    # ADMIN
    # ======================================================================

    def _is_admin(self, user_id: int) -> bool:
        if self.settings.is_admin(user_id):
            return True
        logger.warning("Access denied: chat_id=%s is not admin", user_id)
        return False

    async def _handle_admin_command(self, session: Session, command: str) -> List[Effect]:
        if not self._is_admin(session.user_id):
            return [ShowError(texts.NO_RIGHTS)]

        if command == "/addproduct":
            return await self._apply_admin(admin.start_add_product(session))
        if command == "/updatestock":
            return [admin.stock_menu(await self.gateway.list_products())]
        if command == "/toggleproduct":
            return [admin.toggle_menu(await self.gateway.list_products())]
        return [admin.admin_menu()]

    async def _handle_admin_payload(self, session: Session, inp: UserInput) -> List[Effect]:
        if not self._is_admin(session.user_id):
            return [ShowError(texts.NO_RIGHTS)]

        payload = inp.payload
        if payload == admin.PAYLOAD_ADD_PRODUCT:
            return await self._apply_admin(admin.start_add_product(session))
        if payload == admin.PAYLOAD_UPDATE_STOCK:
            return [admin.stock_menu(await self.gateway.list_products())]
        if payload == admin.PAYLOAD_TOGGLE_PRODUCT:
            return [admin.toggle_menu(await self.gateway.list_products())]

        product_id = machine.parse_prefixed_id(payload, admin.UPDATE_STOCK_PREFIX)
        if product_id is not None:
            return await self._apply_admin(admin.start_update_stock(session, product_id))

        product_id = machine.parse_prefixed_id(payload, admin.TOGGLE_PRODUCT_PREFIX)
        if product_id is not None:
            return await self._toggle_product(product_id)

        return [admin.admin_menu()]

    async def _toggle_product(self, product_id: int) -> List[Effect]:
        product = await self.gateway.get_product(product_id)
        if product is None:
            return [ShowError(texts.PRODUCT_UNAVAILABLE)]

        is_available = not product.is_available
        await self.gateway.set_product_availability(product_id, is_available)
        logger.info("Product %s availability -> %s", product_id, is_available)

        updated = product.model_copy(update={"is_available": is_available})
        return [
            ShowPrompt(admin.availability_changed(updated)),
            admin.toggle_menu(await self.gateway.list_products()),
        ]

    async def _advance_admin(self, session: Session, inp: UserInput) -> List[Effect]:
        if not self._is_admin(session.user_id):
            # admin huquqi olib tashlangan: oqim bekor
            await self.store.delete(session.user_id)
            return [ShowError(texts.NO_RIGHTS), ResetToMenu()]
        return await self._apply_admin(admin.advance(session, inp))

    async def _apply_admin(self, step: admin.AdminStep) -> List[Effect]:
        # avval bazaga yozamiz: xato bo'lsa sessiya o'zgarmaydi va admin qayta yuboradi
        effects: List[Effect] = list(step.effects)
        if step.new_product is not None:
            product_id = await self.gateway.create_product(step.new_product)
            logger.info("Product created: id=%s name=%r", product_id, step.new_product.name)
        if step.stock_update is not None:
            product_id, stock = step.stock_update
            if not await self.gateway.update_stock(product_id, stock):
                effects = [ShowError(texts.PRODUCT_UNAVAILABLE), admin.admin_menu()]
            else:
                logger.info("Product %s stock -> %s", product_id, stock)

        await self.store.set(step.session)
        return effects
