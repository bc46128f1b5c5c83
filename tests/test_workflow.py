# tests/test_workflow.py
import asyncio
from datetime import date, datetime, time
from decimal import Decimal

from tests.conftest import USER_ID, past_order
from waterbot import texts
from waterbot.effects import (
    ResetToMenu,
    ShowConfirmation,
    ShowError,
    ShowProduct,
    ShowPrompt,
    UserInput,
)
from waterbot.models import SessionState
from waterbot.workflow import OrderWorkflow


def send(workflow, text=None, user_id=USER_ID, **kwargs):
    return asyncio.run(workflow.handle(UserInput(user_id=user_id, text=text, **kwargs)))


def stored(store, user_id=USER_ID):
    return asyncio.run(store.get(user_id))


def walk_to_date(workflow):
    send(workflow, payload="order")
    send(workflow, "Вода 19л")
    send(workflow, "2")
    send(workflow, "+79001234567")
    send(workflow, "Ленина 10")


# -------------------------
# Ordering
# -------------------------

def test_full_order_is_committed(workflow, store, repo, observer):
    send(workflow, "/start")

    effects = send(workflow, payload="order")
    assert stored(store).state is SessionState.SELECTING_PRODUCT
    assert isinstance(effects[0], ShowPrompt)

    send(workflow, "Вода 19л")
    assert stored(store).state is SessionState.ENTERING_QUANTITY

    effects = send(workflow, "2")
    assert effects[0].request_contact is True
    assert "599.98" in effects[0].text

    send(workflow, "+79001234567")
    assert stored(store).state is SessionState.AWAITING_ADDRESS

    send(workflow, "Ленина 10")
    assert stored(store).state is SessionState.AWAITING_DATE

    effects = send(workflow, "02.06.2099 12:00")

    assert effects == [ShowConfirmation(1, date(2099, 6, 2), time(12, 0)), ResetToMenu()]
    order = repo.orders[1]
    assert order.status == "New"
    assert order.quantity == 2
    assert order.total_price == Decimal("599.98")
    assert order.phone_number == "+79001234567"
    assert order.delivery_address == "Ленина 10"
    assert stored(store) is None
    assert [o.id for o in observer.orders] == [1]


def test_invalid_input_changes_nothing(workflow, store):
    send(workflow, payload="order")
    send(workflow, "Вода 19л")
    before = stored(store).model_dump_json()

    effects = send(workflow, "много")

    assert effects == [ShowError(texts.ENTER_VALID_QUANTITY)]
    assert stored(store).model_dump_json() == before


def test_idle_session_expires(workflow, store, store_clock, repo):
    send(workflow, payload="order")
    send(workflow, "Вода 19л")

    store_clock.value += 3601
    effects = send(workflow, "2")

    assert effects == [ResetToMenu()]
    assert stored(store).state is SessionState.START
    assert repo.orders == {}


def test_failed_commit_keeps_draft_for_retry(workflow, store, repo, sleep, observer):
    walk_to_date(workflow)
    repo.failures["insert_order"] = 3

    effects = send(workflow, "02.06.2099 12:00")

    assert effects == [ShowError(texts.ORDER_FAILED)]
    assert repo.calls["insert_order"] == 3
    assert sleep.delays == [5.0, 5.0]
    session = stored(store)
    assert session.state is SessionState.AWAITING_DATE
    assert session.draft_order.phone_number == "+79001234567"
    assert session.draft_order.delivery_date == date(2099, 6, 2)
    assert observer.orders == []

    effects = send(workflow, "02.06.2099 12:00")
    assert isinstance(effects[0], ShowConfirmation)
    assert len(repo.orders) == 1


def test_unexpected_error_returns_apology(workflow, store, repo):
    send(workflow, payload="order")
    before = stored(store).model_dump_json()
    repo.failures["list_products"] = 10

    effects = send(workflow, "Вода 19л")

    assert effects == [ShowError(texts.GENERIC_APOLOGY)]
    assert stored(store).model_dump_json() == before


def test_observer_failure_does_not_hide_confirmation(settings, store, gateway, clock, repo):
    class BrokenObserver:
        async def order_committed(self, order):
            raise RuntimeError("telegram is down")

    workflow = OrderWorkflow(settings, store, gateway, observers=[BrokenObserver()], clock=clock)
    walk_to_date(workflow)

    effects = send(workflow, "02.06.2099 12:00")

    assert isinstance(effects[0], ShowConfirmation)
    assert 1 in repo.orders


def test_menu_button_mid_order_clears_session(workflow, store):
    walk_to_date(workflow)
    effects = send(workflow, payload="menu")
    assert effects == [ResetToMenu()]
    assert stored(store) is None


# -------------------------
# Commands
# -------------------------

def test_cancel_command(workflow, store):
    walk_to_date(workflow)
    effects = send(workflow, "/cancel")
    assert effects == [ShowPrompt(texts.ORDER_CANCELLED), ResetToMenu()]
    assert stored(store) is None


def test_products_command(workflow):
    effects = send(workflow, "/products")
    assert [e.product.id for e in effects if isinstance(e, ShowProduct)] == [1, 2]


def test_order_command_with_bot_suffix(workflow, store):
    send(workflow, "/order@water_bot")
    assert stored(store).state is SessionState.SELECTING_PRODUCT


def test_unknown_command(workflow):
    assert send(workflow, "/foo") == [ShowError(texts.UNKNOWN_COMMAND)]


def test_empty_history(workflow):
    effects = send(workflow, "/history")
    assert effects[0].text == texts.NO_ORDERS


# -------------------------
# History and repeat
# -------------------------

def test_history_lists_own_orders_with_repeat_buttons(workflow, repo):
    repo.orders[5] = past_order(order_id=5)
    repo.orders[6] = past_order(order_id=6, user_id=1)

    effects = send(workflow, texts.MENU_HISTORY)

    entries = [e for e in effects if e.buttons and e.buttons[0][0].payload.startswith("repeat_")]
    assert [e.buttons[0][0].payload for e in entries] == ["repeat_5"]
    assert "Вода 5л" in entries[0].text


def test_repeat_requires_confirmation(workflow, store, repo, observer):
    repo.orders[5] = past_order(order_id=5)
    repo._next_order_id = 6

    send(workflow, payload="repeat_5")
    session = stored(store)
    assert session.state is SessionState.AWAITING_DATE
    assert session.draft_order.total_price == Decimal("389.97")

    send(workflow, "03.06.2099 10:00")
    assert stored(store).state is SessionState.CONFIRMING_ORDER
    assert 6 not in repo.orders

    effects = send(workflow, payload="confirm_order")

    assert effects[0] == ShowConfirmation(6, date(2099, 6, 3), time(10, 0))
    assert repo.orders[6].delivery_address == "Ленина 10"
    assert stored(store) is None
    assert [o.id for o in observer.orders] == [6]


def test_repeat_cancelled(workflow, store, repo):
    repo.orders[5] = past_order(order_id=5)
    send(workflow, payload="repeat_5")
    send(workflow, "03.06.2099 10:00")

    effects = send(workflow, payload="cancel_order")

    assert ResetToMenu() in effects
    assert stored(store) is None
    assert list(repo.orders) == [5]


def test_repeat_of_foreign_order(workflow, repo):
    repo.orders[5] = past_order(order_id=5, user_id=1)
    assert send(workflow, payload="repeat_5") == [ShowError(texts.ORDER_NOT_FOUND)]


def test_stale_confirmation_asks_for_new_date(workflow, store, repo, clock):
    repo.orders[5] = past_order(order_id=5)
    send(workflow, payload="repeat_5")
    send(workflow, "01.06.2024 12:00")

    clock.value = datetime(2024, 6, 1, 13, 0)
    effects = send(workflow, payload="confirm_order")

    assert effects[0] == ShowError(texts.DATE_NOT_FUTURE)
    assert stored(store).state is SessionState.AWAITING_DATE
    assert list(repo.orders) == [5]
