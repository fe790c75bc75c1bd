import asyncio
from types import SimpleNamespace

import pytest
from aiogram.fsm.context import FSMContext
from aiogram.fsm.storage.base import StorageKey
from aiogram.fsm.storage.memory import MemoryStorage

from pickbook.booking.draft import SelectCourt, ToggleDate, ToggleSlot
from pickbook.booking.flow import BookingFlow, FlowStage
from pickbook.booking.models import ContactDetails
from pickbook.flows import booking
from pickbook.flows.booking import BookingForm, pending_text
from pickbook.handlers import main_reply
from pickbook.i18n.loader import t

CHAT_ID = 42


class FakeApi:
    def __init__(self):
        self.gate = asyncio.Event()
        self.created = 0

    async def create_booking(self, payload):
        await self.gate.wait()
        self.created += 1
        return {"id": "bk-9"}

    async def send_confirmation_email(self, email):
        pass


class FakeMenu:
    def __init__(self):
        self.edits = []

    async def edit_inline(self, message, text, kb):
        self.edits.append(text)


class FakeMessage:
    def __init__(self, text=None):
        self.text = text
        self.chat = SimpleNamespace(id=CHAT_ID)
        self.from_user = SimpleNamespace(id=CHAT_ID, language_code="en")
        self.answers = []

    async def answer(self, text, **kwargs):
        self.answers.append(text)


class FakeCallback:
    def __init__(self, data):
        self.data = data
        self.message = FakeMessage()
        self.from_user = self.message.from_user
        self.alerts = []

    async def answer(self, text=None, show_alert=False):
        self.alerts.append(text)


def handler_named(observer, name):
    return next(h.callback for h in observer.handlers if h.callback.__name__ == name)


@pytest.fixture
def api(monkeypatch):
    fake = FakeApi()
    monkeypatch.setattr(booking, "get_api", lambda: fake)
    monkeypatch.setattr(booking, "get_settings", lambda: SimpleNamespace(BOT_TIMEZONE="Asia/Manila"))
    return fake


@pytest.fixture
def menu():
    return FakeMenu()


@pytest.fixture
def router(api, menu):
    return booking.setup(menu)


@pytest.fixture
def state():
    return FSMContext(storage=MemoryStorage(), key=StorageKey(bot_id=1, chat_id=CHAT_ID, user_id=CHAT_ID))


@pytest.fixture
async def confirming(area, now, state):
    flow = BookingFlow(area, contact=ContactDetails(
        first_name="Juan", last_name="Dela Cruz", email="juan@example.com", gcash_number="9171234567",
    ))
    for action in (SelectCourt("c1"), ToggleDate("2024-12-21"), ToggleSlot("2024-12-21", "08:00 AM - 09:00 AM")):
        flow.dispatch(action, now)
    flow.request_confirmation()
    assert flow.stage == FlowStage.CONFIRMING

    await state.set_state(BookingForm.form)
    await state.set_data({"visit": "v1", "lang": "en", "flow": flow.to_dict()})
    return flow


def reply_router(bk):
    stub = SimpleNamespace()
    return main_reply.setup(FakeMenu(), sessions=None, areas=stub, booking=bk, dashboard=stub, profile=stub, auth=stub)


async def test_booking_id_shown_even_when_visit_replaced(router, api, menu, state, confirming):
    confirm = handler_named(router.callback_query, "handle_confirm")
    session = SimpleNamespace(uid="uid-1")

    task = asyncio.create_task(confirm(FakeCallback("bk:confirm"), state, session=session))
    await asyncio.sleep(0)
    assert router.is_submitting(CHAT_ID)

    await state.clear()
    api.gate.set()
    await task

    assert api.created == 1
    assert "bk-9" in menu.edits[-1]
    assert not router.is_submitting(CHAT_ID)


async def test_menu_tap_waits_while_submitting(router, api, menu, state, confirming):
    confirm = handler_named(router.callback_query, "handle_confirm")
    handle_menu = handler_named(reply_router(router).message, "handle_menu")

    task = asyncio.create_task(confirm(FakeCallback("bk:confirm"), state, session=SimpleNamespace(uid="uid-1")))
    await asyncio.sleep(0)

    tap = FakeMessage(t("menu:areas", "en"))
    await handle_menu(tap, state, session=None)

    assert tap.answers == [t("booking:err_submitting", "en")]
    assert await state.get_state() == BookingForm.form.state

    api.gate.set()
    await task

    flow = BookingFlow.from_dict((await state.get_data())["flow"])
    assert flow.stage == FlowStage.PENDING_PAYMENT
    assert menu.edits[-1] == pending_text(flow, "en")


async def test_new_booking_refused_while_submitting(router, api, state, confirming):
    confirm = handler_named(router.callback_query, "handle_confirm")
    start = handler_named(router.callback_query, "handle_start")

    task = asyncio.create_task(confirm(FakeCallback("bk:confirm"), state, session=SimpleNamespace(uid="uid-1")))
    await asyncio.sleep(0)

    tap = FakeCallback("bk:start:area-2")
    await start(tap, state, session=SimpleNamespace(tg_id=CHAT_ID))

    assert tap.alerts == [t("booking:err_submitting", "en")]
    assert (await state.get_data())["visit"] == "v1"

    api.gate.set()
    await task
