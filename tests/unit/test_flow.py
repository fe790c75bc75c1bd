import asyncio

import pytest

from pickbook.booking.draft import SelectCourt, SetEquipmentQty, ToggleDate, ToggleSlot
from pickbook.booking.flow import (
    BookingFlow,
    BookingValidationError,
    FlowStage,
    FlowStateError,
    booking_id_from,
)
from pickbook.booking.models import ContactDetails
from pickbook.utils.api import ApiError

MORNING = "08:00 AM - 09:00 AM"


class FakeApi:
    def __init__(self, result=None, error=None, email_error=None, gate=None):
        self.result = result if result is not None else {"id": "bk-1"}
        self.error = error
        self.email_error = email_error
        self.gate = gate
        self.payloads = []
        self.emails = []

    async def create_booking(self, payload):
        self.payloads.append(payload)
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return self.result

    async def send_confirmation_email(self, email):
        self.emails.append(email)
        if self.email_error:
            raise self.email_error


@pytest.fixture
def contact():
    return ContactDetails(first_name="Juan", last_name="Dela Cruz", email="juan@example.com", gcash_number="9171234567")


@pytest.fixture
def ready_flow(area, now, contact):
    flow = BookingFlow(area, contact=contact)
    for action in (
        SelectCourt("c1"),
        ToggleDate("2024-12-21"),
        ToggleSlot("2024-12-21", MORNING),
        SetEquipmentQty("eq1", 1),
    ):
        flow.dispatch(action, now)
    return flow


def test_confirmation_blocked_while_a_date_has_no_slots(ready_flow, now):
    ready_flow.dispatch(ToggleDate("2024-12-23"), now)

    with pytest.raises(BookingValidationError) as exc:
        ready_flow.request_confirmation()

    assert exc.value.key == "booking:err_empty_dates"
    assert exc.value.dates == ["2024-12-23"]
    assert ready_flow.stage == FlowStage.EDITING


def test_confirmation_requires_court_and_dates(area, contact):
    flow = BookingFlow(area, contact=contact)

    with pytest.raises(BookingValidationError) as exc:
        flow.request_confirmation()
    assert exc.value.key == "booking:err_no_court"


def test_confirmation_requires_contact_fields(ready_flow):
    ready_flow.set_contact(email=" ", gcash_number="91712")

    with pytest.raises(BookingValidationError) as exc:
        ready_flow.request_confirmation()

    assert exc.value.key == "booking:err_contact"
    assert exc.value.fields == ["email", "gcash_number"]


def test_edits_are_refused_while_confirming(ready_flow, now):
    ready_flow.request_confirmation()

    with pytest.raises(FlowStateError):
        ready_flow.dispatch(ToggleDate("2024-12-24"), now)

    ready_flow.cancel()
    assert ready_flow.stage == FlowStage.EDITING


async def test_submit_success_moves_to_pending_payment(ready_flow):
    api = FakeApi()
    ready_flow.request_confirmation()

    booking_id = await ready_flow.submit(api, "uid-1")

    assert booking_id == "bk-1"
    assert ready_flow.stage == FlowStage.PENDING_PAYMENT
    assert ready_flow.draft.slot_count == 1

    body = api.payloads[0].model_dump(by_alias=True)
    assert body["userId"] == "uid-1"
    assert body["gcashNumber"] == "+639171234567"
    assert body["amount"] == 600
    assert body["slots"] == [{"date": "2024-12-21", "time": [MORNING]}]
    assert body["rentedEquipments"][0]["equipmentId"] == "eq1"

    email = api.emails[0]
    assert email.reservation_id == "bk-1"
    assert email.manager_name == "Ana Cruz"


async def test_submit_failure_returns_to_confirming_with_message(ready_flow):
    api = FakeApi(error=ApiError(409, "Slot already booked"))
    ready_flow.request_confirmation()

    assert await ready_flow.submit(api, "uid-1") is None

    assert ready_flow.stage == FlowStage.CONFIRMING
    assert ready_flow.error == "Slot already booked"
    assert ready_flow.draft.slot_count == 1
    assert api.emails == []


async def test_email_failure_does_not_undo_the_booking(ready_flow):
    api = FakeApi(email_error=ApiError(500, "mailer down"))
    ready_flow.request_confirmation()

    assert await ready_flow.submit(api, "uid-1") == "bk-1"
    assert ready_flow.stage == FlowStage.PENDING_PAYMENT


async def test_second_submit_while_submitting_is_refused(ready_flow):
    gate = asyncio.Event()
    api = FakeApi(gate=gate)
    ready_flow.request_confirmation()

    first = asyncio.create_task(ready_flow.submit(api, "uid-1"))
    await asyncio.sleep(0)
    assert ready_flow.stage == FlowStage.SUBMITTING

    with pytest.raises(FlowStateError):
        await ready_flow.submit(api, "uid-1")
    with pytest.raises(FlowStateError):
        ready_flow.close()

    gate.set()
    assert await first == "bk-1"
    assert len(api.payloads) == 1


async def test_close_clears_selections(ready_flow):
    ready_flow.request_confirmation()
    await ready_flow.submit(FakeApi(), "uid-1")

    ready_flow.close()

    assert ready_flow.stage == FlowStage.EDITING
    assert ready_flow.draft.is_empty
    assert ready_flow.booking_id is None
    assert ready_flow.total == 0


def test_flow_survives_serialisation(ready_flow):
    ready_flow.request_confirmation()

    restored = BookingFlow.from_dict(ready_flow.to_dict())

    assert restored.stage == FlowStage.CONFIRMING
    assert restored.draft == ready_flow.draft
    assert restored.contact == ready_flow.contact
    assert restored.area.manager.gcash_number == "09171234567"
    assert restored.total == ready_flow.total


def test_booking_id_from_accepts_known_fields():
    assert booking_id_from({"bookingId": 42}) == "42"
    assert booking_id_from({"reservationId": "r-9"}) == "r-9"
    assert booking_id_from({}) is None
