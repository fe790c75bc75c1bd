# pickbook/booking/flow.py
"""
Submission / confirmation state machine of the booking form.

    editing ──request_confirmation()──▶ confirming ──submit()──▶ submitting
       ▲                                  │   ▲                      │
       └──────────── cancel() ────────────┘   └──── on failure ──────┤
       ▲                                                              ▼
       └──────────────────────── close() ─────────────────── pendingPayment

Selections stay intact through pendingPayment so the summary of what was booked
can still be shown; only close() clears them.

The flow is serialisable (to_dict / from_dict) and lives in FSM data between
updates.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Optional

from .draft import Action, BookingDraft, apply
from .models import (
    Area,
    BookingPayload,
    ConfirmationEmail,
    ContactDetails,
    RentedEquipment,
    SlotRequest,
)
from .pricing import compute_total
from pickbook.utils.api import ApiClient, ApiError

logger = logging.getLogger(__name__)

GCASH_PREFIX = "+63"


class FlowStage(str, Enum):
    EDITING = "editing"
    CONFIRMING = "confirming"
    SUBMITTING = "submitting"
    PENDING_PAYMENT = "pendingPayment"


class BookingValidationError(Exception):
    """Form is incomplete. ``key`` is the i18n message key, ``dates`` the offending date keys."""

    def __init__(self, key: str, dates: Optional[list[str]] = None, fields: Optional[list[str]] = None):
        super().__init__(key)
        self.key = key
        self.dates = dates or []
        self.fields = fields or []


class FlowStateError(Exception):
    """Operation is not allowed in the current stage."""


def booking_id_from(result: dict) -> Optional[str]:
    for name in ("id", "bookingId", "reservationId"):
        value = result.get(name) if isinstance(result, dict) else None
        if value:
            return str(value)
    return None


class BookingFlow:
    def __init__(
        self,
        area: Area,
        draft: Optional[BookingDraft] = None,
        contact: Optional[ContactDetails] = None,
        stage: FlowStage = FlowStage.EDITING,
        booking_id: Optional[str] = None,
        error: Optional[str] = None,
    ):
        self.area = area
        self.draft = draft or BookingDraft()
        self.contact = contact or ContactDetails()
        self.stage = stage
        self.booking_id = booking_id
        self.error = error

    # ==========================================================================
    # editing
    # ==========================================================================

    def _require(self, *stages: FlowStage) -> None:
        if self.stage not in stages:
            raise FlowStateError(f"not allowed in stage {self.stage.value}")

    def dispatch(self, action: Action, now: datetime) -> BookingDraft:
        self._require(FlowStage.EDITING)
        self.draft = apply(self.draft, action, self.area, now)
        return self.draft

    def set_contact(self, **fields) -> ContactDetails:
        self._require(FlowStage.EDITING)
        self.contact = self.contact.model_copy(update=fields)
        return self.contact

    @property
    def total(self) -> int:
        return compute_total(self.area, self.draft)

    def validate(self) -> None:
        if self.area.get_court(self.draft.court_id) is None:
            raise BookingValidationError("booking:err_no_court")
        if not self.draft.dates:
            raise BookingValidationError("booking:err_no_dates")

        empty = self.draft.dates_without_slots()
        if empty:
            raise BookingValidationError("booking:err_empty_dates", dates=empty)

        missing = self.contact.missing_fields()
        if missing:
            raise BookingValidationError("booking:err_contact", fields=missing)

    def request_confirmation(self) -> None:
        """editing → confirming, or BookingValidationError with stage unchanged."""
        self._require(FlowStage.EDITING)
        self.validate()
        self.error = None
        self.stage = FlowStage.CONFIRMING

    def cancel(self) -> None:
        self._require(FlowStage.CONFIRMING)
        self.error = None
        self.stage = FlowStage.EDITING

    # ==========================================================================
    # submission
    # ==========================================================================

    def build_payload(self, user_id: str) -> BookingPayload:
        slots = [
            SlotRequest(date=day, time=list(self.draft.slots_for(day)))
            for day in self.draft.sorted_dates
            if self.draft.slots_for(day)
        ]

        rented = []
        for equipment_id, qty in self.draft.equipment.items():
            item = self.area.get_equipment(equipment_id)
            if item is None:
                continue
            rented.append(RentedEquipment(equipment_id=item.id, name=item.name, quantity=qty, price=item.price))

        return BookingPayload(
            user_id=user_id,
            first_name=self.contact.first_name.strip(),
            last_name=self.contact.last_name.strip(),
            email=self.contact.email.strip(),
            gcash_number=f"{GCASH_PREFIX}{self.contact.gcash_number.strip()}",
            area_id=self.area.id,
            court_id=self.draft.court_id,
            slots=slots,
            amount=self.total,
            rented_equipments=rented,
        )

    def build_email(self, payload: BookingPayload, booking_id: str) -> ConfirmationEmail:
        court = self.area.get_court(self.draft.court_id)
        manager = self.area.manager
        return ConfirmationEmail(
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            area_name=self.area.name,
            court_name=court.name if court else "",
            reservation_id=booking_id,
            total_amount=payload.amount,
            date_time_slots=payload.slots,
            manager_name=manager.full_name,
            gcash_number=manager.gcash_number,
            qr_code=manager.qr_code,
        )

    async def submit(self, api: ApiClient, user_id: str) -> Optional[str]:
        """
        confirming → submitting → pendingPayment | confirming.

        Returns the booking id on success, None on failure (``error`` is set).
        """
        if self.stage == FlowStage.SUBMITTING:
            raise FlowStateError("submission already in progress")
        self._require(FlowStage.CONFIRMING)

        self.stage = FlowStage.SUBMITTING
        self.error = None
        payload = self.build_payload(user_id)

        try:
            result = await api.create_booking(payload)
        except ApiError as e:
            logger.warning(f"[BOOKING] create failed for user={user_id} area={self.area.id}: {e}")
            self.stage = FlowStage.CONFIRMING
            self.error = e.message
            return None

        booking_id = booking_id_from(result)
        if not booking_id:
            logger.warning(f"[BOOKING] create returned no id: {result!r}")
        self.booking_id = booking_id or ""
        self.stage = FlowStage.PENDING_PAYMENT
        logger.info(f"[BOOKING] created id={self.booking_id} user={user_id} amount={payload.amount}")

        try:
            await api.send_confirmation_email(self.build_email(payload, self.booking_id))
        except ApiError as e:
            logger.warning(f"[BOOKING] confirmation e-mail failed for id={self.booking_id}: {e}")

        return self.booking_id

    def close(self) -> None:
        """Dialog closed: back to editing with every selection cleared."""
        if self.stage == FlowStage.SUBMITTING:
            raise FlowStateError("cannot close while submitting")
        self.draft = BookingDraft()
        self.stage = FlowStage.EDITING
        self.booking_id = None
        self.error = None

    # ==========================================================================
    # storage
    # ==========================================================================

    def to_dict(self) -> dict:
        return {
            "area": self.area.model_dump(by_alias=True),
            "draft": self.draft.to_dict(),
            "contact": self.contact.model_dump(),
            "stage": self.stage.value,
            "booking_id": self.booking_id,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BookingFlow":
        return cls(
            area=Area.model_validate(data["area"]),
            draft=BookingDraft.from_dict(data.get("draft")),
            contact=ContactDetails.model_validate(data.get("contact") or {}),
            stage=FlowStage(data.get("stage") or FlowStage.EDITING.value),
            booking_id=data.get("booking_id"),
            error=data.get("error"),
        )
