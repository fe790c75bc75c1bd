# pickbook/flows/booking.py
"""
Booking form of one area.

Flow:
1. Area detail fetched (area card → "Book a court")
2. Form: court, dates (calendar), time slots per date, equipment, contact
3. Review → confirmation summary
4. Confirm → POST /api/booking/create/ → pending payment (manager GCash details)
5. Close → empty form again

The whole form is a BookingFlow serialised into FSM data under "flow". Every
visit gets a fresh "visit" id; responses that arrive after the visit was
replaced are dropped.
"""

import html
import logging
import uuid
from datetime import datetime
from typing import Optional

from aiogram import F, Router
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, Message

from pickbook.booking.draft import (
    ApplyAllDates,
    FocusDate,
    SelectCourt,
    StepEquipment,
    ToggleDate,
    ToggleSlot,
)
from pickbook.booking.flow import BookingFlow, BookingValidationError, FlowStage, FlowStateError
from pickbook.booking.models import ContactDetails
from pickbook.booking.pricing import price_breakdown
from pickbook.booking.timeslots import date_key, generate_time_slots, now_in, parse_date_key
from pickbook.config import get_settings
from pickbook.i18n.loader import DEFAULT_LANG, t, user_lang
from pickbook.keyboards.booking import (
    confirm_inline,
    contact_inline,
    courts_inline,
    equipment_inline,
    form_inline,
    input_cancel_inline,
    money,
    pending_inline,
    slots_inline,
)
from pickbook.keyboards.calendar import calendar_inline, month_key, parse_month_key
from pickbook.utils.api import ApiError, get_api
from pickbook.utils.locks import ChatLocks
from pickbook.utils.phone import normalize_gcash, validate_contact
from pickbook.utils.session import Session

logger = logging.getLogger(__name__)


# ==============================================================
# FSM States
# ==============================================================

class BookingForm(StatesGroup):
    form = State()          # inline form (buttons only)
    first_name = State()    # text input of a contact field
    last_name = State()
    email = State()
    gcash_number = State()


CONTACT_STATES = {
    "first_name": BookingForm.first_name,
    "last_name": BookingForm.last_name,
    "email": BookingForm.email,
    "gcash_number": BookingForm.gcash_number,
}


# ==============================================================
# Texts
# ==============================================================

def pretty_date(key: str) -> str:
    """"2024-12-20" → "Fri, 20 Dec 2024"."""
    return parse_date_key(key).strftime("%a, %d %b %Y")


def contact_from_session(session: Optional[Session]) -> ContactDetails:
    if session is None:
        return ContactDetails()
    return ContactDetails(
        first_name=session.first_name,
        last_name=session.last_name,
        email=session.email,
        gcash_number=session.phone,
    )


def form_text(flow: BookingFlow, lang: str) -> str:
    area = flow.area
    lines = [
        t("booking:form:title", lang, html.escape(area.name)),
        t("booking:form:hours", lang, area.opening_time, area.closing_time),
        "",
    ]

    court = area.get_court(flow.draft.court_id)
    if court:
        lines.append(t("booking:form:court_line", lang, html.escape(court.name), money(court.rate)))

    for day in flow.draft.sorted_dates:
        marker = "▸ " if day == flow.draft.active_date else "• "
        lines.append(f"{marker}{pretty_date(day)}: {t('booking:form:slot_count', lang, len(flow.draft.slots_for(day)))}")

    lines.append("")
    lines.append(t("booking:form:total", lang, money(flow.total)))
    return "\n".join(lines)


def slots_text(flow: BookingFlow, day: str, lang: str) -> str:
    picked = flow.draft.slots_for(day)
    return t("booking:slots:title", lang, pretty_date(day), len(picked))


def summary_text(flow: BookingFlow, lang: str) -> str:
    area = flow.area
    court = area.get_court(flow.draft.court_id)
    breakdown = price_breakdown(area, flow.draft)
    contact = flow.contact

    lines = [
        t("booking:confirm:title", lang),
        "",
        t("booking:confirm:area", lang, html.escape(area.name)),
        t("booking:confirm:court", lang, html.escape(court.name) if court else "—"),
        "",
    ]
    for line in breakdown.court_lines:
        lines.append(f"📅 <b>{pretty_date(line.label)}</b>")
        lines.append("   " + ", ".join(flow.draft.slots_for(line.label)))
        lines.append(f"   {line.quantity} × {money(line.unit_price)} = {money(line.subtotal)}")

    if breakdown.equipment_lines:
        lines.append("")
        lines.append(t("booking:confirm:equipment", lang))
        for line in breakdown.equipment_lines:
            lines.append(f"• {html.escape(line.label)}: {line.quantity} × {money(line.unit_price)} = {money(line.subtotal)}")

    lines += [
        "",
        t("booking:confirm:contact", lang,
          html.escape(f"{contact.first_name} {contact.last_name}"),
          html.escape(contact.email),
          contact.gcash_number),
        "",
        t("booking:form:total", lang, money(breakdown.total)),
    ]
    if flow.error:
        lines += ["", t("booking:confirm:failed", lang, html.escape(flow.error))]
    return "\n".join(lines)


def pending_text(flow: BookingFlow, lang: str) -> str:
    manager = flow.area.manager
    return t(
        "booking:pending:text",
        lang,
        html.escape(flow.booking_id or "—"),
        money(flow.total),
        html.escape(manager.full_name or "—"),
        html.escape(manager.gcash_number or "—"),
    )


def validation_text(err: BookingValidationError, lang: str) -> str:
    if err.dates:
        return t(err.key, lang, ", ".join(pretty_date(d) for d in err.dates))
    if err.fields:
        return t(err.key, lang, ", ".join(t(f"booking:contact:{f}", lang) for f in err.fields))
    return t(err.key, lang)


# ==============================================================
# Flow Setup
# ==============================================================

def setup(menu_controller):
    """Booking form router."""
    router = Router(name="booking")
    mc = menu_controller
    api = get_api()
    settings = get_settings()

    # one submission at a time per chat
    submit_locks = ChatLocks()

    def submitting(callback: CallbackQuery) -> bool:
        return submit_locks.busy(callback.message.chat.id)

    def now() -> datetime:
        return now_in(settings.BOT_TIMEZONE)

    async def load(state: FSMContext) -> tuple[Optional[BookingFlow], dict]:
        data = await state.get_data()
        raw = data.get("flow")
        return (BookingFlow.from_dict(raw) if raw else None), data

    async def save(state: FSMContext, flow: BookingFlow) -> None:
        await state.update_data(flow=flow.to_dict())

    async def render(message: Message, flow: BookingFlow, lang: str) -> None:
        await mc.edit_inline(message, form_text(flow, lang), form_inline(flow.area, flow.draft, lang))

    # ==========================================================
    # START
    # ==========================================================

    async def start_booking(message: Message, state: FSMContext, session: Session, area_id: str, lang: str):
        """Entry point: ``message`` is the inline message that becomes the form."""
        visit = uuid.uuid4().hex
        logger.info(f"[BOOKING] Starting tg_id={session.tg_id} area={area_id} visit={visit}")

        await state.set_state(BookingForm.form)
        await state.set_data({"visit": visit, "lang": lang, "form_msg": message.message_id})
        await mc.edit_inline(message, t("booking:loading", lang), None)

        try:
            area = await api.get_area(area_id)
        except ApiError as e:
            if (await state.get_data()).get("visit") == visit:
                await mc.edit_inline(message, t("booking:load_failed", lang, html.escape(e.message)), None)
                await state.clear()
            return

        if (await state.get_data()).get("visit") != visit:
            logger.info(f"[BOOKING] stale area response dropped visit={visit}")
            return

        flow = BookingFlow(area, contact=contact_from_session(session))
        await save(state, flow)
        await render(message, flow, lang)

    @router.callback_query(F.data.startswith("bk:start:"))
    async def handle_start(callback: CallbackQuery, state: FSMContext, session: Optional[Session] = None):
        lang = user_lang(callback.from_user.language_code)
        if session is None:
            await callback.answer(t("auth:required", lang), show_alert=True)
            return
        if submitting(callback):
            await callback.answer(t("booking:err_submitting", lang), show_alert=True)
            return
        area_id = callback.data.split(":", 2)[2]
        await callback.answer()
        await start_booking(callback.message, state, session, area_id, lang)

    # ==========================================================
    # FORM / COURT
    # ==========================================================

    async def apply_action(callback: CallbackQuery, state: FSMContext, action) -> Optional[BookingFlow]:
        """Dispatch a draft action; None (and an alert) when the form is gone or busy."""
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        if flow is None:
            await callback.answer(t("booking:expired", lang), show_alert=True)
            return None
        if submitting(callback):
            await callback.answer(t("booking:err_busy", lang), show_alert=True)
            return None
        try:
            flow.dispatch(action, now())
        except FlowStateError:
            await callback.answer(t("booking:err_busy", lang), show_alert=True)
            return None
        await save(state, flow)
        return flow

    @router.callback_query(BookingForm, F.data == "bk:form")
    async def handle_form(callback: CallbackQuery, state: FSMContext):
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        if flow is None:
            await callback.answer(t("booking:expired", lang), show_alert=True)
            return
        await state.set_state(BookingForm.form)
        await render(callback.message, flow, lang)
        await callback.answer()

    @router.callback_query(BookingForm, F.data == "bk:courts")
    async def handle_courts(callback: CallbackQuery, state: FSMContext):
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        if flow is None:
            await callback.answer(t("booking:expired", lang), show_alert=True)
            return
        await mc.edit_inline(
            callback.message,
            t("booking:court:select", lang),
            courts_inline(flow.area, flow.draft.court_id, lang),
        )
        await callback.answer()

    @router.callback_query(BookingForm, F.data.startswith("bk:court:"))
    async def handle_court_select(callback: CallbackQuery, state: FSMContext):
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        index = int(callback.data.split(":")[-1])
        if flow is None or not 0 <= index < len(flow.area.courts):
            await callback.answer(t("common:error", lang), show_alert=True)
            return

        court = flow.area.courts[index]
        flow = await apply_action(callback, state, SelectCourt(court.id))
        if flow is None:
            return
        logger.info(f"[BOOKING] Court: {court.name} (id={court.id})")
        await render(callback.message, flow, lang)
        await callback.answer()

    # ==========================================================
    # DATES
    # ==========================================================

    async def show_calendar(callback: CallbackQuery, state: FSMContext, month: Optional[str] = None):
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        if flow is None:
            await callback.answer(t("booking:expired", lang), show_alert=True)
            return

        today = now().date()
        month = month or data.get("cal_month") or month_key(today.year, today.month)
        year, mon = parse_month_key(month)
        await state.update_data(cal_month=month)

        kb = calendar_inline(year, mon, set(flow.draft.dates), today, lang)
        await mc.edit_inline(callback.message, t("booking:cal:title", lang, len(flow.draft.dates)), kb)
        await callback.answer()

    @router.callback_query(BookingForm, F.data == "bk:cal")
    async def handle_calendar(callback: CallbackQuery, state: FSMContext):
        await show_calendar(callback, state)

    @router.callback_query(BookingForm, F.data.startswith("bk:cal:"))
    async def handle_calendar_page(callback: CallbackQuery, state: FSMContext):
        await show_calendar(callback, state, callback.data.split(":")[-1])

    @router.callback_query(BookingForm, F.data.startswith("bk:date:"))
    async def handle_date_toggle(callback: CallbackQuery, state: FSMContext):
        day = callback.data.split(":")[-1]
        flow = await apply_action(callback, state, ToggleDate(day))
        if flow is None:
            return
        logger.info(f"[BOOKING] Dates: {flow.draft.sorted_dates}")
        await show_calendar(callback, state)

    # ==========================================================
    # TIME SLOTS
    # ==========================================================

    async def show_slots(callback: CallbackQuery, flow: BookingFlow, lang: str, alert: Optional[str] = None):
        day = flow.draft.active_date
        if day is None:
            await callback.answer(t("booking:err_no_dates", lang), show_alert=True)
            return
        kb = slots_inline(flow.area, flow.draft, day, now(), lang)
        await mc.edit_inline(callback.message, slots_text(flow, day, lang), kb)
        if alert:
            await callback.answer(alert, show_alert=True)
        else:
            await callback.answer()

    @router.callback_query(BookingForm, F.data == "bk:slots")
    async def handle_slots(callback: CallbackQuery, state: FSMContext):
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        if flow is None:
            await callback.answer(t("booking:expired", lang), show_alert=True)
            return
        await show_slots(callback, flow, lang)

    @router.callback_query(BookingForm, F.data.startswith("bk:slot:"))
    async def handle_slot_toggle(callback: CallbackQuery, state: FSMContext):
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        if flow is None or flow.draft.active_date is None:
            await callback.answer(t("booking:expired", lang), show_alert=True)
            return

        labels = generate_time_slots(flow.area.opening_time, flow.area.closing_time)
        index = int(callback.data.split(":")[-1])
        if not 0 <= index < len(labels):
            await callback.answer(t("common:error", lang), show_alert=True)
            return

        before = flow.draft
        flow = await apply_action(callback, state, ToggleSlot(before.active_date, labels[index]))
        if flow is None:
            return

        alert = t("booking:slots:taken", lang) if flow.draft == before else None
        await show_slots(callback, flow, lang, alert)

    @router.callback_query(BookingForm, F.data.startswith("bk:focus:"))
    async def handle_focus(callback: CallbackQuery, state: FSMContext):
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        if flow is None or not flow.draft.dates:
            await callback.answer(t("booking:err_no_dates", lang), show_alert=True)
            return

        dates = flow.draft.sorted_dates
        current = flow.draft.active_date
        pos = dates.index(current) if current in dates else 0
        direction = callback.data.split(":")[-1]

        if direction == "prev":
            target = dates[max(0, pos - 1)]
        elif direction == "next":
            target = dates[min(len(dates) - 1, pos + 1)]
        else:
            today = date_key(now().date())
            target = next((d for d in dates if d >= today), dates[-1])

        if target == current:
            await callback.answer()
            return

        flow = await apply_action(callback, state, FocusDate(target))
        if flow is None:
            return
        await show_slots(callback, flow, lang)

    @router.callback_query(BookingForm, F.data == "bk:apply")
    async def handle_apply_all(callback: CallbackQuery, state: FSMContext):
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        if flow is None or flow.draft.active_date is None:
            await callback.answer(t("booking:expired", lang), show_alert=True)
            return

        flow = await apply_action(callback, state, ApplyAllDates(flow.draft.active_date))
        if flow is None:
            return
        logger.info(f"[BOOKING] Applied {flow.draft.active_date} slots to all dates")
        await show_slots(callback, flow, lang, t("booking:slots:applied", lang))

    # ==========================================================
    # EQUIPMENT
    # ==========================================================

    @router.callback_query(BookingForm, F.data == "bk:eq")
    async def handle_equipment(callback: CallbackQuery, state: FSMContext):
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        if flow is None:
            await callback.answer(t("booking:expired", lang), show_alert=True)
            return
        await mc.edit_inline(callback.message, t("booking:eq:title", lang), equipment_inline(flow.area, flow.draft, lang))
        await callback.answer()

    @router.callback_query(BookingForm, F.data.startswith("bk:eq:"))
    async def handle_equipment_qty(callback: CallbackQuery, state: FSMContext):
        _, _, op, raw_index = callback.data.split(":")
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        index = int(raw_index)
        if flow is None or not 0 <= index < len(flow.area.equipment):
            await callback.answer(t("common:error", lang), show_alert=True)
            return

        item = flow.area.equipment[index]
        flow = await apply_action(callback, state, StepEquipment(item.id, 1 if op == "inc" else -1))
        if flow is None:
            return
        await mc.edit_inline(callback.message, t("booking:eq:title", lang), equipment_inline(flow.area, flow.draft, lang))
        await callback.answer()

    # ==========================================================
    # CONTACT
    # ==========================================================

    @router.callback_query(BookingForm, F.data == "bk:contact")
    async def handle_contact(callback: CallbackQuery, state: FSMContext):
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        if flow is None:
            await callback.answer(t("booking:expired", lang), show_alert=True)
            return
        await state.set_state(BookingForm.form)
        await mc.edit_inline(callback.message, t("booking:contact:title", lang), contact_inline(flow.contact, lang))
        await callback.answer()

    @router.callback_query(BookingForm, F.data.startswith("bk:ct:"))
    async def handle_contact_field(callback: CallbackQuery, state: FSMContext):
        field = callback.data.split(":")[-1]
        data = await state.get_data()
        lang = data.get("lang", DEFAULT_LANG)
        if field not in CONTACT_STATES:
            await callback.answer(t("common:error", lang), show_alert=True)
            return

        await state.set_state(CONTACT_STATES[field])
        await state.update_data(form_msg=callback.message.message_id)
        await mc.edit_inline(callback.message, t(f"booking:contact:ask_{field}", lang), input_cancel_inline(lang))
        await callback.answer()

    async def update_contact(message: Message, state: FSMContext, field: str, value: str):
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        await mc.delete_user_message(message)
        if flow is None:
            await state.clear()
            return

        try:
            flow.set_contact(**{field: value})
        except FlowStateError:
            return
        await save(state, flow)
        await state.set_state(BookingForm.form)

        try:
            await message.bot.edit_message_text(
                chat_id=message.chat.id,
                message_id=data.get("form_msg"),
                text=t("booking:contact:title", lang),
                reply_markup=contact_inline(flow.contact, lang),
            )
        except TelegramBadRequest as e:
            logger.debug(f"[BOOKING] contact card not updated: {e}")

    async def reject_input(message: Message, state: FSMContext, key: str):
        data = await state.get_data()
        await mc.delete_user_message(message)
        await mc.send_inline_in_flow(message.bot, message.chat.id, t(key, data.get("lang", DEFAULT_LANG)))

    @router.message(BookingForm.first_name, F.text)
    async def handle_first_name(message: Message, state: FSMContext):
        await update_contact(message, state, "first_name", message.text.strip())

    @router.message(BookingForm.last_name, F.text)
    async def handle_last_name(message: Message, state: FSMContext):
        await update_contact(message, state, "last_name", message.text.strip())

    @router.message(BookingForm.email, F.text)
    async def handle_email(message: Message, state: FSMContext):
        value = message.text.strip()
        if "@" not in value or " " in value:
            await reject_input(message, state, "booking:contact:bad_email")
            return
        await update_contact(message, state, "email", value)

    @router.message(BookingForm.gcash_number, F.contact)
    async def handle_gcash_contact(message: Message, state: FSMContext):
        digits = validate_contact(message.contact, message.from_user.id)
        if digits is None:
            await reject_input(message, state, "booking:contact:bad_gcash")
            return
        await update_contact(message, state, "gcash_number", digits)

    @router.message(BookingForm.gcash_number, F.text)
    async def handle_gcash(message: Message, state: FSMContext):
        digits = normalize_gcash(message.text)
        if digits is None:
            await reject_input(message, state, "booking:contact:bad_gcash")
            return
        await update_contact(message, state, "gcash_number", digits)

    # ==========================================================
    # REVIEW / CONFIRM
    # ==========================================================

    @router.callback_query(BookingForm, F.data == "bk:review")
    async def handle_review(callback: CallbackQuery, state: FSMContext):
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        if flow is None:
            await callback.answer(t("booking:expired", lang), show_alert=True)
            return

        if submitting(callback):
            await callback.answer(t("booking:err_busy", lang), show_alert=True)
            return

        try:
            flow.request_confirmation()
        except BookingValidationError as e:
            logger.info(f"[BOOKING] Review blocked: {e.key} dates={e.dates} fields={e.fields}")
            await callback.answer(validation_text(e, lang), show_alert=True)
            return
        except FlowStateError:
            await callback.answer(t("booking:err_busy", lang), show_alert=True)
            return

        await save(state, flow)
        await mc.edit_inline(callback.message, summary_text(flow, lang), confirm_inline(lang))
        await callback.answer()

    @router.callback_query(BookingForm, F.data == "bk:unconfirm")
    async def handle_unconfirm(callback: CallbackQuery, state: FSMContext):
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        if flow is None:
            await callback.answer(t("booking:expired", lang), show_alert=True)
            return
        if submitting(callback):
            await callback.answer(t("booking:err_busy", lang), show_alert=True)
            return
        try:
            flow.cancel()
        except FlowStateError:
            await callback.answer(t("booking:err_busy", lang), show_alert=True)
            return
        await save(state, flow)
        await render(callback.message, flow, lang)
        await callback.answer()

    @router.callback_query(BookingForm, F.data == "bk:confirm")
    async def handle_confirm(callback: CallbackQuery, state: FSMContext, session: Optional[Session] = None):
        chat_id = callback.message.chat.id
        lang = user_lang(callback.from_user.language_code)
        if session is None:
            await callback.answer(t("auth:required", lang), show_alert=True)
            return

        async with submit_locks.hold(chat_id):
            flow, data = await load(state)
            lang = data.get("lang", lang)
            visit = data.get("visit")
            if flow is None or flow.stage != FlowStage.CONFIRMING:
                await callback.answer(t("booking:err_busy", lang), show_alert=True)
                return

            await callback.answer()
            await mc.edit_inline(callback.message, t("booking:submitting", lang), None)

            booking_id = await flow.submit(api, session.uid)

            if (await state.get_data()).get("visit") != visit:
                logger.warning(f"[BOOKING] visit replaced during submit, result id={booking_id}")
                text = pending_text(flow, lang) if booking_id is not None else summary_text(flow, lang)
                await mc.edit_inline(callback.message, text, None)
                return
            await save(state, flow)

        if booking_id is None:
            await mc.edit_inline(callback.message, summary_text(flow, lang), confirm_inline(lang))
            return

        await mc.edit_inline(callback.message, pending_text(flow, lang), pending_inline(flow.area.manager.qr_code, lang))

    @router.callback_query(BookingForm, F.data == "bk:close")
    async def handle_close(callback: CallbackQuery, state: FSMContext):
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        if flow is None:
            await callback.answer(t("booking:expired", lang), show_alert=True)
            return
        if submitting(callback):
            await callback.answer(t("booking:err_busy", lang), show_alert=True)
            return
        try:
            flow.close()
        except FlowStateError:
            await callback.answer(t("booking:err_busy", lang), show_alert=True)
            return
        await save(state, flow)
        await render(callback.message, flow, lang)
        await callback.answer()

    # ==========================================================
    # CANCEL
    # ==========================================================

    @router.callback_query(BookingForm, F.data == "bk:quit")
    async def handle_quit(callback: CallbackQuery, state: FSMContext):
        flow, data = await load(state)
        lang = data.get("lang", DEFAULT_LANG)
        if submitting(callback) or (flow is not None and flow.stage != FlowStage.EDITING):
            await callback.answer(t("booking:err_busy", lang), show_alert=True)
            return
        await state.clear()
        await mc.edit_inline(callback.message, t("booking:cancelled", lang), None)
        await callback.answer()

    @router.callback_query(F.data == "bk:noop")
    async def handle_noop(callback: CallbackQuery):
        await callback.answer()

    @router.callback_query(F.data.startswith("bk:"))
    async def handle_expired(callback: CallbackQuery):
        """Buttons of a form whose FSM state is gone."""
        await callback.answer(t("booking:expired", user_lang(callback.from_user.language_code)), show_alert=True)

    router.start_booking = start_booking
    router.is_submitting = submit_locks.busy
    return router
