# pickbook/keyboards/booking.py
"""
Inline keyboards of the booking form.

Courts, slots and equipment are addressed by their index in the area so that
callback data stays short: bk:court:{i}, bk:slot:{i}, bk:eq:inc:{i}.
"""

from datetime import datetime

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from pickbook.booking.availability import is_slot_unavailable
from pickbook.booking.draft import BookingDraft
from pickbook.booking.models import Area, ContactDetails
from pickbook.booking.timeslots import generate_time_slots, slot_start_label
from pickbook.i18n.loader import t

NOOP = "bk:noop"


def money(amount: int | float) -> str:
    """2700 → "₱2,700"."""
    return f"₱{amount:,.0f}"


def form_inline(area: Area, draft: BookingDraft, lang: str) -> InlineKeyboardMarkup:
    """Main screen of the form: one button per section."""
    court = area.get_court(draft.court_id)
    court_label = court.name if court else t("booking:form:no_court", lang)

    buttons = [
        [InlineKeyboardButton(text=t("booking:form:court", lang, court_label), callback_data="bk:courts")],
        [InlineKeyboardButton(text=t("booking:form:dates", lang, len(draft.dates)), callback_data="bk:cal")],
    ]
    if draft.dates:
        buttons.append([
            InlineKeyboardButton(text=t("booking:form:slots", lang, draft.slot_count), callback_data="bk:slots"),
        ])
    if area.equipment:
        buttons.append([
            InlineKeyboardButton(
                text=t("booking:form:equipment", lang, sum(draft.equipment.values())),
                callback_data="bk:eq",
            ),
        ])
    buttons.append([InlineKeyboardButton(text=t("booking:form:contact", lang), callback_data="bk:contact")])
    buttons.append([
        InlineKeyboardButton(text=t("booking:form:review", lang), callback_data="bk:review"),
        InlineKeyboardButton(text=t("common:cancel", lang), callback_data="bk:quit"),
    ])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def courts_inline(area: Area, selected_id: str | None, lang: str) -> InlineKeyboardMarkup:
    buttons = []
    for i, court in enumerate(area.courts):
        mark = "✅ " if court.id == selected_id else ""
        rate = t("booking:court:rate", lang, money(court.rate))
        buttons.append([
            InlineKeyboardButton(text=f"{mark}{court.name} · {rate}", callback_data=f"bk:court:{i}"),
        ])
    buttons.append([InlineKeyboardButton(text=t("common:back", lang), callback_data="bk:form")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def slots_inline(
    area: Area,
    draft: BookingDraft,
    day_key: str,
    now: datetime,
    lang: str,
) -> InlineKeyboardMarkup:
    """
    Slots of the focused date, two per row:
        ✓ picked, 🚫 reserved or already started.
    """
    picked = set(draft.slots_for(day_key))
    buttons = []

    # focus navigation over the selected dates
    buttons.append([
        InlineKeyboardButton(text=t("booking:slots:prev", lang), callback_data="bk:focus:prev"),
        InlineKeyboardButton(text=t("booking:slots:today", lang), callback_data="bk:focus:today"),
        InlineKeyboardButton(text=t("booking:slots:next", lang), callback_data="bk:focus:next"),
    ])

    row = []
    for i, slot in enumerate(generate_time_slots(area.opening_time, area.closing_time)):
        start = slot_start_label(slot)
        if slot in picked:
            button = InlineKeyboardButton(text=f"✓ {start}", callback_data=f"bk:slot:{i}")
        elif is_slot_unavailable(area, day_key, slot, now):
            button = InlineKeyboardButton(text=f"🚫 {start}", callback_data=NOOP)
        else:
            button = InlineKeyboardButton(text=start, callback_data=f"bk:slot:{i}")
        row.append(button)
        if len(row) == 2:
            buttons.append(row)
            row = []
    if row:
        buttons.append(row)

    if len(draft.dates) > 1 and picked:
        buttons.append([InlineKeyboardButton(text=t("booking:slots:apply_all", lang), callback_data="bk:apply")])
    buttons.append([InlineKeyboardButton(text=t("common:done", lang), callback_data="bk:form")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def equipment_inline(area: Area, draft: BookingDraft, lang: str) -> InlineKeyboardMarkup:
    buttons = []
    for i, item in enumerate(area.equipment):
        qty = draft.equipment.get(item.id, 0)
        buttons.append([
            InlineKeyboardButton(
                text=t("booking:eq:item", lang, item.name, money(item.price), item.stock),
                callback_data=NOOP,
            ),
        ])
        buttons.append([
            InlineKeyboardButton(text="➖", callback_data=f"bk:eq:dec:{i}" if qty > 0 else NOOP),
            InlineKeyboardButton(text=str(qty), callback_data=NOOP),
            InlineKeyboardButton(text="➕", callback_data=f"bk:eq:inc:{i}" if qty < item.stock else NOOP),
        ])
    buttons.append([InlineKeyboardButton(text=t("common:done", lang), callback_data="bk:form")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def contact_inline(contact: ContactDetails, lang: str) -> InlineKeyboardMarkup:
    empty = t("booking:contact:empty", lang)
    gcash = f"+63 {contact.gcash_number}" if contact.gcash_number else empty
    fields = [
        ("first_name", contact.first_name or empty),
        ("last_name", contact.last_name or empty),
        ("email", contact.email or empty),
        ("gcash_number", gcash),
    ]
    buttons = [
        [InlineKeyboardButton(text=f"{t(f'booking:contact:{name}', lang)}: {value}", callback_data=f"bk:ct:{name}")]
        for name, value in fields
    ]
    buttons.append([InlineKeyboardButton(text=t("common:done", lang), callback_data="bk:form")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def input_cancel_inline(lang: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text=t("common:back", lang), callback_data="bk:contact")],
    ])


def confirm_inline(lang: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text=t("booking:confirm:yes", lang), callback_data="bk:confirm")],
        [InlineKeyboardButton(text=t("common:back", lang), callback_data="bk:unconfirm")],
    ])


def pending_inline(qr_url: str | None, lang: str) -> InlineKeyboardMarkup:
    buttons = []
    if qr_url and qr_url.startswith(("http://", "https://")):
        buttons.append([InlineKeyboardButton(text=t("booking:pending:qr", lang), url=qr_url)])
    buttons.append([InlineKeyboardButton(text=t("booking:pending:close", lang), callback_data="bk:close")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)
