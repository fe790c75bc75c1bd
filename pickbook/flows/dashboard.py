# pickbook/flows/dashboard.py
"""
Signed-in dashboard: summary + recent bookings, my bookings (paginated, with
details), notifications, membership areas → plans.
"""

import asyncio
import html
import logging
from datetime import datetime

from aiogram import F, Router
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import CallbackQuery, InlineKeyboardButton, InlineKeyboardMarkup, Message

from pickbook.booking.models import (
    DashboardBooking,
    DashboardSummary,
    MembershipArea,
    MembershipPlan,
    Notification,
)
from pickbook.i18n.loader import t, user_lang
from pickbook.keyboards.booking import money
from pickbook.utils.api import ApiError, get_api
from pickbook.utils.pagination import build_nav_row, paginate
from pickbook.utils.session import Session

logger = logging.getLogger(__name__)

STATUS_EMOJI = {"confirmed": "✅", "rejected": "❌", "pending": "🕐"}

# Per-chat bookings cache for paging / details
_context: dict[int, dict] = {}


# ==============================================================
# Texts
# ==============================================================

def status_label(booking: DashboardBooking, lang: str) -> str:
    return f"{STATUS_EMOJI[booking.status]} {t(f'dash:status:{booking.status}', lang)}"


def first_date(booking: DashboardBooking) -> str:
    return min((s.date for s in booking.slots), default="")


def created_label(value: str | None) -> str:
    if not value:
        return "—"
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%d %b %Y, %H:%M")
    except ValueError:
        return value


def home_text(summary: DashboardSummary, recent: list[DashboardBooking], name: str, lang: str) -> str:
    lines = [
        t("dash:home:title", lang, html.escape(name)),
        "",
        t("dash:home:stats", lang,
          summary.total_bookings,
          summary.hours_played,
          html.escape(summary.favorite_facility or "—"),
          summary.upcoming),
        "",
        t("dash:home:recent", lang),
    ]
    if not recent:
        lines.append(t("dash:bookings:empty", lang))
    for b in recent:
        lines.append(
            f"{STATUS_EMOJI[b.status]} {first_date(b)} · {html.escape(b.area_name or '—')}"
            f" · {html.escape(b.court_name or '—')}"
        )
    return "\n".join(lines)


def booking_details_text(booking: DashboardBooking, lang: str) -> str:
    lines = [
        t("dash:booking:title", lang, html.escape(booking.id)),
        t("dash:booking:area", lang, html.escape(booking.area_name or "—"), html.escape(booking.court_name or "—")),
        t("dash:booking:status", lang, status_label(booking, lang)),
        "",
    ]
    for slot in sorted(booking.slots, key=lambda s: s.date):
        lines.append(f"📅 <b>{slot.date}</b>: {', '.join(slot.time)}")
    lines += [
        "",
        t("dash:booking:hours", lang, booking.total_hours),
        t("dash:booking:amount", lang, money(booking.amount) if booking.amount is not None else "—"),
        t("dash:booking:created", lang, created_label(booking.created_at)),
    ]
    return "\n".join(lines)


def notifications_text(items: list[Notification], lang: str) -> str:
    if not items:
        return t("dash:notif:empty", lang)
    unread = sum(1 for n in items if not n.read)
    lines = [t("dash:notif:title", lang, len(items), unread), ""]
    for n in items:
        dot = "🔵" if not n.read else "⚪️"
        lines.append(f"{dot} <b>{html.escape(n.title)}</b> · <i>{html.escape(n.time_ago)}</i>")
        if n.message:
            lines.append(html.escape(n.message))
        lines.append("")
    return "\n".join(lines).rstrip()


def plans_text(area_name: str, plans: list[MembershipPlan], lang: str) -> str:
    if not plans:
        return t("dash:mem:no_plans", lang, html.escape(area_name))
    lines = [t("dash:mem:plans_title", lang, html.escape(area_name)), ""]
    for p in plans:
        star = " ⭐" if p.popular else ""
        lines.append(f"<b>{html.escape(p.membership_type)}</b>{star} · {money(p.price)} / {html.escape(p.duration)}")
        lines += [f"  • {html.escape(b)}" for b in p.benefits]
        lines.append("")
    return "\n".join(lines).rstrip()


# ==============================================================
# Inline Keyboards
# ==============================================================

def home_inline(lang: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text=t("menu:bookings", lang), callback_data="dash:bookings:0")],
        [
            InlineKeyboardButton(text=t("menu:notifications", lang), callback_data="dash:notif"),
            InlineKeyboardButton(text=t("menu:membership", lang), callback_data="dash:mem"),
        ],
        [InlineKeyboardButton(text=t("common:hide", lang), callback_data="dash:hide")],
    ])


def bookings_inline(bookings: list[DashboardBooking], page: int, lang: str) -> InlineKeyboardMarkup:
    if not bookings:
        return InlineKeyboardMarkup(inline_keyboard=[
            [InlineKeyboardButton(text=t("dash:bookings:empty", lang), callback_data="dash:noop")],
            [InlineKeyboardButton(text=t("common:hide", lang), callback_data="dash:hide")],
        ])

    page_items, page, total_pages = paginate(bookings, page)
    buttons = [
        [InlineKeyboardButton(
            text=f"{STATUS_EMOJI[b.status]} {first_date(b)} · {b.area_name or '—'} · {b.court_name or '—'}",
            callback_data=f"dash:bk:{b.id}",
        )]
        for b in page_items
    ]
    nav_row = build_nav_row(page, total_pages, "dash:bookings:{p}", "dash:noop", lang)
    if nav_row:
        buttons.append(nav_row)
    buttons.append([InlineKeyboardButton(text=t("common:hide", lang), callback_data="dash:hide")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def membership_areas_inline(areas: list[MembershipArea], lang: str) -> InlineKeyboardMarkup:
    buttons = []
    for a in areas:
        price = f" · {t('dash:mem:from', lang, money(a.price))}" if a.price is not None else ""
        buttons.append([InlineKeyboardButton(text=f"🏟 {a.name}{price}", callback_data=f"dash:mem:{a.id}")])
    buttons.append([InlineKeyboardButton(text=t("common:hide", lang), callback_data="dash:hide")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def back_inline(callback_data: str, lang: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text=t("common:back", lang), callback_data=callback_data)],
    ])


# ==============================================================
# Flow Setup
# ==============================================================

def setup(menu_controller):
    router = Router(name="dashboard")
    mc = menu_controller
    api = get_api()

    async def _edit_or_send(target: Message, text: str, kb: InlineKeyboardMarkup, edit: bool):
        if edit:
            await mc.edit_inline(target, text, kb)
        else:
            await mc.show_inline_readonly(target, text, kb)

    async def show_home(message: Message, session: Session, lang: str):
        try:
            summary, recent = await asyncio.gather(
                api.get_summary(session.uid),
                api.get_recent_bookings(session.uid),
            )
        except ApiError as e:
            await message.answer(t("dash:load_failed", lang, html.escape(e.message)))
            return
        await mc.show_inline_readonly(message, home_text(summary, recent, session.display_name, lang), home_inline(lang))

    async def show_bookings(message: Message, session: Session, lang: str, edit: bool = False):
        try:
            bookings = await api.get_my_bookings(session.uid)
        except ApiError as e:
            await message.answer(t("dash:load_failed", lang, html.escape(e.message)))
            return
        bookings.sort(key=first_date, reverse=True)
        _context[message.chat.id] = {"bookings": bookings}
        logger.info(f"[DASHBOARD] bookings uid={session.uid}: {len(bookings)}")

        await _edit_or_send(message, t("dash:bookings:title", lang, len(bookings)), bookings_inline(bookings, 0, lang), edit)

    async def show_notifications(message: Message, session: Session, lang: str, edit: bool = False):
        try:
            items = await api.get_notifications(session.uid)
        except ApiError as e:
            await message.answer(t("dash:load_failed", lang, html.escape(e.message)))
            return

        buttons = [
            [InlineKeyboardButton(text=t("dash:notif:open", lang, n.title), callback_data=f"dash:bk:{n.booking_id}")]
            for n in items if n.booking_id
        ][:5]
        buttons.append([InlineKeyboardButton(text=t("common:hide", lang), callback_data="dash:hide")])
        await _edit_or_send(message, notifications_text(items, lang), InlineKeyboardMarkup(inline_keyboard=buttons), edit)

    async def show_membership(message: Message, lang: str, edit: bool = False):
        try:
            areas = await api.get_membership_areas()
        except ApiError as e:
            await message.answer(t("dash:load_failed", lang, html.escape(e.message)))
            return
        title = t("dash:mem:title", lang) if areas else t("dash:mem:empty", lang)
        await _edit_or_send(message, title, membership_areas_inline(areas, lang), edit)

    # ==========================================================
    # CALLBACKS
    # ==========================================================

    @router.callback_query(F.data.startswith("dash:bookings:"))
    async def handle_bookings_page(callback: CallbackQuery, session: Session | None = None):
        lang = user_lang(callback.from_user.language_code)
        if session is None:
            await callback.answer(t("auth:required", lang), show_alert=True)
            return

        page = int(callback.data.split(":")[-1])
        ctx = _context.get(callback.message.chat.id)
        if ctx is None:
            await callback.answer()
            await show_bookings(callback.message, session, lang, edit=True)
            return

        bookings = ctx["bookings"]
        await mc.edit_inline(callback.message, t("dash:bookings:title", lang, len(bookings)), bookings_inline(bookings, page, lang))
        await callback.answer()

    @router.callback_query(F.data.startswith("dash:bk:"))
    async def handle_booking_details(callback: CallbackQuery, session: Session | None = None):
        lang = user_lang(callback.from_user.language_code)
        if session is None:
            await callback.answer(t("auth:required", lang), show_alert=True)
            return

        booking_id = callback.data.split(":", 2)[2]
        chat_id = callback.message.chat.id
        bookings = _context.get(chat_id, {}).get("bookings")
        if bookings is None:
            try:
                bookings = await api.get_my_bookings(session.uid)
            except ApiError as e:
                await callback.answer(e.message, show_alert=True)
                return
            _context[chat_id] = {"bookings": bookings}

        booking = next((b for b in bookings if b.id == booking_id), None)
        if booking is None:
            await callback.answer(t("dash:booking:not_found", lang), show_alert=True)
            return

        await mc.edit_inline(callback.message, booking_details_text(booking, lang), back_inline("dash:bookings:0", lang))
        await callback.answer()

    @router.callback_query(F.data == "dash:notif")
    async def handle_notifications(callback: CallbackQuery, session: Session | None = None):
        lang = user_lang(callback.from_user.language_code)
        if session is None:
            await callback.answer(t("auth:required", lang), show_alert=True)
            return
        await callback.answer()
        await show_notifications(callback.message, session, lang, edit=True)

    @router.callback_query(F.data == "dash:mem")
    async def handle_membership(callback: CallbackQuery):
        await callback.answer()
        await show_membership(callback.message, user_lang(callback.from_user.language_code), edit=True)

    @router.callback_query(F.data.startswith("dash:mem:"))
    async def handle_membership_plans(callback: CallbackQuery):
        lang = user_lang(callback.from_user.language_code)
        area_id = callback.data.split(":", 2)[2]
        try:
            area_name, plans = await api.get_membership_plans(area_id)
        except ApiError as e:
            await callback.answer(e.message, show_alert=True)
            return
        await mc.edit_inline(callback.message, plans_text(area_name, plans, lang), back_inline("dash:mem", lang))
        await callback.answer()

    @router.callback_query(F.data == "dash:hide")
    async def handle_hide(callback: CallbackQuery):
        _context.pop(callback.message.chat.id, None)
        try:
            await callback.message.delete()
        except TelegramBadRequest:
            pass
        await callback.answer()

    @router.callback_query(F.data == "dash:noop")
    async def handle_noop(callback: CallbackQuery):
        await callback.answer()

    router.show_home = show_home
    router.show_bookings = show_bookings
    router.show_notifications = show_notifications
    router.show_membership = show_membership
    return router
