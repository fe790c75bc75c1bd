# pickbook/flows/areas.py
"""
Area discovery.

- list of areas (paginated), optionally sorted by distance from a shared location
- inline-mode search by name: keystrokes are debounced, only the last query
  of a quiet period is answered
- area card → directions / venue pin / booking form
"""

import html
import logging
from typing import Optional

from aiogram import F, Router
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import (
    CallbackQuery,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    InlineQuery,
    InlineQueryResultArticle,
    InputTextMessageContent,
    Message,
)

from pickbook.booking.models import AreaSummary
from pickbook.config import get_settings
from pickbook.i18n.loader import t, user_lang
from pickbook.keyboards.booking import money
from pickbook.keyboards.main import share_location_keyboard
from pickbook.utils.api import ApiError, get_api
from pickbook.utils.debounce import Debouncer
from pickbook.utils.geo import directions_url, format_distance, haversine_m
from pickbook.utils.pagination import build_nav_row, paginate

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 20

# Per-chat list context (areas, page, origin) for paging
_context: dict[int, dict] = {}


class AreaDirections(StatesGroup):
    waiting_location = State()


# ==============================================================
# Search / sort
# ==============================================================

def search_areas(areas: list[AreaSummary], query: str) -> list[AreaSummary]:
    """Case-insensitive name substring match; empty query matches everything."""
    needle = query.strip().lower()
    if not needle:
        return list(areas)
    return [a for a in areas if needle in a.name.lower()]


def sort_by_distance(areas: list[AreaSummary], origin: tuple[float, float]) -> list[tuple[AreaSummary, float]]:
    ranked = [(a, haversine_m(origin, (a.lat, a.lng))) for a in areas]
    ranked.sort(key=lambda pair: pair[1])
    return ranked


# ==============================================================
# Texts / keyboards
# ==============================================================

def rate_range(area: AreaSummary) -> str:
    low, high = area.details.min_rate, area.details.max_rate
    if low == high:
        return money(low)
    return f"{money(low)}–{money(high)}"


def area_card_text(area: AreaSummary, lang: str, distance_m: Optional[float] = None) -> str:
    lines = [
        f"📍 <b>{html.escape(area.name)}</b>",
        html.escape(area.address) if area.address else "",
        t("areas:card:hours", lang, area.opening_time or "—", area.closing_time or "—"),
        t("areas:card:courts", lang, area.details.court_count, rate_range(area)),
    ]
    if area.manager_gcash_number:
        lines.append(t("areas:card:gcash", lang, html.escape(area.manager_gcash_number)))
    if distance_m is not None:
        lines.append(t("areas:card:distance", lang, format_distance(distance_m)))
    return "\n".join(line for line in lines if line)


def area_card_inline(area: AreaSummary, lang: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text=t("areas:card:book", lang), callback_data=f"bk:start:{area.id}")],
        [
            InlineKeyboardButton(text=t("areas:card:directions", lang), callback_data=f"area:dir:{area.id}"),
            InlineKeyboardButton(text=t("areas:card:venue", lang), callback_data=f"area:venue:{area.id}"),
        ],
        [InlineKeyboardButton(text=t("common:back", lang), callback_data="area:list")],
    ])


def areas_list_inline(
    areas: list[AreaSummary],
    page: int,
    lang: str,
    distances: Optional[dict[str, float]] = None,
) -> InlineKeyboardMarkup:
    if not areas:
        return InlineKeyboardMarkup(inline_keyboard=[
            [InlineKeyboardButton(text=t("areas:empty", lang), callback_data="area:noop")],
            [InlineKeyboardButton(text=t("common:hide", lang), callback_data="area:hide")],
        ])

    page_items, page, total_pages = paginate(areas, page)
    buttons = []
    for a in page_items:
        suffix = f" · {format_distance(distances[a.id])}" if distances and a.id in distances else f" · {rate_range(a)}"
        buttons.append([InlineKeyboardButton(text=f"📍 {a.name}{suffix}", callback_data=f"area:open:{a.id}")])

    nav_row = build_nav_row(page, total_pages, "area:page:{p}", "area:noop", lang)
    if nav_row:
        buttons.append(nav_row)

    buttons.append([InlineKeyboardButton(text=t("areas:search", lang), switch_inline_query_current_chat="")])
    buttons.append([InlineKeyboardButton(text=t("common:hide", lang), callback_data="area:hide")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


# ==============================================================
# Flow Setup
# ==============================================================

def setup(menu_controller):
    router = Router(name="areas")
    mc = menu_controller
    api = get_api()
    search_debouncer = Debouncer(get_settings().SEARCH_DEBOUNCE_SECONDS)

    def _list_view(chat_id: int, lang: str) -> tuple[str, InlineKeyboardMarkup]:
        ctx = _context.get(chat_id, {})
        areas = ctx.get("areas", [])
        distances = ctx.get("distances")
        title_key = "areas:title_nearby" if distances else "areas:title"
        kb = areas_list_inline(areas, ctx.get("page", 0), lang, distances)
        return t(title_key, lang, len(areas)), kb

    async def show_areas(message: Message, lang: str, origin: Optional[tuple[float, float]] = None):
        """Area list. With ``origin`` the list is sorted nearest first."""
        try:
            areas = await api.list_areas()
        except ApiError as e:
            await message.answer(t("areas:load_failed", lang, html.escape(e.message)))
            return

        distances = None
        if origin is not None:
            ranked = sort_by_distance(areas, origin)
            areas = [a for a, _ in ranked]
            distances = {a.id: d for a, d in ranked}

        chat_id = message.chat.id
        prev_origin = _context.get(chat_id, {}).get("origin")
        _context[chat_id] = {
            "areas": areas,
            "page": 0,
            "distances": distances,
            "origin": origin or prev_origin,
        }
        logger.info(f"[AREAS] chat={chat_id} areas={len(areas)} nearby={origin is not None}")

        text, kb = _list_view(chat_id, lang)
        await mc.show_inline_readonly(message, text, kb)

    def _find(chat_id: int, area_id: str) -> Optional[AreaSummary]:
        areas = _context.get(chat_id, {}).get("areas", [])
        return next((a for a in areas if a.id == area_id), None)

    async def _find_or_fetch(chat_id: int, area_id: str) -> Optional[AreaSummary]:
        area = _find(chat_id, area_id)
        if area is not None:
            return area
        areas = await api.list_areas()
        _context.setdefault(chat_id, {})["areas"] = areas
        return next((a for a in areas if a.id == area_id), None)

    # ==========================================================
    # LIST
    # ==========================================================

    @router.callback_query(F.data.startswith("area:page:"))
    async def handle_page(callback: CallbackQuery):
        lang = user_lang(callback.from_user.language_code)
        chat_id = callback.message.chat.id
        _context.setdefault(chat_id, {})["page"] = int(callback.data.split(":")[-1])
        text, kb = _list_view(chat_id, lang)
        await mc.edit_inline(callback.message, text, kb)
        await callback.answer()

    @router.callback_query(F.data == "area:list")
    async def handle_back_to_list(callback: CallbackQuery):
        lang = user_lang(callback.from_user.language_code)
        text, kb = _list_view(callback.message.chat.id, lang)
        await mc.edit_inline(callback.message, text, kb)
        await callback.answer()

    @router.callback_query(F.data.startswith("area:open:"))
    async def handle_open(callback: CallbackQuery):
        lang = user_lang(callback.from_user.language_code)
        chat_id = callback.message.chat.id
        area_id = callback.data.split(":", 2)[2]

        try:
            area = await _find_or_fetch(chat_id, area_id)
        except ApiError as e:
            await callback.answer(e.message, show_alert=True)
            return
        if area is None:
            await callback.answer(t("areas:not_found", lang), show_alert=True)
            return

        distance = (_context.get(chat_id, {}).get("distances") or {}).get(area_id)
        await mc.edit_inline(callback.message, area_card_text(area, lang, distance), area_card_inline(area, lang))
        await callback.answer()

    @router.message(Command("area"))
    async def handle_area_command(message: Message, command: CommandObject):
        """/area <id>, posted by an inline search result."""
        lang = user_lang(message.from_user.language_code)
        area_id = (command.args or "").strip()
        if not area_id:
            await show_areas(message, lang)
            return
        try:
            area = await _find_or_fetch(message.chat.id, area_id)
        except ApiError as e:
            await message.answer(t("areas:load_failed", lang, html.escape(e.message)))
            return
        if area is None:
            await message.answer(t("areas:not_found", lang))
            return
        await mc.show_inline_readonly(message, area_card_text(area, lang), area_card_inline(area, lang))

    @router.message(F.location)
    async def handle_location(message: Message, state: FSMContext):
        """Shared location: directions if one is pending, else nearest areas."""
        lang = user_lang(message.from_user.language_code)
        origin = (message.location.latitude, message.location.longitude)

        if await state.get_state() == AreaDirections.waiting_location.state:
            data = await state.get_data()
            await state.clear()
            _context.setdefault(message.chat.id, {})["origin"] = origin
            await mc.delete_user_message(message)
            await send_directions(message.bot, message.chat.id, data.get("area_id"), origin, lang)
            return

        await show_areas(message, lang, origin=origin)

    # ==========================================================
    # DIRECTIONS / VENUE
    # ==========================================================

    async def send_directions(bot, chat_id: int, area_id: str, origin: tuple[float, float], lang: str):
        try:
            area = await _find_or_fetch(chat_id, area_id)
        except ApiError as e:
            await mc.send_inline_in_flow(bot, chat_id, t("areas:load_failed", lang, html.escape(e.message)))
            return
        if area is None:
            await mc.send_inline_in_flow(bot, chat_id, t("areas:not_found", lang))
            return

        destination = (area.lat, area.lng)
        link = directions_url(origin, destination)
        try:
            route = await api.get_directions(origin, destination)
        except ApiError as e:
            logger.warning(f"[AREAS] directions failed area={area_id}: {e}")
            text = t("areas:dir:fallback", lang, html.escape(area.name), format_distance(haversine_m(origin, destination)))
        else:
            distance = route.distance_text or format_distance(route.distance_m or 0)
            duration = route.duration_text or "—"
            text = t("areas:dir:summary", lang, html.escape(area.name), distance, duration, len(route.points))

        venue = await bot.send_venue(
            chat_id=chat_id,
            latitude=area.lat,
            longitude=area.lng,
            title=area.name,
            address=area.address or area.name,
        )
        await mc.track(chat_id, venue.message_id)

        kb = InlineKeyboardMarkup(inline_keyboard=[
            [InlineKeyboardButton(text=t("areas:dir:open_maps", lang), url=link)],
        ])
        await mc.send_inline_in_flow(bot, chat_id, text, kb)

    @router.callback_query(F.data.startswith("area:dir:"))
    async def handle_directions(callback: CallbackQuery, state: FSMContext):
        lang = user_lang(callback.from_user.language_code)
        chat_id = callback.message.chat.id
        area_id = callback.data.split(":", 2)[2]
        origin = _context.get(chat_id, {}).get("origin")
        await callback.answer()

        if origin is None:
            await state.set_state(AreaDirections.waiting_location)
            await state.update_data(area_id=area_id)
            prompt = await callback.message.answer(t("areas:dir:ask_location", lang), reply_markup=share_location_keyboard(lang))
            await mc.track(chat_id, prompt.message_id)
            return

        await send_directions(callback.bot, chat_id, area_id, origin, lang)

    @router.callback_query(F.data.startswith("area:venue:"))
    async def handle_venue(callback: CallbackQuery):
        lang = user_lang(callback.from_user.language_code)
        chat_id = callback.message.chat.id
        area = _find(chat_id, callback.data.split(":", 2)[2])
        if area is None:
            await callback.answer(t("areas:not_found", lang), show_alert=True)
            return
        venue = await callback.bot.send_venue(
            chat_id=chat_id,
            latitude=area.lat,
            longitude=area.lng,
            title=area.name,
            address=area.address or area.name,
        )
        await mc.track(chat_id, venue.message_id)
        await callback.answer()

    # ==========================================================
    # INLINE SEARCH
    # ==========================================================

    async def answer_search(query: InlineQuery):
        lang = user_lang(query.from_user.language_code)
        try:
            areas = await api.list_areas()
        except ApiError as e:
            logger.warning(f"[AREAS] search failed: {e}")
            areas = []

        found = search_areas(areas, query.query)[:SEARCH_LIMIT]
        results = [
            InlineQueryResultArticle(
                id=a.id,
                title=a.name,
                description=f"{a.address} · {rate_range(a)}" if a.address else rate_range(a),
                thumbnail_url=a.image_url,
                input_message_content=InputTextMessageContent(message_text=f"/area {a.id}"),
            )
            for a in found
        ]
        logger.info(f"[AREAS] search {query.query!r}: {len(results)} results")
        await query.answer(results, cache_time=5, is_personal=False)

    @router.inline_query()
    async def handle_inline_query(query: InlineQuery):
        search_debouncer.arm(query.from_user.id, answer_search, query)

    # ==========================================================
    # HIDE / NOOP
    # ==========================================================

    @router.callback_query(F.data == "area:hide")
    async def handle_hide(callback: CallbackQuery):
        _context.pop(callback.message.chat.id, None)
        try:
            await callback.message.delete()
        except TelegramBadRequest:
            logger.debug("area list already gone")
        await callback.answer()

    @router.callback_query(F.data == "area:noop")
    async def handle_noop(callback: CallbackQuery):
        await callback.answer()

    router.show_areas = show_areas
    router.search_debouncer = search_debouncer
    return router
