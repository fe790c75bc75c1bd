# pickbook/flows/profile.py
"""
Profile card and editing.

Edits are shown on the card right away and written after a quiet period:
every edit re-arms the debouncer, so a burst of edits becomes one write
(identity display name + profile document). "Save now" flushes immediately.
"""

import html
import logging

from aiogram import F, Router
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, InlineKeyboardButton, InlineKeyboardMarkup, Message

from pickbook.config import get_settings
from pickbook.i18n.loader import DEFAULT_LANG, t, user_lang
from pickbook.utils.debounce import Debouncer
from pickbook.utils.documents import DocumentStoreError
from pickbook.utils.identity import IdentityError
from pickbook.utils.phone import normalize_gcash
from pickbook.utils.session import Session, SessionStore

logger = logging.getLogger(__name__)

FIELDS = ("first_name", "last_name", "phone")

# tg_id -> {"values": {...}, "card": (chat_id, message_id), "lang": str}
_pending: dict[int, dict] = {}


class ProfileEdit(StatesGroup):
    first_name = State()
    last_name = State()
    phone = State()


def profile_values(session: Session) -> dict:
    values = {"first_name": session.first_name, "last_name": session.last_name, "phone": session.phone}
    values.update(_pending.get(session.tg_id, {}).get("values", {}))
    return values


def profile_text(session: Session, values: dict, unsaved: bool, lang: str) -> str:
    lines = [
        t("profile:title", lang),
        "",
        t("profile:name", lang, html.escape(f"{values['first_name']} {values['last_name']}".strip() or "—")),
        t("profile:email", lang, html.escape(session.email or "—")),
        t("profile:phone", lang, values["phone"] or "—"),
        t("profile:role", lang, html.escape(session.role)),
    ]
    if unsaved:
        lines += ["", t("profile:unsaved", lang)]
    return "\n".join(lines)


def profile_inline(unsaved: bool, lang: str) -> InlineKeyboardMarkup:
    buttons = [
        [
            InlineKeyboardButton(text=t("profile:edit_first_name", lang), callback_data="prof:edit:first_name"),
            InlineKeyboardButton(text=t("profile:edit_last_name", lang), callback_data="prof:edit:last_name"),
        ],
        [InlineKeyboardButton(text=t("profile:edit_phone", lang), callback_data="prof:edit:phone")],
    ]
    if unsaved:
        buttons.append([InlineKeyboardButton(text=t("profile:save_now", lang), callback_data="prof:save")])
    buttons.append([InlineKeyboardButton(text=t("common:hide", lang), callback_data="prof:hide")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def setup(menu_controller, sessions: SessionStore):
    router = Router(name="profile")
    mc = menu_controller
    debouncer = Debouncer(get_settings().PROFILE_DEBOUNCE_SECONDS)

    async def refresh_card(bot, session: Session, lang: str):
        ctx = _pending.get(session.tg_id)
        if not ctx or not ctx.get("card"):
            return
        chat_id, message_id = ctx["card"]
        unsaved = debouncer.pending(session.tg_id)
        try:
            await bot.edit_message_text(
                chat_id=chat_id,
                message_id=message_id,
                text=profile_text(session, profile_values(session), unsaved, lang),
                reply_markup=profile_inline(unsaved, lang),
            )
        except TelegramBadRequest:
            pass

    async def commit(bot, tg_id: int, lang: str):
        """Write the pending edits of ``tg_id``."""
        session = await sessions.get(tg_id)
        ctx = _pending.get(tg_id)
        if session is None or not ctx or not ctx.get("values"):
            return

        values = profile_values(session)
        try:
            session = await sessions.save_profile(session, values["first_name"], values["last_name"], values["phone"])
        except (IdentityError, DocumentStoreError) as e:
            logger.warning(f"[PROFILE] save failed tg_id={tg_id}: {e}")
            chat_id = ctx["card"][0] if ctx.get("card") else tg_id
            await mc.send_inline_in_flow(bot, chat_id, t("profile:save_failed", lang))
            return

        ctx["values"] = {}
        logger.info(f"[PROFILE] saved tg_id={tg_id}")
        await refresh_card(bot, session, lang)

    async def show_profile(message: Message, session: Session, lang: str):
        unsaved = debouncer.pending(session.tg_id)
        card = await mc.show_inline_readonly(
            message,
            profile_text(session, profile_values(session), unsaved, lang),
            profile_inline(unsaved, lang),
        )
        ctx = _pending.setdefault(session.tg_id, {"values": {}})
        ctx["card"] = (card.chat.id, card.message_id)
        ctx["lang"] = lang

    # ==========================================================
    # EDIT
    # ==========================================================

    @router.callback_query(F.data.startswith("prof:edit:"))
    async def handle_edit(callback: CallbackQuery, state: FSMContext, session: Session | None = None):
        lang = user_lang(callback.from_user.language_code)
        field = callback.data.split(":")[-1]
        if session is None:
            await callback.answer(t("auth:required", lang), show_alert=True)
            return
        if field not in FIELDS:
            await callback.answer(t("common:error", lang), show_alert=True)
            return

        await state.set_state(getattr(ProfileEdit, field))
        await state.update_data(lang=lang)
        prompt = await callback.message.answer(t(f"profile:ask_{field}", lang))
        await mc.track(callback.message.chat.id, prompt.message_id)
        await callback.answer()

    async def accept(message: Message, state: FSMContext, session: Session | None, field: str, value: str):
        data = await state.get_data()
        lang = data.get("lang", DEFAULT_LANG)
        await state.clear()
        await mc.delete_user_message(message)
        if session is None:
            return

        ctx = _pending.setdefault(session.tg_id, {"values": {}, "card": None})
        ctx["values"][field] = value
        ctx["lang"] = lang
        debouncer.arm(session.tg_id, commit, message.bot, session.tg_id, lang)
        await refresh_card(message.bot, session, lang)

    @router.message(ProfileEdit.first_name, F.text)
    async def handle_first_name(message: Message, state: FSMContext, session: Session | None = None):
        await accept(message, state, session, "first_name", message.text.strip())

    @router.message(ProfileEdit.last_name, F.text)
    async def handle_last_name(message: Message, state: FSMContext, session: Session | None = None):
        await accept(message, state, session, "last_name", message.text.strip())

    @router.message(ProfileEdit.phone, F.text)
    async def handle_phone(message: Message, state: FSMContext, session: Session | None = None):
        digits = normalize_gcash(message.text)
        if digits is None:
            data = await state.get_data()
            await mc.delete_user_message(message)
            await mc.send_inline_in_flow(message.bot, message.chat.id, t("profile:bad_phone", data.get("lang", DEFAULT_LANG)))
            return
        await accept(message, state, session, "phone", digits)

    # ==========================================================
    # SAVE NOW / HIDE
    # ==========================================================

    @router.callback_query(F.data == "prof:save")
    async def handle_save_now(callback: CallbackQuery):
        await callback.answer()
        await debouncer.flush(callback.from_user.id)

    @router.callback_query(F.data == "prof:hide")
    async def handle_hide(callback: CallbackQuery):
        ctx = _pending.get(callback.from_user.id)
        if ctx:
            ctx["card"] = None
        try:
            await callback.message.delete()
        except TelegramBadRequest:
            pass
        await callback.answer()

    async def discard(tg_id: int):
        """Sign-out: drop unsaved edits."""
        debouncer.cancel(tg_id)
        _pending.pop(tg_id, None)

    router.show_profile = show_profile
    router.discard = discard
    router.debouncer = debouncer
    return router
