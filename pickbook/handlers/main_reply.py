"""
pickbook/handlers/main_reply.py

Reply-menu routing + sign-in gate.

Menu buttons always win: this router is included before the wizards, so a
menu tap leaves whatever wizard was active.
"""

import logging
from typing import Optional

from aiogram import F, Router
from aiogram.fsm.context import FSMContext
from aiogram.types import Message

from pickbook.i18n.loader import t, t_all, user_lang
from pickbook.keyboards.main import guest_main, user_main
from pickbook.utils.session import Session, SessionStore

logger = logging.getLogger(__name__)

MENU_KEYS = (
    "menu:areas",
    "menu:sign_in",
    "menu:sign_up",
    "menu:dashboard",
    "menu:bookings",
    "menu:notifications",
    "menu:membership",
    "menu:profile",
    "menu:sign_out",
)


def setup(menu_controller, sessions: SessionStore, areas, booking, dashboard, profile, auth):
    """
    Args:
        areas, dashboard, profile, auth: flow routers (their ``show_*`` /
            ``start_*`` entry points are used)
        booking: booking router; menu taps wait while it submits
    """
    router = Router(name="main_reply")
    mc = menu_controller

    menu_texts = [text for key in MENU_KEYS for text in t_all(key)]

    # ==========================================================
    # ACTIONS (need a session)
    # ==========================================================

    async def do_dashboard(message: Message, session: Session, lang: str):
        await dashboard.show_home(message, session, lang)

    async def do_bookings(message: Message, session: Session, lang: str):
        await dashboard.show_bookings(message, session, lang)

    async def do_notifications(message: Message, session: Session, lang: str):
        await dashboard.show_notifications(message, session, lang)

    async def do_profile(message: Message, session: Session, lang: str):
        await profile.show_profile(message, session, lang)

    actions = {
        "dashboard": do_dashboard,
        "bookings": do_bookings,
        "notifications": do_notifications,
        "profile": do_profile,
    }

    async def continue_action(message: Message, state: FSMContext, session: Session, lang: str, next_action: Optional[str]):
        """Resume the action that triggered the sign-in gate."""
        handler = actions.get(next_action or "")
        if handler is not None:
            logger.info(f"[GATE] resuming {next_action} for tg_id={session.tg_id}")
            await handler(message, session, lang)

    async def require_session_and_do(
        message: Message,
        state: FSMContext,
        session: Optional[Session],
        lang: str,
        action: str,
    ):
        if session is None:
            logger.info(f"[GATE] sign-in required for action={action}")
            await auth.start_sign_in(message, state, lang, next_action=action)
            return
        await actions[action](message, session, lang)

    # ==========================================================
    # REPLY HANDLER
    # ==========================================================

    @router.message(F.text.in_(menu_texts))
    async def handle_menu(message: Message, state: FSMContext, session: Optional[Session] = None):
        tg_id = message.from_user.id
        text = message.text
        lang = user_lang(message.from_user.language_code)

        if booking.is_submitting(message.chat.id):
            logger.info(f"[MENU] tg_id={tg_id} tapped '{text}' during submit")
            await message.answer(t("booking:err_submitting", lang))
            return

        current_state = await state.get_state()
        if current_state:
            logger.info(f"[MENU] leaving {current_state} for '{text}'")
            await state.clear()

        logger.info(f"[MENU] tg_id={tg_id}, text='{text}', signed_in={session is not None}")

        if text == t("menu:areas", lang):
            await areas.show_areas(message, lang)

        elif text == t("menu:sign_in", lang):
            if session is not None:
                await mc.show(message, user_main(lang), t("auth:already", lang, session.display_name))
                return
            await auth.start_sign_in(message, state, lang)

        elif text == t("menu:sign_up", lang):
            if session is not None:
                await mc.show(message, user_main(lang), t("auth:already", lang, session.display_name))
                return
            await auth.start_sign_up(message, state, lang)

        elif text == t("menu:dashboard", lang):
            await require_session_and_do(message, state, session, lang, "dashboard")

        elif text == t("menu:bookings", lang):
            await require_session_and_do(message, state, session, lang, "bookings")

        elif text == t("menu:notifications", lang):
            await require_session_and_do(message, state, session, lang, "notifications")

        elif text == t("menu:membership", lang):
            await dashboard.show_membership(message, lang)

        elif text == t("menu:profile", lang):
            await require_session_and_do(message, state, session, lang, "profile")

        elif text == t("menu:sign_out", lang):
            if session is not None:
                await sessions.end(tg_id)
            await mc.show(message, guest_main(lang), t("auth:signed_out", lang))

    router.continue_action = continue_action
    return router
