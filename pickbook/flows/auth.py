# pickbook/flows/auth.py
"""
Sign-in / sign-up wizards.

Sign in:  e-mail → password
Sign up:  first name → last name → e-mail → password → confirm password

Password messages are deleted as soon as they are read. Provider errors are
shown with their mapped message and the wizard goes back to the failing step.
An action requested before sign-in (``next_action`` in FSM data) is resumed
once the session exists.
"""

import logging
from typing import Awaitable, Callable, Optional

from aiogram import F, Router
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, InlineKeyboardButton, InlineKeyboardMarkup, Message

from pickbook.i18n.loader import DEFAULT_LANG, t
from pickbook.keyboards.main import user_main
from pickbook.utils.identity import IdentityError
from pickbook.utils.session import Session, SessionStore

logger = logging.getLogger(__name__)

ContinueAction = Callable[[Message, FSMContext, Session, str, Optional[str]], Awaitable[None]]


class SignIn(StatesGroup):
    email = State()
    password = State()


class SignUp(StatesGroup):
    first_name = State()
    last_name = State()
    email = State()
    password = State()
    confirm = State()


def cancel_inline(lang: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text=t("common:cancel", lang), callback_data="auth:cancel")],
    ])


# sign-up errors → step to restart from
SIGN_UP_RETRY = {
    "NAMES_REQUIRED": SignUp.first_name,
    "EMAIL_EXISTS": SignUp.email,
    "INVALID_EMAIL": SignUp.email,
    "MISSING_EMAIL": SignUp.email,
}


def setup(menu_controller, sessions: SessionStore, continue_action: ContinueAction):
    router = Router(name="auth")
    mc = menu_controller

    async def ask(message: Message, state: FSMContext, step: State, key: str, lang: str):
        await state.set_state(step)
        await mc.send_inline_in_flow(message.bot, message.chat.id, t(key, lang), cancel_inline(lang))

    # ==========================================================
    # START
    # ==========================================================

    async def start_sign_in(message: Message, state: FSMContext, lang: str, next_action: Optional[str] = None):
        logger.info(f"[AUTH] sign-in started tg_id={message.from_user.id} next={next_action}")
        await state.set_state(SignIn.email)
        await state.set_data({"lang": lang, "next_action": next_action})
        await mc.show_inline_input(message, t("auth:sign_in:ask_email", lang), cancel_inline(lang))

    async def start_sign_up(message: Message, state: FSMContext, lang: str, next_action: Optional[str] = None):
        logger.info(f"[AUTH] sign-up started tg_id={message.from_user.id}")
        await state.set_state(SignUp.first_name)
        await state.set_data({"lang": lang, "next_action": next_action})
        await mc.show_inline_input(message, t("auth:sign_up:ask_first_name", lang), cancel_inline(lang))

    async def finish(message: Message, state: FSMContext, session: Session, lang: str):
        data = await state.get_data()
        next_action = data.get("next_action")
        await state.clear()
        await mc.show_for_chat(
            message.bot,
            message.chat.id,
            user_main(lang),
            t("auth:welcome", lang, session.display_name),
        )
        await continue_action(message, state, session, lang, next_action)

    # ==========================================================
    # SIGN IN
    # ==========================================================

    @router.message(SignIn.email, F.text)
    async def handle_sign_in_email(message: Message, state: FSMContext):
        data = await state.get_data()
        lang = data.get("lang", DEFAULT_LANG)
        await state.update_data(email=message.text.strip())
        await mc.delete_user_message(message)
        await ask(message, state, SignIn.password, "auth:sign_in:ask_password", lang)

    @router.message(SignIn.password, F.text)
    async def handle_sign_in_password(message: Message, state: FSMContext):
        data = await state.get_data()
        lang = data.get("lang", DEFAULT_LANG)
        password = message.text
        await mc.delete_user_message(message)

        try:
            session = await sessions.sign_in(message.from_user.id, data.get("email", ""), password)
        except IdentityError as e:
            logger.info(f"[AUTH] sign-in failed tg_id={message.from_user.id}: {e.code}")
            await mc.send_inline_in_flow(message.bot, message.chat.id, t(e.key, lang))
            await ask(message, state, SignIn.email, "auth:sign_in:ask_email", lang)
            return

        await finish(message, state, session, lang)

    # ==========================================================
    # SIGN UP
    # ==========================================================

    @router.message(SignUp.first_name, F.text)
    async def handle_sign_up_first(message: Message, state: FSMContext):
        data = await state.get_data()
        lang = data.get("lang", DEFAULT_LANG)
        await state.update_data(first_name=message.text.strip())
        await ask(message, state, SignUp.last_name, "auth:sign_up:ask_last_name", lang)

    @router.message(SignUp.last_name, F.text)
    async def handle_sign_up_last(message: Message, state: FSMContext):
        data = await state.get_data()
        lang = data.get("lang", DEFAULT_LANG)
        await state.update_data(last_name=message.text.strip())
        await ask(message, state, SignUp.email, "auth:sign_up:ask_email", lang)

    @router.message(SignUp.email, F.text)
    async def handle_sign_up_email(message: Message, state: FSMContext):
        data = await state.get_data()
        lang = data.get("lang", DEFAULT_LANG)
        await state.update_data(email=message.text.strip())
        await ask(message, state, SignUp.password, "auth:sign_up:ask_password", lang)

    @router.message(SignUp.password, F.text)
    async def handle_sign_up_password(message: Message, state: FSMContext):
        data = await state.get_data()
        lang = data.get("lang", DEFAULT_LANG)
        await mc.delete_user_message(message)
        await state.update_data(password=message.text)
        await ask(message, state, SignUp.confirm, "auth:sign_up:ask_confirm", lang)

    @router.message(SignUp.confirm, F.text)
    async def handle_sign_up_confirm(message: Message, state: FSMContext):
        data = await state.get_data()
        lang = data.get("lang", DEFAULT_LANG)
        confirm = message.text
        await mc.delete_user_message(message)

        try:
            session = await sessions.sign_up(
                message.from_user.id,
                data.get("first_name", ""),
                data.get("last_name", ""),
                data.get("email", ""),
                data.get("password", ""),
                confirm,
            )
        except IdentityError as e:
            logger.info(f"[AUTH] sign-up failed tg_id={message.from_user.id}: {e.code}")
            await state.update_data(password=None)
            await mc.send_inline_in_flow(message.bot, message.chat.id, t(e.key, lang))
            step = SIGN_UP_RETRY.get(e.code, SignUp.password)
            await ask(message, state, step, f"auth:sign_up:ask_{step.state.split(':')[-1]}", lang)
            return

        await finish(message, state, session, lang)

    # ==========================================================
    # CANCEL
    # ==========================================================

    @router.callback_query(F.data == "auth:cancel")
    async def handle_cancel(callback: CallbackQuery, state: FSMContext):
        data = await state.get_data()
        await state.clear()
        await mc.edit_inline(callback.message, t("auth:cancelled", data.get("lang", DEFAULT_LANG)), None)
        await callback.answer()

    router.start_sign_in = start_sign_in
    router.start_sign_up = start_sign_up
    return router
