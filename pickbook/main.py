"""
pickbook/main.py

Telegram bot entry point.

ONLY:
- bot, dispatcher, storage, shared clients
- /start routing by session
- router registration
- process_update() for the webhook app, run() for long polling

No menu business logic here.
"""

import asyncio
import logging
from typing import Optional

import redis.asyncio as redis
from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.filters import CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.fsm.storage.redis import RedisStorage
from aiogram.types import Message, Update
from pydantic import ValidationError

from pickbook.config import get_settings
from pickbook.flows import areas, auth, booking, dashboard, profile
from pickbook.handlers import main_reply
from pickbook.i18n.loader import load_messages, t, user_lang
from pickbook.keyboards.main import guest_main, user_main
from pickbook.utils.documents import ProfileStore
from pickbook.utils.identity import IdentityClient
from pickbook.utils.menucontroller import MenuController
from pickbook.utils.session import Session, SessionMiddleware, SessionStore


# ------------------------------------------------------------------
# Setup
# ------------------------------------------------------------------

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

load_messages()

redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)

bot = Bot(token=settings.TG_BOT_TOKEN, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
dp = Dispatcher(storage=RedisStorage(redis_client))

menu = MenuController(redis_client)
sessions = SessionStore(
    redis_client,
    identity=IdentityClient(),
    profiles=ProfileStore(),
    ttl=settings.SESSION_TTL_SECONDS,
)
dp.update.middleware(SessionMiddleware(sessions))


# ------------------------------------------------------------------
# Routers
# ------------------------------------------------------------------

areas_router = areas.setup(menu)
booking_router = booking.setup(menu)
dashboard_router = dashboard.setup(menu)
profile_router = profile.setup(menu, sessions)


async def _continue_action(message, state, session, lang, next_action):
    await reply_router.continue_action(message, state, session, lang, next_action)


auth_router = auth.setup(menu, sessions, _continue_action)
reply_router = main_reply.setup(menu, sessions, areas_router, booking_router, dashboard_router, profile_router, auth_router)


async def on_session_change(event: str, tg_id: int, session: Optional[Session]) -> None:
    logger.info(f"[AUTH] {event} tg_id={tg_id}")
    if event == "sign_out":
        await profile_router.discard(tg_id)


sessions.on_change(on_session_change)


# ------------------------------------------------------------------
# /start
# ------------------------------------------------------------------

@dp.message(CommandStart())
async def start_handler(message: Message, state: FSMContext, session: Optional[Session] = None):
    lang = user_lang(message.from_user.language_code)
    if booking_router.is_submitting(message.chat.id):
        await message.answer(t("booking:err_submitting", lang))
        return
    await state.clear()

    if session is None:
        await menu.show(message, guest_main(lang), t("start:guest", lang))
    else:
        await menu.show(message, user_main(lang), t("start:user", lang, session.display_name))


# ORDER: menu buttons → wizards/screens
dp.include_router(reply_router)
dp.include_router(auth_router)
dp.include_router(booking_router)
dp.include_router(profile_router)
dp.include_router(dashboard_router)
dp.include_router(areas_router)


# ------------------------------------------------------------------
# Entry points
# ------------------------------------------------------------------

async def process_update(update_data: dict):
    """Single entry point of the webhook app."""
    try:
        update = Update.model_validate(update_data, context={"bot": bot})
    except ValidationError as e:
        logger.warning("Invalid Telegram update: %s", e)
        return

    try:
        await dp.feed_update(bot, update)
    except Exception:
        logger.exception("Error processing Telegram update")


async def _polling():
    await bot.delete_webhook(drop_pending_updates=False)
    logger.info("Starting long polling")
    try:
        await dp.start_polling(bot)
    finally:
        await areas_router.search_debouncer.close()
        await profile_router.debouncer.close()
        await redis_client.aclose()


def run():
    asyncio.run(_polling())


if __name__ == "__main__":
    run()
