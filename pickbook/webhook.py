"""
pickbook/webhook.py

Webhook app: Telegram → POST /tg/webhook → process_update().

    uvicorn pickbook.webhook:app --host 0.0.0.0 --port 8080
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, HTTPException, Request

from pickbook.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Lazy import: the bot module builds Bot/Dispatcher at import time
    from pickbook.main import bot

    if settings.WEBHOOK_URL:
        url = f"{settings.WEBHOOK_URL.rstrip('/')}/tg/webhook"
        await bot.set_webhook(url, secret_token=settings.TG_WEBHOOK_SECRET, drop_pending_updates=False)
        logger.info(f"Webhook set: {url}")
    yield
    await bot.session.close()


app = FastAPI(title="PickBook bot", lifespan=lifespan)


@app.get("/healthz")
async def healthz():
    return {"ok": True}


# ===== Telegram webhook =====
@app.post("/tg/webhook")
async def telegram_webhook(
    request: Request,
    x_telegram_bot_api_secret_token: str | None = Header(None),
):
    if x_telegram_bot_api_secret_token != settings.TG_WEBHOOK_SECRET:
        raise HTTPException(status_code=403)

    try:
        update = await request.json()
    except ValueError:
        return {"ok": True}

    from pickbook.main import process_update
    await process_update(update)

    return {"ok": True}
