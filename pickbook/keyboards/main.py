# pickbook/keyboards/main.py

from aiogram.types import (
    KeyboardButton,
    ReplyKeyboardMarkup,
)

from pickbook.i18n.loader import t


def guest_main(lang: str) -> ReplyKeyboardMarkup:
    """Main reply menu before sign-in."""
    return ReplyKeyboardMarkup(
        keyboard=[
            [
                KeyboardButton(text=t("menu:sign_in", lang)),
                KeyboardButton(text=t("menu:sign_up", lang)),
            ],
            [
                KeyboardButton(text=t("menu:areas", lang)),
                KeyboardButton(text=t("menu:nearby", lang), request_location=True),
            ],
        ],
        resize_keyboard=True,
        is_persistent=True,
    )


def user_main(lang: str) -> ReplyKeyboardMarkup:
    """Main reply menu of a signed-in user. Used as the navigation anchor."""
    return ReplyKeyboardMarkup(
        keyboard=[
            [
                KeyboardButton(text=t("menu:areas", lang)),
                KeyboardButton(text=t("menu:nearby", lang), request_location=True),
            ],
            [
                KeyboardButton(text=t("menu:dashboard", lang)),
                KeyboardButton(text=t("menu:bookings", lang)),
            ],
            [
                KeyboardButton(text=t("menu:notifications", lang)),
                KeyboardButton(text=t("menu:membership", lang)),
            ],
            [
                KeyboardButton(text=t("menu:profile", lang)),
                KeyboardButton(text=t("menu:sign_out", lang)),
            ],
        ],
        resize_keyboard=True,
        is_persistent=True,
    )


def share_contact_keyboard(lang: str) -> ReplyKeyboardMarkup:
    """One-tap GCash number from the Telegram account."""
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=t("booking:contact:share_phone", lang), request_contact=True)],
        ],
        resize_keyboard=True,
        one_time_keyboard=True,
    )


def share_location_keyboard(lang: str) -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=t("areas:share_location", lang), request_location=True)],
        ],
        resize_keyboard=True,
        one_time_keyboard=True,
    )
