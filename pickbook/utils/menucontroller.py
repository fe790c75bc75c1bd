"""
pickbook/utils/menucontroller.py

Screen bookkeeping of the chat.

Rules:
- exactly one reply-keyboard anchor per chat (the main menu);
- inline screens are tracked and removed when the user goes back to the menu;
- new message first, then delete the old one (the keyboard never flickers).

Screen kinds:
- show()                 reply menu (anchor)
- show_inline_readonly() list / card, anchor kept
- show_inline_input()    wizard step that expects typing, anchor removed
- edit_inline()          same inline message, new content
"""

import logging

from aiogram.exceptions import TelegramBadRequest
from aiogram.types import InlineKeyboardMarkup, Message, ReplyKeyboardMarkup

logger = logging.getLogger(__name__)


class MenuController:
    """Keeps anchor / inline message ids in Redis."""

    def __init__(self, redis):
        self.redis = redis

    # ------------------------------------------------------------------
    # Redis keys
    # ------------------------------------------------------------------

    def _menu_key(self, chat_id: int) -> str:
        return f"pb:menu:{chat_id}"

    def _inline_key(self, chat_id: int) -> str:
        return f"pb:inline:{chat_id}"

    async def _get_menu_id(self, chat_id: int) -> int | None:
        val = await self.redis.get(self._menu_key(chat_id))
        return int(val) if val else None

    async def _set_menu_id(self, chat_id: int, msg_id: int) -> None:
        await self.redis.set(self._menu_key(chat_id), str(msg_id))

    async def _del_menu_id(self, chat_id: int) -> None:
        await self.redis.delete(self._menu_key(chat_id))

    async def _track_inline(self, chat_id: int, msg_id: int) -> None:
        await self.redis.rpush(self._inline_key(chat_id), str(msg_id))

    async def _pop_inline_ids(self, chat_id: int) -> list[int]:
        vals = await self.redis.lrange(self._inline_key(chat_id), 0, -1)
        await self.redis.delete(self._inline_key(chat_id))
        return [int(v) for v in vals] if vals else []

    # ------------------------------------------------------------------
    # Delete helpers
    # ------------------------------------------------------------------

    async def _safe_delete(self, bot, chat_id: int, msg_id: int) -> bool:
        """Delete a message; already-gone messages are fine."""
        try:
            await bot.delete_message(chat_id, msg_id)
            return True
        except TelegramBadRequest:
            return False

    async def clear_inline(self, bot, chat_id: int) -> int:
        deleted = 0
        for msg_id in await self._pop_inline_ids(chat_id):
            if await self._safe_delete(bot, chat_id, msg_id):
                deleted += 1
        return deleted

    # ------------------------------------------------------------------
    # Reply menu
    # ------------------------------------------------------------------

    async def show_for_chat(self, bot, chat_id: int, kb: ReplyKeyboardMarkup, title: str) -> None:
        """Send a new reply anchor, drop the old one and every tracked inline screen."""
        old_menu_id = await self._get_menu_id(chat_id)

        msg = await bot.send_message(chat_id=chat_id, text=title, reply_markup=kb)
        await self._set_menu_id(chat_id, msg.message_id)

        if old_menu_id:
            await self._safe_delete(bot, chat_id, old_menu_id)
        deleted = await self.clear_inline(bot, chat_id)
        logger.debug(f"menu shown chat={chat_id}, removed {deleted} inline screens")

    async def show(self, message: Message, kb: ReplyKeyboardMarkup, title: str = "📋") -> None:
        """Reply menu triggered by a user message (the message is removed too)."""
        await self.show_for_chat(message.bot, message.chat.id, kb, title)
        await self._safe_delete(message.bot, message.chat.id, message.message_id)

    async def back_to_reply(self, callback_message: Message, kb: ReplyKeyboardMarkup, title: str = "📋") -> None:
        await self.show_for_chat(callback_message.bot, callback_message.chat.id, kb, title)

    # ------------------------------------------------------------------
    # Inline screens
    # ------------------------------------------------------------------

    async def show_inline_readonly(self, message: Message, text: str, kb: InlineKeyboardMarkup) -> Message:
        """Inline list/card. The reply anchor stays, no keyboard pops up."""
        chat_id = message.chat.id
        inline_msg = await message.bot.send_message(chat_id=chat_id, text=text, reply_markup=kb)
        await self._track_inline(chat_id, inline_msg.message_id)
        await self._safe_delete(message.bot, chat_id, message.message_id)
        return inline_msg

    async def show_inline_input(self, message: Message, text: str, kb: InlineKeyboardMarkup) -> Message:
        """Inline wizard step. The reply anchor is removed last so the text input is free."""
        chat_id = message.chat.id
        old_menu_id = await self._get_menu_id(chat_id)

        inline_msg = await message.bot.send_message(chat_id=chat_id, text=text, reply_markup=kb)
        await self._track_inline(chat_id, inline_msg.message_id)
        await self._safe_delete(message.bot, chat_id, message.message_id)

        if old_menu_id:
            await self._safe_delete(message.bot, chat_id, old_menu_id)
        await self._del_menu_id(chat_id)
        return inline_msg

    async def send_inline_in_flow(self, bot, chat_id: int, text: str, kb: InlineKeyboardMarkup | None = None) -> Message:
        """New tracked inline message inside a wizard (previous ones stay)."""
        inline_msg = await bot.send_message(chat_id=chat_id, text=text, reply_markup=kb)
        await self._track_inline(chat_id, inline_msg.message_id)
        return inline_msg

    async def edit_inline(self, callback_message: Message, text: str, kb: InlineKeyboardMarkup | None) -> None:
        """Paging / state change of the same inline message."""
        try:
            await callback_message.edit_text(text=text, reply_markup=kb)
        except TelegramBadRequest:
            # "message is not modified"
            pass

    async def track(self, chat_id: int, msg_id: int) -> None:
        """Track a message sent outside the controller (venue, location) for cleanup."""
        await self._track_inline(chat_id, msg_id)

    async def delete_user_message(self, message: Message) -> None:
        await self._safe_delete(message.bot, message.chat.id, message.message_id)
