"""
Global error middleware to avoid silent crashes and to notify the user.
"""

import logging
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, TelegramObject

log = logging.getLogger(__name__)


class ErrorMiddleware(BaseMiddleware):
    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        try:
            return await handler(event, data)
        except Exception:  # pragma: no cover - log + best-effort notify
            log.exception("Unhandled error in %s handler", type(event).__name__)
            try:
                if isinstance(event, Message):
                    await event.reply("An error occurred. Please try again.")
                elif isinstance(event, CallbackQuery):
                    await event.answer("An error occurred. Please try again.", show_alert=True)
            except Exception:
                log.debug("Could not notify user about the error", exc_info=True)
            raise
