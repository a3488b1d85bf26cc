"""
Application entrypoint: wires together dispatcher, routers, middleware,
the OCR pipeline registry, and registers Telegram slash commands so typing
"/" shows the menu.
"""

import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.types import BotCommand
# NOTE: parse mode stays disabled globally; OCR text is full of markdown/HTML-ish characters.

from .config import (
    ALLOWED_USER_IDS,
    MISTRAL_API_KEY,
    MISTRAL_BASE_URL,
    MISTRAL_MODEL,
    TELEGRAM_BOT_TOKEN,
)
from .handlers import commands, corrections, images
from .middleware.errors import ErrorMiddleware
from .middleware.logging import setup_logging
from .services.capture import CameraPermissions
from .services.pipeline import PipelineRegistry
from .services.vision import MistralVisionClient

log = logging.getLogger(__name__)


async def setup_bot_commands(bot: Bot) -> None:
    """Register the bot's slash commands so they appear when you type "/"."""
    cmds = [
        BotCommand(command="start",   description="Grant camera access & start"),
        BotCommand(command="help",    description="How to use the bot"),
        BotCommand(command="process", description="Run OCR on the current image"),
        BotCommand(command="retry",   description="Run OCR again after a failure"),
        BotCommand(command="reset",   description="Retake: drop the current image"),
        BotCommand(command="raw",     description="Show the raw OCR text"),
        BotCommand(command="status",  description="Show current state"),
    ]
    await bot.set_my_commands(cmds)


def build_dispatcher(client: MistralVisionClient) -> Dispatcher:
    dp = Dispatcher()

    # Shared state, injected into handlers by keyword
    dp["pipelines"] = PipelineRegistry(client)
    dp["permissions"] = CameraPermissions(ALLOWED_USER_IDS)

    # Register global error middleware for messages and button taps
    dp.message.middleware(ErrorMiddleware())
    dp.callback_query.middleware(ErrorMiddleware())

    # Attach feature routers
    dp.include_router(commands.router)
    dp.include_router(images.router)
    dp.include_router(corrections.router)
    return dp


async def main() -> None:
    # Fail fast if the secrets are not configured
    if not TELEGRAM_BOT_TOKEN:
        raise SystemExit("TELEGRAM_BOT_TOKEN is not set")
    if not MISTRAL_API_KEY:
        raise SystemExit("MISTRAL_API_KEY is not set")

    setup_logging()

    client = MistralVisionClient(api_key=MISTRAL_API_KEY, model=MISTRAL_MODEL, base_url=MISTRAL_BASE_URL)
    log.info("Using model %s at %s", client.model, MISTRAL_BASE_URL)

    bot = Bot(
        token=TELEGRAM_BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=None)
    )
    dp = build_dispatcher(client)

    # Register slash commands so Telegram shows them on "/"
    await setup_bot_commands(bot)

    # Start long-polling
    await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())


if __name__ == "__main__":
    asyncio.run(main())
