"""
Receive photos (camera) or image files (gallery), then run OCR on demand.
"""

import logging
from aiogram import Bot, F, Router, types
from aiogram.enums import ChatAction
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command

from ..exceptions import CaptureFailure, PermissionDenied, SelectionFailure
from ..services.capture import CameraPermissions, capture_from_camera, pick_from_gallery
from ..services.formatting import format_capture, format_result, split_message
from ..services.pipeline import PipelineRegistry
from .commands import ask_permission

router = Router(name="images")

log = logging.getLogger(__name__)

PROCESS_CALLBACK = "process"
RETAKE_CALLBACK = "retake"
BUSY_CALLBACK = "busy"


def image_keyboard(processing: bool = False) -> types.InlineKeyboardMarkup:
    if processing:
        row = [types.InlineKeyboardButton(text="Processing...", callback_data=BUSY_CALLBACK)]
    else:
        row = [
            types.InlineKeyboardButton(text="Retake", callback_data=RETAKE_CALLBACK),
            types.InlineKeyboardButton(text="Process with OCR", callback_data=PROCESS_CALLBACK),
        ]
    return types.InlineKeyboardMarkup(inline_keyboard=[row])


async def _set_keyboard(msg: types.Message | None, processing: bool) -> None:
    if msg is None:
        return
    try:
        await msg.edit_reply_markup(reply_markup=image_keyboard(processing))
    except TelegramBadRequest as e:
        # "message is not modified" and friends
        log.debug("Keyboard update skipped: %s", e)


@router.message(F.photo)
async def on_photo(m: types.Message, bot: Bot, pipelines: PipelineRegistry, permissions: CameraPermissions) -> None:
    try:
        image = await capture_from_camera(bot, m, permissions)
    except PermissionDenied:
        await ask_permission(m)
        return
    except CaptureFailure as e:
        await m.reply(f"⚠️ Error: {e}")
        return

    pipelines.get(m.from_user.id).capture(image)
    await m.reply(format_capture(image), reply_markup=image_keyboard())


@router.message(F.document)
async def on_document(m: types.Message, bot: Bot, pipelines: PipelineRegistry, permissions: CameraPermissions) -> None:
    try:
        image = await pick_from_gallery(bot, m, permissions)
    except PermissionDenied:
        await ask_permission(m)
        return
    except SelectionFailure as e:
        await m.reply(f"⚠️ Error: {e}")
        return

    if image is None:
        await m.reply("Please send an image (photo or image document).")
        return

    pipelines.get(m.from_user.id).capture(image)
    await m.reply(format_capture(image), reply_markup=image_keyboard())


async def run_ocr(
    bot: Bot,
    chat_id: int,
    user_id: int,
    pipelines: PipelineRegistry,
    keyboard_msg: types.Message | None = None,
) -> None:
    """
    Shows the loading message, runs the pipeline, then swaps the loading
    message for the rendered result.
    """
    pipeline = pipelines.get(user_id)
    if pipeline.processing:
        await bot.send_message(chat_id, "⏳ Still processing the current image.")
        return
    if pipeline.image is None:
        await bot.send_message(chat_id, "No image yet. Send a photo first.")
        return
    if not pipeline.can_process:
        return

    await _set_keyboard(keyboard_msg, processing=True)
    await bot.send_chat_action(chat_id, ChatAction.TYPING)
    loading = await bot.send_message(chat_id, "Processing image with Mistral OCR...")
    try:
        result = await pipeline.process()
    finally:
        await _set_keyboard(keyboard_msg, processing=False)

    if result is None:
        await loading.delete()
        return

    chunks = split_message(format_result(result))
    await loading.edit_text(chunks[0])
    for chunk in chunks[1:]:
        await bot.send_message(chat_id, chunk)

    if not result.ok:
        await bot.send_message(chat_id, "⚠️ Error: Failed to process image with Mistral API")


@router.message(Command("process"))
async def process_cmd(m: types.Message, bot: Bot, pipelines: PipelineRegistry) -> None:
    await run_ocr(bot, m.chat.id, m.from_user.id, pipelines)


@router.callback_query(F.data == PROCESS_CALLBACK)
async def process_cb(cq: types.CallbackQuery, bot: Bot, pipelines: PipelineRegistry) -> None:
    await cq.answer()
    msg = cq.message if isinstance(cq.message, types.Message) else None
    chat_id = cq.message.chat.id if cq.message else cq.from_user.id
    await run_ocr(bot, chat_id, cq.from_user.id, pipelines, keyboard_msg=msg)


@router.callback_query(F.data == BUSY_CALLBACK)
async def busy_cb(cq: types.CallbackQuery) -> None:
    await cq.answer("Processing...")
