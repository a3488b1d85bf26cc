"""
Utility actions:
/reset and the Retake button (drop the image), /retry (run OCR again)
"""

from aiogram import Bot, F, Router, types
from aiogram.filters import Command

from ..services.pipeline import PipelineRegistry
from .images import RETAKE_CALLBACK, run_ocr

router = Router(name="corrections")

RETAKE_TEXT = "Cleared. Send a new photo, or an image file from your gallery."


def _retake(pipelines: PipelineRegistry, user_id: int) -> None:
    p = pipelines.get(user_id)
    p.reset()
    # an in-flight run still needs the processing guard
    if not p.processing:
        pipelines.drop(user_id)


@router.message(Command("reset"))
async def reset_cmd(m: types.Message, pipelines: PipelineRegistry) -> None:
    _retake(pipelines, m.from_user.id)
    await m.reply(RETAKE_TEXT)


@router.callback_query(F.data == RETAKE_CALLBACK)
async def retake_cb(cq: types.CallbackQuery, pipelines: PipelineRegistry) -> None:
    _retake(pipelines, cq.from_user.id)
    await cq.answer()
    if isinstance(cq.message, types.Message):
        await cq.message.edit_reply_markup(reply_markup=None)
        await cq.message.answer(RETAKE_TEXT)


@router.message(Command("retry"))
async def retry_cmd(m: types.Message, bot: Bot, pipelines: PipelineRegistry) -> None:
    p = pipelines.get(m.from_user.id)
    if p.result is not None and p.result.ok:
        await m.reply("The last run succeeded. Use /process to run it again anyway.")
        return
    await run_ocr(bot, m.chat.id, m.from_user.id, pipelines)
