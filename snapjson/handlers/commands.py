"""
Bot controls:
/start, /help, /status, /raw

PLUS the camera permission prompt (Grant permission button).
"""

from aiogram import F, Router, types
from aiogram.filters import Command, CommandStart

from ..services.capture import CameraPermissions
from ..services.formatting import split_message
from ..services.pipeline import PipelineRegistry

router = Router(name="commands")

GRANT_CALLBACK = "grant_camera"


def permission_keyboard() -> types.InlineKeyboardMarkup:
    return types.InlineKeyboardMarkup(
        inline_keyboard=[[types.InlineKeyboardButton(text="Grant permission", callback_data=GRANT_CALLBACK)]]
    )


async def ask_permission(m: types.Message) -> None:
    await m.answer("We need your permission to show the camera", reply_markup=permission_keyboard())


@router.message(CommandStart())
async def start_cmd(m: types.Message, permissions: CameraPermissions):
    if not permissions.status(m.from_user.id):
        await ask_permission(m)
        return
    await m.reply(
        "Hi! Send me a photo and I’ll turn its text into JSON.\n\n"
        "Flow:\n"
        "1) Send a photo (camera) or an image as a file (gallery)\n"
        "2) Tap “Process with OCR”\n"
        "3) Read the structured data, or tap “Retake”"
    )


@router.message(Command("help"))
async def help_cmd(m: types.Message):
    await m.reply(
        "/start - grant camera access & see the flow\n"
        "/process - run OCR on the current image\n"
        "/retry - run OCR again after a failure\n"
        "/reset - drop the current image (Retake)\n"
        "/raw - show the raw OCR markdown of the last result\n"
        "/status - show what I’m holding for you"
    )


@router.callback_query(F.data == GRANT_CALLBACK)
async def grant_cb(cq: types.CallbackQuery, permissions: CameraPermissions):
    if not permissions.request(cq.from_user.id):
        await cq.answer("Camera permission denied for this account.", show_alert=True)
        return
    await cq.answer("Camera access granted")
    if isinstance(cq.message, types.Message):
        await cq.message.edit_text(
            "✅ Camera access granted.\n"
            "Send a photo, or send an image as a file to upload it from your gallery."
        )


@router.message(Command("status"))
async def status_cmd(m: types.Message, pipelines: PipelineRegistry):
    p = pipelines.get(m.from_user.id)
    lines = [f"State: {p.state.value}"]
    if p.image:
        lines.append(f"Image: {p.image.width}x{p.image.height}")
    if p.result:
        lines.append("Last result: " + ("✅ ok" if p.result.ok else "❌ error"))
    await m.reply("\n".join(lines))


@router.message(Command("raw"))
async def raw_cmd(m: types.Message, pipelines: PipelineRegistry):
    p = pipelines.get(m.from_user.id)
    if not p.result or not p.result.ok:
        await m.reply("No OCR text yet. Send a photo and tap “Process with OCR”.")
        return
    for chunk in split_message(p.result.raw or "(empty)"):
        await m.answer(chunk)
