import logging

from aiogram import Router
from aiogram.filters import CommandObject, CommandStart
from aiogram.types import Message

from refbot.bot.keyboards import kb_subscribe
from refbot.services.referrals.service import referral_service

log = logging.getLogger(__name__)

router = Router()

WELCOME_TEXT = (
    "👋 Добро пожаловать в 𝐆𝐀𝐋𝐀𝐗𝐘 𝐓𝐑𝐀𝐅𝐅𝐈𝐂 | 𝐓𝐄𝐀𝐌!\n\n"
    "⚠️ Для использования бота необходимо подписаться на следующие каналы:"
)


def parse_referrer(args: str | None) -> int | None:
    """/start <referrer_tg_id>; anything that is not a plain id is ignored."""
    payload = (args or "").strip()
    if payload.isdigit():
        return int(payload)
    return None


@router.message(CommandStart())
async def cmd_start(message: Message, command: CommandObject) -> None:
    tg_id = message.from_user.id
    referrer_id = parse_referrer(command.args)

    res = await referral_service.register(tg_id, message.from_user.username, referrer_id)
    if res.created:
        log.info("start_new_user tg_id=%s referrer_id=%s", tg_id, referrer_id)

    await message.answer(WELCOME_TEXT, reply_markup=kb_subscribe())
