from __future__ import annotations

import logging

from aiogram import F, Router
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import CallbackQuery

from refbot.bot import callbacks as cbd
from refbot.bot.keyboards import (
    kb_back,
    kb_functionality,
    kb_link,
    kb_main,
    kb_profile,
    kb_referrals,
    kb_subscribe,
)
from refbot.bot.ui import fmt_money, fmt_username, referral_link
from refbot.core.config import settings
from refbot.services.referrals.service import referral_service

log = logging.getLogger(__name__)

router = Router()

MAIN_MENU_TEXT = "Главное меню 𝐆𝐀𝐋𝐀𝐗𝐘 𝐓𝐑𝐀𝐅𝐅𝐈𝐂 | 𝐓𝐄𝐀𝐌"


@router.callback_query(F.data == cbd.BACK_TO_MAIN)
async def on_back_to_main(cb: CallbackQuery) -> None:
    try:
        await cb.message.edit_text(MAIN_MENU_TEXT, reply_markup=kb_main())
    except TelegramBadRequest:
        # e.g. the previous screen was a photo or the text did not change
        await cb.message.answer(MAIN_MENU_TEXT, reply_markup=kb_main())
    await cb.answer()


@router.callback_query(F.data == cbd.PROFILE)
async def on_profile(cb: CallbackQuery) -> None:
    profile = await referral_service.get_profile(cb.from_user.id)
    if not profile:
        await cb.answer("Ошибка получения профиля! ❌")
        return

    await cb.message.answer(
        "💻—Профиль\n"
        f"┣🆔 Мой Username: {fmt_username(profile.username)}\n"
        f"┣🆔 Мой ID: {profile.tg_id}\n"
        f"┣💰 Баланс: {fmt_money(profile.balance)}\n"
        f"┗👥 Рефералы: {profile.referrals_count}",
        reply_markup=kb_profile(),
    )
    await cb.answer()


@router.callback_query(F.data == cbd.STATISTICS)
async def on_statistics(cb: CallbackQuery) -> None:
    stats = await referral_service.get_stats()
    if not stats:
        await cb.answer("Ошибка получения статистики! ❌")
        return

    await cb.message.answer(
        "𝐆𝐀𝐋𝐀𝐗𝐘 𝐓𝐑𝐀𝐅𝐅𝐈𝐂 | 𝐓𝐄𝐀𝐌\n"
        "📈— СТАТИСТИКА:\n"
        f"┣Всего пользователей в боте: {stats.total_users}\n"
        f"┣За сегодня в бота зашло: {stats.today_users}\n"
        f"┗Всего выплачено пользователям: {fmt_money(stats.total_paid)}",
        reply_markup=kb_back(),
    )
    await cb.answer()


@router.callback_query(F.data == cbd.FUNCTIONALITY)
async def on_functionality(cb: CallbackQuery) -> None:
    await cb.message.answer(
        "🔧 Функционал 𝐆𝐀𝐋𝐀𝐗𝐘 𝐓𝐑𝐀𝐅𝐅𝐈𝐂 | 𝐓𝐄𝐀𝐌\n\nВыберите нужный раздел:",
        reply_markup=kb_functionality(),
    )
    await cb.answer()


@router.callback_query(F.data == cbd.REFERRALS)
async def on_referrals(cb: CallbackQuery) -> None:
    tg_id = cb.from_user.id
    info = await referral_service.get_referral_info(tg_id)

    await cb.message.answer(
        "👥 — РЕФЕРАЛКА\n\n"
        f"Ваша ссылка: {referral_link(tg_id)}\n\n"
        f"Всего приглашено: {info.referrals_count}\n"
        f"Всего заработано с реф ссылки: {fmt_money(info.total_earnings)}",
        reply_markup=kb_referrals(tg_id),
    )
    await cb.answer()


@router.callback_query(F.data == cbd.MANUALS)
async def on_manuals(cb: CallbackQuery) -> None:
    await cb.message.answer(
        "📚 Мануалы\n\nДоступные мануалы по заработку:",
        reply_markup=kb_link("📖 Открыть мануалы", settings.manuals_url),
    )
    await cb.answer()


@router.callback_query(F.data == cbd.REVIEWS)
async def on_reviews(cb: CallbackQuery) -> None:
    await cb.message.answer(
        "⭐ Отзывы\n\nОтзывы наших пользователей:",
        reply_markup=kb_link("⭐ Смотреть отзывы", settings.reviews_url),
    )
    await cb.answer()


@router.callback_query(F.data == cbd.REQUIRED_SUBSCRIPTIONS)
async def on_required_subscriptions(cb: CallbackQuery) -> None:
    await cb.message.answer(
        "❗ Обязательные подписки\n\nДля использования бота необходимо быть подписанным на следующие каналы:",
        reply_markup=kb_subscribe(),
    )
    await cb.answer()


@router.callback_query(F.data.startswith(cbd.COPY_LINK + ":"))
async def on_copy_link(cb: CallbackQuery) -> None:
    tg_id = cbd.parse_id(cb.data, cbd.COPY_LINK)
    if tg_id is None:
        await cb.answer()
        return
    await cb.answer(f"Ваша реферальная ссылка скопирована: {referral_link(tg_id)}", show_alert=True)
