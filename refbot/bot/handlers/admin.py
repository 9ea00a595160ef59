"""Handlers of the administrative bot."""

from __future__ import annotations

import logging

from aiogram import Bot, F, Router
from aiogram.exceptions import TelegramAPIError, TelegramBadRequest
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, Message

from refbot.bot import callbacks as cbd
from refbot.bot.auth import is_admin
from refbot.bot.keyboards import kb_admin_back, kb_admin_menu, kb_admin_pending
from refbot.bot.ui import fmt_money
from refbot.core.config import settings
from refbot.services.payouts.service import DecisionOutcome, payout_service
from refbot.services.referrals.service import referral_service

log = logging.getLogger(__name__)

router = Router()

ADMIN_MENU_TEXT = "Админ-панель 𝐆𝐀𝐋𝐀𝐗𝐘 𝐓𝐑𝐀𝐅𝐅𝐈𝐂 | 𝐓𝐄𝐀𝐌\n\nВыберите действие:"


def _target_id(command: CommandObject) -> int | None:
    raw = (command.args or "").strip()
    return int(raw) if raw.isdigit() else None


async def _notify_user(user_bot: Bot, tg_id: int, text: str) -> None:
    try:
        await user_bot.send_message(chat_id=tg_id, text=text)
    except TelegramAPIError:
        # user blocked the bot or never started it
        log.warning("user_notify_failed tg_id=%s", tg_id)


# ==========================
# COMMANDS
# ==========================

@router.message(Command("admin"))
async def cmd_admin(message: Message) -> None:
    if not is_admin(message.from_user.id):
        await message.answer("У вас нет доступа к админ-панели")
        return
    await message.answer(ADMIN_MENU_TEXT, reply_markup=kb_admin_menu())


@router.message(Command("reset_refs"))
async def cmd_reset_refs(message: Message, command: CommandObject) -> None:
    if not is_admin(message.from_user.id):
        await message.answer("У вас нет доступа к этой команде")
        return

    target = _target_id(command)
    if target is None:
        await message.answer("Использование: /reset_refs <ID пользователя>")
        return

    if await referral_service.reset_referrals(target):
        await message.answer(f"Рефералы пользователя ID: {target} были успешно сброшены")
    else:
        await message.answer("Произошла ошибка при сбросе рефералов")


@router.message(Command("reset_balance"))
async def cmd_reset_balance(message: Message, command: CommandObject) -> None:
    if not is_admin(message.from_user.id):
        await message.answer("У вас нет доступа к этой команде")
        return

    target = _target_id(command)
    if target is None:
        await message.answer("Использование: /reset_balance <ID пользователя>")
        return

    if await referral_service.reset_balance(target):
        await message.answer(f"Баланс пользователя ID: {target} был успешно сброшен")
    else:
        await message.answer("Произошла ошибка при сбросе баланса")


# ==========================
# MENU
# ==========================

@router.callback_query(F.data == cbd.ADMIN_STATS)
async def on_admin_stats(cb: CallbackQuery) -> None:
    if not is_admin(cb.from_user.id):
        await cb.answer()
        return

    stats = await referral_service.get_stats()
    if not stats:
        await cb.answer("Ошибка получения статистики! ❌")
        return

    await cb.message.answer(
        "📊 Статистика бота\n\n"
        f"Всего пользователей: {stats.total_users}\n"
        f"Новых сегодня: {stats.today_users}\n"
        f"Всего выплачено: {fmt_money(stats.total_paid)}",
        reply_markup=kb_admin_back(),
    )
    await cb.answer()


@router.callback_query(F.data == cbd.ADMIN_BACK)
async def on_admin_back(cb: CallbackQuery) -> None:
    if not is_admin(cb.from_user.id):
        await cb.answer()
        return
    try:
        await cb.message.edit_text(ADMIN_MENU_TEXT, reply_markup=kb_admin_menu())
    except TelegramBadRequest:
        await cb.message.answer(ADMIN_MENU_TEXT, reply_markup=kb_admin_menu())
    await cb.answer()


@router.callback_query(F.data == cbd.ADMIN_BALANCE)
async def on_admin_balance(cb: CallbackQuery) -> None:
    if not is_admin(cb.from_user.id):
        await cb.answer()
        return
    await cb.message.answer(
        "💰 Управление балансами\n\nОбнулить баланс пользователя:\n/reset_balance <ID пользователя>",
        reply_markup=kb_admin_back(),
    )
    await cb.answer()


@router.callback_query(F.data == cbd.ADMIN_REFERRALS)
async def on_admin_referrals(cb: CallbackQuery) -> None:
    if not is_admin(cb.from_user.id):
        await cb.answer()
        return
    await cb.message.answer(
        "👥 Управление рефералами\n\nОтвязать всех рефералов пользователя:\n/reset_refs <ID пользователя>",
        reply_markup=kb_admin_back(),
    )
    await cb.answer()


@router.callback_query(F.data == cbd.ADMIN_PAYMENTS)
async def on_admin_payments(cb: CallbackQuery) -> None:
    if not is_admin(cb.from_user.id):
        await cb.answer()
        return

    items = await payout_service.list_pending()
    if not items:
        await cb.message.answer("💸 Заявки на выплаты\n\nОжидающих заявок нет.", reply_markup=kb_admin_back())
        await cb.answer()
        return

    lines = ["💸 Заявки на выплаты\n"]
    for req_id, tg_id, amount in items:
        lines.append(f"• #{req_id} | ID {tg_id} | {fmt_money(amount)}")

    await cb.message.answer(
        "\n".join(lines),
        reply_markup=kb_admin_pending([(req_id, tg_id) for req_id, tg_id, _ in items]),
    )
    await cb.answer()


# ==========================
# PAYOUT DECISIONS
# ==========================

@router.callback_query(F.data.startswith(cbd.APPROVE_PAYMENT + ":"))
async def on_approve_payment(cb: CallbackQuery, user_bot: Bot) -> None:
    if not is_admin(cb.from_user.id):
        await cb.answer()
        return

    target = cbd.parse_id(cb.data, cbd.APPROVE_PAYMENT)
    if target is None:
        await cb.answer()
        return

    res = await payout_service.approve(target)
    if res.outcome is DecisionOutcome.FAILED:
        await cb.message.answer("Произошла ошибка при обработке выплаты")
        await cb.answer()
        return
    if res.outcome is DecisionOutcome.NO_PENDING:
        await cb.answer(f"У пользователя ID: {target} нет ожидающих заявок", show_alert=True)
        return

    await _notify_user(
        user_bot,
        target,
        f"✅ Ваша заявка на выплату {fmt_money(res.amount)} была одобрена и обработана!",
    )
    await cb.message.answer(
        f"✅ Выплата пользователю ID: {target} на сумму {fmt_money(res.amount)} успешно одобрена"
    )
    await cb.answer()


@router.callback_query(F.data.startswith(cbd.REJECT_PAYMENT + ":"))
async def on_reject_payment(cb: CallbackQuery, user_bot: Bot) -> None:
    if not is_admin(cb.from_user.id):
        await cb.answer()
        return

    target = cbd.parse_id(cb.data, cbd.REJECT_PAYMENT)
    if target is None:
        await cb.answer()
        return

    res = await payout_service.reject(target)
    if res.outcome is DecisionOutcome.FAILED:
        await cb.message.answer("Произошла ошибка при отклонении выплаты")
        await cb.answer()
        return
    if res.outcome is DecisionOutcome.NO_PENDING:
        await cb.answer(f"У пользователя ID: {target} нет ожидающих заявок", show_alert=True)
        return

    await _notify_user(
        user_bot,
        target,
        f"❌ Ваша заявка на выплату была отклонена. По всем вопросам обращайтесь к {settings.support_handle}",
    )
    await cb.message.answer(f"❌ Выплата пользователю ID: {target} отклонена")
    await cb.answer()


@router.callback_query(F.data.startswith(cbd.CLEAR_USER_HISTORY + ":"))
async def on_clear_user_history(cb: CallbackQuery, user_bot: Bot) -> None:
    if not is_admin(cb.from_user.id):
        await cb.answer()
        return

    target = cbd.parse_id(cb.data, cbd.CLEAR_USER_HISTORY)
    if target is None:
        await cb.answer()
        return

    res = await payout_service.clear_history(target)
    if res.outcome is DecisionOutcome.FAILED:
        await cb.message.answer("Произошла ошибка при очистке истории пользователя")
        await cb.answer()
        return

    await _notify_user(
        user_bot,
        target,
        "⚠️ Ваша история в боте была очищена администратором. Ваш баланс и рефералы сброшены.",
    )
    await cb.message.answer(
        f"✅ История пользователя ID: {target} успешно очищена\n"
        f"Отменено заявок: {len(res.canceled_request_ids)}, отвязано рефералов: {res.detached_referrals}"
    )
    await cb.answer()
