from __future__ import annotations

import logging

from aiogram import Bot, F, Router
from aiogram.exceptions import TelegramAPIError
from aiogram.filters import BaseFilter
from aiogram.types import CallbackQuery, Message

from refbot.bot import callbacks as cbd
from refbot.bot.keyboards import kb_admin_decision, kb_back, kb_main, kb_request_payment
from refbot.bot.ui import fmt_money, fmt_username
from refbot.core.config import settings
from refbot.services.payouts.service import (
    BeginOutcome,
    SubmitOutcome,
    SubmitResult,
    payout_service,
)
from refbot.services.payouts.sessions import CardSessionStore
from refbot.services.referrals.service import referral_service

log = logging.getLogger(__name__)

router = Router()

CARD_PROMPT = (
    "💳 Для завершения заявки на выплату введите номер вашей банковской карты "
    "в следующем формате:\n\nXXXX-XXXX-XXXX-XXXX"
)


class AwaitingCardFilter(BaseFilter):
    """Matches any message from a user with an open card session."""

    def __init__(self, sessions: CardSessionStore) -> None:
        self.sessions = sessions

    async def __call__(self, message: Message) -> bool:
        return message.from_user is not None and self.sessions.is_awaiting(message.from_user.id)


def _requirements_text() -> str:
    return (
        f"❗️ Для выплаты необходимо пригласить минимум {settings.min_referrals} чел. "
        f"и иметь баланс не менее {fmt_money(settings.min_payout)}."
    )


@router.callback_query(F.data == cbd.PAYMENTS)
async def on_payments(cb: CallbackQuery) -> None:
    elig = await payout_service.check_eligibility(cb.from_user.id)
    if elig is None:
        await cb.answer("Ошибка получения профиля! ❌")
        return

    if not elig.eligible:
        await cb.message.answer(
            "💰 Выплаты\n\n"
            f"{_requirements_text()}\n\n"
            f"Рефералов сейчас: {elig.referrals_count}\n"
            f"Ваш текущий баланс: {fmt_money(elig.balance)}",
            reply_markup=kb_back(cbd.FUNCTIONALITY),
        )
        await cb.answer()
        return

    await cb.message.answer(
        "💰 Заказ выплаты\n\n"
        f"Ваш текущий баланс: {fmt_money(elig.balance)}\n\n"
        "Для подачи заявки на выплату, нажмите кнопку ниже:",
        reply_markup=kb_request_payment(),
    )
    await cb.answer()


@router.callback_query(F.data == cbd.REQUEST_PAYMENT)
async def on_request_payment(cb: CallbackQuery) -> None:
    # the button may be stale: eligibility is checked again here
    res = await payout_service.begin_request(cb.from_user.id)

    if res.outcome is BeginOutcome.INELIGIBLE:
        await cb.answer(
            "Недостаточно средств для выплаты или мало рефералов! ❌\n" + _requirements_text(),
            show_alert=True,
        )
        return
    if res.outcome is BeginOutcome.PENDING_EXISTS:
        await cb.answer("У вас уже есть заявка на выплату в обработке. Дождитесь решения администратора.", show_alert=True)
        return
    if res.outcome is BeginOutcome.FAILED:
        await cb.answer("Произошла ошибка. Пожалуйста, попробуйте позже.", show_alert=True)
        return

    await cb.message.answer(CARD_PROMPT)
    await cb.answer()


async def _notify_admin(admin_bot: Bot, message: Message, res: SubmitResult) -> None:
    tg_id = message.from_user.id
    profile = await referral_service.get_profile(tg_id)
    referrals = await referral_service.list_referrals(tg_id)

    lines = "\n".join(f"- ID: {rid}, {fmt_username(uname)}" for rid, uname in referrals)
    count = profile.referrals_count if profile else len(referrals)
    username = profile.username if profile else message.from_user.username

    try:
        await admin_bot.send_message(
            chat_id=settings.admin_tg_id,
            text=(
                "💸 Новая заявка на выплату\n\n"
                f"Пользователь: {fmt_username(username)} (ID: {tg_id})\n"
                f"Заявка: #{res.request_id}\n"
                f"Сумма: {fmt_money(res.amount)}\n"
                f"Карта: {res.card_number}\n\n"
                f"Список рефералов (всего: {count}):\n"
                f"{lines or 'Нет рефералов'}"
            ),
            reply_markup=kb_admin_decision(tg_id),
        )
    except TelegramAPIError:
        log.exception("admin_notify_failed tg_id=%s request_id=%s", tg_id, res.request_id)


@router.message(AwaitingCardFilter(payout_service.sessions))
async def on_card_number(message: Message, admin_bot: Bot) -> None:
    res = await payout_service.submit_card(message.from_user.id, message.text or "")

    if res.outcome is SubmitOutcome.INVALID_FORMAT:
        await message.answer(
            "❌ Некорректный формат номера карты. Пожалуйста, введите в формате:\n\nXXXX-XXXX-XXXX-XXXX"
        )
        return
    if res.outcome is SubmitOutcome.NO_SESSION:
        # expired between the filter and the handler
        await message.answer("Время на ввод карты истекло. Откройте «Выплаты» ещё раз.", reply_markup=kb_main())
        return
    if res.outcome is SubmitOutcome.FAILED:
        await message.answer("Произошла ошибка при создании заявки. Пожалуйста, попробуйте позже.")
        return

    await message.answer(
        f"✅ Ваша заявка на выплату {fmt_money(res.amount)} успешно отправлена!\n\n"
        f"Номер карты: {res.masked_card}\n\n"
        "Ожидайте обработки администратором.",
        reply_markup=kb_main(),
    )

    await _notify_admin(admin_bot, message, res)
