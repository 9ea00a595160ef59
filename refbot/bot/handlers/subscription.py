from aiogram import F, Router
from aiogram.types import CallbackQuery

from refbot.bot import callbacks as cbd
from refbot.bot.keyboards import kb_main, kb_subscribe
from refbot.services.referrals.service import referral_service
from refbot.services.subscriptions.gate import subscription_gate

router = Router()


@router.callback_query(F.data == cbd.CHECK_SUBS)
async def on_check_subs(cb: CallbackQuery) -> None:
    tg_id = cb.from_user.id

    if not await subscription_gate.is_subscribed(cb.bot, tg_id):
        await cb.answer("Вы подписаны не на все каналы! ❌")
        await cb.message.answer(
            "⚠️ Пожалуйста, подпишитесь на все необходимые каналы для продолжения:",
            reply_markup=kb_subscribe(),
        )
        return

    await cb.answer("Все подписки активны! ✅")

    profile = await referral_service.get_profile(tg_id)
    referrer_line = ""
    if profile and profile.referrer_id:
        referrer_line = f"\n\n👥 Вы были приглашены пользователем ID: {profile.referrer_id}!"

    await cb.message.answer(
        "✅ Спасибо за подписку! Теперь вы можете использовать все функции бота."
        f"{referrer_line}\n\nВыберите нужный раздел в меню ниже:",
        reply_markup=kb_main(),
    )
