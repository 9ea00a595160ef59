from aiogram.types import InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from refbot.bot import callbacks as cbd
from refbot.core.config import settings


def kb_subscribe() -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    for ch in settings.required_channels:
        b.button(text=f"📢 Подписаться на {ch.name}", url=ch.url)
    b.button(text="🔄 Проверить подписки", callback_data=cbd.CHECK_SUBS)
    b.adjust(1)
    return b.as_markup()


def kb_main() -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="💻 Профиль", callback_data=cbd.PROFILE)
    b.button(text="📈 Статистика", callback_data=cbd.STATISTICS)
    b.button(text="🔧 Функционал", callback_data=cbd.FUNCTIONALITY)
    b.adjust(2, 1)
    return b.as_markup()


def kb_functionality() -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="📚 Мануалы", callback_data=cbd.MANUALS)
    b.button(text="⭐ Отзывы", callback_data=cbd.REVIEWS)
    b.button(text="❗ Обязательные подписки", callback_data=cbd.REQUIRED_SUBSCRIPTIONS)
    b.button(text="💰 Выплаты", callback_data=cbd.PAYMENTS)
    b.button(text="❓ По всем вопросам", url=settings.support_url)
    b.button(text="👥 Рефералы", callback_data=cbd.REFERRALS)
    b.button(text="🔙 Назад в меню", callback_data=cbd.BACK_TO_MAIN)
    b.adjust(1)
    return b.as_markup()


def kb_back(to: str = cbd.BACK_TO_MAIN) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="🔙 Назад", callback_data=to)
    b.adjust(1)
    return b.as_markup()


def kb_profile() -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="👥 Мои рефералы", callback_data=cbd.REFERRALS)
    b.button(text="🔙 Назад", callback_data=cbd.BACK_TO_MAIN)
    b.adjust(1)
    return b.as_markup()


def kb_referrals(tg_id: int) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="📋 Скопировать ссылку", callback_data=cbd.with_id(cbd.COPY_LINK, tg_id))
    b.button(text="🔙 Назад", callback_data=cbd.BACK_TO_MAIN)
    b.adjust(1)
    return b.as_markup()


def kb_link(text: str, url: str, back_to: str = cbd.FUNCTIONALITY) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text=text, url=url)
    b.button(text="🔙 Назад", callback_data=back_to)
    b.adjust(1)
    return b.as_markup()


def kb_request_payment() -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="💸 Заказать выплату", callback_data=cbd.REQUEST_PAYMENT)
    b.button(text="🔙 Назад", callback_data=cbd.FUNCTIONALITY)
    b.adjust(1)
    return b.as_markup()


# ---- admin bot ---------------------------------------------------------------

def kb_admin_menu() -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="📊 Статистика бота", callback_data=cbd.ADMIN_STATS)
    b.button(text="💰 Управление балансами", callback_data=cbd.ADMIN_BALANCE)
    b.button(text="👥 Управление рефералами", callback_data=cbd.ADMIN_REFERRALS)
    b.button(text="💸 Заявки на выплаты", callback_data=cbd.ADMIN_PAYMENTS)
    b.adjust(1)
    return b.as_markup()


def kb_admin_back() -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="🔙 Назад", callback_data=cbd.ADMIN_BACK)
    b.adjust(1)
    return b.as_markup()


def kb_admin_decision(tg_id: int) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="✅ Одобрить", callback_data=cbd.with_id(cbd.APPROVE_PAYMENT, tg_id))
    b.button(text="❌ Отклонить", callback_data=cbd.with_id(cbd.REJECT_PAYMENT, tg_id))
    b.button(text="🗑️ Очистить историю пользователя", callback_data=cbd.with_id(cbd.CLEAR_USER_HISTORY, tg_id))
    b.adjust(2, 1)
    return b.as_markup()


def kb_admin_pending(items: list[tuple[int, int]]) -> InlineKeyboardMarkup:
    """One approve/reject row per (request_id, tg_id)."""
    b = InlineKeyboardBuilder()
    for req_id, tg_id in items:
        b.button(text=f"✅ #{req_id}", callback_data=cbd.with_id(cbd.APPROVE_PAYMENT, tg_id))
        b.button(text=f"❌ #{req_id}", callback_data=cbd.with_id(cbd.REJECT_PAYMENT, tg_id))
    b.button(text="🔙 Назад", callback_data=cbd.ADMIN_BACK)
    b.adjust(*([2] * len(items)), 1)
    return b.as_markup()
