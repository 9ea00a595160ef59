import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_decimal(name: str, default: str) -> Decimal:
    raw = (os.getenv(name) or default).strip()
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise RuntimeError(f"{name} must be a number, got {raw!r}")


def make_async_db_url(url: str) -> str:
    """Accepts Railway-style DATABASE_URL and returns sqlalchemy async url."""
    if url.startswith("postgresql+asyncpg://"):
        return url
    if url.startswith("postgres://"):
        return "postgresql+asyncpg://" + url[len("postgres://") :]
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://") :]
    # local runs and tests
    if url.startswith("sqlite+aiosqlite://"):
        return url
    raise RuntimeError("Unsupported DATABASE_URL format")


@dataclass(frozen=True)
class RequiredChannel:
    chat_id: str
    name: str
    url: str


DEFAULT_CHANNELS = "@refproverk|Канал 1|https://t.me/refproverk;@refproverk|Канал 2|https://t.me/refproverk"


def parse_channels(raw: str) -> tuple[RequiredChannel, ...]:
    """Parses `id|name|url;id|name|url` into channel descriptors.

    Name and url are optional; the url defaults to t.me/<id> for public
    @handles.
    """
    out: list[RequiredChannel] = []
    for chunk in raw.split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        parts = [p.strip() for p in chunk.split("|")]
        chat_id = parts[0]
        name = parts[1] if len(parts) > 1 and parts[1] else chat_id
        if len(parts) > 2 and parts[2]:
            url = parts[2]
        elif chat_id.startswith("@"):
            url = f"https://t.me/{chat_id[1:]}"
        else:
            raise RuntimeError(f"REQUIRED_CHANNELS: url is required for {chat_id!r}")
        out.append(RequiredChannel(chat_id=chat_id, name=name, url=url))
    return tuple(out)


@dataclass(frozen=True)
class Settings:
    bot_token: str
    # second bot that only the administrator talks to
    admin_bot_token: str
    database_url: str

    # owner (admin access)
    admin_tg_id: int

    bot_username: str = "GalaxysTeamBot"
    scheduler_enabled: bool = True

    required_channels: tuple[RequiredChannel, ...] = field(default_factory=tuple)

    # Referrals / payouts
    referral_bonus: Decimal = Decimal("0.5")
    min_payout: Decimal = Decimal("0.5")
    min_referrals: int = 1
    card_session_ttl_seconds: int = 900

    # daily counter reset happens at local midnight of this zone
    stats_timezone: str = "Europe/Moscow"

    support_url: str = "https://t.me/Mr_SnAyPeR"
    support_handle: str = "@Mr_SnAyPeR"
    manuals_url: str = "https://t.me/c/2422397027/13"
    reviews_url: str = "https://t.me/c/2422397027/12"


def _load_settings() -> Settings:
    bot_token = (os.getenv("BOT_TOKEN") or "").strip()
    if not bot_token:
        raise RuntimeError("BOT_TOKEN is missing")

    admin_bot_token = (os.getenv("ADMIN_BOT_TOKEN") or os.getenv("BOT_SECOND_TOKEN") or "").strip()
    if not admin_bot_token:
        raise RuntimeError("ADMIN_BOT_TOKEN is missing (or set BOT_SECOND_TOKEN)")

    database_url_raw = os.getenv("DATABASE_URL", "").strip()
    if not database_url_raw:
        raise RuntimeError("DATABASE_URL is missing")

    admin_raw = (os.getenv("ADMIN_TG_ID") or os.getenv("ADMIN_ID") or "").strip()
    if not admin_raw.isdigit():
        raise RuntimeError("ADMIN_TG_ID is missing or invalid (must be digits)")

    return Settings(
        bot_token=bot_token,
        admin_bot_token=admin_bot_token,
        database_url=make_async_db_url(database_url_raw),
        admin_tg_id=int(admin_raw),
        bot_username=(os.getenv("BOT_USERNAME") or "GalaxysTeamBot").strip().lstrip("@"),
        scheduler_enabled=_env_bool("SCHEDULER_ENABLED", True),
        required_channels=parse_channels(os.getenv("REQUIRED_CHANNELS") or DEFAULT_CHANNELS),
        referral_bonus=_env_decimal("REFERRAL_BONUS", "0.5"),
        min_payout=_env_decimal("MIN_PAYOUT", "0.5"),
        min_referrals=int(os.getenv("MIN_REFERRALS", "1")),
        card_session_ttl_seconds=int(os.getenv("CARD_SESSION_TTL_SECONDS", "900")),
        stats_timezone=os.getenv("STATS_TIMEZONE", "Europe/Moscow").strip(),
        support_url=os.getenv("SUPPORT_URL", "https://t.me/Mr_SnAyPeR").strip(),
        support_handle=os.getenv("SUPPORT_HANDLE", "@Mr_SnAyPeR").strip(),
        manuals_url=os.getenv("MANUALS_URL", "https://t.me/c/2422397027/13").strip(),
        reviews_url=os.getenv("REVIEWS_URL", "https://t.me/c/2422397027/12").strip(),
    )


settings = _load_settings()
