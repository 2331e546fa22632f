from __future__ import annotations

import datetime as dt
import os
import shlex
from dataclasses import dataclass, field

from dotenv import load_dotenv

from pctabot.domain import Channel, DateRange
from pctabot.keybase_notifier import DEFAULT_TOPICS

PCTA_URL = "https://portal.permit.pcta.org/availability/mexican-border.php"


def _parse_date(name: str, raw: str) -> dt.date:
    try:
        return dt.date.fromisoformat(raw.strip())
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected YYYY-MM-DD.") from e


def _parse_time(name: str, raw: str) -> dt.time:
    try:
        return dt.time.fromisoformat(raw.strip())
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected HH:MM[:SS].") from e


def _parse_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected integer.") from e


def _parse_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default)).strip()
    try:
        value = float(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected number of seconds.") from e
    if value <= 0:
        raise RuntimeError(f"{name} must be > 0")
    return value


def _parse_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"", "0", "false", "no"}


@dataclass(frozen=True)
class Settings:
    url: str = PCTA_URL

    # Polling interval is drawn once from [min, max] seconds.
    interval_min_seconds: int = 15
    interval_max_seconds: int = 3 * 60
    rejitter_each_tick: bool = False

    capacity_limit: int = 50
    date_range: DateRange = field(default_factory=lambda: DateRange(dt.date(2023, 4, 1), dt.date(2023, 5, 5)))

    # 9 AM - 5 PM PST, in the host's local time (EST).
    business_hours_start: dt.time = dt.time(12, 0)
    business_hours_end: dt.time = dt.time(20, 0)

    keybase_team: str = "jry.zed"
    keybase_mention: str | None = None
    keybase_topics: dict[Channel, str] = field(default_factory=lambda: dict(DEFAULT_TOPICS))
    keybase_binary: str = "keybase"
    keybase_timeout_seconds: float = 30.0

    vpn_reconnect_command: tuple[str, ...] = ("mullvad", "reconnect")

    fetch_timeout_seconds: float = 20.0
    # How many times a failed page download is retried within one tick.
    fetch_retry_attempts: int = 2


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Prefer .env in repo root; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)
    defaults = Settings()

    interval_min_seconds = _parse_int("INTERVAL_MIN_SECONDS", defaults.interval_min_seconds)
    interval_max_seconds = _parse_int("INTERVAL_MAX_SECONDS", defaults.interval_max_seconds)
    if interval_min_seconds < 1:
        raise RuntimeError("INTERVAL_MIN_SECONDS must be >= 1")
    if interval_min_seconds > interval_max_seconds:
        raise RuntimeError("INTERVAL_MIN_SECONDS must be <= INTERVAL_MAX_SECONDS")

    capacity_limit = _parse_int("CAPACITY_LIMIT", defaults.capacity_limit)
    if capacity_limit < 0:
        raise RuntimeError("CAPACITY_LIMIT must be >= 0")

    range_start = _parse_date("RANGE_START", os.getenv("RANGE_START", defaults.date_range.start.isoformat()))
    range_end = _parse_date("RANGE_END", os.getenv("RANGE_END", defaults.date_range.end.isoformat()))
    if range_end < range_start:
        raise RuntimeError("RANGE_END must not be before RANGE_START")

    hours_start = _parse_time(
        "BUSINESS_HOURS_START", os.getenv("BUSINESS_HOURS_START", defaults.business_hours_start.isoformat())
    )
    hours_end = _parse_time(
        "BUSINESS_HOURS_END", os.getenv("BUSINESS_HOURS_END", defaults.business_hours_end.isoformat())
    )
    if hours_end < hours_start:
        # Same-day window only; no wraparound past midnight.
        raise RuntimeError("BUSINESS_HOURS_END must not be before BUSINESS_HOURS_START")

    reconnect_command = tuple(
        shlex.split(os.getenv("VPN_RECONNECT_COMMAND", " ".join(defaults.vpn_reconnect_command)))
    )
    if not reconnect_command:
        raise RuntimeError("VPN_RECONNECT_COMMAND is empty")

    fetch_retry_attempts = _parse_int("FETCH_RETRY_ATTEMPTS", defaults.fetch_retry_attempts)
    if fetch_retry_attempts < 1:
        raise RuntimeError("FETCH_RETRY_ATTEMPTS must be >= 1")

    mention = os.getenv("KEYBASE_MENTION", "").strip().lstrip("@")

    return Settings(
        url=os.getenv("PCTA_URL", defaults.url),
        interval_min_seconds=interval_min_seconds,
        interval_max_seconds=interval_max_seconds,
        rejitter_each_tick=_parse_bool("REJITTER_EACH_TICK", defaults.rejitter_each_tick),
        capacity_limit=capacity_limit,
        date_range=DateRange(range_start, range_end),
        business_hours_start=hours_start,
        business_hours_end=hours_end,
        keybase_team=os.getenv("KEYBASE_TEAM", defaults.keybase_team),
        keybase_mention=mention or None,
        keybase_topics={
            Channel.LOGS: os.getenv("KEYBASE_TOPIC_LOGS", defaults.keybase_topics[Channel.LOGS]),
            Channel.ALERTS: os.getenv("KEYBASE_TOPIC_ALERTS", defaults.keybase_topics[Channel.ALERTS]),
            Channel.ERRORS: os.getenv("KEYBASE_TOPIC_ERRORS", defaults.keybase_topics[Channel.ERRORS]),
        },
        keybase_binary=os.getenv("KEYBASE_BINARY", defaults.keybase_binary),
        keybase_timeout_seconds=_parse_float("KEYBASE_TIMEOUT_SECONDS", defaults.keybase_timeout_seconds),
        vpn_reconnect_command=reconnect_command,
        fetch_timeout_seconds=_parse_float("FETCH_TIMEOUT_SECONDS", defaults.fetch_timeout_seconds),
        fetch_retry_attempts=fetch_retry_attempts,
    )
