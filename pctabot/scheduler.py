from __future__ import annotations

import asyncio
import datetime as dt
import enum
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

from tenacity import RetryCallState, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from pctabot.availability import filter_calendar
from pctabot.classifier import classify, format_wait, outside_hours_notice, reconnect_notice
from pctabot.config import Settings
from pctabot.domain import (
    DeliveryError,
    ExtractionError,
    FetchError,
    NotificationPayload,
    ParseError,
    RemediationError,
    ScrapeFailure,
    ScrapeOutcome,
    ScrapeSuccess,
)
from pctabot.extractor import extract
from pctabot.keybase_notifier import Notifier
from pctabot.reconnector import Reconnector

logger = logging.getLogger(__name__)


class PageSource(Protocol):
    async def fetch(self) -> str: ...


class SchedulerState(enum.Enum):
    IDLE = "idle"
    WAITING = "waiting"
    OUTSIDE_WINDOW = "outside_window"
    TICKING = "ticking"


@dataclass(frozen=True)
class BusinessHours:
    """Same-day time-of-day window, inclusive at both ends."""

    start: dt.time
    end: dt.time

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Business hours end {self.end} is before start {self.start}")

    def contains(self, t: dt.time) -> bool:
        return self.start <= t <= self.end

    def until_open(self, now: dt.datetime) -> dt.timedelta:
        if self.contains(now.time()):
            return dt.timedelta(0)
        opens = dt.datetime.combine(now.date(), self.start, tzinfo=now.tzinfo)
        if now.time() > self.end:
            opens += dt.timedelta(days=1)
        return opens - now


def draw_interval(rng: random.Random, min_seconds: int, max_seconds: int) -> int:
    return rng.randint(min_seconds, max_seconds)


def _local_now() -> dt.datetime:
    return dt.datetime.now().astimezone()


def _describe(exc: BaseException) -> str:
    msg = str(exc).strip()
    return f"{type(exc).__name__}: {msg}" if msg else type(exc).__name__


def _short_exc(retry_state: RetryCallState) -> str | None:
    if retry_state.outcome is None or not retry_state.outcome.failed:
        return None
    exc = retry_state.outcome.exception()
    if exc is None:
        return None
    return _describe(exc)


def _log_after_attempt(retry_state: RetryCallState) -> None:
    if retry_state.outcome is not None and retry_state.outcome.failed:
        logger.warning("Fetch attempt %s failed (%s)", retry_state.attempt_number, _short_exc(retry_state))


def _log_before_sleep(retry_state: RetryCallState) -> None:
    sleep_seconds = getattr(retry_state.next_action, "sleep", None)
    if sleep_seconds is None:
        logger.info("Retrying fetch after a pause...")
        return
    logger.info("Retrying fetch (attempt %s) in %.0f sec.", retry_state.attempt_number + 1, sleep_seconds)


class Scheduler:
    """Polls the availability page on a jittered interval during business hours.

    Ticks run strictly one after another: a tick (including remediation and
    every notification it produces) completes before the next wait starts.
    Environmental failures become notifications; only bugs escape `tick()`.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        fetcher: PageSource,
        notifier: Notifier,
        reconnector: Reconnector,
        clock: Callable[[], dt.datetime] = _local_now,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings
        self.fetcher = fetcher
        self.notifier = notifier
        self.reconnector = reconnector
        self.hours = BusinessHours(settings.business_hours_start, settings.business_hours_end)
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.interval_seconds = draw_interval(
            self._rng, settings.interval_min_seconds, settings.interval_max_seconds
        )
        self.state = SchedulerState.IDLE

    async def _fetch_page(self) -> str:
        decorated = retry(
            stop=stop_after_attempt(self.settings.fetch_retry_attempts),
            wait=wait_exponential(multiplier=2, min=2, max=4),
            retry=retry_if_exception_type(FetchError),
            after=_log_after_attempt,
            before_sleep=_log_before_sleep,
            reraise=True,
        )(self.fetcher.fetch)

        return await decorated()

    async def scrape(self) -> ScrapeOutcome:
        try:
            page = await self._fetch_page()
            calendar = extract(page)
            openings = filter_calendar(calendar, self.settings.date_range, self.settings.capacity_limit)
        except (FetchError, ExtractionError, ParseError) as e:
            logger.error("Scrape failed (%s)", _describe(e))
            return ScrapeFailure(description=_describe(e))

        logger.info("Scrape ok: %d record(s), %d opening(s)", len(calendar.records), len(openings))
        return ScrapeSuccess(openings=tuple(openings))

    async def _notify(self, payload: NotificationPayload) -> None:
        logger.info("[%s] %s", payload.channel.value, payload.body)
        try:
            await self.notifier.send(payload)
        except DeliveryError as e:
            logger.warning("Failed to deliver %s notification (%s)", payload.channel.value, e)

    async def _remediate(self, timestamp: str) -> None:
        error: RemediationError | None = None
        try:
            await self.reconnector.reconnect()
        except RemediationError as e:
            logger.warning("VPN reconnection failed (%s)", e)
            error = e
        await self._notify(reconnect_notice(timestamp, error))

    async def tick(self) -> ScrapeOutcome | None:
        """Run one poll. Returns None when outside business hours."""
        now = self._clock()
        timestamp = now.isoformat(timespec="seconds")

        if not self.hours.contains(now.time()):
            self.state = SchedulerState.OUTSIDE_WINDOW
            wait = self.hours.until_open(now)
            logger.info("Outside business hours, next window opens in %s", format_wait(wait))
            await self._notify(
                outside_hours_notice(
                    timestamp,
                    window_start=self.hours.start,
                    window_end=self.hours.end,
                    wait=wait,
                )
            )
            return None

        self.state = SchedulerState.TICKING
        outcome = await self.scrape()
        await self._notify(classify(outcome, timestamp, mention=self.settings.keybase_mention))

        if isinstance(outcome, ScrapeFailure):
            await self._remediate(timestamp)

        logger.info("%s - Completed a scrape of PCTA site", timestamp)
        return outcome

    async def run_forever(self) -> None:
        logger.info(
            "Scheduler started. Interval=%ss (drawn from %s-%ss), business hours %s-%s",
            self.interval_seconds,
            self.settings.interval_min_seconds,
            self.settings.interval_max_seconds,
            self.hours.start,
            self.hours.end,
        )
        while True:
            await self.tick()
            if self.settings.rejitter_each_tick:
                self.interval_seconds = draw_interval(
                    self._rng, self.settings.interval_min_seconds, self.settings.interval_max_seconds
                )
            self.state = SchedulerState.WAITING
            logger.info("Next scrape in %ss", self.interval_seconds)
            await self._sleep(self.interval_seconds)
