from __future__ import annotations

import datetime as dt
import enum
from dataclasses import dataclass


@dataclass(frozen=True)
class CalendarRecord:
    """One record of the embedded calendar, exactly as the site sends it.

    Both fields stay text here; they are parsed (and validated) by the filter.
    """

    start_date: str  # YYYY-MM-DD
    num: str  # unsigned integer as a string


@dataclass(frozen=True)
class CalendarEntry:
    start_date: dt.date
    count: int


@dataclass(frozen=True)
class Calendar:
    # Informational only: filtering uses the configured capacity limit.
    limit: int
    records: tuple[CalendarRecord, ...]


@dataclass(frozen=True)
class DateRange:
    """Start is exclusive, end is inclusive."""

    start: dt.date
    end: dt.date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Date range end {self.end} is before start {self.start}")

    def contains(self, day: dt.date) -> bool:
        return self.start < day <= self.end


@dataclass(frozen=True)
class Opening:
    start_date: dt.date
    remaining: int


@dataclass(frozen=True)
class ScrapeSuccess:
    openings: tuple[Opening, ...]


@dataclass(frozen=True)
class ScrapeFailure:
    description: str


ScrapeOutcome = ScrapeSuccess | ScrapeFailure


class Channel(enum.Enum):
    LOGS = "logs"
    ALERTS = "alerts"
    ERRORS = "errors"


@dataclass(frozen=True)
class NotificationPayload:
    channel: Channel
    body: str


class PermitWatchError(RuntimeError):
    """Base class for failures the polling loop knows how to report."""


class FetchError(PermitWatchError):
    """The availability page could not be downloaded."""


class ExtractionError(PermitWatchError):
    """The embedded calendar could not be pulled out of the page."""


class DataRegionNotFoundError(ExtractionError):
    """No (or more than one) `var data = ...` blob in the markup.

    Usually means we got a CAPTCHA / block page instead of the calendar.
    """


class MalformedDataError(ExtractionError):
    """The blob was found but isn't the JSON shape we expect."""


class ParseError(PermitWatchError):
    """A calendar record has a bad date or count."""


class DeliveryError(PermitWatchError):
    """A chat notification could not be delivered."""


class RemediationError(PermitWatchError):
    """The VPN reconnection command failed."""
