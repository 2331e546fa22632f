from __future__ import annotations

import datetime as dt
import re
from typing import Iterable

from pctabot.domain import Channel, NotificationPayload, Opening, ScrapeFailure, ScrapeOutcome, ScrapeSuccess


def format_wait(delta: dt.timedelta) -> str:
    total = max(int(delta.total_seconds()), 0)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}"


def _fence(text: str) -> str:
    # The fence must be longer than any backtick run inside the text.
    longest = max((len(run) for run in re.findall(r"`+", text)), default=0)
    return "`" * max(3, longest + 1)


def _format_openings(openings: Iterable[Opening]) -> str:
    return "\n".join([f"* {o.start_date.isoformat()}: {o.remaining}" for o in openings])


def classify(outcome: ScrapeOutcome, timestamp: str, *, mention: str | None = None) -> NotificationPayload:
    if isinstance(outcome, ScrapeFailure):
        fence = _fence(outcome.description)
        return NotificationPayload(
            channel=Channel.ERRORS,
            body=f"Failed to scrape PCTA page with error = \n\n{fence}\n{outcome.description}\n{fence}\n",
        )

    if isinstance(outcome, ScrapeSuccess):
        if not outcome.openings:
            return NotificationPayload(
                channel=Channel.LOGS,
                body=f"`{timestamp}` @ There are zero available permits in the date range",
            )

        prefix = f"@{mention} - " if mention else ""
        return NotificationPayload(
            channel=Channel.ALERTS,
            body=(
                f"{prefix}*There are {len(outcome.openings)} NEW starting dates open!*\n\n"
                f"{_format_openings(outcome.openings)}\n\n"
                f"`{timestamp}` - Scrape time\n"
            ),
        )

    raise TypeError(f"Unknown scrape outcome: {outcome!r}")


def outside_hours_notice(
    timestamp: str, *, window_start: dt.time, window_end: dt.time, wait: dt.timedelta
) -> NotificationPayload:
    return NotificationPayload(
        channel=Channel.LOGS,
        body=(
            f"`{timestamp}` @ Not scraping outside business hours "
            f"{window_start:%H:%M}-{window_end:%H:%M}. Next scrape window opens in {format_wait(wait)}"
        ),
    )


def reconnect_notice(timestamp: str, error: Exception | None = None) -> NotificationPayload:
    if error is None:
        body = f"`{timestamp}` @ Scrape failed, reconnected VPN"
    else:
        body = f"`{timestamp}` @ Scrape failed, VPN reconnection attempt failed ({type(error).__name__}: {error})"
    return NotificationPayload(channel=Channel.LOGS, body=body)
