from __future__ import annotations

import datetime as dt
import re

from pctabot.domain import Calendar, CalendarEntry, CalendarRecord, DateRange, Opening, ParseError

START_DATE_FORMAT = "%Y-%m-%d"

_UINT_RE = re.compile(r"\+?[0-9]+")
_UINT_MAX = 2**64 - 1
_UINT_MAX_DIGITS = len(str(_UINT_MAX))


def _parse_count(raw: str) -> int | None:
    if not _UINT_RE.fullmatch(raw):
        return None
    # Bound the length first: int() refuses very long digit strings.
    digits = raw.lstrip("+").lstrip("0") or "0"
    if len(digits) > _UINT_MAX_DIGITS:
        return None
    value = int(digits)
    return value if value <= _UINT_MAX else None


def parse_entry(record: CalendarRecord) -> CalendarEntry:
    try:
        start_date = dt.datetime.strptime(record.start_date, START_DATE_FORMAT).date()
    except ValueError as e:
        raise ParseError(
            f"Invalid 'start_date' string from PCTA = '{record.start_date}', "
            f"does not match {START_DATE_FORMAT} (num = '{record.num}')"
        ) from e

    count = _parse_count(record.num)
    if count is None:
        raise ParseError(
            f"Invalid 'num' string from PCTA = '{record.num}' on start_date = '{record.start_date}'"
        )

    return CalendarEntry(start_date=start_date, count=count)


def filter_calendar(calendar: Calendar, date_range: DateRange, limit: int) -> list[Opening]:
    """Return the start dates inside `date_range` that still have room under `limit`.

    Every record is parsed before anything is returned: one malformed record
    fails the whole call, since it usually means the site changed its format.
    """
    entries = [parse_entry(r) for r in calendar.records]
    return [
        Opening(start_date=e.start_date, remaining=limit - e.count)
        for e in entries
        if date_range.contains(e.start_date) and e.count < limit
    ]
