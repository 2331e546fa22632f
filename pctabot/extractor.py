from __future__ import annotations

import json
import re
from typing import Any

from bs4 import BeautifulSoup

from pctabot.domain import Calendar, CalendarRecord, DataRegionNotFoundError, MalformedDataError

SCRIPT_SELECTOR = ".container > script[type='text/javascript']"

# The site currently emits `var data = {...};`; older revisions wrapped the
# object in parentheses.
DATA_PATTERN = re.compile(r"var data = \(?(\{.*\})\)?;")


def _script_texts(page_text: str) -> list[str]:
    soup = BeautifulSoup(page_text, "html.parser")
    scripts = soup.select(SCRIPT_SELECTOR)
    if not scripts:
        # Layout changes shouldn't hide the blob from us as long as it's still inline.
        scripts = soup.find_all("script")
    return [s.string or "" for s in scripts]


def find_data_blob(page_text: str) -> str:
    scripts = _script_texts(page_text)
    if not scripts:
        raise DataRegionNotFoundError(
            f"No <script> tag matching {SCRIPT_SELECTOR!r} in the PCTA page "
            "(possible CAPTCHA or block page)"
        )

    matches: list[str] = []
    for text in scripts:
        matches.extend(m.group(1) for m in DATA_PATTERN.finditer(text))

    if not matches:
        raise DataRegionNotFoundError(
            f"Regex {DATA_PATTERN.pattern!r} matched nothing in {len(scripts)} <script> tag(s) "
            "(possible CAPTCHA or block page)"
        )
    if len(matches) > 1:
        raise DataRegionNotFoundError(
            f"Regex {DATA_PATTERN.pattern!r} is ambiguous: {len(matches)} matches, expected exactly one"
        )
    return matches[0]


def _is_uint(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _parse_calendar(raw: Any) -> Calendar:
    if not isinstance(raw, dict):
        raise MalformedDataError(f"Expected a JSON object, got {type(raw).__name__}")
    if not _is_uint(raw.get("limit")):
        raise MalformedDataError(f"Field 'limit' must be an unsigned integer, got {raw.get('limit')!r}")

    calendar = raw.get("calendar")
    if not isinstance(calendar, list):
        raise MalformedDataError(f"Field 'calendar' must be a list, got {type(calendar).__name__}")

    records: list[CalendarRecord] = []
    for i, item in enumerate(calendar):
        if not isinstance(item, dict):
            raise MalformedDataError(f"calendar[{i}] must be an object, got {item!r}")
        start_date = item.get("start_date")
        num = item.get("num")
        if not isinstance(start_date, str) or not isinstance(num, str):
            raise MalformedDataError(
                f"calendar[{i}] must have string 'start_date' and 'num' fields, got {item!r}"
            )
        records.append(CalendarRecord(start_date=start_date, num=num))

    return Calendar(limit=raw["limit"], records=tuple(records))


def extract(page_text: str) -> Calendar:
    blob = find_data_blob(page_text)
    try:
        raw = json.loads(blob)
    except json.JSONDecodeError as e:
        raise MalformedDataError(
            f"Invalid JSON in the PCTA <script> tag ({e}); investigate the script tag or the regex result"
        ) from e
    return _parse_calendar(raw)
