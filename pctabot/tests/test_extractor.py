from __future__ import annotations

import pytest

from pctabot.domain import CalendarRecord, DataRegionNotFoundError, ExtractionError, MalformedDataError
from pctabot.extractor import extract, find_data_blob


def _page(script: str, *, in_container: bool = True) -> str:
    tag = f'<script type="text/javascript">{script}</script>'
    body = f'<div class="container">{tag}</div>' if in_container else tag
    return f"<html><head><title>PCTA</title></head><body>{body}</body></html>"


def test_extract_parenthesised_blob_from_container_script() -> None:
    page = _page('var data = ({"limit":50,"calendar":[{"start_date":"2023-04-10","num":"30"}]});')

    calendar = extract(page)

    assert calendar.limit == 50
    assert calendar.records == (CalendarRecord(start_date="2023-04-10", num="30"),)


def test_extract_plain_blob_keeps_record_order() -> None:
    page = _page(
        'var data = {"limit":50,"calendar":['
        '{"start_date":"2023-04-03","num":"50"},'
        '{"start_date":"2023-04-02","num":"12"}]};'
    )

    calendar = extract(page)

    assert [r.start_date for r in calendar.records] == ["2023-04-03", "2023-04-02"]


def test_extract_falls_back_to_any_script_tag() -> None:
    page = _page('var data = {"limit":1,"calendar":[]};', in_container=False)

    assert extract(page).records == ()


def test_page_without_scripts_looks_like_a_block_page() -> None:
    page = "<html><body><h1>Please verify you are a human</h1></body></html>"

    with pytest.raises(DataRegionNotFoundError, match="CAPTCHA"):
        extract(page)


def test_script_without_data_reports_the_pattern() -> None:
    page = _page("var somethingElse = 1;")

    with pytest.raises(DataRegionNotFoundError, match="var data"):
        extract(page)


def test_two_data_blobs_are_ambiguous() -> None:
    page = _page(
        'var data = {"limit":1,"calendar":[]};\nvar data = {"limit":2,"calendar":[]};'
    )

    with pytest.raises(DataRegionNotFoundError, match="ambiguous"):
        find_data_blob(page)


def test_invalid_json_is_malformed_not_missing() -> None:
    page = _page("var data = ({limit: 50, calendar: []});")

    with pytest.raises(MalformedDataError, match="Invalid JSON") as exc_info:
        extract(page)
    assert not isinstance(exc_info.value, DataRegionNotFoundError)


@pytest.mark.parametrize(
    "blob",
    [
        '{"calendar":[]}',
        '{"limit":-1,"calendar":[]}',
        '{"limit":"50","calendar":[]}',
        '{"limit":50,"calendar":{}}',
        '{"limit":50,"calendar":[{"start_date":"2023-04-10","num":30}]}',
        '{"limit":50,"calendar":[{"num":"30"}]}',
        '{"limit":50,"calendar":["2023-04-10"]}',
    ],
)
def test_wrong_shape_is_malformed(blob: str) -> None:
    with pytest.raises(MalformedDataError):
        extract(_page(f"var data = ({blob});"))


def test_all_failures_share_extraction_error_base() -> None:
    with pytest.raises(ExtractionError):
        extract("")
