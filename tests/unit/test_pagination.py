"""Pagination engine tests."""

from datetime import datetime, timedelta, timezone

import pytest

from workflow_world.errors import ValidationError
from workflow_world.models import PaginationOptions
from workflow_world.pagination import decode_cursor, encode_cursor, paginate

BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _records(count):
    return [{"id": f"rec{i}", "at": BASE + timedelta(seconds=i)} for i in range(count)]


def _page(records, **options):
    return paginate(
        records,
        created_at=lambda r: r["at"],
        record_id=lambda r: r["id"],
        options=PaginationOptions(**options),
    )


def test_cursor_roundtrip():
    cursor = encode_cursor(BASE, "rec1")
    assert decode_cursor(cursor) == (BASE, "rec1")


def test_invalid_cursor_raises_validation_error():
    with pytest.raises(ValidationError) as exc_info:
        decode_cursor("%%%")
    assert exc_info.value.field == "cursor"


def test_pages_descending():
    records = _records(5)

    first = _page(records, limit=2, sort_order="desc")
    assert [r["id"] for r in first.data] == ["rec4", "rec3"]
    assert first.has_more and first.cursor

    second = _page(records, limit=2, sort_order="desc", cursor=first.cursor)
    assert [r["id"] for r in second.data] == ["rec2", "rec1"]
    assert second.has_more

    third = _page(records, limit=2, sort_order="desc", cursor=second.cursor)
    assert [r["id"] for r in third.data] == ["rec0"]
    assert not third.has_more
    assert third.cursor is None


def test_default_sort_order_is_configurable():
    records = _records(3)
    page = paginate(
        records,
        created_at=lambda r: r["at"],
        record_id=lambda r: r["id"],
        default_sort_order="asc",
    )
    assert [r["id"] for r in page.data] == ["rec0", "rec1", "rec2"]
    assert not page.has_more


def test_ties_are_broken_by_id():
    records = [{"id": name, "at": BASE} for name in ["b", "c", "a"]]
    first = _page(records, limit=2, sort_order="asc")
    assert [r["id"] for r in first.data] == ["a", "b"]
    second = _page(records, limit=2, sort_order="asc", cursor=first.cursor)
    assert [r["id"] for r in second.data] == ["c"]


def test_default_limit():
    page = _page(_records(25))
    assert len(page.data) == 20
    assert page.has_more


def test_non_positive_limit_rejected():
    with pytest.raises(ValidationError):
        _page(_records(1), limit=0)


def test_mixed_timezones_sort_by_instant():
    later_local = datetime(2024, 1, 1, 2, 0, tzinfo=timezone(timedelta(hours=2)))  # 00:00 UTC
    records = [
        {"id": "utc", "at": BASE + timedelta(minutes=1)},
        {"id": "local", "at": later_local},
    ]
    page = _page(records, sort_order="asc")
    assert [r["id"] for r in page.data] == ["local", "utc"]


def test_options_reject_non_positive_limit():
    for limit in [0, -3]:
        with pytest.raises(ValidationError) as exc_info:
            PaginationOptions(limit=limit)
        assert exc_info.value.field == "limit"
    assert PaginationOptions(limit=1).limit == 1
