"""Cursor pagination shared by every record-backed World.

Records are ordered by creation time, then by their own identifier so the
order is total even when timestamps collide. A cursor encodes the ordering key
of the last record of a page and nothing else, so resuming from it never
depends on server-side state.

Listings are weakly consistent: records written between two page requests can
show up twice or be skipped at a page boundary. Callers that need a snapshot
must serialize writes themselves.
"""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, TypeVar

from .errors import ValidationError
from .models import Page, PaginationOptions, SortOrder

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 20

T = TypeVar("T")

_SEPARATOR = "|"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def encode_cursor(created_at: datetime, record_id: str) -> str:
    raw = f"{_as_utc(created_at).isoformat()}{_SEPARATOR}{record_id}"
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> tuple[datetime, str]:
    try:
        raw = base64.urlsafe_b64decode(cursor.encode("ascii")).decode("utf-8")
        timestamp, record_id = raw.split(_SEPARATOR, 1)
        return _as_utc(datetime.fromisoformat(timestamp)), record_id
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise ValidationError(f"Invalid cursor: {cursor!r}", field="cursor") from exc


def paginate(
    records: Iterable[T],
    *,
    created_at: Callable[[T], datetime],
    record_id: Callable[[T], str],
    options: Optional[PaginationOptions] = None,
    default_sort_order: SortOrder = "desc",
    default_limit: int = DEFAULT_PAGE_LIMIT,
) -> Page[T]:
    """Return one page of ``records`` according to ``options``."""
    options = options or PaginationOptions()
    sort_order = options.sort_order or default_sort_order
    limit = options.limit if options.limit is not None else default_limit
    if limit < 1:
        raise ValidationError(f"limit must be a positive integer, got {limit}", field="limit")

    def key(record: T) -> tuple[datetime, str]:
        return _as_utc(created_at(record)), record_id(record)

    descending = sort_order == "desc"
    ordered = sorted(records, key=key, reverse=descending)

    if options.cursor:
        position = decode_cursor(options.cursor)
        if descending:
            ordered = [r for r in ordered if key(r) < position]
        else:
            ordered = [r for r in ordered if key(r) > position]

    data = ordered[:limit]
    has_more = len(ordered) > limit
    cursor = None
    if has_more and data:
        last = data[-1]
        cursor = encode_cursor(created_at(last), record_id(last))

    logger.debug(
        f"Paginated {len(data)} record(s) sort_order={sort_order} limit={limit} has_more={has_more}"
    )
    return Page(data=data, cursor=cursor, has_more=has_more)


__all__ = ["DEFAULT_PAGE_LIMIT", "encode_cursor", "decode_cursor", "paginate"]
