"""Category, date-range and viewport predicates plus selection re-resolution."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from .models import ALL_CATEGORIES, Bounds, DateRange, Record


_RANGE_TOKEN = re.compile(r"^(\d+)([hdw])$")
_RANGE_UNITS = {"h": "hours", "d": "days", "w": "weeks"}


def filter_records(
    records: Sequence[Record],
    *,
    category: str = ALL_CATEGORIES,
    date_range: DateRange | None = None,
) -> list[Record]:
    """Active collection: category filter first, then the date window."""
    wanted = category.strip().casefold()
    if wanted and wanted != ALL_CATEGORIES:
        active = [record for record in records if record.category.casefold() == wanted]
    else:
        active = list(records)

    if date_range is not None:
        active = [
            record
            for record in active
            if record.timestamp is not None and date_range.contains(record.timestamp)
        ]
    return active


def visible_records(records: Sequence[Record], bounds: Bounds | None) -> list[Record]:
    if bounds is None:
        return list(records)
    return [record for record in records if bounds.contains(record.coord)]


def resolve_selection(selected_id: int | None, records: Iterable[Record]) -> int | None:
    """Keep the selection only while its id is still in `records`."""
    if selected_id is None:
        return None
    for record in records:
        if record.id == selected_id:
            return selected_id
    return None


def parse_date_range(token: str, now: datetime) -> DateRange | None:
    """Parse `all`, `<N>h`, `<N>d` or `<N>w` into a trailing window ending now.

    A naive `now` is read as UTC, like naive record timestamps.
    """
    cleaned = token.strip().casefold()
    if cleaned == ALL_CATEGORIES:
        return None
    match = _RANGE_TOKEN.match(cleaned)
    if match is None:
        raise ValueError(f"Unsupported date range '{token}'; use all, <N>h, <N>d or <N>w")
    amount = int(match.group(1))
    delta = timedelta(**{_RANGE_UNITS[match.group(2)]: amount})
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return DateRange.last(delta, now)


def categories_of(records: Iterable[Record]) -> list[str]:
    seen: dict[str, None] = {}
    for record in records:
        seen.setdefault(record.category, None)
    return list(seen)
