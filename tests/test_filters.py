from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from clustermap.filters import (
    categories_of,
    filter_records,
    parse_date_range,
    resolve_selection,
    visible_records,
)
from clustermap.models import Bounds, DateRange


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _ids(records):
    return [record.id for record in records]


class TestFilterRecords:
    def test_all_keeps_everything_in_order(self, complaints):
        assert _ids(filter_records(complaints)) == [1, 2, 3, 4, 5]

    def test_category_match_ignores_case(self, complaints):
        assert _ids(filter_records(complaints, category="graffiti")) == [1, 3]
        assert _ids(filter_records(complaints, category="RODENT")) == [2, 5]

    def test_unknown_category_is_empty(self, complaints):
        assert filter_records(complaints, category="Potholes") == []

    def test_date_window(self, complaints):
        window = DateRange.last(timedelta(days=7), NOW)
        assert _ids(filter_records(complaints, date_range=window)) == [1, 3, 5]

    def test_category_and_date_combine(self, complaints):
        window = DateRange.last(timedelta(days=7), NOW)
        assert _ids(filter_records(complaints, category="Rodent", date_range=window)) == [5]

    def test_records_without_timestamp_drop_out_of_date_window(self, stations):
        window = DateRange.last(timedelta(days=365), NOW)
        assert filter_records(stations, date_range=window) == []
        assert len(filter_records(stations)) == 2


class TestDateRange:
    def test_half_open(self):
        start = datetime(2026, 10, 1, tzinfo=timezone.utc)
        end = datetime(2026, 10, 2, tzinfo=timezone.utc)
        window = DateRange(start=start, end=end)

        assert window.contains(start)
        assert not window.contains(end)
        assert not window.contains(start - timedelta(seconds=1))

    def test_unbounded(self):
        assert DateRange().contains(datetime(1990, 1, 1, tzinfo=timezone.utc))


class TestParseDateRange:
    def test_all_means_no_window(self):
        assert parse_date_range("all", NOW) is None
        assert parse_date_range(" ALL ", NOW) is None

    @pytest.mark.parametrize(
        ("token", "delta"),
        [
            ("24h", timedelta(hours=24)),
            ("7d", timedelta(days=7)),
            ("30d", timedelta(days=30)),
            ("2w", timedelta(weeks=2)),
        ],
    )
    def test_trailing_windows(self, token, delta):
        assert parse_date_range(token, NOW) == DateRange(start=NOW - delta, end=None)

    @pytest.mark.parametrize("token", ["", "7", "d7", "7y", "-3d", "last week"])
    def test_rejects_unknown_tokens(self, token):
        with pytest.raises(ValueError):
            parse_date_range(token, NOW)


class TestVisibleRecords:
    def test_none_bounds_keeps_everything(self, complaints):
        assert _ids(visible_records(complaints, None)) == [1, 2, 3, 4, 5]

    def test_bounds_are_inclusive(self, complaints):
        bounds = Bounds(min_lat=42.36, max_lat=42.365, min_lng=-71.062, max_lng=-71.058)
        assert _ids(visible_records(complaints, bounds)) == [1, 2, 3]


class TestResolveSelection:
    def test_keeps_present_id(self, complaints):
        assert resolve_selection(3, complaints) == 3

    def test_clears_missing_id(self, complaints):
        assert resolve_selection(99, complaints) is None

    def test_none_stays_none(self, complaints):
        assert resolve_selection(None, complaints) is None


def test_categories_in_first_seen_order(complaints):
    assert categories_of(complaints) == ["Graffiti", "Rodent", "Tree"]


def test_naive_now_is_treated_as_utc():
    window = parse_date_range("7d", datetime(2026, 10, 19, 12, 0))

    assert window.start == NOW - timedelta(days=7)
    assert window.start.tzinfo is timezone.utc


def test_date_range_requires_aware_bounds():
    with pytest.raises(ValueError, match="DateRange.end"):
        DateRange(end=datetime(2026, 10, 19))
