"""
Tests for datetime helpers and the club season calendar.
"""

from datetime import datetime

import pytest
import pytz

from rundeklar.utils.datetime_utils import ensure_utc, isoformat_or_none, season_for_date, utcnow


@pytest.mark.parametrize(
    "value, season",
    [
        (datetime(2025, 8, 1, 12, tzinfo=pytz.UTC), "2025-2026"),
        (datetime(2025, 12, 31, 12, tzinfo=pytz.UTC), "2025-2026"),
        (datetime(2026, 1, 1, 12, tzinfo=pytz.UTC), "2025-2026"),
        (datetime(2026, 7, 31, 12, tzinfo=pytz.UTC), "2025-2026"),
        (datetime(2026, 8, 15, 12, tzinfo=pytz.UTC), "2026-2027"),
    ],
)
def test_season_for_date(value, season):
    assert season_for_date(value) == season


def test_season_boundary_uses_club_timezone():
    # 23:30 UTC on July 31 is already August 1 in Copenhagen
    late_july = datetime(2026, 7, 31, 23, 30, tzinfo=pytz.UTC)

    assert season_for_date(late_july, "Europe/Copenhagen") == "2026-2027"
    assert season_for_date(late_july, "UTC") == "2025-2026"


def test_ensure_utc_handles_naive_values():
    naive = datetime(2026, 3, 1, 10, 0)

    assert ensure_utc(naive).tzinfo is not None
    assert ensure_utc(naive).hour == 10


def test_utcnow_is_aware():
    assert utcnow().tzinfo is not None


def test_isoformat_or_none():
    assert isoformat_or_none(None) is None
    assert isoformat_or_none(datetime(2026, 3, 1, 10, 0)) == "2026-03-01T10:00:00+00:00"
