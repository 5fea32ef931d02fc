from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from oi_history.analysis.history import (
    coerce_snapshots,
    day_bounds,
    filter_by_date,
    filter_by_trailing_window,
    format_time,
    is_past_date,
    to_local,
    trailing_window_hours,
)
from tests.snapshot_helpers import IST, make_snapshot

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=IST)


def _at(*stamps: datetime):
    return coerce_snapshots([make_snapshot(ts) for ts in stamps])


def test_no_selected_date_passes_through() -> None:
    snaps = _at(NOW - timedelta(days=3), NOW)
    assert filter_by_date(snaps, None, tz=IST) == snaps


def test_date_window_is_inclusive_local_day() -> None:
    snaps = _at(
        datetime(2026, 10, 18, 23, 59, 59, tzinfo=IST),
        datetime(2026, 10, 19, 0, 0, 0, tzinfo=IST),
        datetime(2026, 10, 19, 23, 59, 59, tzinfo=IST),
        datetime(2026, 10, 20, 0, 0, 0, tzinfo=IST),
    )
    kept = filter_by_date(snaps, date(2026, 10, 19), tz=IST)
    assert [s.timestamp for s in kept] == [snaps[1].timestamp, snaps[2].timestamp]


def test_date_window_converts_utc_timestamps() -> None:
    # 20:00 UTC on the 18th is 01:30 IST on the 19th
    snaps = _at(datetime(2026, 10, 18, 20, 0, tzinfo=timezone.utc))
    assert len(filter_by_date(snaps, date(2026, 10, 19), tz=IST)) == 1
    assert filter_by_date(snaps, date(2026, 10, 18), tz=IST) == []


def test_day_bounds() -> None:
    start, end = day_bounds(date(2026, 10, 19), IST)
    assert start == datetime(2026, 10, 19, 0, 0, tzinfo=IST)
    assert end.hour == 23 and end.minute == 59 and end.second == 59
    assert end.date() == date(2026, 10, 19)


def test_trailing_window_hours_mapping() -> None:
    assert trailing_window_hours("1h") == 1
    assert trailing_window_hours("3h") == 3
    assert trailing_window_hours("6h") == 6
    assert trailing_window_hours("24h") == 24
    assert trailing_window_hours("2d") == 24
    assert trailing_window_hours("all") is None
    assert trailing_window_hours(None) is None


def test_trailing_window_keeps_cutoff_inclusive() -> None:
    snaps = _at(
        NOW - timedelta(minutes=90),
        NOW - timedelta(hours=1),
        NOW - timedelta(minutes=30),
    )
    kept = filter_by_trailing_window(snaps, "1h", now=NOW, tz=IST)
    assert [s.timestamp for s in kept] == [snaps[1].timestamp, snaps[2].timestamp]


def test_trailing_window_all_and_absent_pass_through() -> None:
    snaps = _at(NOW - timedelta(days=2), NOW)
    assert filter_by_trailing_window(snaps, "all", now=NOW, tz=IST) == snaps
    assert filter_by_trailing_window(snaps, None, now=NOW, tz=IST) == snaps


def test_unknown_token_uses_24h_window() -> None:
    snaps = _at(NOW - timedelta(hours=30), NOW - timedelta(hours=20))
    kept = filter_by_trailing_window(snaps, "weekly", now=NOW, tz=IST)
    assert [s.timestamp for s in kept] == [snaps[1].timestamp]


def test_past_date_bypasses_trailing_window() -> None:
    yesterday = date(2026, 10, 18)
    snaps = _at(
        datetime(2026, 10, 18, 9, 15, tzinfo=IST),
        datetime(2026, 10, 18, 15, 30, tzinfo=IST),
    )
    kept = filter_by_trailing_window(snaps, "1h", selected_date=yesterday, now=NOW, tz=IST)
    assert kept == snaps


def test_today_selected_still_applies_window() -> None:
    snaps = _at(NOW - timedelta(hours=5), NOW - timedelta(minutes=10))
    kept = filter_by_trailing_window(snaps, "3h", selected_date=NOW.date(), now=NOW, tz=IST)
    assert [s.timestamp for s in kept] == [snaps[1].timestamp]


def test_is_past_date() -> None:
    assert is_past_date(date(2026, 10, 18), now=NOW, tz=IST)
    assert not is_past_date(date(2026, 10, 19), now=NOW, tz=IST)
    assert not is_past_date(date(2026, 10, 20), now=NOW, tz=IST)
    assert not is_past_date(None, now=NOW, tz=IST)


def test_machine_zone_when_no_timezone_configured() -> None:
    snaps = _at(
        datetime(2026, 10, 19, 10, 0),
        datetime(2026, 10, 19, 12, 0).astimezone(),
        datetime(2026, 10, 20, 0, 0),
    )
    kept = filter_by_date(snaps, date(2026, 10, 19), tz=None)
    assert [s.timestamp for s in kept] == [snaps[0].timestamp, snaps[1].timestamp]
    assert format_time(snaps[0].timestamp) == "10:00:00"
    assert format_time(snaps[1].timestamp) == "12:00:00"


def test_naive_timestamp_is_read_in_configured_zone() -> None:
    (snap,) = _at(datetime(2026, 10, 19, 9, 15))
    assert snap.timestamp.tzinfo is None
    local = to_local(snap.timestamp, IST)
    assert local.utcoffset() == timedelta(hours=5, minutes=30)
    assert format_time(snap.timestamp, tz=IST) == "09:15:00"
    assert filter_by_date([snap], date(2026, 10, 19), tz=IST) == [snap]


def test_epoch_millisecond_timestamp() -> None:
    raw = make_snapshot(NOW)
    # 2025-10-19 03:45:00 UTC
    raw["timestamp"] = 1760845500000
    (snap,) = coerce_snapshots([raw])
    assert format_time(snap.timestamp, tz=IST) == "09:15:00"
    assert filter_by_date([snap], date(2025, 10, 19), tz=IST) == [snap]
    assert filter_by_date([snap], date(2025, 10, 18), tz=IST) == []
