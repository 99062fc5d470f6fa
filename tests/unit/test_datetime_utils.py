"""Tests for UTC datetime helpers."""

from datetime import UTC, datetime, timedelta, timezone

from staccato_api.shared.utils.datetime import to_epoch_seconds, utc_now


def test_utc_now_is_aware() -> None:
    assert utc_now().tzinfo is UTC


def test_to_epoch_seconds_aware() -> None:
    assert to_epoch_seconds(datetime(1970, 1, 1, 0, 1, tzinfo=UTC)) == 60
    plus_two = timezone(timedelta(hours=2))
    assert to_epoch_seconds(datetime(1970, 1, 1, 2, 0, 30, tzinfo=plus_two)) == 30


def test_to_epoch_seconds_naive_is_utc() -> None:
    assert to_epoch_seconds(datetime(1970, 1, 2)) == 86400
