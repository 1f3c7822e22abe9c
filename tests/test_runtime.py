from __future__ import annotations

from datetime import datetime

import pytest

from profittracker.domain.phase4 import ValidationError, format_duration, parse_duration, subtract_duration
from profittracker.domain.phase4.runtime import MS_PER_HOUR


def test_parse_compact_runtime() -> None:
    assert parse_duration("1d 6h 53m") == pytest.approx(30 + 53 / 60)


def test_parse_german_words() -> None:
    assert parse_duration("2 Tage 3 Stunden") == pytest.approx(51.0)
    assert parse_duration("45 Minuten") == pytest.approx(0.75)


def test_parse_minutes_not_confused_with_min_prefix() -> None:
    assert parse_duration("90 min") == pytest.approx(1.5)
    assert parse_duration("1h 30s") == pytest.approx(1 + 30 / 3600)


def test_parse_unreadable_is_zero() -> None:
    assert parse_duration("") == 0.0
    assert parse_duration(None) == 0.0
    assert parse_duration("läuft noch") == 0.0


def test_format_duration() -> None:
    assert format_duration(30 + 53 / 60) == "1d 6h 53m"
    assert format_duration(5.5) == "5h 30m"
    assert format_duration(0) == "0h 0m"
    assert format_duration(-3) == "0h 0m"


def test_subtract_duration_datetime() -> None:
    end = datetime(2026, 10, 5, 14, 30)
    assert subtract_duration(end, "1d 2h") == datetime(2026, 10, 4, 12, 30)


def test_subtract_duration_epoch_ms() -> None:
    end = 10 * MS_PER_HOUR
    assert subtract_duration(end, "2h") == 8 * MS_PER_HOUR


def test_subtract_duration_unparseable_runtime() -> None:
    with pytest.raises(ValidationError) as exc:
        subtract_duration(datetime(2026, 10, 5), "n/a")
    assert exc.value.field == "runtime"


@pytest.mark.parametrize("text", ["1d 6h 53m", "2 Tage 3 Stunden", "45 min", "3h", "10 days 1 hour"])
def test_format_is_stable_under_reparse(text) -> None:
    once = format_duration(parse_duration(text))
    assert format_duration(parse_duration(once)) == once
