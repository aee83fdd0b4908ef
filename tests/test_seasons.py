"""Tests for season and date helpers."""

import datetime
import os
import sys

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from scorevault.core.seasons import (
    calculate_season, get_current_season, parse_season, get_previous_season,
    get_next_season, format_date, format_score, from_millis, to_millis,
)


class TestCalculateSeason:
    def test_august_starts_season(self):
        assert calculate_season(datetime.date(2025, 8, 1)) == '2025-2026'

    def test_december(self):
        assert calculate_season(datetime.date(2025, 12, 15)) == '2025-2026'

    def test_january(self):
        assert calculate_season(datetime.date(2026, 1, 10)) == '2025-2026'

    def test_july_ends_season(self):
        assert calculate_season(datetime.date(2026, 7, 31)) == '2025-2026'

    def test_datetime_accepted(self):
        assert calculate_season(datetime.datetime(2019, 9, 3, 14, 30)) == '2019-2020'

    def test_current_season_contains_today(self):
        start, end = parse_season(get_current_season())
        assert end == start + 1
        assert datetime.date.today().year in (start, end)


class TestSeasonStrings:
    def test_parse(self):
        assert parse_season('2025-2026') == (2025, 2026)
        assert parse_season('1999-2000') == (1999, 2000)

    def test_parse_malformed(self):
        with pytest.raises(ValueError):
            parse_season('2025')
        with pytest.raises(ValueError):
            parse_season('spring-2025')

    def test_previous(self):
        assert get_previous_season('2025-2026') == '2024-2025'
        assert get_previous_season(get_previous_season('2025-2026')) == '2023-2024'

    def test_next(self):
        assert get_next_season('2025-2026') == '2026-2027'
        assert get_next_season(get_next_season('2025-2026')) == '2027-2028'


class TestFormatting:
    def test_format_score(self):
        assert format_score(9.5) == '9.500'
        assert format_score(9.4567) == '9.457'
        assert format_score(0) == '0.000'
        assert format_score(0.1) == '0.100'

    def test_format_date(self):
        assert format_date(datetime.date(2026, 1, 15)) == 'Jan 15, 2026'
        assert format_date(datetime.datetime(2025, 11, 2, 9, 0)) == 'Nov 2, 2025'


class TestMillis:
    def test_date_to_local_midnight(self):
        ms = to_millis(datetime.date(2026, 1, 15))
        assert from_millis(ms) == datetime.datetime(2026, 1, 15)

    def test_int_passes_through(self):
        assert to_millis(1760000000000) == 1760000000000

    def test_datetime_round_trip(self):
        when = datetime.datetime(2025, 10, 4, 13, 45)
        assert from_millis(to_millis(when)) == when
