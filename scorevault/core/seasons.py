"""Gymnastics season helpers.

The season runs August through July, so a meet in November 2025 and one
in March 2026 both belong to "2025-2026".
"""

import datetime

SEASON_START_MONTH = 8  # August


def calculate_season(date) -> str:
    """Season string ("YYYY-YYYY") for a date or datetime."""
    if date.month >= SEASON_START_MONTH:
        return f'{date.year}-{date.year + 1}'
    return f'{date.year - 1}-{date.year}'


def get_current_season() -> str:
    return calculate_season(datetime.date.today())


def parse_season(season: str) -> tuple[int, int]:
    """'2025-2026' -> (2025, 2026). Raises ValueError on a malformed string."""
    start, end = season.split('-')
    return int(start), int(end)


def get_previous_season(season: str) -> str:
    start, _ = parse_season(season)
    return f'{start - 1}-{start}'


def get_next_season(season: str) -> str:
    _, end = parse_season(season)
    return f'{end}-{end + 1}'


def format_date(date) -> str:
    """Readable date, e.g. 'Jan 15, 2026'."""
    return f'{date:%b} {date.day}, {date.year}'


def format_score(score: float) -> str:
    """Individual score to 3 decimal places, e.g. '9.450'."""
    return f'{score:.3f}'


def from_millis(ms: int) -> datetime.datetime:
    """Local datetime from epoch milliseconds (the storage format)."""
    return datetime.datetime.fromtimestamp(ms / 1000)


def to_millis(value) -> int:
    """Epoch milliseconds from a datetime, a date, or an int passed through."""
    if isinstance(value, int):
        return value
    if not isinstance(value, datetime.datetime):
        value = datetime.datetime(value.year, value.month, value.day)
    return int(value.timestamp() * 1000)
