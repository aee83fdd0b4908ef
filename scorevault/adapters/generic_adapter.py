"""Adapter for score sheets in TSV or CSV form (e.g. a coach's spreadsheet).

One row per gymnast per meet, with a header row. Columns are matched by
name (case-insensitive, spaces/underscores/dashes ignored):

    name, level, discipline, meet, date, location,
    vault, bars, beam, floor, pommel horse, rings, parallel bars, high bar, aa,
    and a placement column per event ("vault place", "vt rank", "aa place", ...)

Gymnasts and meets get IDs derived from their names, so importing the same
sheet twice updates rows instead of duplicating them.
"""

import csv
import datetime
import io
import math
import re

from .base import BaseAdapter, BackupFormatError
from ..core.models import MENS, WOMENS
from ..core.seasons import calculate_season, to_millis
from ..core.team_scores import ALL_EVENTS, compute_all_around, round_score


# Map common column name variations to our canonical names
COLUMN_ALIASES = {
    'name': 'name',
    'athlete': 'name',
    'gymnast': 'name',
    'level': 'level',
    'lvl': 'level',
    'discipline': 'discipline',
    'gender': 'discipline',
    'meet': 'meet',
    'meetname': 'meet',
    'competition': 'meet',
    'date': 'date',
    'meetdate': 'date',
    'location': 'location',
    'usag': 'usagNumber',
    'usagnumber': 'usagNumber',
}

EVENT_ALIASES = {
    'vault': ('vault', 'vt', 'v'),
    'bars': ('bars', 'ub', 'unevenbars'),
    'beam': ('beam', 'bb', 'balancebeam'),
    'floor': ('floor', 'fx', 'fl', 'floorexercise'),
    'pommelHorse': ('pommelhorse', 'ph'),
    'rings': ('rings', 'sr', 'stillrings'),
    'parallelBars': ('parallelbars', 'pb'),
    'highBar': ('highbar', 'hb'),
    'allAround': ('aa', 'allaround'),
}
for _event, _aliases in EVENT_ALIASES.items():
    for _alias in _aliases:
        COLUMN_ALIASES[_alias] = _event
        for _suffix in ('place', 'rank', 'pl'):
            COLUMN_ALIASES[_alias + _suffix] = f'{_event}_place'

MENS_ONLY_EVENTS = ('pommelHorse', 'rings', 'parallelBars', 'highBar')

# Xcel abbreviation and bare-tier forms -> canonical level name
XCEL_LEVELS = {
    'xb': 'Xcel Bronze', 'bronze': 'Xcel Bronze',
    'xs': 'Xcel Silver', 'silver': 'Xcel Silver',
    'xg': 'Xcel Gold', 'gold': 'Xcel Gold',
    'xp': 'Xcel Platinum', 'platinum': 'Xcel Platinum',
    'xd': 'Xcel Diamond', 'diamond': 'Xcel Diamond',
    'xsa': 'Xcel Sapphire', 'sapphire': 'Xcel Sapphire',
}

DATE_FORMATS = ('%Y-%m-%d', '%m/%d/%Y', '%m/%d/%y')


class GenericAdapter(BaseAdapter):
    """Parse TSV or CSV score sheets."""

    def parse(self, data_path: str) -> dict:
        """Auto-detect the delimiter and parse."""
        with open(data_path, 'r', encoding='utf-8-sig') as f:
            content = f.read()
        return self.parse_content(content)

    def parse_content(self, content: str) -> dict:
        lines = content.strip().splitlines()
        if len(lines) < 2:
            return {'gymnasts': [], 'meets': [], 'scores': [], 'teamPlacements': []}

        delimiter = '\t' if '\t' in lines[0] else ','
        reader = csv.reader(io.StringIO('\n'.join(lines)), delimiter=delimiter)
        header = next(reader)

        col_map = {}
        for i, col in enumerate(header):
            canonical = COLUMN_ALIASES.get(self._normalize_header(col))
            if canonical and canonical not in col_map:
                col_map[canonical] = i
        for required in ('name', 'meet', 'date'):
            if required not in col_map:
                raise BackupFormatError(f'Score sheet has no {required!r} column')

        gymnasts, meets, scores = {}, {}, {}
        for line_no, parts in enumerate(reader, start=2):
            if not parts or not any(p.strip() for p in parts):
                continue

            def get_col(name: str, default=''):
                idx = col_map.get(name)
                if idx is not None and idx < len(parts):
                    return parts[idx].strip()
                return default

            name = get_col('name')
            if not name:
                continue

            date = self._parse_date(get_col('date'))
            if date is None:
                print(f"Warning: line {line_no}: unreadable date "
                      f"{get_col('date')!r}, row skipped")
                continue

            event_scores = {}
            for event in ALL_EVENTS:
                value = self._parse_score(get_col(event))
                if value is not None:
                    event_scores[event] = value

            discipline = self._parse_discipline(get_col('discipline'), event_scores)
            level = self._normalize_level(get_col('level'))

            all_around = self._parse_score(get_col('allAround'))
            event_scores['allAround'] = (round_score(all_around) if all_around is not None
                                         else compute_all_around(event_scores, discipline))

            placements = {}
            for event in ALL_EVENTS + ('allAround',):
                place = self._parse_rank(get_col(f'{event}_place'))
                if place is not None:
                    placements[event] = place

            gymnast_id = f'g-{self._slug(discipline)}-{self._slug(name)}'
            gymnasts[gymnast_id] = {
                'id': gymnast_id,
                'name': name,
                'dateOfBirth': None,
                'usagNumber': get_col('usagNumber') or None,
                'level': level,
                'discipline': discipline,
                'isHidden': False,
                'createdAt': None,
            }

            meet_name = get_col('meet')
            meet_id = f'm-{date.isoformat()}-{self._slug(meet_name)}'
            if meet_id not in meets:
                meets[meet_id] = {
                    'id': meet_id,
                    'name': meet_name,
                    'date': to_millis(date),
                    'season': calculate_season(date),
                    'location': get_col('location') or None,
                    'createdAt': None,
                }

            score_id = f's-{meet_id}-{gymnast_id}'
            scores[score_id] = {
                'id': score_id,
                'meetId': meet_id,
                'gymnastId': gymnast_id,
                'level': level or None,
                'scores': event_scores,
                'placements': placements,
                'createdAt': None,
            }

        return {
            'gymnasts': list(gymnasts.values()),
            'meets': list(meets.values()),
            'scores': list(scores.values()),
            'teamPlacements': [],
        }

    @staticmethod
    def _normalize_header(col: str) -> str:
        return re.sub(r'[\s_\-.]', '', col.strip().lower())

    @staticmethod
    def _slug(text: str) -> str:
        return re.sub(r'[^a-z0-9]+', '-', text.lower()).strip('-')

    @staticmethod
    def _normalize_level(raw: str) -> str:
        """'7' -> 'Level 7', 'XG' -> 'Xcel Gold', 'level 4' -> 'Level 4'."""
        raw = re.sub(r'\s+', ' ', raw.strip())
        if not raw:
            return ''
        match = re.match(r'^(?:level|lvl|l)?\s*(\d+)$', raw, flags=re.IGNORECASE)
        if match:
            return f'Level {int(match.group(1))}'
        key = re.sub(r'^xcel\s+', '', raw, flags=re.IGNORECASE).lower()
        if key in XCEL_LEVELS:
            return XCEL_LEVELS[key]
        if raw.lower() == 'elite':
            return 'Elite'
        return raw

    @staticmethod
    def _parse_discipline(raw: str, event_scores: dict) -> str:
        """Explicit column wins; otherwise men's apparatus scores mean Mens."""
        key = raw.strip().lower()
        if key.startswith(('w', 'f', 'g')):   # womens, women's, female, girls
            return WOMENS
        if key.startswith(('m', 'b')):        # mens, men's, male, boys
            return MENS
        if any(event in event_scores for event in MENS_ONLY_EVENTS):
            return MENS
        return WOMENS

    @staticmethod
    def _parse_date(raw: str):
        for fmt in DATE_FORMATS:
            try:
                return datetime.datetime.strptime(raw.strip(), fmt).date()
            except ValueError:
                continue
        return None

    @staticmethod
    def _parse_score(val):
        """Parse a score value. Returns None for empty, invalid, zero or non-finite values."""
        if val is None:
            return None
        s = str(val).strip()
        if not s:
            return None
        try:
            v = float(s)
            return v if v > 0 and math.isfinite(v) else None
        except ValueError:
            return None

    @staticmethod
    def _parse_rank(val):
        """Parse a rank value to integer. Handles '1T' tie notation."""
        if val is None:
            return None
        s = str(val).strip()
        if not s:
            return None
        s = re.sub(r'[Tt]$', '', s)
        try:
            return int(s)
        except ValueError:
            return None
