"""Adapter for ScoreVault JSON backups (and the import template)."""

import json
import math
import re

from .base import BaseAdapter, BackupFormatError
from ..core.models import DISCIPLINES
from ..core.team_scores import ALL_EVENTS


REQUIRED_SECTIONS = ('gymnasts', 'meets', 'scores')


class BackupAdapter(BaseAdapter):
    """Parse a JSON backup written by ``generate_backup_json`` or the app.

    Handles camelCase (app) and snake_case field names, double-encoded
    JSON, and the per-event null/0 values the app writes for events a
    gymnast did not compete.
    """

    def parse(self, data_path: str) -> dict:
        """Parse a JSON file and return backup-shaped data."""
        with open(data_path, 'r', encoding='utf-8') as f:
            raw_data = json.load(f)

        # Unwrap double-encoded JSON (a JSON.stringify result saved as a string)
        if isinstance(raw_data, str):
            try:
                raw_data = json.loads(raw_data)
            except json.JSONDecodeError as e:
                raise BackupFormatError(f'Invalid JSON in {data_path}: {e}') from e

        if not isinstance(raw_data, dict):
            raise BackupFormatError(
                'Invalid backup file format. Expected an object with '
                'gymnasts, meets, and scores arrays.')
        for section in REQUIRED_SECTIONS:
            if not isinstance(raw_data.get(section), list):
                raise BackupFormatError(
                    'Invalid backup file format. Expected gymnasts, meets, '
                    f'and scores arrays (missing {section!r}).')

        return {
            'gymnasts': [self._extract_gymnast(g) for g in raw_data['gymnasts']],
            'meets': [self._extract_meet(m) for m in raw_data['meets']],
            'scores': [self._extract_score(s) for s in raw_data['scores']],
            'teamPlacements': [self._extract_team_placement(tp)
                               for tp in raw_data.get('teamPlacements') or []],
        }

    def _extract_gymnast(self, raw: dict) -> dict:
        discipline = self._get_field(raw, 'discipline', default='')
        if discipline not in DISCIPLINES:
            raise BackupFormatError(
                f"Gymnast {raw.get('id')!r} has unknown discipline {discipline!r}")
        return {
            'id': str(self._require(raw, 'id')),
            'name': str(self._require(raw, 'name')).strip(),
            'dateOfBirth': self._parse_timestamp(
                self._get_field(raw, 'dateOfBirth', 'date_of_birth')),
            'usagNumber': self._get_field(raw, 'usagNumber', 'usag_number'),
            'level': str(self._get_field(raw, 'level', default='')).strip(),
            'discipline': discipline,
            'isHidden': bool(self._get_field(raw, 'isHidden', 'is_hidden', default=False)),
            'createdAt': self._parse_timestamp(
                self._get_field(raw, 'createdAt', 'created_at')),
        }

    def _extract_meet(self, raw: dict) -> dict:
        date = self._parse_timestamp(self._get_field(raw, 'date'))
        if date is None:
            raise BackupFormatError(f"Meet {raw.get('id')!r} has no date")
        return {
            'id': str(self._require(raw, 'id')),
            'name': str(self._require(raw, 'name')).strip(),
            'date': date,
            'season': self._get_field(raw, 'season'),
            'location': self._get_field(raw, 'location'),
            'createdAt': self._parse_timestamp(
                self._get_field(raw, 'createdAt', 'created_at')),
        }

    def _extract_score(self, raw: dict) -> dict:
        raw_scores = self._get_field(raw, 'scores', default={})
        raw_places = self._get_field(raw, 'placements', default={})

        scores = {}
        for event in ALL_EVENTS:
            value = self._parse_score(raw_scores.get(event))
            if value is not None:
                scores[event] = value
        all_around = self._parse_score(raw_scores.get('allAround'))
        scores['allAround'] = all_around if all_around is not None else 0.0

        return {
            'id': str(self._require(raw, 'id')),
            'meetId': str(self._require(raw, 'meetId', 'meet_id')),
            'gymnastId': str(self._require(raw, 'gymnastId', 'gymnast_id')),
            'level': self._get_field(raw, 'level'),
            'scores': scores,
            'placements': self._parse_placements(raw_places),
            'createdAt': self._parse_timestamp(
                self._get_field(raw, 'createdAt', 'created_at')),
        }

    def _extract_team_placement(self, raw: dict) -> dict:
        return {
            'id': str(self._require(raw, 'id')),
            'meetId': str(self._require(raw, 'meetId', 'meet_id')),
            'level': str(self._require(raw, 'level')),
            'discipline': str(self._require(raw, 'discipline')),
            'placements': self._parse_placements(
                self._get_field(raw, 'placements', default={})),
            'createdAt': self._parse_timestamp(
                self._get_field(raw, 'createdAt', 'created_at')),
        }

    def _parse_placements(self, raw: dict) -> dict:
        placements = {}
        for event in ALL_EVENTS + ('allAround',):
            place = self._parse_rank(raw.get(event))
            if place is not None:
                placements[event] = place
        return placements

    @classmethod
    def _require(cls, obj: dict, *keys):
        value = cls._get_field(obj, *keys)
        if value is None:
            raise BackupFormatError(f'Record is missing {keys[0]!r}: {obj!r}')
        return value

    @staticmethod
    def _get_field(obj: dict, *keys, default=None):
        """Try multiple possible field names, return the first one found."""
        for key in keys:
            if key in obj and obj[key] is not None:
                return obj[key]
        return default

    @staticmethod
    def _parse_timestamp(val):
        """Epoch milliseconds, or None. Firestore-style {seconds: ...} accepted."""
        if val is None:
            return None
        if isinstance(val, dict):
            seconds = val.get('seconds')
            return int(seconds * 1000) if seconds is not None else None
        try:
            return int(val)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _parse_score(val):
        """Parse a score value. Returns None for 0, null, empty, non-finite or invalid."""
        if val is None:
            return None
        if isinstance(val, (int, float)):
            return float(val) if val > 0 and math.isfinite(val) else None
        s = str(val).strip()
        try:
            v = float(s)
        except ValueError:
            return None
        return v if v > 0 and math.isfinite(v) else None

    @staticmethod
    def _parse_rank(val):
        """Parse a placement to integer. Handles '1T' tie notation."""
        if val is None or isinstance(val, bool):
            return None
        if isinstance(val, int):
            return val if val > 0 else None
        s = re.sub(r'[Tt]$', '', str(val).strip())
        try:
            place = int(s)
        except ValueError:
            return None
        return place if place > 0 else None
