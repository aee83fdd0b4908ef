"""SQLite storage for gymnasts, meets, scores and team placements.

All functions take an open connection from ``init_db``. Timestamps are
stored as epoch milliseconds. Event scores of 0 are stored as NULL, since
an unattempted apparatus is never recorded as a real zero.
"""

import random
import sqlite3
import string
import threading
import time

from .models import DISCIPLINES, Gymnast, Meet, Score, TeamPlacement
from .seasons import calculate_season, from_millis, to_millis
from .team_scores import ALL_EVENTS, compute_all_around


# Event key -> column name. Placement columns are '<column>_place'.
EVENT_COLUMNS = {
    'vault': 'vault',
    'bars': 'bars',
    'beam': 'beam',
    'floor': 'floor',
    'pommelHorse': 'pommel_horse',
    'rings': 'rings',
    'parallelBars': 'parallel_bars',
    'highBar': 'high_bar',
    'allAround': 'all_around',
}
PLACEMENT_COLUMNS = {event: f'{col}_place' for event, col in EVENT_COLUMNS.items()}

SCHEMA = """
CREATE TABLE IF NOT EXISTS gymnasts (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    date_of_birth INTEGER,
    usag_number TEXT,
    level TEXT NOT NULL,
    discipline TEXT NOT NULL,
    is_hidden INTEGER DEFAULT 0,
    created_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_gymnasts_created_at ON gymnasts(created_at);

CREATE TABLE IF NOT EXISTS meets (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    date INTEGER NOT NULL,
    season TEXT NOT NULL,
    location TEXT,
    created_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_meets_date ON meets(date);
CREATE INDEX IF NOT EXISTS idx_meets_season ON meets(season);

CREATE TABLE IF NOT EXISTS scores (
    id TEXT PRIMARY KEY,
    meet_id TEXT NOT NULL REFERENCES meets(id) ON DELETE CASCADE,
    gymnast_id TEXT NOT NULL REFERENCES gymnasts(id) ON DELETE CASCADE,
    level TEXT,
    vault REAL,
    bars REAL,
    beam REAL,
    floor REAL,
    pommel_horse REAL,
    rings REAL,
    parallel_bars REAL,
    high_bar REAL,
    all_around REAL NOT NULL,
    vault_place INTEGER,
    bars_place INTEGER,
    beam_place INTEGER,
    floor_place INTEGER,
    pommel_horse_place INTEGER,
    rings_place INTEGER,
    parallel_bars_place INTEGER,
    high_bar_place INTEGER,
    all_around_place INTEGER,
    created_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_scores_meet_id ON scores(meet_id);
CREATE INDEX IF NOT EXISTS idx_scores_gymnast_id ON scores(gymnast_id);

CREATE TABLE IF NOT EXISTS team_placements (
    id TEXT PRIMARY KEY,
    meet_id TEXT NOT NULL REFERENCES meets(id) ON DELETE CASCADE,
    level TEXT NOT NULL,
    discipline TEXT NOT NULL,
    vault_place INTEGER,
    bars_place INTEGER,
    beam_place INTEGER,
    floor_place INTEGER,
    pommel_horse_place INTEGER,
    rings_place INTEGER,
    parallel_bars_place INTEGER,
    high_bar_place INTEGER,
    all_around_place INTEGER,
    created_at INTEGER NOT NULL,
    UNIQUE(meet_id, level, discipline)
);
CREATE INDEX IF NOT EXISTS idx_team_placements_meet_id ON team_placements(meet_id);
CREATE INDEX IF NOT EXISTS idx_team_placements_level ON team_placements(level);
"""

_SCORE_COLUMNS = (['id', 'meet_id', 'gymnast_id', 'level']
                  + list(EVENT_COLUMNS.values())
                  + list(PLACEMENT_COLUMNS.values())
                  + ['created_at'])
_TEAM_PLACEMENT_COLUMNS = (['id', 'meet_id', 'level', 'discipline']
                           + list(PLACEMENT_COLUMNS.values())
                           + ['created_at'])

_GYMNAST_FIELDS = {'name', 'level', 'discipline', 'date_of_birth',
                   'usag_number', 'is_hidden'}
_MEET_FIELDS = {'name', 'date', 'season', 'location'}

# Guards schema creation when several threads open the same file at once
_init_lock = threading.Lock()


def init_db(db_path: str) -> sqlite3.Connection:
    """Create tables if they don't exist. Returns a connection."""
    conn = get_connection(db_path)
    with _init_lock:
        conn.executescript(SCHEMA)
        conn.commit()
    return conn


def get_connection(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute('PRAGMA foreign_keys = ON')
    return conn


def generate_id() -> str:
    """Unique ID: '<epoch ms>-<9 random base36 chars>'."""
    alphabet = string.digits + string.ascii_lowercase
    suffix = ''.join(random.choices(alphabet, k=9))
    return f'{_now_ms()}-{suffix}'


def _now_ms() -> int:
    return int(time.time() * 1000)


def _check_discipline(discipline: str):
    if discipline not in DISCIPLINES:
        raise ValueError(f"Unknown discipline: {discipline!r} "
                         f"(expected one of {', '.join(DISCIPLINES)})")


def _apply_updates(conn, table: str, row_id: str, updates: dict):
    if not updates:
        return
    assignments = ', '.join(f'{col} = ?' for col in updates)
    conn.execute(f'UPDATE {table} SET {assignments} WHERE id = ?',
                 (*updates.values(), row_id))
    conn.commit()


# ========== GYMNASTS ==========

def add_gymnast(conn: sqlite3.Connection, name: str, level: str, discipline: str,
                date_of_birth=None, usag_number: str | None = None) -> str:
    """Insert a gymnast and return the new ID."""
    _check_discipline(discipline)
    gymnast_id = generate_id()
    dob = to_millis(date_of_birth) if date_of_birth is not None else None
    conn.execute('''INSERT INTO gymnasts
        (id, name, date_of_birth, usag_number, level, discipline, is_hidden, created_at)
        VALUES (?, ?, ?, ?, ?, ?, 0, ?)''',
        (gymnast_id, name, dob, usag_number or None, level, discipline, _now_ms()))
    conn.commit()
    return gymnast_id


def get_gymnasts(conn: sqlite3.Connection, include_hidden: bool = False) -> list[Gymnast]:
    """All gymnasts, newest first. Hidden gymnasts only when asked for."""
    where = '' if include_hidden else 'WHERE is_hidden = 0'
    rows = conn.execute(f'''SELECT * FROM gymnasts {where}
                            ORDER BY created_at DESC, rowid DESC''').fetchall()
    return [_row_to_gymnast(r) for r in rows]


def get_hidden_gymnasts(conn: sqlite3.Connection) -> list[Gymnast]:
    rows = conn.execute('''SELECT * FROM gymnasts WHERE is_hidden = 1
                           ORDER BY created_at DESC, rowid DESC''').fetchall()
    return [_row_to_gymnast(r) for r in rows]


def get_gymnast_by_id(conn: sqlite3.Connection, gymnast_id: str) -> Gymnast | None:
    row = conn.execute('SELECT * FROM gymnasts WHERE id = ?', (gymnast_id,)).fetchone()
    return _row_to_gymnast(row) if row else None


def update_gymnast(conn: sqlite3.Connection, gymnast_id: str, **fields):
    """Update the given gymnast fields; other columns are left alone."""
    unknown = set(fields) - _GYMNAST_FIELDS
    if unknown:
        raise ValueError(f"Unknown gymnast fields: {', '.join(sorted(unknown))}")
    if 'discipline' in fields:
        _check_discipline(fields['discipline'])
    if fields.get('date_of_birth') is not None:
        fields['date_of_birth'] = to_millis(fields['date_of_birth'])
    if 'is_hidden' in fields:
        fields['is_hidden'] = 1 if fields['is_hidden'] else 0
    _apply_updates(conn, 'gymnasts', gymnast_id, fields)


def hide_gymnast(conn: sqlite3.Connection, gymnast_id: str):
    update_gymnast(conn, gymnast_id, is_hidden=True)


def unhide_gymnast(conn: sqlite3.Connection, gymnast_id: str):
    update_gymnast(conn, gymnast_id, is_hidden=False)


def delete_gymnast(conn: sqlite3.Connection, gymnast_id: str):
    """Delete a gymnast; their scores are cascade deleted."""
    conn.execute('DELETE FROM gymnasts WHERE id = ?', (gymnast_id,))
    conn.commit()


def _row_to_gymnast(row) -> Gymnast:
    return Gymnast(
        id=row['id'],
        name=row['name'],
        level=row['level'],
        discipline=row['discipline'],
        date_of_birth=row['date_of_birth'],
        usag_number=row['usag_number'],
        is_hidden=bool(row['is_hidden']),
        created_at=row['created_at'],
    )


# ========== MEETS ==========

def add_meet(conn: sqlite3.Connection, name: str, date, location: str | None = None,
             season: str | None = None) -> str:
    """Insert a meet and return the new ID.

    ``date`` may be a date, a datetime or epoch milliseconds. The season is
    derived from the date unless given.
    """
    meet_id = generate_id()
    date_ms = to_millis(date)
    if season is None:
        season = calculate_season(from_millis(date_ms))
    conn.execute('''INSERT INTO meets (id, name, date, season, location, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)''',
                 (meet_id, name, date_ms, season, location or None, _now_ms()))
    conn.commit()
    return meet_id


def get_meets(conn: sqlite3.Connection) -> list[Meet]:
    """All meets, most recent date first."""
    rows = conn.execute('SELECT * FROM meets ORDER BY date DESC, rowid DESC').fetchall()
    return [_row_to_meet(r) for r in rows]


def get_meet_by_id(conn: sqlite3.Connection, meet_id: str) -> Meet | None:
    row = conn.execute('SELECT * FROM meets WHERE id = ?', (meet_id,)).fetchone()
    return _row_to_meet(row) if row else None


def update_meet(conn: sqlite3.Connection, meet_id: str, **fields):
    """Update the given meet fields.

    Moving a meet to a new date also moves it to that date's season,
    unless a season is passed explicitly.
    """
    unknown = set(fields) - _MEET_FIELDS
    if unknown:
        raise ValueError(f"Unknown meet fields: {', '.join(sorted(unknown))}")
    if 'date' in fields:
        fields['date'] = to_millis(fields['date'])
        fields.setdefault('season', calculate_season(from_millis(fields['date'])))
    _apply_updates(conn, 'meets', meet_id, fields)


def delete_meet(conn: sqlite3.Connection, meet_id: str):
    """Delete a meet; its scores and team placements are cascade deleted."""
    conn.execute('DELETE FROM meets WHERE id = ?', (meet_id,))
    conn.commit()


def _row_to_meet(row) -> Meet:
    return Meet(
        id=row['id'],
        name=row['name'],
        date=row['date'],
        season=row['season'],
        location=row['location'],
        created_at=row['created_at'],
    )


# ========== SCORES ==========

def add_score(conn: sqlite3.Connection, meet_id: str, gymnast_id: str, scores: dict,
              placements: dict | None = None, level: str | None = None) -> str:
    """Insert a score entry and return the new ID.

    When ``scores`` has no 'allAround' it is computed from the gymnast's
    discipline events.
    """
    placements = placements or {}
    if scores.get('allAround') is None:
        gymnast = get_gymnast_by_id(conn, gymnast_id)
        if gymnast is None:
            raise ValueError(f'Unknown gymnast: {gymnast_id}')
        scores = {**scores, 'allAround': compute_all_around(scores, gymnast.discipline)}

    score_id = generate_id()
    _insert_score(conn, score_id, meet_id, gymnast_id, level, scores, placements,
                  _now_ms())
    conn.commit()
    return score_id


def _insert_score(conn, score_id, meet_id, gymnast_id, level, scores, placements,
                  created_at, verb='INSERT'):
    values = [score_id, meet_id, gymnast_id, level or None]
    for event in EVENT_COLUMNS:
        if event == 'allAround':
            values.append(scores['allAround'])
        else:
            values.append(scores.get(event) or None)
    values.extend(placements.get(event) or None for event in PLACEMENT_COLUMNS)
    values.append(created_at)

    placeholders = ', '.join('?' * len(_SCORE_COLUMNS))
    conn.execute(f'''{verb} INTO scores ({', '.join(_SCORE_COLUMNS)})
                     VALUES ({placeholders})''', values)


def get_scores(conn: sqlite3.Connection) -> list[Score]:
    rows = conn.execute('SELECT * FROM scores ORDER BY created_at DESC, rowid DESC').fetchall()
    return [_row_to_score(r) for r in rows]


def get_scores_by_gymnast(conn: sqlite3.Connection, gymnast_id: str) -> list[Score]:
    rows = conn.execute('''SELECT * FROM scores WHERE gymnast_id = ?
                           ORDER BY created_at DESC, rowid DESC''', (gymnast_id,)).fetchall()
    return [_row_to_score(r) for r in rows]


def get_scores_by_meet(conn: sqlite3.Connection, meet_id: str) -> list[Score]:
    rows = conn.execute('''SELECT * FROM scores WHERE meet_id = ?
                           ORDER BY created_at DESC, rowid DESC''', (meet_id,)).fetchall()
    return [_row_to_score(r) for r in rows]


def get_score_by_id(conn: sqlite3.Connection, score_id: str) -> Score | None:
    row = conn.execute('SELECT * FROM scores WHERE id = ?', (score_id,)).fetchone()
    return _row_to_score(row) if row else None


def update_score(conn: sqlite3.Connection, score_id: str, meet_id: str | None = None,
                 gymnast_id: str | None = None, level: str | None = None,
                 scores: dict | None = None, placements: dict | None = None):
    """Partially update a score entry.

    Only the arguments given change. Within ``scores`` and ``placements``
    only the event keys present change; a 0 or None value clears the event.
    """
    updates = {}
    if meet_id is not None:
        updates['meet_id'] = meet_id
    if gymnast_id is not None:
        updates['gymnast_id'] = gymnast_id
    if level is not None:
        updates['level'] = level or None

    for event, value in (scores or {}).items():
        if event not in EVENT_COLUMNS:
            raise ValueError(f'Unknown event: {event}')
        if event == 'allAround':
            if value is not None:
                updates['all_around'] = value
        else:
            updates[EVENT_COLUMNS[event]] = value or None

    for event, place in (placements or {}).items():
        if event not in PLACEMENT_COLUMNS:
            raise ValueError(f'Unknown event: {event}')
        updates[PLACEMENT_COLUMNS[event]] = place or None

    _apply_updates(conn, 'scores', score_id, updates)


def delete_score(conn: sqlite3.Connection, score_id: str):
    conn.execute('DELETE FROM scores WHERE id = ?', (score_id,))
    conn.commit()


def _row_to_score(row) -> Score:
    scores = {}
    for event in ALL_EVENTS:
        value = row[EVENT_COLUMNS[event]]
        if value:
            scores[event] = value
    scores['allAround'] = row['all_around']

    return Score(
        id=row['id'],
        meet_id=row['meet_id'],
        gymnast_id=row['gymnast_id'],
        level=row['level'],
        scores=scores,
        placements=_row_to_placements(row),
        created_at=row['created_at'],
    )


def _row_to_placements(row) -> dict:
    placements = {}
    for event, col in PLACEMENT_COLUMNS.items():
        if row[col]:
            placements[event] = row[col]
    return placements


# ========== STATISTICS ==========

def get_score_count_by_gymnast(conn: sqlite3.Connection, gymnast_id: str) -> int:
    """Number of distinct meets the gymnast has scores at."""
    row = conn.execute('SELECT COUNT(DISTINCT meet_id) FROM scores WHERE gymnast_id = ?',
                       (gymnast_id,)).fetchone()
    return row[0] or 0


def get_score_count_by_meet(conn: sqlite3.Connection, meet_id: str) -> int:
    row = conn.execute('SELECT COUNT(*) FROM scores WHERE meet_id = ?',
                       (meet_id,)).fetchone()
    return row[0] or 0


# ========== TEAM PLACEMENTS ==========

def save_team_placement(conn: sqlite3.Connection, meet_id: str, level: str,
                        discipline: str, placements: dict) -> str:
    """Insert or replace the team placements for a meet/level/discipline.

    Returns the ID of the (possibly pre-existing) row.
    """
    _check_discipline(discipline)
    existing = conn.execute('''SELECT id FROM team_placements
                               WHERE meet_id = ? AND level = ? AND discipline = ?''',
                            (meet_id, level, discipline)).fetchone()
    place_values = [placements.get(event) or None for event in PLACEMENT_COLUMNS]

    if existing:
        assignments = ', '.join(f'{col} = ?' for col in PLACEMENT_COLUMNS.values())
        conn.execute(f'UPDATE team_placements SET {assignments} WHERE id = ?',
                     (*place_values, existing['id']))
        conn.commit()
        return existing['id']

    placement_id = generate_id()
    placeholders = ', '.join('?' * len(_TEAM_PLACEMENT_COLUMNS))
    conn.execute(f'''INSERT INTO team_placements ({', '.join(_TEAM_PLACEMENT_COLUMNS)})
                     VALUES ({placeholders})''',
                 (placement_id, meet_id, level, discipline, *place_values, _now_ms()))
    conn.commit()
    return placement_id


def get_team_placement(conn: sqlite3.Connection, meet_id: str, level: str,
                       discipline: str) -> TeamPlacement | None:
    row = conn.execute('''SELECT * FROM team_placements
                          WHERE meet_id = ? AND level = ? AND discipline = ?''',
                       (meet_id, level, discipline)).fetchone()
    return _row_to_team_placement(row) if row else None


def get_team_placements_by_meet(conn: sqlite3.Connection, meet_id: str) -> list[TeamPlacement]:
    rows = conn.execute('SELECT * FROM team_placements WHERE meet_id = ?',
                        (meet_id,)).fetchall()
    return [_row_to_team_placement(r) for r in rows]


def get_all_team_placements(conn: sqlite3.Connection) -> list[TeamPlacement]:
    rows = conn.execute('''SELECT * FROM team_placements
                           ORDER BY created_at DESC, rowid DESC''').fetchall()
    return [_row_to_team_placement(r) for r in rows]


def delete_team_placement(conn: sqlite3.Connection, placement_id: str):
    conn.execute('DELETE FROM team_placements WHERE id = ?', (placement_id,))
    conn.commit()


def _row_to_team_placement(row) -> TeamPlacement:
    return TeamPlacement(
        id=row['id'],
        meet_id=row['meet_id'],
        level=row['level'],
        discipline=row['discipline'],
        placements=_row_to_placements(row),
        created_at=row['created_at'],
    )


# ========== EXPORT / IMPORT ==========

def export_all_data(conn: sqlite3.Connection) -> dict:
    """Dump everything in the backup JSON layout (camelCase keys, epoch ms)."""
    return {
        'gymnasts': [{
            'id': g.id,
            'name': g.name,
            'dateOfBirth': g.date_of_birth,
            'usagNumber': g.usag_number,
            'level': g.level,
            'discipline': g.discipline,
            'isHidden': g.is_hidden,
            'createdAt': g.created_at,
        } for g in get_gymnasts(conn, include_hidden=True)],
        'meets': [{
            'id': m.id,
            'name': m.name,
            'date': m.date,
            'season': m.season,
            'location': m.location,
            'createdAt': m.created_at,
        } for m in get_meets(conn)],
        'scores': [{
            'id': s.id,
            'meetId': s.meet_id,
            'gymnastId': s.gymnast_id,
            'level': s.level,
            'scores': s.scores,
            'placements': s.placements,
            'createdAt': s.created_at,
        } for s in get_scores(conn)],
        'teamPlacements': [{
            'id': tp.id,
            'meetId': tp.meet_id,
            'level': tp.level,
            'discipline': tp.discipline,
            'placements': tp.placements,
            'createdAt': tp.created_at,
        } for tp in get_all_team_placements(conn)],
    }


def import_all_data(conn: sqlite3.Connection, data: dict, replace: bool = True) -> dict:
    """Load backup-shaped data in a single transaction.

    With ``replace`` (the default) all existing rows are cleared first.
    Otherwise rows are merged: gymnasts and meets that already exist are
    kept, scores and team placements with a matching key are overwritten.

    Returns counts of imported rows per table. On any error the
    transaction is rolled back and the error re-raised.
    """
    keep = 'INSERT' if replace else 'INSERT OR IGNORE'
    overwrite = 'INSERT' if replace else 'INSERT OR REPLACE'
    team_placements = data.get('teamPlacements') or []
    now = _now_ms()

    try:
        if replace:
            conn.execute('DELETE FROM team_placements')
            conn.execute('DELETE FROM scores')
            conn.execute('DELETE FROM meets')
            conn.execute('DELETE FROM gymnasts')

        for g in data['gymnasts']:
            conn.execute(f'''{keep} INTO gymnasts
                (id, name, date_of_birth, usag_number, level, discipline, is_hidden, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)''',
                (g['id'], g['name'], g.get('dateOfBirth') or None, g.get('usagNumber') or None,
                 g['level'], g['discipline'], 1 if g.get('isHidden') else 0,
                 g.get('createdAt') or now))

        for m in data['meets']:
            date_ms = to_millis(m['date'])
            season = m.get('season') or calculate_season(from_millis(date_ms))
            conn.execute(f'''{keep} INTO meets (id, name, date, season, location, created_at)
                             VALUES (?, ?, ?, ?, ?, ?)''',
                         (m['id'], m['name'], date_ms, season, m.get('location') or None,
                          m.get('createdAt') or now))

        for s in data['scores']:
            _insert_score(conn, s['id'], s['meetId'], s['gymnastId'], s.get('level'),
                          s['scores'], s.get('placements') or {},
                          s.get('createdAt') or now, verb=overwrite)

        for tp in team_placements:
            placements = tp.get('placements') or {}
            place_values = [placements.get(event) or None for event in PLACEMENT_COLUMNS]
            placeholders = ', '.join('?' * len(_TEAM_PLACEMENT_COLUMNS))
            conn.execute(f'''{overwrite} INTO team_placements
                             ({', '.join(_TEAM_PLACEMENT_COLUMNS)}) VALUES ({placeholders})''',
                         (tp['id'], tp['meetId'], tp['level'], tp['discipline'],
                          *place_values, tp.get('createdAt') or now))

        conn.commit()
    except Exception:
        conn.rollback()
        raise

    return {
        'gymnasts': len(data['gymnasts']),
        'meets': len(data['meets']),
        'scores': len(data['scores']),
        'teamPlacements': len(team_placements),
    }
