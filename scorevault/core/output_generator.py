"""Export and report generators.

Generates from the score database:
  - JSON backup (the app's backup/import format)
  - Gymnasts, meets and scores CSVs
  - Team scores CSV (every score, grouped by level and discipline)
  - Team totals CSV (one row per team per meet, computed top-N totals)
  - Plain-text team report for one meet/level/discipline
"""

import csv
import json

from .db import (get_connection, export_all_data, get_gymnasts, get_meets,
                 get_scores, get_scores_by_meet, get_meet_by_id, get_team_placement)
from .models import MENS, WOMENS
from .seasons import format_date, format_score, from_millis
from .team_scores import (ALL_EVENTS, MENS_EVENTS, WOMENS_EVENTS,
                          calculate_team_score, events_for_discipline,
                          filter_team_scores, format_team_score,
                          get_event_display_name, is_counting_score,
                          level_discipline_combos)


DISCIPLINE_TITLES = {'Womens': "Women's", 'Mens': "Men's"}

TEAM_HEADER_PREFIX = ['Level', 'Discipline', 'Meet', 'Date', 'Season', 'Gymnast']
MIXED_EVENT_HEADERS = ['Event 1', 'Event 2', 'Event 3', 'Event 4', 'Event 5', 'Event 6']


def _date_cell(ms) -> str:
    return format_date(from_millis(ms)) if ms else ''


def _cell(value):
    """Blank for missing values, as spreadsheets expect."""
    return '' if value is None else value


def _write_csv(output_path: str, header: list, rows: list):
    with open(output_path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(header)
        writer.writerows(rows)


def generate_backup_json(db_path: str, output_path: str) -> dict:
    """Write a full JSON backup. Returns the exported data."""
    conn = get_connection(db_path)
    data = export_all_data(conn)
    conn.close()

    with open(output_path, 'w') as f:
        json.dump(data, f, indent=2)
    return data


def generate_gymnasts_csv(db_path: str, output_path: str):
    conn = get_connection(db_path)
    gymnasts = get_gymnasts(conn, include_hidden=True)
    conn.close()

    rows = [[g.id, g.name, _date_cell(g.date_of_birth), _cell(g.usag_number),
             g.level, g.discipline, _date_cell(g.created_at)]
            for g in gymnasts]
    _write_csv(output_path,
               ['ID', 'Name', 'Date of Birth', 'USAG Number', 'Level', 'Discipline',
                'Created At'],
               rows)


def generate_meets_csv(db_path: str, output_path: str):
    conn = get_connection(db_path)
    meets = get_meets(conn)
    conn.close()

    rows = [[m.id, m.name, _date_cell(m.date), m.season, _cell(m.location),
             _date_cell(m.created_at)]
            for m in meets]
    _write_csv(output_path, ['ID', 'Name', 'Date', 'Season', 'Location', 'Created At'], rows)


def generate_scores_csv(db_path: str, output_path: str):
    conn = get_connection(db_path)
    scores = get_scores(conn)
    conn.close()

    rows = []
    for s in scores:
        row = [s.id, s.gymnast_id, s.meet_id, _cell(s.level)]
        row.extend(_cell(s.scores.get(event)) for event in ALL_EVENTS)
        row.append(s.scores['allAround'])
        row.append(_date_cell(s.created_at))
        rows.append(row)

    header = (['ID', 'Gymnast ID', 'Meet ID', 'Level']
              + ['Vault', 'Bars', 'Beam', 'Floor', 'Pommel Horse', 'Rings',
                 'Parallel Bars', 'High Bar', 'All-Around', 'Created At'])
    _write_csv(output_path, header, rows)


def generate_team_scores_csv(db_path: str, output_path: str):
    """Every individual score that belongs to a team, grouped by level/discipline.

    The header names the events when only one discipline is present, and
    falls back to 'Event 1'..'Event 6' for a mix.
    """
    conn = get_connection(db_path)
    gymnasts = {g.id: g for g in get_gymnasts(conn, include_hidden=True)}
    meets = {m.id: m for m in get_meets(conn)}
    scores = get_scores(conn)
    conn.close()

    groups: dict[tuple, list] = {}
    for s in scores:
        gymnast = gymnasts.get(s.gymnast_id)
        if not s.level or gymnast is None:
            continue
        groups.setdefault((s.level, gymnast.discipline), []).append((s, gymnast))

    rows = []
    disciplines = set()
    for (level, discipline), items in groups.items():
        for s, gymnast in items:
            meet = meets.get(s.meet_id)
            if meet is None:
                continue
            disciplines.add(discipline)
            row = [level, DISCIPLINE_TITLES[discipline], meet.name, _date_cell(meet.date),
                   meet.season, gymnast.name]
            row.extend(_cell(s.scores.get(event))
                       for event in events_for_discipline(discipline))
            row.append(s.scores['allAround'])
            rows.append(row)

    if disciplines == {WOMENS}:
        event_headers = [get_event_display_name(e, abbreviated=False) for e in WOMENS_EVENTS]
    elif disciplines == {MENS}:
        event_headers = [get_event_display_name(e, abbreviated=False) for e in MENS_EVENTS]
    else:
        event_headers = MIXED_EVENT_HEADERS

    _write_csv(output_path, TEAM_HEADER_PREFIX + event_headers + ['All-Around'], rows)


def generate_team_totals_csv(db_path: str, output_path: str, top_count: int = 3):
    """One row per team per meet with the computed event and team totals.

    Teams are in level order (Women's before Men's), meets newest first.
    Events a discipline does not compete are left blank.
    """
    conn = get_connection(db_path)
    gymnasts = get_gymnasts(conn, include_hidden=True)
    meets = get_meets(conn)
    scores = get_scores(conn)
    conn.close()

    seasons = sorted({m.season for m in meets}, reverse=True)

    rows = []
    for season in seasons:
        season_meets = [m for m in meets if m.season == season]  # newest first
        for combo in level_discipline_combos(scores, gymnasts, meets, season):
            level, discipline = combo['level'], combo['discipline']
            for meet in season_meets:
                team = filter_team_scores(scores, gymnasts, meet.id, level, discipline)
                if not team:
                    continue
                result = calculate_team_score([s for _, s in team], discipline,
                                              [g for g, _ in team], top_count)
                row = [level, DISCIPLINE_TITLES[discipline], meet.name,
                       _date_cell(meet.date), meet.season,
                       len({g.id for g, _ in team}), top_count]
                row.extend(format_team_score(result.team_scores[e])
                           if e in result.team_scores else ''
                           for e in ALL_EVENTS)
                row.append(format_team_score(result.total_score))
                rows.append(row)

    header = (['Level', 'Discipline', 'Meet', 'Date', 'Season', 'Gymnasts', 'Counting']
              + [get_event_display_name(e, abbreviated=False) for e in ALL_EVENTS]
              + ['Team Total'])
    _write_csv(output_path, header, rows)


def generate_team_report(db_path: str, meet_id: str, level: str, discipline: str,
                         output_path: str | None = None, top_count: int = 3) -> list[str]:
    """Plain-text team breakdown for one meet/level/discipline.

    Counting scores are flagged with '*'. Writes to ``output_path`` when
    given and returns the report lines either way.
    """
    conn = get_connection(db_path)
    meet = get_meet_by_id(conn, meet_id)
    if meet is None:
        conn.close()
        raise ValueError(f'Unknown meet: {meet_id}')
    team = filter_team_scores(get_scores_by_meet(conn, meet_id),
                              get_gymnasts(conn, include_hidden=True),
                              meet_id, level, discipline)
    placement = get_team_placement(conn, meet_id, level, discipline)
    conn.close()

    events = events_for_discipline(discipline)
    result = calculate_team_score([s for _, s in team], discipline,
                                  [g for g, _ in team], top_count)

    lines = []
    lines.append('=' * 60)
    lines.append(f'  {meet.name} - {_date_cell(meet.date)}')
    lines.append(f'  {level} {DISCIPLINE_TITLES.get(discipline, discipline)} '
                 f'(top {top_count} count)')
    lines.append('=' * 60)

    name_width = max([len(g.name) for g, _ in team] + [len('TEAM')])
    header = f"  {'':<{name_width}}" + ''.join(
        f'{get_event_display_name(e) + " ":>10}' for e in events) + f"{'AA ':>10}"
    lines.append(header)

    for gymnast, score in team:
        cells = []
        for event in events:
            value = score.scores.get(event)
            if value is None:
                cells.append(f"{'-':>10}")
                continue
            mark = '*' if is_counting_score(gymnast.id, event, result.counting_scores) else ' '
            cells.append(f'{format_score(value) + mark:>10}')
        all_around = score.scores.get('allAround') or 0
        lines.append(f'  {gymnast.name:<{name_width}}' + ''.join(cells)
                     + f'{format_score(all_around) + " ":>10}')

    lines.append('  ' + '-' * (name_width + 10 * (len(events) + 1)))
    lines.append(f"  {'TEAM':<{name_width}}" + ''.join(
        f'{format_team_score(result.team_scores[e]) + " ":>10}' for e in events)
        + f'{format_team_score(result.total_score) + " ":>10}')

    if placement is not None and placement.placements:
        places = ', '.join(f'{get_event_display_name(e)} {p}'
                           for e, p in placement.placements.items())
        lines.append(f'  Team placements: {places}')

    lines.append('')
    lines.append('  * counting score')

    if output_path:
        with open(output_path, 'w') as f:
            f.write('\n'.join(lines) + '\n')
    return lines
