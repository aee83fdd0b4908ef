#!/usr/bin/env python3
"""CLI entry point for gymnastics team scoring.

Usage:
    python process_team.py import --source backup --data scorevault-backup.json --db scores.db
    python process_team.py import --source generic --data meet1.tsv meet2.csv --db scores.db --merge
    python process_team.py seasons --db scores.db
    python process_team.py teams --db scores.db --season 2025-2026
    python process_team.py team --db scores.db --meet <meet id> \\
        --level "Level 4" --discipline Womens --counting 5
    python process_team.py placement --db scores.db --meet <meet id> \\
        --level "Level 4" --discipline Womens --place vault=2 --place allAround=1
    python process_team.py export --db scores.db --output ./output/
"""

import argparse
import os
import sqlite3
import sys

# Add parent directory to path for imports (skip when frozen by PyInstaller)
if not getattr(sys, 'frozen', False):
    sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scorevault.core.models import DISCIPLINES, StoreConfig
from scorevault.core.db import (init_db, import_all_data, get_gymnasts, get_meets,
                                get_meet_by_id, get_scores, save_team_placement)
from scorevault.core.output_generator import (
    generate_backup_json, generate_gymnasts_csv, generate_meets_csv,
    generate_scores_csv, generate_team_scores_csv, generate_team_totals_csv,
    generate_team_report,
)
from scorevault.core.pdf_generator import generate_team_sheet_pdf
from scorevault.core.seasons import format_date, from_millis, get_current_season
from scorevault.core.team_scores import (ALL_EVENTS, counting_count_options,
                                         format_team_score, level_discipline_combos,
                                         meet_team_totals)
from scorevault.adapters.base import BackupFormatError
from scorevault.adapters.backup_adapter import BackupAdapter
from scorevault.adapters.generic_adapter import GenericAdapter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Gymnastics team scoring')
    sub = parser.add_subparsers(dest='command', required=True)

    def add_db(p):
        p.add_argument('--db', required=True, help='Path to the SQLite score database')

    def add_counting(p):
        p.add_argument('--counting', type=int, default=3,
                       help='Scores counted per event (default 3; 5 for lower levels at state)')

    p_import = sub.add_parser('import', help='Load a backup or score sheets into the database')
    add_db(p_import)
    p_import.add_argument('--source', required=True, choices=['backup', 'generic'],
                          help='Data source type')
    p_import.add_argument('--data', nargs='+', required=True, help='Input data file(s)')
    p_import.add_argument('--merge', action='store_true',
                          help='Merge into existing data instead of replacing it')

    p_seasons = sub.add_parser('seasons', help='List seasons that have meets')
    add_db(p_seasons)

    p_teams = sub.add_parser('teams', help='List teams and their meet totals for a season')
    add_db(p_teams)
    add_counting(p_teams)
    p_teams.add_argument('--season', default=None,
                         help='Season "YYYY-YYYY" (default: current season)')

    p_team = sub.add_parser('team', help='Show one team score breakdown')
    add_db(p_team)
    add_counting(p_team)
    p_team.add_argument('--meet', required=True, help='Meet ID')
    p_team.add_argument('--level', required=True, help='Level, e.g. "Level 4" or "Xcel Gold"')
    p_team.add_argument('--discipline', required=True, choices=list(DISCIPLINES))
    p_team.add_argument('--output', default=None, help='Also write the report to this file')

    p_place = sub.add_parser('placement', help='Record team placements for a meet')
    add_db(p_place)
    p_place.add_argument('--meet', required=True, help='Meet ID')
    p_place.add_argument('--level', required=True)
    p_place.add_argument('--discipline', required=True, choices=list(DISCIPLINES))
    p_place.add_argument('--place', action='append', default=[], metavar='EVENT=N',
                         help='Team placement for an event or allAround (repeatable)')

    p_export = sub.add_parser('export', help='Write CSV, JSON and PDF exports')
    add_db(p_export)
    add_counting(p_export)
    p_export.add_argument('--output', required=True, help='Output directory for generated files')

    return parser


def cmd_import(args):
    if args.source == 'backup':
        adapter = BackupAdapter()
    else:
        adapter = GenericAdapter()

    # Records keyed by ID; a later file wins over an earlier one
    merged = {'gymnasts': {}, 'meets': {}, 'scores': {}, 'teamPlacements': {}}
    for data_path in args.data:
        print(f"Parsing {data_path}...")
        batch = adapter.parse(data_path)
        print(f"  -> {len(batch['gymnasts'])} gymnasts, {len(batch['meets'])} meets, "
              f"{len(batch['scores'])} scores")
        for key, records in merged.items():
            for record in batch[key]:
                records[record['id']] = record
    data = {key: list(records.values()) for key, records in merged.items()}

    conn = init_db(args.db)
    try:
        counts = import_all_data(conn, data, replace=not args.merge)
    finally:
        conn.close()
    print(f"Imported {counts['gymnasts']} gymnasts, {counts['meets']} meets, "
          f"{counts['scores']} scores, {counts['teamPlacements']} team placements "
          f"into {args.db}")


def cmd_seasons(args):
    conn = init_db(args.db)
    meets = get_meets(conn)
    conn.close()

    current = get_current_season()
    counts = {}
    for meet in meets:
        counts[meet.season] = counts.get(meet.season, 0) + 1
    if current not in counts:
        print(f"{current}  (current, no meets)")
    for season in sorted(counts, reverse=True):
        marker = '  (current)' if season == current else ''
        print(f"{season}  {counts[season]} meets{marker}")


def cmd_teams(args):
    season = args.season or get_current_season()
    conn = init_db(args.db)
    gymnasts = get_gymnasts(conn, include_hidden=True)
    meets = get_meets(conn)
    scores = get_scores(conn)
    conn.close()

    combos = level_discipline_combos(scores, gymnasts, meets, season)
    if not combos:
        print(f"No team scores for the {season} season")
        return

    print(f"Season {season}: {len(combos)} teams")
    for combo in combos:
        print(f"\n{combo['level']} {combo['discipline']} - "
              f"{combo['gymnast_count']} gymnasts, {combo['meet_count']} meets")
        totals = meet_team_totals(scores, gymnasts, meets, combo['level'],
                                  combo['discipline'], args.counting)
        for total in totals:
            meet = total['meet']
            if meet.season != season:
                continue
            print(f"  {format_team_score(total['team_score']):>8}  {meet.name} "
                  f"({format_date(from_millis(meet.date))}, "
                  f"{total['gymnast_count']} gymnasts)  [{meet.id}]")


def cmd_team(args):
    options = counting_count_options(args.level, args.discipline)
    if args.counting not in options:
        print(f"Warning: {args.level} {args.discipline} teams usually count "
              f"{' or '.join(str(o) for o in options)} scores, not {args.counting}")

    lines = generate_team_report(args.db, args.meet, args.level, args.discipline,
                                 output_path=args.output, top_count=args.counting)
    print('\n'.join(lines))
    if args.output:
        print(f"\nGenerated {args.output}")


def cmd_placement(args):
    placements = {}
    for item in args.place:
        event, _, value = item.partition('=')
        if event not in ALL_EVENTS + ('allAround',):
            raise ValueError(f'Unknown event in --place: {event!r}')
        placements[event] = int(value)

    conn = init_db(args.db)
    if get_meet_by_id(conn, args.meet) is None:
        conn.close()
        raise ValueError(f'Unknown meet: {args.meet}')
    placement_id = save_team_placement(conn, args.meet, args.level, args.discipline,
                                       placements)
    conn.close()
    print(f"Saved team placements {placement_id}")


def cmd_export(args):
    config = StoreConfig(db_path=args.db, output_dir=args.output,
                         counting_count=args.counting)
    os.makedirs(config.output_dir, exist_ok=True)
    init_db(config.db_path).close()

    outputs = [
        ('scorevault-backup.json', generate_backup_json),
        ('gymnasts.csv', generate_gymnasts_csv),
        ('meets.csv', generate_meets_csv),
        ('scores.csv', generate_scores_csv),
        ('team-scores.csv', generate_team_scores_csv),
    ]
    for filename, generate in outputs:
        path = os.path.join(config.output_dir, filename)
        generate(config.db_path, path)
        print(f"Generated {path}")

    totals_path = os.path.join(config.output_dir, 'team-totals.csv')
    generate_team_totals_csv(config.db_path, totals_path, top_count=config.counting_count)
    print(f"Generated {totals_path}")

    pdf_path = os.path.join(config.output_dir, 'team-score-sheets.pdf')
    pages = generate_team_sheet_pdf(config.db_path, pdf_path,
                                    top_count=config.counting_count)
    print(f"Generated {pdf_path} ({pages} teams)")


COMMANDS = {
    'import': cmd_import,
    'seasons': cmd_seasons,
    'teams': cmd_teams,
    'team': cmd_team,
    'placement': cmd_placement,
    'export': cmd_export,
}


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        COMMANDS[args.command](args)
    except (BackupFormatError, ValueError, FileNotFoundError, sqlite3.IntegrityError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    print("\nDone!")


if __name__ == '__main__':
    main()
