"""Tests for the backup and score sheet adapters.

Parses the files under tests/reference_data and loads them into a
database the same way the import command does.
"""

import json
import os
import sys

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from scorevault.core import db
from scorevault.core.seasons import from_millis
from scorevault.adapters.base import BackupFormatError
from scorevault.adapters.backup_adapter import BackupAdapter
from scorevault.adapters.generic_adapter import GenericAdapter

REFERENCE_DIR = os.path.join(PROJECT_ROOT, 'tests', 'reference_data')


def _find(records, record_id):
    return next(r for r in records if r['id'] == record_id)


# ─── JSON backups ────────────────────────────────────────────────────

@pytest.fixture(scope='module')
def backup():
    return BackupAdapter().parse(os.path.join(REFERENCE_DIR, 'backup_small.json'))


@pytest.fixture(scope='module')
def backup_db(tmp_path_factory, backup):
    """Load the reference backup once for the database tests."""
    tmpdir = tmp_path_factory.mktemp('backup')
    conn = db.init_db(str(tmpdir / 'scores.db'))
    counts = db.import_all_data(conn, backup)
    yield conn, counts
    conn.close()


class TestBackupAdapter:
    def test_counts(self, backup):
        assert len(backup['gymnasts']) == 3
        assert len(backup['meets']) == 2
        assert len(backup['scores']) == 4
        assert len(backup['teamPlacements']) == 1

    def test_snake_case_fields(self, backup):
        bea = _find(backup['gymnasts'], 'g2')
        assert bea['name'] == 'Bea Lee'
        assert bea['isHidden'] is True
        assert bea['createdAt'] == 1759000100000

        s2 = _find(backup['scores'], 's2')
        assert s2['meetId'] == 'm1'
        assert s2['gymnastId'] == 'g2'

    def test_zero_and_null_scores_dropped(self, backup):
        s2 = _find(backup['scores'], 's2')
        assert s2['scores'] == {'vault': 9.4, 'floor': 9.3, 'allAround': 18.7}
        assert s2['placements'] == {}

    def test_tied_placement(self, backup):
        s1 = _find(backup['scores'], 's1')
        assert s1['placements'] == {'vault': 2, 'bars': 1, 'allAround': 3}
        tp1 = _find(backup['teamPlacements'], 'tp1')
        assert tp1['placements'] == {'vault': 1, 'allAround': 2}

    def test_missing_all_around_defaults_to_zero(self, backup):
        assert _find(backup['scores'], 's4')['scores'] == {'vault': 9.3, 'allAround': 0.0}

    def test_optional_fields(self, backup):
        cal = _find(backup['gymnasts'], 'g3')
        assert cal['dateOfBirth'] is None
        assert cal['usagNumber'] is None
        assert _find(backup['meets'], 'm2')['season'] is None

    def test_non_finite_scores_dropped(self):
        assert BackupAdapter._parse_score(float('inf')) is None
        assert BackupAdapter._parse_score('inf') is None
        assert BackupAdapter._parse_score('nan') is None
        assert BackupAdapter._parse_score('9.5') == 9.5

    def test_double_encoded(self, tmp_path):
        path = tmp_path / 'double.json'
        inner = {'gymnasts': [], 'meets': [], 'scores': []}
        path.write_text(json.dumps(json.dumps(inner)))
        data = BackupAdapter().parse(str(path))
        assert data == {'gymnasts': [], 'meets': [], 'scores': [], 'teamPlacements': []}

    def test_missing_section(self, tmp_path):
        path = tmp_path / 'bad.json'
        path.write_text(json.dumps({'gymnasts': [], 'meets': []}))
        with pytest.raises(BackupFormatError):
            BackupAdapter().parse(str(path))

    def test_not_an_object(self, tmp_path):
        path = tmp_path / 'list.json'
        path.write_text('[1, 2, 3]')
        with pytest.raises(BackupFormatError):
            BackupAdapter().parse(str(path))

    def test_unknown_discipline(self, tmp_path):
        path = tmp_path / 'coed.json'
        path.write_text(json.dumps({
            'gymnasts': [{'id': 'x', 'name': 'X', 'level': 'Level 3', 'discipline': 'Coed'}],
            'meets': [], 'scores': []}))
        with pytest.raises(BackupFormatError):
            BackupAdapter().parse(str(path))

    def test_meet_without_date(self, tmp_path):
        path = tmp_path / 'nodate.json'
        path.write_text(json.dumps({
            'gymnasts': [], 'scores': [], 'meets': [{'id': 'm', 'name': 'Undated'}]}))
        with pytest.raises(BackupFormatError):
            BackupAdapter().parse(str(path))


class TestBackupDatabase:
    def test_import_counts(self, backup_db):
        _, counts = backup_db
        assert counts == {'gymnasts': 3, 'meets': 2, 'scores': 4, 'teamPlacements': 1}

    def test_hidden_gymnast(self, backup_db):
        conn, _ = backup_db
        assert [g.id for g in db.get_hidden_gymnasts(conn)] == ['g2']

    def test_season_filled(self, backup_db):
        conn, _ = backup_db
        assert db.get_meet_by_id(conn, 'm2').season == '2025-2026'

    def test_team_placement(self, backup_db):
        conn, _ = backup_db
        placement = db.get_team_placement(conn, 'm1', 'Level 4', 'Womens')
        assert placement.id == 'tp1'
        assert placement.placements == {'vault': 1, 'allAround': 2}


# ─── TSV / CSV score sheets ──────────────────────────────────────────

@pytest.fixture(scope='module')
def sheet():
    return GenericAdapter().parse(os.path.join(REFERENCE_DIR, 'meet_sheet.tsv'))


@pytest.fixture(scope='module')
def mens_sheet():
    return GenericAdapter().parse(os.path.join(REFERENCE_DIR, 'mens_sheet.csv'))


class TestGenericAdapter:
    def test_counts(self, sheet):
        assert len(sheet['gymnasts']) == 3
        assert len(sheet['meets']) == 2
        assert len(sheet['scores']) == 4
        assert sheet['teamPlacements'] == []

    def test_bad_date_row_skipped(self, sheet, capsys):
        GenericAdapter().parse(os.path.join(REFERENCE_DIR, 'meet_sheet.tsv'))
        assert 'Warning' in capsys.readouterr().out
        assert not any(g['name'] == 'Eve Bad' for g in sheet['gymnasts'])

    def test_stable_ids(self, sheet):
        ids = {g['id'] for g in sheet['gymnasts']}
        assert ids == {'g-womens-ava-smith', 'g-womens-bea-lee', 'g-womens-dee-park'}
        assert {m['id'] for m in sheet['meets']} == {
            'm-2025-10-04-fall-classic', 'm-2025-12-06-winter-invite'}
        assert 's-m-2025-10-04-fall-classic-g-womens-ava-smith' in {
            s['id'] for s in sheet['scores']}

    def test_meet_fields(self, sheet):
        fall = _find(sheet['meets'], 'm-2025-10-04-fall-classic')
        assert fall['name'] == 'Fall Classic'
        assert fall['season'] == '2025-2026'
        assert fall['location'] == 'Ames, IA'
        assert from_millis(fall['date']).date().isoformat() == '2025-10-04'

    def test_levels_normalized(self, sheet):
        levels = {g['name']: g['level'] for g in sheet['gymnasts']}
        assert levels == {'Ava Smith': 'Level 4', 'Bea Lee': 'Level 4',
                          'Dee Park': 'Xcel Gold'}

    def test_all_around_from_column(self, sheet):
        score = _find(sheet['scores'], 's-m-2025-10-04-fall-classic-g-womens-ava-smith')
        assert score['scores']['allAround'] == 36.2
        assert score['placements'] == {'allAround': 3}

    def test_all_around_computed(self, sheet):
        bea = _find(sheet['scores'], 's-m-2025-10-04-fall-classic-g-womens-bea-lee')
        assert bea['scores'] == {'vault': 9.4, 'floor': 9.3, 'allAround': 18.7}
        assert bea['placements'] == {'allAround': 1}
        dee = _find(sheet['scores'], 's-m-2025-10-04-fall-classic-g-womens-dee-park')
        assert dee['scores']['allAround'] == 36.1

    def test_mens_discipline_inferred(self, mens_sheet):
        assert {g['discipline'] for g in mens_sheet['gymnasts']} == {'Mens'}
        assert {g['id'] for g in mens_sheet['gymnasts']} == {
            'g-mens-cal-jones', 'g-mens-jones-dan'}

    def test_mens_quoted_csv(self, mens_sheet):
        dan = _find(mens_sheet['gymnasts'], 'g-mens-jones-dan')
        assert dan['name'] == 'Jones, Dan'
        assert dan['level'] == 'Level 5'
        score = _find(mens_sheet['scores'], 's-m-2025-10-04-fall-classic-g-mens-jones-dan')
        assert score['scores']['allAround'] == 65.1
        assert score['scores']['pommelHorse'] == 10.5

    def test_explicit_discipline_column(self):
        content = 'name,gender,meet,date,vault\nKim Ray,Female,Open,2026-02-01,9.2\n'
        data = GenericAdapter().parse_content(content)
        assert data['gymnasts'][0]['discipline'] == 'Womens'

    def test_non_finite_score_ignored(self):
        content = 'name,meet,date,vault,bars\nKim Ray,Open,2026-02-01,inf,9.1\n'
        score = GenericAdapter().parse_content(content)['scores'][0]
        assert score['scores'] == {'bars': 9.1, 'allAround': 9.1}

    def test_missing_required_column(self):
        with pytest.raises(BackupFormatError):
            GenericAdapter().parse_content('name,level,vault\nKim Ray,4,9.2\n')

    def test_header_only(self):
        data = GenericAdapter().parse_content('name,meet,date\n')
        assert data['scores'] == []

    def test_reimport_is_idempotent(self, sheet, tmp_path):
        conn = db.init_db(str(tmp_path / 'sheet.db'))
        db.import_all_data(conn, sheet, replace=False)
        db.import_all_data(conn, sheet, replace=False)
        assert len(db.get_gymnasts(conn)) == 3
        assert len(db.get_scores(conn)) == 4
        conn.close()
