"""Tests for the SQLite score store."""

import datetime
import os
import re
import sqlite3
import sys

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from scorevault.core import db
from scorevault.core.seasons import from_millis


@pytest.fixture
def conn(tmp_path):
    connection = db.init_db(str(tmp_path / 'scores.db'))
    yield connection
    connection.close()


@pytest.fixture
def seeded(conn):
    """One women's and one men's gymnast with scores at two meets."""
    ava = db.add_gymnast(conn, 'Ava Smith', 'Level 4', 'Womens',
                         date_of_birth=datetime.date(2015, 3, 2), usag_number='123456')
    cal = db.add_gymnast(conn, 'Cal Jones', 'Level 4', 'Mens')
    fall = db.add_meet(conn, 'Fall Classic', datetime.date(2025, 10, 4), location='Ames, IA')
    spring = db.add_meet(conn, 'Spring Fling', datetime.date(2026, 3, 14))
    s1 = db.add_score(conn, fall, ava, {'vault': 9.1, 'bars': 9.2, 'beam': 8.9, 'floor': 9.0},
                      placements={'vault': 2, 'allAround': 3}, level='Level 4')
    s2 = db.add_score(conn, spring, ava, {'vault': 9.3, 'allAround': 9.3}, level='Level 4')
    s3 = db.add_score(conn, fall, cal, {'floor': 12.1, 'highBar': 11.5}, level='Level 4')
    return conn, {'ava': ava, 'cal': cal, 'fall': fall, 'spring': spring,
                  's1': s1, 's2': s2, 's3': s3}


class TestSchema:
    def test_tables_created(self, conn):
        names = {r['name'] for r in conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table'")}
        assert {'gymnasts', 'meets', 'scores', 'team_placements'} <= names

    def test_init_is_idempotent(self, tmp_path):
        path = str(tmp_path / 'twice.db')
        db.init_db(path).close()
        db.init_db(path).close()

    def test_generate_id_format(self):
        assert re.match(r'^\d+-[0-9a-z]{9}$', db.generate_id())
        assert db.generate_id() != db.generate_id()


class TestGymnasts:
    def test_add_and_get(self, seeded):
        conn, ids = seeded
        ava = db.get_gymnast_by_id(conn, ids['ava'])
        assert ava.name == 'Ava Smith'
        assert ava.discipline == 'Womens'
        assert ava.usag_number == '123456'
        assert from_millis(ava.date_of_birth).date() == datetime.date(2015, 3, 2)
        assert ava.is_hidden is False

    def test_newest_first(self, seeded):
        conn, ids = seeded
        assert [g.id for g in db.get_gymnasts(conn)] == [ids['cal'], ids['ava']]

    def test_unknown_discipline(self, conn):
        with pytest.raises(ValueError):
            db.add_gymnast(conn, 'Dee', 'Level 3', 'Coed')

    def test_missing_id(self, conn):
        assert db.get_gymnast_by_id(conn, 'nope') is None

    def test_update(self, seeded):
        conn, ids = seeded
        db.update_gymnast(conn, ids['ava'], level='Level 5', usag_number='999')
        ava = db.get_gymnast_by_id(conn, ids['ava'])
        assert ava.level == 'Level 5'
        assert ava.usag_number == '999'
        assert ava.name == 'Ava Smith'

    def test_update_unknown_field(self, seeded):
        conn, ids = seeded
        with pytest.raises(ValueError):
            db.update_gymnast(conn, ids['ava'], shoe_size=5)

    def test_hide_and_unhide(self, seeded):
        conn, ids = seeded
        db.hide_gymnast(conn, ids['ava'])
        assert [g.id for g in db.get_gymnasts(conn)] == [ids['cal']]
        assert [g.id for g in db.get_hidden_gymnasts(conn)] == [ids['ava']]
        assert len(db.get_gymnasts(conn, include_hidden=True)) == 2

        db.unhide_gymnast(conn, ids['ava'])
        assert db.get_hidden_gymnasts(conn) == []
        assert len(db.get_gymnasts(conn)) == 2

    def test_delete_cascades_to_scores(self, seeded):
        conn, ids = seeded
        db.delete_gymnast(conn, ids['ava'])
        assert db.get_gymnast_by_id(conn, ids['ava']) is None
        assert db.get_scores_by_gymnast(conn, ids['ava']) == []
        assert [s.id for s in db.get_scores(conn)] == [ids['s3']]


class TestMeets:
    def test_season_derived_from_date(self, seeded):
        conn, ids = seeded
        assert db.get_meet_by_id(conn, ids['fall']).season == '2025-2026'
        assert db.get_meet_by_id(conn, ids['spring']).season == '2025-2026'

    def test_explicit_season(self, conn):
        meet_id = db.add_meet(conn, 'Odd One', datetime.date(2025, 7, 30), season='2025-2026')
        assert db.get_meet_by_id(conn, meet_id).season == '2025-2026'

    def test_most_recent_first(self, seeded):
        conn, ids = seeded
        assert [m.id for m in db.get_meets(conn)] == [ids['spring'], ids['fall']]

    def test_location(self, seeded):
        conn, ids = seeded
        assert db.get_meet_by_id(conn, ids['fall']).location == 'Ames, IA'
        assert db.get_meet_by_id(conn, ids['spring']).location is None

    def test_update_date_moves_season(self, seeded):
        conn, ids = seeded
        db.update_meet(conn, ids['spring'], date=datetime.date(2026, 9, 1))
        meet = db.get_meet_by_id(conn, ids['spring'])
        assert meet.season == '2026-2027'
        assert from_millis(meet.date).date() == datetime.date(2026, 9, 1)

    def test_update_name_only(self, seeded):
        conn, ids = seeded
        db.update_meet(conn, ids['fall'], name='Fall Classic II')
        meet = db.get_meet_by_id(conn, ids['fall'])
        assert meet.name == 'Fall Classic II'
        assert meet.season == '2025-2026'

    def test_delete_cascades(self, seeded):
        conn, ids = seeded
        db.save_team_placement(conn, ids['fall'], 'Level 4', 'Womens', {'vault': 1})
        db.delete_meet(conn, ids['fall'])
        assert db.get_scores_by_meet(conn, ids['fall']) == []
        assert db.get_team_placements_by_meet(conn, ids['fall']) == []
        assert [s.id for s in db.get_scores(conn)] == [ids['s2']]


class TestScores:
    def test_all_around_computed(self, seeded):
        conn, ids = seeded
        score = db.get_score_by_id(conn, ids['s1'])
        assert score.scores['allAround'] == 36.2
        assert score.placements == {'vault': 2, 'allAround': 3}

    def test_all_around_uses_discipline(self, seeded):
        conn, ids = seeded
        assert db.get_score_by_id(conn, ids['s3']).scores == {
            'floor': 12.1, 'highBar': 11.5, 'allAround': 23.6}

    def test_explicit_all_around_kept(self, seeded):
        conn, ids = seeded
        assert db.get_score_by_id(conn, ids['s2']).scores == {'vault': 9.3, 'allAround': 9.3}

    def test_zero_stored_as_missing(self, seeded):
        conn, ids = seeded
        score_id = db.add_score(conn, ids['spring'], ids['cal'],
                                {'floor': 11.0, 'rings': 0}, level='Level 4')
        assert 'rings' not in db.get_score_by_id(conn, score_id).scores

    def test_unknown_gymnast(self, seeded):
        conn, ids = seeded
        with pytest.raises(ValueError):
            db.add_score(conn, ids['fall'], 'ghost', {'vault': 9.0})

    def test_by_meet_and_gymnast(self, seeded):
        conn, ids = seeded
        assert {s.id for s in db.get_scores_by_meet(conn, ids['fall'])} == {ids['s1'], ids['s3']}
        assert {s.id for s in db.get_scores_by_gymnast(conn, ids['ava'])} == {ids['s1'], ids['s2']}

    def test_partial_update(self, seeded):
        conn, ids = seeded
        db.update_score(conn, ids['s1'], scores={'vault': 9.6, 'bars': 0},
                        placements={'vault': 1})
        score = db.get_score_by_id(conn, ids['s1'])
        assert score.scores['vault'] == 9.6
        assert 'bars' not in score.scores
        assert score.scores['beam'] == 8.9
        assert score.scores['allAround'] == 36.2
        assert score.placements == {'vault': 1, 'allAround': 3}
        assert score.level == 'Level 4'

    def test_update_unknown_event(self, seeded):
        conn, ids = seeded
        with pytest.raises(ValueError):
            db.update_score(conn, ids['s1'], scores={'trampoline': 9.0})

    def test_delete(self, seeded):
        conn, ids = seeded
        db.delete_score(conn, ids['s2'])
        assert db.get_score_by_id(conn, ids['s2']) is None

    def test_counts(self, seeded):
        conn, ids = seeded
        assert db.get_score_count_by_gymnast(conn, ids['ava']) == 2
        assert db.get_score_count_by_gymnast(conn, ids['cal']) == 1
        assert db.get_score_count_by_meet(conn, ids['fall']) == 2
        assert db.get_score_count_by_meet(conn, 'nope') == 0


class TestTeamPlacements:
    def test_save_and_get(self, seeded):
        conn, ids = seeded
        db.save_team_placement(conn, ids['fall'], 'Level 4', 'Womens',
                               {'vault': 2, 'allAround': 1})
        placement = db.get_team_placement(conn, ids['fall'], 'Level 4', 'Womens')
        assert placement.placements == {'vault': 2, 'allAround': 1}
        assert db.get_team_placement(conn, ids['fall'], 'Level 4', 'Mens') is None

    def test_save_again_updates_same_row(self, seeded):
        conn, ids = seeded
        first = db.save_team_placement(conn, ids['fall'], 'Level 4', 'Womens', {'vault': 2})
        second = db.save_team_placement(conn, ids['fall'], 'Level 4', 'Womens', {'beam': 3})
        assert first == second
        assert db.get_team_placement(conn, ids['fall'], 'Level 4', 'Womens').placements == {
            'beam': 3}
        assert len(db.get_all_team_placements(conn)) == 1

    def test_by_meet_and_delete(self, seeded):
        conn, ids = seeded
        womens = db.save_team_placement(conn, ids['fall'], 'Level 4', 'Womens', {'vault': 1})
        db.save_team_placement(conn, ids['fall'], 'Level 4', 'Mens', {'floor': 4})
        assert len(db.get_team_placements_by_meet(conn, ids['fall'])) == 2
        db.delete_team_placement(conn, womens)
        assert [tp.discipline for tp in db.get_team_placements_by_meet(conn, ids['fall'])] == [
            'Mens']

    def test_unknown_discipline(self, seeded):
        conn, ids = seeded
        with pytest.raises(ValueError):
            db.save_team_placement(conn, ids['fall'], 'Level 4', 'Coed', {})


def _by_id(records):
    return sorted(records, key=lambda r: r['id'])


class TestExportImport:
    def test_export_layout(self, seeded):
        conn, ids = seeded
        data = db.export_all_data(conn)
        assert set(data) == {'gymnasts', 'meets', 'scores', 'teamPlacements'}
        score = next(s for s in data['scores'] if s['id'] == ids['s1'])
        assert score['meetId'] == ids['fall']
        assert score['gymnastId'] == ids['ava']
        assert score['scores']['allAround'] == 36.2

    def test_round_trip(self, seeded, tmp_path):
        conn, ids = seeded
        db.save_team_placement(conn, ids['fall'], 'Level 4', 'Womens', {'allAround': 2})
        data = db.export_all_data(conn)

        other = db.init_db(str(tmp_path / 'restored.db'))
        counts = db.import_all_data(other, data)
        restored = db.export_all_data(other)
        other.close()

        assert counts == {'gymnasts': 2, 'meets': 2, 'scores': 3, 'teamPlacements': 1}
        for key in data:
            assert _by_id(restored[key]) == _by_id(data[key])

    def test_replace_clears_existing(self, seeded):
        conn, _ = seeded
        data = db.export_all_data(conn)
        db.add_gymnast(conn, 'Temporary', 'Level 2', 'Womens')

        db.import_all_data(conn, data, replace=True)
        assert {g.name for g in db.get_gymnasts(conn)} == {'Ava Smith', 'Cal Jones'}
        assert len(db.get_scores(conn)) == 3

    def test_merge_keeps_existing(self, seeded):
        conn, ids = seeded
        data = {
            'gymnasts': [{'id': ids['ava'], 'name': 'Renamed', 'level': 'Level 9',
                          'discipline': 'Womens'},
                         {'id': 'new-g', 'name': 'Nia', 'level': 'Level 4',
                          'discipline': 'Womens'}],
            'meets': [],
            'scores': [{'id': ids['s2'], 'meetId': ids['spring'], 'gymnastId': ids['ava'],
                        'level': 'Level 4', 'scores': {'vault': 9.7, 'allAround': 9.7}}],
        }
        db.import_all_data(conn, data, replace=False)

        assert db.get_gymnast_by_id(conn, ids['ava']).name == 'Ava Smith'
        assert db.get_gymnast_by_id(conn, 'new-g').name == 'Nia'
        assert db.get_score_by_id(conn, ids['s2']).scores['vault'] == 9.7
        assert len(db.get_scores(conn)) == 3

    def test_meet_season_filled_on_import(self, conn):
        date_ms = int(datetime.datetime(2025, 11, 8).timestamp() * 1000)
        db.import_all_data(conn, {'gymnasts': [], 'scores': [], 'meets': [
            {'id': 'm1', 'name': 'Invite', 'date': date_ms}]})
        assert db.get_meet_by_id(conn, 'm1').season == '2025-2026'

    def test_bad_record_rolls_back(self, seeded):
        conn, ids = seeded
        before = db.export_all_data(conn)
        data = {
            'gymnasts': [],
            'meets': [],
            'scores': [{'id': 'orphan', 'meetId': 'no-meet', 'gymnastId': 'no-gymnast',
                        'scores': {'vault': 9.0, 'allAround': 9.0}}],
        }
        with pytest.raises(sqlite3.IntegrityError):
            db.import_all_data(conn, data, replace=True)

        after = db.export_all_data(conn)
        for key in before:
            assert _by_id(after[key]) == _by_id(before[key])
