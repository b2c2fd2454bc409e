import json
import os
import sqlite3
import tempfile
from datetime import date
import pytest

from alignertrack.data import (
    Database, ScheduleRepository, ALIGNERS_KEY, APPOINTMENT_KEY, aligners_from_json, aligners_to_json
)
from alignertrack.models import Aligner, Schedule

@pytest.fixture
def temp_db():
    fd, path = tempfile.mkstemp()
    os.close(fd)
    db = Database(db_path=path)
    try:
        yield db
    finally:
        # Erst die DB‐Verbindung schließen, dann die Datei löschen
        db.close()
        os.remove(path)


def _schedule():
    return Schedule(
        aligners=(
            Aligner(4, date(2025, 1, 21), date(2025, 1, 20)),
            Aligner(5, date(2025, 2, 10), None),
            Aligner(6, date(2025, 3, 2), None),
        ),
        appointment_date=date(2025, 3, 2),
    )


def test_get_set_clear(temp_db):
    assert temp_db.get('foo') is None
    temp_db.set('foo', 'bar')
    temp_db.set('foo', 'baz')
    assert temp_db.get('foo') == 'baz'
    temp_db.clear()
    assert temp_db.get('foo') is None


def test_memory_database():
    db = Database(':memory:')
    db.set('a', '1')
    assert db.get('a') == '1'
    db.close()
    assert db.conn is None


def test_schedule_roundtrip(temp_db):
    repo = ScheduleRepository(temp_db)
    repo.save(_schedule())
    loaded = repo.load()
    assert loaded == _schedule()
    assert [a.id for a in loaded.aligners] == [4, 5, 6]
    assert loaded.aligners[0].actual_change_date == date(2025, 1, 20)
    assert loaded.aligners[1].actual_change_date is None


def test_stored_format(temp_db):
    ScheduleRepository(temp_db).save(_schedule())
    raw = json.loads(temp_db.get(ALIGNERS_KEY))
    assert raw[0] == {'id': 4, 'projectedChangeDate': '2025-01-21', 'actualChangeDate': '2025-01-20'}
    assert temp_db.get(APPOINTMENT_KEY) == '2025-03-02'


def test_load_browser_timestamps(temp_db):
    # Format älterer Versionen: volle ISO-Zeitstempel
    temp_db.set(ALIGNERS_KEY, json.dumps([
        {'id': 1, 'projectedChangeDate': '2025-01-21T10:15:00.000Z', 'actualChangeDate': '2025-01-20T08:00:00.000Z'},
        {'id': 2, 'projectedChangeDate': '2025-02-10T10:15:00.000Z'},
    ]))
    temp_db.set(APPOINTMENT_KEY, '2025-02-10T00:00:00.000Z')
    loaded = ScheduleRepository(temp_db).load()
    assert loaded.appointment_date == date(2025, 2, 10)
    assert loaded.aligners[0].actual_change_date == date(2025, 1, 20)
    assert loaded.aligners[1] == Aligner(2, date(2025, 2, 10), None)


def test_load_missing_returns_none(temp_db):
    repo = ScheduleRepository(temp_db)
    assert repo.load() is None
    temp_db.set(APPOINTMENT_KEY, '2025-02-10')
    assert repo.load() is None


@pytest.mark.parametrize("raw_aligners,raw_appt", [
    ('{kein json', '2025-02-10'),
    ('[{"id": 1}]', '2025-02-10'),
    ('[{"id": 1, "projectedChangeDate": "gestern"}]', '2025-02-10'),
    ('[{"id": 1, "projectedChangeDate": null}]', '2025-02-10'),
    ('[{"id": 1, "projectedChangeDate": "2025-01-01"}]', 'kaputt'),
    ('[]', '2025-02-10'),
    # doppelte, lückenhafte oder nicht ganzzahlige Schienennummern
    ('[{"id": 1, "projectedChangeDate": "2025-01-01"}, {"id": 1, "projectedChangeDate": "2025-01-02"}]', '2025-02-10'),
    ('[{"id": 1, "projectedChangeDate": "2025-01-01"}, {"id": 3, "projectedChangeDate": "2025-01-02"}]', '2025-02-10'),
    ('[{"id": 1.7, "projectedChangeDate": "2025-01-01"}]', '2025-02-10'),
    ('[{"id": true, "projectedChangeDate": "2025-01-01"}]', '2025-02-10'),
    ('[{"id": "2", "projectedChangeDate": "2025-01-01"}]', '2025-02-10'),
    ('[{"id": 0, "projectedChangeDate": "2025-01-01"}]', '2025-02-10'),
])
def test_load_corrupted_returns_none(temp_db, raw_aligners, raw_appt):
    temp_db.set(ALIGNERS_KEY, raw_aligners)
    temp_db.set(APPOINTMENT_KEY, raw_appt)
    assert ScheduleRepository(temp_db).load() is None


def test_save_skips_inactive_schedule(temp_db):
    repo = ScheduleRepository(temp_db)
    repo.save(Schedule())
    repo.save(Schedule(aligners=_schedule().aligners, appointment_date=None))
    assert temp_db.get(ALIGNERS_KEY) is None
    assert temp_db.get(APPOINTMENT_KEY) is None


def test_repository_clear(temp_db):
    repo = ScheduleRepository(temp_db)
    repo.save(_schedule())
    temp_db.set('other', 'x')
    repo.clear()
    assert repo.load() is None
    assert temp_db.get('other') == 'x'


def test_aligners_json_sorted_by_id():
    raw = aligners_to_json([Aligner(2, date(2025, 1, 2)), Aligner(1, date(2025, 1, 1))])
    assert [a.id for a in aligners_from_json(raw)] == [1, 2]


def test_backup_and_restore(tmp_path):
    src = Database(str(tmp_path / 'src.db'))
    ScheduleRepository(src).save(_schedule())
    dump = tmp_path / 'dump.sql'
    src.export_to_sql(str(dump))
    src.close()

    target = Database(str(tmp_path / 'target.db'))
    target.set(ALIGNERS_KEY, 'alt')
    target.import_from_sql(str(dump))
    assert ScheduleRepository(target).load() == _schedule()
    target.close()


def test_restore_missing_file_keeps_data(tmp_path):
    db = Database(str(tmp_path / 'keep.db'))
    db.set('foo', 'bar')
    with pytest.raises(OSError):
        db.import_from_sql(str(tmp_path / 'missing.sql'))
    assert db.get('foo') == 'bar'
    db.close()


@pytest.mark.parametrize("ids", [[1, 1], [1, 3], [2, 4, 5]])
def test_aligners_from_json_rejects_irregular_ids(ids):
    raw = json.dumps([{'id': i, 'projectedChangeDate': '2025-01-01'} for i in ids])
    with pytest.raises(ValueError):
        aligners_from_json(raw)


def test_aligners_from_json_accepts_range_not_starting_at_one():
    raw = aligners_to_json(list(_schedule().aligners))
    assert [a.id for a in aligners_from_json(raw)] == [4, 5, 6]


@pytest.mark.parametrize("dump", [
    # abgebrochenes INSERT
    'BEGIN TRANSACTION;\n'
    'CREATE TABLE store (key TEXT PRIMARY KEY, value TEXT NOT NULL);\n'
    'INSERT INTO "store" VALUES(\'aligners\',\n'
    'COMMIT;\n',
    # Dump ohne store-Tabelle
    'CREATE TABLE andere (x TEXT);\n',
])
def test_restore_malformed_dump_keeps_data(tmp_path, dump):
    db = Database(str(tmp_path / 'keep.db'))
    repo = ScheduleRepository(db)
    repo.save(_schedule())
    fn = tmp_path / 'broken.sql'
    fn.write_text(dump, encoding='utf-8')

    with pytest.raises(sqlite3.Error):
        db.import_from_sql(str(fn))
    assert repo.load() == _schedule()

    # Verbindung bleibt benutzbar
    db.set('foo', 'bar')
    assert db.get('foo') == 'bar'
    db.close()
