from datetime import date

from alignertrack.data import Database, ScheduleRepository
from alignertrack.models import Aligner, Schedule
from alignertrack.ui import BackupWorker, RestoreWorker, ExportWorker


def _schedule():
    return Schedule((Aligner(1, date(2025, 1, 11)), Aligner(2, date(2025, 1, 21))), date(2025, 1, 21))


def _run(worker):
    results, errors = [], []
    worker.finished.connect(lambda *args: results.append(args))
    worker.error.connect(errors.append)
    worker.run()
    return results, errors


# --- ExportWorker ---
def test_export_worker_success(qapp, tmp_path):
    fn = tmp_path / 'report.pdf'
    results, errors = _run(ExportWorker(_schedule(), str(fn), date(2025, 1, 5), '%d/%m/%Y'))
    assert results == [(str(fn),)]
    assert not errors
    assert fn.exists()


def test_export_worker_failure(qapp, tmp_path):
    fn = tmp_path / 'missing_dir' / 'report.pdf'
    results, errors = _run(ExportWorker(_schedule(), str(fn), date(2025, 1, 5), '%d/%m/%Y'))
    assert not results
    assert errors


# --- BackupWorker / RestoreWorker ---
def test_backup_and_restore_worker(qapp, tmp_path):
    db_path = str(tmp_path / 'source.db')
    db = Database(db_path)
    ScheduleRepository(db).save(_schedule())
    db.close()

    dump = tmp_path / 'backup.sql'
    results, errors = _run(BackupWorker(db_path, str(dump)))
    assert results and not errors
    assert dump.exists()

    target_path = str(tmp_path / 'target.db')
    results, errors = _run(RestoreWorker(target_path, str(dump)))
    assert results and not errors
    target = Database(target_path)
    assert ScheduleRepository(target).load() == _schedule()
    target.close()


def test_backup_worker_failure(qapp, tmp_path):
    # Zieldatei ist ein Verzeichnis
    results, errors = _run(BackupWorker(str(tmp_path / 'x.db'), str(tmp_path)))
    assert not results
    assert errors and errors[0].startswith("Dateifehler")


def test_restore_worker_failure(qapp, tmp_path):
    results, errors = _run(RestoreWorker(str(tmp_path / 'x.db'), str(tmp_path / 'missing.sql')))
    assert not results
    assert errors
