import sys
import datetime
import os
import logging
import tempfile

from PySide6.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout,
    QStackedWidget, QPushButton, QLabel, QSpinBox, QListWidget,
    QListWidgetItem, QMessageBox, QDateEdit, QFileDialog
)
from PySide6.QtGui import QBrush, QColor
from PySide6.QtCore import Qt, QDate, QThread, Signal, QObject

from alignertrack.charts import create_schedule_chart
from alignertrack.config import load_config, resolve_log_level
from alignertrack.data import Database, ScheduleRepository
from alignertrack.export_utils import (
    export_schedule_csv, export_schedule_pdf, format_aligner_line, parse_aligner_range
)
from alignertrack.schedule_logic import current_aligner_index
from alignertrack.statistics import summarize_schedule
from alignertrack.tracker import Tracker, STATE_UNINITIALIZED


# === Constants ===
SQL_FILE_FILTER = "SQL-Datei (*.sql)"
PDF_FILE_FILTER = "PDF-Datei (*.pdf)"
CSV_FILE_FILTER = "CSV-Datei (*.csv)"
BACKUP_TITLE = "Backup speichern als"
RESTORE_TITLE = "Backup wiederherstellen"
RESTORE_CONFIRM_TITLE = "Restore bestätigen"
RESTORE_CONFIRM_TEXT = "Achtung: Der aktuelle Trageplan wird überschrieben.\nWeiter?"
BACKUP_SUCCESS_TEXT = "Datenbank erfolgreich exportiert nach:\n{fn}"
RESTORE_SUCCESS_TEXT = "Datenbank erfolgreich wiederhergestellt."

# === UI Text Constants ===
SETUP_TITLE = "Erste Einrichtung"
SCHEDULE_TITLE = "Dein Trageplan"
APPOINTMENT_LABEL = "Datum des nächsten Termins:"
START_LABEL = "Erste Schiene:"
END_LABEL = "Letzte Schiene:"
START_BTN_TEXT = "Tracking starten"
CONFIRM_BTN_TEXT = "Heute gewechselt"
EDIT_LABEL = "Wechseldatum:"
EDIT_BTN_TEXT = "Datum speichern"
EXPORT_BTN_TEXT = "PDF Export"
EXPORT_CSV_BTN_TEXT = "CSV Export"
BACKUP_BTN_TEXT = "DB Backup"
RESTORE_BTN_TEXT = "DB Restore"

# Farbkonstanten
COLOR_CHANGED = '#A0FFA0'
COLOR_CURRENT = '#A0C4FF'
COLOR_BEHIND = '#FFADAD'


def qdate_to_date(qdate):
    """Hilfsfunktion: QDate -> datetime.date"""
    return qdate.toPython() if hasattr(qdate, 'toPython') else datetime.date(qdate.year(), qdate.month(), qdate.day())


def date_to_qdate(d):
    return QDate(d.year, d.month, d.day)


def _is_running(thread):
    if thread is None:
        return False
    try:
        return thread.isRunning()
    except RuntimeError:
        return False  # Thread-Objekt wurde bereits gelöscht


class SetupTab(QWidget):
    def __init__(self, parent):
        super().__init__()
        self.parent = parent
        layout = QVBoxLayout(self)
        layout.addWidget(QLabel(SETUP_TITLE))

        date_layout = QHBoxLayout()
        date_layout.addWidget(QLabel(APPOINTMENT_LABEL))
        self.appointment = QDateEdit(QDate.currentDate()); self.appointment.setCalendarPopup(True)
        date_layout.addWidget(self.appointment)
        layout.addLayout(date_layout)

        range_layout = QHBoxLayout()
        range_layout.addWidget(QLabel(START_LABEL))
        self.start_id = QSpinBox(); self.start_id.setRange(1, 999); self.start_id.setValue(1)
        range_layout.addWidget(self.start_id)
        range_layout.addWidget(QLabel(END_LABEL))
        self.end_id = QSpinBox(); self.end_id.setRange(1, 999); self.end_id.setValue(1)
        range_layout.addWidget(self.end_id)
        layout.addLayout(range_layout)

        self.btn_start = QPushButton(START_BTN_TEXT)
        layout.addWidget(self.btn_start)
        layout.addStretch()

        self.btn_start.clicked.connect(self.parent.on_setup)


class ScheduleTab(QWidget):
    def __init__(self, parent):
        super().__init__()
        self.parent = parent
        layout = QVBoxLayout(self)
        layout.addWidget(QLabel(SCHEDULE_TITLE))

        self.summary = QLabel()
        layout.addWidget(self.summary)

        self.aligner_list = QListWidget()
        layout.addWidget(self.aligner_list)

        self.btn_confirm = QPushButton(CONFIRM_BTN_TEXT)
        layout.addWidget(self.btn_confirm)

        edit_layout = QHBoxLayout()
        edit_layout.addWidget(QLabel(EDIT_LABEL))
        self.edit_date = QDateEdit(QDate.currentDate()); self.edit_date.setCalendarPopup(True)
        edit_layout.addWidget(self.edit_date)
        self.btn_edit = QPushButton(EDIT_BTN_TEXT)
        edit_layout.addWidget(self.btn_edit)
        layout.addLayout(edit_layout)

        hl = QHBoxLayout()
        self.btn_export = QPushButton(EXPORT_BTN_TEXT)
        self.btn_export_csv = QPushButton(EXPORT_CSV_BTN_TEXT)
        self.btn_backup = QPushButton(BACKUP_BTN_TEXT)
        self.btn_restore = QPushButton(RESTORE_BTN_TEXT)
        hl.addWidget(self.btn_export)
        hl.addWidget(self.btn_export_csv)
        hl.addWidget(self.btn_backup)
        hl.addWidget(self.btn_restore)
        layout.addLayout(hl)

        # Signale
        self.btn_confirm.clicked.connect(self.parent.on_confirm_change)
        self.btn_edit.clicked.connect(self.parent.on_edit_date)
        self.aligner_list.currentItemChanged.connect(self.on_selection_changed)
        self.btn_export.clicked.connect(self.parent.on_export)
        self.btn_export_csv.clicked.connect(self.parent.on_export_csv)
        self.btn_backup.clicked.connect(self.parent.on_backup)
        self.btn_restore.clicked.connect(self.parent.on_restore)

    def on_selection_changed(self, current, previous):
        if current is None:
            return
        al = self.parent.tracker.find(current.data(Qt.UserRole))
        # Bearbeiten nur für bereits gewechselte Schienen
        editable = al is not None and al.actual_change_date is not None
        self.edit_date.setEnabled(editable)
        self.btn_edit.setEnabled(editable)
        if editable:
            self.edit_date.setDate(date_to_qdate(al.actual_change_date))


class ExportWorker(QObject):
    finished = Signal(str)
    error = Signal(str)

    def __init__(self, schedule, fn, today, fmt):
        super().__init__()
        self.schedule = schedule
        self.fn = fn
        self.today = today
        self.fmt = fmt

    def run(self):
        logging.info("[AlignerTrack] ExportWorker.run gestartet.")
        try:
            with tempfile.TemporaryDirectory() as tmpdir:
                png = os.path.join(tmpdir, 'schedule.png')
                create_schedule_chart(self.schedule, png)
                export_schedule_pdf(self.schedule, self.fn, self.today, chart_png=png, fmt=self.fmt)
            self.finished.emit(self.fn)
        except Exception as e:
            logging.error(f"ExportWorker error: {e}")
            self.error.emit(str(e))


class BackupWorker(QObject):
    finished = Signal(str)
    error = Signal(str)

    def __init__(self, db_path, fn):
        super().__init__()
        self.db_path = db_path
        self.fn = fn

    def run(self):
        try:
            db = Database(self.db_path)  # Neue Verbindung im Worker-Thread
            try:
                db.export_to_sql(self.fn)
            finally:
                db.close()
            self.finished.emit(self.fn)
        except OSError as e:
            logging.error(f"BackupWorker OSError: {e}")
            self.error.emit(f"Dateifehler: {e}")
        except Exception as e:
            logging.error(f"BackupWorker error: {e}")
            self.error.emit(str(e))


class RestoreWorker(QObject):
    finished = Signal()
    error = Signal(str)

    def __init__(self, db_path, fn):
        super().__init__()
        self.db_path = db_path
        self.fn = fn

    def run(self):
        try:
            db = Database(self.db_path)
            try:
                db.import_from_sql(self.fn)
            finally:
                db.close()
            self.finished.emit()
        except OSError as e:
            logging.error(f"RestoreWorker OSError: {e}")
            self.error.emit(f"Dateifehler: {e}")
        except Exception as e:
            logging.error(f"RestoreWorker error: {e}")
            self.error.emit(str(e))


class MainWindow(QMainWindow):
    def __init__(self, db=None, today=datetime.date.today, config=None):
        super().__init__()
        self.setWindowTitle("AlignerTrack")
        self.resize(600, 700)
        self.config = config if config is not None else load_config()
        self.date_format = self.config.get('date_format') or '%d/%m/%Y'
        self.db = db if db is not None else Database(self.config.get('db_path'))
        self.tracker = Tracker(ScheduleRepository(self.db), today=today)
        self.tracker.load()

        # Stelle sicher, dass die DB-Verbindung geschlossen wird
        app = QApplication.instance()
        app.aboutToQuit.connect(self.cleanup)

        self.stack = QStackedWidget(); self.setCentralWidget(self.stack)
        self.setup_tab = SetupTab(self); self.schedule_tab = ScheduleTab(self)
        self.stack.addWidget(self.setup_tab)
        self.stack.addWidget(self.schedule_tab)

        self.export_thread = None
        self.backup_thread = None
        self.restore_thread = None

        self.refresh()

    def refresh(self):
        """Zeigt je nach Zustand Einrichtung oder Trageplan."""
        if self.tracker.state == STATE_UNINITIALIZED:
            self.stack.setCurrentWidget(self.setup_tab)
            return
        self.stack.setCurrentWidget(self.schedule_tab)

        tab = self.schedule_tab
        tab.aligner_list.clear()
        today = self.tracker.today()
        aligners = self.tracker.aligners
        current_idx = current_aligner_index(aligners)
        for idx, al in enumerate(aligners):
            item = QListWidgetItem(format_aligner_line(al, self.date_format))
            item.setData(Qt.UserRole, al.id)
            if al.actual_change_date:
                item.setBackground(QBrush(QColor(COLOR_CHANGED)))
            elif idx == current_idx:
                color = COLOR_BEHIND if al.projected_change_date < today else COLOR_CURRENT
                item.setBackground(QBrush(QColor(color)))
            tab.aligner_list.addItem(item)

        tab.btn_confirm.setEnabled(current_idx != -1)
        if current_idx != -1:
            tab.btn_confirm.setText(f"{CONFIRM_BTN_TEXT} (Schiene {aligners[current_idx].id})")
        else:
            tab.btn_confirm.setText(CONFIRM_BTN_TEXT)
        tab.edit_date.setEnabled(False)
        tab.btn_edit.setEnabled(False)

        stats = summarize_schedule(self.tracker.schedule, today)
        text = (f"{stats['changed']} von {stats['total']} Schienen gewechselt, "
                f"noch {stats['days_until_appointment']} Tage bis zum Termin.")
        if stats['behind_schedule'] or stats['overrun']:
            text += " Der Plan liegt zurück."
        tab.summary.setText(text)

    def on_setup(self):
        appointment = qdate_to_date(self.setup_tab.appointment.date())
        try:
            start_id, end_id = parse_aligner_range(self.setup_tab.start_id.value(), self.setup_tab.end_id.value())
        except ValueError as e:
            QMessageBox.warning(self, "Einrichtung", str(e))
            return
        self.tracker.setup(appointment.isoformat(), start_id, end_id)
        logging.info(f"[AlignerTrack] Trageplan für Schienen {start_id}-{end_id} angelegt.")
        self.refresh()

    def on_confirm_change(self):
        idx = current_aligner_index(self.tracker.aligners)
        if idx == -1:
            return
        self.tracker.confirm_change(self.tracker.aligners[idx].id)
        self.refresh()

    def on_edit_date(self):
        item = self.schedule_tab.aligner_list.currentItem()
        if not item:
            return
        aligner_id = item.data(Qt.UserRole)
        new_date = qdate_to_date(self.schedule_tab.edit_date.date())
        self.tracker.edit_actual_date(aligner_id, new_date.isoformat())
        self.refresh()

    def on_export(self):
        if _is_running(self.export_thread):
            logging.info("[AlignerTrack] Export-Thread läuft bereits.")
            return
        fn, _ = QFileDialog.getSaveFileName(self, "PDF Export speichern", filter=PDF_FILE_FILTER)
        if not fn:
            return
        self.export_thread = QThread()
        self.export_worker = ExportWorker(self.tracker.schedule, fn, self.tracker.today(), self.date_format)
        self._start_worker(self.export_thread, self.export_worker, self.on_export_finished, self.on_export_error)

    def on_export_finished(self, fn):
        QMessageBox.information(self, 'Export', f"PDF erfolgreich gespeichert: {fn}")

    def on_export_error(self, msg):
        logging.error(f"Export error: {msg}")
        QMessageBox.critical(self, 'Export-Fehler', msg)

    def on_export_csv(self):
        fn, _ = QFileDialog.getSaveFileName(self, "CSV Export speichern", filter=CSV_FILE_FILTER)
        if not fn:
            return
        try:
            export_schedule_csv(self.tracker.schedule, fn, self.date_format)
        except OSError as e:
            logging.error(f"CSV export error: {e}")
            QMessageBox.critical(self, "Export-Fehler", str(e))
            return
        QMessageBox.information(self, "Export", f"CSV erfolgreich gespeichert: {fn}")

    def on_backup(self):
        if _is_running(self.backup_thread):
            return
        fn, _ = QFileDialog.getSaveFileName(self, BACKUP_TITLE, filter=SQL_FILE_FILTER)
        if not fn:
            return
        self.backup_thread = QThread()
        self.backup_worker = BackupWorker(self.db.db_path, fn)
        self._start_worker(self.backup_thread, self.backup_worker, self.on_backup_finished, self.on_backup_error)

    def on_backup_finished(self, fn):
        QMessageBox.information(self, "Backup", BACKUP_SUCCESS_TEXT.format(fn=fn))

    def on_backup_error(self, msg):
        logging.error(f"Backup error: {msg}")
        QMessageBox.critical(self, "Backup-Fehler", msg)

    def on_restore(self):
        if _is_running(self.restore_thread):
            return
        fn, _ = QFileDialog.getOpenFileName(self, RESTORE_TITLE, filter=SQL_FILE_FILTER)
        if not fn:
            return
        confirm = QMessageBox.question(self, RESTORE_CONFIRM_TITLE, RESTORE_CONFIRM_TEXT)
        if confirm != QMessageBox.Yes:
            return
        self.restore_thread = QThread()
        self.restore_worker = RestoreWorker(self.db.db_path, fn)
        self._start_worker(self.restore_thread, self.restore_worker, self.on_restore_finished, self.on_restore_error)

    def on_restore_finished(self):
        self.tracker.load()
        self.refresh()
        QMessageBox.information(self, "Restore", RESTORE_SUCCESS_TEXT)

    def on_restore_error(self, msg):
        logging.error(f"Restore error: {msg}")
        # Bestand ist unverändert, Anzeige trotzdem mit der Datenbank abgleichen
        self.tracker.load()
        self.refresh()
        QMessageBox.critical(self, "Restore-Fehler", msg)

    def _start_worker(self, thread, worker, on_finished, on_error):
        worker.moveToThread(thread)
        thread.started.connect(worker.run)
        worker.finished.connect(on_finished)
        worker.error.connect(on_error)
        worker.finished.connect(thread.quit)
        worker.error.connect(thread.quit)
        worker.finished.connect(worker.deleteLater)
        thread.finished.connect(thread.deleteLater)
        thread.start()

    def cleanup(self):
        # Stoppe Threads sauber vor dem Schließen
        for thread_attr in ['export_thread', 'backup_thread', 'restore_thread']:
            thread = getattr(self, thread_attr, None)
            if thread is not None:
                try:
                    if thread.isRunning():
                        thread.quit()
                        thread.wait()
                except RuntimeError:
                    pass  # Thread-Objekt wurde bereits gelöscht
                setattr(self, thread_attr, None)
        if self.db:
            self.db.close()
            self.db = None


def main():
    cfg = load_config()
    logging.basicConfig(level=resolve_log_level(cfg))
    app = QApplication(sys.argv)
    win = MainWindow(config=cfg)
    win.show()
    sys.exit(app.exec())

if __name__ == '__main__':
    main()
