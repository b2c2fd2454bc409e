import json
import os
import sqlite3
from datetime import date
from typing import List, Optional
from dateutil.parser import isoparse
from alignertrack.models import Aligner, Schedule
import logging

ALIGNERS_KEY = 'aligners'
APPOINTMENT_KEY = 'appointmentDate'


class Database:
    """Einfacher Key-Value-Speicher auf SQLite-Basis."""

    def __init__(self, db_path: str = None):
        try:
            self.db_path = db_path or os.path.join(os.path.expanduser("~"), ".alignertrack", "alignertrack.db")
            if self.db_path != ':memory:':
                os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)
            self.conn = sqlite3.connect(self.db_path)
            self.conn.row_factory = sqlite3.Row
            self._ensure_tables()
        except Exception as e:
            logging.error(f"Database connection error: {e}")
            raise

    def _ensure_tables(self):
        cur = self.conn.cursor()
        cur.execute("""
        CREATE TABLE IF NOT EXISTS store (
          key TEXT PRIMARY KEY,
          value TEXT NOT NULL
        )""")
        self.conn.commit()

    def get(self, key: str) -> Optional[str]:
        cur = self.conn.cursor()
        cur.execute("SELECT value FROM store WHERE key=?", (key,))
        row = cur.fetchone()
        return row['value'] if row else None

    def set(self, key: str, value: str):
        cur = self.conn.cursor()
        cur.execute("REPLACE INTO store (key, value) VALUES (?,?)", (key, value))
        self.conn.commit()

    def delete(self, key: str):
        cur = self.conn.cursor()
        cur.execute("DELETE FROM store WHERE key=?", (key,))
        self.conn.commit()

    def clear(self):
        cur = self.conn.cursor()
        cur.execute("DELETE FROM store")
        self.conn.commit()

    # Export/Import
    def export_to_sql(self, filename: str):
        """Dump aller Tabellen als SQL-Statements"""
        with open(filename, 'w', encoding='utf-8') as f:
            for line in self.conn.iterdump():
                f.write(f"{line}\n")

    def import_from_sql(self, filename: str):
        """
        Dump erst in eine In-Memory-Datenbank einlesen, dann die Einträge
        in einer Transaktion übernehmen. Ein fehlerhafter Dump lässt den
        vorhandenen Bestand unverändert und wirft sqlite3.Error.
        """
        with open(filename, 'r', encoding='utf-8') as f:
            script = f.read()

        staging = sqlite3.connect(':memory:')
        try:
            staging.executescript(script)
            rows = staging.execute("SELECT key, value FROM store").fetchall()
        finally:
            staging.close()

        cur = self.conn.cursor()
        try:
            cur.execute("DELETE FROM store")
            cur.executemany("INSERT INTO store (key, value) VALUES (?,?)", rows)
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            raise

    def close(self):
        """Schließe die Datenbankverbindung sauber"""
        if self.conn:
            self.conn.close()
            self.conn = None


def _date_or_none(value) -> Optional[date]:
    # isoparse akzeptiert auch volle Zeitstempel älterer Browser-Versionen
    return isoparse(value).date() if value else None


def aligners_to_json(aligners: List[Aligner]) -> str:
    return json.dumps([
        {
            'id': al.id,
            'projectedChangeDate': al.projected_change_date.isoformat(),
            'actualChangeDate': al.actual_change_date.isoformat() if al.actual_change_date else None,
        }
        for al in aligners
    ])


def _aligner_id(value) -> int:
    # bool ist eine Unterklasse von int, zählt hier aber nicht als Nummer
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Ungültige Schienennummer: {value!r}")
    return value


def aligners_from_json(raw: str) -> List[Aligner]:
    """Schienenliste lesen; Nummern müssen lückenlos aufsteigen, sonst ValueError."""
    out = []
    for item in json.loads(raw):
        out.append(Aligner(
            id=_aligner_id(item['id']),
            projected_change_date=isoparse(item['projectedChangeDate']).date(),
            actual_change_date=_date_or_none(item.get('actualChangeDate')),
        ))
    out.sort(key=lambda al: al.id)
    ids = [al.id for al in out]
    if ids and ids != list(range(ids[0], ids[0] + len(ids))):
        raise ValueError(f"Schienennummern nicht fortlaufend: {ids}")
    return out


class ScheduleRepository:
    """Speichert den Trageplan als zwei Einträge im Key-Value-Speicher."""

    def __init__(self, store: Database):
        self.store = store

    def load(self) -> Optional[Schedule]:
        raw_aligners = self.store.get(ALIGNERS_KEY)
        raw_appointment = self.store.get(APPOINTMENT_KEY)
        if not raw_aligners or not raw_appointment:
            return None
        try:
            aligners = aligners_from_json(raw_aligners)
            appointment = _date_or_none(raw_appointment)
        except (ValueError, KeyError, TypeError, AttributeError, OverflowError) as e:
            logging.warning(f"Gespeicherter Trageplan unlesbar, starte neu: {e}")
            return None
        if not aligners or appointment is None:
            return None
        return Schedule(tuple(aligners), appointment)

    def save(self, schedule: Schedule):
        if not schedule.is_active:
            return
        self.store.set(ALIGNERS_KEY, aligners_to_json(list(schedule.aligners)))
        self.store.set(APPOINTMENT_KEY, schedule.appointment_date.isoformat())

    def clear(self):
        self.store.delete(ALIGNERS_KEY)
        self.store.delete(APPOINTMENT_KEY)
