# src/alignertrack/tracker.py

import logging
import sqlite3
from dataclasses import replace
from datetime import date
from typing import Callable, Optional

from .models import Aligner, Schedule
from .schedule_logic import (
    initialize_schedule, recalculate_future_projections, find_index, latest_actual_anchor
)
from .export_utils import parse_date_input

STATE_UNINITIALIZED = 'uninitialized'
STATE_ACTIVE = 'active'


def setup(schedule: Schedule, appointment_date_input: str,
          start_id: int, end_id: int, today: date) -> Schedule:
    """Neuen Trageplan anlegen; ersetzt alle bisherigen Schienen."""
    appointment = parse_date_input(appointment_date_input)
    aligners = initialize_schedule(start_id, end_id, appointment, today)
    return replace(schedule, aligners=tuple(aligners), appointment_date=appointment)


def confirm_change(schedule: Schedule, aligner_id: int, today: date) -> Schedule:
    """Wechsel der Schiene heute bestätigen und die Zukunft neu verteilen."""
    idx = find_index(schedule.aligners, aligner_id)
    if idx == -1:
        logging.debug(f"Schiene {aligner_id} nicht gefunden, Bestätigung ignoriert.")
        return schedule

    aligners = list(schedule.aligners)
    aligners[idx] = replace(aligners[idx], actual_change_date=today)
    if schedule.appointment_date is not None:
        aligners = recalculate_future_projections(aligners, idx, today, schedule.appointment_date)
    return replace(schedule, aligners=tuple(aligners))


def edit_actual_date(schedule: Schedule, aligner_id: int, new_date_input: str) -> Schedule:
    """
    Tatsächliches Wechseldatum überschreiben. Anker der Neuberechnung ist die
    Schiene mit dem chronologisch spätesten Wechsel, nicht zwingend die bearbeitete.
    """
    idx = find_index(schedule.aligners, aligner_id)
    if idx == -1:
        logging.debug(f"Schiene {aligner_id} nicht gefunden, Bearbeitung ignoriert.")
        return schedule

    new_date = parse_date_input(new_date_input)
    aligners = list(schedule.aligners)
    aligners[idx] = replace(aligners[idx], actual_change_date=new_date)

    anchor = latest_actual_anchor(aligners)
    if anchor is None or schedule.appointment_date is None:
        return replace(schedule, aligners=tuple(aligners))

    anchor_idx, anchor_date = anchor
    aligners = recalculate_future_projections(aligners, anchor_idx, anchor_date, schedule.appointment_date)
    return replace(schedule, aligners=tuple(aligners))


class Tracker:
    """
    Hält den Trageplan einer Sitzung und synchronisiert ihn mit dem Speicher.
    `repository` braucht load() -> Optional[Schedule] und save(Schedule).
    """

    def __init__(self, repository, today: Callable[[], date] = date.today):
        self.repository = repository
        self.today = today
        self.schedule = Schedule()

    @property
    def state(self) -> str:
        return STATE_ACTIVE if self.schedule.aligners else STATE_UNINITIALIZED

    @property
    def aligners(self):
        return self.schedule.aligners

    def load(self) -> Schedule:
        try:
            saved = self.repository.load()
        except (sqlite3.Error, OSError) as e:
            logging.error(f"Laden des Trageplans fehlgeschlagen: {e}")
            saved = None
        self.schedule = saved if saved is not None else Schedule()
        return self.schedule

    def setup(self, appointment_date_input: str, start_id: int, end_id: int) -> Schedule:
        schedule = setup(self.schedule, appointment_date_input, start_id, end_id, self.today())
        if not schedule.aligners:
            # Speicher und Anzeige müssen denselben Plan zeigen
            logging.warning(f"Leerer Schienenbereich {start_id}-{end_id}, Trageplan bleibt unverändert.")
            return self.schedule
        return self._commit(schedule)

    def confirm_change(self, aligner_id: int) -> Schedule:
        return self._commit(confirm_change(self.schedule, aligner_id, self.today()))

    def edit_actual_date(self, aligner_id: int, new_date_input: str) -> Schedule:
        return self._commit(edit_actual_date(self.schedule, aligner_id, new_date_input))

    def reset(self):
        """Gespeicherten Plan löschen; die Sitzung ist danach wieder uninitialisiert."""
        self.repository.clear()
        self.schedule = Schedule()

    def find(self, aligner_id: int) -> Optional[Aligner]:
        idx = find_index(self.schedule.aligners, aligner_id)
        return self.schedule.aligners[idx] if idx >= 0 else None

    def _commit(self, schedule: Schedule) -> Schedule:
        if schedule == self.schedule:
            return schedule
        self.schedule = schedule
        if schedule.is_active:
            try:
                self.repository.save(schedule)
            except (sqlite3.Error, OSError) as e:
                logging.error(f"Speichern des Trageplans fehlgeschlagen: {e}")
        return schedule
