# src/alignertrack/main.py

import logging

from .config import load_config, resolve_log_level
from .data import Database, ScheduleRepository
from .export_utils import export_schedule_csv, format_aligner_line, format_date, parse_aligner_range, parse_date_input
from .schedule_logic import current_aligner_index
from .statistics import summarize_schedule
from .tracker import Tracker, STATE_UNINITIALIZED


def input_setup(tracker: Tracker) -> bool:
    print("\n✏️  Neuer Trageplan:")
    date_str = input("  Datum des nächsten Termins (YYYY-MM-DD): ")
    start_str = input("  Erste Schiene: ")
    end_str = input("  Letzte Schiene: ")
    try:
        parse_date_input(date_str)
        start_id, end_id = parse_aligner_range(start_str, end_str)
    except ValueError as e:
        print(f"  ❌ {e}")
        return False
    tracker.setup(date_str, start_id, end_id)
    return True


def print_schedule(tracker: Tracker, fmt: str):
    schedule = tracker.schedule
    print(f"\n📅 Nächster Termin: {format_date(schedule.appointment_date, fmt)}")
    current_idx = current_aligner_index(schedule.aligners)
    for idx, al in enumerate(schedule.aligners):
        marker = "👉" if idx == current_idx else "  "
        print(f"{marker} {format_aligner_line(al, fmt)}")


def print_statistics(tracker: Tracker):
    stats = summarize_schedule(tracker.schedule, tracker.today())
    print(f"\n📊 {stats['changed']} von {stats['total']} Schienen gewechselt, {stats['remaining']} offen.")
    if stats['days_until_appointment'] is not None:
        print(f"   Tage bis zum Termin: {stats['days_until_appointment']}")
    if stats['days_per_remaining'] is not None:
        print(f"   Tage pro offener Schiene: {stats['days_per_remaining']}")
    if stats['behind_schedule'] or stats['overrun']:
        print("   ⚠️  Der Plan liegt hinter dem Termin zurück.")


def input_edit(tracker: Tracker):
    try:
        aligner_id = int(input("  Welche Schiene? "))
    except ValueError:
        print("  ❌ Bitte eine Zahl eingeben.")
        return
    al = tracker.find(aligner_id)
    if al is None or al.actual_change_date is None:
        print("  ❌ Für diese Schiene ist noch kein Wechsel erfasst.")
        return
    date_str = input(f"  Neues Wechseldatum (YYYY-MM-DD) [{al.actual_change_date.isoformat()}]: ").strip()
    if not date_str:
        return
    try:
        tracker.edit_actual_date(aligner_id, date_str)
    except ValueError as e:
        print(f"  ❌ {e}")


def input_export_csv(tracker: Tracker, fmt: str):
    filename = input("  Dateiname für den CSV-Export: ").strip()
    if not filename:
        return
    try:
        export_schedule_csv(tracker.schedule, filename, fmt)
    except OSError as e:
        print(f"  ❌ {e}")
        return
    print(f"  💾 CSV gespeichert: {filename}")


def run_wizard():
    cfg = load_config()
    logging.basicConfig(level=resolve_log_level(cfg))
    fmt = cfg.get('date_format') or '%d/%m/%Y'

    print("🦷 Willkommen bei AlignerTrack 🦷")
    db = Database(cfg.get('db_path'))
    try:
        tracker = Tracker(ScheduleRepository(db))
        tracker.load()

        while True:
            if tracker.state == STATE_UNINITIALIZED:
                if not input_setup(tracker):
                    if input("Erneut versuchen? (j/n) ").lower() != "j":
                        break
                    continue

            print_schedule(tracker, fmt)
            cmd = input("\n[w] Heute gewechselt, [e] Datum bearbeiten, [s] Statistik, "
                        "[c] CSV Export, [r] Zurücksetzen, [q] Beenden: ").strip().lower()
            if cmd == "w":
                idx = current_aligner_index(tracker.aligners)
                if idx == -1:
                    print("  ✅ Alle Schienen sind bereits gewechselt.")
                else:
                    tracker.confirm_change(tracker.aligners[idx].id)
            elif cmd == "e":
                input_edit(tracker)
            elif cmd == "s":
                print_statistics(tracker)
            elif cmd == "c":
                input_export_csv(tracker, fmt)
            elif cmd == "r":
                if input("  Trageplan wirklich löschen? (j/n) ").lower() == "j":
                    tracker.reset()
            elif cmd == "q":
                break
    finally:
        db.close()

if __name__ == "__main__":
    run_wizard()
