from datetime import date
from typing import Any, Dict
from alignertrack.models import Schedule
from alignertrack.schedule_logic import current_aligner_index, days_between, latest_actual_anchor


def summarize_schedule(schedule: Schedule, today: date) -> Dict[str, Any]:
    """
    Fortschritt eines Trageplans:
      total                  : Anzahl Schienen
      changed                : Schienen mit tatsächlichem Wechsel
      remaining              : noch offene Schienen
      current_id             : Nummer der aktuell getragenen Schiene (None wenn fertig)
      days_until_appointment : Tage von heute bis zum Termin (negativ = überfällig)
      days_per_remaining     : Tage pro offener Schiene ab heute (None ohne offene Schienen)
      behind_schedule        : geplanter Wechsel der aktuellen Schiene liegt vor heute
      overrun                : letzter tatsächlicher Wechsel liegt nach dem Termin
    """
    aligners = schedule.aligners
    total = len(aligners)
    changed = sum(1 for al in aligners if al.changed)
    remaining = total - changed

    current_idx = current_aligner_index(aligners)
    current = aligners[current_idx] if current_idx >= 0 else None

    days_left = days_between(today, schedule.appointment_date) if schedule.appointment_date else None
    days_per_remaining = round(days_left / remaining, 1) if remaining and days_left is not None else None

    anchor = latest_actual_anchor(aligners)
    overrun = bool(anchor and schedule.appointment_date and anchor[1] > schedule.appointment_date)

    return {
        'total': total,
        'changed': changed,
        'remaining': remaining,
        'current_id': current.id if current else None,
        'days_until_appointment': days_left,
        'days_per_remaining': days_per_remaining,
        'behind_schedule': bool(current and current.projected_change_date < today),
        'overrun': overrun,
    }
