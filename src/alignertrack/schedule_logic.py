import math
from fractions import Fraction
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple
from .models import Aligner


def days_between(start: date, end: date) -> int:
    """Vorzeichenbehaftete Anzahl ganzer Tage von start bis end."""
    return (end - start).days


def add_fractional_days(start: date, offset) -> date:
    """Addiere einen gebrochenen Tagesversatz; kaufmännisch auf ganze Tage gerundet.
       offset darf ein Fraction sein, dann wird exakt gerundet."""
    return start + timedelta(days=math.floor(offset + Fraction(1, 2)))


def initialize_schedule(start_id: int, end_id: int,
                        appointment_date: date, today: date) -> List[Aligner]:
    """Erzeuge eine Schiene pro Nummer in [start_id, end_id] und verteile
       die Tage von heute bis zum Termin gleichmäßig."""
    count = end_id - start_id + 1
    if count <= 0:
        return []

    total_days = days_between(today, appointment_date)
    days_per_aligner = Fraction(total_days, count)

    # Versatz immer ab heute, damit sich Rundungsfehler nicht aufsummieren
    return [
        Aligner(id=start_id + i,
                projected_change_date=add_fractional_days(today, (i + 1) * days_per_aligner))
        for i in range(count)
    ]


def recalculate_future_projections(
    aligners: Sequence[Aligner],
    anchor_index: int,
    anchor_date: date,
    appointment_date: date
) -> List[Aligner]:
    """
    Verteile die Tage zwischen anchor_date und appointment_date gleichmäßig auf
    alle Schienen nach anchor_index. Schienen bis einschließlich Anker bleiben
    unverändert. Negative Resttage sind erlaubt (Plan liegt zurück).
    """
    result = list(aligners)
    future_count = len(result) - anchor_index - 1
    if future_count <= 0:
        return result

    remaining_days = days_between(anchor_date, appointment_date)
    days_per_remaining = Fraction(remaining_days, future_count)

    for i in range(future_count):
        idx = anchor_index + 1 + i
        result[idx] = Aligner(
            id=result[idx].id,
            projected_change_date=add_fractional_days(anchor_date, (i + 1) * days_per_remaining),
            actual_change_date=result[idx].actual_change_date,
        )
    return result


def find_index(aligners: Sequence[Aligner], aligner_id: int) -> int:
    for idx, al in enumerate(aligners):
        if al.id == aligner_id:
            return idx
    return -1


def current_aligner_index(aligners: Sequence[Aligner]) -> int:
    """Index der ersten Schiene ohne tatsächlichen Wechsel, -1 wenn alle gewechselt."""
    for idx, al in enumerate(aligners):
        if al.actual_change_date is None:
            return idx
    return -1


def latest_actual_anchor(aligners: Sequence[Aligner]) -> Optional[Tuple[int, date]]:
    """
    Liefert (Index, Datum) der Schiene mit dem chronologisch spätesten
    tatsächlichen Wechsel, unabhängig von der Nummernreihenfolge.
    Bei gleichem Datum gewinnt die spätere Schiene in der Liste.
    """
    anchor: Optional[Tuple[int, date]] = None
    for idx, al in enumerate(aligners):
        if al.actual_change_date is None:
            continue
        if anchor is None or not anchor[1] > al.actual_change_date:
            anchor = (idx, al.actual_change_date)
    return anchor
