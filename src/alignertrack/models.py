# src/alignertrack/models.py
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Tuple

@dataclass(frozen=True)
class Aligner:
    """Eine Schiene der Behandlung; die Nummer ist zugleich die Tragereihenfolge."""
    id: int                                 # physische Schienennummer
    projected_change_date: date             # berechneter Wechseltermin
    actual_change_date: Optional[date] = None   # None = noch nicht gewechselt

    @property
    def changed(self) -> bool:
        return self.actual_change_date is not None

@dataclass(frozen=True)
class Schedule:
    """Kompletter Trageplan: Schienen (aufsteigend nach id) plus Zieltermin."""
    aligners: Tuple[Aligner, ...] = field(default_factory=tuple)
    appointment_date: Optional[date] = None

    @property
    def is_active(self) -> bool:
        return bool(self.aligners) and self.appointment_date is not None
