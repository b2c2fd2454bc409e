# src/alignertrack/charts.py

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from alignertrack.models import Schedule

COLOR_PROJECTED = '#1976d2'
COLOR_ACTUAL = '#2e7d32'
COLOR_APPOINTMENT = '#FF0000'


def create_schedule_chart(schedule: Schedule, filename: str, title: str = 'Trageplan'):
    """
    Zeichnet geplante (Linie) und tatsächliche (Punkte) Wechseltermine je Schiene
    und speichert das Diagramm als PNG.
    :param schedule: Trageplan
    :param filename: Pfad zur Ausgabedatei, z.B. "plan.png".
    :param title: Diagrammtitel.
    """
    # Ohne Schienen nur ein Platzhalter-Bild
    if not schedule.aligners:
        fig, ax = plt.subplots()
        ax.text(0.5, 0.5, "Keine Daten", ha="center", va="center", fontsize=14)
        ax.axis("off")
        fig.savefig(filename, bbox_inches="tight")
        plt.close(fig)
        return

    ids = [al.id for al in schedule.aligners]
    projected = [al.projected_change_date for al in schedule.aligners]
    changed = [al for al in schedule.aligners if al.actual_change_date]

    fig, ax = plt.subplots(figsize=(6, 3))
    ax.plot(ids, projected, marker='o', color=COLOR_PROJECTED, label='Geplant')
    if changed:
        ax.scatter([al.id for al in changed], [al.actual_change_date for al in changed],
                   color=COLOR_ACTUAL, zorder=3, label='Gewechselt')
    if schedule.appointment_date:
        ax.axhline(schedule.appointment_date, color=COLOR_APPOINTMENT, linestyle='--', label='Termin')
    ax.set_title(title)
    ax.set_xlabel('Schiene')
    ax.set_ylabel('Datum')
    ax.grid(True, linestyle=':')
    ax.legend(loc='upper left')
    fig.tight_layout()
    fig.savefig(filename, bbox_inches="tight")
    plt.close(fig)
