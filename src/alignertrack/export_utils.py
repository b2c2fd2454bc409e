import csv
import re
from datetime import date
from typing import Optional, Tuple

from dateutil.parser import isoparse

from alignertrack.models import Aligner, Schedule
from alignertrack.statistics import summarize_schedule


DEFAULT_DATE_FORMAT = '%d/%m/%Y'

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_date_input(text: Optional[str]) -> date:
    """
    Eingabe im Format yyyy-mm-dd in ein date umwandeln.
    Leere oder fehlerhafte Eingaben lösen ValueError aus.
    """
    raw = (text or '').strip()
    if not raw:
        raise ValueError("Datum fehlt")
    if not _ISO_DATE_RE.match(raw):
        raise ValueError(f"Ungültiges Datum (erwartet yyyy-mm-dd): {raw!r}")
    return isoparse(raw).date()


def parse_aligner_range(start_text: str, end_text: str) -> Tuple[int, int]:
    """Start- und Endnummer als positive Ganzzahlen, Start <= Ende."""
    try:
        start_id = int(str(start_text).strip())
        end_id = int(str(end_text).strip())
    except ValueError:
        raise ValueError(f"Schienennummern müssen Zahlen sein: {start_text!r}, {end_text!r}")
    if start_id < 1 or end_id < 1:
        raise ValueError("Schienennummern müssen positiv sein")
    if start_id > end_id:
        raise ValueError("Startschiene liegt hinter der Endschiene")
    return start_id, end_id


def format_date(d: Optional[date], fmt: str = DEFAULT_DATE_FORMAT) -> str:
    return d.strftime(fmt) if d else ''


def format_aligner_line(aligner: Aligner, fmt: str = DEFAULT_DATE_FORMAT) -> str:
    """Kurzbeschreibung einer Schiene für Listen und Konsole."""
    line = f"Schiene {aligner.id}: Wechsel geplant {format_date(aligner.projected_change_date, fmt)}"
    if aligner.actual_change_date:
        line += f", gewechselt am {format_date(aligner.actual_change_date, fmt)}"
    return line


def export_schedule_csv(schedule: Schedule, filename: str, fmt: str = DEFAULT_DATE_FORMAT):
    with open(filename, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(["Schiene", "Geplanter Wechsel", "Tatsächlicher Wechsel"])
        for al in schedule.aligners:
            writer.writerow([
                al.id,
                format_date(al.projected_change_date, fmt),
                format_date(al.actual_change_date, fmt),
            ])


def export_schedule_pdf(schedule: Schedule, filename: str, today: date,
                        chart_png: Optional[str] = None, fmt: str = DEFAULT_DATE_FORMAT):
    """Trageplan als PDF; optional mit Diagramm auf einer zweiten Seite."""
    from reportlab.lib.pagesizes import letter
    from reportlab.pdfgen import canvas

    stats = summarize_schedule(schedule, today)
    c = canvas.Canvas(filename, pagesize=letter)
    w, h = letter
    y = h - 50
    c.setFont('Helvetica-Bold', 14)
    c.drawString(50, y, 'AlignerTrack Trageplan')
    y -= 30
    c.setFont('Helvetica', 10)
    c.drawString(50, y, f"Nächster Termin: {format_date(schedule.appointment_date, fmt)}")
    y -= 20
    c.drawString(50, y, f"Schienen: {stats['total']}, gewechselt: {stats['changed']}, offen: {stats['remaining']}")
    y -= 20
    if stats['behind_schedule'] or stats['overrun']:
        c.drawString(50, y, "Achtung: Der Plan liegt hinter dem Termin zurück.")
        y -= 20
    y -= 10
    c.setFont('Helvetica-Bold', 12)
    c.drawString(50, y, "Schiene | Geplant    | Gewechselt")
    y -= 20
    c.setFont('Helvetica', 10)
    for al in schedule.aligners:
        if y < 60:
            c.showPage()
            y = h - 50
            c.setFont('Helvetica', 10)
        c.drawString(50, y, f"{al.id:>7} | {format_date(al.projected_change_date, fmt):<10} | "
                            f"{format_date(al.actual_change_date, fmt)}")
        y -= 15
    if chart_png:
        c.showPage()
        c.drawImage(chart_png, 50, h - 50 - 300, width=w - 100, height=300, preserveAspectRatio=True)
    c.save()
