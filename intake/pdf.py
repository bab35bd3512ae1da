from __future__ import annotations

from datetime import datetime, timezone
from io import BytesIO
from typing import List, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from intake import prompts as P
from intake.export import ComplaintOut, IntakeRecord


def _items(values: List[str]) -> str:
    return ", ".join(v for v in values if v) or P.NOT_STATED


def _complaint_rows(c: ComplaintOut) -> List[tuple]:
    L = P.LABELS
    if c.severity is None:
        severity = P.NOT_STATED
    elif isinstance(c.severity, int):
        severity = f"{c.severity}/10"
    else:
        severity = str(c.severity)
    return [
        (L["location"], " > ".join(c.location_path) or c.location or P.NOT_STATED),
        (L["symptoms"], _items([s.name for s in c.symptoms])),
        (L["onset"], c.onset or P.NOT_STATED),
        (L["course"], c.course or P.NOT_STATED),
        (L["aggravating"], _items(c.aggravating)),
        (L["relieving"], _items(c.relieving)),
        (L["associated"], _items(c.associated)),
        (L["severity"], severity),
        (L["impact"], c.impact or P.NOT_STATED),
        (L["red_flags"], _items(c.red_flags)),
    ]


def generate_summary_pdf(
    record: IntakeRecord,
    *,
    title: str = "Pre-consultation intake summary",
    disclaimers: Optional[
        str
    ] = "Patient-reported information collected before the visit. Not a diagnosis; verify during consultation.",
) -> bytes:
    """
    Render one intake record: patient block, one section per complaint, history.
    Text is drawn with the built-in Helvetica font, so non-Latin answers need a
    registered TTF font to display correctly.
    """
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4

    # Header
    c.setFont("Helvetica-Bold", 14)
    c.drawString(20 * mm, height - 20 * mm, title)
    y = height - 27 * mm
    c.setFont("Helvetica", 9)
    c.drawString(20 * mm, y, f"Reference: {record.conversation_key}")
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    c.drawRightString(190 * mm, y, f"Generated: {generated}")
    y -= 5 * mm
    c.drawString(20 * mm, y, f"Status: {record.status}")
    if record.completed_at:
        c.drawRightString(190 * mm, y, f"Submitted: {record.completed_at}")
    y -= 8 * mm

    def _section(label: str) -> None:
        nonlocal y
        if y < 40 * mm:
            c.showPage()
            y = height - 20 * mm
        c.setFont("Helvetica-Bold", 11)
        c.drawString(20 * mm, y, label)
        y -= 4 * mm
        c.setStrokeColor(colors.black)
        c.line(20 * mm, y, 190 * mm, y)
        y -= 6 * mm

    def _row(label: str, value: str) -> None:
        nonlocal y
        if y < 30 * mm:
            c.showPage()
            y = height - 20 * mm
        c.setFont("Helvetica-Bold", 10)
        c.drawString(20 * mm, y, f"{label}:")
        c.setFont("Helvetica", 10)
        c.drawString(70 * mm, y, str(value)[:90])
        y -= 6 * mm

    # Patient block
    _section("Patient")
    L = P.LABELS
    _row(L["patient_name"], record.patient.name or P.NOT_STATED)
    _row(L["birth_year"], str(record.patient.birth_year or P.NOT_STATED))
    _row(L["sex"], record.patient.sex or P.NOT_STATED)
    _row(L["id_number"], record.patient.id_number or P.NOT_STATED)
    y -= 4 * mm

    # Complaints
    for n, complaint in enumerate(record.complaints, start=1):
        _section(f"Complaint {n}")
        for label, value in _complaint_rows(complaint):
            _row(label, value)
        y -= 4 * mm

    # History
    h = record.history
    _section("Medical history")
    _row(L["conditions"], _items(h.conditions))
    _row(L["medications"], _items(h.medications))
    _row(L["allergies"], _items(h.allergies))
    _row(L["smoking"], h.smoking or P.NOT_STATED)
    _row(L["alcohol"], h.alcohol or P.NOT_STATED)
    _row(L["travel"], h.travel or P.NOT_STATED)

    # Footer
    c.setFont("Helvetica", 8)
    c.setFillColor(colors.grey)
    c.drawString(20 * mm, 15 * mm, disclaimers or "")
    c.setFillColor(colors.black)
    c.showPage()
    c.save()
    return buf.getvalue()
