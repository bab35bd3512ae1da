"""Reply rendering: pure functions from (state data) to display text.

Nothing here reads the store or the catalog; callers pass everything in.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from intake import prompts as P
from intake.catalog import CatalogNode
from intake.state import CollectedFields, Complaint, PathStep, PatientProfile, UNSCORED


def with_notice(body: str, notice: str = "") -> str:
    return f"{notice}\n\n{body}" if notice else body


def render_entry(first_prompt: str) -> str:
    return "\n\n".join([P.WELCOME, P.commands_hint(), first_prompt])


def render_help(current_prompt: str) -> str:
    lines = [
        "📖 Commands:",
        f"  {P.commands_hint()}",
        "  In numbered menus, 0 goes back.",
        "",
        current_prompt,
    ]
    return "\n".join(lines)


def render_numbered(title: str, options: Sequence[str], notice: str = "") -> str:
    lines = [title]
    for i, opt in enumerate(options, start=1):
        lines.append(f"{i}. {opt}")
    return with_notice("\n".join(lines), notice)


# ---------------- saved patients ----------------


def patient_label(p: PatientProfile) -> str:
    return f"{p.name} ({p.birth_year})" if p.birth_year else p.name


def render_patient_menu(patients: Sequence[PatientProfile], notice: str = "") -> str:
    """Saved patients by number, then the add option as the last number."""
    lines = [P.PATIENT_MENU_TITLE]
    if not patients:
        lines.append(P.NO_PATIENTS)
    for i, p in enumerate(patients, start=1):
        lines.append(f"{i}. {patient_label(p)}")
    lines.append(f"{len(patients) + 1}. {P.ADD_PATIENT}")
    return with_notice("\n".join(lines), notice)


def render_patient_delete(patients: Sequence[PatientProfile], limit: int, notice: str = "") -> str:
    lines = [P.PATIENT_DELETE_TITLE.format(limit=limit)]
    for i, p in enumerate(patients, start=1):
        lines.append(f"{i}. {patient_label(p)}")
    lines.append("")
    lines.append(P.PATIENT_DELETE_BACK)
    return with_notice("\n".join(lines), notice)


# ---------------- tree menu ----------------


def render_tree_menu(children: Sequence[CatalogNode], path: Sequence[PathStep], notice: str = "") -> str:
    lines = [P.LOCATION_TITLE]
    if path:
        lines.append("(" + " > ".join(s.name for s in path) + ")")
    if not children:
        lines.append(P.NOTICE_EMPTY_MENU)
    for i, node in enumerate(children, start=1):
        suffix = " ›" if node.has_children else ""
        lines.append(f"{i}. {node.name}{suffix}")
    lines.append("")
    lines.append(P.LOCATION_BACK)
    return with_notice("\n".join(lines), notice)


# ---------------- paginated multi-select ----------------


def render_selector_page(
    title: str,
    rows: Sequence[Tuple[bool, str]],
    controls: Sequence[Tuple[int, str]],
    page: int,
    pages: int,
    selected: Sequence[str],
    notice: str = "",
) -> str:
    """One page of a multi-select: checked rows, positional controls, footer."""
    lines = [title]
    if pages > 1:
        lines.append(f"(page {page}/{pages})")
    for i, (checked, name) in enumerate(rows, start=1):
        mark = P.CHECKED if checked else P.UNCHECKED
        lines.append(f"{i}. {mark} {name}")
    lines.append("")
    for idx, label in controls:
        lines.append(f"{idx}. {label}")
    lines.append(P.CONTROL_RETURN)
    if selected:
        lines.append("")
        lines.append("Selected: " + ", ".join(selected))
    return with_notice("\n".join(lines), notice)


# ---------------- summaries ----------------


def _text(value: Optional[str]) -> str:
    return value if value else P.NOT_STATED


def _items(values: Iterable[str]) -> str:
    vals = [v for v in values if v]
    return ", ".join(vals) if vals else P.NOT_STATED


def _severity(value) -> str:
    if value is None or value == "":
        return P.NOT_STATED
    if value == UNSCORED:
        return UNSCORED
    return f"{value}/10"


def complaint_lines(c: Complaint) -> List[str]:
    location = " > ".join(c.location_path) if c.location_path else c.location_name
    L = P.LABELS
    return [
        f"- {L['location']}: {_text(location)}",
        f"- {L['symptoms']}: {_items(s.name for s in c.symptoms)}",
        f"- {L['onset']}: {_text(c.onset)}",
        f"- {L['course']}: {_text(c.course)}",
        f"- {L['aggravating']}: {_items(c.aggravating)}",
        f"- {L['relieving']}: {_items(c.relieving)}",
        f"- {L['associated']}: {_items(c.associated)}",
        f"- {L['severity']}: {_severity(c.severity)}",
        f"- {L['impact']}: {_text(c.impact)}",
        f"- {L['red_flags']}: {_items(c.red_flags)}",
    ]


def render_review(c: Complaint, can_add: bool, notice: str = "") -> str:
    lines = [P.REVIEW_TITLE, *complaint_lines(c), ""]
    lines.append(P.REVIEW_OPTIONS if can_add else P.REVIEW_OPTIONS_AT_LIMIT)
    return with_notice("\n".join(lines), notice)


def summary_lines(collected: CollectedFields, complaints: Sequence[Complaint]) -> List[str]:
    L = P.LABELS
    h = collected.history
    lines = [
        f"- {L['patient_name']}: {_text(collected.patient_name)}",
        f"- {L['birth_year']}: {_text(str(collected.birth_year) if collected.birth_year else '')}",
        f"- {L['sex']}: {_text(collected.sex)}",
        f"- {L['id_number']}: {_text(collected.id_number)}",
    ]
    for n, c in enumerate(complaints, start=1):
        lines.append("")
        lines.append(f"Complaint {n}:")
        lines.extend(complaint_lines(c))
    lines.append("")
    lines.append("Medical history:")
    lines.extend(
        [
            f"- {L['conditions']}: {_items(h.conditions)}",
            f"- {L['medications']}: {_items(h.medications)}",
            f"- {L['allergies']}: {_items(h.allergies)}",
            f"- {L['smoking']}: {_text(h.smoking)}; {L['alcohol']}: {_text(h.alcohol)}; "
            f"{L['travel']}: {_text(h.travel)}",
        ]
    )
    return lines


def render_summary(
    collected: CollectedFields, complaints: Sequence[Complaint], can_add: bool, notice: str = ""
) -> str:
    lines = [P.SUMMARY_TITLE, *summary_lines(collected, complaints), ""]
    lines.append(P.SUMMARY_OPTIONS if can_add else P.SUMMARY_OPTIONS_AT_LIMIT)
    return with_notice("\n".join(lines), notice)
