"""Session document persistence.

Converts ``SessionDocument`` to and from the JSON shape kept in the store and
turns each turn's changes into an additive merge patch, so a turn only writes
the fields it actually touched.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from intake.state import (
    ENTRY_STATE,
    CollectedFields,
    Complaint,
    FlowState,
    History,
    PathStep,
    PatientProfile,
    SelectedItem,
    SessionDocument,
)
from intake.store import DELETE, SessionStore

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


# --- dump --- #


def _dump_items(items: List[SelectedItem]) -> List[Dict[str, str]]:
    return [{"id": i.id, "name": i.name} for i in items]


def _dump_complaint(c: Complaint) -> Dict[str, Any]:
    return {
        "location_id": c.location_id,
        "location_name": c.location_name,
        "location_path": list(c.location_path),
        "symptoms": _dump_items(c.symptoms),
        "onset": c.onset,
        "course": c.course,
        "aggravating": list(c.aggravating),
        "relieving": list(c.relieving),
        "associated": list(c.associated),
        "severity": c.severity,
        "impact": c.impact,
        "red_flags": list(c.red_flags),
    }


def _dump_patient(p: PatientProfile) -> Dict[str, Any]:
    return {
        "patient_id": p.patient_id,
        "name": p.name,
        "birth_year": p.birth_year,
        "sex": p.sex,
        "id_number": p.id_number,
        "created_at": p.created_at,
    }


def dump_session(doc: SessionDocument) -> Dict[str, Any]:
    """Serialise a session; empty transient lists are left out entirely."""
    c = doc.collected
    data: Dict[str, Any] = {
        "flow_state": doc.flow_state.value,
        "current_page": doc.current_page,
        "collected": {
            "patient_id": c.patient_id,
            "patient_name": c.patient_name,
            "birth_year": c.birth_year,
            "sex": c.sex,
            "id_number": c.id_number,
            "complaints": [_dump_complaint(x) for x in c.complaints],
            "current": _dump_complaint(c.current),
            "history": {
                "conditions": list(c.history.conditions),
                "medications": list(c.history.medications),
                "allergies": list(c.history.allergies),
                "smoking": c.history.smoking,
                "alcohol": c.history.alcohol,
                "travel": c.history.travel,
            },
        },
        "patients": [_dump_patient(p) for p in doc.patients],
        "created_at": doc.created_at,
        "updated_at": doc.updated_at,
        "last_reply": doc.last_reply,
    }
    if doc.selection_path:
        data["selection_path"] = [{"id": s.id, "name": s.name, "level": s.level} for s in doc.selection_path]
    if doc.pending_selection:
        data["pending_selection"] = _dump_items(doc.pending_selection)
    for opt in ("ended_at", "completed_at", "last_message_id"):
        val = getattr(doc, opt)
        if val is not None:
            data[opt] = val
    return data


# --- load --- #


def _load_items(raw) -> List[SelectedItem]:
    out: List[SelectedItem] = []
    seen = set()
    for it in raw or []:
        iid = str(it.get("id", ""))
        if not iid or iid in seen:
            continue
        seen.add(iid)
        out.append(SelectedItem(id=iid, name=str(it.get("name", iid))))
    return out


def _load_complaint(raw: Optional[Dict[str, Any]]) -> Complaint:
    raw = raw or {}
    return Complaint(
        location_id=raw.get("location_id", "") or "",
        location_name=raw.get("location_name", "") or "",
        location_path=list(raw.get("location_path") or []),
        symptoms=_load_items(raw.get("symptoms")),
        onset=raw.get("onset", "") or "",
        course=raw.get("course", "") or "",
        aggravating=list(raw.get("aggravating") or []),
        relieving=list(raw.get("relieving") or []),
        associated=list(raw.get("associated") or []),
        severity=raw.get("severity"),
        impact=raw.get("impact", "") or "",
        red_flags=list(raw.get("red_flags") or []),
    )


def _load_patients(raw) -> List[PatientProfile]:
    out: List[PatientProfile] = []
    for p in raw or []:
        pid = str(p.get("patient_id", ""))
        if not pid:
            continue
        out.append(
            PatientProfile(
                patient_id=pid,
                name=p.get("name", "") or "",
                birth_year=p.get("birth_year"),
                sex=p.get("sex", "") or "",
                id_number=p.get("id_number", "") or "",
                created_at=p.get("created_at", "") or "",
            )
        )
    return out


def load_session(key: str, data: Dict[str, Any]) -> SessionDocument:
    """Rebuild a session from its stored JSON shape."""
    try:
        state = FlowState(data.get("flow_state") or ENTRY_STATE.value)
    except ValueError:
        logger.warning("unknown flow_state %r for %s; resetting to entry", data.get("flow_state"), key)
        state = ENTRY_STATE

    c = data.get("collected") or {}
    h = c.get("history") or {}
    doc = SessionDocument(
        key=key,
        flow_state=state,
        selection_path=[
            PathStep(id=str(s["id"]), name=str(s.get("name", "")), level=int(s.get("level", i + 1)))
            for i, s in enumerate(data.get("selection_path") or [])
        ],
        pending_selection=_load_items(data.get("pending_selection")),
        current_page=max(1, int(data.get("current_page", 1) or 1)),
        collected=CollectedFields(
            patient_id=c.get("patient_id", "") or "",
            patient_name=c.get("patient_name", "") or "",
            birth_year=c.get("birth_year"),
            sex=c.get("sex", "") or "",
            id_number=c.get("id_number", "") or "",
            complaints=[_load_complaint(x) for x in c.get("complaints") or []],
            current=_load_complaint(c.get("current")),
            history=History(
                conditions=list(h.get("conditions") or []),
                medications=list(h.get("medications") or []),
                allergies=list(h.get("allergies") or []),
                smoking=h.get("smoking", "") or "",
                alcohol=h.get("alcohol", "") or "",
                travel=h.get("travel", "") or "",
            ),
        ),
        patients=_load_patients(data.get("patients")),
        created_at=data.get("created_at", "") or "",
        updated_at=data.get("updated_at", "") or "",
        ended_at=data.get("ended_at"),
        completed_at=data.get("completed_at"),
        last_message_id=data.get("last_message_id"),
        last_reply=data.get("last_reply", "") or "",
    )
    return doc


# --- diff --- #


def build_patch(before: Dict[str, Any], after: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Dotted-path merge patch turning ``before`` into ``after``.

    Nested objects are diffed key by key; lists and scalars are replaced
    whole; keys missing from ``after`` become ``DELETE``.
    """
    patch: Dict[str, Any] = {}
    for k, new in after.items():
        path = f"{prefix}{k}"
        old = before.get(k, DELETE)
        if isinstance(new, dict) and isinstance(old, dict):
            patch.update(build_patch(old, new, path + "."))
        elif old is DELETE or old != new:
            patch[path] = new
    for k in before:
        if k not in after:
            patch[f"{prefix}{k}"] = DELETE
    return patch


class SessionService:
    """Load and save session documents for one conversation key at a time.

    Holds no session state between turns; every call goes to the store.
    """

    def __init__(self, store: SessionStore) -> None:
        self._store = store

    def load(self, key: str) -> Tuple[SessionDocument, Dict[str, Any], bool]:
        """Return ``(document, snapshot_as_loaded, is_new)``."""
        data = self._store.get(key)
        if data is None:
            doc = SessionDocument(key=key)
            return doc, {}, True
        doc = load_session(key, data)
        return doc, data, False

    def save(self, doc: SessionDocument, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        """Write only what changed since ``snapshot``; returns the patch."""
        now = utc_now()
        if not doc.created_at:
            doc.created_at = now
        doc.updated_at = now
        patch = build_patch(snapshot, dump_session(doc))
        self._store.put(doc.key, patch, merge=True)
        return patch
