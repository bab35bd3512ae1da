"""Structured intake record handed to downstream processing."""

from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, Field

from intake.state import Complaint, SessionDocument


class SymptomOut(BaseModel):
    id: str
    name: str


class ComplaintOut(BaseModel):
    location_id: str
    location: str
    location_path: List[str] = Field(default_factory=list)
    symptoms: List[SymptomOut] = Field(default_factory=list)
    onset: str = ""
    course: str = ""
    aggravating: List[str] = Field(default_factory=list)
    relieving: List[str] = Field(default_factory=list)
    associated: List[str] = Field(default_factory=list)
    severity: Union[int, str, None] = None
    impact: str = ""
    red_flags: List[str] = Field(default_factory=list)


class HistoryOut(BaseModel):
    conditions: List[str] = Field(default_factory=list)
    medications: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    smoking: str = ""
    alcohol: str = ""
    travel: str = ""


class PatientOut(BaseModel):
    patient_id: str = ""
    name: str
    birth_year: Optional[int] = None
    sex: str = ""
    id_number: str = ""


class IntakeRecord(BaseModel):
    conversation_key: str
    status: str = Field(..., description="completed, ended or in_progress")
    flow_state: str
    patient: PatientOut
    complaints: List[ComplaintOut] = Field(default_factory=list)
    history: HistoryOut
    created_at: str = ""
    updated_at: str = ""
    completed_at: Optional[str] = None
    ended_at: Optional[str] = None


def _complaint_out(c: Complaint) -> ComplaintOut:
    return ComplaintOut(
        location_id=c.location_id,
        location=c.location_name,
        location_path=list(c.location_path),
        symptoms=[SymptomOut(id=s.id, name=s.name) for s in c.symptoms],
        onset=c.onset,
        course=c.course,
        aggravating=list(c.aggravating),
        relieving=list(c.relieving),
        associated=list(c.associated),
        severity=c.severity,
        impact=c.impact,
        red_flags=list(c.red_flags),
    )


def build_record(doc: SessionDocument) -> IntakeRecord:
    if doc.completed_at:
        status = "completed"
    elif doc.ended_at:
        status = "ended"
    else:
        status = "in_progress"
    col = doc.collected
    h = col.history
    return IntakeRecord(
        conversation_key=doc.key,
        status=status,
        flow_state=doc.flow_state.value,
        patient=PatientOut(
            patient_id=col.patient_id,
            name=col.patient_name,
            birth_year=col.birth_year,
            sex=col.sex,
            id_number=col.id_number,
        ),
        complaints=[_complaint_out(c) for c in doc.all_complaints()],
        history=HistoryOut(
            conditions=list(h.conditions),
            medications=list(h.medications),
            allergies=list(h.allergies),
            smoking=h.smoking,
            alcohol=h.alcohol,
            travel=h.travel,
        ),
        created_at=doc.created_at,
        updated_at=doc.updated_at,
        completed_at=doc.completed_at,
        ended_at=doc.ended_at,
    )
