"""State management for the intake conversation."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union


class FlowState(str, Enum):
    """Named states of the intake flow, in conversation order."""

    IDENTIFY_PATIENT = "identify_patient"
    IDENTIFY_PATIENT_DELETE = "identify_patient_delete"
    IDENTIFY_NAME = "identify_name"
    IDENTIFY_BIRTH_YEAR = "identify_birth_year"
    IDENTIFY_SEX = "identify_sex"
    IDENTIFY_ID_NUMBER = "identify_id_number"

    COMPLAINT_LOCATION = "complaint_location"
    COMPLAINT_SYMPTOMS = "complaint_symptoms"
    COMPLAINT_ONSET = "complaint_onset"
    COMPLAINT_COURSE = "complaint_course"
    COMPLAINT_AGGRAVATING = "complaint_aggravating"
    COMPLAINT_RELIEVING = "complaint_relieving"
    COMPLAINT_ASSOCIATED = "complaint_associated"
    COMPLAINT_SEVERITY = "complaint_severity"
    COMPLAINT_IMPACT = "complaint_impact"
    COMPLAINT_RED_FLAGS = "complaint_red_flags"
    COMPLAINT_REVIEW = "complaint_review"

    HISTORY_CONDITIONS = "history_conditions"
    HISTORY_CONDITIONS_OTHER = "history_conditions_other"
    HISTORY_MEDICATIONS = "history_medications"
    HISTORY_ALLERGIES = "history_allergies"
    HISTORY_SMOKING = "history_smoking"
    HISTORY_ALCOHOL = "history_alcohol"
    HISTORY_TRAVEL = "history_travel"

    SUMMARY = "summary"
    DONE = "done"


ENTRY_STATE = FlowState.IDENTIFY_PATIENT
TERMINAL_STATE = FlowState.DONE

# Static "back one step" table. Every non-entry state needs a row here.
PREDECESSORS: Dict[FlowState, FlowState] = {
    FlowState.IDENTIFY_PATIENT_DELETE: FlowState.IDENTIFY_PATIENT,
    FlowState.IDENTIFY_NAME: FlowState.IDENTIFY_PATIENT,
    FlowState.IDENTIFY_BIRTH_YEAR: FlowState.IDENTIFY_NAME,
    FlowState.IDENTIFY_SEX: FlowState.IDENTIFY_BIRTH_YEAR,
    FlowState.IDENTIFY_ID_NUMBER: FlowState.IDENTIFY_SEX,
    # the new profile is already saved by then, so pick it again from the list
    FlowState.COMPLAINT_LOCATION: FlowState.IDENTIFY_PATIENT,
    FlowState.COMPLAINT_SYMPTOMS: FlowState.COMPLAINT_LOCATION,
    FlowState.COMPLAINT_ONSET: FlowState.COMPLAINT_SYMPTOMS,
    FlowState.COMPLAINT_COURSE: FlowState.COMPLAINT_ONSET,
    FlowState.COMPLAINT_AGGRAVATING: FlowState.COMPLAINT_COURSE,
    FlowState.COMPLAINT_RELIEVING: FlowState.COMPLAINT_AGGRAVATING,
    FlowState.COMPLAINT_ASSOCIATED: FlowState.COMPLAINT_RELIEVING,
    FlowState.COMPLAINT_SEVERITY: FlowState.COMPLAINT_ASSOCIATED,
    FlowState.COMPLAINT_IMPACT: FlowState.COMPLAINT_SEVERITY,
    FlowState.COMPLAINT_RED_FLAGS: FlowState.COMPLAINT_IMPACT,
    FlowState.COMPLAINT_REVIEW: FlowState.COMPLAINT_RED_FLAGS,
    FlowState.HISTORY_CONDITIONS: FlowState.COMPLAINT_REVIEW,
    FlowState.HISTORY_CONDITIONS_OTHER: FlowState.HISTORY_CONDITIONS,
    FlowState.HISTORY_MEDICATIONS: FlowState.HISTORY_CONDITIONS,
    FlowState.HISTORY_ALLERGIES: FlowState.HISTORY_MEDICATIONS,
    FlowState.HISTORY_SMOKING: FlowState.HISTORY_ALLERGIES,
    FlowState.HISTORY_ALCOHOL: FlowState.HISTORY_SMOKING,
    FlowState.HISTORY_TRAVEL: FlowState.HISTORY_ALCOHOL,
    FlowState.SUMMARY: FlowState.HISTORY_TRAVEL,
    FlowState.DONE: FlowState.SUMMARY,
}

# States that own the paginated selection fields
MULTI_SELECT_STATES = frozenset({FlowState.COMPLAINT_SYMPTOMS})
# States that own the navigation breadcrumb
NAVIGATION_STATES = frozenset({FlowState.COMPLAINT_LOCATION})

UNSCORED = "unscored"


@dataclass
class PathStep:
    """One breadcrumb element of a tree traversal."""

    id: str
    name: str
    level: int


@dataclass
class SelectedItem:
    """A chosen catalog item (or an ad hoc one typed in free text)."""

    id: str
    name: str


@dataclass
class PatientProfile:
    """A patient saved under the conversation key, reusable across intakes."""

    patient_id: str
    name: str
    birth_year: Optional[int] = None
    sex: str = ""
    id_number: str = ""
    created_at: str = ""


@dataclass
class Complaint:
    """Attributes collected for one chief complaint."""

    location_id: str = ""
    location_name: str = ""
    location_path: List[str] = field(default_factory=list)
    symptoms: List[SelectedItem] = field(default_factory=list)
    onset: str = ""
    course: str = ""
    aggravating: List[str] = field(default_factory=list)
    relieving: List[str] = field(default_factory=list)
    associated: List[str] = field(default_factory=list)
    severity: Union[int, str, None] = None  # 0-10, UNSCORED, or None if not asked yet
    impact: str = ""
    red_flags: List[str] = field(default_factory=list)


@dataclass
class History:
    """Background history collected once per intake."""

    conditions: List[str] = field(default_factory=list)
    medications: List[str] = field(default_factory=list)
    allergies: List[str] = field(default_factory=list)
    smoking: str = ""
    alcohol: str = ""
    travel: str = ""


@dataclass
class CollectedFields:
    """Every answer gathered by the field-collection states."""

    patient_id: str = ""  # the PatientProfile this intake is for
    patient_name: str = ""
    birth_year: Optional[int] = None
    sex: str = ""
    id_number: str = ""
    complaints: List[Complaint] = field(default_factory=list)  # finalised
    current: Complaint = field(default_factory=Complaint)  # in progress
    history: History = field(default_factory=History)


@dataclass
class SessionDocument:
    """The single mutable record kept per conversation key."""

    key: str = ""

    flow_state: FlowState = ENTRY_STATE

    # Tree navigation and paginated selection (transient)
    selection_path: List[PathStep] = field(default_factory=list)
    pending_selection: List[SelectedItem] = field(default_factory=list)
    current_page: int = 1

    collected: CollectedFields = field(default_factory=CollectedFields)

    # Saved patients of this conversation key; kept across restarts
    patients: List[PatientProfile] = field(default_factory=list)

    # Revision markers and stamps (audit only)
    created_at: str = ""
    updated_at: str = ""
    ended_at: Optional[str] = None
    completed_at: Optional[str] = None

    # Duplicate-delivery replay
    last_message_id: Optional[str] = None
    last_reply: str = ""

    def clear_transient(self) -> None:
        """Drop navigation and selection state left over from a previous step."""
        self.selection_path = []
        self.pending_selection = []
        self.current_page = 1

    def reset(self) -> None:
        """Restart the intake; session identity, audit stamps and saved patients survive."""
        self.flow_state = ENTRY_STATE
        self.clear_transient()
        self.collected = CollectedFields()
        self.ended_at = None
        self.completed_at = None

    def all_complaints(self) -> List[Complaint]:
        """Finalised complaints plus the one in progress, if it has a location."""
        out = list(self.collected.complaints)
        if self.collected.current.location_id:
            out.append(self.collected.current)
        return out

    def find_patient(self, patient_id: str) -> Optional[PatientProfile]:
        for p in self.patients:
            if p.patient_id == patient_id:
                return p
        return None
