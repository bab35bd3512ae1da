"""
Intake flow: one handler per named state.

    identify_patient (saved patients | add new [-> identify_patient_delete at the limit])
        add new: identify_name -> identify_birth_year -> identify_sex -> identify_id_number
    complaint_location (tree) -> complaint_symptoms (paged multi-select)
        -> onset -> course -> aggravating -> relieving -> associated
        -> severity -> impact -> red_flags -> complaint_review
           (1 another complaint | 2 continue | 3 redo this complaint)
    history_conditions [-> history_conditions_other] -> medications
        -> allergies -> smoking -> alcohol -> travel
    summary (1 submit | 2 redo history | 3 another complaint) -> done

Each handler receives the raw message and the loaded SessionDocument,
mutates only its own slice of ``doc.collected`` (the identification states
also keep the saved-patient list ``doc.patients``) and returns a StepResult.
Validation problems never fail the turn: the prompt is shown again with a
short notice.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

import intake.config as cfg
from intake import prompts as P
from intake.catalog import FlatCatalog, TreeCatalog
from intake.input_helpers import is_none_answer, parse_indices, parse_int, split_list
from intake.multiselect import PagedMultiSelector, SelectStatus, free_text_items
from intake.render import (
    render_numbered,
    render_patient_delete,
    render_patient_menu,
    render_review,
    render_summary,
    with_notice,
)
from intake.session import utc_now
from intake.state import (
    MULTI_SELECT_STATES,
    NAVIGATION_STATES,
    UNSCORED,
    CollectedFields,
    Complaint,
    FlowState,
    PatientProfile,
    SessionDocument,
)
from intake.tree_nav import TreeNavigator

logger = logging.getLogger(__name__)

S = FlowState


@dataclass
class StepResult:
    next_state: FlowState
    reply: str
    completed: bool = False  # True only on the turn that submits the intake


class FlowStateMachine:
    def __init__(self, tree: TreeCatalog, items: FlatCatalog) -> None:
        self.tree = tree
        self.items = items
        self.navigator = TreeNavigator(tree)
        self._handlers: Dict[FlowState, Callable[[str, SessionDocument], StepResult]] = {
            S.IDENTIFY_PATIENT: self._on_patient,
            S.IDENTIFY_PATIENT_DELETE: self._on_patient_delete,
            S.IDENTIFY_NAME: self._on_name,
            S.IDENTIFY_BIRTH_YEAR: self._on_birth_year,
            S.IDENTIFY_SEX: self._on_sex,
            S.IDENTIFY_ID_NUMBER: self._on_id_number,
            S.COMPLAINT_LOCATION: self._on_location,
            S.COMPLAINT_SYMPTOMS: self._on_symptoms,
            S.COMPLAINT_ONSET: self._text_field("onset"),
            S.COMPLAINT_COURSE: self._text_field("course"),
            S.COMPLAINT_AGGRAVATING: self._list_field("aggravating"),
            S.COMPLAINT_RELIEVING: self._list_field("relieving"),
            S.COMPLAINT_ASSOCIATED: self._list_field("associated"),
            S.COMPLAINT_SEVERITY: self._on_severity,
            S.COMPLAINT_IMPACT: self._text_field("impact"),
            S.COMPLAINT_RED_FLAGS: self._on_red_flags,
            S.COMPLAINT_REVIEW: self._on_complaint_review,
            S.HISTORY_CONDITIONS: self._on_conditions,
            S.HISTORY_CONDITIONS_OTHER: self._on_conditions_other,
            S.HISTORY_MEDICATIONS: self._history_list("medications"),
            S.HISTORY_ALLERGIES: self._history_list("allergies"),
            S.HISTORY_SMOKING: self._history_choice("smoking", P.SMOKING_OPTIONS),
            S.HISTORY_ALCOHOL: self._history_choice("alcohol", P.ALCOHOL_OPTIONS),
            S.HISTORY_TRAVEL: self._history_choice("travel", P.TRAVEL_OPTIONS),
            S.SUMMARY: self._on_summary,
            S.DONE: self._on_done,
        }

    # ---------------- public API ----------------

    def handle(self, raw_text: str, doc: SessionDocument) -> StepResult:
        """Run the current state's handler and keep the transient-field invariants."""
        text = (raw_text or "").strip()
        before = doc.flow_state
        result = self._handlers[before](text, doc)
        doc.flow_state = result.next_state
        self._drop_foreign_transient(doc)
        if before is not result.next_state:
            logger.info("flow %s: %s -> %s", doc.key, before.value, result.next_state.value)
        return result

    def enter(self, doc: SessionDocument, state: FlowState, notice: str = "") -> StepResult:
        """Move to ``state`` from scratch and return its prompt."""
        if state is S.COMPLAINT_SYMPTOMS and not doc.collected.current.location_id:
            state, notice = S.COMPLAINT_LOCATION, P.NOTICE_NO_LOCATION
        doc.flow_state = state
        doc.clear_transient()
        return StepResult(state, self.prompt_for(doc, notice))

    def prompt_for(self, doc: SessionDocument, notice: str = "") -> str:
        """Prompt for the state the document is currently in."""
        st = doc.flow_state
        c = doc.collected.current
        if st is S.IDENTIFY_PATIENT:
            return render_patient_menu(doc.patients, notice)
        if st is S.IDENTIFY_PATIENT_DELETE:
            return render_patient_delete(doc.patients, cfg.MAX_PATIENTS, notice)
        if st is S.IDENTIFY_NAME:
            return with_notice(P.ASK_NAME, notice)
        if st is S.IDENTIFY_BIRTH_YEAR:
            return with_notice(P.ASK_BIRTH_YEAR, notice)
        if st is S.IDENTIFY_SEX:
            return with_notice(P.ASK_SEX, notice)
        if st is S.IDENTIFY_ID_NUMBER:
            return with_notice(P.ASK_ID_NUMBER, notice)
        if st is S.COMPLAINT_LOCATION:
            return self.navigator.render(doc.selection_path, notice)
        if st is S.COMPLAINT_SYMPTOMS:
            return self._symptoms_prompt(doc, notice)
        if st is S.COMPLAINT_SEVERITY:
            return with_notice(P.ASK_SEVERITY, notice)
        if st is S.COMPLAINT_RED_FLAGS:
            return render_numbered(P.RED_FLAGS_TITLE, P.RED_FLAG_OPTIONS, notice)
        if st is S.COMPLAINT_REVIEW:
            return render_review(c, self._can_add_complaint(doc), notice)
        if st is S.HISTORY_CONDITIONS:
            return render_numbered(P.CONDITIONS_TITLE, P.CONDITION_OPTIONS, notice)
        if st is S.SUMMARY:
            return render_summary(doc.collected, doc.all_complaints(), self._can_add_complaint(doc), notice)
        if st is S.DONE:
            base = P.DONE_REPEAT if doc.completed_at else P.ENDED
            return with_notice(base.format(restart=cfg.RESTART_KEYWORD), notice)
        return with_notice(_SIMPLE_PROMPTS[st], notice)

    # ---------------- helpers ----------------

    def _stay(self, doc: SessionDocument, notice: str) -> StepResult:
        return StepResult(doc.flow_state, self.prompt_for(doc, notice))

    def _advance(self, doc: SessionDocument, state: FlowState, notice: str = "") -> StepResult:
        return self.enter(doc, state, notice)

    def _drop_foreign_transient(self, doc: SessionDocument) -> None:
        if doc.flow_state not in MULTI_SELECT_STATES:
            doc.pending_selection = []
            doc.current_page = 1
        if doc.flow_state not in NAVIGATION_STATES:
            doc.selection_path = []

    def _can_add_complaint(self, doc: SessionDocument) -> bool:
        return len(doc.all_complaints()) < cfg.MAX_COMPLAINTS

    def _selector(self, doc: SessionDocument) -> Optional[PagedMultiSelector]:
        c = doc.collected.current
        items = self.items.items_for(c.location_id)
        if not items:
            return None
        title = P.SYMPTOMS_TITLE.format(location=c.location_name)
        return PagedMultiSelector(items, cfg.PAGE_SIZE, title)

    def _symptoms_prompt(self, doc: SessionDocument, notice: str = "") -> str:
        c = doc.collected.current
        if not c.location_id:
            return self.navigator.render([], P.NOTICE_NO_LOCATION)
        selector = self._selector(doc)
        if selector is None:
            return with_notice(P.SYMPTOMS_FREE_TEXT.format(location=c.location_name), notice)
        return selector.render(doc.pending_selection, doc.current_page, notice)

    def _next_after_complaint(self, doc: SessionDocument) -> FlowState:
        # history is asked once; later complaints go straight to the summary
        return S.SUMMARY if doc.collected.history.travel else S.HISTORY_CONDITIONS

    # ---------------- identification ----------------

    def _on_patient(self, text: str, doc: SessionDocument) -> StepResult:
        choice = parse_int(text)
        count = len(doc.patients)
        if choice is not None and 1 <= choice <= count:
            profile = doc.patients[choice - 1]
            _use_profile(doc.collected, profile)
            return self._advance(doc, S.COMPLAINT_LOCATION, P.NOTICE_PATIENT_SELECTED.format(name=profile.name))
        if choice == count + 1:
            if count >= cfg.MAX_PATIENTS:
                return self._advance(doc, S.IDENTIFY_PATIENT_DELETE, P.NOTICE_PATIENT_LIMIT)
            _clear_identity(doc.collected)
            return self._advance(doc, S.IDENTIFY_NAME)
        return self._stay(doc, P.NOTICE_INVALID_NUMBER)

    def _on_patient_delete(self, text: str, doc: SessionDocument) -> StepResult:
        choice = parse_int(text)
        if choice == 0:
            return self._advance(doc, S.IDENTIFY_PATIENT)
        if choice is None or not (1 <= choice <= len(doc.patients)):
            return self._stay(doc, P.NOTICE_INVALID_NUMBER)
        removed = doc.patients.pop(choice - 1)
        if doc.collected.patient_id == removed.patient_id:
            _clear_identity(doc.collected)
        logger.info("patient %s removed for %s", removed.patient_id, doc.key)
        return self._advance(doc, S.IDENTIFY_PATIENT, P.NOTICE_PATIENT_REMOVED.format(name=removed.name))

    def _on_name(self, text: str, doc: SessionDocument) -> StepResult:
        if not text:
            return self._stay(doc, P.NOTICE_NAME)
        doc.collected.patient_name = text
        return self._advance(doc, S.IDENTIFY_BIRTH_YEAR)

    def _on_birth_year(self, text: str, doc: SessionDocument) -> StepResult:
        year = parse_int(text)
        now = datetime.now().year
        if year is None or not (cfg.MIN_BIRTH_YEAR <= year <= now):
            return self._stay(doc, P.NOTICE_YEAR.format(min_year=cfg.MIN_BIRTH_YEAR, max_year=now))
        doc.collected.birth_year = year
        return self._advance(doc, S.IDENTIFY_SEX)

    def _on_sex(self, text: str, doc: SessionDocument) -> StepResult:
        choice = parse_int(text)
        if choice not in P.SEX_OPTIONS:
            return self._stay(doc, P.NOTICE_INVALID_NUMBER)
        doc.collected.sex = P.SEX_OPTIONS[choice]
        return self._advance(doc, S.IDENTIFY_ID_NUMBER)

    def _on_id_number(self, text: str, doc: SessionDocument) -> StepResult:
        if len(text) < cfg.MIN_ID_LENGTH:
            return self._stay(doc, P.NOTICE_ID_NUMBER.format(min_length=cfg.MIN_ID_LENGTH))
        col = doc.collected
        col.id_number = text
        profile = PatientProfile(
            patient_id=uuid.uuid4().hex[:12],
            name=col.patient_name,
            birth_year=col.birth_year,
            sex=col.sex,
            id_number=text,
            created_at=utc_now(),
        )
        doc.patients.append(profile)
        col.patient_id = profile.patient_id
        return self._advance(doc, S.COMPLAINT_LOCATION)

    # ---------------- complaint ----------------

    def _on_location(self, text: str, doc: SessionDocument) -> StepResult:
        out = self.navigator.handle(text, doc.selection_path)
        if not out.complete:
            doc.selection_path = out.path
            return StepResult(S.COMPLAINT_LOCATION, out.reply)

        c = doc.collected.current
        if c.location_id != out.leaf.id:
            c.symptoms = []
        c.location_id = out.leaf.id
        c.location_name = out.leaf.name
        c.location_path = [s.name for s in out.trail]
        return self._advance(doc, S.COMPLAINT_SYMPTOMS)

    def _on_symptoms(self, text: str, doc: SessionDocument) -> StepResult:
        c = doc.collected.current
        if not c.location_id:
            logger.warning("symptom selection without location for %s", doc.key)
            return self._advance(doc, S.COMPLAINT_LOCATION, P.NOTICE_NO_LOCATION)

        selector = self._selector(doc)
        if selector is None:
            if parse_int(text) == 0:
                return self._advance(doc, S.COMPLAINT_LOCATION)
            typed = free_text_items(text)
            if not typed:
                return self._stay(doc, P.NOTICE_LIST_REQUIRED)
            c.symptoms = typed
            return self._advance(doc, S.COMPLAINT_ONSET)

        out = selector.handle(text, doc.pending_selection, doc.current_page)
        if out.status is SelectStatus.EXIT:
            return self._advance(doc, S.COMPLAINT_LOCATION)
        if out.status is SelectStatus.CONFIRMED:
            c.symptoms = out.selection
            return self._advance(doc, S.COMPLAINT_ONSET)
        doc.pending_selection = out.pending
        doc.current_page = out.page
        return StepResult(S.COMPLAINT_SYMPTOMS, out.reply)

    def _text_field(self, name: str) -> Callable[[str, SessionDocument], StepResult]:
        def _handler(text: str, doc: SessionDocument) -> StepResult:
            if not text:
                return self._stay(doc, P.NOTICE_TEXT_REQUIRED)
            setattr(doc.collected.current, name, text)
            return self._advance(doc, _NEXT[doc.flow_state])

        return _handler

    def _list_field(self, name: str) -> Callable[[str, SessionDocument], StepResult]:
        def _handler(text: str, doc: SessionDocument) -> StepResult:
            values = _list_answer(text)
            if values is None:
                return self._stay(doc, P.NOTICE_LIST_REQUIRED)
            setattr(doc.collected.current, name, values)
            return self._advance(doc, _NEXT[doc.flow_state])

        return _handler

    def _on_severity(self, text: str, doc: SessionDocument) -> StepResult:
        score = parse_int(text)
        if score is not None and cfg.SEVERITY_MIN <= score <= cfg.SEVERITY_MAX:
            doc.collected.current.severity = score
            return self._advance(doc, S.COMPLAINT_IMPACT)
        # non-blocking: anything else is recorded as unscored
        doc.collected.current.severity = UNSCORED
        return self._advance(doc, S.COMPLAINT_IMPACT, P.NOTICE_SEVERITY_UNSCORED)

    def _on_red_flags(self, text: str, doc: SessionDocument) -> StepResult:
        picked = _menu_answer(text, P.RED_FLAG_OPTIONS)
        if picked is None:
            return self._stay(doc, P.NOTICE_INVALID_LIST)
        doc.collected.current.red_flags = picked
        return self._advance(doc, S.COMPLAINT_REVIEW)

    def _on_complaint_review(self, text: str, doc: SessionDocument) -> StepResult:
        choice = parse_int(text)
        col = doc.collected
        if choice == 1:
            if not self._can_add_complaint(doc):
                return self._stay(doc, P.NOTICE_COMPLAINT_LIMIT.format(limit=cfg.MAX_COMPLAINTS))
            col.complaints.append(col.current)
            col.current = Complaint()
            return self._advance(doc, S.COMPLAINT_LOCATION)
        if choice == 2:
            return self._advance(doc, self._next_after_complaint(doc))
        if choice == 3:
            col.current = Complaint()
            return self._advance(doc, S.COMPLAINT_LOCATION)
        return self._stay(doc, P.NOTICE_INVALID_NUMBER)

    # ---------------- history ----------------

    def _on_conditions(self, text: str, doc: SessionDocument) -> StepResult:
        nums = parse_indices(text)
        other_idx = P.CONDITION_OPTIONS.index("Other") + 1
        picked = _menu_answer(text, P.CONDITION_OPTIONS)
        if picked is None:
            return self._stay(doc, P.NOTICE_INVALID_LIST)
        h = doc.collected.history
        h.conditions = [p for p in picked if p != "Other"]
        if picked and other_idx in nums:
            return self._advance(doc, S.HISTORY_CONDITIONS_OTHER)
        return self._advance(doc, S.HISTORY_MEDICATIONS)

    def _on_conditions_other(self, text: str, doc: SessionDocument) -> StepResult:
        extra = split_list(text)
        if not extra:
            return self._stay(doc, P.NOTICE_LIST_REQUIRED)
        h = doc.collected.history
        h.conditions = h.conditions + [x for x in extra if x not in h.conditions]
        return self._advance(doc, S.HISTORY_MEDICATIONS)

    def _history_list(self, name: str) -> Callable[[str, SessionDocument], StepResult]:
        def _handler(text: str, doc: SessionDocument) -> StepResult:
            values = _list_answer(text)
            if values is None:
                return self._stay(doc, P.NOTICE_LIST_REQUIRED)
            setattr(doc.collected.history, name, values)
            return self._advance(doc, _NEXT[doc.flow_state])

        return _handler

    def _history_choice(self, name: str, options: Dict[int, str]) -> Callable[[str, SessionDocument], StepResult]:
        def _handler(text: str, doc: SessionDocument) -> StepResult:
            choice = parse_int(text)
            if choice not in options:
                return self._stay(doc, P.NOTICE_INVALID_NUMBER)
            setattr(doc.collected.history, name, options[choice])
            return self._advance(doc, _NEXT[doc.flow_state])

        return _handler

    # ---------------- summary / done ----------------

    def _on_summary(self, text: str, doc: SessionDocument) -> StepResult:
        choice = parse_int(text)
        col = doc.collected
        if choice == 1:
            doc.completed_at = utc_now()
            doc.flow_state = S.DONE
            doc.clear_transient()
            return StepResult(S.DONE, P.DONE, completed=True)
        if choice == 2:
            return self._advance(doc, S.HISTORY_CONDITIONS)
        if choice == 3 and self._can_add_complaint(doc):
            if col.current.location_id:
                col.complaints.append(col.current)
            col.current = Complaint()
            return self._advance(doc, S.COMPLAINT_LOCATION)
        return self._stay(doc, P.NOTICE_INVALID_NUMBER)

    def _on_done(self, text: str, doc: SessionDocument) -> StepResult:
        return self._stay(doc, "")


# Linear successors for the generic field handlers
_NEXT: Dict[FlowState, FlowState] = {
    S.COMPLAINT_ONSET: S.COMPLAINT_COURSE,
    S.COMPLAINT_COURSE: S.COMPLAINT_AGGRAVATING,
    S.COMPLAINT_AGGRAVATING: S.COMPLAINT_RELIEVING,
    S.COMPLAINT_RELIEVING: S.COMPLAINT_ASSOCIATED,
    S.COMPLAINT_ASSOCIATED: S.COMPLAINT_SEVERITY,
    S.COMPLAINT_IMPACT: S.COMPLAINT_RED_FLAGS,
    S.HISTORY_MEDICATIONS: S.HISTORY_ALLERGIES,
    S.HISTORY_ALLERGIES: S.HISTORY_SMOKING,
    S.HISTORY_SMOKING: S.HISTORY_ALCOHOL,
    S.HISTORY_ALCOHOL: S.HISTORY_TRAVEL,
    S.HISTORY_TRAVEL: S.SUMMARY,
}

_SIMPLE_PROMPTS: Dict[FlowState, str] = {
    S.COMPLAINT_ONSET: P.ASK_ONSET,
    S.COMPLAINT_COURSE: P.ASK_COURSE,
    S.COMPLAINT_AGGRAVATING: P.ASK_AGGRAVATING,
    S.COMPLAINT_RELIEVING: P.ASK_RELIEVING,
    S.COMPLAINT_ASSOCIATED: P.ASK_ASSOCIATED,
    S.COMPLAINT_IMPACT: P.ASK_IMPACT,
    S.HISTORY_CONDITIONS_OTHER: P.ASK_CONDITIONS_OTHER,
    S.HISTORY_MEDICATIONS: P.ASK_MEDICATIONS,
    S.HISTORY_ALLERGIES: P.ASK_ALLERGIES,
    S.HISTORY_SMOKING: P.ASK_SMOKING,
    S.HISTORY_ALCOHOL: P.ASK_ALCOHOL,
    S.HISTORY_TRAVEL: P.ASK_TRAVEL,
}


def _use_profile(col: CollectedFields, p: PatientProfile) -> None:
    col.patient_id = p.patient_id
    col.patient_name = p.name
    col.birth_year = p.birth_year
    col.sex = p.sex
    col.id_number = p.id_number


def _clear_identity(col: CollectedFields) -> None:
    _use_profile(col, PatientProfile(patient_id="", name=""))


def _list_answer(text: str) -> Optional[List[str]]:
    """Delimited list, ``[]`` for an explicit 'none', ``None`` if unusable."""
    if is_none_answer(text):
        return []
    values = split_list(text)
    return values or None


def _menu_answer(text: str, options: List[str]) -> Optional[List[str]]:
    """Names picked from a fixed numbered menu whose last option means 'none'.

    Every index must be on the menu; ``None`` signals a malformed answer.
    """
    if is_none_answer(text):
        return []
    nums = parse_indices(text)
    if not nums or not all(1 <= n <= len(options) for n in nums):
        return None
    if len(options) in nums:
        return []
    return [options[n - 1] for n in nums]
