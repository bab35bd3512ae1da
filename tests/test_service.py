import time

import pytest

from intake import prompts as P
from intake.errors import StoreUnavailable
from intake.render import render_entry, render_patient_menu
from intake.service import IntakeService
from intake.state import FlowState
from intake.store import InMemorySessionStore

from conftest import Chat

HAPPY_PATH = [
    ("2", FlowState.COMPLAINT_LOCATION),  # Chest
    ("1", FlowState.COMPLAINT_SYMPTOMS),  # Front of the chest
    ("1,2", FlowState.COMPLAINT_SYMPTOMS),
    ("5", FlowState.COMPLAINT_ONSET),  # confirm
    ("3 days ago", FlowState.COMPLAINT_COURSE),
    ("getting worse", FlowState.COMPLAINT_AGGRAVATING),
    ("stairs", FlowState.COMPLAINT_RELIEVING),
    ("rest", FlowState.COMPLAINT_ASSOCIATED),
    ("none", FlowState.COMPLAINT_SEVERITY),
    ("6", FlowState.COMPLAINT_IMPACT),
    ("cannot sleep", FlowState.COMPLAINT_RED_FLAGS),
    ("8", FlowState.COMPLAINT_REVIEW),
    ("2", FlowState.HISTORY_CONDITIONS),
    ("9", FlowState.HISTORY_MEDICATIONS),
    ("none", FlowState.HISTORY_ALLERGIES),
    ("penicillin", FlowState.HISTORY_SMOKING),
    ("2", FlowState.HISTORY_ALCOHOL),
    ("3", FlowState.HISTORY_TRAVEL),
    ("2", FlowState.SUMMARY),
]


class FailingStore(InMemorySessionStore):
    def __init__(self, fail_get=True, fail_put=True):
        super().__init__()
        self.fail_get = fail_get
        self.fail_put = fail_put

    def get(self, key):
        if self.fail_get:
            raise StoreUnavailable("down")
        return super().get(key)

    def put(self, key, patch, merge=True):
        if self.fail_put:
            raise StoreUnavailable("down")
        super().put(key, patch, merge)


def test_first_message_gets_entry_prompt_and_is_not_an_answer(chat, store):
    reply = chat.say("Jane Doe")
    assert reply == render_entry(render_patient_menu([]))
    doc = chat.doc()
    assert doc.flow_state is FlowState.IDENTIFY_PATIENT
    assert doc.collected.patient_name == ""
    assert doc.created_at
    assert store.writes == 1


def test_happy_path_completes_and_hands_off(at_location, handed_off, store):
    for text, expected in HAPPY_PATH:
        at_location.say(text)
        assert at_location.last.flow_state == expected.value, text

    writes = store.writes
    reply = at_location.say("1")
    assert reply == P.DONE
    assert at_location.last.flow_state == "done"
    assert store.writes == writes + 1

    assert len(handed_off) == 1
    record = handed_off[0]
    assert record.status == "completed"
    assert record.patient.name == "Jane Doe"
    assert record.patient.id_number == "A1234567"
    assert record.patient.patient_id
    assert len(record.complaints) == 1
    c = record.complaints[0]
    assert [s.id for s in c.symptoms] == ["headache", "cough"]
    assert c.severity == 6
    assert c.aggravating == ["stairs"]
    assert c.associated == []
    assert record.history.allergies == ["penicillin"]


def test_each_turn_writes_once(at_location, store):
    before = store.writes
    at_location.say("2")
    at_location.say("nonsense")
    assert store.writes == before + 2


def test_redelivery_replays_without_writing(chat, store):
    chat.say("hi", message_id="m1")
    first = chat.say("1", message_id="m2")
    writes = store.writes

    again = chat.say("1", message_id="m2")
    assert again == first
    assert chat.last.replayed
    assert store.writes == writes
    assert chat.doc().flow_state is FlowState.IDENTIFY_NAME

    chat.say("Jane Doe", message_id="m3")
    assert chat.doc().flow_state is FlowState.IDENTIFY_BIRTH_YEAR


def test_same_input_without_message_id_is_reprocessed_from_new_state(chat):
    chat.say("hi")
    chat.say("1")
    chat.say("Jane Doe")
    reply = chat.say("Jane Doe")
    assert reply.startswith("⚠️")
    assert chat.doc().flow_state is FlowState.IDENTIFY_BIRTH_YEAR


def test_conversations_are_isolated(service):
    a = Chat(service, "whatsapp:+1")
    b = Chat(service, "whatsapp:+2")
    a.say("hi")
    b.say("hi")
    a.say("1")
    a.say("Alice")
    assert a.doc().flow_state is FlowState.IDENTIFY_BIRTH_YEAR
    assert b.doc().flow_state is FlowState.IDENTIFY_PATIENT
    assert b.doc().collected.patient_name == ""


@pytest.mark.parametrize("fail_get,fail_put", [(True, True), (False, True)])
def test_store_failure_gets_generic_reply(catalog, fail_get, fail_put):
    store = FailingStore(fail_get=fail_get, fail_put=fail_put)
    svc = IntakeService(store, tree=catalog, items=catalog)
    out = svc.handle_turn("+1", "hi")
    assert out.reply == P.UNAVAILABLE
    assert out.unavailable
    assert store.writes == 0


def test_read_failure_leaves_document_untouched(catalog):
    store = FailingStore(fail_get=False, fail_put=False)
    svc = IntakeService(store, tree=catalog, items=catalog)
    svc.handle_turn("+1", "hi")
    snapshot = store.get("+1")
    store.fail_get = True
    assert svc.handle_turn("+1", "Jane").reply == P.UNAVAILABLE
    store.fail_get = False
    assert store.get("+1") == snapshot


def test_sink_failure_does_not_break_the_turn(at_location, service):
    def boom(record):
        raise RuntimeError("downstream offline")

    service.record_sink = boom
    for text, _ in HAPPY_PATH:
        at_location.say(text)
    assert at_location.say("1") == P.DONE
    assert at_location.doc().completed_at


def test_unknown_stored_state_falls_back_to_entry(service, store):
    store.put("+9", {"flow_state": "no_such_state", "created_at": "x"})
    out = service.handle_turn("+9", "1")  # "add a new patient" on the entry menu
    assert out.flow_state == FlowState.IDENTIFY_NAME.value
    assert store.get("+9")["flow_state"] == FlowState.IDENTIFY_NAME.value


def test_load_record(service, at_location):
    assert service.load_record("+000") is None
    record = service.load_record(at_location.sender)
    assert record.status == "in_progress"
    assert record.flow_state == FlowState.COMPLAINT_LOCATION.value
    assert record.patient.birth_year == 1980


def test_huge_number_gets_a_notice(chat):
    chat.say("hi")
    chat.say("1")
    chat.say("Jane Doe")
    reply = chat.say("9" * 5000)
    assert reply.startswith("⚠️")
    assert chat.doc().flow_state is FlowState.IDENTIFY_BIRTH_YEAR


def test_turn_past_deadline_writes_nothing(at_location, store):
    before = store.get(at_location.last.key)
    writes = store.writes

    out = at_location.svc.handle_turn(at_location.sender, "2", deadline=time.monotonic() - 1)
    assert out.reply == P.BUSY
    assert out.timed_out
    assert store.writes == writes
    assert store.get(out.key) == before

    # the retry is still taken as the answer to the same question
    at_location.say("2", deadline=time.monotonic() + 60)
    assert at_location.doc().flow_state is FlowState.COMPLAINT_LOCATION
    assert [s.id for s in at_location.doc().selection_path] == ["chest"]


def test_first_contact_past_deadline_creates_nothing(service, store):
    out = service.handle_turn("+5", "hi", deadline=time.monotonic() - 1)
    assert out.reply == P.BUSY
    assert store.get("+5") is None
