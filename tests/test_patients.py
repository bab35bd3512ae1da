import intake.config as cfg
from intake import prompts as P
from intake.state import FlowState

from conftest import Chat


def test_first_intake_saves_the_patient(at_location):
    doc = at_location.doc()
    assert len(doc.patients) == 1
    p = doc.patients[0]
    assert (p.name, p.birth_year, p.sex, p.id_number) == ("Jane Doe", 1980, "female", "A1234567")
    assert p.created_at
    assert doc.collected.patient_id == p.patient_id


def test_saved_patient_is_offered_after_restart(at_location):
    reply = at_location.say("restart")
    assert "1. Jane Doe (1980)" in reply
    assert f"2. {P.ADD_PATIENT}" in reply

    reply = at_location.say("1")
    assert reply.startswith(P.NOTICE_PATIENT_SELECTED.format(name="Jane Doe"))
    doc = at_location.doc()
    assert doc.flow_state is FlowState.COMPLAINT_LOCATION
    col = doc.collected
    assert (col.patient_name, col.birth_year, col.sex, col.id_number) == ("Jane Doe", 1980, "female", "A1234567")
    assert col.patient_id == doc.patients[0].patient_id
    assert len(doc.patients) == 1


def test_second_patient_goes_to_the_end_of_the_list(at_location):
    at_location.say("restart")
    at_location.say("2")
    for answer in ("John Doe", "2010", "1", "B7654321"):
        at_location.say(answer)
    doc = at_location.doc()
    assert doc.flow_state is FlowState.COMPLAINT_LOCATION
    assert [p.name for p in doc.patients] == ["Jane Doe", "John Doe"]
    assert doc.collected.patient_id == doc.patients[1].patient_id

    reply = at_location.say("restart")
    assert "2. John Doe (2010)" in reply
    assert f"3. {P.ADD_PATIENT}" in reply


def test_full_list_opens_delete_menu(monkeypatch, at_location):
    monkeypatch.setattr(cfg, "MAX_PATIENTS", 1)
    at_location.say("restart")

    reply = at_location.say("2")
    assert reply.startswith(P.NOTICE_PATIENT_LIMIT)
    assert P.PATIENT_DELETE_TITLE.format(limit=1) in reply
    assert at_location.doc().flow_state is FlowState.IDENTIFY_PATIENT_DELETE

    assert at_location.say("5").startswith(P.NOTICE_INVALID_NUMBER)
    at_location.say("0")
    assert at_location.doc().flow_state is FlowState.IDENTIFY_PATIENT
    assert len(at_location.doc().patients) == 1

    at_location.say("2")
    reply = at_location.say("1")
    assert reply.startswith(P.NOTICE_PATIENT_REMOVED.format(name="Jane Doe"))
    assert P.NO_PATIENTS in reply
    doc = at_location.doc()
    assert doc.flow_state is FlowState.IDENTIFY_PATIENT
    assert doc.patients == []

    assert at_location.say("1") == P.ASK_NAME
    assert at_location.doc().flow_state is FlowState.IDENTIFY_NAME


def test_patients_belong_to_one_conversation_key(service, at_location):
    other = Chat(service, "whatsapp:+27820000099")
    reply = other.say("hi")
    assert P.NO_PATIENTS in reply
    assert other.doc().patients == []


def test_record_carries_patient_identity(service, at_location):
    record = service.load_record(at_location.sender)
    doc = at_location.doc()
    assert record.patient.patient_id == doc.patients[0].patient_id
    assert record.patient.id_number == "A1234567"
