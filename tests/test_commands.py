import time

import intake.config as cfg
from intake import prompts as P
from intake.commands import Command, match_command
from intake.render import render_entry, render_patient_menu
from intake.state import FlowState


def test_match_command_whole_message_any_case():
    assert match_command("Restart") is Command.RESTART
    assert match_command(" END ") is Command.END
    assert match_command("back") is Command.BACK
    assert match_command("HELP") is Command.HELP
    assert match_command("go back") is None
    assert match_command("") is None


def test_restart_mid_multiselect_resets_to_entry(at_location, store):
    chat = at_location
    chat.say("2")
    chat.say("1")
    chat.say("1")
    assert [p.id for p in chat.doc().pending_selection] == ["headache"]

    writes = store.writes
    reply = chat.say("RESTART")
    assert chat.last.command == "restart"
    assert store.writes == writes + 1

    doc = chat.doc()
    assert reply == render_entry(render_patient_menu(doc.patients))
    assert doc.flow_state is FlowState.IDENTIFY_PATIENT
    assert doc.pending_selection == []
    assert doc.collected.patient_name == ""
    assert doc.collected.patient_id == ""
    assert [p.name for p in doc.patients] == ["Jane Doe"]
    assert doc.collected.current.location_id == ""
    raw = store.get(chat.last.key)
    assert "pending_selection" not in raw
    assert "selection_path" not in raw


def test_restart_keeps_session_identity(at_location, store):
    created = at_location.doc().created_at
    at_location.say("restart")
    assert at_location.doc().created_at == created


def test_back_moves_to_predecessor(at_location):
    reply = at_location.say("back")
    doc = at_location.doc()
    assert reply == render_patient_menu(doc.patients)
    assert doc.flow_state is FlowState.IDENTIFY_PATIENT
    assert doc.collected.sex == "female"


def test_back_inside_new_patient_steps(chat):
    chat.say("hi")
    chat.say("1")
    chat.say("Jane Doe")
    chat.say("1980")
    chat.say("2")
    assert chat.say("back") == P.ASK_SEX
    assert chat.doc().flow_state is FlowState.IDENTIFY_SEX
    assert chat.doc().patients == []


def test_back_from_symptoms_clears_selection(at_location):
    at_location.say("2")
    at_location.say("1")
    at_location.say("2")
    at_location.say("back")
    doc = at_location.doc()
    assert doc.flow_state is FlowState.COMPLAINT_LOCATION
    assert doc.pending_selection == []
    assert doc.selection_path == []


def test_back_at_entry_is_noop(chat):
    chat.say("hi")
    reply = chat.say("back")
    assert reply.startswith(P.NOTICE_AT_START)
    assert P.PATIENT_MENU_TITLE in reply
    assert chat.doc().flow_state is FlowState.IDENTIFY_PATIENT


def test_end_marks_terminal(at_location, store):
    writes = store.writes
    reply = at_location.say("end")
    assert reply == P.ENDED.format(restart=cfg.RESTART_KEYWORD)
    assert store.writes == writes + 1
    doc = at_location.doc()
    assert doc.flow_state is FlowState.DONE
    assert doc.ended_at
    assert doc.completed_at is None

    # further messages keep getting the closing text
    assert at_location.say("hello?") == P.ENDED.format(restart=cfg.RESTART_KEYWORD)


def test_help_shows_commands_and_current_prompt(at_location):
    reply = at_location.say("help")
    assert P.commands_hint() in reply
    assert P.LOCATION_TITLE in reply
    assert at_location.last.command == "help"
    assert at_location.doc().flow_state is FlowState.COMPLAINT_LOCATION


def test_custom_keywords(monkeypatch, at_location):
    monkeypatch.setattr(cfg, "RESTART_KEYWORD", "reset")
    assert match_command("restart") is None
    assert at_location.say("RESET").startswith(P.WELCOME)
    assert at_location.last.command == "restart"


def test_command_past_deadline_writes_nothing(at_location, store):
    writes = store.writes
    reply = at_location.say("end", deadline=time.monotonic() - 1)
    assert reply == P.BUSY
    assert at_location.last.timed_out
    assert store.writes == writes
    doc = at_location.doc()
    assert doc.flow_state is FlowState.COMPLAINT_LOCATION
    assert doc.ended_at is None
