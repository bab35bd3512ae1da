import json
import logging
import time

import pytest
from fastapi.testclient import TestClient

import intake.config as cfg
from intake import prompts as P
from intake.render import render_entry, render_patient_menu
from intake.service import IntakeService
from intake.store import InMemorySessionStore

import api.server as server
from api.server import app, get_service


@pytest.fixture
def client(catalog):
    svc = IntakeService(InMemorySessionStore(), tree=catalog, items=catalog)
    app.dependency_overrides[get_service] = lambda: svc
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert r.json()["service"] == "PreDoctor Intake Bot"


def test_chat_turns(client):
    r = client.post("/chat", json={"message": "hi", "session_id": "web-1"})
    assert r.status_code == 200
    body = r.json()
    assert body["reply"] == render_entry(render_patient_menu([]))
    assert body["flow_state"] == "identify_patient"

    r = client.post("/chat", json={"message": "1", "session_id": "web-1", "message_id": "a"})
    assert r.json()["flow_state"] == "identify_name"
    r = client.post("/chat", json={"message": "1", "session_id": "web-1", "message_id": "a"})
    assert r.json()["replayed"] is True

    r = client.post("/chat", json={"message": "help", "session_id": "web-1"})
    assert r.json()["command"] == "help"


def test_chat_requires_session_id(client):
    r = client.post("/chat", json={"message": "hi", "session_id": "  "})
    assert r.status_code == 400
    assert r.json()["code"] == "400"


def test_whatsapp_webhook_returns_twiml(client):
    r = client.post("/whatsapp", data={"From": "whatsapp:+27820000001", "Body": "hi", "MessageSid": "SM1"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/xml")
    assert r.text.startswith('<?xml version="1.0" encoding="UTF-8"?><Response><Message>')
    assert r.text.endswith("</Message></Response>")
    assert "Welcome" in r.text


def test_record_and_pdf(client):
    assert client.get("/sessions/nobody/record").status_code == 404
    client.post("/chat", json={"message": "hi", "session_id": "+27820000002"})
    client.post("/chat", json={"message": "1", "session_id": "+27820000002"})
    client.post("/chat", json={"message": "Jane Doe", "session_id": "+27820000002"})

    r = client.get("/sessions/+27820000002/record")
    assert r.status_code == 200
    assert r.json()["patient"]["name"] == "Jane Doe"
    assert r.json()["status"] == "in_progress"

    r = client.get("/sessions/+27820000002/summary.pdf")
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert r.content.startswith(b"%PDF")


def test_unavailable_service_still_replies():
    app.dependency_overrides[get_service] = lambda: None
    try:
        c = TestClient(app)
        r = c.post("/chat", json={"message": "hi", "session_id": "x"})
        assert r.status_code == 200
        assert r.json()["reply"] == P.UNAVAILABLE
        assert c.get("/sessions/x/record").status_code == 503
    finally:
        app.dependency_overrides.clear()


class SlowService(IntakeService):
    delay = 0.0

    def handle_turn(self, sender, raw_text, message_id=None, deadline=None):
        time.sleep(self.delay)
        return super().handle_turn(sender, raw_text, message_id, deadline)


@pytest.mark.parametrize("grace", [2.0, 0.05])
def test_slow_turn_gets_busy_reply_and_stores_nothing(monkeypatch, catalog, grace):
    store = InMemorySessionStore()
    svc = SlowService(store, tree=catalog, items=catalog)
    svc.handle_turn("slow", "hi")
    svc.handle_turn("slow", "1")
    assert store.get("slow")["flow_state"] == "identify_name"

    svc.delay = 0.3
    monkeypatch.setattr(cfg, "TURN_TIMEOUT_SECONDS", 0.05)
    monkeypatch.setattr(cfg, "TURN_GRACE_SECONDS", grace)
    app.dependency_overrides[get_service] = lambda: svc
    try:
        r = TestClient(app).post("/chat", json={"message": "Jane", "session_id": "slow"})
        assert r.json()["reply"] == P.BUSY
    finally:
        app.dependency_overrides.clear()

    # let an abandoned worker thread run to completion
    time.sleep(0.6)
    doc = store.get("slow")
    assert doc["flow_state"] == "identify_name"
    assert doc["collected"]["patient_name"] == ""


def test_access_log_line_carries_turn_fields(client, caplog):
    with caplog.at_level(logging.INFO, logger="intake.access"):
        client.post("/chat", json={"message": "hi", "session_id": "log-1"})
    lines = [json.loads(r.getMessage()) for r in caplog.records if r.name == "intake.access"]
    assert lines
    entry = lines[-1]
    assert entry["method"] == "POST"
    assert entry["path"] == "/chat"
    assert entry["status"] == 200
    assert entry["flow_state"] == "identify_patient"
    assert entry["replayed"] is False
    assert "latency_ms" in entry


def test_service_store_follows_settings(monkeypatch, tmp_path):
    db = tmp_path / "sessions.sqlite3"
    monkeypatch.setattr(server, "settings", cfg.Settings(ENABLE_PERSISTENT_STORE=True, STORE_DB_PATH=str(db)))
    server._build_service.cache_clear()
    try:
        svc = server._build_service()
        svc.handle_turn("+27820000003", "hi")
        assert db.exists()
        assert svc.load_record("+27820000003").flow_state == "identify_patient"
    finally:
        server._build_service.cache_clear()
