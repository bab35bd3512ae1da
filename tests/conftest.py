import os
import sys

import pytest

# Ensure project root is on sys.path for `import intake`, `import api`, etc.
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from intake.catalog import JsonCatalog  # noqa: E402
from intake.service import IntakeService  # noqa: E402
from intake.store import InMemorySessionStore  # noqa: E402

TREE = [
    {
        "id": "head",
        "name": "Head",
        "sort_order": 1,
        "children": [
            {"id": "eye", "name": "Eye", "sort_order": 1},
            {"id": "ear", "name": "Ear", "sort_order": 2},
        ],
    },
    {
        "id": "chest",
        "name": "Chest",
        "sort_order": 2,
        "children": [{"id": "chest_front", "name": "Front of the chest"}],
    },
    {"id": "abdomen", "name": "Abdomen", "sort_order": 3},
]

SYMPTOMS = {
    "chest_front": [
        {"id": "headache", "name": "Headache"},
        {"id": "cough", "name": "Cough"},
        {"id": "fever", "name": "Fever"},
    ],
    "eye": [
        {"id": "eye_pain", "name": "Eye pain"},
        {"id": "eye_red", "name": "Red eye"},
    ],
    # abdomen deliberately has no list (free-text fallback)
}


@pytest.fixture
def catalog():
    return JsonCatalog(tree=TREE, items_by_context=SYMPTOMS)


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def handed_off():
    return []


@pytest.fixture
def service(store, catalog, handed_off):
    return IntakeService(store, tree=catalog, items=catalog, record_sink=handed_off.append)


class Chat:
    """Drives one conversation through the service, one message per call."""

    def __init__(self, svc, sender="whatsapp:+27820000001"):
        self.svc = svc
        self.sender = sender
        self.last = None

    def say(self, text, message_id=None, deadline=None):
        self.last = self.svc.handle_turn(self.sender, text, message_id, deadline)
        return self.last.reply

    def doc(self):
        doc, _, _ = self.svc.sessions.load(self.last.key)
        return doc


@pytest.fixture
def chat(service):
    return Chat(service)


@pytest.fixture
def at_location(chat):
    """Conversation that has added its first patient and been asked for the complaint location."""
    chat.say("hi")
    chat.say("1")  # add a new patient
    chat.say("Jane Doe")
    chat.say("1980")
    chat.say("2")
    chat.say("A1234567")
    return chat
