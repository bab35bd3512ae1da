"""Per-turn value bundle built once for each incoming message."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from intake.errors import TurnExpired
from intake.input_helpers import normalize_key
from intake.session import SessionService
from intake.state import SessionDocument


@dataclass
class TurnContext:
    key: str
    raw_text: str
    doc: SessionDocument
    snapshot: Dict[str, Any] = field(default_factory=dict)  # document as loaded, for the patch diff
    is_new: bool = False
    message_id: Optional[str] = None
    deadline: Optional[float] = None  # time.monotonic() cutoff; None = no limit

    @property
    def text(self) -> str:
        return (self.raw_text or "").strip()

    @property
    def is_redelivery(self) -> bool:
        return bool(self.message_id) and self.message_id == self.doc.last_message_id

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def save(self, sessions: SessionService) -> Dict[str, Any]:
        """Write the document unless the turn has run past its deadline."""
        if self.expired:
            raise TurnExpired(f"deadline passed before write for {self.key}")
        return sessions.save(self.doc, self.snapshot)


def build_context(
    sessions: SessionService,
    sender: str,
    raw_text: str,
    message_id: Optional[str] = None,
    deadline: Optional[float] = None,
) -> TurnContext:
    """Resolve the conversation key and load its document (one store read)."""
    key = normalize_key(sender)
    doc, snapshot, is_new = sessions.load(key)
    return TurnContext(
        key=key,
        raw_text=raw_text or "",
        doc=doc,
        snapshot=snapshot,
        is_new=is_new,
        message_id=message_id or None,
        deadline=deadline,
    )
