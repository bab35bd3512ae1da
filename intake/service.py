"""Turn orchestration: one inbound message in, exactly one reply out.

    load document -> global commands -> flow state machine -> merge-patch write -> reply

Recoverable problems are answered inside the flow. Only collaborator
failures reach this layer; they are logged and answered with a generic
retry message, and nothing is written for that turn. A turn that runs past
its deadline is answered with the "busy" reply and likewise writes nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from intake import prompts as P
from intake.catalog import FlatCatalog, TreeCatalog
from intake.commands import GlobalCommandLayer
from intake.errors import CollaboratorUnavailable, TurnExpired
from intake.export import IntakeRecord, build_record
from intake.flow import FlowStateMachine
from intake.input_helpers import normalize_key
from intake.render import render_entry
from intake.session import SessionService
from intake.store import SessionStore
from intake.turn import TurnContext, build_context

logger = logging.getLogger(__name__)

RecordSink = Callable[[IntakeRecord], None]


def log_record_sink(record: IntakeRecord) -> None:
    logger.info("intake completed for %s: %s", record.conversation_key, record.model_dump_json())


@dataclass
class TurnReply:
    reply: str
    key: str = ""
    flow_state: Optional[str] = None
    command: Optional[str] = None
    replayed: bool = False
    unavailable: bool = False
    timed_out: bool = False


class IntakeService:
    """Stateless between turns; the store is the only memory."""

    def __init__(
        self,
        store: SessionStore,
        tree: TreeCatalog,
        items: FlatCatalog,
        record_sink: Optional[RecordSink] = None,
    ) -> None:
        self.sessions = SessionService(store)
        self.flow = FlowStateMachine(tree, items)
        self.commands = GlobalCommandLayer(self.flow, self.sessions)
        self.record_sink = record_sink or log_record_sink

    def handle_turn(
        self,
        sender: str,
        raw_text: str,
        message_id: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> TurnReply:
        """Answer one message. ``deadline`` is a ``time.monotonic()`` cutoff for the write."""
        try:
            ctx = build_context(self.sessions, sender, raw_text, message_id, deadline)
            return self._run(ctx)
        except TurnExpired as e:
            logger.error("turn abandoned without writing: %s", e)
            return TurnReply(reply=P.BUSY, key=normalize_key(sender), timed_out=True)
        except CollaboratorUnavailable as e:
            logger.error("turn for %s failed, collaborator unavailable: %s", normalize_key(sender), e)
            return TurnReply(reply=P.UNAVAILABLE, key=normalize_key(sender), unavailable=True)

    def _run(self, ctx: TurnContext) -> TurnReply:
        doc = ctx.doc
        if ctx.is_redelivery:
            logger.info("duplicate delivery %s for %s; replaying last reply", ctx.message_id, ctx.key)
            return TurnReply(doc.last_reply, ctx.key, doc.flow_state.value, replayed=True)

        if ctx.is_new:
            # first contact: greet, do not consume the message as an answer
            return self._finish(ctx, render_entry(self.flow.prompt_for(doc)))

        cmd = self.commands.intercept(ctx)
        if cmd is not None:
            return TurnReply(cmd.reply, ctx.key, doc.flow_state.value, command=cmd.command.value)

        result = self.flow.handle(ctx.text, doc)
        reply = self._finish(ctx, result.reply)
        if result.completed:
            self._hand_off(ctx)
        return reply

    def _finish(self, ctx: TurnContext, reply: str) -> TurnReply:
        ctx.doc.last_reply = reply
        ctx.doc.last_message_id = ctx.message_id
        ctx.save(self.sessions)
        return TurnReply(reply, ctx.key, ctx.doc.flow_state.value)

    def _hand_off(self, ctx: TurnContext) -> None:
        record = build_record(ctx.doc)
        try:
            self.record_sink(record)
        except Exception:
            # the document is already stored as completed; the record can be re-read later
            logger.exception("record hand-off failed for %s", ctx.key)

    def load_record(self, sender: str) -> Optional[IntakeRecord]:
        key = normalize_key(sender)
        doc, _snapshot, is_new = self.sessions.load(key)
        if is_new:
            return None
        return build_record(doc)
