"""Global commands recognised in every state, before any flow logic runs.

``restart``, ``end``, ``back`` and ``help`` (literals from config) must be
the whole message, any case. A recognised command is applied, written with
exactly one store write and answered; the flow is skipped for that turn.
Anything else falls through untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import intake.config as cfg
from intake import prompts as P
from intake.flow import FlowStateMachine
from intake.input_helpers import matches_command
from intake.render import render_entry, render_help
from intake.session import SessionService, utc_now
from intake.state import PREDECESSORS, TERMINAL_STATE
from intake.turn import TurnContext

logger = logging.getLogger(__name__)


class Command(str, Enum):
    RESTART = "restart"
    END = "end"
    BACK = "back"
    HELP = "help"


@dataclass
class CommandResult:
    command: Command
    reply: str


def match_command(text: str) -> Optional[Command]:
    if matches_command(text, cfg.RESTART_KEYWORD):
        return Command.RESTART
    if matches_command(text, cfg.END_KEYWORD):
        return Command.END
    if matches_command(text, cfg.BACK_KEYWORD):
        return Command.BACK
    if matches_command(text, cfg.HELP_KEYWORD):
        return Command.HELP
    return None


class GlobalCommandLayer:
    def __init__(self, flow: FlowStateMachine, sessions: SessionService) -> None:
        self.flow = flow
        self.sessions = sessions

    def apply(self, ctx: TurnContext) -> Optional[CommandResult]:
        """Mutate ``ctx.doc`` for a recognised command and return the reply.

        Does not write; see ``intercept``.
        """
        cmd = match_command(ctx.text)
        if cmd is None:
            return None
        doc = ctx.doc

        if cmd is Command.RESTART:
            doc.reset()
            reply = render_entry(self.flow.prompt_for(doc))
        elif cmd is Command.END:
            doc.flow_state = TERMINAL_STATE
            doc.clear_transient()
            doc.ended_at = utc_now()
            reply = P.ENDED.format(restart=cfg.RESTART_KEYWORD)
        elif cmd is Command.BACK:
            prev = PREDECESSORS.get(doc.flow_state)
            if prev is None:
                doc.clear_transient()
                reply = self.flow.prompt_for(doc, P.NOTICE_AT_START)
            else:
                if doc.flow_state is TERMINAL_STATE:
                    doc.completed_at = None
                    doc.ended_at = None
                reply = self.flow.enter(doc, prev).reply
        else:
            reply = render_help(self.flow.prompt_for(doc))

        logger.info("command %s for %s -> %s", cmd.value, ctx.key, doc.flow_state.value)
        return CommandResult(cmd, reply)

    def intercept(self, ctx: TurnContext) -> Optional[CommandResult]:
        """Apply a command and persist it; ``None`` means run the flow instead.

        Raises ``TurnExpired`` (nothing written) once the turn deadline has passed.
        """
        result = self.apply(ctx)
        if result is None:
            return None
        ctx.doc.last_reply = result.reply
        ctx.doc.last_message_id = ctx.message_id
        ctx.save(self.sessions)
        return result
