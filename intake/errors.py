"""Exceptions raised by the intake core and its collaborators."""

from __future__ import annotations


class IntakeError(Exception):
    """Base class for intake errors."""


class CollaboratorUnavailable(IntakeError):
    """An external collaborator (store, catalog) could not serve the turn.

    Not recoverable inside the turn; the service answers with a generic
    retry message and writes nothing.
    """


class StoreUnavailable(CollaboratorUnavailable):
    pass


class CatalogUnavailable(CollaboratorUnavailable):
    pass


class TurnExpired(IntakeError):
    """The per-turn deadline passed before the document was written.

    Nothing is persisted; the transport answers with a "busy, retry" reply.
    """
