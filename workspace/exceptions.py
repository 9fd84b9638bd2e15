"""
Workspace exception hierarchy.

Raised only by the document/session layer; the parsing pipeline reports
problems as diagnostics and the engine as step outcomes.
"""
from typing import Optional


class StdlError(Exception):
    """Base exception for workspace errors."""


class DocumentNotFoundError(StdlError):
    """No document is open under the given identifier."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"Document {document_id} not found")


class SessionNotFoundError(StdlError):
    """Debug session does not exist or has expired."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class SessionCorruptedError(StdlError):
    """Session's current state no longer exists in the model; reset required."""

    def __init__(self, session_id: str, state: Optional[str] = None) -> None:
        self.session_id = session_id
        self.state = state
        super().__init__(f"Session {session_id} is corrupted (state {state!r} not in model), reset required")


class ModelUnavailableError(StdlError):
    """Document could not be turned into an executable state machine."""

    def __init__(self, document_id: str, error_count: int = 0) -> None:
        self.document_id = document_id
        self.error_count = error_count
        super().__init__(f"Model unavailable for document {document_id} ({error_count} errors)")
