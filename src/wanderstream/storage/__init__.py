"""Local persistence of completed streaming sessions."""

from .session_store import SessionStore, resolve_session_id

__all__ = ["SessionStore", "resolve_session_id"]
