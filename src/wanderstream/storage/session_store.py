"""Persistence of completed streaming sessions.

A completed session is written twice: under a fixed name holding the most
recent completion, and under a per-session name holding only its data, so
later views can look a session up by id.
"""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from wanderstream.utils.logging import get_logger

logger = get_logger(__name__)

COMPLETED_SESSION_FILE = "completedStreamingSession.json"


def resolve_session_id(session_id: Optional[str], data: Any) -> Optional[str]:
    """Pick the id to persist under.

    Uses ``session_id`` when given, then ``data["session_id"]``, then
    ``data["itinerary_response"]["session_id"]``.
    """
    if session_id:
        return session_id
    if not isinstance(data, dict):
        return None
    if data.get("session_id"):
        return data["session_id"]
    itinerary = data.get("itinerary_response")
    if isinstance(itinerary, dict) and itinerary.get("session_id"):
        return itinerary["session_id"]
    return None


class SessionStore:
    """JSON file store for completed sessions."""

    def __init__(self, directory: Union[str, Path] = Path(".wanderstream")):
        """Initialize the store.

        Args:
            directory: Directory holding the session files. Created on first
                write.
        """
        self.directory = Path(directory)

    def _session_path(self, session_id: str) -> Path:
        safe_id = re.sub(r"[^\w-]", "_", session_id)
        return self.directory / f"session_{safe_id}.json"

    def persist_completed(
        self, session_id: Optional[str], data: Dict[str, Any]
    ) -> Optional[str]:
        """Store a completed session's data.

        Args:
            session_id: Session id, if known.
            data: Wire-shaped session data.

        Returns:
            The id the session was stored under, or None if no id could be
            resolved and nothing was written.
        """
        resolved = resolve_session_id(session_id, data)
        if not resolved:
            logger.warning("Completed session has no session id, not persisting")
            return None

        self.directory.mkdir(parents=True, exist_ok=True)
        completed = {
            "sessionId": resolved,
            "data": data,
            "timestamp": datetime.now().isoformat(),
        }
        (self.directory / COMPLETED_SESSION_FILE).write_text(
            json.dumps(completed, indent=2, default=str), encoding="utf-8"
        )
        self._session_path(resolved).write_text(
            json.dumps(data, indent=2, default=str), encoding="utf-8"
        )

        logger.info(f"Persisted completed session {resolved} to {self.directory}")
        return resolved

    def _read(self, path: Path) -> Optional[Any]:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read {path}: {e}")
            return None

    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Data stored for ``session_id``, or None."""
        return self._read(self._session_path(session_id))

    def get_completed(self) -> Optional[Dict[str, Any]]:
        """The most recently completed session record, or None."""
        return self._read(self.directory / COMPLETED_SESSION_FILE)

    def clear(self) -> None:
        """Remove every stored session file."""
        if not self.directory.exists():
            return
        removed = 0
        for path in self.directory.glob("session_*.json"):
            path.unlink()
            removed += 1
        completed = self.directory / COMPLETED_SESSION_FILE
        if completed.exists():
            completed.unlink()
            removed += 1
        logger.debug(f"Cleared {removed} session files from {self.directory}")
