"""
Session store boundary for the CAT engine.

Saves are guarded by an optimistic version check: a caller passes the
version it loaded, and the save is rejected with StaleSessionError if
another writer got there first. Loaded sessions are independent copies, so
mutating one never touches stored state until it is saved.
"""

import copy
import logging
import threading
from typing import Dict, List, Optional, Protocol

from haven_cat.core.cat.exceptions import SessionNotFoundError, StaleSessionError
from haven_cat.core.cat.models import TestSession

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    def create(self, session: TestSession) -> TestSession:
        ...

    def load(self, session_id: str) -> Optional[TestSession]:
        ...

    def save(self, session: TestSession, expected_version: int) -> TestSession:
        ...

    def list_session_ids(self, candidate_id: Optional[str] = None) -> List[str]:
        ...


class InMemorySessionStore:
    """Thread-safe, process-local session store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: Dict[str, TestSession] = {}

    def create(self, session: TestSession) -> TestSession:
        """
        Persist a new session.

        Raises:
            ValueError: If a session with the same id already exists.
        """
        with self._lock:
            if session.session_id in self._sessions:
                raise ValueError(f"CAT session {session.session_id} already exists")
            self._sessions[session.session_id] = copy.deepcopy(session)
            return copy.deepcopy(session)

    def load(self, session_id: str) -> Optional[TestSession]:
        """Return a copy of the stored session, or None if unknown."""
        with self._lock:
            stored = self._sessions.get(session_id)
            return copy.deepcopy(stored) if stored is not None else None

    def save(self, session: TestSession, expected_version: int) -> TestSession:
        """
        Replace the stored session if its version still matches.

        The saved copy gets ``expected_version + 1``; the returned session
        carries the new version.

        Raises:
            SessionNotFoundError: If the session was never created.
            StaleSessionError: If the stored version differs from
                expected_version.
        """
        with self._lock:
            stored = self._sessions.get(session.session_id)
            if stored is None:
                raise SessionNotFoundError(session.session_id)
            if stored.version != expected_version:
                logger.warning(
                    f"Rejected stale write for session {session.session_id}: "
                    f"expected version {expected_version}, found {stored.version}"
                )
                raise StaleSessionError(
                    session.session_id, expected_version, stored.version
                )
            saved = copy.deepcopy(session)
            saved.version = expected_version + 1
            self._sessions[session.session_id] = saved
            return copy.deepcopy(saved)

    def list_session_ids(self, candidate_id: Optional[str] = None) -> List[str]:
        """Ids of stored sessions, optionally filtered by candidate."""
        with self._lock:
            return [
                session_id
                for session_id, session in self._sessions.items()
                if candidate_id is None or session.candidate_id == candidate_id
            ]
