"""
Session Registry - In-memory record of specialist sessions.

Sessions are kept most-recent-first and never deleted; ending one only
moves it from the active view to the history view.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..models.session import Session

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 40
SUMMARY_MAX_LENGTH = 50
DEFAULT_TITLE = "New Conversation"
ENDED_SUMMARY = "Session ended"


def derive_title(query: str) -> str:
    """Session title from the first user query."""
    if not query:
        return DEFAULT_TITLE
    if len(query) > TITLE_MAX_LENGTH:
        return query[:TITLE_MAX_LENGTH] + "..."
    return query


class SessionRegistry:
    """Keeps every session opened in this process, keyed by id."""

    def __init__(self):
        self._sessions: List[Session] = []
        self._by_id: Dict[str, Session] = {}
        self.current_session_id: Optional[str] = None

    @property
    def sessions(self) -> List[Session]:
        return list(self._sessions)

    def get(self, session_id: str) -> Optional[Session]:
        return self._by_id.get(session_id)

    def active_sessions(self) -> List[Session]:
        return [s for s in self._sessions if s.is_active]

    def history(self) -> List[Session]:
        return [s for s in self._sessions if not s.is_active]

    def _new_id(self) -> str:
        session_id = f"sess-{int(time.time() * 1000)}"
        suffix = 1
        while session_id in self._by_id:
            session_id = f"sess-{int(time.time() * 1000)}-{suffix}"
            suffix += 1
        return session_id

    def open_session(self, agent_id: str, first_query: str,
                     last_message: str = "") -> Session:
        """Create an active session and make it the current one."""
        session = Session(
            id=self._new_id(),
            agent_id=agent_id,
            title=derive_title(first_query),
            last_message=last_message,
            timestamp=datetime.now(timezone.utc),
            is_active=True,
        )
        self._sessions.insert(0, session)
        self._by_id[session.id] = session
        self.current_session_id = session.id
        logger.info(f"Session opened: id={session.id}, agent={agent_id}, title={session.title!r}")
        return session

    def record_reply(self, session_id: str, reply_text: str) -> None:
        """Update the rolling summary with the start of the latest reply."""
        session = self._by_id.get(session_id)
        if session is None:
            return
        session.last_message = reply_text[:SUMMARY_MAX_LENGTH] + "..."

    def end_session(self, session_id: Optional[str]) -> bool:
        """
        Mark a session inactive. Idempotent.

        Returns:
            True if the session was active and is now ended
        """
        if session_id == self.current_session_id:
            self.current_session_id = None

        session = self._by_id.get(session_id) if session_id else None
        if session is None or not session.is_active:
            return False

        session.is_active = False
        session.last_message = ENDED_SUMMARY
        logger.info(f"Session ended: id={session_id}")
        return True
