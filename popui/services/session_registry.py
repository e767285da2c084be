"""
Connection registry for SSE sessions.

Every open ``GET /sse`` stream owns one :class:`Session`. Messages posted to
the message endpoint are routed to a session by id; notifications are
broadcast to all of them.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from ..utils.errors import NoActiveSessionError

logger = logging.getLogger("popui.sessions")

SESSION_ID_FIELD = "sessionId"
SESSION_ID_HEADER = "x-session-id"

MessageHandler = Callable[["Session", Any], Awaitable[None]]


@dataclass
class Session:
    """One open streaming connection."""
    session_id: str
    handler: MessageHandler
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    closed: bool = False

    async def send(self, payload: Dict[str, Any]) -> bool:
        """Queue a payload for the SSE stream. Dropped once the session closed."""
        if self.closed:
            logger.debug(f"Dropping payload for closed session {self.session_id}")
            return False
        await self.queue.put(payload)
        return True

    async def deliver(self, message: Any) -> None:
        await self.handler(self, message)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Wake the stream so it can finish
        self.queue.put_nowait(None)


def resolve_session_candidate(
    body: Any,
    headers: Mapping[str, str],
    query: Mapping[str, str],
) -> Optional[str]:
    """Pick the session id a message asks for.

    Order: body field, then ``X-Session-Id`` header, then query parameter.
    The first non-empty value wins.
    """
    if isinstance(body, dict) and body.get(SESSION_ID_FIELD):
        return str(body[SESSION_ID_FIELD])
    if headers.get(SESSION_ID_HEADER):
        return headers[SESSION_ID_HEADER]
    if query.get(SESSION_ID_FIELD):
        return query[SESSION_ID_FIELD]
    return None


class ConnectionRegistry:
    """
    Owns the live sessions and routes messages to them.

    The session map is only touched under ``_lock``, which is never held
    across an await. Delivery runs outside the lock.
    """

    def __init__(self, *, fallback_enabled: bool = True):
        self.fallback_enabled = fallback_enabled
        self._sessions: Dict[str, Session] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def register(self, handler: MessageHandler) -> Session:
        """Create and store a new session with a collision-free id."""
        with self._lock:
            session_id = str(uuid.uuid4())
            while session_id in self._sessions:
                session_id = str(uuid.uuid4())
            session = Session(session_id=session_id, handler=handler)
            self._sessions[session_id] = session
            count = len(self._sessions)
        logger.info(f"New SSE connection established with session ID: {session_id} ({count} open)")
        return session

    def deregister(self, session_id: str) -> bool:
        """Remove a session. Removing an unknown id is a no-op."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        age = (datetime.now(timezone.utc) - session.created_at).total_seconds()
        logger.info(f"Connection {session_id} closed after {age:.1f}s")
        return True

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def resolve(self, candidate_id: Optional[str]) -> Session:
        with self._lock:
            if not self._sessions:
                raise NoActiveSessionError("No active SSE connections")
            if candidate_id and candidate_id in self._sessions:
                return self._sessions[candidate_id]
            if not self.fallback_enabled:
                raise NoActiveSessionError(
                    f"No active SSE connection for session ID: {candidate_id}"
                )
            first_id, session = next(iter(self._sessions.items()))
            open_count = len(self._sessions)

        if candidate_id:
            logger.warning(f"Unknown session ID {candidate_id}, falling back to {first_id} ({open_count} open)")
        else:
            logger.warning(f"No session ID given, falling back to {first_id} ({open_count} open)")
        return session

    async def route(self, candidate_id: Optional[str], message: Any) -> Session:
        """Resolve the target session and hand it ``message``."""
        session = self.resolve(candidate_id)
        logger.debug(f"Routing message to session {session.session_id}")
        await session.deliver(message)
        return session

    async def broadcast(self, notification: Dict[str, Any]) -> int:
        """Send ``notification`` to every open session. Returns how many got it."""
        with self._lock:
            targets = list(self._sessions.values())
        delivered = 0
        for session in targets:
            if await session.send(notification):
                delivered += 1
        logger.debug(f"Broadcast {notification.get('method')} to {delivered} session(s)")
        return delivered
