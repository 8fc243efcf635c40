# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Server-side session table.

The cookie only ever carries the opaque id; the username lives here. A
session is dropped when it sits idle longer than ``idle_timeout``, when it is
older than ``max_age``, or when its principal can no longer be loaded.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from authgate.auth.users import Principal
from authgate.errors import SessionExpired, SessionNotFound

logger = logging.getLogger(__name__)

SESSION_ID_BYTES = 32

PrincipalLoader = Callable[[str], Optional[Principal]]


@dataclass
class Session:
    session_id: str
    username: str
    created_at: float
    last_access: float

    def __repr__(self) -> str:
        return f"Session(username={self.username!r}, created_at={self.created_at!r})"


class SessionStore:
    def __init__(
        self,
        principal_loader: PrincipalLoader,
        *,
        idle_timeout: float = 1800,
        max_age: Optional[float] = None,
        sliding: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._load_principal = principal_loader
        self.idle_timeout = idle_timeout
        self.max_age = max_age
        self.sliding = sliding
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[str, Session] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _expired(self, s: Session, now: float) -> bool:
        if self.idle_timeout and now - s.last_access > self.idle_timeout:
            return True
        if self.max_age and now - s.created_at > self.max_age:
            return True
        return False

    def create(self, principal: Principal) -> str:
        now = self._clock()
        with self._lock:
            sid = secrets.token_urlsafe(SESSION_ID_BYTES)
            while sid in self._sessions:
                sid = secrets.token_urlsafe(SESSION_ID_BYTES)
            self._sessions[sid] = Session(
                session_id=sid,
                username=principal.username,
                created_at=now,
                last_access=now,
            )
        return sid

    def _touch(self, session_id: str) -> Session:
        """Return the live session for ``session_id``, dropping it if expired."""
        now = self._clock()
        with self._lock:
            s = self._sessions.get(session_id)
            if s is None:
                raise SessionNotFound()
            if self._expired(s, now):
                del self._sessions[session_id]
                raise SessionExpired()
            if self.sliding:
                s.last_access = now
            return s

    def resolve(self, session_id: Optional[str]) -> Optional[Principal]:
        if not session_id:
            return None
        try:
            s = self._touch(session_id)
        except SessionExpired:
            logger.debug("Session expired")
            return None
        except SessionNotFound:
            return None

        # Loader may hit disk; never call it under the table lock.
        principal = self._load_principal(s.username)
        if principal is None:
            logger.info("Dropping session of missing or inactive user %s", s.username)
            self.destroy(session_id)
            return None
        return principal

    def destroy(self, session_id: Optional[str]) -> None:
        if not session_id:
            return
        with self._lock:
            self._sessions.pop(session_id, None)

    def destroy_user(self, username: str) -> int:
        with self._lock:
            doomed = [sid for sid, s in self._sessions.items() if s.username == username]
            for sid in doomed:
                del self._sessions[sid]
        return len(doomed)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            doomed = [sid for sid, s in self._sessions.items() if self._expired(s, now)]
            for sid in doomed:
                del self._sessions[sid]
        return len(doomed)

    async def sweep(self, interval: float) -> None:
        """Purge expired sessions every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            purged = self.purge_expired()
            if purged:
                logger.debug("Purged %d expired sessions", purged)
