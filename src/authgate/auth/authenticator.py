# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from starlette.concurrency import run_in_threadpool

from authgate.auth.sessions import SessionStore
from authgate.auth.users import CredentialStore
from authgate.errors import AuthError, InvalidCredentials, StoreUnavailable

logger = logging.getLogger(__name__)

GENERIC_LOGIN_ERROR = "Invalid username or password"


class Authenticator:
    """Login/logout on top of a credential store and a session store.

    argon2 work is pushed to the thread pool so a login never stalls the
    event loop. ``login`` only returns once the session exists, so a cookie
    built from its result always resolves on the next request.
    """

    def __init__(self, credentials: CredentialStore, sessions: SessionStore) -> None:
        self.credentials = credentials
        self.sessions = sessions

    async def login(self, username: str, password: str) -> str:
        try:
            principal = await run_in_threadpool(self.credentials.verify, username, password)
        except InvalidCredentials:
            logger.info("Login failed for %s", (username or "").strip() or "<empty>")
            raise AuthError(GENERIC_LOGIN_ERROR) from None
        except StoreUnavailable:
            logger.error("Credential store unavailable during login")
            raise
        session_id = self.sessions.create(principal)
        logger.info("Login ok for %s", principal.username)
        return session_id

    async def logout(self, session_id: Optional[str]) -> None:
        try:
            self.sessions.destroy(session_id)
        except Exception:
            logger.exception("Session destroy failed during logout")
            return
        if session_id:
            logger.info("Logged out")

    async def register(
        self,
        username: str,
        password: str,
        *,
        active: bool = True,
        profile: Optional[Mapping[str, Any]] = None,
    ) -> None:
        await run_in_threadpool(
            self.credentials.register, username, password, active=active, profile=profile
        )

    async def change_password(self, username: str, password: str) -> None:
        await run_in_threadpool(self.credentials.set_password, username, password)
        dropped = self.sessions.destroy_user(username.strip())
        logger.info("Dropped %d sessions of %s after password change", dropped, username.strip())

    async def remove_user(self, username: str) -> bool:
        removed = await run_in_threadpool(self.credentials.remove, username)
        self.sessions.destroy_user(username.strip())
        return removed
