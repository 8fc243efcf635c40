# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import FastAPI, HTTPException, Request, status

from authgate.auth.cookies import SessionCookie
from authgate.auth.sessions import SessionStore
from authgate.auth.users import Principal
from authgate.errors import StoreUnavailable

logger = logging.getLogger(__name__)


def install_session_middleware(app: FastAPI, sessions: SessionStore, cookie: SessionCookie) -> None:
    """Attach ``request.state.principal`` / ``request.state.session_id`` to every request.

    ``session_id`` is whatever the signed cookie carried, resolved or not, so
    logout can always destroy it. A store failure is kept on
    ``request.state.store_error`` and only surfaces on protected routes.
    """

    @app.middleware("http")
    async def _session_middleware(request: Request, call_next):
        request.state.principal = None
        request.state.store_error = None
        session_id = cookie.decode(request.cookies.get(cookie.name, ""))
        request.state.session_id = session_id
        if session_id:
            try:
                request.state.principal = sessions.resolve(session_id)
            except StoreUnavailable as exc:
                logger.exception("Store unavailable while resolving session")
                request.state.store_error = exc
        return await call_next(request)


def current_principal_optional(request: Request) -> Optional[Principal]:
    return getattr(request.state, "principal", None)


def _login_location(request: Request) -> str:
    next_url = str(request.url.path)
    if request.url.query:
        next_url += "?" + request.url.query
    login_url = request.app.state.settings.login_url
    return f"{login_url}?{urlencode({'next': next_url})}"


def ensure_authenticated(request: Request) -> Principal:
    """Gate for protected routes: ``Depends(ensure_authenticated)``.

    Without a principal the handler never runs; the caller gets a redirect to
    the login page or a bare 401, depending on ``AUTHGATE_UNAUTHENTICATED``.
    """
    principal = current_principal_optional(request)
    if principal is not None:
        return principal
    store_error = getattr(request.state, "store_error", None)
    if store_error is not None:
        raise store_error
    if request.app.state.settings.unauthenticated == "401":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    raise HTTPException(status_code=303, headers={"Location": _login_location(request)})


def safe_next(next_url: Optional[str]) -> str:
    """Only local absolute paths are followed after login."""
    n = (next_url or "").strip()
    if not n.startswith("/") or n.startswith("//") or "\\" in n:
        return "/"
    return n
