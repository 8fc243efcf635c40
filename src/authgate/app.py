# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

from fastapi import Depends, FastAPI, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from authgate.auth.authenticator import Authenticator
from authgate.auth.cookies import SessionCookie
from authgate.auth.sessions import SessionStore
from authgate.auth.users import CredentialStore, Principal, YamlCredentialStore
from authgate.config import Settings
from authgate.errors import AuthError, StoreUnavailable
from authgate.guard import (
    current_principal_optional,
    ensure_authenticated,
    install_session_middleware,
    safe_next,
)

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


def _render(request: Request, template_name: str, ctx: Optional[dict] = None):
    base_ctx = {"current_user": current_principal_optional(request)}
    return templates.TemplateResponse(request, template_name, {**base_ctx, **(ctx or {})})


def create_app(
    settings: Optional[Settings] = None,
    *,
    credentials: Optional[CredentialStore] = None,
    sessions: Optional[SessionStore] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    credentials = credentials if credentials is not None else YamlCredentialStore(settings.users_path)
    if sessions is None:
        sessions = SessionStore(
            credentials.get,
            idle_timeout=settings.session_idle_timeout,
            max_age=settings.session_max_age,
            sliding=settings.session_sliding,
        )
    cookie = SessionCookie(settings)
    auth = Authenticator(credentials, sessions)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper = asyncio.create_task(sessions.sweep(settings.session_sweep_interval))
        try:
            yield
        finally:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.auth = auth
    app.state.cookie = cookie

    install_session_middleware(app, sessions, cookie)

    @app.exception_handler(StoreUnavailable)
    async def _store_unavailable(request: Request, exc: StoreUnavailable):
        logger.error("Store unavailable on %s: %s", request.url.path, exc)
        return JSONResponse({"detail": "Service unavailable"}, status_code=503)

    # ------------------ Routes ------------------

    @app.get("/login", response_class=HTMLResponse)
    def login_get(request: Request, next: str = "/", info: str = ""):
        if current_principal_optional(request):
            return RedirectResponse(url=safe_next(next), status_code=303)
        return _render(request, "login.html", {"next": safe_next(next), "info": info})

    @app.post("/login")
    async def login_post(
        request: Request,
        username: str = Form(""),
        password: str = Form(""),
        next: str = Form("/"),
    ):
        try:
            session_id = await auth.login(username, password)
        except AuthError as exc:
            return RedirectResponse(
                url=f"{settings.login_url}?{urlencode({'info': exc.message})}",
                status_code=303,
            )
        # Drop whatever session the client already carried.
        await auth.logout(request.state.session_id)
        resp = RedirectResponse(url=safe_next(next), status_code=303)
        cookie.attach(resp, session_id)
        return resp

    async def _logout(request: Request):
        session_id = request.state.session_id
        request.state.principal = None
        request.state.session_id = None
        resp = _render(request, "logout.html")
        # Destroy finishes before the response is returned; the cookie is
        # cleared even if it fails.
        try:
            await auth.logout(session_id)
        finally:
            cookie.clear(resp)
        return resp

    @app.get("/logout", response_class=HTMLResponse)
    async def logout_get(request: Request):
        return await _logout(request)

    @app.post("/logout", response_class=HTMLResponse)
    async def logout_post(request: Request):
        return await _logout(request)

    @app.get("/user")
    def user(principal: Principal = Depends(ensure_authenticated)):
        return {"user": principal.public()}

    @app.get("/", response_class=HTMLResponse)
    def home(request: Request, principal: Principal = Depends(ensure_authenticated)):
        return _render(request, "index.html", {"user": principal})

    @app.get("/private", response_class=HTMLResponse)
    def private(request: Request, principal: Principal = Depends(ensure_authenticated)):
        return _render(request, "private.html", {"user": principal})

    return app
