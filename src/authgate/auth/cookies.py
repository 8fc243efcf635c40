# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer
from starlette.responses import Response

from authgate.config import Settings


class SessionCookie:
    """Signs session ids into the cookie value and sets/clears the cookie."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.name = settings.cookie_name
        self._serializer = URLSafeTimedSerializer(
            secret_key=settings.secret_key, salt=settings.session_salt
        )

    def encode(self, session_id: str) -> str:
        return self._serializer.dumps({"sid": session_id})

    def decode(self, token: str) -> Optional[str]:
        if not token:
            return None
        try:
            data = self._serializer.loads(token, max_age=self.settings.session_max_age)
        except (BadSignature, BadTimeSignature):
            return None
        sid = (data or {}).get("sid") if isinstance(data, dict) else None
        sid = str(sid or "").strip()
        return sid or None

    def attributes(self) -> dict:
        return {
            "httponly": True,
            "samesite": self.settings.cookie_samesite,
            "secure": self.settings.cookie_secure,
            "path": self.settings.cookie_path,
        }

    def attach(self, response: Response, session_id: str) -> None:
        response.set_cookie(
            self.name,
            self.encode(session_id),
            max_age=self.settings.session_max_age,
            **self.attributes(),
        )

    def clear(self, response: Response) -> None:
        response.delete_cookie(self.name, **self.attributes())
