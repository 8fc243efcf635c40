# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from authgate.errors import ConfigError

# Anchor the default users.yml path to the project root (works well with editable installs).
BASE_DIR = Path(__file__).resolve().parents[2]
DEFAULT_USERS_PATH = BASE_DIR / "data" / "users.yml"

_TRUTHY = {"1", "true", "yes", "y"}
_SAMESITE = {"lax", "strict", "none"}
_UNAUTHENTICATED = {"redirect", "401"}


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def _int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} debe ser un entero (recibido {raw!r})") from None


@dataclass(frozen=True)
class Settings:
    secret_key: str
    cookie_name: str = "authgate_session"
    cookie_secure: bool = False
    cookie_samesite: str = "lax"
    cookie_path: str = "/"
    session_salt: str = "authgate.session.v1"
    session_max_age: int = 28800  # 8 hours
    session_idle_timeout: int = 1800
    session_sliding: bool = True
    session_sweep_interval: int = 60
    users_path: Path = field(default=DEFAULT_USERS_PATH)
    unauthenticated: str = "redirect"
    login_url: str = "/login"

    def __post_init__(self) -> None:
        if not self.secret_key:
            raise ConfigError("Falta SECRET_KEY (o AUTHGATE_SECRET_KEY) en entorno")
        if self.cookie_samesite not in _SAMESITE:
            raise ConfigError(f"cookie_samesite inválido: {self.cookie_samesite!r}")
        if self.cookie_samesite == "none" and not self.cookie_secure:
            raise ConfigError("SameSite=None requiere AUTHGATE_COOKIE_SECURE=true")
        if self.unauthenticated not in _UNAUTHENTICATED:
            raise ConfigError(f"AUTHGATE_UNAUTHENTICATED inválido: {self.unauthenticated!r}")
        if min(self.session_max_age, self.session_idle_timeout, self.session_sweep_interval) <= 0:
            raise ConfigError("Los tiempos de sesión deben ser positivos")

    @classmethod
    def from_env(cls) -> "Settings":
        secret = os.getenv("SECRET_KEY") or os.getenv("AUTHGATE_SECRET_KEY") or ""
        return cls(
            secret_key=secret,
            cookie_name=os.getenv("AUTHGATE_COOKIE_NAME", "authgate_session"),
            cookie_secure=_flag("AUTHGATE_COOKIE_SECURE", "false"),
            cookie_samesite=os.getenv("AUTHGATE_COOKIE_SAMESITE", "lax").strip().lower(),
            cookie_path=os.getenv("AUTHGATE_COOKIE_PATH", "/"),
            session_salt=os.getenv("AUTHGATE_SESSION_SALT", "authgate.session.v1"),
            session_max_age=_int("AUTHGATE_SESSION_MAX_AGE", "28800"),
            session_idle_timeout=_int("AUTHGATE_SESSION_IDLE_TIMEOUT", "1800"),
            session_sliding=_flag("AUTHGATE_SESSION_SLIDING", "true"),
            session_sweep_interval=_int("AUTHGATE_SESSION_SWEEP_INTERVAL", "60"),
            users_path=Path(os.getenv("AUTHGATE_USERS_PATH", str(DEFAULT_USERS_PATH))).resolve(),
            unauthenticated=os.getenv("AUTHGATE_UNAUTHENTICATED", "redirect").strip().lower(),
        )
