# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from authgate.auth.passwords import burn_verification, hash_password, verify_password
from authgate.errors import DuplicateUser, InvalidCredentials, StoreUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    username: str
    profile: Mapping[str, Any] = field(default_factory=dict)

    def public(self) -> Dict[str, Any]:
        return {**dict(self.profile), "username": self.username}


@dataclass(frozen=True)
class CredentialRecord:
    username: str
    password_hash: str
    active: bool = True
    profile: Mapping[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"CredentialRecord(username={self.username!r}, active={self.active!r})"

    def principal(self) -> Principal:
        return Principal(username=self.username, profile=dict(self.profile))


def _clean_username(username: str) -> str:
    return (username or "").strip()


class CredentialStore:
    """Username -> argon2 hash, kept in memory.

    Subclasses change where records live by overriding ``_snapshot`` and
    ``_commit``. Every mutation builds a new mapping and commits it whole, so a
    failed commit leaves the previous state untouched.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: Dict[str, CredentialRecord] = {}

    def _snapshot(self) -> Dict[str, CredentialRecord]:
        return self._records

    def _commit(self, records: Dict[str, CredentialRecord]) -> None:
        self._records = records

    def register(
        self,
        username: str,
        password: str,
        *,
        active: bool = True,
        profile: Optional[Mapping[str, Any]] = None,
    ) -> None:
        u = _clean_username(username)
        if not u:
            raise ValueError("Username vacío")
        # Hash outside the lock; argon2 is the slow part.
        record = CredentialRecord(
            username=u,
            password_hash=hash_password(password),
            active=active,
            profile=dict(profile or {}),
        )
        with self._lock:
            current = self._snapshot()
            if u in current:
                raise DuplicateUser(u)
            self._commit({**current, u: record})
        logger.info("Registered user %s", u)

    def verify(self, username: str, password: str) -> Principal:
        u = _clean_username(username)
        with self._lock:
            record = self._snapshot().get(u) if u else None
        if record is None or not password or not record.password_hash:
            burn_verification(password)
            raise InvalidCredentials()
        ok = verify_password(record.password_hash, password)
        if not ok or not record.active:
            raise InvalidCredentials()
        return record.principal()

    def get(self, username: str) -> Optional[Principal]:
        u = _clean_username(username)
        if not u:
            return None
        with self._lock:
            record = self._snapshot().get(u)
        if record is None or not record.active:
            return None
        return record.principal()

    def set_password(self, username: str, password: str) -> None:
        u = _clean_username(username)
        new_hash = hash_password(password)
        with self._lock:
            current = self._snapshot()
            record = current.get(u)
            if record is None:
                raise InvalidCredentials()
            self._commit({**current, u: replace(record, password_hash=new_hash)})
        logger.info("Rotated credentials for %s", u)

    def remove(self, username: str) -> bool:
        u = _clean_username(username)
        with self._lock:
            current = self._snapshot()
            if u not in current:
                return False
            remaining = dict(current)
            del remaining[u]
            self._commit(remaining)
        logger.info("Removed user %s", u)
        return True

    def usernames(self) -> List[str]:
        with self._lock:
            return sorted(self._snapshot())


class YamlCredentialStore(CredentialStore):
    """Credential store persisted to a users.yml file.

    Layout::

        version: 1
        users:
          paul:
            active: true
            password_hash: $argon2id$...
            profile: {}

    The file is re-read whenever its mtime changes, so edits made by
    ``scripts/create_user.py`` are picked up by a running server.
    """

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self.path = Path(path)
        self._cache: Tuple[float, Dict[str, CredentialRecord]] = (-1.0, {})

    def _snapshot(self) -> Dict[str, CredentialRecord]:
        try:
            mtime = self.path.stat().st_mtime if self.path.exists() else 0.0
        except OSError as exc:
            raise StoreUnavailable(f"Cannot stat {self.path}: {exc}") from exc

        cached_mtime, cached_users = self._cache
        if mtime == cached_mtime:
            return cached_users

        users = self._load_users_file()
        self._cache = (mtime, users)
        return users

    def _load_users_file(self) -> Dict[str, CredentialRecord]:
        if not self.path.exists():
            return {}
        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise StoreUnavailable(f"Cannot read {self.path}: {exc}") from exc
        if not isinstance(raw, dict) or not isinstance(raw.get("users") or {}, dict):
            raise StoreUnavailable(f"Malformed users file: {self.path}")

        out: Dict[str, CredentialRecord] = {}
        for uname, udata in (raw.get("users") or {}).items():
            if not isinstance(udata, dict):
                continue
            username = str(uname).strip()
            if not username:
                continue
            profile = udata.get("profile") or {}
            out[username] = CredentialRecord(
                username=username,
                password_hash=str(udata.get("password_hash") or "").strip(),
                active=bool(udata.get("active", True)),
                profile=dict(profile) if isinstance(profile, dict) else {},
            )
        return out

    def _commit(self, records: Dict[str, CredentialRecord]) -> None:
        raw = {
            "version": 1,
            "users": {
                r.username: {
                    "active": r.active,
                    "password_hash": r.password_hash,
                    "profile": dict(r.profile),
                }
                for r in records.values()
            },
        }
        text = yaml.safe_dump(raw, sort_keys=False, allow_unicode=True)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".users-", suffix=".yml", dir=str(self.path.parent))
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp_name, self.path)
            tmp_name = None
            mtime = self.path.stat().st_mtime
        except OSError as exc:
            raise StoreUnavailable(f"Cannot write {self.path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("Could not remove temp file %s", tmp_name)
        self._cache = (mtime, records)
