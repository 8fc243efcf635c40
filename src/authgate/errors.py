# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Exception hierarchy shared by the stores, the authenticator and the app."""

from __future__ import annotations


class AuthgateError(Exception):
    """Base exception for authgate."""


class ConfigError(AuthgateError):
    """Missing or invalid configuration."""


class CredentialError(AuthgateError):
    pass


class DuplicateUser(CredentialError):
    def __init__(self, username: str):
        self.username = username
        super().__init__(f"User already exists: {username}")


class InvalidCredentials(CredentialError):
    """Unknown user and wrong password alike; carries no detail on purpose."""

    def __init__(self):
        super().__init__("Invalid credentials")


class SessionError(AuthgateError):
    pass


class SessionNotFound(SessionError):
    pass


class SessionExpired(SessionError):
    pass


class StoreUnavailable(AuthgateError):
    """The persistence behind a store failed; fatal for the current request."""


class AuthError(AuthgateError):
    """Login failure as seen by callers. Only ever carries the generic message."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)
