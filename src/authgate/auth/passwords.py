# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import secrets
from functools import lru_cache

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

_PH = PasswordHasher()


def hash_password(plain: str) -> str:
    if not plain:
        raise ValueError("Password vacío")
    return _PH.hash(plain)


def verify_password(hash_value: str, plain: str) -> bool:
    if not hash_value or not plain:
        return False
    try:
        return _PH.verify(hash_value, plain)
    except VerifyMismatchError:
        return False
    except (VerificationError, InvalidHashError):
        # Corrupt hashes fail fast; pay for a real verification anyway.
        burn_verification(plain)
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return _PH.hash(secrets.token_urlsafe(16))


def burn_verification(plain: str) -> None:
    """Spend one argon2 verification against a throwaway hash.

    Called on the unknown-user path so it costs the same as a wrong password.
    """
    verify_password(_dummy_hash(), plain or "-")
