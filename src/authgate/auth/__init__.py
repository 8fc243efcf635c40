# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication core.

This package provides:
- Password hashing/verification (argon2)
- Credential stores (in memory, or data/users.yml)
- Server-side session store with idle expiry
- Signed session cookies (itsdangerous)
- The Authenticator tying credentials and sessions together
"""
