#!/usr/bin/env python3
from __future__ import annotations

import os
from getpass import getpass
from pathlib import Path

from authgate.auth.users import YamlCredentialStore
from authgate.config import DEFAULT_USERS_PATH
from authgate.errors import DuplicateUser

USERS_PATH = Path(os.getenv("AUTHGATE_USERS_PATH", str(DEFAULT_USERS_PATH))).resolve()


def main() -> None:
    store = YamlCredentialStore(USERS_PATH)
    existing = store.usernames()
    if existing:
        print("Usuarios: " + ", ".join(existing))

    username = input("Username: ").strip()
    active_in = input("Active? [Y/n]: ").strip().lower()
    active = (active_in != "n")

    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")
    if pw1 != pw2:
        raise SystemExit("Passwords no coinciden")

    try:
        store.register(username, pw1, active=active)
    except DuplicateUser:
        if input(f"{username} ya existe. ¿Cambiar password? [y/N]: ").strip().lower() != "y":
            raise SystemExit("Sin cambios")
        store.set_password(username, pw1)
    except ValueError as exc:
        raise SystemExit(str(exc))
    print(f"OK -> {USERS_PATH}")


if __name__ == "__main__":
    main()
