import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from authgate.app import create_app
from authgate.auth.sessions import SessionStore
from authgate.auth.users import CredentialStore
from authgate.config import Settings


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(secret_key="test-secret", users_path=tmp_path / "users.yml")


@pytest.fixture()
def credentials() -> CredentialStore:
    """
    In-memory store seeded with:
      - paul / pw1 (active)
      - joy / pw2 (active)
      - ray / pw3 (inactive)
    """
    store = CredentialStore()
    store.register("paul", "pw1")
    store.register("joy", "pw2", profile={"display_name": "Joy"})
    store.register("ray", "pw3", active=False)
    return store


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sessions(credentials, clock) -> SessionStore:
    return SessionStore(credentials.get, idle_timeout=60, max_age=3600, clock=clock)


@pytest.fixture()
def client(settings, credentials, sessions):
    app = create_app(settings, credentials=credentials, sessions=sessions)
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def login(client):
    def _login(username: str, password: str):
        return client.post(
            "/login",
            data={"username": username, "password": password},
            follow_redirects=False,
        )

    return _login
