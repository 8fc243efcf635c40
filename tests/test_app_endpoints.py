from fastapi.testclient import TestClient

from authgate.app import create_app
from authgate.auth.sessions import SessionStore
from authgate.auth.users import CredentialStore
from authgate.config import Settings
from authgate.errors import StoreUnavailable

COOKIE = "authgate_session"
GENERIC_INFO = "/login?info=Invalid+username+or+password"


def test_login_success_issues_cookie_and_unlocks_routes(client, login):
    r = login("paul", "pw1")
    assert r.status_code == 303
    assert r.headers["location"] == "/"

    set_cookie = r.headers["set-cookie"].lower()
    assert set_cookie.startswith(f"{COOKIE}=")
    assert "httponly" in set_cookie
    assert "path=/" in set_cookie
    assert "samesite=lax" in set_cookie
    assert "secure" not in set_cookie
    assert "paul" not in r.headers["set-cookie"]

    r = client.get("/user")
    assert r.status_code == 200
    assert r.json() == {"user": {"username": "paul"}}

    r = client.get("/private")
    assert r.status_code == 200
    assert "Private" in r.text

    r = client.get("/")
    assert r.status_code == 200
    assert "paul" in r.text


def test_wrong_password_redirects_with_generic_info(client, login):
    r = login("paul", "wrong")
    assert r.status_code == 303
    assert r.headers["location"] == GENERIC_INFO
    assert "set-cookie" not in r.headers

    r = client.get("/private", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/login?next=%2Fprivate"


def test_unknown_user_looks_like_wrong_password(client, login):
    assert login("nobody", "pw1").headers["location"] == GENERIC_INFO
    assert login("ray", "pw3").headers["location"] == GENERIC_INFO
    assert login("", "").headers["location"] == GENERIC_INFO


def test_login_page_shows_info(client):
    r = client.get(GENERIC_INFO)
    assert r.status_code == 200
    assert "Invalid username or password" in r.text
    assert 'name="password"' in r.text


def test_login_page_redirects_when_already_signed_in(client, login):
    login("paul", "pw1")
    r = client.get("/login", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/"


def test_logout_then_replayed_cookie_is_rejected(client, login, sessions):
    login("paul", "pw1")
    old_cookie = client.cookies.get(COOKIE)
    assert old_cookie

    r = client.get("/logout")
    assert r.status_code == 200
    assert "logged out" in r.text
    assert f'{COOKIE}=""' in r.headers["set-cookie"] or "max-age=0" in r.headers["set-cookie"].lower()
    assert len(sessions) == 0

    client.cookies.clear()
    r = client.get("/private", headers={"Cookie": f"{COOKIE}={old_cookie}"}, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"].startswith("/login")


def test_logout_without_session_still_succeeds(client):
    assert client.get("/logout").status_code == 200
    assert client.post("/logout").status_code == 200


def test_next_parameter_is_followed_only_for_local_paths(client):
    r = client.post(
        "/login",
        data={"username": "paul", "password": "pw1", "next": "/private"},
        follow_redirects=False,
    )
    assert r.headers["location"] == "/private"

    client.cookies.clear()
    r = client.post(
        "/login",
        data={"username": "paul", "password": "pw1", "next": "//evil.example/"},
        follow_redirects=False,
    )
    assert r.headers["location"] == "/"


def test_relogin_replaces_previous_session(client, login, sessions):
    login("paul", "pw1")
    first = client.cookies.get(COOKIE)
    login("joy", "pw2")
    assert len(sessions) == 1
    assert client.cookies.get(COOKIE) != first
    assert client.get("/user").json() == {"user": {"display_name": "Joy", "username": "joy"}}


def test_tampered_cookie_is_anonymous(client, login):
    login("paul", "pw1")
    good = client.cookies.get(COOKIE)
    client.cookies.clear()
    r = client.get("/user", headers={"Cookie": f"{COOKIE}={good[:-2]}xx"}, follow_redirects=False)
    assert r.status_code == 303


def test_idle_session_expires(client, login, clock):
    login("paul", "pw1")
    assert client.get("/private").status_code == 200
    clock.advance(61)
    r = client.get("/private", follow_redirects=False)
    assert r.status_code == 303


def test_two_clients_keep_their_own_principal(settings, credentials, sessions):
    app = create_app(settings, credentials=credentials, sessions=sessions)
    with TestClient(app) as a, TestClient(app) as b:
        a.post("/login", data={"username": "paul", "password": "pw1"}, follow_redirects=False)
        b.post("/login", data={"username": "joy", "password": "pw2"}, follow_redirects=False)
        assert a.cookies.get(COOKIE) != b.cookies.get(COOKIE)
        assert a.get("/user").json()["user"]["username"] == "paul"
        assert b.get("/user").json()["user"]["username"] == "joy"


def test_401_policy(tmp_path, credentials):
    settings = Settings(secret_key="test-secret", users_path=tmp_path / "u.yml", unauthenticated="401")
    with TestClient(create_app(settings, credentials=credentials)) as c:
        r = c.get("/user")
        assert r.status_code == 401
        assert r.json() == {"detail": "Not authenticated"}


def test_secure_cookie_flag(tmp_path, credentials):
    settings = Settings(
        secret_key="test-secret",
        users_path=tmp_path / "u.yml",
        cookie_secure=True,
        cookie_samesite="strict",
    )
    with TestClient(create_app(settings, credentials=credentials), base_url="https://testserver") as c:
        r = c.post("/login", data={"username": "paul", "password": "pw1"}, follow_redirects=False)
        set_cookie = r.headers["set-cookie"].lower()
        assert "secure" in set_cookie
        assert "samesite=strict" in set_cookie
        assert c.get("/user").status_code == 200


class FlakyStore(CredentialStore):
    broken = False

    def _snapshot(self):
        if self.broken:
            raise StoreUnavailable("users.yml unreadable")
        return super()._snapshot()


def test_store_unavailable_on_login_is_503(settings):
    store = FlakyStore()
    store.broken = True
    with TestClient(create_app(settings, credentials=store)) as c:
        r = c.post("/login", data={"username": "paul", "password": "pw1"}, follow_redirects=False)
        assert r.status_code == 503
        assert "set-cookie" not in r.headers


def test_store_unavailable_on_session_resolve_is_503(settings):
    store = FlakyStore()
    store.register("paul", "pw1")
    with TestClient(create_app(settings, credentials=store)) as c:
        c.post("/login", data={"username": "paul", "password": "pw1"}, follow_redirects=False)
        store.broken = True
        r = c.get("/private", follow_redirects=False)
        assert r.status_code == 503


def test_logout_works_while_store_is_unavailable(settings):
    store = FlakyStore()
    store.register("paul", "pw1")
    sessions = SessionStore(store.get)
    app = create_app(settings, credentials=store, sessions=sessions)
    with TestClient(app) as c:
        c.post("/login", data={"username": "paul", "password": "pw1"}, follow_redirects=False)
        old_cookie = c.cookies.get(COOKIE)
        store.broken = True

        r = c.get("/logout")
        assert r.status_code == 200
        assert "max-age=0" in r.headers["set-cookie"].lower()
        assert len(sessions) == 0

        store.broken = False
        c.cookies.clear()
        r = c.get("/user", headers={"Cookie": f"{COOKIE}={old_cookie}"}, follow_redirects=False)
        assert r.status_code == 303


def test_yaml_backed_app(settings):
    from authgate.auth.users import YamlCredentialStore

    YamlCredentialStore(settings.users_path).register("paul", "pw1")
    with TestClient(create_app(settings)) as c:
        r = c.post("/login", data={"username": "paul", "password": "pw1"}, follow_redirects=False)
        assert r.status_code == 303
        assert c.get("/user").json() == {"user": {"username": "paul"}}
