"""Tests for the admin gate, session tokens and the /api/auth-* routes."""

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient
from starlette.datastructures import Headers

from shared.auth import authorize, parse_cookies
from shared.config import get_settings
from shared.errors import ConfigurationError, Forbidden, InvalidToken, Unauthenticated
from shared.tokens import issue_session_token, verify_session_token
from tests.conftest import IMPORT_SECRET, auth_headers, import_headers, make_token

VALID_VENUE = {"destinationSlug": "ahangama", "name": "Sunset Cafe", "slug": "sunset-cafe"}

# Every protected endpoint: (method, path, json body)
PROTECTED = [
    ("POST", "/api/venues-create", VALID_VENUE),
    ("PATCH", "/api/venues-update", {"id": "sunset-cafe", "status": "inactive"}),
    ("DELETE", "/api/venues-delete?id=sunset-cafe", None),
    ("GET", "/api/venues-list", None),
    ("POST", "/api/s3-presign", {"id": "sunset-cafe", "kind": "logo"}),
]


def _call(client: TestClient, method: str, path: str, body, headers=None):
    return client.request(method, path, json=body, headers=headers or {})


# ── Cookie parsing ──────────────────────────────────────────────────────────────

class TestParseCookies:
    def test_splits_on_first_equals_and_trims(self):
        cookies = parse_cookies(" a=1 ; b = x=y ;c=")
        assert cookies["a"] == "1"
        assert cookies["b"] == "x=y"

    def test_url_decodes_values(self):
        assert parse_cookies("admin_session=abc%2Edef%3D")["admin_session"] == "abc.def="

    def test_ignores_empty_segments(self):
        assert parse_cookies(";;  ;admin_session=tok;") == {"admin_session": "tok"}

    def test_empty_header(self):
        assert parse_cookies("") == {}


# ── Session token codec ─────────────────────────────────────────────────────────

class TestSessionTokens:
    def test_issue_then_verify(self):
        settings = get_settings()
        token = issue_session_token("Admin@Example.com", settings, name="Ada", picture="p.png")
        claims = verify_session_token(token, settings)
        assert claims["email"] == "admin@example.com"
        assert claims["name"] == "Ada"
        assert claims["picture"] == "p.png"
        assert claims["exp"] - claims["iat"] == 7 * 24 * 60 * 60

    def test_expired_token_is_invalid(self):
        with pytest.raises(InvalidToken):
            verify_session_token(make_token(expired=True), get_settings())

    def test_wrong_secret_is_invalid(self):
        token = make_token(secret="some-other-secret-entirely-0000")
        with pytest.raises(InvalidToken):
            verify_session_token(token, get_settings())

    def test_garbage_is_invalid(self):
        with pytest.raises(InvalidToken):
            verify_session_token("not-a-jwt", get_settings())

    def test_missing_secret_is_configuration_error(self):
        settings = replace(get_settings(), jwt_secret="")
        with pytest.raises(ConfigurationError):
            issue_session_token("admin@example.com", settings)
        with pytest.raises(ConfigurationError):
            verify_session_token(make_token(), settings)


# ── authorize() ─────────────────────────────────────────────────────────────────

class TestAuthorize:
    def test_valid_cookie_returns_payload(self):
        identity = authorize(Headers(auth_headers()), get_settings())
        assert identity["email"] == "admin@example.com"
        assert identity["name"] == "Test Admin"
        assert "exp" in identity

    def test_allow_list_is_case_insensitive(self):
        identity = authorize(Headers(auth_headers("OPS@example.COM")), get_settings())
        assert identity["email"] == "OPS@example.COM"

    def test_no_cookie_is_unauthenticated(self):
        with pytest.raises(Unauthenticated):
            authorize(Headers({}), get_settings())

    def test_other_cookies_only_is_unauthenticated(self):
        with pytest.raises(Unauthenticated):
            authorize(Headers({"Cookie": "theme=dark"}), get_settings())

    def test_bad_token_is_unauthenticated(self):
        with pytest.raises(Unauthenticated):
            authorize(Headers({"Cookie": "admin_session=junk"}), get_settings())

    def test_email_not_allowed_is_forbidden(self):
        with pytest.raises(Forbidden):
            authorize(Headers(auth_headers("intruder@example.com")), get_settings())

    def test_token_without_email_is_forbidden(self):
        with pytest.raises(Forbidden):
            authorize(Headers(auth_headers("")), get_settings())

    def test_import_secret_returns_system_identity(self):
        assert authorize(Headers(import_headers()), get_settings()) == {"email": "import@system"}

    def test_import_header_lookup_is_case_insensitive(self):
        headers = Headers({"X-Admin-Import-Secret": IMPORT_SECRET})
        assert authorize(headers, get_settings())["email"] == "import@system"

    def test_wrong_import_secret_is_forbidden_even_with_valid_cookie(self):
        headers = Headers({**import_headers("wrong"), **auth_headers()})
        with pytest.raises(Forbidden):
            authorize(headers, get_settings())

    def test_import_secret_ignored_when_not_configured(self):
        settings = replace(get_settings(), admin_import_secret="")
        with pytest.raises(Unauthenticated):
            authorize(Headers(import_headers()), settings)
        # ...and cookie auth still works alongside the stray header
        headers = Headers({**import_headers(), **auth_headers()})
        assert authorize(headers, settings)["email"] == "admin@example.com"

    def test_allow_list_comes_from_settings(self):
        settings = replace(get_settings(), admin_emails=frozenset({"new@example.com"}))
        with pytest.raises(Forbidden):
            authorize(Headers(auth_headers()), settings)
        assert authorize(Headers(auth_headers("new@example.com")), settings)


# ── Gate on every protected endpoint ────────────────────────────────────────────

@pytest.mark.parametrize("method,path,body", PROTECTED)
class TestProtectedEndpoints:
    def test_no_credentials_returns_401(self, client: TestClient, method, path, body):
        r = _call(client, method, path, body)
        assert r.status_code == 401
        assert r.json() == {"ok": False, "error": "UNAUTHENTICATED"}

    def test_malformed_body_without_credentials_returns_401(
        self, client: TestClient, method, path, body
    ):
        r = client.request(
            method, path, content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert r.status_code == 401
        assert r.json() == {"ok": False, "error": "UNAUTHENTICATED"}

    def test_expired_session_returns_401(self, client: TestClient, method, path, body):
        headers = {"Cookie": f"admin_session={make_token(expired=True)}"}
        assert _call(client, method, path, body, headers).status_code == 401

    def test_not_allow_listed_returns_403(self, client: TestClient, method, path, body):
        r = _call(client, method, path, body, auth_headers("hacker@evil.com"))
        assert r.status_code == 403
        assert r.json()["error"] == "FORBIDDEN"

    def test_malformed_body_not_allow_listed_returns_403(
        self, client: TestClient, method, path, body
    ):
        headers = {**auth_headers("hacker@evil.com"), "Content-Type": "application/json"}
        r = client.request(method, path, content=b"{not json", headers=headers)
        assert r.status_code == 403

    def test_wrong_import_secret_returns_403_despite_cookie(
        self, client: TestClient, method, path, body
    ):
        headers = {**import_headers("nope"), **auth_headers()}
        assert _call(client, method, path, body, headers).status_code == 403


class TestMachineAccess:
    def test_import_secret_without_cookie_succeeds(self, client: TestClient):
        r = client.post("/api/venues-create", json=VALID_VENUE, headers=import_headers())
        assert r.status_code == 200
        r = client.get("/api/venues-list", headers=import_headers())
        assert r.status_code == 200
        assert [v["id"] for v in r.json()["venues"]] == ["sunset-cafe"]

    def test_import_secret_wins_over_bad_cookie(self, client: TestClient):
        headers = {**import_headers(), "Cookie": "admin_session=garbage"}
        r = client.post("/api/venues-create", json=VALID_VENUE, headers=headers)
        assert r.status_code == 200


class TestConfigurationErrors:
    def test_missing_jwt_secret_is_500_not_401(self, client: TestClient, override_settings):
        override_settings(jwt_secret="")
        r = client.get("/api/venues-list", headers=auth_headers())
        assert r.status_code == 500
        assert "JWT_SECRET" in r.json()["error"]


# ── /api/auth-google ────────────────────────────────────────────────────────────

GOOGLE_CLAIMS = {
    "email": "Admin@Example.com",
    "name": "Ada Admin",
    "picture": "https://example.com/ada.png",
}


@pytest.fixture()
def google_ok(monkeypatch):
    calls = []

    def fake_verify(token, client_id):
        calls.append((token, client_id))
        return dict(GOOGLE_CLAIMS)

    monkeypatch.setattr("admin.routes.auth.verify_google_id_token", fake_verify)
    return calls


class TestGoogleExchange:
    def test_sets_session_cookie(self, client: TestClient, google_ok):
        r = client.post("/api/auth-google", json={"idToken": "google-id-token"})
        assert r.status_code == 200
        assert r.json() == {"ok": True}
        assert google_ok == [("google-id-token", "test-client.apps.googleusercontent.com")]

        cookie = r.headers["set-cookie"]
        assert cookie.startswith("admin_session=")
        assert "HttpOnly" in cookie
        assert "Max-Age=604800" in cookie
        assert "Path=/" in cookie
        assert "samesite=lax" in cookie.lower()
        assert "Secure" not in cookie

    def test_cookie_is_secure_in_production(self, client: TestClient, google_ok, override_settings):
        override_settings(env="production")
        r = client.post("/api/auth-google", json={"idToken": "google-id-token"})
        assert "Secure" in r.headers["set-cookie"]

    def test_issued_session_passes_the_gate(self, client: TestClient, google_ok):
        r = client.post("/api/auth-google", json={"idToken": "google-id-token"})
        token = r.cookies["admin_session"]
        claims = verify_session_token(token, get_settings())
        assert claims["email"] == "admin@example.com"
        assert claims["name"] == "Ada Admin"

        r = client.get("/api/venues-list", headers={"Cookie": f"admin_session={token}"})
        assert r.status_code == 200

    def test_missing_id_token_returns_400(self, client: TestClient, google_ok):
        r = client.post("/api/auth-google", json={})
        assert r.status_code == 400
        assert r.json()["error"] == "Missing idToken"

    def test_invalid_google_token_returns_401(self, client: TestClient, monkeypatch):
        def reject(token, client_id):
            raise ValueError("Wrong recipient")

        monkeypatch.setattr("admin.routes.auth.verify_google_id_token", reject)
        r = client.post("/api/auth-google", json={"idToken": "forged"})
        assert r.status_code == 401
        assert r.json()["error"] == "Invalid Google token"
        assert "set-cookie" not in r.headers

    def test_not_allow_listed_returns_403(self, client: TestClient, monkeypatch):
        monkeypatch.setattr(
            "admin.routes.auth.verify_google_id_token",
            lambda token, client_id: {"email": "stranger@gmail.com"},
        )
        r = client.post("/api/auth-google", json={"idToken": "google-id-token"})
        assert r.status_code == 403
        assert "set-cookie" not in r.headers

    def test_get_returns_405(self, client: TestClient):
        r = client.get("/api/auth-google")
        assert r.status_code == 405
        assert r.json()["ok"] is False


# ── /api/auth-me and /api/auth-logout ───────────────────────────────────────────

class TestSessionProbe:
    def test_valid_session_returns_user(self, client: TestClient):
        r = client.get("/api/auth-me", headers=auth_headers())
        assert r.status_code == 200
        body = r.json()
        assert body["ok"] is True
        assert body["user"]["email"] == "admin@example.com"

    def test_session_check_ignores_allow_list(self, client: TestClient):
        r = client.get("/api/auth-me", headers=auth_headers("someone@else.com"))
        assert r.status_code == 200

    def test_no_cookie_returns_401(self, client: TestClient):
        r = client.get("/api/auth-me")
        assert r.status_code == 401
        assert r.json()["ok"] is False

    def test_expired_cookie_returns_401(self, client: TestClient):
        headers = {"Cookie": f"admin_session={make_token(expired=True)}"}
        assert client.get("/api/auth-me", headers=headers).status_code == 401


class TestLogout:
    def test_clears_cookie(self, client: TestClient):
        r = client.post("/api/auth-logout")
        assert r.status_code == 200
        assert r.json() == {"ok": True}
        cookie = r.headers["set-cookie"]
        assert cookie.startswith("admin_session=")
        assert "Max-Age=0" in cookie
        assert "HttpOnly" in cookie
