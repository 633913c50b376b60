from coderoom.api.deps import get_auth_middleware
from coderoom.config import settings
from coderoom.core.identity import build_auth_middleware
from coderoom.core.security import token_codec
from coderoom.main import app
from coderoom.models.audit import AuditAction, AuditEvent

GATEWAY_USER = "3b2f0c4e-1d7a-4a58-9f2e-6c1b8d0e5a77"


def _register(client, email="walter@example.com", password="password123"):
    response = client.post("/api/v1/auth/register", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


def test_register_returns_camel_case_token_pair(client):
    body = _register(client)
    assert set(body) == {"accessToken", "refreshToken", "tokenType", "expiresIn"}
    assert body["tokenType"] == "Bearer"
    assert body["expiresIn"] == settings.ACCESS_TOKEN_TTL_SECONDS


def test_register_duplicate_email(client):
    _register(client)
    response = client.post("/api/v1/auth/register", json={"email": "WALTER@example.com", "password": "password123"})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Email already registered"
    assert body["path"] == "/api/v1/auth/register"


def test_register_validation_errors_are_400(client):
    bad_email = client.post("/api/v1/auth/register", json={"email": "not-an-email", "password": "password123"})
    short_password = client.post("/api/v1/auth/register", json={"email": "v@example.com", "password": "short"})
    missing = client.post("/api/v1/auth/register", json={})

    for response in (bad_email, short_password, missing):
        assert response.status_code == 400
        assert response.json()["details"]

    assert short_password.json()["details"][0]["field"] == "password"


def test_login_and_bad_credentials(client):
    _register(client)
    ok = client.post("/api/v1/auth/login", json={"email": "Walter@Example.com", "password": "password123"})
    assert ok.status_code == 200
    assert ok.json()["accessToken"]

    bad = client.post("/api/v1/auth/login", json={"email": "walter@example.com", "password": "nope-nope"})
    assert bad.status_code == 400
    assert bad.json()["error"] == "Invalid credentials"


def test_login_is_rate_limited(client, monkeypatch):
    monkeypatch.setattr(settings, "LOGIN_RATE_LIMIT_PER_MINUTE", 2)
    payload = {"email": "walter@example.com", "password": "nope-nope"}

    assert client.post("/api/v1/auth/login", json=payload).status_code == 400
    assert client.post("/api/v1/auth/login", json=payload).status_code == 400
    assert client.post("/api/v1/auth/login", json=payload).status_code == 429


def test_refresh_rotates_tokens(client):
    tokens = _register(client)
    response = client.post("/api/v1/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert response.status_code == 200
    assert response.json()["refreshToken"] != tokens["refreshToken"]

    replay = client.post("/api/v1/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert replay.status_code == 400
    assert replay.json()["error"] == "Invalid credentials"


def test_logout_always_204(client):
    tokens = _register(client)
    assert client.post("/api/v1/auth/logout", json={"refreshToken": tokens["refreshToken"]}).status_code == 204
    assert client.post("/api/v1/auth/logout", json={"refreshToken": tokens["refreshToken"]}).status_code == 204
    assert client.post("/api/v1/auth/logout", json={"refreshToken": "never-issued"}).status_code == 204

    response = client.post("/api/v1/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert response.status_code == 400


def test_logout_all(client):
    first = _register(client)
    second = client.post("/api/v1/auth/login", json={"email": "walter@example.com", "password": "password123"}).json()

    assert client.post("/api/v1/auth/logout-all", json={"refreshToken": first["refreshToken"]}).status_code == 204
    response = client.post("/api/v1/auth/refresh", json={"refreshToken": second["refreshToken"]})
    assert response.status_code == 400


def test_me_requires_authentication(client):
    assert client.get("/api/v1/me").status_code == 401
    response = client.get("/api/v1/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


def test_me_returns_identity(client):
    tokens = _register(client)
    response = client.get("/api/v1/me", headers={"Authorization": f"Bearer {tokens['accessToken']}"})
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "walter@example.com"
    assert body["role"] == "STUDENT"
    assert body["isRoot"] is False
    assert body["userId"]


def test_gateway_headers_only_when_trusted(client):
    headers = {"X-User-Id": GATEWAY_USER, "X-User-Role": "TEACHER"}
    assert client.get("/api/v1/me", headers=headers).status_code == 401

    app.dependency_overrides[get_auth_middleware] = lambda: build_auth_middleware(
        token_codec, trust_gateway_headers=True
    )
    response = client.get("/api/v1/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["userId"] == GATEWAY_USER
    assert response.json()["role"] == "TEACHER"
    assert response.json()["email"] is None


def test_change_password(client, db):
    tokens = _register(client)
    headers = {"Authorization": f"Bearer {tokens['accessToken']}"}

    wrong = client.post(
        "/api/v1/me/password",
        json={"oldPassword": "not-it", "newPassword": "brand-new-pass"},
        headers=headers,
    )
    assert wrong.status_code == 400

    ok = client.post(
        "/api/v1/me/password",
        json={"oldPassword": "password123", "newPassword": "brand-new-pass"},
        headers=headers,
    )
    assert ok.status_code == 204

    refresh = client.post("/api/v1/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert refresh.status_code == 400
    login = client.post("/api/v1/auth/login", json={"email": "walter@example.com", "password": "brand-new-pass"})
    assert login.status_code == 200

    event = db.query(AuditEvent).filter(AuditEvent.action == AuditAction.PASSWORD_CHANGED.value).one()
    assert event.actor_id == event.target_user_id


def test_change_password_requires_authentication(client):
    response = client.post("/api/v1/me/password", json={"oldPassword": "a", "newPassword": "brand-new-pass"})
    assert response.status_code == 401


def test_health_and_metrics(client):
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "coderoom_identity_http_requests_total" in metrics.text


def test_responses_carry_security_headers(client):
    response = client.get("/")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Request-ID"]
