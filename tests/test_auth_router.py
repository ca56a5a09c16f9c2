from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from auth_api.api.deps import (
    get_background_dispatcher,
    get_email_client,
    get_identity_repository,
    get_oauth_verifier,
    get_sms_client,
    get_token_service,
)
from auth_api.main import create_app


PHONE = "2125550123"
DEVICE = {
    "os": "ios",
    "osVersion": "17.2",
    "model": "iPhone15,2",
    "brand": "Apple",
    "appVersion": "1.4.0",
    "buildNumber": "88",
}
GOOGLE_ID_TOKEN = "g" * 120


@pytest.fixture
def app(store, token_service, sms, email_port, dispatcher, oauth_verifier):
    app = create_app()
    app.dependency_overrides[get_identity_repository] = lambda: store
    app.dependency_overrides[get_token_service] = lambda: token_service
    app.dependency_overrides[get_sms_client] = lambda: sms
    app.dependency_overrides[get_email_client] = lambda: email_port
    app.dependency_overrides[get_background_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_oauth_verifier] = lambda: oauth_verifier
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def _request_code(client, store, purpose="signup") -> str:
    response = client.post("/auth/phone/otp", json={"phone": PHONE, "purpose": purpose})
    assert response.status_code == 200
    return store.otps[PHONE].code


def _signup(client, store) -> dict:
    code = _request_code(client, store)
    response = client.post(
        "/auth/phone/signup",
        json={
            "phone": PHONE,
            "code": code,
            "name": "Ada Lovelace",
            "gender": "female",
            "birthYear": 1990,
            "deviceInfo": DEVICE,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_phone_session_lifecycle(client, store):
    tokens = _signup(client, store)
    assert tokens["tokenType"] == "bearer"
    assert set(tokens) >= {"accessToken", "refreshToken", "accessExpiresAt", "refreshExpiresAt"}

    refreshed = client.post("/auth/token/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert refreshed.status_code == 200
    new_tokens = refreshed.json()
    assert new_tokens["refreshToken"] != tokens["refreshToken"]

    stale = client.post("/auth/token/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert stale.status_code == 401
    assert stale.json()["code"] == "INVALID_REFRESH_TOKEN"

    logout = client.post("/auth/logout", json={"refreshToken": new_tokens["refreshToken"]})
    assert logout.status_code == 200
    assert logout.json() == {"message": "Logged out"}

    after_logout = client.post("/auth/token/refresh", json={"refreshToken": new_tokens["refreshToken"]})
    assert after_logout.status_code == 401
    assert after_logout.json()["code"] == "INVALID_REFRESH_TOKEN"


def test_refresh_inside_cooldown_is_429(client, store):
    tokens = _signup(client, store)
    rotated = client.post("/auth/token/refresh", json={"refreshToken": tokens["refreshToken"]}).json()

    response = client.post("/auth/token/refresh", json={"refreshToken": rotated["refreshToken"]})

    assert response.status_code == 429
    assert response.json()["code"] == "RATE_LIMITED"


def test_phone_login_for_existing_user(client, store):
    _signup(client, store)
    code = _request_code(client, store, purpose="login")

    response = client.post("/auth/phone/login", json={"phone": PHONE, "code": code})

    assert response.status_code == 200
    assert len(store.tokens) == 2


def test_otp_request_for_login_of_unknown_phone(client, store, sms):
    response = client.post("/auth/phone/otp", json={"phone": PHONE, "purpose": "login"})

    assert response.status_code == 200
    assert response.json() == {"userExists": False}
    assert sms.sent == []


def test_otp_request_twice_is_rate_limited(client, store):
    _request_code(client, store)

    response = client.post("/auth/phone/otp", json={"phone": PHONE, "purpose": "signup"})

    assert response.status_code == 429
    assert response.json()["code"] == "OTP_RATE_LIMITED"


def test_phone_signup_for_existing_user_is_409(client, store):
    store.seed_user(identifier=PHONE)
    now = datetime.now(timezone.utc)
    store.seed_otp_challenge(phone=PHONE, code="123456", expires_at=now + timedelta(minutes=5), created_at=now)

    response = client.post(
        "/auth/phone/signup",
        json={"phone": PHONE, "code": "123456", "name": "Ada Lovelace", "gender": "female", "birthYear": 1990},
    )

    assert response.status_code == 409
    assert response.json()["code"] == "USER_EXISTS"


def test_phone_login_for_unknown_user_is_404(client, store):
    now = datetime.now(timezone.utc)
    store.seed_otp_challenge(phone=PHONE, code="123456", expires_at=now + timedelta(minutes=5), created_at=now)

    response = client.post("/auth/phone/login", json={"phone": PHONE, "code": "123456"})

    assert response.status_code == 404
    assert response.json() == {"error": "User not found. Please sign up first.", "code": "USER_NOT_FOUND"}


def test_wrong_otp_is_401(client, store):
    _request_code(client, store)

    response = client.post(
        "/auth/phone/signup",
        json={"phone": PHONE, "code": "000000", "name": "Ada Lovelace", "gender": "female", "birthYear": 1990},
    )

    assert response.status_code == 401
    assert response.json()["code"] == "OTP_INVALID"


def test_validation_errors_use_envelope(client):
    response = client.post("/auth/phone/otp", json={"phone": "12345", "purpose": "signup"})

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["error"] == "Validation failed"
    assert body["details"][0]["loc"] == ["body", "phone"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": "A"},
        {"name": "R2-D2"},
        {"birthYear": 1899},
        {"birthYear": datetime.now(timezone.utc).year - 5},
        {"gender": "other"},
        {"code": "12ab56"},
    ],
)
def test_signup_field_validation(client, overrides):
    payload = {"phone": PHONE, "code": "123456", "name": "Ada Lovelace", "gender": "female", "birthYear": 1990}
    payload.update(overrides)

    response = client.post("/auth/phone/signup", json=payload)

    assert response.status_code == 422


def test_malformed_refresh_token_is_422(client):
    response = client.post("/auth/token/refresh", json={"refreshToken": "NOT-A-TOKEN"})

    assert response.status_code == 422


def test_google_sign_in_for_unknown_subject_then_signup(client, store, oauth_verifier, email_port):
    oauth_verifier.register(GOOGLE_ID_TOKEN, provider="google", subject="google-sub", email="ada@example.com")

    pending = client.post("/auth/google", json={"idToken": GOOGLE_ID_TOKEN})
    assert pending.status_code == 200
    body = pending.json()
    assert body["needsSignup"] is True
    assert body["providerId"] == "google-sub"
    assert store.identities == {}

    signup_payload = {
        "provider": body["provider"],
        "providerId": body["providerId"],
        "email": body["email"],
        "signupToken": body["signupToken"],
        "name": "Ada Lovelace",
        "gender": "female",
        "birthYear": 1990,
    }
    created = client.post("/auth/oauth/signup", json=signup_payload)
    assert created.status_code == 201
    assert email_port.sent == [("ada@example.com", "Ada Lovelace")]

    repeated = client.post("/auth/oauth/signup", json=signup_payload)
    assert repeated.status_code == 200

    signed_in = client.post("/auth/google", json={"idToken": GOOGLE_ID_TOKEN})
    assert signed_in.status_code == 200
    assert "accessToken" in signed_in.json()


def test_apple_sign_in_conflict_is_409(client, store, oauth_verifier):
    store.seed_user(auth_id="g-1", provider="google", identifier="google-sub", email="ada@example.com")
    apple_token = "a" * 120
    oauth_verifier.register(apple_token, provider="apple", subject="apple-sub", email="ada@example.com")

    response = client.post("/auth/apple", json={"idToken": apple_token})

    assert response.status_code == 409
    assert response.json()["error"] == (
        "This email is already associated with a Google account. Please sign in with Google instead."
    )


def test_short_id_token_is_422(client):
    response = client.post("/auth/google", json={"idToken": "short"})

    assert response.status_code == 422


def test_me_returns_profile(client, store):
    tokens = _signup(client, store)

    response = client.get("/users/me", headers=_bearer(tokens["accessToken"]))

    assert response.status_code == 200
    body = response.json()
    assert body["provider"] == "phone"
    assert body["name"] == "Ada Lovelace"
    assert body["birthYear"] == 1990


def test_me_without_header_is_missing_token(client):
    response = client.get("/users/me")

    assert response.status_code == 401
    assert response.json()["code"] == "MISSING_TOKEN"


def test_me_with_garbage_token_is_invalid(client):
    response = client.get("/users/me", headers=_bearer("not.a.jwt"))

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_me_with_expired_token(client, store, token_service):
    store.seed_user()
    token, _ = token_service.create_access_token(
        auth_id="auth-1",
        now=datetime.now(timezone.utc) - timedelta(hours=1),
    )

    response = client.get("/users/me", headers=_bearer(token))

    assert response.status_code == 401
    assert response.json()["code"] == "EXPIRED_TOKEN"


def test_me_without_profile_is_409(client, store, token_service):
    store.seed_user(with_profile=False)
    token, _ = token_service.create_access_token(auth_id="auth-1", now=datetime.now(timezone.utc))

    response = client.get("/users/me", headers=_bearer(token))

    assert response.status_code == 409
    assert response.json()["error"] == "Profile required"


def test_sessions_lists_active_devices(client, store):
    tokens = _signup(client, store)

    response = client.get("/auth/sessions", headers=_bearer(tokens["accessToken"]))

    assert response.status_code == 200
    sessions = response.json()["sessions"]
    assert len(sessions) == 1
    assert sessions[0]["deviceInfo"]["osVersion"] == "17.2"
    assert sessions[0]["lastUsedAt"] is None


def test_health_reports_database_state(client, store):
    assert client.get("/health").json() == {"status": "healthy"}

    store.healthy = False
    response = client.get("/health")

    assert response.status_code == 503
    assert response.json() == {"error": "Database connection failed", "code": "SERVICE_UNAVAILABLE"}


def test_unknown_route_uses_envelope(client):
    response = client.get("/nope")

    assert response.status_code == 404
    assert response.json() == {"error": "Resource not found", "code": "NOT_FOUND"}


def test_unexpected_error_is_500_envelope(app, store):
    client = TestClient(app, raise_server_exceptions=False)
    code = _request_code(client, store)
    store.fail_next_profile_create = True

    response = client.post(
        "/auth/phone/signup",
        json={"phone": PHONE, "code": code, "name": "Ada Lovelace", "gender": "female", "birthYear": 1990},
    )

    assert response.status_code == 500
    assert response.json()["code"] == "INTERNAL_ERROR"
    assert store.identities == {}
