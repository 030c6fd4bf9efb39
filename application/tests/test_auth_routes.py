import pytest
from fastapi.testclient import TestClient

from app.dependencies import (
    get_notifier,
    get_otp_store,
    get_password_hasher,
    get_token_issuer,
    get_user_repository,
)
from app.main import app


@pytest.fixture
def client(otp_store, notifier, token_issuer, hasher, users):
    app.dependency_overrides[get_otp_store] = lambda: otp_store
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_token_issuer] = lambda: token_issuer
    app.dependency_overrides[get_password_hasher] = lambda: hasher
    app.dependency_overrides[get_user_repository] = lambda: users
    yield TestClient(app)
    app.dependency_overrides.clear()


def verified_token(client, notifier, email="a@b.com"):
    assert client.post("/send-otp", json={"email": email}).status_code == 200
    response = client.post("/verify-otp", json={"email": email, "otp": notifier.last_code()})
    assert response.status_code == 200
    return response.json()["otpVerifiedToken"]


def register_payload(token, **overrides):
    payload = {
        "name": "Asha",
        "email": "a@b.com",
        "phone": "9999999999",
        "password": "pw123",
        "otpVerifiedToken": token,
    }
    payload.update(overrides)
    return payload


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_send_otp(client, notifier):
    response = client.post("/send-otp", json={"email": "a@b.com"})

    assert response.status_code == 200
    assert response.json() == {"message": "OTP sent successfully"}
    assert notifier.sent[0]["to"] == "a@b.com"


def test_send_otp_requires_email(client):
    response = client.post("/send-otp", json={})
    assert response.status_code == 400
    assert response.json() == {"message": "Email is required"}


def test_send_otp_delivery_failure(client, notifier):
    notifier.fail = True
    response = client.post("/send-otp", json={"email": "a@b.com"})

    assert response.status_code == 500
    assert response.json() == {"message": "Error sending OTP"}


def test_verify_otp_flow(client, notifier):
    client.post("/send-otp", json={"email": "a@b.com"})
    code = notifier.last_code()

    first = client.post("/verify-otp", json={"email": "a@b.com", "otp": code})
    assert first.status_code == 200
    assert first.json()["message"] == "OTP verified successfully"
    assert first.json()["otpVerifiedToken"]

    second = client.post("/verify-otp", json={"email": "a@b.com", "otp": code})
    assert second.status_code == 400
    assert second.json() == {"message": "No OTP found"}


def test_verify_otp_mismatch(client, notifier):
    client.post("/send-otp", json={"email": "a@b.com"})
    code = notifier.last_code()
    wrong = "100000" if code != "100000" else "100001"

    response = client.post("/verify-otp", json={"email": "a@b.com", "otp": wrong})
    assert response.status_code == 400
    assert response.json() == {"message": "Invalid OTP"}


def test_verify_otp_accepts_numeric_code(client, notifier):
    client.post("/send-otp", json={"email": "a@b.com"})
    response = client.post("/verify-otp", json={"email": "a@b.com", "otp": int(notifier.last_code())})
    assert response.status_code == 200


def test_register_and_login(client, notifier):
    token = verified_token(client, notifier)

    response = client.post("/register", json=register_payload(token))
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "User registered successfully"
    assert body["user"]["uid"] == "9999999999"
    assert "password" not in body["user"]

    for identifier in ("a@b.com", "9999999999"):
        response = client.post("/login", json={"emailOrPhone": identifier, "password": "pw123"})
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Login successful"
        assert body["token"]
        assert body["user"]["phone"] == "9999999999"
        assert "password" not in body["user"]


def test_register_without_verification(client):
    response = client.post("/register", json=register_payload(None))
    assert response.status_code == 400
    assert response.json() == {"message": "Email not verified"}


def test_register_missing_fields(client):
    response = client.post("/register", json={"name": "Asha"})
    assert response.status_code == 400
    assert response.json() == {"message": "All fields required"}


def test_register_conflicts(client, notifier):
    token = verified_token(client, notifier)
    assert client.post("/register", json=register_payload(token)).status_code == 201

    response = client.post("/register", json=register_payload(token, email="a@b.com"))
    assert response.status_code == 400
    assert response.json() == {"message": "Phone already registered"}

    response = client.post("/register", json=register_payload(token, phone="8888888888"))
    assert response.status_code == 400
    assert response.json() == {"message": "Email already registered"}


def test_login_errors(client, notifier):
    token = verified_token(client, notifier)
    client.post("/register", json=register_payload(token))

    response = client.post("/login", json={"emailOrPhone": "nobody@b.com", "password": "pw123"})
    assert response.status_code == 400
    assert response.json() == {"message": "User not found"}

    response = client.post("/login", json={"emailOrPhone": "a@b.com", "password": "bad"})
    assert response.status_code == 400
    assert response.json() == {"message": "Wrong password"}

    response = client.post("/login", json={"emailOrPhone": "a@b.com"})
    assert response.status_code == 400
    assert response.json() == {"message": "Email/Phone and password required"}


def test_store_failure_is_server_error(client, users, monkeypatch):
    def broken(field, value):
        raise RuntimeError("store down")

    monkeypatch.setattr(users, "find_by", broken)
    response = client.post("/login", json={"emailOrPhone": "a@b.com", "password": "pw123"})
    assert response.status_code == 500
    assert response.json() == {"message": "Server error"}


def test_me(client, notifier):
    token = verified_token(client, notifier)
    access_token = client.post("/register", json=register_payload(token)).json()["token"]

    response = client.get("/me", headers={"Authorization": f"Bearer {access_token}"})
    assert response.status_code == 200
    assert response.json()["user"]["email"] == "a@b.com"

    response = client.get("/me")
    assert response.status_code == 401

    response = client.get("/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_malformed_body_is_bad_request(client):
    response = client.post("/login", content="not json", headers={"content-type": "application/json"})
    assert response.status_code == 400
    assert "message" in response.json()
