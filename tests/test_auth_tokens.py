from __future__ import annotations

from conftest import TEST_EMAIL, TEST_JWT_SECRET, make_token

from app.services.auth_tokens import SESSION_COOKIE, extract_token, verify_session_token


def test_extract_token_prefers_session_cookie() -> None:
    token = extract_token(f"theme=dark; {SESSION_COOKIE}=cookie-token", "Bearer header-token")

    assert token == "cookie-token"


def test_extract_token_falls_back_to_bearer_header() -> None:
    assert extract_token("theme=dark", "Bearer header-token") == "header-token"
    assert extract_token(None, "bearer  header-token ") == "header-token"


def test_extract_token_returns_none_without_credentials() -> None:
    assert extract_token(None, None) is None
    assert extract_token("theme=dark", "Basic dXNlcjpwYXNz") is None


def test_verify_accepts_signed_token() -> None:
    token = make_token(name="Ada")

    identity = verify_session_token(token, TEST_JWT_SECRET)

    assert identity is not None
    assert identity.user_id == TEST_EMAIL
    assert identity.email == TEST_EMAIL
    assert identity.name == "Ada"
    assert identity.token == token


def test_verify_rejects_wrong_secret() -> None:
    assert verify_session_token(make_token(secret="other-secret"), TEST_JWT_SECRET) is None


def test_verify_rejects_expired_token() -> None:
    assert verify_session_token(make_token(expires_in=-60), TEST_JWT_SECRET) is None


def test_verify_checks_issuer_when_present() -> None:
    assert verify_session_token(make_token(iss="querylab"), TEST_JWT_SECRET) is not None
    assert verify_session_token(make_token(iss="someone-else"), TEST_JWT_SECRET) is None


def test_verify_requires_email_claim() -> None:
    assert verify_session_token(make_token(email=""), TEST_JWT_SECRET) is None


def test_verify_rejects_garbage() -> None:
    assert verify_session_token("not-a-jwt", TEST_JWT_SECRET) is None
    assert verify_session_token("", TEST_JWT_SECRET) is None
