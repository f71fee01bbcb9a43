# [파일 설명]
# - 목적: API 및 서비스의 기대 동작을 자동으로 검증한다.
# - 제공 기능: 테스트 공용 환경 변수, 세션 토큰, 가짜 LLM 클라이언트 픽스처를 제공한다.
# - 입력/출력: 고정 입력을 사용하며 테스트 통과 여부로 결과를 확인한다.
# - 주의 사항: 원문 SQL이나 비밀 값은 로그/출력에 포함하지 않는다.
# - 연관 모듈: app.main/app.api.* 및 서비스 레이어와 연동된다.
from __future__ import annotations

import sys
import time
from pathlib import Path

import pytest
from jose import jwt

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

TEST_JWT_SECRET = "test-jwt-secret"
TEST_EMAIL = "learner@example.com"


class FakeCompletionClient:
    """Returns canned replies and records every call."""

    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[dict[str, object]] = []

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.error is not None:
            raise self.error
        return self.reply


def make_token(
    email: str = TEST_EMAIL,
    secret: str = TEST_JWT_SECRET,
    expires_in: int = 3600,
    **claims: object,
) -> str:
    now = int(time.time())
    payload: dict[str, object] = {"email": email, "iat": now, "exp": now + expires_in}
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def app_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("DEEPSEEK_KEY", "test-deepseek-key")
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    for name in (
        "FRONTEND_URL",
        "COOKIE_DOMAIN",
        "DEEPSEEK_API_URL",
        "DEEPSEEK_MODEL",
        "LLM_TIMEOUT_S",
        "RATE_LIMIT_MAX_TOKENS",
        "RATE_LIMIT_WINDOW_S",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}
