# [파일 설명]
# - 목적: 환경 변수에서 서비스 설정을 읽어 검증된 Settings 객체를 만든다.
# - 제공 기능: load_settings(), allowed_origins()를 제공한다.
# - 입력/출력: os.environ을 입력으로 받아 Settings 또는 Origin 목록을 반환한다.
# - 주의 사항: 필수 비밀 값이 없으면 ConfigError를 발생시킨다. 값 자체는 로그에 남기지 않는다.
# - 연관 모듈: app.api.deps, app.main(CORS 설정)과 연동된다.
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

from app.services.llm_client import DEFAULT_API_URL, DEFAULT_MODEL
from app.services.rate_limiter import DEFAULT_MAX_TOKENS, DEFAULT_WINDOW_S

DEV_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")
MAX_BODY_BYTES = 1024 * 1024


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class Settings:
    environment: Literal["development", "production"]
    frontend_url: str
    cookie_domain: str | None
    deepseek_key: str
    jwt_secret: str
    deepseek_url: str = DEFAULT_API_URL
    deepseek_model: str = DEFAULT_MODEL
    llm_timeout_s: float = 30.0
    rate_limit_max_tokens: int = DEFAULT_MAX_TOKENS
    rate_limit_window_s: float = DEFAULT_WINDOW_S
    max_body_bytes: int = MAX_BODY_BYTES

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


# [함수 설명]
# - 목적: 환경 변수를 읽어 Settings를 구성한다.
# - 입력: ENVIRONMENT, DEEPSEEK_KEY, JWT_SECRET, FRONTEND_URL, COOKIE_DOMAIN 등
# - 출력: Settings 인스턴스
# - 에러 처리: 필수 값 누락/잘못된 값은 ConfigError로 보고한다.
# - 결정론: 동일 환경 입력에 대해 동일한 결과를 반환한다.
# - 보안: 비밀 값은 메시지에 포함하지 않는다.
def load_settings() -> Settings:
    environment = _env("ENVIRONMENT")
    if not environment:
        raise ConfigError(
            'ENVIRONMENT is required. Set it to "development" or "production"'
        )
    if environment not in ("development", "production"):
        raise ConfigError(
            f'ENVIRONMENT must be "development" or "production", got: {environment}'
        )
    is_dev = environment == "development"

    deepseek_key = _require("DEEPSEEK_KEY")
    jwt_secret = _require("JWT_SECRET")

    frontend_url = _env("FRONTEND_URL") or ("http://localhost:3000" if is_dev else "")
    if not frontend_url:
        raise ConfigError("FRONTEND_URL is required for production")
    if not frontend_url.startswith(("http://", "https://")):
        frontend_url = f"{'http' if is_dev else 'https'}://{frontend_url}"

    cookie_domain = _env("COOKIE_DOMAIN") or None
    if not is_dev and not cookie_domain:
        raise ConfigError(
            "COOKIE_DOMAIN is required for production when using secure cross-origin cookies"
        )

    return Settings(
        environment=environment,  # type: ignore[arg-type]
        frontend_url=frontend_url,
        cookie_domain=cookie_domain,
        deepseek_key=deepseek_key,
        jwt_secret=jwt_secret,
        deepseek_url=_env("DEEPSEEK_API_URL") or DEFAULT_API_URL,
        deepseek_model=_env("DEEPSEEK_MODEL") or DEFAULT_MODEL,
        llm_timeout_s=_float("LLM_TIMEOUT_S", 30.0),
        rate_limit_max_tokens=int(_float("RATE_LIMIT_MAX_TOKENS", DEFAULT_MAX_TOKENS)),
        rate_limit_window_s=_float("RATE_LIMIT_WINDOW_S", DEFAULT_WINDOW_S),
    )


# [함수 설명]
# - 목적: CORS 허용 Origin 목록을 환경 변수로부터 계산한다.
# - 입력: ENVIRONMENT, FRONTEND_URL 환경 변수
# - 출력: 허용 Origin 문자열 리스트
# - 에러 처리: 예외를 발생시키지 않고 개발용 기본 목록으로 대체한다.
# - 결정론: 동일 환경 입력에 대해 안정적인 결과를 반환한다.
# - 보안: 운영 환경에서는 FRONTEND_URL 하나만 허용한다.
def allowed_origins() -> list[str]:
    if _env("ENVIRONMENT") == "production":
        frontend_url = _env("FRONTEND_URL")
        if frontend_url and not frontend_url.startswith(("http://", "https://")):
            frontend_url = f"https://{frontend_url}"
        return [frontend_url] if frontend_url else []
    return list(DEV_ORIGINS)


def _env(name: str) -> str:
    return os.getenv(name, "").strip()


def _require(name: str) -> str:
    value = _env(name)
    if not value:
        raise ConfigError(f"{name} secret is required")
    return value


def _float(name: str, default: float) -> float:
    raw = _env(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got: {raw}") from exc
