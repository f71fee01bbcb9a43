# [파일 설명]
# - 목적: AI 라우트가 공유하는 FastAPI 의존성을 제공한다.
# - 제공 기능: 설정 로드, 세션 식별, 본문 크기 제한, 레이트 리미터, LLM 클라이언트 주입.
# - 입력/출력: Request/Settings를 받아 인증 컨텍스트나 서비스 객체를 반환한다.
# - 주의 사항: 인증 실패/본문 초과는 ApiError로 즉시 중단한다.
# - 연관 모듈: app.config, app.services.auth_tokens/rate_limiter/llm_client.
from __future__ import annotations

import logging
import threading

from fastapi import Depends, Request

from app.api.envelope import ApiError
from app.config import Settings, load_settings
from app.services.auth_tokens import AuthContext, extract_token, verify_session_token
from app.services.llm_client import CompletionClient, DeepSeekClient
from app.services.rate_limiter import RateLimitConfig, TokenBucketRateLimiter

logger = logging.getLogger(__name__)

_limiters: dict[tuple[int, float], TokenBucketRateLimiter] = {}
_limiters_lock = threading.Lock()


def get_settings() -> Settings:
    return load_settings()


def require_identity(
    request: Request, settings: Settings = Depends(get_settings)
) -> AuthContext:
    token = extract_token(request.headers.get("cookie"), request.headers.get("authorization"))
    identity = verify_session_token(token, settings.jwt_secret) if token else None
    if identity is None:
        logger.info("require_identity: unauthenticated path=%s", request.url.path)
        raise ApiError(401, "Authentication required", "AUTH_MISSING")
    return identity


def enforce_body_limit(request: Request, settings: Settings = Depends(get_settings)) -> None:
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > settings.max_body_bytes:
        raise ApiError(
            413,
            "Request body too large. Maximum size is 1MB.",
            "PAYLOAD_TOO_LARGE",
        )


def get_rate_limiter(settings: Settings = Depends(get_settings)) -> TokenBucketRateLimiter:
    key = (settings.rate_limit_max_tokens, settings.rate_limit_window_s)
    with _limiters_lock:
        limiter = _limiters.get(key)
        if limiter is None:
            limiter = TokenBucketRateLimiter(
                RateLimitConfig(
                    max_tokens=settings.rate_limit_max_tokens,
                    window_s=settings.rate_limit_window_s,
                    refill_rate=settings.rate_limit_max_tokens,
                )
            )
            _limiters[key] = limiter
    return limiter


def get_completion_client(settings: Settings = Depends(get_settings)) -> CompletionClient:
    return DeepSeekClient(
        settings.deepseek_key,
        url=settings.deepseek_url,
        model=settings.deepseek_model,
        timeout=settings.llm_timeout_s,
    )
