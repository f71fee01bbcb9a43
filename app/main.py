# [파일 설명]
# - 목적: FastAPI 애플리케이션을 생성하고 라우터/미들웨어/예외 처리기를 조립한다.
# - 제공 기능: /health, SQL/AI 라우터, MCP 엔드포인트 등록과 공통 오류 봉투 변환을 제공한다.
# - 입력/출력: HTTP 요청에 대해 success/data/error 봉투 형식으로 응답한다.
# - 주의 사항: 오류 응답은 이 모듈의 예외 처리기에서만 만들어진다.
# - 연관 모듈: app.api.ai, app.api.pipeline, app.mcp_streamable_http, app.config와 연동된다.
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.ai import router as ai_router
from app.api.envelope import (
    ApiError,
    EscapedJSONResponse,
    error_response,
    success_response,
)
from app.api.pipeline import router as pipeline_router
from app.config import ConfigError, allowed_origins
from app.mcp_streamable_http import router as mcp_router

logger = logging.getLogger(__name__)

SERVICE_NAME = "querylab-ai-gateway"

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}

app = FastAPI(title=SERVICE_NAME, default_response_class=EscapedJSONResponse)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "x-user-id"],
)


@app.middleware("http")
async def request_log_middleware(request: Request, call_next: Any) -> Response:
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed method=%s path=%s", request.method, request.url.path)
        raise
    logger.info(
        "request method=%s path=%s status=%s duration_ms=%s",
        request.method,
        request.url.path,
        response.status_code,
        int((time.perf_counter() - started) * 1000),
    )
    return response


@app.exception_handler(ApiError)
async def api_error_handler(_: Request, exc: ApiError) -> EscapedJSONResponse:
    return EscapedJSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.message, exc.code, exc.details),
    )


@app.exception_handler(ConfigError)
async def config_error_handler(_: Request, exc: ConfigError) -> EscapedJSONResponse:
    logger.error("config_error: %s", exc)
    return EscapedJSONResponse(status_code=500, content=error_response(str(exc), "CONFIG_ERROR"))


# [함수 설명]
# - 목적: 요청 본문 검증 실패를 400 INVALID_REQUEST 봉투로 변환한다.
# - 입력: RequestValidationError
# - 출력: loc/msg/type만 담은 details를 포함한 EscapedJSONResponse
# - 에러 처리: 입력 값(input)은 details에서 제외한다.
# - 결정론: 동일 입력에 대해 동일 응답을 반환한다.
# - 보안: 요청 본문에 담긴 SQL/프롬프트 원문을 응답에 되돌려주지 않는다.
@app.exception_handler(RequestValidationError)
async def validation_error_handler(_: Request, exc: RequestValidationError) -> EscapedJSONResponse:
    details = [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    return EscapedJSONResponse(
        status_code=400,
        content=error_response("Invalid request body", "INVALID_REQUEST", details),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(_: Request, exc: StarletteHTTPException) -> EscapedJSONResponse:
    message = "Not found" if exc.status_code == 404 else str(exc.detail)
    return EscapedJSONResponse(
        status_code=exc.status_code,
        content=error_response(message, HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(_: Request, exc: Exception) -> EscapedJSONResponse:
    logger.error("unhandled_error: %s", type(exc).__name__)
    return EscapedJSONResponse(
        status_code=500,
        content=error_response("Internal server error", "INTERNAL_ERROR"),
    )


# [함수 설명]
# - 목적: 서비스 상태 확인을 위한 헬스 체크 응답을 제공한다.
# - 입력: 요청 바디 없이 호출된다.
# - 출력: status, timestamp, service를 담은 봉투를 반환한다.
# - 에러 처리: 내부 예외 없이 즉시 성공 응답을 반환한다.
# - 결정론: timestamp를 제외한 값은 항상 동일하다.
# - 보안: 민감 정보는 응답에 포함하지 않는다.
@app.get("/health")
def health() -> dict[str, Any]:
    return success_response(
        {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
        }
    )


app.include_router(pipeline_router)
app.include_router(ai_router)
app.include_router(mcp_router)
