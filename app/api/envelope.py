# [파일 설명]
# - 목적: 모든 HTTP 응답이 공유하는 success/data/error 봉투 형식을 정의한다.
# - 제공 기능: success_response/error_response 헬퍼와 라우트용 ApiError 예외를 제공한다.
# - 입력/출력: 결과 데이터 또는 오류 정보를 받아 JSON 직렬화 가능한 dict를 반환한다.
# - 주의 사항: 봉투 생성은 app.main의 예외 처리기에서만 오류 응답으로 변환된다.
# - 연관 모듈: app.main, app.api.ai, app.api.pipeline과 연동된다.
from __future__ import annotations

import json
from typing import Any

from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(
        self,
        status_code: int,
        message: str,
        code: str | None = None,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code
        self.details = details


def success_response(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data, "error": None}


def error_response(
    message: str, code: str | None = None, details: Any | None = None
) -> dict[str, Any]:
    error: dict[str, Any] = {"message": message}
    if code:
        error["code"] = code
    if details:
        error["details"] = details
    return {"success": False, "data": None, "error": error}


class EscapedJSONResponse(JSONResponse):
    """JSON response rendered with ASCII escapes.

    Model replies and client SQL may carry lone surrogates, which cannot be
    encoded as UTF-8 but survive as ``\\uXXXX`` escapes.
    """

    def render(self, content: Any) -> bytes:
        return json.dumps(content, separators=(",", ":")).encode("ascii")
