# [파일 설명]
# - 목적: 인증 없이 호출 가능한 순수 파이프라인 엔드포인트를 정의한다.
# - 제공 기능: /sql/validate(안전 게이트), /ai/classify(응답 분류기) 라우트를 제공한다.
# - 입력/출력: Pydantic 모델로 요청을 수신하고 success/data/error 봉투로 결과를 반환한다.
# - 주의 사항: 원문 SQL/모델 응답은 로그에 남기지 않고 길이/해시 요약만 기록한다.
# - 연관 모듈: app.services.sql_validation, app.services.ai_codes, app.mcp_streamable_http.
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from app.api.envelope import success_response
from app.services.ai_codes import ParsedAIOutcome, parse_ai_response
from app.services.sql_validation import statement_kind, validate_sql

logger = logging.getLogger(__name__)

router = APIRouter()


# [클래스 설명]
# - 역할: ValidateSqlRequest Pydantic 스키마 모델을 정의한다.
# - 사용 위치: /sql/validate 요청 및 MCP sql.validate 도구 인자에서 사용된다.
# - 핵심 동작: allowedTables는 카멜 케이스 별칭으로 수신한다.
# - 제약/주의: 빈 SQL도 허용하며 게이트가 "Empty SQL"로 거부한다.
class ValidateSqlRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sql: str
    allowed_tables: list[str] | None = Field(None, alias="allowedTables")


# [클래스 설명]
# - 역할: ClassifyRequest Pydantic 스키마 모델을 정의한다.
# - 사용 위치: /ai/classify 요청 및 MCP ai.classify 도구 인자에서 사용된다.
# - 핵심 동작: 모델 응답 원문 한 건을 수신한다.
# - 제약/주의: 분류기는 어떤 문자열에도 예외를 발생시키지 않는다.
class ClassifyRequest(BaseModel):
    text: str


def validation_payload(request: ValidateSqlRequest) -> dict[str, Any]:
    result = validate_sql(request.sql, request.allowed_tables)
    return {
        "ok": result.ok,
        "reason": result.reason,
        "statementKinds": [statement_kind(node) for node in result.statements],
        "statementCount": len(result.statements),
    }


def outcome_payload(outcome: ParsedAIOutcome) -> dict[str, Any]:
    return {
        "code": outcome.code,
        "message": outcome.message,
        "sql": outcome.sql,
        "explanation": outcome.explanation,
    }


def classification_payload(request: ClassifyRequest) -> dict[str, Any]:
    return outcome_payload(parse_ai_response(request.text))


# [함수 설명]
# - 목적: /sql/validate 엔드포인트 요청을 처리한다.
# - 입력: sql 문자열과 선택적 허용 테이블 목록
# - 출력: ok, reason, statementKinds, statementCount를 담은 봉투
# - 에러 처리: 게이트 거부는 200 응답의 ok=false로 표현한다.
# - 결정론: 동일 입력에 대해 동일 결과를 반환한다.
# - 보안: 원문 SQL은 응답/로그에 다시 싣지 않는다.
@router.post("/sql/validate", response_model=None)
def validate_sql_route(request: ValidateSqlRequest) -> dict[str, Any]:
    return success_response(validation_payload(request))


# [함수 설명]
# - 목적: /ai/classify 엔드포인트 요청을 처리한다.
# - 입력: 모델 응답 원문 text
# - 출력: code, message, sql, explanation을 담은 봉투
# - 에러 처리: 분류기가 전 함수이므로 별도 오류 경로가 없다.
# - 결정론: 동일 입력에 대해 동일 결과를 반환한다.
# - 보안: 원문 텍스트는 로그에 요약 정보로만 기록된다.
@router.post("/ai/classify", response_model=None)
def classify_route(request: ClassifyRequest) -> dict[str, Any]:
    return success_response(classification_payload(request))
