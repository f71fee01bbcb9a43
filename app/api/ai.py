# [파일 설명]
# - 목적: 인증이 필요한 AI 게이트웨이 라우트(/ai/generate, /ai/fix, /ai/suggest)를 정의한다.
# - 제공 기능: 프롬프트 구성, LLM 호출, 응답 분류, 안전 게이트 검증, 제안 목록 추출을 조립한다.
# - 입력/출력: 카멜 케이스 JSON 요청을 받아 success/data/error 봉투로 응답한다.
# - 주의 사항: 가드 순서는 인증 → 본문 크기 → 레이트 리밋이며, 실패는 ApiError로 중단한다.
# - 연관 모듈: app.api.deps, app.services.ai_prompts/ai_codes/sql_validation/suggestions.
from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from app.api.deps import (
    enforce_body_limit,
    get_completion_client,
    get_rate_limiter,
    require_identity,
)
from app.api.envelope import ApiError, success_response
from app.api.pipeline import outcome_payload
from app.services.ai_codes import parse_ai_response
from app.services.ai_prompts import (
    DatabaseSchema,
    TableData,
    build_fix_sql_system_prompt,
    build_fix_sql_user_prompt,
    build_suggestions_system_prompt,
    build_suggestions_user_prompt,
    build_system_prompt,
    build_user_prompt,
    schema_from_payload,
)
from app.services.auth_tokens import AuthContext
from app.services.llm_client import CompletionClient, LlmError
from app.services.rate_limiter import TokenBucketRateLimiter
from app.services.safe_sql import summarize_sql
from app.services.sql_validation import validate_sql
from app.services.suggestions import parse_suggestions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])

GENERATE_TEMPERATURE = 0.3
GENERATE_MAX_TOKENS = 1000
SUGGEST_TEMPERATURE = 0.7
SUGGEST_MAX_TOKENS = 800


# [클래스 설명]
# - 역할: ColumnModel Pydantic 스키마 모델을 정의한다.
# - 사용 위치: 요청 schema 필드의 컬럼 정보로 사용된다.
# - 핵심 동작: notNull 별칭을 not_null 필드로 매핑한다.
# - 제약/주의: name/type은 필수이다.
class ColumnModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: str
    not_null: bool = Field(False, alias="notNull")
    pk: bool = False


class TableModel(BaseModel):
    name: str
    columns: list[ColumnModel] = Field(default_factory=list)


# [클래스 설명]
# - 역할: SchemaModel Pydantic 스키마 모델을 정의한다.
# - 사용 위치: generate/fix/suggest 요청의 schema 필드에서 사용된다.
# - 핵심 동작: 서비스 계층의 DatabaseSchema 데이터클래스로 변환한다.
# - 제약/주의: tables는 배열이어야 하며 아니면 400 INVALID_REQUEST가 된다.
class SchemaModel(BaseModel):
    tables: list[TableModel]

    def to_schema(self) -> DatabaseSchema:
        return schema_from_payload(self.model_dump(by_alias=True))


class TableDataModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = Field(0, alias="rowCount")

    def to_table_data(self) -> TableData:
        return TableData(name=self.name, rows=self.rows, row_count=self.row_count)


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(..., min_length=1)
    run_sql: bool = Field(False, alias="runSql")
    allowed_tables: list[str] | None = Field(None, alias="allowedTables")
    db_schema: SchemaModel | None = Field(None, alias="schema")


class FixSqlRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    error_sql: str = Field(..., min_length=1, alias="errorSql")
    error_message: str = Field(..., min_length=1, alias="errorMessage")
    db_schema: SchemaModel = Field(..., alias="schema")
    table_data: list[TableDataModel] | None = Field(None, alias="tableData")
    allowed_tables: list[str] | None = Field(None, alias="allowedTables")


class SuggestRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str | None = None
    db_schema: SchemaModel = Field(..., alias="schema")


def log_usage(user_id: str, prompt: str, success: bool, error: str | None = None) -> None:
    summary = summarize_sql(prompt)
    logger.info(
        "usage: user=%s prompt_len=%s prompt_hash=%s success=%s error=%s",
        user_id,
        summary["len"],
        summary["sha256_8"],
        success,
        error,
    )


def _check_rate_limit(
    limiter: TokenBucketRateLimiter,
    identity: AuthContext,
    prompt: str,
    *,
    include_retry_after: bool = True,
) -> None:
    result = limiter.check_limit(identity.user_id)
    if result.allowed:
        return
    log_usage(identity.user_id, prompt, False, "Rate limit exceeded")
    details: dict[str, Any] = {"remaining": result.remaining}
    if include_retry_after:
        details = {"retryAfter": int(limiter.config.window_s), **details}
    raise ApiError(
        429,
        "Rate limit exceeded. Please try again later.",
        "RATE_LIMIT_EXCEEDED",
        details,
    )


def _upstream_error(message: str, exc: LlmError) -> ApiError:
    return ApiError(
        500 if exc.status_code >= 500 else 400,
        message,
        "DEEPSEEK_API_ERROR",
        {"status": exc.status_code, "details": exc.details},
    )


# [함수 설명]
# - 목적: /ai/generate 엔드포인트 요청을 처리한다.
# - 입력: prompt, runSql, allowedTables, schema
# - 출력: code, message, sql, explanation(및 검증 시 validated)을 담은 봉투
# - 에러 처리: LLM 실패는 DEEPSEEK_API_ERROR, 게이트 거부는 UNSAFE_SQL로 보고한다.
# - 결정론: LLM 응답이 같으면 동일한 분류 결과를 반환한다.
# - 보안: runSql 요청 시 안전 게이트를 통과한 SQL만 validated로 표시한다.
@router.post("/generate")
def generate(
    request: GenerateRequest,
    identity: AuthContext = Depends(require_identity),
    _body_limit: None = Depends(enforce_body_limit),
    limiter: TokenBucketRateLimiter = Depends(get_rate_limiter),
    client: CompletionClient = Depends(get_completion_client),
) -> dict[str, Any]:
    started = time.perf_counter()
    _check_rate_limit(limiter, identity, request.prompt)

    schema = request.db_schema.to_schema() if request.db_schema else None
    try:
        reply = client.complete(
            build_system_prompt(schema),
            build_user_prompt(request.prompt, schema),
            temperature=GENERATE_TEMPERATURE,
            max_tokens=GENERATE_MAX_TOKENS,
        )
    except LlmError as exc:
        log_usage(identity.user_id, request.prompt, False, f"Upstream status {exc.status_code}")
        raise _upstream_error("Failed to generate SQL", exc) from exc

    outcome = parse_ai_response(reply)
    payload = outcome_payload(outcome)

    if request.run_sql and outcome.sql:
        validation = validate_sql(outcome.sql, request.allowed_tables)
        if not validation.ok:
            log_usage(identity.user_id, request.prompt, False, "Unsafe SQL")
            raise ApiError(
                400,
                "Unsafe SQL generated",
                "UNSAFE_SQL",
                {"reason": validation.reason, "sql": outcome.sql},
            )
        payload["validated"] = True

    log_usage(identity.user_id, request.prompt, True)
    logger.info(
        "generate: user=%s duration_ms=%s sql_generated=%s",
        identity.user_id,
        int((time.perf_counter() - started) * 1000),
        bool(outcome.sql),
    )
    return success_response(payload)


# [함수 설명]
# - 목적: /ai/fix 엔드포인트 요청을 처리한다.
# - 입력: errorSql, errorMessage, schema, tableData, allowedTables
# - 출력: 수정된 SQL 분류 결과와 validated 플래그를 담은 봉투
# - 에러 처리: 수정 SQL이 게이트를 통과하지 못하면 UNSAFE_SQL로 거부한다.
# - 결정론: LLM 응답이 같으면 동일한 결과를 반환한다.
# - 보안: 비어 있지 않은 SQL은 항상 안전 게이트를 거친다.
@router.post("/fix")
def fix_sql(
    request: FixSqlRequest,
    identity: AuthContext = Depends(require_identity),
    _body_limit: None = Depends(enforce_body_limit),
    limiter: TokenBucketRateLimiter = Depends(get_rate_limiter),
    client: CompletionClient = Depends(get_completion_client),
) -> dict[str, Any]:
    _check_rate_limit(limiter, identity, request.error_sql)

    schema = request.db_schema.to_schema()
    table_data = [item.to_table_data() for item in request.table_data or []]
    try:
        reply = client.complete(
            build_fix_sql_system_prompt(schema),
            build_fix_sql_user_prompt(
                request.error_sql, request.error_message, schema, table_data or None
            ),
            temperature=GENERATE_TEMPERATURE,
            max_tokens=GENERATE_MAX_TOKENS,
        )
    except LlmError as exc:
        log_usage(identity.user_id, request.error_sql, False, f"Upstream status {exc.status_code}")
        raise _upstream_error("Failed to fix SQL", exc) from exc

    outcome = parse_ai_response(reply)
    payload = outcome_payload(outcome)

    if outcome.sql:
        validation = validate_sql(outcome.sql, request.allowed_tables)
        if not validation.ok:
            log_usage(identity.user_id, request.error_sql, False, "Unsafe SQL")
            raise ApiError(
                400,
                "Fixed SQL contains unsafe operations",
                "UNSAFE_SQL",
                {"reason": validation.reason},
            )
        payload["validated"] = True

    log_usage(identity.user_id, request.error_sql, True)
    return success_response(payload)


# [함수 설명]
# - 목적: /ai/suggest 엔드포인트 요청을 처리한다.
# - 입력: 선택적 prompt와 schema
# - 출력: suggestions 목록과 처리 시간(ms)을 담은 봉투
# - 에러 처리: LLM 실패는 AI_SERVICE_ERROR로 업스트림 상태 코드를 전달한다.
# - 결정론: 동일 LLM 응답에 대해 동일한 제안 목록을 반환한다.
# - 보안: SQL처럼 보이는 줄은 제안 목록에서 제외한다.
@router.post("/suggest")
def suggest(
    request: SuggestRequest,
    identity: AuthContext = Depends(require_identity),
    _body_limit: None = Depends(enforce_body_limit),
    limiter: TokenBucketRateLimiter = Depends(get_rate_limiter),
    client: CompletionClient = Depends(get_completion_client),
) -> dict[str, Any]:
    started = time.perf_counter()
    prompt = request.prompt or ""
    _check_rate_limit(limiter, identity, prompt, include_retry_after=False)

    try:
        reply = client.complete(
            build_suggestions_system_prompt(request.db_schema.to_schema()),
            build_suggestions_user_prompt(request.prompt),
            temperature=SUGGEST_TEMPERATURE,
            max_tokens=SUGGEST_MAX_TOKENS,
        )
    except LlmError as exc:
        log_usage(identity.user_id, prompt, False, f"Upstream status {exc.status_code}")
        raise ApiError(
            exc.status_code,
            "AI service error",
            "AI_SERVICE_ERROR",
            {"details": exc.details},
        ) from exc

    suggestions = parse_suggestions(reply)
    log_usage(identity.user_id, prompt, True)
    return success_response(
        {
            "suggestions": suggestions,
            "duration": int((time.perf_counter() - started) * 1000),
        }
    )
