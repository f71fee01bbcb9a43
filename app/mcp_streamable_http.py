# [파일 설명]
# - 목적: 안전 게이트와 응답 분류기를 MCP 도구(sql.validate, ai.classify)로 노출한다.
# - 제공 기능: Streamable HTTP 위의 JSON-RPC 메서드 디스패치, 도구 레지스트리, Origin/버전 협상.
# - 입력/출력: 단일 JSON-RPC 메시지를 받아 결과/오류 객체를 반환하고, 알림은 202로 응답한다.
# - 주의 사항: 도구 결과 요약에는 SQL 원문을 넣지 않으며, 도구 실패는 isError로만 보고한다.
# - 연관 모듈: app.api.pipeline(페이로드 함수), app.config(허용 Origin)와 연동된다.
from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, HTTPException, Request, Response, status

from app.api.envelope import EscapedJSONResponse
from app.api.pipeline import (
    ClassifyRequest,
    ValidateSqlRequest,
    classification_payload,
    validation_payload,
)
from app.config import allowed_origins

logger = logging.getLogger(__name__)

router = APIRouter(tags=["mcp"])

LATEST_PROTOCOL_VERSION = "2025-11-25"
DEFAULT_SUPPORTED_PROTOCOL_VERSIONS = ("2025-03-26", LATEST_PROTOCOL_VERSION)
SERVER_NAME = "querylab-ai-gateway"
SERVER_VERSION = "0.1.0"

INVALID_PARAMS = -32602
METHOD_NOT_FOUND = -32601

ToolResult = dict[str, Any]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_schema: dict[str, Any]
    output_schema: dict[str, Any]
    run: Callable[[dict[str, Any]], ToolResult]

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
            "outputSchema": self.output_schema,
        }


def supported_protocol_versions() -> set[str]:
    configured = os.getenv("MCP_SUPPORTED_PROTOCOL_VERSIONS", "")
    versions = {item.strip() for item in configured.split(",") if item.strip()}
    return versions or set(DEFAULT_SUPPORTED_PROTOCOL_VERSIONS)


# [함수 설명]
# - 목적: 브라우저 Origin이 CORS 허용 목록과 같은 기준을 통과하는지 확인한다.
# - 입력: Origin 헤더 값(없으면 None)
# - 출력: 허용 여부
# - 에러 처리: Origin이 없는 CLI/IDE 클라이언트는 허용한다.
# - 결정론: 환경 변수가 같으면 결과가 같다.
# - 보안: 다른 사이트에서 로컬 게이트웨이를 호출하는 DNS 리바인딩 경로를 막는다.
def origin_allowed(origin: str | None) -> bool:
    return origin is None or origin in allowed_origins()


def _check_protocol_header(headers: Any) -> None:
    requested = headers.get("MCP-Protocol-Version")
    if requested and requested not in supported_protocol_versions():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unsupported MCP-Protocol-Version",
        )


def _tool_result(
    summary: str, structured: dict[str, Any] | None = None, *, is_error: bool = False
) -> ToolResult:
    return {
        "content": [{"type": "text", "text": summary}],
        "structuredContent": structured or {},
        "isError": is_error,
    }


def _validate_tool(arguments: dict[str, Any]) -> ToolResult:
    payload = validation_payload(ValidateSqlRequest(**arguments))
    if payload["ok"]:
        return _tool_result(f"SQL accepted. statements={payload['statementCount']}.", payload)
    return _tool_result(f"SQL rejected. reason={payload['reason']}", payload)


def _classify_tool(arguments: dict[str, Any]) -> ToolResult:
    payload = classification_payload(ClassifyRequest(**arguments))
    return _tool_result(
        f"Classified. code={payload['code']}, has_sql={bool(payload['sql'])}.", payload
    )


TOOLS: dict[str, ToolSpec] = {
    spec.name: spec
    for spec in (
        ToolSpec(
            name="sql.validate",
            description=(
                "Check SQL against the statement allow-list, blocked operations, "
                "and an optional table allow-list before execution."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "sql": {"type": "string", "description": "SQL text to check."},
                    "allowedTables": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Tables the SQL may reference.",
                    },
                },
                "required": ["sql"],
            },
            output_schema={
                "type": "object",
                "properties": {
                    "ok": {"type": "boolean"},
                    "reason": {"type": ["string", "null"]},
                    "statementKinds": {"type": "array", "items": {"type": "string"}},
                    "statementCount": {"type": "integer"},
                },
            },
            run=_validate_tool,
        ),
        ToolSpec(
            name="ai.classify",
            description=(
                "Classify raw model output into a result code and extract SQL "
                "and explanation."
            ),
            input_schema={
                "type": "object",
                "properties": {"text": {"type": "string", "description": "Raw model output."}},
                "required": ["text"],
            },
            output_schema={
                "type": "object",
                "properties": {
                    "code": {"type": "string"},
                    "message": {"type": "string"},
                    "sql": {"type": "string"},
                    "explanation": {"type": ["string", "null"]},
                },
            },
            run=_classify_tool,
        ),
    )
}


def _initialize(params: dict[str, Any]) -> dict[str, Any]:
    requested = params.get("protocolVersion")
    negotiated = (
        requested
        if isinstance(requested, str) and requested in supported_protocol_versions()
        else LATEST_PROTOCOL_VERSION
    )
    return {
        "protocolVersion": negotiated,
        "capabilities": {"tools": {"listChanged": False}},
        "serverInfo": {
            "name": SERVER_NAME,
            "version": SERVER_VERSION,
            "description": "SQL safety gate and AI response classifier for the query lab",
        },
        "instructions": "Call tools/list then tools/call to validate SQL or classify model output.",
    }


def _list_tools(_: dict[str, Any]) -> dict[str, Any]:
    return {"tools": [spec.describe() for spec in TOOLS.values()]}


# [함수 설명]
# - 목적: tools/call 요청을 등록된 도구로 보낸다.
# - 입력: {"name": 도구 이름, "arguments": 인자 객체}
# - 출력: content/structuredContent/isError를 담은 도구 결과
# - 에러 처리: 이름 누락, 미등록 도구, 인자 형식 오류, 실행 예외 모두 isError 결과로 바꾼다.
# - 결정론: 같은 인자에 대해 같은 결과를 반환한다.
# - 보안: 실패 요약에는 예외 타입 이름만 남기고 입력 값은 되돌려주지 않는다.
def _call_tool(params: dict[str, Any]) -> ToolResult:
    name = params.get("name")
    if not name:
        return _tool_result("Tool name is required.", is_error=True)
    spec = TOOLS.get(name)
    if spec is None:
        return _tool_result(f"Unknown tool: {name}.", is_error=True)
    arguments = params.get("arguments")
    if not isinstance(arguments, dict):
        return _tool_result("Tool arguments must be an object.", is_error=True)
    try:
        return spec.run(arguments)
    except Exception as exc:  # noqa: BLE001 - tool failures are reported via isError
        logger.warning("tools/call: tool=%s failed: %s", name, type(exc).__name__)
        return _tool_result(f"Tool execution failed: {type(exc).__name__}.", is_error=True)


METHODS: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
    "initialize": _initialize,
    "tools/list": _list_tools,
    "tools/call": _call_tool,
    "ping": lambda _: {},
}


def _reply(
    request_id: Any, *, result: Any = None, error: dict[str, Any] | None = None
) -> EscapedJSONResponse:
    message: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id}
    if error is None:
        message["result"] = result
    else:
        message["error"] = error
    return EscapedJSONResponse(content=message)


# [함수 설명]
# - 목적: MCP 클라이언트가 보낸 JSON-RPC 메시지 하나를 처리한다.
# - 입력: Origin/MCP-Protocol-Version 헤더와 JSON-RPC 본문
# - 출력: 요청이면 JSON-RPC 응답, 알림(id 없음)이면 202
# - 에러 처리: 허용되지 않은 Origin은 403, 잘못된 JSON/버전은 400, 미지원 메서드는 -32601.
# - 결정론: 같은 메시지에 대해 같은 응답을 반환한다.
# - 보안: 메서드 디스패치 전에 Origin과 버전을 확인한다.
@router.post("/mcp")
async def mcp_post(request: Request) -> Response:
    if not origin_allowed(request.headers.get("origin")):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Origin not allowed")
    _check_protocol_header(request.headers)

    try:
        message = await request.json()
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload"
        ) from exc
    if not isinstance(message, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON-RPC payload"
        )

    method = message.get("method")
    request_id = message.get("id")
    if method is None or request_id is None:
        # notifications (including notifications/initialized) carry no id
        return Response(status_code=status.HTTP_202_ACCEPTED)

    params = message.get("params") or {}
    if not isinstance(params, dict):
        return _reply(request_id, error={"code": INVALID_PARAMS, "message": "Invalid params"})

    handler = METHODS.get(method)
    if handler is None:
        return _reply(
            request_id,
            error={"code": METHOD_NOT_FOUND, "message": f"Method not found: {method}"},
        )
    logger.info("mcp: method=%s", method)
    return _reply(request_id, result=handler(params))


@router.get("/mcp")
def mcp_get() -> Response:
    # no server-initiated stream
    return Response(status_code=status.HTTP_405_METHOD_NOT_ALLOWED)
