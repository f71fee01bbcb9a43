from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal

from app.services.safe_sql import non_blank_lines, summarize_sql

logger = logging.getLogger(__name__)

AiCode = Literal[
    "SUCCESS",
    "SCHEMA_MISMATCH",
    "INVALID_REQUEST",
    "COMPLEX_QUERY",
    "NO_DATA",
    "UNSUPPORTED_OPERATION",
    "NOT_SQL_REQUEST",
]

AI_CODES: tuple[AiCode, ...] = (
    "SUCCESS",
    "SCHEMA_MISMATCH",
    "INVALID_REQUEST",
    "COMPLEX_QUERY",
    "NO_DATA",
    "UNSUPPORTED_OPERATION",
    "NOT_SQL_REQUEST",
)

CODE_MESSAGES: Mapping[AiCode, str] = MappingProxyType(
    {
        "SUCCESS": "SQL generated successfully! Review it before running.",
        "SCHEMA_MISMATCH": (
            "The requested query doesn't match your database schema. "
            "Please check your tables and columns."
        ),
        "INVALID_REQUEST": (
            "Your request couldn't be understood. Please try rephrasing your question."
        ),
        "COMPLEX_QUERY": (
            "This query is too complex or too long (exceeds 50 lines). "
            "Please break it into smaller parts or simplify your request."
        ),
        "NO_DATA": "No data found matching your criteria.",
        "UNSUPPORTED_OPERATION": (
            "This operation is not supported. "
            "Only SELECT, INSERT, and UPDATE queries are allowed."
        ),
        "NOT_SQL_REQUEST": (
            "This question is not about SQL operations. I can help you write SQL queries!"
        ),
    }
)

MAX_SQL_LINES = 50
MIN_SALVAGE_LENGTH = 10

_CODE_NAMES = "|".join(AI_CODES)

CODE_MARKER_PATTERNS = (
    re.compile(rf"^CODE:\s*({_CODE_NAMES})", re.IGNORECASE),
    re.compile(rf"^({_CODE_NAMES}):", re.IGNORECASE),
    re.compile(rf"\[({_CODE_NAMES})\]", re.IGNORECASE),
    re.compile(rf"^({_CODE_NAMES})\s*-", re.IGNORECASE),
)
SQL_FENCE_PATTERN = re.compile(r"```sql\n?([\s\S]*?)\n?```", re.IGNORECASE)
SQL_STATEMENT_PATTERN = re.compile(
    r"SQL_STATEMENT:\s*([\s\S]*?)(?=\n\s*EXPLANATION:|\Z)", re.IGNORECASE
)
EXPLANATION_PATTERN = re.compile(r"EXPLANATION:\s*(.+?)(?:\n\n|\Z)", re.IGNORECASE | re.DOTALL)
NOT_SQL_MARKER_PATTERN = re.compile(r"^NOT_SQL_REQUEST\s*(?:\n|\Z)", re.IGNORECASE)
NOT_SQL_EXPLANATION_PATTERN = re.compile(
    r"NOT_SQL_REQUEST\s*\n\s*EXPLANATION:\s*(.+?)(?:\n\n|\Z)", re.IGNORECASE | re.DOTALL
)
NOT_SQL_LINE_PATTERN = re.compile(r"^NOT_SQL_REQUEST\s*$", re.IGNORECASE)
EXPLANATION_LINE_PATTERN = re.compile(r"^EXPLANATION:", re.IGNORECASE)
SKIPPED_MARKER_LINE_PATTERN = re.compile(r"^(?:CODE|SQL_STATEMENT):", re.IGNORECASE)
ANY_MARKER_LINE_PATTERN = re.compile(
    r"^(?:CODE|RESPONSE|EXPLANATION|SQL_STATEMENT):", re.IGNORECASE
)
SQL_VERB_LINE_PATTERN = re.compile(
    r"^(?:SELECT|INSERT|UPDATE|DELETE|CREATE|ALTER|DROP|WITH|TRUNCATE)", re.IGNORECASE
)
LEADING_CODE_PREFIX_PATTERN = re.compile(rf"^(?:{_CODE_NAMES})[:\[]", re.IGNORECASE)
NOT_SQL_PREFIX_PATTERNS = (
    re.compile(r"^(?:NOT_SQL_REQUEST|CODE|SQL_STATEMENT)[:\[]", re.IGNORECASE),
    re.compile(r"^NOT_SQL_REQUEST\s*\n?", re.IGNORECASE),
    re.compile(r"SQL_STATEMENT:\s*NOT_SQL_REQUEST\s*\n?", re.IGNORECASE),
)


@dataclass(frozen=True)
class ParsedAIOutcome:
    code: AiCode
    message: str
    sql: str = ""
    explanation: str | None = None


@dataclass
class _ParseState:
    raw: str
    text: str
    code: AiCode = "SUCCESS"
    sql: str = ""
    explanation: str = ""


def get_code_message(code: AiCode) -> str:
    return CODE_MESSAGES[code]


def parse_ai_response(response: str) -> ParsedAIOutcome:
    """Turn free-form model output into a classified outcome.

    The stages run in a fixed order and later stages may overwrite what an
    earlier one decided. Never raises: unusable input degrades to
    ``SUCCESS`` with an empty ``sql``.
    """
    raw = response if isinstance(response, str) else ""
    state = _ParseState(raw=raw, text=raw.strip())

    for name, stage in _STAGES:
        before = (state.code, bool(state.sql))
        stage(state)
        if (state.code, bool(state.sql)) != before:
            logger.debug(
                "parse_ai_response: stage=%s code=%s has_sql=%s",
                name,
                state.code,
                bool(state.sql),
            )

    summary = summarize_sql(raw)
    logger.info(
        "parse_ai_response: code=%s has_sql=%s text_len=%s text_hash=%s",
        state.code,
        bool(state.sql) and state.code == "SUCCESS",
        summary["len"],
        summary["sha256_8"],
    )
    return ParsedAIOutcome(
        code=state.code,
        message=CODE_MESSAGES[state.code],
        sql=state.sql if state.code == "SUCCESS" else "",
        explanation=state.explanation or None,
    )


classify = parse_ai_response


def _detect_code_marker(state: _ParseState) -> None:
    for pattern in CODE_MARKER_PATTERNS:
        match = pattern.search(state.text)
        if match:
            state.code = match.group(1).upper()  # type: ignore[assignment]
            return


def _extract_sql_body(state: _ParseState) -> None:
    if state.code == "NOT_SQL_REQUEST":
        state.sql = ""
        return

    fence = SQL_FENCE_PATTERN.search(state.text)
    if fence:
        _accept_candidate(state, fence.group(1).strip())
        return

    marker = SQL_STATEMENT_PATTERN.search(state.text)
    if marker:
        candidate = marker.group(1).strip()
        if candidate:
            _accept_candidate(state, candidate)
        else:
            state.sql = ""
        return

    collected: list[str] = []
    started = False
    for line in state.text.split("\n"):
        if EXPLANATION_LINE_PATTERN.match(line):
            break
        if SKIPPED_MARKER_LINE_PATTERN.match(line):
            continue
        if NOT_SQL_LINE_PATTERN.match(line):
            state.code = "NOT_SQL_REQUEST"
            state.sql = ""
            return
        if started:
            if line.strip() and not ANY_MARKER_LINE_PATTERN.match(line):
                collected.append(line)
        elif SQL_VERB_LINE_PATTERN.match(line):
            started = True
            collected.append(line)

    if collected:
        _accept_candidate(state, "\n".join(collected).strip())


def _accept_candidate(state: _ParseState, candidate: str) -> None:
    if not NOT_SQL_MARKER_PATTERN.match(candidate):
        state.sql = candidate
        return

    # model put the classification marker where the SQL belongs
    state.code = "NOT_SQL_REQUEST"
    state.sql = ""
    embedded = EXPLANATION_PATTERN.search(candidate)
    if embedded and not state.explanation:
        state.explanation = embedded.group(1).strip()


def _extract_explanation(state: _ParseState) -> None:
    match = EXPLANATION_PATTERN.search(state.text)
    if match:
        state.explanation = match.group(1).strip()


def _settle_not_sql_request(state: _ParseState) -> None:
    if state.code != "NOT_SQL_REQUEST":
        return
    state.sql = ""
    if state.explanation or not state.raw.strip():
        return

    match = NOT_SQL_EXPLANATION_PATTERN.search(state.raw)
    if match:
        state.explanation = match.group(1).strip()
        return

    cleaned = state.raw
    for pattern in NOT_SQL_PREFIX_PATTERNS:
        cleaned = pattern.sub("", cleaned, count=1)
    cleaned = cleaned.strip()
    if len(cleaned) > MIN_SALVAGE_LENGTH:
        state.explanation = cleaned


def _enforce_line_limit(state: _ParseState) -> None:
    if state.code != "SUCCESS" or not state.sql:
        return
    line_count = len(non_blank_lines(state.sql))
    if line_count <= MAX_SQL_LINES:
        return

    state.code = "COMPLEX_QUERY"
    state.sql = ""
    if not state.explanation:
        state.explanation = (
            f"The generated SQL query is {line_count} lines long, which exceeds the "
            f"maximum limit of {MAX_SQL_LINES} lines. "
            "Please break your request into smaller, simpler queries."
        )


def _fallback_to_raw_text(state: _ParseState) -> None:
    if state.sql or state.code == "NOT_SQL_REQUEST" or not state.raw.strip():
        return
    cleaned = LEADING_CODE_PREFIX_PATTERN.sub("", state.raw, count=1).strip()
    if len(cleaned) > MIN_SALVAGE_LENGTH:
        state.sql = cleaned


_STAGES: tuple[tuple[str, Callable[[_ParseState], None]], ...] = (
    ("code_marker", _detect_code_marker),
    ("sql_body", _extract_sql_body),
    ("explanation", _extract_explanation),
    ("not_sql_request", _settle_not_sql_request),
    ("line_limit", _enforce_line_limit),
    ("fallback", _fallback_to_raw_text),
    ("line_limit_recheck", _enforce_line_limit),
)
