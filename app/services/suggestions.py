from __future__ import annotations

import re

MAX_SUGGESTIONS = 15
MIN_SUGGESTION_LENGTH = 10
MAX_SUGGESTION_LENGTH = 200

CODE_FENCE_PATTERN = re.compile(r"```[\s\S]*?```")
SQL_LINE_PATTERN = re.compile(
    r"^(?:SELECT|INSERT|UPDATE|DELETE|CREATE|DROP|ALTER|WITH|FROM|WHERE|JOIN)\s", re.IGNORECASE
)
SQL_PREFIX_PATTERN = re.compile(
    r"^(?:SELECT|INSERT|UPDATE|DELETE|CREATE|DROP|ALTER)", re.IGNORECASE
)
CHATTER_LINE_PATTERN = re.compile(
    r"^(?:CODE:|EXPLANATION:|SUCCESS|SCHEMA_MISMATCH|INVALID_REQUEST|Here are|These queries)",
    re.IGNORECASE,
)
SEPARATOR_LINE_PATTERN = re.compile(r"^[-*•=]{2,}$")
BULLET_PATTERN = re.compile(r"^[-*•]\s*")
NUMBERING_PATTERN = re.compile(r"^\d+[.)]\s*")


def parse_suggestions(content: str) -> list[str]:
    """Pull natural-language prompt suggestions out of a model reply.

    Drops fenced code, SQL-looking lines, format chatter and separators,
    strips list decoration and quotes, and keeps the first unique entries.
    """
    cleaned_content = CODE_FENCE_PATTERN.sub("", content.strip())

    suggestions: list[str] = []
    seen: set[str] = set()
    for raw_line in cleaned_content.split("\n"):
        line = raw_line.strip()
        if not _is_candidate(line):
            continue
        suggestion = _strip_decoration(line)
        if not (MIN_SUGGESTION_LENGTH <= len(suggestion) <= MAX_SUGGESTION_LENGTH):
            continue
        if SQL_PREFIX_PATTERN.match(suggestion) or suggestion in seen:
            continue
        seen.add(suggestion)
        suggestions.append(suggestion)
        if len(suggestions) >= MAX_SUGGESTIONS:
            break
    return suggestions


def _is_candidate(line: str) -> bool:
    if len(line) < MIN_SUGGESTION_LENGTH:
        return False
    if SQL_LINE_PATTERN.match(line) or CHATTER_LINE_PATTERN.match(line):
        return False
    if "```" in line or (line.startswith("`") and line.endswith("`")):
        return False
    return not SEPARATOR_LINE_PATTERN.match(line)


def _strip_decoration(line: str) -> str:
    line = BULLET_PATTERN.sub("", line, count=1)
    line = NUMBERING_PATTERN.sub("", line, count=1)
    line = line.removeprefix("-").lstrip()
    line = re.sub(r'^"\s*', "", line, count=1)
    line = re.sub(r'\s*"$', "", line, count=1)
    line = line.strip()
    if len(line) >= 2 and line.startswith('"') and line.endswith('"'):
        line = line[1:-1].strip()
    return line
