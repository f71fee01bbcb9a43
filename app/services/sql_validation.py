from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from sqlglot import exp, parse

from app.services.safe_sql import summarize_sql

logger = logging.getLogger(__name__)
# its Command-fallback warning quotes the statement text
logging.getLogger("sqlglot").setLevel(logging.ERROR)

DIALECT = "postgres"

ALLOWED_STATEMENT_KINDS = (
    "select",
    "insert",
    "update",
    "delete",
    "create",
    "drop",
    "alter",
    "truncate",
    "with",
)

# sqlglot node keys that name an allowed kind differently
KIND_ALIASES = {
    "truncatetable": "truncate",
    "altertable": "alter",
    "union": "select",
    "intersect": "select",
    "except": "select",
}

SET_OPERATIONS = (exp.Union, exp.Intersect, exp.Except)
DML_TARGETS = (exp.Insert, exp.Update, exp.Delete)


@dataclass(frozen=True)
class BlockedPattern:
    pattern: re.Pattern[str]
    name: str


# Matched against the raw text: psql meta-commands such as \copy never reach the parser as a
# statement of their own.
BLOCKED_PATTERNS: tuple[BlockedPattern, ...] = (
    BlockedPattern(re.compile(r"\bcopy\s+from\b", re.IGNORECASE), "COPY FROM"),
    BlockedPattern(re.compile(r"\bcopy\s+to\b", re.IGNORECASE), "COPY TO"),
    BlockedPattern(re.compile(r"\\copy", re.IGNORECASE), "\\COPY"),
    BlockedPattern(re.compile(r"\bcreate\s+extension\b", re.IGNORECASE), "CREATE EXTENSION"),
    BlockedPattern(re.compile(r"\bgrant\s+", re.IGNORECASE), "GRANT"),
    BlockedPattern(re.compile(r"\brevoke\s+", re.IGNORECASE), "REVOKE"),
    BlockedPattern(re.compile(r"\bcreate\s+user\b", re.IGNORECASE), "CREATE USER"),
    BlockedPattern(re.compile(r"\bcreate\s+role\b", re.IGNORECASE), "CREATE ROLE"),
    BlockedPattern(re.compile(r"\bdrop\s+user\b", re.IGNORECASE), "DROP USER"),
    BlockedPattern(re.compile(r"\bdrop\s+role\b", re.IGNORECASE), "DROP ROLE"),
)


class SqlParseError(ValueError):
    pass


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    statements: list[exp.Expression] = field(default_factory=list)
    reason: str | None = None

    @classmethod
    def accept(cls, statements: list[exp.Expression]) -> ValidationResult:
        return cls(ok=True, statements=statements)

    @classmethod
    def reject(cls, reason: str) -> ValidationResult:
        return cls(ok=False, reason=reason)


def parse_sql_to_ast(sql: str) -> list[exp.Expression]:
    try:
        parsed = parse(sql, read=DIALECT)
    except Exception as exc:  # noqa: BLE001 - every parser failure is a rejection
        raise SqlParseError(f"SQL parse error: {exc}") from exc
    return _flatten(parsed)


def validate_sql(sql: str, allowed_tables: Sequence[str] | None = None) -> ValidationResult:
    """Check model-produced SQL before it is handed to the execution engine.

    All-or-nothing: the first statement that fails a check rejects the whole
    input. Returns the parsed statements on success.
    """
    if not sql or not isinstance(sql, str):
        return _rejected(sql, "Empty SQL")

    # only confirms there is something to parse; statements come from the full text
    fragments = [fragment.strip() for fragment in sql.split(";")]
    if not any(fragments):
        return _rejected(sql, "Empty SQL")

    try:
        statements = parse_sql_to_ast(sql)
    except SqlParseError as exc:
        return _rejected(sql, str(exc))
    if not statements:
        return _rejected(sql, "Empty SQL")

    allowed = list(allowed_tables or [])
    for statement in statements:
        kind = statement_kind(statement)
        if kind not in ALLOWED_STATEMENT_KINDS:
            supported = ", ".join(ALLOWED_STATEMENT_KINDS).upper()
            return _rejected(
                sql,
                f"Statement type '{kind}' is not supported. Supported types: {supported}.",
            )

        blocked = find_blocked_operation(sql)
        if blocked:
            return _rejected(
                sql,
                f"Operation '{blocked}' is not allowed in PGlite (browser environment).",
            )

        if allowed:
            for table in extract_table_names(statement):
                if table not in allowed:
                    return _rejected(
                        sql,
                        f"Table '{table}' is not allowed. Allowed tables: {', '.join(allowed)}",
                    )

    summary = summarize_sql(sql)
    logger.info(
        "validate_sql: ok statements=%s sql_len=%s sql_hash=%s",
        len(statements),
        summary["len"],
        summary["sha256_8"],
    )
    return ValidationResult.accept(statements)


validate = validate_sql


def statement_kind(node: exp.Expression) -> str:
    if isinstance(node, exp.Command):
        return node.name.lower()
    key = node.key.lower()
    return KIND_ALIASES.get(key, key)


def find_blocked_operation(sql: str) -> str | None:
    for blocked in BLOCKED_PATTERNS:
        if blocked.pattern.search(sql):
            return blocked.name
    return None


def extract_table_names(node: exp.Expression) -> list[str]:
    """Tables named in the statement's own FROM/JOIN clauses and DML target.

    CTE names and subquery aliases are not resolved; a CTE referenced in FROM
    is reported like any other table.
    """
    tables: list[str] = []

    if isinstance(node, SET_OPERATIONS):
        for side in (node.left, node.right):
            if isinstance(side, exp.Expression):
                tables.extend(extract_table_names(side))
        return _unique(tables)

    for child in node.iter_expressions():
        if isinstance(child, exp.From):
            tables.extend(_table_names(child.this))
        elif isinstance(child, exp.Join):
            tables.extend(_table_names(child.this))

    if isinstance(node, DML_TARGETS):
        tables.extend(_table_names(node.this))

    # DELETE ... USING s, u JOIN v
    if isinstance(node, exp.Delete):
        for source in node.args.get("using") or []:
            tables.extend(_table_names(source))
            for join in source.args.get("joins") or []:
                tables.extend(_table_names(join.this))

    return _unique(tables)


def _table_names(node: exp.Expression | None) -> list[str]:
    # INSERT INTO t (a, b) wraps the table in a Schema node
    if isinstance(node, exp.Schema):
        node = node.this
    if isinstance(node, exp.Table) and node.name:
        return [node.name]
    return []


def _flatten(parsed: Iterable[object]) -> list[exp.Expression]:
    statements: list[exp.Expression] = []
    for item in parsed:
        if isinstance(item, exp.Semicolon):
            # trailing comment after the last ";"
            continue
        if isinstance(item, exp.Expression):
            statements.append(item)
        elif isinstance(item, (list, tuple)):
            statements.extend(_flatten(item))
    return statements


def _unique(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


def _rejected(sql: object, reason: str) -> ValidationResult:
    summary = summarize_sql(sql) if isinstance(sql, str) else {"len": 0, "sha256_8": "-"}
    logger.warning(
        "validate_sql: rejected reason=%s sql_len=%s sql_hash=%s",
        reason.split(":")[0] if reason.startswith("SQL parse error") else reason,
        summary["len"],
        summary["sha256_8"],
    )
    return ValidationResult.reject(reason)
