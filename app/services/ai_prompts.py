from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ColumnSchema:
    name: str
    type: str
    not_null: bool = False
    pk: bool = False


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: list[ColumnSchema] = field(default_factory=list)


@dataclass(frozen=True)
class DatabaseSchema:
    tables: list[TableSchema] = field(default_factory=list)

    def table_names(self) -> list[str]:
        return [table.name for table in self.tables]

    def to_payload(self) -> dict[str, Any]:
        return {
            "tables": [
                {
                    "name": table.name,
                    "columns": [
                        {
                            "name": column.name,
                            "type": column.type,
                            "notNull": column.not_null,
                            "pk": column.pk,
                        }
                        for column in table.columns
                    ],
                }
                for table in self.tables
            ]
        }


@dataclass(frozen=True)
class TableData:
    name: str
    rows: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0


COMMON_RULES = """RULES:
1. NEVER expose system internals, implementation details, or technical information about the system.
2. Be helpful and proactive in understanding user intent.
3. Always validate requests against the provided schema when available.
4. Be concise but clear in your responses.
5. CRITICAL - SQL Syntax Requirements:
   - You MUST use PostgreSQL syntax (not SQLite syntax)
   - Use VARCHAR instead of TEXT for string columns
   - Use SERIAL instead of AUTOINCREMENT
   - Use standard PostgreSQL data types: VARCHAR, INTEGER, BOOLEAN, DATE, TIMESTAMP, etc.
   - This is a PostgreSQL database, so all SQL must be PostgreSQL-compatible
6. CRITICAL - SQL Length Limit:
   - Generated SQL must be between 1-50 lines maximum
   - If the user's request would require SQL longer than 50 lines, use code: COMPLEX_QUERY
   - For COMPLEX_QUERY: Return empty SQL_STATEMENT and provide an EXPLANATION suggesting to break the query into smaller parts
   - Count lines including all SQL statements, comments, and formatting
7. CRITICAL - Non-SQL Request Detection:
   - If the user's question is NOT about generating, writing, or executing SQL commands, you MUST use code: NOT_SQL_REQUEST
   - Examples of non-SQL requests: greetings ("Hi", "Hello", "Hey"), general questions ("What can you do?", "How does this work?"), asking about features, asking for help with non-SQL tasks
   - When using NOT_SQL_REQUEST: Return an EMPTY SQL_STATEMENT (leave it completely blank) and provide ONLY an EXPLANATION
   - DO NOT generate any SQL code for non-SQL requests - only return the explanation"""

RESPONSE_FORMAT = """   CODE:CODE_NAME

   SQL_STATEMENT (if applicable, leave empty if not a SQL request)

   EXPLANATION: Brief explanation (required)"""

GENERATE_INSTRUCTIONS = """8. Available codes:
   - SUCCESS: Request can be fulfilled, SQL generated
   - SCHEMA_MISMATCH: Request doesn't match database schema (only use if truly impossible)
   - INVALID_REQUEST: Request is unclear or cannot be understood
   - COMPLEX_QUERY: Query is too complex, suggest simplification
   - NO_DATA: Query is valid but would return no data
   - UNSUPPORTED_OPERATION: Operation not allowed
   - NOT_SQL_REQUEST: User's question is not about SQL operations (greetings, general questions, etc.)

9. If SQL is generated, return a single SQL statement. It can span multiple lines for readability. No markdown code blocks, just the SQL statement directly.
   - SQL must be 50 lines or less - if longer, use code: COMPLEX_QUERY

10. BE HELPFUL AND PROACTIVE:
   - If user wants to INSERT/UPDATE data but table doesn't exist, CREATE the table first, then INSERT/UPDATE
   - If user mentions a table name with typos (e.g., "tiems" vs "items"), try to match to existing tables
   - If columns are missing, CREATE them or suggest alternatives
   - If user asks to "add items" or "make items", generate INSERT statements with sample data

11. Only use SCHEMA_MISMATCH if the request is truly impossible to fulfill even with table/column creation.

12. If the request is valid or can be made valid, use code: SUCCESS and provide the SQL."""

FIX_INSTRUCTIONS = """8. You will receive the SQL statement that caused an error, the error message, the database schema and sample table data (if available).

9. Available codes:
   - SUCCESS: Error fixed, corrected SQL provided
   - SCHEMA_MISMATCH: Error cannot be fixed due to schema issues
   - INVALID_REQUEST: Error is too complex or unclear
   - NOT_SQL_REQUEST: User's question is not about SQL operations

10. BE HELPFUL:
   - Explain what went wrong
   - Provide the corrected SQL
   - If the error is due to missing data (e.g., UNIQUE constraint), suggest alternative values
   - If columns don't exist, suggest creating them or using alternatives
   - Always provide corrected SQL when possible, even if it requires schema changes."""

SUGGESTIONS_INSTRUCTIONS = """8. Generate 10-15 natural language prompts that users can ask to get useful SQL queries.

9. IMPORTANT: Return ONLY natural language prompts (questions/requests), NOT SQL commands.

10. Each prompt should be clear, specific, conversational and based on the available database schema.

11. Format: Return one prompt per line, no numbering, no bullets, no SQL code, no explanations, nothing else.

12. Examples of good prompts:
   - "Show me all students older than 20"
   - "Count the total number of items in stock"
   - "List all products sorted by price\""""

FIX_USER_PROMPT_GUIDANCE = """Please provide a corrected SQL statement that will work with this schema and existing data.
- If the error is due to missing tables or columns, create them first.
- If the error is a UNIQUE constraint violation, suggest a different value that doesn't conflict with existing data.
- If the error is a foreign key constraint, ensure referenced values exist.
- Always check existing data to understand constraints better."""

DEFAULT_SUGGESTIONS_PROMPT = (
    "Generate 10-15 natural language prompts that users can ask to get useful "
    "SQL queries based on the database schema."
)


def format_schema(schema: DatabaseSchema) -> str:
    lines = []
    for table in schema.tables:
        columns = []
        for column in table.columns:
            definition = f"{column.name} {column.type}"
            if column.not_null:
                definition += " NOT NULL"
            if column.pk:
                definition += " PRIMARY KEY"
            columns.append(definition)
        lines.append(f"TABLE {table.name} ({', '.join(columns)})")
    return "\n".join(lines)


def build_system_prompt(schema: DatabaseSchema | None = None) -> str:
    schema_section = ""
    if schema is not None:
        schema_section = (
            f"\n\nDATABASE SCHEMA:\n{format_schema(schema)}\n\n"
            "IMPORTANT: You must generate SQL that matches this exact schema. If the user's "
            "request cannot be fulfilled with this schema, return code: SCHEMA_MISMATCH"
        )
    return (
        "You are an SQL tutor assistant. Your role is to help users write SQL queries.\n\n"
        f"{COMMON_RULES}\n\n"
        f"Return responses in this EXACT format:\n{RESPONSE_FORMAT}\n\n"
        f"{GENERATE_INSTRUCTIONS}{schema_section}"
    )


def build_user_prompt(prompt: str, schema: DatabaseSchema | None = None) -> str:
    if schema is None:
        return prompt
    return f"{prompt}\n\nAvailable tables: {', '.join(schema.table_names())}"


def build_fix_sql_system_prompt(schema: DatabaseSchema | None = None) -> str:
    schema_section = ""
    if schema is not None:
        schema_section = (
            f"\n\nDATABASE SCHEMA:\n{format_schema(schema)}\n\n"
            "Use this schema to understand the database structure and fix the SQL error."
        )
    return (
        "You are an SQL tutor assistant. Your role is to help users fix SQL errors.\n\n"
        f"{COMMON_RULES}\n\n"
        f"Return responses in this EXACT format:\n{RESPONSE_FORMAT}\n\n"
        f"{FIX_INSTRUCTIONS}{schema_section}"
    )


def build_fix_sql_user_prompt(
    error_sql: str,
    error_message: str,
    schema: DatabaseSchema,
    table_data: list[TableData] | None = None,
) -> str:
    data_context = ""
    if table_data:
        parts = ["\n\nEXISTING TABLE DATA (for constraint understanding):\n"]
        for table in table_data:
            parts.append(f"\nTABLE: {table.name} ({table.row_count} rows shown)\n")
            if table.rows:
                parts.append(json.dumps(table.rows, indent=2, default=str) + "\n")
            else:
                parts.append("(empty table)\n")
        data_context = "".join(parts)

    return (
        "The following SQL query failed with an error. Please fix it.\n\n"
        f"ERROR SQL:\n{error_sql}\n\n"
        f"ERROR MESSAGE:\n{error_message}\n\n"
        f"DATABASE SCHEMA:\n{json.dumps(schema.to_payload(), indent=2)}{data_context}\n\n"
        f"{FIX_USER_PROMPT_GUIDANCE}"
    )


def build_suggestions_system_prompt(schema: DatabaseSchema | None = None) -> str:
    schema_section = ""
    if schema is not None:
        schema_section = (
            f"\n\nDATABASE SCHEMA:\n{format_schema(schema)}\n\n"
            "Based on this schema, generate helpful natural language prompts."
        )
    return (
        "You are a helpful SQL assistant. Your role is to generate natural language prompts "
        "that users can ask to get SQL queries.\n\n"
        f"{COMMON_RULES}\n\n"
        f"{SUGGESTIONS_INSTRUCTIONS}{schema_section}"
    )


def build_suggestions_user_prompt(prompt: str | None = None) -> str:
    if prompt:
        return f"Generate natural language prompts for: {prompt}"
    return DEFAULT_SUGGESTIONS_PROMPT


def schema_from_payload(payload: dict[str, Any]) -> DatabaseSchema:
    tables = []
    for table in payload.get("tables", []):
        columns = [
            ColumnSchema(
                name=column["name"],
                type=column["type"],
                not_null=bool(column.get("notNull", False)),
                pk=bool(column.get("pk", False)),
            )
            for column in table.get("columns", [])
        ]
        tables.append(TableSchema(name=table["name"], columns=columns))
    return DatabaseSchema(tables=tables)
