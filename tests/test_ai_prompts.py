from __future__ import annotations

import json

from app.services.ai_prompts import (
    ColumnSchema,
    DatabaseSchema,
    TableData,
    TableSchema,
    build_fix_sql_system_prompt,
    build_fix_sql_user_prompt,
    build_suggestions_system_prompt,
    build_suggestions_user_prompt,
    build_system_prompt,
    build_user_prompt,
    format_schema,
    schema_from_payload,
)

SCHEMA = DatabaseSchema(
    tables=[
        TableSchema(
            name="users",
            columns=[
                ColumnSchema(name="id", type="INTEGER", not_null=True, pk=True),
                ColumnSchema(name="email", type="VARCHAR", not_null=True),
                ColumnSchema(name="nickname", type="VARCHAR"),
            ],
        ),
        TableSchema(name="orders", columns=[ColumnSchema(name="total", type="NUMERIC")]),
    ]
)


def test_format_schema_lists_one_table_per_line() -> None:
    assert format_schema(SCHEMA) == (
        "TABLE users (id INTEGER NOT NULL PRIMARY KEY, email VARCHAR NOT NULL, "
        "nickname VARCHAR)\n"
        "TABLE orders (total NUMERIC)"
    )


def test_system_prompt_without_schema_has_rules_and_codes() -> None:
    prompt = build_system_prompt()

    assert "RULES:" in prompt
    assert "CODE:CODE_NAME" in prompt
    assert "NOT_SQL_REQUEST" in prompt
    assert "DATABASE SCHEMA:" not in prompt


def test_system_prompt_with_schema_embeds_tables() -> None:
    prompt = build_system_prompt(SCHEMA)

    assert "DATABASE SCHEMA:\nTABLE users (" in prompt
    assert "return code: SCHEMA_MISMATCH" in prompt


def test_user_prompt_appends_available_tables() -> None:
    assert build_user_prompt("list users") == "list users"
    assert build_user_prompt("list users", SCHEMA) == (
        "list users\n\nAvailable tables: users, orders"
    )


def test_fix_prompts_carry_error_context_and_table_data() -> None:
    system_prompt = build_fix_sql_system_prompt(SCHEMA)
    user_prompt = build_fix_sql_user_prompt(
        "INSERT INTO users (id) VALUES (1)",
        "duplicate key value violates unique constraint",
        SCHEMA,
        [
            TableData(name="users", rows=[{"id": 1}], row_count=1),
            TableData(name="orders"),
        ],
    )

    assert "help users fix SQL errors" in system_prompt
    assert "ERROR SQL:\nINSERT INTO users (id) VALUES (1)" in user_prompt
    assert "ERROR MESSAGE:\nduplicate key value" in user_prompt
    assert json.dumps(SCHEMA.to_payload(), indent=2) in user_prompt
    assert "TABLE: users (1 rows shown)" in user_prompt
    assert "TABLE: orders (0 rows shown)\n(empty table)" in user_prompt
    assert user_prompt.endswith("Always check existing data to understand constraints better.")


def test_fix_user_prompt_without_table_data() -> None:
    user_prompt = build_fix_sql_user_prompt("SELECT nope", "syntax error", SCHEMA)

    assert "EXISTING TABLE DATA" not in user_prompt


def test_suggestion_prompts() -> None:
    assert "NOT SQL commands" in build_suggestions_system_prompt(SCHEMA)
    assert build_suggestions_user_prompt("sales") == "Generate natural language prompts for: sales"
    assert build_suggestions_user_prompt(None).startswith("Generate 10-15 natural language prompts")


def test_schema_from_payload_reads_camel_case_flags() -> None:
    schema = schema_from_payload(SCHEMA.to_payload())

    assert schema == SCHEMA
    assert schema.table_names() == ["users", "orders"]
