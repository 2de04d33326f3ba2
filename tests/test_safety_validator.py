from __future__ import annotations

import pytest

from datasense_mcp.safety import Dialect, SqlSafetyValidator, map_sqlalchemy_to_sqlglot


@pytest.fixture
def validator() -> SqlSafetyValidator:
    return SqlSafetyValidator(default_dialect="tsql")


def test_map_sqlalchemy_to_sqlglot_known() -> None:
    assert map_sqlalchemy_to_sqlglot("postgresql") == "postgres"
    assert map_sqlalchemy_to_sqlglot("mssql") == "tsql"
    assert map_sqlalchemy_to_sqlglot("sqlserver") == "tsql"
    assert map_sqlalchemy_to_sqlglot("sqlite") == "sqlite"
    assert map_sqlalchemy_to_sqlglot("something-else") == "sql"


@pytest.mark.parametrize(
    "sql",
    [
        "SELECT * FROM users",
        "select id, name from dbo.users where id = 1",
        "  \n\tSELECT COUNT(*) FROM users  \n",
        "WITH recent AS (SELECT id FROM orders) SELECT COUNT(*) FROM recent",
        "SELECT u.name, SUM(o.total) FROM users u JOIN orders o ON o.user_id = u.id "
        "GROUP BY u.name",
        "SELECT name FROM users UNION SELECT name FROM customers",
        "SELECT TOP 10 name FROM users ORDER BY name",
    ],
)
def test_accepts_read_queries(validator: SqlSafetyValidator, sql: str) -> None:
    verdict = validator.check(validator.sanitize(sql))
    assert verdict.is_safe, verdict.reason
    assert verdict.reason is None


@pytest.mark.parametrize(
    "sql",
    [
        "SELECT * FROM users; DROP TABLE users",
        "SELECT 1; SELECT 2",
        "select * from users;delete from users",
    ],
)
def test_rejects_multiple_statements(validator: SqlSafetyValidator, sql: str) -> None:
    verdict = validator.check(validator.sanitize(sql))
    assert verdict.is_safe is False
    assert verdict.reason


@pytest.mark.parametrize(
    "sql",
    [
        "DELETE FROM users",
        "delete from users where id = 1",
        "DeLeTe FROM users",
        "DROP TABLE users",
        "UPDATE users SET name = 'x'",
        "INSERT INTO users (name) VALUES ('x')",
        "TRUNCATE TABLE users",
        "ALTER TABLE users ADD age INT",
        "CREATE TABLE t (id INT)",
        "GRANT SELECT ON users TO guest",
        "EXEC sp_who",
        "MERGE INTO users USING staging ON users.id = staging.id WHEN MATCHED THEN DELETE",
        "SELECT * INTO backup_users FROM users",
        "SELECT pg_sleep(10)",
    ],
)
def test_rejects_forbidden_keywords(validator: SqlSafetyValidator, sql: str) -> None:
    candidate = validator.validate(sql)
    assert candidate.is_safe is False
    assert candidate.verdict.reason


@pytest.mark.parametrize("sql", ["", "   ", "SHOW TABLES", "EXPLAIN SELECT 1"])
def test_rejects_non_select(validator: SqlSafetyValidator, sql: str) -> None:
    assert validator.is_safe(validator.sanitize(sql)) is False


def test_keywords_inside_string_literals_are_data(validator: SqlSafetyValidator) -> None:
    sql = "SELECT name FROM users WHERE note = 'please DROP this; then DELETE it'"
    assert validator.is_safe(sql)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("```sql\nSELECT * FROM users;\n```", "SELECT * FROM users"),
        ("```\nSELECT 1\n```", "SELECT 1"),
        ("Here you go:\n```sql\nSELECT 1\n```\nEnjoy", "SELECT 1"),
        ("SELECT 1;", "SELECT 1"),
        ("SELECT 1 ; ;  ", "SELECT 1"),
        ("SELECT id -- pick the id\nFROM users", "SELECT id \nFROM users"),
        ("SELECT /* all */ * FROM users", "SELECT   * FROM users"),
        ("SELECT '--not a comment' FROM users", "SELECT '--not a comment' FROM users"),
    ],
)
def test_sanitize_strips_fences_comments_and_separators(
    validator: SqlSafetyValidator, raw: str, expected: str
) -> None:
    assert validator.sanitize(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "```sql\nSELECT 1;\n```",
        "```sql\n```sql\nSELECT 1\n```\n```",
        "SELECT 1; -- trailing\n;",
        "SELECT 1 /* a */ ; /* b */",
        "```\nSELECT 'x;' FROM t -- c\n```;",
        "select * from users;delete from users",
        "",
    ],
)
def test_sanitize_is_idempotent(validator: SqlSafetyValidator, raw: str) -> None:
    once = validator.sanitize(raw)
    assert validator.sanitize(once) == once


def test_comment_hiding_second_statement_is_removed(validator: SqlSafetyValidator) -> None:
    candidate = validator.validate("SELECT * FROM users -- ; DROP TABLE users")
    assert candidate.sanitized_text == "SELECT * FROM users"
    assert candidate.is_safe


def test_validate_keeps_raw_text(validator: SqlSafetyValidator) -> None:
    raw = "```sql\nSELECT 1\n```"
    candidate = validator.validate(raw, "postgres")
    assert candidate.raw_text == raw
    assert candidate.sanitized_text == "SELECT 1"
    assert candidate.is_safe


@pytest.mark.parametrize(
    ("sql", "dialect"),
    [
        ("SELECT dblink_exec('host=x', 'DROP TABLE users')", "postgres"),
        ("SELECT * FROM dblink_connect('host=x')", "postgres"),
        ("SELECT setval('users_id_seq', 1)", "postgres"),
        ("SELECT nextval('users_id_seq')", "postgres"),
        ("SELECT set_config('role', 'admin', false)", "postgres"),
        ("SELECT pg_reload_conf()", "postgres"),
        ("SELECT pg_rotate_logfile()", "postgres"),
        ("SELECT pg_advisory_lock(1)", "postgres"),
        ("SELECT lo_unlink(1234)", "postgres"),
        ("SELECT lo_create(0)", "postgres"),
        ("SELECT name FROM users WHERE id = 1 AND SLEEP(100) = 0", "mysql"),
        ("SELECT BENCHMARK(1000000, MD5('x'))", "mysql"),
        ("SELECT 1 WAITFOR DELAY '00:00:10'", "tsql"),
    ],
)
def test_rejects_side_effect_functions(
    validator: SqlSafetyValidator, sql: str, dialect: Dialect
) -> None:
    verdict = validator.check(validator.sanitize(sql), dialect)
    assert verdict.is_safe is False
    assert verdict.reason is not None
    assert verdict.reason.startswith("forbidden")


def test_side_effect_function_names_inside_literals_are_data(
    validator: SqlSafetyValidator,
) -> None:
    assert validator.is_safe("SELECT name FROM jobs WHERE note = 'retry after sleep(5)'")
