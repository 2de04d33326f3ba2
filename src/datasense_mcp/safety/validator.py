"""SQL safety gate built on the sqlglot tokenizer and parser.

Two pure operations:

- `sanitize` performs deterministic textual correction of model output
  (code fences, comments, trailing separators) and is idempotent.
- `check` applies a closed allow-list: the text must tokenize, contain no
  statement separator or forbidden keyword, start like a read query and
  parse as exactly one SELECT (or set operation of SELECTs). Anything not
  positively recognized is rejected.

All methods are side-effect-free and designed for unit testing.
"""

from __future__ import annotations

from functools import lru_cache
import logging
import re
from typing import Final

import sqlglot
from sqlglot import expressions as sgl_exp
from sqlglot.dialects.dialect import Dialect as SqlglotDialect
from sqlglot.errors import SqlglotError
from sqlglot.tokens import Token, TokenType

from .models import Dialect, SafetyVerdict, SqlCandidate

SQLALCHEMY_TO_SQLGLOT: dict[str, Dialect] = {
    "postgresql": "postgres",
    "postgres": "postgres",
    "pgsql": "postgres",
    "mysql": "mysql",
    "mariadb": "mysql",
    "sqlite": "sqlite",
    "mssql": "tsql",
    "sqlserver": "tsql",
    "tsql": "tsql",
    "oracle": "oracle",
    "snowflake": "snowflake",
    "bigquery": "bigquery",
}


def map_sqlalchemy_to_sqlglot(sa_dialect_name: str) -> Dialect:
    """Map a SQLAlchemy dialect or database-type name to a sqlglot dialect literal.

    Falls back to generic "sql" when unknown.
    """
    return SQLALCHEMY_TO_SQLGLOT.get(sa_dialect_name.strip().lower(), "sql")


# Whole-token, case-insensitive. Covers DML, DDL, privilege, procedural,
# transaction, session and file/server access constructs.
FORBIDDEN_KEYWORDS: Final[frozenset[str]] = frozenset(
    {
        "INSERT",
        "UPDATE",
        "DELETE",
        "MERGE",
        "UPSERT",
        "DROP",
        "ALTER",
        "CREATE",
        "TRUNCATE",
        "RENAME",
        "GRANT",
        "REVOKE",
        "DENY",
        "EXEC",
        "EXECUTE",
        "CALL",
        "INTO",
        "ATTACH",
        "DETACH",
        "PRAGMA",
        "COPY",
        "VACUUM",
        "REINDEX",
        "LOCK",
        "UNLOCK",
        "SHUTDOWN",
        "KILL",
        "BACKUP",
        "RESTORE",
        "DBCC",
        "RECONFIGURE",
        "DECLARE",
        "BEGIN",
        "COMMIT",
        "ROLLBACK",
        "SAVEPOINT",
        "LOAD",
        "OUTFILE",
        "DUMPFILE",
        "HANDLER",
        "BULK",
        "OPENROWSET",
        "OPENDATASOURCE",
        "OPENQUERY",
        "SP_EXECUTESQL",
        "XP_CMDSHELL",
        "LOAD_FILE",
        "PG_READ_FILE",
        "PG_READ_BINARY_FILE",
        "PG_LS_DIR",
    }
)

# Functions with side effects even inside a plain SELECT. Matched as whole
# tokens, like the keywords above.
SIDE_EFFECT_FUNCTIONS: Final[frozenset[str]] = frozenset(
    {
        # postgres
        "DBLINK",
        "DBLINK_EXEC",
        "DBLINK_CONNECT",
        "DBLINK_CONNECT_U",
        "DBLINK_SEND_QUERY",
        "SETVAL",
        "NEXTVAL",
        "SET_CONFIG",
        "LO_IMPORT",
        "LO_EXPORT",
        "LO_UNLINK",
        "LO_CREATE",
        "LO_CREAT",
        "LO_FROM_BYTEA",
        "LO_PUT",
        "PG_SLEEP",
        "PG_SLEEP_FOR",
        "PG_SLEEP_UNTIL",
        "PG_TERMINATE_BACKEND",
        "PG_CANCEL_BACKEND",
        "PG_RELOAD_CONF",
        "PG_ROTATE_LOGFILE",
        "PG_ADVISORY_LOCK",
        "PG_ADVISORY_XACT_LOCK",
        "PG_TRY_ADVISORY_LOCK",
        "PG_FILE_WRITE",
        # mysql
        "SLEEP",
        "BENCHMARK",
        "GET_LOCK",
        # sql server
        "WAITFOR",
    }
)

FORBIDDEN_TOKENS: Final[frozenset[str]] = FORBIDDEN_KEYWORDS | SIDE_EFFECT_FUNCTIONS

# Token types whose text is literal data, never SQL.
_LITERAL_TOKEN_TYPES: Final[frozenset[TokenType]] = frozenset(
    tt
    for tt in (
        getattr(TokenType, name, None)
        for name in (
            "STRING",
            "NATIONAL_STRING",
            "RAW_STRING",
            "HEREDOC_STRING",
            "UNICODE_STRING",
            "BYTE_STRING",
            "BIT_STRING",
            "HEX_STRING",
        )
    )
    if tt is not None
)

_ALLOWED_ROOTS: Final[tuple[type[sgl_exp.Expression], ...]] = (
    sgl_exp.Select,
    sgl_exp.Union,
    sgl_exp.Intersect,
    sgl_exp.Except,
    sgl_exp.Subquery,
)

# Node types that must never appear anywhere in an accepted tree.
_FORBIDDEN_NODES: Final[tuple[type[sgl_exp.Expression], ...]] = tuple(
    node
    for node in (
        getattr(sgl_exp, name, None)
        for name in (
            "Insert",
            "Update",
            "Delete",
            "Merge",
            "Drop",
            "Create",
            "Alter",
            "AlterTable",
            "TruncateTable",
            "Command",
            "Into",
            "Pragma",
            "Set",
            "Transaction",
            "Commit",
            "Rollback",
            "Use",
        )
    )
    if isinstance(node, type)
)

_FENCED_BLOCK = re.compile(r"```[A-Za-z0-9_+-]*[ \t]*\n?(.*?)```", re.DOTALL)
_LEADING_FENCE = re.compile(r"\A\s*```[A-Za-z0-9_+-]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?```\s*\Z")
_QUOTE_CLOSERS: Final[dict[str, str]] = {"'": "'", '"': '"', "`": "`", "[": "]"}


def _read_dialect(dialect: Dialect) -> str | None:
    return None if dialect == "sql" else dialect


@lru_cache(maxsize=256)
def _cached_tokens(sql: str, dialect: Dialect) -> tuple[Token, ...]:
    """Small cache for tokenizer results to speed up repetitive calls."""
    return tuple(SqlglotDialect.get_or_raise(_read_dialect(dialect)).tokenize(sql))


def _strip_fences(text: str) -> str:
    match = _FENCED_BLOCK.search(text)
    if match:
        return match.group(1)
    text = _LEADING_FENCE.sub("", text)
    return _TRAILING_FENCE.sub("", text)


def _strip_comments(sql: str) -> str:
    """Remove `--` and `/* */` comments outside of quoted text.

    Block comments become a single space so adjacent tokens never merge; an
    unterminated block comment swallows the rest of the text.
    """
    out: list[str] = []
    closer: str | None = None
    i = 0
    n = len(sql)
    while i < n:
        ch = sql[i]
        if closer is not None:
            out.append(ch)
            if ch == closer:
                if i + 1 < n and sql[i + 1] == closer:
                    out.append(closer)
                    i += 2
                    continue
                closer = None
            i += 1
            continue
        if ch in _QUOTE_CLOSERS:
            closer = _QUOTE_CLOSERS[ch]
            out.append(ch)
            i += 1
            continue
        if sql.startswith("--", i):
            newline = sql.find("\n", i)
            i = n if newline == -1 else newline
            continue
        if sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            out.append(" ")
            i = n if end == -1 else end + 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _strip_trailing_separators(sql: str) -> str:
    s = sql.strip()
    while s.endswith(";"):
        s = s[:-1].rstrip()
    return s


class SqlSafetyValidator:
    """Sanitize and classify model-generated SQL.

    The validator is the only barrier between model output and a live
    database, so every rule rejects by default.
    """

    def __init__(
        self, default_dialect: Dialect = "sql", logger: logging.Logger | None = None
    ) -> None:
        self.default_dialect = default_dialect
        self._logger = logger or logging.getLogger(__name__)

    # ---- sanitize -------------------------------------------------------
    def sanitize(self, raw_sql: str) -> str:
        """Normalize model output; applying it twice changes nothing."""
        text = raw_sql or ""
        while True:
            cleaned = self._sanitize_once(text)
            if cleaned == text:
                return cleaned
            text = cleaned

    @staticmethod
    def _sanitize_once(text: str) -> str:
        text = _strip_fences(text.strip())
        text = _strip_comments(text)
        return _strip_trailing_separators(text)

    # ---- allow-list -----------------------------------------------------
    def check(self, sanitized_sql: str, dialect: Dialect | None = None) -> SafetyVerdict:
        """Return the allow-list verdict for already sanitized SQL."""
        dialect = dialect or self.default_dialect
        if not sanitized_sql or not sanitized_sql.strip():
            return SafetyVerdict.unsafe("empty statement")

        try:
            tokens = _cached_tokens(sanitized_sql, dialect)
        except SqlglotError as e:
            return SafetyVerdict.unsafe(f"tokenization failed: {e}")
        if not tokens:
            return SafetyVerdict.unsafe("empty statement")

        for token in tokens:
            if token.token_type == TokenType.SEMICOLON:
                return SafetyVerdict.unsafe("multiple statements are not allowed")
            if token.token_type in _LITERAL_TOKEN_TYPES:
                continue
            word = token.text.upper()
            if word in FORBIDDEN_TOKENS:
                kind = "function" if word in SIDE_EFFECT_FUNCTIONS else "keyword"
                return SafetyVerdict.unsafe(f"forbidden {kind}: {word}")

        first = next((t for t in tokens if t.token_type != TokenType.L_PAREN), None)
        if first is None or first.token_type not in {TokenType.SELECT, TokenType.WITH}:
            return SafetyVerdict.unsafe("only SELECT queries are permitted")

        try:
            statements = [
                stmt
                for stmt in sqlglot.parse(sanitized_sql, read=_read_dialect(dialect))
                if stmt is not None
            ]
        except SqlglotError as e:
            return SafetyVerdict.unsafe(f"SQL parsing error: {e}")

        if len(statements) != 1:
            return SafetyVerdict.unsafe("expected exactly one statement")
        statement = statements[0]
        if not isinstance(statement, _ALLOWED_ROOTS):
            return SafetyVerdict.unsafe(
                f"statement type {type(statement).__name__} is not a read query"
            )
        if _FORBIDDEN_NODES:
            offending = statement.find(*_FORBIDDEN_NODES)
            if offending is not None:
                return SafetyVerdict.unsafe(
                    f"statement contains a {type(offending).__name__} clause"
                )
        return SafetyVerdict.safe()

    def is_safe(self, sanitized_sql: str, dialect: Dialect | None = None) -> bool:
        """Boolean form of `check`."""
        verdict = self.check(sanitized_sql, dialect)
        if not verdict.is_safe:
            self._logger.warning("SQL rejected by safety gate: %s", verdict.reason)
        return verdict.is_safe

    def validate(self, raw_sql: str, dialect: Dialect | None = None) -> SqlCandidate:
        """Sanitize then check, returning the full candidate."""
        sanitized = self.sanitize(raw_sql)
        return SqlCandidate(
            raw_text=raw_sql,
            sanitized_text=sanitized,
            verdict=self.check(sanitized, dialect),
        )
