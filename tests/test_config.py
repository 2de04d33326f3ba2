from __future__ import annotations

import pytest

from datasense_mcp.services.config_service import ConfigService


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "DATASENSE_DATABASE_URL",
        "DATASENSE_DEFAULT_DIALECT",
        "DATASENSE_LLM_PROVIDER",
        "DATASENSE_LLM_MODEL",
        "DATASENSE_REDIS_URL",
        "DATASENSE_APPLY_ENHANCEMENT",
        "DATASENSE_RESULT_MAX_ROWS",
    ):
        monkeypatch.delenv(name, raising=False)

    assert ConfigService.get_database_url() is None
    assert ConfigService.default_dialect() == "tsql"
    llm = ConfigService.get_llm_config()
    assert llm.provider == "ollama"
    assert llm.model == "llama3.1:8b"
    assert ConfigService.apply_enhancement() is True
    assert ConfigService.result_budget().max_rows == 50
    consumer = ConfigService.get_consumer_config()
    assert consumer.redis_url is None
    assert consumer.queue_key == "datasense:jobs"
    assert consumer.concurrency == 1


@pytest.mark.parametrize(
    ("url", "dialect"),
    [
        ("postgresql+psycopg://u:p@localhost/app", "postgres"),
        ("mssql+pyodbc://u:p@dsn", "tsql"),
        ("sqlite:///local.db", "sqlite"),
        ("mysql+pymysql://u:p@localhost/app", "mysql"),
    ],
)
def test_dialect_derived_from_database_url(
    monkeypatch: pytest.MonkeyPatch, url: str, dialect: str
) -> None:
    monkeypatch.delenv("DATASENSE_DEFAULT_DIALECT", raising=False)
    monkeypatch.setenv("DATASENSE_DATABASE_URL", url)
    assert ConfigService.default_dialect() == dialect


def test_explicit_dialect_accepts_database_type_names(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATASENSE_DEFAULT_DIALECT", "sqlserver")
    monkeypatch.setenv("DATASENSE_DATABASE_URL", "sqlite:///local.db")
    assert ConfigService.default_dialect() == "tsql"


def test_numeric_settings_fall_back_and_clamp(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATASENSE_MAX_TABLES", "not-a-number")
    monkeypatch.setenv("DATASENSE_CONSUMER_CONCURRENCY", "0")
    monkeypatch.setenv("DATASENSE_LLM_TIMEOUT", "2.5")
    assert ConfigService.max_tables() == 500
    assert ConfigService.get_consumer_config().concurrency == 1
    assert ConfigService.get_llm_config().timeout == 2.5


def test_schema_lists(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATASENSE_INCLUDE_SCHEMAS", " dbo, sales ,,")
    monkeypatch.delenv("DATASENSE_EXCLUDE_SCHEMAS", raising=False)
    assert ConfigService.include_schemas() == ["dbo", "sales"]
    assert ConfigService.exclude_schemas() is None


def test_unknown_provider_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATASENSE_LLM_PROVIDER", "carrier-pigeon")
    with pytest.raises(ValueError, match="DATASENSE_LLM_PROVIDER"):
        ConfigService.get_llm_config()


@pytest.mark.parametrize(("raw", "expected"), [("false", False), ("0", False), ("YES", True)])
def test_apply_enhancement_flag(monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:
    monkeypatch.setenv("DATASENSE_APPLY_ENHANCEMENT", raw)
    assert ConfigService.apply_enhancement() is expected
