from __future__ import annotations

import json

from fastmcp import Client, FastMCP
import pytest

from datasense_mcp.generation.mcp_tools import register_generation_tools
from datasense_mcp.interpretation.mcp_tools import register_interpretation_tools
from datasense_mcp.schema.mcp_tools import register_schema_tools
from datasense_mcp.services.schema_cache import SchemaCache
from datasense_mcp.services.service_registry import ServiceRegistry


def _server(llm, cache: SchemaCache) -> FastMCP:
    mcp = FastMCP(name="datasense-test")
    registry = ServiceRegistry(llm, cache, default_dialect="tsql")
    register_schema_tools(mcp, cache)
    register_generation_tools(mcp, registry)
    register_interpretation_tools(mcp, registry)
    return mcp


@pytest.mark.asyncio
async def test_generate_sql_tool_returns_sql_and_metadata(
    make_llm, make_reader, users_snapshot
) -> None:
    cache = SchemaCache(make_reader(users_snapshot))
    await cache.refresh()
    mcp = _server(make_llm(["```sql\nSELECT name FROM dbo.users\n```"]), cache)

    async with Client(mcp) as client:
        result = await client.call_tool("generate_sql", {"question": "list user names"})

    data = result.structured_content
    assert data is not None
    assert data["is_valid"] is True
    assert data["sql"] == "SELECT name FROM dbo.users"
    assert data["metadata"]["dialect"] == "tsql"
    assert data["metadata"]["tables_count"] == 2
    assert data["metadata"]["schema_source"] == "cache"


@pytest.mark.asyncio
async def test_generate_sql_tool_reports_unsafe_output(make_llm) -> None:
    mcp = _server(make_llm(["DROP TABLE users"]), SchemaCache(None))

    async with Client(mcp) as client:
        result = await client.call_tool(
            "generate_sql", {"question": "remove the users table", "dialect": "postgres"}
        )

    data = result.structured_content
    assert data is not None
    assert data["is_valid"] is False
    assert data["status"] == "error"
    assert data["error_type"] == "UnsafeGeneratedQueryError"
    assert data["sql"] == ""
    assert data["metadata"]["schema_source"] == "empty"


@pytest.mark.asyncio
async def test_interpret_results_tool(make_llm) -> None:
    answer = json.dumps({"analysis": "a", "answer": "b", "summary": "c"})
    mcp = _server(make_llm([answer]), SchemaCache(None))

    async with Client(mcp) as client:
        result = await client.call_tool(
            "interpret_results",
            {"question": "how many?", "sql": "SELECT COUNT(*) FROM t", "results": [{"n": 1}]},
        )

    data = result.structured_content
    assert data is not None
    assert data["is_valid"] is True
    assert data["interpretation"] == {"answer": "b", "analysis": "a", "summary": "c"}


@pytest.mark.asyncio
async def test_interpret_results_tool_reports_failure(make_llm) -> None:
    mcp = _server(make_llm(["no structure here"]), SchemaCache(None))

    async with Client(mcp) as client:
        result = await client.call_tool(
            "interpret_results_extended",
            {
                "question": "how many?",
                "sql": "SELECT COUNT(*) FROM t",
                "results": [],
                "additional_context": "fiscal year starts in April",
            },
        )

    data = result.structured_content
    assert data is not None
    assert data["is_valid"] is False
    assert data["error_type"] == "InterpretationFailedError"


@pytest.mark.asyncio
async def test_schema_tools_report_degraded_refresh(make_llm) -> None:
    mcp = _server(make_llm(), SchemaCache(None))

    async with Client(mcp) as client:
        before = await client.call_tool("schema_status", {})
        after = await client.call_tool("refresh_schema", {})

    assert before.structured_content is not None
    assert before.structured_content["phase"] == "IDLE"
    assert after.structured_content is not None
    assert after.structured_content["phase"] == "DEGRADED"
    assert "DATASENSE_DATABASE_URL" in after.structured_content["error_message"]


@pytest.mark.asyncio
async def test_needs_query_execution_tool(make_llm, make_reader, users_snapshot) -> None:
    cache = SchemaCache(make_reader(users_snapshot))
    await cache.refresh()
    llm = make_llm(["YES"])
    mcp = _server(llm, cache)

    async with Client(mcp) as client:
        yes = await client.call_tool("needs_query_execution", {"message": "show me all users"})
        no = await client.call_tool("needs_query_execution", {"message": "thanks, bye!"})

    assert yes.structured_content is not None
    assert yes.structured_content["needs_query"] is True
    assert no.structured_content is not None
    assert no.structured_content["needs_query"] is False
    assert len(llm.prompts) == 1
