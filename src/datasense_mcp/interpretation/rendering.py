"""Bounded rendering of query results for interpretation prompts.

Results are opaque JSON-like data: a row sequence, or an object wrapping one
(for example `{"columns": [...], "rows": [...]}`). Rows beyond the row cap
are dropped, long cell values are shortened and the serialized text is capped
as a whole. Every row or size cut leaves an explicit truncation marker so the
model knows it is not seeing the full result set. Values inside a row are never
dropped, only shortened.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import json
from typing import Any

from datasense_mcp.services.config_service import ResultBudget

DEFAULT_BUDGET = ResultBudget(max_rows=50, max_cell_chars=200, max_chars=20000)
TRUNCATED_MARKER = "... [truncated]"
# Keys that hold the row list when results arrive wrapped in an object
ROW_KEYS = ("rows", "data", "results", "records", "items")


def _truncate_value(val: object, max_chars: int) -> str | int | float | bool | None:
    """Truncate a single cell value to a safe representation."""
    if val is None:
        return None
    if isinstance(val, int | float | bool):
        return val
    s = str(val)
    if len(s) > max_chars:
        return s[: max_chars - 1] + "…"
    return s


def _is_sequence(value: object) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes)


def _bound(value: Any, budget: ResultBudget) -> Any:
    # Cell-level bounding only; the row cap applies to the row list alone
    if isinstance(value, Mapping):
        return {str(k): _bound(v, budget) for k, v in value.items()}
    if _is_sequence(value):
        return [_bound(v, budget) for v in value]
    return _truncate_value(value, budget.max_cell_chars)


def _row_key(results: Mapping[Any, Any]) -> Any | None:
    """Key of the row list inside a wrapped result object, if there is one."""
    for key in ROW_KEYS:
        if key in results and _is_sequence(results[key]):
            return key
    candidates = [k for k, v in results.items() if k != "columns" and _is_sequence(v)]
    return candidates[0] if len(candidates) == 1 else None


def count_rows(results: Any) -> int | None:
    """Number of rows when the results are, or wrap, a row sequence."""
    if _is_sequence(results):
        return len(results)
    if isinstance(results, Mapping):
        key = _row_key(results)
        if key is not None:
            return len(results[key])
    return None


def _cap_rows(rows: Sequence[Any], budget: ResultBudget) -> list[Any]:
    return [_bound(row, budget) for row in list(rows)[: budget.max_rows]]


def render_rows(results: Any, budget: ResultBudget = DEFAULT_BUDGET) -> str:
    """Serialize results compactly within the given budget."""
    total = count_rows(results)
    if _is_sequence(results):
        shown: Any = _cap_rows(results, budget)
    elif total is not None:
        key = _row_key(results)
        shown = {
            str(k): _cap_rows(v, budget) if k == key else _bound(v, budget)
            for k, v in results.items()
        }
    else:
        shown = _bound(results, budget)

    text = json.dumps(shown, ensure_ascii=False, default=str, separators=(",", ":"))
    if total is not None and total > budget.max_rows:
        text += f"\n... [truncated: showing {budget.max_rows} of {total} rows]"
    if len(text) > budget.max_chars:
        text = text[: budget.max_chars] + "\n" + TRUNCATED_MARKER
    return text
