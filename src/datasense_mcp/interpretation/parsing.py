"""Parse model responses into `InterpretationResult`.

Accepted shapes, tried in order:

1. A JSON object with ``answer``, ``analysis`` and ``summary`` keys
   (case-insensitive), optionally wrapped in a code fence or surrounded by
   prose.
2. The same object with missing closing braces (truncated generations).
3. Plain text with ``Answer:``, ``Analysis:`` and ``Summary:`` section
   markers.

A response missing any section, or with an empty one, is rejected.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
import json
import re
from typing import Any

from datasense_mcp.exceptions import InterpretationFailedError

from .models import InterpretationResult

SECTIONS: tuple[str, ...] = ("answer", "analysis", "summary")

_FENCE = re.compile(r"\A```[A-Za-z0-9_-]*[ \t]*\n?(.*?)\n?```\s*\Z", re.DOTALL)
_SECTION_MARKER = re.compile(
    r"^[ \t]*(?:\d+[.)][ \t]*)?[#*_ \t]*(answer|analysis|summary)[*_ \t]*:[*_]*[ \t]*",
    re.IGNORECASE | re.MULTILINE,
)


def strip_code_fence(text: str) -> str:
    stripped = text.strip()
    match = _FENCE.match(stripped)
    return match.group(1).strip() if match else stripped


def recover_braces(text: str) -> str | None:
    """Append closing braces when the object was cut off."""
    missing = text.count("{") - text.count("}")
    if missing > 0:
        return text + "}" * missing
    return None


def _json_candidates(text: str) -> Iterator[str]:
    yield text
    start = text.find("{")
    end = text.rfind("}")
    if start >= 0 and end > start:
        yield text[start : end + 1]
    if start >= 0:
        recovered = recover_braces(text[start:])
        if recovered is not None:
            yield recovered


def _from_mapping(data: Mapping[str, Any]) -> InterpretationResult | None:
    lowered = {str(k).strip().lower(): v for k, v in data.items()}
    values: dict[str, str] = {}
    for key in SECTIONS:
        value = lowered.get(key)
        if isinstance(value, str | int | float) and not isinstance(value, bool):
            value = str(value).strip()
        if not isinstance(value, str) or not value:
            return None
        values[key] = value
    return InterpretationResult(**values)


def _from_sections(text: str) -> InterpretationResult | None:
    matches = list(_SECTION_MARKER.finditer(text))
    if not matches:
        return None
    found: dict[str, str] = {}
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        key = match.group(1).lower()
        body = text[match.end() : end].strip()
        if key not in found and body:
            found[key] = body
    return _from_mapping(found)


def parse_interpretation(response: str) -> InterpretationResult:
    """Return the structured interpretation or raise `InterpretationFailedError`."""
    if not response or not response.strip():
        msg = "The language model returned an empty interpretation"
        raise InterpretationFailedError(msg)

    text = strip_code_fence(response)
    for candidate in _json_candidates(text):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, Mapping):
            parsed = _from_mapping(data)
            if parsed is not None:
                return parsed

    parsed = _from_sections(text)
    if parsed is not None:
        return parsed

    msg = "Interpretation response is missing the answer/analysis/summary sections"
    raise InterpretationFailedError(msg)
