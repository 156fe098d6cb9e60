"""
JSON extraction utilities for LLM responses.

LLMs often return JSON wrapped in markdown code blocks or with
surrounding text. Each function here is one extraction tier: it returns
the parsed JSON object, or None if its tier does not apply.

Example:
    from analyst.utils.json_utils import parse_fenced

    response = 'Here you go:\\n```json\\n{"id": 1}\\n```'
    data = parse_fenced(response)  # {"id": 1}
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


def _loads_object(candidate: str) -> dict[str, Any] | None:
    """Parse a JSON object, None for invalid JSON or non-object values."""
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def parse_direct(text: str) -> dict[str, Any] | None:
    """
    Parse the whole text as a JSON object.

    Example:
        >>> parse_direct('{"key": "value"}')
        {'key': 'value'}
    """
    return _loads_object(text.strip())


def parse_fenced(text: str) -> dict[str, Any] | None:
    """
    Parse the interior of the first fenced code block.

    The fence may be tagged as json or left untagged.

    Example:
        >>> parse_fenced('```json\\n{"nested": {"value": 1}}\\n```')
        {'nested': {'value': 1}}
    """
    match = FENCED_BLOCK_RE.search(text)
    if not match:
        return None
    return _loads_object(match.group(1))


def parse_brace_span(text: str) -> dict[str, Any] | None:
    """
    Parse the span from the first "{" to the last "}" inclusive.

    Example:
        >>> parse_brace_span('Result: {"id": 1} - done.')
        {'id': 1}
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        return None
    return _loads_object(text[start : end + 1])


# Embedded tests
if __name__ == "__main__":
    import sys

    print("\nRunning json_utils tests...\n")
    errors = 0

    cases = [
        ("direct object", parse_direct, '{"key": "value"}', {"key": "value"}),
        ("direct rejects array", parse_direct, "[1, 2]", None),
        ("fenced json", parse_fenced, '```json\n{"a": 1}\n```', {"a": 1}),
        ("fenced untagged", parse_fenced, 'x\n```\n{"a": 2}\n```\ny', {"a": 2}),
        ("brace span", parse_brace_span, 'Sure! {"a": {"b": 3}} Hope it helps', {"a": {"b": 3}}),
        ("brace span missing", parse_brace_span, "no json here", None),
    ]

    for i, (name, func, text, expected) in enumerate(cases, 1):
        print(f"Test {i}: {name}...", end=" ")
        result = func(text)
        if result == expected:
            print("OK")
        else:
            print(f"FAILED: got {result}")
            errors += 1

    print("\n" + "=" * 40)
    if errors == 0:
        print("All tests passed!")
        sys.exit(0)
    else:
        print(f"{errors} test(s) failed!")
        sys.exit(1)
