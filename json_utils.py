"""
JSON utilities for the Interview Prep LLM Engine
================================================

Strict encoding/decoding goes through orjson. Lenient decoding (for model
output that is almost JSON) goes through json_repair, which accepts
unescaped control characters inside strings, backslash-escaped arbitrary
characters, single-quoted strings and trailing commas.
"""

from typing import Any, Callable, Optional

import orjson
from json_repair import repair_json


JSONDecodeError = orjson.JSONDecodeError


def dumps(obj: Any, indent: Optional[int] = None, default: Optional[Callable[[Any], Any]] = None) -> str:
    """
    Serialize obj to a JSON string.

    Args:
        obj: Object to serialize
        indent: Pretty-print with 2-space indentation when not None
        default: Callable for objects orjson cannot serialize natively

    Returns:
        JSON string (orjson returns bytes; decoded here)
    """
    option = orjson.OPT_SERIALIZE_UUID | orjson.OPT_NON_STR_KEYS
    if indent is not None:
        option |= orjson.OPT_INDENT_2
    return orjson.dumps(obj, default=default, option=option).decode("utf-8")


def loads(s: str | bytes) -> Any:
    """Strictly deserialize a JSON document. Raises JSONDecodeError."""
    return orjson.loads(s)


def loads_lenient(s: str) -> Any:
    """
    Deserialize a JSON document under a relaxed grammar.

    Raises:
        ValueError: If nothing usable could be recovered from the text
    """
    if not s or not s.strip():
        raise ValueError("empty JSON text")
    recovered = repair_json(s, return_objects=True)
    # json_repair signals "nothing recoverable" with an empty string
    if recovered == "" and s.strip() not in ('""', "''"):
        raise ValueError("text could not be recovered as JSON")
    return recovered
