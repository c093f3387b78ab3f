"""
Response parsing for chat-completion output
===========================================

Turns a decoded chat-completion envelope into a typed document:

1. extract_content()          envelope -> assistant text (structural checks)
2. normalize_json()           strip a surrounding markdown code fence
3. extract_json_object()      isolate the outermost {...} candidate
4. is_likely_complete_json()  string-aware brace balance check (truncation)
5. parse_document()           strict JSON first, then lenient recovery

The ideal-answer schema additionally degrades to a best-effort text answer
(parse_ideal_answer / coerce_answer) instead of failing.
"""

import logging
import re
from typing import Any, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

import json_utils as json
from models import IdealAnswerResponse

logger = logging.getLogger(__name__)

SUMMARY_MAX_CHARS = 500
CODE_FENCE = "```"

M = TypeVar("M", bound=BaseModel)


class MalformedUpstreamResponse(RuntimeError):
    """The completion envelope does not have the expected shape."""

    public_message = "Internal processing error"

    def __init__(self, field: str, detail: str):
        super().__init__(f"Upstream response {detail}")
        self.field = field


class ResponseParseFailure(RuntimeError):
    """Model output could not be turned into the requested document."""

    public_message = "Internal processing error"

    def __init__(self, label: str, raw_excerpt: str, truncated: bool = False):
        reason = "Likely truncated JSON" if truncated else f"Failed to parse {label}"
        super().__init__(reason)
        self.label = label
        self.raw_excerpt = raw_excerpt
        self.truncated = truncated


# =============================================================================
# Envelope access
# =============================================================================

def _require_mapping(value: Any, field: str, detail: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise MalformedUpstreamResponse(field, detail)
    return value


def extract_content(envelope: Any) -> str:
    """
    Return the assistant message text from a chat-completion envelope.

    Raises:
        MalformedUpstreamResponse: naming the first missing or ill-typed field
    """
    if envelope is None:
        raise MalformedUpstreamResponse("envelope", "is empty")
    root = _require_mapping(envelope, "envelope", "is not an object")

    choices = root.get("choices")
    if not isinstance(choices, list) or not choices:
        raise MalformedUpstreamResponse("choices", "missing choices")

    first_choice = _require_mapping(choices[0], "choices[0]", "choice is not an object")

    if "message" not in first_choice:
        raise MalformedUpstreamResponse("message", "missing message")
    message = _require_mapping(first_choice["message"], "message", "message is not an object")

    if "content" not in message:
        raise MalformedUpstreamResponse("content", "missing content")
    content = message["content"]
    if not isinstance(content, str):
        raise MalformedUpstreamResponse("content", "content is not a string")
    return content


# =============================================================================
# Candidate extraction
# =============================================================================

def normalize_json(content: Optional[str]) -> str:
    """Strip a surrounding ``` fence (with optional language tag) if present."""
    trimmed = (content or "").strip()
    if trimmed.startswith(CODE_FENCE):
        first_newline = trimmed.find("\n")
        last_fence = trimmed.rfind(CODE_FENCE)
        if 0 < first_newline < last_fence:
            return trimmed[first_newline + 1:last_fence].strip()
    return trimmed


def extract_json_object(content: Optional[str]) -> str:
    """Return the substring from the first '{' to the last '}' inclusive."""
    if content is None:
        return ""
    trimmed = content.strip()
    if trimmed.startswith("{") and trimmed.endswith("}"):
        return trimmed

    first_brace = trimmed.find("{")
    last_brace = trimmed.rfind("}")
    if first_brace >= 0 and last_brace > first_brace:
        return trimmed[first_brace:last_brace + 1].strip()
    return trimmed


def is_likely_complete_json(content: Optional[str]) -> bool:
    """
    Cheap truncation detector for a JSON object candidate.

    Braces inside string literals are ignored. A quote preceded by an
    unescaped backslash does not toggle string mode.
    """
    if content is None:
        return False
    trimmed = content.strip()
    if not trimmed.startswith("{"):
        return False

    depth = 0
    in_string = False
    escaped = False
    for char in trimmed:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
    return depth == 0 and not in_string and trimmed.endswith("}")


def summarize(content: Optional[str]) -> str:
    """Whitespace-collapsed excerpt of raw output, bounded for logs."""
    if content is None:
        return "<null>"
    sanitized = re.sub(r"\s+", " ", content).strip()
    if len(sanitized) <= SUMMARY_MAX_CHARS:
        return sanitized
    return sanitized[:SUMMARY_MAX_CHARS] + "..."


def candidate_from_content(content: str) -> str:
    return extract_json_object(normalize_json(content))


# =============================================================================
# Parsing
# =============================================================================

def parse_document(candidate: str, model_cls: Type[M], label: str, raw: Optional[str] = None) -> M:
    """
    Parse a JSON candidate into model_cls, strictly first and then leniently.

    Raises:
        ResponseParseFailure: when both attempts fail (including schema errors)
    """
    try:
        return model_cls.model_validate(json.loads(candidate))
    except (json.JSONDecodeError, ValidationError) as strict_error:
        logger.debug("Strict parse of %s failed: %s", label, strict_error)

    try:
        return model_cls.model_validate(json.loads_lenient(candidate))
    except (ValueError, ValidationError) as lenient_error:
        excerpt = summarize(raw if raw is not None else candidate)
        raise ResponseParseFailure(label, excerpt) from lenient_error


def coerce_answer(node: Any) -> str:
    """Flatten an arbitrary JSON value into readable answer text."""
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        parts = []
        for item in node:
            text = coerce_answer(item).strip()
            if text:
                parts.append(text)
        return " ".join(parts).strip()
    if isinstance(node, dict):
        parts = []
        for key, value in node.items():
            text = coerce_answer(value).strip()
            if text:
                parts.append(f"{key}: {text}.")
        return " ".join(parts).strip()
    if isinstance(node, bool):
        return "true" if node else "false"
    return str(node)


def parse_ideal_answer(candidate: str, raw: Optional[str] = None) -> IdealAnswerResponse:
    """
    Parse an ideal answer, falling back to coercing whatever JSON came back.

    Text with no recoverable JSON at all is used verbatim as the answer.

    Raises:
        ResponseParseFailure: only when the model returned blank text
    """
    try:
        return parse_document(candidate, IdealAnswerResponse, "ideal answer", raw)
    except ResponseParseFailure as exc:
        try:
            node = json.loads_lenient(candidate)
        except ValueError:
            if not candidate.strip():
                raise exc
            node = candidate.strip()
    if isinstance(node, dict) and "answer" in node:
        node = node["answer"]
    logger.info("Ideal answer coerced from non-conforming JSON (%s)", type(node).__name__)
    return IdealAnswerResponse(answer=coerce_answer(node))
