"""Shared pytest fixtures for Interview Prep LLM Engine tests."""

import pytest
from typing import Dict, List, Optional
import os
import sys

import httpx

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config():
    """Config built from explicit values (no environment lookup)."""
    from config import Config, parse_rate_limit_windows

    return Config(
        GROQ_API_KEY="gsk-test-key-12345",
        GROQ_API_URL="https://llm.test/v1/chat/completions",
        PRIMARY_MODEL="primary-model",
        FALLBACK_MODEL="fallback-model",
        RATE_LIMIT_WINDOWS=parse_rate_limit_windows("minute:10:60,hour:60:3600"),
    )


# ============================================================================
# Upstream Fixtures
# ============================================================================

def chat_envelope(content: Optional[str]) -> Dict:
    """Chat-completion response body carrying one assistant message."""
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
    }


class ScriptedUpstream:
    """
    httpx.MockTransport handler replaying scripted responses in order.

    Each entry is (status_code, body) where body is a dict (sent as JSON) or
    a raw string. Every request is recorded for later assertions.
    """

    def __init__(self, responses: List):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError("Unexpected upstream call")
        status, body = self.responses.pop(0)
        if isinstance(body, Exception):
            raise body
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body)

    def sent_bodies(self) -> List[Dict]:
        import json_utils as json
        return [json.loads(req.content) for req in self.requests]


@pytest.fixture
def scripted_upstream():
    """Factory: scripted_upstream([(200, chat_envelope("{...}")), ...]) -> (handler, transport)."""
    def _make(responses):
        handler = ScriptedUpstream(responses)
        return handler, httpx.MockTransport(handler)
    return _make


# ============================================================================
# Counter Store Fixtures
# ============================================================================

class InMemoryCounterStore:
    """CounterStore double with controllable TTLs and failures."""

    def __init__(self, ttl_override: Optional[int] = None, fail_on: Optional[set] = None):
        self.counts: Dict[str, int] = {}
        self.expiries: Dict[str, int] = {}
        self.ttl_override = ttl_override
        self.fail_on = fail_on or set()

    async def incr(self, key: str) -> int:
        if "incr" in self.fail_on:
            raise ConnectionError("store unavailable")
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key: str, seconds: int) -> None:
        if "expire" in self.fail_on:
            raise ConnectionError("store unavailable")
        self.expiries[key] = seconds

    async def ttl(self, key: str) -> Optional[int]:
        if "ttl" in self.fail_on:
            raise ConnectionError("store unavailable")
        if self.ttl_override is not None:
            return self.ttl_override
        return self.expiries.get(key)


@pytest.fixture
def memory_store():
    return InMemoryCounterStore()


# ============================================================================
# Document Fixtures
# ============================================================================

TWO_MODULE_GUIDE_JSON = """{
  "jobTitle": "Backend Engineer",
  "overview": "Prepare for backend interviews.",
  "modules": [
    {
      "title": "APIs",
      "description": "HTTP API design.",
      "lessons": ["REST basics"],
      "resources": ["RESTful Web APIs"],
      "quiz": [
        {"question": "Which verb is idempotent?", "options": ["PUT", "POST", "PATCH", "CONNECT"], "correctIndex": 0, "explanation": "PUT replaces the resource."}
      ]
    },
    {
      "title": "Databases",
      "description": "Relational modelling.",
      "lessons": ["Indexes"],
      "resources": ["Designing Data-Intensive Applications"],
      "quiz": [
        {"question": "What speeds up lookups?", "options": ["An index", "A trigger", "A view", "A cursor"], "correctIndex": 0, "explanation": "Indexes avoid full scans."}
      ]
    }
  ],
  "mockInterviewQuestions": ["Design a URL shortener.", "Explain database indexes."]
}"""

INTERVIEW_JSON = '{"jobTitle": "Backend Engineer", "questions": ["Q1?", "Q2?", "Q3?", "Q4?", "Q5?"]}'


@pytest.fixture
def guide_json():
    return TWO_MODULE_GUIDE_JSON


@pytest.fixture
def interview_json():
    return INTERVIEW_JSON


@pytest.fixture
def envelope():
    """Builder for chat-completion response bodies."""
    return chat_envelope


@pytest.fixture
def store_factory():
    """Builder for counter-store doubles with custom TTL/failure behaviour."""
    return InMemoryCounterStore
