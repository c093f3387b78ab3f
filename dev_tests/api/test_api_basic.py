"""
Tests for API Endpoints

Exercises the HTTP surface with a scripted upstream (httpx.MockTransport)
and an in-memory counter store in place of Redis.

Test Categories:
1. Health and rate limiting
2. Generation endpoints and error mapping
3. SSE streaming endpoints
"""

import pytest
from fastapi.testclient import TestClient

import json_utils as json
from ai_service import AIService
from config import parse_rate_limit_windows
from generation_service import GenerationService
from rate_limiter import QuotaLimiter


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def api(monkeypatch, test_config, scripted_upstream, store_factory):
    """
    Factory building a TestClient wired to a scripted upstream.

    Returns (client, upstream_handler, counter_store).
    """
    clients = []

    def _make(responses=(), windows="minute:100:60,day:1000:86400", **client_kwargs):
        import core  # noqa: F401  # registers routes
        from core import app_state

        handler, transport = scripted_upstream(list(responses))
        service = GenerationService(AIService(test_config, transport=transport), test_config)
        store = store_factory()
        limiter = QuotaLimiter(store, parse_rate_limit_windows(windows))

        monkeypatch.setattr(app_state, "generation_service", service)
        monkeypatch.setattr(app_state, "quota_limiter", limiter)

        client = TestClient(app_state.app, **client_kwargs)
        client.__enter__()
        clients.append(client)
        return client, handler, store

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


def parse_sse(text):
    """Split an SSE body into (event, data) pairs, ignoring heartbeats."""
    events = []
    for block in text.split("\n\n"):
        if not block.strip() or block.startswith(":"):
            continue
        event, data_lines = None, []
        for line in block.split("\n"):
            if line.startswith("event: "):
                event = line[len("event: "):]
            elif line.startswith("data: "):
                data_lines.append(line[len("data: "):])
        events.append((event, "\n".join(data_lines)))
    return events


# ============================================================================
# Health and rate limiting
# ============================================================================

class TestHealthAndRateLimit:

    def test_health(self, api):
        client, _, _ = api()

        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "up"
        assert "timestamp" in response.json()

    def test_rate_limit_headers_on_success(self, api):
        """
        Given: Two configured windows
        When: A request is admitted
        Then: Primary and per-window headers are attached
        """
        client, _, _ = api(windows="minute:5:60,day:100:86400")

        response = client.get("/api/v1/health")

        assert response.headers["X-RateLimit-Limit"] == "5"
        assert response.headers["X-RateLimit-Remaining"] == "4"
        assert response.headers["X-RateLimit-Reset"] == "60"
        assert response.headers["X-RateLimit-Minute-Remaining"] == "4"
        assert response.headers["X-RateLimit-Day-Remaining"] == "99"

    def test_exhausted_window_returns_429(self, api):
        client, handler, _ = api(windows="minute:2:60")

        client.get("/api/v1/health")
        client.get("/api/v1/health")
        response = client.post("/api/course-guide", json={"prompt": "Backend"})

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "Too many requests. Please slow down."
        assert body["limit"] == 2
        assert body["remaining"] == 0
        assert body["resetSeconds"] == 60
        assert body["windows"][0]["name"] == "minute"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert handler.requests == []

    def test_forwarded_for_identifies_client(self, api):
        client, _, store = api(windows="minute:5:60")

        client.get("/api/v1/health", headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})

        assert store.counts == {"rate_limit:minute:203.0.113.9": 1}

    def test_cors_preflight_not_counted(self, api):
        client, _, store = api()

        response = client.options(
            "/api/course-guide",
            headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "POST"},
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert store.counts == {}


# ============================================================================
# Generation endpoints
# ============================================================================

class TestGenerationEndpoints:

    def test_course_guide(self, api, envelope, guide_json):
        client, handler, _ = api([(200, envelope(guide_json))])

        response = client.post("/api/course-guide", json={"prompt": "Backend engineer"})

        assert response.status_code == 200
        body = response.json()
        assert body["jobTitle"] == "Backend Engineer"
        assert len(body["modules"]) == 2
        quiz = body["modules"][0]["quiz"][0]
        assert quiz["options"][quiz["correctIndex"]] == "PUT"
        assert len(handler.requests) == 1

    def test_mock_interview(self, api, envelope, interview_json):
        client, _, _ = api([(200, envelope(interview_json))])

        response = client.post("/api/mock-interview", json={"prompt": "Python developer"})

        assert response.status_code == 200
        assert response.json() == {"jobTitle": "Backend Engineer", "questions": ["Q1?", "Q2?", "Q3?", "Q4?", "Q5?"]}

    def test_review(self, api, envelope):
        content = '{"summary": "Good", "strengths": ["a"], "improvements": ["b"], "score": "8"}'
        client, _, _ = api([(200, envelope(content))])

        response = client.post(
            "/api/mock-interview/review",
            json={"jobTitle": "SRE", "question": "What is toil?", "answer": "Manual work."},
        )

        assert response.status_code == 200
        assert response.json()["score"] == "8"

    def test_ideal_answer(self, api, envelope):
        client, _, _ = api([(200, envelope('{"answer": "Automate it."}'))])

        response = client.post("/api/mock-interview/ideal", json={"question": "What is toil?"})

        assert response.status_code == 200
        assert response.json() == {"answer": "Automate it."}

    def test_blank_prompt_is_400(self, api):
        """
        Given: A blank prompt
        When: POST /api/course-guide
        Then: 400 with a user-safe message and no upstream call
        """
        client, handler, _ = api()

        response = client.post("/api/course-guide", json={"prompt": "   "})

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Prompt is required."
        assert body["error"] == "Bad Request"
        assert body["path"] == "/api/course-guide"
        assert body["requestId"]
        assert handler.requests == []

    def test_oversized_answer_is_400(self, api):
        client, _, _ = api()

        response = client.post(
            "/api/mock-interview/review",
            json={"question": "Q?", "answer": "a" * 5001},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Answer exceeds maximum length of 5000 characters."

    def test_missing_body_is_validation_failed(self, api):
        client, _, _ = api()

        response = client.post("/api/mock-interview")

        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"

    def test_upstream_failure_is_502(self, api):
        client, _, _ = api([(500, "secret upstream detail")])

        response = client.post("/api/mock-interview", json={"prompt": "Role"})

        assert response.status_code == 502
        assert response.json()["message"] == "Upstream provider error"
        assert "secret" not in response.text

    def test_exhausted_ladder_is_500_without_raw_text(self, api, envelope):
        client, handler, _ = api([(200, envelope("I cannot help with that")) for _ in range(4)])

        response = client.post("/api/mock-interview", json={"prompt": "Role"})

        assert response.status_code == 500
        assert response.json()["message"] == "Internal processing error"
        assert "cannot help" not in response.text
        assert len(handler.requests) == 4


# ============================================================================
# Streaming endpoints
# ============================================================================

class TestStreamingEndpoints:

    def test_course_guide_stream(self, api, envelope, guide_json):
        """
        Given: A truncated first reply and a valid second reply
        When: POST /api/course-guide/stream
        Then: Two progress events precede a single result event
        """
        client, _, _ = api([
            (200, envelope(guide_json[:200])),
            (200, envelope(guide_json)),
        ])

        response = client.post("/api/course-guide/stream", json={"prompt": "Backend engineer"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = parse_sse(response.text)
        assert [name for name, _ in events] == ["progress", "progress", "result"]
        assert events[0][1] == "Designing your study guide..."
        assert events[1][1] == "Retrying with stricter JSON..."
        result = json.loads(events[2][1])
        assert len(result["modules"]) == 2

    def test_mock_interview_stream_error(self, api):
        client, _, _ = api([(500, "boom")])

        response = client.post("/api/mock-interview/stream", json={"prompt": "Role"})

        events = parse_sse(response.text)
        assert events == [("progress", "Analyzing the role..."), ("error", "Upstream provider error")]

    def test_stream_validation_happens_before_streaming(self, api):
        client, handler, _ = api()

        response = client.post("/api/mock-interview/stream", json={"prompt": ""})

        assert response.status_code == 400
        assert response.json()["message"] == "Job description is required."
        assert handler.requests == []
