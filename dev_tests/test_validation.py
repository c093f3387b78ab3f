"""
Tests for validation.py - inbound request checks and prompt truncation.
"""

import pytest

from models import ReviewAnswerRequest
from validation import (
    RequestValidationError,
    truncate_prompt,
    validate_ideal_request,
    validate_job_description,
    validate_prompt,
    validate_review_request,
)


class TestPrompts:

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_prompt_required(self, value):
        with pytest.raises(RequestValidationError, match="Prompt is required."):
            validate_prompt(value)

    def test_prompt_trimmed(self):
        assert validate_prompt("  Data engineer  ") == "Data engineer"

    def test_job_description_limit(self):
        """
        Given: A job description over 4000 characters
        When: validate_job_description() is called
        Then: A user-safe length message is raised
        """
        with pytest.raises(RequestValidationError) as exc_info:
            validate_job_description("x" * 4001)
        assert exc_info.value.public_message == "Job description exceeds maximum length of 4000 characters."

    def test_job_description_at_limit(self):
        assert len(validate_job_description(" " + "x" * 4000 + " ")) == 4000


class TestReviewRequests:

    def test_review_requires_answer(self):
        with pytest.raises(RequestValidationError, match="Answer is required."):
            validate_review_request(ReviewAnswerRequest(question="Why?", answer="  "))

    def test_review_requires_question(self):
        with pytest.raises(RequestValidationError, match="Question is required."):
            validate_review_request(ReviewAnswerRequest(answer="Because"))

    def test_review_trims_fields(self):
        result = validate_review_request(ReviewAnswerRequest(job_title=" SRE ", question=" Why? ", answer=" Because "))
        assert (result.job_title, result.question, result.answer) == ("SRE", "Why?", "Because")

    @pytest.mark.parametrize(
        "field,limit,label",
        [("job_title", 200, "Job title"), ("question", 1000, "Question"), ("answer", 5000, "Answer")],
    )
    def test_length_limits(self, field, limit, label):
        data = {"job_title": "SRE", "question": "Why?", "answer": "Because"}
        data[field] = "y" * (limit + 1)
        with pytest.raises(RequestValidationError, match=f"{label} exceeds maximum length of {limit} characters."):
            validate_review_request(ReviewAnswerRequest(**data))

    def test_ideal_needs_only_question(self):
        result = validate_ideal_request(ReviewAnswerRequest(question="What is CAP?"))
        assert result.question == "What is CAP?"
        assert result.answer is None

    def test_missing_body(self):
        with pytest.raises(RequestValidationError, match="Request body is required."):
            validate_ideal_request(None)


class TestTruncatePrompt:

    def test_short_prompt_trimmed_only(self):
        assert truncate_prompt("  hello ") == "hello"

    def test_long_prompt_cut_with_marker(self):
        result = truncate_prompt("a" * 4500)
        assert result == "a" * 4000 + "..."

    def test_none_is_empty(self):
        assert truncate_prompt(None) == ""
