"""
Inbound request validation.

Checks run before any upstream call. Failures raise RequestValidationError
whose message is safe to show to the caller verbatim.
"""

from typing import Optional

from models import ReviewAnswerRequest

MAX_JOB_TITLE_CHARS = 200
MAX_QUESTION_CHARS = 1_000
MAX_ANSWER_CHARS = 5_000
MAX_JOB_DESCRIPTION_CHARS = 4_000


class RequestValidationError(ValueError):
    """Malformed or oversized caller input."""

    def __init__(self, message: str):
        super().__init__(message)
        self.public_message = message


def _sanitize(value: Optional[str], max_chars: int, field_name: str) -> Optional[str]:
    if value is None:
        return None
    trimmed = value.strip()
    if len(trimmed) > max_chars:
        raise RequestValidationError(f"{field_name} exceeds maximum length of {max_chars} characters.")
    return trimmed


def _require(value: Optional[str], field_name: str) -> str:
    if value is None or not value.strip():
        raise RequestValidationError(f"{field_name} is required.")
    return value


def validate_prompt(prompt: Optional[str]) -> str:
    """Study-guide prompts only need to be present; length is handled by truncate_prompt."""
    return _require(prompt, "Prompt").strip()


def validate_job_description(prompt: Optional[str]) -> str:
    _require(prompt, "Job description")
    return _sanitize(prompt, MAX_JOB_DESCRIPTION_CHARS, "Job description")


def validate_review_request(request: Optional[ReviewAnswerRequest]) -> ReviewAnswerRequest:
    """Review needs a question and an answer; the job title is optional."""
    if request is None:
        raise RequestValidationError("Request body is required.")
    job_title = _sanitize(request.job_title, MAX_JOB_TITLE_CHARS, "Job title")
    question = _require(_sanitize(request.question, MAX_QUESTION_CHARS, "Question"), "Question")
    answer = _require(_sanitize(request.answer, MAX_ANSWER_CHARS, "Answer"), "Answer")
    return ReviewAnswerRequest(job_title=job_title, question=question, answer=answer)


def validate_ideal_request(request: Optional[ReviewAnswerRequest]) -> ReviewAnswerRequest:
    if request is None:
        raise RequestValidationError("Request body is required.")
    job_title = _sanitize(request.job_title, MAX_JOB_TITLE_CHARS, "Job title")
    question = _require(_sanitize(request.question, MAX_QUESTION_CHARS, "Question"), "Question")
    answer = _sanitize(request.answer, MAX_ANSWER_CHARS, "Answer")
    return ReviewAnswerRequest(job_title=job_title, question=question, answer=answer)


def truncate_prompt(value: Optional[str], max_chars: int = MAX_JOB_DESCRIPTION_CHARS) -> str:
    """Trim and cut to max_chars, marking the cut with '...'."""
    if value is None:
        return ""
    trimmed = value.strip()
    if len(trimmed) <= max_chars:
        return trimmed
    return trimmed[:max_chars] + "..."
