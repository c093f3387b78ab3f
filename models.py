"""
Data Models for the Interview Prep LLM Engine
=============================================

Pydantic models for the documents produced by the model and for the HTTP
request/response payloads. JSON field names are camelCase (they are the
contract with the prompts); Python attributes are snake_case.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model reading and writing camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Generated documents
# =============================================================================

class QuizQuestion(CamelModel):
    """Multiple-choice question attached to a study-guide module"""
    question: str
    options: List[str]
    correct_index: int = Field(..., description="Index into options of the correct answer")
    explanation: str


class CourseModule(CamelModel):
    title: str
    description: str
    lessons: List[str]
    resources: List[str]
    quiz: List[QuizQuestion]


class CourseGuide(CamelModel):
    """Study guide: overview, modules with quizzes, and interview questions"""
    job_title: str
    overview: str
    modules: List[CourseModule]
    mock_interview_questions: List[str]


class MockInterviewSession(CamelModel):
    job_title: str
    questions: List[str]


class ReviewAnswerResponse(CamelModel):
    summary: str
    strengths: List[str]
    improvements: List[str]
    score: str


class IdealAnswerResponse(CamelModel):
    answer: str


# =============================================================================
# Requests
# =============================================================================

class GenerateCourseGuideRequest(CamelModel):
    prompt: Optional[str] = Field(default=None, description="Free-text description of the target role")


class GenerateMockInterviewRequest(CamelModel):
    prompt: Optional[str] = Field(default=None, description="Job description used to tailor the questions")


class ReviewAnswerRequest(CamelModel):
    """Payload shared by the answer-review and ideal-answer endpoints"""
    job_title: Optional[str] = None
    question: Optional[str] = None
    answer: Optional[str] = None


# =============================================================================
# Errors
# =============================================================================

class ApiError(CamelModel):
    """Caller-visible error body. Never carries internal exception text."""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: int
    error: str
    message: str
    path: str
    request_id: str
