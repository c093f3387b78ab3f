"""
Generation API routes for the Interview Prep LLM Engine.

These endpoints await the generation inline and return the finished
document. Errors are mapped to ApiError bodies by the handlers in app_state.
"""

from __future__ import annotations

import uuid

from fastapi import Body

from models import (
    CourseGuide,
    GenerateCourseGuideRequest,
    GenerateMockInterviewRequest,
    IdealAnswerResponse,
    MockInterviewSession,
    ReviewAnswerRequest,
    ReviewAnswerResponse,
)
from validation import (
    validate_ideal_request,
    validate_job_description,
    validate_prompt,
    validate_review_request,
)

from .app_state import app, get_generation_service, logger


@app.post("/api/course-guide", response_model=CourseGuide, response_model_by_alias=True)
async def create_course_guide(request: GenerateCourseGuideRequest = Body(...)):
    """Generate a study guide with per-module quizzes."""
    prompt = validate_prompt(request.prompt)
    request_id = str(uuid.uuid4())
    logger.info("Course guide requested [%s]", request_id[:8])
    return await get_generation_service().generate_course_guide(prompt, request_id=request_id)


@app.post("/api/mock-interview", response_model=MockInterviewSession, response_model_by_alias=True)
async def create_mock_interview(request: GenerateMockInterviewRequest = Body(...)):
    prompt = validate_job_description(request.prompt)
    request_id = str(uuid.uuid4())
    logger.info("Mock interview requested [%s]", request_id[:8])
    return await get_generation_service().generate_mock_interview(prompt, request_id=request_id)


@app.post("/api/mock-interview/review", response_model=ReviewAnswerResponse, response_model_by_alias=True)
async def review_answer(request: ReviewAnswerRequest = Body(...)):
    """Review a candidate answer (summary, strengths, improvements, score)."""
    validated = validate_review_request(request)
    return await get_generation_service().review_answer(validated)


@app.post("/api/mock-interview/ideal", response_model=IdealAnswerResponse, response_model_by_alias=True)
async def ideal_answer(request: ReviewAnswerRequest = Body(...)):
    validated = validate_ideal_request(request)
    return await get_generation_service().generate_ideal_answer(validated)
