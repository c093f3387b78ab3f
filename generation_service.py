"""
Generation Service for the Interview Prep LLM Engine
====================================================

Orchestrates one document per call: prompt selection, upstream call with
model failover, content extraction, truncation check, strict/lenient parsing
and post-processing. Study guides and mock interviews run through a retry
ladder; answer review and ideal answers are single-shot.
"""

import asyncio
import logging
import uuid
from typing import Optional, Type

from ai_service import AIService
from config import Config
from generation_ladder import (
    COURSE_GUIDE_LADDER,
    MOCK_INTERVIEW_LADDER,
    AttemptOutcome,
    GenerationAttempt,
    ProgressCallback,
    RetryLadder,
)
from logging_utils import Phase, PhaseLogger, create_phase_logger
from models import (
    CourseGuide,
    IdealAnswerResponse,
    MockInterviewSession,
    ReviewAnswerRequest,
    ReviewAnswerResponse,
)
from prompt_templates import (
    IDEAL_ANSWER_SYSTEM_PROMPT,
    REVIEW_SYSTEM_PROMPT,
    build_course_guide_prompt,
    build_interview_prompt,
    build_messages,
)
from quiz_shuffle import shuffle_quiz_options
from response_parser import (
    MalformedUpstreamResponse,
    ResponseParseFailure,
    candidate_from_content,
    extract_content,
    is_likely_complete_json,
    parse_document,
    parse_ideal_answer,
    summarize,
)
from validation import truncate_prompt

logger = logging.getLogger(__name__)

COURSE_GUIDE_TEMPERATURE = 0.6
MOCK_INTERVIEW_TEMPERATURE = 0.4
REVIEW_TEMPERATURE = 0.3
IDEAL_ANSWER_TEMPERATURE = 0.2
IDEAL_ANSWER_MAX_TOKENS = 350


def _new_request_id() -> str:
    return str(uuid.uuid4())


class GenerationService:
    """Document generation on top of AIService"""

    def __init__(self, ai_service: AIService, settings: Config):
        self.ai_service = ai_service
        self.settings = settings

    def _phase_logger(self, request_id: Optional[str], label: str) -> PhaseLogger:
        return create_phase_logger(
            request_id or _new_request_id(),
            label=label,
            extra_verbose=self.settings.EXTRA_VERBOSE,
        )

    async def generate_course_guide(
        self,
        prompt: str,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
        request_id: Optional[str] = None,
    ) -> CourseGuide:
        """Study guide with quizzes; quiz options are shuffled before returning."""
        phase_logger = self._phase_logger(request_id, "course guide")
        safe_prompt = truncate_prompt(prompt, self.settings.MAX_PROMPT_CHARS)

        async def attempt_fn(attempt: GenerationAttempt) -> AttemptOutcome[CourseGuide]:
            system_prompt = build_course_guide_prompt(attempt.strict_json, attempt.compaction_level)
            return await self._run_attempt(
                phase_logger,
                system_prompt,
                "User Prompt:\n" + safe_prompt,
                COURSE_GUIDE_TEMPERATURE,
                attempt.max_tokens,
                CourseGuide,
                "course guide",
            )

        ladder = RetryLadder(COURSE_GUIDE_LADDER, phase_logger=phase_logger)
        guide = await ladder.run(attempt_fn, progress=progress, cancel_event=cancel_event)

        with phase_logger.phase(Phase.POSTPROCESS, sub_label="shuffle quiz options"):
            guide = shuffle_quiz_options(guide)

        with phase_logger.phase(Phase.COMPLETION):
            phase_logger.info(f"course guide ready: {len(guide.modules)} modules")
        phase_logger.log_timing_summary()
        return guide

    async def generate_mock_interview(
        self,
        prompt: str,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
        request_id: Optional[str] = None,
    ) -> MockInterviewSession:
        phase_logger = self._phase_logger(request_id, "mock interview")
        safe_prompt = truncate_prompt(prompt, self.settings.MAX_PROMPT_CHARS)

        async def attempt_fn(attempt: GenerationAttempt) -> AttemptOutcome[MockInterviewSession]:
            system_prompt = build_interview_prompt(attempt.strict_json, attempt.compaction_level)
            return await self._run_attempt(
                phase_logger,
                system_prompt,
                "Job Description:\n" + safe_prompt,
                MOCK_INTERVIEW_TEMPERATURE,
                attempt.max_tokens,
                MockInterviewSession,
                "mock interview session",
            )

        ladder = RetryLadder(MOCK_INTERVIEW_LADDER, phase_logger=phase_logger)
        session = await ladder.run(attempt_fn, progress=progress, cancel_event=cancel_event)
        with phase_logger.phase(Phase.COMPLETION):
            phase_logger.info(f"mock interview ready: {len(session.questions)} questions")
        phase_logger.log_timing_summary()
        return session

    async def review_answer(self, request: ReviewAnswerRequest, request_id: Optional[str] = None) -> ReviewAnswerResponse:
        """Single-shot review of a candidate answer."""
        phase_logger = self._phase_logger(request_id, "answer review")
        user_content = (
            f"Role: {request.job_title or ''}\n"
            f"Question: {request.question or ''}\n"
            f"Answer: {request.answer or ''}"
        )
        content = await self._complete(phase_logger, REVIEW_SYSTEM_PROMPT, user_content, REVIEW_TEMPERATURE, None)
        with phase_logger.phase(Phase.PARSING, sub_label="answer review"):
            return parse_document(candidate_from_content(content), ReviewAnswerResponse, "review response", content)

    async def generate_ideal_answer(
        self,
        request: ReviewAnswerRequest,
        request_id: Optional[str] = None,
    ) -> IdealAnswerResponse:
        """Single-shot ideal answer; non-conforming output is coerced to text."""
        phase_logger = self._phase_logger(request_id, "ideal answer")
        user_content = f"Role: {request.job_title or ''}\nQuestion: {request.question or ''}"
        content = await self._complete(
            phase_logger,
            IDEAL_ANSWER_SYSTEM_PROMPT,
            user_content,
            IDEAL_ANSWER_TEMPERATURE,
            IDEAL_ANSWER_MAX_TOKENS,
        )
        with phase_logger.phase(Phase.PARSING, sub_label="ideal answer"):
            return parse_ideal_answer(candidate_from_content(content), content)

    async def _complete(
        self,
        phase_logger: PhaseLogger,
        system_prompt: str,
        user_content: str,
        temperature: float,
        max_tokens: Optional[int],
    ) -> str:
        """One upstream call; returns the assistant text."""
        phase_logger.log_prompt(
            self.ai_service.primary_model,
            system_prompt,
            user_content,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        envelope = await self.ai_service.post_chat(
            build_messages(system_prompt, user_content),
            temperature,
            max_tokens,
            phase_logger=phase_logger,
        )
        content = extract_content(envelope)
        phase_logger.log_response(content)
        return content

    async def _run_attempt(
        self,
        phase_logger: PhaseLogger,
        system_prompt: str,
        user_content: str,
        temperature: float,
        max_tokens: int,
        model_cls: Type,
        label: str,
    ) -> AttemptOutcome:
        """
        Run one ladder step. Shape and parse failures become failed outcomes;
        transport errors propagate.
        """
        try:
            content = await self._complete(phase_logger, system_prompt, user_content, temperature, max_tokens)
            candidate = candidate_from_content(content)
            if not is_likely_complete_json(candidate):
                raise ResponseParseFailure(label, summarize(content), truncated=True)
            return AttemptOutcome.success(parse_document(candidate, model_cls, label, content))
        except (MalformedUpstreamResponse, ResponseParseFailure) as exc:
            excerpt = getattr(exc, "raw_excerpt", None)
            if excerpt:
                logger.debug("%s raw content: %s", label, excerpt)
            return AttemptOutcome.failure(exc)
