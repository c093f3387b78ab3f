"""
Prompt-escalation retry ladder
==============================

A ladder is a fixed, ordered list of GenerationAttempt steps. Each step asks
the model again with a stricter and/or smaller prompt. Steps run one at a
time; the first step that yields a document wins, and when every step fails
the last step's error is raised unchanged.

Attempt functions report parse/shape failures as values (AttemptOutcome)
rather than exceptions. Anything they do raise (transport errors, a closed
progress channel) aborts the ladder immediately.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Sequence, TypeVar

from logging_utils import Phase, PhaseLogger

logger = logging.getLogger(__name__)

D = TypeVar("D")

ProgressCallback = Callable[[str], Awaitable[None]]


@dataclass(frozen=True)
class GenerationAttempt:
    """One rung of the ladder"""
    strict_json: bool
    compaction_level: int
    max_tokens: int
    progress_message: str


@dataclass(frozen=True)
class AttemptOutcome(Generic[D]):
    """Result of a single attempt: either a document or the error that stopped it."""
    document: Optional[D] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.document is not None

    @classmethod
    def success(cls, document: D) -> "AttemptOutcome[D]":
        return cls(document=document)

    @classmethod
    def failure(cls, error: Exception) -> "AttemptOutcome[D]":
        return cls(error=error)


AttemptFn = Callable[[GenerationAttempt], Awaitable[AttemptOutcome]]


class GenerationCancelled(RuntimeError):
    """Raised when a caller cancels a generation between ladder steps."""

    public_message = "Generation cancelled"


# Ladders (one per document type). Compaction only ever tightens.
MOCK_INTERVIEW_LADDER = (
    GenerationAttempt(strict_json=False, compaction_level=0, max_tokens=700,
                      progress_message="Analyzing the role..."),
    GenerationAttempt(strict_json=True, compaction_level=0, max_tokens=650,
                      progress_message="Retrying with stricter JSON..."),
    GenerationAttempt(strict_json=True, compaction_level=1, max_tokens=520,
                      progress_message="Retrying with fewer questions..."),
    GenerationAttempt(strict_json=True, compaction_level=2, max_tokens=420,
                      progress_message="Final retry with compact output..."),
)

COURSE_GUIDE_LADDER = (
    GenerationAttempt(strict_json=False, compaction_level=0, max_tokens=2400,
                      progress_message="Designing your study guide..."),
    GenerationAttempt(strict_json=True, compaction_level=0, max_tokens=2200,
                      progress_message="Retrying with stricter JSON..."),
    GenerationAttempt(strict_json=True, compaction_level=1, max_tokens=1800,
                      progress_message="Retrying with fewer modules..."),
    GenerationAttempt(strict_json=True, compaction_level=2, max_tokens=1400,
                      progress_message="Final retry with compact output..."),
)


def validate_ladder(attempts: Sequence[GenerationAttempt]) -> None:
    """
    Raises:
        ValueError: if the ladder is empty, a compaction level is outside 0-2,
            or compaction loosens between steps
    """
    if not attempts:
        raise ValueError("A retry ladder needs at least one attempt")
    previous = 0
    for index, attempt in enumerate(attempts):
        if not 0 <= attempt.compaction_level <= 2:
            raise ValueError(f"Attempt {index + 1}: compaction level must be 0-2")
        if attempt.compaction_level < previous:
            raise ValueError(f"Attempt {index + 1}: compaction level cannot decrease")
        if attempt.max_tokens <= 0:
            raise ValueError(f"Attempt {index + 1}: max_tokens must be positive")
        previous = attempt.compaction_level


class RetryLadder:
    """Runs attempts in order until one produces a document"""

    def __init__(self, attempts: Sequence[GenerationAttempt], phase_logger: Optional[PhaseLogger] = None):
        validate_ladder(attempts)
        self.attempts = tuple(attempts)
        self.phase_logger = phase_logger

    async def run(
        self,
        attempt_fn: AttemptFn,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> D:
        """
        Execute the ladder.

        Args:
            attempt_fn: Coroutine running one attempt and returning its outcome
            progress: Optional callback receiving each step's progress message
            cancel_event: Optional event; when set, no further step starts

        Returns:
            The first successfully produced document

        Raises:
            The last step's error when every step fails; GenerationCancelled;
            anything attempt_fn or progress raise
        """
        total = len(self.attempts)
        last_error: Optional[Exception] = None

        for step, attempt in enumerate(self.attempts, start=1):
            if cancel_event is not None and cancel_event.is_set():
                raise GenerationCancelled(f"Generation cancelled before attempt {step}/{total}")

            if progress is not None:
                await progress(attempt.progress_message)

            outcome = await self._run_step(attempt_fn, attempt, step, total)
            if outcome.ok:
                return outcome.document

            last_error = outcome.error
            if self.phase_logger:
                self.phase_logger.log_attempt(step, total, succeeded=False, reason=str(last_error))
            else:
                logger.warning("Attempt %d/%d failed: %s", step, total, last_error)

        assert last_error is not None
        raise last_error

    async def _run_step(
        self,
        attempt_fn: AttemptFn,
        attempt: GenerationAttempt,
        step: int,
        total: int,
    ) -> AttemptOutcome:
        if self.phase_logger is None:
            return await attempt_fn(attempt)

        sub_label = f"attempt {step}/{total} (strict={attempt.strict_json}, compact={attempt.compaction_level})"
        with self.phase_logger.phase(Phase.GENERATION, sub_label=sub_label):
            outcome = await attempt_fn(attempt)
            if outcome.ok:
                self.phase_logger.log_attempt(step, total, succeeded=True)
            return outcome
