"""
Streaming endpoints for the Interview Prep LLM Engine.

Each request spawns one generation on the shared task pool and returns an
SSE response right away. The client receives `progress` events for every
ladder step, then exactly one `result` or `error` event.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import AsyncGenerator, Awaitable, Callable

from fastapi import Body
from fastapi.responses import StreamingResponse

from generation_ladder import GenerationCancelled
from models import GenerateCourseGuideRequest, GenerateMockInterviewRequest
from services.progress_stream import ProgressChannelClosed, ProgressStream
from validation import validate_job_description, validate_prompt

from .app_state import app, get_generation_service, logger, public_message, task_pool

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def _forward_events(stream: ProgressStream, cancel_event: asyncio.Event) -> AsyncGenerator[bytes, None]:
    try:
        async for chunk in stream.events():
            yield chunk
    finally:
        # Client gone or stream finished: no further ladder steps
        cancel_event.set()


def _start_stream(
    label: str,
    generate: Callable[[ProgressStream, asyncio.Event, str], Awaitable[object]],
) -> StreamingResponse:
    request_id = str(uuid.uuid4())
    stream = ProgressStream(request_id)
    cancel_event = asyncio.Event()

    async def job():
        try:
            document = await generate(stream, cancel_event, request_id)
            await stream.result(document)
        except (ProgressChannelClosed, GenerationCancelled):
            logger.info("%s [%s] abandoned by client", label, request_id[:8])
        except Exception as exc:
            logger.error("%s [%s] failed: %s", label, request_id[:8], exc)
            await stream.error(public_message(exc))

    task_pool.spawn(job, name=f"{label}-{request_id[:8]}")
    return StreamingResponse(
        _forward_events(stream, cancel_event),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@app.post("/api/course-guide/stream")
async def stream_course_guide(request: GenerateCourseGuideRequest = Body(...)):
    """Stream study-guide generation progress over SSE."""
    prompt = validate_prompt(request.prompt)
    service = get_generation_service()

    async def generate(stream: ProgressStream, cancel_event: asyncio.Event, request_id: str):
        return await service.generate_course_guide(
            prompt,
            progress=stream.progress,
            cancel_event=cancel_event,
            request_id=request_id,
        )

    return _start_stream("course-guide", generate)


@app.post("/api/mock-interview/stream")
async def stream_mock_interview(request: GenerateMockInterviewRequest = Body(...)):
    """Stream mock-interview generation progress over SSE."""
    prompt = validate_job_description(request.prompt)
    service = get_generation_service()

    async def generate(stream: ProgressStream, cancel_event: asyncio.Event, request_id: str):
        return await service.generate_mock_interview(
            prompt,
            progress=stream.progress,
            cancel_event=cancel_event,
            request_id=request_id,
        )

    return _start_stream("mock-interview", generate)
