"""
Interview Prep LLM Engine - Study Guide and Mock Interview API
==============================================================

Turns free-text role descriptions into structured study guides and mock
interview sessions using an unreliable chat-completion provider.

Features:
- Prompt-escalation retry ladder for malformed or truncated model output
- Primary/fallback model failover on provider quota errors
- Multi-window per-client rate limiting backed by Redis
- SSE progress streaming for long generations
- Answer review and ideal-answer helpers
"""

import asyncio
import logging
import uuid
from http import HTTPStatus
from typing import Awaitable, Callable, Optional, Set

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError as BodyValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ai_service import AIService, UpstreamTransportError, get_ai_service
from config import config
from generation_service import GenerationService
from models import ApiError
from rate_limiter import QuotaLimiter, get_quota_limiter
from response_parser import MalformedUpstreamResponse, ResponseParseFailure
from validation import RequestValidationError

# Setup logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
    ]
)

# Silence noisy third-party loggers
_noisy_loggers = [
    'httpcore',
    'httpcore.connection',
    'httpcore.http11',
    'httpx',
    'redis',
]
for _logger_name in _noisy_loggers:
    logging.getLogger(_logger_name).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

INTERNAL_SERVER_ERROR_MESSAGE = "Internal server error"
BODY_VALIDATION_MESSAGE = "Validation failed"


def public_message(exc: BaseException) -> str:
    """Caller-safe text for an exception. Raw exception text is never exposed."""
    return getattr(exc, "public_message", None) or INTERNAL_SERVER_ERROR_MESSAGE


def _rate_limit_header_names():
    names = ["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"]
    for window in config.RATE_LIMIT_WINDOWS:
        label = window.name.capitalize()
        names.extend([
            f"X-RateLimit-{label}-Limit",
            f"X-RateLimit-{label}-Remaining",
            f"X-RateLimit-{label}-Reset",
        ])
    return names


app = FastAPI(
    title="Interview Prep LLM Engine",
    description="Study guide and mock interview generation with LLM resilience",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)


# =============================================================================
# Services (initialized lazily to avoid event loop issues)
# =============================================================================

ai_service: Optional[AIService] = None
generation_service: Optional[GenerationService] = None
quota_limiter: Optional[QuotaLimiter] = None


def _ensure_services():
    """Initialize services lazily when needed (within async context)"""
    global ai_service, generation_service
    if generation_service is None:
        ai_service = get_ai_service()
        generation_service = GenerationService(ai_service, config)


def get_generation_service() -> GenerationService:
    _ensure_services()
    return generation_service


def get_request_limiter() -> Optional[QuotaLimiter]:
    """Limiter used by RateLimitMiddleware; None when rate limiting is disabled."""
    global quota_limiter
    if quota_limiter is None and config.RATE_LIMIT_ENABLED:
        quota_limiter = get_quota_limiter()
    return quota_limiter


class GenerationTaskPool:
    """
    Background tasks for streaming generations.

    At most max_concurrent generations run at once; the rest wait on the
    semaphore. Tasks are tracked so shutdown can cancel them.
    """

    def __init__(self, max_concurrent: int):
        self.max_concurrent = max_concurrent
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._tasks: Set[asyncio.Task] = set()

    def _get_semaphore(self) -> asyncio.Semaphore:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrent)
        return self._semaphore

    def spawn(self, job: Callable[[], Awaitable[None]], name: Optional[str] = None) -> asyncio.Task:
        semaphore = self._get_semaphore()

        async def _run():
            async with semaphore:
                await job()

        task = asyncio.create_task(_run(), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()


task_pool = GenerationTaskPool(config.MAX_CONCURRENT_GENERATIONS)


# =============================================================================
# Middleware
# =============================================================================

# Added first so CORS wraps it: preflights and 429s still carry CORS headers
from .security import RateLimitMiddleware
app.add_middleware(RateLimitMiddleware, limiter_provider=lambda: get_request_limiter())

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=_rate_limit_header_names(),
)

# Monitor routes
from .monitor_routes import router as monitor_router
app.include_router(monitor_router)


# =============================================================================
# Error mapping
# =============================================================================

def build_error_response(status_code: int, message: str, request: Request) -> JSONResponse:
    body = ApiError(
        status=status_code,
        error=HTTPStatus(status_code).phrase,
        message=message,
        path=request.url.path,
        request_id=str(uuid.uuid4()),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError):
    return build_error_response(400, exc.public_message, request)


@app.exception_handler(BodyValidationError)
async def handle_body_validation(request: Request, exc: BodyValidationError):
    return build_error_response(400, BODY_VALIDATION_MESSAGE, request)


@app.exception_handler(UpstreamTransportError)
async def handle_upstream(request: Request, exc: UpstreamTransportError):
    logger.error("Upstream failure on %s: %s", request.url.path, exc)
    return build_error_response(502, exc.public_message, request)


@app.exception_handler(ResponseParseFailure)
@app.exception_handler(MalformedUpstreamResponse)
async def handle_processing(request: Request, exc: Exception):
    logger.error(
        "Processing failure on %s: %s (raw: %s)",
        request.url.path,
        exc,
        getattr(exc, "raw_excerpt", "-"),
    )
    return build_error_response(500, exc.public_message, request)


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    return build_error_response(exc.status_code, str(exc.detail), request)


@app.exception_handler(Exception)
async def handle_unexpected(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return build_error_response(500, INTERNAL_SERVER_ERROR_MESSAGE, request)


# =============================================================================
# Lifecycle
# =============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize services on startup"""
    try:
        _ensure_services()
        logger.info("Generation services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize generation services: {e}")
        # Don't fail startup, services will be initialized on first use

    if config.RATE_LIMIT_ENABLED:
        windows = ", ".join(
            f"{w.name}={w.limit}/{w.window_seconds}s" for w in config.RATE_LIMIT_WINDOWS
        )
        logger.info(f"Rate limiting enabled ({windows})")
    else:
        logger.warning("Rate limiting disabled")


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up resources on shutdown"""
    logger.info("Shutting down Interview Prep LLM Engine...")

    await task_pool.shutdown()

    if ai_service is not None:
        try:
            await ai_service.close()
            logger.info("AI service connections closed successfully")
        except Exception as e:
            logger.error(f"Error closing AI service: {e}")

    store = getattr(quota_limiter, "store", None)
    if store is not None and hasattr(store, "close"):
        try:
            await store.close()
            logger.info("Counter store connection closed successfully")
        except Exception as e:
            logger.error(f"Error closing counter store: {e}")

    logger.info("Shutdown complete")
