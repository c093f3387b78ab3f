"""
AI Service Module for the Interview Prep LLM Engine
===================================================

Talks to an OpenAI-compatible chat-completion endpoint over httpx.
Every call goes to the primary model first; when the provider rejects it for
quota/rate-limit reasons the identical request is replayed once against the
fallback model. Any other failure propagates immediately.
"""

import logging
import threading
from contextlib import nullcontext
from typing import Any, Dict, List, Optional

import httpx

import json_utils as json
from config import Config, config
from logging_utils import Phase, PhaseLogger
from response_parser import MalformedUpstreamResponse


logger = logging.getLogger(__name__)

ERROR_BODY_LOG_CHARS = 300


class UpstreamTransportError(RuntimeError):
    """Raised when the chat-completion call fails for a non-recoverable reason."""

    public_message = "Upstream provider error"

    def __init__(self, model: str, cause: Exception, status_code: Optional[int] = None):
        status_str = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"Chat completion failed for {model}{status_str}: {type(cause).__name__}")
        self.model = model
        self.status_code = status_code
        self.cause = cause


class QuotaExceededUpstream(RuntimeError):
    """The provider rejected a call because a rate/usage allowance ran out."""

    def __init__(self, model: str, status_code: int, cause: httpx.HTTPStatusError):
        super().__init__(f"Quota exhausted for {model} (HTTP {status_code})")
        self.model = model
        self.status_code = status_code
        self.cause = cause


def is_quota_error(
    status_code: int,
    body: Optional[str],
    status_codes: tuple = (429, 402),
    markers: tuple = (),
) -> bool:
    """
    Best-effort classification of an upstream HTTP failure as a quota failure.

    Listed statuses always count; otherwise the body is searched
    case-insensitively for any of the markers.
    """
    if status_code in status_codes:
        return True
    if not body:
        return False
    lowered = body.lower()
    return any(marker.lower() in lowered for marker in markers if marker)


_shared_ai_service: Optional["AIService"] = None
_ai_service_init_lock = threading.Lock()


def get_ai_service() -> "AIService":
    """Return the shared AIService instance, creating it on first use."""
    global _shared_ai_service
    if _shared_ai_service is None:
        with _ai_service_init_lock:
            if _shared_ai_service is None:
                _shared_ai_service = AIService(config)
    return _shared_ai_service


class AIService:
    """Chat-completion client with one-shot quota failover"""

    def __init__(self, settings: Config, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.primary_model = settings.PRIMARY_MODEL
        self.fallback_model = settings.FALLBACK_MODEL
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            timeout = httpx.Timeout(
                self.settings.UPSTREAM_READ_TIMEOUT,
                connect=self.settings.UPSTREAM_CONNECT_TIMEOUT,
            )
            self._client = httpx.AsyncClient(timeout=timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _is_quota_error(self, exc: httpx.HTTPStatusError) -> bool:
        try:
            body = exc.response.text
        except Exception:
            body = None
        return is_quota_error(
            exc.response.status_code,
            body,
            status_codes=tuple(self.settings.QUOTA_FAILURE_STATUS_CODES),
            markers=tuple(self.settings.QUOTA_FAILURE_MARKERS),
        )

    async def post_chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: Optional[int] = None,
        phase_logger: Optional[PhaseLogger] = None,
    ) -> Dict[str, Any]:
        """
        Send one chat completion, failing over to the fallback model on quota errors.

        When a phase_logger is given the fallback call is framed in a
        MODEL_FAILOVER phase.

        Returns:
            The decoded response envelope

        Raises:
            UpstreamTransportError: on any non-quota failure, or when the
                fallback call fails too
            MalformedUpstreamResponse: when the body is not JSON
        """
        try:
            return await self.post_chat_with_model(self.primary_model, messages, temperature, max_tokens)
        except QuotaExceededUpstream as quota_exc:
            logger.warning(
                "Primary model %s hit a quota limit (HTTP %s); retrying with %s",
                self.primary_model,
                quota_exc.status_code,
                self.fallback_model,
            )

        if phase_logger is not None:
            failover_phase = phase_logger.phase(
                Phase.FAILOVER, sub_label=f"{self.primary_model} -> {self.fallback_model}"
            )
        else:
            failover_phase = nullcontext()

        with failover_phase:
            try:
                return await self.post_chat_with_model(self.fallback_model, messages, temperature, max_tokens)
            except QuotaExceededUpstream as fallback_quota_exc:
                raise UpstreamTransportError(
                    self.fallback_model,
                    fallback_quota_exc.cause,
                    status_code=fallback_quota_exc.status_code,
                ) from fallback_quota_exc

    async def post_chat_with_model(
        self,
        model: str,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Send one chat completion to a specific model.

        Raises:
            QuotaExceededUpstream: on a quota-class HTTP failure
            UpstreamTransportError: on any other HTTP or transport failure
            MalformedUpstreamResponse: when the body is not JSON
        """
        body: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens is not None:
            body["max_tokens"] = max_tokens

        headers = {
            "Authorization": f"Bearer {self.settings.GROQ_API_KEY}",
            "Content-Type": "application/json",
        }

        try:
            response = await self._get_client().post(
                self.settings.GROQ_API_URL,
                content=json.dumps(body),
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if self._is_quota_error(exc):
                raise QuotaExceededUpstream(model, status, exc) from exc
            logger.error(
                "Chat completion for %s failed with HTTP %s: %s",
                model,
                status,
                exc.response.text[:ERROR_BODY_LOG_CHARS],
            )
            raise UpstreamTransportError(model, exc, status_code=status) from exc
        except httpx.HTTPError as exc:
            logger.error("Chat completion for %s failed: %s", model, type(exc).__name__)
            raise UpstreamTransportError(model, exc) from exc

        try:
            return json.loads(response.content)
        except json.JSONDecodeError as exc:
            raise MalformedUpstreamResponse("envelope", "is not valid JSON") from exc
