"""
Configuration for the Interview Prep LLM Engine
===============================================

Central settings: upstream chat-completion endpoint and models, quota-failure
classification rules, rate-limit windows and HTTP surface options.

Values come from the environment (a local .env file is loaded first). A
single `config` instance is built at import time; components receive what
they need through their constructors.
"""

import os
import sys
from typing import List, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()


class RateLimitWindow(BaseModel):
    """One fixed quota window (e.g. 10 requests per 60 seconds)."""

    model_config = {"frozen": True}

    name: str = Field(..., min_length=1, description="Window name used in keys and headers")
    limit: int = Field(..., ge=0, description="Requests admitted per window")
    window_seconds: int = Field(..., gt=0, description="Window duration in seconds")


DEFAULT_RATE_LIMIT_WINDOWS = "minute:10:60,hour:60:3600,day:200:86400"
DEFAULT_QUOTA_FAILURE_MARKERS = "rate_limit_exceeded,insufficient_quota,quota_exceeded,rate limit"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:3001"


def parse_rate_limit_windows(value: str) -> Tuple[RateLimitWindow, ...]:
    """
    Parse a window list such as "minute:10:60,day:200:86400".

    Each entry is name:limit:seconds. Names must be unique.

    Raises:
        ValueError: On malformed entries, duplicate names or an empty list
    """
    windows: List[RateLimitWindow] = []
    seen = set()
    for raw_entry in (value or "").split(","):
        entry = raw_entry.strip()
        if not entry:
            continue
        parts = [part.strip() for part in entry.split(":")]
        if len(parts) != 3:
            raise ValueError(f"Invalid rate limit window '{entry}'. Expected name:limit:seconds")
        name, limit, seconds = parts
        try:
            window = RateLimitWindow(name=name.lower(), limit=int(limit), window_seconds=int(seconds))
        except ValueError as exc:
            raise ValueError(f"Invalid rate limit window '{entry}': {exc}") from exc
        if window.name in seen:
            raise ValueError(f"Duplicate rate limit window name '{window.name}'")
        seen.add(window.name)
        windows.append(window)
    if not windows:
        raise ValueError("At least one rate limit window must be configured")
    return tuple(windows)


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class Config(BaseModel):
    """Configuration settings for the Interview Prep LLM Engine."""

    # Upstream chat-completion endpoint (OpenAI-compatible)
    GROQ_API_KEY: str = Field(default="", description="Bearer credential for the upstream provider")
    GROQ_API_URL: str = Field(
        default="https://api.groq.com/openai/v1/chat/completions",
        description="Chat-completion endpoint URL",
    )
    PRIMARY_MODEL: str = Field(
        default="meta-llama/llama-4-scout-17b-16e-instruct",
        description="Model tried first for every request",
    )
    FALLBACK_MODEL: str = Field(
        default="groq/compound",
        description="Model tried once when the primary fails for quota reasons",
    )
    UPSTREAM_CONNECT_TIMEOUT: float = Field(default=5.0, gt=0, description="Connect timeout (seconds)")
    UPSTREAM_READ_TIMEOUT: float = Field(default=30.0, gt=0, description="Read timeout (seconds)")

    # Quota-failure classification (best-effort heuristic)
    QUOTA_FAILURE_STATUS_CODES: Tuple[int, ...] = Field(
        default=(429, 402),
        description="HTTP statuses always treated as quota failures",
    )
    QUOTA_FAILURE_MARKERS: Tuple[str, ...] = Field(
        default=tuple(_split_csv(DEFAULT_QUOTA_FAILURE_MARKERS)),
        description="Lower-case substrings of an error body that mark a quota failure",
    )

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Apply the quota limiter to inbound requests")
    RATE_LIMIT_WINDOWS: Tuple[RateLimitWindow, ...] = Field(
        default_factory=lambda: parse_rate_limit_windows(DEFAULT_RATE_LIMIT_WINDOWS),
        description="Configured quota windows",
    )
    REDIS_URL: str = Field(default="redis://localhost:6379/0", description="Counter store URL")
    REDIS_TIMEOUT_SECONDS: float = Field(default=0.5, gt=0, description="Upper bound for one counter-store call")

    # Generation
    MAX_CONCURRENT_GENERATIONS: int = Field(default=8, ge=1, description="Streaming generations running at once")
    MAX_PROMPT_CHARS: int = Field(default=4000, ge=1, description="Job description characters sent upstream")

    # HTTP surface
    CORS_ALLOWED_ORIGINS: List[str] = Field(default_factory=lambda: _split_csv(DEFAULT_CORS_ORIGINS))
    APP_HOST: str = Field(default="0.0.0.0", description="FastAPI host")
    APP_PORT: int = Field(default=8080, description="FastAPI port")
    APP_RELOAD: bool = Field(default=False, description="FastAPI reload mode")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")
    EXTRA_VERBOSE: bool = Field(default=False, description="Log full prompts and raw model output")

    def __init__(self, **data):
        super().__init__(**data)
        if not data:
            self.load_from_environment()

    def load_from_environment(self):
        """Override defaults from environment variables."""
        self.GROQ_API_KEY = os.getenv("GROQ_API_KEY", self.GROQ_API_KEY)
        self.GROQ_API_URL = os.getenv("GROQ_API_URL", self.GROQ_API_URL)
        self.PRIMARY_MODEL = os.getenv("PRIMARY_MODEL", self.PRIMARY_MODEL)
        self.FALLBACK_MODEL = os.getenv("FALLBACK_MODEL", self.FALLBACK_MODEL)
        self.UPSTREAM_CONNECT_TIMEOUT = float(os.getenv("UPSTREAM_CONNECT_TIMEOUT", self.UPSTREAM_CONNECT_TIMEOUT))
        self.UPSTREAM_READ_TIMEOUT = float(os.getenv("UPSTREAM_READ_TIMEOUT", self.UPSTREAM_READ_TIMEOUT))

        status_override = os.getenv("QUOTA_FAILURE_STATUS_CODES")
        if status_override:
            self.QUOTA_FAILURE_STATUS_CODES = tuple(int(code) for code in _split_csv(status_override))
        markers_override = os.getenv("QUOTA_FAILURE_MARKERS")
        if markers_override:
            self.QUOTA_FAILURE_MARKERS = tuple(marker.lower() for marker in _split_csv(markers_override))

        self.RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
        windows_override = os.getenv("RATE_LIMIT_WINDOWS")
        if windows_override:
            try:
                self.RATE_LIMIT_WINDOWS = parse_rate_limit_windows(windows_override)
            except ValueError as exc:
                msg = f"[CONFIG ERROR] RATE_LIMIT_WINDOWS: {exc}"
                print(msg, file=sys.stderr, flush=True)
                raise
        self.REDIS_URL = os.getenv("REDIS_URL", self.REDIS_URL)
        self.REDIS_TIMEOUT_SECONDS = float(os.getenv("REDIS_TIMEOUT_SECONDS", self.REDIS_TIMEOUT_SECONDS))

        self.MAX_CONCURRENT_GENERATIONS = int(
            os.getenv("MAX_CONCURRENT_GENERATIONS", self.MAX_CONCURRENT_GENERATIONS)
        )
        self.MAX_PROMPT_CHARS = int(os.getenv("MAX_PROMPT_CHARS", self.MAX_PROMPT_CHARS))

        origins_override = os.getenv("CORS_ALLOWED_ORIGINS")
        if origins_override:
            self.CORS_ALLOWED_ORIGINS = _split_csv(origins_override)
        self.APP_HOST = os.getenv("APP_HOST", self.APP_HOST)
        self.APP_PORT = int(os.getenv("APP_PORT", self.APP_PORT))
        self.APP_RELOAD = os.getenv("APP_RELOAD", "false").lower() == "true"

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", self.LOG_LEVEL).upper()
        self.EXTRA_VERBOSE = os.getenv("EXTRA_VERBOSE", "false").lower() == "true"

        if not self.GROQ_API_KEY:
            print("[CONFIG WARNING] GROQ_API_KEY is not set; upstream calls will be rejected.", file=sys.stderr)


# Global configuration instance
config = Config()
