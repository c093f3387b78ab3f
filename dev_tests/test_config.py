"""
Tests for config.py - configuration loading and rate-limit window parsing.
"""

import os
from unittest.mock import patch

import pytest

from config import Config, RateLimitWindow, parse_rate_limit_windows


# ============================================================================
# parse_rate_limit_windows
# ============================================================================

class TestParseRateLimitWindows:

    def test_default_window_list(self):
        windows = parse_rate_limit_windows("minute:10:60,hour:60:3600,day:200:86400")
        assert [(w.name, w.limit, w.window_seconds) for w in windows] == [
            ("minute", 10, 60), ("hour", 60, 3600), ("day", 200, 86400),
        ]

    def test_whitespace_and_case_normalized(self):
        windows = parse_rate_limit_windows(" Minute : 5 : 30 , ")
        assert windows == (RateLimitWindow(name="minute", limit=5, window_seconds=30),)

    @pytest.mark.parametrize("value", ["minute:10", "minute:ten:60", "minute:10:0", "minute:-1:60"])
    def test_malformed_entries_rejected(self, value):
        with pytest.raises(ValueError):
            parse_rate_limit_windows(value)

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            parse_rate_limit_windows("minute:1:60,MINUTE:2:60")

    @pytest.mark.parametrize("value", ["", " , "])
    def test_empty_rejected(self, value):
        with pytest.raises(ValueError):
            parse_rate_limit_windows(value)


# ============================================================================
# Environment loading
# ============================================================================

class TestEnvironmentLoading:

    def test_explicit_values_skip_environment(self):
        """
        Given: GROQ_API_KEY set in the environment
        When: Config is built with explicit values
        Then: The environment is not consulted
        """
        with patch.dict(os.environ, {"GROQ_API_KEY": "from-env"}):
            settings = Config(GROQ_API_KEY="explicit")
        assert settings.GROQ_API_KEY == "explicit"

    def test_environment_overrides(self):
        env = {
            "GROQ_API_KEY": "gsk-env",
            "PRIMARY_MODEL": "model-a",
            "FALLBACK_MODEL": "model-b",
            "RATE_LIMIT_WINDOWS": "burst:2:5",
            "RATE_LIMIT_ENABLED": "false",
            "QUOTA_FAILURE_STATUS_CODES": "429",
            "QUOTA_FAILURE_MARKERS": "Too_Many,busy",
            "CORS_ALLOWED_ORIGINS": "https://app.example.com",
            "MAX_CONCURRENT_GENERATIONS": "3",
            "APP_PORT": "9000",
            "LOG_LEVEL": "debug",
        }
        with patch.dict(os.environ, env):
            settings = Config()

        assert settings.GROQ_API_KEY == "gsk-env"
        assert settings.PRIMARY_MODEL == "model-a"
        assert settings.FALLBACK_MODEL == "model-b"
        assert [w.name for w in settings.RATE_LIMIT_WINDOWS] == ["burst"]
        assert settings.RATE_LIMIT_ENABLED is False
        assert settings.QUOTA_FAILURE_STATUS_CODES == (429,)
        assert settings.QUOTA_FAILURE_MARKERS == ("too_many", "busy")
        assert settings.CORS_ALLOWED_ORIGINS == ["https://app.example.com"]
        assert settings.MAX_CONCURRENT_GENERATIONS == 3
        assert settings.APP_PORT == 9000
        assert settings.LOG_LEVEL == "DEBUG"

    def test_malformed_windows_fail_loudly(self, capsys):
        with patch.dict(os.environ, {"RATE_LIMIT_WINDOWS": "minute:abc:60"}):
            with pytest.raises(ValueError):
                Config()
        assert "RATE_LIMIT_WINDOWS" in capsys.readouterr().err

    def test_defaults(self, test_config):
        assert test_config.QUOTA_FAILURE_STATUS_CODES == (429, 402)
        assert "insufficient_quota" in test_config.QUOTA_FAILURE_MARKERS
        assert test_config.UPSTREAM_CONNECT_TIMEOUT == 5.0
        assert test_config.UPSTREAM_READ_TIMEOUT == 30.0
        assert test_config.MAX_PROMPT_CHARS == 4000
