# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Configuration helpers for apirunner."""

import os
from dataclasses import dataclass

from .version import __version__

DEFAULT_USER_AGENT = f"apirunner/{__version__}"
DEFAULT_MAX_BODY_BYTES = 10 * 1024 * 1024


def _float_env(name: str, default: float) -> float:
    try:
        value = os.getenv(name)
        return float(value) if value is not None else default
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        value = os.getenv(name)
        return int(value) if value is not None else default
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _positive_int_env(name: str, default: int) -> int:
    value = _int_env(name, default)
    return value if value > 0 else default


@dataclass
class HttpSettings:
    """Transport defaults for request execution."""

    timeout: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT
    allow_redirects: bool = True
    max_redirects: int = 5
    verify_ssl: bool = True
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES

    @classmethod
    def from_env(cls) -> "HttpSettings":
        """Create settings from environment variables (evaluated at call time)."""
        max_redirects = _int_env("APIRUNNER_HTTP_MAX_REDIRECTS", cls.max_redirects)
        if max_redirects < 0:
            max_redirects = cls.max_redirects
        timeout = _float_env("APIRUNNER_HTTP_TIMEOUT", cls.timeout)
        if timeout <= 0:
            timeout = cls.timeout
        return cls(
            timeout=timeout,
            user_agent=os.getenv("APIRUNNER_USER_AGENT", cls.user_agent),
            allow_redirects=_bool_env("APIRUNNER_HTTP_REDIRECTS", cls.allow_redirects),
            max_redirects=max_redirects,
            verify_ssl=_bool_env("APIRUNNER_HTTP_VERIFY_SSL", cls.verify_ssl),
            max_body_bytes=_positive_int_env("APIRUNNER_HTTP_MAX_BODY_BYTES", cls.max_body_bytes),
        )


@dataclass
class RunnerSettings:
    """Job orchestration and scripting defaults."""

    max_concurrent_jobs: int = 5
    script_timeout: float = 5.0
    response_time_threshold_ms: int = 5000
    default_concurrency: int = 5

    @classmethod
    def from_env(cls) -> "RunnerSettings":
        script_timeout = _float_env("APIRUNNER_SCRIPT_TIMEOUT", cls.script_timeout)
        if script_timeout <= 0:
            script_timeout = cls.script_timeout
        return cls(
            max_concurrent_jobs=_positive_int_env("APIRUNNER_MAX_CONCURRENT_JOBS", cls.max_concurrent_jobs),
            script_timeout=script_timeout,
            response_time_threshold_ms=_positive_int_env("APIRUNNER_RESPONSE_TIME_THRESHOLD_MS", cls.response_time_threshold_ms),
            default_concurrency=_positive_int_env("APIRUNNER_DEFAULT_CONCURRENCY", cls.default_concurrency),
        )


def load_http_settings() -> HttpSettings:
    """Load HTTP settings from environment with sensible defaults."""
    return HttpSettings.from_env()


def load_runner_settings() -> RunnerSettings:
    """Load orchestration settings from environment with sensible defaults."""
    return RunnerSettings.from_env()
