# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Per-run ambient context.

A ContextVar-backed RunContext carries common execution plumbing (timeout, http
client, settings, job id). Helpers read from it when explicit arguments are
omitted. Worker threads do not inherit ContextVars, so the orchestrator runs its
tasks inside ``contextvars.copy_context()``.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from ..config import HttpSettings, RunnerSettings, load_http_settings, load_runner_settings

if TYPE_CHECKING:
    from ..http.client import HttpClient


@dataclass(frozen=True)
class RunContext:
    timeout: float | None = None
    http_client: HttpClient | None = None
    http_settings: HttpSettings | None = None
    runner_settings: RunnerSettings | None = None
    job_id: str | None = None


_current_run_context: ContextVar[RunContext | None] = ContextVar("apirunner_run_context", default=None)


def get_run_context() -> RunContext:
    """Return the current ambient run context."""
    return _current_run_context.get() or RunContext()


def get_http_settings() -> HttpSettings:
    """Return HttpSettings from context, falling back to loading defaults."""
    context = get_run_context()
    if context.http_settings is not None:
        return context.http_settings
    return load_http_settings()


def get_runner_settings() -> RunnerSettings:
    """Return RunnerSettings from context, falling back to loading defaults."""
    context = get_run_context()
    if context.runner_settings is not None:
        return context.runner_settings
    return load_runner_settings()


@contextmanager
def run_context(**overrides: Any) -> Iterator[RunContext]:
    """
    Context manager that layers overrides onto the ambient RunContext.

    None-valued overrides are ignored to preserve outer context values.
    """
    current = get_run_context()
    filtered = {key: value for key, value in overrides.items() if value is not None}
    new_context = replace(current, **filtered) if filtered else current
    token = _current_run_context.set(new_context)
    try:
        yield new_context
    finally:
        _current_run_context.reset(token)


__all__ = [
    "RunContext",
    "get_http_settings",
    "get_run_context",
    "get_runner_settings",
    "run_context",
]
