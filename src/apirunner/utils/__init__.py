# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Shared utilities."""

from .context import RunContext, get_http_settings, get_run_context, get_runner_settings, run_context

__all__ = [
    "RunContext",
    "get_http_settings",
    "get_run_context",
    "get_runner_settings",
    "run_context",
]
