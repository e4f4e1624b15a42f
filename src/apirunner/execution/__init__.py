# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Single-request execution: variables, scripts, proxies, transport and verdicts."""

from .assertions import run_default_tests
from .executor import ExecutionOptions, RequestExecutor
from .proxies import ProxySelector
from .sandbox import ScriptRunResult, ScriptSandbox
from .transport import build_http_request
from .variables import resolve_request, resolve_variables, substitute

__all__ = [
    "ExecutionOptions",
    "ProxySelector",
    "RequestExecutor",
    "ScriptRunResult",
    "ScriptSandbox",
    "build_http_request",
    "resolve_request",
    "resolve_variables",
    "run_default_tests",
    "substitute",
]
