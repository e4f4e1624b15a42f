# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
apirunner package entrypoint.

apirunner executes stored HTTP API requests (variable substitution, sandboxed
pre-request and test scripts, proxy rotation) and fans them out as scan jobs
across parameter combinations with bounded concurrency. HTTP behavior is
abstracted behind an injectable client interface, persistence behind repository
protocols, and domain objects are modeled with typed dataclasses.
"""

from .config import HttpSettings, RunnerSettings, load_http_settings, load_runner_settings
from .errors import (
    ApiRunnerError,
    ErrorCategory,
    JobAlreadyRunningError,
    JobCapacityError,
    JobNotFoundError,
)
from .execution import ExecutionOptions, ProxySelector, RequestExecutor, ScriptSandbox, resolve_variables
from .http import HttpClient, HttpRequest, HttpResponse, HttpxClient, StubHttpClient, create_default_http_client
from .jobs import JobOrchestrator, generate_combinations
from .log import setup_logging
from .models import ActiveJob, ApiRequest, ExecutionResult, JobCancelResult, JobStartResult, ScanJob, ScanResult
from .runtime import ApiRunner
from .store import InMemoryStore
from .version import __version__

__all__ = [
    "ActiveJob",
    "ApiRequest",
    "ApiRunner",
    "ApiRunnerError",
    "ErrorCategory",
    "ExecutionOptions",
    "ExecutionResult",
    "HttpClient",
    "HttpRequest",
    "HttpResponse",
    "HttpSettings",
    "HttpxClient",
    "InMemoryStore",
    "JobAlreadyRunningError",
    "JobCancelResult",
    "JobCapacityError",
    "JobNotFoundError",
    "JobOrchestrator",
    "JobStartResult",
    "ProxySelector",
    "RequestExecutor",
    "RunnerSettings",
    "ScanJob",
    "ScanResult",
    "ScriptSandbox",
    "StubHttpClient",
    "create_default_http_client",
    "generate_combinations",
    "load_http_settings",
    "load_runner_settings",
    "resolve_variables",
    "setup_logging",
    "__version__",
]
