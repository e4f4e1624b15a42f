# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""High-level apirunner facade for single executions and scan jobs."""

from __future__ import annotations

from contextlib import suppress
from typing import Any

from .config import HttpSettings, RunnerSettings, load_http_settings, load_runner_settings
from .errors import ApiRunnerError
from .execution import ExecutionOptions, ProxySelector, RequestExecutor, ScriptSandbox
from .http.client import HttpClient, create_default_http_client
from .jobs import JobOrchestrator
from .models import ActiveJob, ApiRequest, ExecutionResult, JobCancelResult, JobStartResult
from .store import DataStore, InMemoryStore
from .utils.context import run_context


class ApiRunner:
    """
    Convenience wrapper that wires one store and one HTTP client through the
    executor and the job orchestrator.

    Every public call runs inside a run context carrying the shared client and
    settings, so job worker threads started here inherit them.
    """

    def __init__(
        self,
        store: DataStore | None = None,
        http_client: HttpClient | None = None,
        *,
        http_settings: HttpSettings | None = None,
        runner_settings: RunnerSettings | None = None,
    ):
        self.store = store if store is not None else InMemoryStore()
        self.http_settings = http_settings or load_http_settings()
        self.runner_settings = runner_settings or load_runner_settings()
        self.http_client = http_client or create_default_http_client(self.http_settings)
        self.executor = RequestExecutor(
            self.http_client,
            proxy_selector=ProxySelector(self.store),
            sandbox=ScriptSandbox(timeout=self.runner_settings.script_timeout),
            settings=self.http_settings,
        )
        self.orchestrator = JobOrchestrator(self.store, self.executor, self.runner_settings)

    def _context(self) -> Any:
        return run_context(
            http_client=self.http_client,
            http_settings=self.http_settings,
            runner_settings=self.runner_settings,
        )

    def execute_request(
        self,
        request: ApiRequest | str,
        *,
        environment: dict[str, str] | None = None,
        proxy_id: str | None = None,
        proxy_pool_id: str | None = None,
        skip_pre_request_script: bool = False,
        skip_tests: bool = False,
    ) -> ExecutionResult:
        if isinstance(request, str):
            found = self.store.get_request(request)
            if found is None:
                raise ApiRunnerError(f"Request {request} not found")
            request = found
        options = ExecutionOptions(
            environment=dict(environment or {}),
            proxy_id=proxy_id,
            proxy_pool_id=proxy_pool_id,
            skip_pre_request_script=skip_pre_request_script,
            skip_tests=skip_tests,
        )
        with self._context():
            return self.executor.execute(request, options)

    def start_test_job(self, job_id: str) -> JobStartResult:
        with self._context():
            return self.orchestrator.start(job_id)

    def cancel_test_job(self, job_id: str) -> JobCancelResult:
        return self.orchestrator.cancel(job_id)

    def list_active_test_jobs(self) -> list[ActiveJob]:
        return self.orchestrator.list_active()

    def wait_for_job(self, job_id: str, timeout: float | None = None) -> bool:
        return self.orchestrator.wait(job_id, timeout)

    def close(self) -> None:
        self.orchestrator.shutdown()
        with suppress(Exception):
            if hasattr(self.http_client, "close"):
                self.http_client.close()

    def __enter__(self) -> ApiRunner:
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> None:  # noqa: ANN001
        self.close()


__all__ = ["ApiRunner"]
