# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Scan job orchestration.

A job fans every selected request of a collection out across the combinations of
its parameter set. Requests run in batches of ``concurrency``: each batch runs in
parallel on a thread pool and the next batch starts only after the whole batch
finished. Progress is persisted after every batch, cancellation is cooperative and
checked between batches and between variants.
"""

from __future__ import annotations

import contextvars
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, replace
from typing import Any

from ..config import RunnerSettings, load_runner_settings
from ..errors import JobAlreadyRunningError, JobNotFoundError, JobSetupError
from ..execution import ExecutionOptions, RequestExecutor, run_default_tests
from ..models import ActiveJob, ApiRequest, JobCancelResult, JobStartResult, JobStatus, ScanJob, ScanResult
from ..models.fields import utcnow
from ..store.repository import DataStore
from ..utils.context import run_context
from .combinator import count_combinations, generate_combinations
from .registry import JobRegistry, JobRunState

logger = logging.getLogger(__name__)

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 100


@dataclass
class JobPlan:
    requests: list[ApiRequest]
    parameters: dict[str, Any]
    environment: dict[str, str]
    proxy_pool_id: str | None
    concurrency: int
    total: int


def batch_progress(completed_batches: int, batch_size: int, total: int) -> int:
    """Progress after a batch; capped at 99 until the job is finalized."""
    if total <= 0:
        return 99
    return min((completed_batches * batch_size * 100) // total, 99)


class JobOrchestrator:
    def __init__(
        self,
        store: DataStore,
        executor: RequestExecutor,
        settings: RunnerSettings | None = None,
    ):
        self.store = store
        self.executor = executor
        self.settings = settings or load_runner_settings()
        self.registry = JobRegistry(self.settings.max_concurrent_jobs)

    # -- lifecycle ---------------------------------------------------------

    def start(self, job_id: str) -> JobStartResult:
        """
        Admit a job and launch its worker thread; returns without waiting.

        Raises JobCapacityError, JobAlreadyRunningError or JobNotFoundError and
        leaves the persisted job untouched when the job is rejected.
        """
        self.registry.check_admission(job_id)
        job = self.store.get_scan_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status is JobStatus.RUNNING:
            raise JobAlreadyRunningError(job_id)

        started_at = utcnow()
        running = replace(job, status=JobStatus.RUNNING, progress=0, start_time=started_at, end_time=None)
        state = JobRunState(job=running)
        self.registry.try_register(state)
        try:
            self.store.update_scan_job(job_id, status=JobStatus.RUNNING, progress=0, start_time=started_at, end_time=None)
        except Exception:
            self.registry.remove(job_id, state)
            raise

        context = contextvars.copy_context()
        thread = threading.Thread(
            target=context.run,
            args=(self._run_job, state),
            name=f"scan-job-{job_id}",
            daemon=True,
        )
        state.thread = thread
        thread.start()
        logger.info("Started scan job %s (%s)", job_id, job.name or job.collection_id)
        return JobStartResult(job_id=job_id, status=JobStatus.RUNNING.value, message="Test job started")

    def cancel(self, job_id: str) -> JobCancelResult:
        state = self.registry.get(job_id)
        if state is None:
            return JobCancelResult(success=False, message="Test job not found or not running")
        if not state.mark_terminal(JobStatus.CANCELLED):
            return JobCancelResult(success=False, message="Test job is already finishing")
        self.store.update_scan_job(job_id, status=JobStatus.CANCELLED, end_time=utcnow())
        logger.info("Cancelled scan job %s after %d/%d results", job_id, state.completed, state.total)
        return JobCancelResult(success=True, message="Test job cancelled")

    def list_active(self) -> list[ActiveJob]:
        return self.registry.snapshot()

    def wait(self, job_id: str, timeout: float | None = None) -> bool:
        """Block until the job's worker exits; False when the timeout elapsed first."""
        state = self.registry.get(job_id)
        if state is None or state.thread is None:
            return True
        state.thread.join(timeout)
        return not state.thread.is_alive()

    def shutdown(self, timeout: float | None = None) -> None:
        states = self.registry.states()
        for state in states:
            self.cancel(state.job_id)
        for state in states:
            if state.thread is not None:
                state.thread.join(timeout)

    # -- worker ------------------------------------------------------------

    def _run_job(self, state: JobRunState) -> None:
        job = state.job
        try:
            with run_context(job_id=job.id, runner_settings=self.settings):
                plan = self._prepare(job)
                state.total = plan.total
                logger.info(
                    "Job %s: %d requests, %d variants, concurrency %d",
                    job.id,
                    len(plan.requests),
                    plan.total,
                    plan.concurrency,
                )
                self._execute_plan(state, plan)

            if state.mark_terminal(JobStatus.COMPLETED):
                state.set_progress(100)
                self.store.update_scan_job(job.id, status=JobStatus.COMPLETED, progress=100, end_time=utcnow())
                logger.info("Completed scan job %s with %d results", job.id, state.completed)
        except JobSetupError as exc:
            logger.warning("Scan job %s failed: %s", job.id, exc)
            self._fail(state)
        except Exception:
            logger.exception("Scan job %s failed", job.id)
            self._fail(state)
        finally:
            self.registry.remove(job.id, state)

    def _fail(self, state: JobRunState) -> None:
        if state.mark_terminal(JobStatus.FAILED):
            self.store.update_scan_job(state.job_id, status=JobStatus.FAILED, end_time=utcnow())

    def _prepare(self, job: ScanJob) -> JobPlan:
        collection = self.store.get_collection(job.collection_id)
        if collection is None:
            raise JobSetupError(job.id, f"Collection {job.collection_id} not found")

        if job.request_ids:
            requests = self.store.list_requests_by_ids(job.request_ids)
        else:
            requests = self.store.list_requests_by_collection(job.collection_id)
        if not requests:
            raise JobSetupError(job.id, "No requests to run")

        parameters: dict[str, Any] = {}
        if job.parameter_set_id:
            parameter_set = self.store.get_parameter_set(job.parameter_set_id)
            if parameter_set is None:
                raise JobSetupError(job.id, f"Parameter set {job.parameter_set_id} not found")
            parameters = dict(parameter_set.variables)

        if job.proxy_pool_id and self.store.get_proxy_pool(job.proxy_pool_id) is None:
            raise JobSetupError(job.id, f"Proxy pool {job.proxy_pool_id} not found")

        try:
            variants = count_combinations(parameters)
        except ValueError as exc:
            raise JobSetupError(job.id, f"Invalid parameter set: {exc}") from exc

        concurrency = job.concurrency or self.settings.default_concurrency
        return JobPlan(
            requests=requests,
            parameters=parameters,
            environment=collection.environment(),
            proxy_pool_id=job.proxy_pool_id,
            concurrency=max(MIN_CONCURRENCY, min(MAX_CONCURRENCY, concurrency)),
            total=len(requests) * variants,
        )

    def _execute_plan(self, state: JobRunState, plan: JobPlan) -> None:
        batch_size = plan.concurrency
        completed_batches = 0
        with ThreadPoolExecutor(max_workers=batch_size, thread_name_prefix=f"scan-{state.job_id}") as pool:
            for offset in range(0, len(plan.requests), batch_size):
                if state.aborted.is_set():
                    logger.info("Job %s aborted before batch %d", state.job_id, completed_batches + 1)
                    return
                batch = plan.requests[offset : offset + batch_size]
                # a Context cannot be entered by two threads at once: one copy per task
                futures = [
                    pool.submit(contextvars.copy_context().run, self._test_request, state, plan, request)
                    for request in batch
                ]
                wait(futures)
                for future in futures:
                    future.result()

                completed_batches += 1
                progress = batch_progress(completed_batches, batch_size, plan.total)
                state.set_progress(progress)
                self.store.update_scan_job(state.job_id, progress=progress)
                logger.debug("Job %s progress %d%%", state.job_id, progress)

    def _test_request(self, state: JobRunState, plan: JobPlan, request: ApiRequest) -> None:
        threshold = self.settings.response_time_threshold_ms
        try:
            for variant in generate_combinations(plan.parameters):
                if state.aborted.is_set():
                    return
                options = ExecutionOptions(
                    environment={**plan.environment, **variant},
                    proxy_pool_id=plan.proxy_pool_id,
                )
                result = self.executor.execute(request, options)
                if request.enabled_tests:
                    outcomes = list(result.test_results or [])
                else:
                    outcomes = run_default_tests(result, threshold)
                self._record(
                    state,
                    ScanResult.from_execution(
                        state.job_id,
                        request.id,
                        request.method,
                        request.url,
                        result,
                        test_results=outcomes,
                        parameter_values=variant,
                    ),
                )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Request %s failed in job %s", request.id or request.url, state.job_id)
            self._record(
                state,
                ScanResult(
                    job_id=state.job_id,
                    request_id=request.id,
                    status=0,
                    url=request.url,
                    method=request.method,
                    status_text="Request execution failed",
                    error=str(exc) or type(exc).__name__,
                ),
            )

    def _record(self, state: JobRunState, result: ScanResult) -> None:
        self.store.save_scan_result(result)
        state.record(result)


__all__ = ["JobOrchestrator", "JobPlan", "batch_progress"]
