# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""In-process registry of running scan jobs."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from ..errors import JobAlreadyRunningError, JobCapacityError
from ..models import ActiveJob, JobStatus, ScanJob, ScanResult


@dataclass
class JobRunState:
    """Ephemeral bookkeeping for one running job; discarded when the job ends."""

    job: ScanJob
    results: list[ScanResult] = field(default_factory=list)
    completed: int = 0
    total: int = 0
    status: JobStatus = JobStatus.RUNNING
    progress: int = 0
    aborted: threading.Event = field(default_factory=threading.Event)
    thread: threading.Thread | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def job_id(self) -> str:
        return self.job.id

    def record(self, result: ScanResult) -> None:
        with self._lock:
            self.results.append(result)
            self.completed += 1

    def set_progress(self, progress: int) -> None:
        with self._lock:
            self.progress = progress

    def mark_terminal(self, status: JobStatus) -> bool:
        """Move to a terminal status once; later calls lose and return False."""
        with self._lock:
            if self.status.is_terminal:
                return False
            self.status = status
            if status is JobStatus.CANCELLED:
                self.aborted.set()
            return True

    def snapshot(self) -> ActiveJob:
        with self._lock:
            return ActiveJob(
                job_id=self.job.id,
                status=self.status.value,
                progress=self.progress,
                completed_requests=self.completed,
                total_requests=self.total,
            )


class JobRegistry:
    """
    Mutex-guarded map of job id to run state.

    ``try_register`` is the admission gate: the capacity and duplicate checks and
    the insert happen under one lock, so two concurrent starts cannot both pass.
    """

    def __init__(self, max_jobs: int):
        self.max_jobs = max_jobs
        self._lock = threading.Lock()
        self._jobs: dict[str, JobRunState] = {}

    def try_register(self, state: JobRunState) -> None:
        with self._lock:
            if state.job_id in self._jobs:
                raise JobAlreadyRunningError(state.job_id)
            if len(self._jobs) >= self.max_jobs:
                raise JobCapacityError(state.job_id, self.max_jobs)
            self._jobs[state.job_id] = state

    def check_admission(self, job_id: str) -> None:
        with self._lock:
            if job_id in self._jobs:
                raise JobAlreadyRunningError(job_id)
            if len(self._jobs) >= self.max_jobs:
                raise JobCapacityError(job_id, self.max_jobs)

    def get(self, job_id: str) -> JobRunState | None:
        with self._lock:
            return self._jobs.get(job_id)

    def remove(self, job_id: str, state: JobRunState | None = None) -> None:
        with self._lock:
            current = self._jobs.get(job_id)
            if current is not None and (state is None or current is state):
                del self._jobs[job_id]

    def states(self) -> list[JobRunState]:
        with self._lock:
            return list(self._jobs.values())

    def snapshot(self) -> list[ActiveJob]:
        return [state.snapshot() for state in self.states()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)


__all__ = ["JobRegistry", "JobRunState"]
