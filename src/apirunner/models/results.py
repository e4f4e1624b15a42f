# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Execution and job result records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from .fields import format_datetime, utcnow


@dataclass
class TestOutcome:
    __test__ = False  # not a pytest test class

    name: str
    passed: bool
    message: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "passed": self.passed}
        if self.message is not None:
            data["message"] = self.message
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class ExecutionResult:
    """Structured outcome of one request execution. Produced even when the call fails."""

    status: int
    status_text: str = ""
    response_time: int = 0
    response_size: int = 0
    response_headers: dict[str, str] = field(default_factory=dict)
    response_body: str = ""
    error: str | None = None
    error_category: str | None = None
    url: str | None = None
    proxy_id: str | None = None
    test_results: list[TestOutcome] | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status < 300

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": self.status,
            "status_text": self.status_text,
            "response_time": self.response_time,
            "response_size": self.response_size,
            "response_headers": dict(self.response_headers),
            "response_body": self.response_body,
            "error": self.error,
            "error_category": self.error_category,
            "url": self.url,
            "proxy_id": self.proxy_id,
        }
        if self.test_results is not None:
            data["test_results"] = [outcome.to_dict() for outcome in self.test_results]
        return data


@dataclass(frozen=True)
class ScanResult:
    """One executed (request, variant) pair of a job. Append-only."""

    job_id: str
    request_id: str | None
    status: int
    url: str
    method: str
    status_text: str = ""
    response_time: int = 0
    response_size: int = 0
    response_headers: dict[str, str] = field(default_factory=dict)
    response_body: str = ""
    error: str | None = None
    test_results: tuple[TestOutcome, ...] = ()
    parameter_values: dict[str, str] = field(default_factory=dict)
    proxy_id: str | None = None
    timestamp: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=lambda: uuid4().hex)

    @classmethod
    def from_execution(
        cls,
        job_id: str,
        request_id: str | None,
        method: str,
        request_url: str,
        result: ExecutionResult,
        *,
        test_results: list[TestOutcome],
        parameter_values: dict[str, str],
    ) -> ScanResult:
        return cls(
            job_id=job_id,
            request_id=request_id,
            status=result.status,
            status_text=result.status_text,
            url=result.url or request_url,
            method=method,
            response_time=result.response_time,
            response_size=result.response_size,
            response_headers=dict(result.response_headers),
            response_body=result.response_body,
            error=result.error,
            test_results=tuple(test_results),
            parameter_values=dict(parameter_values),
            proxy_id=result.proxy_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "request_id": self.request_id,
            "status": self.status,
            "status_text": self.status_text,
            "url": self.url,
            "method": self.method,
            "response_time": self.response_time,
            "response_size": self.response_size,
            "response_headers": dict(self.response_headers),
            "response_body": self.response_body,
            "error": self.error,
            "test_results": [outcome.to_dict() for outcome in self.test_results],
            "parameter_values": dict(self.parameter_values),
            "proxy_id": self.proxy_id,
            "timestamp": format_datetime(self.timestamp),
        }


@dataclass
class JobStartResult:
    job_id: str
    status: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"job_id": self.job_id, "status": self.status, "message": self.message}


@dataclass
class JobCancelResult:
    success: bool
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "message": self.message}


@dataclass(frozen=True)
class ActiveJob:
    job_id: str
    status: str
    progress: int
    completed_requests: int
    total_requests: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status,
            "progress": self.progress,
            "completed_requests": self.completed_requests,
            "total_requests": self.total_requests,
        }


__all__ = [
    "ActiveJob",
    "ExecutionResult",
    "JobCancelResult",
    "JobStartResult",
    "ScanResult",
    "TestOutcome",
]
