# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Dataclass exports for apirunner."""

from ..http.models import Headers, HttpRequest, HttpResponse
from .entities import (
    Collection,
    JobStatus,
    ParameterSet,
    Proxy,
    ProxyPool,
    ProxyProtocol,
    ScanJob,
    SelectionMode,
    Variable,
)
from .request import ApiRequest, BodyMode, KeyValue, RequestBody, TestScript, enabled_pairs
from .results import ActiveJob, ExecutionResult, JobCancelResult, JobStartResult, ScanResult, TestOutcome

__all__ = [
    "ActiveJob",
    "ApiRequest",
    "BodyMode",
    "Collection",
    "ExecutionResult",
    "Headers",
    "HttpRequest",
    "HttpResponse",
    "JobCancelResult",
    "JobStartResult",
    "JobStatus",
    "KeyValue",
    "ParameterSet",
    "Proxy",
    "ProxyPool",
    "ProxyProtocol",
    "RequestBody",
    "ScanJob",
    "ScanResult",
    "SelectionMode",
    "TestOutcome",
    "TestScript",
    "Variable",
    "enabled_pairs",
]
