# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Persistence protocols consumed by the execution core.

The core never assumes a storage engine; callers inject objects satisfying these
protocols (``InMemoryStore`` implements all of them).
"""

from __future__ import annotations

from typing import Any, Protocol

from ..models import ApiRequest, Collection, ParameterSet, Proxy, ProxyPool, ScanJob, ScanResult


class RequestRepository(Protocol):
    def get_request(self, request_id: str) -> ApiRequest | None: ...

    def list_requests_by_collection(self, collection_id: str) -> list[ApiRequest]: ...

    def list_requests_by_ids(self, request_ids: list[str]) -> list[ApiRequest]: ...


class CollectionRepository(Protocol):
    def get_collection(self, collection_id: str) -> Collection | None: ...


class ParameterSetRepository(Protocol):
    def get_parameter_set(self, parameter_set_id: str) -> ParameterSet | None: ...


class ProxyRepository(Protocol):
    def get_proxy(self, proxy_id: str) -> Proxy | None: ...

    def get_proxy_pool(self, pool_id: str) -> ProxyPool | None:
        """Return the pool with its member proxies populated."""
        ...

    def update_proxy_pool_cursor(self, pool_id: str, index: int) -> None: ...


class ScanJobRepository(Protocol):
    def get_scan_job(self, job_id: str) -> ScanJob | None: ...

    def update_scan_job(self, job_id: str, **patch: Any) -> ScanJob | None: ...


class ScanResultRepository(Protocol):
    def save_scan_result(self, result: ScanResult) -> None: ...


class DataStore(
    RequestRepository,
    CollectionRepository,
    ParameterSetRepository,
    ProxyRepository,
    ScanJobRepository,
    ScanResultRepository,
    Protocol,
):
    """Everything the job orchestrator reads and writes."""


__all__ = [
    "CollectionRepository",
    "DataStore",
    "ParameterSetRepository",
    "ProxyRepository",
    "RequestRepository",
    "ScanJobRepository",
    "ScanResultRepository",
]
