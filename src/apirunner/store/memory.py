# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Thread-safe in-memory store, loadable from a JSON workspace document."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Mapping
from copy import deepcopy
from dataclasses import replace
from pathlib import Path
from typing import Any

from ..models import ApiRequest, Collection, JobStatus, ParameterSet, Proxy, ProxyPool, ScanJob, ScanResult
from ..models.fields import pick

logger = logging.getLogger(__name__)


class InMemoryStore:
    """
    Reference implementation of every repository protocol.

    Reads return copies so callers never mutate stored state behind the lock.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._collections: dict[str, Collection] = {}
        self._requests: dict[str, ApiRequest] = {}
        self._parameter_sets: dict[str, ParameterSet] = {}
        self._proxies: dict[str, Proxy] = {}
        self._pools: dict[str, ProxyPool] = {}
        self._jobs: dict[str, ScanJob] = {}
        self._results: list[ScanResult] = []

    # -- loading -----------------------------------------------------------

    @classmethod
    def from_mapping(cls, document: Mapping[str, Any]) -> InMemoryStore:
        store = cls()
        for item in document.get("collections") or []:
            store.add_collection(Collection.from_mapping(item))
        for item in document.get("requests") or []:
            store.add_request(ApiRequest.from_mapping(item))
        for item in pick(document, "parameter_sets", "parameterSets", default=[]):
            store.add_parameter_set(ParameterSet.from_mapping(item))
        for item in document.get("proxies") or []:
            store.add_proxy(Proxy.from_mapping(item))
        for item in pick(document, "proxy_pools", "proxyPools", default=[]):
            pool = ProxyPool.from_mapping(item)
            for proxy in pool.proxies:
                store.add_proxy(proxy)
            store.add_proxy_pool(pool)
        for item in pick(document, "jobs", "scan_jobs", "scanJobs", default=[]):
            store.add_scan_job(ScanJob.from_mapping(item))
        return store

    @classmethod
    def from_file(cls, path: str | Path) -> InMemoryStore:
        with open(path, encoding="utf-8") as handle:
            document = json.load(handle)
        if not isinstance(document, dict):
            raise ValueError(f"{path}: workspace document must be a JSON object")
        store = cls.from_mapping(document)
        logger.debug("Loaded workspace %s: %d requests, %d jobs", path, len(store._requests), len(store._jobs))
        return store

    # -- writers used by loaders and tests --------------------------------

    def add_collection(self, collection: Collection) -> None:
        with self._lock:
            self._collections[collection.id] = collection

    def add_request(self, request: ApiRequest) -> None:
        if not request.id:
            raise ValueError("stored requests need an id")
        with self._lock:
            self._requests[request.id] = request

    def add_parameter_set(self, parameter_set: ParameterSet) -> None:
        with self._lock:
            self._parameter_sets[parameter_set.id] = parameter_set

    def add_proxy(self, proxy: Proxy) -> None:
        with self._lock:
            self._proxies[proxy.id] = proxy

    def add_proxy_pool(self, pool: ProxyPool) -> None:
        with self._lock:
            proxy_ids = pool.proxy_ids or [proxy.id for proxy in pool.proxies]
            self._pools[pool.id] = replace(pool, proxy_ids=list(proxy_ids), proxies=[])

    def add_scan_job(self, job: ScanJob) -> None:
        with self._lock:
            self._jobs[job.id] = job

    # -- RequestRepository -------------------------------------------------

    def get_request(self, request_id: str) -> ApiRequest | None:
        with self._lock:
            return deepcopy(self._requests.get(request_id))

    def list_requests_by_collection(self, collection_id: str) -> list[ApiRequest]:
        with self._lock:
            return [deepcopy(r) for r in self._requests.values() if r.collection_id == collection_id]

    def list_requests_by_ids(self, request_ids: list[str]) -> list[ApiRequest]:
        with self._lock:
            return [deepcopy(self._requests[rid]) for rid in request_ids if rid in self._requests]

    # -- CollectionRepository / ParameterSetRepository ---------------------

    def get_collection(self, collection_id: str) -> Collection | None:
        with self._lock:
            return deepcopy(self._collections.get(collection_id))

    def get_parameter_set(self, parameter_set_id: str) -> ParameterSet | None:
        with self._lock:
            return deepcopy(self._parameter_sets.get(parameter_set_id))

    # -- ProxyRepository ---------------------------------------------------

    def get_proxy(self, proxy_id: str) -> Proxy | None:
        with self._lock:
            return deepcopy(self._proxies.get(proxy_id))

    def get_proxy_pool(self, pool_id: str) -> ProxyPool | None:
        with self._lock:
            pool = self._pools.get(pool_id)
            if pool is None:
                return None
            members = [deepcopy(self._proxies[pid]) for pid in pool.proxy_ids if pid in self._proxies]
            return replace(pool, proxy_ids=list(pool.proxy_ids), proxies=members)

    def update_proxy_pool_cursor(self, pool_id: str, index: int) -> None:
        with self._lock:
            pool = self._pools.get(pool_id)
            if pool is not None:
                self._pools[pool_id] = replace(pool, last_proxy_index=index)

    # -- ScanJobRepository -------------------------------------------------

    def get_scan_job(self, job_id: str) -> ScanJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return replace(job, request_ids=list(job.request_ids)) if job is not None else None

    def update_scan_job(self, job_id: str, **patch: Any) -> ScanJob | None:
        if "status" in patch and not isinstance(patch["status"], JobStatus):
            patch["status"] = JobStatus(patch["status"])
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            updated = replace(job, **patch)
            self._jobs[job_id] = updated
            return updated

    # -- ScanResultRepository ----------------------------------------------

    def save_scan_result(self, result: ScanResult) -> None:
        with self._lock:
            self._results.append(result)

    def list_scan_results(self, job_id: str | None = None) -> list[ScanResult]:
        with self._lock:
            return [deepcopy(r) for r in self._results if job_id is None or r.job_id == job_id]


__all__ = ["InMemoryStore"]
