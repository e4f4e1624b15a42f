# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Collections, parameter sets, proxies and scan jobs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from urllib.parse import quote

from .fields import document_id, format_datetime, optional_str, parse_datetime, pick


@dataclass
class Variable:
    key: str
    value: str = ""
    description: str = ""


@dataclass
class Collection:
    id: str
    name: str = ""
    description: str = ""
    variables: list[Variable] = field(default_factory=list)

    def environment(self) -> dict[str, str]:
        """Collection variables as a flat environment; later duplicates win."""
        return {variable.key: variable.value for variable in self.variables if variable.key}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Collection:
        raw_vars = data.get("variables") or []
        if isinstance(raw_vars, Mapping):
            variables = [Variable(key=str(k), value="" if v is None else str(v)) for k, v in raw_vars.items()]
        else:
            variables = [
                Variable(
                    key=str(item.get("key") or ""),
                    value="" if item.get("value") is None else str(item.get("value")),
                    description=str(item.get("description") or ""),
                )
                for item in raw_vars
            ]
        return cls(
            id=document_id(data) or "",
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            variables=variables,
        )


@dataclass
class ParameterSet:
    """Variable name -> ordered candidate values; drives combinatorial expansion."""

    id: str
    name: str = ""
    variables: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ParameterSet:
        raw = data.get("variables") or {}
        variables: dict[str, Any] = {}
        if isinstance(raw, Mapping):
            variables = {str(key): value for key, value in raw.items()}
        return cls(id=document_id(data) or "", name=str(data.get("name") or ""), variables=variables)


class ProxyProtocol(str, Enum):
    HTTP = "http"
    HTTPS = "https"
    SOCKS4 = "socks4"
    SOCKS5 = "socks5"


@dataclass
class Proxy:
    id: str
    host: str
    port: int
    protocol: ProxyProtocol = ProxyProtocol.HTTP
    username: str | None = None
    password: str | None = None
    is_active: bool = True
    failure_count: int = 0
    response_time: float | None = None

    @property
    def url(self) -> str:
        auth = ""
        if self.username and self.password:
            auth = f"{quote(self.username, safe='')}:{quote(self.password, safe='')}@"
        return f"{self.protocol.value}://{auth}{self.host}:{self.port}"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Proxy:
        try:
            protocol = ProxyProtocol(str(data.get("protocol") or "http").lower())
        except ValueError:
            protocol = ProxyProtocol.HTTP
        response_time = pick(data, "response_time", "responseTime")
        return cls(
            id=document_id(data) or "",
            host=str(data.get("host") or ""),
            port=int(data.get("port") or 0),
            protocol=protocol,
            username=optional_str(data.get("username")),
            password=optional_str(data.get("password")),
            is_active=bool(pick(data, "is_active", "isActive", default=True)),
            failure_count=int(pick(data, "failure_count", "failureCount", default=0)),
            response_time=float(response_time) if response_time is not None else None,
        )


class SelectionMode(str, Enum):
    SEQUENTIAL = "sequential"
    RANDOM = "random"
    CUSTOM = "custom"


@dataclass
class ProxyPool:
    """A pool of proxies; `proxies` is populated by the repository."""

    id: str
    name: str = ""
    proxy_ids: list[str] = field(default_factory=list)
    proxies: list[Proxy] = field(default_factory=list)
    selection_mode: str = SelectionMode.SEQUENTIAL.value
    last_proxy_index: int = 0

    @property
    def active_proxies(self) -> list[Proxy]:
        return [proxy for proxy in self.proxies if proxy.is_active]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ProxyPool:
        members = data.get("proxies") or []
        proxy_ids = [str(m) if not isinstance(m, Mapping) else (document_id(m) or "") for m in members]
        proxies = [Proxy.from_mapping(m) for m in members if isinstance(m, Mapping)]
        return cls(
            id=document_id(data) or "",
            name=str(data.get("name") or ""),
            proxy_ids=proxy_ids,
            proxies=proxies,
            selection_mode=str(pick(data, "selection_mode", "selectionMode", default=SelectionMode.SEQUENTIAL.value)),
            last_proxy_index=int(pick(data, "last_proxy_index", "lastProxyIndex", "_lastProxyIndex", default=0)),
        )


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}


@dataclass
class ScanJob:
    id: str
    collection_id: str
    name: str = ""
    request_ids: list[str] = field(default_factory=list)
    parameter_set_id: str | None = None
    proxy_pool_id: str | None = None
    concurrency: int = 5
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    start_time: datetime | None = None
    end_time: datetime | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ScanJob:
        try:
            status = JobStatus(str(data.get("status") or "pending"))
        except ValueError:
            status = JobStatus.PENDING
        return cls(
            id=document_id(data) or "",
            collection_id=str(pick(data, "collection_id", "collectionId", default="")),
            name=str(data.get("name") or ""),
            request_ids=[str(r) for r in (pick(data, "request_ids", "requests", default=[]) or [])],
            parameter_set_id=optional_str(pick(data, "parameter_set_id", "parameterSetId")),
            proxy_pool_id=optional_str(pick(data, "proxy_pool_id", "proxyPoolId")),
            concurrency=int(data.get("concurrency") or 5),
            status=status,
            progress=int(data.get("progress") or 0),
            start_time=parse_datetime(pick(data, "start_time", "startTime")),
            end_time=parse_datetime(pick(data, "end_time", "endTime")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "collection_id": self.collection_id,
            "request_ids": list(self.request_ids),
            "parameter_set_id": self.parameter_set_id,
            "proxy_pool_id": self.proxy_pool_id,
            "concurrency": self.concurrency,
            "status": self.status.value,
            "progress": self.progress,
            "start_time": format_datetime(self.start_time),
            "end_time": format_datetime(self.end_time),
        }


__all__ = [
    "Collection",
    "JobStatus",
    "ParameterSet",
    "Proxy",
    "ProxyPool",
    "ProxyProtocol",
    "ScanJob",
    "SelectionMode",
    "Variable",
]
