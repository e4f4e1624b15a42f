# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy and exception helpers."""

from __future__ import annotations

import socket
import ssl as ssl_module
from enum import Enum

import httpx
from httpx_socks import ProxyError as SocksProxyError


class ErrorCategory(str, Enum):
    TIMEOUT = "TIMEOUT"
    SSL_ERROR = "SSL_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DNS_ERROR = "DNS_ERROR"
    PROXY_ERROR = "PROXY_ERROR"
    TOO_MANY_REDIRECTS = "TOO_MANY_REDIRECTS"
    RESPONSE_TOO_LARGE = "RESPONSE_TOO_LARGE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    NONE = "NONE"


class ApiRunnerError(Exception):
    """Base class for apirunner errors."""


class ResponseTooLargeError(ApiRunnerError):
    def __init__(self, limit: int):
        super().__init__(f"Response body exceeded {limit} bytes")
        self.limit = limit


class UnsupportedProxyError(ApiRunnerError):
    """Raised when a proxy protocol cannot be used by the transport."""


class JobError(ApiRunnerError):
    def __init__(self, job_id: str, message: str):
        super().__init__(message)
        self.job_id = job_id


class JobNotFoundError(JobError):
    def __init__(self, job_id: str):
        super().__init__(job_id, f"Scan job {job_id} not found")


class JobAdmissionError(JobError):
    """Job was rejected at start; its persisted state is unchanged."""


class JobCapacityError(JobAdmissionError):
    def __init__(self, job_id: str, limit: int):
        super().__init__(job_id, f"Maximum number of concurrent test jobs reached ({limit})")
        self.limit = limit


class JobAlreadyRunningError(JobAdmissionError):
    def __init__(self, job_id: str):
        super().__init__(job_id, f"Scan job {job_id} is already running")


class JobSetupError(JobError):
    """Fatal problem while preparing a job (missing collection, no requests, ...)."""


def _is_dns_failure(exc: BaseException) -> bool:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, (socket.gaierror, socket.herror)):
            return True
        current = current.__cause__ or current.__context__
    message = str(exc).lower()
    return "name or service not known" in message or "nodename nor servname" in message or "getaddrinfo failed" in message


def categorize_exception(exc: BaseException) -> ErrorCategory:
    """
    Map Python/httpx exceptions to ErrorCategory.
    """
    if isinstance(exc, ResponseTooLargeError):
        return ErrorCategory.RESPONSE_TOO_LARGE

    if isinstance(exc, UnsupportedProxyError):
        return ErrorCategory.PROXY_ERROR

    if isinstance(exc, httpx.TimeoutException):
        return ErrorCategory.TIMEOUT

    if isinstance(exc, httpx.TooManyRedirects):
        return ErrorCategory.TOO_MANY_REDIRECTS

    if isinstance(exc, (httpx.ProxyError, SocksProxyError)):
        return ErrorCategory.PROXY_ERROR

    if isinstance(exc, (ssl_module.SSLError, ssl_module.CertificateError)):
        return ErrorCategory.SSL_ERROR

    if isinstance(exc, httpx.ConnectError):
        if _is_dns_failure(exc):
            return ErrorCategory.DNS_ERROR
        if "ssl" in str(exc).lower() or "certificate" in str(exc).lower():
            return ErrorCategory.SSL_ERROR
        return ErrorCategory.CONNECTION_ERROR

    if isinstance(exc, (socket.gaierror, socket.herror)):
        return ErrorCategory.DNS_ERROR

    if isinstance(exc, (httpx.RemoteProtocolError, httpx.NetworkError, ConnectionError)):
        return ErrorCategory.CONNECTION_ERROR

    return ErrorCategory.UNKNOWN_ERROR


def error_category_to_reason(category: ErrorCategory | None) -> str:
    """User-facing reason string."""
    mapping = {
        ErrorCategory.TIMEOUT: "Request timed out",
        ErrorCategory.SSL_ERROR: "TLS/certificate issue",
        ErrorCategory.CONNECTION_ERROR: "Network connectivity issue",
        ErrorCategory.DNS_ERROR: "DNS resolution failure",
        ErrorCategory.PROXY_ERROR: "Proxy failure",
        ErrorCategory.TOO_MANY_REDIRECTS: "Redirect limit exceeded",
        ErrorCategory.RESPONSE_TOO_LARGE: "Response exceeded size limit",
        ErrorCategory.UNKNOWN_ERROR: "Network error during request",
        ErrorCategory.NONE: "",
        None: "",
    }
    return mapping.get(category, "Request failed due to network error")


__all__ = [
    "ApiRunnerError",
    "ErrorCategory",
    "JobAdmissionError",
    "JobAlreadyRunningError",
    "JobCapacityError",
    "JobError",
    "JobNotFoundError",
    "JobSetupError",
    "ResponseTooLargeError",
    "UnsupportedProxyError",
    "categorize_exception",
    "error_category_to_reason",
]
