# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Execute one stored request: resolve, script, proxy, call, verdict."""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..config import HttpSettings
from ..http.client import HttpClient, create_default_http_client
from ..http.headers import header_value, normalize_headers
from ..http.models import HttpRequest, HttpResponse
from ..models import ApiRequest, ExecutionResult, Proxy, TestOutcome
from ..utils.context import get_http_settings, get_run_context
from .proxies import ProxySelector
from .sandbox import ScriptSandbox
from .transport import build_http_request
from .variables import resolve_request

logger = logging.getLogger(__name__)


@dataclass
class ExecutionOptions:
    environment: dict[str, str] = field(default_factory=dict)
    proxy_id: str | None = None
    proxy_pool_id: str | None = None
    skip_pre_request_script: bool = False
    skip_tests: bool = False


def response_size(response: HttpResponse) -> int:
    """Content-Length when present and numeric, otherwise the body byte length."""
    declared = header_value(response.headers, "Content-Length")
    if declared:
        try:
            return int(declared)
        except ValueError:
            pass
    if response.content:
        return len(response.content)
    return len(response.text.encode("utf-8")) if response.text else 0


def _parse_json(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


class RequestExecutor:
    """
    Resolve a request into a single HTTP call and a structured result.

    ``execute`` never raises: transport failures become ``status == 0`` with an
    error message, script failures become failed test outcomes, and HTTP error
    codes are ordinary data.
    """

    def __init__(
        self,
        http_client: HttpClient | None = None,
        *,
        proxy_selector: ProxySelector | None = None,
        sandbox: ScriptSandbox | None = None,
        settings: HttpSettings | None = None,
    ):
        self._http_client = http_client
        self._client_lock = threading.Lock()
        self.proxy_selector = proxy_selector
        self.sandbox = sandbox or ScriptSandbox()
        self.settings = settings

    @property
    def http_client(self) -> HttpClient:
        if self._http_client is not None:
            return self._http_client
        context_client = get_run_context().http_client
        if context_client is not None:
            return context_client
        with self._client_lock:
            if self._http_client is None:
                self._http_client = create_default_http_client(self.settings or get_http_settings())
            return self._http_client

    def execute(self, request: ApiRequest, options: ExecutionOptions | None = None, **overrides: Any) -> ExecutionResult:
        if options is None:
            options = ExecutionOptions(**overrides)
        try:
            return self._execute(request, options)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Request execution failed for %s %s", request.method, request.url)
            return ExecutionResult(status=0, status_text="Request execution failed", error=str(exc) or type(exc).__name__)

    def _execute(self, request: ApiRequest, options: ExecutionOptions) -> ExecutionResult:
        environment = dict(options.environment or {})
        working = resolve_request(request, environment)

        if not options.skip_pre_request_script and working.pre_request_script.strip():
            working = self._run_pre_request(working, environment)

        proxy = self._select_proxy(options)
        settings = self.settings or get_http_settings()
        http_request = build_http_request(working, proxy, settings)

        started = time.perf_counter()
        response = self._send(http_request)
        elapsed_ms = int(round((time.perf_counter() - started) * 1000))

        result = self._build_result(response, elapsed_ms, http_request, proxy)

        if not options.skip_tests and working.enabled_tests:
            result.test_results = self._run_tests(working, environment, result)
        return result

    def _run_pre_request(self, request: ApiRequest, environment: dict[str, str]) -> ApiRequest:
        context = {"request": request.to_dict(), "environment": dict(environment)}
        run = self.sandbox.run(request.pre_request_script, context, kind="pre_request")
        if run.error is not None:
            logger.warning("Pre-request script failed for %s: %s", request.name or request.url, run.error)
            return request

        returned = run.context.get("request")
        if not isinstance(returned, Mapping):
            return request
        try:
            updated = ApiRequest.from_mapping(returned)
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning("Pre-request script returned an unusable request: %s", exc)
            return request
        updated.id = updated.id or request.id
        updated.collection_id = updated.collection_id or request.collection_id
        return updated

    def _select_proxy(self, options: ExecutionOptions) -> Proxy | None:
        if not (options.proxy_id or options.proxy_pool_id):
            return None
        if self.proxy_selector is None:
            logger.warning("Proxy requested but no proxy repository is configured; connecting directly")
            return None
        return self.proxy_selector.select(options.proxy_id, options.proxy_pool_id)

    def _send(self, http_request: HttpRequest) -> HttpResponse:
        try:
            return self.http_client.request(http_request)
        except Exception as exc:  # noqa: BLE001
            return HttpResponse(ok=False, error_message=str(exc) or type(exc).__name__, error_type=type(exc).__name__)

    def _build_result(
        self,
        response: HttpResponse,
        elapsed_ms: int,
        http_request: HttpRequest,
        proxy: Proxy | None,
    ) -> ExecutionResult:
        proxy_id = proxy.id if proxy is not None else None
        if response.ok:
            return ExecutionResult(
                status=response.status_code or 0,
                status_text=response.reason,
                response_time=elapsed_ms,
                response_size=response_size(response),
                response_headers=dict(response.headers),
                response_body=response.text,
                url=response.url or http_request.url,
                proxy_id=proxy_id,
            )

        error = response.error_message or "Request failed"
        logger.info(
            "Transport failure for %s %s (job=%s): %s",
            http_request.method,
            http_request.url,
            get_run_context().job_id or "-",
            error,
        )
        return ExecutionResult(
            status=response.status_code or 0,
            status_text=response.reason or error,
            response_time=elapsed_ms,
            response_size=response_size(response),
            response_headers=dict(response.headers),
            response_body=response.text,
            error=error,
            error_category=response.meta.get("error_category"),
            url=response.url or http_request.url,
            proxy_id=proxy_id,
        )

    def _run_tests(self, request: ApiRequest, environment: dict[str, str], result: ExecutionResult) -> list[TestOutcome]:
        context = {
            "request": request.to_dict(),
            "environment": dict(environment),
            "response": {
                "status": result.status,
                "status_text": result.status_text,
                "headers": normalize_headers(result.response_headers),
                "body": result.response_body,
                "json": _parse_json(result.response_body),
                "response_time": result.response_time,
            },
        }
        outcomes: list[TestOutcome] = []
        for test in request.enabled_tests:
            try:
                run = self.sandbox.run(test.script, context, kind="test")
                outcomes.append(TestOutcome(name=test.name, passed=run.passed, error=run.failure_message))
            except Exception as exc:  # noqa: BLE001
                outcomes.append(TestOutcome(name=test.name, passed=False, error=str(exc)))
        return outcomes


__all__ = ["ExecutionOptions", "RequestExecutor", "response_size"]
