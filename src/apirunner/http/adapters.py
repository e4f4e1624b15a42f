# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""In-process HttpClient implementations for tests and offline runs."""

from __future__ import annotations

import threading
from collections.abc import Callable

from .client import HttpClient
from .models import HttpRequest, HttpResponse

ResponseHandler = Callable[[HttpRequest], HttpResponse]


class StubHttpClient(HttpClient):
    """
    Deterministic, programmable HttpClient for tests.

    Responses are looked up by exact URL first, then by URL without its query string;
    `handler` (when given) is consulted before either. Every request is recorded.
    """

    def __init__(
        self,
        responses: dict[str, HttpResponse] | None = None,
        *,
        handler: ResponseHandler | None = None,
        default: HttpResponse | None = None,
    ):
        self._responses = dict(responses or {})
        self._handler = handler
        self._default = default
        self._lock = threading.Lock()
        self.requests: list[HttpRequest] = []

    def add(self, url: str, response: HttpResponse) -> None:
        self._responses[url] = response

    def request(self, request: HttpRequest) -> HttpResponse:
        with self._lock:
            self.requests.append(request)
        if self._handler is not None:
            return self._handler(request)
        if request.url in self._responses:
            return self._responses[request.url]
        base_url = request.url.split("?", 1)[0]
        if base_url in self._responses:
            return self._responses[base_url]
        if self._default is not None:
            return self._default
        return HttpResponse(ok=False, status_code=None, error_message="No stubbed response configured", url=request.url)

    def close(self) -> None:
        return None
