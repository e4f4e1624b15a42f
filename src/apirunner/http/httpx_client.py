# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""httpx-backed HttpClient implementation."""

from __future__ import annotations

import logging
import threading

import httpx
from httpx_socks import SyncProxyTransport

from ..config import HttpSettings, load_http_settings
from ..errors import ResponseTooLargeError, UnsupportedProxyError, categorize_exception
from ..utils.context import get_run_context
from .client import HttpClient
from .headers import header_value
from .models import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

HTTP_PROXY_SCHEMES = ("http", "https")
# scheme -> (scheme python-socks parses, remote DNS)
SOCKS_PROXY_SCHEMES = {
    "socks4": ("socks4", None),
    "socks4a": ("socks4", True),
    "socks5": ("socks5", None),
    "socks5h": ("socks5", True),
}


class HttpxClient(HttpClient):
    """
    Synchronous httpx client wrapper.

    httpx binds proxies at client level, so one pooled ``httpx.Client`` is kept per
    proxy URL (``None`` for direct connections). SOCKS4/SOCKS5 proxies are mounted as an
    httpx-socks transport; HTTP(S) proxies use httpx's own ``proxy`` option.
    Instances are safe to share across threads.
    """

    def __init__(self, settings: HttpSettings | None = None, client: httpx.Client | None = None):
        self.settings = settings or load_http_settings()
        self._clients: dict[str | None, httpx.Client] = {}
        self._lock = threading.Lock()
        if client is not None:
            self._clients[None] = client

    def _build_client(self, proxy: str | None) -> httpx.Client:
        kwargs = {
            "follow_redirects": self.settings.allow_redirects,
            "max_redirects": self.settings.max_redirects,
            "timeout": self.settings.timeout,
            "verify": self.settings.verify_ssl,
        }
        if proxy:
            scheme, _, rest = proxy.partition("://")
            scheme = scheme.lower()
            if scheme in SOCKS_PROXY_SCHEMES:
                base_scheme, rdns = SOCKS_PROXY_SCHEMES[scheme]
                kwargs["transport"] = SyncProxyTransport.from_url(
                    f"{base_scheme}://{rest}", rdns=rdns, verify=self.settings.verify_ssl
                )
            elif scheme in HTTP_PROXY_SCHEMES:
                kwargs["proxy"] = proxy
            else:
                raise UnsupportedProxyError(f"Proxy protocol '{scheme}' is not supported by the httpx transport")
        return httpx.Client(**kwargs)

    def _client_for(self, proxy: str | None) -> httpx.Client:
        with self._lock:
            client = self._clients.get(proxy)
            if client is None:
                client = self._build_client(proxy)
                self._clients[proxy] = client
            return client

    def request(self, request: HttpRequest) -> HttpResponse:
        headers = dict(request.headers or {})
        if not header_value(headers, "User-Agent"):
            headers["User-Agent"] = self.settings.user_agent

        try:
            client = self._client_for(request.proxy)
            max_body_bytes = self.settings.max_body_bytes

            timeout = request.timeout
            if timeout is None:
                context_timeout = get_run_context().timeout
                timeout = context_timeout if context_timeout is not None else self.settings.timeout

            files = None
            content = request.body
            if request.is_multipart:
                # (None, value) tuples become plain multipart fields without a filename.
                files = [(key, (None, value)) for key, value in request.form_fields]
                content = None

            with client.stream(
                request.method,
                request.url,
                headers=headers,
                content=content,
                files=files,
                timeout=timeout,
                follow_redirects=request.allow_redirects,
            ) as resp:
                body = bytearray()
                for chunk in resp.iter_bytes():
                    if not chunk:
                        continue
                    if len(body) + len(chunk) > max_body_bytes:
                        raise ResponseTooLargeError(max_body_bytes)
                    body.extend(chunk)

                encoding = resp.encoding or "utf-8"
                try:
                    text = bytes(body).decode(encoding, errors="replace")
                except LookupError:
                    text = bytes(body).decode("utf-8", errors="replace")

            return HttpResponse(
                ok=True,
                status_code=resp.status_code,
                reason=resp.reason_phrase,
                headers=dict(resp.headers),
                text=text,
                content=bytes(body),
                url=str(resp.url),
                meta={"redirects": len(resp.history)},
            )
        except Exception as exc:  # noqa: BLE001
            category = categorize_exception(exc)
            logger.debug("Transport failure for %s %s: %s (%s)", request.method, request.url, exc, category.value)
            return HttpResponse(
                ok=False,
                error_message=str(exc) or type(exc).__name__,
                error_type=type(exc).__name__,
                url=request.url,
                meta={"error_category": category.value},
            )

    def close(self) -> None:
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            client.close()
