# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

from contextlib import contextmanager

import httpx
import pytest

from apirunner.config import HttpSettings
from apirunner.errors import ErrorCategory
from apirunner.http import StubHttpClient, header_value, normalize_headers, set_header
from apirunner.http import httpx_client as httpx_client_module
from apirunner.http.httpx_client import HttpxClient
from apirunner.http.models import HttpRequest, HttpResponse
from apirunner.utils.context import run_context


class FakeResponse:
    def __init__(self, url, status_code=200, chunks=(b"",), headers=None, reason="OK", history=()):
        self.url = httpx.URL(url)
        self.status_code = status_code
        self.reason_phrase = reason
        self.headers = httpx.Headers(headers or {"Content-Type": "text/plain"})
        self.encoding = "utf-8"
        self.history = list(history)
        self._chunks = chunks

    def iter_bytes(self):
        yield from self._chunks


def _install_fake_client(monkeypatch, responder):
    created = []

    class FakeHttpxClient:
        def __init__(self, **kwargs):
            self.kwargs = kwargs
            self.calls = []
            self.closed = False
            created.append(self)

        @contextmanager
        def stream(self, method, url, **kwargs):
            self.calls.append({"method": method, "url": url, **kwargs})
            yield responder(method, url, kwargs)

        def close(self):
            self.closed = True

    monkeypatch.setattr(httpx, "Client", FakeHttpxClient)
    return created


def test_http_response_from_mapping_keeps_meta():
    resp = HttpResponse.from_mapping(
        {"ok": True, "status_code": 201, "headers": {"X-Test": "1"}, "body": "hello", "url": "http://x", "extra": "value"}
    )
    assert resp.ok is True
    assert resp.status_code == 201
    assert resp.headers["x-test"] == "1"
    assert resp.text == "hello"
    assert resp.content == b"hello"
    assert resp.meta["extra"] == "value"


def test_header_helpers_are_case_insensitive():
    headers = {"Content-Type": "text/html", "X-A": None}
    assert header_value(headers, "content-type") == "text/html"
    assert header_value(headers, "missing", "d") == "d"
    assert normalize_headers(headers) == {"content-type": "text/html", "x-a": ""}
    assert set_header({"content-type": "a", "Other": "b"}, "Content-Type", "c") == {"Other": "b", "Content-Type": "c"}


def test_httpx_client_success(monkeypatch):
    created = _install_fake_client(
        monkeypatch,
        lambda method, url, kwargs: FakeResponse(
            url + "/final",
            status_code=201,
            chunks=(b'{"ok":', b" true}"),
            headers={"Content-Type": "application/json"},
            reason="Created",
            history=[object()],
        ),
    )
    client = HttpxClient(HttpSettings(timeout=3.0, user_agent="UA/1.0"))

    resp = client.request(HttpRequest(url="http://example.com", method="POST", body='{"a": 1}'))

    assert resp.ok is True
    assert resp.status_code == 201
    assert resp.reason == "Created"
    assert resp.text == '{"ok": true}'
    assert resp.content == b'{"ok": true}'
    assert resp.url == "http://example.com/final"
    assert resp.meta["redirects"] == 1
    call = created[0].calls[0]
    assert call["headers"]["User-Agent"] == "UA/1.0"
    assert call["content"] == '{"a": 1}'
    assert call["files"] is None
    assert call["timeout"] == 3.0
    assert created[0].kwargs["max_redirects"] == 5
    assert "proxy" not in created[0].kwargs


def test_httpx_client_sends_form_fields_as_multipart(monkeypatch):
    created = _install_fake_client(monkeypatch, lambda method, url, kwargs: FakeResponse(url))
    client = HttpxClient(HttpSettings())

    client.request(HttpRequest(url="http://example.com", method="POST", form_fields=[("a", "1"), ("b", "2")]))

    call = created[0].calls[0]
    assert call["files"] == [("a", (None, "1")), ("b", (None, "2"))]
    assert call["content"] is None


def test_httpx_client_timeout_falls_back_to_run_context(monkeypatch):
    created = _install_fake_client(monkeypatch, lambda method, url, kwargs: FakeResponse(url))
    client = HttpxClient(HttpSettings(timeout=30.0))

    with run_context(timeout=1.5):
        client.request(HttpRequest(url="http://example.com"))

    assert created[0].calls[0]["timeout"] == 1.5


def test_httpx_client_keeps_one_client_per_proxy(monkeypatch):
    created = _install_fake_client(monkeypatch, lambda method, url, kwargs: FakeResponse(url))
    client = HttpxClient(HttpSettings())

    client.request(HttpRequest(url="http://a", proxy="http://10.0.0.1:8080"))
    client.request(HttpRequest(url="http://b", proxy="http://10.0.0.1:8080"))
    client.request(HttpRequest(url="http://c"))

    assert len(created) == 2
    assert created[0].kwargs["proxy"] == "http://10.0.0.1:8080"
    client.close()
    assert all(fake.closed for fake in created)


def test_httpx_client_rejects_unsupported_proxy_scheme(monkeypatch):
    _install_fake_client(monkeypatch, lambda method, url, kwargs: FakeResponse(url))
    client = HttpxClient(HttpSettings())

    resp = client.request(HttpRequest(url="http://a", proxy="ftp://10.0.0.1:21"))

    assert resp.ok is False
    assert resp.error_type == "UnsupportedProxyError"
    assert resp.meta["error_category"] == ErrorCategory.PROXY_ERROR.value


def test_httpx_client_enforces_body_cap(monkeypatch):
    _install_fake_client(monkeypatch, lambda method, url, kwargs: FakeResponse(url, chunks=(b"x" * 8, b"y" * 8)))
    client = HttpxClient(HttpSettings(max_body_bytes=10))

    resp = client.request(HttpRequest(url="http://big"))

    assert resp.ok is False
    assert resp.status_code is None
    assert "10 bytes" in resp.error_message
    assert resp.meta["error_category"] == ErrorCategory.RESPONSE_TOO_LARGE.value


@pytest.mark.parametrize(
    ("exc", "category"),
    [
        (httpx.ConnectTimeout("slow"), ErrorCategory.TIMEOUT),
        (httpx.ConnectError("Connection refused"), ErrorCategory.CONNECTION_ERROR),
        (httpx.TooManyRedirects("loop"), ErrorCategory.TOO_MANY_REDIRECTS),
    ],
)
def test_httpx_client_converts_transport_errors(monkeypatch, exc, category):
    def raise_exc(method, url, kwargs):  # noqa: ARG001
        raise exc

    _install_fake_client(monkeypatch, raise_exc)
    resp = HttpxClient(HttpSettings()).request(HttpRequest(url="http://down"))

    assert resp.ok is False
    assert resp.error_message == str(exc)
    assert resp.url == "http://down"
    assert resp.meta["error_category"] == category.value


def test_stub_client_lookup_order():
    default = HttpResponse(ok=True, status_code=204)
    client = StubHttpClient(
        {"http://x/exact?q=1": HttpResponse(ok=True, status_code=200), "http://x/base": HttpResponse(ok=True, status_code=201)},
        default=default,
    )
    assert client.request(HttpRequest(url="http://x/exact?q=1")).status_code == 200
    assert client.request(HttpRequest(url="http://x/base?page=3")).status_code == 201
    assert client.request(HttpRequest(url="http://x/other")) is default
    assert [r.url for r in client.requests] == ["http://x/exact?q=1", "http://x/base?page=3", "http://x/other"]

    empty = StubHttpClient().request(HttpRequest(url="http://nothing"))
    assert empty.ok is False
    assert empty.error_message == "No stubbed response configured"


def test_stub_client_handler_takes_precedence():
    client = StubHttpClient(
        {"http://x": HttpResponse(ok=True, status_code=200)},
        handler=lambda request: HttpResponse(ok=True, status_code=418, url=request.url),
    )
    assert client.request(HttpRequest(url="http://x")).status_code == 418


@pytest.mark.parametrize(
    ("proxy", "expected_url", "rdns"),
    [
        ("socks4://10.0.0.1:1080", "socks4://10.0.0.1:1080", None),
        ("socks4a://10.0.0.1:1080", "socks4://10.0.0.1:1080", True),
        ("socks5://u:p@10.0.0.1:1080", "socks5://u:p@10.0.0.1:1080", None),
        ("socks5h://10.0.0.1:1080", "socks5://10.0.0.1:1080", True),
    ],
)
def test_httpx_client_mounts_socks_transport(monkeypatch, proxy, expected_url, rdns):
    created = _install_fake_client(monkeypatch, lambda method, url, kwargs: FakeResponse(url))
    transports = []

    class FakeSocksTransport:
        @classmethod
        def from_url(cls, url, **kwargs):
            transport = cls()
            transport.url = url
            transport.kwargs = kwargs
            transports.append(transport)
            return transport

    monkeypatch.setattr(httpx_client_module, "SyncProxyTransport", FakeSocksTransport)
    client = HttpxClient(HttpSettings(verify_ssl=False))

    resp = client.request(HttpRequest(url="http://example.com", proxy=proxy))

    assert resp.ok is True
    assert transports[0].url == expected_url
    assert transports[0].kwargs == {"rdns": rdns, "verify": False}
    assert created[0].kwargs["transport"] is transports[0]
    assert "proxy" not in created[0].kwargs
