# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Turn a resolved ApiRequest into a transport-level HttpRequest."""

from __future__ import annotations

from urllib.parse import quote, urlencode, urlsplit, urlunsplit

from ..config import HttpSettings
from ..http.headers import set_header
from ..http.models import FormFields, HttpRequest
from ..models import ApiRequest, BodyMode, Proxy, RequestBody, enabled_pairs

FORM_URLENCODED = "application/x-www-form-urlencoded"


def build_url(request: ApiRequest) -> str:
    """Append enabled query params to the request URL, keeping any existing query."""
    pairs = enabled_pairs(request.params)
    if not pairs:
        return request.url
    try:
        parts = urlsplit(request.url)
    except ValueError:
        return request.url
    extra = urlencode(pairs)
    query = f"{parts.query}&{extra}" if parts.query else extra
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def build_headers(request: ApiRequest) -> dict[str, str]:
    """Enabled headers plus the Content-Type implied by the body mode."""
    headers: dict[str, str] = {}
    for key, value in enabled_pairs(request.headers):
        headers[key] = value

    body = request.body
    if body.mode is BodyMode.RAW and body.content_type:
        set_header(headers, "Content-Type", body.content_type)
    elif body.mode is BodyMode.URLENCODED:
        set_header(headers, "Content-Type", FORM_URLENCODED)
    # form-data: the transport writes Content-Type with the multipart boundary.
    return headers


def build_body(body: RequestBody) -> tuple[str | None, FormFields | None]:
    """Return (content, multipart fields) for the body mode; at most one is set."""
    if body.mode is BodyMode.RAW:
        return body.raw, None
    if body.mode is BodyMode.FORM_DATA:
        return None, enabled_pairs(body.form_data)
    if body.mode is BodyMode.URLENCODED:
        fields = dict(enabled_pairs(body.urlencoded))
        return urlencode(list(fields.items()), quote_via=quote), None
    if body.mode is BodyMode.BINARY:
        return body.binary or None, None
    return None, None


def build_http_request(request: ApiRequest, proxy: Proxy | None, settings: HttpSettings) -> HttpRequest:
    content, form_fields = build_body(request.body)
    return HttpRequest(
        url=build_url(request),
        method=request.method.upper(),
        headers=build_headers(request),
        body=content,
        form_fields=form_fields,
        timeout=settings.timeout,
        allow_redirects=settings.allow_redirects,
        proxy=proxy.url if proxy is not None else None,
    )


__all__ = ["FORM_URLENCODED", "build_body", "build_headers", "build_http_request", "build_url"]
