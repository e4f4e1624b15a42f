# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Transport-level request/response models consumed by HttpClient implementations."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

Headers = dict[str, str]
FormFields = list[tuple[str, str]]


@dataclass
class HttpRequest:
    """Fully resolved request ready to be put on the wire."""

    url: str
    method: str = "GET"
    headers: Headers | None = None
    body: bytes | str | None = None
    form_fields: FormFields | None = None
    timeout: float | None = None
    allow_redirects: bool = True
    proxy: str | None = None

    @property
    def is_multipart(self) -> bool:
        return self.form_fields is not None


@dataclass
class HttpResponse:
    """Normalized HTTP response, or a transport failure when `ok` is False."""

    ok: bool
    status_code: int | None = None
    reason: str = ""
    headers: Headers = field(default_factory=dict)
    text: str = ""
    content: bytes = b""
    url: str | None = None
    error_message: str | None = None
    error_type: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> HttpResponse:
        """Build a response from a plain mapping (fixtures, recorded responses)."""
        raw_headers: Any = data.get("headers") or {}
        headers: Headers = {}
        if isinstance(raw_headers, Mapping):
            for key, value in raw_headers.items():
                if key is None:
                    continue
                headers[str(key).lower()] = "" if value is None else str(value)

        raw_body = data.get("body")
        content: bytes = b""
        text: str = ""
        if isinstance(raw_body, (bytes, bytearray, memoryview)):
            content = bytes(raw_body)
            text = content.decode("utf-8", errors="replace")
        elif isinstance(raw_body, str):
            text = raw_body
            content = raw_body.encode("utf-8")

        known = {"ok", "status_code", "reason", "headers", "body", "url", "error_message", "error_type"}
        return cls(
            ok=bool(data.get("ok", data.get("status_code") is not None)),
            status_code=data.get("status_code"),
            reason=str(data.get("reason") or ""),
            headers=headers,
            text=text,
            content=content,
            url=data.get("url"),
            error_message=data.get("error_message"),
            error_type=data.get("error_type"),
            meta={k: v for k, v in data.items() if k not in known},
        )
