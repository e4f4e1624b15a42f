# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Stored API request definitions."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .fields import document_id, optional_str, pick


class BodyMode(str, Enum):
    NONE = "none"
    RAW = "raw"
    FORM_DATA = "form-data"
    URLENCODED = "urlencoded"
    BINARY = "binary"

    @classmethod
    def parse(cls, value: Any) -> BodyMode:
        raw = str(value or "none").strip().lower().replace("_", "-")
        if raw == "formdata":
            raw = "form-data"
        try:
            return cls(raw)
        except ValueError:
            return cls.NONE


@dataclass
class KeyValue:
    """Header, query parameter or form field entry."""

    key: str
    value: str = ""
    enabled: bool = True

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> KeyValue:
        value = data.get("value")
        return cls(
            key=str(data.get("key") or ""),
            value="" if value is None else str(value),
            enabled=bool(data.get("enabled", True)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "value": self.value, "enabled": self.enabled}


def _key_values(items: Any) -> list[KeyValue]:
    if not items:
        return []
    if isinstance(items, Mapping):
        return [KeyValue(key=str(k), value="" if v is None else str(v)) for k, v in items.items()]
    return [item if isinstance(item, KeyValue) else KeyValue.from_mapping(item) for item in items if item is not None]


def enabled_pairs(items: list[KeyValue]) -> list[tuple[str, str]]:
    """Return (key, value) pairs of enabled entries with a non-empty key, in order."""
    return [(item.key, item.value) for item in items if item.enabled and item.key]


@dataclass
class RequestBody:
    mode: BodyMode = BodyMode.NONE
    raw: str = ""
    content_type: str = "application/json"
    form_data: list[KeyValue] = field(default_factory=list)
    urlencoded: list[KeyValue] = field(default_factory=list)
    binary: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> RequestBody:
        if not data:
            return cls()
        raw = data.get("raw")
        return cls(
            mode=BodyMode.parse(data.get("mode")),
            raw="" if raw is None else str(raw),
            content_type=str(pick(data, "content_type", "contentType", default="application/json")),
            form_data=_key_values(pick(data, "form_data", "formData")),
            urlencoded=_key_values(data.get("urlencoded")),
            binary=optional_str(data.get("binary")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "raw": self.raw,
            "content_type": self.content_type,
            "form_data": [item.to_dict() for item in self.form_data],
            "urlencoded": [item.to_dict() for item in self.urlencoded],
            "binary": self.binary,
        }


@dataclass
class TestScript:
    __test__ = False  # not a pytest test class

    name: str
    script: str = ""
    enabled: bool = True

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> TestScript:
        return cls(
            name=str(data.get("name") or "Unnamed test"),
            script=str(data.get("script") or ""),
            enabled=bool(data.get("enabled", True)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "script": self.script, "enabled": self.enabled}


@dataclass
class ApiRequest:
    """A stored request description; a resolved copy is produced for every call."""

    url: str
    method: str = "GET"
    name: str = ""
    id: str | None = None
    collection_id: str | None = None
    headers: list[KeyValue] = field(default_factory=list)
    params: list[KeyValue] = field(default_factory=list)
    body: RequestBody = field(default_factory=RequestBody)
    pre_request_script: str = ""
    tests: list[TestScript] = field(default_factory=list)

    @property
    def enabled_tests(self) -> list[TestScript]:
        return [test for test in self.tests if test.enabled]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ApiRequest:
        raw_tests = data.get("tests") or []
        if isinstance(raw_tests, str):
            # Legacy documents stored a single script string.
            raw_tests = [{"name": "Tests", "script": raw_tests}] if raw_tests.strip() else []
        body = data.get("body")
        return cls(
            url=str(data.get("url") or ""),
            method=str(data.get("method") or "GET").upper(),
            name=str(data.get("name") or ""),
            id=document_id(data),
            collection_id=optional_str(pick(data, "collection_id", "collectionId")),
            headers=_key_values(data.get("headers")),
            params=_key_values(data.get("params")),
            body=body if isinstance(body, RequestBody) else RequestBody.from_mapping(body),
            pre_request_script=str(pick(data, "pre_request_script", "preRequestScript", default="")),
            tests=[t if isinstance(t, TestScript) else TestScript.from_mapping(t) for t in raw_tests],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "method": self.method,
            "collection_id": self.collection_id,
            "headers": [item.to_dict() for item in self.headers],
            "params": [item.to_dict() for item in self.params],
            "body": self.body.to_dict(),
            "pre_request_script": self.pre_request_script,
            "tests": [test.to_dict() for test in self.tests],
        }


__all__ = ["ApiRequest", "BodyMode", "KeyValue", "RequestBody", "TestScript", "enabled_pairs"]
