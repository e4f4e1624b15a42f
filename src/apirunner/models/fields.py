# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Helpers for reading persisted documents that may use camelCase or snake_case keys."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any


def pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present, non-None value among `keys`."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def document_id(data: Mapping[str, Any]) -> str | None:
    raw = pick(data, "id", "_id")
    return None if raw is None else str(raw)


def optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
