# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""`{{variable}}` substitution over strings and JSON-like structures."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import fields, is_dataclass, replace
from enum import Enum
from typing import Any

from ..models import ApiRequest, KeyValue, RequestBody

VARIABLE_PATTERN = re.compile(r"{{([^{}]+)}}")


def substitute(text: str, environment: Mapping[str, Any]) -> str:
    """Replace `{{name}}` tokens; unknown names are left verbatim."""

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1).strip()
        if name in environment and environment[name] is not None:
            return str(environment[name])
        return match.group(0)

    return VARIABLE_PATTERN.sub(_replace, text)


def resolve_variables(value: Any, environment: Mapping[str, Any]) -> Any:
    """
    Return a structurally identical copy of `value` with every string substituted.

    Mappings, lists, tuples and dataclass instances are rebuilt recursively; the
    input is never mutated. ApiRequest goes through `resolve_request`, so its
    scripts stay verbatim.
    """
    if isinstance(value, Enum):
        return value
    if isinstance(value, ApiRequest):
        return resolve_request(value, environment)
    if is_dataclass(value) and not isinstance(value, type):
        changes = {f.name: resolve_variables(getattr(value, f.name), environment) for f in fields(value) if f.init}
        return replace(value, **changes)
    if isinstance(value, str):
        return substitute(value, environment)
    if isinstance(value, Mapping):
        return {key: resolve_variables(item, environment) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_variables(item, environment) for item in value]
    if isinstance(value, tuple):
        return tuple(resolve_variables(item, environment) for item in value)
    return value


def _resolve_entries(items: list[KeyValue], environment: Mapping[str, Any]) -> list[KeyValue]:
    return [
        KeyValue(key=substitute(item.key, environment), value=substitute(item.value, environment), enabled=item.enabled)
        for item in items
    ]


def resolve_request(request: ApiRequest, environment: Mapping[str, Any]) -> ApiRequest:
    """Resolve URL, headers, query params and body of a request into a new copy."""
    body = request.body
    resolved_body = RequestBody(
        mode=body.mode,
        raw=substitute(body.raw, environment),
        content_type=substitute(body.content_type, environment),
        form_data=_resolve_entries(body.form_data, environment),
        urlencoded=_resolve_entries(body.urlencoded, environment),
        binary=substitute(body.binary, environment) if body.binary is not None else None,
    )
    return replace(
        request,
        url=substitute(request.url, environment),
        headers=_resolve_entries(request.headers, environment),
        params=_resolve_entries(request.params, environment),
        body=resolved_body,
        tests=list(request.tests),
    )


__all__ = ["VARIABLE_PATTERN", "resolve_request", "resolve_variables", "substitute"]
