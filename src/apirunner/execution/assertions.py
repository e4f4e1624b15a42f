# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Default checks applied to requests that define no test scripts."""

from __future__ import annotations

import json

from ..config import load_runner_settings
from ..http.headers import header_value
from ..models import ExecutionResult, TestOutcome

STATUS_CHECK = "Status code check"
RESPONSE_TIME_CHECK = "Response time check"
JSON_FORMAT_CHECK = "JSON format check"


def is_json_content_type(content_type: str) -> bool:
    return "application/json" in (content_type or "").lower()


def is_valid_json(text: str | None) -> bool:
    if not text:
        return False
    try:
        json.loads(text)
    except ValueError:
        return False
    return True


def run_default_tests(result: ExecutionResult, threshold_ms: int | None = None) -> list[TestOutcome]:
    """
    Status in 2xx, response time under the threshold and, when the response
    declares JSON, a parseable body.
    """
    if threshold_ms is None:
        threshold_ms = load_runner_settings().response_time_threshold_ms

    outcomes: list[TestOutcome] = []

    status_ok = 200 <= result.status < 300
    outcomes.append(
        TestOutcome(
            name=STATUS_CHECK,
            passed=status_ok,
            message=f"Status code OK: {result.status}" if status_ok else f"Unexpected status code: {result.status}",
        )
    )

    fast_enough = result.response_time < threshold_ms
    outcomes.append(
        TestOutcome(
            name=RESPONSE_TIME_CHECK,
            passed=fast_enough,
            message=(
                f"Response time OK: {result.response_time}ms"
                if fast_enough
                else f"Response time too long: {result.response_time}ms (over {threshold_ms}ms)"
            ),
        )
    )

    if is_json_content_type(header_value(result.response_headers, "Content-Type")):
        valid = is_valid_json(result.response_body)
        outcomes.append(
            TestOutcome(
                name=JSON_FORMAT_CHECK,
                passed=valid,
                message="Valid JSON body" if valid else "Content-Type declares JSON but the body does not parse",
            )
        )

    return outcomes


__all__ = [
    "JSON_FORMAT_CHECK",
    "RESPONSE_TIME_CHECK",
    "STATUS_CHECK",
    "is_json_content_type",
    "is_valid_json",
    "run_default_tests",
]
