# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Isolated, time-bounded execution of user pre-request and test scripts.

Scripts are Python source. Each run happens in a fresh ``python -I`` process with
an empty environment: the script sees only restricted builtins and the injected
context (``request``, ``environment`` and, for tests, ``response``, ``test``,
``expect``, ``assert_``). The context travels as JSON over stdin/stdout, so a
script can change what it was given but nothing else in the host process. The
worker compiles scripts through an attribute guard, so private attributes and
modules outside its allow-list stay unreachable. A run that exceeds the timeout
is killed.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from ..config import load_runner_settings
from ..models import TestOutcome

logger = logging.getLogger(__name__)

WORKER_PATH = Path(__file__).with_name("_script_worker.py")
ScriptKind = Literal["pre_request", "test"]


@dataclass
class ScriptRunResult:
    """Outcome of one sandboxed script run; `error` is set instead of raising."""

    context: dict[str, Any]
    error: str | None = None
    assertions: list[TestOutcome] = field(default_factory=list)
    logs: list[str] = field(default_factory=list)
    timed_out: bool = False

    @property
    def passed(self) -> bool:
        if self.error is not None:
            return False
        if self.context.get("passed") is False:
            return False
        return all(outcome.passed for outcome in self.assertions)

    @property
    def failure_message(self) -> str | None:
        if self.error is not None:
            return self.error
        for outcome in self.assertions:
            if not outcome.passed:
                return f"{outcome.name}: {outcome.error}" if outcome.error else outcome.name
        if self.context.get("passed") is False:
            return "Script marked the test as failed"
        return None


def _worker_env() -> dict[str, str]:
    # Windows cannot start an interpreter without SYSTEMROOT.
    env: dict[str, str] = {}
    if "SYSTEMROOT" in os.environ:
        env["SYSTEMROOT"] = os.environ["SYSTEMROOT"]
    return env


class ScriptSandbox:
    def __init__(self, timeout: float | None = None, python: str | None = None):
        self.timeout = timeout if timeout is not None else load_runner_settings().script_timeout
        self.python = python or sys.executable

    def run(self, script: str | None, context: Mapping[str, Any], *, kind: ScriptKind = "test") -> ScriptRunResult:
        original = dict(context)
        if not script or not script.strip():
            return ScriptRunResult(context=original)

        try:
            payload = json.dumps({"script": script, "context": original, "kind": kind}, default=str)
        except (TypeError, ValueError) as exc:
            return ScriptRunResult(context=original, error=f"Script context is not serializable: {exc}")

        try:
            completed = subprocess.run(
                [self.python, "-I", "-X", "utf8", str(WORKER_PATH)],
                input=payload,
                capture_output=True,
                text=True,
                encoding="utf-8",
                timeout=self.timeout,
                env=_worker_env(),
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.warning("%s script timed out after %ss", kind, self.timeout)
            return ScriptRunResult(context=original, error=f"Script execution timed out after {self.timeout:g}s", timed_out=True)
        except OSError as exc:
            logger.warning("Unable to start script worker: %s", exc)
            return ScriptRunResult(context=original, error=f"Unable to start script worker: {exc}")

        if completed.returncode != 0 or not completed.stdout.strip():
            stderr = (completed.stderr or "").strip().splitlines()
            detail = stderr[-1] if stderr else f"exit status {completed.returncode}"
            logger.warning("%s script worker failed: %s", kind, detail)
            return ScriptRunResult(context=original, error=f"Script worker failed: {detail}")

        try:
            data = json.loads(completed.stdout)
        except ValueError as exc:
            return ScriptRunResult(context=original, error=f"Script worker returned invalid output: {exc}")

        error = data.get("error")
        returned = data.get("context")
        assertions = [
            TestOutcome(name=str(item.get("name")), passed=bool(item.get("passed")), error=item.get("error"))
            for item in data.get("tests") or []
            if isinstance(item, Mapping)
        ]
        logs = [str(line) for line in data.get("logs") or []]
        if error:
            logger.debug("%s script raised: %s", kind, error)
        return ScriptRunResult(
            context=returned if isinstance(returned, dict) and not error else original,
            error=error,
            assertions=assertions,
            logs=logs,
        )


__all__ = ["ScriptKind", "ScriptRunResult", "ScriptSandbox", "WORKER_PATH"]
