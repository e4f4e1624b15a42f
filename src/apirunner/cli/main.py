from __future__ import annotations

"""
apirunner, an API request runner with parameterized scan jobs.
Copyright (C) 2025  Theori Inc.

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU Affero General Public License as published
by the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""apirunner CLI."""

import argparse
import json
import sys
from typing import Any

from ..config import HttpSettings, load_http_settings
from ..errors import ApiRunnerError, ErrorCategory, error_category_to_reason
from ..log import setup_logging
from ..runtime import ApiRunner
from ..store import InMemoryStore

CLI_TEXT_TRUNCATION_BYTES = 4096


def _env_pair(value: str) -> tuple[str, str]:
    key, sep, val = value.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {value!r}")
    return key.strip(), val


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="apirunner", description="Run stored API requests and scan jobs")
    parser.add_argument("--log-level", default=None, help="Logging level (default from APIRUNNER_LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    execute = subparsers.add_parser("execute", help="Execute one request from a workspace file")
    execute.add_argument("workspace", help="Path to a JSON workspace document")
    execute.add_argument("request_id", help="Id of the request to execute")
    execute.add_argument(
        "--env",
        action="append",
        type=_env_pair,
        default=[],
        metavar="KEY=VALUE",
        help="Environment variable for {{var}} substitution (repeatable)",
    )
    execute.add_argument("--proxy", dest="proxy_id", default=None, help="Proxy id to route through")
    execute.add_argument("--proxy-pool", dest="proxy_pool_id", default=None, help="Proxy pool id to select from")
    execute.add_argument("--skip-tests", action="store_true", help="Do not run the request's test scripts")
    execute.add_argument("--skip-pre-request", action="store_true", help="Do not run the pre-request script")

    run = subparsers.add_parser("run", help="Run a scan job from a workspace file and wait for it")
    run.add_argument("workspace", help="Path to a JSON workspace document")
    run.add_argument("job_id", help="Id of the scan job to run")
    run.add_argument("--timeout", type=float, default=None, help="Cancel the job after this many seconds")

    for sub in (execute, run):
        sub.add_argument("--json", action="store_true", help="Output JSON instead of human-friendly summary")
        sub.add_argument(
            "--ignore-ssl-errors",
            action="store_true",
            help="Skip TLS verification (useful for lab/self-signed targets)",
        )
    return parser


def _truncate_text_bytes(text: str, max_bytes: int) -> str:
    raw = text.encode("utf-8")
    if len(raw) <= max_bytes:
        return text
    suffix = "...[truncated]"
    keep = max_bytes - len(suffix.encode("utf-8"))
    if keep <= 0:
        return suffix.encode("utf-8")[:max_bytes].decode("utf-8", errors="ignore")
    return raw[:keep].decode("utf-8", errors="ignore") + suffix


def _truncate_for_cli(value: Any, *, max_bytes: int) -> Any:
    """Shorten long strings (response bodies mostly) anywhere in a JSON payload."""
    if isinstance(value, str):
        return _truncate_text_bytes(value, max_bytes)
    if isinstance(value, dict):
        return {k: _truncate_for_cli(v, max_bytes=max_bytes) for k, v in value.items()}
    if isinstance(value, list):
        return [_truncate_for_cli(v, max_bytes=max_bytes) for v in value]
    return value


def _print_json(data: dict[str, Any] | Any) -> None:
    payload = data.to_dict() if hasattr(data, "to_dict") else data
    json.dump(_truncate_for_cli(payload, max_bytes=CLI_TEXT_TRUNCATION_BYTES), sys.stdout, indent=2, sort_keys=True)
    sys.stdout.write("\n")


def _print_tests(tests: list[dict[str, Any]]) -> None:
    if not tests:
        return
    print("Tests:")
    for outcome in tests:
        mark = "PASS" if outcome.get("passed") else "FAIL"
        detail = outcome.get("error") or outcome.get("message") or ""
        print(f"- {mark} {outcome.get('name')}" + (f": {detail}" if detail else ""))


def _pretty_print_execution(method: str, payload: dict[str, Any]) -> None:
    status = payload.get("status")
    status_text = payload.get("status_text") or ""
    print(
        f"[apirunner] {method} {payload.get('url') or '-'} -> {status} {status_text}".rstrip()
        + f" ({payload.get('response_time')} ms, {payload.get('response_size')} bytes)"
    )
    if payload.get("proxy_id"):
        print(f"Proxy: {payload['proxy_id']}")
    if payload.get("error"):
        category = payload.get("error_category")
        print(f"Error: {payload['error']}" + (f" [{category}]" if category else ""))
        if category in ErrorCategory.__members__:
            print(f"Reason: {error_category_to_reason(ErrorCategory(category))}")
    _print_tests(payload.get("test_results") or [])


def _pretty_print_job(payload: dict[str, Any]) -> None:
    job = payload.get("job") or {}
    results = payload.get("results") or []
    print(f"[apirunner] Job {job.get('id')}: {job.get('status')} ({job.get('progress')}%)")
    passed = sum(1 for r in results if r.get("test_results") and all(t.get("passed") for t in r["test_results"]))
    print(f"Results: {len(results)} ({passed} passed, {len(results) - passed} failed)")
    for result in results:
        params = result.get("parameter_values") or {}
        variant = " [" + ", ".join(f"{k}={v}" for k, v in params.items()) + "]" if params else ""
        suffix = f" ({result['error']})" if result.get("error") else ""
        print(f"- {result.get('method')} {result.get('url')}{variant} -> {result.get('status')}{suffix}")


def _http_settings(args: argparse.Namespace) -> HttpSettings:
    settings = load_http_settings()
    if args.ignore_ssl_errors:
        settings.verify_ssl = False
    return settings


def _cmd_execute(args: argparse.Namespace) -> int:
    store = InMemoryStore.from_file(args.workspace)
    request = store.get_request(args.request_id)
    if request is None:
        raise ApiRunnerError(f"Request {args.request_id} not found in {args.workspace}")

    # collection variables first, --env overrides them
    environment: dict[str, str] = {}
    collection = store.get_collection(request.collection_id) if request.collection_id else None
    if collection is not None:
        environment.update(collection.environment())
    environment.update(dict(args.env))

    with ApiRunner(store, http_settings=_http_settings(args)) as runner:
        result = runner.execute_request(
            request,
            environment=environment,
            proxy_id=args.proxy_id,
            proxy_pool_id=args.proxy_pool_id,
            skip_pre_request_script=args.skip_pre_request,
            skip_tests=args.skip_tests,
        )

    if args.json:
        _print_json(result)
    else:
        _pretty_print_execution(request.method.upper(), result.to_dict())
    return 0 if result.error is None else 1


def _cmd_run(args: argparse.Namespace) -> int:
    store = InMemoryStore.from_file(args.workspace)
    with ApiRunner(store, http_settings=_http_settings(args)) as runner:
        runner.start_test_job(args.job_id)
        if not runner.wait_for_job(args.job_id, args.timeout):
            runner.cancel_test_job(args.job_id)
            runner.wait_for_job(args.job_id)

    job = store.get_scan_job(args.job_id)
    payload = {
        "job": job.to_dict() if job is not None else {"id": args.job_id},
        "results": [result.to_dict() for result in store.list_scan_results(args.job_id)],
    }
    if args.json:
        _print_json(payload)
    else:
        _pretty_print_job(payload)
    return 0 if job is not None and job.status.value == "completed" else 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    try:
        if args.command == "execute":
            return _cmd_execute(args)
        return _cmd_run(args)
    except (ApiRunnerError, OSError, ValueError) as exc:
        print(f"apirunner: error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
