# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import json

from apirunner.config import HttpSettings
from apirunner.execution import ExecutionOptions, ProxySelector, RequestExecutor, ScriptRunResult, run_default_tests
from apirunner.execution.assertions import JSON_FORMAT_CHECK, RESPONSE_TIME_CHECK, STATUS_CHECK
from apirunner.http import StubHttpClient
from apirunner.http.models import HttpResponse
from apirunner.models import ApiRequest, ExecutionResult, KeyValue, Proxy, ProxyPool, TestOutcome, TestScript
from apirunner.store import InMemoryStore
from apirunner.utils.context import run_context


class RecordingSandbox:
    """ScriptSandbox stand-in returning canned results per script."""

    def __init__(self, results=None):
        self.results = results or {}
        self.calls = []

    def run(self, script, context, *, kind="test"):
        self.calls.append((kind, script, json.loads(json.dumps(context))))
        handler = self.results.get(script)
        if handler is None:
            return ScriptRunResult(context=dict(context))
        return handler(dict(context))


def _json_response(status=200, body='{"ok": true}'):
    return HttpResponse(ok=True, status_code=status, reason="OK", headers={"Content-Type": "application/json"}, text=body)


def test_execute_resolves_variables_and_reports_response():
    client = StubHttpClient(default=_json_response(201, '{"id": 1}'))
    executor = RequestExecutor(client, sandbox=RecordingSandbox(), settings=HttpSettings())
    request = ApiRequest(
        url="https://{{host}}/users",
        method="POST",
        headers=[KeyValue("X-Token", "{{token}}")],
        params=[KeyValue("v", "{{version}}")],
    )

    result = executor.execute(request, ExecutionOptions(environment={"host": "api.test", "token": "t1", "version": "2"}))

    sent = client.requests[0]
    assert sent.url == "https://api.test/users?v=2"
    assert sent.headers["X-Token"] == "t1"
    assert result.status == 201
    assert result.status_text == "OK"
    assert result.response_body == '{"id": 1}'
    assert result.response_size == len('{"id": 1}')
    assert result.error is None
    assert result.url == "https://api.test/users?v=2"
    assert result.test_results is None


def test_response_size_prefers_numeric_content_length():
    client = StubHttpClient(
        default=HttpResponse(ok=True, status_code=200, headers={"Content-Length": "999"}, text="short")
    )
    result = RequestExecutor(client, sandbox=RecordingSandbox()).execute(ApiRequest(url="http://x"))
    assert result.response_size == 999

    client = StubHttpClient(default=HttpResponse(ok=True, status_code=200, headers={"Content-Length": "abc"}, text="héllo"))
    result = RequestExecutor(client, sandbox=RecordingSandbox()).execute(ApiRequest(url="http://x"))
    assert result.response_size == len("héllo".encode("utf-8"))


def test_http_error_codes_are_data_not_failures():
    client = StubHttpClient(default=HttpResponse(ok=True, status_code=404, reason="Not Found", text="missing"))
    result = RequestExecutor(client, sandbox=RecordingSandbox()).execute(ApiRequest(url="http://x"))
    assert result.status == 404
    assert result.status_text == "Not Found"
    assert result.error is None


def test_transport_failure_becomes_status_zero():
    client = StubHttpClient(
        default=HttpResponse(
            ok=False,
            error_message="Connection refused",
            error_type="ConnectError",
            meta={"error_category": "CONNECTION_ERROR"},
        )
    )
    result = RequestExecutor(client, sandbox=RecordingSandbox()).execute(ApiRequest(url="http://127.0.0.1:1"))

    assert result.status == 0
    assert result.error == "Connection refused"
    assert result.status_text == "Connection refused"
    assert result.error_category == "CONNECTION_ERROR"
    assert result.ok is False


def test_execute_never_raises():
    class ExplodingClient:
        def request(self, request):  # noqa: ARG002
            raise RuntimeError("socket exploded")

    result = RequestExecutor(ExplodingClient(), sandbox=RecordingSandbox()).execute(ApiRequest(url="http://x"))
    assert result.status == 0
    assert result.error == "socket exploded"

    class ExplodingSandbox:
        def run(self, *args, **kwargs):
            raise RuntimeError("sandbox broke")

    request = ApiRequest(url="http://x", pre_request_script="x = 1")
    result = RequestExecutor(StubHttpClient(default=_json_response()), sandbox=ExplodingSandbox()).execute(request)
    assert result.status == 0
    assert result.status_text == "Request execution failed"
    assert result.error == "sandbox broke"


def test_pre_request_script_replaces_request():
    def rewrite(context):
        context["request"]["url"] = "https://rewritten.test/path"
        context["request"]["headers"].append({"key": "X-Signed", "value": "yes"})
        return ScriptRunResult(context=context)

    client = StubHttpClient(default=_json_response())
    sandbox = RecordingSandbox({"sign()": rewrite})
    request = ApiRequest(url="https://{{host}}/orig", id="r1", pre_request_script="sign()")

    executor = RequestExecutor(client, sandbox=sandbox)
    executor.execute(request, ExecutionOptions(environment={"host": "h"}))

    kind, _, context = sandbox.calls[0]
    assert kind == "pre_request"
    assert context["request"]["url"] == "https://h/orig"
    assert context["environment"] == {"host": "h"}
    assert client.requests[0].url == "https://rewritten.test/path"
    assert client.requests[0].headers["X-Signed"] == "yes"


def test_failed_pre_request_script_keeps_resolved_request():
    sandbox = RecordingSandbox({"boom()": lambda ctx: ScriptRunResult(context=ctx, error="NameError: boom")})
    client = StubHttpClient(default=_json_response())
    request = ApiRequest(url="https://{{host}}/orig", pre_request_script="boom()")

    RequestExecutor(client, sandbox=sandbox).execute(request, ExecutionOptions(environment={"host": "h"}))

    assert client.requests[0].url == "https://h/orig"


def test_skip_flags_bypass_scripts():
    sandbox = RecordingSandbox()
    request = ApiRequest(url="http://x", pre_request_script="a = 1", tests=[TestScript("t", "b = 2")])
    result = RequestExecutor(StubHttpClient(default=_json_response()), sandbox=sandbox).execute(
        request, skip_pre_request_script=True, skip_tests=True
    )
    assert sandbox.calls == []
    assert result.test_results is None


def test_enabled_tests_receive_response_context():
    def failing(context):
        return ScriptRunResult(
            context=context,
            assertions=[TestOutcome("status", True), TestOutcome("body", False, error="Expected x")],
        )

    sandbox = RecordingSandbox({"fails": failing})
    request = ApiRequest(
        url="http://x",
        tests=[TestScript("passes", "ok"), TestScript("fails", "fails"), TestScript("off", "never", enabled=False)],
    )
    result = RequestExecutor(StubHttpClient(default=_json_response(200, '{"n": 1}')), sandbox=sandbox).execute(request)

    assert [(t.name, t.passed, t.error) for t in result.test_results] == [
        ("passes", True, None),
        ("fails", False, "body: Expected x"),
    ]
    kind, _, context = sandbox.calls[0]
    assert kind == "test"
    assert context["response"]["status"] == 200
    assert context["response"]["json"] == {"n": 1}
    assert context["response"]["headers"] == {"content-type": "application/json"}
    assert context["response"]["body"] == '{"n": 1}'
    assert "response_time" in context["response"]


def test_proxy_pool_selection_is_applied_and_reported():
    store = InMemoryStore()
    store.add_proxy(Proxy(id="p0", host="10.0.0.1", port=3128))
    store.add_proxy(Proxy(id="p1", host="10.0.0.2", port=3128))
    store.add_proxy_pool(ProxyPool(id="pool", proxy_ids=["p0", "p1"]))
    client = StubHttpClient(default=_json_response())
    executor = RequestExecutor(client, proxy_selector=ProxySelector(store), sandbox=RecordingSandbox())

    result = executor.execute(ApiRequest(url="http://x"), ExecutionOptions(proxy_pool_id="pool"))

    assert client.requests[0].proxy == "http://10.0.0.2:3128"
    assert result.proxy_id == "p1"


def test_http_client_falls_back_to_run_context():
    client = StubHttpClient(default=_json_response())
    executor = RequestExecutor(sandbox=RecordingSandbox())
    with run_context(http_client=client):
        result = executor.execute(ApiRequest(url="http://ctx"))
    assert result.status == 200
    assert client.requests[0].url == "http://ctx"


def test_default_battery_for_json_success():
    result = ExecutionResult(
        status=201,
        response_time=120,
        response_headers={"content-type": "application/json; charset=utf-8"},
        response_body='{"a": 1}',
    )
    outcomes = run_default_tests(result, 5000)
    assert [(o.name, o.passed) for o in outcomes] == [(STATUS_CHECK, True), (RESPONSE_TIME_CHECK, True), (JSON_FORMAT_CHECK, True)]


def test_default_battery_failures_and_non_json():
    slow_error = ExecutionResult(status=500, response_time=6000, response_headers={"Content-Type": "text/html"})
    outcomes = run_default_tests(slow_error, 5000)
    assert [(o.name, o.passed) for o in outcomes] == [(STATUS_CHECK, False), (RESPONSE_TIME_CHECK, False)]

    broken_json = ExecutionResult(status=200, response_headers={"Content-Type": "application/json"}, response_body="<html>")
    assert run_default_tests(broken_json, 5000)[-1].passed is False

    network_failure = ExecutionResult(status=0, error="refused")
    assert run_default_tests(network_failure, 5000)[0].passed is False
