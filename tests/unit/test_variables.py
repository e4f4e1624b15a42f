# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

from apirunner.execution.variables import resolve_request, resolve_variables, substitute
from apirunner.models import ApiRequest, BodyMode, KeyValue, RequestBody


def test_substitute_trims_names_and_keeps_unknown_tokens():
    env = {"host": "api.example.com", "id": "42"}
    assert substitute("https://{{ host }}/users/{{id}}", env) == "https://api.example.com/users/42"
    assert substitute("{{missing}}/{{id}}", env) == "{{missing}}/42"
    assert substitute("no tokens here", env) == "no tokens here"


def test_resolve_variables_is_deep_and_does_not_mutate():
    value = {"a": ["{{x}}", {"b": "{{y}}-{{x}}"}], "c": ("{{x}}", 3), "d": None, "e": True}
    snapshot = {"a": ["{{x}}", {"b": "{{y}}-{{x}}"}], "c": ("{{x}}", 3), "d": None, "e": True}

    resolved = resolve_variables(value, {"x": "1", "y": "2"})

    assert resolved == {"a": ["1", {"b": "2-1"}], "c": ("1", 3), "d": None, "e": True}
    assert value == snapshot


def test_resolve_request_touches_url_headers_params_and_body():
    request = ApiRequest(
        url="https://{{host}}/items",
        headers=[KeyValue("Authorization", "Bearer {{token}}"), KeyValue("X-Off", "{{token}}", enabled=False)],
        params=[KeyValue("q", "{{term}}")],
        body=RequestBody(mode=BodyMode.RAW, raw='{"name": "{{term}}"}'),
        pre_request_script="request['url'] = '{{host}}'",
    )
    env = {"host": "example.org", "token": "abc", "term": "widgets"}

    resolved = resolve_request(request, env)

    assert resolved.url == "https://example.org/items"
    assert resolved.headers[0].value == "Bearer abc"
    assert resolved.headers[1].value == "abc"
    assert resolved.headers[1].enabled is False
    assert resolved.params[0].value == "widgets"
    assert resolved.body.raw == '{"name": "widgets"}'
    # scripts are code, not templates
    assert resolved.pre_request_script == "request['url'] = '{{host}}'"
    # the stored request is untouched
    assert request.url == "https://{{host}}/items"
    assert request.headers[0].value == "Bearer {{token}}"


def test_resolve_variables_rebuilds_request_models():
    request = ApiRequest(url="{{host}}/x", headers=[KeyValue("X-Env", "{{env}}")], body=RequestBody(mode=BodyMode.RAW, raw="{{env}}"))
    env = {"host": "a.b", "env": "prod"}

    resolved = resolve_variables(request, env)

    assert resolved is not request
    assert resolved.url == "a.b/x"
    assert resolved.headers[0].value == "prod"
    assert resolved.body.mode is BodyMode.RAW
    assert resolved.body.raw == "prod"
    assert request.url == "{{host}}/x"
    assert request.headers[0].value == "{{env}}"

    entries = resolve_variables({"items": [KeyValue("k", "{{env}}", enabled=False)]}, env)
    assert entries == {"items": [KeyValue("k", "prod", enabled=False)]}
