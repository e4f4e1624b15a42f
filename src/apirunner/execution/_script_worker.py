# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Script worker process.

Started by ScriptSandbox as ``python -I -X utf8 _script_worker.py``. Reads one JSON
job from stdin, runs the user script against the injected context and writes one
JSON document to stdout. Standard library only; never imports apirunner.

Scripts are compiled through an AST pass before they run: names starting with an
underscore are rejected, and every attribute read goes through a guard that refuses
private attributes, frame and code internals, and modules outside ALLOWED_MODULES.
"""

import ast
import builtins
import io
import json
import re
import sys
import types
from contextlib import redirect_stderr, redirect_stdout

ALLOWED_MODULES = frozenset(
    {
        "base64",
        "datetime",
        "hashlib",
        "hmac",
        "json",
        "math",
        "random",
        "re",
        "string",
        "time",
        "urllib.parse",
        "uuid",
    }
)

SAFE_BUILTIN_NAMES = (
    "abs", "all", "any", "bool", "bytes", "chr", "dict", "divmod", "enumerate", "filter",
    "float", "format", "frozenset", "getattr", "hasattr", "hash", "hex", "int", "isinstance",
    "issubclass", "iter", "len", "list", "map", "max", "min", "next", "oct", "ord", "pow",
    "range", "repr", "reversed", "round", "set", "slice", "sorted", "str", "sum", "tuple",
    "type", "zip", "Exception", "ArithmeticError", "AssertionError", "AttributeError",
    "IndexError", "KeyError", "LookupError", "NameError", "RuntimeError", "StopIteration",
    "TypeError", "ValueError", "ZeroDivisionError", "True", "False", "None",
)

# Generator, coroutine, frame and traceback internals lead back to the worker's globals.
BLOCKED_ATTRIBUTES = frozenset(
    {
        "ag_code", "ag_frame", "cr_await", "cr_code", "cr_frame", "f_back", "f_builtins",
        "f_code", "f_globals", "f_locals", "gi_code", "gi_frame", "gi_yieldfrom", "tb_frame",
        "tb_next",
    }
)


class ScriptPolicyError(Exception):
    pass


def _check_name(name, what="name"):
    if name.startswith("_"):
        raise ScriptPolicyError(f"{what} '{name}' is not allowed in scripts")


def _check_attribute(name):
    if name.startswith("_") or name in BLOCKED_ATTRIBUTES:
        raise ScriptPolicyError(f"access to attribute '{name}' is not allowed in scripts")


def _guarded_getattr(obj, name, *default):
    if not isinstance(name, str):
        raise TypeError("attribute name must be a string")
    _check_attribute(name)
    try:
        value = getattr(obj, name)
    except AttributeError:
        if default:
            return default[0]
        raise
    if isinstance(value, types.ModuleType) and value.__name__ not in ALLOWED_MODULES:
        raise ScriptPolicyError(f"module '{value.__name__}' is not available in scripts")
    return value


def _guarded_hasattr(obj, name):
    try:
        _guarded_getattr(obj, name)
    except (AttributeError, ScriptPolicyError):
        return False
    return True


class _AttributeGuard(ast.NodeTransformer):
    """Reject private names and rewrite ``obj.attr`` reads into ``_getattr_(obj, "attr")``."""

    def visit_Name(self, node):
        _check_name(node.id)
        return node

    def visit_Attribute(self, node):
        _check_attribute(node.attr)
        self.generic_visit(node)
        if not isinstance(node.ctx, ast.Load):
            return node
        call = ast.Call(
            func=ast.Name(id="_getattr_", ctx=ast.Load()),
            args=[node.value, ast.Constant(value=node.attr)],
            keywords=[],
        )
        return ast.copy_location(call, node)

    def visit_Import(self, node):
        for alias in node.names:
            _check_name(alias.name, "import of")
            if alias.asname:
                _check_name(alias.asname)
        return node

    def visit_ImportFrom(self, node):
        if node.module:
            _check_name(node.module, "import from")
        for alias in node.names:
            _check_name(alias.name, "import of")
            if alias.asname:
                _check_name(alias.asname)
        return node


def compile_script(source):
    tree = _AttributeGuard().visit(ast.parse(source, "<script>", "exec"))
    ast.fix_missing_locations(tree)
    return compile(tree, "<script>", "exec")


def _safe_import(name, globals=None, locals=None, fromlist=(), level=0):
    if level != 0 or name not in ALLOWED_MODULES:
        raise ImportError(f"import of '{name}' is not allowed in scripts")
    module = builtins.__import__(name, globals, locals, fromlist, level)
    # `from x import y` reads attributes without going through _getattr_.
    for item in fromlist or ():
        if item != "*":
            _guarded_getattr(module, item, None)
    return module


def _describe(value):
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return repr(value)


class Expectation:
    """Fluent assertions: ``expect(response["status"]).to_equal(200)``."""

    def __init__(self, actual):
        self.actual = actual

    def _fail(self, message):
        raise AssertionError(message)

    def to_be(self, expected):
        if self.actual is not expected and self.actual != expected:
            self._fail(f"Expected {_describe(expected)}, but got {_describe(self.actual)}")
        return self

    def to_equal(self, expected):
        if _describe(self.actual) != _describe(expected):
            self._fail(f"Expected {_describe(expected)}, but got {_describe(self.actual)}")
        return self

    def to_contain(self, expected):
        container = self.actual if isinstance(self.actual, (list, tuple, dict, set)) else str(self.actual)
        needle = expected if not isinstance(container, str) else str(expected)
        if needle not in container:
            self._fail(f"Expected {_describe(self.actual)} to contain {_describe(expected)}")
        return self

    def to_be_greater_than(self, expected):
        if not self.actual > expected:
            self._fail(f"Expected {self.actual} to be greater than {expected}")
        return self

    def to_be_less_than(self, expected):
        if not self.actual < expected:
            self._fail(f"Expected {self.actual} to be less than {expected}")
        return self

    def to_be_truthy(self):
        if not self.actual:
            self._fail(f"Expected {_describe(self.actual)} to be truthy")
        return self

    def to_be_falsy(self):
        if self.actual:
            self._fail(f"Expected {_describe(self.actual)} to be falsy")
        return self

    def to_have_key(self, key):
        if not isinstance(self.actual, dict) or key not in self.actual:
            self._fail(f"Expected {_describe(self.actual)} to have key {_describe(key)}")
        return self

    def to_match(self, pattern):
        if re.search(pattern, str(self.actual)) is None:
            self._fail(f"Expected {_describe(self.actual)} to match /{pattern}/")
        return self


def _error_text(exc):
    if isinstance(exc, AssertionError):
        return str(exc) or "Assertion failed"
    return f"{type(exc).__name__}: {exc}"


def run(job):
    context = job.get("context") or {}
    logs = []
    tests = []

    class Console:
        def _write(self, level, args):
            logs.append(f"[{level}] " + " ".join(str(a) for a in args))

        def log(self, *args):
            self._write("log", args)

        def info(self, *args):
            self._write("info", args)

        def warn(self, *args):
            self._write("warn", args)

        def error(self, *args):
            self._write("error", args)

    def test(name, fn):
        try:
            fn()
        except Exception as exc:  # noqa: BLE001
            tests.append({"name": str(name), "passed": False, "error": _error_text(exc)})
            return False
        tests.append({"name": str(name), "passed": True, "error": None})
        return True

    def assert_(condition, message=None):
        if not condition:
            raise AssertionError(message or "Assertion failed")

    safe_builtins = {name: getattr(builtins, name) for name in SAFE_BUILTIN_NAMES}
    safe_builtins["__import__"] = _safe_import
    safe_builtins["getattr"] = _guarded_getattr
    safe_builtins["hasattr"] = _guarded_hasattr
    safe_builtins["print"] = lambda *args, **_: logs.append(" ".join(str(a) for a in args))

    namespace = {
        "__builtins__": safe_builtins,
        "__name__": "__script__",
        "_getattr_": _guarded_getattr,
        "console": Console(),
    }
    namespace.update(context)
    namespace["json"] = json
    namespace["re"] = re
    namespace["math"] = __import__("math")
    if job.get("kind") == "test":
        namespace.update({"test": test, "expect": Expectation, "assert_": assert_})

    error = None
    captured = io.StringIO()
    try:
        code = compile_script(job.get("script") or "")
        with redirect_stdout(captured), redirect_stderr(captured):
            exec(code, namespace)  # noqa: S102
    except Exception as exc:  # noqa: BLE001
        error = _error_text(exc)
    if captured.getvalue():
        logs.extend(line for line in captured.getvalue().splitlines() if line)

    out_context = {key: namespace.get(key, value) for key, value in context.items()}
    if "passed" in namespace:
        out_context["passed"] = namespace["passed"]
    return {"context": out_context, "error": error, "tests": tests, "logs": logs}


def main():
    job = json.load(sys.stdin)
    result = run(job)
    json.dump(result, sys.stdout, default=str)
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
