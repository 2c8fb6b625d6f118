# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Bootstrap executed as the entry point of every sandbox instance.

Runs inside a fresh ``python -I`` interpreter, so it may only use the
standard library and must not import anything from this project.

Protocol:
    argv[1]  address-space ceiling in bytes (0 disables the limit)
    stdin    one JSON request {mode, source, context, paths}
    stdout   one JSON envelope, either
             {"ok": true, "result": ..., "logs": "..."} or
             {"ok": false, "kind": "compile|runtime|memory", "type", "message",
              "traceback", "logs"}

Anything the sandboxed code writes to stdout is captured into ``logs``; the
original stdout file descriptor is reserved for the envelope.
"""

import ast
import asyncio
import builtins
import contextlib
import inspect
import io
import json
import os
import resource
import sys
import traceback

RESULT_NAME = "__result__"
INPUTS_NAME = "__inputs__"
SCRIPT_RESULT_NAME = "result"
FILENAME = "<sandbox>"

# Released on MemoryError so the failure envelope can still be built
_reserve = None


def limit_memory(limit_bytes):
    if limit_bytes > 0:
        resource.setrlimit(resource.RLIMIT_AS, (limit_bytes, limit_bytes))


def binds_name(tree, name):
    for node in ast.walk(tree):
        if isinstance(node, ast.Name) and node.id == name and isinstance(node.ctx, (ast.Store, ast.Del)):
            return True
        if isinstance(node, ast.Global) and name in node.names:
            return True
    return False


def compile_source(source, mode):
    """Compile ``source`` and report whether it binds the ``result`` global itself."""
    flags = ast.PyCF_ALLOW_TOP_LEVEL_AWAIT
    tree = compile(source, FILENAME, "exec", flags=flags | ast.PyCF_ONLY_AST)
    binds_result = binds_name(tree, SCRIPT_RESULT_NAME)
    if mode == "script" and tree.body and isinstance(tree.body[-1], ast.Expr):
        last = tree.body[-1]
        tree.body[-1] = ast.copy_location(
            ast.Assign(
                targets=[ast.Name(id=RESULT_NAME, ctx=ast.Store())],
                value=last.value,
            ),
            last,
        )
        ast.fix_missing_locations(tree)
    return compile(tree, FILENAME, "exec", flags=flags), binds_result


async def _drive(awaitable):
    return await awaitable


def run(code, namespace, use_result_global=True):
    if code.co_flags & inspect.CO_COROUTINE:
        asyncio.run(_drive(eval(code, namespace)))
    else:
        exec(code, namespace)

    if RESULT_NAME in namespace:
        value = namespace[RESULT_NAME]
    elif use_result_global:
        value = namespace.get(SCRIPT_RESULT_NAME)
    else:
        value = None
    if inspect.isawaitable(value):
        value = asyncio.run(_drive(value))
    return value


def failure(kind, exc, logs):
    if isinstance(exc, SyntaxError):
        message = f"{exc.msg} (line {exc.lineno})"
    else:
        message = str(exc)
    return json.dumps(
        {
            "ok": False,
            "kind": kind,
            "type": type(exc).__name__,
            "message": message,
            "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            "logs": logs.getvalue(),
        }
    )


def out_of_memory(exc, limit_active):
    # The interpreter raises a bare MemoryError when an allocation fails
    return limit_active and type(exc) is MemoryError and not exc.args


def execute(raw, limit_active=False):
    global _reserve
    logs = io.StringIO()
    namespace = {"__name__": "__sandbox__", "__builtins__": builtins}
    try:
        request = json.loads(raw)
        mode = request.get("mode", "script")
        context = request.get("context") or {}
        namespace.update(context)
        if mode == "module":
            namespace[INPUTS_NAME] = dict(context)
        sys.path[:0] = request.get("paths") or []

        try:
            code, binds_result = compile_source(request["source"], mode)
        except (SyntaxError, ValueError) as e:
            return failure("compile", e, logs)

        # An injected ``result`` is an input, not the script's answer
        use_result_global = binds_result or SCRIPT_RESULT_NAME not in context
        with contextlib.redirect_stdout(logs):
            value = run(code, namespace, use_result_global)

        try:
            return json.dumps({"ok": True, "result": value, "logs": logs.getvalue()})
        except (TypeError, ValueError) as e:
            return failure("runtime", TypeError(f"Result is not JSON-serializable: {e}"), logs)
    except MemoryError as e:
        _reserve = None
        namespace.clear()
        return failure("memory" if out_of_memory(e, limit_active) else "runtime", e, logs)
    except BaseException as e:
        # SystemExit and KeyboardInterrupt from sandboxed code are plain failures here
        return failure("runtime", e, logs)


def main(argv):
    global _reserve
    limit_bytes = int(argv[1]) if len(argv) > 1 else 0

    result_fd = os.dup(1)
    os.dup2(2, 1)

    raw = sys.stdin.read()
    _reserve = bytearray(1 << 20)
    limit_memory(limit_bytes)

    envelope = execute(raw, limit_active=limit_bytes > 0)
    with os.fdopen(result_fd, "w", encoding="utf-8") as out:
        out.write(envelope)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
