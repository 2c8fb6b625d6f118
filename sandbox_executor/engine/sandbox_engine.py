#!/usr/bin/env python

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

# -*- coding: utf-8 -*-

"""
Sandbox engine, runs untrusted generated code in disposable instances.

Each call creates a new instance from the injected factory, prepares its run
directory, executes exactly one unit and disposes the instance on every exit
path. Nothing from one invocation is visible to the next.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sandbox_executor.engine.sandbox_instance import (
    SubprocessSandboxFactory,
    build_request,
)
from sandbox_executor.engine.units import CodeModule, Script
from sandbox_executor.services.run_directory import RunDirectoryBuilder, RunSetup
from shared.errors import (
    SandboxCompileError,
    SandboxError,
    SandboxMemoryExceeded,
    SandboxRuntimeError,
    ValidationError,
)
from shared.logger import setup_logger

logger = setup_logger(__name__)

_FAILURE_KINDS = {
    "compile": SandboxCompileError,
    "runtime": SandboxRuntimeError,
    "memory": SandboxMemoryExceeded,
}


@dataclass
class SandboxResult:
    value: Any
    logs: str = ""
    duration_ms: Optional[int] = None


class SandboxEngine:
    """Executes CodeModules and Scripts, one fresh sandbox instance per call"""

    def __init__(self, factory=None, builder: Optional[RunDirectoryBuilder] = None):
        """
        Args:
            factory: Object with a ``create()`` method returning a context-managed
                sandbox instance (default: SubprocessSandboxFactory)
            builder: Run-directory preparation (default: RunDirectoryBuilder)
        """
        self.factory = factory or SubprocessSandboxFactory()
        self.builder = builder or RunDirectoryBuilder()

    def execute_code_module(
        self,
        module: CodeModule,
        inputs: Optional[Dict[str, Any]] = None,
        setup: Optional[RunSetup] = None,
    ) -> SandboxResult:
        logger.info(f"[SandboxEngine] Executing function {module.function_name}")
        return self._run("module", module.to_source(), inputs or {}, setup)

    def execute_script(
        self,
        script: Script,
        context: Optional[Dict[str, Any]] = None,
        setup: Optional[RunSetup] = None,
    ) -> SandboxResult:
        logger.info("[SandboxEngine] Executing script")
        return self._run("script", script.to_source(), context or {}, setup)

    def run_code_module(
        self,
        module: CodeModule,
        inputs: Optional[Dict[str, Any]] = None,
        setup: Optional[RunSetup] = None,
    ) -> Any:
        """Execute ``module`` and return only its value, a copy owned by the caller."""
        return self.execute_code_module(module, inputs, setup).value

    def run_script(
        self,
        script: Script,
        context: Optional[Dict[str, Any]] = None,
        setup: Optional[RunSetup] = None,
    ) -> Any:
        return self.execute_script(script, context, setup).value

    def _run(
        self,
        mode: str,
        source: str,
        context: Dict[str, Any],
        setup: Optional[RunSetup],
    ) -> SandboxResult:
        if not isinstance(context, dict):
            raise ValidationError("Sandbox inputs must be a mapping of names to values")
        try:
            json.dumps(context)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Sandbox inputs are not JSON-serializable: {e}", cause=e) from e

        with self.factory.create() as instance:
            prepared = self.builder.prepare(instance.run_dir, setup)
            request = build_request(mode, source, context, prepared.paths)
            envelope = instance.execute(request, env=prepared.env)

        if envelope.get("ok"):
            logger.info(
                f"[SandboxEngine] Execution succeeded in {envelope.get('duration_ms')}ms"
            )
            return SandboxResult(
                value=envelope.get("result"),
                logs=envelope.get("logs") or "",
                duration_ms=envelope.get("duration_ms"),
            )
        raise self._to_error(envelope)

    @staticmethod
    def _to_error(envelope: Dict[str, Any]) -> SandboxError:
        error_cls = _FAILURE_KINDS.get(envelope.get("kind"), SandboxRuntimeError)
        error = error_cls(
            envelope.get("message") or "Sandbox execution failed",
            error_type=envelope.get("type"),
            traceback=envelope.get("traceback"),
            logs=envelope.get("logs") or "",
        )
        logger.warning(f"[SandboxEngine] Execution failed ({error.code}): {error.message}")
        return error
