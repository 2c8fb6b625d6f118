# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Error taxonomy shared by the fleet service and the sandbox executor.

Every error carries a stable ``code`` so HTTP layers can render a structured
failure body without inspecting exception types.
"""

from typing import Any, Dict, Optional


class EngineError(Exception):
    """Base class for all errors raised by the engine components."""

    code = "engine_error"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(EngineError):
    """Malformed request payload. Never retried."""

    code = "validation_error"


class InfraError(EngineError):
    """A compute-provider app, IP or machine operation failed."""

    code = "infra_error"


class BuildError(EngineError):
    """Building or pushing a container image failed."""

    code = "build_error"


class SandboxError(EngineError):
    """Base class for failures of a single sandboxed invocation.

    Attributes:
        error_type: Exception class name raised inside the sandbox, if any
        traceback: Formatted traceback from inside the sandbox, if any
        logs: Output printed by the sandboxed code before it failed
    """

    code = "sandbox_error"

    def __init__(
        self,
        message: str,
        error_type: Optional[str] = None,
        traceback: Optional[str] = None,
        logs: str = "",
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause=cause)
        self.error_type = error_type
        self.traceback = traceback
        self.logs = logs

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.error_type:
            data["type"] = self.error_type
        if self.traceback:
            data["traceback"] = self.traceback
        return data


class SandboxCompileError(SandboxError):
    code = "compile_error"


class SandboxRuntimeError(SandboxError):
    code = "runtime_error"


class SandboxMemoryExceeded(SandboxError):
    code = "memory_exceeded"


class SandboxTimeout(SandboxError):
    code = "timeout"
