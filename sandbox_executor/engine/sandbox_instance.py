#!/usr/bin/env python

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

# -*- coding: utf-8 -*-

"""
Disposable, memory-bounded sandbox instances.

A SandboxInstance is one child interpreter plus a private run directory. It is
created for a single invocation, used as a context manager, and disposed on
every exit path. Instances are never pooled or reused.
"""

import json
import os
import shutil
import subprocess
import tempfile
import time
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from sandbox_executor.config.config import (
    SANDBOX_MEMORY_LIMIT_MB,
    SANDBOX_PYTHON,
    SANDBOX_TIMEOUT_SECONDS,
    SANDBOX_WORK_ROOT,
)
from shared.errors import SandboxRuntimeError, SandboxTimeout
from shared.logger import setup_logger

logger = setup_logger(__name__)

RUNNER_PATH = Path(__file__).with_name("runner.py")

# Exit signals that mean the child was killed while growing its heap
MEMORY_KILL_CODES = {-9, -11}


class InstanceState(str, Enum):
    CREATED = "created"
    CONTEXT_INITIALIZED = "context_initialized"
    RUNNING = "running"
    COMPLETED = "completed"
    FAULTED = "faulted"
    DISPOSED = "disposed"


class SandboxInstance:
    """One isolated child interpreter with a fixed address-space ceiling"""

    def __init__(
        self,
        memory_limit_mb: int = SANDBOX_MEMORY_LIMIT_MB,
        timeout: Optional[float] = SANDBOX_TIMEOUT_SECONDS,
        python: str = SANDBOX_PYTHON,
        work_root: Optional[str] = SANDBOX_WORK_ROOT,
        subprocess_module=subprocess,
    ):
        self.memory_limit_mb = memory_limit_mb
        self.timeout = timeout
        self.python = python
        self.work_root = work_root
        self.subprocess = subprocess_module
        self.state = InstanceState.CREATED
        self._run_dir: Optional[Path] = None
        self._process = None

    def __enter__(self) -> "SandboxInstance":
        self._run_dir = Path(tempfile.mkdtemp(prefix="sandbox-", dir=self.work_root))
        return self

    def __exit__(self, exc_type, exc_value, tb) -> None:
        self.dispose()

    @property
    def run_dir(self) -> Path:
        if self._run_dir is None:
            raise RuntimeError("Sandbox instance has not been entered")
        return self._run_dir

    def execute(
        self,
        request: str,
        env: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Run one encoded request in a fresh child interpreter.

        Args:
            request: JSON-encoded runner request
            env: Extra environment variables for the child

        Returns:
            The runner's result envelope. Abnormal exits are translated into a
            failure envelope so callers always get one.
        """
        self.state = InstanceState.CONTEXT_INITIALIZED
        cmd = [self.python, "-I", str(RUNNER_PATH), str(self.memory_limit_mb * 1024 * 1024)]

        start = time.monotonic()
        self.state = InstanceState.RUNNING
        try:
            self._process = self.subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=str(self.run_dir),
                env=self._child_env(env),
                text=True,
            )
        except OSError as e:
            self.state = InstanceState.FAULTED
            logger.error(f"[SandboxInstance] Cannot start interpreter {self.python}: {e}")
            raise SandboxRuntimeError(
                f"Cannot start sandbox interpreter: {type(e).__name__}", cause=e
            ) from e
        try:
            stdout, stderr = self._process.communicate(input=request, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            self.state = InstanceState.FAULTED
            self._kill()
            raise SandboxTimeout(
                f"Execution exceeded {self.timeout} seconds", cause=e
            ) from e

        duration_ms = int((time.monotonic() - start) * 1000)
        envelope = self._parse_envelope(stdout, stderr, self._process.returncode)
        envelope["duration_ms"] = duration_ms
        self.state = InstanceState.COMPLETED if envelope.get("ok") else InstanceState.FAULTED
        logger.debug(
            f"[SandboxInstance] Finished in {duration_ms}ms, ok={envelope.get('ok')}"
        )
        return envelope

    def dispose(self) -> None:
        """Kill the child if still alive and remove the run directory."""
        self._kill()
        if self._run_dir is not None:
            shutil.rmtree(self._run_dir, ignore_errors=True)
            self._run_dir = None
        self.state = InstanceState.DISPOSED

    def _kill(self) -> None:
        if self._process is not None and self._process.poll() is None:
            self._process.kill()
            self._process.communicate()

    def _child_env(self, env: Optional[Dict[str, str]]) -> Dict[str, str]:
        # Host environment is not inherited: secrets stay outside the sandbox
        child_env = {
            "PATH": os.environ.get("PATH", "/usr/bin:/bin"),
            "LANG": "C.UTF-8",
            "HOME": str(self.run_dir),
            "PYTHONDONTWRITEBYTECODE": "1",
        }
        if env:
            child_env.update(env)
        return child_env

    @staticmethod
    def _parse_envelope(stdout: str, stderr: str, returncode: int) -> Dict[str, Any]:
        if stdout:
            try:
                envelope = json.loads(stdout)
            except ValueError:
                envelope = None
            if isinstance(envelope, dict) and "ok" in envelope:
                return envelope

        # Sandboxed code controls stderr, so only the exit signal is trusted here
        stderr = stderr or ""
        if returncode in MEMORY_KILL_CODES:
            kind = "memory"
            message = "Sandbox exceeded its memory limit"
        else:
            kind = "runtime"
            message = f"Sandbox exited without a result (exit code {returncode})"
        return {
            "ok": False,
            "kind": kind,
            "type": None,
            "message": message,
            "traceback": stderr[-4000:] or None,
            "logs": "",
        }


class SubprocessSandboxFactory:
    """Creates a new SandboxInstance per invocation"""

    def __init__(
        self,
        memory_limit_mb: int = SANDBOX_MEMORY_LIMIT_MB,
        timeout: Optional[float] = SANDBOX_TIMEOUT_SECONDS,
        python: str = SANDBOX_PYTHON,
        work_root: Optional[str] = SANDBOX_WORK_ROOT,
        subprocess_module=subprocess,
    ):
        self.memory_limit_mb = memory_limit_mb
        self.timeout = timeout
        self.python = python
        self.work_root = work_root
        self.subprocess = subprocess_module

    def create(self) -> SandboxInstance:
        return SandboxInstance(
            memory_limit_mb=self.memory_limit_mb,
            timeout=self.timeout,
            python=self.python,
            work_root=self.work_root,
            subprocess_module=self.subprocess,
        )


def build_request(mode: str, source: str, context: Dict[str, Any], paths: List[str]) -> str:
    """Encode a runner request. Encoding is where values are copied out of the host."""
    return json.dumps(
        {"mode": mode, "source": source, "context": context, "paths": paths}
    )
