# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

# coding: utf-8
import os
import sys

"""
Configuration for the sandbox executor that runs inside each workspace machine.
"""

# Memory ceiling of one sandbox instance (MB)
SANDBOX_MEMORY_LIMIT_MB = int(os.environ.get("SANDBOX_MEMORY_LIMIT_MB", "128"))

# Wall-clock budget per invocation (seconds). Unset means no limit.
_timeout = os.environ.get("SANDBOX_TIMEOUT_SECONDS", "")
SANDBOX_TIMEOUT_SECONDS = float(_timeout) if _timeout else None

# Interpreter used for sandbox instances
SANDBOX_PYTHON = os.environ.get("SANDBOX_PYTHON", sys.executable)

# Parent directory for per-invocation run directories (None = system temp dir)
SANDBOX_WORK_ROOT = os.environ.get("SANDBOX_WORK_ROOT") or None

# Dependency installation
PIP_INSTALL_TIMEOUT = int(os.environ.get("PIP_INSTALL_TIMEOUT", "300"))

# HTTP server
EXECUTOR_HOST = os.environ.get("EXECUTOR_HOST", "0.0.0.0")
EXECUTOR_PORT = int(os.environ.get("EXECUTOR_PORT", "3000"))

# Test environment variables are only honoured in development
ENVIRONMENT = os.environ.get("ENVIRONMENT", "production")
