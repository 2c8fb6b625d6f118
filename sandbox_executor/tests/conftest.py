# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

import subprocess
import sys
from pathlib import Path

# Add parent directory to Python path to allow imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

import json
from unittest.mock import MagicMock

import pytest


class FakeSandboxInstance:
    """Context-managed instance returning a canned envelope"""

    def __init__(self, run_dir, envelope=None, error=None):
        self.run_dir = run_dir
        self.envelope = envelope
        self.error = error
        self.requests = []
        self.envs = []
        self.disposed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, tb):
        self.disposed = True

    def execute(self, request, env=None):
        self.requests.append(json.loads(request))
        self.envs.append(env)
        if self.error is not None:
            raise self.error
        return dict(self.envelope)


class FakeSandboxFactory:
    """Hands out a new FakeSandboxInstance per create() call"""

    def __init__(self, run_dir, envelope=None, error=None):
        self.run_dir = run_dir
        self.envelope = envelope or {"ok": True, "result": None, "logs": "", "duration_ms": 1}
        self.error = error
        self.instances = []

    def create(self):
        instance = FakeSandboxInstance(self.run_dir, self.envelope, self.error)
        self.instances.append(instance)
        return instance


@pytest.fixture
def fake_factory(tmp_path):
    return FakeSandboxFactory(tmp_path)


@pytest.fixture
def mock_subprocess():
    """Mock subprocess module"""
    mock = MagicMock()
    mock.run = MagicMock()
    mock.CalledProcessError = subprocess.CalledProcessError
    mock.TimeoutExpired = subprocess.TimeoutExpired
    return mock
