# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

import subprocess
import sys
from pathlib import Path

# Add parent directory to Python path to allow imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from typing import Dict, Optional, Set
from unittest.mock import MagicMock

import pytest

from fleet_manager.models.compute import AppHandle, GuestSpec, ImageRef, Machine
from shared.errors import BuildError, InfraError


class FakeComputeProvider:
    """In-memory compute provider that records calls and fails on demand"""

    def __init__(self):
        self.apps: Set[str] = set()
        self.ips: Set[str] = set()
        self.images: Dict[str, ImageRef] = {}
        self.machines: Dict[str, list] = {}
        self.calls = []
        self.fail_on: Dict[str, Exception] = {}
        self._next_machine = 0

    def _maybe_fail(self, operation: str):
        self.calls.append(operation)
        error = self.fail_on.get(operation)
        if error is not None:
            raise error

    def create_app(self, workspace_id: str) -> AppHandle:
        self._maybe_fail("create_app")
        if workspace_id in self.apps:
            raise InfraError(f"Error creating app {workspace_id}: app already exists")
        self.apps.add(workspace_id)
        return AppHandle(app_id=workspace_id, name=workspace_id)

    def get_app(self, workspace_id: str) -> Optional[AppHandle]:
        self._maybe_fail("get_app")
        if workspace_id not in self.apps:
            return None
        return AppHandle(app_id=workspace_id, name=workspace_id)

    def delete_app(self, workspace_id: str, force: bool = False) -> None:
        self._maybe_fail("delete_app")
        self.apps.discard(workspace_id)
        self.ips.discard(workspace_id)
        self.machines.pop(workspace_id, None)

    def allocate_ip(self, workspace_id: str) -> None:
        self._maybe_fail("allocate_ip")
        self.ips.add(workspace_id)

    def build_and_push_image(self, workspace_id: str, source_image: str, tag: str) -> ImageRef:
        self._maybe_fail("build_and_push_image")
        image_ref = ImageRef(registry="registry.fly.io", workspace_id=workspace_id, tag=tag)
        self.images[str(image_ref)] = image_ref
        return image_ref

    def create_machine(self, workspace_id: str, image_ref: str, guest: GuestSpec) -> Machine:
        self._maybe_fail("create_machine")
        if workspace_id not in self.apps:
            raise InfraError(f"Error creating machine for {workspace_id}: app not found")
        self._next_machine += 1
        machine = Machine(
            machine_id=f"m-{self._next_machine}", image_ref=image_ref, guest=guest
        )
        self.machines.setdefault(workspace_id, []).append(machine)
        return machine


@pytest.fixture
def fake_provider():
    """In-memory compute provider"""
    return FakeComputeProvider()


@pytest.fixture
def build_error():
    return BuildError("Error pushing image registry.fly.io/ws1:executor: denied")


@pytest.fixture
def mock_subprocess():
    """Mock subprocess module"""
    mock = MagicMock()
    mock.run = MagicMock()
    mock.CalledProcessError = subprocess.CalledProcessError
    mock.SubprocessError = subprocess.SubprocessError
    return mock
