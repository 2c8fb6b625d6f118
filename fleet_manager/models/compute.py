# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Compute-provider resources and provisioning run records.

Key Concepts:
- ManagedApp: provider application owned 1:1 by a workspace
- Machine: a running micro-VM inside a ManagedApp
- ProvisioningRun: immutable record threaded through the provisioning steps
- ProvisioningOutcome: what the controller hands back to its caller
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from shared.errors import EngineError


@dataclass(frozen=True)
class GuestSpec:
    cpus: int = 1
    memory_mb: int = 256
    cpu_kind: str = "shared"

    def to_dict(self) -> Dict[str, Any]:
        return {"cpu_kind": self.cpu_kind, "cpus": self.cpus, "memory_mb": self.memory_mb}


@dataclass(frozen=True)
class AppHandle:
    app_id: str
    name: str
    status: Optional[str] = None
    organization: Optional[str] = None


@dataclass(frozen=True)
class ImageRef:
    registry: str
    workspace_id: str
    tag: str

    def __str__(self) -> str:
        return f"{self.registry}/{self.workspace_id}:{self.tag}"


@dataclass(frozen=True)
class Machine:
    machine_id: str
    image_ref: str
    guest: GuestSpec
    state: Optional[str] = None


class ProvisioningState(str, Enum):
    """Provisioning run states.

    States:
        START: Nothing created yet
        APP_CREATED: The ManagedApp exists and belongs to this run
        IP_ALLOCATED: A public IPv4 was attached to the app
        IMAGE_BUILT: The image was tagged and pushed to the registry
        MACHINE_CREATED: The machine was launched (success)
        ROLLBACK: A step failed and compensation is in progress
        TORN_DOWN: Compensation finished, nothing from this run remains
        ROLLBACK_FAILED: Compensation itself failed, the app may remain
    """

    START = "start"
    APP_CREATED = "app_created"
    IP_ALLOCATED = "ip_allocated"
    IMAGE_BUILT = "image_built"
    MACHINE_CREATED = "machine_created"
    ROLLBACK = "rollback"
    TORN_DOWN = "torn_down"
    ROLLBACK_FAILED = "rollback_failed"


@dataclass(frozen=True)
class ProvisioningRun:
    workspace_id: str
    state: ProvisioningState = ProvisioningState.START
    owns_app: bool = False
    image_ref: Optional[ImageRef] = None
    machine: Optional[Machine] = None
    history: Tuple[ProvisioningState, ...] = (ProvisioningState.START,)

    def advance(self, state: ProvisioningState, **changes: Any) -> "ProvisioningRun":
        return replace(self, state=state, history=self.history + (state,), **changes)


@dataclass
class ProvisioningOutcome:
    """Result of a provisioning or teardown request.

    Attributes:
        workspace_id: Workspace the request was for
        state: Final state of the run
        machine_id: Created machine id (success only)
        error: The step error that ended the run (failure only)
        rollback_error: Error raised while compensating, if any
        history: Every state the run passed through, in order
    """

    workspace_id: str
    state: ProvisioningState
    machine_id: Optional[str] = None
    error: Optional[EngineError] = None
    rollback_error: Optional[EngineError] = None
    history: Tuple[ProvisioningState, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.error is None
