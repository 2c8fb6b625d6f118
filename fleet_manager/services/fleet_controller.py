#!/usr/bin/env python

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

# -*- coding: utf-8 -*-

"""
Fleet controller, provisions and tears down per-workspace compute.

A provisioning request is a chain of steps folded over an immutable
ProvisioningRun. The first failing step stops the chain and the run is handed
to rollback_on_failure_from(), which removes whatever the run created. After a
request returns, either every resource of the chain exists or none of the ones
this run created do.
"""

from typing import Callable, List, Optional, Union

from fleet_manager.clients.compute_provider_client import ComputeProviderClient
from fleet_manager.common.workspace_locks import WorkspaceLockRegistry
from fleet_manager.config.config import (
    APPLICATION_IMAGE_TAG,
    APPLICATION_MACHINE_CPUS,
    APPLICATION_MACHINE_MEMORY_MB,
    APPLICATION_SOURCE_IMAGE,
    EXECUTOR_IMAGE_TAG,
    EXECUTOR_MACHINE_CPUS,
    EXECUTOR_MACHINE_MEMORY_MB,
    EXECUTOR_SOURCE_IMAGE,
    MACHINE_CPU_KIND,
)
from fleet_manager.models.compute import (
    GuestSpec,
    ProvisioningOutcome,
    ProvisioningRun,
    ProvisioningState,
)
from shared.errors import EngineError, InfraError
from shared.logger import setup_logger

logger = setup_logger(__name__)

StepResult = Union[ProvisioningRun, EngineError]
Step = Callable[[ProvisioningRun], ProvisioningRun]

EXECUTOR_GUEST = GuestSpec(
    cpus=EXECUTOR_MACHINE_CPUS,
    memory_mb=EXECUTOR_MACHINE_MEMORY_MB,
    cpu_kind=MACHINE_CPU_KIND,
)
APPLICATION_GUEST = GuestSpec(
    cpus=APPLICATION_MACHINE_CPUS,
    memory_mb=APPLICATION_MACHINE_MEMORY_MB,
    cpu_kind=MACHINE_CPU_KIND,
)


class FleetController:
    """Drives the provisioning and teardown state machine for each workspace"""

    def __init__(
        self,
        client: Optional[ComputeProviderClient] = None,
        locks: Optional[WorkspaceLockRegistry] = None,
        executor_source_image: str = EXECUTOR_SOURCE_IMAGE,
        application_source_image: str = APPLICATION_SOURCE_IMAGE,
        executor_guest: GuestSpec = EXECUTOR_GUEST,
        application_guest: GuestSpec = APPLICATION_GUEST,
    ):
        self.client = client or ComputeProviderClient()
        self.locks = locks or WorkspaceLockRegistry()
        self.executor_source_image = executor_source_image
        self.application_source_image = application_source_image
        self.executor_guest = executor_guest
        self.application_guest = application_guest

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def create_workspace_compute(self, workspace_id: str) -> ProvisioningOutcome:
        """
        Create the workspace app and its sandbox-hosting executor machine.

        start -> app_created -> ip_allocated -> image_built -> machine_created
        """
        steps = [
            self._create_app,
            self._allocate_ip,
            self._build_image(self.executor_source_image, EXECUTOR_IMAGE_TAG),
            self._create_machine(self.executor_guest),
        ]
        with self.locks.hold(workspace_id):
            logger.info(f"[FleetController] Provisioning executor compute for {workspace_id}")
            return self._execute(ProvisioningRun(workspace_id=workspace_id), steps)

    def create_application_machine(self, workspace_id: str) -> ProvisioningOutcome:
        """
        Deploy the workspace's application image into its existing app.

        The app must already exist. It predates this run, so a failure here
        only undoes what this run created and never deletes the app.
        """
        steps = [
            self._require_app,
            self._build_image(self.application_source_image, APPLICATION_IMAGE_TAG),
            self._create_machine(self.application_guest),
        ]
        with self.locks.hold(workspace_id):
            logger.info(f"[FleetController] Provisioning application machine for {workspace_id}")
            return self._execute(ProvisioningRun(workspace_id=workspace_id), steps)

    def delete_workspace_compute(self, workspace_id: str) -> ProvisioningOutcome:
        """Delete the workspace app. A workspace without an app is already torn down."""
        with self.locks.hold(workspace_id):
            logger.info(f"[FleetController] Deleting compute for {workspace_id}")
            try:
                self.client.delete_app(workspace_id)
            except EngineError as e:
                logger.error(f"[FleetController] Failed to delete {workspace_id}: {e.message}")
                return ProvisioningOutcome(
                    workspace_id=workspace_id,
                    state=ProvisioningState.START,
                    error=e,
                )
            return ProvisioningOutcome(
                workspace_id=workspace_id,
                state=ProvisioningState.TORN_DOWN,
                history=(ProvisioningState.TORN_DOWN,),
            )

    def workspace_exists(self, workspace_id: str) -> bool:
        return self.client.get_app(workspace_id) is not None

    def rollback_on_failure_from(
        self, run: ProvisioningRun, error: EngineError
    ) -> ProvisioningOutcome:
        """
        Compensate a failed run and report the failure.

        Args:
            run: The last successful state of the run
            error: The error of the step that failed

        Returns:
            ProvisioningOutcome ending in TORN_DOWN, or ROLLBACK_FAILED when the
            app could not be removed
        """
        logger.warning(
            f"[FleetController] {run.workspace_id} failed after {run.state.value}: {error.message}"
        )
        run = run.advance(ProvisioningState.ROLLBACK)
        rollback_error = None
        final_state = ProvisioningState.TORN_DOWN

        if run.owns_app:
            try:
                self.client.delete_app(run.workspace_id)
                logger.info(f"[FleetController] Rolled back app {run.workspace_id}")
            except EngineError as e:
                logger.error(
                    f"[FleetController] Rollback of {run.workspace_id} failed: {e.message}"
                )
                rollback_error = e
                final_state = ProvisioningState.ROLLBACK_FAILED

        run = run.advance(final_state)
        return ProvisioningOutcome(
            workspace_id=run.workspace_id,
            state=run.state,
            error=error,
            rollback_error=rollback_error,
            history=run.history,
        )

    # ------------------------------------------------------------------
    # Chain execution
    # ------------------------------------------------------------------

    def _execute(self, run: ProvisioningRun, steps: List[Step]) -> ProvisioningOutcome:
        for step in steps:
            result = self._apply(step, run)
            if isinstance(result, EngineError):
                return self.rollback_on_failure_from(run, result)
            run = result

        machine_id = run.machine.machine_id if run.machine else None
        logger.info(f"[FleetController] {run.workspace_id} ready, machine {machine_id}")
        return ProvisioningOutcome(
            workspace_id=run.workspace_id,
            state=run.state,
            machine_id=machine_id,
            history=run.history,
        )

    @staticmethod
    def _apply(step: Step, run: ProvisioningRun) -> StepResult:
        try:
            return step(run)
        except EngineError as e:
            return e
        except Exception as e:
            logger.exception(f"[FleetController] Unexpected error provisioning {run.workspace_id}")
            return InfraError(f"Unexpected provisioning error: {e}", cause=e)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _create_app(self, run: ProvisioningRun) -> ProvisioningRun:
        self.client.create_app(run.workspace_id)
        return run.advance(ProvisioningState.APP_CREATED, owns_app=True)

    def _require_app(self, run: ProvisioningRun) -> ProvisioningRun:
        if self.client.get_app(run.workspace_id) is None:
            raise InfraError(f"Workspace {run.workspace_id} has no compute app")
        return run

    def _allocate_ip(self, run: ProvisioningRun) -> ProvisioningRun:
        self.client.allocate_ip(run.workspace_id)
        return run.advance(ProvisioningState.IP_ALLOCATED)

    def _build_image(self, source_image: str, tag: str) -> Step:
        def step(run: ProvisioningRun) -> ProvisioningRun:
            image_ref = self.client.build_and_push_image(run.workspace_id, source_image, tag)
            return run.advance(ProvisioningState.IMAGE_BUILT, image_ref=image_ref)

        return step

    def _create_machine(self, guest: GuestSpec) -> Step:
        def step(run: ProvisioningRun) -> ProvisioningRun:
            machine = self.client.create_machine(run.workspace_id, str(run.image_ref), guest)
            return run.advance(ProvisioningState.MACHINE_CREATED, machine=machine)

        return step
