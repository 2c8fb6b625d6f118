#!/usr/bin/env python

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

# -*- coding: utf-8 -*-

"""
API routes module, defines the fleet FastAPI routes
"""

from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from fleet_manager.models.compute import ProvisioningOutcome
from fleet_manager.schemas.workspace import (
    CreateMachineResponse,
    CreateWorkspaceResponse,
    MessageResponse,
    WorkspaceRequest,
    WorkspaceStatusResponse,
)
from fleet_manager.services.fleet_controller import FleetController
from shared.errors import EngineError
from shared.logger import setup_logger
from shared.request_logging import install_request_logging

logger = setup_logger(__name__)

app = FastAPI(
    title="Fleet Manager API",
    description="API for provisioning and tearing down per-workspace compute",
)
install_request_logging(app, logger)

_controller: Optional[FleetController] = None


def get_fleet_controller() -> FleetController:
    """Return the process-wide controller, created on first use."""
    global _controller
    if _controller is None:
        _controller = FleetController()
    return _controller


class UnsupportedMediaType(Exception):
    pass


async def require_json(request: Request) -> None:
    content_type = request.headers.get("content-type", "")
    if not content_type.split(";")[0].strip().lower() == "application/json":
        raise UnsupportedMediaType()


@app.exception_handler(UnsupportedMediaType)
async def unsupported_media_type_handler(request: Request, exc: UnsupportedMediaType):
    return JSONResponse(
        status_code=415,
        content={"message": "Content-Type must be application/json"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Invalid request body for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"message": "Invalid request body"})


def _error_detail(error: Optional[EngineError]):
    return error.to_dict() if error else None


def _failure_response(message: str, outcome: ProvisioningOutcome) -> JSONResponse:
    body = MessageResponse(
        message=f"{message}: {outcome.error.message}",
        error=_error_detail(outcome.error),
        rollbackError=_error_detail(outcome.rollback_error),
        states=[state.value for state in outcome.history] or None,
    )
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


@app.post(
    "/workspaces",
    status_code=201,
    response_model=CreateWorkspaceResponse,
    dependencies=[Depends(require_json)],
)
def create_workspace(
    request: WorkspaceRequest,
    controller: FleetController = Depends(get_fleet_controller),
):
    """
    Provision the app, IP, executor image and executor machine for a workspace.

    On failure everything this request created has been rolled back.
    """
    outcome = controller.create_workspace_compute(request.workspaceId)
    if not outcome.ok:
        return _failure_response("Failed to create workspace compute", outcome)
    return CreateWorkspaceResponse(executorMachineId=outcome.machine_id)


@app.delete(
    "/workspaces",
    response_model=MessageResponse,
    dependencies=[Depends(require_json)],
)
def delete_workspace(
    request: WorkspaceRequest,
    controller: FleetController = Depends(get_fleet_controller),
):
    return _delete(request.workspaceId, controller)


@app.delete("/workspaces/{workspace_id}", response_model=MessageResponse)
def delete_workspace_by_id(
    workspace_id: str,
    controller: FleetController = Depends(get_fleet_controller),
):
    return _delete(workspace_id, controller)


def _delete(workspace_id: str, controller: FleetController):
    outcome = controller.delete_workspace_compute(workspace_id)
    if not outcome.ok:
        return _failure_response("Failed to delete workspace", outcome)
    return MessageResponse(message="Workspace deleted")


@app.get("/workspaces/{workspace_id}", response_model=WorkspaceStatusResponse)
def get_workspace(
    workspace_id: str,
    controller: FleetController = Depends(get_fleet_controller),
):
    try:
        exists = controller.workspace_exists(workspace_id)
    except EngineError as e:
        logger.error(f"Error checking workspace {workspace_id}: {e.message}")
        return JSONResponse(
            status_code=500,
            content={"message": f"Failed to check workspace: {e.message}", "error": e.to_dict()},
        )
    return WorkspaceStatusResponse(workspaceId=workspace_id, exists=exists)


@app.post(
    "/machines",
    status_code=201,
    response_model=CreateMachineResponse,
    dependencies=[Depends(require_json)],
)
def create_machine(
    request: WorkspaceRequest,
    controller: FleetController = Depends(get_fleet_controller),
):
    """Deploy the workspace's application image as a new machine in its app."""
    outcome = controller.create_application_machine(request.workspaceId)
    if not outcome.ok:
        return _failure_response("Failed to create machine", outcome)
    return CreateMachineResponse(machineId=outcome.machine_id)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
