# SPDX-FileCopyrightText: 2025 WeCode, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Pydantic schemas for the fleet REST API."""

from typing import List, Optional

from pydantic import BaseModel, Field


class WorkspaceRequest(BaseModel):
    """Request body naming the workspace to act on."""

    workspaceId: str = Field(
        ...,
        min_length=1,
        description="Workspace identifier, also used as app name and image repository",
        examples=["ws1"],
    )


class CreateWorkspaceResponse(BaseModel):
    executorMachineId: str


class CreateMachineResponse(BaseModel):
    machineId: str


class WorkspaceStatusResponse(BaseModel):
    workspaceId: str
    exists: bool


class ErrorDetail(BaseModel):
    code: str
    message: str


class MessageResponse(BaseModel):
    """Operator-facing message, with the underlying error on failures."""

    message: str
    error: Optional[ErrorDetail] = None
    rollbackError: Optional[ErrorDetail] = None
    states: Optional[List[str]] = None
