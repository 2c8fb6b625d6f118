# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Request and response models for the executor HTTP endpoint."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from sandbox_executor.services.run_directory import Dependency, RunSetup, Utility


class UtilityFile(BaseModel):
    filePath: str = Field(..., min_length=1, examples=["helpers.py"])
    content: str


class DependencySpec(BaseModel):
    name: str = Field(..., min_length=1)
    version: Optional[str] = None


class EnvEntry(BaseModel):
    key: str = Field(..., min_length=1)
    value: str


class ExecuteRequest(BaseModel):
    """Generated function source plus everything needed to run it once."""

    functionName: str = Field(..., min_length=1, examples=["handler"])
    functionArgs: Dict[str, Any] = Field(default_factory=dict)
    code: str
    utilities: List[UtilityFile] = Field(default_factory=list)
    dependencies: List[DependencySpec] = Field(default_factory=list)
    environmentVariablesMap: Dict[str, str] = Field(default_factory=dict)
    testEnv: List[EnvEntry] = Field(default_factory=list)

    def to_run_setup(self) -> RunSetup:
        return RunSetup(
            utilities=[Utility(file_path=u.filePath, content=u.content) for u in self.utilities],
            dependencies=[Dependency(name=d.name, version=d.version) for d in self.dependencies],
            environment_variables=dict(self.environmentVariablesMap),
            test_env={entry.key: entry.value for entry in self.testEnv},
        )


class ScriptRequest(BaseModel):
    script: str
    context: Dict[str, Any] = Field(default_factory=dict)


class ExecuteResponse(BaseModel):
    output: Any = None
    logs: str = ""
