#!/usr/bin/env python

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

# -*- coding: utf-8 -*-

"""
Prepares a sandbox run directory before the generated code starts.

Layout inside the run directory:
    lib/<filePath>      utility modules, rendered with the environment variables map
    site-packages/      declared dependencies, installed with pip --target
"""

import subprocess
from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import Environment, TemplateError

from sandbox_executor.config.config import (
    ENVIRONMENT,
    PIP_INSTALL_TIMEOUT,
    SANDBOX_PYTHON,
)
from shared.errors import SandboxRuntimeError, ValidationError
from shared.logger import setup_logger

logger = setup_logger(__name__)

LIB_DIR = "lib"
SITE_PACKAGES_DIR = "site-packages"


@dataclass(frozen=True)
class Utility:
    file_path: str
    content: str


@dataclass(frozen=True)
class Dependency:
    name: str
    version: Optional[str] = None

    def requirement(self) -> str:
        return f"{self.name}=={self.version}" if self.version else self.name


@dataclass
class RunSetup:
    """Everything that has to exist on disk or in the environment before a run.

    Attributes:
        utilities: Supporting source files, grouped and concatenated by path
        dependencies: Packages to install for this run only
        environment_variables: Values substituted into utility templates
        test_env: Extra child environment, honoured only in development
    """

    utilities: List[Utility] = field(default_factory=list)
    dependencies: List[Dependency] = field(default_factory=list)
    environment_variables: Dict[str, str] = field(default_factory=dict)
    test_env: Dict[str, str] = field(default_factory=dict)


@dataclass
class PreparedRun:
    paths: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)


class RunDirectoryBuilder:
    """Writes utilities, installs dependencies and builds the child environment"""

    def __init__(
        self,
        python: str = SANDBOX_PYTHON,
        pip_timeout: int = PIP_INSTALL_TIMEOUT,
        environment: str = ENVIRONMENT,
        subprocess_module=subprocess,
    ):
        self.python = python
        self.pip_timeout = pip_timeout
        self.environment = environment
        self.subprocess = subprocess_module
        self._templates = Environment(autoescape=False, keep_trailing_newline=True)

    def prepare(self, run_dir: Path, setup: Optional[RunSetup]) -> PreparedRun:
        prepared = PreparedRun(paths=[str(run_dir)])
        if setup is None:
            return prepared

        if setup.utilities:
            self.write_utilities(run_dir, setup.utilities, setup.environment_variables)
            prepared.paths.insert(0, str(run_dir / LIB_DIR))
        if setup.dependencies:
            prepared.paths.insert(0, str(self.install_dependencies(run_dir, setup.dependencies)))
        if setup.test_env and self.environment == "development":
            logger.info(f"[RunDirectory] Injecting {len(setup.test_env)} test environment variables")
            prepared.env.update(setup.test_env)
        return prepared

    def write_utilities(
        self,
        run_dir: Path,
        utilities: List[Utility],
        variables: Optional[Dict[str, str]] = None,
    ) -> List[Path]:
        """
        Render utilities as templates and write them under lib/.

        Utilities that share a file path are concatenated in submission order.

        Returns:
            The written file paths
        """
        lib_root = (run_dir / LIB_DIR).resolve()
        grouped: "OrderedDict[str, List[str]]" = OrderedDict()
        for utility in utilities:
            grouped.setdefault(utility.file_path, []).append(utility.content)

        written = []
        for file_path, contents in grouped.items():
            target = (lib_root / file_path).resolve()
            if target == lib_root or lib_root not in target.parents:
                raise ValidationError(f"Utility path escapes the run directory: {file_path}")
            try:
                rendered = self._templates.from_string("\n".join(contents)).render(
                    **(variables or {})
                )
            except TemplateError as e:
                raise ValidationError(f"Cannot render utility {file_path}: {e}", cause=e) from e
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(rendered, encoding="utf-8")
            logger.info(f"[RunDirectory] Created utility {file_path}")
            written.append(target)
        return written

    def install_dependencies(self, run_dir: Path, dependencies: List[Dependency]) -> Path:
        target = run_dir / SITE_PACKAGES_DIR
        requirements = [dependency.requirement() for dependency in dependencies]
        logger.info(f"[RunDirectory] Installing packages: {', '.join(requirements)}")
        cmd = [
            self.python,
            "-m",
            "pip",
            "install",
            "--disable-pip-version-check",
            "--no-input",
            "--target",
            str(target),
            *requirements,
        ]
        try:
            self.subprocess.run(
                cmd,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.pip_timeout,
            )
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or e.stdout or "").strip()[-2000:]
            raise SandboxRuntimeError(
                f"Dependency installation failed: {detail or e}", cause=e
            ) from e
        except subprocess.TimeoutExpired as e:
            raise SandboxRuntimeError(
                f"Dependency installation exceeded {self.pip_timeout} seconds", cause=e
            ) from e
        logger.info("[RunDirectory] Dependencies installed successfully")
        return target
