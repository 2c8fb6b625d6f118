#!/usr/bin/env python

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

# -*- coding: utf-8 -*-

"""
Compute provider client, a thin adapter over the Fly Machines API and the
docker/fly command line tools.

Every call is a single blocking operation without retries. Failures surface
as InfraError or BuildError so the caller can decide how to compensate.
"""

import subprocess
from typing import Any, Dict, List, Optional

import requests

from fleet_manager.config.config import (
    API_TIMEOUT,
    DOCKER_CLI,
    FLY_API_HOSTNAME,
    FLY_API_TOKEN,
    FLY_CLI,
    FLY_ORG_SLUG,
    FLY_REGISTRY,
    MACHINE_INTERNAL_PORT,
)
from fleet_manager.models.compute import AppHandle, GuestSpec, ImageRef, Machine
from shared.errors import BuildError, InfraError
from shared.logger import setup_logger
from shared.utils.http_client import traced_session

logger = setup_logger(__name__)


class ComputeProviderClient:
    """Typed client over the compute provider's apps, IP, registry and machines APIs"""

    def __init__(
        self,
        api_hostname: str = FLY_API_HOSTNAME,
        api_token: str = FLY_API_TOKEN,
        org_slug: str = FLY_ORG_SLUG,
        registry: str = FLY_REGISTRY,
        timeout: int = API_TIMEOUT,
        session: Optional[requests.Session] = None,
        subprocess_module=subprocess,
    ):
        """
        Initialize the client with dependency injection for better testability

        Args:
            api_hostname: Base URL of the machines API
            api_token: Bearer token for the machines API
            org_slug: Organization new apps are created in
            registry: Image registry host
            timeout: HTTP request timeout in seconds
            session: HTTP session (default: traced requests session)
            subprocess_module: Module for CLI invocations (default: subprocess)
        """
        self.api_hostname = api_hostname.rstrip("/")
        self.org_slug = org_slug
        self.registry = registry
        self.timeout = timeout
        self.subprocess = subprocess_module
        self._session = session or traced_session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {api_token}",
                "Content-Type": "application/json",
            }
        )

    # ------------------------------------------------------------------
    # Apps
    # ------------------------------------------------------------------

    def create_app(self, workspace_id: str) -> AppHandle:
        payload = {
            "app_name": workspace_id,
            "org_slug": self.org_slug,
            "network": f"{workspace_id}-network",
        }
        response = self._request("POST", "/v1/apps", json=payload)
        if response.status_code != 201:
            raise InfraError(
                f"Error creating app {workspace_id}: {self._error_text(response)}"
            )
        data = self._json(response)
        logger.info(f"[ComputeProvider] Created app {workspace_id}")
        return AppHandle(
            app_id=data.get("id", workspace_id),
            name=data.get("name", workspace_id),
            status=data.get("status"),
        )

    def get_app(self, workspace_id: str) -> Optional[AppHandle]:
        """Return the app for ``workspace_id`` or None when it does not exist."""
        response = self._request("GET", f"/v1/apps/{workspace_id}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise InfraError(
                f"Error getting app {workspace_id}: {self._error_text(response)}"
            )
        data = self._json(response)
        organization = data.get("organization") or {}
        return AppHandle(
            app_id=data.get("id", workspace_id),
            name=data.get("name", workspace_id),
            status=data.get("status"),
            organization=organization.get("slug"),
        )

    def delete_app(self, workspace_id: str, force: bool = False) -> None:
        """Delete the app and everything in it. Deleting a missing app succeeds."""
        response = self._request(
            "DELETE",
            f"/v1/apps/{workspace_id}",
            params={"force": str(force).lower()},
        )
        if response.status_code == 404:
            logger.info(f"[ComputeProvider] App {workspace_id} already absent")
            return
        if response.status_code not in (200, 202, 204):
            raise InfraError(
                f"Error deleting app {workspace_id}: {self._error_text(response)}"
            )
        logger.info(f"[ComputeProvider] Deleted app {workspace_id}")

    # ------------------------------------------------------------------
    # IP allocation and secrets (fly CLI)
    # ------------------------------------------------------------------

    def allocate_ip(self, workspace_id: str) -> None:
        self._run_cli(
            [FLY_CLI, "ips", "allocate-v4", "-a", workspace_id, "--yes"],
            InfraError,
            f"Error allocating IP for {workspace_id}",
        )
        logger.info(f"[ComputeProvider] Allocated IPv4 for {workspace_id}")

    def set_secret(self, workspace_id: str, key: str, value: str) -> None:
        """Set one app secret. The value is passed on stdin, never on the command line."""
        self._run_cli(
            [FLY_CLI, "secrets", "import", "-a", workspace_id],
            InfraError,
            f"Error setting secret {key} for {workspace_id}",
            input_text=f"{key}={value}\n",
        )
        logger.info(f"[ComputeProvider] Set secret {key} for {workspace_id}")

    # ------------------------------------------------------------------
    # Image registry (docker CLI)
    # ------------------------------------------------------------------

    def build_and_push_image(
        self, workspace_id: str, source_image: str, tag: str
    ) -> ImageRef:
        image_ref = ImageRef(registry=self.registry, workspace_id=workspace_id, tag=tag)
        self._run_cli(
            [DOCKER_CLI, "tag", f"{source_image}:latest", str(image_ref)],
            BuildError,
            f"Error tagging image {source_image} as {image_ref}",
        )
        self._run_cli(
            [DOCKER_CLI, "push", str(image_ref)],
            BuildError,
            f"Error pushing image {image_ref}",
        )
        logger.info(f"[ComputeProvider] Pushed image {image_ref}")
        return image_ref

    # ------------------------------------------------------------------
    # Machines
    # ------------------------------------------------------------------

    def create_machine(
        self, workspace_id: str, image_ref: str, guest: GuestSpec
    ) -> Machine:
        payload = {
            "config": {
                "image": str(image_ref),
                "guest": guest.to_dict(),
                "services": self._machine_services(),
            }
        }
        response = self._request(
            "POST", f"/v1/apps/{workspace_id}/machines", json=payload
        )
        if response.status_code not in (200, 201):
            raise InfraError(
                f"Error creating machine for {workspace_id}: {self._error_text(response)}"
            )
        data = self._json(response)
        machine_id = data.get("id")
        if not machine_id:
            raise InfraError(
                f"Error creating machine for {workspace_id}: response has no machine id"
            )
        logger.info(f"[ComputeProvider] Created machine {machine_id} in {workspace_id}")
        return Machine(
            machine_id=machine_id,
            image_ref=str(image_ref),
            guest=guest,
            state=data.get("state"),
        )

    def _machine_services(self) -> List[Dict[str, Any]]:
        return [
            {
                "ports": [
                    {"port": 443, "handlers": ["tls", "http"]},
                    {"port": 80, "handlers": ["http"]},
                ],
                "protocol": "tcp",
                "internal_port": MACHINE_INTERNAL_PORT,
            }
        ]

    # ------------------------------------------------------------------
    # Transport helpers
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.api_hostname}{path}"
        logger.debug(f"[ComputeProvider] {method} {url}")
        try:
            return self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise InfraError(f"Request to compute provider failed: {e}", cause=e) from e

    def _run_cli(
        self,
        cmd: List[str],
        error_cls,
        message: str,
        input_text: Optional[str] = None,
    ) -> str:
        # Only argv is logged; stdin may carry secret values
        logger.info(f"[ComputeProvider] Running: {' '.join(cmd)}")
        try:
            result = self.subprocess.run(
                cmd,
                check=True,
                capture_output=True,
                text=True,
                input=input_text,
            )
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or e.stdout or "").strip() or f"exit code {e.returncode}"
            raise error_cls(f"{message}: {detail}", cause=e) from e
        except (OSError, subprocess.SubprocessError) as e:
            raise error_cls(f"{message}: {type(e).__name__}", cause=e) from e
        return (result.stdout or "").strip()

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    @classmethod
    def _error_text(cls, response: requests.Response) -> str:
        error = cls._json(response).get("error")
        if error:
            return str(error)
        return f"unexpected response {response.status_code}"
