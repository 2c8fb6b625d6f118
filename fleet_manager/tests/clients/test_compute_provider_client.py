# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

import logging
import subprocess
from unittest.mock import MagicMock

import pytest
import requests

from fleet_manager.clients import compute_provider_client
from fleet_manager.clients.compute_provider_client import ComputeProviderClient
from fleet_manager.models.compute import GuestSpec, ImageRef
from shared.errors import BuildError, InfraError


def _response(status_code, payload=None):
    response = MagicMock()
    response.status_code = status_code
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


class TestComputeProviderClient:
    """Test cases for ComputeProviderClient"""

    @pytest.fixture
    def mock_session(self):
        session = MagicMock()
        session.headers = {}
        return session

    @pytest.fixture
    def client(self, mock_session, mock_subprocess):
        return ComputeProviderClient(
            api_hostname="https://api.test/",
            api_token="secret-token",
            org_slug="acme",
            registry="registry.fly.io",
            timeout=5,
            session=mock_session,
            subprocess_module=mock_subprocess,
        )

    def test_session_headers(self, client, mock_session):
        """Test bearer auth and JSON content type are set on the session"""
        assert mock_session.headers["Authorization"] == "Bearer secret-token"
        assert mock_session.headers["Content-Type"] == "application/json"

    def test_create_app_success(self, client, mock_session):
        """Test app creation posts name, org and private network"""
        mock_session.request.return_value = _response(201, {"id": "app-1", "name": "ws1"})

        handle = client.create_app("ws1")

        assert handle.app_id == "app-1"
        assert handle.name == "ws1"
        mock_session.request.assert_called_once_with(
            "POST",
            "https://api.test/v1/apps",
            timeout=5,
            json={"app_name": "ws1", "org_slug": "acme", "network": "ws1-network"},
        )

    def test_create_app_failure_uses_provider_error(self, client, mock_session):
        """Test non-201 responses raise InfraError carrying the provider message"""
        mock_session.request.return_value = _response(422, {"error": "app name taken"})

        with pytest.raises(InfraError, match="app name taken"):
            client.create_app("ws1")

    def test_create_app_transport_failure(self, client, mock_session):
        """Test connection errors are wrapped in InfraError"""
        mock_session.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(InfraError, match="Request to compute provider failed") as exc_info:
            client.create_app("ws1")
        assert isinstance(exc_info.value.cause, requests.ConnectionError)

    def test_get_app_found(self, client, mock_session):
        """Test existing app is returned with its organization"""
        mock_session.request.return_value = _response(
            200,
            {"id": "app-1", "name": "ws1", "status": "deployed", "organization": {"slug": "acme"}},
        )

        handle = client.get_app("ws1")

        assert handle.status == "deployed"
        assert handle.organization == "acme"

    def test_get_app_missing(self, client, mock_session):
        """Test 404 means the app does not exist"""
        mock_session.request.return_value = _response(404, {"error": "not found"})
        assert client.get_app("ws1") is None

    def test_get_app_error(self, client, mock_session):
        mock_session.request.return_value = _response(500)
        with pytest.raises(InfraError, match="unexpected response 500"):
            client.get_app("ws1")

    def test_delete_app_success(self, client, mock_session):
        """Test delete sends force=false by default"""
        mock_session.request.return_value = _response(202)

        client.delete_app("ws1")

        mock_session.request.assert_called_once_with(
            "DELETE",
            "https://api.test/v1/apps/ws1",
            timeout=5,
            params={"force": "false"},
        )

    def test_delete_app_missing_is_success(self, client, mock_session):
        """Test deleting an absent app is not an error"""
        mock_session.request.return_value = _response(404)
        client.delete_app("ws1")

    def test_delete_app_failure(self, client, mock_session):
        mock_session.request.return_value = _response(500, {"error": "boom"})
        with pytest.raises(InfraError, match="boom"):
            client.delete_app("ws1", force=True)
        assert mock_session.request.call_args.kwargs["params"] == {"force": "true"}

    def test_allocate_ip(self, client, mock_subprocess):
        """Test IP allocation runs the fly CLI"""
        mock_subprocess.run.return_value = MagicMock(stdout="ok")

        client.allocate_ip("ws1")

        cmd = mock_subprocess.run.call_args.args[0]
        assert cmd[1:] == ["ips", "allocate-v4", "-a", "ws1", "--yes"]

    def test_allocate_ip_failure(self, client, mock_subprocess):
        """Test CLI failure raises InfraError with stderr"""
        mock_subprocess.run.side_effect = subprocess.CalledProcessError(
            1, "fly", stderr="no capacity"
        )
        with pytest.raises(InfraError, match="no capacity"):
            client.allocate_ip("ws1")

    def test_set_secret(self, client, mock_subprocess):
        """Test the secret pair is passed on stdin, not as an argument"""
        mock_subprocess.run.return_value = MagicMock(stdout="")

        client.set_secret("ws1", "API_KEY", "abc")

        cmd = mock_subprocess.run.call_args.args[0]
        assert cmd[1:] == ["secrets", "import", "-a", "ws1"]
        assert mock_subprocess.run.call_args.kwargs["input"] == "API_KEY=abc\n"

    def test_set_secret_value_not_leaked(self, client, mock_subprocess, caplog):
        """Test a failing secret update keeps the value out of logs and errors"""
        provider_logger = logging.getLogger(compute_provider_client.__name__)
        provider_logger.addHandler(caplog.handler)
        mock_subprocess.run.side_effect = subprocess.CalledProcessError(
            1, ["fly", "secrets", "import", "-a", "ws1"]
        )
        try:
            with caplog.at_level(logging.DEBUG, logger=compute_provider_client.__name__):
                with pytest.raises(InfraError) as exc_info:
                    client.set_secret("ws1", "DB_PASSWORD", "hunter2")
        finally:
            provider_logger.removeHandler(caplog.handler)

        assert "Running: fly secrets import -a ws1" in caplog.text
        assert "hunter2" not in caplog.text
        assert "hunter2" not in exc_info.value.message
        assert "exit code 1" in exc_info.value.message

    def test_cli_missing_error_has_no_argv(self, client, mock_subprocess):
        mock_subprocess.run.side_effect = FileNotFoundError(2, "No such file", "fly")
        with pytest.raises(InfraError) as exc_info:
            client.set_secret("ws1", "DB_PASSWORD", "hunter2")
        assert exc_info.value.message.endswith("FileNotFoundError")

    def test_build_and_push_image(self, client, mock_subprocess):
        """Test the source image is tagged into the workspace repository and pushed"""
        mock_subprocess.run.return_value = MagicMock(stdout="")

        image_ref = client.build_and_push_image("ws1", "org/executor", "executor")

        assert image_ref == ImageRef(registry="registry.fly.io", workspace_id="ws1", tag="executor")
        commands = [c.args[0] for c in mock_subprocess.run.call_args_list]
        assert commands[0][1:] == ["tag", "org/executor:latest", "registry.fly.io/ws1:executor"]
        assert commands[1][1:] == ["push", "registry.fly.io/ws1:executor"]

    def test_build_and_push_image_push_failure(self, client, mock_subprocess):
        """Test push failure raises BuildError"""
        mock_subprocess.run.side_effect = [
            MagicMock(stdout=""),
            subprocess.CalledProcessError(1, "docker", stderr="denied"),
        ]
        with pytest.raises(BuildError, match="denied"):
            client.build_and_push_image("ws1", "org/executor", "executor")

    def test_build_and_push_image_missing_docker(self, client, mock_subprocess):
        mock_subprocess.run.side_effect = FileNotFoundError("docker")
        with pytest.raises(BuildError):
            client.build_and_push_image("ws1", "org/executor", "executor")

    def test_create_machine(self, client, mock_session):
        """Test machine config carries image, guest and public services"""
        mock_session.request.return_value = _response(200, {"id": "m-1", "state": "created"})
        guest = GuestSpec(cpus=1, memory_mb=1024)

        machine = client.create_machine("ws1", "registry.fly.io/ws1:executor", guest)

        assert machine.machine_id == "m-1"
        assert machine.state == "created"
        config = mock_session.request.call_args.kwargs["json"]["config"]
        assert config["image"] == "registry.fly.io/ws1:executor"
        assert config["guest"] == {"cpu_kind": "shared", "cpus": 1, "memory_mb": 1024}
        ports = config["services"][0]["ports"]
        assert {"port": 443, "handlers": ["tls", "http"]} in ports
        assert config["services"][0]["internal_port"] == 3000

    def test_create_machine_without_id(self, client, mock_session):
        mock_session.request.return_value = _response(200, {"state": "created"})
        with pytest.raises(InfraError, match="no machine id"):
            client.create_machine("ws1", "registry.fly.io/ws1:executor", GuestSpec())

    def test_create_machine_failure(self, client, mock_session):
        mock_session.request.return_value = _response(400, {"error": "invalid image"})
        with pytest.raises(InfraError, match="invalid image"):
            client.create_machine("ws1", "registry.fly.io/ws1:executor", GuestSpec())
