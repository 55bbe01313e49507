"""
Tests for the command-line interface.
"""

import json
from pathlib import Path
from typing import Any, Dict
from unittest.mock import Mock, patch

import aiohttp
import pytest
import yaml
from typer.testing import CliRunner

from chunked_upload.main import cli, main


class _FakeResponse:
    def __init__(self, status: int, payload: Dict[str, Any]):
        self.status = status
        self._payload = payload

    async def json(self) -> Dict[str, Any]:
        return self._payload

    async def __aenter__(self) -> "_FakeResponse":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


class _FakeSession:
    def __init__(self, response: _FakeResponse):
        self._response = response
        self.urls = []

    def get(self, url: str) -> _FakeResponse:
        self.urls.append(url)
        return self._response

    async def __aenter__(self) -> "_FakeSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


class TestCLI:
    """Test cases for CLI commands."""

    @pytest.fixture
    def runner(self) -> CliRunner:
        return CliRunner()

    @pytest.fixture
    def local_config(self, tmp_path: Path) -> Path:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "storage": {"backend": "local", "root_directory": str(tmp_path / "store")},
            "logging": {"console_enabled": False},
        }))
        return path

    def test_cli_help_command(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("upload", "serve", "init-config", "validate-config", "health-check"):
            assert command in result.stdout

    @pytest.mark.parametrize("fmt", ["yaml", "json"])
    def test_init_then_validate_config(self, runner: CliRunner, tmp_path: Path, fmt: str) -> None:
        output = tmp_path / f"config.{fmt}"

        result = runner.invoke(cli, ["init-config", "--output", str(output), "--format", fmt])
        assert result.exit_code == 0
        assert output.exists()

        result = runner.invoke(cli, ["validate-config", str(output)])
        assert result.exit_code == 0
        assert "is valid" in result.stdout
        assert "Storage: local (concatenate)" in result.stdout

    def test_init_config_unsupported_format(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["init-config", "--output", str(tmp_path / "c.ini"), "--format", "ini"])

        assert result.exit_code == 1

    def test_validate_config_missing_file(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["validate-config", str(tmp_path / "absent.yaml")])

        assert result.exit_code == 1

    def test_validate_config_invalid_values(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"storage": {"fan_in": 1}}))

        result = runner.invoke(cli, ["validate-config", str(path)])

        assert result.exit_code == 1

    @patch('chunked_upload.main.setup_logging')
    def test_upload_command(self, mock_setup_logging: Mock, runner: CliRunner,
                            local_config: Path, tmp_path: Path) -> None:
        source = tmp_path / "source.bin"
        source.write_bytes(b"0123456789")

        result = runner.invoke(cli, [
            "upload", str(source), "media/out.bin",
            "--config", str(local_config), "--chunk-size", "4", "--quiet"
        ])

        assert result.exit_code == 0, result.output
        assert "Uploaded 10 bytes to media/out.bin (3 parts" in result.stdout
        assert (tmp_path / "store" / "media" / "out.bin").read_bytes() == b"0123456789"
        assert not (tmp_path / "store" / ".uploads").exists() or \
            not any((tmp_path / "store" / ".uploads").iterdir())

    @patch('chunked_upload.main.setup_logging')
    def test_upload_command_with_progress(self, mock_setup_logging: Mock, runner: CliRunner,
                                          local_config: Path, tmp_path: Path) -> None:
        source = tmp_path / "source.bin"
        source.write_bytes(b"abcdef")

        result = runner.invoke(cli, [
            "upload", str(source), "out.bin", "--config", str(local_config), "--chunk-size", "2"
        ])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "store" / "out.bin").read_bytes() == b"abcdef"

    @patch('chunked_upload.main.setup_logging')
    def test_upload_missing_source(self, mock_setup_logging: Mock, runner: CliRunner,
                                   local_config: Path, tmp_path: Path) -> None:
        result = runner.invoke(cli, [
            "upload", str(tmp_path / "absent.bin"), "out.bin", "--config", str(local_config)
        ])

        assert result.exit_code == 1

    @patch('chunked_upload.main.setup_logging')
    def test_upload_invalid_target(self, mock_setup_logging: Mock, runner: CliRunner,
                                   local_config: Path, tmp_path: Path) -> None:
        source = tmp_path / "source.bin"
        source.write_bytes(b"x")

        result = runner.invoke(cli, [
            "upload", str(source), "../escape.bin", "--config", str(local_config), "--quiet"
        ])

        assert result.exit_code == 1

    @patch('chunked_upload.main.setup_logging')
    @patch('chunked_upload.main.uvicorn.run')
    def test_serve_command(self, mock_uvicorn_run: Mock, mock_setup_logging: Mock,
                           runner: CliRunner, local_config: Path) -> None:
        result = runner.invoke(cli, [
            "serve", "--config", str(local_config), "--host", "0.0.0.0", "--port", "9000", "--debug"
        ])

        assert result.exit_code == 0
        mock_uvicorn_run.assert_called_once()
        kwargs = mock_uvicorn_run.call_args.kwargs
        assert kwargs["host"] == "0.0.0.0"
        assert kwargs["port"] == 9000
        assert kwargs["log_level"] == "debug"
        assert kwargs["access_log"] is True

    @patch('chunked_upload.main.aiohttp.ClientSession')
    def test_health_check_command_success(self, mock_client_session: Mock, runner: CliRunner) -> None:
        session = _FakeSession(_FakeResponse(200, {"status": "healthy"}))
        mock_client_session.return_value = session

        result = runner.invoke(cli, ["health-check", "--port", "9000"])

        assert result.exit_code == 0
        assert "Server is healthy" in result.stdout
        assert session.urls == ["http://localhost:9000/health"]

    @patch('chunked_upload.main.aiohttp.ClientSession')
    def test_health_check_command_unhealthy(self, mock_client_session: Mock, runner: CliRunner) -> None:
        mock_client_session.return_value = _FakeSession(_FakeResponse(200, {"status": "unhealthy"}))

        result = runner.invoke(cli, ["health-check"])

        assert result.exit_code == 1

    @patch('chunked_upload.main.aiohttp.ClientSession')
    def test_health_check_command_failure(self, mock_client_session: Mock, runner: CliRunner) -> None:
        mock_client_session.side_effect = aiohttp.ClientConnectionError("connection refused")

        result = runner.invoke(cli, ["health-check"])

        assert result.exit_code == 1
        assert "Health check failed" in result.stdout

    @patch('chunked_upload.main.cli')
    def test_main_function(self, mock_cli: Mock) -> None:
        main()

        mock_cli.assert_called_once()
