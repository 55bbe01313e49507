"""
Tests for ApplicationStartup.

This module tests uploader construction from configuration and the
component startup and shutdown sequence.
"""

from typing import Any, Dict, List
from unittest.mock import AsyncMock, patch

import pytest

from chunked_upload.application.startup import ApplicationStartup, create_uploader
from chunked_upload.core.domain.errors import ValidationError
from chunked_upload.core.interfaces.lifecycle import IComponent
from chunked_upload.core.interfaces.storage import MergeMode
from chunked_upload.infrastructure.config.models import ApplicationConfig, StorageConfig, UploadConfig
from chunked_upload.infrastructure.storage.local import LocalStorageBackend
from chunked_upload.infrastructure.storage.memory import MemoryStorageBackend


class MockComponent(IComponent):
    """Mock component for testing startup/shutdown."""

    def __init__(self, name: str, events: List[str]):
        self._name = name
        self._events = events
        self.should_fail_start = False
        self.should_fail_stop = False
        self.healthy = True

    @property
    def name(self) -> str:
        return self._name

    async def start(self) -> None:
        if self.should_fail_start:
            raise RuntimeError(f"Mock start failure for {self._name}")
        self._events.append(f"start:{self._name}")

    async def stop(self) -> None:
        self._events.append(f"stop:{self._name}")
        if self.should_fail_stop:
            raise RuntimeError(f"Mock stop failure for {self._name}")

    async def check_health(self) -> Dict[str, Any]:
        return {"healthy": self.healthy, "status": "running", "details": {}}


@pytest.fixture
def memory_config() -> ApplicationConfig:
    return ApplicationConfig(storage=StorageConfig(backend="memory"))


class TestCreateUploader:
    """Test uploader construction."""

    def test_memory_backend(self, memory_config: ApplicationConfig) -> None:
        uploader = create_uploader(memory_config)

        assert isinstance(uploader.backend, MemoryStorageBackend)
        assert uploader.strategy.name == "concatenate"

    def test_local_backend(self, tmp_path) -> None:
        config = ApplicationConfig(storage=StorageConfig(root_directory=str(tmp_path / "store")))

        uploader = create_uploader(config)

        assert isinstance(uploader.backend, LocalStorageBackend)
        assert (tmp_path / "store").is_dir()

    def test_explicit_backend_and_upload_settings(self) -> None:
        backend = MemoryStorageBackend(MergeMode.COMPOSE, fan_in=8)
        config = ApplicationConfig(
            storage=StorageConfig(backend="memory", fan_in=4),
            upload=UploadConfig(max_part_number=10),
        )

        uploader = create_uploader(config, backend)

        assert uploader.backend is backend
        assert uploader.strategy.name == "compose"

    async def test_max_part_number_applies(self) -> None:
        config = ApplicationConfig(
            storage=StorageConfig(backend="memory"),
            upload=UploadConfig(max_part_number=2),
        )
        uploader = create_uploader(config)
        session = await uploader.initiate_upload("a.bin")

        with pytest.raises(ValidationError):
            await uploader.upload_part(session.upload_id, 3, b"x")


@patch('chunked_upload.infrastructure.logging.setup.setup_logging', return_value=[])
class TestApplicationStartup:
    """Test the startup and shutdown sequence."""

    async def test_start_and_stop(self, mock_setup, memory_config: ApplicationConfig) -> None:
        startup = ApplicationStartup(memory_config)

        await startup.start_application()
        health = await startup.check_health()

        assert startup.is_running
        assert health["healthy"] is True
        assert set(health["components"]) == {"LoggingManager", startup.uploader.name}
        mock_setup.assert_called_once_with(memory_config.logging)

        await startup.stop_application()

        assert not startup.is_running
        assert (await startup.check_health())["healthy"] is False

    async def test_components_start_in_order_and_stop_in_reverse(
            self, mock_setup, memory_config: ApplicationConfig) -> None:
        events: List[str] = []
        startup = ApplicationStartup(memory_config)
        startup._components = [MockComponent("first", events), MockComponent("second", events)]

        await startup.start_application()
        await startup.stop_application()

        assert events == ["start:first", "start:second", "stop:second", "stop:first"]

    async def test_failed_start_stops_started_components(
            self, mock_setup, memory_config: ApplicationConfig) -> None:
        events: List[str] = []
        failing = MockComponent("second", events)
        failing.should_fail_start = True
        startup = ApplicationStartup(memory_config)
        startup._components = [MockComponent("first", events), failing, MockComponent("third", events)]

        with pytest.raises(RuntimeError, match="Mock start failure"):
            await startup.start_application()

        assert events == ["start:first", "stop:first"]
        assert not startup.is_running

    async def test_uploader_start_failure_rolls_back(
            self, mock_setup, memory_config: ApplicationConfig) -> None:
        startup = ApplicationStartup(memory_config)
        startup.uploader.start = AsyncMock(side_effect=OSError("backend unavailable"))

        with pytest.raises(OSError):
            await startup.start_application()

        assert not startup.is_running

    async def test_stop_continues_after_error(self, mock_setup, memory_config: ApplicationConfig) -> None:
        events: List[str] = []
        failing = MockComponent("second", events)
        failing.should_fail_stop = True
        startup = ApplicationStartup(memory_config)
        startup._components = [MockComponent("first", events), failing]

        await startup.start_application()
        await startup.stop_application()

        assert events[-2:] == ["stop:second", "stop:first"]
        assert not startup.is_running

    async def test_health_aggregates_components(self, mock_setup, memory_config: ApplicationConfig) -> None:
        events: List[str] = []
        sick = MockComponent("sick", events)
        sick.healthy = False
        startup = ApplicationStartup(memory_config)
        startup._components = [MockComponent("fine", events), sick]

        health = await startup.check_health()

        assert health["healthy"] is False
        assert health["components"]["fine"]["healthy"] is True
