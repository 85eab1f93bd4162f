"""Pytest configuration and shared fixtures for AppDeck tests."""

from __future__ import annotations

import itertools
import os
import shutil
import tempfile
from collections.abc import Generator, Mapping, Sequence
from pathlib import Path

import pytest

from appdeck.deploy.health import HealthProber
from appdeck.deploy.process import InstanceLauncher, ProcessHandle, log_file_paths
from appdeck.deploy.resources import FileSystemResource
from appdeck.lib.errors import DeployFailureError
from appdeck.models.config import LocalDeployerProperties
from appdeck.models.deployment import (
    AppDefinition,
    AppDeploymentRequest,
    DeploymentState,
)

_pids = itertools.count(40000)


class FakeProcess(ProcessHandle):
    """In-memory process handle controlled by the test."""

    def __init__(self, exit_code: int | None = None) -> None:
        self._pid = next(_pids)
        self._exit_code = exit_code
        self.kill_count = 0

    @property
    def pid(self) -> int:
        return self._pid

    def exit_code(self) -> int | None:
        return self._exit_code

    def exit(self, code: int) -> None:
        self._exit_code = code

    def kill(self) -> None:
        self.kill_count += 1
        if self._exit_code is None:
            self._exit_code = -9

    @property
    def killed(self) -> bool:
        return self.kill_count > 0


class FakeLauncher(InstanceLauncher):
    """Launcher recording launches instead of starting processes.

    Log files are still created so working directory behavior is real.
    """

    def __init__(self, fail_on_index: int | None = None) -> None:
        self.fail_on_index = fail_on_index
        self.launches: list[dict[str, object]] = []
        self.processes: list[FakeProcess] = []

    def launch(
        self,
        command: Sequence[str],
        environment: Mapping[str, str],
        work_dir: Path,
        index: int,
    ) -> ProcessHandle:
        if index == self.fail_on_index:
            raise DeployFailureError(f"boom on {index}", instance_index=index)
        stdout, stderr = log_file_paths(work_dir, index)
        stdout.write_text(f"instance {index} started\n", encoding="utf-8")
        stderr.touch()
        self.launches.append(
            {
                "command": list(command),
                "environment": dict(environment),
                "work_dir": work_dir,
                "index": index,
            }
        )
        process = FakeProcess()
        self.processes.append(process)
        return process


class FakeProber(HealthProber):
    """Prober answering from the fake process state without any network."""

    def __init__(self, reachable: bool = True) -> None:
        super().__init__()
        self.reachable = reachable
        self.shutdowns: list[tuple[int, str, float]] = []

    def probe(self, handle: ProcessHandle, base_url: str) -> DeploymentState:
        exit_code = handle.exit_code()
        if exit_code is not None:
            if exit_code == 0:
                return DeploymentState.UNDEPLOYED
            return DeploymentState.FAILED
        if self.reachable:
            return DeploymentState.DEPLOYED
        return DeploymentState.DEPLOYING

    def shutdown_all(
        self, targets: Sequence[tuple[ProcessHandle, str]], timeout: float
    ) -> list[bool]:
        for handle, base_url in targets:
            self.shutdowns.append((handle.pid, base_url, timeout))
            handle.kill()
        return [False] * len(targets)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test file operations.

    Yields:
        Path to temporary directory

    Cleanup:
        Automatically removes directory after test
    """
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def isolated_env() -> Generator[dict[str, str], None, None]:
    """Provide isolated environment variables for testing.

    Saves current environment and restores after test.

    Yields:
        Dictionary of original environment variables
    """
    original_env = os.environ.copy()
    yield original_env
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def fixture_dir() -> Path:
    """Get path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def artifact(tmp_path: Path) -> Path:
    """A small script usable as a deployable artifact."""
    path = tmp_path / "app.py"
    path.write_text("print('hello')\n", encoding="utf-8")
    return path


@pytest.fixture
def deployer_properties(tmp_path: Path) -> LocalDeployerProperties:
    """Deployer properties rooted in a per-test directory."""
    return LocalDeployerProperties(
        working_directories_root=tmp_path / "work",
        shutdown_timeout=5,
    )


@pytest.fixture
def fake_launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def fake_prober() -> FakeProber:
    return FakeProber()


@pytest.fixture
def make_request(artifact: Path):
    """Factory building deployment requests for the test artifact."""

    def _make(
        name: str = "app",
        properties: dict[str, str] | None = None,
        deployment_properties: dict[str, str] | None = None,
        commandline_arguments: list[str] | None = None,
    ) -> AppDeploymentRequest:
        return AppDeploymentRequest(
            definition=AppDefinition(name=name, properties=properties or {}),
            resource=FileSystemResource(artifact),
            deployment_properties=deployment_properties or {},
            commandline_arguments=commandline_arguments or [],
        )

    return _make


@pytest.fixture
def make_process():
    """Factory for fake process handles."""
    return FakeProcess


@pytest.fixture
def make_launcher():
    """Factory for fake launchers, optionally failing on one index."""
    return FakeLauncher
