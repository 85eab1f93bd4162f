"""Launching app instances as OS processes.

This module provides:
- ProcessHandle: the capability of owning one running process
- SubprocessHandle: ProcessHandle backed by ``subprocess.Popen``
- build_command / retain_env_vars: command line and environment construction
- InstanceLauncher: starts one instance with its output wired to log files
"""

from __future__ import annotations

import re
import subprocess  # nosec B404
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path

from appdeck.lib.errors import DeployFailureError, InvalidRequestError
from appdeck.lib.logging_config import get_logger
from appdeck.models.config import LocalDeployerProperties
from appdeck.models.deployment import AppDeploymentRequest

logger = get_logger(__name__)

# Deployment property keys interpreted when building the command line
LAUNCHER_OPTS_PROPERTY = "appdeck.deployer.launcher-opts"
MODULE_PROPERTY = "appdeck.deployer.module"

# Environment variable holding the instance ordinal
INSTANCE_INDEX_ENV = "INSTANCE_INDEX"


class ProcessHandle(ABC):
    """A process owned by exactly one app instance."""

    @property
    @abstractmethod
    def pid(self) -> int:
        """OS process id."""

    @abstractmethod
    def exit_code(self) -> int | None:
        """Return the exit code, or None while the process is running.

        Never blocks.
        """

    def is_alive(self) -> bool:
        """Return True while the process has not exited."""
        return self.exit_code() is None

    @abstractmethod
    def kill(self) -> None:
        """Forcefully terminate the process without waiting for it."""


class SubprocessHandle(ProcessHandle):
    """ProcessHandle wrapping a ``subprocess.Popen`` object."""

    def __init__(self, process: subprocess.Popen[bytes]) -> None:
        self._process = process

    @property
    def pid(self) -> int:
        return self._process.pid

    def exit_code(self) -> int | None:
        return self._process.poll()

    def kill(self) -> None:
        if self._process.poll() is not None:
            return
        try:
            self._process.kill()
        except ProcessLookupError:
            # Exited between poll() and kill()
            pass

    def __repr__(self) -> str:
        return f"SubprocessHandle(pid={self.pid})"


def _split_list_property(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def build_command(
    properties: LocalDeployerProperties,
    request: AppDeploymentRequest,
    artifact_path: Path,
) -> list[str]:
    """Build the command line used to start every instance of a request.

    The command is the launcher followed by any ``launcher-opts``, then
    either the artifact path or ``-m <module>``, then the request's command
    line arguments.

    Args:
        properties: Deployer properties providing the launcher command
        request: Deployment request
        artifact_path: Local path of the resolved artifact

    Returns:
        Command as an argument list

    Raises:
        InvalidRequestError: If the module property is blank
    """
    deployment_properties = request.deployment_properties
    command = [properties.launcher_cmd]
    command.extend(
        _split_list_property(deployment_properties.get(LAUNCHER_OPTS_PROPERTY, ""))
    )

    if MODULE_PROPERTY in deployment_properties:
        module = deployment_properties[MODULE_PROPERTY].strip()
        if not module:
            raise InvalidRequestError(f"{MODULE_PROPERTY} must not be blank")
        command.extend(["-m", module])
    else:
        command.append(str(artifact_path))

    command.extend(request.commandline_arguments)
    return command


def retain_env_vars(env: Mapping[str, str], patterns: Iterable[str]) -> dict[str, str]:
    """Return the entries of ``env`` whose names fully match a pattern.

    Args:
        env: Environment to filter, usually ``os.environ``
        patterns: Regular expressions matched against whole variable names

    Returns:
        The retained variables

    Raises:
        InvalidRequestError: If a pattern is not a valid regular expression
    """
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            raise InvalidRequestError(
                f"Invalid environment variable pattern '{pattern}': {e}"
            ) from e
    return {
        name: value
        for name, value in env.items()
        if any(regex.fullmatch(name) for regex in compiled)
    }


def log_file_paths(work_dir: Path, index: int) -> tuple[Path, Path]:
    """Return the stdout and stderr log paths of instance ``index``."""
    return work_dir / f"stdout_{index}.log", work_dir / f"stderr_{index}.log"


class InstanceLauncher:
    """Starts app instances as child processes.

    Each instance writes its standard output and error to
    ``stdout_<n>.log`` and ``stderr_<n>.log`` in its working directory.
    The files are created exclusively, so a second launch of the same
    index into the same directory fails instead of clobbering logs.
    """

    def launch(
        self,
        command: Sequence[str],
        environment: Mapping[str, str],
        work_dir: Path,
        index: int,
    ) -> ProcessHandle:
        """Start one instance.

        Args:
            command: Command line to run
            environment: Complete environment of the process
            work_dir: Working directory of the process
            index: Instance ordinal, exported as ``INSTANCE_INDEX``

        Returns:
            Handle of the started process

        Raises:
            DeployFailureError: If the log files or the process cannot be created
        """
        stdout_path, stderr_path = log_file_paths(work_dir, index)
        env = dict(environment)
        env[INSTANCE_INDEX_ENV] = str(index)

        try:
            with (
                stdout_path.open("xb") as stdout_file,
                stderr_path.open("xb") as stderr_file,
            ):
                process = subprocess.Popen(  # nosec B603
                    list(command),
                    cwd=work_dir,
                    env=env,
                    stdin=subprocess.DEVNULL,
                    stdout=stdout_file,
                    stderr=stderr_file,
                )
        except OSError as e:
            raise DeployFailureError(
                f"Failed to start instance {index}: {e}", instance_index=index
            ) from e

        logger.debug(f"Started instance {index} (pid {process.pid}): {command}")
        return SubprocessHandle(process)
