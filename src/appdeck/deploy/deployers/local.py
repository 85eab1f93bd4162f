"""Deployer that runs apps as processes on the local host.

Every deployment is a set of instances, each one a child process with its
own port and log files. Working directories are laid out as::

    <working_directories_root>/appdeck-XXXX/<group deployment id>/<deployment id>/
        stdout_<n>.log
        stderr_<n>.log

Deployment state lives in memory only. Processes started by a deployer
that is discarded without :meth:`LocalAppDeployer.shutdown` keep running
unmanaged.
"""

from __future__ import annotations

import os
import platform
import shutil
import tempfile
import threading
import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path

from appdeck.config.defaults import DEFAULT_GROUP, WORKING_DIRECTORY_PREFIX
from appdeck.deploy.deployers.base import (
    GROUP_DEPLOYMENT_ID,
    GROUP_PROPERTY,
    BaseDeployer,
    deployment_id_for,
    instance_count,
    is_indexed,
)
from appdeck.deploy.health import HealthProber
from appdeck.deploy.ports import SERVER_PORT_PROPERTY, PortAllocator
from appdeck.deploy.process import (
    INSTANCE_INDEX_ENV,
    InstanceLauncher,
    ProcessHandle,
    build_command,
    log_file_paths,
    retain_env_vars,
)
from appdeck.deploy.registry import DeploymentRegistry
from appdeck.lib.errors import (
    DeployFailureError,
    DeployIOError,
    InvalidRequestError,
    NotDeployedError,
)
from appdeck.lib.logging_config import get_logger
from appdeck.models.config import LocalDeployerProperties
from appdeck.models.deployment import (
    AppDeploymentRequest,
    AppInstanceStatus,
    AppStatus,
    RuntimeEnvironmentInfo,
)

logger = get_logger(__name__)

ENV_VARS_TO_INHERIT_PROPERTY = "appdeck.deployer.env-vars-to-inherit"

# Properties derived for every instance
MANAGEMENT_NAMESPACE_KEY = "management.namespace"
SHUTDOWN_ENABLED_KEY = "endpoints.shutdown.enabled"
UNIQUE_NAMES_KEY = "endpoints.management.unique-names"
APPLICATION_INDEX_KEY = "appdeck.application.index"


@dataclass(frozen=True)
class AppInstance:
    """One launched process of a deployment.

    Attributes:
        deployment_id: Owning deployment
        index: Ordinal within the deployment
        process: Handle of the running process
        work_dir: Working directory of the process
        stdout: Standard output log file
        stderr: Standard error log file
        port: Port the instance was told to listen on
        base_url: URL used for health probes and shutdown
    """

    deployment_id: str
    index: int
    process: ProcessHandle
    work_dir: Path
    stdout: Path
    stderr: Path
    port: int
    base_url: str

    @property
    def id(self) -> str:
        return f"{self.deployment_id}-{self.index}"

    def attributes(self) -> dict[str, str]:
        """Runtime details reported in instance statuses."""
        return {
            "working.dir": str(self.work_dir),
            "stdout": str(self.stdout),
            "stderr": str(self.stderr),
            "url": self.base_url,
            "port": str(self.port),
            "pid": str(self.process.pid),
        }


class LocalAppDeployer(BaseDeployer):
    """Deploys apps as local child processes.

    Collaborators can be injected, which tests use to replace process
    creation and HTTP probing with fakes.

    Example:
        >>> with LocalAppDeployer() as deployer:
        ...     deployment_id = deployer.deploy(request)
        ...     deployer.status(deployment_id).state
    """

    def __init__(
        self,
        properties: LocalDeployerProperties | None = None,
        registry: DeploymentRegistry[AppInstance] | None = None,
        launcher: InstanceLauncher | None = None,
        prober: HealthProber | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the deployer.

        Args:
            properties: Deployer configuration (defaults when omitted)
            registry: Store of running deployments
            launcher: Starts instance processes
            prober: Probes instance health and performs shutdowns
            environ: Environment inherited by apps (``os.environ`` by default)
        """
        self.properties = properties or LocalDeployerProperties()
        self._registry: DeploymentRegistry[AppInstance] = (
            registry if registry is not None else DeploymentRegistry()
        )
        self._launcher = launcher or InstanceLauncher()
        self._prober = prober or HealthProber(
            probe_timeout=self.properties.health_check_timeout
        )
        self._environ = environ
        self._root_lock = threading.Lock()
        self._log_path_root: Path | None = None

    @property
    def log_path_root(self) -> Path | None:
        """Directory holding all working directories, once created."""
        return self._log_path_root

    def deploy(self, request: AppDeploymentRequest) -> str:
        """Deploy an app as one or more local processes.

        Instances are launched one after another and the deployment only
        becomes visible to :meth:`status` once all of them have started.
        If any launch fails, the instances already started by this call are
        killed before the error is raised.
        """
        if request is None:
            raise InvalidRequestError("request must not be None")

        deployment_id = deployment_id_for(request)
        self._registry.reserve(deployment_id)
        published = False
        try:
            count = instance_count(request.deployment_properties)
            instances = self._launch_instances(deployment_id, request, count)
            self._registry.publish(deployment_id, instances)
            published = True
        finally:
            if not published:
                self._registry.release(deployment_id)

        logger.info(f"Deployed {deployment_id} with {count} instance(s)")
        return deployment_id

    def undeploy(self, deployment_id: str) -> None:
        """Stop all instances of a deployment and forget it.

        Live instances are shut down gracefully within one shared
        shutdown timeout, then killed. The deployment is removed even if
        an instance could not be confirmed stopped.
        """
        instances = self._registry.get(deployment_id)
        if instances is None:
            raise NotDeployedError(deployment_id)

        logger.info(f"Undeploying {deployment_id}")
        try:
            live = [
                (instance.process, instance.base_url)
                for instance in instances
                if instance.process.is_alive()
            ]
            self._prober.shutdown_all(live, self.properties.shutdown_timeout)
        finally:
            for instance in instances:
                if instance.process.is_alive():
                    instance.process.kill()
            self._registry.remove(deployment_id)

    def status(self, deployment_id: str) -> AppStatus:
        instances = self._registry.get(deployment_id)
        if instances is None:
            return AppStatus(deployment_id=deployment_id)

        return AppStatus(
            deployment_id=deployment_id,
            instances=[
                AppInstanceStatus(
                    id=instance.id,
                    index=instance.index,
                    state=self._prober.probe(instance.process, instance.base_url),
                    attributes=instance.attributes(),
                )
                for instance in instances
            ],
        )

    def environment_info(self) -> RuntimeEnvironmentInfo:
        from appdeck import __version__

        return RuntimeEnvironmentInfo(
            implementation_name=type(self).__name__,
            implementation_version=__version__,
            platform_type="Local",
            platform_api_version=platform.system(),
            platform_client_version=platform.release(),
            platform_host_version=platform.version(),
            python_version=platform.python_version(),
            platform_specific_info={
                "launcher_cmd": self.properties.launcher_cmd,
                "working_directories_root": str(
                    self.properties.working_directories_root
                ),
            },
        )

    def stream_logs(self, deployment_id: str) -> Iterator[str]:
        """Yield the standard output lines of every instance in order.

        Raises:
            NotDeployedError: If the id is not deployed
        """
        instances = self._registry.get(deployment_id)
        if instances is None:
            raise NotDeployedError(deployment_id)
        return self._read_logs(instances)

    @staticmethod
    def _read_logs(instances: tuple[AppInstance, ...]) -> Iterator[str]:
        for instance in instances:
            try:
                f = instance.stdout.open(encoding="utf-8", errors="replace")
            except FileNotFoundError:
                logger.debug(f"Log file {instance.stdout} no longer exists")
                continue
            with f:
                for line in f:
                    yield line.rstrip("\n")

    def shutdown(self) -> None:
        """Undeploy every deployment and release deployer resources."""
        for deployment_id in self._registry.ids():
            try:
                self.undeploy(deployment_id)
            except NotDeployedError:
                # Undeployed concurrently
                continue

        if self.properties.delete_files_on_exit and self._log_path_root is not None:
            shutil.rmtree(self._log_path_root, ignore_errors=True)
            logger.debug(f"Deleted working directories under {self._log_path_root}")
            self._log_path_root = None
        self._prober.close()

    def _ensure_log_path_root(self) -> Path:
        with self._root_lock:
            if self._log_path_root is None:
                root = self.properties.working_directories_root
                root.mkdir(parents=True, exist_ok=True)
                self._log_path_root = Path(
                    tempfile.mkdtemp(prefix=WORKING_DIRECTORY_PREFIX, dir=root)
                )
            return self._log_path_root

    def _create_work_dir(
        self, deployment_id: str, request: AppDeploymentRequest
    ) -> Path:
        deployment_properties = request.deployment_properties
        group_deployment_id = deployment_properties.get(GROUP_DEPLOYMENT_ID)
        if not group_deployment_id:
            group = deployment_properties.get(GROUP_PROPERTY) or DEFAULT_GROUP
            group_deployment_id = f"{group}-{time.time_ns()}"
        _check_directory_name(group_deployment_id, GROUP_DEPLOYMENT_ID)
        _check_directory_name(deployment_id, "deployment id")

        try:
            group_dir = self._ensure_log_path_root() / group_deployment_id
            group_dir.mkdir(exist_ok=True)
            work_dir = group_dir / deployment_id
            try:
                work_dir.mkdir()
            except FileExistsError:
                # Left over from an earlier deployment in the same group
                work_dir = Path(
                    tempfile.mkdtemp(prefix=f"{deployment_id}-", dir=group_dir)
                )
        except OSError as e:
            raise DeployIOError(
                f"Cannot create working directory for {deployment_id}: {e}"
            ) from e
        return work_dir

    def _environment_for(
        self, deployment_id: str, request: AppDeploymentRequest
    ) -> dict[str, str]:
        """Build the environment shared by all instances of a deployment."""
        patterns = list(self.properties.env_vars_to_inherit)
        extra = request.deployment_properties.get(ENV_VARS_TO_INHERIT_PROPERTY, "")
        patterns.extend(p.strip() for p in extra.split(",") if p.strip())

        environ = os.environ if self._environ is None else self._environ
        environment = retain_env_vars(environ, patterns)
        environment.update(request.definition.properties)
        environment[MANAGEMENT_NAMESPACE_KEY] = deployment_id
        environment[SHUTDOWN_ENABLED_KEY] = "true"
        environment[UNIQUE_NAMES_KEY] = "true"
        return environment

    def _launch_instances(
        self, deployment_id: str, request: AppDeploymentRequest, count: int
    ) -> list[AppInstance]:
        try:
            artifact_path = request.resource.get_file()
        except OSError as e:
            raise DeployIOError(
                f"Cannot access artifact {request.resource.description}: {e}"
            ) from e

        command = build_command(self.properties, request, artifact_path)
        base_environment = self._environment_for(deployment_id, request)
        indexed = is_indexed(request.deployment_properties)
        ports = PortAllocator(host=self.properties.host)
        work_dir = self._create_work_dir(deployment_id, request)

        instances: list[AppInstance] = []
        launched = False
        try:
            for index in range(count):
                port = ports.allocate(
                    request.definition.properties, request.commandline_arguments
                )
                environment = dict(base_environment)
                environment[SERVER_PORT_PROPERTY] = str(port)
                environment[INSTANCE_INDEX_ENV] = str(index)
                if indexed:
                    environment[APPLICATION_INDEX_KEY] = str(index)

                try:
                    process = self._launcher.launch(
                        command, environment, work_dir, index
                    )
                except DeployFailureError as e:
                    raise DeployFailureError(
                        e.message, deployment_id=deployment_id, instance_index=index
                    ) from e

                stdout, stderr = log_file_paths(work_dir, index)
                instances.append(
                    AppInstance(
                        deployment_id=deployment_id,
                        index=index,
                        process=process,
                        work_dir=work_dir,
                        stdout=stdout,
                        stderr=stderr,
                        port=port,
                        base_url=f"http://{self.properties.host}:{port}",
                    )
                )
                logger.info(
                    f"Deploying app {deployment_id} instance {index}, "
                    f"logs will be in {work_dir}"
                )
            launched = True
        finally:
            if not launched:
                self._kill_started(deployment_id, instances)
        return instances

    @staticmethod
    def _kill_started(deployment_id: str, instances: list[AppInstance]) -> None:
        for instance in instances:
            logger.warning(
                f"Killing instance {instance.index} of {deployment_id} "
                "after failed deployment"
            )
            instance.process.kill()


def _check_directory_name(name: str, description: str) -> None:
    """Reject names that would leave their parent working directory."""
    if name in (".", "..") or any(sep in name for sep in ("/", "\\", "\0")):
        raise InvalidRequestError(
            f"{description} '{name}' cannot be used as a directory name"
        )
