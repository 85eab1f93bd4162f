"""Base interface for app deployers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from types import TracebackType

from appdeck.config.defaults import DEFAULT_GROUP
from appdeck.lib.errors import InvalidRequestError
from appdeck.models.deployment import (
    AppDeploymentRequest,
    AppStatus,
    DeploymentState,
    RuntimeEnvironmentInfo,
)

DEPLOYER_PROPERTY_PREFIX = "appdeck.deployer."

# Deployment properties understood by every deployer
COUNT_PROPERTY = f"{DEPLOYER_PROPERTY_PREFIX}count"
GROUP_PROPERTY = f"{DEPLOYER_PROPERTY_PREFIX}group"
INDEXED_PROPERTY = f"{DEPLOYER_PROPERTY_PREFIX}indexed"

# Correlates deployments started together under one working directory
GROUP_DEPLOYMENT_ID = "appdeck.group-deployment-id"


class BaseDeployer(ABC):
    """Abstract base class for app deployers."""

    @abstractmethod
    def deploy(self, request: AppDeploymentRequest) -> str:
        """Deploy an app and return its deployment id.

        Args:
            request: What to deploy and how.

        Returns:
            The deployment id, ``<group>.<name>``.

        Raises:
            InvalidRequestError: If the request cannot be interpreted.
            AlreadyDeployedError: If the deployment id is already in use.
            DeploymentError: If deployment fails.
        """

    @abstractmethod
    def undeploy(self, deployment_id: str) -> None:
        """Stop every instance of a deployment and forget it.

        Args:
            deployment_id: Id returned by :meth:`deploy`.

        Raises:
            NotDeployedError: If the id is not deployed.
        """

    @abstractmethod
    def status(self, deployment_id: str) -> AppStatus:
        """Return the current status of a deployment.

        Unknown ids are reported as ``unknown`` with no instances rather
        than as an error.

        Args:
            deployment_id: Id returned by :meth:`deploy`.

        Returns:
            AppStatus with one entry per instance.
        """

    def states(self, *deployment_ids: str) -> dict[str, DeploymentState]:
        """Return the aggregate state of several deployments at once."""
        return {
            deployment_id: self.status(deployment_id).state
            for deployment_id in deployment_ids
        }

    @abstractmethod
    def environment_info(self) -> RuntimeEnvironmentInfo:
        """Describe the deployer implementation and its platform."""

    @abstractmethod
    def stream_logs(self, deployment_id: str) -> Iterable[str]:
        """Stream the log lines of a deployment.

        Args:
            deployment_id: Id returned by :meth:`deploy`.

        Returns:
            Iterable of log lines.

        Raises:
            NotImplementedError: When the deployer cannot stream logs.
            NotDeployedError: If the id is not deployed.
        """

    def shutdown(self) -> None:
        """Release deployer resources. Deployers holding none do nothing."""

    def __enter__(self) -> BaseDeployer:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.shutdown()


def deployment_id_for(request: AppDeploymentRequest) -> str:
    """Derive the deployment id ``<group>.<name>`` of a request."""
    group = request.deployment_properties.get(GROUP_PROPERTY) or DEFAULT_GROUP
    return f"{group}.{request.definition.name}"


def instance_count(deployment_properties: Mapping[str, str]) -> int:
    """Return the requested instance count, 1 if absent or blank.

    Raises:
        InvalidRequestError: If the count is not a positive integer
    """
    value = deployment_properties.get(COUNT_PROPERTY)
    if value is None or not value.strip():
        return 1
    try:
        count = int(value.strip())
    except ValueError as e:
        raise InvalidRequestError(
            f"{COUNT_PROPERTY} must be a positive integer, got '{value}'"
        ) from e
    if count < 1:
        raise InvalidRequestError(
            f"{COUNT_PROPERTY} must be a positive integer, got {count}"
        )
    return count


def is_indexed(deployment_properties: Mapping[str, str]) -> bool:
    """Return True if instances should be told their index explicitly."""
    return deployment_properties.get(INDEXED_PROPERTY, "").strip().lower() == "true"
