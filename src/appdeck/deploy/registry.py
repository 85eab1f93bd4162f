"""In-memory registry of running deployments.

The registry is owned by one deployer and shared by every caller of that
deployer. A deployment id is first reserved, so concurrent deploys of the
same id are rejected, and only becomes visible once all of its instances
have been launched and published together.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Sequence
from typing import Generic, TypeVar

from appdeck.lib.errors import AlreadyDeployedError
from appdeck.lib.logging_config import get_logger

logger = get_logger(__name__)

InstanceT = TypeVar("InstanceT")


class DeploymentRegistry(Generic[InstanceT]):
    """Thread-safe map of deployment id to its launched instances."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._deployments: dict[str, tuple[InstanceT, ...]] = {}
        self._reserved: set[str] = set()

    def reserve(self, deployment_id: str) -> None:
        """Claim a deployment id for an in-flight deploy.

        Raises:
            AlreadyDeployedError: If the id is published or already reserved
        """
        with self._lock:
            if deployment_id in self._deployments or deployment_id in self._reserved:
                raise AlreadyDeployedError(deployment_id)
            self._reserved.add(deployment_id)
        logger.debug(f"Reserved deployment id {deployment_id}")

    def publish(self, deployment_id: str, instances: Sequence[InstanceT]) -> None:
        """Make the complete instance list of a reserved id visible."""
        with self._lock:
            self._reserved.discard(deployment_id)
            self._deployments[deployment_id] = tuple(instances)
        logger.debug(
            f"Published deployment {deployment_id} with {len(instances)} instance(s)"
        )

    def release(self, deployment_id: str) -> None:
        """Drop a reservation after a failed deploy."""
        with self._lock:
            self._reserved.discard(deployment_id)

    def get(self, deployment_id: str) -> tuple[InstanceT, ...] | None:
        """Return the published instances of a deployment, if any."""
        with self._lock:
            return self._deployments.get(deployment_id)

    def remove(self, deployment_id: str) -> tuple[InstanceT, ...] | None:
        """Forget a deployment and return the instances it held."""
        with self._lock:
            return self._deployments.pop(deployment_id, None)

    def ids(self) -> list[str]:
        """Return a snapshot of the published deployment ids."""
        with self._lock:
            return list(self._deployments)

    def __contains__(self, deployment_id: object) -> bool:
        with self._lock:
            return deployment_id in self._deployments

    def __len__(self) -> int:
        with self._lock:
            return len(self._deployments)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ids())
