"""App deployers for AppDeck."""

from __future__ import annotations

from appdeck.deploy.deployers.base import BaseDeployer
from appdeck.lib.errors import DeploymentError
from appdeck.models.config import LocalDeployerProperties


def create_deployer(
    platform: str = "local",
    properties: LocalDeployerProperties | None = None,
) -> BaseDeployer:
    """Create a deployer for the given platform."""
    if platform.lower() == "local":
        from appdeck.deploy.deployers.local import LocalAppDeployer

        return LocalAppDeployer(properties)

    raise DeploymentError(
        operation="deploy",
        message=(
            f"Unsupported deployer platform: {platform}. "
            "Local processes are the only supported platform."
        ),
    )


__all__ = ["BaseDeployer", "create_deployer"]
