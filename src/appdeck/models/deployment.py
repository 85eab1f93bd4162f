"""Pydantic models for app deployment requests and statuses.

This module defines the request side of the deployer contract (what to run
and how) and the status side (what is running and how healthy it is).
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from appdeck.deploy.resources import Resource
from appdeck.lib.errors import InvalidRequestError


class DeploymentState(str, Enum):
    """Health classification of a deployment or of a single instance.

    ``partial`` and ``unknown`` only ever describe whole deployments.
    """

    DEPLOYING = "deploying"
    DEPLOYED = "deployed"
    UNDEPLOYED = "undeployed"
    PARTIAL = "partial"
    FAILED = "failed"
    ERROR = "error"
    UNKNOWN = "unknown"


class AppDefinition(BaseModel):
    """Definition of an app to deploy.

    Attributes:
        name: App name, used to derive the deployment id
        properties: Properties handed to the app untouched
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., min_length=1, description="App name")
    properties: dict[str, str] = Field(
        default_factory=dict, description="Properties passed verbatim to the app"
    )


class AppDeploymentRequest(BaseModel):
    """Request to deploy an app.

    Deployment properties are interpreted by the deployer (instance count,
    group, indexing...) and are never passed to the app itself. Use
    ``definition.properties`` and ``commandline_arguments`` for that.

    Attributes:
        definition: The app definition
        resource: The deployable artifact
        deployment_properties: Deployer-specific settings
        commandline_arguments: Arguments appended to the launch command
    """

    model_config = ConfigDict(
        extra="forbid", frozen=True, arbitrary_types_allowed=True
    )

    definition: AppDefinition = Field(..., description="App definition")
    resource: Resource = Field(..., description="Deployable artifact")
    deployment_properties: dict[str, str] = Field(
        default_factory=dict, description="Properties interpreted by the deployer"
    )
    commandline_arguments: list[str] = Field(
        default_factory=list, description="Command line arguments for the app"
    )

    @model_validator(mode="before")
    @classmethod
    def require_definition_and_resource(cls, data: Any) -> Any:
        """Reject requests without a definition or an artifact."""
        if isinstance(data, dict):
            if data.get("definition") is None:
                raise InvalidRequestError("definition must not be None")
            if data.get("resource") is None:
                raise InvalidRequestError("resource must not be None")
            for key in ("deployment_properties", "commandline_arguments"):
                if key in data and data[key] is None:
                    data = {k: v for k, v in data.items() if k != key}
        return data


class AppInstanceStatus(BaseModel):
    """Point-in-time status of one app instance.

    Attributes:
        id: Instance id, ``<deployment id>-<index>``
        index: Ordinal of the instance within its deployment
        state: Instance state
        attributes: Runtime details (working dir, log files, url, port, pid)
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(..., description="Instance identifier")
    index: int = Field(..., ge=0, description="Instance ordinal")
    state: DeploymentState = Field(..., description="Instance state")
    attributes: dict[str, str] = Field(
        default_factory=dict, description="Runtime details of the instance"
    )


class AppStatus(BaseModel):
    """Status of a deployment, aggregated from its instances.

    Attributes:
        deployment_id: The deployment this status is for
        instances: Instance statuses in launch order
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    deployment_id: str = Field(..., description="Deployment identifier")
    instances: list[AppInstanceStatus] = Field(
        default_factory=list, description="Instance statuses in launch order"
    )

    @property
    def state(self) -> DeploymentState:
        """Aggregate deployment state of all instances."""
        from appdeck.deploy.status import aggregate_state

        return aggregate_state(instance.state for instance in self.instances)

    def instance_states(self) -> list[DeploymentState]:
        """Return the state of every instance in launch order."""
        return [instance.state for instance in self.instances]

    def __str__(self) -> str:
        return self.state.value


class RuntimeEnvironmentInfo(BaseModel):
    """Description of the deployer implementation and the host it drives."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    implementation_name: str = Field(..., description="Deployer implementation")
    implementation_version: str = Field(..., description="Implementation version")
    platform_type: str = Field(..., description="Platform type, e.g. Local")
    platform_api_version: str = Field(..., description="Platform API version")
    platform_client_version: str = Field(..., description="Client version")
    platform_host_version: str = Field(..., description="Host version")
    python_version: str = Field(..., description="Python interpreter version")
    platform_specific_info: dict[str, str] = Field(
        default_factory=dict, description="Platform specific details"
    )
