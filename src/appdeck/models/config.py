"""Pydantic models for deployer configuration."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from appdeck.config.defaults import (
    DEFAULT_ENV_VARS_TO_INHERIT,
    DEFAULT_LOCAL_DEPLOYER_CONFIG,
)


class LocalDeployerProperties(BaseModel):
    """Configuration of the local process deployer.

    Attributes:
        working_directories_root: Directory under which per-deployment
            working directories and log files are created
        delete_files_on_exit: Remove working directories on deployer shutdown
        env_vars_to_inherit: Regex patterns of supervisor environment
            variables passed on to launched apps
        launcher_cmd: Interpreter or launcher used to run artifacts
        shutdown_timeout: Seconds to wait for ``/shutdown`` to stop an app
            before killing it; values <= 0 skip the graceful phase
        health_check_timeout: Seconds allowed for one health probe request
        host: Host name used in instance base URLs
    """

    model_config = ConfigDict(extra="forbid")

    working_directories_root: Path = Field(
        default=Path(str(DEFAULT_LOCAL_DEPLOYER_CONFIG["working_directories_root"])),
        description="Root directory for app working directories",
    )
    delete_files_on_exit: bool = Field(
        default=bool(DEFAULT_LOCAL_DEPLOYER_CONFIG["delete_files_on_exit"]),
        description="Delete working directories when the deployer shuts down",
    )
    env_vars_to_inherit: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ENV_VARS_TO_INHERIT),
        description="Regex patterns of environment variables to inherit",
    )
    launcher_cmd: str = Field(
        default=str(DEFAULT_LOCAL_DEPLOYER_CONFIG["launcher_cmd"]),
        min_length=1,
        description="Command used to run artifacts",
    )
    shutdown_timeout: int = Field(
        default=int(DEFAULT_LOCAL_DEPLOYER_CONFIG["shutdown_timeout"]),
        description="Seconds to wait for a graceful shutdown",
    )
    health_check_timeout: float = Field(
        default=float(DEFAULT_LOCAL_DEPLOYER_CONFIG["health_check_timeout"]),
        gt=0,
        description="Seconds allowed for a health probe",
    )
    host: str = Field(
        default=str(DEFAULT_LOCAL_DEPLOYER_CONFIG["host"]),
        min_length=1,
        description="Host used in instance URLs",
    )

    @field_validator("env_vars_to_inherit", mode="before")
    @classmethod
    def split_env_var_patterns(cls, v: object) -> object:
        """Accept a comma separated string as well as a list."""
        if isinstance(v, str):
            return [pattern.strip() for pattern in v.split(",") if pattern.strip()]
        return v
