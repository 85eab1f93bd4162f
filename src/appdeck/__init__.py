"""AppDeck - Deploy and supervise apps as local processes.

AppDeck launches an app artifact as one or more OS processes, tracks their
lifecycle, aggregates per-instance health into a deployment status, and
tears the processes down on demand.

Main features:
- Fixed or dynamically allocated ports per instance
- Per-instance working directories and log files
- HTTP health probing and graceful shutdown with a forced-kill fallback
- YAML and environment variable configuration
"""

__version__ = "0.1.0"

from appdeck.deploy.deployers import BaseDeployer, create_deployer  # noqa: E402
from appdeck.deploy.resources import FileSystemResource, Resource  # noqa: E402
from appdeck.lib.errors import AppDeckError, ConfigError, DeploymentError  # noqa: E402
from appdeck.models.deployment import (  # noqa: E402
    AppDefinition,
    AppDeploymentRequest,
    AppStatus,
    DeploymentState,
)

__all__ = [
    "__version__",
    "AppDeckError",
    "AppDefinition",
    "AppDeploymentRequest",
    "AppStatus",
    "BaseDeployer",
    "ConfigError",
    "DeploymentError",
    "DeploymentState",
    "FileSystemResource",
    "Resource",
    "create_deployer",
]
