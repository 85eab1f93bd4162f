"""CLI command for running an app locally.

Implements 'appdeck run', which deploys an artifact as one or more local
processes, reports their status and supervises them until interrupted.
"""

from __future__ import annotations

import sys
import time
from collections.abc import Generator, Sequence
from contextlib import contextmanager
from pathlib import Path

import click
from dotenv import load_dotenv

from appdeck.config.loader import load_deployer_properties
from appdeck.deploy.deployers import BaseDeployer, create_deployer
from appdeck.deploy.deployers.base import COUNT_PROPERTY, GROUP_PROPERTY
from appdeck.deploy.resources import FileSystemResource
from appdeck.lib.errors import (
    ConfigError,
    DeploymentError,
    IllegalStateError,
    InvalidRequestError,
)
from appdeck.lib.logging_config import get_logger, setup_logging
from appdeck.models.deployment import (
    AppDefinition,
    AppDeploymentRequest,
    AppStatus,
    DeploymentState,
)

logger = get_logger(__name__)

# Seconds between status checks while waiting and supervising
POLL_INTERVAL = 1.0

# Deployment states after which supervision stops
TERMINAL_STATES = frozenset(
    {DeploymentState.FAILED, DeploymentState.ERROR, DeploymentState.UNDEPLOYED}
)

_STATE_COLORS = {
    DeploymentState.DEPLOYED: "green",
    DeploymentState.DEPLOYING: "yellow",
    DeploymentState.PARTIAL: "yellow",
    DeploymentState.FAILED: "red",
    DeploymentState.ERROR: "red",
}


@contextmanager
def handle_deployment_errors() -> Generator[None, None, None]:
    """Context manager for consistent error handling in the run command.

    Exit codes:
        2: Configuration or request error
        3: Deployment/execution error
    """
    try:
        yield
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        click.secho("Error: Configuration error", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(2)
    except (InvalidRequestError, IllegalStateError) as e:
        logger.error(f"Invalid request: {e}")
        click.secho("Error: Invalid request", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(2)
    except DeploymentError as e:
        logger.error(f"Deployment error: {e}")
        click.secho(f"Error: {e.operation} failed", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(3)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(3)


def _parse_key_values(values: Sequence[str], option: str) -> dict[str, str]:
    """Parse repeated ``KEY=VALUE`` options into a dict."""
    parsed: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(
                f"Expected KEY=VALUE, got '{item}'", param_hint=option
            )
        parsed[key.strip()] = value
    return parsed


def _display_status(status: AppStatus, quiet: bool) -> None:
    """Display a deployment status with one line per instance.

    Args:
        status: Status to display
        quiet: If True, only show the aggregate state
    """
    state = status.state
    if quiet:
        click.echo(f"{status.deployment_id} {state.value}")
        return

    click.echo()
    click.secho(
        f"{status.deployment_id}: {state.value}",
        fg=_STATE_COLORS.get(state),
        bold=True,
    )
    for instance in status.instances:
        attributes = instance.attributes
        click.echo(
            f"  [{instance.index}] {instance.state.value:<10} "
            f"{attributes.get('url', '-')}  pid {attributes.get('pid', '-')}"
        )
        click.echo(f"      stdout: {attributes.get('stdout', '-')}")
        click.echo(f"      stderr: {attributes.get('stderr', '-')}")
    click.echo()


def _wait_until_started(
    deployer: BaseDeployer, deployment_id: str, timeout: float
) -> AppStatus:
    """Poll a deployment until it stops deploying or ``timeout`` passes."""
    deadline = time.monotonic() + timeout
    status = deployer.status(deployment_id)
    while status.state == DeploymentState.DEPLOYING and time.monotonic() < deadline:
        time.sleep(POLL_INTERVAL)
        status = deployer.status(deployment_id)
    return status


def _supervise(
    deployer: BaseDeployer, deployment_id: str, last_state: DeploymentState
) -> AppStatus | None:
    """Report state changes until the deployment ends or the user interrupts.

    Returns:
        The final status, or None when interrupted
    """
    try:
        while True:
            time.sleep(POLL_INTERVAL)
            status = deployer.status(deployment_id)
            if status.state != last_state:
                logger.info(
                    f"{deployment_id} changed from {last_state.value} "
                    f"to {status.state.value}"
                )
                last_state = status.state
            if status.state in TERMINAL_STATES:
                return status
    except KeyboardInterrupt:
        return None


@click.command()
@click.argument(
    "artifact",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--name",
    type=str,
    default=None,
    help="App name (defaults to the artifact file name without extension)",
)
@click.option(
    "--group",
    type=str,
    default=None,
    help="Deployment group (default: 'default')",
)
@click.option(
    "--count",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Number of instances to start",
)
@click.option(
    "--property",
    "-p",
    "app_properties",
    multiple=True,
    metavar="KEY=VALUE",
    help="App property passed to every instance (repeatable)",
)
@click.option(
    "--deployment-property",
    "-D",
    "deployment_properties",
    multiple=True,
    metavar="KEY=VALUE",
    help="Deployer property such as appdeck.deployer.indexed=true (repeatable)",
)
@click.option(
    "--arg",
    "args",
    multiple=True,
    help="Command line argument passed to every instance (repeatable)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML file with deployer properties",
)
@click.option(
    "--wait-timeout",
    type=float,
    default=60.0,
    show_default=True,
    help="Seconds to wait for instances to start",
)
@click.option(
    "--no-supervise",
    is_flag=True,
    help="Undeploy and exit once instances have started instead of supervising",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose debug logging",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress progress output",
)
def run(
    artifact: Path,
    name: str | None,
    group: str | None,
    count: int,
    app_properties: tuple[str, ...],
    deployment_properties: tuple[str, ...],
    args: tuple[str, ...],
    config_path: Path | None,
    wait_timeout: float,
    no_supervise: bool,
    verbose: bool,
    quiet: bool,
) -> None:
    """Run ARTIFACT as one or more local app instances.

    The instances are supervised until Ctrl-C is pressed or the deployment
    stops on its own, then undeployed.

    Example:

        appdeck run app.py --count 2 -p greeting=hello

        appdeck run app.py --group demo --arg=--debug
    """
    setup_logging(verbose=verbose, quiet=quiet)
    load_dotenv()

    definition_properties = _parse_key_values(app_properties, "--property")
    request_properties = _parse_key_values(
        deployment_properties, "--deployment-property"
    )
    request_properties[COUNT_PROPERTY] = str(count)
    if group:
        request_properties[GROUP_PROPERTY] = group

    final_status: AppStatus | None = None
    with handle_deployment_errors():
        properties = load_deployer_properties(config_path)
        request = AppDeploymentRequest(
            definition=AppDefinition(
                name=name or artifact.stem, properties=definition_properties
            ),
            resource=FileSystemResource(artifact),
            deployment_properties=request_properties,
            commandline_arguments=list(args),
        )

        with create_deployer("local", properties) as deployer:
            deployment_id = deployer.deploy(request)
            if not quiet:
                click.echo(f"Deployed {deployment_id}, waiting for instances...")

            status = _wait_until_started(deployer, deployment_id, wait_timeout)
            _display_status(status, quiet)

            if no_supervise or status.state in TERMINAL_STATES:
                final_status = status
            else:
                if not quiet:
                    click.echo("Supervising, press Ctrl-C to stop")
                final_status = _supervise(deployer, deployment_id, status.state)
                if final_status is not None:
                    _display_status(final_status, quiet)

            if not quiet:
                click.echo(f"Undeploying {deployment_id}...")
            deployer.undeploy(deployment_id)

        if final_status is not None and final_status.state in (
            DeploymentState.FAILED,
            DeploymentState.ERROR,
        ):
            raise DeploymentError(
                operation="run",
                message=f"{final_status.deployment_id} is {final_status.state.value}",
            )
