"""Port selection for app instances."""

from __future__ import annotations

import random
import socket
from collections.abc import Mapping, Sequence

from appdeck.config.defaults import DEFAULT_SERVER_PORT, MAX_SERVER_PORT
from appdeck.lib.errors import DeployFailureError, InvalidRequestError
from appdeck.lib.logging_config import get_logger

logger = get_logger(__name__)

SERVER_PORT_PROPERTY = "server.port"
SERVER_PORT_ARGUMENT = f"--{SERVER_PORT_PROPERTY}="


def parse_port(value: str, source: str = SERVER_PORT_PROPERTY) -> int:
    """Parse a caller supplied port number.

    Raises:
        InvalidRequestError: If the value is not an integer in 1..65535
    """
    try:
        port = int(value.strip())
    except ValueError as e:
        raise InvalidRequestError(f"{source} must be an integer, got '{value}'") from e
    if not 1 <= port <= MAX_SERVER_PORT:
        raise InvalidRequestError(
            f"{source} must be between 1 and {MAX_SERVER_PORT}, got {port}"
        )
    return port


def is_port_available(port: int, host: str = "127.0.0.1") -> bool:
    """Return True if a TCP socket can currently bind ``host:port``."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def find_available_tcp_port(
    min_port: int = DEFAULT_SERVER_PORT,
    max_port: int = MAX_SERVER_PORT,
    host: str = "127.0.0.1",
    exclude: frozenset[int] | set[int] = frozenset(),
) -> int:
    """Find a free TCP port by probing random candidates in a range.

    The port is only known to be free at the time of the probe; the launched
    process is expected to bind it shortly afterwards.

    Args:
        min_port: Lowest candidate port
        max_port: Highest candidate port
        host: Address to probe
        exclude: Ports that must not be returned

    Returns:
        A port number in ``[min_port, max_port]``

    Raises:
        DeployFailureError: If no port in the range is available
    """
    port_range = max_port - min_port + 1
    for _ in range(port_range):
        candidate = random.randint(min_port, max_port)  # noqa: S311
        if candidate in exclude:
            continue
        if is_port_available(candidate, host):
            return candidate

    # Random probing can miss the last few free ports, scan before giving up
    for candidate in range(min_port, max_port + 1):
        if candidate not in exclude and is_port_available(candidate, host):
            return candidate

    raise DeployFailureError(
        f"Could not find an available TCP port in the range [{min_port}, {max_port}]"
    )


class PortAllocator:
    """Chooses the port of each instance in one deployment fan-out.

    A port named by the app itself (``server.port`` in its properties or a
    ``--server.port=`` command line argument) is used by every instance.
    Otherwise each instance gets its own free port, never one already
    handed out by this allocator.
    """

    def __init__(self, host: str = "127.0.0.1") -> None:
        self.host = host
        self._allocated: set[int] = set()

    @staticmethod
    def fixed_port(
        app_properties: Mapping[str, str],
        commandline_arguments: Sequence[str] = (),
    ) -> int | None:
        """Return the port the app asks for, if any.

        Raises:
            InvalidRequestError: If the requested port is not valid
        """
        for argument in commandline_arguments:
            if argument.startswith(SERVER_PORT_ARGUMENT):
                return parse_port(
                    argument[len(SERVER_PORT_ARGUMENT) :], source="--server.port"
                )
        if SERVER_PORT_PROPERTY in app_properties:
            return parse_port(app_properties[SERVER_PORT_PROPERTY])
        return None

    def allocate(
        self,
        app_properties: Mapping[str, str],
        commandline_arguments: Sequence[str] = (),
    ) -> int:
        """Return the port for the next instance."""
        port = self.fixed_port(app_properties, commandline_arguments)
        if port is None:
            port = find_available_tcp_port(
                host=self.host, exclude=frozenset(self._allocated)
            )
            logger.debug(f"Allocated dynamic port {port}")
        self._allocated.add(port)
        return port
