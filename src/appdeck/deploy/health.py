"""Instance health probing and graceful shutdown.

Both operations talk to the management HTTP surface of a launched app
through one ``requests.Session`` per thread. Network failures are never
raised to the caller: during a probe they mean the app is still booting,
during shutdown they mean the app has no shutdown endpoint.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Sequence

import requests

from appdeck.deploy.process import ProcessHandle
from appdeck.lib.logging_config import get_logger
from appdeck.models.deployment import DeploymentState

logger = get_logger(__name__)

SHUTDOWN_PATH = "/shutdown"
SHUTDOWN_POLL_INTERVAL = 1.0  # seconds


class HealthProber:
    """Determines instance state and performs graceful shutdowns.

    Example:
        >>> prober = HealthProber(probe_timeout=2.0)
        >>> prober.probe(handle, "http://127.0.0.1:8080")
        <DeploymentState.DEPLOYED: 'deployed'>
    """

    DEFAULT_PROBE_TIMEOUT = 2.0  # seconds

    def __init__(
        self,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the prober.

        Args:
            probe_timeout: Connect and read timeout of one probe in seconds
            session: HTTP session shared by all threads. By default each
                thread gets its own session, since ``requests.Session`` is
                not guaranteed to be thread-safe.
        """
        self.probe_timeout = probe_timeout
        self._shared_session = session
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        """HTTP session for the calling thread."""
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def probe(self, handle: ProcessHandle, base_url: str) -> DeploymentState:
        """Return the current state of one instance.

        The exit code is authoritative: an exited process is ``undeployed``
        (code 0) or ``failed`` (any other code) regardless of the network.
        A running process is ``deployed`` once its base URL answers at all
        and ``deploying`` until then.

        Args:
            handle: Process of the instance
            base_url: Base URL the instance listens on

        Returns:
            Instance state; ``error`` if the process cannot be queried
        """
        try:
            exit_code = handle.exit_code()
        except OSError as e:
            logger.warning(f"Cannot query process {handle.pid}: {e}")
            return DeploymentState.ERROR

        if exit_code is not None:
            if exit_code == 0:
                return DeploymentState.UNDEPLOYED
            return DeploymentState.FAILED

        try:
            response = self.session.get(
                base_url, timeout=self.probe_timeout, stream=True
            )
            response.close()
        except requests.RequestException as e:
            logger.debug(f"Probe of {base_url} failed: {e}")
            return DeploymentState.DEPLOYING
        return DeploymentState.DEPLOYED

    def shutdown(self, handle: ProcessHandle, base_url: str, timeout: float) -> bool:
        """Stop one instance, gracefully if possible.

        See :meth:`shutdown_all`.

        Returns:
            True if the process exited on its own
        """
        return self.shutdown_all([(handle, base_url)], timeout)[0]

    def shutdown_all(
        self, targets: Sequence[tuple[ProcessHandle, str]], timeout: float
    ) -> list[bool]:
        """Stop several instances within one shared time budget.

        When ``timeout`` is positive every live instance is asked to stop
        through ``POST <base_url>/shutdown``. Each request may only use what
        is left of the budget. Instances that accept (2xx) are polled until
        they exit or the budget runs out. Processes still alive afterwards
        are killed without waiting for confirmation. The kill also happens
        if the wait is interrupted, and the interrupt is then re-raised.

        Args:
            targets: Process and base URL of every instance to stop
            timeout: Seconds allowed for the graceful phase of all instances

        Returns:
            For each target, True if the process exited on its own
        """
        deadline = time.monotonic() + max(timeout, 0)
        try:
            if timeout > 0:
                acknowledged = []
                for handle, base_url in targets:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    if handle.is_alive() and self._request_shutdown(
                        base_url, remaining
                    ):
                        acknowledged.append(handle)
                self._wait_for_exit(acknowledged, deadline)
        finally:
            stopped = []
            for handle, _ in targets:
                alive = handle.is_alive()
                if alive:
                    logger.debug(f"Killing process {handle.pid}")
                    handle.kill()
                stopped.append(not alive)
        return stopped

    def _request_shutdown(self, base_url: str, timeout: float) -> bool:
        url = base_url.rstrip("/") + SHUTDOWN_PATH
        try:
            response = self.session.post(url, timeout=timeout)
        except requests.RequestException as e:
            logger.debug(f"No shutdown endpoint at {url}: {e}")
            return False

        if not 200 <= response.status_code < 300:
            logger.debug(f"Shutdown request to {url} returned {response.status_code}")
            return False
        return True

    @staticmethod
    def _wait_for_exit(handles: Sequence[ProcessHandle], deadline: float) -> None:
        while any(handle.is_alive() for handle in handles):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            time.sleep(min(SHUTDOWN_POLL_INTERVAL, remaining))

    def close(self) -> None:
        """Close every HTTP session opened by this prober."""
        if self._shared_session is not None:
            self._shared_session.close()
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
