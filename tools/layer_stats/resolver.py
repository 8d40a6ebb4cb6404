"""Locate a reachable Docker daemon when no host is configured."""

import os
import queue
import sys
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from shared.logger import get_logger

from .client import ConnectionConfig, DaemonClient
from .errors import ConfigError, TransportError

logger = get_logger(__name__)

LOCAL_SOCKET = "unix:///var/run/docker.sock"
BOOT2DOCKER_HOST = "tcp://192.168.59.103:2376"
BOOT2DOCKER_CERT_DIR = os.path.join(".boot2docker", "certs", "boot2docker-vm")
DEFAULT_HOST = "tcp://127.0.0.1:2375"

# Seconds to wait for the boot2docker VM to answer
PROBE_TIMEOUT = 1.0


@dataclass
class ConnectionHints:
    """Connection settings as given by the user, possibly empty."""

    host: str = ""
    tls_verify: bool = False
    cert_path: Optional[str] = None


class EndpointResolver:
    """
    Turn connection hints into a usable ConnectionConfig.

    An explicit host always wins. Otherwise the local socket, then a
    TLS-secured boot2docker VM are probed, and a plain TCP address on
    localhost is returned when neither answers. Resolution never raises.

    Attributes:
        client_factory: Callable building a client from a ConnectionConfig
        notify: Callable receiving progress notices
        platform: Platform string used to decide on the socket probe
        home: Home directory holding the boot2docker certificates
        probe_timeout: Seconds to wait for the secured remote probe
    """

    def __init__(
        self,
        client_factory: Callable[[ConnectionConfig], DaemonClient] = DaemonClient,
        notify: Optional[Callable[[str], None]] = None,
        platform: str = sys.platform,
        home: Optional[str] = None,
        probe_timeout: float = PROBE_TIMEOUT,
    ):
        self.client_factory = client_factory
        self.notify = notify or logger.info
        self.platform = platform
        self.home = home if home is not None else os.path.expanduser("~")
        self.probe_timeout = probe_timeout

    def resolve(self, hints: ConnectionHints) -> ConnectionConfig:
        """
        Resolve hints into a connection configuration.

        Args:
            hints: User supplied connection hints

        Returns:
            ConnectionConfig, the fallback address if nothing answered
        """
        if hints.host:
            return ConnectionConfig(
                host=hints.host, tls_verify=hints.tls_verify, cert_path=hints.cert_path
            )

        # A missing socket fails immediately, no timeout needed
        if self.platform.startswith("linux"):
            self.notify(f"No Docker host specified, checking {LOCAL_SOCKET}")
            config = ConnectionConfig(host=LOCAL_SOCKET)
            if self._probe(config):
                return config

        cert_path = os.path.join(self.home, BOOT2DOCKER_CERT_DIR)
        self.notify(f"No Docker host specified, checking for boot2docker at {BOOT2DOCKER_HOST}")
        config = ConnectionConfig(host=BOOT2DOCKER_HOST, tls_verify=True, cert_path=cert_path)
        if self._probe_with_timeout(config):
            return config

        self.notify(f"No Docker host found, falling back to default {DEFAULT_HOST}")
        return ConnectionConfig(host=DEFAULT_HOST)

    def _probe(self, config: ConnectionConfig) -> bool:
        """Build a client and ping it, reporting success."""
        try:
            client = self.client_factory(config)
            client.check_liveness()
            return True
        except (ConfigError, TransportError) as e:
            logger.debug(f"Probe of {config.host} failed: {e}")
            return False

    def _probe_with_timeout(self, config: ConnectionConfig) -> bool:
        """
        Ping a possibly slow daemon, giving up after probe_timeout.

        Building the client and the ping both run on a daemon thread that is
        never joined; if it answers after the deadline its result is dropped.
        """
        result: "queue.Queue[bool]" = queue.Queue(maxsize=1)

        def ping() -> None:
            # Client construction may itself query the daemon for its version
            try:
                client = self.client_factory(config)
                client.check_liveness()
                result.put(True)
            except (ConfigError, TransportError) as e:
                logger.debug(f"Probe of {config.host} failed: {e}")
                result.put(False)

        threading.Thread(target=ping, name="layer-stats-probe", daemon=True).start()

        try:
            return result.get(timeout=self.probe_timeout)
        except queue.Empty:
            logger.debug(f"Probe of {config.host} timed out after {self.probe_timeout}s")
            return False
