"""Thin wrapper around the Docker SDK for the calls layer accounting needs."""

import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import docker
import requests
from docker.tls import TLSConfig

from shared.logger import get_logger

from .errors import ConfigError, TransportError

logger = get_logger(__name__)

# RepoTags value the daemon reports for untagged layers
UNTAGGED = "<none>:<none>"

CERT_FILES = ("cert.pem", "key.pem", "ca.pem")


@dataclass
class ConnectionConfig:
    """Where and how to reach a Docker daemon."""

    host: str
    tls_verify: bool = False
    cert_path: Optional[str] = None


@dataclass(frozen=True)
class ImageRecord:
    """A single layer as reported by the daemon's image list."""

    id: str
    parent_id: str = ""
    size: int = 0
    virtual_size: int = 0
    repo_tags: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def tag(self) -> Optional[str]:
        """First real tag, or None for untagged layers."""
        for repo_tag in self.repo_tags:
            if repo_tag and repo_tag != UNTAGGED:
                return repo_tag
        return None

    @property
    def is_tagged(self) -> bool:
        return self.tag is not None

    @classmethod
    def from_api(cls, attrs: dict) -> "ImageRecord":
        """
        Build a record from an image list entry.

        Args:
            attrs: Raw entry as returned by the images endpoint

        Returns:
            ImageRecord
        """
        size = attrs.get("Size") or 0
        virtual_size = attrs.get("VirtualSize")
        if virtual_size is None:
            # Dropped from API 1.44, where Size already covers the ancestors
            virtual_size = size

        return cls(
            id=attrs["Id"],
            parent_id=attrs.get("ParentId") or "",
            size=size,
            virtual_size=virtual_size,
            repo_tags=tuple(attrs.get("RepoTags") or ()),
        )


def cert_files(cert_path: str) -> Tuple[str, str, str]:
    """
    Locate client certificate, key and CA certificate in a directory.

    Args:
        cert_path: Directory holding cert.pem, key.pem and ca.pem

    Returns:
        Tuple of (cert, key, ca) paths

    Raises:
        ConfigError: If any of the files is missing or unreadable
    """
    paths = tuple(os.path.join(cert_path, name) for name in CERT_FILES)
    for path in paths:
        if not os.path.isfile(path) or not os.access(path, os.R_OK):
            raise ConfigError(f"Cannot read TLS file: {path}")
    return paths


class DaemonClient:
    """
    Docker daemon client bound to a single ConnectionConfig.

    Attributes:
        config: Connection the client was built from
        client: Underlying docker.DockerClient
    """

    def __init__(self, config: ConnectionConfig, timeout: int = 60):
        """
        Build a client for the given connection.

        Args:
            config: Connection configuration
            timeout: Per-request timeout in seconds

        Raises:
            ConfigError: If TLS material is missing or malformed
            TransportError: If the daemon client cannot be created
        """
        self.config = config

        tls = None
        if config.tls_verify:
            if not config.cert_path:
                raise ConfigError("TLS requested but no certificate path given")
            cert, key, ca = cert_files(config.cert_path)
            try:
                tls = TLSConfig(client_cert=(cert, key), ca_cert=ca, verify=True)
            except docker.errors.TLSParameterError as e:
                raise ConfigError(f"Invalid TLS configuration: {e}")

        try:
            self.client = docker.DockerClient(base_url=config.host, tls=tls, timeout=timeout)
            logger.debug(f"Created Docker client for {config.host}")
        except docker.errors.TLSParameterError as e:
            raise ConfigError(f"Invalid TLS configuration: {e}")
        except (docker.errors.DockerException, requests.exceptions.RequestException) as e:
            raise TransportError(f"Cannot connect to Docker daemon at {config.host}: {e}")

    def check_liveness(self) -> None:
        """
        Ping the daemon.

        Raises:
            TransportError: If the daemon does not answer
        """
        try:
            self.client.ping()
        except (docker.errors.DockerException, requests.exceptions.RequestException) as e:
            raise TransportError(f"Docker daemon at {self.config.host} is not responding: {e}")

    def list_images(self, include_intermediate: bool = True) -> List[ImageRecord]:
        """
        List images known to the daemon.

        Args:
            include_intermediate: Include untagged intermediate layers

        Returns:
            List of ImageRecord

        Raises:
            TransportError: If the request fails
        """
        try:
            images = self.client.images.list(all=include_intermediate)
        except (docker.errors.DockerException, requests.exceptions.RequestException) as e:
            raise TransportError(f"Failed to list images from {self.config.host}: {e}")

        records = [ImageRecord.from_api(image.attrs) for image in images]
        logger.debug(f"Fetched {len(records)} image records")
        return records
