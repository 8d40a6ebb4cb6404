"""Exceptions raised by the layer stats tool."""

from typing import Optional


class LayerStatsError(Exception):
    """Base exception for all layer stats errors."""

    pass


class ConfigError(LayerStatsError):
    """Raised when TLS material for a connection is missing or unreadable."""

    pass


class TransportError(LayerStatsError):
    """Raised when talking to the Docker daemon fails."""

    pass


class GraphError(LayerStatsError):
    """Raised when the image list does not form a valid layer forest."""

    def __init__(self, message: str, image_id: Optional[str] = None):
        super().__init__(message)
        self.image_id = image_id


class DuplicateIDError(GraphError):
    """Raised when two image records share an id."""

    pass


class CycleDetectedError(GraphError):
    """Raised when following parent links revisits a layer."""

    pass


class MissingParentError(GraphError):
    """Raised when a parent link points at an id absent from the image list."""

    pass
