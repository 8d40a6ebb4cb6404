"""Layer Stats - Report how Docker image layers use disk space."""

from .client import ConnectionConfig, DaemonClient, ImageRecord
from .graph import LayerGraph, StatsReport, TagReport, build_stats
from .resolver import ConnectionHints, EndpointResolver

__all__ = [
    "ConnectionConfig",
    "ConnectionHints",
    "DaemonClient",
    "EndpointResolver",
    "ImageRecord",
    "LayerGraph",
    "StatsReport",
    "TagReport",
    "build_stats",
]
