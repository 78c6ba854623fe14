"""Services for fleetdiag."""

from fleetdiag.services.artifacts import ArtifactCollector, CollectionResult
from fleetdiag.services.connection import RemoteSessionError, open_remote_session, preflight
from fleetdiag.services.coordinator import HostRunCoordinator
from fleetdiag.services.executors import LocalBackend, RemoteBackend, TransferResult
from fleetdiag.services.pool import ConnectionPool
from fleetdiag.services.report import HostLog, ReportWriter
from fleetdiag.services.session import SessionAggregator

__all__ = [
    "ArtifactCollector",
    "CollectionResult",
    "ConnectionPool",
    "HostLog",
    "HostRunCoordinator",
    "LocalBackend",
    "open_remote_session",
    "preflight",
    "RemoteBackend",
    "RemoteSessionError",
    "ReportWriter",
    "SessionAggregator",
    "TransferResult",
]
