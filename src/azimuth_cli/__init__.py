"""azimuth-cli public surface."""

from azimuth_cli.backends import L1Backend, L2Backend, Permission
from azimuth_cli.breach import BatchResult, BreachOrchestrator, PointOutcome
from azimuth_cli.config import AzimuthConfig, load_config
from azimuth_cli.datasource import DataSourceSelector, parse_data_source
from azimuth_cli.details import PointInfoAggregator
from azimuth_cli.dispatch import ConfigureResult, KeyConfigurationDispatcher
from azimuth_cli.errors import (
    AuthorizationError,
    AzimuthCLIError,
    CacheConsistencyError,
    ChainCommunicationError,
    ConfigurationError,
    DataSourceError,
    InvalidPointError,
    NotFoundError,
    RollerRequestError,
    ValidationError,
)
from azimuth_cli.keycache import CacheEntry, NetworkKeyCache
from azimuth_cli.models import Dominion, NetworkKeyPair, PointInfo, PublicKeys, Receipt
from azimuth_cli.operations import L2Operations
from azimuth_cli.points import Point, ShipClass, parse_point
from azimuth_cli.resolver import ResolvedPoints, resolve_points
from azimuth_cli.store import FileArtifactStore, MemoryArtifactStore

__all__ = [
    "AzimuthCLIError",
    "ValidationError",
    "InvalidPointError",
    "ConfigurationError",
    "NotFoundError",
    "AuthorizationError",
    "ChainCommunicationError",
    "RollerRequestError",
    "DataSourceError",
    "CacheConsistencyError",
    "AzimuthConfig",
    "load_config",
    "Point",
    "ShipClass",
    "parse_point",
    "ResolvedPoints",
    "resolve_points",
    "Dominion",
    "PointInfo",
    "PublicKeys",
    "NetworkKeyPair",
    "Receipt",
    "L1Backend",
    "L2Backend",
    "Permission",
    "DataSourceSelector",
    "parse_data_source",
    "PointInfoAggregator",
    "NetworkKeyCache",
    "CacheEntry",
    "KeyConfigurationDispatcher",
    "ConfigureResult",
    "BreachOrchestrator",
    "PointOutcome",
    "BatchResult",
    "L2Operations",
    "FileArtifactStore",
    "MemoryArtifactStore",
]
