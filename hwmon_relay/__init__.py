"""Hardware monitor snapshot relay."""

from hwmon_relay.builder import SnapshotBuilder
from hwmon_relay.config import AppConfig, load_config
from hwmon_relay.delta import DeltaPublisher, compute_changeset
from hwmon_relay.fanout import SubscriptionManager
from hwmon_relay.models import Snapshot
from hwmon_relay.partitions import PartitionProvider, PartitionStore

__all__ = [
    "AppConfig",
    "DeltaPublisher",
    "PartitionProvider",
    "PartitionStore",
    "Snapshot",
    "SnapshotBuilder",
    "SubscriptionManager",
    "compute_changeset",
    "load_config",
]
