from .cluster import ClusterDetector, CommandClusterDetector, detect_cluster_status
from .counters import (
    CompositeCounterSource,
    Counter,
    CounterSet,
    CounterSource,
    EngineCounterSource,
    HostCounterSource,
)
from .inventory_collector import InventoryCollector
from .performance_sampler import PerformanceSampler
from .ticker import Ticker

__all__ = [
    "ClusterDetector",
    "CommandClusterDetector",
    "detect_cluster_status",
    "CompositeCounterSource",
    "Counter",
    "CounterSet",
    "CounterSource",
    "EngineCounterSource",
    "HostCounterSource",
    "InventoryCollector",
    "PerformanceSampler",
    "Ticker",
]
