"""Default resource requirements and stack settings for each LokiStack size."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum

__all__ = [
    "StackSize",
    "ResourceRequirements",
    "ComponentResources",
    "IngestionLimits",
    "QueryLimits",
    "StackSpec",
    "resource_requirements",
    "stack_size_spec",
    "COMPONENTS",
]

COMPONENTS = (
    "compactor",
    "distributor",
    "ingester",
    "querier",
    "query_frontend",
    "gateway",
    "index_gateway",
    "ruler",
)


class StackSize(str, Enum):
    """The t-shirt sizes a LokiStack can be deployed with."""

    ONE_X_DEMO = "1x.demo"
    ONE_X_EXTRA_SMALL = "1x.extra-small"
    ONE_X_SMALL = "1x.small"
    ONE_X_MEDIUM = "1x.medium"

    def __str__(self) -> str:
        return self.value


@dataclass
class ResourceRequirements:
    """CPU and memory requests/limits, PVC size and PDB minimum for a component.

    Quantities are kept in their textual form, e.g. ``"500m"`` or ``"2Gi"``.
    """

    limits: dict[str, str] = field(default_factory=dict)
    requests: dict[str, str] = field(default_factory=dict)
    pvc_size: str | None = None
    pdb_min_available: int = 0


@dataclass
class ComponentResources:
    """Resource requirements of every component of a stack."""

    index_gateway: ResourceRequirements = field(default_factory=ResourceRequirements)
    ingester: ResourceRequirements = field(default_factory=ResourceRequirements)
    compactor: ResourceRequirements = field(default_factory=ResourceRequirements)
    ruler: ResourceRequirements = field(default_factory=ResourceRequirements)
    wal_storage: ResourceRequirements = field(default_factory=ResourceRequirements)
    querier: ResourceRequirements = field(default_factory=ResourceRequirements)
    distributor: ResourceRequirements = field(default_factory=ResourceRequirements)
    query_frontend: ResourceRequirements = field(default_factory=ResourceRequirements)
    gateway: ResourceRequirements = field(default_factory=ResourceRequirements)


@dataclass
class IngestionLimits:
    ingestion_rate: int = 0
    ingestion_burst_size: int = 0
    max_label_name_length: int = 0
    max_label_value_length: int = 0
    max_label_names_per_series: int = 0
    max_global_streams_per_tenant: int = 0
    max_line_size: int = 0
    per_stream_desired_rate: int = 0
    per_stream_rate_limit: int = 0
    per_stream_rate_limit_burst: int = 0


@dataclass
class QueryLimits:
    max_entries_limit_per_query: int = 0
    max_chunks_per_query: int = 0
    max_query_series: int = 0
    query_timeout: str = ""
    cardinality_limit: int = 0
    max_volume_series: int = 0


@dataclass
class StackSpec:
    """Default stack configuration for a size."""

    size: StackSize
    replication_factor: int
    ingestion_limits: IngestionLimits
    query_limits: QueryLimits
    replicas: dict[str, int] = field(default_factory=dict)


def _req(cpu: str, memory: str, pvc: str | None = None, pdb: int = 0) -> ResourceRequirements:
    return ResourceRequirements(
        requests={"cpu": cpu, "memory": memory}, pvc_size=pvc, pdb_min_available=pdb
    )


def _pvc(size: str) -> ResourceRequirements:
    return ResourceRequirements(pvc_size=size)


_RESOURCES: dict[StackSize, ComponentResources] = {
    StackSize.ONE_X_DEMO: ComponentResources(
        ruler=_pvc("10Gi"),
        ingester=_pvc("10Gi"),
        compactor=_pvc("10Gi"),
        index_gateway=_pvc("10Gi"),
        wal_storage=_pvc("10Gi"),
    ),
    StackSize.ONE_X_EXTRA_SMALL: ComponentResources(
        querier=_req("1.5", "3Gi"),
        ruler=_req("1", "2Gi", "10Gi"),
        ingester=_req("2", "8Gi", "10Gi", 1),
        distributor=_req("1", "1Gi"),
        query_frontend=_req("1", "1Gi"),
        compactor=_req("1", "2Gi", "10Gi"),
        gateway=_req("500m", "500Mi"),
        index_gateway=_req("500m", "1Gi", "50Gi"),
        wal_storage=_pvc("150Gi"),
    ),
    StackSize.ONE_X_SMALL: ComponentResources(
        querier=_req("4", "4Gi"),
        ruler=_req("4", "8Gi", "10Gi"),
        ingester=_req("4", "20Gi", "10Gi", 1),
        distributor=_req("2", "2Gi"),
        query_frontend=_req("4", "2.5Gi"),
        compactor=_req("2", "4Gi", "10Gi"),
        gateway=_req("1", "1Gi"),
        index_gateway=_req("1", "2Gi", "50Gi"),
        wal_storage=_pvc("150Gi"),
    ),
    StackSize.ONE_X_MEDIUM: ComponentResources(
        querier=_req("6", "10Gi"),
        ruler=_req("8", "16Gi", "10Gi"),
        ingester=_req("6", "30Gi", "10Gi", 2),
        distributor=_req("2", "2Gi"),
        query_frontend=_req("4", "2.5Gi"),
        compactor=_req("2", "4Gi", "10Gi"),
        gateway=_req("1", "1Gi"),
        index_gateway=_req("1", "2Gi", "50Gi"),
        wal_storage=_pvc("150Gi"),
    ),
}


def _ingestion(rate: int = 4, burst: int = 6, streams: int = 0) -> IngestionLimits:
    return IngestionLimits(
        ingestion_rate=rate,
        ingestion_burst_size=burst,
        max_label_name_length=1024,
        max_label_value_length=2048,
        max_label_names_per_series=30,
        max_global_streams_per_tenant=streams,
        max_line_size=256000,
        per_stream_desired_rate=3,
        per_stream_rate_limit=5,
        per_stream_rate_limit_burst=15,
    )


def _query() -> QueryLimits:
    return QueryLimits(
        max_entries_limit_per_query=5000,
        max_chunks_per_query=2000000,
        max_query_series=500,
        query_timeout="3m",
        cardinality_limit=100000,
        max_volume_series=1000,
    )


def _replicas(**overrides: int) -> dict[str, int]:
    counts = dict.fromkeys(COMPONENTS, 2)
    counts["compactor"] = 1
    counts.update(overrides)
    return counts


_STACKS: dict[StackSize, StackSpec] = {
    StackSize.ONE_X_DEMO: StackSpec(
        size=StackSize.ONE_X_DEMO,
        replication_factor=1,
        ingestion_limits=_ingestion(),
        query_limits=_query(),
        replicas={**dict.fromkeys(COMPONENTS, 1), "gateway": 2},
    ),
    StackSize.ONE_X_EXTRA_SMALL: StackSpec(
        size=StackSize.ONE_X_EXTRA_SMALL,
        replication_factor=2,
        ingestion_limits=_ingestion(),
        query_limits=_query(),
        replicas=_replicas(),
    ),
    StackSize.ONE_X_SMALL: StackSpec(
        size=StackSize.ONE_X_SMALL,
        replication_factor=2,
        ingestion_limits=_ingestion(rate=15, burst=20, streams=10000),
        query_limits=_query(),
        replicas=_replicas(),
    ),
    StackSize.ONE_X_MEDIUM: StackSpec(
        size=StackSize.ONE_X_MEDIUM,
        replication_factor=2,
        ingestion_limits=_ingestion(rate=50, burst=20, streams=25000),
        query_limits=_query(),
        replicas=_replicas(ingester=3, querier=3),
    ),
}


def _size(size: StackSize | str) -> StackSize:
    try:
        return StackSize(size)
    except ValueError:
        raise ValueError(f"unknown stack size: {size}") from None


def resource_requirements(size: StackSize | str) -> ComponentResources:
    """Default resource requirements for a size; the result is a fresh copy."""
    return copy.deepcopy(_RESOURCES[_size(size)])


def stack_size_spec(size: StackSize | str) -> StackSpec:
    """Default stack configuration for a size; the result is a fresh copy."""
    return copy.deepcopy(_STACKS[_size(size)])