"""
Resource handles returned by a provisioning backend.

A handle carries the identity of a provisioned resource (ids, ARNs,
endpoints) plus an opaque ``resource`` owned by the backend. Handles are
frozen; builders attach the final tag set with ``dataclasses.replace``.

Database and cache handles come in two shapes each. Consumers branch on the
``topology`` field rather than on the class.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

INSTANCE = "instance"
CLUSTER = "cluster"
SINGLE_NODE = "single-node"
REPLICATED = "replicated"


@dataclass(frozen=True)
class NetworkHandle:
    name: str
    resource: Any
    vpc_id: str
    cidr: str
    availability_zones: List[str]
    public_subnet_ids: List[str]
    private_subnet_ids: List[str]
    isolated_subnet_ids: List[str]
    nat_gateways: int
    flow_log_group_name: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DatabaseInstanceHandle:
    name: str
    resource: Any
    identifier: str
    endpoint_address: str
    port: int
    engine: str
    engine_version: str
    database_name: str
    instance_class: str
    username: str
    secret_arn: Optional[str]
    multi_az: bool
    tags: Dict[str, str] = field(default_factory=dict)
    topology: str = INSTANCE


@dataclass(frozen=True)
class DatabaseClusterHandle:
    name: str
    resource: Any
    identifier: str
    endpoint_address: str
    reader_endpoint_address: str
    port: int
    engine: str
    engine_version: str
    database_name: str
    instance_class: Optional[str]
    username: str
    secret_arn: Optional[str]
    instance_count: int
    serverless: bool
    global_cluster_id: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)
    topology: str = CLUSTER


DatabaseHandle = Union[DatabaseInstanceHandle, DatabaseClusterHandle]


@dataclass(frozen=True)
class CacheNodeHandle:
    name: str
    resource: Any
    cluster_id: str
    endpoint_address: str
    port: Any
    node_type: str
    engine_version: str
    security_group_id: Optional[str] = None
    num_nodes: int = 1
    tags: Dict[str, str] = field(default_factory=dict)
    topology: str = SINGLE_NODE


@dataclass(frozen=True)
class ReplicationGroupHandle:
    """
    Replicated cache.

    ``endpoint_address`` is the configuration endpoint when cluster mode is
    enabled (more than one shard) and the primary endpoint otherwise.
    """

    name: str
    resource: Any
    replication_group_id: str
    endpoint_address: str
    port: Any
    node_type: str
    engine_version: str
    num_shards: int
    replicas_per_shard: int
    cluster_mode_enabled: bool
    security_group_id: Optional[str] = None
    automatic_failover: bool = True
    multi_az: bool = True
    tags: Dict[str, str] = field(default_factory=dict)
    topology: str = REPLICATED


CacheHandle = Union[CacheNodeHandle, ReplicationGroupHandle]


@dataclass(frozen=True)
class StorageHandle:
    name: str
    resource: Any
    bucket_name: str
    bucket_arn: str
    domain_name: str
    regional_domain_name: str
    tags: Dict[str, str] = field(default_factory=dict)


# ============================================================================
# Compute parts, created in order by ComputeBuilder
# ============================================================================


@dataclass(frozen=True)
class ClusterHandle:
    resource: Any
    cluster_name: str
    cluster_arn: str


@dataclass(frozen=True)
class TaskDefinitionHandle:
    resource: Any
    task_definition_arn: str
    container_name: str
    log_group_name: str
    cpu: int
    memory_mib: int


@dataclass(frozen=True)
class LoadBalancerHandle:
    resource: Any
    load_balancer_arn: str
    dns_name: str
    full_name: str


@dataclass(frozen=True)
class TargetGroupHandle:
    resource: Any
    target_group_arn: str
    full_name: str
    health_check_path: str


@dataclass(frozen=True)
class ServiceHandle:
    resource: Any
    service_name: str
    service_arn: str
    desired_count: int


@dataclass(frozen=True)
class ListenerHandle:
    resource: Any
    listener_arn: str
    port: int


@dataclass(frozen=True)
class ScalingHandle:
    resource: Any
    min_capacity: int
    max_capacity: int
    policies: List[str]


@dataclass(frozen=True)
class ComputeHandle:
    name: str
    cluster: ClusterHandle
    task_definition: TaskDefinitionHandle
    load_balancer: LoadBalancerHandle
    target_group: TargetGroupHandle
    service: ServiceHandle
    listener: ListenerHandle
    scaling: ScalingHandle
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class WafHandle:
    name: str
    resource: Any
    web_acl_arn: str
    web_acl_id: str
    scope: str
    rule_names: List[str]
    associated_resource_arn: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CdnHandle:
    name: str
    resource: Any
    distribution_id: str
    distribution_arn: str
    domain_name: str
    web_acl_arn: Optional[str] = None
    log_bucket_name: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class MonitoringHandle:
    name: str
    resource: Any
    topic_arn: str
    alarm_names: List[str]
    tags: Dict[str, str] = field(default_factory=dict)
