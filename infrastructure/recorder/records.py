"""
Typed resource records.

Each resource category has its own properties dataclass. Output files use
camelCase keys (``endpointAddress``) so they stay compatible with tools that
read the JSON dump.
"""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ResourceType(str, Enum):
    VPC = "VPC"
    RDS = "RDS"
    AURORA = "Aurora"
    CACHE = "ElastiCache"
    STORAGE = "S3"
    COMPUTE = "ECS"
    CDN = "CloudFront"
    WAF = "WAF"
    MONITORING = "CloudWatch"


def camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def properties_to_dict(properties: Any) -> Dict[str, Any]:
    """Convert a properties dataclass to a camelCase dict."""
    return {
        camel_case(item.name): getattr(properties, item.name)
        for item in dataclasses.fields(properties)
    }


@dataclass(frozen=True)
class VpcProperties:
    vpc_id: Any
    vpc_cidr: Any
    availability_zones: List[Any]
    public_subnets: List[Any]
    private_subnets: List[Any]
    isolated_subnets: List[Any]
    nat_gateways: int
    flow_log_group: Any = None


@dataclass(frozen=True)
class DatabaseProperties:
    identifier: Any
    endpoint_address: Any
    port: Any
    engine: str
    engine_version: str
    database_name: str
    username: str
    secret_arn: Any = None
    instance_class: Optional[str] = None
    multi_az: Optional[bool] = None
    reader_endpoint_address: Any = None
    instance_count: int = 1
    serverless: bool = False
    global_cluster_id: Optional[str] = None
    password: Optional[str] = None


@dataclass(frozen=True)
class CacheProperties:
    topology: str
    cache_id: Any
    endpoint_address: Any
    port: Any
    node_type: str
    engine_version: str
    num_shards: int = 1
    replicas_per_shard: int = 0
    automatic_failover_enabled: bool = False
    multi_az_enabled: bool = False
    cluster_mode_enabled: bool = False


@dataclass(frozen=True)
class StorageProperties:
    bucket_name: Any
    bucket_arn: Any = None
    bucket_domain_name: Any = None
    bucket_regional_domain_name: Any = None


@dataclass(frozen=True)
class ComputeProperties:
    cluster_name: Any
    cluster_arn: Any
    service_name: Any
    service_arn: Any
    task_definition_arn: Any
    container_name: str
    cpu: int
    memory: int
    desired_count: int
    min_capacity: int
    max_capacity: int
    scaling_policies: List[str]
    load_balancer_arn: Any
    load_balancer_dns: Any
    target_group_arn: Any
    health_check_path: str
    listener_port: int
    log_group_name: Any


# Compute fields that belong in the "load_balancer" summary section
LOAD_BALANCER_FIELDS = {
    "loadBalancerArn": "arn",
    "loadBalancerDns": "dnsName",
    "targetGroupArn": "targetGroupArn",
    "healthCheckPath": "healthCheckPath",
    "listenerPort": "listenerPort",
}


@dataclass(frozen=True)
class CdnProperties:
    distribution_id: Any
    distribution_arn: Any
    domain_name: Any
    web_acl_arn: Any = None
    log_bucket_name: Any = None


@dataclass(frozen=True)
class WafProperties:
    web_acl_arn: Any
    web_acl_id: Any
    scope: str
    rules: List[str]
    associated_resource_arn: Any = None


@dataclass(frozen=True)
class MonitoringProperties:
    alarm_topic_arn: Any
    alarm_names: List[str]


@dataclass(frozen=True)
class ResourceRecord:
    resource_type: ResourceType
    resource_id: str
    physical_id: Any
    properties: Any
    tags: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resourceType": self.resource_type.value,
            "resourceId": self.resource_id,
            "physicalId": self.physical_id,
            "properties": properties_to_dict(self.properties),
            "tags": dict(self.tags),
        }
