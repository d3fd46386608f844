"""
Resource configuration types.

Every config is a frozen dataclass. Builders receive them fully formed and
never mutate them; use ``dataclasses.replace`` to derive a variant.
"""

from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional, Tuple

PRODUCTION = "production"
STAGING = "staging"
DEVELOPMENT = "development"
ENVIRONMENTS: Tuple[str, ...] = (PRODUCTION, STAGING, DEVELOPMENT)

POSTGRESQL = "postgresql"
AURORA_POSTGRESQL = "aurora-postgresql"
DATABASE_ENGINES: Tuple[str, ...] = (POSTGRESQL, AURORA_POSTGRESQL)

CACHE_NODE_TYPES: Tuple[str, ...] = (
    "cache.t3.micro",
    "cache.t3.small",
    "cache.t3.medium",
    "cache.t4g.micro",
    "cache.t4g.small",
    "cache.t4g.medium",
    "cache.m6g.large",
    "cache.m6g.xlarge",
    "cache.m6g.2xlarge",
    "cache.r6g.large",
    "cache.r6g.xlarge",
    "cache.r6g.2xlarge",
)

# Retention periods CloudWatch Logs accepts
LOG_RETENTION_DAYS: Tuple[int, ...] = (1, 3, 5, 7, 14, 30, 60, 90, 120, 150, 180, 365)

HEALTH_CHECK_PATH = "/health"

PRICE_CLASSES: Tuple[str, ...] = ("PriceClass_100", "PriceClass_200", "PriceClass_All")

WAF_REGIONAL = "REGIONAL"
WAF_CLOUDFRONT = "CLOUDFRONT"
WAF_SCOPES: Tuple[str, ...] = (WAF_REGIONAL, WAF_CLOUDFRONT)
WAF_ACTIONS: Tuple[str, ...] = ("allow", "block", "count", "none")


@dataclass(frozen=True, kw_only=True)
class BaseConfig:
    """Fields shared by every resource configuration."""

    project_name: str
    environment: str
    tags: Dict[str, str] = field(default_factory=dict)


# ============================================================================
# Network
# ============================================================================


@dataclass(frozen=True, kw_only=True)
class NetworkConfig(BaseConfig):
    max_azs: int = 2
    nat_gateways: int = 1
    vpc_name: Optional[str] = None
    cidr: str = "10.0.0.0/16"
    subnet_cidr_mask: int = 24
    include_isolated_subnets: bool = True
    flow_log_retention_days: int = 30


# ============================================================================
# Database
# ============================================================================


@dataclass(frozen=True)
class StorageAllocation:
    allocated_gib: int = 20
    max_allocated_gib: int = 100


@dataclass(frozen=True)
class BackupPolicy:
    retention_days: int = 7
    deletion_protection: bool = False


@dataclass(frozen=True)
class ServerlessCapacity:
    """Aurora Serverless v2 capacity range in ACUs."""

    min_capacity: float = 0.5
    max_capacity: float = 2.0
    auto_pause: bool = False


@dataclass(frozen=True)
class GlobalReplication:
    enable_global: bool = False
    regions: Tuple[str, ...] = ()


@dataclass(frozen=True, kw_only=True)
class DatabaseConfig(BaseConfig):
    """
    Relational database configuration.

    ``engine`` selects the variant:
    - "postgresql": single instance; uses ``multi_az`` and ``storage``
    - "aurora-postgresql": cluster; uses ``instance_count``, ``serverless``
      and ``replication``
    """

    engine: str
    instance_class: str
    database_name: str
    engine_version: str = "15.4"
    port: int = 5432
    username: str = "postgres"
    multi_az: bool = False
    storage: Optional[StorageAllocation] = None
    instance_count: int = 1
    serverless: Optional[ServerlessCapacity] = None
    replication: Optional[GlobalReplication] = None
    backup: BackupPolicy = field(default_factory=BackupPolicy)


# ============================================================================
# Cache
# ============================================================================


@dataclass(frozen=True)
class CacheReplication:
    num_shards: int = 1
    replicas_per_shard: int = 1


@dataclass(frozen=True, kw_only=True)
class CacheConfig(BaseConfig):
    node_type: str
    engine: str = "redis"
    version: str = "7.0"
    multi_az: bool = False
    replication: Optional[CacheReplication] = None
    parameter_overrides: Dict[str, str] = field(default_factory=dict)
    port: int = 6379
    snapshot_retention_days: Optional[int] = None

    @property
    def is_replicated(self) -> bool:
        """Whether this config requires a replicated topology."""
        if self.multi_az:
            return True
        if self.replication is None:
            return False
        return self.replication.num_shards > 1 or self.replication.replicas_per_shard > 1


# ============================================================================
# Compute
# ============================================================================


@dataclass(frozen=True)
class SecretReference:
    """A JSON field inside a Secrets Manager secret."""

    secret_arn: str
    field: str


@dataclass(frozen=True)
class ScalingPolicy:
    cpu_target_percent: int = 70
    memory_target_percent: Optional[int] = None
    requests_per_target: Optional[int] = None
    scale_in_cooldown_seconds: int = 60
    scale_out_cooldown_seconds: int = 60


@dataclass(frozen=True, kw_only=True)
class ComputeConfig(BaseConfig):
    service_name: str
    image: str
    cpu: int = 512
    memory_mib: int = 1024
    desired_count: int = 1
    min_capacity: int = 1
    max_capacity: int = 2
    container_port: int = 3000
    listener_port: int = 80
    environment_variables: Dict[str, str] = field(default_factory=dict)
    secrets: Dict[str, SecretReference] = field(default_factory=dict)
    scaling: ScalingPolicy = field(default_factory=ScalingPolicy)
    log_retention_days: int = 30


# ============================================================================
# Storage and CDN
# ============================================================================


@dataclass(frozen=True)
class LifecycleRule:
    rule_id: str
    prefix: Optional[str] = None
    expiration_days: Optional[int] = None
    transition_to_ia_days: Optional[int] = None
    transition_to_glacier_days: Optional[int] = None


@dataclass(frozen=True, kw_only=True)
class StorageConfig(BaseConfig):
    bucket_name: Optional[str] = None
    versioned: bool = True
    lifecycle_rules: List[LifecycleRule] = field(default_factory=list)
    cors_allowed_origins: List[str] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class CdnConfig(BaseConfig):
    enable_logging: bool = True
    log_retention_days: int = 30
    domain_names: List[str] = field(default_factory=list)
    certificate_arn: Optional[str] = None
    price_class: str = "PriceClass_100"
    comment: Optional[str] = None


# ============================================================================
# WAF
# ============================================================================


@dataclass(frozen=True)
class ManagedRuleGroupStatement:
    name: str
    vendor_name: str = "AWS"
    excluded_rules: Tuple[str, ...] = ()

    kind: ClassVar[str] = "managed_rule_group"


@dataclass(frozen=True)
class RateBasedStatement:
    limit: int
    aggregate_key_type: str = "IP"

    kind: ClassVar[str] = "rate_based"


@dataclass(frozen=True)
class GeoMatchStatement:
    country_codes: Tuple[str, ...]

    kind: ClassVar[str] = "geo_match"


@dataclass(frozen=True)
class IpSetReferenceStatement:
    arn: str

    kind: ClassVar[str] = "ip_set_reference"


@dataclass(frozen=True)
class CustomResponse:
    response_code: int
    body_key: Optional[str] = None


@dataclass(frozen=True)
class WafRule:
    """
    One web ACL rule.

    ``action`` is "allow", "block" or "count" for ordinary statements. For a
    managed rule group it is the override action, "none" or "count".
    """

    name: str
    priority: int
    action: str
    statement: object
    custom_response: Optional[CustomResponse] = None

    @property
    def metric_name(self) -> str:
        return f"{self.name}Metric"


def managed_rule(name: str, priority: int) -> WafRule:
    """Build a rule that applies an AWS managed rule group as-is."""
    return WafRule(
        name=name,
        priority=priority,
        action="none",
        statement=ManagedRuleGroupStatement(name=name),
    )


@dataclass(frozen=True, kw_only=True)
class WafConfig(BaseConfig):
    scope: str
    rules: List[WafRule] = field(default_factory=list)
    default_action: str = "allow"
    custom_response_bodies: Dict[str, str] = field(default_factory=dict)


# ============================================================================
# Monitoring
# ============================================================================


@dataclass(frozen=True, kw_only=True)
class MonitoringConfig(BaseConfig):
    alarm_period_seconds: int = 300
    evaluation_periods: int = 2
    cpu_threshold_percent: int = 85
    memory_threshold_percent: int = 85
    http_5xx_threshold: int = 10
    database_cpu_threshold_percent: int = 80
    notification_email: Optional[str] = None
