"""
Scale tier parameter bundles.

A ``TierSettings`` bundle holds every value that differs between the small,
medium and large tiers. ``build_tier_configs`` turns a bundle and a
deployment context into the resource configs a ``TieredStack`` builds.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from infrastructure.config import (
    AURORA_POSTGRESQL,
    POSTGRESQL,
    WAF_CLOUDFRONT,
    WAF_REGIONAL,
    BackupPolicy,
    CacheConfig,
    CacheReplication,
    CdnConfig,
    ComputeConfig,
    DatabaseConfig,
    GlobalReplication,
    MonitoringConfig,
    NetworkConfig,
    RateBasedStatement,
    ScalingPolicy,
    ServerlessCapacity,
    StorageAllocation,
    StorageConfig,
    WafConfig,
    WafRule,
)
from infrastructure.context import LARGE, MEDIUM, SMALL, DeploymentContext
from infrastructure.errors import ConfigurationError
from infrastructure.validators import (
    validate_cache_config,
    validate_cdn_config,
    validate_compute_config,
    validate_database_config,
    validate_monitoring_config,
    validate_network_config,
    validate_storage_config,
    validate_waf_config,
)

DATABASE_NAME = "appdb"
CONTAINER_IMAGE = "nginx:latest"
CONTAINER_PORT = 80

RATE_LIMIT_RULE = WafRule(
    name="RateLimit",
    priority=0,
    action="block",
    statement=RateBasedStatement(limit=2000, aggregate_key_type="IP"),
)


@dataclass(frozen=True)
class TierSettings:
    """Per-tier parameters."""

    tier: str

    # Network
    max_azs: int
    nat_gateways: int
    include_isolated_subnets: bool

    # Database
    database_engine: str
    database_instance_class: str
    database_instance_count: int = 1
    database_storage: Optional[StorageAllocation] = None
    database_serverless: Optional[ServerlessCapacity] = None
    database_backup: BackupPolicy = field(default_factory=BackupPolicy)
    global_database: bool = False

    # Cache
    cache_node_type: str = "cache.t4g.micro"
    cache_replication: Optional[CacheReplication] = None
    cache_multi_az: bool = False

    # Compute
    cpu: int = 512
    memory_mib: int = 1024
    desired_count: int = 1
    min_capacity: int = 1
    max_capacity: int = 2
    scaling: ScalingPolicy = field(default_factory=ScalingPolicy)

    # Edge
    waf_scope: Optional[str] = None
    waf_rules: Tuple[WafRule, ...] = ()

    # Alarms
    alarm_period_seconds: Optional[int] = None

    @property
    def has_edge(self) -> bool:
        return self.waf_scope is not None

    @property
    def has_alarms(self) -> bool:
        return self.alarm_period_seconds is not None


SMALL_TIER = TierSettings(
    tier=SMALL,
    max_azs=2,
    nat_gateways=1,
    include_isolated_subnets=False,
    database_engine=POSTGRESQL,
    database_instance_class="db.t4g.small",
    database_storage=StorageAllocation(allocated_gib=20, max_allocated_gib=100),
    database_backup=BackupPolicy(retention_days=7),
    cache_node_type="cache.t4g.micro",
    cpu=512,
    memory_mib=1024,
    desired_count=1,
    min_capacity=1,
    max_capacity=2,
    scaling=ScalingPolicy(cpu_target_percent=70),
)

MEDIUM_TIER = TierSettings(
    tier=MEDIUM,
    max_azs=3,
    nat_gateways=2,
    include_isolated_subnets=True,
    database_engine=AURORA_POSTGRESQL,
    database_instance_class="db.serverless",
    database_instance_count=2,
    database_serverless=ServerlessCapacity(min_capacity=0.5, max_capacity=2.0),
    database_backup=BackupPolicy(retention_days=14),
    cache_node_type="cache.t4g.medium",
    cpu=1024,
    memory_mib=2048,
    desired_count=2,
    min_capacity=2,
    max_capacity=5,
    scaling=ScalingPolicy(cpu_target_percent=70, memory_target_percent=75),
    waf_scope=WAF_REGIONAL,
    alarm_period_seconds=300,
)

LARGE_TIER = TierSettings(
    tier=LARGE,
    max_azs=3,
    nat_gateways=3,
    include_isolated_subnets=True,
    database_engine=AURORA_POSTGRESQL,
    database_instance_class="db.r6g.large",
    database_instance_count=3,
    database_backup=BackupPolicy(retention_days=30, deletion_protection=True),
    global_database=True,
    cache_node_type="cache.r6g.large",
    cache_replication=CacheReplication(num_shards=3, replicas_per_shard=2),
    cache_multi_az=True,
    cpu=2048,
    memory_mib=4096,
    desired_count=10,
    min_capacity=10,
    max_capacity=50,
    scaling=ScalingPolicy(
        cpu_target_percent=70,
        memory_target_percent=75,
        requests_per_target=1000,
    ),
    waf_scope=WAF_CLOUDFRONT,
    waf_rules=(RATE_LIMIT_RULE,),
    alarm_period_seconds=60,
)

TIER_SETTINGS: Dict[str, TierSettings] = {
    SMALL: SMALL_TIER,
    MEDIUM: MEDIUM_TIER,
    LARGE: LARGE_TIER,
}


def get_tier_settings(tier: str) -> TierSettings:
    """
    Look up the parameter bundle for a tier.

    Raises:
        ConfigurationError: If the tier is unknown
    """
    if tier not in TIER_SETTINGS:
        raise ConfigurationError(
            "tier", f"Unknown tier '{tier}'. Available: {', '.join(TIER_SETTINGS)}"
        )
    return TIER_SETTINGS[tier]


@dataclass(frozen=True)
class TierConfigs:
    """Resource configs for one tiered deployment."""

    network: NetworkConfig
    storage: StorageConfig
    database: DatabaseConfig
    cache: CacheConfig
    compute: ComputeConfig
    waf: Optional[WafConfig] = None
    cdn: Optional[CdnConfig] = None
    monitoring: Optional[MonitoringConfig] = None

    def validate(self) -> bool:
        """Validate every config; raises ConfigurationError on the first failure."""
        validate_network_config(self.network)
        validate_storage_config(self.storage)
        validate_database_config(self.database)
        validate_cache_config(self.cache)
        validate_compute_config(self.compute)
        if self.waf is not None:
            validate_waf_config(self.waf)
        if self.cdn is not None:
            validate_cdn_config(self.cdn)
        if self.monitoring is not None:
            validate_monitoring_config(self.monitoring)
        return True


def build_tier_configs(context: DeploymentContext, settings: TierSettings) -> TierConfigs:
    """
    Build every resource config for a tier.

    Compute environment variables and secrets that depend on provisioned
    resources are filled in by the stack once those resources exist.
    """
    base = {
        "project_name": context.project_name,
        "environment": context.environment,
        "tags": dict(context.tags),
    }

    replication = None
    if settings.global_database:
        replication = GlobalReplication(
            enable_global=bool(context.secondary_regions),
            regions=tuple(context.secondary_regions),
        )

    waf = cdn = monitoring = None
    if settings.has_edge:
        waf = WafConfig(**base, scope=settings.waf_scope, rules=list(settings.waf_rules))
        cdn = CdnConfig(**base)
    if settings.has_alarms:
        monitoring = MonitoringConfig(**base, alarm_period_seconds=settings.alarm_period_seconds)

    return TierConfigs(
        network=NetworkConfig(
            **base,
            max_azs=settings.max_azs,
            nat_gateways=settings.nat_gateways,
            include_isolated_subnets=settings.include_isolated_subnets,
        ),
        storage=StorageConfig(**base),
        database=DatabaseConfig(
            **base,
            engine=settings.database_engine,
            instance_class=settings.database_instance_class,
            database_name=DATABASE_NAME,
            instance_count=settings.database_instance_count,
            storage=settings.database_storage,
            serverless=settings.database_serverless,
            replication=replication,
            backup=settings.database_backup,
        ),
        cache=CacheConfig(
            **base,
            node_type=settings.cache_node_type,
            multi_az=settings.cache_multi_az,
            replication=settings.cache_replication,
        ),
        compute=ComputeConfig(
            **base,
            service_name=f"{context.project_name}-{context.environment}",
            image=CONTAINER_IMAGE,
            cpu=settings.cpu,
            memory_mib=settings.memory_mib,
            desired_count=settings.desired_count,
            min_capacity=settings.min_capacity,
            max_capacity=settings.max_capacity,
            container_port=CONTAINER_PORT,
            scaling=settings.scaling,
        ),
        waf=waf,
        cdn=cdn,
        monitoring=monitoring,
    )
