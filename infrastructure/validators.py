"""
Configuration validators.

Each function returns True for a valid config and raises ConfigurationError
otherwise. Validators never provision anything and never return False.
"""

import re

from infrastructure.config import (
    AURORA_POSTGRESQL,
    CACHE_NODE_TYPES,
    DATABASE_ENGINES,
    ENVIRONMENTS,
    LOG_RETENTION_DAYS,
    PRICE_CLASSES,
    POSTGRESQL,
    WAF_ACTIONS,
    WAF_SCOPES,
    BaseConfig,
    CacheConfig,
    CdnConfig,
    ComputeConfig,
    DatabaseConfig,
    MonitoringConfig,
    NetworkConfig,
    StorageConfig,
    WafConfig,
)
from infrastructure.errors import ConfigurationError


_BUCKET_NAME = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")


def validate_base_config(config: BaseConfig) -> bool:
    if not config.project_name or not config.project_name.strip():
        raise ConfigurationError("project_name", "Project name is required")
    if config.environment not in ENVIRONMENTS:
        raise ConfigurationError(
            "environment",
            "Invalid environment. Must be one of: production, staging, development",
        )
    return True


def validate_network_config(config: NetworkConfig) -> bool:
    validate_base_config(config)
    if config.max_azs not in (2, 3):
        raise ConfigurationError("max_azs", "maxAzs must be 2 or 3")
    if config.nat_gateways < 1:
        raise ConfigurationError("nat_gateways", "At least one NAT Gateway is required")
    if config.nat_gateways > config.max_azs:
        raise ConfigurationError(
            "nat_gateways", "Number of NAT Gateways cannot exceed number of AZs"
        )
    if not 16 <= config.subnet_cidr_mask <= 28:
        raise ConfigurationError("subnet_cidr_mask", "must be between 16 and 28")
    _validate_retention("flow_log_retention_days", config.flow_log_retention_days)
    return True


def validate_database_config(config: DatabaseConfig) -> bool:
    """
    Validate a database config, including its engine-specific fields.

    Fields that belong to the other engine variant are rejected rather than
    ignored.
    """
    validate_base_config(config)
    if config.engine not in DATABASE_ENGINES:
        raise ConfigurationError("engine", "Invalid database engine")
    if not config.database_name or not config.database_name.strip():
        raise ConfigurationError("database_name", "Database name is required")
    if not config.instance_class:
        raise ConfigurationError("instance_class", "Instance class is required")
    if not 1 <= config.backup.retention_days <= 35:
        raise ConfigurationError(
            "backup.retention_days", "Backup retention must be between 1 and 35 days"
        )

    if config.engine == POSTGRESQL:
        if config.instance_count != 1:
            raise ConfigurationError(
                "instance_count", "postgresql is a single instance; use aurora-postgresql"
            )
        if config.serverless is not None:
            raise ConfigurationError("serverless", "Serverless capacity requires aurora-postgresql")
        if config.replication is not None:
            raise ConfigurationError("replication", "Global replication requires aurora-postgresql")
        if config.storage is not None:
            if config.storage.allocated_gib < 20:
                raise ConfigurationError(
                    "storage.allocated_gib", "Allocated storage must be at least 20 GiB"
                )
            if config.storage.max_allocated_gib < config.storage.allocated_gib:
                raise ConfigurationError(
                    "storage.max_allocated_gib",
                    "Maximum storage cannot be less than allocated storage",
                )
    elif config.engine == AURORA_POSTGRESQL:
        if config.storage is not None:
            raise ConfigurationError("storage", "Aurora manages its own storage")
        if config.multi_az:
            raise ConfigurationError(
                "multi_az", "Aurora availability is set with instance_count"
            )
        if config.instance_count < 1:
            raise ConfigurationError("instance_count", "At least one instance is required")
        if config.serverless is not None:
            if config.serverless.min_capacity > config.serverless.max_capacity:
                raise ConfigurationError(
                    "serverless.min_capacity",
                    "Minimum capacity cannot be greater than maximum capacity",
                )
            if config.serverless.min_capacity < 0 or config.serverless.max_capacity > 256:
                raise ConfigurationError(
                    "serverless", "Capacity must be between 0 and 256 ACUs"
                )
            if config.serverless.auto_pause and config.serverless.min_capacity != 0:
                raise ConfigurationError(
                    "serverless.auto_pause", "Auto pause requires a minimum capacity of 0"
                )
        if config.replication is not None and config.replication.enable_global:
            if not config.replication.regions:
                raise ConfigurationError(
                    "replication.regions", "Global replication requires at least one region"
                )
    return True


def validate_cache_config(config: CacheConfig) -> bool:
    validate_base_config(config)
    if config.engine != "redis":
        raise ConfigurationError("engine", "Only redis is supported")
    if config.node_type not in CACHE_NODE_TYPES:
        raise ConfigurationError(
            "node_type", f"Node type must be one of: {', '.join(CACHE_NODE_TYPES)}"
        )
    if not config.version:
        raise ConfigurationError("version", "Engine version is required")
    if config.replication is not None:
        if config.replication.num_shards < 1 or config.replication.num_shards > 500:
            raise ConfigurationError(
                "replication.num_shards", "Number of shards must be between 1 and 500"
            )
        if not 0 <= config.replication.replicas_per_shard <= 5:
            raise ConfigurationError(
                "replication.replicas_per_shard", "Replicas per shard must be between 0 and 5"
            )
        if config.is_replicated and config.replication.replicas_per_shard < 1:
            raise ConfigurationError(
                "replication.replicas_per_shard",
                "Automatic failover requires at least one replica per shard",
            )
    return True


def validate_compute_config(config: ComputeConfig) -> bool:
    validate_base_config(config)
    if not 256 <= config.cpu <= 4096:
        raise ConfigurationError("cpu", "CPU units must be between 256 and 4096")
    if not 512 <= config.memory_mib <= 30720:
        raise ConfigurationError("memory_mib", "Memory must be between 512 and 30720")
    if config.min_capacity > config.max_capacity:
        raise ConfigurationError(
            "min_capacity", "Minimum capacity cannot be greater than maximum capacity"
        )
    if not config.service_name:
        raise ConfigurationError("service_name", "Service name is required")
    if not config.image:
        raise ConfigurationError("image", "Container image is required")
    if not 1 <= config.container_port <= 65535:
        raise ConfigurationError("container_port", "Port must be between 1 and 65535")

    scaling = config.scaling
    for name, target in (
        ("scaling.cpu_target_percent", scaling.cpu_target_percent),
        ("scaling.memory_target_percent", scaling.memory_target_percent),
    ):
        if target is not None and not 0 < target <= 100:
            raise ConfigurationError(name, "Target utilization must be between 1 and 100")
    if scaling.requests_per_target is not None and scaling.requests_per_target < 1:
        raise ConfigurationError(
            "scaling.requests_per_target", "Requests per target must be positive"
        )
    _validate_retention("log_retention_days", config.log_retention_days)
    return True


def validate_storage_config(config: StorageConfig) -> bool:
    validate_base_config(config)
    if config.bucket_name is not None:
        if not config.bucket_name.strip():
            raise ConfigurationError("bucket_name", "Bucket name is required")
        if not _BUCKET_NAME.match(config.bucket_name) or ".." in config.bucket_name:
            raise ConfigurationError(
                "bucket_name",
                "Bucket names use 3-63 lowercase letters, digits, dots and hyphens",
            )
    for rule in config.lifecycle_rules:
        if not rule.rule_id:
            raise ConfigurationError("lifecycle_rules", "Each lifecycle rule needs an id")
    return True


def validate_cdn_config(config: CdnConfig) -> bool:
    validate_base_config(config)
    if config.certificate_arn and not config.domain_names:
        raise ConfigurationError(
            "domain_names", "Domain names are required when a certificate is set"
        )
    if config.domain_names and not config.certificate_arn:
        raise ConfigurationError(
            "certificate_arn", "A certificate is required for custom domain names"
        )
    if config.price_class not in PRICE_CLASSES:
        raise ConfigurationError(
            "price_class", f"Price class must be one of: {', '.join(PRICE_CLASSES)}"
        )
    if config.enable_logging:
        _validate_retention("log_retention_days", config.log_retention_days)
    return True


def validate_waf_config(config: WafConfig) -> bool:
    validate_base_config(config)
    if not config.scope:
        raise ConfigurationError("scope", "WAF scope is required")
    if config.scope not in WAF_SCOPES:
        raise ConfigurationError("scope", "WAF scope must be REGIONAL or CLOUDFRONT")
    if config.default_action not in ("allow", "block"):
        raise ConfigurationError("default_action", "Default action must be allow or block")

    for rule in config.rules:
        if not rule.name or rule.priority is None or not rule.action:
            raise ConfigurationError(
                "rules", "Rule name, priority, and action are required for each WAF rule"
            )
        if rule.priority < 0:
            raise ConfigurationError(f"rules[{rule.name}].priority", "must not be negative")
        if rule.action not in WAF_ACTIONS:
            raise ConfigurationError(
                f"rules[{rule.name}].action", f"must be one of: {', '.join(WAF_ACTIONS)}"
            )

        is_managed = getattr(rule.statement, "kind", None) == "managed_rule_group"
        if is_managed and rule.action not in ("none", "count"):
            raise ConfigurationError(
                f"rules[{rule.name}].action", "Managed rule groups take none or count"
            )
        if not is_managed and rule.action == "none":
            raise ConfigurationError(
                f"rules[{rule.name}].action", "none is only valid for managed rule groups"
            )
        if rule.custom_response is not None:
            if rule.action != "block":
                raise ConfigurationError(
                    f"rules[{rule.name}].custom_response", "Custom responses require block"
                )
            key = rule.custom_response.body_key
            if key is not None and key not in config.custom_response_bodies:
                raise ConfigurationError(
                    f"rules[{rule.name}].custom_response",
                    f"Unknown response body '{key}'",
                )
    return True


def validate_monitoring_config(config: MonitoringConfig) -> bool:
    validate_base_config(config)
    if config.alarm_period_seconds < 10:
        raise ConfigurationError("alarm_period_seconds", "Alarm period must be at least 10 seconds")
    if config.evaluation_periods < 1:
        raise ConfigurationError("evaluation_periods", "At least one evaluation period is required")
    return True


def _validate_retention(field_name: str, days: int) -> None:
    if days not in LOG_RETENTION_DAYS:
        raise ConfigurationError(
            field_name,
            f"Retention must be one of: {', '.join(str(d) for d in LOG_RETENTION_DAYS)}",
        )
