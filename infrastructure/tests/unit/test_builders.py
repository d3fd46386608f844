"""
Unit tests for resource builders.

Tests cover:
- Validation before any backend call
- Engine and replication driven shape selection
- Compute step ordering
- Tag merging and precedence
- WAF rule assembly and attachment rules
"""

import logging
from unittest.mock import Mock

import pytest

from infrastructure.backend.base import ProvisioningBackend
from infrastructure.builders import (
    CacheBuilder,
    CdnBuilder,
    ComputeBuilder,
    DatabaseBuilder,
    MonitoringBuilder,
    NetworkBuilder,
    StorageBuilder,
    WafBuilder,
    associate_with_load_balancer,
    attach_to_distribution,
    cache_environment,
    merge_tags,
)
from infrastructure.builders.waf import DEFAULT_MANAGED_RULE_GROUPS
from infrastructure.config import (
    AURORA_POSTGRESQL,
    POSTGRESQL,
    WAF_CLOUDFRONT,
    WAF_REGIONAL,
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
    StorageConfig,
    WafConfig,
    WafRule,
    managed_rule,
)
from infrastructure.errors import ConfigurationError, MissingDependencyError
from infrastructure.handles import CLUSTER, INSTANCE, REPLICATED, SINGLE_NODE


# ============================================================================
# Network
# ============================================================================


def test_network_builder_creates_vpc(backend, context, base):
    """Test that the network builder provisions and tags a VPC."""
    handle = NetworkBuilder(backend, NetworkConfig(**base), context).build()

    assert backend.calls == ["create_network", "tag"]
    assert handle.name == "acme-development-vpc"
    assert handle.nat_gateways == 1


def test_network_builder_subnets_per_tier(backend, context, base):
    """Test one subnet per AZ in each requested tier."""
    with_isolated = NetworkBuilder(
        backend, NetworkConfig(**base, max_azs=3, nat_gateways=2), context
    ).build()
    without_isolated = NetworkBuilder(
        backend, NetworkConfig(**base, include_isolated_subnets=False), context
    ).build()

    def subnet_count(handle):
        return sum(
            len(subnets)
            for subnets in (
                handle.public_subnet_ids,
                handle.private_subnet_ids,
                handle.isolated_subnet_ids,
            )
        )

    assert subnet_count(with_isolated) == 9
    assert subnet_count(without_isolated) == 4


def test_network_builder_rejects_nat_over_azs_without_provisioning(context, base):
    """Test that NAT > AZ fails validation before the backend is called."""
    backend = Mock(spec=ProvisioningBackend)
    builder = NetworkBuilder(backend, NetworkConfig(**base, max_azs=2, nat_gateways=3), context)

    with pytest.raises(ConfigurationError):
        builder.build()

    assert backend.mock_calls == []


# ============================================================================
# Database
# ============================================================================


def test_database_builder_postgresql_builds_instance(backend, context, base, network):
    """Test that postgresql produces a single instance."""
    config = DatabaseConfig(
        **base, engine=POSTGRESQL, instance_class="db.t4g.small", database_name="appdb"
    )

    handle = DatabaseBuilder(backend, config, context, network=network).build()

    assert handle.topology == INSTANCE
    assert "create_database_instance" in backend.calls
    assert "create_database_cluster" not in backend.calls


def test_database_builder_aurora_builds_cluster(backend, context, base, network):
    """Test that aurora-postgresql produces a cluster with the requested instances."""
    config = DatabaseConfig(
        **base,
        engine=AURORA_POSTGRESQL,
        instance_class="db.serverless",
        database_name="appdb",
        instance_count=2,
        serverless=ServerlessCapacity(min_capacity=0.5, max_capacity=2),
    )

    handle = DatabaseBuilder(backend, config, context, network=network).build()

    assert handle.topology == CLUSTER
    assert handle.instance_count == 2
    assert handle.serverless is True
    assert handle.global_cluster_id is None


def test_database_builder_global_cluster_tags(backend, context, base, network):
    """Test that global replication sets the global id and region tags."""
    config = DatabaseConfig(
        **base,
        engine=AURORA_POSTGRESQL,
        instance_class="db.r6g.large",
        database_name="appdb",
        instance_count=3,
        replication=GlobalReplication(enable_global=True, regions=("us-west-2", "eu-west-1")),
    )

    handle = DatabaseBuilder(backend, config, context, network=network).build()

    assert handle.global_cluster_id == "acme-global"
    assert handle.tags["GlobalClusterId"] == "acme-global"
    assert handle.tags["SecondaryRegion0"] == "us-west-2"
    assert handle.tags["SecondaryRegion1"] == "eu-west-1"


def test_database_builder_empty_name_makes_no_backend_calls(context, base, network):
    """Test that an empty database name fails before any provisioning."""
    backend = Mock(spec=ProvisioningBackend)
    config = DatabaseConfig(
        **base, engine=POSTGRESQL, instance_class="db.t4g.small", database_name=""
    )

    with pytest.raises(ConfigurationError, match="Database name is required"):
        DatabaseBuilder(backend, config, context, network=network).build()

    assert backend.mock_calls == []


def test_database_builder_requires_network(backend, context, base):
    """Test that a missing network is reported as a missing dependency."""
    config = DatabaseConfig(
        **base, engine=POSTGRESQL, instance_class="db.t4g.small", database_name="appdb"
    )

    with pytest.raises(MissingDependencyError, match="network"):
        DatabaseBuilder(backend, config, context).build()

    assert backend.calls == []


# ============================================================================
# Cache
# ============================================================================


def test_cache_builder_single_node(backend, context, base, network):
    """Test that a plain config builds a single node."""
    handle = CacheBuilder(
        backend, CacheConfig(**base, node_type="cache.t4g.micro"), context, network=network
    ).build()

    assert handle.topology == SINGLE_NODE
    assert backend.calls[0] == "create_cache_node"
    assert cache_environment(handle) == {
        "REDIS_URL": f"redis://{handle.endpoint_address}:6379",
    }


def test_cache_builder_multi_az_is_replicated(backend, context, base, network):
    """Test that multi-AZ always yields failover and multi-AZ flags."""
    config = CacheConfig(**base, node_type="cache.t4g.medium", multi_az=True)

    handle = CacheBuilder(backend, config, context, network=network).build()

    assert handle.topology == REPLICATED
    assert handle.automatic_failover is True
    assert handle.multi_az is True
    assert handle.num_shards == 1
    assert handle.replicas_per_shard == 1


def test_cache_builder_sharded_replication_group(backend, context, base, network):
    """Test 3 shards x 2 replicas."""
    config = CacheConfig(
        **base,
        node_type="cache.r6g.large",
        multi_az=True,
        replication=CacheReplication(num_shards=3, replicas_per_shard=2),
    )

    handle = CacheBuilder(backend, config, context, network=network).build()

    assert handle.topology == REPLICATED
    assert handle.num_shards == 3
    assert handle.replicas_per_shard == 2
    assert handle.cluster_mode_enabled is True
    assert cache_environment(handle)["REDIS_CLUSTER_MODE"] == "true"


def test_cache_builder_multiple_replicas_without_multi_az(backend, context, base, network):
    """Test that replicas > 1 alone forces a replicated topology."""
    config = CacheConfig(
        **base,
        node_type="cache.t4g.small",
        replication=CacheReplication(num_shards=1, replicas_per_shard=2),
    )

    handle = CacheBuilder(backend, config, context, network=network).build()

    assert handle.topology == REPLICATED
    assert handle.cluster_mode_enabled is False


# ============================================================================
# Compute
# ============================================================================


def test_compute_builder_step_order(backend, context, base, network):
    """Test that compute steps run in dependency order."""
    config = ComputeConfig(**base, service_name="web", image="nginx:latest")

    ComputeBuilder(backend, config, context, network=network).build()

    assert backend.calls == [
        "create_container_cluster",
        "create_task_definition",
        "create_load_balancer",
        "create_target_group",
        "create_service",
        "create_listener",
        "configure_autoscaling",
        "tag",
    ]


def test_compute_builder_stops_on_failed_step(context, base, network):
    """Test that a failing step stops the remaining steps."""
    backend = Mock(spec=ProvisioningBackend)
    backend.create_load_balancer.side_effect = RuntimeError("quota exceeded")
    config = ComputeConfig(**base, service_name="web", image="nginx:latest")

    with pytest.raises(RuntimeError):
        ComputeBuilder(backend, config, context, network=network).build()

    backend.create_target_group.assert_not_called()
    backend.create_service.assert_not_called()
    backend.tag.assert_not_called()


def test_compute_builder_scaling_policies(backend, context, base, network):
    """Test that each configured target adds a scaling policy."""
    config = ComputeConfig(
        **base,
        service_name="web",
        image="nginx:latest",
        min_capacity=10,
        max_capacity=50,
        scaling=ScalingPolicy(memory_target_percent=75, requests_per_target=1000),
    )

    handle = ComputeBuilder(backend, config, context, network=network).build()

    assert handle.scaling.min_capacity == 10
    assert handle.scaling.max_capacity == 50
    assert handle.scaling.policies == [
        "CPUUtilization",
        "MemoryUtilization",
        "RequestCountPerTarget",
    ]


# ============================================================================
# Tags
# ============================================================================


def test_default_tags_applied(backend, context, base):
    """Test that every resource gets the default tags."""
    handle = StorageBuilder(backend, StorageConfig(**base), context).build()

    assert handle.tags == {
        "Project": "acme",
        "Environment": "development",
        "CreatedBy": "cdk",
        "CreatedAt": "2024-05-01",
    }
    assert backend.tags[handle.name] == handle.tags


def test_custom_tags_override_defaults(backend, context):
    """Test that caller tags win over defaults on collision."""
    config = StorageConfig(
        project_name="acme",
        environment="development",
        tags={"Environment": "sandbox", "Owner": "platform"},
    )

    handle = StorageBuilder(backend, config, context).build()

    assert handle.tags["Environment"] == "sandbox"
    assert handle.tags["Owner"] == "platform"
    assert handle.tags["Project"] == "acme"


def test_merge_tags_later_sets_win():
    """Test merge order."""
    assert merge_tags({"a": "1", "b": "1"}, None, {"b": "2"}) == {"a": "1", "b": "2"}


# ============================================================================
# WAF and CDN
# ============================================================================


RATE_LIMIT = WafRule(
    name="RateLimit",
    priority=0,
    action="block",
    statement=RateBasedStatement(limit=2000),
)


def test_waf_builder_appends_managed_groups(backend, context, base):
    """Test that managed groups follow the caller rules in priority order."""
    builder = WafBuilder(backend, WafConfig(**base, scope=WAF_REGIONAL, rules=[RATE_LIMIT]), context)

    rules = builder.rules()

    assert [rule.name for rule in rules] == ["RateLimit", *DEFAULT_MANAGED_RULE_GROUPS]
    assert [rule.priority for rule in rules] == [0, 1, 2]


def test_waf_builder_keeps_duplicate_managed_rule(backend, context, base, caplog):
    """Test that a caller rule duplicating a managed group is kept and logged."""
    duplicate = managed_rule("AWSManagedRulesCommonRuleSet", 5)
    config = WafConfig(**base, scope=WAF_REGIONAL, rules=[duplicate])

    with caplog.at_level(logging.WARNING):
        handle = WafBuilder(backend, config, context).build()

    assert handle.rule_names.count("AWSManagedRulesCommonRuleSet") == 2
    assert "AWSManagedRulesCommonRuleSet" in caplog.text


def test_regional_waf_associates_with_load_balancer(backend, context, base, compute):
    """Test that a REGIONAL ACL attaches to the load balancer once."""
    waf = WafBuilder(backend, WafConfig(**base, scope=WAF_REGIONAL), context).build()

    attached = associate_with_load_balancer(backend, waf, compute)

    assert attached.associated_resource_arn == compute.load_balancer.load_balancer_arn
    assert backend.associations == [
        (waf.web_acl_arn, compute.load_balancer.load_balancer_arn)
    ]
    with pytest.raises(ConfigurationError, match="already attached"):
        associate_with_load_balancer(backend, attached, compute)


def test_cloudfront_waf_cannot_attach_to_load_balancer(backend, context, base, compute):
    """Test scope enforcement for load balancer association."""
    waf = WafBuilder(backend, WafConfig(**base, scope=WAF_CLOUDFRONT), context).build()

    with pytest.raises(ConfigurationError, match="REGIONAL"):
        associate_with_load_balancer(backend, waf, compute)


def test_cdn_builder_attaches_cloudfront_waf(backend, context, base, storage):
    """Test that a CLOUDFRONT ACL is attached to the distribution."""
    waf = WafBuilder(
        backend, WafConfig(**base, scope=WAF_CLOUDFRONT, rules=[RATE_LIMIT]), context
    ).build()

    cdn = CdnBuilder(backend, CdnConfig(**base), context, storage=storage, web_acl=waf).build()
    attached = attach_to_distribution(waf, cdn)

    assert cdn.web_acl_arn == waf.web_acl_arn
    assert attached.associated_resource_arn == cdn.distribution_arn


def test_cdn_builder_rejects_regional_waf(backend, context, base, storage):
    """Test that a REGIONAL ACL cannot front a distribution."""
    waf = WafBuilder(backend, WafConfig(**base, scope=WAF_REGIONAL), context).build()
    backend.calls.clear()

    with pytest.raises(ConfigurationError, match="CLOUDFRONT"):
        CdnBuilder(backend, CdnConfig(**base), context, storage=storage, web_acl=waf).build()

    assert "create_distribution" not in backend.calls


def test_cdn_builder_requires_storage(backend, context, base):
    """Test that the distribution needs an origin bucket."""
    with pytest.raises(MissingDependencyError, match="storage"):
        CdnBuilder(backend, CdnConfig(**base), context).build()


# ============================================================================
# Monitoring
# ============================================================================


def test_monitoring_builder_creates_alarms(backend, context, base, compute):
    """Test alarm creation with and without a database."""
    handle = MonitoringBuilder(
        backend, MonitoringConfig(**base, alarm_period_seconds=60), context, compute=compute
    ).build()

    assert handle.name == "acme-development-alarms"
    assert len(handle.alarm_names) == 3


def test_monitoring_builder_requires_compute(backend, context, base):
    """Test that alarms need a compute unit."""
    with pytest.raises(MissingDependencyError, match="compute"):
        MonitoringBuilder(backend, MonitoringConfig(**base), context).build()
