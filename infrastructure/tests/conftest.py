"""
Shared pytest fixtures for infrastructure tests.

Provides:
- A fixed deployment context
- A fake provisioning backend that records every call
- Ready-made handles for builders that depend on upstream resources
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

import pytest

from infrastructure.backend.base import ProvisioningBackend
from infrastructure.builders import ComputeBuilder
from infrastructure.config import ComputeConfig, NetworkConfig, StorageConfig
from infrastructure.context import DeploymentContext
from infrastructure.handles import (
    CdnHandle,
    CacheNodeHandle,
    ClusterHandle,
    ComputeHandle,
    DatabaseClusterHandle,
    DatabaseInstanceHandle,
    ListenerHandle,
    LoadBalancerHandle,
    MonitoringHandle,
    NetworkHandle,
    ReplicationGroupHandle,
    ScalingHandle,
    ServiceHandle,
    StorageHandle,
    TargetGroupHandle,
    TaskDefinitionHandle,
    WafHandle,
)

TEST_PROJECT = "acme"
TEST_ENVIRONMENT = "development"
TEST_REGION = "us-east-1"
TEST_ACCOUNT = "123456789012"
TEST_TIMESTAMP = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)


class FakeBackend(ProvisioningBackend):
    """
    Backend that returns deterministic handles and records calls.

    ``calls`` holds the method names in call order; ``tags`` maps a handle
    name to the last tag set applied to it.
    """

    def __init__(self):
        self.calls: List[str] = []
        self.tags: Dict[str, Dict[str, str]] = {}
        self.associations: List[tuple] = []
        self.web_acl_rules: List[Any] = []

    def create_network(self, name, config):
        self.calls.append("create_network")
        azs = [f"{TEST_REGION}{letter}" for letter in "abc"[: config.max_azs]]
        isolated = (
            [f"subnet-isolated-{i}" for i in range(config.max_azs)]
            if config.include_isolated_subnets
            else []
        )
        return NetworkHandle(
            name=name,
            resource=None,
            vpc_id="vpc-0123",
            cidr=config.cidr,
            availability_zones=azs,
            public_subnet_ids=[f"subnet-public-{i}" for i in range(config.max_azs)],
            private_subnet_ids=[f"subnet-private-{i}" for i in range(config.max_azs)],
            isolated_subnet_ids=isolated,
            nat_gateways=config.nat_gateways,
            flow_log_group_name=f"/aws/vpc/{name}",
        )

    def create_database_instance(self, name, config, network):
        self.calls.append("create_database_instance")
        return DatabaseInstanceHandle(
            name=name,
            resource=None,
            identifier=name,
            endpoint_address=f"{name}.abc.{TEST_REGION}.rds.amazonaws.com",
            port=config.port,
            engine=config.engine,
            engine_version=config.engine_version,
            database_name=config.database_name,
            instance_class=config.instance_class,
            username=config.username,
            secret_arn=f"arn:aws:secretsmanager:{TEST_REGION}:{TEST_ACCOUNT}:secret:{name}",
            multi_az=config.multi_az,
        )

    def create_database_cluster(self, name, config, network, global_cluster_id=None):
        self.calls.append("create_database_cluster")
        return DatabaseClusterHandle(
            name=name,
            resource=None,
            identifier=name,
            endpoint_address=f"{name}.cluster-abc.{TEST_REGION}.rds.amazonaws.com",
            reader_endpoint_address=f"{name}.cluster-ro-abc.{TEST_REGION}.rds.amazonaws.com",
            port=config.port,
            engine=config.engine,
            engine_version=config.engine_version,
            database_name=config.database_name,
            instance_class=None if config.serverless else config.instance_class,
            username=config.username,
            secret_arn=f"arn:aws:secretsmanager:{TEST_REGION}:{TEST_ACCOUNT}:secret:{name}",
            instance_count=config.instance_count,
            serverless=config.serverless is not None,
            global_cluster_id=global_cluster_id,
        )

    def create_cache_node(self, name, config, network):
        self.calls.append("create_cache_node")
        return CacheNodeHandle(
            name=name,
            resource=None,
            cluster_id=name,
            endpoint_address=f"{name}.cache.amazonaws.com",
            port=config.port,
            node_type=config.node_type,
            engine_version=config.version,
        )

    def create_replication_group(self, name, config, network, num_shards, replicas_per_shard):
        self.calls.append("create_replication_group")
        return ReplicationGroupHandle(
            name=name,
            resource=None,
            replication_group_id=name,
            endpoint_address=f"clustercfg.{name}.cache.amazonaws.com",
            port=config.port,
            node_type=config.node_type,
            engine_version=config.version,
            num_shards=num_shards,
            replicas_per_shard=replicas_per_shard,
            cluster_mode_enabled=num_shards > 1,
        )

    def create_bucket(self, name, config):
        self.calls.append("create_bucket")
        bucket_name = config.bucket_name or f"{name}-bucket"
        return StorageHandle(
            name=name,
            resource=None,
            bucket_name=bucket_name,
            bucket_arn=f"arn:aws:s3:::{bucket_name}",
            domain_name=f"{bucket_name}.s3.amazonaws.com",
            regional_domain_name=f"{bucket_name}.s3.{TEST_REGION}.amazonaws.com",
        )

    def create_container_cluster(self, name, config, network):
        self.calls.append("create_container_cluster")
        return ClusterHandle(
            resource=None,
            cluster_name=name,
            cluster_arn=f"arn:aws:ecs:{TEST_REGION}:{TEST_ACCOUNT}:cluster/{name}",
        )

    def create_task_definition(self, name, config):
        self.calls.append("create_task_definition")
        return TaskDefinitionHandle(
            resource=None,
            task_definition_arn=f"arn:aws:ecs:{TEST_REGION}:{TEST_ACCOUNT}:task-definition/{name}:1",
            container_name=config.service_name,
            log_group_name=f"/ecs/{name}",
            cpu=config.cpu,
            memory_mib=config.memory_mib,
        )

    def create_load_balancer(self, name, config, network):
        self.calls.append("create_load_balancer")
        return LoadBalancerHandle(
            resource=None,
            load_balancer_arn=f"arn:aws:elasticloadbalancing:{TEST_REGION}:{TEST_ACCOUNT}:loadbalancer/app/{name}/1",
            dns_name=f"{name}-1.{TEST_REGION}.elb.amazonaws.com",
            full_name=f"app/{name}/1",
        )

    def create_target_group(self, name, config, network):
        self.calls.append("create_target_group")
        return TargetGroupHandle(
            resource=None,
            target_group_arn=f"arn:aws:elasticloadbalancing:{TEST_REGION}:{TEST_ACCOUNT}:targetgroup/{name}/1",
            full_name=f"targetgroup/{name}/1",
            health_check_path="/health",
        )

    def create_service(self, name, config, network, cluster, task_definition, target_group):
        self.calls.append("create_service")
        return ServiceHandle(
            resource=None,
            service_name=config.service_name,
            service_arn=f"arn:aws:ecs:{TEST_REGION}:{TEST_ACCOUNT}:service/{name}/{config.service_name}",
            desired_count=config.desired_count,
        )

    def create_listener(self, name, config, load_balancer, target_group):
        self.calls.append("create_listener")
        return ListenerHandle(
            resource=None,
            listener_arn=f"{load_balancer.load_balancer_arn}/listener",
            port=config.listener_port,
        )

    def configure_autoscaling(self, name, config, service, target_group):
        self.calls.append("configure_autoscaling")
        policies = ["CPUUtilization"]
        if config.scaling.memory_target_percent is not None:
            policies.append("MemoryUtilization")
        if config.scaling.requests_per_target is not None:
            policies.append("RequestCountPerTarget")
        return ScalingHandle(
            resource=None,
            min_capacity=config.min_capacity,
            max_capacity=config.max_capacity,
            policies=policies,
        )

    def create_distribution(self, name, config, storage, web_acl=None):
        self.calls.append("create_distribution")
        return CdnHandle(
            name=name,
            resource=None,
            distribution_id="E123EXAMPLE",
            distribution_arn=f"arn:aws:cloudfront::{TEST_ACCOUNT}:distribution/E123EXAMPLE",
            domain_name="d123.cloudfront.net",
            web_acl_arn=web_acl.web_acl_arn if web_acl else None,
        )

    def create_web_acl(self, name, config, rules):
        self.calls.append("create_web_acl")
        self.web_acl_rules = list(rules)
        return WafHandle(
            name=name,
            resource=None,
            web_acl_arn=f"arn:aws:wafv2:{TEST_REGION}:{TEST_ACCOUNT}:webacl/{name}/1",
            web_acl_id="1",
            scope=config.scope,
            rule_names=[rule.name for rule in rules],
        )

    def associate_web_acl(self, name, web_acl, resource_arn):
        self.calls.append("associate_web_acl")
        self.associations.append((web_acl.web_acl_arn, resource_arn))

    def create_alarms(self, name, config, compute, database=None):
        self.calls.append("create_alarms")
        alarms = [f"{name}-service-cpu", f"{name}-service-memory", f"{name}-target-5xx"]
        if database is not None:
            alarms.append(f"{name}-database-cpu")
        return MonitoringHandle(
            name=name,
            resource=None,
            topic_arn=f"arn:aws:sns:{TEST_REGION}:{TEST_ACCOUNT}:{name}",
            alarm_names=alarms,
        )

    def tag(self, handle: Any, tags: Dict[str, str]) -> None:
        self.calls.append("tag")
        self.tags[handle.name] = dict(tags)


@pytest.fixture
def context() -> DeploymentContext:
    """Deployment context with a fixed timestamp."""
    return DeploymentContext(
        project_name=TEST_PROJECT,
        environment=TEST_ENVIRONMENT,
        tier="small",
        region=TEST_REGION,
        account=TEST_ACCOUNT,
        timestamp=TEST_TIMESTAMP,
    )


@pytest.fixture
def base() -> Dict[str, Any]:
    """Common config fields."""
    return {"project_name": TEST_PROJECT, "environment": TEST_ENVIRONMENT}


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def network(backend) -> NetworkHandle:
    config = NetworkConfig(project_name=TEST_PROJECT, environment=TEST_ENVIRONMENT)
    handle = backend.create_network("acme-development-vpc", config)
    backend.calls.clear()
    return handle


@pytest.fixture
def compute(backend, network, context) -> ComputeHandle:
    config = ComputeConfig(
        project_name=TEST_PROJECT,
        environment=TEST_ENVIRONMENT,
        service_name="web",
        image="nginx:latest",
    )
    handle = ComputeBuilder(backend, config, context, network=network).build()
    backend.calls.clear()
    return handle


@pytest.fixture
def storage(backend) -> StorageHandle:
    config = StorageConfig(project_name=TEST_PROJECT, environment=TEST_ENVIRONMENT)
    handle = backend.create_bucket("acme-development-assets", config)
    backend.calls.clear()
    return handle
