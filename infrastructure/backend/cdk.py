"""
AWS CDK provisioning backend.

Every resource group is created under its own construct, named by the
generated resource name, so tagging that construct tags everything in the
group (security groups, secrets, log groups included).
"""

import logging
from typing import Any, Dict, List, Optional

from aws_cdk import (
    ArnFormat,
    Duration,
    RemovalPolicy,
    Stack,
    Tags,
    aws_certificatemanager as acm,
    aws_cloudfront as cloudfront,
    aws_cloudfront_origins as origins,
    aws_cloudwatch as cloudwatch,
    aws_cloudwatch_actions as cw_actions,
    aws_ec2 as ec2,
    aws_ecs as ecs,
    aws_elasticache as elasticache,
    aws_elasticloadbalancingv2 as elbv2,
    aws_logs as logs,
    aws_rds as rds,
    aws_s3 as s3,
    aws_secretsmanager as secretsmanager,
    aws_sns as sns,
    aws_sns_subscriptions as subscriptions,
    aws_wafv2 as wafv2,
)
from constructs import Construct

from infrastructure.backend.base import ProvisioningBackend
from infrastructure.config import (
    HEALTH_CHECK_PATH,
    PRODUCTION,
    BaseConfig,
    CacheConfig,
    CdnConfig,
    ComputeConfig,
    DatabaseConfig,
    MonitoringConfig,
    NetworkConfig,
    StorageAllocation,
    StorageConfig,
    WafConfig,
    WafRule,
)
from infrastructure.handles import (
    CLUSTER,
    CacheNodeHandle,
    CdnHandle,
    ClusterHandle,
    ComputeHandle,
    DatabaseClusterHandle,
    DatabaseHandle,
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

logger = logging.getLogger(__name__)

RETENTION_DAYS = {
    1: logs.RetentionDays.ONE_DAY,
    3: logs.RetentionDays.THREE_DAYS,
    5: logs.RetentionDays.FIVE_DAYS,
    7: logs.RetentionDays.ONE_WEEK,
    14: logs.RetentionDays.TWO_WEEKS,
    30: logs.RetentionDays.ONE_MONTH,
    60: logs.RetentionDays.TWO_MONTHS,
    90: logs.RetentionDays.THREE_MONTHS,
    120: logs.RetentionDays.FOUR_MONTHS,
    150: logs.RetentionDays.FIVE_MONTHS,
    180: logs.RetentionDays.SIX_MONTHS,
    365: logs.RetentionDays.ONE_YEAR,
}

PRICE_CLASSES = {
    "PriceClass_100": cloudfront.PriceClass.PRICE_CLASS_100,
    "PriceClass_200": cloudfront.PriceClass.PRICE_CLASS_200,
    "PriceClass_All": cloudfront.PriceClass.PRICE_CLASS_ALL,
}


def _major_version(version: str) -> str:
    return version.split(".")[0]


def _instance_type(instance_class: str) -> ec2.InstanceType:
    # RDS adds the "db." prefix itself
    return ec2.InstanceType(instance_class.removeprefix("db."))


def _cache_parameter_family(version: str) -> str:
    major = _major_version(version)
    return f"redis{major}" if int(major) >= 7 else f"redis{major}.x"


class CdkBackend(ProvisioningBackend):
    """
    Provisioning backend that emits CDK constructs into a stack.

    Args:
        scope: Stack (or construct inside one) to create resources in
    """

    def __init__(self, scope: Construct):
        self.scope = scope

    # ------------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------------

    def _group(self, name: str) -> Construct:
        existing = self.scope.node.try_find_child(name)
        if existing is not None:
            return existing
        return Construct(self.scope, name)

    @staticmethod
    def _is_production(config: BaseConfig) -> bool:
        return config.environment == PRODUCTION

    def _removal_policy(self, config: BaseConfig) -> RemovalPolicy:
        return RemovalPolicy.RETAIN if self._is_production(config) else RemovalPolicy.DESTROY

    def _database_removal_policy(self, config: BaseConfig) -> RemovalPolicy:
        return RemovalPolicy.SNAPSHOT if self._is_production(config) else RemovalPolicy.DESTROY

    @staticmethod
    def _data_subnets(network: NetworkHandle) -> ec2.SubnetSelection:
        """Isolated subnets when the network has them, private otherwise."""
        if network.isolated_subnet_ids:
            return ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_ISOLATED)
        return ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS)

    @staticmethod
    def _allow_from_vpc(
        group: Construct, network: NetworkHandle, port: int, description: str
    ) -> ec2.SecurityGroup:
        vpc = network.resource
        security_group = ec2.SecurityGroup(
            group,
            "SecurityGroup",
            vpc=vpc,
            description=description,
            allow_all_outbound=False,
        )
        security_group.add_ingress_rule(
            ec2.Peer.ipv4(vpc.vpc_cidr_block),
            ec2.Port.tcp(port),
            f"{description} from VPC",
        )
        return security_group

    @staticmethod
    def _credentials(config: DatabaseConfig) -> rds.Credentials:
        return rds.Credentials.from_generated_secret(
            config.username,
            secret_name=f"{config.project_name}/{config.environment}/database",
        )

    # ------------------------------------------------------------------------
    # Network
    # ------------------------------------------------------------------------

    def create_network(self, name: str, config: NetworkConfig) -> NetworkHandle:
        group = self._group(name)

        subnet_configuration = [
            ec2.SubnetConfiguration(
                name="Public",
                subnet_type=ec2.SubnetType.PUBLIC,
                cidr_mask=config.subnet_cidr_mask,
            ),
            ec2.SubnetConfiguration(
                name="Private",
                subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                cidr_mask=config.subnet_cidr_mask,
            ),
        ]
        if config.include_isolated_subnets:
            subnet_configuration.append(
                ec2.SubnetConfiguration(
                    name="Isolated",
                    subnet_type=ec2.SubnetType.PRIVATE_ISOLATED,
                    cidr_mask=config.subnet_cidr_mask,
                )
            )

        vpc = ec2.Vpc(
            group,
            "Vpc",
            vpc_name=config.vpc_name or name,
            ip_addresses=ec2.IpAddresses.cidr(config.cidr),
            max_azs=config.max_azs,
            nat_gateways=config.nat_gateways,
            subnet_configuration=subnet_configuration,
            gateway_endpoints={
                "S3": ec2.GatewayVpcEndpointOptions(
                    service=ec2.GatewayVpcEndpointAwsService.S3
                )
            },
        )

        flow_log_group = logs.LogGroup(
            group,
            "FlowLogGroup",
            retention=RETENTION_DAYS[config.flow_log_retention_days],
            removal_policy=self._removal_policy(config),
        )
        vpc.add_flow_log(
            "FlowLog",
            destination=ec2.FlowLogDestination.to_cloud_watch_logs(flow_log_group),
            traffic_type=ec2.FlowLogTrafficType.ALL,
        )

        return NetworkHandle(
            name=name,
            resource=vpc,
            vpc_id=vpc.vpc_id,
            cidr=vpc.vpc_cidr_block,
            availability_zones=list(vpc.availability_zones),
            public_subnet_ids=[subnet.subnet_id for subnet in vpc.public_subnets],
            private_subnet_ids=[subnet.subnet_id for subnet in vpc.private_subnets],
            isolated_subnet_ids=[subnet.subnet_id for subnet in vpc.isolated_subnets],
            nat_gateways=config.nat_gateways,
            flow_log_group_name=flow_log_group.log_group_name,
        )

    # ------------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------------

    def create_database_instance(
        self, name: str, config: DatabaseConfig, network: NetworkHandle
    ) -> DatabaseInstanceHandle:
        group = self._group(name)
        storage = config.storage or StorageAllocation()
        security_group = self._allow_from_vpc(group, network, config.port, "PostgreSQL")

        instance = rds.DatabaseInstance(
            group,
            "Instance",
            engine=rds.DatabaseInstanceEngine.postgres(
                version=rds.PostgresEngineVersion.of(
                    config.engine_version, _major_version(config.engine_version)
                )
            ),
            instance_type=_instance_type(config.instance_class),
            vpc=network.resource,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
            security_groups=[security_group],
            credentials=self._credentials(config),
            database_name=config.database_name,
            port=config.port,
            multi_az=config.multi_az,
            allocated_storage=storage.allocated_gib,
            max_allocated_storage=storage.max_allocated_gib,
            storage_type=rds.StorageType.GP3,
            storage_encrypted=True,
            backup_retention=Duration.days(config.backup.retention_days),
            deletion_protection=config.backup.deletion_protection,
            cloudwatch_logs_exports=["postgresql", "upgrade"],
            cloudwatch_logs_retention=logs.RetentionDays.THREE_MONTHS,
            removal_policy=self._database_removal_policy(config),
        )

        return DatabaseInstanceHandle(
            name=name,
            resource=instance,
            identifier=instance.instance_identifier,
            endpoint_address=instance.db_instance_endpoint_address,
            port=config.port,
            engine=config.engine,
            engine_version=config.engine_version,
            database_name=config.database_name,
            instance_class=config.instance_class,
            username=config.username,
            secret_arn=instance.secret.secret_arn if instance.secret else None,
            multi_az=config.multi_az,
        )

    def create_database_cluster(
        self,
        name: str,
        config: DatabaseConfig,
        network: NetworkHandle,
        global_cluster_id: Optional[str] = None,
    ) -> DatabaseClusterHandle:
        group = self._group(name)
        security_group = self._allow_from_vpc(group, network, config.port, "PostgreSQL")
        serverless = config.serverless

        def cluster_instance(instance_id: str, writer: bool) -> rds.IClusterInstance:
            if serverless is not None and writer:
                return rds.ClusterInstance.serverless_v2(instance_id)
            if serverless is not None:
                return rds.ClusterInstance.serverless_v2(instance_id, scale_with_writer=True)
            return rds.ClusterInstance.provisioned(
                instance_id, instance_type=_instance_type(config.instance_class)
            )

        cluster = rds.DatabaseCluster(
            group,
            "Cluster",
            engine=rds.DatabaseClusterEngine.aurora_postgres(
                version=rds.AuroraPostgresEngineVersion.of(
                    config.engine_version, _major_version(config.engine_version)
                )
            ),
            writer=cluster_instance("Writer", writer=True),
            readers=[
                cluster_instance(f"Reader{index}", writer=False)
                for index in range(1, config.instance_count)
            ],
            serverless_v2_min_capacity=serverless.min_capacity if serverless else None,
            serverless_v2_max_capacity=serverless.max_capacity if serverless else None,
            vpc=network.resource,
            vpc_subnets=self._data_subnets(network),
            security_groups=[security_group],
            credentials=self._credentials(config),
            default_database_name=config.database_name,
            port=config.port,
            storage_encrypted=True,
            backup=rds.BackupProps(retention=Duration.days(config.backup.retention_days)),
            deletion_protection=config.backup.deletion_protection,
            cloudwatch_logs_exports=["postgresql"],
            cloudwatch_logs_retention=logs.RetentionDays.THREE_MONTHS,
            removal_policy=self._database_removal_policy(config),
        )

        if global_cluster_id:
            rds.CfnGlobalCluster(
                group,
                "GlobalCluster",
                global_cluster_identifier=global_cluster_id,
                source_db_cluster_identifier=Stack.of(group).format_arn(
                    service="rds",
                    resource="cluster",
                    resource_name=cluster.cluster_identifier,
                    arn_format=ArnFormat.COLON_RESOURCE_NAME,
                ),
                deletion_protection=config.backup.deletion_protection,
            )

        return DatabaseClusterHandle(
            name=name,
            resource=cluster,
            identifier=cluster.cluster_identifier,
            endpoint_address=cluster.cluster_endpoint.hostname,
            reader_endpoint_address=cluster.cluster_read_endpoint.hostname,
            port=config.port,
            engine=config.engine,
            engine_version=config.engine_version,
            database_name=config.database_name,
            instance_class=None if serverless else config.instance_class,
            username=config.username,
            secret_arn=cluster.secret.secret_arn if cluster.secret else None,
            instance_count=config.instance_count,
            serverless=serverless is not None,
            global_cluster_id=global_cluster_id,
        )

    # ------------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------------

    def _cache_dependencies(
        self,
        group: Construct,
        name: str,
        config: CacheConfig,
        network: NetworkHandle,
        cluster_mode: bool = False,
    ):
        subnet_group = elasticache.CfnSubnetGroup(
            group,
            "SubnetGroup",
            description=f"Subnet group for {name}",
            subnet_ids=network.isolated_subnet_ids or network.private_subnet_ids,
            cache_subnet_group_name=name,
        )

        properties = dict(config.parameter_overrides)
        if cluster_mode:
            properties["cluster-enabled"] = "yes"
        parameter_group = elasticache.CfnParameterGroup(
            group,
            "ParameterGroup",
            cache_parameter_group_family=_cache_parameter_family(config.version),
            description=f"Parameter group for {name}",
            properties=properties,
        )

        security_group = self._allow_from_vpc(group, network, config.port, "Redis")
        return subnet_group, parameter_group, security_group

    def create_cache_node(
        self, name: str, config: CacheConfig, network: NetworkHandle
    ) -> CacheNodeHandle:
        group = self._group(name)
        subnet_group, parameter_group, security_group = self._cache_dependencies(
            group, name, config, network
        )

        cache_cluster = elasticache.CfnCacheCluster(
            group,
            "CacheCluster",
            engine=config.engine,
            engine_version=config.version,
            cache_node_type=config.node_type,
            num_cache_nodes=1,
            port=config.port,
            cache_subnet_group_name=subnet_group.ref,
            cache_parameter_group_name=parameter_group.ref,
            vpc_security_group_ids=[security_group.security_group_id],
            auto_minor_version_upgrade=True,
            snapshot_retention_limit=config.snapshot_retention_days,
        )

        return CacheNodeHandle(
            name=name,
            resource=cache_cluster,
            cluster_id=cache_cluster.ref,
            endpoint_address=cache_cluster.attr_redis_endpoint_address,
            port=cache_cluster.attr_redis_endpoint_port,
            node_type=config.node_type,
            engine_version=config.version,
            security_group_id=security_group.security_group_id,
        )

    def create_replication_group(
        self,
        name: str,
        config: CacheConfig,
        network: NetworkHandle,
        num_shards: int,
        replicas_per_shard: int,
    ) -> ReplicationGroupHandle:
        group = self._group(name)
        cluster_mode = num_shards > 1
        subnet_group, parameter_group, security_group = self._cache_dependencies(
            group, name, config, network, cluster_mode=cluster_mode
        )

        if cluster_mode:
            topology = dict(
                num_node_groups=num_shards,
                replicas_per_node_group=replicas_per_shard,
            )
        else:
            topology = dict(num_cache_clusters=1 + replicas_per_shard)

        replication_group = elasticache.CfnReplicationGroup(
            group,
            "ReplicationGroup",
            replication_group_description=f"Redis replication group for {name}",
            engine=config.engine,
            engine_version=config.version,
            cache_node_type=config.node_type,
            port=config.port,
            automatic_failover_enabled=True,
            multi_az_enabled=True,
            cache_subnet_group_name=subnet_group.ref,
            cache_parameter_group_name=parameter_group.ref,
            security_group_ids=[security_group.security_group_id],
            at_rest_encryption_enabled=True,
            snapshot_retention_limit=config.snapshot_retention_days,
            **topology,
        )

        if cluster_mode:
            endpoint_address = replication_group.attr_configuration_end_point_address
            port = replication_group.attr_configuration_end_point_port
        else:
            endpoint_address = replication_group.attr_primary_end_point_address
            port = replication_group.attr_primary_end_point_port

        return ReplicationGroupHandle(
            name=name,
            resource=replication_group,
            replication_group_id=replication_group.ref,
            endpoint_address=endpoint_address,
            port=port,
            node_type=config.node_type,
            engine_version=config.version,
            num_shards=num_shards,
            replicas_per_shard=replicas_per_shard,
            cluster_mode_enabled=cluster_mode,
            security_group_id=security_group.security_group_id,
        )

    # ------------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------------

    def create_bucket(self, name: str, config: StorageConfig) -> StorageHandle:
        group = self._group(name)
        production = self._is_production(config)

        lifecycle_rules = [
            s3.LifecycleRule(
                id="AbortIncompleteMultipartUploads",
                abort_incomplete_multipart_upload_after=Duration.days(7),
            )
        ]
        if config.versioned:
            lifecycle_rules.append(
                s3.LifecycleRule(
                    id="NoncurrentVersions",
                    noncurrent_version_transitions=[
                        s3.NoncurrentVersionTransition(
                            storage_class=s3.StorageClass.INFREQUENT_ACCESS,
                            transition_after=Duration.days(30),
                        ),
                        s3.NoncurrentVersionTransition(
                            storage_class=s3.StorageClass.GLACIER,
                            transition_after=Duration.days(60),
                        ),
                    ],
                    noncurrent_version_expiration=Duration.days(90),
                )
            )
        for rule in config.lifecycle_rules:
            transitions = []
            if rule.transition_to_ia_days:
                transitions.append(
                    s3.Transition(
                        storage_class=s3.StorageClass.INFREQUENT_ACCESS,
                        transition_after=Duration.days(rule.transition_to_ia_days),
                    )
                )
            if rule.transition_to_glacier_days:
                transitions.append(
                    s3.Transition(
                        storage_class=s3.StorageClass.GLACIER,
                        transition_after=Duration.days(rule.transition_to_glacier_days),
                    )
                )
            lifecycle_rules.append(
                s3.LifecycleRule(
                    id=rule.rule_id,
                    prefix=rule.prefix,
                    expiration=Duration.days(rule.expiration_days) if rule.expiration_days else None,
                    transitions=transitions or None,
                )
            )

        cors = None
        if config.cors_allowed_origins:
            cors = [
                s3.CorsRule(
                    allowed_methods=[
                        s3.HttpMethods.GET,
                        s3.HttpMethods.PUT,
                        s3.HttpMethods.POST,
                        s3.HttpMethods.DELETE,
                        s3.HttpMethods.HEAD,
                    ],
                    allowed_origins=list(config.cors_allowed_origins),
                    allowed_headers=["*"],
                    max_age=3600,
                )
            ]

        bucket = s3.Bucket(
            group,
            "Bucket",
            bucket_name=config.bucket_name,
            versioned=config.versioned,
            encryption=s3.BucketEncryption.S3_MANAGED,
            enforce_ssl=True,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            lifecycle_rules=lifecycle_rules,
            cors=cors,
            removal_policy=self._removal_policy(config),
            auto_delete_objects=not production,
        )

        return StorageHandle(
            name=name,
            resource=bucket,
            bucket_name=bucket.bucket_name,
            bucket_arn=bucket.bucket_arn,
            domain_name=bucket.bucket_domain_name,
            regional_domain_name=bucket.bucket_regional_domain_name,
        )

    # ------------------------------------------------------------------------
    # Compute
    # ------------------------------------------------------------------------

    def create_container_cluster(
        self, name: str, config: ComputeConfig, network: NetworkHandle
    ) -> ClusterHandle:
        cluster = ecs.Cluster(
            self._group(name),
            "Cluster",
            vpc=network.resource,
            container_insights=True,
        )
        return ClusterHandle(
            resource=cluster,
            cluster_name=cluster.cluster_name,
            cluster_arn=cluster.cluster_arn,
        )

    def create_task_definition(
        self, name: str, config: ComputeConfig
    ) -> TaskDefinitionHandle:
        group = self._group(name)

        log_group = logs.LogGroup(
            group,
            "LogGroup",
            retention=RETENTION_DAYS[config.log_retention_days],
            removal_policy=self._removal_policy(config),
        )

        task_definition = ecs.FargateTaskDefinition(
            group,
            "TaskDefinition",
            cpu=config.cpu,
            memory_limit_mib=config.memory_mib,
        )

        secrets = {
            variable: ecs.Secret.from_secrets_manager(
                secretsmanager.Secret.from_secret_complete_arn(
                    group, f"{variable}Secret", reference.secret_arn
                ),
                reference.field,
            )
            for variable, reference in config.secrets.items()
        }

        container = task_definition.add_container(
            config.service_name,
            image=ecs.ContainerImage.from_registry(config.image),
            environment=dict(config.environment_variables),
            secrets=secrets,
            logging=ecs.LogDrivers.aws_logs(
                stream_prefix=config.service_name,
                log_group=log_group,
            ),
            health_check=ecs.HealthCheck(
                command=[
                    "CMD-SHELL",
                    f"curl -f http://localhost:{config.container_port}{HEALTH_CHECK_PATH} || exit 1",
                ],
                interval=Duration.seconds(30),
                timeout=Duration.seconds(5),
                retries=3,
                start_period=Duration.seconds(60),
            ),
            port_mappings=[
                ecs.PortMapping(
                    container_port=config.container_port,
                    protocol=ecs.Protocol.TCP,
                )
            ],
        )

        return TaskDefinitionHandle(
            resource=task_definition,
            task_definition_arn=task_definition.task_definition_arn,
            container_name=container.container_name,
            log_group_name=log_group.log_group_name,
            cpu=config.cpu,
            memory_mib=config.memory_mib,
        )

    def create_load_balancer(
        self, name: str, config: ComputeConfig, network: NetworkHandle
    ) -> LoadBalancerHandle:
        load_balancer = elbv2.ApplicationLoadBalancer(
            self._group(name),
            "LoadBalancer",
            vpc=network.resource,
            internet_facing=True,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
        )
        return LoadBalancerHandle(
            resource=load_balancer,
            load_balancer_arn=load_balancer.load_balancer_arn,
            dns_name=load_balancer.load_balancer_dns_name,
            full_name=load_balancer.load_balancer_full_name,
        )

    def create_target_group(
        self, name: str, config: ComputeConfig, network: NetworkHandle
    ) -> TargetGroupHandle:
        target_group = elbv2.ApplicationTargetGroup(
            self._group(name),
            "TargetGroup",
            vpc=network.resource,
            port=config.container_port,
            protocol=elbv2.ApplicationProtocol.HTTP,
            target_type=elbv2.TargetType.IP,
            health_check=elbv2.HealthCheck(
                path=HEALTH_CHECK_PATH,
                interval=Duration.seconds(30),
                timeout=Duration.seconds(5),
                healthy_threshold_count=2,
                unhealthy_threshold_count=5,
            ),
        )
        return TargetGroupHandle(
            resource=target_group,
            target_group_arn=target_group.target_group_arn,
            full_name=target_group.target_group_full_name,
            health_check_path=HEALTH_CHECK_PATH,
        )

    def create_service(
        self,
        name: str,
        config: ComputeConfig,
        network: NetworkHandle,
        cluster: ClusterHandle,
        task_definition: TaskDefinitionHandle,
        target_group: TargetGroupHandle,
    ) -> ServiceHandle:
        group = self._group(name)

        security_group = ec2.SecurityGroup(
            group,
            "ServiceSecurityGroup",
            vpc=network.resource,
            description=f"Security group for {config.service_name}",
            allow_all_outbound=True,
        )

        service = ecs.FargateService(
            group,
            "Service",
            cluster=cluster.resource,
            task_definition=task_definition.resource,
            desired_count=config.desired_count,
            security_groups=[security_group],
            assign_public_ip=False,
            health_check_grace_period=Duration.seconds(60),
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
        )
        service.attach_to_application_target_group(target_group.resource)

        return ServiceHandle(
            resource=service,
            service_name=service.service_name,
            service_arn=service.service_arn,
            desired_count=config.desired_count,
        )

    def create_listener(
        self,
        name: str,
        config: ComputeConfig,
        load_balancer: LoadBalancerHandle,
        target_group: TargetGroupHandle,
    ) -> ListenerHandle:
        listener = load_balancer.resource.add_listener(
            "Listener",
            port=config.listener_port,
            protocol=elbv2.ApplicationProtocol.HTTP,
            default_target_groups=[target_group.resource],
            open=True,
        )
        return ListenerHandle(
            resource=listener,
            listener_arn=listener.listener_arn,
            port=config.listener_port,
        )

    def configure_autoscaling(
        self,
        name: str,
        config: ComputeConfig,
        service: ServiceHandle,
        target_group: TargetGroupHandle,
    ) -> ScalingHandle:
        policy = config.scaling
        cooldowns = dict(
            scale_in_cooldown=Duration.seconds(policy.scale_in_cooldown_seconds),
            scale_out_cooldown=Duration.seconds(policy.scale_out_cooldown_seconds),
        )

        scaling = service.resource.auto_scale_task_count(
            min_capacity=config.min_capacity,
            max_capacity=config.max_capacity,
        )

        policies: List[str] = []
        scaling.scale_on_cpu_utilization(
            "CpuScaling",
            target_utilization_percent=policy.cpu_target_percent,
            **cooldowns,
        )
        policies.append("CPUUtilization")

        if policy.memory_target_percent is not None:
            scaling.scale_on_memory_utilization(
                "MemoryScaling",
                target_utilization_percent=policy.memory_target_percent,
                **cooldowns,
            )
            policies.append("MemoryUtilization")

        if policy.requests_per_target is not None:
            scaling.scale_on_request_count(
                "RequestScaling",
                requests_per_target=policy.requests_per_target,
                target_group=target_group.resource,
                **cooldowns,
            )
            policies.append("RequestCountPerTarget")

        return ScalingHandle(
            resource=scaling,
            min_capacity=config.min_capacity,
            max_capacity=config.max_capacity,
            policies=policies,
        )

    # ------------------------------------------------------------------------
    # CDN and WAF
    # ------------------------------------------------------------------------

    def create_distribution(
        self,
        name: str,
        config: CdnConfig,
        storage: StorageHandle,
        web_acl: Optional[WafHandle] = None,
    ) -> CdnHandle:
        group = self._group(name)
        bucket = storage.resource

        origin_access_identity = cloudfront.OriginAccessIdentity(
            group,
            "OriginAccessIdentity",
            comment=f"Access identity for {name}",
        )
        bucket.grant_read(origin_access_identity)

        log_bucket = None
        if config.enable_logging:
            log_bucket = s3.Bucket(
                group,
                "LogBucket",
                encryption=s3.BucketEncryption.S3_MANAGED,
                block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
                object_ownership=s3.ObjectOwnership.OBJECT_WRITER,
                enforce_ssl=True,
                lifecycle_rules=[
                    s3.LifecycleRule(
                        id="ExpireAccessLogs",
                        expiration=Duration.days(config.log_retention_days),
                    )
                ],
                removal_policy=self._removal_policy(config),
                auto_delete_objects=not self._is_production(config),
            )

        certificate = None
        if config.certificate_arn:
            certificate = acm.Certificate.from_certificate_arn(
                group, "Certificate", config.certificate_arn
            )

        spa_fallback = [
            cloudfront.ErrorResponse(
                http_status=status,
                response_http_status=200,
                response_page_path="/index.html",
                ttl=Duration.minutes(5),
            )
            for status in (403, 404)
        ]

        distribution = cloudfront.Distribution(
            group,
            "Distribution",
            default_behavior=cloudfront.BehaviorOptions(
                origin=origins.S3BucketOrigin.with_origin_access_identity(
                    bucket, origin_access_identity=origin_access_identity
                ),
                allowed_methods=cloudfront.AllowedMethods.ALLOW_GET_HEAD_OPTIONS,
                viewer_protocol_policy=cloudfront.ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
                cache_policy=cloudfront.CachePolicy.CACHING_OPTIMIZED,
                compress=True,
            ),
            default_root_object="index.html",
            error_responses=spa_fallback,
            enable_logging=config.enable_logging,
            log_bucket=log_bucket,
            log_file_prefix="cloudfront/" if config.enable_logging else None,
            domain_names=list(config.domain_names) or None,
            certificate=certificate,
            price_class=PRICE_CLASSES[config.price_class],
            web_acl_id=web_acl.web_acl_arn if web_acl else None,
            comment=config.comment or f"{config.project_name} {config.environment}",
        )

        return CdnHandle(
            name=name,
            resource=distribution,
            distribution_id=distribution.distribution_id,
            distribution_arn=Stack.of(group).format_arn(
                service="cloudfront",
                region="",
                resource="distribution",
                resource_name=distribution.distribution_id,
            ),
            domain_name=distribution.distribution_domain_name,
            web_acl_arn=web_acl.web_acl_arn if web_acl else None,
            log_bucket_name=log_bucket.bucket_name if log_bucket else None,
        )

    @staticmethod
    def _statement_property(statement: Any) -> wafv2.CfnWebACL.StatementProperty:
        if statement.kind == "managed_rule_group":
            return wafv2.CfnWebACL.StatementProperty(
                managed_rule_group_statement=wafv2.CfnWebACL.ManagedRuleGroupStatementProperty(
                    name=statement.name,
                    vendor_name=statement.vendor_name,
                    excluded_rules=[
                        wafv2.CfnWebACL.ExcludedRuleProperty(name=rule_name)
                        for rule_name in statement.excluded_rules
                    ]
                    or None,
                )
            )
        if statement.kind == "rate_based":
            return wafv2.CfnWebACL.StatementProperty(
                rate_based_statement=wafv2.CfnWebACL.RateBasedStatementProperty(
                    limit=statement.limit,
                    aggregate_key_type=statement.aggregate_key_type,
                )
            )
        if statement.kind == "geo_match":
            return wafv2.CfnWebACL.StatementProperty(
                geo_match_statement=wafv2.CfnWebACL.GeoMatchStatementProperty(
                    country_codes=list(statement.country_codes),
                )
            )
        if statement.kind == "ip_set_reference":
            return wafv2.CfnWebACL.StatementProperty(
                ip_set_reference_statement=wafv2.CfnWebACL.IPSetReferenceStatementProperty(
                    arn=statement.arn,
                )
            )
        raise ValueError(f"Unsupported WAF statement: {statement!r}")

    def _rule_property(self, rule: WafRule) -> wafv2.CfnWebACL.RuleProperty:
        visibility = wafv2.CfnWebACL.VisibilityConfigProperty(
            cloud_watch_metrics_enabled=True,
            metric_name=rule.metric_name,
            sampled_requests_enabled=True,
        )
        statement = self._statement_property(rule.statement)

        if rule.statement.kind == "managed_rule_group":
            return wafv2.CfnWebACL.RuleProperty(
                name=rule.name,
                priority=rule.priority,
                statement=statement,
                override_action=wafv2.CfnWebACL.OverrideActionProperty(**{rule.action: {}}),
                visibility_config=visibility,
            )

        if rule.action == "block" and rule.custom_response is not None:
            action = wafv2.CfnWebACL.RuleActionProperty(
                block=wafv2.CfnWebACL.BlockActionProperty(
                    custom_response=wafv2.CfnWebACL.CustomResponseProperty(
                        response_code=rule.custom_response.response_code,
                        custom_response_body_key=rule.custom_response.body_key,
                    )
                )
            )
        else:
            action = wafv2.CfnWebACL.RuleActionProperty(**{rule.action: {}})

        return wafv2.CfnWebACL.RuleProperty(
            name=rule.name,
            priority=rule.priority,
            statement=statement,
            action=action,
            visibility_config=visibility,
        )

    def create_web_acl(
        self, name: str, config: WafConfig, rules: List[WafRule]
    ) -> WafHandle:
        custom_response_bodies = {
            key: wafv2.CfnWebACL.CustomResponseBodyProperty(
                content=content,
                content_type="TEXT_PLAIN",
            )
            for key, content in config.custom_response_bodies.items()
        }

        web_acl = wafv2.CfnWebACL(
            self._group(name),
            "WebAcl",
            name=name,
            scope=config.scope,
            default_action=wafv2.CfnWebACL.DefaultActionProperty(**{config.default_action: {}}),
            visibility_config=wafv2.CfnWebACL.VisibilityConfigProperty(
                cloud_watch_metrics_enabled=True,
                metric_name=f"{config.project_name}-webacl",
                sampled_requests_enabled=True,
            ),
            rules=[self._rule_property(rule) for rule in rules],
            custom_response_bodies=custom_response_bodies or None,
        )

        return WafHandle(
            name=name,
            resource=web_acl,
            web_acl_arn=web_acl.attr_arn,
            web_acl_id=web_acl.attr_id,
            scope=config.scope,
            rule_names=[rule.name for rule in rules],
        )

    def associate_web_acl(self, name: str, web_acl: WafHandle, resource_arn: str) -> Any:
        return wafv2.CfnWebACLAssociation(
            self._group(name),
            "Association",
            resource_arn=resource_arn,
            web_acl_arn=web_acl.web_acl_arn,
        )

    # ------------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------------

    def create_alarms(
        self,
        name: str,
        config: MonitoringConfig,
        compute: ComputeHandle,
        database: Optional[DatabaseHandle] = None,
    ) -> MonitoringHandle:
        group = self._group(name)
        period = Duration.seconds(config.alarm_period_seconds)
        service = compute.service.resource

        topic = sns.Topic(
            group,
            "AlarmTopic",
            display_name=f"{config.project_name} {config.environment} alarms",
        )
        if config.notification_email:
            topic.add_subscription(subscriptions.EmailSubscription(config.notification_email))

        alarm_names: List[str] = []

        def add_alarm(construct_id: str, suffix: str, metric: cloudwatch.IMetric, threshold: float):
            alarm = cloudwatch.Alarm(
                group,
                construct_id,
                alarm_name=f"{name}-{suffix}",
                metric=metric,
                threshold=threshold,
                evaluation_periods=config.evaluation_periods,
                comparison_operator=cloudwatch.ComparisonOperator.GREATER_THAN_THRESHOLD,
                treat_missing_data=cloudwatch.TreatMissingData.NOT_BREACHING,
            )
            alarm.add_alarm_action(cw_actions.SnsAction(topic))
            alarm_names.append(f"{name}-{suffix}")

        add_alarm(
            "ServiceCpuAlarm",
            "service-cpu",
            service.metric_cpu_utilization(period=period, statistic="Average"),
            config.cpu_threshold_percent,
        )
        add_alarm(
            "ServiceMemoryAlarm",
            "service-memory",
            service.metric_memory_utilization(period=period, statistic="Average"),
            config.memory_threshold_percent,
        )
        add_alarm(
            "Target5xxAlarm",
            "target-5xx",
            cloudwatch.Metric(
                namespace="AWS/ApplicationELB",
                metric_name="HTTPCode_Target_5XX_Count",
                dimensions_map={"LoadBalancer": compute.load_balancer.full_name},
                statistic="Sum",
                period=period,
            ),
            config.http_5xx_threshold,
        )

        if database is not None:
            if database.topology == CLUSTER:
                dimensions = {"DBClusterIdentifier": database.identifier}
            else:
                dimensions = {"DBInstanceIdentifier": database.identifier}
            add_alarm(
                "DatabaseCpuAlarm",
                "database-cpu",
                cloudwatch.Metric(
                    namespace="AWS/RDS",
                    metric_name="CPUUtilization",
                    dimensions_map=dimensions,
                    statistic="Average",
                    period=period,
                ),
                config.database_cpu_threshold_percent,
            )

        return MonitoringHandle(
            name=name,
            resource=topic,
            topic_arn=topic.topic_arn,
            alarm_names=alarm_names,
        )

    # ------------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------------

    def tag(self, handle: Any, tags: Dict[str, str]) -> None:
        target = self.scope.node.find_child(handle.name)
        for key, value in tags.items():
            Tags.of(target).add(key, value)

    def resolve(self, value: Any) -> Any:
        return Stack.of(self.scope).resolve(value)
