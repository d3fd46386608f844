"""Tiered stack: composes the builders for one scale tier."""

import dataclasses
from typing import Dict, Optional

from aws_cdk import CfnOutput, Stack
from constructs import Construct

from infrastructure.backend import CdkBackend
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
)
from infrastructure.config import WAF_CLOUDFRONT, ComputeConfig, SecretReference
from infrastructure.context import DeploymentContext
from infrastructure.handles import (
    CacheHandle,
    CdnHandle,
    ComputeHandle,
    DatabaseHandle,
    MonitoringHandle,
    NetworkHandle,
    StorageHandle,
    WafHandle,
)
from infrastructure.recorder import ResourceRecorder
from infrastructure.stacks.tiers import TierConfigs, TierSettings, build_tier_configs


class TieredStack(Stack):
    """
    Web application stack for one scale tier.

    Components, in build order:
    - VPC
    - S3 bucket (CDN origin and asset store)
    - PostgreSQL instance or Aurora cluster
    - Redis node or replication group
    - ECS Fargate service behind an ALB, wired to the database, cache and bucket
    - WAF web ACL and CloudFront distribution (tiers with an edge)
    - SNS topic and CloudWatch alarms (tiers with alarms)

    Every handle is recorded as soon as it is built; call ``recorder.save_to_files()`` after
    synthesis to write the output files.
    """

    tier_settings: Optional[TierSettings] = None

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        context: DeploymentContext,
        settings: Optional[TierSettings] = None,
        **kwargs,
    ):
        """
        Initialize tiered stack.

        Args:
            scope: CDK app
            construct_id: Stack ID
            context: Deployment context
            settings: Tier parameters (default: the class's tier_settings)
            **kwargs: Additional stack properties

        Raises:
            ConfigurationError: If any tier config is invalid; raised before
                any resource is created
        """
        super().__init__(scope, construct_id, **kwargs)

        self.context = context
        self.settings = settings or self.tier_settings
        if self.settings is None:
            raise TypeError(f"{type(self).__name__} requires tier settings")

        self.configs: TierConfigs = build_tier_configs(context, self.settings)
        self.configs.validate()

        self.backend = CdkBackend(self)
        self.recorder = ResourceRecorder(context, self.backend)

        self.network: Optional[NetworkHandle] = None
        self.storage: Optional[StorageHandle] = None
        self.database: Optional[DatabaseHandle] = None
        self.cache: Optional[CacheHandle] = None
        self.compute: Optional[ComputeHandle] = None
        self.waf: Optional[WafHandle] = None
        self.cdn: Optional[CdnHandle] = None
        self.monitoring: Optional[MonitoringHandle] = None

        self._create_core()
        self._create_edge()
        self._create_monitoring()
        self._create_outputs()

    def _create_core(self):
        """Create network, storage, database, cache and compute."""
        self.network = NetworkBuilder(self.backend, self.configs.network, self.context).build()
        self.recorder.record_network(self.network)

        self.storage = StorageBuilder(self.backend, self.configs.storage, self.context).build()
        self.recorder.record_storage(self.storage)

        self.database = DatabaseBuilder(
            self.backend, self.configs.database, self.context, network=self.network
        ).build()
        self.recorder.record_database(self.database)

        self.cache = CacheBuilder(
            self.backend, self.configs.cache, self.context, network=self.network
        ).build()
        self.recorder.record_cache(self.cache)

        self.compute = ComputeBuilder(
            self.backend, self._compute_config(), self.context, network=self.network
        ).build()
        self.recorder.record_compute(self.compute)

    def _compute_config(self) -> ComputeConfig:
        """Wire the provisioned database, cache and bucket into the service."""
        environment: Dict[str, str] = {
            "APP_ENV": self.context.environment,
            "DATABASE_HOST": self.database.endpoint_address,
            "DATABASE_PORT": str(self.database.port),
            "DATABASE_NAME": self.database.database_name,
            "STORAGE_BUCKET": self.storage.bucket_name,
            "AWS_REGION": self.context.region,
        }
        environment.update(cache_environment(self.cache))
        environment.update(self.configs.compute.environment_variables)

        secrets: Dict[str, SecretReference] = dict(self.configs.compute.secrets)
        if self.database.secret_arn is not None:
            secrets.setdefault(
                "DATABASE_USERNAME", SecretReference(self.database.secret_arn, "username")
            )
            secrets.setdefault(
                "DATABASE_PASSWORD", SecretReference(self.database.secret_arn, "password")
            )

        return dataclasses.replace(
            self.configs.compute, environment_variables=environment, secrets=secrets
        )

    def _create_edge(self):
        """Create the web ACL and distribution and attach the ACL once."""
        if self.configs.waf is None:
            return

        waf = WafBuilder(self.backend, self.configs.waf, self.context).build()
        self.recorder.record_waf(waf)

        if waf.scope == WAF_CLOUDFRONT:
            self.cdn = CdnBuilder(
                self.backend,
                self.configs.cdn,
                self.context,
                storage=self.storage,
                web_acl=waf,
            ).build()
            self.recorder.record_cdn(self.cdn)
            self.waf = attach_to_distribution(waf, self.cdn)
        else:
            self.cdn = CdnBuilder(
                self.backend, self.configs.cdn, self.context, storage=self.storage
            ).build()
            self.recorder.record_cdn(self.cdn)
            self.waf = associate_with_load_balancer(self.backend, waf, self.compute)

        # The ACL record was taken before attachment
        self.recorder.update_waf(self.waf)

    def _create_monitoring(self):
        """Create the alarm topic and alarms."""
        if self.configs.monitoring is None:
            return

        self.monitoring = MonitoringBuilder(
            self.backend,
            self.configs.monitoring,
            self.context,
            compute=self.compute,
            database=self.database,
        ).build()
        self.recorder.record_monitoring(self.monitoring)

    def _create_outputs(self):
        """Create CloudFormation outputs."""
        prefix = self.context.stack_name

        CfnOutput(
            self,
            "VpcId",
            value=self.network.vpc_id,
            description="VPC ID",
            export_name=f"{prefix}-vpc-id",
        )

        CfnOutput(
            self,
            "DatabaseEndpoint",
            value=self.database.endpoint_address,
            description="Database writer endpoint",
            export_name=f"{prefix}-db-endpoint",
        )

        CfnOutput(
            self,
            "DatabasePort",
            value=str(self.database.port),
            description="Database port",
            export_name=f"{prefix}-db-port",
        )

        if self.database.secret_arn is not None:
            CfnOutput(
                self,
                "DatabaseSecretArn",
                value=self.database.secret_arn,
                description="Database credentials secret ARN",
                export_name=f"{prefix}-db-secret-arn",
            )

        CfnOutput(
            self,
            "CacheEndpoint",
            value=self.cache.endpoint_address,
            description="Redis endpoint",
            export_name=f"{prefix}-cache-endpoint",
        )

        CfnOutput(
            self,
            "LoadBalancerDNS",
            value=self.compute.load_balancer.dns_name,
            description="Application load balancer DNS name",
            export_name=f"{prefix}-alb-dns",
        )

        CfnOutput(
            self,
            "BucketName",
            value=self.storage.bucket_name,
            description="Application bucket name",
            export_name=f"{prefix}-bucket-name",
        )

        if self.cdn is not None:
            CfnOutput(
                self,
                "CloudFrontDomainName",
                value=self.cdn.domain_name,
                description="CloudFront distribution domain name",
                export_name=f"{prefix}-cdn-domain",
            )

        if self.waf is not None:
            CfnOutput(
                self,
                "WebAclArn",
                value=self.waf.web_acl_arn,
                description="WAF web ACL ARN",
                export_name=f"{prefix}-web-acl-arn",
            )
