"""
Resource recorder.

Collects a typed record for every provisioned resource, in build order, and
writes the derived configuration files once composition is complete.
"""

import dataclasses
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from infrastructure.backend.base import ProvisioningBackend
from infrastructure.builders.base import default_tags, merge_tags
from infrastructure.context import DeploymentContext
from infrastructure.errors import RecorderError
from infrastructure.handles import (
    CLUSTER,
    REPLICATED,
    CacheHandle,
    CdnHandle,
    ComputeHandle,
    DatabaseHandle,
    MonitoringHandle,
    NetworkHandle,
    StorageHandle,
    WafHandle,
)
from infrastructure.naming import generate_logical_id
from infrastructure.recorder.artifacts import render_artifacts
from infrastructure.recorder.records import (
    CacheProperties,
    CdnProperties,
    ComputeProperties,
    DatabaseProperties,
    MonitoringProperties,
    ResourceRecord,
    ResourceType,
    StorageProperties,
    VpcProperties,
    WafProperties,
)

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = "resource-info"


class ResourceRecorder:
    """
    Records provisioned resources and renders output files.

    Records are appended in the order ``record_*`` is called and are never
    removed; ``update_waf`` only replaces a web ACL record in place.
    ``save_to_files`` succeeds at most once; every output is rendered from the
    same snapshot before anything is written, and a failed write can be retried.

    Args:
        context: Deployment context
        backend: Backend that provisioned the resources; used to re-apply the
            required tags and to resolve placeholders into plain values
    """

    def __init__(
        self,
        context: DeploymentContext,
        backend: Optional[ProvisioningBackend] = None,
    ):
        self.context = context
        self.backend = backend
        self._records = []
        self._saved = False

    @property
    def records(self) -> Tuple[ResourceRecord, ...]:
        return tuple(self._records)

    def _resolve(self, value: Any) -> Any:
        if self.backend is None:
            return value
        return self.backend.resolve(value)

    def _build_record(
        self,
        resource_type: ResourceType,
        handle: Any,
        physical_id: Any,
        properties: Any,
    ) -> ResourceRecord:
        if self._saved:
            raise RecorderError("Resources were already saved; nothing more can be recorded")

        tags = merge_tags(
            default_tags(
                self.context.project_name, self.context.environment, self.context.created_at
            ),
            handle.tags,
        )
        if self.backend is not None:
            self.backend.tag(handle, tags)

        resolved = dataclasses.replace(
            properties,
            **{
                item.name: self._resolve(getattr(properties, item.name))
                for item in dataclasses.fields(properties)
            },
        )
        record = ResourceRecord(
            resource_type=resource_type,
            resource_id=generate_logical_id(resource_type.value, handle.name),
            physical_id=self._resolve(physical_id),
            properties=resolved,
            tags=tags,
        )
        return record

    def _record(
        self,
        resource_type: ResourceType,
        handle: Any,
        physical_id: Any,
        properties: Any,
    ) -> ResourceRecord:
        record = self._build_record(resource_type, handle, physical_id, properties)
        self._records.append(record)
        logger.info(f"Recorded {resource_type.value} resource {record.resource_id}")
        return record

    # ------------------------------------------------------------------------
    # Record calls, one per resource category
    # ------------------------------------------------------------------------

    def record_network(self, network: NetworkHandle) -> ResourceRecord:
        return self._record(
            ResourceType.VPC,
            network,
            network.vpc_id,
            VpcProperties(
                vpc_id=network.vpc_id,
                vpc_cidr=network.cidr,
                availability_zones=list(network.availability_zones),
                public_subnets=list(network.public_subnet_ids),
                private_subnets=list(network.private_subnet_ids),
                isolated_subnets=list(network.isolated_subnet_ids),
                nat_gateways=network.nat_gateways,
                flow_log_group=network.flow_log_group_name,
            ),
        )

    def record_database(self, database: DatabaseHandle) -> ResourceRecord:
        if database.topology == CLUSTER:
            resource_type = ResourceType.AURORA
            properties = DatabaseProperties(
                identifier=database.identifier,
                endpoint_address=database.endpoint_address,
                reader_endpoint_address=database.reader_endpoint_address,
                port=database.port,
                engine=database.engine,
                engine_version=database.engine_version,
                database_name=database.database_name,
                username=database.username,
                secret_arn=database.secret_arn,
                instance_class=database.instance_class,
                instance_count=database.instance_count,
                serverless=database.serverless,
                global_cluster_id=database.global_cluster_id,
            )
        else:
            resource_type = ResourceType.RDS
            properties = DatabaseProperties(
                identifier=database.identifier,
                endpoint_address=database.endpoint_address,
                port=database.port,
                engine=database.engine,
                engine_version=database.engine_version,
                database_name=database.database_name,
                username=database.username,
                secret_arn=database.secret_arn,
                instance_class=database.instance_class,
                multi_az=database.multi_az,
            )
        return self._record(resource_type, database, database.identifier, properties)

    def record_cache(self, cache: CacheHandle) -> ResourceRecord:
        if cache.topology == REPLICATED:
            cache_id = cache.replication_group_id
            properties = CacheProperties(
                topology=cache.topology,
                cache_id=cache_id,
                endpoint_address=cache.endpoint_address,
                port=cache.port,
                node_type=cache.node_type,
                engine_version=cache.engine_version,
                num_shards=cache.num_shards,
                replicas_per_shard=cache.replicas_per_shard,
                automatic_failover_enabled=cache.automatic_failover,
                multi_az_enabled=cache.multi_az,
                cluster_mode_enabled=cache.cluster_mode_enabled,
            )
        else:
            cache_id = cache.cluster_id
            properties = CacheProperties(
                topology=cache.topology,
                cache_id=cache_id,
                endpoint_address=cache.endpoint_address,
                port=cache.port,
                node_type=cache.node_type,
                engine_version=cache.engine_version,
                num_shards=1,
                replicas_per_shard=0,
            )
        return self._record(ResourceType.CACHE, cache, cache_id, properties)

    def record_storage(self, storage: StorageHandle) -> ResourceRecord:
        return self._record(
            ResourceType.STORAGE,
            storage,
            storage.bucket_name,
            StorageProperties(
                bucket_name=storage.bucket_name,
                bucket_arn=storage.bucket_arn,
                bucket_domain_name=storage.domain_name,
                bucket_regional_domain_name=storage.regional_domain_name,
            ),
        )

    def record_compute(self, compute: ComputeHandle) -> ResourceRecord:
        return self._record(
            ResourceType.COMPUTE,
            compute,
            compute.service.service_arn,
            ComputeProperties(
                cluster_name=compute.cluster.cluster_name,
                cluster_arn=compute.cluster.cluster_arn,
                service_name=compute.service.service_name,
                service_arn=compute.service.service_arn,
                task_definition_arn=compute.task_definition.task_definition_arn,
                container_name=compute.task_definition.container_name,
                cpu=compute.task_definition.cpu,
                memory=compute.task_definition.memory_mib,
                desired_count=compute.service.desired_count,
                min_capacity=compute.scaling.min_capacity,
                max_capacity=compute.scaling.max_capacity,
                scaling_policies=list(compute.scaling.policies),
                load_balancer_arn=compute.load_balancer.load_balancer_arn,
                load_balancer_dns=compute.load_balancer.dns_name,
                target_group_arn=compute.target_group.target_group_arn,
                health_check_path=compute.target_group.health_check_path,
                listener_port=compute.listener.port,
                log_group_name=compute.task_definition.log_group_name,
            ),
        )

    def record_cdn(self, cdn: CdnHandle) -> ResourceRecord:
        return self._record(
            ResourceType.CDN,
            cdn,
            cdn.distribution_id,
            CdnProperties(
                distribution_id=cdn.distribution_id,
                distribution_arn=cdn.distribution_arn,
                domain_name=cdn.domain_name,
                web_acl_arn=cdn.web_acl_arn,
                log_bucket_name=cdn.log_bucket_name,
            ),
        )

    @staticmethod
    def _waf_properties(waf: WafHandle) -> WafProperties:
        return WafProperties(
            web_acl_arn=waf.web_acl_arn,
            web_acl_id=waf.web_acl_id,
            scope=waf.scope,
            rules=list(waf.rule_names),
            associated_resource_arn=waf.associated_resource_arn,
        )

    def record_waf(self, waf: WafHandle) -> ResourceRecord:
        return self._record(ResourceType.WAF, waf, waf.web_acl_arn, self._waf_properties(waf))

    def update_waf(self, waf: WafHandle) -> ResourceRecord:
        """
        Replace the record of an already recorded web ACL, keeping its position.

        Used once the ACL has been attached to a load balancer or distribution.

        Raises:
            RecorderError: If the web ACL was never recorded
        """
        record = self._build_record(
            ResourceType.WAF, waf, waf.web_acl_arn, self._waf_properties(waf)
        )
        for index, existing in enumerate(self._records):
            if (
                existing.resource_type == ResourceType.WAF
                and existing.resource_id == record.resource_id
            ):
                self._records[index] = record
                logger.info(f"Updated WAF resource {record.resource_id}")
                return record
        raise RecorderError(f"WAF resource {record.resource_id} was not recorded")

    def record_monitoring(self, monitoring: MonitoringHandle) -> ResourceRecord:
        return self._record(
            ResourceType.MONITORING,
            monitoring,
            monitoring.topic_arn,
            MonitoringProperties(
                alarm_topic_arn=monitoring.topic_arn,
                alarm_names=list(monitoring.alarm_names),
            ),
        )

    # ------------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------------

    def render(self) -> Dict[str, Tuple[str, str]]:
        """Render every output document from the current records."""
        return render_artifacts(
            self.records,
            project_name=self.context.project_name,
            environment=self.context.environment,
            region=self.context.region,
            account_id=self.context.account,
            timestamp=self.context.timestamp,
        )

    def save_to_files(self, output_dir: Optional[str] = None) -> Dict[str, Path]:
        """
        Write the output files under ``{output_dir}/{project}/``.

        Args:
            output_dir: Base directory (default: resource-info)

        Returns:
            Mapping of artifact key to written path

        Raises:
            RecorderError: If called twice or before anything was recorded
        """
        if self._saved:
            raise RecorderError("Resources were already saved")
        if not self._records:
            raise RecorderError("No resources were recorded")

        documents = self.render()

        directory = Path(output_dir or DEFAULT_OUTPUT_DIR) / self.context.project_name
        directory.mkdir(parents=True, exist_ok=True)

        paths: Dict[str, Path] = {}
        for key, (filename, content) in documents.items():
            path = directory / filename
            path.write_text(content)
            paths[key] = path
            logger.info(f"Wrote {path}")

        self._saved = True
        return paths
