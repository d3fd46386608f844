"""
Provisioning backend interface.

Builders decide *what* to create and call a backend to create it. The
production backend emits AWS CDK constructs (``CdkBackend``); tests use a
fake. Each method returns a handle once the resource exists.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from infrastructure.config import (
    CacheConfig,
    CdnConfig,
    ComputeConfig,
    DatabaseConfig,
    MonitoringConfig,
    NetworkConfig,
    StorageConfig,
    WafConfig,
    WafRule,
)
from infrastructure.handles import (
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


class ProvisioningBackend(ABC):
    """Creates resources on behalf of builders."""

    # Network ----------------------------------------------------------------

    @abstractmethod
    def create_network(self, name: str, config: NetworkConfig) -> NetworkHandle:
        ...

    # Database ---------------------------------------------------------------

    @abstractmethod
    def create_database_instance(
        self, name: str, config: DatabaseConfig, network: NetworkHandle
    ) -> DatabaseInstanceHandle:
        ...

    @abstractmethod
    def create_database_cluster(
        self,
        name: str,
        config: DatabaseConfig,
        network: NetworkHandle,
        global_cluster_id: Optional[str] = None,
    ) -> DatabaseClusterHandle:
        ...

    # Cache ------------------------------------------------------------------

    @abstractmethod
    def create_cache_node(
        self, name: str, config: CacheConfig, network: NetworkHandle
    ) -> CacheNodeHandle:
        ...

    @abstractmethod
    def create_replication_group(
        self,
        name: str,
        config: CacheConfig,
        network: NetworkHandle,
        num_shards: int,
        replicas_per_shard: int,
    ) -> ReplicationGroupHandle:
        ...

    # Storage ----------------------------------------------------------------

    @abstractmethod
    def create_bucket(self, name: str, config: StorageConfig) -> StorageHandle:
        ...

    # Compute, called in this order by ComputeBuilder ------------------------

    @abstractmethod
    def create_container_cluster(
        self, name: str, config: ComputeConfig, network: NetworkHandle
    ) -> ClusterHandle:
        ...

    @abstractmethod
    def create_task_definition(
        self, name: str, config: ComputeConfig
    ) -> TaskDefinitionHandle:
        ...

    @abstractmethod
    def create_load_balancer(
        self, name: str, config: ComputeConfig, network: NetworkHandle
    ) -> LoadBalancerHandle:
        ...

    @abstractmethod
    def create_target_group(
        self, name: str, config: ComputeConfig, network: NetworkHandle
    ) -> TargetGroupHandle:
        ...

    @abstractmethod
    def create_service(
        self,
        name: str,
        config: ComputeConfig,
        network: NetworkHandle,
        cluster: ClusterHandle,
        task_definition: TaskDefinitionHandle,
        target_group: TargetGroupHandle,
    ) -> ServiceHandle:
        ...

    @abstractmethod
    def create_listener(
        self,
        name: str,
        config: ComputeConfig,
        load_balancer: LoadBalancerHandle,
        target_group: TargetGroupHandle,
    ) -> ListenerHandle:
        ...

    @abstractmethod
    def configure_autoscaling(
        self,
        name: str,
        config: ComputeConfig,
        service: ServiceHandle,
        target_group: TargetGroupHandle,
    ) -> ScalingHandle:
        ...

    # Edge -------------------------------------------------------------------

    @abstractmethod
    def create_distribution(
        self,
        name: str,
        config: CdnConfig,
        storage: StorageHandle,
        web_acl: Optional[WafHandle] = None,
    ) -> CdnHandle:
        ...

    @abstractmethod
    def create_web_acl(
        self, name: str, config: WafConfig, rules: List[WafRule]
    ) -> WafHandle:
        ...

    @abstractmethod
    def associate_web_acl(self, name: str, web_acl: WafHandle, resource_arn: str) -> Any:
        ...

    # Monitoring -------------------------------------------------------------

    @abstractmethod
    def create_alarms(
        self,
        name: str,
        config: MonitoringConfig,
        compute: ComputeHandle,
        database: Optional[DatabaseHandle] = None,
    ) -> MonitoringHandle:
        ...

    # Shared -----------------------------------------------------------------

    @abstractmethod
    def tag(self, handle: Any, tags: Dict[str, str]) -> None:
        """Apply tags to every resource behind a handle."""

    def resolve(self, value: Any) -> Any:
        """Turn backend placeholders into plain values for output files."""
        return value
