"""Redis cache builder."""

from typing import Dict, Optional

from infrastructure.backend.base import ProvisioningBackend
from infrastructure.builders.base import ResourceBuilder
from infrastructure.config import CacheConfig
from infrastructure.context import DeploymentContext
from infrastructure.handles import REPLICATED, CacheHandle, NetworkHandle
from infrastructure.validators import validate_cache_config


class CacheBuilder(ResourceBuilder[CacheConfig, CacheHandle]):
    """
    Builds either a single-node Redis cluster or a replication group.

    The topology is replicated whenever ``multi_az`` is set or the
    replication settings ask for more than one shard or replica. A replicated
    topology always has automatic failover and multi-AZ enabled.
    """

    resource_type = "cache"

    def __init__(
        self,
        backend: ProvisioningBackend,
        config: CacheConfig,
        context: DeploymentContext,
        *,
        network: Optional[NetworkHandle] = None,
    ):
        super().__init__(backend, config, context)
        self.network = network

    def validate(self) -> bool:
        return validate_cache_config(self.config)

    def _create(self, name: str) -> CacheHandle:
        network = self._require(self.network, "network")

        if not self.config.is_replicated:
            return self.backend.create_cache_node(name, self.config, network)

        replication = self.config.replication
        num_shards = replication.num_shards if replication else 1
        replicas_per_shard = replication.replicas_per_shard if replication else 1
        return self.backend.create_replication_group(
            name,
            self.config,
            network,
            num_shards=num_shards,
            replicas_per_shard=replicas_per_shard,
        )


def cache_environment(handle: CacheHandle) -> Dict[str, str]:
    """
    Container environment variables for reaching the cache.

    Cluster-mode replication groups are reached through the configuration
    endpoint, which the handle exposes as ``endpoint_address``; clients must
    also switch to cluster mode.
    """
    environment = {"REDIS_URL": f"redis://{handle.endpoint_address}:{handle.port}"}
    if handle.topology == REPLICATED:
        environment["REDIS_CLUSTER_MODE"] = "true" if handle.cluster_mode_enabled else "false"
    return environment
