"""Relational database builder."""

from typing import Dict, Optional

from infrastructure.backend.base import ProvisioningBackend
from infrastructure.builders.base import ResourceBuilder
from infrastructure.config import AURORA_POSTGRESQL, POSTGRESQL, DatabaseConfig
from infrastructure.context import DeploymentContext
from infrastructure.errors import ConfigurationError
from infrastructure.handles import DatabaseHandle, NetworkHandle
from infrastructure.validators import validate_database_config


class DatabaseBuilder(ResourceBuilder[DatabaseConfig, DatabaseHandle]):
    """
    Builds a PostgreSQL database whose shape is fixed by the engine.

    - "postgresql": one RDS instance (``DatabaseInstanceHandle``)
    - "aurora-postgresql": an Aurora cluster with one writer and
      ``instance_count - 1`` readers (``DatabaseClusterHandle``), optionally
      Serverless v2 and optionally the source of a global cluster
    """

    resource_type = "db"

    def __init__(
        self,
        backend: ProvisioningBackend,
        config: DatabaseConfig,
        context: DeploymentContext,
        *,
        network: Optional[NetworkHandle] = None,
    ):
        super().__init__(backend, config, context)
        self.network = network

    def validate(self) -> bool:
        return validate_database_config(self.config)

    @property
    def global_cluster_id(self) -> Optional[str]:
        replication = self.config.replication
        if replication is None or not replication.enable_global:
            return None
        return f"{self.config.project_name}-global"

    def _create(self, name: str) -> DatabaseHandle:
        network = self._require(self.network, "network")

        if self.config.engine == POSTGRESQL:
            return self.backend.create_database_instance(name, self.config, network)
        if self.config.engine == AURORA_POSTGRESQL:
            return self.backend.create_database_cluster(
                name, self.config, network, global_cluster_id=self.global_cluster_id
            )
        raise ConfigurationError("engine", "Invalid database engine")

    def _extra_tags(self, handle: DatabaseHandle) -> Dict[str, str]:
        if self.global_cluster_id is None:
            return {}
        tags = {"GlobalClusterId": self.global_cluster_id}
        for index, region in enumerate(self.config.replication.regions):
            tags[f"SecondaryRegion{index}"] = region
        return tags
