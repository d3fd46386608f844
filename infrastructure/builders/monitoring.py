"""CloudWatch alarm builder."""

from typing import Optional

from infrastructure.backend.base import ProvisioningBackend
from infrastructure.builders.base import ResourceBuilder
from infrastructure.config import MonitoringConfig
from infrastructure.context import DeploymentContext
from infrastructure.handles import ComputeHandle, DatabaseHandle, MonitoringHandle
from infrastructure.validators import validate_monitoring_config


class MonitoringBuilder(ResourceBuilder[MonitoringConfig, MonitoringHandle]):
    """
    Builds alarms for the service, its load balancer and the database.

    Components:
    - SNS topic for alarm notifications (optional email subscription)
    - ECS CPU and memory utilization alarms
    - ALB target 5xx alarm
    - Database CPU alarm (instance or cluster dimension)
    """

    resource_type = "alarms"

    def __init__(
        self,
        backend: ProvisioningBackend,
        config: MonitoringConfig,
        context: DeploymentContext,
        *,
        compute: Optional[ComputeHandle] = None,
        database: Optional[DatabaseHandle] = None,
    ):
        super().__init__(backend, config, context)
        self.compute = compute
        self.database = database

    def validate(self) -> bool:
        return validate_monitoring_config(self.config)

    def _create(self, name: str) -> MonitoringHandle:
        compute = self._require(self.compute, "compute")
        return self.backend.create_alarms(name, self.config, compute, self.database)
