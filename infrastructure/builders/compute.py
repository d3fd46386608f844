"""ECS Fargate service builder."""

from typing import Optional

from infrastructure.backend.base import ProvisioningBackend
from infrastructure.builders.base import ResourceBuilder
from infrastructure.config import ComputeConfig
from infrastructure.context import DeploymentContext
from infrastructure.handles import ComputeHandle, NetworkHandle
from infrastructure.validators import validate_compute_config


class ComputeBuilder(ResourceBuilder[ComputeConfig, ComputeHandle]):
    """
    Builds a load-balanced Fargate service as one unit.

    Steps run in dependency order and a failure stops the remaining steps:
    cluster -> task definition -> load balancer -> target group -> service
    -> listener -> autoscaling.
    """

    resource_type = "app"

    def __init__(
        self,
        backend: ProvisioningBackend,
        config: ComputeConfig,
        context: DeploymentContext,
        *,
        network: Optional[NetworkHandle] = None,
    ):
        super().__init__(backend, config, context)
        self.network = network

    def validate(self) -> bool:
        return validate_compute_config(self.config)

    def _create(self, name: str) -> ComputeHandle:
        network = self._require(self.network, "network")
        backend = self.backend
        config = self.config

        cluster = backend.create_container_cluster(name, config, network)
        task_definition = backend.create_task_definition(name, config)
        load_balancer = backend.create_load_balancer(name, config, network)
        target_group = backend.create_target_group(name, config, network)
        service = backend.create_service(
            name, config, network, cluster, task_definition, target_group
        )
        listener = backend.create_listener(name, config, load_balancer, target_group)
        scaling = backend.configure_autoscaling(name, config, service, target_group)

        return ComputeHandle(
            name=name,
            cluster=cluster,
            task_definition=task_definition,
            load_balancer=load_balancer,
            target_group=target_group,
            service=service,
            listener=listener,
            scaling=scaling,
        )
