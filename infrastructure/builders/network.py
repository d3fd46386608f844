"""VPC builder."""

from infrastructure.builders.base import ResourceBuilder
from infrastructure.config import NetworkConfig
from infrastructure.handles import NetworkHandle
from infrastructure.validators import validate_network_config


class NetworkBuilder(ResourceBuilder[NetworkConfig, NetworkHandle]):
    """
    Builds a VPC with public, private and (optionally) isolated subnets.

    Components:
    - One subnet per tier in each of ``max_azs`` availability zones
    - ``nat_gateways`` NAT gateways; fewer than the AZ count is allowed and
      private subnets then share a gateway across AZs
    - Flow logs (ALL traffic) to CloudWatch Logs
    - S3 gateway endpoint
    """

    resource_type = "vpc"

    def validate(self) -> bool:
        return validate_network_config(self.config)

    def _create(self, name: str) -> NetworkHandle:
        return self.backend.create_network(name, self.config)
