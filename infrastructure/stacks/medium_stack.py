"""Medium tier stack."""

from infrastructure.stacks.tiered_stack import TieredStack
from infrastructure.stacks.tiers import MEDIUM_TIER


class MediumStack(TieredStack):
    """
    Medium tier.

    Components:
    - VPC over 3 AZs with 2 NAT gateways
    - Aurora PostgreSQL Serverless v2 (0.5-2 ACU), writer plus one reader
    - Single cache.t4g.medium Redis node
    - Fargate service (1024 CPU / 2048 MiB), 2-5 tasks, CPU and memory scaling
    - CloudFront distribution; REGIONAL web ACL on the load balancer
    - Alarms with a 5 minute period
    """

    tier_settings = MEDIUM_TIER
