"""Small tier stack."""

from infrastructure.stacks.tiered_stack import TieredStack
from infrastructure.stacks.tiers import SMALL_TIER


class SmallStack(TieredStack):
    """
    Small tier.

    Components:
    - VPC over 2 AZs with 1 NAT gateway and no isolated subnets
    - PostgreSQL db.t4g.small, 20-100 GiB, 7-day backups
    - Single cache.t4g.micro Redis node
    - Fargate service (512 CPU / 1024 MiB), 1-2 tasks, CPU scaling
    - No CDN, WAF or alarms
    """

    tier_settings = SMALL_TIER
