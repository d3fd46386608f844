"""Large tier stack."""

from infrastructure.stacks.tiered_stack import TieredStack
from infrastructure.stacks.tiers import LARGE_TIER


class LargeStack(TieredStack):
    """
    Large tier.

    Components:
    - VPC over 3 AZs with a NAT gateway per AZ
    - Aurora PostgreSQL db.r6g.large, 3 instances, deletion protection,
      global cluster when secondary regions are configured
    - Redis replication group: 3 shards x 2 replicas, multi-AZ
    - Fargate service (2048 CPU / 4096 MiB), 10-50 tasks, CPU, memory and
      request scaling
    - CloudFront distribution with a CLOUDFRONT web ACL and rate limit rule.
      CLOUDFRONT web ACLs can only be created in us-east-1.
    - Alarms with a 1 minute period
    """

    tier_settings = LARGE_TIER
