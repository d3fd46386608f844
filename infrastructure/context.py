"""
Deployment context.

The context is resolved once at the composition root (CDK context, environment
variables and ``.env``) and passed to every builder, so builders never read
process state themselves.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv

from infrastructure.config import DEVELOPMENT, ENVIRONMENTS, PRODUCTION, STAGING
from infrastructure.errors import ConfigurationError

SMALL = "small"
MEDIUM = "medium"
LARGE = "large"
TIERS: Tuple[str, ...] = (SMALL, MEDIUM, LARGE)

DEFAULT_REGION = "ap-northeast-1"

# Stage name -> (environment, tier)
STAGES: Dict[str, Tuple[str, str]] = {
    "dev": (DEVELOPMENT, SMALL),
    "staging": (STAGING, MEDIUM),
    "prod-small": (PRODUCTION, SMALL),
    "prod-medium": (PRODUCTION, MEDIUM),
    "prod-large": (PRODUCTION, LARGE),
}


@dataclass(frozen=True)
class DeploymentContext:
    """Everything a composition needs to know about where it deploys."""

    project_name: str
    environment: str
    tier: str
    region: str = DEFAULT_REGION
    account: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    secondary_regions: Tuple[str, ...] = ()
    tags: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.environment not in ENVIRONMENTS:
            raise ConfigurationError(
                "environment",
                "Invalid environment. Must be one of: production, staging, development",
            )
        if self.tier not in TIERS:
            raise ConfigurationError("tier", f"Tier must be one of: {', '.join(TIERS)}")

    @property
    def created_at(self) -> str:
        """Creation date used for the CreatedAt tag (YYYY-MM-DD)."""
        return self.timestamp.date().isoformat()

    @property
    def stack_name(self) -> str:
        return f"{self.project_name}-{self.environment}"

    @classmethod
    def from_env(cls, context: Optional[Dict[str, Any]] = None) -> "DeploymentContext":
        """
        Resolve the context from CDK context values and environment variables.

        CDK context keys (``-c stage=prod-large``) win over environment
        variables (STAGE, INFRA_TIER, PROJECT_NAME, CDK_DEFAULT_REGION,
        CDK_DEFAULT_ACCOUNT, SECONDARY_REGIONS).

        Args:
            context: Values from ``app.node.try_get_context``

        Returns:
            DeploymentContext

        Raises:
            ConfigurationError: If the stage or tier is unknown
        """
        load_dotenv()
        context = context or {}

        def lookup(key: str, env_var: str, default: Optional[str] = None) -> Optional[str]:
            return context.get(key) or os.getenv(env_var) or default

        stage = lookup("stage", "STAGE", "dev")
        if stage not in STAGES:
            raise ConfigurationError(
                "stage", f"Unknown stage '{stage}'. Available: {', '.join(STAGES)}"
            )
        environment, tier = STAGES[stage]
        tier = lookup("tier", "INFRA_TIER", tier)

        region = (
            lookup("region", "CDK_DEFAULT_REGION")
            or os.getenv("AWS_REGION")
            or DEFAULT_REGION
        )
        secondary = lookup("secondary_regions", "SECONDARY_REGIONS", "")

        return cls(
            project_name=lookup("project", "PROJECT_NAME", "webapp"),
            environment=environment,
            tier=tier,
            region=region,
            account=lookup("account", "CDK_DEFAULT_ACCOUNT"),
            secondary_regions=tuple(r.strip() for r in secondary.split(",") if r.strip()),
        )
