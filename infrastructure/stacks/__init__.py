"""CDK stacks for the small, medium and large tiers."""

from .tiered_stack import TieredStack
from .small_stack import SmallStack
from .medium_stack import MediumStack
from .large_stack import LargeStack
from .tiers import TIER_SETTINGS, TierSettings, get_tier_settings

STACKS = {
    "small": SmallStack,
    "medium": MediumStack,
    "large": LargeStack,
}

__all__ = [
    "TieredStack",
    "SmallStack",
    "MediumStack",
    "LargeStack",
    "STACKS",
    "TIER_SETTINGS",
    "TierSettings",
    "get_tier_settings",
]
