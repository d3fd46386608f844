"""Resource builders."""

from .base import ResourceBuilder, apply_tags, default_tags, merge_tags
from .cache import CacheBuilder, cache_environment
from .cdn import CdnBuilder
from .compute import ComputeBuilder
from .database import DatabaseBuilder
from .monitoring import MonitoringBuilder
from .network import NetworkBuilder
from .storage import StorageBuilder
from .waf import (
    WafBuilder,
    associate_with_load_balancer,
    attach_to_distribution,
)

__all__ = [
    "ResourceBuilder",
    "apply_tags",
    "default_tags",
    "merge_tags",
    "CacheBuilder",
    "cache_environment",
    "CdnBuilder",
    "ComputeBuilder",
    "DatabaseBuilder",
    "MonitoringBuilder",
    "NetworkBuilder",
    "StorageBuilder",
    "WafBuilder",
    "associate_with_load_balancer",
    "attach_to_distribution",
]
