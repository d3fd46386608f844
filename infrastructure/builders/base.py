"""
Builder contract and shared tagging.

A builder validates its config, provisions one resource group through a
backend and tags it. ``build()`` is not idempotent: every call provisions a
new resource.
"""

import dataclasses
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Optional, TypeVar

from infrastructure.backend.base import ProvisioningBackend
from infrastructure.config import BaseConfig
from infrastructure.context import DeploymentContext
from infrastructure.errors import MissingDependencyError
from infrastructure.naming import generate_name

logger = logging.getLogger(__name__)

ConfigT = TypeVar("ConfigT", bound=BaseConfig)
HandleT = TypeVar("HandleT")

CREATED_BY = "cdk"


def default_tags(project_name: str, environment: str, created_at: str) -> Dict[str, str]:
    """Tags every resource carries."""
    return {
        "Project": project_name,
        "Environment": environment,
        "CreatedBy": CREATED_BY,
        "CreatedAt": created_at,
    }


def merge_tags(*tag_sets: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Merge tag sets left to right; later sets win on key collision."""
    merged: Dict[str, str] = {}
    for tags in tag_sets:
        if tags:
            merged.update(tags)
    return merged


def apply_tags(backend: ProvisioningBackend, handle: Any, tags: Dict[str, str]) -> Any:
    """Tag a provisioned resource and return its handle carrying the tags."""
    backend.tag(handle, tags)
    return dataclasses.replace(handle, tags=dict(tags))


class ResourceBuilder(ABC, Generic[ConfigT, HandleT]):
    """
    Base class for resource builders.

    Subclasses set ``resource_type`` (the naming segment, e.g. "vpc") and
    implement ``validate`` and ``_create``.

    Args:
        backend: Provisioning backend
        config: Resource configuration
        context: Deployment context (supplies the CreatedAt tag)
    """

    resource_type: str = ""

    def __init__(
        self,
        backend: ProvisioningBackend,
        config: ConfigT,
        context: DeploymentContext,
    ):
        self.backend = backend
        self.config = config
        self.context = context

    @abstractmethod
    def validate(self) -> bool:
        """Return True or raise ConfigurationError."""

    @abstractmethod
    def _create(self, name: str) -> HandleT:
        """Provision the resource group and return its untagged handle."""

    def _extra_tags(self, handle: HandleT) -> Dict[str, str]:
        """Builder-specific tags applied between the defaults and caller tags."""
        return {}

    def _require(self, dependency: Any, dependency_name: str) -> Any:
        if dependency is None:
            raise MissingDependencyError(type(self).__name__, dependency_name)
        return dependency

    @property
    def name(self) -> str:
        return generate_name(
            self.config.project_name, self.config.environment, self.resource_type
        )

    def build(self) -> HandleT:
        """Validate, provision and tag the resource."""
        self.validate()
        name = self.name
        handle = self._create(name)
        tags = merge_tags(
            default_tags(
                self.config.project_name, self.config.environment, self.context.created_at
            ),
            self._extra_tags(handle),
            self.config.tags,
        )
        logger.info(f"Built {self.resource_type} resource {name}")
        return apply_tags(self.backend, handle, tags)
