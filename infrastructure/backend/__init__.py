"""Provisioning backends."""

from .base import ProvisioningBackend
from .cdk import CdkBackend

__all__ = ["ProvisioningBackend", "CdkBackend"]
