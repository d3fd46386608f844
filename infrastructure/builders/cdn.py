"""CloudFront distribution builder."""

from typing import Optional

from infrastructure.backend.base import ProvisioningBackend
from infrastructure.builders.base import ResourceBuilder
from infrastructure.config import WAF_CLOUDFRONT, CdnConfig
from infrastructure.context import DeploymentContext
from infrastructure.errors import ConfigurationError
from infrastructure.handles import CdnHandle, StorageHandle, WafHandle
from infrastructure.validators import validate_cdn_config


class CdnBuilder(ResourceBuilder[CdnConfig, CdnHandle]):
    """
    Builds a CloudFront distribution in front of the storage bucket.

    Components:
    - Origin access identity with read access to the bucket
    - HTTPS-only distribution serving ``index.html`` by default
    - Single-page-app fallback: 403 and 404 return ``/index.html`` with 200
    - Optional access log bucket, custom domain and CLOUDFRONT web ACL
    """

    resource_type = "cdn"

    def __init__(
        self,
        backend: ProvisioningBackend,
        config: CdnConfig,
        context: DeploymentContext,
        *,
        storage: Optional[StorageHandle] = None,
        web_acl: Optional[WafHandle] = None,
    ):
        super().__init__(backend, config, context)
        self.storage = storage
        self.web_acl = web_acl

    def validate(self) -> bool:
        validate_cdn_config(self.config)
        if self.web_acl is not None:
            if self.web_acl.scope != WAF_CLOUDFRONT:
                raise ConfigurationError(
                    "web_acl", "CloudFront distributions require a CLOUDFRONT web ACL"
                )
            if self.web_acl.associated_resource_arn is not None:
                raise ConfigurationError(
                    "web_acl", f"Web ACL {self.web_acl.name} is already attached"
                )
        return True

    def _create(self, name: str) -> CdnHandle:
        storage = self._require(self.storage, "storage")
        return self.backend.create_distribution(
            name, self.config, storage, web_acl=self.web_acl
        )
