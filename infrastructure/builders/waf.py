"""
WAFv2 web ACL builder.

Two AWS managed rule groups are always appended after the caller's rules.
A web ACL attaches to exactly one target: the CloudFront distribution for
CLOUDFRONT scope, or the load balancer for REGIONAL scope.
"""

import dataclasses
import logging
from collections import Counter
from typing import List

from infrastructure.backend.base import ProvisioningBackend
from infrastructure.builders.base import ResourceBuilder
from infrastructure.config import WAF_CLOUDFRONT, WAF_REGIONAL, WafConfig, WafRule, managed_rule
from infrastructure.errors import ConfigurationError
from infrastructure.handles import CdnHandle, ComputeHandle, WafHandle
from infrastructure.validators import validate_waf_config

logger = logging.getLogger(__name__)

DEFAULT_MANAGED_RULE_GROUPS = (
    "AWSManagedRulesCommonRuleSet",
    "AWSManagedRulesKnownBadInputsRuleSet",
)


class WafBuilder(ResourceBuilder[WafConfig, WafHandle]):
    """Builds a web ACL from the caller's rules plus the default managed groups."""

    resource_type = "waf"

    def validate(self) -> bool:
        return validate_waf_config(self.config)

    def rules(self) -> List[WafRule]:
        """
        Final rule list: caller rules first, then the default managed groups.

        Managed groups take the priorities after the highest caller priority.
        Rules are not deduplicated by name.
        """
        user_rules = list(self.config.rules)
        next_priority = max((rule.priority for rule in user_rules), default=0) + 1

        rules = user_rules + [
            managed_rule(group_name, next_priority + offset)
            for offset, group_name in enumerate(DEFAULT_MANAGED_RULE_GROUPS)
        ]

        duplicates = [name for name, count in Counter(r.name for r in rules).items() if count > 1]
        if duplicates:
            logger.warning(f"Web ACL has duplicate rule names: {', '.join(duplicates)}")
        return rules

    def _create(self, name: str) -> WafHandle:
        return self.backend.create_web_acl(name, self.config, self.rules())


def associate_with_load_balancer(
    backend: ProvisioningBackend, waf: WafHandle, compute: ComputeHandle
) -> WafHandle:
    """
    Attach a REGIONAL web ACL to the compute unit's load balancer.

    Raises:
        ConfigurationError: If the ACL is not REGIONAL or is already attached
    """
    if waf.scope != WAF_REGIONAL:
        raise ConfigurationError(
            "scope", "Only REGIONAL web ACLs can be attached to a load balancer"
        )
    if waf.associated_resource_arn is not None:
        raise ConfigurationError("scope", f"Web ACL {waf.name} is already attached")

    resource_arn = compute.load_balancer.load_balancer_arn
    backend.associate_web_acl(waf.name, waf, resource_arn)
    logger.info(f"Attached web ACL {waf.name} to load balancer of {compute.name}")
    return dataclasses.replace(waf, associated_resource_arn=resource_arn)


def attach_to_distribution(waf: WafHandle, cdn: CdnHandle) -> WafHandle:
    """
    Mark a CLOUDFRONT web ACL as attached to the distribution built with it.

    Raises:
        ConfigurationError: If the ACL is not CLOUDFRONT scope, was not
            passed to this distribution, or is already attached
    """
    if waf.scope != WAF_CLOUDFRONT:
        raise ConfigurationError(
            "scope", "Only CLOUDFRONT web ACLs can be attached to a distribution"
        )
    if cdn.web_acl_arn != waf.web_acl_arn:
        raise ConfigurationError(
            "web_acl", f"Distribution {cdn.name} was not built with web ACL {waf.name}"
        )
    if waf.associated_resource_arn is not None:
        raise ConfigurationError("scope", f"Web ACL {waf.name} is already attached")
    return dataclasses.replace(waf, associated_resource_arn=cdn.distribution_arn)
