"""
Deterministic resource naming.

Names are built from the project, environment, resource type and an optional
suffix, joined with dashes and reduced to lowercase ``[a-z0-9-]``.
"""

import re
from typing import Optional

from infrastructure.errors import ConfigurationError

_INVALID_CHARS = re.compile(r"[^a-z0-9-]")
_ALPHANUMERIC = re.compile(r"[a-z0-9]")


def sanitize(value: str) -> str:
    """Lowercase a value and replace anything outside [a-z0-9-] with a dash."""
    return _INVALID_CHARS.sub("-", value.lower())


def generate_name(
    project: str,
    environment: str,
    resource_type: str,
    suffix: Optional[str] = None,
) -> str:
    """
    Build a resource name such as ``acme-development-vpc``.

    Args:
        project: Project name
        environment: Deployment environment (development/staging/production)
        resource_type: Short resource category, e.g. "vpc" or "db"
        suffix: Optional discriminator appended last

    Returns:
        Sanitized name

    Raises:
        ConfigurationError: If the sanitized name has no letters or digits
    """
    parts = [project, environment, resource_type]
    if suffix:
        parts.append(suffix)

    name = sanitize("-".join(parts))
    if not _ALPHANUMERIC.search(name):
        raise ConfigurationError(
            "name", f"'{name}' contains no alphanumeric characters after sanitizing"
        )
    return name


def generate_logical_id(resource_type: str, name: str) -> str:
    """Build a PascalCase logical id, e.g. ``AcmeDevelopmentVpcVPC``."""
    pascal = "".join(part.capitalize() for part in name.split("-") if part)
    return pascal + re.sub(r"[^A-Za-z0-9]", "", resource_type)
