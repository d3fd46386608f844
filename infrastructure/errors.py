"""Exception types raised while composing and recording infrastructure."""


class InfrastructureError(Exception):
    """Base class for infrastructure composition errors."""


class ConfigurationError(InfrastructureError):
    """Raised when a resource configuration violates a constraint."""

    def __init__(self, field: str, constraint: str):
        self.field = field
        self.constraint = constraint
        super().__init__(f"Invalid {field}: {constraint}")


class MissingDependencyError(InfrastructureError):
    """Raised when a builder is missing a required upstream resource."""

    def __init__(self, builder: str, dependency: str):
        self.builder = builder
        self.dependency = dependency
        super().__init__(f"{builder} requires a {dependency} resource")


class ExternalProvisioningError(InfrastructureError):
    """Raised when a call to AWS fails while reading back resources."""


class RecorderError(InfrastructureError):
    """Raised when recorded resources cannot be flushed."""


class PartialRecordWarning(UserWarning):
    """Emitted when extra details for one resource could not be fetched."""


class ResourceNotFoundError(ExternalProvisioningError):
    """Raised when AWS answers a lookup with no matching resource."""
