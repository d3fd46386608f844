"""S3 bucket builder."""

from infrastructure.builders.base import ResourceBuilder
from infrastructure.config import StorageConfig
from infrastructure.handles import StorageHandle
from infrastructure.validators import validate_storage_config


class StorageBuilder(ResourceBuilder[StorageConfig, StorageHandle]):
    """
    Builds the application bucket.

    The bucket is encrypted, blocks public access, requires TLS and moves
    noncurrent versions to cheaper storage before expiring them.
    """

    resource_type = "assets"

    def validate(self) -> bool:
        return validate_storage_config(self.config)

    def _create(self, name: str) -> StorageHandle:
        return self.backend.create_bucket(name, self.config)
