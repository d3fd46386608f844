"""Resource recording and output rendering."""

from .recorder import ResourceRecorder
from .records import ResourceRecord, ResourceType

__all__ = [
    "ResourceRecorder",
    "ResourceRecord",
    "ResourceType",
]
