"""Surface probes for the platform's external surfaces."""

from .http_probe import HttpProbe
from .storage_probe import StorageProbe

__all__ = [
    "HttpProbe",
    "StorageProbe",
]
