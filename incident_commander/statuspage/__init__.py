"""External status page integration."""

from .client import StatuspageClient, map_status
from .sync import StatusPageSync

__all__ = ["StatuspageClient", "StatusPageSync", "map_status"]
