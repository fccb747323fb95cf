__all__ = [
    "DirectoryService", "GraphService", "GraphThrottled", "ExchangeOnlineService",
]

from .base import DirectoryService
from .graph import GraphService, GraphThrottled
from .exchange import ExchangeOnlineService
