"""
Endpoint clients.

Usage:
    >>> from tsmigrator.clients import InMemorySeriesStore, SourceClient
    >>>
    >>> source = InMemorySeriesStore(name="source")
    >>> destination = InMemorySeriesStore(name="destination")
"""

from tsmigrator.clients.in_memory import InMemorySeriesStore
from tsmigrator.clients.interface import DestinationClient, SourceClient

__all__ = [
    "SourceClient",
    "DestinationClient",
    "InMemorySeriesStore",
]
