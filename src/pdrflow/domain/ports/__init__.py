"""Domain port definitions for adapters."""

from __future__ import annotations

from .catalog import DefinitionCatalog
from .discovery import DiscoverySource, ListingEntry
from .messaging import MessageQueue, QueueMessage
from .persistence import DEFAULT_BATCH_LIMIT, Item, RecordKey, RecordStore
from .staging import ObjectStore

__all__ = [
    "DEFAULT_BATCH_LIMIT",
    "DefinitionCatalog",
    "DiscoverySource",
    "Item",
    "ListingEntry",
    "MessageQueue",
    "ObjectStore",
    "QueueMessage",
    "RecordKey",
    "RecordStore",
]
