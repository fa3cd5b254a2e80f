"""Ingest orchestration pipeline.

Discovery stages new manifests and queues them; the manifest consumer parses
and dispatches them into granule records and file-transfer messages; the file
consumer stages each file and folds completion back into the records through
the ``LifecycleManager``.
"""

from __future__ import annotations

from .actions import ParseManifestAction, TransferFileAction, upload_if_missing
from .consumer import (
    BoundedIterations,
    ConsumerState,
    IterationResult,
    QueueConsumer,
    always_continue,
    continue_predicate,
    drive,
)
from .discovery import UNREACHABLE_MANIFEST, DiscoveryResult, ManifestDiscovery
from .dispatch import DispatchEngine, DispatchResult
from .lifecycle import LifecycleManager
from .messages import FileTransferMessage, GranuleMessage, ManifestMessage

__all__ = [
    "UNREACHABLE_MANIFEST",
    "BoundedIterations",
    "ConsumerState",
    "DiscoveryResult",
    "DispatchEngine",
    "DispatchResult",
    "FileTransferMessage",
    "GranuleMessage",
    "IterationResult",
    "LifecycleManager",
    "ManifestDiscovery",
    "ManifestMessage",
    "ParseManifestAction",
    "QueueConsumer",
    "TransferFileAction",
    "always_continue",
    "continue_predicate",
    "drive",
    "upload_if_missing",
]
