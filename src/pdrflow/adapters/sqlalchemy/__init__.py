"""SQLAlchemy adapter package for pdrflow."""

from __future__ import annotations

from .mappings import create_all_tables, metadata, queue_message_table, record_table
from .message_queue import SqlAlchemyMessageQueue
from .record_store import SqlAlchemyRecordStore, encode_key

__all__ = [
    "SqlAlchemyMessageQueue",
    "SqlAlchemyRecordStore",
    "create_all_tables",
    "encode_key",
    "metadata",
    "queue_message_table",
    "record_table",
]
