"""SQLAlchemy table metadata for the local record store and work queues."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

# One row per record item; ``record_key`` is the JSON-encoded key tuple of the
# owning table and ``revision`` mirrors the item's revision for conditional writes.
record_table = Table(
    "record",
    metadata,
    Column("table_name", String(32), primary_key=True),
    Column("record_key", String, primary_key=True),
    Column("revision", Integer, nullable=False, default=0),
    Column("item", JSON, nullable=False),
    Column("updated_at", UTCDateTime, nullable=False),
)

queue_message_table = Table(
    "queue_message",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("queue_id", String, nullable=False),
    Column("body", Text, nullable=False),
    Column("sent_at", UTCDateTime, nullable=False),
    Column("visible_after", UTCDateTime, nullable=False),
    Column("receipt_handle", String, nullable=True, unique=True),
    Column("receive_count", Integer, nullable=False, default=0),
    Index("ix_queue_message_visibility", "queue_id", "visible_after"),
)


def create_all_tables(engine: Engine) -> None:
    metadata.create_all(engine)
