"""Record store on a single SQLAlchemy table of JSON items."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, insert, select, update

from pdrflow.adapters.sqlalchemy.mappings import record_table
from pdrflow.domain.errors import ConditionFailedError, RecordNotFound
from pdrflow.domain.model import utcnow
from pdrflow.domain.model.enums import RECORD_KEY_FIELDS
from pdrflow.domain.ports import DEFAULT_BATCH_LIMIT

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from datetime import datetime

    from sqlalchemy import ColumnElement
    from sqlalchemy.engine import Engine

    from pdrflow.domain.model import RecordTable
    from pdrflow.domain.ports import Item, RecordKey

log = getLogger(__name__)


def encode_key(table: RecordTable, key: Mapping[str, Any]) -> str:
    fields = RECORD_KEY_FIELDS[table]
    missing = [name for name in fields if name not in key]
    if missing:
        raise ValueError(f"Key for {table} lacks {', '.join(missing)}")
    return json.dumps([str(key[name]) for name in fields])


def _row_filter(table: RecordTable, encoded: str) -> ColumnElement[bool]:
    return and_(
        record_table.c.table_name == table.value,
        record_table.c.record_key == encoded,
    )


@dataclass(slots=True)
class SqlAlchemyRecordStore:
    engine: Engine
    batch_limit: int = DEFAULT_BATCH_LIMIT
    clock: Callable[[], datetime] = field(default=utcnow)

    async def get(self, table: RecordTable, key: RecordKey) -> Item:
        encoded = encode_key(table, key)
        with self.engine.connect() as connection:
            row = connection.execute(
                select(record_table.c.item).where(_row_filter(table, encoded))
            ).first()
        if row is None:
            raise RecordNotFound(table.value, key)
        return dict(row.item)

    async def put(self, table: RecordTable, item: Item) -> None:
        encoded = encode_key(table, item)
        values = {
            "revision": int(item.get("revision", 0)),
            "item": dict(item),
            "updated_at": self.clock(),
        }
        with self.engine.begin() as connection:
            result = connection.execute(
                update(record_table).where(_row_filter(table, encoded)).values(**values)
            )
            if result.rowcount == 0:
                connection.execute(
                    insert(record_table).values(
                        table_name=table.value, record_key=encoded, **values
                    )
                )

    async def update(
        self,
        table: RecordTable,
        key: RecordKey,
        changes: Mapping[str, Any],
        *,
        expected: Mapping[str, Any] | None = None,
    ) -> Item:
        encoded = encode_key(table, key)
        with self.engine.begin() as connection:
            row = connection.execute(
                select(record_table.c.item, record_table.c.revision).where(
                    _row_filter(table, encoded)
                )
            ).first()
            if row is None:
                raise RecordNotFound(table.value, key)

            item = dict(row.item)
            if expected and any(item.get(name) != value for name, value in expected.items()):
                raise ConditionFailedError(table.value, key)

            item.update(changes)
            for name in RECORD_KEY_FIELDS[table]:
                item[name] = key[name]
            result = connection.execute(
                update(record_table)
                .where(_row_filter(table, encoded), record_table.c.revision == row.revision)
                .values(
                    item=item,
                    revision=int(item.get("revision", row.revision)),
                    updated_at=self.clock(),
                )
            )
            if result.rowcount == 0:
                raise ConditionFailedError(table.value, key)
        return item

    async def batch_get(self, table: RecordTable, keys: Sequence[RecordKey]) -> list[Item]:
        if len(keys) > self.batch_limit:
            raise ValueError(f"batch_get accepts at most {self.batch_limit} keys, got {len(keys)}")
        if not keys:
            return []
        encoded = [encode_key(table, key) for key in keys]
        with self.engine.connect() as connection:
            rows = connection.execute(
                select(record_table.c.item).where(
                    record_table.c.table_name == table.value,
                    record_table.c.record_key.in_(encoded),
                )
            ).all()
        return [dict(row.item) for row in rows]
