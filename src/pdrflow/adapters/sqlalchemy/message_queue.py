"""Work queues on a SQLAlchemy table with visibility-timeout redelivery.

A received message gets a fresh receipt handle and stays invisible until its
visibility timeout elapses; deleting with that handle acknowledges it. A
message that is never deleted becomes visible again and is redelivered.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, insert, select, update

from pdrflow.adapters.sqlalchemy.mappings import queue_message_table
from pdrflow.domain.model import utcnow
from pdrflow.domain.ports import QueueMessage

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from datetime import datetime

    from sqlalchemy.engine import Engine

log = getLogger(__name__)


@dataclass(slots=True)
class SqlAlchemyMessageQueue:
    engine: Engine
    clock: Callable[[], datetime] = field(default=utcnow)

    async def send(self, queue_id: str, payload: Mapping[str, Any] | str) -> str:
        body = payload if isinstance(payload, str) else json.dumps(payload)
        now = self.clock()
        with self.engine.begin() as connection:
            result = connection.execute(
                insert(queue_message_table).values(
                    queue_id=queue_id,
                    body=body,
                    sent_at=now,
                    visible_after=now,
                    receive_count=0,
                )
            )
            (message_id,) = result.inserted_primary_key or (None,)
        return str(message_id)

    async def receive(
        self,
        queue_id: str,
        max_messages: int,
        visibility_timeout: int,
    ) -> list[QueueMessage]:
        now = self.clock()
        hidden_until = now + timedelta(seconds=visibility_timeout)
        messages: list[QueueMessage] = []
        with self.engine.begin() as connection:
            rows = connection.execute(
                select(
                    queue_message_table.c.id,
                    queue_message_table.c.body,
                    queue_message_table.c.receive_count,
                )
                .where(
                    queue_message_table.c.queue_id == queue_id,
                    queue_message_table.c.visible_after <= now,
                )
                .order_by(queue_message_table.c.id)
                .limit(max_messages)
            ).all()
            for row in rows:
                handle = uuid.uuid4().hex
                claimed = connection.execute(
                    update(queue_message_table)
                    .where(
                        queue_message_table.c.id == row.id,
                        queue_message_table.c.receive_count == row.receive_count,
                    )
                    .values(
                        receipt_handle=handle,
                        visible_after=hidden_until,
                        receive_count=queue_message_table.c.receive_count + 1,
                    )
                )
                if claimed.rowcount == 1:
                    messages.append(
                        QueueMessage(body=row.body, receipt_handle=handle, message_id=str(row.id))
                    )
        return messages

    async def delete(self, queue_id: str, receipt_handle: str) -> None:
        with self.engine.begin() as connection:
            result = connection.execute(
                delete(queue_message_table).where(
                    queue_message_table.c.queue_id == queue_id,
                    queue_message_table.c.receipt_handle == receipt_handle,
                )
            )
        if result.rowcount == 0:
            log.debug("No message in %s holds receipt handle %s", queue_id, receipt_handle)

    async def pending(self, queue_id: str) -> int:
        """Count messages in ``queue_id``, visible or not."""

        with self.engine.connect() as connection:
            rows = connection.execute(
                select(queue_message_table.c.id).where(queue_message_table.c.queue_id == queue_id)
            ).all()
        return len(rows)
