"""In-memory fakes for the pipeline ports."""

from __future__ import annotations

import asyncio
import copy
import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from pdrflow.domain.errors import ConditionFailedError, ProviderNotFoundError, RecordNotFound
from pdrflow.domain.model.enums import RECORD_KEY_FIELDS
from pdrflow.domain.ports import ListingEntry, QueueMessage

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from pdrflow.domain.model import RecordTable


@dataclass(slots=True)
class FakeClock:
    now: datetime = field(default_factory=lambda: datetime(2024, 1, 1, tzinfo=UTC))

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def _key_of(table: RecordTable, key: Mapping[str, Any]) -> tuple[str, ...]:
    return tuple(str(key[name]) for name in RECORD_KEY_FIELDS[table])


@dataclass(slots=True)
class InMemoryRecordStore:
    batch_limit: int = 100
    items: dict[tuple[str, tuple[str, ...]], dict[str, Any]] = field(
        default_factory=dict[tuple[str, tuple[str, ...]], dict[str, Any]]
    )
    batch_calls: list[int] = field(default_factory=list[int])
    writes: int = 0
    conflicts_to_inject: int = 0

    def table(self, table: RecordTable) -> list[dict[str, Any]]:
        return [
            copy.deepcopy(item) for (name, _), item in self.items.items() if name == table.value
        ]

    async def get(self, table: RecordTable, key: Mapping[str, str]) -> dict[str, Any]:
        item = self.items.get((table.value, _key_of(table, key)))
        if item is None:
            raise RecordNotFound(table.value, key)
        return copy.deepcopy(item)

    async def put(self, table: RecordTable, item: dict[str, Any]) -> None:
        self.writes += 1
        self.items[(table.value, _key_of(table, item))] = json.loads(json.dumps(item))

    async def update(
        self,
        table: RecordTable,
        key: Mapping[str, str],
        changes: Mapping[str, Any],
        *,
        expected: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        stored_key = (table.value, _key_of(table, key))
        item = self.items.get(stored_key)
        if item is None:
            raise RecordNotFound(table.value, key)
        if self.conflicts_to_inject > 0:
            self.conflicts_to_inject -= 1
            raise ConditionFailedError(table.value, key)
        if expected and any(item.get(name) != value for name, value in expected.items()):
            raise ConditionFailedError(table.value, key)
        updated = {**item, **json.loads(json.dumps(dict(changes)))}
        self.items[stored_key] = updated
        self.writes += 1
        return copy.deepcopy(updated)

    async def batch_get(
        self, table: RecordTable, keys: Sequence[Mapping[str, str]]
    ) -> list[dict[str, Any]]:
        if len(keys) > self.batch_limit:
            raise ValueError("batch too large")
        self.batch_calls.append(len(keys))
        found = [self.items.get((table.value, _key_of(table, key))) for key in keys]
        return [copy.deepcopy(item) for item in found if item is not None]


@dataclass(slots=True)
class _StoredMessage:
    message_id: str
    body: str
    visible_after: datetime
    receipt_handle: str | None = None
    receive_count: int = 0


@dataclass(slots=True)
class InMemoryMessageQueue:
    """Queue with visibility timeouts driven by an injectable clock."""

    clock: FakeClock = field(default_factory=FakeClock)
    queues: dict[str, list[_StoredMessage]] = field(
        default_factory=dict[str, list[_StoredMessage]]
    )
    sent: list[tuple[str, dict[str, Any]]] = field(default_factory=list[tuple[str, dict[str, Any]]])
    deleted: list[str] = field(default_factory=list[str])
    fail_receive: int = 0
    fail_delete: bool = False

    async def send(self, queue_id: str, payload: Mapping[str, Any] | str) -> str:
        body = payload if isinstance(payload, str) else json.dumps(payload)
        message_id = uuid.uuid4().hex
        self.queues.setdefault(queue_id, []).append(
            _StoredMessage(message_id=message_id, body=body, visible_after=self.clock())
        )
        self.sent.append((queue_id, json.loads(body)))
        return message_id

    async def receive(
        self, queue_id: str, max_messages: int, visibility_timeout: int
    ) -> list[QueueMessage]:
        if self.fail_receive > 0:
            self.fail_receive -= 1
            raise ConnectionError("queue unavailable")
        now = self.clock()
        received: list[QueueMessage] = []
        for stored in self.queues.get(queue_id, []):
            if len(received) >= max_messages:
                break
            if stored.visible_after > now:
                continue
            stored.receipt_handle = uuid.uuid4().hex
            stored.visible_after = now + timedelta(seconds=visibility_timeout)
            stored.receive_count += 1
            received.append(
                QueueMessage(
                    body=stored.body,
                    receipt_handle=stored.receipt_handle,
                    message_id=stored.message_id,
                )
            )
        return received

    async def delete(self, queue_id: str, receipt_handle: str) -> None:
        if self.fail_delete:
            raise ConnectionError("delete failed")
        messages = self.queues.get(queue_id, [])
        for stored in messages:
            if stored.receipt_handle == receipt_handle:
                messages.remove(stored)
                self.deleted.append(stored.message_id)
                return

    def sent_to(self, queue_id: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.sent if name == queue_id]

    def depth(self, queue_id: str) -> int:
        return len(self.queues.get(queue_id, []))


@dataclass(slots=True)
class RecordingMessageQueue(InMemoryMessageQueue):
    """Yields to the event loop on every send and records start/finish events."""

    events: list[tuple[str, str]] = field(default_factory=list[tuple[str, str]])

    async def send(self, queue_id: str, payload: Mapping[str, Any] | str) -> str:
        body = payload if isinstance(payload, str) else json.dumps(payload)
        name = json.loads(body).get("granuleId", "?")
        self.events.append(("start", name))
        await asyncio.sleep(0)
        message_id = await InMemoryMessageQueue.send(self, queue_id, body)
        await asyncio.sleep(0)
        self.events.append(("end", name))
        return message_id


@dataclass(slots=True)
class InMemoryObjectStore:
    """Object store whose ``upload`` copies bytes from a table of known sources."""

    sources: dict[str, bytes] = field(default_factory=dict[str, bytes])
    objects: dict[tuple[str, str], bytes] = field(default_factory=dict[tuple[str, str], bytes])
    uploads: list[tuple[str, str, str]] = field(default_factory=list[tuple[str, str, str]])
    unreachable: set[str] = field(default_factory=set[str])

    def uri(self, bucket: str, key: str) -> str:
        return f"mem://{bucket}/{key}"

    async def upload(self, source: str, bucket: str, key: str) -> str:
        if source in self.unreachable or source not in self.sources:
            raise ConnectionError(f"{source} is not reachable")
        self.uploads.append((source, bucket, key))
        self.objects[(bucket, key)] = self.sources[source]
        return self.uri(bucket, key)

    async def exists(self, bucket: str, key: str) -> bool:
        return (bucket, key) in self.objects

    async def read(self, bucket: str, key: str) -> bytes:
        try:
            return self.objects[(bucket, key)]
        except KeyError:
            raise FileNotFoundError(f"{bucket}/{key}") from None


@dataclass(slots=True)
class StaticListingSource:
    entries: list[ListingEntry] = field(default_factory=list[ListingEntry])
    not_found: bool = False
    calls: list[str] = field(default_factory=list[str])

    async def list(self, endpoint: str) -> list[ListingEntry]:
        self.calls.append(endpoint)
        if self.not_found:
            raise ProviderNotFoundError(f"{endpoint} was not found", endpoint=endpoint)
        return list(self.entries)
