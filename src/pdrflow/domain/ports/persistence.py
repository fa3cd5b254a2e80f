"""Port for the key-value record store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from pdrflow.domain.model import RecordTable

type Item = dict[str, Any]
type RecordKey = Mapping[str, str]

DEFAULT_BATCH_LIMIT: Final[int] = 100


@runtime_checkable
class RecordStore(Protocol):
    """Async key-value store holding manifest, granule and provider-health items.

    ``get`` and ``update`` raise ``RecordNotFound`` for absent keys. ``update``
    applies ``changes`` only when every field in ``expected`` holds the given
    value, and raises ``ConditionFailedError`` otherwise.
    """

    batch_limit: int

    async def get(self, table: RecordTable, key: RecordKey) -> Item: ...

    async def put(self, table: RecordTable, item: Item) -> None: ...

    async def update(
        self,
        table: RecordTable,
        key: RecordKey,
        changes: Mapping[str, Any],
        *,
        expected: Mapping[str, Any] | None = None,
    ) -> Item: ...

    async def batch_get(self, table: RecordTable, keys: Sequence[RecordKey]) -> list[Item]: ...


__all__ = ["DEFAULT_BATCH_LIMIT", "Item", "RecordKey", "RecordStore"]
