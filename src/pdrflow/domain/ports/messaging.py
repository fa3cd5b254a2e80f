"""Port for the work queues."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(slots=True, frozen=True)
class QueueMessage:
    """A received message; ``receipt_handle`` is the only way to acknowledge it."""

    body: str
    receipt_handle: str
    message_id: str | None = None


@runtime_checkable
class MessageQueue(Protocol):
    """At-least-once queue with visibility-timeout redelivery."""

    async def send(self, queue_id: str, payload: Mapping[str, Any] | str) -> str: ...

    async def receive(
        self,
        queue_id: str,
        max_messages: int,
        visibility_timeout: int,
    ) -> list[QueueMessage]: ...

    async def delete(self, queue_id: str, receipt_handle: str) -> None: ...


__all__ = ["MessageQueue", "QueueMessage"]
