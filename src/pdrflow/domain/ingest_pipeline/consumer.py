"""Queue consumer loop with an explicit outer driver.

``QueueConsumer.run_iteration`` performs one poll/process/acknowledge cycle and
never holds state between cycles; ``drive`` repeats a step for as long as its
``should_continue`` predicate allows. Production runs use ``always_continue``;
bounded runs stop after a number of empty polls.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from pdrflow.domain.ports import MessageQueue, QueueMessage

log = getLogger(__name__)

DEFAULT_VISIBILITY_TIMEOUT: Final[int] = 200
DEFAULT_IDLE_DELAY: Final[float] = 1.0

type MessageAction = Callable[[QueueMessage], Awaitable[object]]


class ConsumerState(StrEnum):
    IDLE = "idle"
    POLLING = "polling"
    PROCESSING = "processing"
    DRAINING = "draining"


@dataclass(slots=True, frozen=True)
class IterationResult:
    received: int = 0
    succeeded: int = 0
    failed: int = 0
    error: str | None = None

    @property
    def empty(self) -> bool:
        return self.received == 0


type ContinuePredicate = Callable[[IterationResult], bool]


def always_continue(_: IterationResult) -> bool:
    return True


@dataclass(slots=True)
class BoundedIterations:
    """Stop once ``limit`` empty polls have been followed by one more.

    ``limit=0`` stops at the first empty poll. Polls that return messages never
    count.
    """

    limit: int
    remaining: int = field(init=False)

    def __post_init__(self) -> None:
        if self.limit < 0:
            raise ValueError("limit must be zero or positive; use always_continue instead")
        self.remaining = self.limit

    def __call__(self, result: IterationResult) -> bool:
        if not result.empty:
            return True
        if self.remaining == 0:
            return False
        self.remaining -= 1
        return True


def continue_predicate(max_iterations: int) -> ContinuePredicate:
    if max_iterations == -1:
        return always_continue
    return BoundedIterations(max_iterations)


async def drive(
    step: Callable[[], Awaitable[IterationResult]],
    should_continue: ContinuePredicate,
    *,
    idle_delay: float = 0.0,
) -> int:
    """Run ``step`` until ``should_continue`` returns False; return the iteration count.

    A step that raises is logged and counted as an empty iteration.
    """

    iterations = 0
    while True:
        iterations += 1
        try:
            result = await step()
        except Exception as exc:
            log.exception("Consumer iteration %d failed", iterations)
            result = IterationResult(error=str(exc))
        if not should_continue(result):
            return iterations
        if result.empty and idle_delay > 0:
            await asyncio.sleep(idle_delay)


@dataclass(slots=True)
class QueueConsumer:
    """Poll ``queue_id``, run ``action`` per message, delete on success only."""

    queue: MessageQueue
    queue_id: str
    action: MessageAction
    idle_delay: float = DEFAULT_IDLE_DELAY
    state: ConsumerState = ConsumerState.IDLE

    async def run_iteration(self, concurrency: int, visibility_timeout: int) -> IterationResult:
        self.state = ConsumerState.POLLING
        try:
            messages = await self.queue.receive(self.queue_id, concurrency, visibility_timeout)
        except Exception:
            self.state = ConsumerState.IDLE
            raise

        if not messages:
            log.debug("No messages in queue %s", self.queue_id)
            self.state = ConsumerState.IDLE
            return IterationResult()

        self.state = ConsumerState.PROCESSING
        log.info("Processing %d message(s) from %s", len(messages), self.queue_id)
        outcomes = await asyncio.gather(*(self._handle(message) for message in messages))
        self.state = ConsumerState.IDLE
        succeeded = sum(1 for outcome in outcomes if outcome)
        return IterationResult(
            received=len(messages),
            succeeded=succeeded,
            failed=len(messages) - succeeded,
        )

    async def run(
        self,
        concurrency: int = 1,
        visibility_timeout: int = DEFAULT_VISIBILITY_TIMEOUT,
        max_iterations: int = -1,
    ) -> int:
        """Consume until the continue predicate stops; unbounded when ``max_iterations`` is -1."""

        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        should_continue = continue_predicate(max_iterations)
        idle_delay = self.idle_delay if max_iterations == -1 else 0.0

        async def step() -> IterationResult:
            return await self.run_iteration(concurrency, visibility_timeout)

        iterations = await drive(step, should_continue, idle_delay=idle_delay)
        self.state = ConsumerState.DRAINING
        log.info("Consumer for %s drained after %d iteration(s)", self.queue_id, iterations)
        return iterations

    async def _handle(self, message: QueueMessage) -> bool:
        try:
            await self.action(message)
        except Exception:
            log.exception(
                "Action failed for message %s; leaving it for redelivery",
                message.message_id or message.receipt_handle,
            )
            return False

        try:
            await self.queue.delete(self.queue_id, message.receipt_handle)
        except Exception:
            log.exception(
                "Could not delete message %s from %s",
                message.message_id or message.receipt_handle,
                self.queue_id,
            )
            return False
        return True
