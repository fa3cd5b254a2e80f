from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from pdrflow.domain.ingest_pipeline import (
    BoundedIterations,
    ConsumerState,
    IterationResult,
    QueueConsumer,
    always_continue,
    continue_predicate,
    drive,
)

if TYPE_CHECKING:
    from pdrflow.domain.ports import QueueMessage
    from tests.support.fakes import FakeClock, InMemoryMessageQueue

EMPTY = IterationResult()
BUSY = IterationResult(received=1, succeeded=1)


def test_bounded_iterations_zero_stops_at_first_empty_poll() -> None:
    predicate = BoundedIterations(0)

    assert predicate(BUSY) is True
    assert predicate(EMPTY) is False


def test_bounded_iterations_counts_empty_polls_only() -> None:
    predicate = BoundedIterations(2)

    decisions = [predicate(result) for result in (EMPTY, BUSY, EMPTY, BUSY, EMPTY)]

    assert decisions == [True, True, True, True, False]


def test_bounded_iterations_rejects_negative_limits() -> None:
    with pytest.raises(ValueError, match="limit"):
        BoundedIterations(-1)


def test_continue_predicate_selects_mode() -> None:
    assert continue_predicate(-1) is always_continue
    assert isinstance(continue_predicate(3), BoundedIterations)
    assert always_continue(EMPTY) is True


def test_drive_counts_failing_steps_as_empty(caplog: pytest.LogCaptureFixture) -> None:
    calls: list[int] = []

    async def step() -> IterationResult:
        calls.append(1)
        raise ConnectionError("poll failed")

    iterations = asyncio.run(drive(step, BoundedIterations(1)))

    assert iterations == 2
    assert len(calls) == 2
    assert "Consumer iteration 1 failed" in caplog.text


def _seed(queue: InMemoryMessageQueue, queue_id: str, *bodies: str) -> None:
    async def scenario() -> None:
        for body in bodies:
            await queue.send(queue_id, {"body": body})

    asyncio.run(scenario())


def test_run_drains_queue_and_deletes_handled_messages(queue: InMemoryMessageQueue) -> None:
    _seed(queue, "work", "a", "b", "c")
    handled: list[str] = []

    async def action(message: QueueMessage) -> None:
        handled.append(message.body)

    consumer = QueueConsumer(queue=queue, queue_id="work", action=action)
    iterations = asyncio.run(consumer.run(concurrency=2, visibility_timeout=30, max_iterations=0))

    assert iterations == 3
    assert len(handled) == 3
    assert queue.depth("work") == 0
    assert len(queue.deleted) == 3
    assert consumer.state is ConsumerState.DRAINING


def test_failed_action_leaves_message_for_redelivery(
    queue: InMemoryMessageQueue, clock: FakeClock
) -> None:
    _seed(queue, "work", "a")
    attempts: list[str] = []

    async def action(message: QueueMessage) -> None:
        attempts.append(message.body)
        if len(attempts) == 1:
            raise RuntimeError("transfer interrupted")

    consumer = QueueConsumer(queue=queue, queue_id="work", action=action)

    first = asyncio.run(consumer.run_iteration(1, 30))
    hidden = asyncio.run(consumer.run_iteration(1, 30))
    clock.advance(30)
    second = asyncio.run(consumer.run_iteration(1, 30))

    assert (first.received, first.failed) == (1, 1)
    assert hidden.empty
    assert (second.received, second.succeeded) == (1, 1)
    assert len(attempts) == 2
    assert queue.depth("work") == 0


def test_failed_delete_counts_as_failure(queue: InMemoryMessageQueue) -> None:
    _seed(queue, "work", "a")
    queue.fail_delete = True

    async def action(message: QueueMessage) -> None:
        return None

    consumer = QueueConsumer(queue=queue, queue_id="work", action=action)
    result = asyncio.run(consumer.run_iteration(1, 30))

    assert (result.received, result.succeeded, result.failed) == (1, 0, 1)
    assert queue.depth("work") == 1


def test_poll_failure_does_not_stop_the_consumer(queue: InMemoryMessageQueue) -> None:
    _seed(queue, "work", "a")
    queue.fail_receive = 1
    handled: list[str] = []

    async def action(message: QueueMessage) -> None:
        handled.append(message.body)

    consumer = QueueConsumer(queue=queue, queue_id="work", action=action)
    iterations = asyncio.run(consumer.run(concurrency=1, visibility_timeout=30, max_iterations=1))

    assert iterations == 3
    assert len(handled) == 1
    assert consumer.state is ConsumerState.DRAINING


def test_run_rejects_non_positive_concurrency(queue: InMemoryMessageQueue) -> None:
    async def action(message: QueueMessage) -> None:
        return None

    consumer = QueueConsumer(queue=queue, queue_id="work", action=action)

    with pytest.raises(ValueError, match="concurrency"):
        asyncio.run(consumer.run(concurrency=0))
