from __future__ import annotations

import asyncio
import json
from unittest.mock import MagicMock

from pdrflow.adapters.aws import SqsMessageQueue
from pdrflow.domain.ports import QueueMessage

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/granules"


def _client() -> MagicMock:
    client = MagicMock()
    client.get_queue_url.return_value = {"QueueUrl": QUEUE_URL}
    client.send_message.return_value = {"MessageId": "m-1"}
    return client


def test_send_resolves_queue_url_once() -> None:
    client = _client()
    queue = SqsMessageQueue(client=client)

    first = asyncio.run(queue.send("granules", {"granuleId": "foo"}))
    asyncio.run(queue.send("granules", "raw"))

    assert first == "m-1"
    client.get_queue_url.assert_called_once_with(QueueName="granules")
    body = client.send_message.call_args_list[0].kwargs["MessageBody"]
    assert json.loads(body) == {"granuleId": "foo"}


def test_queue_urls_are_used_verbatim() -> None:
    client = _client()
    queue = SqsMessageQueue(client=client)

    asyncio.run(queue.delete(QUEUE_URL, "handle"))

    client.get_queue_url.assert_not_called()
    client.delete_message.assert_called_once_with(QueueUrl=QUEUE_URL, ReceiptHandle="handle")


def test_receive_caps_batch_size_and_maps_messages() -> None:
    client = _client()
    client.receive_message.return_value = {
        "Messages": [{"Body": "{}", "ReceiptHandle": "r-1", "MessageId": "m-1"}]
    }
    queue = SqsMessageQueue(client=client, wait_time_seconds=5)

    messages = asyncio.run(queue.receive("granules", 50, 200))

    assert messages == [QueueMessage(body="{}", receipt_handle="r-1", message_id="m-1")]
    client.receive_message.assert_called_once_with(
        QueueUrl=QUEUE_URL,
        MaxNumberOfMessages=10,
        VisibilityTimeout=200,
        WaitTimeSeconds=5,
    )


def test_receive_without_messages() -> None:
    client = _client()
    client.receive_message.return_value = {}

    assert asyncio.run(SqsMessageQueue(client=client).receive("granules", 1, 30)) == []
