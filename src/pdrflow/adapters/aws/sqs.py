"""SQS message queue."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

import boto3

from pdrflow.domain.ports import QueueMessage

if TYPE_CHECKING:
    from collections.abc import Mapping

    from pdrflow.config import IngestConfig

log = getLogger(__name__)

# SQS returns at most ten messages per receive call.
MAX_RECEIVE: Final[int] = 10


@dataclass(slots=True)
class SqsMessageQueue:
    """Queue ids are queue names or full queue URLs."""

    client: Any
    wait_time_seconds: int = 0
    _urls: dict[str, str] = field(default_factory=dict[str, str])

    @classmethod
    def from_config(cls, config: IngestConfig) -> SqsMessageQueue:
        kwargs: dict[str, str] = {}
        if config.aws_region:
            kwargs["region_name"] = config.aws_region
        return cls(client=boto3.client("sqs", **kwargs))

    def queue_url(self, queue_id: str) -> str:
        if queue_id.startswith(("https://", "http://")):
            return queue_id
        if queue_id not in self._urls:
            self._urls[queue_id] = self.client.get_queue_url(QueueName=queue_id)["QueueUrl"]
        return self._urls[queue_id]

    async def send(self, queue_id: str, payload: Mapping[str, Any] | str) -> str:
        body = payload if isinstance(payload, str) else json.dumps(payload)
        response = self.client.send_message(QueueUrl=self.queue_url(queue_id), MessageBody=body)
        return str(response["MessageId"])

    async def receive(
        self,
        queue_id: str,
        max_messages: int,
        visibility_timeout: int,
    ) -> list[QueueMessage]:
        response = self.client.receive_message(
            QueueUrl=self.queue_url(queue_id),
            MaxNumberOfMessages=max(1, min(max_messages, MAX_RECEIVE)),
            VisibilityTimeout=visibility_timeout,
            WaitTimeSeconds=self.wait_time_seconds,
        )
        return [
            QueueMessage(
                body=message["Body"],
                receipt_handle=message["ReceiptHandle"],
                message_id=message.get("MessageId"),
            )
            for message in response.get("Messages", [])
        ]

    async def delete(self, queue_id: str, receipt_handle: str) -> None:
        self.client.delete_message(QueueUrl=self.queue_url(queue_id), ReceiptHandle=receipt_handle)
