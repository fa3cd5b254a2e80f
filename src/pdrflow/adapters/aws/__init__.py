"""boto3-backed adapters for S3 staging and SQS queues."""

from __future__ import annotations

from .s3 import S3ObjectStore
from .sqs import SqsMessageQueue

__all__ = ["S3ObjectStore", "SqsMessageQueue"]
