"""S3 object store."""

from __future__ import annotations

import tempfile
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

import boto3
from botocore.exceptions import ClientError

from pdrflow.adapters.transfer import SourceTransfer

if TYPE_CHECKING:
    from pdrflow.config import IngestConfig

log = getLogger(__name__)

# Sources smaller than this are buffered in memory before the upload.
_SPOOL_BYTES: Final[int] = 8 * 1024 * 1024
_MISSING_CODES: Final[frozenset[str]] = frozenset({"404", "NoSuchKey", "NotFound"})


@dataclass(slots=True)
class S3ObjectStore:
    client: Any
    transfer: SourceTransfer = field(default_factory=SourceTransfer)

    @classmethod
    def from_config(cls, config: IngestConfig) -> S3ObjectStore:
        kwargs: dict[str, str] = {}
        if config.aws_region:
            kwargs["region_name"] = config.aws_region
        return cls(client=boto3.client("s3", **kwargs))

    def uri(self, bucket: str, key: str) -> str:
        return f"s3://{bucket}/{key}"

    async def upload(self, source: str, bucket: str, key: str) -> str:
        with tempfile.SpooledTemporaryFile(max_size=_SPOOL_BYTES) as handle:
            size = await self.transfer.copy_into(source, handle)
            handle.seek(0)
            self.client.upload_fileobj(handle, bucket, key)
        log.info("Uploaded %s to s3://%s/%s (%d bytes)", source, bucket, key, size)
        return self.uri(bucket, key)

    async def exists(self, bucket: str, key: str) -> bool:
        try:
            self.client.head_object(Bucket=bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _MISSING_CODES:
                return False
            raise
        return True

    async def read(self, bucket: str, key: str) -> bytes:
        response = self.client.get_object(Bucket=bucket, Key=key)
        return response["Body"].read()
