"""Object store backed by a local directory tree (one directory per bucket)."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from pathlib import Path

from pdrflow.adapters.transfer import SourceTransfer

log = getLogger(__name__)


@dataclass(slots=True)
class FilesystemObjectStore:
    root: Path
    transfer: SourceTransfer = field(default_factory=SourceTransfer)

    def path_for(self, bucket: str, key: str) -> Path:
        base = (self.root / bucket).resolve()
        target = (base / key).resolve()
        if not target.is_relative_to(base):
            raise ValueError(f"Key {key!r} escapes bucket {bucket!r}")
        return target

    def uri(self, bucket: str, key: str) -> str:
        return self.path_for(bucket, key).as_uri()

    async def upload(self, source: str, bucket: str, key: str) -> str:
        target = self.path_for(bucket, key)
        target.parent.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(f"{target.name}.part")
        try:
            with partial.open("wb") as handle:
                size = await self.transfer.copy_into(source, handle)
            partial.replace(target)
        finally:
            partial.unlink(missing_ok=True)
        log.info("Staged %s at %s (%d bytes)", source, target, size)
        return target.as_uri()

    async def exists(self, bucket: str, key: str) -> bool:
        return self.path_for(bucket, key).is_file()

    async def read(self, bucket: str, key: str) -> bytes:
        return self.path_for(bucket, key).read_bytes()
