"""Port for the staging object store."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ObjectStore(Protocol):
    """Object store used to stage manifests and granule files.

    ``upload`` accepts a remote URL or a local path as ``source`` and returns the
    URI of the stored object.
    """

    async def upload(self, source: str, bucket: str, key: str) -> str: ...

    async def exists(self, bucket: str, key: str) -> bool: ...

    async def read(self, bucket: str, key: str) -> bytes: ...

    def uri(self, bucket: str, key: str) -> str: ...


__all__ = ["ObjectStore"]
