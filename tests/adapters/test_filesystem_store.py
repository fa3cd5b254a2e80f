from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import pytest

from pdrflow.adapters.filesystem import FilesystemObjectStore
from pdrflow.adapters.transfer import SourceTransfer, is_remote, local_path
from tests.support.http import NO_RETRY, make_client_factory

if TYPE_CHECKING:
    from pathlib import Path


def test_upload_copies_local_file(tmp_path: Path) -> None:
    source = tmp_path / "incoming" / "foo.001"
    source.parent.mkdir()
    source.write_bytes(b"granule data")
    store = FilesystemObjectStore(tmp_path / "objects")

    uri = asyncio.run(store.upload(str(source), "internal", "staging/foo.001"))

    target = tmp_path / "objects" / "internal" / "staging" / "foo.001"
    assert uri == target.resolve().as_uri()
    assert target.read_bytes() == b"granule data"
    assert asyncio.run(store.exists("internal", "staging/foo.001")) is True
    assert asyncio.run(store.read("internal", "staging/foo.001")) == b"granule data"
    assert not list(target.parent.glob("*.part"))


def test_upload_streams_remote_source(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == "https://provider.example.org/data/foo.001"
        return httpx.Response(200, content=b"remote bytes")

    transfer = SourceTransfer(resilience=NO_RETRY, client_factory=make_client_factory(handler))
    store = FilesystemObjectStore(tmp_path, transfer=transfer)

    asyncio.run(store.upload("https://provider.example.org/data/foo.001", "b", "k/foo.001"))

    assert (tmp_path / "b" / "k" / "foo.001").read_bytes() == b"remote bytes"


def test_failed_remote_transfer_leaves_no_object(tmp_path: Path) -> None:
    transfer = SourceTransfer(
        resilience=NO_RETRY,
        client_factory=make_client_factory(lambda request: httpx.Response(404)),
    )
    store = FilesystemObjectStore(tmp_path, transfer=transfer)

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(store.upload("https://provider.example.org/missing", "b", "missing"))

    assert asyncio.run(store.exists("b", "missing")) is False
    assert not (tmp_path / "b" / "missing.part").exists()


def test_missing_object_does_not_exist(tmp_path: Path) -> None:
    store = FilesystemObjectStore(tmp_path)

    assert asyncio.run(store.exists("internal", "pdrs/NONE.PDR")) is False


def test_keys_cannot_escape_bucket(tmp_path: Path) -> None:
    store = FilesystemObjectStore(tmp_path)

    with pytest.raises(ValueError, match="escapes"):
        store.path_for("internal", "../other/secret")


def test_source_helpers() -> None:
    assert is_remote("https://host/file") is True
    assert is_remote("file:///tmp/file") is False
    assert str(local_path("file:///tmp/some%20file")) == "/tmp/some file"
    assert str(local_path("relative/file")) == "relative/file"
