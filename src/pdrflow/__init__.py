"""Discover PDR manifests, dispatch their granule files and track ingest progress."""

from __future__ import annotations

from importlib import metadata

DISTRIBUTION = "pdrflow"

try:
    __version__ = metadata.version(DISTRIBUTION)
except metadata.PackageNotFoundError:
    __version__ = "0.0.0+local"
