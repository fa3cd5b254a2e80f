"""Manifest (PDR) parsing."""

from __future__ import annotations

from .file_groups import FileGroup, FileSpec, file_groups
from .parser import Attribute, ManifestNode, ManifestTree, parse

__all__ = [
    "Attribute",
    "FileGroup",
    "FileSpec",
    "ManifestNode",
    "ManifestTree",
    "file_groups",
    "parse",
]
