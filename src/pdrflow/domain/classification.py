"""Collection classification by provider file-name patterns."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from pdrflow.domain.errors import NoMatchingCollection

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

type PatternTable = Mapping[str, str] | Iterable[tuple[str, str]]


def classify(file_name: str, pattern_table: PatternTable) -> str:
    """Return the first collection whose pattern matches ``file_name``.

    Patterns are tried in table order; the table must not be re-sorted.
    """

    entries = pattern_table.items() if isinstance(pattern_table, dict) else pattern_table
    for collection_name, pattern in entries:
        if re.search(pattern, file_name):
            return collection_name
    raise NoMatchingCollection(file_name)
