from __future__ import annotations

import pytest

from pdrflow.domain.classification import classify
from pdrflow.domain.errors import NoMatchingCollection


def test_first_matching_pattern_wins() -> None:
    table = {"MOD09GQ": r"^MOD09", "MOD09GQ_QA": r"^MOD09GQ\..*\.qa$"}

    assert classify("MOD09GQ.A2017001.qa", table) == "MOD09GQ"


def test_reordering_the_table_changes_the_result() -> None:
    table = {"MOD09GQ_QA": r"^MOD09GQ\..*\.qa$", "MOD09GQ": r"^MOD09"}

    assert classify("MOD09GQ.A2017001.qa", table) == "MOD09GQ_QA"
    assert classify("MOD09GQ.A2017001.hdf", table) == "MOD09GQ"


def test_patterns_search_anywhere_in_the_name() -> None:
    assert classify("prefix-AST_L1A-suffix", {"AST": "AST_L1A"}) == "AST"


def test_pairs_are_accepted_in_given_order() -> None:
    pairs = [("second", r"\.hdf$"), ("first", r"^MOD")]

    assert classify("MOD09.hdf", pairs) == "second"


def test_no_match_raises_with_descriptive_message() -> None:
    with pytest.raises(NoMatchingCollection) as excinfo:
        classify("unknown.bin", {"MOD09GQ": r"^MOD09"})

    assert str(excinfo.value) == "unknown.bin did not match any of the collections"
    assert excinfo.value.file_name == "unknown.bin"
