import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from playlist_engine.string_utils import dedupe_preserving_order, name_key_set, normalize_name_key


def test_normalize_name_key_case_and_diacritics():
    assert normalize_name_key("Björk") == "bjork"
    assert normalize_name_key("  SIGUR RÓS ") == "sigur ros"


def test_normalize_name_key_typography_variants():
    assert normalize_name_key("Guns N’ Roses") == normalize_name_key("guns n' roses")
    assert normalize_name_key("AC/DC") == "ac dc"


def test_normalize_name_key_punctuation_only():
    assert normalize_name_key("@") == ""
    assert normalize_name_key("!!!") == ""
    assert normalize_name_key(None) == ""


def test_name_key_set_skips_blanks():
    assert name_key_set(["The Beatles", "the beatles", "", "   "]) == {"the beatles"}
    assert name_key_set(None) == set()


def test_dedupe_preserving_order():
    assert dedupe_preserving_order(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]
