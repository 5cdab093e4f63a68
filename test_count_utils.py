#!/usr/bin/env python3
"""
test_count_utils.py — Standalone tests for count/target normalisation.
No API keys or network access required.
"""

import sys
import os
from datetime import datetime, timezone

sys.path.insert(0, os.path.dirname(__file__))


def test_normalize_count_strings():
    """Suffixed, comma-separated and plain digit strings."""
    from count_utils import normalize_count

    assert normalize_count("12.3K") == 12300
    assert normalize_count("2M") == 2000000
    assert normalize_count("1,234") == 1234
    assert normalize_count(" 5k ") == 5000
    assert normalize_count("1.5m") == 1500000
    assert normalize_count("0") == 0
    assert normalize_count("abc") is None
    assert normalize_count("1.5") is None
    assert normalize_count("12B") is None
    assert normalize_count("") is None
    print("  PASS: Count normalisation (strings)")


def test_normalize_count_other_types():
    """Numbers pass through; booleans, containers and None are rejected."""
    from count_utils import normalize_count

    assert normalize_count(42) == 42
    assert normalize_count(3.6) == 4
    assert normalize_count(2.5) == 3
    assert normalize_count(-1) is None
    assert normalize_count(float("nan")) is None
    assert normalize_count(True) is None
    assert normalize_count(None) is None
    assert normalize_count([1]) is None
    assert normalize_count({"n": 1}) is None
    print("  PASS: Count normalisation (other types)")


def test_canonicalize_url():
    """Mobile host rewrite and a single locale parameter."""
    from count_utils import canonicalize_url

    assert canonicalize_url("https://m.tiktok.com/v/123.html") == "https://www.tiktok.com/v/123.html?lang=en"
    assert (
        canonicalize_url("https://www.tiktok.com/@u/video/123?is_from_webapp=1")
        == "https://www.tiktok.com/@u/video/123?is_from_webapp=1&lang=en"
    )
    once = canonicalize_url("  https://www.tiktok.com/@u/video/123 ")
    assert once == "https://www.tiktok.com/@u/video/123?lang=en"
    assert canonicalize_url(once) == once
    print("  PASS: URL canonicalisation")


def test_id_hint():
    """Trailing path segment, query stripped."""
    from count_utils import extract_id_hint, normalize_target

    assert extract_id_hint("https://www.tiktok.com/@u/video/7234567890?lang=en") == "7234567890"
    assert extract_id_hint("https://www.tiktok.com/@u/video/7234567890/?lang=en") == "7234567890"
    assert extract_id_hint("") == ""
    assert extract_id_hint("https://www.tiktok.com/") == ""

    target = normalize_target("https://m.tiktok.com/@u/video/42")
    assert target.raw_url == "https://m.tiktok.com/@u/video/42"
    assert target.url == "https://www.tiktok.com/@u/video/42?lang=en"
    assert target.id_hint == "42"
    print("  PASS: id hint")


def test_deep_find_nested():
    """Any recognised spelling, nested in lists and objects."""
    from count_utils import deep_find, play_count_predicate

    cases = [
        ({"a": [{"b": {"stats": [{"PLAY_COUNT": "1.2K"}]}}]}, 1200),
        ({"x": [[[{"playCountV2": 77}]]]}, 77),
        ({"props": {"pageProps": {"itemInfo": {"itemStruct": {"stats": {"playCount": 9}}}}}}, 9),
        ([{"deep": [{"play_countv2": "3M"}]}], 3000000),
    ]
    for data, expected in cases:
        got = deep_find(data, play_count_predicate)
        assert got == expected, f"deep_find({data}) = {got}, expected {expected}"

    assert deep_find({"playCounter": 5, "count": 3}, play_count_predicate) is None
    assert deep_find({"playCount": "n/a", "x": {"play_count": 5}}, play_count_predicate) == 5
    assert deep_find("not a tree", play_count_predicate) is None
    print("  PASS: Deep search")


def test_canonicalize_host_and_locale():
    """Only the exact mobile host is rewritten; any other lang value becomes en."""
    from count_utils import canonicalize_url

    assert canonicalize_url("https://vm.tiktok.com/ZMabc123/") == "https://vm.tiktok.com/ZMabc123/?lang=en"
    assert canonicalize_url("https://M.TikTok.com/@u/video/1") == "https://www.tiktok.com/@u/video/1?lang=en"
    assert (
        canonicalize_url("https://www.tiktok.com/@u/video/1?lang=ja")
        == "https://www.tiktok.com/@u/video/1?lang=en"
    )
    assert (
        canonicalize_url("https://www.tiktok.com/@u/video/1?lang=ja&x=1")
        == "https://www.tiktok.com/@u/video/1?x=1&lang=en"
    )
    fixed = canonicalize_url("https://www.tiktok.com/@u/video/1?lang=ja&x=1")
    assert canonicalize_url(fixed) == fixed
    print("  PASS: Host rewrite + locale override")


def test_play_count_key_exact_match():
    """Key pattern must match the whole key, trailing newline included."""
    from count_utils import play_count_predicate, normalize_count

    assert play_count_predicate("playCount\n", 5) is None
    assert play_count_predicate("playCount", 5) == 5
    assert normalize_count("123\n") == 123
    assert normalize_count("5K\nX") is None
    print("  PASS: Exact key match")


def test_today_in_taipei():
    """Date is taken in Taipei civil time."""
    from count_utils import today_in_taipei

    assert today_in_taipei(datetime(2024, 1, 1, 17, 0, tzinfo=timezone.utc)) == "2024-01-02"
    assert today_in_taipei(datetime(2024, 1, 1, 15, 59, tzinfo=timezone.utc)) == "2024-01-01"
    print("  PASS: Taipei date")


def test_column_letter():
    from count_utils import column_letter

    assert column_letter(1) == "A"
    assert column_letter(26) == "Z"
    assert column_letter(27) == "AA"
    assert column_letter(52) == "AZ"
    assert column_letter(53) == "BA"
    assert column_letter(702) == "ZZ"
    assert column_letter(703) == "AAA"
    print("  PASS: Column letters")


if __name__ == "__main__":
    tests = [
        test_normalize_count_strings,
        test_normalize_count_other_types,
        test_canonicalize_url,
        test_id_hint,
        test_deep_find_nested,
        test_today_in_taipei,
        test_column_letter,
        test_canonicalize_host_and_locale,
        test_play_count_key_exact_match,
    ]
    print(f"Running {len(tests)} count_utils tests...\n")
    passed = 0
    failed = 0
    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"  FAIL: {test.__name__}: {e}")
            import traceback
            traceback.print_exc()
            failed += 1
    print(f"\nResults: {passed} passed, {failed} failed out of {len(tests)} tests.")
    sys.exit(1 if failed else 0)
