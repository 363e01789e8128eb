"""Unit tests for version tokens and patterns."""

from __future__ import annotations

import pytest

from host.versioning import (
    compare_versions,
    in_range,
    is_version_token,
    is_wildcard_pattern,
    major_of,
    matches_pattern,
    parse_version,
)


@pytest.mark.parametrize("token", ["1.0.0", "1.9.3", "1.0.0.0"])
def test_major_wildcard_matches_same_major(token: str) -> None:
    """Pattern 1.x should match any token with major 1."""
    assert matches_pattern("1.x", token) is True


def test_major_wildcard_rejects_other_major() -> None:
    """Pattern 1.x should not match a 2.x token."""
    assert matches_pattern("1.x", "2.0.0") is False
    assert matches_pattern("1.x", "10.0.0") is False


def test_exact_pattern_pads_missing_components() -> None:
    """Exact patterns compare with missing components treated as zero."""
    assert matches_pattern("2.1", "2.1.0") is True
    assert matches_pattern("2.1.0", "2.1.1") is False


def test_malformed_input_never_matches() -> None:
    """Malformed tokens or patterns should not match or raise."""
    assert matches_pattern("1.x", "v1.0.0") is False
    assert matches_pattern("x.1", "1.0.0") is False
    assert matches_pattern("1.x", "") is False


def test_compare_versions_component_wise() -> None:
    """Comparison is numeric per component, not lexical."""
    assert compare_versions("1.10.0", "1.9.0") == 1
    assert compare_versions("1.2", "1.2.0") == 0
    assert compare_versions("0.9.9", "1.0.0") == -1


def test_parse_version_rejects_non_numeric() -> None:
    """Only dotted numeric tokens are accepted."""
    with pytest.raises(ValueError):
        parse_version("2.0.0-beta")


def test_token_and_wildcard_predicates() -> None:
    """Predicates should classify tokens and wildcard patterns."""
    assert is_version_token("3") is True
    assert is_version_token("3.") is False
    assert is_version_token(3) is False
    assert is_wildcard_pattern("0.x") is True
    assert is_wildcard_pattern("0.1") is False
    assert major_of("12.4.1") == 12


def test_in_range_is_inclusive_and_open_ended() -> None:
    """Bounds are inclusive and either side may be omitted."""
    assert in_range("2.0.0", "2.0.0", "2.9.9") is True
    assert in_range("3.0.0", None, "2.9.9") is False
    assert in_range("1.0.0", "1.5") is False
    assert in_range("9.0.0") is True
