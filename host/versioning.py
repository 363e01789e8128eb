"""Version tokens and version patterns.

A version token is a dotted numeric string (``"2"``, ``"2.1"``, ``"2.1.3"``).
Missing components compare as ``0``, so ``"2.1"`` equals ``"2.1.0"``.
A version pattern is either an exact token or a wildcard major (``"1.x"``).
"""

from __future__ import annotations

import re

from packaging.version import Version

_TOKEN_RE = re.compile(r"^\d+(\.\d+)*$")
_WILDCARD_RE = re.compile(r"^(\d+)\.[xX*]$")


def is_version_token(value: object) -> bool:
    """Return whether ``value`` is a dotted numeric version string."""
    return isinstance(value, str) and _TOKEN_RE.match(value) is not None


def parse_version(token: str) -> Version:
    """Parse a version token.

    Raises:
        ValueError: If ``token`` is not dotted numeric.
    """
    if not is_version_token(token):
        raise ValueError(f"Invalid version token: {token!r}")
    return Version(token)


def major_of(token: str) -> int:
    """Return the major component of a version token."""
    return parse_version(token).major


def compare_versions(a: str, b: str) -> int:
    """Compare two tokens component-wise; return -1, 0 or 1."""
    left = parse_version(a)
    right = parse_version(b)
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def is_wildcard_pattern(pattern: str) -> bool:
    return _WILDCARD_RE.match(pattern) is not None


def matches_pattern(pattern: str, token: str) -> bool:
    """Return whether ``token`` matches ``pattern``.

    ``"N.x"`` matches any token whose major equals ``N``; anything else is
    compared as an exact token. Malformed input never matches.
    """
    if not is_version_token(token):
        return False

    wildcard = _WILDCARD_RE.match(pattern)
    if wildcard is not None:
        return major_of(token) == int(wildcard.group(1))

    if not is_version_token(pattern):
        return False
    return compare_versions(pattern, token) == 0


def in_range(token: str, minimum: str | None = None, maximum: str | None = None) -> bool:
    """Return whether ``token`` lies within the inclusive ``[minimum, maximum]``."""
    if minimum is not None and compare_versions(token, minimum) < 0:
        return False
    if maximum is not None and compare_versions(token, maximum) > 0:
        return False
    return True


__all__ = [
    "is_version_token",
    "parse_version",
    "major_of",
    "compare_versions",
    "is_wildcard_pattern",
    "matches_pattern",
    "in_range",
]
