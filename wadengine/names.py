"""Case-insensitive comparison of lump and texture names."""

from __future__ import annotations

from itertools import islice, zip_longest
from typing import Union

Name = Union[str, bytes]


def _terminated(name: Name) -> str:
    if isinstance(name, (bytes, bytearray)):
        name = bytes(name).decode("latin-1")
    return name.split("\0", 1)[0]


def _lower(char: str) -> int:
    code = ord(char)
    if ord("A") <= code <= ord("Z"):
        return code + (ord("a") - ord("A"))
    return code


def _compare(first: Name, second: Name, limit: int | None) -> int:
    pairs = zip_longest(_terminated(first), _terminated(second), fillvalue="\0")
    for a, b in islice(pairs, limit):
        difference = _lower(a) - _lower(b)
        if difference:
            return difference
    return 0


def compare_nocase(first: Name, second: Name) -> int:
    """Compare two names ignoring ASCII case.

    Returns zero when equal, otherwise the difference of the first
    differing lowered character codes. A NUL ends a name.
    """
    return _compare(first, second, None)


def compare_nocase_n(first: Name, second: Name, limit: int) -> int:
    """Like compare_nocase, looking at no more than limit characters."""
    if limit < 0:
        raise ValueError("limit must not be negative")
    return _compare(first, second, limit)