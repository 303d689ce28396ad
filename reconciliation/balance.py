"""
reconciliation/balance.py - Balance Normalization

Balances arrive as text of unbounded magnitude. They are compared as
canonical base-10 integer strings and diffed with Python ints, never floats.

Malformed or missing data normalizes to "0": downstream comparison cannot
tell it apart from a real zero balance.
"""

import re
import sys
from contextlib import contextmanager
from typing import Iterable, Optional

ZERO = "0"

_INTEGER_PATTERN = re.compile(r'^[+-]?[0-9]+$')
_NULL_LITERALS = {"", "null", "undefined"}


@contextmanager
def _unlimited_int_digits():
    """Lift the interpreter's int/str conversion digit limit for the block."""
    get_limit = getattr(sys, "get_int_max_str_digits", None)
    if get_limit is None:
        yield
        return
    previous = get_limit()
    sys.set_int_max_str_digits(0)
    try:
        yield
    finally:
        sys.set_int_max_str_digits(previous)


def _to_text(value: int) -> str:
    with _unlimited_int_digits():
        return str(value)


def parse_balance(raw: object) -> Optional[int]:
    """Parse a balance to an int, or None when it is not a base-10 integer."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    if text in _NULL_LITERALS:
        return None
    # int() alone would accept "1_000" and non-ASCII digits
    if not _INTEGER_PATTERN.match(text):
        return None
    with _unlimited_int_digits():
        return int(text, 10)


def normalize_balance(raw: object) -> str:
    """Canonical decimal string for ``raw``; "0" for anything unparseable."""
    value = parse_balance(raw)
    if value is None:
        return ZERO
    return _to_text(value)


def balances_match(a: object, b: object) -> bool:
    return normalize_balance(a) == normalize_balance(b)


def balance_difference(a: object, b: object) -> str:
    """Exact signed ``a - b`` of the normalized balances."""
    return _to_text((parse_balance(a) or 0) - (parse_balance(b) or 0))


def total_absolute(differences: Iterable[Optional[str]]) -> str:
    """Sum of absolute values of the given signed differences (None skipped)."""
    total = 0
    for diff in differences:
        if diff is None:
            continue
        total += abs(parse_balance(diff) or 0)
    return _to_text(total)
