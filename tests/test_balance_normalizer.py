import pytest

from reconciliation.balance import (
    balance_difference,
    balances_match,
    normalize_balance,
    parse_balance,
    total_absolute,
)


@pytest.mark.parametrize("raw", [None, "", "   ", "null", "undefined", "abc", "12.5", "1e18", "0x10", "1_000"])
def test_malformed_or_missing_balances_normalize_to_zero(raw):
    assert normalize_balance(raw) == "0"


@pytest.mark.parametrize("raw,expected", [
    ("1000", "1000"),
    ("  42 ", "42"),
    ("007", "7"),
    ("-15", "-15"),
    ("+15", "15"),
    ("-0", "0"),
    (123, "123"),
])
def test_integer_text_normalizes_to_canonical_form(raw, expected):
    assert normalize_balance(raw) == expected


def test_normalize_is_idempotent():
    for raw in ["007", "-0", "abc", "99999999999999999999999999", None]:
        once = normalize_balance(raw)
        assert normalize_balance(once) == once


def test_large_balances_keep_full_precision():
    big = "123456789012345678901234567890123456789"
    assert normalize_balance(big) == big
    assert balance_difference(big, "1") == "123456789012345678901234567890123456788"
    assert balances_match(big, "0" + big)
    assert not balances_match(big, "123456789012345678901234567890123456788")


def test_bool_is_not_a_balance():
    assert parse_balance(True) is None
    assert normalize_balance(False) == "0"


def test_difference_is_signed_baseline_minus_counterpart():
    assert balance_difference("1000", "500") == "500"
    assert balance_difference("500", "1000") == "-500"
    assert balance_difference("garbage", "250") == "-250"


def test_total_absolute_sums_magnitudes_and_skips_missing():
    assert total_absolute(["500", "-300", None, "0"]) == "800"
    assert total_absolute([]) == "0"


def test_balances_beyond_int_string_limit_stay_exact():
    huge = "9" * 5000
    assert normalize_balance(huge) == huge
    assert normalize_balance("-" + huge) == "-" + huge
    assert balance_difference(huge, "-" + huge) == "1" + "9" * 4999 + "8"
    assert total_absolute([huge, "-" + huge]) == "1" + "9" * 4999 + "8"


def test_difference_can_outgrow_its_operands():
    edge = "9" * 4300
    assert balance_difference(edge, "-" + edge) == "1" + "9" * 4299 + "8"
