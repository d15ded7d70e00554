from decimal import Decimal

import pytest

from cluster_engine.exceptions import InvalidWagerException
from cluster_engine.error_codes import ErrorCodes
from cluster_engine.utils.money import floor_to_cents, multiplier_amount, parse_wager


def test_floor_to_cents_truncates():
    assert floor_to_cents(Decimal('2.779')) == Decimal('2.77')
    assert floor_to_cents(Decimal('0.009')) == Decimal('0.00')
    assert floor_to_cents(Decimal('5')) == Decimal('5.00')

def test_floor_to_cents_accepts_floats_via_str():
    # 0.29 * 100 is 28.999999999999996 in binary floating point
    assert floor_to_cents(0.29) == Decimal('0.29')

def test_floor_to_cents_result_has_two_places():
    assert floor_to_cents(Decimal('12.3')).as_tuple().exponent == -2

def test_multiplier_amount_avoids_binary_expansion():
    assert multiplier_amount(Decimal('10'), 0.1) == Decimal('1.0')
    assert multiplier_amount(Decimal('3'), 1.25) == Decimal('3.75')

@pytest.mark.parametrize("value, expected", [
    ("10", Decimal("10")),
    (5, Decimal("5")),
    (0.5, Decimal("0.5")),
    (Decimal("1.23"), Decimal("1.23")),
])
def test_parse_wager_accepts_positive_amounts(value, expected):
    assert parse_wager(value) == expected

@pytest.mark.parametrize("value", [0, -1, "-0.01", "NaN", "Infinity", float("inf"), "abc", None, True, [], {}])
def test_parse_wager_rejects_invalid_amounts(value):
    with pytest.raises(InvalidWagerException) as exc_info:
        parse_wager(value)
    assert exc_info.value.error_code == ErrorCodes.INVALID_BET
    assert exc_info.value.status_code == 422
