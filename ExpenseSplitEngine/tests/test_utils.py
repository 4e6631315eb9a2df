from decimal import Decimal

import pytest

from errors import InvalidInput
from splitter import initialize
from utils import (
    distribute_rounded,
    explain_allocation,
    format_currency,
    round_amount,
    to_decimal,
    to_non_negative_decimal,
)


def test_float_input_uses_its_repr():
    assert to_decimal(0.1, "amount") == Decimal("0.1")


def test_string_input_is_stripped():
    assert to_decimal(" 12.50 ", "amount") == Decimal("12.50")


@pytest.mark.parametrize("value", ["", "1,000", [], False, Decimal("NaN"), Decimal("-Infinity")])
def test_to_decimal_rejects(value):
    with pytest.raises(InvalidInput):
        to_decimal(value, "amount")


def test_negative_rejected():
    with pytest.raises(InvalidInput):
        to_non_negative_decimal("-0.5", "amount")


def test_round_amount_half_up():
    assert round_amount(Decimal("2.675")) == Decimal("2.68")
    assert round_amount(Decimal("2.5"), Decimal("1")) == Decimal("3")


def test_format_currency():
    assert format_currency(Decimal("1234.5"), "$") == "$1,234.50"
    assert format_currency(10, "€") == "€10.00"


def test_explain_equal_split(members):
    engine = initialize(90, members)
    engine.toggle_participant("B")

    explanations = explain_allocation(engine)

    assert [e["amount"] for e in explanations] == [Decimal("45.00"), Decimal("0.00"), Decimal("45.00")]
    assert explanations[0]["basis"].startswith("1/2 of ")
    assert explanations[1]["basis"] == "not included"


def test_explain_share_split(members):
    engine = initialize(400, members)
    engine.set_strategy("SHARE")
    engine.set_participant_value("A", "shares", 2)

    explanations = explain_allocation(engine)

    assert explanations[0]["basis"] == "2 of 4 shares"
    assert explanations[0]["amount"] == Decimal("200.00")


def test_explain_percentage_split(members):
    engine = initialize(900, members)
    engine.set_strategy("PERCENTAGE")

    assert explain_allocation(engine)[0]["basis"].startswith("33.33% of ")


def test_distribute_rounded_seven_ways_keeps_total():
    amounts = [Decimal(1) / 7] * 7

    rounded = distribute_rounded(amounts, Decimal("1"))

    assert rounded == [Decimal("0.15")] * 2 + [Decimal("0.14")] * 5
    assert sum(rounded) == Decimal("1.00")


def test_distribute_rounded_gives_cents_to_largest_remainders():
    amounts = [Decimal("10.004"), Decimal("10.006"), Decimal("79.99")]

    assert distribute_rounded(amounts, Decimal("100")) == [
        Decimal("10.00"), Decimal("10.01"), Decimal("79.99")
    ]


def test_distribute_rounded_takes_extra_cent_back():
    amounts = [Decimal("50.00"), Decimal("50.01")]

    assert distribute_rounded(amounts, Decimal("100")) == [Decimal("50.00"), Decimal("50.00")]


def test_distribute_rounded_zero_total():
    assert distribute_rounded([Decimal("0"), Decimal("0")], Decimal("0")) == [Decimal("0.00")] * 2


def test_distribute_rounded_rejects_empty():
    with pytest.raises(InvalidInput):
        distribute_rounded([], Decimal("10"))
