"""
Utilities Module

This module provides helpers shared by the split engine and the layers
around it.

Features:
    - Safe conversion of user input to Decimal
    - Rounding to the minor currency unit
    - Rounding a split without losing or gaining cents
    - Currency formatting for messages
    - Per-participant explanation of how a split was computed

Functions:
    to_decimal: Convert a numeric input to a finite Decimal.
    to_non_negative_decimal: Same, rejecting negative values.
    round_amount: Round a Decimal to the minor currency unit.
    distribute_rounded: Round a split so it still adds up to its total.
    format_currency: Format amount with currency symbol.
    explain_allocation: Get a detailed breakdown of a split for display.
"""

import decimal
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP

from config.settings import CURRENCY_SYMBOL, MINOR_UNIT
from errors import InvalidInput


def to_decimal(value, field_name: str) -> Decimal:
    """
    Convert a numeric input to a finite Decimal.

    Floats go through str() first so 0.1 becomes Decimal("0.1") rather than
    its binary expansion.

    Args:
        value: int, float, str or Decimal.
        field_name: Name of the field for error messages.

    Returns:
        Decimal: The converted value.

    Raises:
        InvalidInput: If value is not a number, or is NaN or infinite.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise InvalidInput(f"{field_name} must be a number, got: {value!r}")

    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except decimal.InvalidOperation:
            raise InvalidInput(f"{field_name} must be a number, got: {value!r}")

    if not amount.is_finite():
        raise InvalidInput(f"{field_name} must be a finite number, got: {value!r}")
    return amount


def to_non_negative_decimal(value, field_name: str) -> Decimal:
    """
    Convert a numeric input to a finite, non-negative Decimal.

    Raises:
        InvalidInput: If value is not a finite number or is negative.
    """
    amount = to_decimal(value, field_name)
    if amount < 0:
        raise InvalidInput(f"{field_name} must not be negative, got: {value!r}")
    return amount


def round_amount(value: Decimal, unit: Decimal = MINOR_UNIT) -> Decimal:
    """
    Round a Decimal to the minor currency unit.

    Uses ROUND_HALF_UP, same as the persisted amounts.
    """
    return value.quantize(unit, rounding=ROUND_HALF_UP)


def distribute_rounded(amounts: list[Decimal], total: Decimal, unit: Decimal = MINOR_UNIT) -> list[Decimal]:
    """
    Round split amounts to the minor unit so they add up to the rounded total.

    Every amount is rounded down first. The cents left over then go one at a
    time to the amounts that lost the most, ties in input order. If the
    amounts already exceed the total, the extra cents come off the ones that
    lost the least.

    Args:
        amounts: Non-negative split amounts at full precision.
        total: The total they are split from.
        unit: Minor currency unit (default: MINOR_UNIT from settings).

    Returns:
        list[Decimal]: Rounded amounts, in input order, summing to
            round_amount(total).

    Raises:
        InvalidInput: If amounts is empty.
    """
    if not amounts:
        raise InvalidInput("amounts must not be empty")

    target = round_amount(total, unit)
    rounded = [amount.quantize(unit, rounding=ROUND_DOWN) for amount in amounts]
    leftover = int((target - sum(rounded, Decimal("0"))) / unit)

    by_loss = sorted(range(len(amounts)), key=lambda i: amounts[i] - rounded[i], reverse=True)
    for k in range(leftover):
        rounded[by_loss[k % len(by_loss)]] += unit
    for _ in range(-leftover):
        index = next(i for i in reversed(by_loss) if rounded[i] >= unit)
        rounded[index] -= unit

    return rounded


def format_currency(amount, symbol: str | None = None) -> str:
    """
    Format a monetary amount with the appropriate currency symbol.

    Args:
        amount: The amount to format (Decimal, int or float).
        symbol: Currency symbol (default: CURRENCY_SYMBOL from settings).

    Returns:
        str: Formatted string like "₹1,234.56".
    """
    if symbol is None:
        symbol = CURRENCY_SYMBOL
    return f"{symbol}{Decimal(str(amount)):,.2f}"


def explain_allocation(engine) -> list[dict]:
    """
    Generate a per-participant explanation of the current split.

    For each participant the explanation names the input that drove the
    amount under the active strategy:
        - EQUAL: the number of selected participants the total is divided by
        - EXACT: the entered exact amount
        - PERCENTAGE: the entered percentage
        - SHARE: the participant's shares out of the selected total

    Args:
        engine: A SplitEngine.

    Returns:
        list[dict]: One dict per participant, in member order, with:
            - participant_id: string
            - display_name: string
            - selected: bool
            - basis: string describing the input
            - amount: Decimal rounded to the minor unit
    """
    strategy = engine.strategy.value
    selected = [p for p in engine.participants if p.selected]
    total_shares = sum((p.shares for p in selected), Decimal("0"))

    explanations = []
    for p in engine.participants:
        if not p.selected:
            basis = "not included"
        elif strategy == "EQUAL":
            basis = f"1/{len(selected)} of {format_currency(engine.total_amount)}"
        elif strategy == "EXACT":
            basis = f"exact {format_currency(p.exact_amount)}"
        elif strategy == "PERCENTAGE":
            basis = f"{round_amount(p.percentage)}% of {format_currency(engine.total_amount)}"
        else:
            basis = f"{p.shares.normalize():f} of {total_shares.normalize():f} shares"

        explanations.append({
            "participant_id": p.participant_id,
            "display_name": p.display_name,
            "selected": p.selected,
            "basis": basis,
            "amount": round_amount(p.computed_amount)
        })

    return explanations
