"""
Settlement Module

This module turns a committed split into balances and the payments that
settle it.

Features:
    - Per-participant balances for one expense (paid minus owed)
    - Minimize number of transactions using greedy algorithm
    - Handle rounding safely

Data Model:
    Input - allocation (list of dicts from SplitEngine.validate_for_commit):
        - participant_id: string
        - amount: Decimal

    Output - balances (dict keyed by participant_id):
        - total_paid: float
        - total_share: float
        - net_balance: float (positive = owed money, negative = owes money)

    Output - list of settlement transactions:
        - from_participant: string (debtor who pays)
        - to_participant: string (creditor who receives)
        - amount: float (rounded to 2 decimal places)

Functions:
    calculate_expense_balances: Balances for one expense.
    optimize_settlements: Convert balances into minimal settlement transactions.
"""

from decimal import Decimal, ROUND_HALF_UP

from utils import to_non_negative_decimal


def _round_decimal(value: Decimal) -> float:
    """
    Round a Decimal to 2 decimal places and convert to float.

    Args:
        value: Decimal value to round.

    Returns:
        float: Rounded value as float.
    """
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def calculate_expense_balances(allocation: list[dict], paid_by: str, total_amount) -> dict:
    """
    Calculate per-participant balances for a single expense.

    The payer's total_paid is the full expense amount; each participant's
    total_share is their allocated amount.

    Args:
        allocation: List of {"participant_id", "amount"} dicts.
        paid_by: Participant ID of whoever paid.
        total_amount: The expense total.

    Returns:
        dict: Keyed by participant_id with total_paid, total_share and
            net_balance, all rounded to 2 decimal places.

    Notes:
        - Payer does NOT need to be in the allocation
    """
    total = to_non_negative_decimal(total_amount, "total_amount")

    balances = {}
    for entry in allocation:
        balances[entry["participant_id"]] = {
            "total_paid": Decimal("0"),
            "total_share": Decimal(str(entry["amount"]))
        }

    if paid_by not in balances:
        balances[paid_by] = {"total_paid": Decimal("0"), "total_share": Decimal("0")}
    balances[paid_by]["total_paid"] += total

    result = {}
    for participant_id, balance in balances.items():
        result[participant_id] = {
            "total_paid": _round_decimal(balance["total_paid"]),
            "total_share": _round_decimal(balance["total_share"]),
            "net_balance": _round_decimal(balance["total_paid"] - balance["total_share"])
        }

    return result


def optimize_settlements(balances: dict) -> list[dict]:
    """
    Convert net balances into minimal settlement transactions.

    Uses a greedy algorithm:
        1. Separate participants into debtors (net_balance < 0) and creditors (net_balance > 0)
        2. Sort both by largest absolute balance first
        3. Repeatedly settle the largest debtor against the largest creditor
           for the smaller of the two amounts

    Args:
        balances: Dictionary keyed by participant_id containing net_balance.

    Returns:
        list[dict]: Settlement transactions with from_participant,
            to_participant and amount.

    Notes:
        - Ignores tiny rounding differences (< 0.01)
        - Does NOT modify input balances
    """
    EPSILON = Decimal("0.01")

    debtors = []
    creditors = []

    for participant_id, balance in balances.items():
        net = Decimal(str(balance["net_balance"]))

        if net <= -EPSILON:
            debtors.append([participant_id, abs(net)])
        elif net >= EPSILON:
            creditors.append([participant_id, net])

    # sort() is stable, so ties keep member order
    debtors.sort(key=lambda x: x[1], reverse=True)
    creditors.sort(key=lambda x: x[1], reverse=True)

    settlements = []
    debtor_idx = 0
    creditor_idx = 0

    while debtor_idx < len(debtors) and creditor_idx < len(creditors):
        debtor_id, debt_amount = debtors[debtor_idx]
        creditor_id, credit_amount = creditors[creditor_idx]

        settlement_amount = min(debt_amount, credit_amount)

        if settlement_amount >= EPSILON:
            settlements.append({
                "from_participant": debtor_id,
                "to_participant": creditor_id,
                "amount": _round_decimal(settlement_amount)
            })

        debtors[debtor_idx][1] = debt_amount - settlement_amount
        creditors[creditor_idx][1] = credit_amount - settlement_amount

        if debtors[debtor_idx][1] < EPSILON:
            debtor_idx += 1
        if creditors[creditor_idx][1] < EPSILON:
            creditor_idx += 1

    return settlements
