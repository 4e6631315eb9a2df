"""
Expenses Module

This module stores finished splits as group expenses in Firestore. It is
the commit sink of the split engine: it receives a validated allocation and
persists it with the parent expense record.

Features:
    - Add expenses with their per-participant split
    - Read back a group's expenses
    - Commit a split session end to end (expense, settlements, balances)

Data Model:
    Expense stored at: groups/{group_id}/expenses/{expense_id}
    Fields:
        - expense_id: string (E001, E002, ... format)
        - description: string
        - category: string or None (food, transportation, shopping, drinks,
          entertainment, health)
        - paid_by: string (participant_id who paid)
        - amount: float (>= 0)
        - split_type: string (EQUAL, EXACT, PERCENTAGE, SHARE)
        - splits: list of {participant_id, amount}
        - date: string (YYYY-MM-DD)
        - created_at: string (ISO timestamp)

Functions:
    add_expense: Persist a validated split as a new expense.
    get_expenses: Get all expenses for a group.
    commit_split: Commit a SplitEngine session to a group.
"""

import logging
import re
from datetime import date as date_type, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from config.firebase_config import get_db
from config.settings import MINOR_UNIT
from errors import InvalidInput, SplitMismatch
from firebase_store import save_settlements, update_group_balances
from settlement import calculate_expense_balances, optimize_settlements
from splitter import SplitEngine, SplitStrategy
from utils import distribute_rounded, round_amount, to_non_negative_decimal

logger = logging.getLogger(__name__)

# Valid expense categories
VALID_CATEGORIES = {"food", "transportation", "shopping", "drinks", "entertainment", "health"}


class Expense:
    """
    Represents a single committed expense of a group.

    Attributes:
        expense_id (str): Unique identifier in E### format.
        description (str): What the expense was for.
        paid_by (str): Participant ID of who paid.
        amount (float): Expense total.
        split_type (str): Strategy the split was made with.
        splits (list[dict]): {participant_id, amount} per sharer.
        date (str): Date of expense (YYYY-MM-DD).
        category (str | None): Optional category.
    """

    def __init__(
        self,
        expense_id: str,
        description: str,
        paid_by: str,
        amount: float,
        split_type: str,
        splits: list[dict],
        date: str,
        category: Optional[str] = None
    ):
        self.expense_id = expense_id
        self.description = description
        self.paid_by = paid_by
        self.amount = amount
        self.split_type = split_type
        self.splits = splits
        self.date = date
        self.category = category

    def to_dict(self) -> dict:
        """Convert expense to dictionary for Firestore storage."""
        return {
            "expense_id": self.expense_id,
            "description": self.description,
            "paid_by": self.paid_by,
            "amount": self.amount,
            "split_type": self.split_type,
            "splits": self.splits,
            "date": self.date,
            "category": self.category
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Expense":
        """Create an Expense instance from a dictionary."""
        return cls(
            expense_id=data.get("expense_id"),
            description=data.get("description"),
            paid_by=data.get("paid_by"),
            amount=data.get("amount"),
            split_type=data.get("split_type"),
            splits=data.get("splits", []),
            date=data.get("date"),
            category=data.get("category")
        )

    def __repr__(self) -> str:
        """Return string representation of expense."""
        return f"Expense(id='{self.expense_id}', paid_by='{self.paid_by}', amount={self.amount}, split='{self.split_type}')"


def _round_decimal(value: Decimal) -> float:
    """Round a Decimal to 2 decimal places and convert to float."""
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _generate_next_expense_id(group_id: str) -> str:
    """
    Generate the next sequential expense ID for a group.

    Format: E001, E002, E003, ...

    Args:
        group_id: The ID of the group.

    Returns:
        str: Next expense ID in format E### (e.g., E001, E002).
    """
    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    docs = db.collection("groups").document(group_id).collection("expenses").stream()

    # IDs not in E### form (e.g. imported data) are ignored
    max_num = 0
    pattern = re.compile(r'^E(\d+)$')

    for doc in docs:
        match = pattern.match(doc.id)
        if match:
            max_num = max(max_num, int(match.group(1)))

    return f"E{max_num + 1:03d}"


def _validate_date(date_str: str, field_name: str) -> bool:
    """
    Validate date string format (YYYY-MM-DD).

    Raises:
        InvalidInput: If date format is invalid.
    """
    try:
        datetime.strptime(date_str, "%Y-%m-%d")
        return True
    except (TypeError, ValueError):
        raise InvalidInput(f"{field_name} must be in YYYY-MM-DD format, got: {date_str}")


def _validate_non_empty_string(value: str, field_name: str) -> bool:
    """
    Validate that a string is non-empty.

    Raises:
        InvalidInput: If string is empty or not a string.
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{field_name} must be a non-empty string")
    return True


def add_expense(
    group_id: str,
    description: str,
    paid_by: str,
    total_amount,
    strategy,
    allocation: list[dict],
    category: Optional[str] = None,
    date: Optional[str] = None,
    batch=None
) -> Expense:
    """
    Persist a validated split as a new group expense.

    Args:
        group_id: The ID of the group.
        description: What the expense was for.
        paid_by: Participant ID of who paid.
        total_amount: The expense total.
        strategy: The strategy the split was made with.
        allocation: {participant_id, amount} per sharer, from
            SplitEngine.validate_for_commit().
        category: Optional category.
        date: Date of the expense (YYYY-MM-DD), defaults to today.
        batch: Optional Firestore WriteBatch. When given, the write is
            queued on it and the caller commits the batch.

    Returns:
        Expense: The created expense object.

    Raises:
        InvalidInput: If input validation fails.
        SplitMismatch: If the allocation does not add up to the total.
        RuntimeError: If Firestore is not available.

    Notes:
        - Amounts are stored rounded to 2 decimal places; the split amounts
          are rounded together so they sum to the stored amount
        - Payer does NOT have to be in the allocation
    """
    _validate_non_empty_string(group_id, "group_id")
    _validate_non_empty_string(description, "description")
    _validate_non_empty_string(paid_by, "paid_by")
    total = to_non_negative_decimal(total_amount, "total_amount")
    split_type = SplitStrategy.parse(strategy).value

    if category is not None and category.lower() not in VALID_CATEGORIES:
        raise InvalidInput(f"category must be one of {sorted(VALID_CATEGORIES)}, got: {category}")

    if date is None:
        date = date_type.today().isoformat()
    _validate_date(date, "date")

    if not isinstance(allocation, list) or len(allocation) == 0:
        raise InvalidInput("allocation must be a non-empty list")

    participant_ids = []
    amounts = []
    for entry in allocation:
        _validate_non_empty_string(entry.get("participant_id"), "participant_id")
        participant_ids.append(entry["participant_id"])
        amounts.append(to_non_negative_decimal(entry.get("amount"), "amount"))

    allocated = sum(amounts, Decimal("0"))
    if abs(allocated - total) > MINOR_UNIT:
        raise SplitMismatch(round_amount(allocated), round_amount(total))

    # Stored splits must add up to the stored amount to the cent
    splits = [
        {"participant_id": participant_id, "amount": float(amount)}
        for participant_id, amount in zip(participant_ids, distribute_rounded(amounts, total))
    ]

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    expense = Expense(
        expense_id=_generate_next_expense_id(group_id),
        description=description.strip(),
        paid_by=paid_by,
        amount=_round_decimal(total),
        split_type=split_type,
        splits=splits,
        date=date,
        category=category.lower() if category else None
    )

    doc_data = expense.to_dict()
    doc_data["created_at"] = datetime.now(timezone.utc).isoformat()

    doc_ref = db.collection("groups").document(group_id) \
                .collection("expenses").document(expense.expense_id)

    if batch is None:
        doc_ref.set(doc_data)
        logger.info("Saved expense %s in group %s (%s)", expense.expense_id, group_id, split_type)
    else:
        batch.set(doc_ref, doc_data)
    return expense


def get_expenses(group_id: str) -> list[Expense]:
    """
    Get all expenses for a group.

    Raises:
        InvalidInput: If group_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(group_id, "group_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    docs = db.collection("groups").document(group_id) \
             .collection("expenses").stream()

    return [Expense.from_dict(doc.to_dict()) for doc in docs]


def commit_split(
    group_id: str,
    description: str,
    engine: SplitEngine,
    category: Optional[str] = None,
    date: Optional[str] = None
) -> dict:
    """
    Commit a split session to a group.

    Request flow:
        1. Validate the split (SplitEngine.commit)
        2. Build the expense and work out who owes the payer (settlement.py)
        3. Write the expense, its settlements and the running balances in
           one Firestore batch (firebase_store.py)

    The engine is only marked committed once the batch has been written, so
    a failed write leaves nothing stored and the split can be retried.

    Args:
        group_id: The ID of the group.
        description: What the expense was for.
        engine: The split session to commit.
        category: Optional category.
        date: Optional expense date (YYYY-MM-DD).

    Returns:
        dict: expense (Expense), balances (dict) and settlements (list).

    Raises:
        NoParticipants, SplitMismatch: If the split is not ready; the
            engine stays editable.
        InvalidInput: If input validation fails.
        RuntimeError: If Firestore is not available.
    """
    def write_expense(allocation: list[dict]) -> dict:
        db = get_db()
        if db is None:
            raise RuntimeError("Firestore is not available")

        batch = db.batch()
        expense = add_expense(
            group_id=group_id,
            description=description,
            paid_by=engine.paid_by,
            total_amount=engine.total_amount,
            strategy=engine.strategy,
            allocation=allocation,
            category=category,
            date=date,
            batch=batch
        )

        balances = calculate_expense_balances(expense.splits, expense.paid_by, expense.amount)
        settlements = optimize_settlements(balances)

        save_settlements(group_id, expense.expense_id, settlements, batch=batch)
        update_group_balances(group_id, balances, batch=batch)
        batch.commit()

        logger.info("Saved expense %s in group %s with %d settlements",
                    expense.expense_id, group_id, len(settlements))
        return {
            "expense": expense,
            "balances": balances,
            "settlements": settlements
        }

    return engine.commit(write_expense)
