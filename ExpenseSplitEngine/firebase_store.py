"""
Firebase Store Module

This module saves what follows from a committed expense to Firestore.

Features:
    - Save the settlement transactions of an expense
    - Keep running per-member balances for a group
    - Settlement saves are idempotent (safe to overwrite)
    - Writes can be queued on a caller's WriteBatch

Firestore Structure:
    groups/{group_id}/expenses/{expense_id}/settlements/{settlement_id}
        - settlement_id: string (S001, S002, ...)
        - from_participant: string
        - to_participant: string
        - amount: float
        - updated_at: timestamp

    groups/{group_id}/balances/{participant_id}
        - participant_id: string
        - total_paid: float (running)
        - total_share: float (running)
        - net_balance: float (running)
        - updated_at: timestamp

Functions:
    save_settlements: Save settlement transactions of one expense.
    update_group_balances: Add one expense's balances to the group totals.
"""

import logging
from datetime import datetime, timezone

from firebase_admin import firestore

from config.firebase_config import get_db

logger = logging.getLogger(__name__)


def _get_timestamp() -> str:
    """
    Get current UTC timestamp in ISO format.

    Returns:
        str: ISO formatted timestamp.
    """
    return datetime.now(timezone.utc).isoformat()


def _validate_id(value: str, field_name: str) -> None:
    """
    Validate that an id is a non-empty string.

    Raises:
        ValueError: If the id is invalid.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")


def save_settlements(group_id: str, expense_id: str, settlements: list, batch=None) -> dict:
    """
    Save the settlement transactions of one expense.

    Generates sequential settlement IDs (S001, S002, ...) and stores at:
        groups/{group_id}/expenses/{expense_id}/settlements/{settlement_id}

    Args:
        group_id: The ID of the group.
        expense_id: The ID of the expense.
        settlements: List of settlement dicts containing:
            - from_participant: string (debtor)
            - to_participant: string (creditor)
            - amount: float
        batch: Optional Firestore WriteBatch to queue the writes on.

    Returns:
        dict: Summary of saved documents with count and settlement IDs.

    Raises:
        ValueError: If group_id or expense_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_id(group_id, "group_id")
    _validate_id(expense_id, "expense_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    timestamp = _get_timestamp()
    saved_ids = []

    for index, settlement in enumerate(settlements, start=1):
        settlement_id = f"S{index:03d}"

        doc_data = {
            "settlement_id": settlement_id,
            "from_participant": settlement.get("from_participant"),
            "to_participant": settlement.get("to_participant"),
            "amount": settlement.get("amount", 0.0),
            "updated_at": timestamp
        }

        doc_ref = db.collection("groups").document(group_id) \
                    .collection("expenses").document(expense_id) \
                    .collection("settlements").document(settlement_id)
        if batch is None:
            doc_ref.set(doc_data)
        else:
            batch.set(doc_ref, doc_data)
        saved_ids.append(settlement_id)

    if batch is None:
        logger.info("Saved %d settlements for expense %s", len(saved_ids), expense_id)
    return {
        "saved_count": len(saved_ids),
        "settlement_ids": saved_ids,
        "updated_at": timestamp
    }


def update_group_balances(group_id: str, balances: dict, batch=None) -> dict:
    """
    Add one expense's balances to the group's running balances.

    Uses Firestore increments so concurrent commits from other members do
    not overwrite each other.

    Args:
        group_id: The ID of the group.
        balances: Dict keyed by participant_id containing total_paid,
            total_share and net_balance (from calculate_expense_balances).
        batch: Optional Firestore WriteBatch to queue the writes on.

    Returns:
        dict: Summary of updated documents with count and participant IDs.

    Raises:
        ValueError: If group_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_id(group_id, "group_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    timestamp = _get_timestamp()
    updated_ids = []

    for participant_id, balance in balances.items():
        doc_data = {
            "participant_id": participant_id,
            "total_paid": firestore.Increment(balance.get("total_paid", 0.0)),
            "total_share": firestore.Increment(balance.get("total_share", 0.0)),
            "net_balance": firestore.Increment(balance.get("net_balance", 0.0)),
            "updated_at": timestamp
        }

        doc_ref = db.collection("groups").document(group_id) \
                    .collection("balances").document(participant_id)
        if batch is None:
            doc_ref.set(doc_data, merge=True)
        else:
            batch.set(doc_ref, doc_data, merge=True)
        updated_ids.append(participant_id)

    return {
        "updated_count": len(updated_ids),
        "participant_ids": updated_ids,
        "updated_at": timestamp
    }
