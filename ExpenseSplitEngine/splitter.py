"""
Splitter Module

This module holds the split engine: given an expense total and the members
of a group, it works out what each selected participant owes and keeps that
allocation consistent while the user edits the split.

Features:
    - Four strategies: EQUAL, EXACT, PERCENTAGE, SHARE
    - Participant selection (toggle members in and out of the split)
    - Per-participant inputs (exact amount, percentage, shares)
    - Validation of the final allocation against the total before commit
    - Decimal arithmetic throughout, no rounding inside the engine

Data Model:
    Input - members (list of dicts):
        - id: string
        - displayName: string
        - isSelf: bool

    Output - allocation (list of dicts, selected participants in member order):
        - participant_id: string
        - amount: Decimal

Rules applied after every change, for the selected participants S:
    - EQUAL: amount = total / |S|
    - EXACT: amount = exact_amount
    - PERCENTAGE: amount = total * percentage / 100
    - SHARE: amount = total * shares / sum(shares of S)
    - Participants outside S owe 0 and have all inputs cleared

Functions:
    initialize: Start a new split session.
"""

import logging
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional

from config.settings import MINOR_UNIT
from errors import InvalidInput, InvalidOperation, NoParticipants, NotFound, SplitMismatch
from participants import Participant, build_participants
from utils import format_currency, round_amount, to_non_negative_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class SplitStrategy(str, Enum):
    """How an expense total is divided among the selected participants."""

    EQUAL = "EQUAL"
    EXACT = "EXACT"
    PERCENTAGE = "PERCENTAGE"
    SHARE = "SHARE"

    @classmethod
    def parse(cls, value) -> "SplitStrategy":
        """
        Parse a strategy from an enum member, its name, or an app label.

        Accepts "equal", "EXACT", "Unequal", "By Percentage", "By Share", ...

        Raises:
            InvalidInput: If value names no strategy.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().upper().replace(" ", "_")
            strategy = _STRATEGY_ALIASES.get(key)
            if strategy is not None:
                return strategy
        raise InvalidInput(f"strategy must be one of {[s.value for s in cls]}, got: {value!r}")


_STRATEGY_ALIASES = {
    "EQUAL": SplitStrategy.EQUAL,
    "EXACT": SplitStrategy.EXACT,
    "UNEQUAL": SplitStrategy.EXACT,
    "PERCENTAGE": SplitStrategy.PERCENTAGE,
    "BY_PERCENTAGE": SplitStrategy.PERCENTAGE,
    "SHARE": SplitStrategy.SHARE,
    "SHARES": SplitStrategy.SHARE,
    "BY_SHARE": SplitStrategy.SHARE,
}

# Which participant field each strategy reads
STRATEGY_FIELDS = {
    SplitStrategy.EXACT: "exact_amount",
    SplitStrategy.PERCENTAGE: "percentage",
    SplitStrategy.SHARE: "shares",
}

_FIELD_ALIASES = {
    "exact_amount": "exact_amount",
    "exactAmount": "exact_amount",
    "percentage": "percentage",
    "shares": "shares",
}


class SplitEngine:
    """
    Split state for one expense-entry session.

    Created with every member selected and the EQUAL strategy. Mutated only
    through its methods; each mutation ends with the computed amounts
    re-derived for the active strategy. Once commit() succeeds the engine is
    frozen.

    Attributes:
        total_amount (Decimal): The expense total.
        strategy (SplitStrategy): Active strategy.
        participants (list[Participant]): In member order.
        paid_by (str): Participant ID of whoever paid the expense.
        epsilon (Decimal): Tolerance for sum checks (one minor currency unit).
        committed (bool): True once the allocation was handed to a sink.
    """

    def __init__(self, total_amount, members, epsilon=None):
        self.total_amount = to_non_negative_decimal(total_amount, "total_amount")
        self.participants = build_participants(members)
        self.epsilon = MINOR_UNIT if epsilon is None else to_non_negative_decimal(epsilon, "epsilon")
        self.strategy = SplitStrategy.EQUAL
        self.committed = False

        payer = next((p for p in self.participants if p.is_self), self.participants[0])
        self.paid_by = payer.participant_id

        self._recompute()
        logger.debug(
            "Initialized split of %s among %d participants",
            self.total_amount, len(self.participants)
        )

    # ------------------ HELPERS ------------------

    def _selected(self) -> list[Participant]:
        return [p for p in self.participants if p.selected]

    def _find(self, participant_id: str) -> Participant:
        for p in self.participants:
            if p.participant_id == participant_id:
                return p
        raise NotFound(f"Participant {participant_id} not found in split")

    def _ensure_editable(self) -> None:
        if self.committed:
            raise InvalidOperation("Split has already been committed")

    def _apply_defaults(self) -> None:
        """
        Seed zero inputs for the active strategy with an equal split.

        Deselected participants are cleared. Selected participants that
        already hold a nonzero value for the active strategy keep it.
        """
        for p in self.participants:
            if not p.selected:
                p.clear()

        selected = self._selected()
        if not selected:
            return

        count = Decimal(len(selected))
        for p in selected:
            if self.strategy == SplitStrategy.PERCENTAGE and not p.percentage:
                p.percentage = HUNDRED / count
            elif self.strategy == SplitStrategy.SHARE and not p.shares:
                p.shares = Decimal("1")
            elif self.strategy == SplitStrategy.EXACT and not p.exact_amount:
                p.exact_amount = self.total_amount / count

    def _recompute(self) -> None:
        """Derive computed_amount for every participant from the active strategy."""
        selected = self._selected()
        total_shares = sum((p.shares for p in selected), ZERO)

        for p in self.participants:
            if not p.selected:
                p.computed_amount = ZERO
            elif self.strategy == SplitStrategy.EQUAL:
                p.computed_amount = self.total_amount / Decimal(len(selected))
            elif self.strategy == SplitStrategy.EXACT:
                p.computed_amount = p.exact_amount
            elif self.strategy == SplitStrategy.PERCENTAGE:
                p.computed_amount = self.total_amount * p.percentage / HUNDRED
            elif total_shares:
                p.computed_amount = self.total_amount * p.shares / total_shares
            else:
                # Every selected participant has zero shares
                p.computed_amount = ZERO

    # ------------------ MUTATIONS ------------------

    def set_total_amount(self, amount) -> None:
        """
        Change the expense total and re-derive the computed amounts.

        Under EXACT the entered amounts are absolutes and are not rescaled,
        so a new total can leave the split unbalanced until the user fixes it.

        Raises:
            InvalidInput: If amount is negative or not a finite number.
            InvalidOperation: If the split was committed.
        """
        self._ensure_editable()
        self.total_amount = to_non_negative_decimal(amount, "total_amount")
        self._recompute()
        logger.debug("Total set to %s", self.total_amount)

    def set_strategy(self, strategy) -> None:
        """
        Switch strategy.

        Selected participants with no value for the new strategy get an equal
        default (100/|S| percent, 1 share, or total/|S| exact); nonzero values
        entered earlier are kept.

        Raises:
            InvalidInput: If strategy is unknown.
            InvalidOperation: If the split was committed.
        """
        self._ensure_editable()
        self.strategy = SplitStrategy.parse(strategy)
        self._apply_defaults()
        self._recompute()
        logger.debug("Strategy set to %s", self.strategy.value)

    def toggle_participant(self, participant_id: str) -> Participant:
        """
        Include or exclude a participant, then rebalance.

        Returns:
            Participant: The toggled participant.

        Raises:
            NotFound: If participant_id is not in the split.
            InvalidOperation: If the split was committed.
        """
        self._ensure_editable()
        participant = self._find(participant_id)
        participant.selected = not participant.selected
        self._apply_defaults()
        self._recompute()
        logger.debug(
            "Participant %s %s", participant_id,
            "selected" if participant.selected else "deselected"
        )
        return participant

    def set_participant_value(self, participant_id: str, field: str, value) -> Participant:
        """
        Set one participant's input for the active strategy.

        Args:
            participant_id: The participant to edit.
            field: "exact_amount", "percentage" or "shares".
            value: New non-negative value (percentage at most 100).

        Returns:
            Participant: The edited participant.

        Raises:
            InvalidInput: Unknown field, bad value, or participant not selected.
            InvalidOperation: Field not used by the active strategy, or the
                split was committed.
            NotFound: If participant_id is not in the split.

        Notes:
            - PERCENTAGE: other participants are left alone, so percentages
              need not add up to 100 between edits
            - SHARE: every selected amount is re-normalized
            - EXACT: only the edited participant's amount changes
        """
        self._ensure_editable()

        attribute = _FIELD_ALIASES.get(field)
        if attribute is None:
            raise InvalidInput(f"field must be one of exact_amount, percentage, shares, got: {field!r}")
        if STRATEGY_FIELDS.get(self.strategy) != attribute:
            raise InvalidOperation(f"{field} cannot be set while the strategy is {self.strategy.value}")

        amount = to_non_negative_decimal(value, field)
        if attribute == "percentage" and amount > HUNDRED:
            raise InvalidInput(f"percentage must be between 0 and 100, got: {value!r}")

        participant = self._find(participant_id)
        if not participant.selected:
            raise InvalidInput(f"Participant {participant_id} is not selected")

        setattr(participant, attribute, amount)
        if self.strategy == SplitStrategy.EXACT:
            participant.computed_amount = amount
        else:
            self._recompute()

        logger.debug("Participant %s %s set to %s", participant_id, attribute, amount)
        return participant

    def set_paid_by(self, participant_id: str) -> None:
        """
        Record who paid. The payer does not have to share the expense.

        Raises:
            NotFound: If participant_id is not in the split.
            InvalidOperation: If the split was committed.
        """
        self._ensure_editable()
        self.paid_by = self._find(participant_id).participant_id

    # ------------------ VALIDATION / COMMIT ------------------

    def selected_sum(self) -> Decimal:
        """Sum of the computed amounts of the selected participants."""
        return sum((p.computed_amount for p in self._selected()), ZERO)

    def validate_for_commit(self) -> list[dict]:
        """
        Check the split against the total and return the final allocation.

        Does not modify the split, whether it succeeds or fails, and never
        rounds or rebalances amounts.

        Returns:
            list[dict]: One {"participant_id", "amount"} per selected
                participant, in member order.

        Raises:
            NoParticipants: If nobody is selected.
            SplitMismatch: If the amounts differ from the total by more
                than epsilon.
        """
        selected = self._selected()
        if not selected:
            raise NoParticipants()

        total = self.selected_sum()
        if abs(total - self.total_amount) > self.epsilon:
            sum_amount = round_amount(total)
            total_amount = round_amount(self.total_amount)
            raise SplitMismatch(
                sum_amount,
                total_amount,
                f"Split amounts add up to {format_currency(sum_amount)}, "
                f"expected {format_currency(total_amount)}"
            )

        return [
            {"participant_id": p.participant_id, "amount": p.computed_amount}
            for p in selected
        ]

    def commit(self, sink: Callable[[list[dict]], Optional[object]]):
        """
        Validate the split and hand the allocation to a sink.

        The engine is frozen only if the sink returns normally; on a failed
        validation or a sink error it stays editable and unchanged.

        Args:
            sink: Callable receiving the allocation, e.g. a persistence call.

        Returns:
            Whatever the sink returns.

        Raises:
            InvalidOperation: If the split was already committed.
            NoParticipants, SplitMismatch: From validate_for_commit().
        """
        self._ensure_editable()
        allocation = self.validate_for_commit()
        result = sink(allocation)
        self.committed = True
        logger.info(
            "Committed %s split of %s among %d participants",
            self.strategy.value, self.total_amount, len(allocation)
        )
        return result

    def to_dict(self) -> dict:
        """Snapshot of the split for display."""
        return {
            "total_amount": self.total_amount,
            "strategy": self.strategy.value,
            "paid_by": self.paid_by,
            "committed": self.committed,
            "selected_sum": self.selected_sum(),
            "participants": [p.to_dict() for p in self.participants]
        }

    def __repr__(self) -> str:
        return (
            f"SplitEngine(total={self.total_amount}, strategy={self.strategy.value}, "
            f"selected={len(self._selected())}/{len(self.participants)})"
        )


def initialize(total_amount, members, epsilon=None) -> SplitEngine:
    """
    Start a split session with every member selected and an equal split.

    Args:
        total_amount: Expense total, a finite number >= 0.
        members: Non-empty ordered list of member mappings (id, displayName, isSelf).
        epsilon: Tolerance for the commit check (default: MINOR_UNIT).

    Returns:
        SplitEngine: The new split.

    Raises:
        InvalidInput: If members is empty or malformed, or total_amount is
            negative or not finite.
    """
    return SplitEngine(total_amount, members, epsilon=epsilon)
