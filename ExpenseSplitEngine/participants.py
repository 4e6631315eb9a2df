"""
Participants Module

This module handles the participants of an expense split: the record the
split engine keeps per member, validation of member data coming from the
group, and reading a group's members from Firestore.

Features:
    - Participant record with per-strategy inputs and the computed amount
    - Validation of member mappings at the boundary (id/userId, name/displayName)
    - Fetch the member list of a group

Data Model:
    Group stored at: groups/{group_id}
        - members: list of user ids, in group order
    User stored at: users/{user_id}
        - name: string

    Member mapping (input to the split engine):
        - id: string (also accepted as userId or participant_id)
        - displayName: string (also accepted as name or display_name)
        - isSelf: bool (also accepted as isYou or is_self)

Functions:
    participant_from_member: Build a Participant from a member mapping.
    build_participants: Validate a whole member list.
    get_group_members: Get the member list of a group.
"""

import logging
from decimal import Decimal
from typing import Optional

from config.firebase_config import get_db
from errors import InvalidInput, NotFound

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

_ID_KEYS = ("id", "userId", "participant_id")
_NAME_KEYS = ("displayName", "name", "display_name")
_SELF_KEYS = ("isSelf", "isYou", "is_self")


class Participant:
    """
    Represents one member taking part in an expense split.

    Attributes:
        participant_id (str): Stable identifier, unique within the group.
        display_name (str): Name shown in the UI.
        is_self (bool): True for the current user.
        selected (bool): Whether this participant shares the expense.
        exact_amount (Decimal): Owed amount entered under EXACT.
        percentage (Decimal): Owed share in [0, 100] under PERCENTAGE.
        shares (Decimal): Relative weight under SHARE.
        computed_amount (Decimal): Amount owed under the active strategy.
    """

    def __init__(
        self,
        participant_id: str,
        display_name: str,
        is_self: bool = False,
        selected: bool = True
    ):
        self.participant_id = participant_id
        self.display_name = display_name
        self.is_self = is_self
        self.selected = selected
        self.exact_amount = ZERO
        self.percentage = ZERO
        self.shares = ZERO
        self.computed_amount = ZERO

    def clear(self) -> None:
        """Zero every strategy input and the computed amount."""
        self.exact_amount = ZERO
        self.percentage = ZERO
        self.shares = ZERO
        self.computed_amount = ZERO

    def to_dict(self) -> dict:
        """Convert participant to dictionary."""
        return {
            "participant_id": self.participant_id,
            "display_name": self.display_name,
            "is_self": self.is_self,
            "selected": self.selected,
            "exact_amount": self.exact_amount,
            "percentage": self.percentage,
            "shares": self.shares,
            "computed_amount": self.computed_amount
        }

    def __repr__(self) -> str:
        """Return string representation of participant."""
        return (
            f"Participant(id='{self.participant_id}', name='{self.display_name}', "
            f"selected={self.selected}, amount={self.computed_amount})"
        )


def _first_present(data: dict, keys: tuple):
    """Return the value of the first key present in data, or None."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def participant_from_member(member) -> Participant:
    """
    Build a Participant from a member mapping.

    Member objects from the app are not uniform (id vs userId, name vs
    displayName, isYou vs isSelf); all spellings are accepted here so the
    engine only ever sees one shape.

    Args:
        member: Member mapping, or an existing Participant.

    Returns:
        Participant: A fresh, selected participant with zeroed inputs.

    Raises:
        InvalidInput: If the member is not a mapping, has no usable id, or
            has a non-string name.
    """
    if isinstance(member, Participant):
        return Participant(member.participant_id, member.display_name, member.is_self)

    if not isinstance(member, dict):
        raise InvalidInput(f"member must be a mapping, got: {member!r}")

    participant_id = _first_present(member, _ID_KEYS)
    if isinstance(participant_id, int) and not isinstance(participant_id, bool):
        participant_id = str(participant_id)
    if not isinstance(participant_id, str) or not participant_id.strip():
        raise InvalidInput(f"member id must be a non-empty string, got: {participant_id!r}")
    participant_id = participant_id.strip()

    display_name = _first_present(member, _NAME_KEYS)
    if display_name is None:
        display_name = participant_id
    if not isinstance(display_name, str):
        raise InvalidInput(f"member name must be a string, got: {display_name!r}")

    is_self = bool(_first_present(member, _SELF_KEYS) or False)

    return Participant(participant_id, display_name.strip() or participant_id, is_self)


def build_participants(members) -> list[Participant]:
    """
    Validate a member list and turn it into participants.

    Args:
        members: Ordered list of member mappings.

    Returns:
        list[Participant]: Participants in member order.

    Raises:
        InvalidInput: If the list is empty, an entry is malformed, or an id
            appears twice.
    """
    if not isinstance(members, (list, tuple)) or len(members) == 0:
        raise InvalidInput("members must be a non-empty list")

    participants = []
    seen = set()
    for member in members:
        participant = participant_from_member(member)
        if participant.participant_id in seen:
            raise InvalidInput(f"duplicate member id: {participant.participant_id}")
        seen.add(participant.participant_id)
        participants.append(participant)

    return participants


def get_group_members(group_id: str, current_user_id: Optional[str] = None) -> list[dict]:
    """
    Get the member list of a group, ready to seed a split.

    Args:
        group_id: The ID of the group.
        current_user_id: ID of the signed-in user, flagged with isSelf.

    Returns:
        list[dict]: Member mappings with id, displayName and isSelf, in the
            order the group stores its members.

    Raises:
        ValueError: If group_id is invalid.
        NotFound: If the group does not exist.
        RuntimeError: If Firestore is not available.
    """
    if not isinstance(group_id, str) or not group_id.strip():
        raise ValueError("group_id must be a non-empty string")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    group_doc = db.collection("groups").document(group_id).get()
    if not group_doc.exists:
        raise NotFound(f"Group {group_id} not found")

    member_ids = group_doc.to_dict().get("members", [])

    members = []
    for user_id in member_ids:
        user_doc = db.collection("users").document(user_id).get()
        # Members whose profile is gone still split by id
        name = user_doc.to_dict().get("name") if user_doc.exists else None
        members.append({
            "id": user_id,
            "displayName": name or user_id,
            "isSelf": user_id == current_user_id
        })

    logger.debug("Loaded %d members for group %s", len(members), group_id)
    return members
