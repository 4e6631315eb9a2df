from decimal import Decimal

import pytest

from errors import InvalidInput, NotFound
from participants import Participant, build_participants, get_group_members, participant_from_member


def test_member_spellings_are_normalized():
    p = participant_from_member({"userId": " u1 ", "name": "Samir", "isYou": True})

    assert p.participant_id == "u1"
    assert p.display_name == "Samir"
    assert p.is_self is True
    assert p.selected is True
    assert p.computed_amount == 0


def test_numeric_ids_become_strings():
    assert participant_from_member({"id": 4, "displayName": "Vishal"}).participant_id == "4"


def test_missing_name_falls_back_to_id():
    assert participant_from_member({"participant_id": "P001"}).display_name == "P001"


@pytest.mark.parametrize("member", [
    {},
    {"id": ""},
    {"id": "   "},
    {"id": True},
    {"id": "A", "name": 42},
    "A",
    None,
])
def test_malformed_members_rejected(member):
    with pytest.raises(InvalidInput):
        participant_from_member(member)


def test_build_participants_keeps_order(members):
    participants = build_participants(members)
    assert [p.participant_id for p in participants] == ["A", "B", "C"]
    assert [p.is_self for p in participants] == [False, False, True]


def test_build_participants_rejects_empty():
    with pytest.raises(InvalidInput):
        build_participants([])


def test_participant_clear_zeroes_inputs():
    p = Participant("A", "Raj", is_self=True)
    p.shares = Decimal("2")
    p.computed_amount = Decimal("12.5")

    p.clear()

    data = p.to_dict()
    assert data["shares"] == Decimal("0")
    assert data["computed_amount"] == Decimal("0")
    assert data["is_self"] is True


def test_get_group_members(group):
    members = get_group_members(group, current_user_id="B")

    assert members == [
        {"id": "A", "displayName": "Raj", "isSelf": False},
        {"id": "B", "displayName": "Ajit", "isSelf": True},
        {"id": "C", "displayName": "Vishal", "isSelf": False},
    ]


def test_get_group_members_without_profile(fake_db):
    fake_db.collection("groups").document("g").set({"members": ["ghost"]})
    assert get_group_members("g") == [{"id": "ghost", "displayName": "ghost", "isSelf": False}]


def test_get_group_members_missing_group(fake_db):
    with pytest.raises(NotFound):
        get_group_members("nope")


def test_get_group_members_blank_id(fake_db):
    with pytest.raises(ValueError):
        get_group_members("  ")


def test_get_group_members_without_firestore(no_db):
    with pytest.raises(RuntimeError):
        get_group_members("trip")
