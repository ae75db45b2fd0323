from datetime import date

import pytest

from models.member import Member
from app.member_service import MemberService
from app.query_cache import query_keys


@pytest.fixture()
def members(session, cache):
    return MemberService(session, cache)


def _member(first="Alice", last="Member", email="alice@example.com", **extra):
    return {"firstName": first, "lastName": last, "email": email, **extra}


def test_create_member_defaults(members):
    result = members.create_member(_member(email="Alice@Example.com"))

    assert result.ok, result.error
    member = result.data
    assert member.email == "alice@example.com"
    assert member.membership_status == "active"
    assert member.join_date == date.today()
    assert member.preferred_training_times == []
    assert member.emergency_contact is None


@pytest.mark.parametrize(
    "data, message",
    [
        (_member(first=""), "firstName: First name is required"),
        (_member(first="R2D2"), "firstName: First name contains invalid characters"),
        (_member(last="x" * 51), "lastName: Last name must be less than 50 characters"),
        (_member(email="not-an-email"), "email: Invalid email format"),
        (_member(phone="call me"), "phone: Invalid phone number format"),
    ],
)
def test_create_member_validation_messages(members, data, message):
    result = members.create_member(data)

    assert result.data is None
    assert result.error == message
    assert result.code == "validation_error"


def test_duplicate_email_is_reported(members):
    assert members.create_member(_member()).ok

    result = members.create_member(_member(first="Alicia"))

    assert result.error == "This record already exists"
    assert result.code == "duplicate"


def test_list_members_filters(members):
    members.create_member(
        _member(
            emergencyContact={"name": "Bob", "phone": "555-0100", "relationship": "Brother"},
        )
    )
    members.create_member(_member("Brian", "Stone", "brian@example.com", membershipStatus="frozen"))
    members.create_member(_member("Cara", "Stone", "cara@example.com", phone="+1 555 0101"))

    frozen = members.list_members({"status": "frozen"}).data
    stones = members.list_members({"searchTerm": "stone"}).data
    by_phone = members.list_members({"searchTerm": "0101"}).data
    full_name = members.list_members({"searchTerm": "Cara Stone"}).data
    with_contact = members.list_members({"hasEmergencyContact": True}).data

    assert [m.first_name for m in frozen] == ["Brian"]
    assert sorted(m.first_name for m in stones) == ["Brian", "Cara"]
    assert [m.first_name for m in by_phone] == ["Cara"]
    assert [m.first_name for m in full_name] == ["Cara"]
    assert [m.first_name for m in with_contact] == ["Alice"]


def test_list_is_cached_until_a_write(members, cache):
    members.create_member(_member())
    assert len(members.list_members().data) == 1
    assert query_keys.member_list() in cache

    members.create_member(_member("Brian", "Stone", "brian@example.com"))

    assert query_keys.member_list() not in cache
    assert len(members.list_members().data) == 2


def test_update_member_partial(members):
    member = members.create_member(_member(fitnessGoals="Run 5k")).data

    result = members.update_member({"id": member.id, "phone": "555-0199"})

    assert result.ok
    assert result.data.phone == "555-0199"
    assert result.data.first_name == "Alice"
    assert result.data.fitness_goals == "Run 5k"


def test_update_member_rejects_bad_id(members):
    result = members.update_member({"id": "42", "firstName": "Al"})

    assert result.error == "id: Invalid member ID"


def test_get_member_not_found(members):
    result = members.get_member("00000000-0000-4000-8000-000000000000")

    assert result.error == "Member not found"
    assert result.code == "not_found"


def test_freeze_and_unfreeze(members):
    member = members.create_member(_member()).data

    assert members.freeze_member(member.id).data.membership_status == "frozen"
    assert members.unfreeze_member(member.id).data.membership_status == "active"
    assert members.cancel_membership(member.id).data.membership_status == "cancelled"
    assert members.reactivate_member(member.id).data.membership_status == "active"


def test_delete_member_removes_from_cached_list(session, members, cache):
    keep = members.create_member(_member()).data
    gone = members.create_member(_member("Brian", "Stone", "brian@example.com")).data
    members.list_members()

    result = members.delete_member(gone.id)

    assert result.data is True
    assert session.get(Member, gone.id) is None
    assert [m.id for m in members.list_members().data] == [keep.id]


def test_failed_delete_restores_cached_list(members, cache):
    members.create_member(_member())
    before = members.list_members().data

    result = members.delete_member("00000000-0000-4000-8000-000000000000")

    assert result.error == "Member not found"
    assert cache.get(query_keys.member_list()) == before


def test_bulk_delete(members):
    ids = [
        members.create_member(_member(f"Member{c}", "Bulk", f"{c}@example.com")).data.id
        for c in "abc"
    ]

    result = members.delete_members(ids[:2])

    assert result.data == {"deleted": 2}
    assert [m.id for m in members.list_members().data] == [ids[2]]


def test_bulk_delete_requires_ids(members):
    assert members.delete_members([]).error == "Invalid member IDs provided"


def test_stats_and_distribution(members):
    for index, status in enumerate(["active", "active", "active", "frozen"]):
        members.create_member(_member(f"Member{'abcd'[index]}", "Stats", f"{index}@example.com", membershipStatus=status))

    stats = members.get_member_stats().data
    distribution = members.get_status_distribution().data

    assert stats["total_members"] == 4
    assert stats["active_members"] == 3
    assert stats["frozen_members"] == 1
    assert stats["new_this_week"] == 4
    assert [(d["status"], d["count"], d["percentage"]) for d in distribution] == [
        ("Active", 3, 75),
        ("Frozen", 1, 25),
    ]


def test_recent_activities(members):
    members.create_member(_member())

    activity = members.get_recent_activities().data[0]

    assert activity["type"] == "member_joined"
    assert activity["description"] == "Alice Member joined"


def test_export_members_csv(members):
    members.create_member(
        _member(
            preferredTrainingTimes=["morning", "evening"],
            emergencyContact={"name": "Bob", "phone": "555-0100", "relationship": "Brother"},
        )
    )

    result = members.export_members_csv()

    lines = result.data["content"].splitlines()
    assert result.data["filename"].startswith("members-export-")
    assert result.data["count"] == 1
    assert lines[0].startswith('"First Name","Last Name","Email"')
    assert '"morning; evening"' in lines[1]
    assert '"Bob (Brother) - 555-0100"' in lines[1]


def test_export_with_no_members(members):
    assert members.export_members_csv().error == "No members found to export"
