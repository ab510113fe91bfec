import pytest

from retailcore.models import Member
from retailcore.services import identifier_service
from retailcore.services.identifier_service import (
    extract_sequence_number,
    format_member_id,
    next_member_id,
)


class TestNextMemberId:
    def test_no_members_starts_at_one(self):
        assert next_member_id([]) == "M001"

    def test_uses_highest_number_not_latest(self):
        assert next_member_id(["M001", "M007", "M003"]) == "M008"

    def test_width_grows_past_three_digits(self):
        assert next_member_id(["M999"]) == "M1000"

    def test_pads_to_three_digits(self):
        assert next_member_id(["M041"]) == "M042"

    def test_ids_without_digits_count_as_zero(self):
        assert next_member_id(["GUEST", None, ""]) == "M001"
        assert next_member_id(["GUEST", "M004"]) == "M005"

    def test_only_first_digit_run_is_used(self):
        assert next_member_id(["M012-2099"]) == "M013"


@pytest.mark.parametrize(
    "identifier,expected",
    [
        ("M001", 1),
        ("M1000", 1000),
        ("X-42-7", 42),
        ("nothing", 0),
        (None, 0),
    ],
)
def test_extract_sequence_number(identifier, expected):
    assert extract_sequence_number(identifier) == expected


def test_format_member_id():
    assert format_member_id(5) == "M005"
    assert format_member_id(12345) == "M12345"


def test_allocate_member_id_reads_stored_ids(db_session, tiers):
    for member_id in ("M001", "M007", "M003"):
        db_session.add(Member(
            member_id=member_id,
            name=f"Member {member_id}",
            email=f"{member_id.lower()}@example.com",
            phone="555-0000",
            tier="Bronze",
        ))
    db_session.commit()

    assert identifier_service.allocate_member_id() == "M008"


def test_allocate_member_id_empty_table(db_session):
    assert identifier_service.allocate_member_id() == "M001"
