"""
Unit Tests for directory lookups and role normalisation
"""
import pytest
from types import SimpleNamespace

from app.core.exceptions import ValidationError
from app.models.user import UserRole, BoardingType
from app.services.directory_service import (
    SqlDirectory,
    normalize_boarding_type,
    normalize_role,
)


class TestNormalizeRole:

    @pytest.mark.parametrize("value", [
        "HOD", "hod", " Hod ", UserRole.HOD, {"name": "hod"}, SimpleNamespace(name="HOD"),
    ])
    def test_accepts_every_spelling(self, value):
        assert normalize_role(value) == UserRole.HOD

    def test_multi_word_roles(self):
        assert normalize_role("Hostel Warden") == UserRole.HOSTEL_WARDEN
        assert normalize_role("academic-director") == UserRole.ACADEMIC_DIRECTOR

    def test_unknown_role(self):
        with pytest.raises(ValidationError):
            normalize_role("principal")


class TestNormalizeBoardingType:

    def test_values(self):
        assert normalize_boarding_type("HOSTELLER") == BoardingType.HOSTELLER
        assert normalize_boarding_type("day scholar") == BoardingType.DAY_SCHOLAR
        assert normalize_boarding_type(None) is None
        assert normalize_boarding_type("") is None

    def test_unknown_value(self):
        with pytest.raises(ValidationError):
            normalize_boarding_type("boarder")


class TestSqlDirectory:

    async def test_get_user(self, db_session, hosteller, cse):
        directory = SqlDirectory(db_session)

        user = await directory.get_user(hosteller.id)

        assert user.id == hosteller.id
        assert user.role == UserRole.STUDENT
        assert user.department_id == cse.id
        assert user.boarding_type == BoardingType.HOSTELLER
        assert user.parent_phone == "9876543210"

    async def test_missing_user(self, db_session):
        directory = SqlDirectory(db_session)

        assert await directory.get_user("00000000-0000-0000-0000-000000000000") is None

    async def test_find_users_scoped_to_department(self, db_session, staff, ece_staff, cse):
        directory = SqlDirectory(db_session)

        in_cse = await directory.find_users("staff", cse.id)
        everyone = await directory.find_users(UserRole.STAFF)

        assert [u.id for u in in_cse] == [staff.id]
        assert sorted(u.id for u in everyone) == sorted([staff.id, ece_staff.id])

    async def test_find_users_skips_inactive(self, db_session, make_user):
        active = await make_user(UserRole.SECURITY)
        await make_user(UserRole.SECURITY, is_active=False)

        found = await SqlDirectory(db_session).find_users(UserRole.SECURITY)

        assert [u.id for u in found] == [active.id]
