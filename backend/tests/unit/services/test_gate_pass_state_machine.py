"""
Unit Tests for the gate pass transition rules
"""
import pytest

from app.core.exceptions import ForbiddenError, InvalidStateError, ValidationError
from app.models.gate_pass import GatePassStatus, RequesterType, TERMINAL_STATUSES
from app.models.user import UserRole, BoardingType
from app.services.gate_pass_state_machine import (
    STAGE_FOR_STATUS,
    STAGE_RULES,
    Decision,
    Stage,
    check_eligibility,
    check_state,
    initial_status,
    is_pending,
    is_terminal,
    next_status,
    requester_type_for_role,
)


class TestInitialStatus:

    @pytest.mark.parametrize("requester_type,expected", [
        (RequesterType.STUDENT, GatePassStatus.PENDING_STAFF),
        (RequesterType.STAFF, GatePassStatus.PENDING_HOD),
        (RequesterType.HOD, GatePassStatus.PENDING_ACADEMIC_DIRECTOR_FROM_HOD),
    ])
    def test_initial_status_per_requester(self, requester_type, expected):
        assert initial_status(requester_type) == expected

    def test_only_students_staff_and_hod_can_file(self):
        assert requester_type_for_role(UserRole.HOD) == RequesterType.HOD
        for role in (UserRole.SECURITY, UserRole.HOSTEL_WARDEN, UserRole.ADMIN):
            with pytest.raises(ValidationError):
                requester_type_for_role(role)


class TestNextStatus:

    def test_staff_approve_and_reject(self):
        rule = STAGE_RULES[Stage.STAFF]

        assert next_status(rule, Decision.APPROVE) == GatePassStatus.PENDING_HOD
        assert next_status(rule, Decision.REJECT) == GatePassStatus.REJECTED_BY_STAFF

    def test_hod_branch_for_hosteller_student(self):
        rule = STAGE_RULES[Stage.HOD]

        assert next_status(
            rule, Decision.APPROVE, RequesterType.STUDENT, BoardingType.HOSTELLER
        ) == GatePassStatus.PENDING_HOSTEL_WARDEN

    @pytest.mark.parametrize("requester_type,boarding_type", [
        (RequesterType.STUDENT, BoardingType.DAY_SCHOLAR),
        (RequesterType.STUDENT, None),
        (RequesterType.STAFF, BoardingType.HOSTELLER),
        (RequesterType.STAFF, None),
    ])
    def test_hod_branch_to_academic_director(self, requester_type, boarding_type):
        rule = STAGE_RULES[Stage.HOD]

        assert next_status(
            rule, Decision.APPROVE, requester_type, boarding_type
        ) == GatePassStatus.PENDING_ACADEMIC_DIRECTOR

    def test_hod_reject(self):
        assert next_status(STAGE_RULES[Stage.HOD], Decision.REJECT) == GatePassStatus.REJECTED_BY_HOD

    def test_hostel_warden_and_director(self):
        warden = STAGE_RULES[Stage.HOSTEL_WARDEN]
        director = STAGE_RULES[Stage.ACADEMIC_DIRECTOR]

        assert next_status(warden, Decision.APPROVE) == GatePassStatus.PENDING_ACADEMIC_DIRECTOR
        assert next_status(warden, Decision.REJECT) == GatePassStatus.REJECTED_BY_HOSTEL_WARDEN
        assert next_status(director, Decision.APPROVE) == GatePassStatus.APPROVED
        assert next_status(director, Decision.REJECT) == GatePassStatus.REJECTED_BY_ACADEMIC_DIRECTOR

    def test_security_cannot_reject(self):
        rule = STAGE_RULES[Stage.SECURITY]

        assert next_status(rule, Decision.APPROVE) == GatePassStatus.USED
        with pytest.raises(ValidationError):
            next_status(rule, Decision.REJECT)


class TestChecks:

    def test_check_state_rejects_wrong_status(self):
        with pytest.raises(InvalidStateError) as exc_info:
            check_state(STAGE_RULES[Stage.STAFF], GatePassStatus.PENDING_HOD)

        assert exc_info.value.details["current_status"] == "pending_hod"
        assert exc_info.value.details["expected_statuses"] == ["pending_staff"]

    def test_director_accepts_every_pending_variant(self):
        rule = STAGE_RULES[Stage.ACADEMIC_DIRECTOR]
        for status in (
            GatePassStatus.PENDING_ACADEMIC_DIRECTOR,
            GatePassStatus.PENDING_ACADEMIC_DIRECTOR_FROM_STAFF,
            GatePassStatus.PENDING_ACADEMIC_DIRECTOR_FROM_HOD,
        ):
            check_state(rule, status)

    def test_terminal_statuses_accepted_by_no_stage(self):
        for status in TERMINAL_STATUSES:
            for rule in STAGE_RULES.values():
                with pytest.raises(InvalidStateError):
                    check_state(rule, status)

    def test_wrong_role_forbidden(self):
        with pytest.raises(ForbiddenError):
            check_eligibility(STAGE_RULES[Stage.STAFF], UserRole.HOD, "d1", "d1")

    def test_department_scoping(self):
        rule = STAGE_RULES[Stage.HOD]

        check_eligibility(rule, UserRole.HOD, "d1", "d1")
        with pytest.raises(ForbiddenError):
            check_eligibility(rule, UserRole.HOD, "d2", "d1")
        with pytest.raises(ForbiddenError):
            check_eligibility(rule, UserRole.HOD, None, None)

    def test_college_wide_stages_ignore_department(self):
        check_eligibility(STAGE_RULES[Stage.HOSTEL_WARDEN], UserRole.HOSTEL_WARDEN, None, "d1")
        check_eligibility(STAGE_RULES[Stage.ACADEMIC_DIRECTOR], UserRole.ACADEMIC_DIRECTOR, "d9", "d1")


class TestStatusSets:

    def test_terminal_and_pending(self):
        assert is_terminal(GatePassStatus.USED)
        assert is_terminal(GatePassStatus.EXPIRED)
        assert not is_terminal(GatePassStatus.APPROVED)
        assert is_pending(GatePassStatus.PENDING_HOSTEL_WARDEN)
        assert not is_pending(GatePassStatus.APPROVED)

    def test_every_pending_status_has_a_stage(self):
        assert STAGE_FOR_STATUS[GatePassStatus.PENDING_STAFF] == Stage.STAFF
        assert STAGE_FOR_STATUS[GatePassStatus.PENDING_ACADEMIC_DIRECTOR_FROM_HOD] == Stage.ACADEMIC_DIRECTOR
        assert GatePassStatus.APPROVED not in STAGE_FOR_STATUS
