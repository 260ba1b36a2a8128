"""
Gate Pass State Machine
=======================

Pure transition rules for the approval chain. Nothing here touches the
database or sends notifications; the service layer loads a record, asks
these functions whether (and where) it may move, then persists.

Chain of custody:

    student  -> pending_staff -> pending_hod -+-> pending_hostel_warden -+
    staff    ----------------> pending_hod -+ |                          |
    hod      -------------------------------+-+-> pending_academic_director* -> approved -> used

Every pending stage can also reject into its own terminal rejected_by_* status.
The hosteller branch is decided once, when the HOD approves.
"""

import enum
from dataclasses import dataclass
from typing import FrozenSet, Optional

from app.core.exceptions import ForbiddenError, InvalidStateError, ValidationError
from app.models.gate_pass import (
    GatePassStatus,
    RequesterType,
    PENDING_ACADEMIC_DIRECTOR_STATUSES,
    TERMINAL_STATUSES,
)
from app.models.user import UserRole, BoardingType


class Stage(str, enum.Enum):
    STAFF = "staff"
    HOD = "hod"
    HOSTEL_WARDEN = "hostel_warden"
    ACADEMIC_DIRECTOR = "academic_director"
    SECURITY = "security"


class Decision(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


@dataclass(frozen=True)
class StageRule:
    """Who may act at a stage, from which statuses, and which fields they fill"""
    stage: Stage
    actor_role: UserRole
    from_statuses: FrozenSet[GatePassStatus]
    department_scoped: bool
    actor_field: str
    comment_field: str
    approved_status: Optional[GatePassStatus]  # None: computed by the HOD branch
    rejected_status: Optional[GatePassStatus]  # None: stage cannot reject


STAGE_RULES = {
    Stage.STAFF: StageRule(
        stage=Stage.STAFF,
        actor_role=UserRole.STAFF,
        from_statuses=frozenset({GatePassStatus.PENDING_STAFF}),
        department_scoped=True,
        actor_field="staff_id",
        comment_field="staff_comment",
        approved_status=GatePassStatus.PENDING_HOD,
        rejected_status=GatePassStatus.REJECTED_BY_STAFF,
    ),
    Stage.HOD: StageRule(
        stage=Stage.HOD,
        actor_role=UserRole.HOD,
        from_statuses=frozenset({GatePassStatus.PENDING_HOD}),
        department_scoped=True,
        actor_field="hod_id",
        comment_field="hod_comment",
        approved_status=None,
        rejected_status=GatePassStatus.REJECTED_BY_HOD,
    ),
    Stage.HOSTEL_WARDEN: StageRule(
        stage=Stage.HOSTEL_WARDEN,
        actor_role=UserRole.HOSTEL_WARDEN,
        from_statuses=frozenset({GatePassStatus.PENDING_HOSTEL_WARDEN}),
        department_scoped=False,
        actor_field="hostel_warden_id",
        comment_field="hostel_warden_comment",
        approved_status=GatePassStatus.PENDING_ACADEMIC_DIRECTOR,
        rejected_status=GatePassStatus.REJECTED_BY_HOSTEL_WARDEN,
    ),
    Stage.ACADEMIC_DIRECTOR: StageRule(
        stage=Stage.ACADEMIC_DIRECTOR,
        actor_role=UserRole.ACADEMIC_DIRECTOR,
        from_statuses=PENDING_ACADEMIC_DIRECTOR_STATUSES,
        department_scoped=False,
        actor_field="academic_director_id",
        comment_field="academic_director_comment",
        approved_status=GatePassStatus.APPROVED,
        rejected_status=GatePassStatus.REJECTED_BY_ACADEMIC_DIRECTOR,
    ),
    Stage.SECURITY: StageRule(
        stage=Stage.SECURITY,
        actor_role=UserRole.SECURITY,
        from_statuses=frozenset({GatePassStatus.APPROVED}),
        department_scoped=False,
        actor_field="security_id",
        comment_field="security_comment",
        approved_status=GatePassStatus.USED,
        rejected_status=None,
    ),
}

# Stage that acts on each pending status; used to address notifications
STAGE_FOR_STATUS = {
    status: rule.stage
    for rule in STAGE_RULES.values()
    for status in rule.from_statuses
    if rule.stage != Stage.SECURITY
}

_INITIAL_STATUS = {
    RequesterType.STUDENT: GatePassStatus.PENDING_STAFF,
    RequesterType.STAFF: GatePassStatus.PENDING_HOD,
    RequesterType.HOD: GatePassStatus.PENDING_ACADEMIC_DIRECTOR_FROM_HOD,
}


def requester_type_for_role(role: UserRole) -> RequesterType:
    """Map a requester's role to the requester type; other roles cannot file passes"""
    try:
        return RequesterType(role.value)
    except ValueError:
        raise ValidationError(
            f"Role '{role.value}' cannot request a gate pass",
            field="role",
        )


def initial_status(requester_type: RequesterType) -> GatePassStatus:
    return _INITIAL_STATUS[requester_type]


def check_state(rule: StageRule, current_status: GatePassStatus) -> None:
    """Raise InvalidStateError unless the record sits in one of the rule's from-statuses"""
    if current_status not in rule.from_statuses:
        raise InvalidStateError(current_status, rule.from_statuses)


def check_eligibility(
    rule: StageRule,
    actor_role: UserRole,
    actor_department_id: Optional[str],
    record_department_id: Optional[str],
) -> None:
    """Raise ForbiddenError if the actor may not decide at this stage"""
    if actor_role != rule.actor_role:
        raise ForbiddenError(
            f"Only {rule.actor_role.value} can act at the {rule.stage.value} stage",
            stage=rule.stage.value,
            actor_role=actor_role.value,
        )
    if rule.department_scoped and (
        actor_department_id is None or actor_department_id != record_department_id
    ):
        raise ForbiddenError(
            "You can only act on gate passes from your own department",
            stage=rule.stage.value,
        )


def hod_approval_target(
    requester_type: RequesterType,
    boarding_type: Optional[BoardingType],
) -> GatePassStatus:
    """Branch point: hosteller students visit the hostel warden before the academic director"""
    if requester_type == RequesterType.STUDENT and boarding_type == BoardingType.HOSTELLER:
        return GatePassStatus.PENDING_HOSTEL_WARDEN
    return GatePassStatus.PENDING_ACADEMIC_DIRECTOR


def next_status(
    rule: StageRule,
    decision: Decision,
    requester_type: Optional[RequesterType] = None,
    boarding_type: Optional[BoardingType] = None,
) -> GatePassStatus:
    """Status the record moves to when `decision` is taken at `rule.stage`"""
    if decision == Decision.REJECT:
        if rule.rejected_status is None:
            raise ValidationError(
                f"The {rule.stage.value} stage cannot reject a gate pass",
                field="decision",
            )
        return rule.rejected_status

    if rule.approved_status is not None:
        return rule.approved_status
    if requester_type is None:
        raise ValueError("requester_type is required to route an HOD approval")
    return hod_approval_target(requester_type, boarding_type)


def is_terminal(status: GatePassStatus) -> bool:
    return status in TERMINAL_STATUSES


def is_pending(status: GatePassStatus) -> bool:
    return status in STAGE_FOR_STATUS
