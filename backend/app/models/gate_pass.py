"""
Gate Pass Models
Exit permission requests routed through the campus approval chain, with a
per-transition audit trail
"""
from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey, Enum as SQLEnum, Index
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid, utcnow, enum_values


# ==================== Enums ====================

class GatePassStatus(str, enum.Enum):
    PENDING_STAFF = "pending_staff"
    APPROVED_BY_STAFF = "approved_by_staff"  # legacy value, never persisted
    REJECTED_BY_STAFF = "rejected_by_staff"
    PENDING_HOD = "pending_hod"
    PENDING_HOSTEL_WARDEN = "pending_hostel_warden"
    REJECTED_BY_HOD = "rejected_by_hod"
    PENDING_ACADEMIC_DIRECTOR = "pending_academic_director"
    PENDING_ACADEMIC_DIRECTOR_FROM_STAFF = "pending_academic_director_from_staff"
    PENDING_ACADEMIC_DIRECTOR_FROM_HOD = "pending_academic_director_from_hod"
    REJECTED_BY_HOSTEL_WARDEN = "rejected_by_hostel_warden"
    APPROVED = "approved"
    REJECTED_BY_ACADEMIC_DIRECTOR = "rejected_by_academic_director"
    USED = "used"
    EXPIRED = "expired"


class GatePassType(str, enum.Enum):
    LEAVE = "leave"
    HOME_VISIT = "home_visit"
    EMERGENCY = "emergency"
    OFFICIAL = "official"
    OTHER = "other"


class RequesterType(str, enum.Enum):
    STUDENT = "student"
    STAFF = "staff"
    HOD = "hod"


PENDING_ACADEMIC_DIRECTOR_STATUSES = frozenset({
    GatePassStatus.PENDING_ACADEMIC_DIRECTOR,
    GatePassStatus.PENDING_ACADEMIC_DIRECTOR_FROM_STAFF,
    GatePassStatus.PENDING_ACADEMIC_DIRECTOR_FROM_HOD,
})

PENDING_STATUSES = frozenset({
    GatePassStatus.PENDING_STAFF,
    GatePassStatus.PENDING_HOD,
    GatePassStatus.PENDING_HOSTEL_WARDEN,
}) | PENDING_ACADEMIC_DIRECTOR_STATUSES

# APPROVED is not here: it is still consumed by security check-out
TERMINAL_STATUSES = frozenset({
    GatePassStatus.REJECTED_BY_STAFF,
    GatePassStatus.REJECTED_BY_HOD,
    GatePassStatus.REJECTED_BY_HOSTEL_WARDEN,
    GatePassStatus.REJECTED_BY_ACADEMIC_DIRECTOR,
    GatePassStatus.USED,
    GatePassStatus.EXPIRED,
})


def _status_column(**kwargs):
    return Column(
        SQLEnum(GatePassStatus, values_callable=enum_values, native_enum=False, length=64),
        **kwargs
    )


# ==================== Gate Pass ====================

class GatePass(Base):
    """A single exit request and the decisions recorded against it"""
    __tablename__ = "gate_passes"

    id = Column(GUID, primary_key=True, default=generate_uuid)

    # Requester (department is a snapshot taken at filing)
    requester_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)
    requester_type = Column(
        SQLEnum(RequesterType, values_callable=enum_values, native_enum=False, length=16),
        nullable=False
    )
    student_id = Column(GUID, ForeignKey("users.id"), nullable=True, index=True)
    department_id = Column(GUID, ForeignKey("departments.id"), nullable=True, index=True)

    # Request
    type = Column(
        SQLEnum(GatePassType, values_callable=enum_values, native_enum=False, length=16),
        nullable=False
    )
    reason = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)

    status = _status_column(nullable=False, default=GatePassStatus.PENDING_STAFF, index=True)

    # Stage decisions
    staff_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    staff_comment = Column(Text, nullable=True)
    hod_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    hod_comment = Column(Text, nullable=True)
    hostel_warden_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    hostel_warden_comment = Column(Text, nullable=True)
    academic_director_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    academic_director_comment = Column(Text, nullable=True)
    security_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    security_comment = Column(Text, nullable=True)

    checkout_time = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    version = Column(Integer, nullable=False, default=1)

    # Relationships
    requester = relationship("User", foreign_keys=[requester_id])
    department = relationship("Department")
    transitions = relationship(
        "GatePassTransition",
        back_populates="gate_pass",
        order_by="GatePassTransition.created_at",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index('idx_gate_pass_status_department', 'status', 'department_id'),
        Index('idx_gate_pass_status_updated', 'status', 'updated_at'),
    )

    def __repr__(self):
        return f"<GatePass {self.id} {self.status}>"


class GatePassTransition(Base):
    """Audit row written in the same transaction as each status change"""
    __tablename__ = "gate_pass_transitions"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    gate_pass_id = Column(GUID, ForeignKey("gate_passes.id", ondelete="CASCADE"), nullable=False, index=True)

    from_status = _status_column(nullable=True)  # null for creation
    to_status = _status_column(nullable=False)
    stage = Column(String(32), nullable=False)  # requester, staff, hod, hostel_warden, ...
    decision = Column(String(16), nullable=False)  # create, approve, reject, mark_used
    actor_id = Column(GUID, ForeignKey("users.id"), nullable=False)
    comment = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    gate_pass = relationship("GatePass", back_populates="transitions")

    def __repr__(self):
        return f"<GatePassTransition {self.from_status} -> {self.to_status}>"
