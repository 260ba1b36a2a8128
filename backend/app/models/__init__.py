# Re-export all models for convenient imports
from app.models.college_management import College, Department
from app.models.user import User, UserRole, BoardingType
from app.models.gate_pass import (
    GatePass,
    GatePassTransition,
    GatePassStatus,
    GatePassType,
    RequesterType,
    PENDING_ACADEMIC_DIRECTOR_STATUSES,
    PENDING_STATUSES,
    TERMINAL_STATUSES,
)

__all__ = [
    # College
    "College",
    "Department",
    # User
    "User",
    "UserRole",
    "BoardingType",
    # Gate pass
    "GatePass",
    "GatePassTransition",
    "GatePassStatus",
    "GatePassType",
    "RequesterType",
    "PENDING_ACADEMIC_DIRECTOR_STATUSES",
    "PENDING_STATUSES",
    "TERMINAL_STATUSES",
]
