"""
Gate Pass Schemas - Pydantic models for API validation
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

from app.models.gate_pass import GatePassStatus, GatePassType, RequesterType
from app.services.gate_pass_state_machine import Decision


# ============================================
# Requests
# ============================================

class GatePassCreate(BaseModel):
    """File a new gate pass"""
    type: GatePassType
    reason: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime


class GatePassDecisionRequest(BaseModel):
    """Approve or reject at the caller's stage"""
    decision: Decision
    comment: Optional[str] = None


class SecurityCheckoutRequest(BaseModel):
    comment: Optional[str] = None


class GatePassFilter(BaseModel):
    """Admin list filters; every field optional"""
    status: Optional[GatePassStatus] = None
    requester_id: Optional[str] = None
    requester_type: Optional[RequesterType] = None
    department_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


# ============================================
# Responses
# ============================================

class GatePassResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    requester_id: str
    requester_type: RequesterType
    student_id: Optional[str] = None
    department_id: Optional[str] = None
    type: GatePassType
    reason: str
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    status: GatePassStatus

    staff_id: Optional[str] = None
    staff_comment: Optional[str] = None
    hod_id: Optional[str] = None
    hod_comment: Optional[str] = None
    hostel_warden_id: Optional[str] = None
    hostel_warden_comment: Optional[str] = None
    academic_director_id: Optional[str] = None
    academic_director_comment: Optional[str] = None
    security_id: Optional[str] = None
    security_comment: Optional[str] = None

    checkout_time: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class GatePassTransitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    from_status: Optional[GatePassStatus] = None
    to_status: GatePassStatus
    stage: str
    decision: str
    actor_id: str
    comment: Optional[str] = None
    created_at: datetime
