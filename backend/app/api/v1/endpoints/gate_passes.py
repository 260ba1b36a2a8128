"""
Gate Pass API
Filing, stage approvals, security check-out and role-scoped queues
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import datetime

from app.core.database import get_db
from app.models.gate_pass import GatePassStatus, RequesterType
from app.models.user import UserRole
from app.modules.auth.dependencies import get_current_user, require_roles
from app.schemas.gate_pass import (
    GatePassCreate,
    GatePassDecisionRequest,
    GatePassFilter,
    GatePassResponse,
    GatePassTransitionResponse,
    SecurityCheckoutRequest,
)
from app.services.directory_service import DirectoryUser
from app.services.gate_pass_queries import GatePassQueryService, get_gate_pass_query_service
from app.services.gate_pass_service import GatePassService, get_gate_pass_service

router = APIRouter()

requester_only = require_roles(UserRole.STUDENT, UserRole.STAFF, UserRole.HOD)
staff_only = require_roles(UserRole.STAFF)
hod_only = require_roles(UserRole.HOD)
hostel_warden_only = require_roles(UserRole.HOSTEL_WARDEN)
academic_director_only = require_roles(UserRole.ACADEMIC_DIRECTOR)
security_only = require_roles(UserRole.SECURITY)
admin_only = require_roles(UserRole.ADMIN)


def gate_pass_service(db: AsyncSession = Depends(get_db)) -> GatePassService:
    return get_gate_pass_service(db)


def gate_pass_queries(db: AsyncSession = Depends(get_db)) -> GatePassQueryService:
    return get_gate_pass_query_service(db)


# ==================== Create ====================

@router.post("", response_model=GatePassResponse, status_code=201)
async def create_gate_pass(
    payload: GatePassCreate,
    current_user: DirectoryUser = Depends(requester_only),
    service: GatePassService = Depends(gate_pass_service),
):
    """File a gate pass as a student, staff member or HOD"""
    return await service.create_gate_pass(
        current_user.id,
        payload.type,
        payload.reason,
        payload.description,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )


# ==================== Lists ====================

@router.get("", response_model=List[GatePassResponse])
async def list_gate_passes(
    status: Optional[GatePassStatus] = Query(None),
    requester_id: Optional[str] = Query(None),
    requester_type: Optional[RequesterType] = Query(None),
    department_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: DirectoryUser = Depends(admin_only),
    queries: GatePassQueryService = Depends(gate_pass_queries),
):
    """All gate passes (admin)"""
    filters = GatePassFilter(
        status=status,
        requester_id=requester_id,
        requester_type=requester_type,
        department_id=department_id,
        start_date=start_date,
        end_date=end_date,
    )
    return await queries.list_all(filters)


@router.get("/my-requests", response_model=List[GatePassResponse])
async def my_requests(
    current_user: DirectoryUser = Depends(requester_only),
    queries: GatePassQueryService = Depends(gate_pass_queries),
):
    return await queries.list_for_requester(current_user.id)


@router.get("/pending-staff-approval", response_model=List[GatePassResponse])
async def pending_staff_approval(
    current_user: DirectoryUser = Depends(staff_only),
    queries: GatePassQueryService = Depends(gate_pass_queries),
):
    return await queries.pending_for_staff(current_user.id)


@router.get("/pending-hod-approval", response_model=List[GatePassResponse])
async def pending_hod_approval(
    current_user: DirectoryUser = Depends(hod_only),
    queries: GatePassQueryService = Depends(gate_pass_queries),
):
    return await queries.pending_for_hod(current_user.id)


@router.get("/pending-hostel-warden-approval", response_model=List[GatePassResponse])
async def pending_hostel_warden_approval(
    current_user: DirectoryUser = Depends(hostel_warden_only),
    queries: GatePassQueryService = Depends(gate_pass_queries),
):
    return await queries.pending_for_hostel_warden()


@router.get("/pending-academic-director-approval", response_model=List[GatePassResponse])
async def pending_academic_director_approval(
    current_user: DirectoryUser = Depends(academic_director_only),
    queries: GatePassQueryService = Depends(gate_pass_queries),
):
    return await queries.pending_for_academic_director()


@router.get("/for-security-verification", response_model=List[GatePassResponse])
async def for_security_verification(
    current_user: DirectoryUser = Depends(security_only),
    queries: GatePassQueryService = Depends(gate_pass_queries),
):
    """Approved passes valid around today"""
    return await queries.for_security_verification()


@router.get("/security-pending", response_model=List[GatePassResponse])
async def security_pending(
    current_user: DirectoryUser = Depends(security_only),
    queries: GatePassQueryService = Depends(gate_pass_queries),
):
    return await queries.security_pending()


@router.get("/security-used", response_model=List[GatePassResponse])
async def security_used(
    current_user: DirectoryUser = Depends(security_only),
    queries: GatePassQueryService = Depends(gate_pass_queries),
):
    """Passes checked out in the last week"""
    return await queries.security_used()


# ==================== Single record ====================

@router.get("/{gate_pass_id}", response_model=GatePassResponse)
async def get_gate_pass(
    gate_pass_id: str,
    current_user: DirectoryUser = Depends(get_current_user),
    queries: GatePassQueryService = Depends(gate_pass_queries),
):
    return await queries.get_for_viewer(gate_pass_id, current_user)


@router.get("/{gate_pass_id}/transitions", response_model=List[GatePassTransitionResponse])
async def get_gate_pass_transitions(
    gate_pass_id: str,
    current_user: DirectoryUser = Depends(get_current_user),
    queries: GatePassQueryService = Depends(gate_pass_queries),
    service: GatePassService = Depends(gate_pass_service),
):
    """Audit trail of a gate pass, visible to whoever may view the pass"""
    await queries.get_for_viewer(gate_pass_id, current_user)
    return await service.get_transitions(gate_pass_id)


# ==================== Decisions ====================

@router.patch("/{gate_pass_id}/staff-approval", response_model=GatePassResponse)
async def staff_approval(
    gate_pass_id: str,
    payload: GatePassDecisionRequest,
    current_user: DirectoryUser = Depends(staff_only),
    service: GatePassService = Depends(gate_pass_service),
):
    return await service.decide_as_staff(gate_pass_id, current_user.id, payload.decision, payload.comment)


@router.patch("/{gate_pass_id}/hod-approval", response_model=GatePassResponse)
async def hod_approval(
    gate_pass_id: str,
    payload: GatePassDecisionRequest,
    current_user: DirectoryUser = Depends(hod_only),
    service: GatePassService = Depends(gate_pass_service),
):
    return await service.decide_as_hod(gate_pass_id, current_user.id, payload.decision, payload.comment)


@router.patch("/{gate_pass_id}/hostel-warden-approval", response_model=GatePassResponse)
async def hostel_warden_approval(
    gate_pass_id: str,
    payload: GatePassDecisionRequest,
    current_user: DirectoryUser = Depends(hostel_warden_only),
    service: GatePassService = Depends(gate_pass_service),
):
    return await service.decide_as_hostel_warden(
        gate_pass_id, current_user.id, payload.decision, payload.comment
    )


@router.patch("/{gate_pass_id}/academic-director-approval", response_model=GatePassResponse)
async def academic_director_approval(
    gate_pass_id: str,
    payload: GatePassDecisionRequest,
    current_user: DirectoryUser = Depends(academic_director_only),
    service: GatePassService = Depends(gate_pass_service),
):
    return await service.decide_as_academic_director(
        gate_pass_id, current_user.id, payload.decision, payload.comment
    )


@router.patch("/{gate_pass_id}/security-verification", response_model=GatePassResponse)
async def security_verification(
    gate_pass_id: str,
    payload: Optional[SecurityCheckoutRequest] = None,
    current_user: DirectoryUser = Depends(security_only),
    service: GatePassService = Depends(gate_pass_service),
):
    """Mark an approved gate pass as used at the gate"""
    comment = payload.comment if payload else None
    return await service.mark_used_as_security(gate_pass_id, current_user.id, comment)
