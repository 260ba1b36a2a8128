"""
Gate Pass Query Service
Read-only, role-scoped views over the gate pass store. Nothing here goes
through the state machine.
"""

from datetime import datetime, timedelta
from typing import Any, List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ForbiddenError, GatePassNotFoundError, UserNotFoundError
from app.core.types import utcnow, to_naive_utc
from app.models.gate_pass import (
    GatePass,
    GatePassStatus,
    RequesterType,
    PENDING_ACADEMIC_DIRECTOR_STATUSES,
    PENDING_STATUSES,
)
from app.models.user import UserRole
from app.services.directory_service import Directory, DirectoryUser, SqlDirectory


# Roles that may read every gate pass in the college
_COLLEGE_WIDE_VIEWERS = frozenset({
    UserRole.HOSTEL_WARDEN,
    UserRole.ACADEMIC_DIRECTOR,
    UserRole.SECURITY,
    UserRole.ADMIN,
})


class GatePassQueryService:
    """Role-scoped read views; every list method returns [] when nothing matches"""

    def __init__(self, db: AsyncSession, directory: Optional[Directory] = None):
        self.db = db
        self.directory = directory or SqlDirectory(db)

    async def _all(self, query) -> List[GatePass]:
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _department_of(self, user_id: str) -> Optional[str]:
        user = await self.directory.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user.department_id

    # =====================================================
    # REQUESTER VIEWS
    # =====================================================

    async def list_for_requester(self, requester_id: str,
                                 requester_type: Optional[RequesterType] = None) -> List[GatePass]:
        query = select(GatePass).where(GatePass.requester_id == requester_id)
        if requester_type is not None:
            query = query.where(GatePass.requester_type == RequesterType(requester_type))
        return await self._all(query.order_by(GatePass.updated_at.desc()))

    async def list_for_student(self, student_id: str) -> List[GatePass]:
        return await self._all(
            select(GatePass)
            .where(GatePass.student_id == student_id)
            .order_by(GatePass.updated_at.desc())
        )

    # =====================================================
    # APPROVER QUEUES
    # =====================================================

    async def pending_for_staff(self, staff_id: str) -> List[GatePass]:
        department_id = await self._department_of(staff_id)
        if department_id is None:
            return []
        return await self._all(
            select(GatePass)
            .where(GatePass.status == GatePassStatus.PENDING_STAFF,
                   GatePass.department_id == department_id)
            .order_by(GatePass.updated_at.desc())
        )

    async def pending_for_hod(self, hod_id: str) -> List[GatePass]:
        department_id = await self._department_of(hod_id)
        if department_id is None:
            return []
        return await self._all(
            select(GatePass)
            .where(GatePass.status == GatePassStatus.PENDING_HOD,
                   GatePass.department_id == department_id)
            .order_by(GatePass.updated_at.desc())
        )

    async def pending_for_hostel_warden(self) -> List[GatePass]:
        return await self._all(
            select(GatePass)
            .where(GatePass.status == GatePassStatus.PENDING_HOSTEL_WARDEN)
            .order_by(GatePass.updated_at.desc())
        )

    async def pending_for_academic_director(self) -> List[GatePass]:
        # Grouped by department, oldest first so nothing sits at the bottom of the queue
        return await self._all(
            select(GatePass)
            .where(GatePass.status.in_(PENDING_ACADEMIC_DIRECTOR_STATUSES))
            .order_by(GatePass.department_id, GatePass.updated_at.asc())
        )

    # =====================================================
    # SECURITY VIEWS
    # =====================================================

    async def for_security_verification(self, now: Optional[datetime] = None) -> List[GatePass]:
        """Approved passes whose date window touches [now - lookahead, now + lookahead]"""
        now = to_naive_utc(now) or utcnow()
        window = timedelta(hours=settings.GATE_PASS_SECURITY_LOOKAHEAD_HOURS)
        return await self._all(
            select(GatePass)
            .where(
                GatePass.status == GatePassStatus.APPROVED,
                GatePass.start_date <= now + window,
                GatePass.end_date >= now - window,
            )
            .order_by(GatePass.updated_at.desc())
        )

    async def security_pending(self) -> List[GatePass]:
        return await self._all(
            select(GatePass)
            .where(GatePass.status.in_(PENDING_STATUSES))
            .order_by(GatePass.updated_at.desc())
        )

    async def security_used(self, now: Optional[datetime] = None) -> List[GatePass]:
        now = to_naive_utc(now) or utcnow()
        since = now - timedelta(days=settings.GATE_PASS_USED_LOOKBACK_DAYS)
        return await self._all(
            select(GatePass)
            .where(GatePass.status == GatePassStatus.USED, GatePass.updated_at >= since)
            .order_by(GatePass.updated_at.desc())
        )

    # =====================================================
    # ADMIN / SINGLE RECORD
    # =====================================================

    async def list_all(self, filters: Any = None) -> List[GatePass]:
        """
        Every gate pass, optionally filtered.

        `filters` is any object exposing status, requester_id, requester_type,
        department_id, start_date and end_date (GatePassFilter does). The date
        bounds apply to the pass start_date only, both ends inclusive.
        """
        conditions = []
        if filters is not None:
            if filters.status is not None:
                conditions.append(GatePass.status == GatePassStatus(filters.status))
            if filters.requester_id:
                conditions.append(GatePass.requester_id == filters.requester_id)
            if filters.requester_type is not None:
                conditions.append(GatePass.requester_type == RequesterType(filters.requester_type))
            if filters.department_id:
                conditions.append(GatePass.department_id == filters.department_id)
            if filters.start_date is not None:
                conditions.append(GatePass.start_date >= to_naive_utc(filters.start_date))
            if filters.end_date is not None:
                conditions.append(GatePass.start_date <= to_naive_utc(filters.end_date))

        query = select(GatePass)
        if conditions:
            query = query.where(and_(*conditions))
        return await self._all(query.order_by(GatePass.updated_at.desc()))

    async def get_for_viewer(self, gate_pass_id: str, viewer: DirectoryUser) -> GatePass:
        result = await self.db.execute(select(GatePass).where(GatePass.id == gate_pass_id))
        gate_pass = result.scalar_one_or_none()
        if not gate_pass:
            raise GatePassNotFoundError(gate_pass_id)

        if viewer.role in _COLLEGE_WIDE_VIEWERS:
            return gate_pass
        if str(gate_pass.requester_id) == viewer.id:
            return gate_pass
        if (viewer.role in (UserRole.STAFF, UserRole.HOD) and viewer.department_id is not None
                and str(gate_pass.department_id) == viewer.department_id):
            return gate_pass
        raise ForbiddenError("You do not have permission to view this gate pass",
                             gate_pass_id=gate_pass_id)


def get_gate_pass_query_service(db: AsyncSession) -> GatePassQueryService:
    return GatePassQueryService(db)
