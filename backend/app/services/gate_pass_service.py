"""
Gate Pass Service Layer
Creates gate passes and moves them through the approval chain.

Every transition follows the same path: lock the record, check its status,
check the actor, compute the next status, write the stage fields plus one
audit row, commit, and only then queue notifications.
"""

from datetime import datetime, timedelta
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import (
    CampusError,
    ConcurrentModificationError,
    GatePassNotFoundError,
    OutsideValidityWindowError,
    UserNotFoundError,
    ValidationError,
)
from app.core.logging_config import logger, set_gate_pass_id
from app.core.types import utcnow, to_naive_utc
from app.models.gate_pass import (
    GatePass,
    GatePassTransition,
    GatePassStatus,
    GatePassType,
    RequesterType,
)
from app.services.directory_service import Directory, DirectoryUser, SqlDirectory
from app.services.gate_pass_state_machine import (
    STAGE_FOR_STATUS,
    STAGE_RULES,
    Decision,
    Stage,
    StageRule,
    check_eligibility,
    check_state,
    initial_status,
    next_status,
    requester_type_for_role,
)
from app.services.notification_service import (
    GatePassNotice,
    NotificationDispatcher,
    Notifier,
    get_dispatcher,
    get_notifier,
)


def _coerce_decision(decision: Any) -> Decision:
    try:
        return Decision(getattr(decision, "value", decision))
    except ValueError:
        raise ValidationError(f"Unknown decision: {decision!r}", field="decision")


def _coerce_type(value: Any) -> GatePassType:
    try:
        return GatePassType(getattr(value, "value", value))
    except ValueError:
        raise ValidationError(f"Unknown gate pass type: {value!r}", field="type")


class GatePassService:
    """Service for gate pass creation and stage decisions"""

    def __init__(
        self,
        db: AsyncSession,
        directory: Optional[Directory] = None,
        notifier: Optional[Notifier] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.db = db
        self.directory = directory or SqlDirectory(db)
        self.notifier = notifier or get_notifier()
        self.dispatcher = dispatcher or get_dispatcher()

    # =====================================================
    # CREATE
    # =====================================================

    async def create_gate_pass(
        self,
        requester_id: str,
        type: Any,
        reason: str,
        description: Optional[str] = None,
        *,
        start_date: datetime,
        end_date: datetime,
        now: Optional[datetime] = None,
    ) -> GatePass:
        """File a gate pass in the initial status for the requester's role"""
        requester = await self._require_user(requester_id)
        requester_type = requester_type_for_role(requester.role)
        pass_type = _coerce_type(type)

        if pass_type == GatePassType.OFFICIAL and requester_type == RequesterType.STUDENT:
            raise ValidationError("Official gate passes are only for staff and HOD", field="type")

        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Reason is required", field="reason")
        if len(reason) > 255:
            raise ValidationError("Reason must be at most 255 characters", field="reason")

        start_date = to_naive_utc(start_date)
        end_date = to_naive_utc(end_date)
        now = to_naive_utc(now) or utcnow()
        if start_date > end_date:
            raise ValidationError("Start date cannot be after end date", field="start_date")
        if start_date < now:
            raise ValidationError("Start date cannot be in the past", field="start_date")

        status = initial_status(requester_type)
        gate_pass = GatePass(
            requester_id=requester.id,
            requester_type=requester_type,
            student_id=requester.id if requester_type == RequesterType.STUDENT else None,
            department_id=requester.department_id,
            type=pass_type,
            reason=reason,
            description=description,
            start_date=start_date,
            end_date=end_date,
            status=status,
        )
        self.db.add(gate_pass)
        await self.db.flush()
        self.db.add(GatePassTransition(
            gate_pass_id=gate_pass.id,
            from_status=None,
            to_status=status,
            stage="requester",
            decision="create",
            actor_id=requester.id,
            comment=None,
        ))
        await self._commit(gate_pass)

        set_gate_pass_id(gate_pass.id)
        logger.info(
            f"[GatePass] Created {gate_pass.id} for {requester_type.value} {requester.id} -> {status.value}",
            extra={"event_type": "gate_pass_created", "requester_type": requester_type.value},
        )
        await self._notify(gate_pass, requester)
        return gate_pass

    # =====================================================
    # STAGE DECISIONS
    # =====================================================

    async def decide_as_staff(self, gate_pass_id: str, staff_id: str, decision: Any,
                              comment: Optional[str] = None) -> GatePass:
        return await self._decide(STAGE_RULES[Stage.STAFF], gate_pass_id, staff_id, decision, comment)

    async def decide_as_hod(self, gate_pass_id: str, hod_id: str, decision: Any,
                            comment: Optional[str] = None) -> GatePass:
        return await self._decide(STAGE_RULES[Stage.HOD], gate_pass_id, hod_id, decision, comment)

    async def decide_as_hostel_warden(self, gate_pass_id: str, warden_id: str, decision: Any,
                                      comment: Optional[str] = None) -> GatePass:
        return await self._decide(
            STAGE_RULES[Stage.HOSTEL_WARDEN], gate_pass_id, warden_id, decision, comment
        )

    async def decide_as_academic_director(self, gate_pass_id: str, director_id: str, decision: Any,
                                          comment: Optional[str] = None) -> GatePass:
        return await self._decide(
            STAGE_RULES[Stage.ACADEMIC_DIRECTOR], gate_pass_id, director_id, decision, comment
        )

    async def mark_used_as_security(self, gate_pass_id: str, security_id: str,
                                    comment: Optional[str] = None,
                                    now: Optional[datetime] = None) -> GatePass:
        """Check the holder out through the gate; only valid around the pass's date window"""
        return await self._decide(
            STAGE_RULES[Stage.SECURITY], gate_pass_id, security_id, Decision.APPROVE, comment,
            now=to_naive_utc(now) or utcnow(),
        )

    async def _decide(
        self,
        rule: StageRule,
        gate_pass_id: str,
        actor_id: str,
        decision: Any,
        comment: Optional[str],
        now: Optional[datetime] = None,
    ) -> GatePass:
        set_gate_pass_id(gate_pass_id)
        decision = _coerce_decision(decision)

        gate_pass = await self._load_for_update(gate_pass_id)
        try:
            check_state(rule, gate_pass.status)
            actor = await self._require_user(actor_id)
            check_eligibility(rule, actor.role, actor.department_id,
                              str(gate_pass.department_id) if gate_pass.department_id else None)

            if (decision == Decision.REJECT and settings.GATE_PASS_REQUIRE_REJECTION_COMMENT
                    and not (comment or "").strip()):
                raise ValidationError("A comment is required when rejecting", field="comment")

            boarding_type = None
            if rule.stage == Stage.HOD and decision == Decision.APPROVE:
                # Read live: the hosteller branch is decided here and never re-evaluated
                requester = await self.directory.get_user(str(gate_pass.requester_id))
                boarding_type = requester.boarding_type if requester else None

            target = next_status(rule, decision, gate_pass.requester_type, boarding_type)

            if rule.stage == Stage.SECURITY:
                self._check_security_window(gate_pass, now)
        except CampusError:
            await self.db.rollback()
            raise

        from_status = gate_pass.status
        setattr(gate_pass, rule.actor_field, actor.id)
        setattr(gate_pass, rule.comment_field, comment or "")
        gate_pass.status = target
        if target == GatePassStatus.USED:
            gate_pass.checkout_time = now
        self.db.add(GatePassTransition(
            gate_pass_id=gate_pass.id,
            from_status=from_status,
            to_status=target,
            stage=rule.stage.value,
            decision="mark_used" if rule.stage == Stage.SECURITY else decision.value,
            actor_id=actor.id,
            comment=comment or "",
        ))
        await self._commit(gate_pass)

        logger.log_transition(gate_pass.id, from_status.value, target.value, actor.id, rule.stage.value)
        await self._notify(gate_pass, None)
        return gate_pass

    # =====================================================
    # HELPERS
    # =====================================================

    async def _require_user(self, user_id: str) -> DirectoryUser:
        user = await self.directory.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def _load_for_update(self, gate_pass_id: str) -> GatePass:
        result = await self.db.execute(
            select(GatePass)
            .where(GatePass.id == gate_pass_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        gate_pass = result.scalar_one_or_none()
        if not gate_pass:
            raise GatePassNotFoundError(gate_pass_id)
        return gate_pass

    async def _commit(self, gate_pass: GatePass) -> None:
        # Rollback expires the instance, so its id must be read beforehand
        gate_pass_id = str(gate_pass.id)
        try:
            await self.db.commit()
        except StaleDataError:
            await self.db.rollback()
            raise ConcurrentModificationError(gate_pass_id)
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(gate_pass)

    @staticmethod
    def _check_security_window(gate_pass: GatePass, now: datetime) -> None:
        buffer = timedelta(hours=settings.GATE_PASS_SECURITY_WINDOW_HOURS)
        if not (gate_pass.start_date - buffer <= now <= gate_pass.end_date + buffer):
            raise OutsideValidityWindowError(
                gate_pass.start_date, gate_pass.end_date, settings.GATE_PASS_SECURITY_WINDOW_HOURS
            )

    async def _notify(self, gate_pass: GatePass, requester: Optional[DirectoryUser]) -> None:
        """Resolve recipients for the committed status and queue notifications; never raises"""
        try:
            if requester is None:
                requester = await self.directory.get_user(str(gate_pass.requester_id))
            notice = GatePassNotice.from_gate_pass(
                gate_pass, requester.name if requester else "Unknown requester"
            )
            status = gate_pass.status

            if status in STAGE_FOR_STATUS:
                stage = STAGE_FOR_STATUS[status]
                next_rule = STAGE_RULES[stage]
                if next_rule.department_scoped and notice.department_id is None:
                    logger.warning(f"[GatePass] {notice.id} has no department, skipping {stage.value} notice")
                    return
                approvers = await self.directory.find_users(
                    next_rule.actor_role,
                    notice.department_id if next_rule.department_scoped else None,
                )
                if not approvers:
                    logger.warning(f"[GatePass] No {stage.value} approvers to notify for {notice.id}")
                for approver in approvers:
                    self.dispatcher.dispatch(
                        self.notifier.notify_approval_pending(notice, approver, stage.value),
                        f"approval pending ({stage.value}) -> {approver.id}",
                        gate_pass_id=notice.id,
                    )
                return

            if requester is None:
                logger.warning(f"[GatePass] Requester {notice.requester_id} not found, skipping outcome notice")
                return

            self.dispatcher.dispatch(
                self.notifier.notify_outcome(notice, requester),
                f"outcome ({notice.status}) -> {requester.id}",
                gate_pass_id=notice.id,
            )
            if (status == GatePassStatus.USED and notice.requester_type == RequesterType.STUDENT.value
                    and requester.parent_phone):
                self.dispatcher.dispatch(
                    self.notifier.notify_parent_exit(notice, requester),
                    f"parent exit SMS -> {requester.id}",
                    gate_pass_id=notice.id,
                )
        except Exception as e:
            logger.log_error_with_context(e, context="gate pass notification dispatch",
                                          gate_pass_id=str(gate_pass.id))

    async def get_transitions(self, gate_pass_id: str) -> List[GatePassTransition]:
        """Audit trail for one gate pass, oldest first"""
        result = await self.db.execute(
            select(GatePassTransition)
            .where(GatePassTransition.gate_pass_id == gate_pass_id)
            .order_by(GatePassTransition.created_at)
        )
        return list(result.scalars().all())


def get_gate_pass_service(db: AsyncSession) -> GatePassService:
    return GatePassService(db)
