# app/services/milestone_workflow.py
"""Milestone approval workflow.

Progress is a pure function of the milestone's task statuses and is
recomputed inside every transaction that changes a task status. The stored
``status`` is the explicit lifecycle state:

    NO_TASKS -> IN_PROGRESS -> READY_FOR_APPROVAL -> APPROVED
                                                  -> CHANGES_REQUESTED -> ... -> READY_FOR_APPROVAL

Decisions (approve / request changes) are only valid from READY_FOR_APPROVAL
and are written to the append-only ``milestone_approvals`` log. Entering
READY_FOR_APPROVAL, APPROVED or CHANGES_REQUESTED notifies the people
involved once the change is committed; a notification failure is logged and
never undoes the transition.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from core.constants import AUDIT_ACTIONS, PROGRESS_TASK_STATUSES
from core.exceptions import WorkflowTransitionError
from core.policy import MODERATOR_ROLES
from models.association_tables import project_members
from models.milestone import Milestone, MilestoneStatus
from models.milestone_approval import MilestoneApproval, ApprovalAction
from models.notification import NotificationType
from models.project import Project
from models.task import Task, TaskStatus
from models.user import User, UserRole, parse_role
from services.audit_service import AuditService
from services.notification_service import NotificationService, NotificationEvent, NotificationDispatcher
from services.project_service import is_project_member

logger = logging.getLogger(__name__)

TEAM_ROLES = {UserRole.ADMIN.value, UserRole.MODERATOR.value, UserRole.CONTENT_CREATOR.value}


def compute_progress(statuses: Sequence) -> int:
    """Percentage of COMPLETED/APPROVED tasks, rounded half up; 0 with no tasks."""
    total = len(statuses)
    if total == 0:
        return 0
    done = sum(1 for s in statuses if TaskStatus(s).value in PROGRESS_TASK_STATUSES)
    # integer form of floor(100 * done / total + 0.5)
    return (200 * done + total) // (2 * total)


def derive_status(current: Optional[MilestoneStatus], progress: int, task_count: int) -> MilestoneStatus:
    """Lifecycle state after a recompute.

    A decision sticks while the tasks still support it: an APPROVED milestone
    stays approved at 100%, a CHANGES_REQUESTED one keeps that state until all
    of its tasks are done again.
    """
    if task_count == 0:
        return MilestoneStatus.NO_TASKS
    if progress == 100:
        if current is MilestoneStatus.APPROVED:
            return MilestoneStatus.APPROVED
        return MilestoneStatus.READY_FOR_APPROVAL
    if current is MilestoneStatus.CHANGES_REQUESTED:
        return MilestoneStatus.CHANGES_REQUESTED
    return MilestoneStatus.IN_PROGRESS


@dataclass
class Transition:
    milestone: Milestone
    from_status: MilestoneStatus
    to_status: MilestoneStatus
    actor: Optional[User] = None
    comment: Optional[str] = None

    @property
    def notifies(self) -> bool:
        return self.from_status != self.to_status and self.to_status in (
            MilestoneStatus.READY_FOR_APPROVAL,
            MilestoneStatus.APPROVED,
            MilestoneStatus.CHANGES_REQUESTED,
        )


class MilestoneWorkflowService:
    def __init__(
            self,
            db: AsyncSession,
            notifier: Optional[NotificationDispatcher] = None,
            audit: Optional[AuditService] = None,
    ):
        self.db = db
        self.notifier = notifier or NotificationService(db)
        self.audit = audit or AuditService(db)

    # ---------- progress ----------
    async def _task_statuses(self, milestone_id: int) -> List[TaskStatus]:
        result = await self.db.execute(
            select(Task.status).where(Task.milestone_id == milestone_id)
        )
        return list(result.scalars().all())

    async def recompute(self, milestone_id: int, actor: Optional[User] = None) -> Optional[Transition]:
        """Recompute progress and state in the caller's transaction.

        Returns the transition when the lifecycle state changed.
        """
        milestone = await self.db.get(Milestone, milestone_id)
        if milestone is None:
            return None

        statuses = await self._task_statuses(milestone_id)
        progress = compute_progress(statuses)
        previous = milestone.status
        new_status = derive_status(previous, progress, len(statuses))

        milestone.progress = progress
        milestone.status = new_status

        if new_status == previous:
            return None

        if new_status is MilestoneStatus.READY_FOR_APPROVAL:
            self._log_decision(milestone, ApprovalAction.SUBMITTED, previous, new_status, actor)

        logger.info(
            f"Milestone {milestone.id} {previous.value if previous else None} -> {new_status.value} "
            f"(progress {progress}%)"
        )
        return Transition(milestone, previous, new_status, actor)

    # ---------- decisions ----------
    async def approve(
            self,
            milestone_id: int,
            actor: User,
            actor_role: str,
            comment: Optional[str] = None,
    ) -> Milestone:
        return await self._decide(milestone_id, actor, actor_role, True, comment)

    async def request_changes(
            self,
            milestone_id: int,
            actor: User,
            actor_role: str,
            comment: Optional[str] = None,
    ) -> Milestone:
        return await self._decide(milestone_id, actor, actor_role, False, comment)

    async def can_decide(self, milestone: Milestone, user_id: int, role: str) -> bool:
        parsed = parse_role(role)
        if parsed in MODERATOR_ROLES:
            return True
        # client approval: clients decide on their own projects only
        if parsed is UserRole.CLIENT:
            return await is_project_member(self.db, milestone.project_id, user_id)
        return False

    async def _decide(
            self,
            milestone_id: int,
            actor: User,
            actor_role: str,
            approved: bool,
            comment: Optional[str],
    ) -> Milestone:
        action = "approve" if approved else "request changes on"

        milestone = await self.db.get(Milestone, milestone_id)
        if milestone is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Milestone not found")

        if not await self.can_decide(milestone, actor.id, actor_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to decide on this milestone",
            )

        # every precondition is checked before anything is touched
        if milestone.status is not MilestoneStatus.READY_FOR_APPROVAL:
            raise WorkflowTransitionError(milestone.id, milestone.status.value, action)

        previous = milestone.status
        try:
            if approved:
                milestone.status = MilestoneStatus.APPROVED
                milestone.approved_by = actor.id
                milestone.approved_at = datetime.utcnow()
                milestone.feedback = comment
            else:
                await self._reopen_tasks(milestone.id)
                milestone.progress = compute_progress(await self._task_statuses(milestone.id))
                milestone.status = MilestoneStatus.CHANGES_REQUESTED
                milestone.approved_by = None
                milestone.approved_at = None
                milestone.feedback = comment

            self._log_decision(
                milestone,
                ApprovalAction.APPROVED if approved else ApprovalAction.CHANGES_REQUESTED,
                previous,
                milestone.status,
                actor,
                actor_role,
                comment,
            )
            self.audit.record(
                AUDIT_ACTIONS["MILESTONE_APPROVED" if approved else "MILESTONE_CHANGES_REQUESTED"],
                "Milestone", milestone.id, actor.id,
                old_values={"status": previous.value},
                new_values={"status": milestone.status.value, "feedback": comment},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Milestone {milestone.id} {previous.value} -> {milestone.status.value} by user {actor.id}")
        await self.notify([Transition(milestone, previous, milestone.status, actor, comment)])
        return milestone

    async def _reopen_tasks(self, milestone_id: int) -> None:
        result = await self.db.execute(select(Task).where(Task.milestone_id == milestone_id))
        for task in result.scalars().all():
            task.status = TaskStatus.IN_PROGRESS
            task.completed_at = None

    def _log_decision(
            self,
            milestone: Milestone,
            action: ApprovalAction,
            from_status: Optional[MilestoneStatus],
            to_status: MilestoneStatus,
            actor: Optional[User] = None,
            actor_role: Optional[str] = None,
            comment: Optional[str] = None,
    ) -> MilestoneApproval:
        entry = MilestoneApproval(
            milestone_id=milestone.id,
            action=action,
            from_status=from_status.value if from_status else MilestoneStatus.NO_TASKS.value,
            to_status=to_status.value,
            actor_id=actor.id if actor else None,
            actor_role=actor_role or (actor.role if actor else None),
            comment=comment,
        )
        self.db.add(entry)
        return entry

    # ---------- queries ----------
    async def history(self, milestone_id: int) -> List[MilestoneApproval]:
        result = await self.db.execute(
            select(MilestoneApproval)
            .where(MilestoneApproval.milestone_id == milestone_id)
            .order_by(MilestoneApproval.created_at, MilestoneApproval.id)
        )
        return result.scalars().all()

    async def pending_approvals(self, user_id: int, role: str, project_id: Optional[int] = None) -> List[Milestone]:
        query = select(Milestone).where(Milestone.status == MilestoneStatus.READY_FOR_APPROVAL)
        if project_id is not None:
            query = query.where(Milestone.project_id == project_id)
        if parse_role(role) is not UserRole.ADMIN:
            query = query.join(
                project_members, project_members.c.project_id == Milestone.project_id
            ).where(project_members.c.user_id == user_id)

        result = await self.db.execute(query.order_by(Milestone.due_date, Milestone.id))
        return result.scalars().all()

    # ---------- notifications ----------
    async def notify(self, transitions: Iterable[Optional[Transition]]) -> None:
        for transition in transitions:
            if transition is None or not transition.notifies:
                continue
            recipients = await self._recipients(transition)
            await self.notifier.dispatch_best_effort(recipients, self._event(transition))

    async def _recipients(self, transition: Transition) -> List[int]:
        milestone = transition.milestone
        project = await self.db.get(Project, milestone.project_id)
        members = list(project.members) if project else []

        if transition.to_status is MilestoneStatus.READY_FOR_APPROVAL:
            # the people who can approve on the client side
            recipients = [m.id for m in members if m.role == UserRole.CLIENT.value]
        else:
            recipients = [m.id for m in members if m.role in TEAM_ROLES]
            result = await self.db.execute(select(Task).where(Task.milestone_id == milestone.id))
            for task in result.scalars().all():
                recipients.extend(task.assignee_ids)

        if project and project.created_by:
            recipients.append(project.created_by)

        actor_id = transition.actor.id if transition.actor else None
        return [r for r in dict.fromkeys(recipients) if r != actor_id]

    def _event(self, transition: Transition) -> NotificationEvent:
        milestone = transition.milestone
        actor_name = transition.actor.display_name if transition.actor else "System"
        data = {
            "milestone_name": milestone.name,
            "from_status": transition.from_status.value if transition.from_status else None,
            "to_status": transition.to_status.value,
            "actor": actor_name,
        }

        if transition.to_status is MilestoneStatus.READY_FOR_APPROVAL:
            return NotificationEvent(
                type=NotificationType.MILESTONE_READY_FOR_APPROVAL,
                title="Milestone Ready for Approval",
                message=f'Milestone "{milestone.name}" is ready for your approval',
                data=data,
                project_id=milestone.project_id,
                milestone_id=milestone.id,
            )
        if transition.to_status is MilestoneStatus.APPROVED:
            return NotificationEvent(
                type=NotificationType.MILESTONE_APPROVED,
                title="Milestone Approved",
                message=f'Milestone "{milestone.name}" has been approved by {actor_name}',
                data=data,
                project_id=milestone.project_id,
                milestone_id=milestone.id,
            )
        return NotificationEvent(
            type=NotificationType.MILESTONE_CHANGES_REQUESTED,
            title="Milestone Needs Revision",
            message=(
                f'Milestone "{milestone.name}" needs revision. '
                f"Feedback: {transition.comment or 'No feedback provided'}"
            ),
            data={**data, "feedback": transition.comment},
            project_id=milestone.project_id,
            milestone_id=milestone.id,
        )
