# app/services/task_service.py
from datetime import datetime
from typing import List, Optional, Set

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from core.constants import AUDIT_ACTIONS
from models.milestone import Milestone
from models.notification import NotificationType
from models.task import Task, TaskStatus
from models.task_comment import TaskComment
from models.user import User
from schemas.task import TaskCreate, TaskUpdate, TaskOrderUpdate, TaskCommentCreate
from services.audit_service import AuditService
from services.milestone_workflow import MilestoneWorkflowService
from services.notification_service import NotificationService, NotificationEvent, NotificationDispatcher
from services.project_service import get_accessible_project

logger = logging.getLogger(__name__)


class TaskService:
    """Task CRUD. Every change that can move a task in or out of a milestone,
    or change its status, recomputes the affected milestones before the
    transaction is committed."""

    def __init__(
            self,
            db: AsyncSession,
            notifier: Optional[NotificationDispatcher] = None,
            audit: Optional[AuditService] = None,
    ):
        self.db = db
        self.notifier = notifier or NotificationService(db)
        self.audit = audit or AuditService(db)
        self.workflow = MilestoneWorkflowService(db, notifier=self.notifier, audit=self.audit)

    # ---------- queries ----------
    async def get_task(self, task_id: int, user_id: int, role: str) -> Task:
        task = await self.db.get(Task, task_id)
        if not task:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
        await get_accessible_project(self.db, task.project_id, user_id, role)
        return task

    async def list_tasks(
            self,
            project_id: int,
            user_id: int,
            role: str,
            milestone_id: Optional[int] = None,
            task_status: Optional[TaskStatus] = None,
    ) -> List[Task]:
        await get_accessible_project(self.db, project_id, user_id, role)

        query = select(Task).where(Task.project_id == project_id)
        if milestone_id is not None:
            query = query.where(Task.milestone_id == milestone_id)
        if task_status is not None:
            query = query.where(Task.status == task_status)

        result = await self.db.execute(query.order_by(Task.order, Task.created_at, Task.id))
        return result.scalars().all()

    # ---------- mutations ----------
    async def create_task(self, data: TaskCreate, actor: User, role: str) -> Task:
        project = await get_accessible_project(self.db, data.project_id, actor.id, role)
        if data.milestone_id is not None:
            await self._get_milestone_in_project(data.milestone_id, project.id)
        assignees = await self._load_assignees(data.assignee_ids, project.member_ids)

        task = Task(
            project_id=project.id,
            milestone_id=data.milestone_id,
            name=data.name,
            description=data.description,
            status=data.status,
            priority=data.priority,
            order=data.order,
            due_date=data.due_date,
            completed_at=datetime.utcnow() if data.status is TaskStatus.COMPLETED else None,
            created_by=actor.id,
            assignees=assignees,
        )

        try:
            self.db.add(task)
            await self.db.flush()
            transitions = await self._recompute({task.milestone_id}, actor)
            self.audit.record(
                AUDIT_ACTIONS["TASK_CREATED"], "Task", task.id, actor.id,
                new_values={"name": task.name, "status": task.status.value, "milestone_id": task.milestone_id},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Task {task.id} created in project {project.id} by user {actor.id}")

        await self.workflow.notify(transitions)
        await self._notify_assigned(task, {u.id for u in assignees}, actor)
        return task

    async def update_task(self, task_id: int, data: TaskUpdate, actor: User, role: str) -> Task:
        task = await self.get_task(task_id, actor.id, role)
        changes = data.model_dump(exclude_unset=True)
        for required in ("name", "status", "priority", "order"):
            if required in changes and changes[required] is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Task {required} cannot be null")

        old_status = task.status
        old_milestone_id = task.milestone_id
        old_assignees = set(task.assignee_ids)

        if "milestone_id" in changes and changes["milestone_id"] is not None:
            await self._get_milestone_in_project(changes["milestone_id"], task.project_id)

        if "assignee_ids" in changes:
            project = await get_accessible_project(self.db, task.project_id, actor.id, role)
            task.assignees = await self._load_assignees(changes.pop("assignee_ids") or [], project.member_ids)

        for key, value in changes.items():
            setattr(task, key, value)

        self._stamp_completion(task, old_status)

        try:
            transitions = await self._recompute({old_milestone_id, task.milestone_id}, actor)
            self.audit.record(
                AUDIT_ACTIONS["TASK_UPDATED"], "Task", task.id, actor.id,
                old_values={"status": old_status.value, "milestone_id": old_milestone_id},
                new_values={"status": task.status.value, "milestone_id": task.milestone_id},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.workflow.notify(transitions)

        new_assignees = set(task.assignee_ids)
        await self._notify_assigned(task, new_assignees - old_assignees, actor)
        await self._notify_unassigned(task, old_assignees - new_assignees, actor)
        if task.status != old_status:
            await self._notify_status_changed(task, old_status, new_assignees, actor)

        return task

    async def delete_task(self, task_id: int, actor: User, role: str) -> None:
        task = await self.get_task(task_id, actor.id, role)
        milestone_id = task.milestone_id

        try:
            if milestone_id is not None:
                milestone = await self.db.get(Milestone, milestone_id)
                if milestone is not None and task in milestone.tasks:
                    milestone.tasks.remove(task)
            await self.db.delete(task)
            await self.db.flush()
            transitions = await self._recompute({milestone_id}, actor)
            self.audit.record(
                AUDIT_ACTIONS["TASK_DELETED"], "Task", task_id, actor.id,
                old_values={"name": task.name, "milestone_id": milestone_id},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Task {task_id} deleted by user {actor.id}")
        await self.workflow.notify(transitions)

    async def update_order(self, data: TaskOrderUpdate, actor: User, role: str) -> List[Task]:
        """Apply a kanban move.

        Every task's column and position is written in one transaction and
        each milestone touched by the batch is recomputed once before commit.
        """
        ids = [item.id for item in data.tasks]
        if len(set(ids)) != len(ids):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A task can only appear once per move")

        result = await self.db.execute(select(Task).where(Task.id.in_(ids)))
        tasks = {task.id: task for task in result.scalars().all()}
        if len(tasks) != len(ids):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

        for project_id in sorted({task.project_id for task in tasks.values()}):
            await get_accessible_project(self.db, project_id, actor.id, role)

        affected = set()
        moved = []
        for item in data.tasks:
            task = tasks[item.id]
            old_status = task.status
            task.order = item.order
            task.status = item.status
            self._stamp_completion(task, old_status)
            if task.status != old_status:
                moved.append((task, old_status))
            affected.add(task.milestone_id)

        try:
            transitions = await self._recompute(affected, actor)
            for task, old_status in moved:
                self.audit.record(
                    AUDIT_ACTIONS["TASK_REORDERED"], "Task", task.id, actor.id,
                    old_values={"status": old_status.value},
                    new_values={"status": task.status.value, "order": task.order},
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Kanban move of {len(ids)} task(s) by user {actor.id}, "
            f"{len(moved)} status change(s), {len(transitions)} milestone transition(s)"
        )

        await self.workflow.notify(transitions)
        for task, old_status in moved:
            await self._notify_status_changed(task, old_status, set(task.assignee_ids), actor)

        return [tasks[i] for i in ids]

    # ---------- comments ----------
    async def list_comments(self, task_id: int, user_id: int, role: str) -> List[TaskComment]:
        await self.get_task(task_id, user_id, role)
        result = await self.db.execute(
            select(TaskComment)
            .where(TaskComment.task_id == task_id)
            .order_by(TaskComment.created_at, TaskComment.id)
        )
        return result.scalars().all()

    async def add_comment(self, task_id: int, data: TaskCommentCreate, actor: User, role: str) -> TaskComment:
        task = await self.get_task(task_id, actor.id, role)

        comment = TaskComment(task_id=task.id, user_id=actor.id, content=data.content)
        try:
            self.db.add(comment)
            await self.db.flush()
            self.audit.record(
                AUDIT_ACTIONS["TASK_COMMENTED"], "Task", task.id, actor.id,
                new_values={"comment_id": comment.id},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        recipients = [u for u in task.assignee_ids if u != actor.id]
        if recipients:
            preview = data.content[:100] + ("..." if len(data.content) > 100 else "")
            await self.notifier.dispatch_best_effort(
                recipients,
                NotificationEvent(
                    type=NotificationType.TASK_COMMENT,
                    title="New Comment on Task",
                    message=f'{actor.display_name} commented on task "{task.name}": {preview}',
                    data={
                        "task_name": task.name,
                        "comment_id": comment.id,
                        "commented_by": actor.display_name,
                    },
                    project_id=task.project_id,
                    milestone_id=task.milestone_id,
                    task_id=task.id,
                ),
            )

        return comment

    # ---------- helpers ----------
    @staticmethod
    def _stamp_completion(task: Task, old_status: TaskStatus) -> None:
        if task.status == old_status:
            return
        if task.status is TaskStatus.COMPLETED:
            task.completed_at = datetime.utcnow()
        elif old_status is TaskStatus.COMPLETED:
            task.completed_at = None

    async def _recompute(self, milestone_ids: Set[Optional[int]], actor: User):
        transitions = []
        for milestone_id in sorted(m for m in milestone_ids if m is not None):
            transition = await self.workflow.recompute(milestone_id, actor)
            if transition is not None:
                transitions.append(transition)
        return transitions

    async def _get_milestone_in_project(self, milestone_id: int, project_id: int) -> Milestone:
        milestone = await self.db.get(Milestone, milestone_id)
        if not milestone or milestone.project_id != project_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Milestone does not belong to this project",
            )
        return milestone

    async def _load_assignees(self, user_ids, member_ids) -> List[User]:
        user_ids = list(dict.fromkeys(user_ids))
        if not user_ids:
            return []

        outsiders = set(user_ids) - set(member_ids)
        if outsiders:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Assignees must be project members: {', '.join(str(i) for i in sorted(outsiders))}",
            )

        result = await self.db.execute(select(User).where(User.id.in_(user_ids)))
        return list(result.scalars().all())

    async def _notify_assigned(self, task: Task, user_ids: Set[int], actor: User) -> None:
        recipients = [u for u in user_ids if u != actor.id]
        if not recipients:
            return
        await self.notifier.dispatch_best_effort(
            recipients,
            NotificationEvent(
                type=NotificationType.TASK_ASSIGNED,
                title="New Task Assigned",
                message=f'{actor.display_name} assigned you to "{task.name}"',
                data={"task_name": task.name, "assigned_by": actor.display_name},
                project_id=task.project_id,
                milestone_id=task.milestone_id,
                task_id=task.id,
            ),
        )

    async def _notify_unassigned(self, task: Task, user_ids: Set[int], actor: User) -> None:
        recipients = [u for u in user_ids if u != actor.id]
        if not recipients:
            return
        await self.notifier.dispatch_best_effort(
            recipients,
            NotificationEvent(
                type=NotificationType.TASK_UNASSIGNED,
                title="Task Unassigned",
                message=f'You were removed from "{task.name}"',
                data={"task_name": task.name, "removed_by": actor.display_name},
                project_id=task.project_id,
                milestone_id=task.milestone_id,
                task_id=task.id,
            ),
        )

    async def _notify_status_changed(self, task: Task, old_status: TaskStatus, user_ids: Set[int], actor: User) -> None:
        recipients = [u for u in user_ids if u != actor.id]
        if not recipients:
            return
        await self.notifier.dispatch_best_effort(
            recipients,
            NotificationEvent(
                type=NotificationType.TASK_STATUS_CHANGED,
                title="Task Status Updated",
                message=f'"{task.name}" moved from {old_status.value} to {task.status.value}',
                data={
                    "task_name": task.name,
                    "old_status": old_status.value,
                    "new_status": task.status.value,
                    "changed_by": actor.display_name,
                },
                project_id=task.project_id,
                milestone_id=task.milestone_id,
                task_id=task.id,
            ),
        )
