import logging

import pytest
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from core.exceptions import WorkflowTransitionError
from models.milestone import Milestone, MilestoneStatus
from models.milestone_approval import MilestoneApproval, ApprovalAction
from models.notification import Notification, NotificationType
from models.task import Task, TaskStatus
from models.user import User, UserRole
from schemas.task import TaskCreate, TaskUpdate, TaskOrderUpdate, TaskOrderItem
from schemas.milestone import MilestoneUpdate
from services.audit_service import AuditService
from services.milestone_service import MilestoneService
from services.milestone_workflow import MilestoneWorkflowService, compute_progress, derive_status
from services.notification_service import NotificationService
from services.task_service import TaskService


class FailingNotifier(NotificationService):
    """Every write fails inside its commit: one extra row has no recipient."""

    def build_notifications(self, recipients, event):
        rows = super().build_notifications(recipients, event)
        rows.append(Notification(user_id=None, type=event.type, title=event.title, message=event.message))
        return rows


@pytest.fixture
async def team(make_user, make_project):
    moderator = await make_user(UserRole.MODERATOR)
    creator = await make_user(UserRole.CONTENT_CREATOR)
    client_user = await make_user(UserRole.CLIENT)
    outsider = await make_user(UserRole.CLIENT)
    project = await make_project(moderator, members=[creator, client_user])
    return {
        "moderator": moderator,
        "creator": creator,
        "client": client_user,
        "outsider": outsider,
        "project": project,
    }


async def _tasks(db, milestone_id):
    result = await db.execute(select(Task).where(Task.milestone_id == milestone_id).order_by(Task.id))
    return result.scalars().all()


async def _notifications(session_factory, **filters):
    async with session_factory() as session:
        query = select(Notification)
        for key, value in filters.items():
            query = query.where(getattr(Notification, key) == value)
        return (await session.execute(query)).scalars().all()


# ---------- pure functions ----------
def test_progress_of_mixed_statuses():
    assert compute_progress(["COMPLETED", "COMPLETED", "APPROVED", "PENDING"]) == 75


def test_progress_without_tasks_is_zero():
    assert compute_progress([]) == 0


@pytest.mark.parametrize("statuses, expected", [
    (["COMPLETED", "PENDING", "PENDING"], 33),
    (["COMPLETED", "COMPLETED", "PENDING"], 67),
    (["COMPLETED"] + ["PENDING"] * 7, 13),
    (["REJECTED", "IN_PROGRESS"], 0),
    (["APPROVED", "COMPLETED"], 100),
])
def test_progress_rounds_half_up(statuses, expected):
    assert compute_progress(statuses) == expected


def test_derive_status():
    assert derive_status(MilestoneStatus.IN_PROGRESS, 0, 0) is MilestoneStatus.NO_TASKS
    assert derive_status(MilestoneStatus.NO_TASKS, 0, 2) is MilestoneStatus.IN_PROGRESS
    assert derive_status(MilestoneStatus.IN_PROGRESS, 100, 2) is MilestoneStatus.READY_FOR_APPROVAL
    assert derive_status(MilestoneStatus.APPROVED, 100, 2) is MilestoneStatus.APPROVED
    assert derive_status(MilestoneStatus.APPROVED, 50, 2) is MilestoneStatus.IN_PROGRESS
    assert derive_status(MilestoneStatus.CHANGES_REQUESTED, 50, 2) is MilestoneStatus.CHANGES_REQUESTED
    assert derive_status(MilestoneStatus.CHANGES_REQUESTED, 100, 2) is MilestoneStatus.READY_FOR_APPROVAL


# ---------- recompute ----------
async def test_recompute_mixed_statuses(db, team, make_milestone):
    milestone = await make_milestone(team["project"], ["COMPLETED", "COMPLETED", "APPROVED", "PENDING"])

    await MilestoneWorkflowService(db).recompute(milestone.id)
    stored = await db.get(Milestone, milestone.id)

    assert stored.progress == 75
    assert stored.status is MilestoneStatus.IN_PROGRESS


async def test_recompute_without_tasks(db, team, make_milestone):
    milestone = await make_milestone(team["project"], progress=40, status=MilestoneStatus.IN_PROGRESS)

    await MilestoneWorkflowService(db).recompute(milestone.id)
    stored = await db.get(Milestone, milestone.id)

    assert stored.progress == 0
    assert stored.status is MilestoneStatus.NO_TASKS


async def test_recompute_is_idempotent(db, team, make_milestone):
    milestone = await make_milestone(team["project"], ["COMPLETED", "COMPLETED"])
    workflow = MilestoneWorkflowService(db)

    first = await workflow.recompute(milestone.id)
    second = await workflow.recompute(milestone.id)
    stored = await db.get(Milestone, milestone.id)

    assert first.to_status is MilestoneStatus.READY_FOR_APPROVAL
    assert second is None
    assert (stored.progress, stored.status) == (100, MilestoneStatus.READY_FOR_APPROVAL)


# ---------- task mutations keep progress current ----------
async def test_task_mutations_recompute_progress(db, team, make_milestone):
    creator = await db.get(User, team["creator"].id)
    milestone = await make_milestone(team["project"])
    service = TaskService(db)

    first = await service.create_task(
        TaskCreate(project_id=team["project"].id, milestone_id=milestone.id, name="Floor plan"),
        creator, creator.role,
    )
    assert (await db.get(Milestone, milestone.id)).status is MilestoneStatus.IN_PROGRESS

    second = await service.create_task(
        TaskCreate(project_id=team["project"].id, milestone_id=milestone.id, name="Lighting",
                   status=TaskStatus.COMPLETED),
        creator, creator.role,
    )
    stored = await db.get(Milestone, milestone.id)
    assert stored.progress == 50
    assert second.completed_at is not None

    await service.update_task(first.id, TaskUpdate(status=TaskStatus.COMPLETED), creator, creator.role)
    assert (stored.progress, stored.status) == (100, MilestoneStatus.READY_FOR_APPROVAL)

    await service.delete_task(second.id, creator, creator.role)
    assert stored.progress == 100

    await service.update_task(first.id, TaskUpdate(status=TaskStatus.IN_PROGRESS), creator, creator.role)
    assert (stored.progress, stored.status) == (0, MilestoneStatus.IN_PROGRESS)
    assert (await db.get(Task, first.id)).completed_at is None


async def test_moving_a_task_recomputes_both_milestones(db, team, make_milestone):
    creator = await db.get(User, team["creator"].id)
    source = await make_milestone(team["project"], ["COMPLETED", "PENDING"], name="Source", progress=50,
                                  status=MilestoneStatus.IN_PROGRESS)
    target = await make_milestone(team["project"], name="Target")
    pending = (await _tasks(db, source.id))[1]

    await TaskService(db).update_task(pending.id, TaskUpdate(milestone_id=target.id), creator, creator.role)

    source_row = await db.get(Milestone, source.id)
    target_row = await db.get(Milestone, target.id)
    assert (source_row.progress, source_row.status) == (100, MilestoneStatus.READY_FOR_APPROVAL)
    assert (target_row.progress, target_row.status) == (0, MilestoneStatus.IN_PROGRESS)


async def test_ready_for_approval_notifies_client_members(db, session_factory, team, make_milestone):
    creator = await db.get(User, team["creator"].id)
    milestone = await make_milestone(team["project"], ["COMPLETED", "PENDING"], progress=50,
                                     status=MilestoneStatus.IN_PROGRESS)
    pending = (await _tasks(db, milestone.id))[1]

    await TaskService(db).update_task(pending.id, TaskUpdate(status=TaskStatus.COMPLETED), creator, creator.role)

    notified = await _notifications(session_factory, type=NotificationType.MILESTONE_READY_FOR_APPROVAL)
    recipients = {n.user_id for n in notified}
    assert team["client"].id in recipients
    assert team["outsider"].id not in recipients
    assert creator.id not in recipients

    history = await MilestoneWorkflowService(db).history(milestone.id)
    assert [h.action for h in history] == [ApprovalAction.SUBMITTED]


# ---------- decisions ----------
async def test_approve_before_ready_is_rejected(db, team, make_milestone):
    milestone = await make_milestone(
        team["project"], ["COMPLETED", "COMPLETED", "COMPLETED", "PENDING", "PENDING"],
        progress=60, status=MilestoneStatus.IN_PROGRESS,
    )
    moderator = await db.get(User, team["moderator"].id)

    with pytest.raises(WorkflowTransitionError):
        await MilestoneWorkflowService(db).approve(milestone.id, moderator, moderator.role)

    stored = await db.get(Milestone, milestone.id)
    assert (stored.progress, stored.status) == (60, MilestoneStatus.IN_PROGRESS)
    assert stored.approved_by is None
    assert await MilestoneWorkflowService(db).history(milestone.id) == []


async def test_client_member_approves(db, session_factory, team, make_milestone):
    milestone = await make_milestone(team["project"], ["COMPLETED", "APPROVED"], progress=100,
                                     status=MilestoneStatus.READY_FOR_APPROVAL)
    client_user = await db.get(User, team["client"].id)

    approved = await MilestoneWorkflowService(db).approve(milestone.id, client_user, client_user.role, "Looks great")

    assert approved.status is MilestoneStatus.APPROVED
    assert approved.approved_by == client_user.id
    assert approved.approved_at is not None
    assert approved.feedback == "Looks great"

    notified = {n.user_id for n in await _notifications(session_factory, type=NotificationType.MILESTONE_APPROVED)}
    assert {team["moderator"].id, team["creator"].id} <= notified
    assert client_user.id not in notified


async def test_outsider_client_cannot_decide(db, team, make_milestone):
    milestone = await make_milestone(team["project"], ["COMPLETED"], progress=100,
                                     status=MilestoneStatus.READY_FOR_APPROVAL)
    outsider = await db.get(User, team["outsider"].id)

    with pytest.raises(HTTPException) as exc:
        await MilestoneWorkflowService(db).approve(milestone.id, outsider, outsider.role)

    assert exc.value.status_code == 403
    assert (await db.get(Milestone, milestone.id)).status is MilestoneStatus.READY_FOR_APPROVAL


async def test_request_changes_reopens_every_task(db, session_factory, team, make_milestone):
    milestone = await make_milestone(team["project"], ["COMPLETED", "APPROVED", "COMPLETED"], progress=100,
                                     status=MilestoneStatus.READY_FOR_APPROVAL)
    moderator = await db.get(User, team["moderator"].id)

    result = await MilestoneWorkflowService(db).request_changes(
        milestone.id, moderator, moderator.role, "Logo is too small"
    )

    assert result.status is MilestoneStatus.CHANGES_REQUESTED
    assert result.progress == 0
    assert result.feedback == "Logo is too small"
    assert {t.status for t in await _tasks(db, milestone.id)} == {TaskStatus.IN_PROGRESS}

    history = await MilestoneWorkflowService(db).history(milestone.id)
    assert history[-1].action is ApprovalAction.CHANGES_REQUESTED
    assert history[-1].comment == "Logo is too small"

    notified = await _notifications(session_factory, type=NotificationType.MILESTONE_CHANGES_REQUESTED)
    assert team["creator"].id in {n.user_id for n in notified}


async def test_changes_requested_returns_to_ready_when_done_again(db, team, make_milestone):
    milestone = await make_milestone(team["project"], ["COMPLETED"], progress=100,
                                     status=MilestoneStatus.READY_FOR_APPROVAL)
    moderator = await db.get(User, team["moderator"].id)
    creator = await db.get(User, team["creator"].id)
    await MilestoneWorkflowService(db).request_changes(milestone.id, moderator, moderator.role)

    task = (await _tasks(db, milestone.id))[0]
    await TaskService(db).update_task(task.id, TaskUpdate(status=TaskStatus.COMPLETED), creator, creator.role)

    assert (await db.get(Milestone, milestone.id)).status is MilestoneStatus.READY_FOR_APPROVAL


async def test_decision_twice_is_rejected(db, team, make_milestone):
    milestone = await make_milestone(team["project"], ["COMPLETED"], progress=100,
                                     status=MilestoneStatus.READY_FOR_APPROVAL)
    moderator = await db.get(User, team["moderator"].id)
    workflow = MilestoneWorkflowService(db)

    await workflow.approve(milestone.id, moderator, moderator.role)
    with pytest.raises(WorkflowTransitionError):
        await workflow.request_changes(milestone.id, moderator, moderator.role)

    assert (await db.get(Milestone, milestone.id)).status is MilestoneStatus.APPROVED


async def test_notification_failure_keeps_the_transition(db, session_factory, team, make_milestone, caplog):
    milestone = await make_milestone(team["project"], ["COMPLETED"], progress=100,
                                     status=MilestoneStatus.READY_FOR_APPROVAL)
    moderator = await db.get(User, team["moderator"].id)

    with caplog.at_level(logging.ERROR, logger="services.notification_service"):
        result = await MilestoneWorkflowService(db, notifier=FailingNotifier(db)).approve(
            milestone.id, moderator, moderator.role
        )

    assert result.status is MilestoneStatus.APPROVED
    assert "Failed to dispatch" in caplog.text

    async with session_factory() as session:
        stored = await session.get(Milestone, milestone.id)
        assert stored.status is MilestoneStatus.APPROVED
        approvals = (await session.execute(select(MilestoneApproval))).scalars().all()
        assert [a.action for a in approvals] == [ApprovalAction.APPROVED]
    assert await _notifications(session_factory) == []


async def test_pending_approvals_are_scoped_by_membership(db, team, make_milestone, make_project, make_user):
    admin = await make_user(UserRole.ADMIN)
    other_project = await make_project(admin, name="Other")
    ready = await make_milestone(team["project"], ["COMPLETED"], progress=100,
                                 status=MilestoneStatus.READY_FOR_APPROVAL)
    await make_milestone(other_project, ["COMPLETED"], progress=100, status=MilestoneStatus.READY_FOR_APPROVAL)
    await make_milestone(team["project"], ["PENDING"], status=MilestoneStatus.IN_PROGRESS)
    workflow = MilestoneWorkflowService(db)

    mine = await workflow.pending_approvals(team["client"].id, "CLIENT")
    everything = await workflow.pending_approvals(admin.id, "ADMIN")

    assert [m.id for m in mine] == [ready.id]
    assert len(everything) == 2


async def _stored_milestone(session_factory, milestone_id):
    async with session_factory() as session:
        return await session.get(Milestone, milestone_id)


async def test_failed_notifications_do_not_break_a_task_update(db, session_factory, team, make_milestone, caplog):
    creator = await db.get(User, team["creator"].id)
    milestone = await make_milestone(team["project"], ["COMPLETED", "PENDING"], progress=50,
                                     status=MilestoneStatus.IN_PROGRESS)
    pending = (await _tasks(db, milestone.id))[1]
    service = TaskService(db, notifier=FailingNotifier(db))

    with caplog.at_level(logging.ERROR, logger="services.notification_service"):
        task = await service.update_task(
            pending.id,
            TaskUpdate(status=TaskStatus.COMPLETED, assignee_ids=[team["client"].id]),
            creator, creator.role,
        )

    assert task.status is TaskStatus.COMPLETED
    assert task.assignee_ids == [team["client"].id]
    assert "Failed to dispatch MILESTONE_READY_FOR_APPROVAL" in caplog.text
    assert "Failed to dispatch TASK_ASSIGNED" in caplog.text

    stored = await _stored_milestone(session_factory, milestone.id)
    assert (stored.progress, stored.status) == (100, MilestoneStatus.READY_FOR_APPROVAL)
    assert await _notifications(session_factory) == []


async def test_failed_notifications_do_not_break_a_task_create(db, session_factory, team, make_milestone, caplog):
    creator = await db.get(User, team["creator"].id)
    milestone = await make_milestone(team["project"])
    service = TaskService(db, notifier=FailingNotifier(db))

    with caplog.at_level(logging.ERROR, logger="services.notification_service"):
        task = await service.create_task(
            TaskCreate(project_id=team["project"].id, milestone_id=milestone.id, name="Stage rigging",
                       status=TaskStatus.COMPLETED, assignee_ids=[team["client"].id]),
            creator, creator.role,
        )

    assert task.id is not None
    assert "Failed to dispatch" in caplog.text
    stored = await _stored_milestone(session_factory, milestone.id)
    assert (stored.progress, stored.status) == (100, MilestoneStatus.READY_FOR_APPROVAL)


async def test_failed_notifications_do_not_break_a_milestone_move(db, session_factory, team, make_milestone, caplog):
    creator = await db.get(User, team["creator"].id)
    source = await make_milestone(team["project"], ["COMPLETED", "PENDING"], name="Source", progress=50,
                                  status=MilestoneStatus.IN_PROGRESS)
    target = await make_milestone(team["project"], name="Target")
    pending = (await _tasks(db, source.id))[1]

    with caplog.at_level(logging.ERROR, logger="services.notification_service"):
        task = await TaskService(db, notifier=FailingNotifier(db)).update_task(
            pending.id, TaskUpdate(milestone_id=target.id), creator, creator.role
        )

    assert task.milestone_id == target.id
    assert "Failed to dispatch" in caplog.text
    assert (await _stored_milestone(session_factory, source.id)).status is MilestoneStatus.READY_FOR_APPROVAL
    assert (await _stored_milestone(session_factory, target.id)).status is MilestoneStatus.IN_PROGRESS


# ---------- kanban ----------
async def test_kanban_move_recomputes_every_touched_milestone(db, session_factory, team, make_milestone):
    creator = await db.get(User, team["creator"].id)
    first = await make_milestone(team["project"], ["COMPLETED", "PENDING"], name="Venue", progress=50,
                                 status=MilestoneStatus.IN_PROGRESS)
    second = await make_milestone(team["project"], ["IN_PROGRESS"], name="Catering",
                                  status=MilestoneStatus.IN_PROGRESS)
    first_pending = (await _tasks(db, first.id))[1]
    second_task = (await _tasks(db, second.id))[0]

    moved = await TaskService(db).update_order(
        TaskOrderUpdate(tasks=[
            TaskOrderItem(id=first_pending.id, order=0, status=TaskStatus.COMPLETED),
            TaskOrderItem(id=second_task.id, order=1, status=TaskStatus.COMPLETED),
        ]),
        creator, creator.role,
    )

    assert [(t.id, t.order) for t in moved] == [(first_pending.id, 0), (second_task.id, 1)]
    assert all(t.completed_at is not None for t in moved)
    for milestone in (first, second):
        stored = await _stored_milestone(session_factory, milestone.id)
        assert (stored.progress, stored.status) == (100, MilestoneStatus.READY_FOR_APPROVAL)

    ready = await _notifications(session_factory, type=NotificationType.MILESTONE_READY_FOR_APPROVAL)
    assert {n.milestone_id for n in ready} == {first.id, second.id}


async def test_kanban_move_back_reopens_the_milestone(db, session_factory, team, make_milestone):
    creator = await db.get(User, team["creator"].id)
    milestone = await make_milestone(team["project"], ["COMPLETED"], progress=100,
                                     status=MilestoneStatus.READY_FOR_APPROVAL)
    task = (await _tasks(db, milestone.id))[0]

    [moved] = await TaskService(db).update_order(
        TaskOrderUpdate(tasks=[TaskOrderItem(id=task.id, order=3, status=TaskStatus.IN_PROGRESS)]),
        creator, creator.role,
    )

    assert moved.completed_at is None
    stored = await _stored_milestone(session_factory, milestone.id)
    assert (stored.progress, stored.status) == (0, MilestoneStatus.IN_PROGRESS)


async def test_kanban_move_rejects_unknown_and_duplicate_tasks(db, team, make_milestone):
    creator = await db.get(User, team["creator"].id)
    milestone = await make_milestone(team["project"], ["PENDING"], status=MilestoneStatus.IN_PROGRESS)
    task = (await _tasks(db, milestone.id))[0]
    service = TaskService(db)

    with pytest.raises(HTTPException) as missing:
        await service.update_order(
            TaskOrderUpdate(tasks=[TaskOrderItem(id=task.id + 100, order=0, status=TaskStatus.COMPLETED)]),
            creator, creator.role,
        )
    assert missing.value.status_code == 404

    with pytest.raises(HTTPException) as twice:
        await service.update_order(
            TaskOrderUpdate(tasks=[
                TaskOrderItem(id=task.id, order=0, status=TaskStatus.COMPLETED),
                TaskOrderItem(id=task.id, order=1, status=TaskStatus.PENDING),
            ]),
            creator, creator.role,
        )
    assert twice.value.status_code == 400


async def test_kanban_move_of_foreign_tasks_is_forbidden(db, team, make_milestone):
    outsider = await db.get(User, team["outsider"].id)
    milestone = await make_milestone(team["project"], ["PENDING"], status=MilestoneStatus.IN_PROGRESS)
    task = (await _tasks(db, milestone.id))[0]

    with pytest.raises(HTTPException) as denied:
        await TaskService(db).update_order(
            TaskOrderUpdate(tasks=[TaskOrderItem(id=task.id, order=0, status=TaskStatus.COMPLETED)]),
            outsider, outsider.role,
        )

    assert denied.value.status_code == 403
    assert (await db.get(Task, task.id)).status is TaskStatus.PENDING


async def test_kanban_move_survives_failed_notifications(db, session_factory, team, make_milestone, caplog):
    creator = await db.get(User, team["creator"].id)
    milestone = await make_milestone(team["project"], ["PENDING"], status=MilestoneStatus.IN_PROGRESS)
    task = (await _tasks(db, milestone.id))[0]

    with caplog.at_level(logging.ERROR, logger="services.notification_service"):
        [moved] = await TaskService(db, notifier=FailingNotifier(db)).update_order(
            TaskOrderUpdate(tasks=[TaskOrderItem(id=task.id, order=0, status=TaskStatus.COMPLETED)]),
            creator, creator.role,
        )

    assert moved.status is TaskStatus.COMPLETED
    assert "Failed to dispatch" in caplog.text
    assert (await _stored_milestone(session_factory, milestone.id)).status is MilestoneStatus.READY_FOR_APPROVAL


# ---------- milestone edits ----------
class BrokenAudit(AuditService):
    def record(self, action, *args, **kwargs):
        return super().record(None, *args, **kwargs)


async def test_failed_milestone_update_rolls_back(db, team, make_milestone):
    moderator = await db.get(User, team["moderator"].id)
    milestone = await make_milestone(team["project"], name="Venue")
    service = MilestoneService(db, audit=BrokenAudit(db))

    with pytest.raises(IntegrityError):
        await service.update_milestone(milestone.id, MilestoneUpdate(name="Venue booking"), moderator, moderator.role)

    # the session is usable again and the rename is gone
    assert (await db.get(Milestone, milestone.id)).name == "Venue"
