# app/services/project_service.py
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import select, exists, and_
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from core.constants import AUDIT_ACTIONS
from models.association_tables import project_members
from models.notification import NotificationType
from models.project import Project
from models.user import User, UserRole, parse_role
from schemas.project import ProjectCreate, ProjectUpdate
from services.audit_service import AuditService
from services.notification_service import NotificationService, NotificationEvent

logger = logging.getLogger(__name__)


async def is_project_member(db: AsyncSession, project_id: int, user_id: int) -> bool:
    return bool(await db.scalar(
        select(exists().where(and_(
            project_members.c.project_id == project_id,
            project_members.c.user_id == user_id,
        )))
    ))


async def get_accessible_project(
        db: AsyncSession,
        project_id: int,
        user_id: int,
        role: str,
        message: str = "You do not have access to this project",
) -> Project:
    """Load a project the caller may work on: administrators see every
    project, everyone else only projects they are a member of."""

    project = await db.get(Project, project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")

    if parse_role(role) is not UserRole.ADMIN and not await is_project_member(db, project_id, user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)

    return project


class ProjectService:
    def __init__(self, db: AsyncSession, audit: Optional[AuditService] = None):
        self.db = db
        self.audit = audit or AuditService(db)
        self.notifications = NotificationService(db)

    async def create_project(self, data: ProjectCreate, actor: User) -> Project:
        members = await self._load_users(set(data.member_ids) | {actor.id})

        project = Project(
            name=data.name,
            description=data.description,
            start_date=data.start_date,
            end_date=data.end_date,
            created_by=actor.id,
            members=members,
        )
        self.db.add(project)
        await self.db.flush()

        self.audit.record(
            AUDIT_ACTIONS["PROJECT_CREATED"], "Project", project.id, actor.id,
            new_values={"name": project.name, "member_ids": project.member_ids},
        )
        await self.db.commit()
        return project

    async def list_projects(self, user_id: int, role: str) -> List[Project]:
        query = select(Project).order_by(Project.created_at.desc(), Project.id.desc())
        if parse_role(role) is not UserRole.ADMIN:
            query = query.join(project_members, project_members.c.project_id == Project.id).where(
                project_members.c.user_id == user_id
            )
        result = await self.db.execute(query)
        return result.scalars().all()

    async def update_project(self, project: Project, data: ProjectUpdate, actor: User) -> Project:
        changes = data.model_dump(exclude_unset=True)
        for required in ("name", "status"):
            if required in changes and changes[required] is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Project {required} cannot be null")

        old_values = {key: str(getattr(project, key)) for key in changes}

        for key, value in changes.items():
            setattr(project, key, value)

        self.audit.record(
            AUDIT_ACTIONS["PROJECT_UPDATED"], "Project", project.id, actor.id,
            old_values=old_values, new_values={k: str(v) for k, v in changes.items()},
        )
        await self.db.commit()
        return project

    async def add_member(self, project: Project, user_id: int, actor: User) -> Project:
        users = await self._load_users({user_id})
        user = users[0]

        if user not in project.members:
            project.members.append(user)
            self.audit.record(
                AUDIT_ACTIONS["PROJECT_MEMBER_ADDED"], "Project", project.id, actor.id,
                new_values={"user_id": user.id},
            )
            await self.db.commit()

            if user.id != actor.id:
                await self.notifications.dispatch_best_effort(
                    [user.id],
                    NotificationEvent(
                        type=NotificationType.PROJECT_MEMBER_ADDED,
                        title="Added to Project",
                        message=f'{actor.display_name} added you to project "{project.name}"',
                        data={"project_name": project.name},
                        project_id=project.id,
                    ),
                )

        return project

    async def remove_member(self, project: Project, user_id: int, actor: User) -> Project:
        member = next((m for m in project.members if m.id == user_id), None)
        if member is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User is not a member of this project")

        project.members.remove(member)
        self.audit.record(
            AUDIT_ACTIONS["PROJECT_MEMBER_REMOVED"], "Project", project.id, actor.id,
            old_values={"user_id": user_id},
        )
        await self.db.commit()
        return project

    async def _load_users(self, user_ids) -> List[User]:
        if not user_ids:
            return []
        result = await self.db.execute(select(User).where(User.id.in_(user_ids)))
        users = result.scalars().all()
        missing = set(user_ids) - {u.id for u in users}
        if missing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown user id(s): {', '.join(str(i) for i in sorted(missing))}",
            )
        return list(users)
