import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-the-test-suite-only")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import get_db
from core.security import create_access_token, hash_password
from main import app
from models import Base
from models.milestone import Milestone, MilestoneStatus
from models.project import Project
from models.task import Task, TaskStatus
from models.user import User, UserRole


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ---------- data helpers ----------
@pytest.fixture
def make_user(session_factory):
    counter = {"n": 0}

    async def _make_user(role=UserRole.CLIENT, password="Secret123!", **kwargs) -> User:
        counter["n"] += 1
        role_value = role.value if isinstance(role, UserRole) else role
        async with session_factory() as session:
            user = User(
                email=kwargs.pop("email", f"user{counter['n']}@example.com"),
                name=kwargs.pop("name", f"User {counter['n']}"),
                hashed_password=hash_password(password),
                role=role_value,
                **kwargs,
            )
            session.add(user)
            await session.commit()
            return user

    return _make_user


@pytest.fixture
def make_project(session_factory):
    async def _make_project(owner: User, members=(), name="Expo booth") -> Project:
        async with session_factory() as session:
            ids = {owner.id} | {m.id for m in members}
            users = [await session.get(User, i) for i in sorted(ids)]
            project = Project(name=name, created_by=owner.id, members=users)
            session.add(project)
            await session.commit()
            return project

    return _make_project


@pytest.fixture
def make_milestone(session_factory):
    async def _make_milestone(project: Project, statuses=(), name="Design phase", **kwargs) -> Milestone:
        """Milestone with one task per status, progress and state stored as given."""
        async with session_factory() as session:
            milestone = Milestone(
                project_id=project.id,
                name=name,
                progress=kwargs.pop("progress", 0),
                status=kwargs.pop("status", MilestoneStatus.NO_TASKS),
                **kwargs,
            )
            session.add(milestone)
            await session.flush()
            for i, task_status in enumerate(statuses):
                session.add(Task(
                    project_id=project.id,
                    milestone_id=milestone.id,
                    name=f"Task {i + 1}",
                    status=TaskStatus(task_status),
                ))
            await session.commit()
            return milestone

    return _make_milestone


def auth_headers(user_or_id, role=None) -> dict:
    if isinstance(user_or_id, User):
        user_id, role = user_or_id.id, role or user_or_id.role
    else:
        user_id = user_or_id
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


@pytest.fixture
def headers():
    return auth_headers
