# app/api/v1/router.py
from fastapi import APIRouter
from api.v1.endpoints import (
    # Authentication & Users
    auth,
    user,

    # Projects & Workflow
    projects,
    milestones,
    tasks,

    # Notifications
    notification,

    # Content & Sales
    leads,
    articles,
)

api_router = APIRouter()

# ========== 1️⃣ Authentication & Users ==========
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(user.router, prefix="/users", tags=["Users"])

# ========== 2️⃣ Projects & Workflow ==========
api_router.include_router(projects.router, prefix="/projects", tags=["Projects"])
api_router.include_router(milestones.router, prefix="/milestones", tags=["Milestones"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])

# ========== 3️⃣ Notifications ==========
api_router.include_router(notification.router, prefix="/notifications", tags=["Notifications"])

# ========== 4️⃣ Content & Sales ==========
api_router.include_router(leads.router, prefix="/leads", tags=["Leads"])
api_router.include_router(articles.router, prefix="/articles", tags=["Articles"])
