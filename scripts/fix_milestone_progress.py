# scripts/fix_milestone_progress.py
"""Recompute progress and lifecycle state of every milestone.

Safe to run repeatedly: the result depends only on the current task statuses.

    python -m scripts.fix_milestone_progress
"""
import asyncio

from sqlalchemy import select

from core.database import AsyncSessionLocal
from models.milestone import Milestone
from services.milestone_workflow import MilestoneWorkflowService


async def fix_progress() -> int:
    changed = 0
    async with AsyncSessionLocal() as db:
        workflow = MilestoneWorkflowService(db)
        milestone_ids = (await db.execute(select(Milestone.id).order_by(Milestone.id))).scalars().all()

        for milestone_id in milestone_ids:
            before = await db.get(Milestone, milestone_id)
            old = (before.progress, before.status)
            transition = await workflow.recompute(milestone_id)
            if transition or old != (before.progress, before.status):
                changed += 1
                print(f"🔧 Milestone {milestone_id}: {old[0]}% {old[1].value} -> {before.progress}% {before.status.value}")

        await db.commit()
        # repairs do not notify

    print(f"✅ {len(milestone_ids)} milestone(s) checked, {changed} updated")
    return changed


if __name__ == "__main__":
    asyncio.run(fix_progress())
