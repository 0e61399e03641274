# scripts/init_db.py
"""Create the schema and make sure an administrator exists.

    ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD=... python -m scripts.init_db
"""
import asyncio
import os

from sqlalchemy import select, func

from core.database import AsyncSessionLocal, create_all
from core.security import hash_password
from models.user import User, UserRole


async def seed_admin(email: str, password: str) -> None:
    async with AsyncSessionLocal() as db:
        existing = (
            await db.execute(select(User).where(func.lower(User.email) == email.lower()))
        ).scalar_one_or_none()

        if existing:
            if existing.role != UserRole.ADMIN.value:
                existing.role = UserRole.ADMIN.value
                await db.commit()
                print(f"🔁 {email} promoted to ADMIN")
            else:
                print(f"ℹ️ Admin {email} already exists")
            return

        db.add(User(
            email=email.lower(),
            name="Administrator",
            hashed_password=hash_password(password),
            role=UserRole.ADMIN.value,
        ))
        await db.commit()
        print(f"✅ Admin {email} created")


async def init_db():
    await create_all()
    print("✅ Tables created")

    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    if email and password:
        await seed_admin(email, password)
    else:
        print("⚠️ ADMIN_EMAIL / ADMIN_PASSWORD not set, no admin seeded")


if __name__ == "__main__":
    asyncio.run(init_db())
