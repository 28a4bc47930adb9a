#!/usr/bin/env python3
"""Seed the database with an admin user and a demo client portal."""

import asyncio
import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from datetime import datetime

from sqlalchemy import select

from shiftboard.database import dispose_engine, get_session_factory
from shiftboard.models import Client, Project, Task, User
from shiftboard.services.auth import hash_password

DEMO_TASKS = [
    ("Kickoff and requirements", "shipped", 2.0, 16.0),
    ("Data model and API", "shipped", 4.0, 40.0),
    ("Admin dashboard", "active", 3.0, 32.0),
    ("Client onboarding flow", "backlog", 0.0, 24.0),
]


async def seed():
    factory = get_session_factory()
    if factory is None:
        print("SHIFTBOARD_DATABASE_URL is not set; nothing to seed")
        return

    admin_email = os.environ.get("SEED_ADMIN_EMAIL", "admin@example.com")
    admin_password = os.environ.get("SEED_ADMIN_PASSWORD")
    if not admin_password:
        print("SEED_ADMIN_PASSWORD is required")
        sys.exit(1)

    async with factory() as session:
        existing = (await session.execute(select(User).where(User.email == admin_email))).scalar_one_or_none()
        if existing:
            print(f"Admin user already exists: {existing.id}")
        else:
            admin = User(email=admin_email, password_hash=hash_password(admin_password), name="Admin", role="admin")
            session.add(admin)
            await session.flush()
            print(f"Created admin user: {admin.id} ({admin_email})")

        client = (await session.execute(select(Client).where(Client.slug == "acme"))).scalar_one_or_none()
        if client:
            print(f"Demo client already exists: {client.id}")
        else:
            client = Client(name="Acme Owner", email="owner@acme.example", company="Acme", status="active", slug="acme")
            session.add(client)
            await session.flush()

            project = Project(client_id=client.id, name="Acme Operations Portal", status="active")
            session.add(project)
            await session.flush()

            for i, (title, status, shift_hours, traditional) in enumerate(DEMO_TASKS):
                session.add(Task(
                    project_id=project.id,
                    title=title,
                    status=status,
                    shift_hours=shift_hours,
                    traditional_hours_estimate=traditional,
                    order_index=i,
                    shipped_at=datetime.utcnow() if status == "shipped" else None,
                ))
            print(f"Created demo client: {client.id} (slug: {client.slug}), project: {project.id}")

        await session.commit()

    await dispose_engine()


if __name__ == "__main__":
    asyncio.run(seed())
