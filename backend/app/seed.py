#!/usr/bin/env python3
"""
Seed the database with demo users and incidents.

Usage:
    python -m app.seed

Creates tables if needed, clears existing data and prints the demo session
tokens.
"""

import asyncio
import logging
import secrets
from datetime import UTC, datetime

from dotenv import load_dotenv
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Incident, IncidentStatus, Role, User
from app.services.identifiers import generate_user_id

logger = logging.getLogger(__name__)

DEMO_USERS = [
    {"first_name": "Admin", "last_name": "User", "email": "admin@demo.com", "role": Role.ADMIN},
    {
        "first_name": "Volunteer",
        "last_name": "User",
        "email": "volunteer@demo.com",
        "role": Role.VOLUNTEER,
        "skills": ["First Aid", "Fire Response"],
        "current_lat": 40.75,
        "current_lng": -73.99,
    },
    {"first_name": "Regular", "last_name": "User", "email": "user@demo.com", "role": Role.USER},
]


async def seed(db: AsyncSession) -> dict[str, User]:
    """Replace all users and incidents with the demo data set. Returns users by role."""
    await db.execute(delete(Incident))
    await db.execute(delete(User))

    users: dict[str, User] = {}
    for fields in DEMO_USERS:
        user = User(id=generate_user_id(), api_token=secrets.token_urlsafe(32), **fields)
        db.add(user)
        users[fields["role"]] = user

    admin = users[Role.ADMIN]
    reporter = users[Role.USER]
    year = datetime.now(UTC).year
    now = datetime.now(UTC)

    db.add_all([
        Incident(
            id=f"INC-{year}-0001",
            type="fire",
            severity=5,
            status=IncidentStatus.UNVERIFIED,
            lat=40.7589,
            lng=-73.9851,
            description="High-rise building fire in Manhattan",
            reporter=reporter.full_name,
            reporter_id=reporter.id,
            verified=False,
        ),
        Incident(
            id=f"INC-{year}-0002",
            type="medical",
            severity=3,
            status=IncidentStatus.AVAILABLE,
            lat=40.7505,
            lng=-73.9934,
            description="Cardiac emergency at subway station",
            reporter=reporter.full_name,
            reporter_id=reporter.id,
            verified=True,
            verified_by=admin.id,
            verified_at=now,
        ),
        Incident(
            id=f"INC-{year}-0003",
            type="flood",
            severity=4,
            status=IncidentStatus.AVAILABLE,
            lat=40.7061,
            lng=-74.0087,
            description="Street flooding near the financial district",
            reporter=reporter.full_name,
            reporter_id=reporter.id,
            verified=True,
            verified_by=admin.id,
            verified_at=now,
        ),
    ])

    await db.commit()
    logger.info(f"Seeded {len(users)} users and 3 incidents")
    return users


async def main() -> None:
    from app.database import async_session_maker, engine, init_db

    await init_db()
    async with async_session_maker() as db:
        users = await seed(db)

    print("Seeding completed. Demo session tokens:")
    for role, user in users.items():
        print(f"  {role:<10} {user.email:<22} {user.api_token}")

    await engine.dispose()


if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
