"""
Seed script to populate the system role catalog.

Run this script after database initialization to create the system-wide roles
every organization can grant. Existing roles are left untouched, so the script
is safe to run repeatedly.

Usage:
    python -m scripts.seed_roles
"""
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from access_control.core import config
from access_control.core.database.engine import Database
from access_control.features.roles.models import Role, RoleType
from access_control.utils import get_logger


log = get_logger(__name__)


DEFAULT_ROLES = {
    "org_admin": "Organization administrator; manages assignments across the whole organization",
    "project_manager": "Runs one or more projects end to end",
    "superintendent": "Oversees field operations at a location or project",
    "foreman": "Leads a crew on site",
    "engineer": "Project engineer",
    "estimator": "Prepares bids and cost estimates",
    "viewer": "Read-only access to the contexts it is assigned at",
}


async def seed_roles(session: AsyncSession) -> int:
    """
    Create missing system roles.

    Returns:
        Number of roles created
    """
    log.info("Creating default system roles...")
    created = 0

    for role_name, description in DEFAULT_ROLES.items():
        stmt = select(Role).where(Role.name == role_name, Role.org_id.is_(None))
        result = await session.execute(stmt)
        if result.scalars().first():
            log.debug(f"Role '{role_name}' already exists, skipping")
            continue

        session.add(Role(name=role_name, description=description, role_type=RoleType.SYSTEM, org_id=None))
        created += 1
        log.info(f"Created role: {role_name}")

    return created


async def main():
    """Main function to seed the role catalog."""
    log.info("Starting role seeding...")
    database = Database(config.SQLALCHEMY_DATABASE_URL, echo=config.SQL_ECHO)
    try:
        # Initialize database tables first
        await database.create_all()
        async with database.transaction() as session:
            created = await seed_roles(session)
        log.info(f"Role seeding completed successfully, {created} roles created")
    finally:
        await database.dispose()


if __name__ == "__main__":
    asyncio.run(main())
