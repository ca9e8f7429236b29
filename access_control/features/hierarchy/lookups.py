"""
Containment lookups against the entity tables.

The resolver depends on the ``ContainmentLookup`` protocol only, so it can be
exercised against an in-memory fake. ``SqlContainmentLookup`` is the
production implementation; every call is a live query, nothing is memoized.
"""
from typing import List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from access_control.core.errors import ValidationError
from access_control.features.hierarchy.types import ContextType
from access_control.features.organizations.models import Organization, Location, Project


class ContainmentLookup(Protocol):
    async def locations_by_org(self, org_id: str) -> List[str]: ...

    async def projects_by_org(self, org_id: str) -> List[str]: ...

    async def projects_by_location(self, location_id: str, org_id: str) -> List[str]: ...


_MODELS = {
    ContextType.ORGANIZATION: Organization,
    ContextType.LOCATION: Location,
    ContextType.PROJECT: Project,
}


class SqlContainmentLookup:
    """Reads current containment from organizations, locations and projects."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def locations_by_org(self, org_id: str) -> List[str]:
        result = await self.session.execute(
            select(Location.id).where(Location.org_id == org_id, Location.is_deleted.is_(False))
        )
        return list(result.scalars().all())

    async def projects_by_org(self, org_id: str) -> List[str]:
        result = await self.session.execute(
            select(Project.id).where(Project.org_id == org_id, Project.is_deleted.is_(False))
        )
        return list(result.scalars().all())

    async def projects_by_location(self, location_id: str, org_id: str) -> List[str]:
        result = await self.session.execute(
            select(Project.id).where(
                Project.location_id == location_id,
                Project.org_id == org_id,
                Project.is_deleted.is_(False),
            )
        )
        return list(result.scalars().all())

    async def context_org(self, context_type: ContextType, context_id: str) -> Optional[str]:
        """
        Org that owns a live context entity, or None if it is absent or deleted.

        An organization owns itself.
        """
        try:
            model = _MODELS[ContextType(context_type)]
        except ValueError:
            raise ValidationError(f"Unsupported context type: {context_type}", context_type=str(context_type))
        owner = model.id if model is Organization else model.org_id
        result = await self.session.execute(
            select(owner).where(model.id == context_id, model.is_deleted.is_(False))
        )
        return result.scalar_one_or_none()

    async def all_ids(self, resource_type: ContextType) -> List[str]:
        """Every live entity of a type; used for the super-admin listing."""
        model = _MODELS[ContextType(resource_type)]
        result = await self.session.execute(select(model.id).where(model.is_deleted.is_(False)))
        return list(result.scalars().all())
