"""
Context hierarchy resolver.

Turns one assignment into the set of resources it grants:

- organization -> the org, every live location in it, every live project in it
- location     -> the location, every live project at it within the same org
- project      -> the project only

Expansion is computed on every call against current containment, so a
location or project created after the grant is covered immediately.
"""
from typing import FrozenSet, Set

from access_control.core.errors import ValidationError
from access_control.features.hierarchy.lookups import ContainmentLookup
from access_control.features.hierarchy.types import ContextType, Grant, ResourceRef


class ContextHierarchyResolver:
    """Side-effect free expansion of grants over an injected containment lookup."""

    def __init__(self, lookup: ContainmentLookup) -> None:
        self.lookup = lookup

    async def expand_access(self, grant: Grant) -> FrozenSet[ResourceRef]:
        context_type = ContextType(grant.context_type)
        if context_type == ContextType.ORGANIZATION:
            return await self._expand_organization(grant)
        if context_type == ContextType.LOCATION:
            return await self._expand_location(grant)
        if context_type == ContextType.PROJECT:
            return frozenset({ResourceRef(ContextType.PROJECT, grant.context_id)})
        raise ValidationError(f"Unsupported context type: {grant.context_type}")

    async def _expand_organization(self, grant: Grant) -> FrozenSet[ResourceRef]:
        org_id = grant.context_id
        if org_id != grant.org_id:
            # inconsistent row: an org-level grant only ever covers its own tenant
            return frozenset()
        resources: Set[ResourceRef] = {ResourceRef(ContextType.ORGANIZATION, org_id)}
        for location_id in await self.lookup.locations_by_org(org_id):
            resources.add(ResourceRef(ContextType.LOCATION, location_id))
        for project_id in await self.lookup.projects_by_org(org_id):
            resources.add(ResourceRef(ContextType.PROJECT, project_id))
        return frozenset(resources)

    async def _expand_location(self, grant: Grant) -> FrozenSet[ResourceRef]:
        resources: Set[ResourceRef] = {ResourceRef(ContextType.LOCATION, grant.context_id)}
        # org filter guards against a project row whose org disagrees with its location
        for project_id in await self.lookup.projects_by_location(grant.context_id, grant.org_id):
            resources.add(ResourceRef(ContextType.PROJECT, project_id))
        return frozenset(resources)

    async def covers(self, grant: Grant, resource: ResourceRef) -> bool:
        """True if ``grant`` reaches ``resource``; skips the full expansion when it can."""
        context_type = ContextType(grant.context_type)
        if context_type == ContextType.ORGANIZATION and grant.context_id != grant.org_id:
            return False
        if context_type == resource.resource_type and grant.context_id == resource.resource_id:
            return True
        if context_type == ContextType.PROJECT:
            return False
        if context_type == ContextType.LOCATION and resource.resource_type != ContextType.PROJECT:
            return False
        return resource in await self.expand_access(grant)
