"""Hierarchy expansion against an in-memory containment lookup."""

from types import SimpleNamespace

import pytest

from access_control.features.hierarchy.resolver import ContextHierarchyResolver
from access_control.features.hierarchy.types import ContextType, ResourceRef

ORG = ContextType.ORGANIZATION
LOC = ContextType.LOCATION
PRJ = ContextType.PROJECT


class FakeLookup:
    """Containment held in dicts; records every call."""

    def __init__(self) -> None:
        self.locations = {"6": "10", "7": "10", "8": "20"}
        self.projects = {
            "47": ("10", "6"),
            "48": ("10", "6"),
            "50": ("10", "7"),
            "60": ("20", "8"),
            # inconsistent row: sits at location 6 but claims another org
            "66": ("20", "6"),
        }
        self.calls: list[tuple] = []

    async def locations_by_org(self, org_id: str) -> list[str]:
        self.calls.append(("locations_by_org", org_id))
        return [loc for loc, org in self.locations.items() if org == org_id]

    async def projects_by_org(self, org_id: str) -> list[str]:
        self.calls.append(("projects_by_org", org_id))
        return [prj for prj, (org, _loc) in self.projects.items() if org == org_id]

    async def projects_by_location(self, location_id: str, org_id: str) -> list[str]:
        self.calls.append(("projects_by_location", location_id, org_id))
        return [prj for prj, (org, loc) in self.projects.items() if loc == location_id and org == org_id]


def _grant(context_type: ContextType, context_id: str, org_id: str = "10") -> SimpleNamespace:
    return SimpleNamespace(org_id=org_id, context_type=context_type, context_id=context_id)


@pytest.fixture()
def lookup() -> FakeLookup:
    return FakeLookup()


@pytest.fixture()
def resolver(lookup: FakeLookup) -> ContextHierarchyResolver:
    return ContextHierarchyResolver(lookup)


async def test_organization_grant_covers_whole_tenant(resolver: ContextHierarchyResolver) -> None:
    """An org grant reaches the org, its locations and its projects, nothing outside."""

    expanded = await resolver.expand_access(_grant(ORG, "10"))

    assert expanded == {
        ResourceRef(ORG, "10"),
        ResourceRef(LOC, "6"),
        ResourceRef(LOC, "7"),
        ResourceRef(PRJ, "47"),
        ResourceRef(PRJ, "48"),
        ResourceRef(PRJ, "50"),
    }


async def test_location_grant_covers_its_projects_only(resolver: ContextHierarchyResolver) -> None:
    expanded = await resolver.expand_access(_grant(LOC, "6"))

    assert expanded == {ResourceRef(LOC, "6"), ResourceRef(PRJ, "47"), ResourceRef(PRJ, "48")}
    assert ResourceRef(PRJ, "50") not in expanded


async def test_location_grant_skips_projects_of_another_org(resolver: ContextHierarchyResolver) -> None:
    """Project 66 points at location 6 but belongs to org 20."""

    expanded = await resolver.expand_access(_grant(LOC, "6"))

    assert ResourceRef(PRJ, "66") not in expanded


async def test_project_grant_does_not_expand(
    resolver: ContextHierarchyResolver, lookup: FakeLookup
) -> None:
    expanded = await resolver.expand_access(_grant(PRJ, "47"))

    assert expanded == {ResourceRef(PRJ, "47")}
    assert lookup.calls == []


async def test_expansion_sees_entities_created_later(
    resolver: ContextHierarchyResolver, lookup: FakeLookup
) -> None:
    """Nothing is memoized: a new location and project are covered on the next call."""

    grant = _grant(ORG, "10")
    before = await resolver.expand_access(grant)
    lookup.locations["9"] = "10"
    lookup.projects["70"] = ("10", "9")
    after = await resolver.expand_access(grant)

    assert ResourceRef(PRJ, "70") not in before
    assert {ResourceRef(LOC, "9"), ResourceRef(PRJ, "70")} <= after


async def test_expansion_is_repeatable(resolver: ContextHierarchyResolver) -> None:
    grant = _grant(LOC, "7")

    assert await resolver.expand_access(grant) == await resolver.expand_access(grant)


async def test_organization_grant_for_foreign_org_expands_to_nothing(
    resolver: ContextHierarchyResolver,
) -> None:
    """An org-level row naming another tenant never reaches into it."""

    assert await resolver.expand_access(_grant(ORG, "20", org_id="10")) == frozenset()
    assert not await resolver.covers(_grant(ORG, "20", org_id="10"), ResourceRef(PRJ, "60"))


@pytest.mark.parametrize(
    ("grant", "resource", "expected"),
    [
        (_grant(PRJ, "47"), ResourceRef(PRJ, "47"), True),
        (_grant(PRJ, "47"), ResourceRef(PRJ, "48"), False),
        (_grant(PRJ, "47"), ResourceRef(LOC, "6"), False),
        (_grant(PRJ, "47"), ResourceRef(ORG, "10"), False),
        (_grant(LOC, "6"), ResourceRef(PRJ, "48"), True),
        (_grant(LOC, "6"), ResourceRef(PRJ, "50"), False),
        (_grant(LOC, "6"), ResourceRef(ORG, "10"), False),
        (_grant(LOC, "6"), ResourceRef(LOC, "7"), False),
        (_grant(ORG, "10"), ResourceRef(LOC, "7"), True),
        (_grant(ORG, "10"), ResourceRef(PRJ, "50"), True),
        (_grant(ORG, "10"), ResourceRef(PRJ, "60"), False),
    ],
)
async def test_covers(
    resolver: ContextHierarchyResolver, grant: SimpleNamespace, resource: ResourceRef, expected: bool
) -> None:
    assert await resolver.covers(grant, resource) is expected


async def test_covers_direct_match_needs_no_lookup(
    resolver: ContextHierarchyResolver, lookup: FakeLookup
) -> None:
    assert await resolver.covers(_grant(LOC, "6"), ResourceRef(LOC, "6"))
    assert lookup.calls == []
