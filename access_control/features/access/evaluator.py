"""
Access evaluator.

Composes the super-admin bypass, the user's effective assignments and live
hierarchy expansion into access decisions.

``is_primary`` is deliberately absent from every decision here: any effective
assignment, primary or not, is sufficient. Expired and not-yet-effective
assignments are skipped without being treated as revoked.

Storage failures propagate as ``TransientError``; a decision is never guessed.
"""
from collections.abc import Callable
from datetime import date
from typing import FrozenSet, List, Set

from access_control.core.database.engine import Database
from access_control.core.errors import ValidationError
from access_control.features.access.schemas import AccessDecision
from access_control.features.assignments.models import Assignment
from access_control.features.assignments.store import AssignmentStore
from access_control.features.hierarchy.lookups import SqlContainmentLookup
from access_control.features.hierarchy.resolver import ContextHierarchyResolver
from access_control.features.hierarchy.types import ContextType, ResourceRef
from access_control.features.users.schemas import Identity
from access_control.utils import get_logger, utc_today


log = get_logger(__name__)


def parse_resource_type(resource_type: str) -> ContextType:
    try:
        return ContextType(resource_type)
    except ValueError:
        raise ValidationError(f"Unsupported resource type: {resource_type}", resource_type=str(resource_type))


def resource_ref(resource_type: str, resource_id: str) -> ResourceRef:
    return ResourceRef(parse_resource_type(resource_type), str(resource_id))


class AccessEvaluator:
    """Read-only; every call opens its own short read session."""

    def __init__(self, database: Database, clock: Callable[[], date] = utc_today) -> None:
        self.database = database
        self.clock = clock

    async def has_access(self, identity: Identity, resource_type: str, resource_id: str) -> bool:
        decision = await self.explain_access(identity, resource_type, resource_id)
        return decision.granted

    async def explain_access(self, identity: Identity, resource_type: str, resource_id: str) -> AccessDecision:
        target = resource_ref(resource_type, resource_id)
        if identity.is_super_admin:
            log.debug(
                "User %s is super admin - granted %s:%s",
                identity.user_id, target.resource_type.value, target.resource_id,
            )
            return AccessDecision(granted=True, reason="super_admin")

        async with self.database.session() as session:
            assignments = await AssignmentStore(session).get_user_assignments(
                identity.user_id, identity.org_id, on=self.clock(),
            )
            resolver = ContextHierarchyResolver(SqlContainmentLookup(session))
            # Direct grants first
            for assignment in sorted(assignments, key=lambda a: _is_direct(a, target), reverse=True):
                if await resolver.covers(assignment, target):
                    inherited = not _is_direct(assignment, target)
                    log.debug(
                        "User %s granted %s:%s via assignment %s (%s)",
                        identity.user_id, target.resource_type.value, target.resource_id,
                        assignment.id, "inherited" if inherited else "direct",
                    )
                    return AccessDecision(
                        granted=True,
                        reason="inherited_assignment" if inherited else "direct_assignment",
                        assignment_id=assignment.id,
                        context_type=assignment.context_type,
                        context_id=assignment.context_id,
                        inherited=inherited,
                    )

        log.debug("User %s denied %s:%s", identity.user_id, target.resource_type.value, target.resource_id)
        reason = "no_effective_assignments" if not assignments else "not_covered"
        return AccessDecision(granted=False, reason=reason)

    async def accessible_resources(self, identity: Identity, resource_type: str) -> FrozenSet[str]:
        """
        Ids of every resource of ``resource_type`` the identity may act on.

        Super admins get every live resource of that type.
        """
        wanted = parse_resource_type(resource_type)
        async with self.database.session() as session:
            lookup = SqlContainmentLookup(session)
            if identity.is_super_admin:
                return frozenset(await lookup.all_ids(wanted))

            assignments = await AssignmentStore(session).get_user_assignments(
                identity.user_id, identity.org_id, on=self.clock(),
            )
            resolver = ContextHierarchyResolver(lookup)
            found: Set[str] = set()
            for assignment in assignments:
                for ref in await resolver.expand_access(assignment):
                    if ref.resource_type == wanted:
                        found.add(ref.resource_id)
        return frozenset(found)

    async def is_org_admin(self, identity: Identity, org_id: str) -> bool:
        """
        True for super admins and for holders of an effective organization-level
        assignment in ``org_id``. Gates the administrative API.
        """
        if identity.is_super_admin:
            return True
        if identity.org_id != org_id:
            return False
        async with self.database.session() as session:
            assignments: List[Assignment] = await AssignmentStore(session).get_user_assignments(
                identity.user_id, org_id, on=self.clock(),
            )
        return any(
            a.context_type == ContextType.ORGANIZATION and a.context_id == org_id
            for a in assignments
        )


def _is_direct(assignment: Assignment, target: ResourceRef) -> bool:
    return assignment.context_type == target.resource_type and assignment.context_id == target.resource_id
