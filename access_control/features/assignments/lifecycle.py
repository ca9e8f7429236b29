"""
Assignment lifecycle manager.

Validated creation, update, transfer and soft-deletion of assignments. Each
public call runs in exactly one transaction: any failure during validation,
primary demotion or the write itself leaves the store untouched.

Paths that can set ``is_primary`` run SERIALIZABLE so two concurrent requests
cannot both leave a primary row at the same (user, context) tuple; the partial
unique index on user_assignments backs this up at commit.
"""
from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any, Dict, List, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from access_control.core.database.engine import Database
from access_control.core.errors import ConflictError, CrossTenantError, NotFoundError, ValidationError
from access_control.features.assignments.models import Assignment, AuditLog
from access_control.features.assignments.schemas import (
    AssignmentCreate,
    AssignmentTransferRequest,
    AssignmentUpdate,
    BulkAssignmentCreate,
    TransferResult,
    UserReassignRequest,
)
from access_control.features.assignments.store import AssignmentStore
from access_control.features.hierarchy.lookups import SqlContainmentLookup
from access_control.features.hierarchy.types import ContextType
from access_control.features.roles.catalog import RoleCatalog
from access_control.features.users.models import User
from access_control.utils import get_logger, utc_today


log = get_logger(__name__)

T = TypeVar("T")


async def create_audit_log(
    session: AsyncSession,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    org_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an audit log entry to the caller's transaction.

    Args:
        session: Session of the transaction the entry belongs to
        user_id: User performing the action
        action: Action performed (e.g., "create", "update", "delete", "transfer", "deny")
        resource_type: Type of resource (e.g., "assignment")
        resource_id: ID of the resource
        org_id: Tenant the action happened in
        details: Additional JSON-serializable details
    """
    audit_log = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        org_id=org_id,
        details=details,
    )
    session.add(audit_log)
    await session.flush()

    log.info(f"Audit: user={user_id} action={action} resource={resource_type}:{resource_id} org={org_id}")

    return audit_log


class AssignmentLifecycleManager:
    """Orchestrates validated writes through the assignment store."""

    def __init__(self, database: Database, clock: Callable[[], date] = utc_today) -> None:
        self.database = database
        self.clock = clock

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    async def _run(
        self,
        action: str,
        actor_id: str,
        org_id: str,
        work: Callable[[AsyncSession], Awaitable[T]],
        serializable: bool = False,
    ) -> T:
        try:
            async with self.database.transaction(serializable=serializable) as session:
                return await work(session)
        except CrossTenantError as exc:
            log.warning(
                "SECURITY cross-tenant %s denied: actor=%s org=%s details=%s",
                action, actor_id, org_id, exc.details,
            )
            async with self.database.transaction() as session:
                await create_audit_log(
                    session,
                    user_id=actor_id,
                    action="deny",
                    resource_type="assignment",
                    org_id=org_id,
                    details={"attempted": action, "reason": exc.message, **exc.details},
                )
            raise

    # ------------------------------------------------------------------
    # Validation steps
    # ------------------------------------------------------------------

    async def _check_context(
        self,
        session: AsyncSession,
        context_type: ContextType,
        context_id: str,
        org_id: str,
    ) -> None:
        owner = await SqlContainmentLookup(session).context_org(context_type, context_id)
        if owner is None:
            raise NotFoundError(ContextType(context_type).value, context_id)
        if owner != org_id:
            raise CrossTenantError(
                f"{ContextType(context_type).value} {context_id!r} does not belong to organization {org_id!r}",
                context_type=ContextType(context_type).value,
                context_id=context_id,
                context_org_id=owner,
                org_id=org_id,
            )

    async def _check_user(
        self,
        session: AsyncSession,
        user_id: str,
        org_id: str,
        require_active: bool = True,
    ) -> User:
        result = await session.execute(
            select(User).where(User.id == user_id, User.is_deleted.is_(False))
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("user", user_id)
        if user.org_id != org_id:
            raise CrossTenantError(
                f"User {user_id!r} does not belong to organization {org_id!r}",
                target_user_id=user_id,
                user_org_id=user.org_id,
                org_id=org_id,
            )
        if require_active and not user.is_active:
            raise ValidationError(f"User {user_id!r} is inactive and cannot receive assignments", user_id=user_id)
        return user

    async def _validate_new_grant(
        self,
        session: AsyncSession,
        data: AssignmentCreate,
        org_id: str,
    ) -> None:
        await self._check_context(session, data.context_type, data.context_id, org_id)
        await self._check_user(session, data.user_id, org_id)
        await RoleCatalog(session).ensure_usable(data.role_id, org_id)

    async def _insert(
        self,
        session: AsyncSession,
        data: AssignmentCreate,
        org_id: str,
        actor_id: str,
    ) -> Assignment:
        store = AssignmentStore(session)
        if data.is_primary:
            await store.demote_primary(data.user_id, data.context_type, data.context_id, actor_id)
        values = data.model_dump(exclude={"org_id"})
        values["org_id"] = org_id
        assignment = await store.create_assignment(values, actor_id)
        await create_audit_log(
            session,
            user_id=actor_id,
            action="create",
            resource_type="assignment",
            resource_id=assignment.id,
            org_id=org_id,
            details=data.model_dump(mode="json", exclude={"org_id"}),
        )
        return assignment

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create_assignment(self, data: AssignmentCreate, org_id: str, actor_id: str) -> Assignment:
        """
        Create one assignment.

        Validation is fail-fast: context (NotFound / CrossTenant), target user
        (NotFound / CrossTenant), role usable in the org (NotFound / Validation).
        A primary request demotes the existing primary at the same
        (user, context) in the same transaction before the insert.
        """
        async def work(session: AsyncSession) -> Assignment:
            await self._validate_new_grant(session, data, org_id)
            return await self._insert(session, data, org_id, actor_id)

        assignment = await self._run("create", actor_id, org_id, work, serializable=data.is_primary)
        log.info(
            "Created assignment %s user=%s role=%s context=%s:%s primary=%s by=%s",
            assignment.id, assignment.user_id, assignment.role_id,
            assignment.context_type.value, assignment.context_id, assignment.is_primary, actor_id,
        )
        return assignment

    async def create_bulk_assignments(
        self,
        data: BulkAssignmentCreate,
        org_id: str,
        actor_id: str,
    ) -> List[Assignment]:
        """Grant one role at one context to several users, all or nothing."""
        shared = data.model_dump(exclude={"user_ids", "org_id"})

        async def work(session: AsyncSession) -> List[Assignment]:
            created = []
            for user_id in data.user_ids:
                single = AssignmentCreate(user_id=user_id, **shared)
                await self._validate_new_grant(session, single, org_id)
                created.append(await self._insert(session, single, org_id, actor_id))
            return created

        assignments = await self._run("bulk_create", actor_id, org_id, work, serializable=data.is_primary)
        log.info(
            "Created %d bulk assignments context=%s:%s by=%s",
            len(assignments), data.context_type.value, data.context_id, actor_id,
        )
        return assignments

    async def update_assignment(
        self,
        assignment_id: str,
        patch: AssignmentUpdate,
        org_id: str,
        actor_id: str,
    ) -> Assignment:
        """
        Patch role, trade, primary flag or validity window of an active assignment.

        Raises NotFound for absent or deleted rows; ValidationError for an empty
        patch, a role unusable in the org, or a window that ends before it starts.
        """
        changes = patch.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        promoting = changes.get("is_primary") is True

        async def work(session: AsyncSession) -> Assignment:
            store = AssignmentStore(session)
            current = await store.get_assignment(assignment_id, org_id, for_update=True)

            start = changes.get("start_date", current.start_date)
            end = changes.get("end_date", current.end_date)
            if start is not None and end is not None and start > end:
                raise ValidationError("start_date must be on or before end_date")

            if "role_id" in changes:
                if changes["role_id"] is None:
                    raise ValidationError("role_id cannot be cleared")
                await RoleCatalog(session).ensure_usable(changes["role_id"], org_id)
            if "is_primary" in changes and changes["is_primary"] is None:
                raise ValidationError("is_primary cannot be cleared")

            if promoting:
                await store.demote_primary(
                    current.user_id, current.context_type, current.context_id, actor_id,
                    exclude_id=current.id,
                )
            updated = await store.update_assignment(assignment_id, org_id, changes, actor_id)
            await create_audit_log(
                session,
                user_id=actor_id,
                action="update",
                resource_type="assignment",
                resource_id=assignment_id,
                org_id=org_id,
                details=patch.model_dump(mode="json", exclude_unset=True),
            )
            return updated

        assignment = await self._run("update", actor_id, org_id, work, serializable=promoting)
        log.info("Updated assignment %s fields=%s by=%s", assignment_id, sorted(changes), actor_id)
        return assignment

    async def delete_assignment(self, assignment_id: str, org_id: str, actor_id: str) -> None:
        """
        Soft-delete. Deleting an already-deleted assignment is a no-op.
        """
        async def work(session: AsyncSession) -> bool:
            deleted = await AssignmentStore(session).delete_assignment(assignment_id, org_id, actor_id)
            if deleted:
                await create_audit_log(
                    session,
                    user_id=actor_id,
                    action="delete",
                    resource_type="assignment",
                    resource_id=assignment_id,
                    org_id=org_id,
                )
            return deleted

        if await self._run("delete", actor_id, org_id, work):
            log.info("Deleted assignment %s by=%s", assignment_id, actor_id)
        else:
            log.debug("Assignment %s already deleted", assignment_id)

    async def transfer_assignments(
        self,
        request: AssignmentTransferRequest,
        org_id: str,
        actor_id: str,
    ) -> TransferResult:
        """
        Re-point active assignments from one context to another of the same type.

        Moved primaries keep their flag unless the user already has a primary at
        the new context, in which case the moved row is demoted. A move that
        would duplicate an existing grant at the new context is a conflict.
        """
        old, new = request.old_context, request.new_context
        if old.context_type != new.context_type:
            raise ValidationError("Assignments can only be transferred between contexts of the same type")

        async def work(session: AsyncSession) -> TransferResult:
            await self._check_context(session, new.context_type, new.context_id, org_id)
            store = AssignmentStore(session)
            moving = await store.find_active(
                org_id,
                context_type=old.context_type,
                context_id=old.context_id,
                user_ids=request.filter.user_ids,
                role_id=request.filter.role_id,
                assignment_ids=request.filter.assignment_ids,
            )
            if not moving:
                raise NotFoundError(
                    "assignment", None,
                    message=f"No active assignments at {old.context_type.value} {old.context_id!r} to transfer",
                )

            at_destination = await store.find_active(
                org_id,
                context_type=new.context_type,
                context_id=new.context_id,
                user_ids={a.user_id for a in moving},
            )
            existing_grants = {(a.user_id, a.role_id) for a in at_destination}
            existing_primaries = {a.user_id for a in at_destination if a.is_primary}

            for assignment in moving:
                if (assignment.user_id, assignment.role_id) in existing_grants:
                    raise ConflictError(
                        f"User {assignment.user_id!r} already holds role {assignment.role_id!r} at the new context",
                        assignment_id=assignment.id,
                    )
                if assignment.is_primary and assignment.user_id in existing_primaries:
                    assignment.is_primary = False
                assignment.context_id = new.context_id
                assignment.updated_by = actor_id
            await session.flush()

            moved_ids = [a.id for a in moving]
            await create_audit_log(
                session,
                user_id=actor_id,
                action="transfer",
                resource_type="assignment",
                org_id=org_id,
                details={
                    "from": old.model_dump(mode="json"),
                    "to": new.model_dump(mode="json"),
                    "assignment_ids": moved_ids,
                },
            )
            return TransferResult(transferred=len(moved_ids), assignment_ids=moved_ids)

        result = await self._run("transfer", actor_id, org_id, work, serializable=True)
        log.info(
            "Transferred %d assignments %s:%s -> %s:%s by=%s",
            result.transferred, old.context_type.value, old.context_id,
            new.context_type.value, new.context_id, actor_id,
        )
        return result

    async def reassign_user(
        self,
        request: UserReassignRequest,
        org_id: str,
        actor_id: str,
    ) -> TransferResult:
        """
        Move grants from one user to another in the same organization.

        Without explicit ids every currently effective grant of the source user
        moves. Primary flags are cleared unless ``preserve_primary``; a
        preserved primary that collides with the target's own primary at the
        same context is demoted.
        """
        async def work(session: AsyncSession) -> TransferResult:
            await self._check_user(session, request.from_user_id, org_id, require_active=False)
            await self._check_user(session, request.to_user_id, org_id)
            store = AssignmentStore(session)

            if request.assignment_ids:
                moving = await store.find_active(
                    org_id, user_ids=[request.from_user_id], assignment_ids=request.assignment_ids,
                )
                missing = set(request.assignment_ids) - {a.id for a in moving}
                if missing:
                    raise NotFoundError("assignment", sorted(missing)[0])
            else:
                moving = await store.find_active(org_id, user_ids=[request.from_user_id], on=self.clock())
            if not moving:
                raise NotFoundError(
                    "assignment", None,
                    message=f"No active assignments of user {request.from_user_id!r} to transfer",
                )

            target_rows = await store.find_active(org_id, user_ids=[request.to_user_id])
            target_grants = {(a.role_id, a.context_type, a.context_id) for a in target_rows}
            target_primaries = {(a.context_type, a.context_id) for a in target_rows if a.is_primary}

            for assignment in moving:
                if (assignment.role_id, assignment.context_type, assignment.context_id) in target_grants:
                    raise ConflictError(
                        f"User {request.to_user_id!r} already holds role {assignment.role_id!r} "
                        f"at {assignment.context_type.value} {assignment.context_id!r}",
                        assignment_id=assignment.id,
                    )
                if assignment.is_primary and (
                    not request.preserve_primary
                    or (assignment.context_type, assignment.context_id) in target_primaries
                ):
                    assignment.is_primary = False
                assignment.user_id = request.to_user_id
                assignment.updated_by = actor_id
            await session.flush()

            moved_ids = [a.id for a in moving]
            await create_audit_log(
                session,
                user_id=actor_id,
                action="reassign",
                resource_type="assignment",
                org_id=org_id,
                details={
                    "from_user_id": request.from_user_id,
                    "to_user_id": request.to_user_id,
                    "assignment_ids": moved_ids,
                    "preserve_primary": request.preserve_primary,
                },
            )
            return TransferResult(transferred=len(moved_ids), assignment_ids=moved_ids)

        result = await self._run("reassign", actor_id, org_id, work, serializable=True)
        log.info(
            "Reassigned %d assignments %s -> %s by=%s",
            result.transferred, request.from_user_id, request.to_user_id, actor_id,
        )
        return result

