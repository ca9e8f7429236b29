"""
Assignment store: tenant-scoped persistence for user assignments.

Every read filters to the caller's ``org_id`` and to rows that are both
``status = active`` and inside their validity window, unless audit mode
(``include_deleted``) is requested explicitly. The store never opens or
commits transactions; the caller owns the session.
"""
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from access_control.core.errors import ConflictError, NotFoundError, ValidationError
from access_control.features.assignments.models import Assignment, AssignmentStatus
from access_control.features.assignments.schemas import AssignmentFilters
from access_control.features.hierarchy.types import ContextType
from access_control.utils import get_logger, utc_now, utc_today


log = get_logger(__name__)

UPDATABLE_FIELDS = {"role_id", "trade_type", "is_primary", "start_date", "end_date"}


def effective_clause(day: date) -> ColumnElement[bool]:
    """SQL form of Assignment.is_effective_on."""
    return and_(
        Assignment.status == AssignmentStatus.ACTIVE,
        or_(Assignment.start_date.is_(None), Assignment.start_date <= day),
        or_(Assignment.end_date.is_(None), Assignment.end_date >= day),
    )


class AssignmentStore:
    """CRUD over user_assignments bound to one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_assignment(self, values: Dict[str, Any], actor_id: str) -> Assignment:
        """
        Insert one row.

        Raises:
            ConflictError: an active row with the same user, role and context exists
        """
        duplicate = await self.session.execute(
            select(Assignment.id).where(
                Assignment.user_id == values["user_id"],
                Assignment.role_id == values["role_id"],
                Assignment.context_type == values["context_type"],
                Assignment.context_id == values["context_id"],
                Assignment.status == AssignmentStatus.ACTIVE,
            )
        )
        existing_id = duplicate.scalars().first()
        if existing_id is not None:
            raise ConflictError(
                "An active assignment for this user, role and context already exists",
                assignment_id=existing_id,
            )

        assignment = Assignment(
            **values,
            status=AssignmentStatus.ACTIVE,
            created_by=actor_id,
            updated_by=actor_id,
        )
        self.session.add(assignment)
        await self.session.flush()
        await self.session.refresh(assignment)
        return assignment

    async def update_assignment(
        self,
        assignment_id: str,
        org_id: str,
        patch: Dict[str, Any],
        actor_id: str,
    ) -> Assignment:
        """
        Apply ``patch`` to an active row.

        Raises:
            NotFoundError: absent, deleted, or owned by another tenant
            ValidationError: empty patch or a field that cannot be changed
        """
        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {sorted(unknown)}")
        if not patch:
            raise ValidationError("No fields to update")

        assignment = await self.get_assignment(assignment_id, org_id, for_update=True)
        for key, value in patch.items():
            setattr(assignment, key, value)
        assignment.updated_by = actor_id
        await self.session.flush()
        await self.session.refresh(assignment)
        return assignment

    async def delete_assignment(self, assignment_id: str, org_id: str, actor_id: str) -> bool:
        """
        Soft-delete a row. Returns False when it was already deleted.

        Raises:
            NotFoundError: no such row in this tenant
        """
        assignment = await self.get_assignment(assignment_id, org_id, include_deleted=True, for_update=True)
        if assignment.status == AssignmentStatus.DELETED:
            return False
        assignment.status = AssignmentStatus.DELETED
        assignment.deleted_by = actor_id
        assignment.deleted_at = utc_now()
        assignment.updated_by = actor_id
        await self.session.flush()
        return True

    async def demote_primary(
        self,
        user_id: str,
        context_type: ContextType,
        context_id: str,
        actor_id: str,
        exclude_id: Optional[str] = None,
    ) -> int:
        """Clear is_primary on every active row at the tuple. Returns rows changed."""
        conditions = [
            Assignment.user_id == user_id,
            Assignment.context_type == context_type,
            Assignment.context_id == context_id,
            Assignment.status == AssignmentStatus.ACTIVE,
            Assignment.is_primary.is_(True),
        ]
        if exclude_id is not None:
            conditions.append(Assignment.id != exclude_id)
        result = await self.session.execute(
            update(Assignment)
            .where(*conditions)
            .values(is_primary=False, updated_by=actor_id, updated_at=func.now())
            .execution_options(synchronize_session="fetch")
        )
        demoted = result.rowcount or 0
        if demoted:
            log.debug("Demoted %d primary assignment(s) for user=%s context=%s:%s", demoted, user_id, context_type, context_id)
        return demoted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_assignment(
        self,
        assignment_id: str,
        org_id: str,
        include_deleted: bool = False,
        for_update: bool = False,
    ) -> Assignment:
        stmt = select(Assignment).where(Assignment.id == assignment_id, Assignment.org_id == org_id)
        if not include_deleted:
            stmt = stmt.where(Assignment.status == AssignmentStatus.ACTIVE)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        assignment = result.scalar_one_or_none()
        if assignment is None:
            raise NotFoundError("assignment", assignment_id)
        return assignment

    async def get_context_assignments(
        self,
        context_type: ContextType,
        context_id: str,
        org_id: str,
        on: Optional[date] = None,
    ) -> List[Assignment]:
        """Effective assignments at exactly this context."""
        result = await self.session.execute(
            select(Assignment)
            .where(
                Assignment.org_id == org_id,
                Assignment.context_type == context_type,
                Assignment.context_id == context_id,
                effective_clause(on or utc_today()),
            )
            .order_by(Assignment.created_at, Assignment.id)
        )
        return list(result.scalars().all())

    async def get_user_assignments(
        self,
        user_id: str,
        org_id: str,
        on: Optional[date] = None,
    ) -> List[Assignment]:
        """Effective assignments of a user across all context types: the input to expansion."""
        result = await self.session.execute(
            select(Assignment)
            .where(
                Assignment.org_id == org_id,
                Assignment.user_id == user_id,
                effective_clause(on or utc_today()),
            )
            .order_by(Assignment.created_at, Assignment.id)
        )
        return list(result.scalars().all())

    async def find_active(
        self,
        org_id: str,
        context_type: Optional[ContextType] = None,
        context_id: Optional[str] = None,
        user_ids: Optional[Iterable[str]] = None,
        role_id: Optional[str] = None,
        assignment_ids: Optional[Iterable[str]] = None,
        on: Optional[date] = None,
    ) -> List[Assignment]:
        """
        Active rows matching the given narrowing, locked for update.

        ``on`` additionally restricts to rows effective on that day.
        """
        stmt = select(Assignment).where(
            Assignment.org_id == org_id,
            Assignment.status == AssignmentStatus.ACTIVE,
        )
        if context_type is not None:
            stmt = stmt.where(Assignment.context_type == context_type)
        if context_id is not None:
            stmt = stmt.where(Assignment.context_id == context_id)
        if user_ids is not None:
            stmt = stmt.where(Assignment.user_id.in_(list(user_ids)))
        if role_id is not None:
            stmt = stmt.where(Assignment.role_id == role_id)
        if assignment_ids is not None:
            stmt = stmt.where(Assignment.id.in_(list(assignment_ids)))
        if on is not None:
            stmt = stmt.where(effective_clause(on))
        result = await self.session.execute(stmt.order_by(Assignment.id).with_for_update())
        return list(result.scalars().all())

    async def list_assignments(
        self,
        filters: AssignmentFilters,
        org_id: str,
        page_size: int,
        on: Optional[date] = None,
    ) -> Tuple[Sequence[Assignment], int]:
        """
        Filtered, paginated listing, newest first.

        Without ``include_deleted`` only status-active rows are listed;
        ``effective_only`` further restricts to rows whose window contains today.
        """
        conditions: List[ColumnElement[bool]] = [Assignment.org_id == org_id]
        if not filters.include_deleted:
            conditions.append(Assignment.status == AssignmentStatus.ACTIVE)
        if filters.effective_only:
            conditions.append(effective_clause(on or utc_today()))
        if filters.user_id is not None:
            conditions.append(Assignment.user_id == filters.user_id)
        if filters.role_id is not None:
            conditions.append(Assignment.role_id == filters.role_id)
        if filters.context_type is not None:
            conditions.append(Assignment.context_type == filters.context_type)
        if filters.context_id is not None:
            conditions.append(Assignment.context_id == filters.context_id)
        if filters.is_primary is not None:
            conditions.append(Assignment.is_primary == filters.is_primary)
        if filters.trade_type is not None:
            conditions.append(Assignment.trade_type == filters.trade_type)

        total = await self.session.scalar(select(func.count(Assignment.id)).where(*conditions))

        offset = (filters.page - 1) * page_size
        result = await self.session.execute(
            select(Assignment)
            .where(*conditions)
            .order_by(Assignment.created_at.desc(), Assignment.id.desc())
            .offset(offset)
            .limit(page_size)
        )
        return result.scalars().all(), total or 0

    async def count_user_assignments(
        self,
        user_id: str,
        org_id: str,
        on: Optional[date] = None,
    ) -> Tuple[Dict[str, int], int]:
        """Status-active rows of a user counted per context type, and how many are effective on ``on``."""
        day = on or utc_today()
        result = await self.session.execute(
            select(
                Assignment.context_type,
                func.count(Assignment.id),
                func.count(case((effective_clause(day), Assignment.id))),
            )
            .where(
                Assignment.org_id == org_id,
                Assignment.user_id == user_id,
                Assignment.status == AssignmentStatus.ACTIVE,
            )
            .group_by(Assignment.context_type)
        )
        by_type: Dict[str, int] = {}
        effective = 0
        for context_type, count, effective_count in result.all():
            by_type[ContextType(context_type).value] = count
            effective += effective_count
        return by_type, effective
