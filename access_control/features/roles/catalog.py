"""
Read-only role lookup used to validate assignments.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from access_control.core.errors import NotFoundError, ValidationError
from access_control.features.roles.models import Role


class RoleCatalog:
    """Answers "which org may this role be used in". Never expands permissions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_role(self, role_id: str) -> Role:
        result = await self.session.execute(
            select(Role).where(Role.id == role_id, Role.is_deleted.is_(False))
        )
        role = result.scalar_one_or_none()
        if role is None:
            raise NotFoundError("role", role_id)
        return role

    async def ensure_usable(self, role_id: str, org_id: str) -> Role:
        """
        Return the role if it is a system role or a custom role owned by ``org_id``.

        Raises:
            NotFoundError: role does not exist or is deleted
            ValidationError: role belongs to another organization
        """
        role = await self.get_role(role_id)
        if not role.usable_in(org_id):
            raise ValidationError(
                f"Role {role_id!r} cannot be used in organization {org_id!r}",
                role_id=role_id,
                org_id=org_id,
            )
        return role
