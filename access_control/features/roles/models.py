"""
Role model.

Roles are either system-wide (usable in every organization) or custom roles
owned by one organization. The permission catalog behind a role is managed
elsewhere; this service only needs to know where a role may be used.
"""
import enum
from sqlalchemy import String, ForeignKey, Text, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from access_control.core.database.base import Base, TimestampMixin, SoftDeleteMixin, generate_ulid


class RoleType(str, enum.Enum):
    """Org-scope tag of a role."""
    SYSTEM = "system"
    CUSTOM = "custom"


class Role(Base, TimestampMixin, SoftDeleteMixin):
    """
    Role model.

    Examples: project_manager, superintendent, foreman, org_admin
    """
    __tablename__ = "roles"
    __table_args__ = (
        UniqueConstraint("org_id", "name", name="uq_roles_org_name"),
    )

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    role_type: Mapped[RoleType] = mapped_column(
        SQLEnum(RoleType, values_callable=lambda e: [m.value for m in e]),
        default=RoleType.CUSTOM,
        nullable=False
    )

    # Link to owning organization (null = system-wide role)
    org_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("organizations.id"),
        nullable=True,
        index=True
    )

    def usable_in(self, org_id: str) -> bool:
        """True when the role may be granted inside ``org_id``."""
        if self.role_type == RoleType.SYSTEM:
            return True
        return self.org_id == org_id

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r}, org_id={self.org_id})>"
