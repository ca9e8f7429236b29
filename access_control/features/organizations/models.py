"""
Containment entities: organization -> location -> project.

These tables are owned by the entity-management side of the platform. The
access-control core only reads them to validate assignment contexts and to
expand grants down the hierarchy.
"""
from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from access_control.core.database.base import Base, TimestampMixin, SoftDeleteMixin, generate_ulid


class Organization(Base, TimestampMixin, SoftDeleteMixin):
    """
    Organization model: the tenant boundary.
    """
    __tablename__ = "organizations"

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    org_type: Mapped[str | None] = mapped_column(String(50), nullable=True)  # general_contractor, owner, ...

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name!r})>"


class Location(Base, TimestampMixin, SoftDeleteMixin):
    """
    Location model. Belongs to exactly one organization.
    """
    __tablename__ = "locations"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    org_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id"),
        nullable=False,
        index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location_type: Mapped[str] = mapped_column(String(50), nullable=False, default="office")  # office, warehouse, job_site, yard

    def __repr__(self) -> str:
        return f"<Location(id={self.id}, org_id={self.org_id}, name={self.name!r})>"


class Project(Base, TimestampMixin, SoftDeleteMixin):
    """
    Project model. Belongs to exactly one organization and one location.
    """
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    org_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id"),
        nullable=False,
        index=True
    )
    location_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("locations.id"),
        nullable=False,
        index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, org_id={self.org_id}, location_id={self.location_id})>"
