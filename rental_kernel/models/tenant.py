"""
Module: rental_kernel.models.tenant
Responsibility: ORM persistence for tenants, the root of the archive cascade.
Architecture position: Kernel > Models.
"""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import ArchivableMixin, TrackedBase


class Tenant(ArchivableMixin, TrackedBase):
    """
    A person renting one or more units.

    Owns contracts, conversations and exactly one Balance row (created
    lazily).
    """

    __tablename__ = "tenants"

    __table_args__ = (
        Index("idx_tenant_archived", "is_archived"),
    )

    full_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    phone: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Tenant {self.full_name}>"
