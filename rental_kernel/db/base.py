"""
Module: rental_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the type annotation map for consistent column
    types, the TrackedBase audit timestamps and the ArchivableMixin soft-delete
    columns.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from models/, services/, selectors/ or domain/.

Invariants enforced:
    - UUID primary keys generated by uuid4.
    - Decimal maps to Numeric(38, 9).  NEVER use float for monetary amounts.
    - datetime maps to DateTime(timezone=True).
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import Boolean, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime(timezone=True).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamps.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at auto-updates on every ORM UPDATE.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class ArchivableMixin:
    """
    Soft-delete columns shared by every row the archive cascade walks.

    Contract:
        A cascade stamps every row it touches with the same archived_at,
        archived_by and archive_reason.  Restore uses that stamp to find
        exactly the rows the cascade archived.
    """

    is_archived: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    archived_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    archived_by: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    archive_reason: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    def mark_archived(self, archived_at: datetime, archived_by: str | None, reason: str | None) -> None:
        self.is_archived = True
        self.archived_at = archived_at
        self.archived_by = archived_by
        self.archive_reason = reason

    def clear_archived(self) -> None:
        self.is_archived = False
        self.archived_at = None
        self.archived_by = None
        self.archive_reason = None


UUID = PyUUID
