"""
Module: rental_kernel.models.conversation
Responsibility: Support conversations owned by a tenant and the archive store
    they are moved into when the tenant is archived.
Architecture position: Kernel > Models.

The live tables (conversations, messages) belong to the support subsystem;
the kernel only reads them to move rows into archived_conversations /
archived_messages and back.  Archived rows keep the original ids so a
restore recreates the live rows unchanged.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import TrackedBase, UUIDString
from rental_kernel.domain.lifecycle import ConversationStatus


class Conversation(TrackedBase):
    __tablename__ = "conversations"

    __table_args__ = (
        Index("idx_conversation_tenant", "tenant_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    topic: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    status: Mapped[ConversationStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ConversationStatus.OPEN,
    )


class Message(TrackedBase):
    __tablename__ = "messages"

    __table_args__ = (
        Index("idx_message_conversation", "conversation_id"),
    )

    conversation_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("conversations.id"),
        nullable=False,
    )

    sender: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )


class ArchivedConversation(TrackedBase):
    """
    Copy of a conversation moved out of the live tables.

    Guarantees:
        - original_id is the id the live row had and gets back on restore.
        - archived_at/by/reason equal the stamp of the cascade that moved it.
    """

    __tablename__ = "archived_conversations"

    __table_args__ = (
        Index("idx_archived_conversation_tenant", "tenant_id"),
        Index("idx_archived_conversation_archived_at", "archived_at"),
    )

    original_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
        unique=True,
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    topic: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    original_created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    archived_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    archived_by: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    archive_reason: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )


class ArchivedMessage(TrackedBase):
    __tablename__ = "archived_messages"

    __table_args__ = (
        Index("idx_archived_message_conversation", "archived_conversation_id"),
    )

    archived_conversation_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("archived_conversations.id"),
        nullable=False,
    )

    original_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    sender: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    original_created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
