"""
SQLAlchemy database models for WorkTrace.

These models represent the database schema for tracked workspaces, the
presence sessions recorded inside them, the units of work discovered or
entered for them, and the hours allocated to each unit of work.
"""

import datetime as dt
import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Tag a naive datetime as UTC; aware datetimes pass through."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime column.

    SQLite stores datetimes without an offset, so values are normalized to
    UTC on the way in and tagged as UTC on the way out. Naive datetimes are
    assumed to already be UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class WorkItemType(str, enum.Enum):
    """Kind of unit of work a WorkItem represents."""

    COMMIT = "commit"  # Regular commit discovered in a repository
    MERGE = "merge"  # Merge commit (pull/merge request landed)
    MANUAL = "manual"  # Entered by hand


class Workspace(Base):
    """A tracked project root directory."""

    __tablename__ = "workspaces"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    path: Mapped[str] = mapped_column(
        String(1024), nullable=False, unique=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Status
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now, nullable=False
    )

    # Relationships
    sessions: Mapped[list["WorkSession"]] = relationship(
        back_populates="workspace", cascade="all, delete-orphan"
    )
    work_items: Mapped[list["WorkItem"]] = relationship(
        back_populates="workspace", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Workspace(id={self.id}, name={self.name!r}, path={self.path!r})>"


class WorkSession(Base):
    """
    One contiguous interval of presence in a workspace.

    A session is open while ``end_at`` is NULL. ``active_seconds`` is a
    checkpoint while open and authoritative once closed.
    """

    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    repo: Mapped[str] = mapped_column(String(512), nullable=False)
    branch: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    start_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    active_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_allocated: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, nullable=False
    )

    # Relationships
    workspace: Mapped["Workspace"] = relationship(back_populates="sessions")

    __table_args__ = (
        Index("ix_sessions_workspace_open", "workspace_id", "end_at"),
        Index("ix_sessions_workspace_allocated", "workspace_id", "is_allocated"),
    )

    @property
    def is_open(self) -> bool:
        return self.end_at is None

    def __repr__(self) -> str:
        return (
            f"<WorkSession(id={self.id}, workspace_id={self.workspace_id}, "
            f"start_at={self.start_at}, end_at={self.end_at}, "
            f"active_seconds={self.active_seconds})>"
        )


class WorkItem(Base):
    """A discovered or manually entered unit of work."""

    __tablename__ = "work_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    repo: Mapped[str] = mapped_column(String(512), nullable=False)
    type: Mapped[WorkItemType] = mapped_column(
        Enum(
            WorkItemType,
            name="work_item_type",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    detail: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, index=True
    )
    url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    external_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )  # e.g. commit SHA, used for de-duplication

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, nullable=False
    )

    # Relationships
    workspace: Mapped["Workspace"] = relationship(back_populates="work_items")
    allocations: Mapped[list["Allocation"]] = relationship(
        back_populates="work_item", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint(
            "workspace_id", "external_id", name="uq_work_item_workspace_external_id"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<WorkItem(id={self.id}, type={self.type.value!r}, "
            f"title={self.title!r}, external_id={self.external_id!r})>"
        )


class Allocation(Base):
    """Hours attributed to a WorkItem on one calendar date."""

    __tablename__ = "allocations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    work_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("work_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    hours: Mapped[float] = mapped_column(Float, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tag: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now, nullable=False
    )

    # Relationships
    work_item: Mapped["WorkItem"] = relationship(back_populates="allocations")

    def __repr__(self) -> str:
        return (
            f"<Allocation(id={self.id}, work_item_id={self.work_item_id}, "
            f"date={self.date}, hours={self.hours})>"
        )


class Metadata(Base):
    """Free-form key/value metadata about the store itself."""

    __tablename__ = "db_metadata"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Metadata(key={self.key!r}, value={self.value!r})>"
