"""
SQLAlchemy database models.
Defines the scheduled_jobs table used by the database job store.
"""

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Enum, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from deliveryq.constants import JobStatus


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def _new_job_id() -> str:
    return str(uuid4())


class ScheduledJob(Base):
    """
    A delayed job persisted by the database job store.

    The store generates ``id``; the caller's own reference, when given, is
    kept in ``external_id``.

    Column types are portable so the same model runs on PostgreSQL and
    SQLite.
    """

    __tablename__ = "scheduled_jobs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=_new_job_id,
    )
    external_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )

    job_type: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    data: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    status: Mapped[JobStatus] = mapped_column(
        Enum(
            JobStatus,
            name="scheduled_job_status",
            native_enum=False,
            length=16,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=JobStatus.SCHEDULED,
    )

    scheduled_for: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        # Due-job polling
        Index("ix_scheduled_jobs_status_scheduled_for", "status", "scheduled_for"),
        # Cleanup by age
        Index("ix_scheduled_jobs_status_updated_at", "status", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<ScheduledJob(id={self.id}, type={self.job_type}, status={self.status})>"
