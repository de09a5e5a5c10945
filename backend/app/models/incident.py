"""Incident model for reported emergencies."""

from datetime import UTC, datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Incident(Base):
    """
    A reported emergency event.

    Created unverified by any identity, verified or rejected by an admin,
    then claimed, worked and completed by a volunteer.
    """

    __tablename__ = "incidents"

    id: Mapped[str] = mapped_column(String(20), primary_key=True)  # INC-<year>-<nnnn>

    # Classification
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    severity: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="unverified")
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Location
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)

    # Reporter
    reporter: Mapped[str] = mapped_column(String(255), nullable=False)
    reporter_id: Mapped[str] = mapped_column(String(40), nullable=False, index=True)

    # Verification
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_by: Mapped[str | None] = mapped_column(String(40))
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Assignment
    assigned_to: Mapped[str | None] = mapped_column(String(40), index=True)
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    assigned_volunteers: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    resources: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    notes: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)

    # Optimistic concurrency counter, checked on every ORM update
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Timestamps
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_incidents_status_verified", status, verified),
        Index("idx_incidents_timestamp", timestamp.desc()),
    )
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Incident {self.id}: {self.type} ({self.status})>"
